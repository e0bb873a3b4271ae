"""
Reinventory - three-layer client for a path-addressed inventory record API.

Layers:
- core: Raw types, HTTP client and status classification
- sdk: InventoryClient and Session with record reads and the move engine
- cli: Command-line interface
"""

from reinventory.sdk import InventoryClient, MoveReport, Session

__version__ = "0.1.0"
__all__ = ["InventoryClient", "MoveReport", "Session"]

"""
Core layer - Raw types and HTTP client.

This layer provides:
- Typed dataclasses matching the record API's JSON bodies
- Low-level HTTP client with auth and error handling
- HTTP status classification
"""

from reinventory.core.client import APIClient, APIError, CLIError, TransportError, ValidationError
from reinventory.core.status import StatusClass, classify
from reinventory.core.types import (
    AbsoluteInventoryPath,
    AuthorizationInfo,
    DirectoryMetadata,
    Email,
    GroupId,
    LoginInfo,
    OneTimePassword,
    Password,
    PasswordLogin,
    Record,
    RecordId,
    RecordOwner,
    RecordType,
    SessionToken,
    Submission,
    TokenLogin,
    UserId,
)

__all__ = [
    "APIClient",
    "APIError",
    "AbsoluteInventoryPath",
    "AuthorizationInfo",
    "CLIError",
    "DirectoryMetadata",
    "Email",
    "GroupId",
    "LoginInfo",
    "OneTimePassword",
    "Password",
    "PasswordLogin",
    "Record",
    "RecordId",
    "RecordOwner",
    "RecordType",
    "SessionToken",
    "StatusClass",
    "Submission",
    "TokenLogin",
    "TransportError",
    "UserId",
    "ValidationError",
    "classify",
]

"""
Core HTTP client for the inventory record API.

Handles the authorization header, request/response encoding and error handling.
"""

import http.client
import json
import logging
import os
import urllib.error
import urllib.parse
import urllib.request
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from reinventory.core.types import AuthorizationInfo

# Configuration
DEFAULT_BASE_URL = "https://api.neos.com/api"
DEFAULT_TIMEOUT = 60

logger = logging.getLogger(__name__)


class CLIError(Exception):
    """Base error class for CLI errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result: dict[str, Any] = {"error": self.message}
        if self.details:
            result["details"] = self.details
        return result


class APIError(CLIError):
    """API error with status code and message."""

    def __init__(self, message: str, status: int = 0, details: dict | None = None):
        super().__init__(message, details)
        self.status = status

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result = super().to_dict()
        if self.status:
            result["status"] = self.status
        return result


class TransportError(APIError):
    """The request never produced a usable HTTP response (connection, timeout, bad body)."""


class ValidationError(CLIError):
    """Validation error for local input/data issues (not API errors)."""


class APIClient:
    """
    Low-level HTTP client for the inventory record API.

    Handles:
    - The ``Authorization`` header for authenticated sessions
    - HTTP methods (GET, POST, PUT, DELETE)
    - Error handling and response parsing
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: int | None = None,
    ):
        """
        Initialize the API client.

        Args:
            base_url: API base URL (or REINVENTORY_BASE_URL env var)
            timeout: Request timeout in seconds (or REINVENTORY_TIMEOUT env var)

        """
        env_base_url = os.environ.get("REINVENTORY_BASE_URL", DEFAULT_BASE_URL)
        self.base_url = (base_url or env_base_url).rstrip("/")
        self.timeout = timeout or int(os.environ.get("REINVENTORY_TIMEOUT", DEFAULT_TIMEOUT))

    def _build_url(self, path: str) -> str:
        """Build full URL from an API-relative path."""
        return f"{self.base_url}{path}"

    def _make_request(
        self,
        method: str,
        path: str,
        data: dict | None = None,
        authorization: "AuthorizationInfo | None" = None,
        headers: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> Any:
        """
        Make an HTTP request to the API.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            path: API path (e.g., /users/{ownerId}/records/{recordId})
            data: Request body for POST/PUT
            authorization: Session credentials; the request is anonymous when None
            headers: Extra request headers
            timeout: Request timeout override

        Returns:
            Parsed JSON response

        Raises:
            APIError: On non-2xx responses
            TransportError: On connection, timeout or parsing errors

        """
        url = self._build_url(path)
        request_headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if authorization is not None:
            request_headers["Authorization"] = authorization.as_header_value()
        if headers:
            request_headers.update(headers)

        body = json.dumps(data).encode("utf-8") if data is not None else None
        request_timeout = timeout or self.timeout

        logger.debug("%s %s", method, url)
        try:
            req = urllib.request.Request(url, data=body, headers=request_headers, method=method)
            with urllib.request.urlopen(req, timeout=request_timeout) as response:
                response_data = response.read().decode("utf-8")
                if response_data:
                    return json.loads(response_data)
                return {"success": True}

        except urllib.error.HTTPError as e:
            try:
                error_body = e.read().decode("utf-8")
                error_data = json.loads(error_body)
                # Handle both {"error": "message"} and {"message": "..."}
                if isinstance(error_data, dict):
                    message = error_data.get("error") or error_data.get("message") or str(e)
                    if not isinstance(message, str):
                        message = str(e)
                else:
                    message = str(e)
                    error_data = {"body": error_data}
                raise APIError(message, status=e.code, details=error_data)
            except (json.JSONDecodeError, UnicodeDecodeError, http.client.HTTPException, OSError):
                raise APIError(str(e), status=e.code)

        except urllib.error.URLError as e:
            raise TransportError(f"Connection error: {e.reason}")

        except TimeoutError:
            raise TransportError(f"Request timed out after {request_timeout} seconds")

        except json.JSONDecodeError as e:
            raise TransportError(f"Invalid JSON response: {e}")

        except UnicodeDecodeError as e:
            raise TransportError(f"Response is not valid UTF-8: {e}")

        except (http.client.HTTPException, OSError) as e:
            # Dropped connection or truncated body
            raise TransportError(f"Connection error: {e!r}")

    # =========================================================================
    # HTTP Methods
    # =========================================================================

    def get(
        self,
        path: str,
        authorization: "AuthorizationInfo | None" = None,
    ) -> Any:
        """Make a GET request."""
        return self._make_request("GET", path, authorization=authorization)

    def post(
        self,
        path: str,
        data: dict | None = None,
        authorization: "AuthorizationInfo | None" = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Make a POST request."""
        return self._make_request("POST", path, data, authorization=authorization, headers=headers)

    def put(
        self,
        path: str,
        data: dict | None = None,
        authorization: "AuthorizationInfo | None" = None,
    ) -> Any:
        """Make a PUT request."""
        return self._make_request("PUT", path, data, authorization=authorization)

    def delete(
        self,
        path: str,
        authorization: "AuthorizationInfo | None" = None,
    ) -> Any:
        """Make a DELETE request."""
        return self._make_request("DELETE", path, authorization=authorization)

    # =========================================================================
    # User-scoped helpers
    # =========================================================================

    @staticmethod
    def user_path(owner_id: object) -> str:
        """Get the user path prefix."""
        return f"/users/{urllib.parse.quote(str(owner_id), safe='')}"

    @classmethod
    def record_path(cls, owner_id: object, record_id: object) -> str:
        """Get the path of a single record."""
        return f"{cls.user_path(owner_id)}/records/{urllib.parse.quote(str(record_id), safe='')}"

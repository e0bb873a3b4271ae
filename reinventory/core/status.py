"""
HTTP status classification shared by the record reader and the move engine.
"""

from enum import Enum


class StatusClass(Enum):
    """Outcome family of an HTTP response."""

    SUCCESS = "success"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    UNHANDLED = "unhandled"

    @property
    def is_success(self) -> bool:
        return self is StatusClass.SUCCESS


def classify(status: int) -> StatusClass:
    """
    Map an HTTP status code to its outcome family.

    403 and 404 are split out of the 4xx family because readers treat both as
    "absent"; they differ only in how they are logged.
    """
    if 200 <= status < 300:
        return StatusClass.SUCCESS
    if status == 403:
        return StatusClass.UNAUTHORIZED
    if status == 404:
        return StatusClass.NOT_FOUND
    if 400 <= status < 500:
        return StatusClass.CLIENT_ERROR
    if 500 <= status < 600:
        return StatusClass.SERVER_ERROR
    return StatusClass.UNHANDLED

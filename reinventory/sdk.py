"""
Reinventory SDK - High-level client with nice ergonomics.

This layer provides a session-scoped, typed interface for reading and
moving inventory records. Built on top of the core APIClient.
"""

import logging
import urllib.parse
from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from reinventory.core.client import APIClient, APIError, CLIError, TransportError, ValidationError
from reinventory.core.status import StatusClass, classify
from reinventory.core.types import (
    AbsoluteInventoryPath,
    AuthorizationInfo,
    DirectoryMetadata,
    LoginInfo,
    PasswordLogin,
    Record,
    RecordId,
    TokenLogin,
    UserId,
    UserLoginPostBody,
    UserLoginPostResponse,
)

logger = logging.getLogger(__name__)

# Bound on directory nesting followed by a recursive move.
MAX_MOVE_DEPTH = 32


class InventoryClient:
    """
    High-level inventory client. Turns credentials into a Session.

    Example:
        client = InventoryClient()

        with client.login(PasswordLogin(password=..., email=...)) as session:
            for record in session.get_directory_items(session.owner_id, path):
                ...
            report = session.move_records(owner_id, [record_id], destination)

    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: int | None = None,
    ):
        """
        Initialize the inventory client.

        Args:
            base_url: API base URL (or REINVENTORY_BASE_URL env var)
            timeout: Request timeout in seconds (or REINVENTORY_TIMEOUT env var)

        """
        self._client = APIClient(base_url=base_url, timeout=timeout)

    @property
    def base_url(self) -> str:
        return self._client.base_url

    def login(self, credentials: LoginInfo | None = None) -> "Session":
        """
        Establish a session.

        Args:
            credentials: Password or token credentials; None for an anonymous session

        Returns:
            Session carrying the authorization for every later call

        Raises:
            APIError: When the login call fails. Login is never retried.

        """
        if credentials is None:
            logger.debug("auth: no login")
            return Session(self._client, None)

        if isinstance(credentials, TokenLogin):
            logger.debug("auth: userid+token")
            return Session(self._client, credentials.to_authorization_info())

        if not isinstance(credentials, PasswordLogin):
            raise ValidationError(f"Unsupported credentials: {type(credentials).__name__}")

        body = UserLoginPostBody(credentials)
        headers = {"TOTP": str(credentials.totp)} if credentials.totp is not None else None
        logger.debug("login...")
        result = self._client.post("/userSessions", body.to_dict(), headers=headers)
        response = UserLoginPostResponse.from_dict(result)
        logger.debug("logged in as %s", response.user_id)
        return Session(self._client, response.to_authorization_info())


# =============================================================================
# Session
# =============================================================================


class Session:
    """
    An authenticated or anonymous session.

    The authorization is fixed for the session's lifetime. Use the session as
    a context manager so logout runs exactly once, even when an operation
    fails.
    """

    def __init__(self, client: APIClient, authorization: AuthorizationInfo | None):
        self._client = client
        self._logged_out = False
        self.authorization = authorization

        # Sub-clients for different concerns
        self.records = RecordOperations(client, authorization)
        self.moves = MoveOperations(self.records)

    @property
    def is_anonymous(self) -> bool:
        return self.authorization is None

    @property
    def owner_id(self) -> UserId | None:
        """The logged-in user, or None for an anonymous session."""
        return self.authorization.owner_id if self.authorization else None

    def authorization_header(self) -> str | None:
        return self.authorization.as_header_value() if self.authorization else None

    def get_record(self, owner_id: UserId, record_id: RecordId) -> Record | None:
        return self.records.get(owner_id, record_id)

    def get_directory_items(self, owner_id: UserId, path: AbsoluteInventoryPath) -> list[Record]:
        return self.records.list_directory(owner_id, path)

    def get_directory_metadata(self, owner_id: UserId, path: AbsoluteInventoryPath) -> DirectoryMetadata:
        return self.records.metadata(owner_id, path)

    def move_records(
        self,
        owner_id: UserId,
        record_ids: Iterable[RecordId],
        destination: AbsoluteInventoryPath,
        keep_record_id: bool = False,
        recursive: bool = False,
    ) -> "MoveReport":
        return self.moves.move_records(
            owner_id,
            record_ids,
            destination,
            keep_record_id=keep_record_id,
            recursive=recursive,
        )

    def logout(self) -> None:
        """
        End the session. Best effort: failures are logged, never retried.

        Anonymous sessions make no network call. Calling logout again is a no-op.
        """
        if self._logged_out:
            return
        self._logged_out = True

        if self.authorization is None:
            return

        owner_id = urllib.parse.quote(str(self.authorization.owner_id), safe="")
        token = urllib.parse.quote(str(self.authorization.token), safe="")
        try:
            self._client.delete(f"/userSessions/{owner_id}/{token}", authorization=self.authorization)
        except APIError as e:
            logger.warning("Logout failed: %s", e.message)
            return
        logger.info("Logged out")

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.logout()


# =============================================================================
# Record Operations
# =============================================================================


class RecordOperations:
    """Reads and writes of single records and directory listings."""

    def __init__(self, client: APIClient, authorization: AuthorizationInfo | None):
        self._client = client
        self._authorization = authorization

    def get(self, owner_id: UserId, record_id: RecordId) -> Record | None:
        """
        Fetch one record by id.

        Args:
            owner_id: Owner of the inventory
            record_id: Record to fetch

        Returns:
            The record, or None when it is absent, not visible (403), or the
            response is otherwise unusable

        Raises:
            TransportError: When no HTTP response was received

        """
        try:
            result = self._client.get(
                APIClient.record_path(owner_id, record_id),
                authorization=self._authorization,
            )
        except TransportError:
            raise
        except APIError as e:
            status_class = classify(e.status)
            if status_class is StatusClass.UNAUTHORIZED:
                logger.warning("Record %s not found (unauthorized, HTTP 403)", record_id)
            elif status_class is StatusClass.NOT_FOUND:
                logger.info("Record %s not found", record_id)
            else:
                logger.error("Unhandled status %s while fetching record %s", e.status, record_id)
            return None

        if not isinstance(result, dict):
            logger.error("Record %s: unexpected response body", record_id)
            return None
        try:
            return Record.from_dict(result)
        except ValidationError as e:
            logger.error("Record %s could not be decoded: %s", record_id, e.message)
            return None

    def list_directory(self, owner_id: UserId, path: AbsoluteInventoryPath) -> list[Record]:
        """
        List the immediate children of a directory.

        An empty list is a valid result: the directory may be empty, or the
        inventory may not be visible without logging in.

        Raises:
            APIError: On non-2xx responses other than 404
            TransportError: When no HTTP response was received

        """
        endpoint = f"{APIClient.user_path(owner_id)}/records?path={path.to_uri_query_value()}"
        try:
            result = self._client.get(endpoint, authorization=self._authorization)
        except TransportError:
            raise
        except APIError as e:
            if classify(e.status) is StatusClass.NOT_FOUND:
                logger.info("Directory %s not found", path)
                return []
            raise

        if not isinstance(result, list):
            return []
        return [Record.from_dict(item) for item in result]

    def walk_directory(
        self,
        owner_id: UserId,
        path: AbsoluteInventoryPath,
        max_depth: int = 1,
    ) -> Iterator[Record]:
        """
        Yield records under ``path``, breadth first, descending into child
        directories up to ``max_depth`` levels (1 lists only ``path`` itself).
        """
        queue: deque[tuple[AbsoluteInventoryPath, int]] = deque([(path, 1)])
        while queue:
            current, depth = queue.popleft()
            for record in self.list_directory(owner_id, current):
                yield record
                if record.is_directory and depth < max_depth:
                    queue.append((record.children_path, depth + 1))

    def metadata(self, owner_id: UserId, path: AbsoluteInventoryPath) -> DirectoryMetadata:
        """
        Fetch a directory's own attributes by path.

        Raises:
            APIError: On non-2xx responses
            TransportError: When no HTTP response was received

        """
        endpoint = f"{APIClient.user_path(owner_id)}/records/root"
        if len(path):
            endpoint = f"{endpoint}/{path.to_url_path()}"
        result = self._client.get(endpoint, authorization=self._authorization)
        if not isinstance(result, dict):
            raise ValidationError("Unexpected directory metadata response", details={"response": result})
        return DirectoryMetadata.from_dict(result)

    def put(self, owner_id: UserId, record: Record) -> Any:
        """Create or replace a record under its own id."""
        return self._client.put(
            APIClient.record_path(owner_id, record.id),
            record.to_dict(),
            authorization=self._authorization,
        )

    def delete(self, owner_id: UserId, record_id: RecordId) -> Any:
        """Delete a record by id."""
        return self._client.delete(
            APIClient.record_path(owner_id, record_id),
            authorization=self._authorization,
        )


# =============================================================================
# Move Engine
# =============================================================================


class MoveStatus(Enum):
    """Outcome of moving a single record."""

    MOVED = "moved"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    UNHANDLED = "unhandled"
    TRANSPORT_ERROR = "transport_error"
    DEPTH_EXCEEDED = "depth_exceeded"


@dataclass
class MoveOutcome:
    """What happened to one record of a move batch."""

    record_id: RecordId
    status: MoveStatus
    step: str
    new_record_id: RecordId | None = None
    destination: AbsoluteInventoryPath | None = None
    http_status: int | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is MoveStatus.MOVED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        return {
            "record_id": str(self.record_id),
            "status": self.status.value,
            "step": self.step,
            "new_record_id": str(self.new_record_id) if self.new_record_id else None,
            "destination": str(self.destination) if self.destination is not None else None,
            "http_status": self.http_status,
            "message": self.message,
        }


@dataclass
class MoveReport:
    """Per-item outcomes of a move batch, in processing order."""

    outcomes: list[MoveOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[MoveOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[MoveOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        return {
            "moved": len(self.succeeded),
            "failed": len(self.failed),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


class DirectoryMoveError(CLIError):
    """A directory was selected for a non-recursive move. The batch stops here."""

    def __init__(self, record_id: RecordId, report: MoveReport):
        super().__init__(
            "unsupported: directories cannot be moved",
            details={
                "record_id": str(record_id),
                "processed": [o.to_dict() for o in report.outcomes],
            },
        )
        self.record_id = record_id
        self.report = report


class MoveOperations:
    """
    Move records by deleting them and recreating them at the destination.

    The API has no rename primitive. Each record is deleted first and then
    PUT under its target id, so two authoritative copies never coexist; if the
    process dies between the two calls the record is missing. A failed
    recreate is reported, not rolled back.
    """

    def __init__(self, records: RecordOperations):
        self._records = records

    def move_records(
        self,
        owner_id: UserId,
        record_ids: Iterable[RecordId],
        destination: AbsoluteInventoryPath,
        keep_record_id: bool = False,
        recursive: bool = False,
    ) -> MoveReport:
        """
        Move records to ``destination``, one at a time, in order.

        Args:
            owner_id: Owner of the inventory
            record_ids: Records to move
            destination: Target directory
            keep_record_id: Reuse each record's id instead of generating a new one
            recursive: Move directories together with their contents

        Returns:
            MoveReport with one outcome per processed record

        Raises:
            DirectoryMoveError: A directory was selected without ``recursive``.
                Records before it have already been moved.

        """
        report = MoveReport()
        for record_id in record_ids:
            self._move_tree(owner_id, record_id, destination, keep_record_id, recursive, report)

        logger.info("Move finished: %d moved, %d failed", len(report.succeeded), len(report.failed))
        return report

    def _move_tree(
        self,
        owner_id: UserId,
        root_id: RecordId,
        destination: AbsoluteInventoryPath,
        keep_record_id: bool,
        recursive: bool,
        report: MoveReport,
    ) -> None:
        """Move one requested record; for a recursive move, its whole subtree."""
        work: deque[tuple[RecordId, AbsoluteInventoryPath, int]] = deque([(root_id, destination, 0)])
        while work:
            record_id, target, depth = work.popleft()
            if depth > MAX_MOVE_DEPTH:
                logger.error("Record %s is nested deeper than %d levels; skipped", record_id, MAX_MOVE_DEPTH)
                report.outcomes.append(
                    MoveOutcome(record_id, MoveStatus.DEPTH_EXCEEDED, "depth", destination=target)
                )
                continue

            try:
                record = self._records.get(owner_id, record_id)
            except TransportError as e:
                logger.error("Transport error while fetching record %s: %s", record_id, e.message)
                report.outcomes.append(
                    MoveOutcome(record_id, MoveStatus.TRANSPORT_ERROR, "fetch", destination=target, message=e.message)
                )
                continue

            if record is None:
                logger.warning("Record %s not found; skipped", record_id)
                report.outcomes.append(MoveOutcome(record_id, MoveStatus.NOT_FOUND, "fetch", destination=target))
                continue

            children: list[Record] = []
            if record.is_directory:
                if not recursive:
                    logger.error("Record %s is a directory; directories cannot be moved", record_id)
                    raise DirectoryMoveError(record_id, report)
                try:
                    children = self._records.list_directory(owner_id, record.children_path)
                except APIError as e:
                    report.outcomes.append(self._failure(record_id, target, "list", e))
                    continue
                except ValidationError as e:
                    logger.error("Listing of directory %s could not be decoded: %s", record_id, e.message)
                    report.outcomes.append(
                        MoveOutcome(record_id, MoveStatus.UNHANDLED, "list", destination=target, message=e.message)
                    )
                    continue

            outcome = self._relocate(owner_id, record, target, keep_record_id)
            report.outcomes.append(outcome)
            if outcome.ok:
                child_target = target.child(record.name)
                for child in children:
                    work.append((child.id, child_target, depth + 1))

    def _relocate(
        self,
        owner_id: UserId,
        record: Record,
        destination: AbsoluteInventoryPath,
        keep_record_id: bool,
    ) -> MoveOutcome:
        """Delete ``record`` and recreate it at ``destination``."""
        target_id = record.id if keep_record_id else RecordId.generate()

        try:
            self._records.delete(owner_id, record.id)
        except APIError as e:
            # Nothing was removed, so nothing is recreated.
            return self._failure(record.id, destination, "delete", e)

        try:
            self._records.put(owner_id, record.relocated(target_id, destination))
        except APIError as e:
            logger.error("Record %s was deleted but could not be recreated as %s", record.id, target_id)
            outcome = self._failure(record.id, destination, "put", e)
            outcome.new_record_id = target_id
            return outcome

        logger.info("Moved %s -> %s (%s)", record.id, destination, target_id)
        return MoveOutcome(record.id, MoveStatus.MOVED, "put", new_record_id=target_id, destination=destination)

    @staticmethod
    def _failure(
        record_id: RecordId,
        destination: AbsoluteInventoryPath,
        step: str,
        error: APIError,
    ) -> MoveOutcome:
        """Classify a failed call and log it with enough context to diagnose."""
        if isinstance(error, TransportError):
            logger.error("Transport error at %s of record %s: %s", step, record_id, error.message)
            return MoveOutcome(
                record_id, MoveStatus.TRANSPORT_ERROR, step, destination=destination, message=error.message
            )

        status_class = classify(error.status)
        if status_class is StatusClass.UNAUTHORIZED:
            logger.error("Unauthorized (HTTP 403) at %s of record %s to %s", step, record_id, destination)
        elif status_class is StatusClass.NOT_FOUND:
            logger.error("Not found (HTTP 404) at %s of record %s to %s", step, record_id, destination)
        elif status_class is StatusClass.CLIENT_ERROR:
            logger.error(
                "Client error (HTTP %d) at %s of record %s to %s; this is likely a bug in this tool: %s",
                error.status,
                step,
                record_id,
                destination,
                error.message,
            )
        elif status_class is StatusClass.SERVER_ERROR:
            logger.error(
                "Server error (HTTP %d) at %s of record %s to %s; try again later: %s",
                error.status,
                step,
                record_id,
                destination,
                error.message,
            )
        else:
            logger.error("Unhandled status %s at %s of record %s to %s", error.status, step, record_id, destination)

        # A 2xx never reaches here; anything unclassifiable counts as unhandled.
        status = MoveStatus(status_class.value) if not status_class.is_success else MoveStatus.UNHANDLED
        return MoveOutcome(
            record_id,
            status,
            step,
            destination=destination,
            http_status=error.status,
            message=error.message,
        )

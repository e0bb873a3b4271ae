"""
Core types for the inventory record API.

These dataclasses mirror the JSON bodies the API sends and accepts. Decoding
is tolerant: the backend omits several optional fields depending on which
endpoint produced the record, and it is inconsistent about enum casing.
"""

import base64
import re
import urllib.parse
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from reinventory.core.client import ValidationError

AUTHORIZATION_SCHEME = "neos"


# =============================================================================
# Identity Types
# =============================================================================


@dataclass(frozen=True)
class UserId:
    """
    A user identifier.

    Ids entered by the user go through ``parse`` and must carry the ``U-``
    prefix. Ids inside records read from the API are taken as sent.
    """

    value: str

    @classmethod
    def parse(cls, value: str) -> "UserId":
        """Parse and validate a user id."""
        if not value.startswith("U-"):
            raise ValidationError(
                "An UserId must be prefixed with `U-`",
                details={"value": value},
            )
        return cls(value)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class GroupId:
    """A group identifier; ``parse`` requires the ``G-`` prefix."""

    value: str

    @classmethod
    def parse(cls, value: str) -> "GroupId":
        """Parse and validate a group id."""
        if not value.startswith("G-"):
            raise ValidationError(
                "A valid GroupId must be prefixed with `G-`",
                details={"value": value},
            )
        return cls(value)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RecordId:
    """
    Stable pointer to a record.

    Any string is accepted on parse. Ids generated locally always follow the
    ``R-<lowercase uuid>`` convention.
    """

    value: str

    @classmethod
    def parse(cls, value: str) -> "RecordId":
        return cls(value)

    @classmethod
    def generate(cls) -> "RecordId":
        """Create a fresh ``R-<uuid4>`` id."""
        return cls(f"R-{str(uuid.uuid4()).lower()}")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Password:
    value: str

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return "Password(***)"


@dataclass(frozen=True)
class OneTimePassword:
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class SessionToken:
    value: str

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return "SessionToken(***)"


_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")


@dataclass(frozen=True)
class Email:
    """An email address used to identify the account on login."""

    value: str

    def __post_init__(self) -> None:
        if not _EMAIL_PATTERN.match(self.value):
            raise ValidationError("Invalid email address", details={"value": self.value})

    @classmethod
    def parse(cls, value: str) -> "Email":
        return cls(value)

    def __str__(self) -> str:
        return self.value


RecordOwner = UserId | GroupId


def decode_record_owner(value: str) -> RecordOwner:
    """Decode an untagged owner id from a response: ``G-`` is a group, anything else a user."""
    if value.startswith("G-"):
        return GroupId(value)
    return UserId(value)


# =============================================================================
# Authorization
# =============================================================================


@dataclass(frozen=True)
class AuthorizationInfo:
    """Credential pair shared by every authenticated request of a session."""

    owner_id: UserId
    token: SessionToken

    def as_header_value(self) -> str:
        """Render the ``Authorization`` header value."""
        return f"{AUTHORIZATION_SCHEME} {self.owner_id}:{self.token}"


# =============================================================================
# Login Credentials
# =============================================================================


@dataclass(frozen=True)
class PasswordLogin:
    """
    Log in with a password, identifying the account by email or user id.

    Exactly one of ``email`` and ``user_id`` must be set.
    """

    password: Password
    email: Email | None = None
    user_id: UserId | None = None
    totp: OneTimePassword | None = None

    def __post_init__(self) -> None:
        if self.email is not None and self.user_id is not None:
            raise ValidationError("You can not provide both --email and --user-id.")
        if self.email is None and self.user_id is None:
            raise ValidationError("You must provide --email or --user-id if --password is given.")

    def identity_fields(self) -> dict[str, str]:
        """The identifying body field, flattened into the login body."""
        if self.email is not None:
            return {"email": str(self.email)}
        return {"ownerId": str(self.user_id)}


@dataclass(frozen=True)
class TokenLogin:
    """Reuse a session token obtained out of band; no login call is made."""

    user_id: UserId
    token: SessionToken

    def to_authorization_info(self) -> AuthorizationInfo:
        return AuthorizationInfo(owner_id=self.user_id, token=self.token)


LoginInfo = PasswordLogin | TokenLogin


def generate_machine_id() -> str:
    """Random per-device nonce sent as ``secretMachineId``."""
    raw = str(uuid.uuid4()).encode("ascii")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=").lower()


@dataclass
class UserLoginPostBody:
    """Body of ``POST /userSessions``."""

    login: PasswordLogin
    secret_machine_id: str = field(default_factory=generate_machine_id)
    remember_me: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for API request."""
        body: dict[str, Any] = dict(self.login.identity_fields())
        body["password"] = str(self.login.password)
        body["secretMachineId"] = self.secret_machine_id
        body["rememberMe"] = self.remember_me
        return body


@dataclass
class UserLoginPostResponse:
    """Response of ``POST /userSessions``."""

    user_id: UserId
    token: SessionToken

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserLoginPostResponse":
        """Create from API response dict."""
        try:
            return cls(
                user_id=UserId.parse(data["userId"]),
                token=SessionToken(data["token"]),
            )
        except (KeyError, TypeError) as e:
            raise ValidationError(f"Malformed login response: missing {e}", details={"response": data})

    def to_authorization_info(self) -> AuthorizationInfo:
        return AuthorizationInfo(owner_id=self.user_id, token=self.token)


# =============================================================================
# Inventory Path
# =============================================================================


@dataclass(frozen=True)
class AbsoluteInventoryPath:
    """
    An absolute path rooted at the inventory root.

    Segments are literal: ``.`` and ``..`` have no special meaning.
    """

    segments: tuple[str, ...] = ()

    @classmethod
    def parse(cls, value: str) -> "AbsoluteInventoryPath":
        """Split a slash separated path into segments."""
        if value == "":
            return cls()
        return cls(tuple(value.split("/")))

    @classmethod
    def from_record_path(cls, value: str) -> "AbsoluteInventoryPath":
        """Split a backslash separated ``Record.path`` into segments."""
        if value == "":
            return cls()
        return cls(tuple(value.split("\\")))

    def child(self, name: str) -> "AbsoluteInventoryPath":
        return AbsoluteInventoryPath(self.segments + (name,))

    def to_uri_query_value(self) -> str:
        """
        Serialize for the ``?path=`` query parameter.

        The API separates segments with a backslash, which is sent escaped
        as ``%5C``.
        """
        return "%5C".join(urllib.parse.quote(s, safe="") for s in self.segments)

    def to_url_path(self) -> str:
        """Serialize as URL path segments for the metadata-by-path endpoint."""
        return "/".join(urllib.parse.quote(s, safe="") for s in self.segments)

    def to_absolute_path(self) -> str:
        return "/".join(self.segments)

    def to_record_path(self) -> str:
        """Serialize in the backslash form stored in ``Record.path``."""
        return "\\".join(self.segments)

    def __len__(self) -> int:
        return len(self.segments)

    def __str__(self) -> str:
        return self.to_absolute_path()


# =============================================================================
# Timestamps
# =============================================================================


_FRACTION = re.compile(r"\.(\d+)")


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO 8601 timestamp from the API.

    Values without an offset are interpreted as UTC. The backend sends up to
    seven fractional digits, which are truncated to microseconds.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise ValidationError(f"Invalid timestamp: {value}") from e
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_optional_timestamp(value: str | None) -> datetime | None:
    if value is None:
        return None
    return parse_timestamp(value)


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# =============================================================================
# Record Types
# =============================================================================


class RecordType(Enum):
    """Kind of inventory entry. Wire encoding is lowercase."""

    DIRECTORY = "directory"
    OBJECT = "object"
    TEXTURE = "texture"
    AUDIO = "audio"
    LINK = "link"

    @classmethod
    def parse(cls, value: str) -> "RecordType":
        """Decode a wire value, accepting both the lowercase and capitalized spelling."""
        try:
            return _RECORD_TYPE_LOOKUP[value]
        except (KeyError, TypeError):
            raise ValidationError(
                f"Unknown record type: {value!r}",
                details={"expected": "directory | object | texture | audio | link"},
            ) from None


# The backend sends both spellings with no apparent rule.
_RECORD_TYPE_LOOKUP: dict[str, RecordType] = {}
for _member in RecordType:
    _RECORD_TYPE_LOOKUP[_member.value] = _member
    _RECORD_TYPE_LOOKUP[_member.value.capitalize()] = _member


@dataclass(frozen=True)
class Submission:
    """A world submission attached to a record."""

    id: str
    owner_id: str
    target_record_id: RecordId
    submission_time: datetime | None = None
    submitted_by_id: str | None = None
    submitted_by_name: str | None = None
    is_featured: bool = False
    featured_by_user_id: str | None = None
    featured_timestamp: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Submission":
        """Create from API response dict."""
        return cls(
            id=data.get("id", ""),
            owner_id=data.get("ownerId", ""),
            target_record_id=RecordId(data.get("targetRecordId", "")),
            submission_time=parse_optional_timestamp(data.get("submissionTime")),
            submitted_by_id=data.get("submittedById"),
            submitted_by_name=data.get("submittedByName"),
            is_featured=data.get("featured", False),
            featured_by_user_id=data.get("featuredByUserId"),
            featured_timestamp=parse_optional_timestamp(data.get("featuredTimestamp")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for API request."""
        return {
            "id": self.id,
            "ownerId": self.owner_id,
            "targetRecordId": str(self.target_record_id),
            "submissionTime": format_timestamp(self.submission_time),
            "submittedById": self.submitted_by_id,
            "submittedByName": self.submitted_by_name,
            "featured": self.is_featured,
            "featuredByUserId": self.featured_by_user_id,
            "featuredTimestamp": format_timestamp(self.featured_timestamp),
        }


# Wire keys owned by Record.to_dict(); everything else is kept in Record.extra.
_RECORD_KEYS = frozenset(
    {
        "id",
        "assetUri",
        "globalVersion",
        "localVersion",
        "lastModifyingUserId",
        "lastModifyingMachineId",
        "name",
        "recordType",
        "ownerName",
        "tags",
        "path",
        "isPublic",
        "isForPatrons",
        "isListed",
        "isDeleted",
        "thumbnailUri",
        "creationTime",
        "lastModificationTime",
        "randomOrder",
        "visits",
        "rating",
        "ownerId",
        "submissions",
    }
)


@dataclass(frozen=True)
class Record:
    """
    One inventory entry.

    ``asset_uri`` is only present for non-directory records. Fields that some
    endpoints omit (tags, owner name, thumbnail, creation time, owner,
    last modifier) fall back to ``None`` or an empty collection.
    """

    id: RecordId
    name: str
    record_type: RecordType
    path: str
    updated_at: datetime
    asset_uri: str | None = None
    global_version: int = 0
    local_version: int = 0
    last_update_by: UserId | None = None
    last_update_machine: str | None = None
    owner_name: str | None = None
    tags: tuple[str, ...] = ()
    is_public: bool = False
    is_for_patrons: bool = False
    is_listed: bool = False
    is_deleted: bool = False
    thumbnail_uri: str | None = None
    created_at: datetime | None = None
    random_order: int = 0
    visits: int = 0
    rating: float = 0.0
    owner_id: RecordOwner | None = None
    submissions: tuple[Submission, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_directory(self) -> bool:
        return self.record_type is RecordType.DIRECTORY

    @property
    def inventory_path(self) -> AbsoluteInventoryPath:
        """The directory this record lives in."""
        return AbsoluteInventoryPath.from_record_path(self.path)

    @property
    def children_path(self) -> AbsoluteInventoryPath:
        """Path under which a directory record's children are listed."""
        return self.inventory_path.child(self.name)

    def relocated(self, record_id: RecordId, destination: AbsoluteInventoryPath) -> "Record":
        """Copy of this record with a new id and path; the rest is unchanged."""
        return replace(self, id=record_id, path=destination.to_record_path())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Record":
        """Create from API response dict."""
        try:
            record_type = RecordType.parse(data["recordType"])
            last_update_by = data.get("lastModifyingUserId")
            owner = data.get("ownerId")
            asset_uri = data.get("assetUri") if record_type is not RecordType.DIRECTORY else None
            return cls(
                id=RecordId(data["id"]),
                name=data["name"],
                record_type=record_type,
                path=data["path"],
                updated_at=parse_timestamp(data["lastModificationTime"]),
                asset_uri=asset_uri,
                global_version=data.get("globalVersion", 0),
                local_version=data.get("localVersion", 0),
                last_update_by=UserId(last_update_by) if last_update_by else None,
                last_update_machine=data.get("lastModifyingMachineId"),
                owner_name=data.get("ownerName"),
                tags=tuple(data.get("tags") or ()),
                is_public=data.get("isPublic", False),
                is_for_patrons=data.get("isForPatrons", False),
                is_listed=data.get("isListed", False),
                is_deleted=data.get("isDeleted", False),
                thumbnail_uri=data.get("thumbnailUri"),
                created_at=parse_optional_timestamp(data.get("creationTime")),
                random_order=data.get("randomOrder", 0),
                visits=data.get("visits", 0),
                rating=data.get("rating", 0.0),
                owner_id=decode_record_owner(owner) if owner else None,
                submissions=tuple(Submission.from_dict(s) for s in data.get("submissions") or ()),
                extra={k: v for k, v in data.items() if k not in _RECORD_KEYS},
            )
        except KeyError as e:
            raise ValidationError(f"Malformed record: missing field {e}", details={"record": data}) from None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase wire form, including unknown fields."""
        result: dict[str, Any] = dict(self.extra)
        result.update(
            {
                "id": str(self.id),
                "assetUri": self.asset_uri,
                "globalVersion": self.global_version,
                "localVersion": self.local_version,
                "lastModifyingUserId": str(self.last_update_by) if self.last_update_by else None,
                "lastModifyingMachineId": self.last_update_machine,
                "name": self.name,
                "recordType": self.record_type.value,
                "ownerName": self.owner_name,
                "tags": list(self.tags),
                "path": self.path,
                "isPublic": self.is_public,
                "isForPatrons": self.is_for_patrons,
                "isListed": self.is_listed,
                "isDeleted": self.is_deleted,
                "thumbnailUri": self.thumbnail_uri,
                "creationTime": format_timestamp(self.created_at),
                "lastModificationTime": format_timestamp(self.updated_at),
                "randomOrder": self.random_order,
                "visits": self.visits,
                "rating": self.rating,
                "ownerId": str(self.owner_id) if self.owner_id else None,
                "submissions": [s.to_dict() for s in self.submissions],
            }
        )
        return result


@dataclass(frozen=True)
class DirectoryMetadata:
    """Attributes of a single directory node. The record type is implied."""

    id: RecordId
    name: str
    path: str
    global_version: int = 0
    local_version: int = 0
    last_modify_user: UserId | None = None
    last_modify_machine: str | None = None
    owner_name: str | None = None
    is_public: bool = False
    is_for_patrons: bool = False
    is_listed: bool = False
    is_deleted: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DirectoryMetadata":
        """Create from API response dict."""
        try:
            last_modify_user = data.get("lastModifyingUserId")
            return cls(
                id=RecordId(data["id"]),
                name=data.get("name", ""),
                path=data.get("path", ""),
                global_version=data.get("globalVersion", 0),
                local_version=data.get("localVersion", 0),
                last_modify_user=UserId(last_modify_user) if last_modify_user else None,
                last_modify_machine=data.get("lastModifyingMachineId"),
                owner_name=data.get("ownerName"),
                is_public=data.get("isPublic", False),
                is_for_patrons=data.get("isForPatrons", False),
                is_listed=data.get("isListed", False),
                is_deleted=data.get("isDeleted", False),
                created_at=parse_optional_timestamp(data.get("creationTime")),
                updated_at=parse_optional_timestamp(data.get("lastModificationTime")),
            )
        except KeyError as e:
            raise ValidationError(
                f"Malformed directory metadata: missing field {e}",
                details={"metadata": data},
            ) from None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase wire form."""
        return {
            "id": str(self.id),
            "globalVersion": self.global_version,
            "localVersion": self.local_version,
            "lastModifyingUserId": str(self.last_modify_user) if self.last_modify_user else None,
            "lastModifyingMachineId": self.last_modify_machine,
            "name": self.name,
            "ownerName": self.owner_name,
            "path": self.path,
            "isPublic": self.is_public,
            "isForPatrons": self.is_for_patrons,
            "isListed": self.is_listed,
            "isDeleted": self.is_deleted,
            "creationTime": format_timestamp(self.created_at),
            "lastModificationTime": format_timestamp(self.updated_at),
        }

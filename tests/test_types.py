"""Tests for identity types, inventory paths and record decoding."""

import re
from datetime import datetime, timezone

import pytest

from reinventory.core.client import ValidationError
from reinventory.core.types import (
    AbsoluteInventoryPath,
    AuthorizationInfo,
    DirectoryMetadata,
    Email,
    GroupId,
    Password,
    PasswordLogin,
    Record,
    RecordId,
    RecordType,
    SessionToken,
    UserId,
    UserLoginPostBody,
    generate_machine_id,
    parse_timestamp,
)

# =============================================================================
# Identity Types
# =============================================================================


@pytest.mark.parametrize("value", ["U-1", "U-someone", "U-"])
def test_user_id_accepts_prefixed(value):
    assert str(UserId.parse(value)) == value


@pytest.mark.parametrize("value", ["", "u-1", "G-1", "X-U-1", "R-1"])
def test_user_id_rejects_unprefixed(value):
    with pytest.raises(ValidationError):
        UserId.parse(value)


def test_group_id_prefix():
    assert str(GroupId.parse("G-team")) == "G-team"
    with pytest.raises(ValidationError):
        GroupId.parse("U-team")


def test_record_id_accepts_anything():
    assert str(RecordId.parse("not-a-record-id")) == "not-a-record-id"


def test_generated_record_id_shape():
    record_id = RecordId.generate()
    assert re.fullmatch(r"R-[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", str(record_id))
    assert RecordId.generate() != record_id


def test_email_validation():
    assert str(Email.parse("a@b.com")) == "a@b.com"
    with pytest.raises(ValidationError):
        Email.parse("not-an-email")


def test_secrets_hidden_from_repr():
    assert "hunter2" not in repr(Password("hunter2"))
    assert "T-1" not in repr(SessionToken("T-1"))


# =============================================================================
# Credentials
# =============================================================================


def test_authorization_header_value():
    auth = AuthorizationInfo(UserId("U-1"), SessionToken("T-1"))
    assert auth.as_header_value() == "neos U-1:T-1"


def test_password_login_requires_exactly_one_identity():
    with pytest.raises(ValidationError, match="both"):
        PasswordLogin(password=Password("pw"), email=Email("a@b.com"), user_id=UserId("U-1"))
    with pytest.raises(ValidationError, match="must provide"):
        PasswordLogin(password=Password("pw"))


def test_login_body_by_user_id():
    body = UserLoginPostBody(PasswordLogin(password=Password("pw"), user_id=UserId("U-1")), secret_machine_id="m")
    assert body.to_dict() == {
        "ownerId": "U-1",
        "password": "pw",
        "secretMachineId": "m",
        "rememberMe": False,
    }


def test_machine_id_is_lowercase_urlsafe_and_random():
    first = generate_machine_id()
    assert re.fullmatch(r"[a-z0-9_-]+", first)
    assert "=" not in first
    assert first != generate_machine_id()


# =============================================================================
# Inventory Path
# =============================================================================


@pytest.mark.parametrize("value", ["Inventory", "Inventory/X", "Inventory/./../X", "a//b", "Inventory/.."])
def test_path_round_trip(value):
    path = AbsoluteInventoryPath.parse(value)
    assert path.to_absolute_path() == value
    assert str(path) == value


def test_dot_segments_are_literal():
    path = AbsoluteInventoryPath.parse("Inventory/../X")
    assert path.segments == ("Inventory", "..", "X")


def test_path_serializations():
    path = AbsoluteInventoryPath.parse("Inventory/X")
    assert path.to_uri_query_value() == "Inventory%5CX"
    assert path.to_absolute_path() == "Inventory/X"
    assert path.to_record_path() == "Inventory\\X"


def test_path_segments_are_escaped_for_urls():
    path = AbsoluteInventoryPath.parse("My Stuff/a&b")
    assert path.to_uri_query_value() == "My%20Stuff%5Ca%26b"
    assert path.to_url_path() == "My%20Stuff/a%26b"


def test_empty_path_is_root():
    assert AbsoluteInventoryPath.parse("") == AbsoluteInventoryPath()
    assert AbsoluteInventoryPath().to_uri_query_value() == ""


# =============================================================================
# Record Type
# =============================================================================


@pytest.mark.parametrize("member", list(RecordType))
def test_record_type_accepts_both_casings(member):
    assert RecordType.parse(member.value) is member
    assert RecordType.parse(member.value.capitalize()) is member


@pytest.mark.parametrize("value", ["DIRECTORY", "dir", "", "folder"])
def test_record_type_rejects_unknown(value):
    with pytest.raises(ValidationError):
        RecordType.parse(value)


# =============================================================================
# Record
# =============================================================================


def test_record_decodes_full_payload(make_record):
    record = Record.from_dict(make_record())
    assert record.id == RecordId("R-aaa")
    assert record.record_type is RecordType.OBJECT
    assert record.tags == ("furniture",)
    assert record.owner_id == UserId("U-1")
    assert record.last_update_by == UserId("U-1")
    assert record.created_at == datetime(2022, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def test_record_tolerates_missing_optional_fields(make_record):
    payload = make_record()
    for key in ("tags", "ownerName", "thumbnailUri", "creationTime", "ownerId", "lastModifyingUserId", "submissions"):
        del payload[key]

    record = Record.from_dict(payload)
    assert record.tags == ()
    assert record.owner_name is None
    assert record.thumbnail_uri is None
    assert record.created_at is None
    assert record.owner_id is None
    assert record.submissions == ()


def test_record_requires_modification_time(make_record):
    payload = make_record()
    del payload["lastModificationTime"]
    with pytest.raises(ValidationError):
        Record.from_dict(payload)


def test_naive_modification_time_is_utc(make_record):
    record = Record.from_dict(make_record(lastModificationTime="2022-02-03T04:05:06"))
    assert record.updated_at == datetime(2022, 2, 3, 4, 5, 6, tzinfo=timezone.utc)


def test_timestamp_with_offset_is_normalized():
    assert parse_timestamp("2022-02-03T13:05:06+09:00") == datetime(2022, 2, 3, 4, 5, 6, tzinfo=timezone.utc)


def test_directory_record_has_no_asset_uri(make_record):
    record = Record.from_dict(make_record(recordType="Directory", assetUri="neosdb:///stray"))
    assert record.is_directory
    assert record.asset_uri is None


def test_group_owner_decoded_by_shape(make_record):
    record = Record.from_dict(make_record(ownerId="G-team"))
    assert record.owner_id == GroupId("G-team")


def test_wire_ids_are_not_prefix_checked(make_record):
    record = Record.from_dict(make_record(lastModifyingUserId="G-team", ownerId="legacy-owner"))
    assert record.last_update_by == UserId("G-team")
    assert record.owner_id == UserId("legacy-owner")

    metadata = DirectoryMetadata.from_dict(
        {"id": "R-dir", "lastModifyingUserId": "machine-1", "lastModificationTime": "2022-01-02T03:04:05Z"}
    )
    assert str(metadata.last_modify_user) == "machine-1"


def test_relocated_overwrites_only_id_and_path(make_record):
    original = Record.from_dict(make_record(customField={"kept": True}))
    moved = original.relocated(RecordId("R-new"), AbsoluteInventoryPath.parse("Inventory/X"))

    before = original.to_dict()
    after = moved.to_dict()
    assert after["id"] == "R-new"
    assert after["path"] == "Inventory\\X"
    assert after["customField"] == {"kept": True}
    for key in ("id", "path"):
        before.pop(key)
        after.pop(key)
    assert before == after


def test_children_path_of_directory(make_record):
    record = Record.from_dict(make_record(recordType="directory", name="Sub", path="Inventory\\Y"))
    assert record.children_path == AbsoluteInventoryPath.parse("Inventory/Y/Sub")


def test_directory_metadata_decodes():
    metadata = DirectoryMetadata.from_dict(
        {
            "id": "R-dir",
            "globalVersion": 1,
            "localVersion": 2,
            "lastModifyingUserId": "U-1",
            "lastModifyingMachineId": "m",
            "name": "Test",
            "ownerName": "someone",
            "path": "Inventory",
            "isPublic": True,
            "isForPatrons": False,
            "isListed": False,
            "isDeleted": False,
            "creationTime": "2022-01-02T03:04:05Z",
            "lastModificationTime": "2022-01-02T03:04:05",
        }
    )
    assert metadata.id == RecordId("R-dir")
    assert metadata.is_public
    assert metadata.updated_at == datetime(2022, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert metadata.to_dict()["lastModificationTime"] == "2022-01-02T03:04:05Z"

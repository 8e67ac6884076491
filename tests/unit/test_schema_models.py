"""Unit tests for MongoDB document models."""

from datetime import datetime, timezone

import pytest
from bson import ObjectId
from pydantic import ValidationError as PydanticValidationError

from schemas.models.base import (
    ANONYMOUS_OWNER_ID,
    MongoBaseModel,
    PyObjectId,
    is_anonymous_owner,
    parse_object_id,
)
from schemas.models.click import ClickEvent, UtmParams
from schemas.models.link import LinkAggregate, LinkDoc
from schemas.models.owner import OwnerDoc
from tests.fakes import make_event


# ── Helpers ───────────────────────────────────────────────────────────────────

def now():
    return datetime.now(timezone.utc)


def oid():
    return ObjectId()


# ── PyObjectId ────────────────────────────────────────────────────────────────

class TestPyObjectId:
    def test_accepts_objectid_instance(self):
        o = oid()
        assert PyObjectId._validate(o) == o

    def test_accepts_valid_string(self):
        s = str(oid())
        result = PyObjectId._validate(s)
        assert isinstance(result, ObjectId)
        assert str(result) == s

    def test_rejects_invalid_string(self):
        with pytest.raises(ValueError):
            PyObjectId._validate("not-an-objectid")

    def test_serialises_to_string_in_json(self):
        link = LinkDoc(_id=oid(), short_code="abc123")
        assert link.model_dump(mode="json")["owner_id"] == str(ANONYMOUS_OWNER_ID)


# ── MongoBaseModel ─────────────────────────────────────────────────────────────

class TestMongoBaseModel:
    def test_from_mongo_returns_none_for_none(self):
        assert MongoBaseModel.from_mongo(None) is None

    def test_id_alias(self):
        o = oid()
        m = MongoBaseModel.model_validate({"_id": o})
        assert m.id == o

    def test_to_mongo_drops_none_id(self):
        assert "_id" not in MongoBaseModel().to_mongo()

    def test_to_mongo_keeps_objectid(self):
        o = oid()
        assert MongoBaseModel(_id=o).to_mongo()["_id"] == o


# ── ClickEvent ────────────────────────────────────────────────────────────────

class TestClickEvent:
    def test_to_mongo_layout(self):
        doc = make_event().to_mongo()
        assert set(doc) == {
            "clicked_at",
            "meta",
            "visitor",
            "device",
            "location",
            "referrer",
            "bot",
            "classification",
        }
        assert isinstance(doc["meta"]["link_id"], ObjectId)
        assert doc["bot"]["is_bot"] is False
        assert doc["classification"] == "complete"

    def test_round_trip_from_mongo(self):
        event = make_event(country="Germany")
        doc = event.to_mongo()
        doc["_id"] = oid()
        restored = ClickEvent.from_mongo(doc)
        assert restored.location.country == "Germany"
        assert restored.meta == event.meta

    def test_frozen(self):
        event = make_event()
        with pytest.raises(PydanticValidationError):
            event.classification = "partial"

    def test_rejects_unknown_device_type(self):
        doc = make_event().to_mongo()
        doc["device"]["type"] = "smart-fridge"
        with pytest.raises(PydanticValidationError):
            ClickEvent.model_validate(doc)

    def test_anonymous_owner_default(self):
        assert make_event().meta.owner_id == ANONYMOUS_OWNER_ID


def test_utm_is_empty():
    assert UtmParams().is_empty() is True
    assert UtmParams(campaign="spring").is_empty() is False


# ── LinkDoc / OwnerDoc ────────────────────────────────────────────────────────

class TestLinkDoc:
    def test_defaults(self):
        link = LinkDoc(short_code="abc123")
        assert link.clicks == LinkAggregate()
        assert link.is_deleted is False
        assert link.owner_id == ANONYMOUS_OWNER_ID
        assert link.last_click_at is None

    def test_owned_link_not_anonymous(self):
        assert is_anonymous_owner(LinkDoc(short_code="abc123", owner_id=oid()).owner_id) is False

    def test_from_partial_mongo_doc(self):
        link = LinkDoc.from_mongo(
            {"_id": oid(), "short_code": "abc123", "clicks": {"total": 4, "last_updated": now()}}
        )
        assert link.clicks.total == 4
        assert link.clicks.unique == 0


def test_owner_doc_defaults():
    owner = OwnerDoc(_id=oid())
    assert owner.usage.monthly_clicks == 0
    assert owner.usage.reset_date is None


@pytest.mark.parametrize(
    "value, expected",
    [
        (ANONYMOUS_OWNER_ID, True),
        (str(ANONYMOUS_OWNER_ID), True),
        (None, True),
        (ObjectId("507f1f77bcf86cd799439011"), False),
        ("507f1f77bcf86cd799439011", False),
    ],
    ids=["oid", "hex", "none", "owned_oid", "owned_hex"],
)
def test_is_anonymous_owner(value, expected):
    assert is_anonymous_owner(value) is expected


@pytest.mark.parametrize("value", ["xyz", "", 42, None], ids=["short", "empty", "int", "none"])
def test_parse_object_id_rejects(value):
    assert parse_object_id(value) is None

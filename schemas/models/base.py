"""
Shared pieces of the document models.

Links, owners and click events all key on BSON ObjectIds. PyObjectId lets
pydantic validate them (from an ObjectId or its hex string) and serialise
them as strings in JSON responses, while to_mongo() keeps them native for
pymongo.
"""

from __future__ import annotations

from typing import Any, Optional, Type, TypeVar

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, GetCoreSchemaHandler
from pydantic_core import core_schema

# Owner of every link created without an account. Clicks on such links update
# the link counters only.
ANONYMOUS_OWNER_ID = ObjectId("000000000000000000000000")

M = TypeVar("M", bound="MongoBaseModel")


def parse_object_id(value: Any) -> Optional[ObjectId]:
    """Return *value* as an ObjectId, or None when it is not one."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def is_anonymous_owner(owner_id: Any) -> bool:
    return owner_id is None or parse_object_id(owner_id) == ANONYMOUS_OWNER_ID


class PyObjectId(ObjectId):
    """ObjectId field type for pydantic v2."""

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.to_string_ser_schema(),
        )

    @classmethod
    def _validate(cls, v: Any) -> ObjectId:
        oid = parse_object_id(v)
        if oid is None:
            raise ValueError(f"Invalid ObjectId: {v!r}")
        return oid


class MongoBaseModel(BaseModel):
    """Document stored in MongoDB, with ``_id`` exposed as ``id``."""

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    id: Optional[PyObjectId] = Field(default=None, alias="_id")

    def to_mongo(self) -> dict:
        """Dump for insert/update. ObjectIds stay native; an unset ``_id`` is
        omitted so the server assigns one."""
        data = self.model_dump(by_alias=True)
        if data.get("_id") is None:
            data.pop("_id", None)
        return data

    @classmethod
    def from_mongo(cls: Type[M], data: Optional[dict]) -> Optional[M]:
        # find_one() returns None for a miss
        if data is None:
            return None
        return cls.model_validate(data)

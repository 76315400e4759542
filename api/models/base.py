# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity models with common fields and document mapping.
"""

from datetime import datetime
from typing import Any, Dict
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from bson import ObjectId


def generate_object_id() -> str:
    """Generate a new MongoDB ObjectId as string."""
    return str(ObjectId())


class BaseEntity(BaseModel):
    """
    Shared id and timestamps.

    Attributes are snake_case in Python and camelCase (via ``to_camel``) in
    MongoDB documents and JSON payloads; either spelling is accepted on input.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
        validate_assignment=True,
        arbitrary_types_allowed=True,
        alias_generator=to_camel
    )

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=datetime.utcnow, description="Last update timestamp")

    def update_timestamp(self) -> None:
        self.updated_at = datetime.utcnow()

    @classmethod
    def from_document(cls, document: Dict[str, Any]):
        """Build an entity from a stored document (``id`` or ``_id`` keyed)."""
        data = dict(document)
        if "_id" in data:
            data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)

    def to_document(self) -> Dict[str, Any]:
        """Dump the entity as a camelCase document without its id."""
        return self.model_dump(by_alias=True, exclude={"id"})

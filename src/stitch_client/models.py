"""
Pydantic models for Stitch messages and responses.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, model_validator


class Field:
    """Wire field names understood by the Stitch import API."""

    CLIENT_ID = "client_id"
    NAMESPACE = "namespace"
    ACTION = "action"
    TABLE_NAME = "table_name"
    TABLE_VERSION = "table_version"
    KEY_NAMES = "key_names"
    SEQUENCE = "sequence"
    DATA = "data"


class Action(str, Enum):
    UPSERT = "upsert"
    SWITCH_VIEW = "switch_view"


class StitchMessage(BaseModel):
    """One record destined for a Stitch table."""

    action: Action = Action.UPSERT
    sequence: int
    data: Optional[Dict[str, Any]] = None
    table_name: Optional[str] = None
    table_version: Optional[int] = None
    key_names: Optional[List[str]] = None

    @model_validator(mode="after")
    def _upsert_needs_data(self):
        if self.action == Action.UPSERT and self.data is None:
            raise ValueError("upsert messages require data")
        return self

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class StitchResponse(BaseModel):
    """Status line plus JSON body returned by Stitch."""

    status: int
    reason: str = ""
    content: Dict[str, Any] = {}

    @property
    def is_ok(self) -> bool:
        return 200 <= self.status < 300

    def __str__(self) -> str:
        return f"{self.status} {self.reason}: {self.content}"

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, StrictInt, model_validator

from copernica_client.errors import OrderedFetchIssue


class FieldType(str, Enum):
    TEXT = "text"
    EMAIL = "email"
    SELECT = "select"
    INTEGER = "integer"
    FLOAT = "float"
    DATE = "date"
    DATETIME = "datetime"
    EMPTY_DATE = "empty_date"
    EMPTY_DATETIME = "empty_datetime"


class FieldSpec(BaseModel):
    """
    Declares how a single named field behaves on the remote side.

    ``type`` is kept as a plain string so a spec for a type this library does
    not know can still be constructed; normalizing against it raises
    UnknownFieldType. A spec without a type passes values through unchanged.
    """
    model_config = ConfigDict(frozen=True)

    type: Optional[str] = None
    select_choices: Tuple[str, ...] = ()
    # Unset: a zero supplied by the caller is a real value. Declaring it
    # marks the field as one whose zero reads back as empty.
    zero_is_empty: Optional[bool] = None

    @classmethod
    def from_field_struct(cls, struct: Dict[str, Any]) -> "FieldSpec":
        """Build a spec from a field definition as returned by the API."""
        choices: Tuple[str, ...] = ()
        if struct.get("type") == FieldType.SELECT.value:
            value = struct.get("value")
            if isinstance(value, (str, int, float)) and not isinstance(value, bool):
                choices = tuple(str(value).split("\r\n"))
        return cls(type=struct.get("type"), select_choices=choices)


class EntityListEnvelope(BaseModel):
    """Metadata wrapper around every list of entities."""
    start: StrictInt
    limit: StrictInt
    count: StrictInt
    total: Optional[StrictInt] = None
    data: List[Any]


class PageCursor(BaseModel):
    """Progress marker of a paginated fetch; safe to serialize and restore."""
    resource: str = Field(min_length=1)
    parameters: Dict[str, Any] = Field(default_factory=dict)
    total: Optional[StrictInt] = Field(default=None, ge=0)
    next_start: StrictInt = Field(default=0, ge=0)
    fetched_count: StrictInt = Field(default=0, ge=0)
    # Continuation point for ordered fetching: the trailing entities of the last
    # page sharing its ordered value, or the reason ordered fetching is impossible.
    last_entities: List[Dict[str, Any]] = Field(default_factory=list)
    ordered_fetch_issue: Optional[OrderedFetchIssue] = None
    ordered_fetch_reason: str = ""

    @model_validator(mode="after")
    def check_next_start(self):
        if self.total is not None and self.next_start > self.total:
            raise ValueError(f"next_start ({self.next_start}) exceeds total ({self.total})")
        return self

    @property
    def is_complete(self) -> bool:
        return self.total is not None and self.next_start >= self.total


def load_field_specs(path: str) -> Dict[str, FieldSpec]:
    """
    Load field specs from a YAML mapping, e.g.

        Email: {type: email}
        Country: {type: select, select_choices: [NL, BE]}
        Age: integer
    """
    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}

    specs: Dict[str, FieldSpec] = {}
    for name, entry in raw.items():
        if isinstance(entry, str):
            entry = {"type": entry}
        specs[str(name)] = FieldSpec(**(entry or {}))
    return specs

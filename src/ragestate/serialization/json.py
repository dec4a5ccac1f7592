"""
JSON serialization utilities for ragestate types.

Handles the types that appear in events, read models and session payloads
but are not natively JSON-serializable: UUIDs, datetimes, Decimals, enums
and pydantic models.

Example:
    >>> from ragestate.serialization import json_dumps, json_loads
    >>> from decimal import Decimal
    >>>
    >>> json_str = json_dumps({"total": Decimal("26.88")})
    >>> parsed = json_loads(json_str)
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel


class RageStateJSONEncoder(json.JSONEncoder):
    """
    Custom JSON encoder for ragestate payloads.

    - UUID objects: string representation
    - datetime objects: ISO 8601 string
    - Decimal objects: string, so money keeps its exact cents
    - Enum members: their value
    - pydantic models: their JSON-mode dump
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, BaseModel):
            return obj.model_dump(mode="json")
        return super().default(obj)


def json_dumps(obj: Any) -> str:
    """
    Serialize object to JSON string using RageStateJSONEncoder.

    Args:
        obj: Object to serialize

    Returns:
        JSON string representation
    """
    return json.dumps(obj, cls=RageStateJSONEncoder)


def json_loads(s: str) -> Any:
    """
    Deserialize JSON string to Python object.

    UUID, datetime and Decimal strings are NOT converted back; pydantic
    models re-validate them on the way in.
    """
    return json.loads(s)


__all__ = [
    "RageStateJSONEncoder",
    "json_dumps",
    "json_loads",
]

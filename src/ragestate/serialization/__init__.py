"""
Serialization utilities for ragestate.

Example:
    >>> from ragestate.serialization import json_dumps
    >>> json_str = json_dumps({"id": uuid4()})
"""

from ragestate.serialization.json import (
    RageStateJSONEncoder,
    json_dumps,
    json_loads,
)

__all__ = [
    "RageStateJSONEncoder",
    "json_dumps",
    "json_loads",
]

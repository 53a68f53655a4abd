"""Shared utilities: datetime, generators, serialization."""

from ruleflow.shared.utils.datetime import (
    ensure_utc,
    from_timestamp_utc,
    parse_datetime,
    utc_now,
)
from ruleflow.shared.utils.generators import generate_cuid
from ruleflow.shared.utils.serialization import to_jsonable

__all__ = [
    "generate_cuid",
    "utc_now",
    "ensure_utc",
    "from_timestamp_utc",
    "parse_datetime",
    "to_jsonable",
]

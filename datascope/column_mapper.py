"""
Column inference from a single sample record.

Rationale:
- Substring heuristics on field names plus value types, no LLM call needed.
- Fast and deterministic; only the first row of a result set is inspected.
- Returns a ColumnMapping; blank keys mean "insufficient data".
"""

import logging
from typing import List, Mapping, Optional, Sequence

from .schemas import ColumnMapping, Record, Value

logger = logging.getLogger(__name__)

AXIS_HINTS = ("date", "time", "day")
CATEGORY_HINTS = ("cat", "region", "type")
CATEGORY_EXCLUDE = ("date", "id")
METRIC_HINTS = ("sale", "rev", "amount")

# Category values at or above this length read as free text, not as a grouping.
MAX_CATEGORY_LENGTH = 20


def _is_number(value: Value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_string(value: Value) -> bool:
    return isinstance(value, str)


def _name_has(name: str, hints: Sequence[str]) -> bool:
    lowered = name.lower()
    return any(hint in lowered for hint in hints)


def _axis_key(sample: Mapping[str, Value], fields: List[str]) -> str:
    for name in fields:
        if _name_has(name, AXIS_HINTS):
            return name
    for name in fields:
        if _is_string(sample[name]):
            return name
    return fields[0]


def _category_key(sample: Mapping[str, Value], fields: List[str], axis_key: str) -> str:
    qualifying = [
        name for name in fields
        if _is_string(sample[name])
        and not _name_has(name, CATEGORY_EXCLUDE)
        and len(sample[name]) < MAX_CATEGORY_LENGTH
    ]
    for name in qualifying:
        if _name_has(name, CATEGORY_HINTS):
            return name
    if qualifying:
        return qualifying[0]

    for name in fields:
        if _is_string(sample[name]) and name != axis_key:
            return name
    return fields[0]


def _metric_key(sample: Mapping[str, Value], fields: List[str]) -> str:
    numeric = [name for name in fields if _is_number(sample[name])]
    for name in numeric:
        if _name_has(name, METRIC_HINTS):
            return name
    if numeric:
        return numeric[0]
    # No numeric field: the second field, or nothing for a one-field record.
    return fields[1] if len(fields) > 1 else ""


def infer_columns(sample: Optional[Mapping[str, Value]]) -> ColumnMapping:
    """
    Guess axis, category and metric fields from one representative record.

    Args:
        sample: The first record of a result set (may be None or empty)

    Returns:
        ColumnMapping with axis_key, metric_key, category_key ("" when unresolved)
    """
    if not sample:
        return ColumnMapping()

    fields = list(sample.keys())
    axis_key = _axis_key(sample, fields)
    mapping = ColumnMapping(
        axis_key=axis_key,
        category_key=_category_key(sample, fields, axis_key),
        metric_key=_metric_key(sample, fields),
    )
    logger.info(f"Column mapping inferred: {mapping.model_dump()}")
    return mapping


def infer_mapping(records: Sequence[Record]) -> ColumnMapping:
    """Mapping for a whole result set, computed from its first record only."""
    return infer_columns(records[0] if records else None)

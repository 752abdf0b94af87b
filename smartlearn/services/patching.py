"""
Generic partial update: copy the explicitly-set fields of a pydantic patch
model onto an ORM row. Fields the client did not send are left untouched;
an explicit null clears the column.
"""
from __future__ import annotations

from typing import Any, Iterable

from pydantic import BaseModel


def apply_patch(
    entity: Any,
    patch: BaseModel,
    *,
    exclude: Iterable[str] = (),
) -> dict[str, tuple[Any, Any]]:
    """
    Apply patch to entity in place. Returns {field: (old, new)} for the
    fields whose value actually changed.
    """
    skipped = set(exclude)
    changes: dict[str, tuple[Any, Any]] = {}
    for field, value in patch.model_dump(exclude_unset=True).items():
        if field in skipped:
            continue
        old = getattr(entity, field)
        if old == value:
            continue
        setattr(entity, field, value)
        changes[field] = (old, value)
    return changes

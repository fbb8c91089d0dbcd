"""Front-matter field comparison with a protected-field boundary.

Protected fields belong to the target (pricing, product ids, counters)
and are excluded from every comparison.  The protected set is always an
explicit argument so results depend only on the inputs.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from typing import Any

from coursekit_sync.sync.errors import ProtectedFieldError
from coursekit_sync.sync.models import ChangeKind, FieldChange

DEFAULT_PROTECTED_FIELDS: tuple[str, ...] = (
    "price",
    "productId",
    "enrollmentCount",
    "publishedAt",
)


def protected_field_set(names: Iterable[str]) -> frozenset[str]:
    """Build a protected-field set, rejecting case-inconsistent names.

    ``["price", "price"]`` is fine; ``["price", "Price"]`` is almost
    certainly a typo that would leave one spelling unprotected.

    Raises:
        ProtectedFieldError: If two names differ only by case.
    """
    by_folded: dict[str, set[str]] = {}
    for name in names:
        by_folded.setdefault(name.casefold(), set()).add(name)

    clashes = sorted(
        name
        for spellings in by_folded.values()
        if len(spellings) > 1
        for name in spellings
    )
    if clashes:
        raise ProtectedFieldError(clashes)

    return frozenset(
        name for spellings in by_folded.values() for name in spellings
    )


# ---------------------------------------------------------------------------
# Value equality
# ---------------------------------------------------------------------------


def normalize_value(value: Any) -> Any:
    """Recursively strip string leaves; everything else is untouched."""
    match value:
        case str():
            return value.strip()
        case list() | tuple():
            return [normalize_value(v) for v in value]
        case dict():
            return {k: normalize_value(v) for k, v in value.items()}
        case _:
            return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def values_equal(a: Any, b: Any) -> bool:
    """Structural equality after normalisation, without type coercion.

    ``1`` and ``"1"`` differ, ``True`` and ``1`` differ, and ``None``
    only equals ``None``.  ``1`` and ``1.0`` are the same number.
    """
    a = normalize_value(a)
    b = normalize_value(b)
    return _equal(a, b)


def _equal(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if _is_number(a) or _is_number(b):
        return _is_number(a) and _is_number(b) and a == b
    if isinstance(a, str) or isinstance(b, str):
        return isinstance(a, str) and isinstance(b, str) and a == b
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(
            _equal(x, y) for x, y in zip(a, b)
        )
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(
            _equal(a[k], b[k]) for k in a
        )
    return False


# ---------------------------------------------------------------------------
# Field diff
# ---------------------------------------------------------------------------


def diff_fields(
    source_fm: Mapping[str, Any],
    target_fm: Mapping[str, Any],
    protected_fields: Collection[str],
) -> list[FieldChange]:
    """Compare two front-matter maps, skipping protected fields.

    Args:
        source_fm: Front matter of the source item.
        target_fm: Front matter of the target item.
        protected_fields: Target-owned field names to ignore.

    Returns:
        Changes sorted by field name.  Empty when the maps agree on every
        non-protected field.
    """
    changes: list[FieldChange] = []

    for field in sorted(set(source_fm) | set(target_fm)):
        if field in protected_fields:
            continue

        in_source = field in source_fm
        in_target = field in target_fm

        if in_source and not in_target:
            changes.append(
                FieldChange(
                    field=field,
                    source_value=source_fm[field],
                    kind=ChangeKind.ADDED,
                )
            )
        elif in_target and not in_source:
            changes.append(
                FieldChange(
                    field=field,
                    target_value=target_fm[field],
                    kind=ChangeKind.REMOVED,
                )
            )
        elif not values_equal(source_fm[field], target_fm[field]):
            changes.append(
                FieldChange(
                    field=field,
                    source_value=source_fm[field],
                    target_value=target_fm[field],
                    kind=ChangeKind.MODIFIED,
                )
            )

    return changes

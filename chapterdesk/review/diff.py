"""Revision & diff engine — field-level patches between live and proposed content.

A patch is data: `{field: {"from": live, "to": proposed}}` for exactly the
editable fields that changed. It is what a reviewer sees, what gets stored
on the item while pending, and what is merged on approval. Merging checks
every recorded `from` against the current live value first; a stale patch
is refused rather than silently overwriting newer content.

All functions here are pure: no DB, no events.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from chapterdesk.errors import PatchConflict, ValidationFailed
from chapterdesk.schemas.content import FieldChange, Patch

# Order matters: summaries list fields in this order.
EDITABLE_FIELDS: tuple[str, ...] = (
    "title",
    "body",
    "excerpt",
    "tags",
    "category",
    "featured",
    "image_refs",
)

EMPTY_PATCH_SUMMARY = "no field changes"


def field_values(source: Any) -> dict[str, Any]:
    """Read the editable fields from an ORM object or a mapping.

    Missing keys in a mapping are left out, so a partial proposal only
    diffs the fields it names.
    """
    if isinstance(source, Mapping):
        return {f: source[f] for f in EDITABLE_FIELDS if f in source}
    return {f: getattr(source, f) for f in EDITABLE_FIELDS}


def _normalise(value: Any) -> Any:
    """Value-equality view of a field: tuples compare equal to lists."""
    if isinstance(value, tuple):
        return [_normalise(v) for v in value]
    if isinstance(value, list):
        return [_normalise(v) for v in value]
    if isinstance(value, Mapping):
        return {k: _normalise(v) for k, v in value.items()}
    return value


def values_equal(a: Any, b: Any) -> bool:
    return _normalise(a) == _normalise(b)


def compute_diff(live: Any, proposed: Any) -> Patch:
    """Minimal patch turning `live` into `proposed`.

    Only fields present in `proposed` are compared; equal values are omitted.
    """
    current = field_values(live)
    wanted = field_values(proposed)
    patch: Patch = {}
    for name in EDITABLE_FIELDS:
        if name not in wanted:
            continue
        before = current.get(name)
        after = wanted[name]
        if not values_equal(before, after):
            patch[name] = FieldChange(from_=before, to=after)
    return patch


def summarize(patch: Mapping[str, Any]) -> str:
    """Short description for list views, e.g. "title, excerpt, tags changed".

    Derived only from the patch keys, in EDITABLE_FIELDS order.
    """
    changed = [name for name in EDITABLE_FIELDS if name in patch]
    if not changed:
        return EMPTY_PATCH_SUMMARY
    return f"{', '.join(changed)} changed"


def find_conflicts(live: Any, patch: Patch) -> list[str]:
    """Fields whose recorded `from` no longer matches the live value."""
    current = field_values(live)
    return [
        name
        for name, change in patch.items()
        if not values_equal(current.get(name), change.from_)
    ]


def apply_patch(live: Any, patch: Patch, *, check_conflicts: bool = False) -> dict[str, Any]:
    """Return the live field values with every patched field set to its `to`.

    With `check_conflicts`, a patch computed against a different live state
    raises PatchConflict instead of being applied.
    """
    if check_conflicts:
        stale = find_conflicts(live, patch)
        if stale:
            raise PatchConflict(stale)

    merged = field_values(live)
    for name, change in patch.items():
        merged[name] = change.to
    return merged


# ── Serialisation ────────────────────────────────────────────────────


def dump_patch(patch: Patch) -> dict[str, dict[str, Any]]:
    """JSON form stored in ContentItem.pending_patch."""
    return {name: change.as_json() for name, change in patch.items()}


def parse_patch(raw: Any) -> Patch:
    """Validate the stored JSON form and turn it back into a Patch."""
    if not isinstance(raw, Mapping):
        msg = f"Patch must be a mapping, got {type(raw).__name__}"
        raise ValidationFailed(msg)

    patch: Patch = {}
    for name, entry in raw.items():
        if name not in EDITABLE_FIELDS:
            msg = f"Patch names a non-editable field: {name}"
            raise ValidationFailed(msg)
        if not isinstance(entry, Mapping) or "from" not in entry or "to" not in entry:
            msg = f"Patch entry for {name} must have 'from' and 'to'"
            raise ValidationFailed(msg)
        patch[name] = FieldChange(from_=entry["from"], to=entry["to"])
    return patch

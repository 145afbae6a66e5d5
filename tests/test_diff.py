"""Tests for chapterdesk.review.diff — pure patch computation and merging."""

from __future__ import annotations

import pytest

from chapterdesk.errors import PatchConflict, PreconditionFailed, ValidationFailed
from chapterdesk.review.diff import (
    EDITABLE_FIELDS,
    EMPTY_PATCH_SUMMARY,
    apply_patch,
    compute_diff,
    dump_patch,
    field_values,
    find_conflicts,
    parse_patch,
    summarize,
)
from chapterdesk.schemas.content import FieldChange


def _post(**overrides):
    post = {
        "title": "A",
        "body": "Hello chapter",
        "excerpt": "Short",
        "tags": ["gdg", "events"],
        "category": "news",
        "featured": False,
        "image_refs": ["media/cover.png"],
    }
    post.update(overrides)
    return post


class TestComputeDiff:
    """compute_diff produces a minimal field-level patch."""

    def test_identical_is_empty(self):
        post = _post()
        assert compute_diff(post, post) == {}

    def test_single_field(self):
        patch = compute_diff(_post(), _post(title="B"))
        assert list(patch) == ["title"]
        assert patch["title"] == FieldChange(from_="A", to="B")

    def test_value_equality_not_identity(self):
        live = _post(tags=["gdg", "events"])
        proposed = _post(tags=("gdg", "events"))
        assert compute_diff(live, proposed) == {}

    def test_list_order_is_a_change(self):
        patch = compute_diff(_post(), _post(tags=["events", "gdg"]))
        assert set(patch) == {"tags"}

    def test_partial_proposal_only_diffs_named_fields(self):
        patch = compute_diff(_post(), {"excerpt": "Longer"})
        assert set(patch) == {"excerpt"}

    def test_ignores_non_editable_keys(self):
        patch = compute_diff(_post(), {**_post(), "publication_state": "published"})
        assert patch == {}

    def test_clearing_a_field(self):
        patch = compute_diff(_post(), {"excerpt": None})
        assert patch["excerpt"].from_ == "Short"
        assert patch["excerpt"].to is None

    def test_reads_objects(self):
        class Live:
            pass

        live = Live()
        for name, value in _post().items():
            setattr(live, name, value)
        assert set(compute_diff(live, {"featured": True})) == {"featured"}


class TestSummarize:
    """summarize derives text from patch keys only."""

    def test_empty(self):
        assert summarize({}) == EMPTY_PATCH_SUMMARY

    def test_uses_field_order(self):
        patch = compute_diff(_post(), _post(tags=["x"], title="B", excerpt="E"))
        assert summarize(patch) == "title, excerpt, tags changed"

    def test_deterministic(self):
        patch = compute_diff(_post(), _post(body="x", category="y"))
        assert summarize(patch) == summarize(dict(reversed(list(patch.items()))))


class TestApplyPatch:
    """apply_patch merges exactly the changed fields."""

    def test_reproduces_changes_and_keeps_the_rest(self):
        live = _post()
        proposed = _post(title="B", featured=True)
        merged = apply_patch(live, compute_diff(live, proposed))
        assert merged == proposed

    def test_fields_absent_from_patch_untouched(self):
        live = _post()
        merged = apply_patch(live, compute_diff(live, {"title": "B"}))
        assert merged["body"] == live["body"]
        assert merged["tags"] == live["tags"]
        assert merged["title"] == "B"

    def test_empty_patch_is_identity(self):
        live = _post()
        assert apply_patch(live, {}) == field_values(live)

    def test_stale_patch_conflicts(self):
        patch = compute_diff(_post(title="A"), {"title": "B"})
        moved = _post(title="A2")
        assert find_conflicts(moved, patch) == ["title"]
        with pytest.raises(PatchConflict) as exc_info:
            apply_patch(moved, patch, check_conflicts=True)
        assert exc_info.value.fields == ["title"]

    def test_conflict_is_a_precondition_failure(self):
        patch = compute_diff(_post(), {"body": "new"})
        with pytest.raises(PreconditionFailed):
            apply_patch(_post(body="edited meanwhile"), patch, check_conflicts=True)

    def test_fresh_patch_has_no_conflicts(self):
        live = _post()
        patch = compute_diff(live, {"title": "B", "tags": []})
        assert find_conflicts(live, patch) == []


class TestSerialisation:
    """dump_patch / parse_patch."""

    def test_json_shape(self):
        patch = compute_diff(_post(), {"title": "B"})
        assert dump_patch(patch) == {"title": {"from": "A", "to": "B"}}

    def test_parse_restores_patch(self):
        patch = compute_diff(_post(), _post(title="B", tags=[]))
        assert parse_patch(dump_patch(patch)) == patch

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            ["title"],
            {"slug": {"from": "a", "to": "b"}},
            {"title": {"to": "b"}},
            {"title": "B"},
        ],
    )
    def test_malformed(self, raw):
        with pytest.raises(ValidationFailed):
            parse_patch(raw)

    def test_editable_fields(self):
        assert EDITABLE_FIELDS[0] == "title"
        assert "image_refs" in EDITABLE_FIELDS

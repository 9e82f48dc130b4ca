"""Unit tests for directive reconciliation."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from functools import partial
from zoneinfo import ZoneInfo

import pytest

from taskflow.directives import rewrite_document, scan_directives
from taskflow.domain import TaskRecord
from taskflow.errors import TaskflowError
from taskflow.notifications import TaskEventKind, build_task_url
from taskflow.reconciler import (
    make_user_resolver,
    parse_done_flag,
    parse_due_date_value,
    reconcile,
    split_responsible,
)

DATE_FORMAT = "%Y-%m-%d %H:%M"
DOC = "Main.WebHome"


def _ids(*values: str):
    """Return an id generator yielding ``values`` in order."""
    iterator = iter(values)
    return lambda: next(iterator)


def _reconcile(text: str, existing=(), **kwargs):
    """Reconcile ``text`` with test-friendly defaults."""
    kwargs.setdefault("id_generator", _ids("gen-1", "gen-2", "gen-3"))
    return reconcile(
        DOC,
        scan_directives(text),
        list(existing),
        acting_user="XWiki.Admin",
        parse_due_date=partial(parse_due_date_value, date_format=DATE_FORMAT, tz=timezone.utc),
        build_url=partial(build_task_url, base_url="https://wiki.test/view"),
        **kwargs,
    )


def _record(task_id: str, **overrides) -> TaskRecord:
    values = {
        "document_id": DOC,
        "task_id": task_id,
        "content": "Write report",
        "creator": "XWiki.Admin",
        "responsible": ("alice",),
        "reminder_intervals": frozenset({"h1"}),
        "due_date": datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc),
    }
    values.update(overrides)
    return TaskRecord(**values)


def _directive(task_id: str | None = None, *, content: str = "Write report", **params) -> str:
    params.setdefault("dueDate", "2025-01-01 09:00")
    params.setdefault("responsible", "alice")
    params.setdefault("reminderTimes", "h1")
    if task_id is not None:
        params = {"id": task_id, **params}
    rendered = "".join(f' {name}="{value}"' for name, value in params.items())
    return f"{{{{checktask{rendered}}}}}{content}{{{{/checktask}}}}"


def test_new_directive_is_created_with_assignment() -> None:
    """A directive without id is created, written back and assigned."""
    plan = _reconcile(_directive(responsible="alice, bob"))

    assert [record.task_id for record in plan.to_create] == ["gen-1"]
    created = plan.to_create[0]
    assert created.creator == "XWiki.Admin"
    assert created.responsible == ("alice", "bob")
    assert created.reminder_intervals == frozenset({"h1"})
    assert created.due_date == datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)
    assert created.done is False
    assert [directive.id for directive in plan.id_writebacks] == ["gen-1"]
    assert [note.user_id for note in plan.assignments] == ["alice", "bob"]
    assert all(note.event_kind is TaskEventKind.ASSIGNED for note in plan.assignments)
    assert plan.assignments[0].params == {
        "content": "Write report",
        "creator": "XWiki.Admin",
        "url": "https://wiki.test/view/Main.WebHome#gen-1",
    }
    assert plan.to_update == []
    assert plan.to_delete == []


def test_unchanged_directive_yields_empty_plan() -> None:
    """Reconciling an unchanged document produces no changes."""
    plan = _reconcile(_directive("abc-1"), [_record("abc-1")])

    assert not plan.has_changes
    assert plan.found_ids == ["abc-1"]
    assert plan.id_writebacks == []
    assert plan.assignments == []


def test_changed_values_update_without_notification() -> None:
    """Changing tracked fields updates the record and notifies nobody."""
    plan = _reconcile(
        _directive("abc-1", content=" Write the report ", responsible="alice,carol"),
        [_record("abc-1", created_at=datetime(2024, 12, 1, tzinfo=timezone.utc))],
    )

    assert plan.to_create == []
    (updated,) = plan.to_update
    assert updated.task_id == "abc-1"
    assert updated.content == "Write the report"
    assert updated.responsible == ("alice", "carol")
    assert updated.creator == "XWiki.Admin"
    assert updated.created_at == datetime(2024, 12, 1, tzinfo=timezone.utc)
    assert plan.assignments == []


def test_removed_directive_is_deleted() -> None:
    """Records whose directive disappeared are deleted."""
    plan = _reconcile(
        _directive("abc-1"),
        [_record("abc-1"), _record("old-2"), _record("old-3")],
    )

    assert plan.to_delete == ["old-2", "old-3"]
    assert plan.to_create == []


def test_reconcile_is_idempotent_after_applying_plan() -> None:
    """A second pass over the written-back document is a no-op."""
    text = _directive() + "\n" + _directive(content="Second", responsible="bob")
    first = _reconcile(text)
    rewritten = rewrite_document(text, first.id_writebacks)
    second = _reconcile(rewritten, first.to_create, id_generator=_ids())

    assert first.found_ids == ["gen-1", "gen-2"]
    assert second.found_ids == ["gen-1", "gen-2"]
    assert not second.has_changes
    assert second.id_writebacks == []


def test_duplicate_id_gets_fresh_identifier() -> None:
    """A copy-pasted directive keeps the first id and receives a new one."""
    text = _directive("abc-1") + _directive("abc-1", content="Copy")

    plan = _reconcile(text, [_record("abc-1")])

    assert plan.found_ids == ["abc-1", "gen-1"]
    assert [record.task_id for record in plan.to_create] == ["gen-1"]
    assert plan.to_create[0].content == "Copy"
    assert [directive.id for directive in plan.id_writebacks] == ["gen-1"]


def test_generated_id_avoids_existing_ids() -> None:
    """Generated ids never reuse an identifier already owned by the document."""
    plan = _reconcile(
        _directive("abc-1") + _directive(),
        [_record("abc-1")],
        id_generator=_ids("abc-1", "gen-9"),
    )

    assert plan.found_ids == ["abc-1", "gen-9"]


def test_exhausted_id_generation_raises() -> None:
    """A generator that only repeats taken ids fails loudly."""
    with pytest.raises(TaskflowError):
        _reconcile(
            _directive("abc-1") + _directive(),
            [_record("abc-1")],
            id_generator=lambda: "abc-1",
        )


def test_bad_due_date_is_stored_as_none(caplog) -> None:
    """Malformed due dates are logged and stored without a due date."""
    with caplog.at_level("WARNING"):
        plan = _reconcile(_directive(dueDate="next tuesday"))

    assert plan.to_create[0].due_date is None
    assert "next tuesday" in caplog.text


def test_done_parameter_controls_created_state() -> None:
    """The done parameter overrides the configured default on creation."""
    explicit = _reconcile(_directive(done="true"))
    defaulted = _reconcile(_directive(), default_done=True)

    assert explicit.to_create[0].done is True
    assert defaulted.to_create[0].done is True


def test_done_flag_is_not_tracked_on_update() -> None:
    """An existing record keeps its done state across updates."""
    plan = _reconcile(
        _directive("abc-1", done="true", content="Changed"),
        [_record("abc-1", done=False)],
    )

    assert plan.to_update[0].done is False


def test_parse_due_date_value_uses_local_timezone() -> None:
    """Parsed dates are interpreted in the given zone and stored as UTC."""
    parsed = parse_due_date_value(
        "2025-01-15 12:00",
        date_format=DATE_FORMAT,
        tz=ZoneInfo("America/New_York"),
    )

    assert parsed == datetime(2025, 1, 15, 17, 0, tzinfo=timezone.utc)
    assert parse_due_date_value("  ", date_format=DATE_FORMAT, tz=timezone.utc) is None


def test_parse_done_flag_values() -> None:
    """Truthy, falsy and unknown done values are interpreted."""
    assert parse_done_flag("Yes") is True
    assert parse_done_flag("0") is False
    assert parse_done_flag("maybe") is None
    assert parse_done_flag(None) is None


def test_split_responsible_resolves_namespace() -> None:
    """Bare user names are qualified and duplicates dropped."""
    resolver = make_user_resolver("XWiki")

    users = split_responsible(" alice, ,XWiki.bob,alice ", resolver)

    assert users == ("XWiki.alice", "XWiki.bob")


def test_update_preserves_identity_fields() -> None:
    """Updates keep document, task id and creator of the stored record."""
    current = _record("abc-1", creator="XWiki.Other")

    plan = _reconcile(_directive("abc-1", reminderTimes="h1,d2"), [current])

    assert plan.to_update == [
        replace(current, reminder_intervals=frozenset({"h1", "d2"}))
    ]

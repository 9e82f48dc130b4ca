"""Reconcile a document's directives against its persisted task records.

``reconcile`` is a pure function over its inputs. It never touches storage:
the caller applies the returned plan in one transaction, then dispatches the
pending ``assigned`` notifications and re-serializes the directives that
received new identifiers.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone, tzinfo
from typing import Callable, Iterable

from taskflow.directives import Directive
from taskflow.domain import ReconciliationPlan, TaskRecord
from taskflow.errors import TaskflowError
from taskflow.identifiers import generate_task_id
from taskflow.notifications import TaskEventKind, TaskNotification
from taskflow.windows import parse_interval_keys

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 16
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def parse_due_date_value(raw: str | None, *, date_format: str, tz: tzinfo) -> datetime | None:
    """Parse a directive due date into an aware UTC datetime.

    Blank values yield ``None``. Malformed values are logged and also yield
    ``None``; this function never raises for bad input.
    """
    text = (raw or "").strip()
    if not text:
        return None
    try:
        parsed = datetime.strptime(text, date_format)
    except ValueError:
        logger.warning("Cannot parse directive dueDate: value=%r format=%r", text, date_format)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed.astimezone(timezone.utc)


def parse_done_flag(raw: str | None) -> bool | None:
    """Interpret a directive ``done`` parameter, or None when absent/unrecognised."""
    if raw is None:
        return None
    normalized = raw.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    logger.warning("Ignoring unrecognised directive done value: %r", raw)
    return None


def make_user_resolver(namespace: str = "") -> Callable[[str], str]:
    """Return a resolver qualifying bare user names with ``namespace``."""
    prefix = namespace.strip().rstrip(".")

    def resolve(token: str) -> str:
        if prefix and "." not in token:
            return f"{prefix}.{token}"
        return token

    return resolve


def split_responsible(raw: str | None, resolve_user: Callable[[str], str]) -> tuple[str, ...]:
    """Split a comma-separated responsible field into resolved, de-duplicated user ids."""
    users: list[str] = []
    for token in (raw or "").split(","):
        name = token.strip()
        if not name:
            continue
        user_id = resolve_user(name)
        if user_id not in users:
            users.append(user_id)
    return tuple(users)


def _assign_id(
    directive: Directive,
    taken: set[str],
    id_generator: Callable[[], str],
) -> str:
    """Generate an identifier not used by any record or earlier directive."""
    for _ in range(MAX_ID_ATTEMPTS):
        candidate = id_generator()
        if candidate not in taken:
            return candidate
    raise TaskflowError(
        f"Could not generate a unique task id after {MAX_ID_ATTEMPTS} attempts "
        f"(directive at offset {directive.start})."
    )


def reconcile(
    document_id: str,
    directives: Iterable[Directive],
    existing: Iterable[TaskRecord],
    *,
    acting_user: str,
    parse_due_date: Callable[[str], datetime | None],
    build_url: Callable[[str, str], str],
    resolve_user: Callable[[str], str] | None = None,
    id_generator: Callable[[], str] = generate_task_id,
    default_done: bool = False,
) -> ReconciliationPlan:
    """Compute the create/update/delete plan for one document."""
    resolver = resolve_user or make_user_resolver()
    records: dict[str, TaskRecord] = {}
    for record in existing:
        records.setdefault(record.task_id, record)

    taken: set[str] = set(records)
    found_ids: list[str] = []
    seen: set[str] = set()
    to_create: list[TaskRecord] = []
    to_update: list[TaskRecord] = []
    writebacks: list[Directive] = []
    assignments: list[TaskNotification] = []

    for directive in directives:
        task_id = directive.id
        if task_id is not None and task_id in seen:
            logger.warning(
                "Duplicate directive id in document, assigning a new one: task_id=%s",
                task_id,
            )
            task_id = None
        if task_id is None:
            task_id = _assign_id(directive, taken | seen, id_generator)
            directive = directive.with_id(task_id)
            writebacks.append(directive)
        seen.add(task_id)
        found_ids.append(task_id)

        content = directive.content.strip()
        responsible = split_responsible(directive.responsible, resolver)
        due_date = parse_due_date(directive.due_date)
        intervals = parse_interval_keys(directive.reminder_times)

        current = records.get(task_id)
        if current is None:
            done = parse_done_flag(directive.done)
            created = TaskRecord(
                document_id=document_id,
                task_id=task_id,
                content=content,
                creator=acting_user,
                responsible=responsible,
                reminder_intervals=intervals,
                due_date=due_date,
                done=default_done if done is None else done,
            )
            to_create.append(created)
            url = build_url(document_id, task_id)
            assignments.extend(
                TaskNotification(
                    document_id=document_id,
                    user_id=user_id,
                    event_kind=TaskEventKind.ASSIGNED,
                    params={"content": content, "creator": acting_user, "url": url},
                )
                for user_id in responsible
            )
            continue

        candidate = replace(
            current,
            content=content,
            responsible=responsible,
            due_date=due_date,
            reminder_intervals=intervals,
        )
        if not current.same_tracked_values(candidate):
            to_update.append(candidate)

    found = set(found_ids)
    to_delete = [task_id for task_id in records if task_id not in found]

    logger.debug(
        "Reconciled directives: created=%s updated=%s deleted=%s",
        len(to_create),
        len(to_update),
        len(to_delete),
    )
    return ReconciliationPlan(
        document_id=document_id,
        status="reconciled",
        to_create=to_create,
        to_update=to_update,
        to_delete=to_delete,
        found_ids=found_ids,
        id_writebacks=writebacks,
        assignments=assignments,
    )


__all__ = [
    "make_user_resolver",
    "parse_done_flag",
    "parse_due_date_value",
    "reconcile",
    "split_responsible",
]

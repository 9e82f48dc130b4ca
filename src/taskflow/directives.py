"""Scanner and id write-back for inline ``{{checktask}}`` directives.

A directive looks like::

    {{checktask id="abc-1" dueDate="2025/01/01 09:00" responsible="alice,bob" reminderTimes="h1,d2"}}
    Write the quarterly report
    {{/checktask}}

Parameter values are either double-quoted, where ``\\"`` and ``\\\\`` escape a
quote or a backslash, or bare tokens without whitespace (``reminderTimes=h1``).
Writing an identifier back only touches the ``id`` parameter of the opening
tag; every other character the author typed is kept.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

DIRECTIVE_NAME = "checktask"
DIRECTIVE_MARKER = "{{" + DIRECTIVE_NAME

ID_PARAM = "id"
DUE_DATE_PARAM = "dueDate"
RESPONSIBLE_PARAM = "responsible"
REMINDER_TIMES_PARAM = "reminderTimes"
DONE_PARAM = "done"

_PARAMS_PATTERN = r"(?P<params>(?:[^}\"]|\"(?:[^\"\\]|\\.)*\")*)"
_OPENER_PATTERN = r"\{\{checktask(?=[\s}])" + _PARAMS_PATTERN + r"\}\}"
_OPENER_RE = re.compile(_OPENER_PATTERN)
_BLOCK_RE = re.compile(
    _OPENER_PATTERN + r"(?P<body>.*?)" + r"\{\{/checktask\}\}",
    re.DOTALL,
)
_PARAM_RE = re.compile(
    r"(?P<name>[A-Za-z_][\w-]*)\s*=\s*"
    r"(?:\"(?P<quoted>(?:[^\"\\]|\\.)*)\"|(?P<bare>[^\s\"}]+))"
)
_UNESCAPE_RE = re.compile(r"\\(.)")


@dataclass(frozen=True)
class Directive:
    """One parsed directive block from a document's text."""

    params: dict[str, str] = field(default_factory=dict)
    content: str = ""
    start: int = -1
    end: int = -1

    @property
    def id(self) -> str | None:
        value = self.params.get(ID_PARAM, "").strip()
        return value or None

    @property
    def due_date(self) -> str:
        return self.params.get(DUE_DATE_PARAM, "")

    @property
    def responsible(self) -> str:
        return self.params.get(RESPONSIBLE_PARAM, "")

    @property
    def reminder_times(self) -> str:
        return self.params.get(REMINDER_TIMES_PARAM, "")

    @property
    def done(self) -> str | None:
        return self.params.get(DONE_PARAM)

    def with_id(self, task_id: str) -> "Directive":
        """Return a copy with ``task_id`` written into the parameter set."""
        params = {ID_PARAM: task_id}
        params.update((key, value) for key, value in self.params.items() if key != ID_PARAM)
        return Directive(params=params, content=self.content, start=self.start, end=self.end)


def has_directive_marker(text: str | None) -> bool:
    """Cheap check for any directive opening marker in ``text``."""
    return bool(text) and DIRECTIVE_MARKER in text.strip()


def parse_params(raw: str) -> dict[str, str]:
    """Parse quoted and bare ``name=value`` pairs, preserving their order."""
    params: dict[str, str] = {}
    for match in _PARAM_RE.finditer(raw):
        quoted = match.group("quoted")
        if quoted is None:
            params[match.group("name")] = match.group("bare")
        else:
            params[match.group("name")] = _UNESCAPE_RE.sub(r"\1", quoted)
    return params


def scan_directives(text: str) -> list[Directive]:
    """Return every directive in ``text`` in order of appearance."""
    return [
        Directive(
            params=parse_params(match.group("params")),
            content=match.group("body"),
            start=match.start(),
            end=match.end(),
        )
        for match in _BLOCK_RE.finditer(text or "")
    ]


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def splice_id(block: str, task_id: str) -> str:
    """Write ``task_id`` into the opening tag of one directive block.

    An existing ``id`` parameter (the last one, as parsing keeps the last) is
    replaced in place; otherwise ``id`` is inserted as the first parameter.
    """
    opener = _OPENER_RE.match(block)
    if opener is None:
        raise ValueError("Block does not start with a directive opening tag.")
    params_start, params_end = opener.span("params")
    raw = opener.group("params")
    token = f'{ID_PARAM}="{_escape(task_id)}"'

    id_matches = [m for m in _PARAM_RE.finditer(raw) if m.group("name") == ID_PARAM]
    if id_matches:
        last = id_matches[-1]
        params = raw[: last.start()] + token + raw[last.end() :]
    else:
        params = f" {token}{raw}"
    return block[:params_start] + params + block[params_end:]


def rewrite_document(text: str, directives: list[Directive]) -> str:
    """Write each directive's id back into its scanned span of ``text``."""
    pieces: list[str] = []
    cursor = 0
    for directive in sorted(directives, key=lambda item: item.start):
        if directive.start < cursor or directive.start < 0:
            raise ValueError("Directives must carry non-overlapping scan offsets.")
        if directive.id is None:
            raise ValueError("Only directives with an id can be written back.")
        pieces.append(text[cursor : directive.start])
        pieces.append(splice_id(text[directive.start : directive.end], directive.id))
        cursor = directive.end
    pieces.append(text[cursor:])
    return "".join(pieces)


__all__ = [
    "DIRECTIVE_MARKER",
    "Directive",
    "has_directive_marker",
    "parse_params",
    "rewrite_document",
    "scan_directives",
    "splice_id",
]

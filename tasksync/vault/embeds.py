"""Keep exactly one managed base embed inside a project/area note.

A note is read as a sequence of lines with a small grammar on top:

- a managed embed is a line holding only ``![[<something>.base]]``, with an
  optional ``#fragment`` and ``|display`` suffix (every form earlier
  generators wrote)
- a tasks heading is a level-2 ``## Tasks`` heading (any case)
- front matter and fenced code blocks are opaque and never touched

`reconcile_embed` removes every managed embed, drops tasks headings left
empty, then adds one canonical embed. Anything that does not match the
grammar is user content and is preserved. Applying it twice with the same
target gives the same text as applying it once.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

EMBED_LINE = re.compile(r"^\s*!\[\[([^\]|#\n]+?\.base)(?:#[^\]|\n]*)?(?:\|[^\]\n]*)?\]\]\s*$")
TASKS_HEADING = re.compile(r"^##[ \t]+tasks[ \t]*#*[ \t]*$", re.IGNORECASE)
ANY_HEADING = re.compile(r"^#{1,6}(?:[ \t]|$)")
FENCE = re.compile(r"^\s*(`{3,}|~{3,})")

CANONICAL_HEADING = "## Tasks"


@dataclass(frozen=True)
class ManagedEmbed:
    line: int  # zero-based
    target: str
    text: str


def embed_line(target: str) -> str:
    return f"![[{target}]]"


def _opaque_lines(lines: list[str]) -> list[bool]:
    """Mark front matter and fenced code lines."""
    opaque = [False] * len(lines)
    start = 0
    if lines and lines[0].strip() == "---":
        for i in range(1, len(lines)):
            if lines[i].strip() in ("---", "..."):
                for j in range(i + 1):
                    opaque[j] = True
                start = i + 1
                break

    fence: str | None = None
    for i in range(start, len(lines)):
        match = FENCE.match(lines[i])
        if fence is None:
            if match:
                fence = match.group(1)
                opaque[i] = True
        else:
            opaque[i] = True
            if match and match.group(1)[0] == fence[0] and len(match.group(1)) >= len(fence):
                if not lines[i].strip().lstrip(fence[0]):
                    fence = None
    return opaque


def find_managed_embeds(text: str) -> list[ManagedEmbed]:
    """Every managed embed line outside front matter and code blocks."""
    lines = text.replace("\r\n", "\n").split("\n")
    opaque = _opaque_lines(lines)
    found = []
    for i, line in enumerate(lines):
        if opaque[i]:
            continue
        match = EMBED_LINE.match(line)
        if match:
            found.append(ManagedEmbed(line=i, target=match.group(1).strip(), text=line.strip()))
    return found


def _is_blank(line: str) -> bool:
    return not line.strip()


def _remove_lines(lines: list[str], drop: set[int]) -> list[str]:
    """Drop lines, collapsing the blank run left at each removal site to one."""
    out: list[str] = []
    collapsing = False
    for i, line in enumerate(lines):
        if i in drop:
            collapsing = True
            continue
        blank = _is_blank(line)
        if collapsing and blank and (not out or _is_blank(out[-1])):
            continue
        if not blank:
            collapsing = False
        out.append(line)
    return out


def _section_end(lines: list[str], opaque: list[bool], heading: int) -> int:
    for i in range(heading + 1, len(lines)):
        if not opaque[i] and ANY_HEADING.match(lines[i]):
            return i
    return len(lines)


def _tasks_headings(lines: list[str], opaque: list[bool]) -> list[int]:
    return [i for i, line in enumerate(lines) if not opaque[i] and TASKS_HEADING.match(line)]


def _strip_empty_tasks_sections(lines: list[str]) -> list[str]:
    opaque = _opaque_lines(lines)
    drop: set[int] = set()
    for heading in _tasks_headings(lines, opaque):
        end = _section_end(lines, opaque, heading)
        if all(_is_blank(line) for line in lines[heading + 1:end]):
            drop.update(range(heading, end))
    return _remove_lines(lines, drop) if drop else lines


def reconcile_embed(text: str, target: str) -> str:
    """Return `text` with exactly one ``![[target]]`` under a ``## Tasks`` heading.

    If a non-empty tasks section exists (the last one wins), the embed is
    appended to it. Otherwise a new section is appended to the end of the
    document, after trimming trailing whitespace.
    """
    lines = text.replace("\r\n", "\n").split("\n")

    stale = {embed.line for embed in find_managed_embeds(text)}
    if stale:
        lines = _remove_lines(lines, stale)
    lines = _strip_empty_tasks_sections(lines)

    embed = embed_line(target)
    opaque = _opaque_lines(lines)
    headings = _tasks_headings(lines, opaque)

    if headings:
        heading = headings[-1]
        end = _section_end(lines, opaque, heading)
        last = end - 1
        while last > heading and _is_blank(lines[last]):
            last -= 1
        tail = [""] if end < len(lines) else []
        lines = lines[:heading] + [CANONICAL_HEADING] + lines[heading + 1:last + 1] + ["", embed] + tail + lines[end:]
        return "\n".join(lines).rstrip() + "\n"

    body = "\n".join(lines).rstrip()
    if not body:
        return f"{CANONICAL_HEADING}\n{embed}\n"
    return f"{body}\n\n{CANONICAL_HEADING}\n{embed}\n"


def has_single_embed(text: str, target: str) -> bool:
    embeds = find_managed_embeds(text)
    return len(embeds) == 1 and embeds[0].target == target

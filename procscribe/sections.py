"""
procscribe.sections
-------------------
Heading-scoped edits of a Markdown document.

A section is a heading line plus everything up to the next heading of the
same or a higher level (fewer or equal `#`), so replacing "## A" also drops
its "### A1" subsections. Headings are matched on their text,
case-insensitively and whitespace-normalized; the patch may name either the
bare text ("Участники", any level) or the full line ("## Участники", that
level only).

Modes
• replace – new section = heading line + content (appended if missing)
• append  – content added at the end of the section (section appended if missing)
• delete  – section removed (missing heading → no-op)
• rename  – heading text replaced, level and body kept (missing → no-op)
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from procscribe.schema import DocumentPatch
from procscribe.text import extract_json_block, normalize_newlines

log = logging.getLogger(__name__)

_HEADING_RE = re.compile(r"^(#{1,6})[ \t]+(.+?)[ \t]*#*[ \t]*$")
_FENCE_RE   = re.compile(r"^\s*(```|~~~)")
_BLANKS_RE  = re.compile(r"\n{3,}")

Heading = Tuple[int, int, int, str]     # (line index, level, char offset, text)


def heading_key(text: str) -> str:
    t = re.sub(r"^\s*#+\s*", "", text or "")
    t = t.strip().strip("*_").strip()
    return re.sub(r"\s+", " ", t).lower()


def _headings(lines: List[str]) -> List[Heading]:
    out, offset, in_fence = [], 0, False
    for i, line in enumerate(lines):
        if _FENCE_RE.match(line):
            in_fence = not in_fence
        elif not in_fence:
            m = _HEADING_RE.match(line)
            if m:
                out.append((i, len(m.group(1)), offset, m.group(2)))
        offset += len(line)
    return out


def _query(heading: str) -> Tuple[Optional[int], str]:
    """"## A" → (2, "A"); bare "A" → (None, "A")."""
    m = re.match(r"^\s*(#{1,6})[ \t]*(.*)$", heading or "")
    if m:
        return len(m.group(1)), m.group(2).strip()
    return None, (heading or "").strip()


def find_section(markdown: str, heading: str) -> Optional[Tuple[int, int, int, str]]:
    """
    (start, end, level, heading text) of the first section titled *heading*.
    A full heading line ("## A") only matches headings of that level.
    """
    lines = markdown.splitlines(keepends=True)
    heads = _headings(lines)
    want_level, want_text = _query(heading)
    key = heading_key(want_text)
    for n, (_, level, start, text) in enumerate(heads):
        if heading_key(text) != key:
            continue
        if want_level is not None and level != want_level:
            continue
        end = len(markdown)
        for _, next_level, next_start, _ in heads[n + 1:]:
            if next_level <= level:
                end = next_start
                break
        return start, end, level, text
    return None


def _block(level: int, heading: str, content: str) -> str:
    body = content.strip("\n")
    return f"{'#' * level} {heading}\n" + (f"{body}\n" if body.strip() else "")


def _append_section(markdown: str, heading: str, content: str, level: int = 2) -> str:
    block = _block(level, heading.strip(), content)
    head  = markdown.rstrip("\n")
    return f"{head}\n\n{block}" if head else block


def apply_patch(markdown: str, patch: DocumentPatch) -> str:
    level, heading = _query(patch.heading)
    if not heading:
        return markdown

    found = find_section(markdown, patch.heading)
    if found is None:
        if patch.mode in ("replace", "append"):
            log.info("Section '%s' not found; appending", heading)
            return _append_section(markdown, heading, patch.content, level or 2)
        return markdown

    start, end, level, text = found
    section = markdown[start:end]

    if patch.mode == "replace":
        new = _block(level, text, patch.content)
    elif patch.mode == "append":
        extra = patch.content.strip("\n")
        head, _, body = section.partition("\n")
        if not extra.strip():
            new = section
        elif body.strip():
            new = section.rstrip("\n") + f"\n\n{extra}\n"
        else:
            new = f"{head}\n{extra}\n"
    elif patch.mode == "delete":
        new = ""
    else:  # rename
        target = re.sub(r"^\s*#+\s*", "", patch.new_heading or "").strip()
        if not target:
            return markdown
        first, nl, rest = section.partition("\n")
        new = f"{'#' * level} {target}{nl}{rest}"

    # keep one newline between the rewritten section and whatever follows
    if new and end < len(markdown) and not new.endswith("\n"):
        new += "\n"
    return markdown[:start] + new + markdown[end:]


def apply_patches(markdown: str | None, patches: Iterable[DocumentPatch]) -> str:
    """Apply *patches* in order, then collapse runs of 3+ newlines to one blank line."""
    text = normalize_newlines(markdown)
    for patch in patches:
        text = apply_patch(text, patch)
    return _BLANKS_RE.sub("\n\n", text)


def parse_document_patches(raw: str | None) -> List[DocumentPatch]:
    """
    Accepts `{"patches": [...]}`, a bare list, or one patch object (code
    fences allowed). Invalid entries are dropped.
    """
    block = extract_json_block(raw)
    if not block:
        return []
    try:
        data: Any = json.loads(block)
    except json.JSONDecodeError:
        log.warning("Document patch output is not JSON: %.200s", block)
        return []

    if isinstance(data, dict):
        items = data.get("patches") if isinstance(data.get("patches"), list) else [data]
    elif isinstance(data, list):
        items = data
    else:
        return []

    patches = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            patch = DocumentPatch.model_validate(item)
        except ValidationError:
            log.warning("Dropping invalid document patch: %s", item)
            continue
        if patch.heading.strip():
            patches.append(patch)
    return patches

"""Size-bounded HTML chunking that keeps tags whole and balanced.

The splitter streams over the input once. Tag tokens (``<...>``) are buffered
and appended whole, so a chunk boundary never falls inside one. Text is
appended a character at a time; once the accumulated chunk reaches the size
limit it is cut at the last space written as text. Elements still open at the
cut are closed at the end of the emitted chunk and reopened, outermost first,
at the start of the next.
"""

from __future__ import annotations

import re

# Elements that never have a closing tag and so never stay open.
VOID_ELEMENTS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input", "link",
    "meta", "param", "source", "track", "wbr",
})

_TAG_NAME_RE = re.compile(r"^</?\s*([A-Za-z][^\s/>]*)")


def _classify_tag(token: str) -> tuple[str, str | None]:
    """Classify a complete ``<...>`` token as ``open``, ``close`` or ``other``."""
    if token.startswith(("<!", "<?")):
        return "other", None
    match = _TAG_NAME_RE.match(token)
    if match is None:
        return "other", None
    name = match.group(1)
    if token.startswith("</"):
        return "close", name
    if token[:-1].rstrip().endswith("/") or name.lower() in VOID_ELEMENTS:
        return "other", None
    return "open", name


def _close_tags(stack: list[str] | tuple[str, ...]) -> str:
    return "".join(f"</{name}>" for name in reversed(stack))


def _open_tags(stack: list[str] | tuple[str, ...]) -> str:
    return "".join(f"<{name}>" for name in stack)


def _pop_matching(stack: list[str], name: str) -> None:
    """Pop *name* and anything opened inside it; ignore unmatched closing tags."""
    wanted = name.lower()
    for index in range(len(stack) - 1, -1, -1):
        if stack[index].lower() == wanted:
            del stack[index:]
            return


def split_html(html: str, max_chunk_size: int) -> list[str]:
    """Split *html* into chunks of roughly at most *max_chunk_size* characters.

    A chunk can exceed the limit when a single word or tag is longer than
    it. The last chunk is emitted as-is, without closing tags still open.
    """
    if max_chunk_size <= 0:
        raise ValueError(f"max_chunk_size must be a positive integer, got {max_chunk_size}")

    chunks: list[str] = []
    stack: list[str] = []
    current = ""
    # Position of the last space written as text, and the open tags at that point.
    last_space = -1
    # Non-whitespace text characters since the last cut, and since the last space.
    text_since_cut = 0
    text_after_space = 0
    stack_at_space: tuple[str, ...] = ()
    in_tag = False
    tag = ""

    for char in html:
        if char == "<" and not in_tag:
            in_tag = True
            tag = char
            continue

        if in_tag:
            tag += char
            if char == ">":
                in_tag = False
                kind, name = _classify_tag(tag)
                if kind == "close" and name:
                    _pop_matching(stack, name)
                elif kind == "open" and name:
                    stack.append(name)
                current += tag
                tag = ""
            continue

        if char == " ":
            # A space with no text before it in this chunk is never a cut point.
            if text_since_cut:
                last_space = len(current)
                stack_at_space = tuple(stack)
                text_after_space = 0
        elif not char.isspace():
            text_since_cut += 1
            text_after_space += 1
        current += char

        if len(current) < max_chunk_size or last_space < 0:
            continue

        chunks.append(current[:last_space] + _close_tags(stack_at_space))
        prefix = _open_tags(stack_at_space)
        current = prefix + current[last_space + 1:]
        text_since_cut = text_after_space
        last_space = -1

    if tag:
        current += tag

    if current:
        chunks.append(current)

    return chunks


def chunk_fragments(
    fragments: list[str],
    max_chunk_size: int,
    separator: str = "\n\n",
) -> list[str]:
    """Turn extracted fragments into prompt chunks.

    Fragments are used as chunks directly unless one of them exceeds
    *max_chunk_size*, in which case all fragments are joined and split.
    """
    if max_chunk_size <= 0:
        raise ValueError(f"max_chunk_size must be a positive integer, got {max_chunk_size}")
    if any(len(fragment) > max_chunk_size for fragment in fragments):
        return split_html(separator.join(fragments), max_chunk_size)
    return list(fragments)

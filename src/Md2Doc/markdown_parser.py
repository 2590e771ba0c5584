from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Sequence

import yaml
from markdown_it import MarkdownIt
from mdit_py_plugins.front_matter import front_matter_plugin

from .errors import MalformedTokenError
from .model import (
    AnyToken,
    BlockquoteToken,
    CodeToken,
    HeadingToken,
    HrToken,
    ListItemToken,
    ListToken,
    OtherToken,
    ParagraphToken,
    SpaceToken,
    TableToken,
)

logger = logging.getLogger(__name__)

# Block kinds whose trailing blank lines are swallowed by the lexer.
_ABSORBS_BLANK_LINES = {"heading", "hr"}

_ALIGN_RE = re.compile(r"text-align:\s*(left|center|right)")


@dataclass
class TokenStream:
    tokens: List[AnyToken]
    metadata: dict[str, Any] = field(default_factory=dict)


def build_markdown() -> MarkdownIt:
    return MarkdownIt("commonmark").use(front_matter_plugin).enable(["table", "strikethrough"])


def tokenize(text: str) -> TokenStream:
    """Parse Markdown into the flat block token sequence used by the translator."""
    md = build_markdown()
    tokens = md.parse(text)
    stream = TokenStream(tokens=[])
    lines = text.splitlines()
    blocks, _ = _parse_blocks(tokens, 0, stop_types=set(), lines=lines, stream=stream)
    stream.tokens = blocks
    return stream


def _parse_blocks(
    tokens,
    index: int,
    stop_types: set[str],
    lines: Sequence[str] | None = None,
    stream: TokenStream | None = None,
) -> tuple[list, int]:
    blocks: List[AnyToken] = []
    seen_block = False
    prev_kind: str | None = None
    i = index
    while i < len(tokens):
        tok = tokens[i]
        if tok.type in stop_types:
            break
        if tok.type == "front_matter":
            if stream is not None:
                stream.metadata = _parse_front_matter(tok.content)
            i += 1
            continue

        if lines is not None and tok.map and seen_block and prev_kind not in _ABSORBS_BLANK_LINES:
            blank = _count_blank_lines(lines, tok.map[0])
            if blank:
                blocks.append(SpaceToken(lines=blank))

        start_map = tok.map
        if tok.type == "heading_open":
            inline = tokens[i + 1]
            blocks.append(HeadingToken(depth=int(tok.tag[1]), text=inline.content.strip()))
            i += 3
        elif tok.type == "paragraph_open":
            inline = tokens[i + 1]
            blocks.append(ParagraphToken(text=inline.content))
            i += 3
        elif tok.type in ("bullet_list_open", "ordered_list_open"):
            ordered = tok.type == "ordered_list_open"
            start = int(tok.attrGet("start") or 1) if ordered else 1
            items, i = _parse_list(tokens, i)
            blocks.append(ListToken(ordered=ordered, items=tuple(items), start=start))
        elif tok.type == "blockquote_open":
            inner, i = _parse_blocks(tokens, i + 1, stop_types={"blockquote_close"})
            blocks.append(BlockquoteToken(tokens=tuple(inner)))
            i += 1  # skip blockquote_close
        elif tok.type in ("fence", "code_block"):
            blocks.append(CodeToken(text=tok.content.rstrip("\n"), language=tok.info.strip() or None))
            i += 1
        elif tok.type == "hr":
            blocks.append(HrToken())
            i += 1
        elif tok.type == "table_open":
            table, i = _parse_table(tokens, i)
            blocks.append(table)
        elif tok.block and tok.nesting >= 0:
            blocks.append(OtherToken(type=tok.type, raw=tok.content))
            i += 1
        else:
            i += 1
            continue

        if start_map:
            seen_block = True
            prev_kind = blocks[-1].kind
    return blocks, i


def _count_blank_lines(lines: Sequence[str], next_start: int) -> int:
    # Block maps may include trailing blank lines, so count back from the
    # next block to the last line that carries content.
    count = 0
    line = min(next_start, len(lines)) - 1
    while line >= 0 and not lines[line].strip():
        count += 1
        line -= 1
    return count


def _parse_list(tokens, index: int) -> tuple[list[ListItemToken], int]:
    close_type = tokens[index].type.replace("_open", "_close")
    items: list[ListItemToken] = []
    i = index + 1
    while i < len(tokens) and tokens[i].type != close_type:
        if tokens[i].type != "list_item_open":
            i += 1
            continue
        i += 1
        texts: list[str] = []
        nested: list[ListItemToken] = []
        while i < len(tokens) and tokens[i].type != "list_item_close":
            tok = tokens[i]
            if tok.type == "paragraph_open":
                texts.append(tokens[i + 1].content)
                i += 3
            elif tok.type in ("bullet_list_open", "ordered_list_open"):
                sub_items, i = _parse_list(tokens, i)
                nested.extend(sub_items)
            elif tok.type in ("fence", "code_block"):
                logger.info("Code block inside list item kept as item text")
                texts.append(tok.content.rstrip("\n"))
                i += 1
            elif tok.type == "blockquote_open":
                # Paragraphs inside are collected by this loop as item text.
                logger.info("Blockquote inside list item flattened into item text")
                i += 1
            elif tok.type == "blockquote_close":
                i += 1
            elif tok.nesting == 1:
                logger.info("Unhandled token type inside list item: %s", tok.type)
                i = _skip_to_close(tokens, i)
            else:
                if tok.nesting == 0:
                    logger.info("Unhandled token type inside list item: %s", tok.type)
                i += 1
        items.append(ListItemToken(text="\n".join(texts)))
        items.extend(nested)
        i += 1  # skip list_item_close
    return items, i + 1


def _skip_to_close(tokens, index: int) -> int:
    """Return the index just past the token closing tokens[index]."""
    depth = 0
    i = index
    while i < len(tokens):
        depth += tokens[i].nesting
        i += 1
        if depth == 0:
            break
    return i


def _parse_table(tokens, index: int) -> tuple[TableToken, int]:
    header: list[str] = []
    align: list[str | None] = []
    rows: list[tuple[str, ...]] = []
    i = index + 1
    while i < len(tokens):
        tok = tokens[i]
        if tok.type == "thead_open":
            i += 1
            while tokens[i].type != "thead_close":
                if tokens[i].type == "th_open":
                    align.append(_cell_align(tokens[i]))
                    header.append(tokens[i + 1].content.strip())
                    i += 3  # th_open, inline, th_close
                else:
                    i += 1
            i += 1
        elif tok.type == "tbody_open":
            i += 1
            while tokens[i].type != "tbody_close":
                if tokens[i].type == "tr_open":
                    row: list[str] = []
                    i += 1
                    while tokens[i].type != "tr_close":
                        if tokens[i].type in {"td_open", "th_open"}:
                            row.append(tokens[i + 1].content.strip())
                            i += 3
                        else:
                            i += 1
                    rows.append(tuple(row))
                    i += 1  # skip tr_close
                else:
                    i += 1
            i += 1
        elif tok.type == "table_close":
            break
        else:
            i += 1
    return TableToken(header=tuple(header), rows=tuple(rows), align=tuple(align)), i + 1


def _cell_align(tok) -> str | None:
    style = tok.attrGet("style") or ""
    match = _ALIGN_RE.search(str(style))
    return match.group(1) if match else None


def _parse_front_matter(text: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise MalformedTokenError(f"Front matter is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedTokenError("Front matter root must be a mapping.")
    logger.debug("Front matter keys: %s", ", ".join(map(str, data)))
    return data

from __future__ import annotations

import logging
from typing import Iterable, List, Sequence

from .errors import MalformedTokenError
from .inline_formatter import InlineFormatter
from .model import (
    Block,
    BlockquoteToken,
    Border,
    CodeBlock,
    CodeToken,
    Heading,
    HeadingToken,
    HrToken,
    Indent,
    ListItem,
    ListToken,
    OtherToken,
    Paragraph,
    ParagraphToken,
    Rule,
    SpaceToken,
    Spacing,
    Table,
    TableCell,
    TableRow,
    TableToken,
    Token,
)
from .spacing import SpacingCoordinator
from .style_config import (
    CODE_SHADING,
    LINE_300,
    LIST_INDENT_HANGING,
    LIST_INDENT_LEFT,
    QUOTE_BORDER_COLOR,
    QUOTE_INDENT_LEFT,
    RULE_COLOR,
    TABLE_INNER_BORDER_COLOR,
    TABLE_OUTER_BORDER_COLOR,
    StyleConfig,
    default_style_config,
)

logger = logging.getLogger(__name__)

MIN_HEADING_LEVEL = 1
MAX_HEADING_LEVEL = 6

HEADING_SPACING = Spacing(before=200, after=100)
PARAGRAPH_SPACING = Spacing(before=60, after=60, line=LINE_300)
FIRST_ITEM_SPACING = Spacing(before=80, after=40, line=LINE_300)
ITEM_SPACING = Spacing(before=40, after=40, line=LINE_300)
LIST_INDENT = Indent(left=LIST_INDENT_LEFT, hanging=LIST_INDENT_HANGING)
QUOTE_INDENT = Indent(left=QUOTE_INDENT_LEFT)
QUOTE_BORDER = Border(side="left", color=QUOTE_BORDER_COLOR, size=15, space=15)
RULE_BORDER = Border(side="bottom", color=RULE_COLOR, size=1, space=1)
RULE_SPACING = Spacing(before=120, after=120)

TABLE_BORDERS = (
    Border(side="top", color=TABLE_OUTER_BORDER_COLOR, size=10),
    Border(side="bottom", color=TABLE_OUTER_BORDER_COLOR, size=10),
    Border(side="left", color=TABLE_OUTER_BORDER_COLOR, size=10),
    Border(side="right", color=TABLE_OUTER_BORDER_COLOR, size=10),
    Border(side="insideH", color=TABLE_INNER_BORDER_COLOR, size=6),
    Border(side="insideV", color=TABLE_INNER_BORDER_COLOR, size=6),
)
# Margins are (top, bottom, left, right) in twips.
TABLE_MARGINS = (200, 200, 0, 0)
HEADER_CELL_MARGINS = (150, 150, 150, 150)
DATA_CELL_MARGINS = (120, 120, 150, 150)
HEADER_CELL_SPACING = Spacing(before=120, after=120)
DATA_CELL_SPACING = Spacing(before=100, after=100)
HEADER_ROW_HEIGHT = 600
DATA_ROW_HEIGHT = 400


class BlockTranslator:
    """Walks the token stream once and emits document blocks in order."""

    def __init__(self, formatter: InlineFormatter, config: StyleConfig | None = None) -> None:
        self.formatter = formatter
        self.config = config or default_style_config()
        self._ordered_lists = 0

    def translate(self, tokens: Iterable[Token]) -> List[Block]:
        coordinator = SpacingCoordinator()
        blocks: List[Block] = []
        for token in tokens:
            logger.debug("Processing token type: %s", token.kind)
            spacer = coordinator.observe(token.kind)
            if spacer is not None:
                blocks.append(spacer)
            blocks.extend(self.translate_token(token))
        return blocks

    def translate_token(self, token: Token) -> List[Block]:
        if isinstance(token, HeadingToken):
            return [self._heading(token)]
        if isinstance(token, ParagraphToken):
            return [Paragraph(runs=self.formatter.format(token.text), spacing=PARAGRAPH_SPACING)]
        if isinstance(token, ListToken):
            return self._list(token)
        if isinstance(token, BlockquoteToken):
            return self._blockquote(token)
        if isinstance(token, CodeToken):
            return [self._code(token)]
        if isinstance(token, HrToken):
            return [Rule(border=RULE_BORDER, spacing=RULE_SPACING)]
        if isinstance(token, TableToken):
            return [self._table(token)]
        if isinstance(token, SpaceToken):
            return []
        if isinstance(token, OtherToken):
            logger.info("Unhandled token type: %s", token.type)
            return []
        raise TypeError(f"Unsupported token: {type(token).__name__}")

    def _heading(self, token: HeadingToken) -> Heading:
        level = min(MAX_HEADING_LEVEL, max(MIN_HEADING_LEVEL, token.depth))
        if level != token.depth:
            logger.warning("Heading depth %d clamped to %d", token.depth, level)
        return Heading(level=level, text=token.text, spacing=HEADING_SPACING)

    def _list(self, token: ListToken) -> List[Block]:
        list_id = 0
        if token.ordered:
            self._ordered_lists += 1
            list_id = self._ordered_lists
        items: List[Block] = []
        for idx, item in enumerate(token.items):
            items.append(
                ListItem(
                    runs=self.formatter.format(item.text),
                    ordered=token.ordered,
                    level=0,
                    list_id=list_id,
                    start=token.start,
                    spacing=FIRST_ITEM_SPACING if idx == 0 else ITEM_SPACING,
                    indent=LIST_INDENT,
                )
            )
        return items

    def _blockquote(self, token: BlockquoteToken) -> List[Block]:
        lines: List[Block] = []
        for nested in token.tokens:
            if not isinstance(nested, ParagraphToken):
                logger.debug("Ignoring %s inside blockquote", nested.kind)
                continue
            lines.append(
                Paragraph(
                    runs=self.formatter.format(nested.text),
                    spacing=PARAGRAPH_SPACING,
                    indent=QUOTE_INDENT,
                    border=QUOTE_BORDER,
                )
            )
        return lines

    def _code(self, token: CodeToken) -> CodeBlock:
        code = self.config.code
        return CodeBlock(
            text=token.text,
            font=code.font,
            size_pt=code.size_pt,
            spacing=code.spacing,
            shading=CODE_SHADING,
            language=token.language,
        )

    def _table(self, token: TableToken) -> Table:
        column_count = len(token.header)
        if column_count == 0:
            raise MalformedTokenError("Table has no header cells.")
        width = 100 // column_count
        align = _fit(list(token.align), column_count, None)

        rows = [
            TableRow(
                cells=self._cells(token.header, width, align, HEADER_CELL_MARGINS, HEADER_CELL_SPACING),
                header=True,
                min_height=HEADER_ROW_HEIGHT,
            )
        ]
        for idx, row in enumerate(token.rows, start=1):
            if len(row) != column_count:
                logger.warning("Table row %d has %d cells, expected %d", idx, len(row), column_count)
            cells = _fit(list(row), column_count, "")
            rows.append(
                TableRow(
                    cells=self._cells(cells, width, align, DATA_CELL_MARGINS, DATA_CELL_SPACING),
                    min_height=DATA_ROW_HEIGHT,
                )
            )
        return Table(
            rows=rows,
            column_count=column_count,
            column_width_pct=width,
            borders=TABLE_BORDERS,
            margins=TABLE_MARGINS,
        )

    def _cells(self, texts: Sequence[str], width: int, align, margins, spacing) -> List[TableCell]:
        return [
            TableCell(
                runs=self.formatter.format(text),
                width_pct=width,
                margins=margins,
                spacing=spacing,
                align=cell_align,
            )
            for text, cell_align in zip(texts, align)
        ]


def _fit(values: list, size: int, filler) -> list:
    """Pad or truncate ``values`` to exactly ``size`` entries."""
    return (values + [filler] * size)[:size]

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, List, Sequence, Tuple, Union


# ---------------------------------------------------------------------------
# Tokens: block units produced by the Markdown tokenizer, consumed once.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Token:
    """Base class for block-level Markdown tokens."""

    kind: ClassVar[str] = "other"


@dataclass(frozen=True)
class HeadingToken(Token):
    kind: ClassVar[str] = "heading"

    depth: int
    text: str


@dataclass(frozen=True)
class ParagraphToken(Token):
    kind: ClassVar[str] = "paragraph"

    text: str


@dataclass(frozen=True)
class ListItemToken:
    text: str


@dataclass(frozen=True)
class ListToken(Token):
    kind: ClassVar[str] = "list"

    ordered: bool
    items: Tuple[ListItemToken, ...]
    start: int = 1


@dataclass(frozen=True)
class BlockquoteToken(Token):
    kind: ClassVar[str] = "blockquote"

    tokens: Tuple[Token, ...]


@dataclass(frozen=True)
class CodeToken(Token):
    kind: ClassVar[str] = "code"

    text: str
    language: str | None = None


@dataclass(frozen=True)
class HrToken(Token):
    """Thematic break."""

    kind: ClassVar[str] = "hr"


@dataclass(frozen=True)
class TableToken(Token):
    kind: ClassVar[str] = "table"

    header: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...]
    align: Tuple[str | None, ...] = ()


@dataclass(frozen=True)
class SpaceToken(Token):
    """Blank lines separating two blocks."""

    kind: ClassVar[str] = "space"

    lines: int = 1


@dataclass(frozen=True)
class OtherToken(Token):
    kind: ClassVar[str] = "other"

    type: str
    raw: str = ""


AnyToken = Union[
    HeadingToken,
    ParagraphToken,
    ListToken,
    BlockquoteToken,
    CodeToken,
    HrToken,
    TableToken,
    SpaceToken,
    OtherToken,
]


# ---------------------------------------------------------------------------
# Runs: inline units living only while one block is translated.
# ---------------------------------------------------------------------------


class RunKind(str, Enum):
    PLAIN = "plain"
    BOLD = "bold"
    ITALIC = "italic"
    CODE = "code"
    INLINE_MATH = "inline_math"
    DISPLAY_MATH = "display_math"

    @property
    def is_math(self) -> bool:
        return self in (RunKind.INLINE_MATH, RunKind.DISPLAY_MATH)


@dataclass(frozen=True)
class StyledText:
    text: str
    font: str
    size_pt: float
    bold: bool = False
    italic: bool = False
    color: str | None = None
    fallback: bool = False


@dataclass(frozen=True)
class MathObject:
    """OMML ``m:oMath`` element ready to be appended to a paragraph."""

    element: Any
    latex: str
    display: bool = False


@dataclass(frozen=True)
class Run:
    kind: RunKind
    raw: str
    content: Union[StyledText, MathObject]

    @property
    def is_math_object(self) -> bool:
        return isinstance(self.content, MathObject)


# ---------------------------------------------------------------------------
# Blocks: emitted document units, in token order.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Spacing:
    """Paragraph spacing in twips; ``line`` in 240ths of a line."""

    before: int | None = None
    after: int | None = None
    line: int | None = None
    line_rule: str = "auto"


@dataclass(frozen=True)
class Indent:
    left: int = 0
    hanging: int = 0


@dataclass(frozen=True)
class Border:
    side: str
    color: str
    size: int
    space: int = 0
    style: str = "single"


@dataclass
class Block:
    """Base class for block-level nodes."""


@dataclass
class Paragraph(Block):
    runs: List[Run]
    spacing: Spacing = field(default_factory=Spacing)
    indent: Indent | None = None
    border: Border | None = None


@dataclass
class Heading(Block):
    level: int
    text: str
    spacing: Spacing = field(default_factory=Spacing)


@dataclass
class ListItem(Block):
    runs: List[Run]
    ordered: bool
    level: int = 0
    list_id: int = 0
    start: int = 1
    spacing: Spacing = field(default_factory=Spacing)
    indent: Indent | None = None


@dataclass
class CodeBlock(Block):
    text: str
    font: str
    size_pt: float
    spacing: Spacing = field(default_factory=Spacing)
    shading: str | None = None
    language: str | None = None


@dataclass
class Spacer(Block):
    """Empty paragraph separating blocks of different kinds."""

    spacing: Spacing = field(default_factory=Spacing)


@dataclass
class Rule(Block):
    """Empty paragraph carrying only a bottom border."""

    border: Border
    spacing: Spacing = field(default_factory=Spacing)


@dataclass
class TableCell:
    runs: List[Run]
    width_pct: int
    margins: Tuple[int, int, int, int]
    spacing: Spacing = field(default_factory=Spacing)
    align: str | None = None


@dataclass
class TableRow:
    cells: List[TableCell]
    header: bool = False
    min_height: int | None = None


@dataclass
class Table(Block):
    rows: List[TableRow]
    column_count: int
    column_width_pct: int
    borders: Sequence[Border] = ()
    margins: Tuple[int, int, int, int] = (0, 0, 0, 0)


@dataclass
class Document:
    blocks: List[Block]
    metadata: dict[str, Any] = field(default_factory=dict)

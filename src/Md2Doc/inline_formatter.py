from __future__ import annotations

import logging
import re
from typing import List

from .errors import ConversionError
from .math_bridge import MathBridge
from .model import Run, RunKind, StyledText
from .style_config import (
    DISPLAY_FALLBACK_SIZE_PT,
    INLINE_FALLBACK_SIZE_PT,
    StyleConfig,
    default_style_config,
)

logger = logging.getLogger(__name__)

# Alternatives are tried in this order at each position, so display math wins
# over inline math, bold over italic. Spans never nest.
_SPAN_RE = re.compile(
    r"(?P<display_math>\$\$[^$]+\$\$)"
    r"|(?P<inline_math>\$[^$]+\$)"
    r"|(?P<bold>\*\*.*?\*\*)"
    r"|(?P<italic>\*.*?\*|_.*?_)"
    r"|(?P<code>`.*?`)"
)

_DELIMITER_WIDTH = {
    RunKind.DISPLAY_MATH: 2,
    RunKind.INLINE_MATH: 1,
    RunKind.BOLD: 2,
    RunKind.ITALIC: 1,
    RunKind.CODE: 1,
}


def split_runs(text: str) -> list[tuple[RunKind, str]]:
    """Split inline source into (kind, raw) segments, dropping blank ones."""
    parts: list[tuple[RunKind, str]] = []
    last = 0
    for match in _SPAN_RE.finditer(text):
        if match.start() > last:
            parts.append((RunKind.PLAIN, text[last : match.start()]))
        kind = RunKind(match.lastgroup)
        raw = match.group(0)
        if not _strip_delimiters(kind, raw).strip() and not kind.is_math:
            kind = RunKind.PLAIN
        parts.append((kind, raw))
        last = match.end()
    if last < len(text):
        parts.append((RunKind.PLAIN, text[last:]))
    return [(kind, raw) for kind, raw in parts if raw.strip()]


def _strip_delimiters(kind: RunKind, raw: str) -> str:
    width = _DELIMITER_WIDTH.get(kind, 0)
    return raw[width : len(raw) - width] if width else raw


class InlineFormatter:
    """Turns a block's inline source into styled text and math runs."""

    def __init__(self, bridge: MathBridge, config: StyleConfig | None = None) -> None:
        self.bridge = bridge
        self.config = config or default_style_config()

    def format(self, text: str) -> List[Run]:
        return [self._resolve(kind, raw) for kind, raw in split_runs(text)]

    def _resolve(self, kind: RunKind, raw: str) -> Run:
        inner = _strip_delimiters(kind, raw)
        if kind.is_math:
            return self._math_run(kind, raw, inner.strip())
        if kind == RunKind.BOLD:
            return Run(kind, raw, self._text(inner, bold=True))
        if kind == RunKind.ITALIC:
            return Run(kind, raw, self._text(inner, italic=True))
        if kind == RunKind.CODE:
            return Run(kind, raw, self._text(inner, font=self.config.mono_font))
        if kind == RunKind.PLAIN:
            return Run(kind, raw, self._text(inner))
        raise TypeError(f"Unsupported run kind: {kind!r}")

    def _text(self, text: str, bold: bool = False, italic: bool = False, font: str | None = None) -> StyledText:
        return StyledText(
            text=text.replace("\n", " "),
            font=font or self.config.font,
            size_pt=self.config.size_pt,
            bold=bold,
            italic=italic,
        )

    def _math_run(self, kind: RunKind, raw: str, latex: str) -> Run:
        display = kind == RunKind.DISPLAY_MATH
        label = "display" if display else "inline"
        logger.info("Processing %s math formula: %s", label, latex[:50])
        try:
            math = self.bridge.convert(latex, display=display)
        except ConversionError as exc:
            logger.error("Failed to convert %s math formula, using fallback: %r (%s)", label, latex, exc.reason)
            fallback = StyledText(
                text=raw,
                font=self.config.mono_font,
                size_pt=DISPLAY_FALLBACK_SIZE_PT if display else INLINE_FALLBACK_SIZE_PT,
                color=self.config.fallback_color,
                fallback=True,
            )
            return Run(kind, raw, fallback)
        logger.debug("%s formula converted", label.capitalize())
        return Run(kind, raw, math)

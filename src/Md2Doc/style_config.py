from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from .model import Spacing

FONT_NAME = "Arial"
FONT_SIZE_PT = 12
MONO_FONT_NAME = "Courier New"
CODE_FONT_SIZE_PT = 10

# Unconverted formulas keep their delimiters and use this colour.
FALLBACK_COLOR = "0066CC"
DISPLAY_FALLBACK_SIZE_PT = 11
INLINE_FALLBACK_SIZE_PT = 12

LINE_300 = 300  # 1.25 lines, in 240ths

CODE_STYLE_NAME = "Code Style"
CODE_SHADING = "F5F5F5"
RULE_COLOR = "AAAAAA"
QUOTE_BORDER_COLOR = "AAAAAA"
TABLE_OUTER_BORDER_COLOR = "000000"
TABLE_INNER_BORDER_COLOR = "666666"

LIST_INDENT_LEFT = 720
LIST_INDENT_HANGING = 360
QUOTE_INDENT_LEFT = 720


@dataclass(frozen=True)
class HeadingStyle:
    size_pt: float
    spacing: Spacing
    font: str = FONT_NAME
    bold: bool = True
    color: str = "000000"


@dataclass(frozen=True)
class NumberingStyle:
    format: str = "decimal"
    text: str = "%1."
    alignment: str = "start"
    indent_left: int = LIST_INDENT_LEFT
    indent_hanging: int = LIST_INDENT_HANGING


@dataclass(frozen=True)
class CodeStyle:
    name: str = CODE_STYLE_NAME
    font: str = MONO_FONT_NAME
    size_pt: float = CODE_FONT_SIZE_PT
    spacing: Spacing = Spacing(before=80, after=80, line=LINE_300)


def _default_headings() -> dict[int, HeadingStyle]:
    return {
        1: HeadingStyle(size_pt=16, spacing=Spacing(before=200, after=100, line=LINE_300)),
        2: HeadingStyle(size_pt=14, spacing=Spacing(before=160, after=80, line=LINE_300)),
        3: HeadingStyle(size_pt=12, spacing=Spacing(before=120, after=60, line=LINE_300)),
    }


@dataclass(frozen=True)
class StyleConfig:
    """Global document defaults applied by the assembler."""

    font: str = FONT_NAME
    size_pt: float = FONT_SIZE_PT
    mono_font: str = MONO_FONT_NAME
    fallback_color: str = FALLBACK_COLOR
    headings: Mapping[int, HeadingStyle] = field(default_factory=_default_headings)
    numbering: NumberingStyle = NumberingStyle()
    code: CodeStyle = CodeStyle()


def default_style_config() -> StyleConfig:
    return StyleConfig()


_SCALAR_KEYS = {"font", "size_pt", "mono_font", "fallback_color"}


def load_style_config(path: str | Path) -> StyleConfig:
    """Build a StyleConfig from a YAML file overriding the defaults."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    return style_config_from_mapping(data)


def style_config_from_mapping(data: Any) -> StyleConfig:
    if not isinstance(data, dict):
        raise ValueError("Style config root must be a mapping.")
    unknown = set(data) - _SCALAR_KEYS - {"headings", "code"}
    if unknown:
        raise ValueError(f"Unknown style config keys: {', '.join(sorted(map(str, unknown)))}")

    config = default_style_config()
    scalars = {key: data[key] for key in _SCALAR_KEYS if key in data}
    if scalars:
        config = replace(config, **scalars)

    if "headings" in data:
        headings = dict(config.headings)
        for level, values in (data["headings"] or {}).items():
            level = int(level)
            if level not in headings:
                raise ValueError(f"Heading level {level} has no preset; expected one of 1, 2, 3.")
            headings[level] = _override(headings[level], values, f"headings.{level}")
        config = replace(config, headings=headings)

    if "code" in data:
        config = replace(config, code=_override(config.code, data["code"], "code"))
    return config


def _override(preset, values: Any, where: str):
    if not isinstance(values, dict):
        raise ValueError(f"Style config section '{where}' must be a mapping.")
    allowed = {f.name for f in fields(preset)}
    unknown = set(values) - allowed
    if unknown:
        raise ValueError(f"Unknown keys in '{where}': {', '.join(sorted(map(str, unknown)))}")
    if "spacing" in values:
        spacing = values["spacing"]
        if not isinstance(spacing, dict):
            raise ValueError(f"'{where}.spacing' must be a mapping.")
        values = {**values, "spacing": replace(preset.spacing, **spacing)}
    return replace(preset, **values)

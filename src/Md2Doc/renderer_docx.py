from __future__ import annotations

import copy
import io
import logging
from typing import Iterable, Sequence

from docx import Document as DocxDocument
from docx.enum.style import WD_STYLE_TYPE
from docx.enum.table import WD_ALIGN_VERTICAL, WD_ROW_HEIGHT_RULE
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Pt, RGBColor, Twips

from .errors import AssemblyError, Md2DocError
from .model import (
    Block,
    Border,
    CodeBlock,
    Document,
    Heading,
    Indent,
    ListItem,
    MathObject,
    Paragraph,
    Rule,
    Run,
    Spacer,
    Spacing,
    StyledText,
    Table,
)
from .style_config import NumberingStyle, StyleConfig, default_style_config

logger = logging.getLogger(__name__)

LIST_BULLET_STYLE = "List Bullet"

# Schema order of w:pPr children that may follow w:pBdr.
_PBDR_SUCCESSORS = (
    "w:shd", "w:tabs", "w:suppressAutoHyphens", "w:kinsoku", "w:wordWrap",
    "w:overflowPunct", "w:topLinePunct", "w:autoSpaceDE", "w:autoSpaceDN",
    "w:bidi", "w:adjustRightInd", "w:snapToGrid", "w:spacing", "w:ind",
    "w:contextualSpacing", "w:mirrorIndents", "w:suppressOverlap", "w:jc",
    "w:textDirection", "w:textAlignment", "w:textboxTightWrap",
    "w:outlineLvl", "w:divId", "w:cnfStyle", "w:rPr", "w:sectPr", "w:pPrChange",
)
_SHD_SUCCESSORS = _PBDR_SUCCESSORS[1:]
_TBL_BORDERS_SUCCESSORS = ("w:shd", "w:tblLayout", "w:tblCellMar", "w:tblLook", "w:tblCaption", "w:tblDescription")
_TBL_CELL_MAR_SUCCESSORS = ("w:tblLook", "w:tblCaption", "w:tblDescription")
_TC_BORDERS_SUCCESSORS = ("w:shd", "w:noWrap", "w:tcMar", "w:textDirection", "w:tcFitText", "w:vAlign", "w:hideMark")
_TC_MAR_SUCCESSORS = ("w:textDirection", "w:tcFitText", "w:vAlign", "w:hideMark")
_BORDER_ORDER = ("top", "left", "bottom", "right", "insideH", "insideV")

_CELL_ALIGN = {
    "left": WD_ALIGN_PARAGRAPH.LEFT,
    "center": WD_ALIGN_PARAGRAPH.CENTER,
    "right": WD_ALIGN_PARAGRAPH.RIGHT,
}

_METADATA_FIELDS = ("title", "author", "subject", "keywords")


class _Numbering:
    """Decimal list numbering; every ordered list gets its own restartable instance."""

    def __init__(self, docx: DocxDocument, style: NumberingStyle) -> None:
        self._numbering = docx.part.numbering_part.element
        self._abstract_id = self._add_abstract(style)
        self._num_ids: dict[int, int] = {}

    def num_id(self, list_id: int, start: int) -> int:
        if list_id not in self._num_ids:
            num = self._numbering.add_num(self._abstract_id)
            num.add_lvlOverride(ilvl=0).add_startOverride(start)
            self._num_ids[list_id] = num.numId
        return self._num_ids[list_id]

    def _add_abstract(self, style: NumberingStyle) -> int:
        existing = self._numbering.findall(qn("w:abstractNum"))
        abstract_id = max((int(el.get(qn("w:abstractNumId"))) for el in existing), default=-1) + 1

        abstract = OxmlElement("w:abstractNum")
        abstract.set(qn("w:abstractNumId"), str(abstract_id))
        lvl = OxmlElement("w:lvl")
        lvl.set(qn("w:ilvl"), "0")
        for tag, value in (
            ("w:start", "1"),
            ("w:numFmt", style.format),
            ("w:lvlText", style.text),
            ("w:lvlJc", "left" if style.alignment == "start" else style.alignment),
        ):
            child = OxmlElement(tag)
            child.set(qn("w:val"), value)
            lvl.append(child)
        p_pr = OxmlElement("w:pPr")
        ind = OxmlElement("w:ind")
        ind.set(qn("w:left"), str(style.indent_left))
        ind.set(qn("w:hanging"), str(style.indent_hanging))
        p_pr.append(ind)
        lvl.append(p_pr)
        abstract.append(lvl)

        if existing:
            existing[-1].addnext(abstract)
        else:
            first_num = self._numbering.find(qn("w:num"))
            if first_num is not None:
                first_num.addprevious(abstract)
            else:
                self._numbering.append(abstract)
        return abstract_id


class _RenderContext:
    def __init__(self, docx: DocxDocument, config: StyleConfig) -> None:
        self.docx = docx
        self.config = config
        self.numbering = _Numbering(docx, config.numbering)


def render_document(doc: Document, config: StyleConfig | None = None) -> bytes:
    """Assemble blocks into a DOCX package and return its bytes."""
    config = config or default_style_config()
    try:
        docx = DocxDocument()
        apply_styles(docx, config)
        _apply_metadata(docx, doc.metadata)
        ctx = _RenderContext(docx, config)
        for block in doc.blocks:
            _dispatch_block(ctx, block)
        buffer = io.BytesIO()
        docx.save(buffer)
    except Md2DocError:
        raise
    except Exception as exc:
        logger.exception("Error converting markdown to docx")
        raise AssemblyError(f"Failed to assemble document: {exc}") from exc
    logger.info("Generated DOCX with %d blocks", len(doc.blocks))
    return buffer.getvalue()


def apply_styles(docx: DocxDocument, config: StyleConfig) -> None:
    """Install body, heading and code styles."""
    normal = docx.styles["Normal"]
    _set_style_font(normal, config.font, config.size_pt)

    for level, preset in sorted(config.headings.items()):
        style = docx.styles[f"Heading {level}"]
        _set_style_font(style, preset.font, preset.size_pt, bold=preset.bold, color=preset.color)
        _apply_spacing(style.paragraph_format, preset.spacing)

    code = config.code
    code_style = docx.styles.add_style(code.name, WD_STYLE_TYPE.PARAGRAPH)
    code_style.base_style = normal
    _set_style_font(code_style, code.font, code.size_pt)
    _apply_spacing(code_style.paragraph_format, code.spacing)


def _set_style_font(style, font: str, size_pt: float, bold: bool | None = None, color: str | None = None) -> None:
    style.font.name = font
    style.font.size = Pt(size_pt)
    if bold is not None:
        style.font.bold = bold
    if color is not None:
        style.font.color.rgb = RGBColor.from_string(color)
    # Theme fonts on the built-in styles would override the explicit name.
    r_fonts = style.element.get_or_add_rPr().find(qn("w:rFonts"))
    if r_fonts is not None:
        for attr in ("w:asciiTheme", "w:hAnsiTheme", "w:eastAsiaTheme", "w:cstheme"):
            r_fonts.attrib.pop(qn(attr), None)


def _apply_metadata(docx: DocxDocument, metadata: dict) -> None:
    props = docx.core_properties
    for key in _METADATA_FIELDS:
        value = metadata.get(key)
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(item) for item in value)
        setattr(props, key, str(value))


def _dispatch_block(ctx: _RenderContext, block: Block) -> None:
    if isinstance(block, Heading):
        _render_heading(ctx, block)
    elif isinstance(block, Paragraph):
        _render_paragraph(ctx, block)
    elif isinstance(block, ListItem):
        _render_list_item(ctx, block)
    elif isinstance(block, CodeBlock):
        _render_code_block(ctx, block)
    elif isinstance(block, Spacer):
        paragraph = ctx.docx.add_paragraph()
        _apply_spacing(paragraph.paragraph_format, block.spacing)
    elif isinstance(block, Rule):
        paragraph = ctx.docx.add_paragraph()
        _set_paragraph_border(paragraph, block.border)
        _apply_spacing(paragraph.paragraph_format, block.spacing)
    elif isinstance(block, Table):
        _render_table(ctx, block)
    else:
        raise TypeError(f"Unsupported block: {type(block).__name__}")


def _render_heading(ctx: _RenderContext, heading: Heading) -> None:
    paragraph = ctx.docx.add_paragraph(heading.text, style=f"Heading {heading.level}")
    _apply_spacing(paragraph.paragraph_format, heading.spacing)


def _render_paragraph(ctx: _RenderContext, block: Paragraph) -> None:
    paragraph = ctx.docx.add_paragraph()
    add_runs(paragraph, block.runs)
    _apply_spacing(paragraph.paragraph_format, block.spacing)
    _apply_indent(paragraph.paragraph_format, block.indent)
    if block.border is not None:
        _set_paragraph_border(paragraph, block.border)


def _render_list_item(ctx: _RenderContext, item: ListItem) -> None:
    if item.ordered:
        paragraph = ctx.docx.add_paragraph()
        num_pr = paragraph._p.get_or_add_pPr().get_or_add_numPr()
        num_pr.get_or_add_ilvl().val = item.level
        num_pr.get_or_add_numId().val = ctx.numbering.num_id(item.list_id, item.start)
    else:
        paragraph = ctx.docx.add_paragraph(style=LIST_BULLET_STYLE)
    add_runs(paragraph, item.runs)
    _apply_spacing(paragraph.paragraph_format, item.spacing)
    _apply_indent(paragraph.paragraph_format, item.indent)


def _render_code_block(ctx: _RenderContext, block: CodeBlock) -> None:
    paragraph = ctx.docx.add_paragraph(style=ctx.config.code.name)
    run = paragraph.add_run(block.text)
    run.font.name = block.font
    run.font.size = Pt(block.size_pt)
    _apply_spacing(paragraph.paragraph_format, block.spacing)
    if block.shading:
        _set_paragraph_shading(paragraph, block.shading)


def _render_table(ctx: _RenderContext, block: Table) -> None:
    table = ctx.docx.add_table(rows=len(block.rows), cols=block.column_count)
    table.autofit = False
    tbl_pr = table._tbl.tblPr
    _set_pct_width(tbl_pr.find(qn("w:tblW")), 100)
    tbl_pr.insert_element_before(_borders_element("w:tblBorders", block.borders), *_TBL_BORDERS_SUCCESSORS)
    tbl_pr.insert_element_before(_margins_element("w:tblCellMar", block.margins), *_TBL_CELL_MAR_SUCCESSORS)
    for grid_col in table._tbl.tblGrid.findall(qn("w:gridCol")):
        grid_col.set(qn("w:w"), str(block.column_width_pct * 100))

    for row_block, row in zip(block.rows, table.rows):
        if row_block.min_height is not None:
            row.height = Twips(row_block.min_height)
            row.height_rule = WD_ROW_HEIGHT_RULE.AT_LEAST
        if row_block.header:
            row._tr.get_or_add_trPr().append(OxmlElement("w:tblHeader"))
        for cell_block, cell in zip(row_block.cells, row.cells):
            tc_pr = cell._tc.get_or_add_tcPr()
            _set_pct_width(tc_pr.get_or_add_tcW(), cell_block.width_pct)
            cell.vertical_alignment = WD_ALIGN_VERTICAL.CENTER
            tc_pr.insert_element_before(_borders_element("w:tcBorders", block.borders), *_TC_BORDERS_SUCCESSORS)
            tc_pr.insert_element_before(_margins_element("w:tcMar", cell_block.margins), *_TC_MAR_SUCCESSORS)

            paragraph = cell.paragraphs[0]
            add_runs(paragraph, cell_block.runs)
            _apply_spacing(paragraph.paragraph_format, cell_block.spacing)
            if cell_block.align in _CELL_ALIGN:
                paragraph.alignment = _CELL_ALIGN[cell_block.align]


def add_runs(paragraph, runs: Iterable[Run]) -> None:
    for run in runs:
        content = run.content
        if isinstance(content, MathObject):
            _append_math(paragraph, content)
        elif isinstance(content, StyledText):
            set_run_font(paragraph.add_run(content.text), content)
        else:
            raise TypeError(f"Unsupported run content: {type(content).__name__}")


def set_run_font(run, text: StyledText) -> None:
    run.font.name = text.font
    run.font.size = Pt(text.size_pt)
    run.bold = text.bold
    run.italic = text.italic
    if text.color:
        run.font.color.rgb = RGBColor.from_string(text.color)


def _append_math(paragraph, math: MathObject) -> None:
    # Blocks may be rendered more than once, so never move the original element.
    element = copy.deepcopy(math.element)
    if math.display:
        wrapper = OxmlElement("m:oMathPara")
        wrapper.append(element)
        element = wrapper
    paragraph._p.append(element)


def _apply_spacing(paragraph_format, spacing: Spacing) -> None:
    if spacing.before is not None:
        paragraph_format.space_before = Twips(spacing.before)
    if spacing.after is not None:
        paragraph_format.space_after = Twips(spacing.after)
    if spacing.line is not None:
        if spacing.line_rule == "auto":
            paragraph_format.line_spacing = spacing.line / 240
        else:
            paragraph_format.line_spacing = Twips(spacing.line)


def _apply_indent(paragraph_format, indent: Indent | None) -> None:
    if indent is None:
        return
    paragraph_format.left_indent = Twips(indent.left)
    if indent.hanging:
        paragraph_format.first_line_indent = Twips(-indent.hanging)


def _set_paragraph_border(paragraph, border: Border) -> None:
    p_pr = paragraph._p.get_or_add_pPr()
    p_bdr = p_pr.find(qn("w:pBdr"))
    if p_bdr is None:
        p_bdr = OxmlElement("w:pBdr")
        p_pr.insert_element_before(p_bdr, *_PBDR_SUCCESSORS)
    p_bdr.append(_border_edge(border))


def _set_paragraph_shading(paragraph, fill: str) -> None:
    p_pr = paragraph._p.get_or_add_pPr()
    shd = OxmlElement("w:shd")
    shd.set(qn("w:val"), "clear")
    shd.set(qn("w:color"), "auto")
    shd.set(qn("w:fill"), fill)
    p_pr.insert_element_before(shd, *_SHD_SUCCESSORS)


def _border_edge(border: Border):
    edge = OxmlElement(f"w:{border.side}")
    edge.set(qn("w:val"), border.style)
    edge.set(qn("w:sz"), str(border.size))
    edge.set(qn("w:space"), str(border.space))
    edge.set(qn("w:color"), border.color)
    return edge


def _borders_element(tag: str, borders: Sequence[Border]):
    element = OxmlElement(tag)
    for border in sorted(borders, key=lambda b: _BORDER_ORDER.index(b.side)):
        element.append(_border_edge(border))
    return element


def _margins_element(tag: str, margins: Sequence[int]):
    top, bottom, left, right = margins
    element = OxmlElement(tag)
    for side, value in (("top", top), ("left", left), ("bottom", bottom), ("right", right)):
        edge = OxmlElement(f"w:{side}")
        edge.set(qn("w:w"), str(value))
        edge.set(qn("w:type"), "dxa")
        element.append(edge)
    return element


def _set_pct_width(width, pct: int) -> None:
    # Percentages are stored in fiftieths of a percent.
    width.set(qn("w:w"), str(pct * 50))
    width.set(qn("w:type"), "pct")

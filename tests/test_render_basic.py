import io
from dataclasses import replace

import pytest
from docx import Document as DocxReader
from docx.oxml.ns import qn
from docx.shared import Pt

from conftest import make_omath
from Md2Doc.block_translator import BlockTranslator
from Md2Doc.errors import AssemblyError
from Md2Doc.inline_formatter import InlineFormatter
from Md2Doc.model import (
    BlockquoteToken,
    CodeToken,
    Document,
    Heading,
    HrToken,
    ListItemToken,
    ListToken,
    MathObject,
    Paragraph,
    ParagraphToken,
    Run,
    RunKind,
    Spacing,
    StyledText,
    TableToken,
)
from Md2Doc.renderer_docx import render_document
from Md2Doc.style_config import HeadingStyle, default_style_config


def render(blocks, metadata=None):
    data = render_document(Document(blocks=blocks, metadata=metadata or {}))
    return DocxReader(io.BytesIO(data))


def translated(bridge, tokens):
    return BlockTranslator(InlineFormatter(bridge)).translate(tokens)


def test_render_returns_docx_bytes():
    data = render_document(Document(blocks=[Heading(level=1, text="Intro")]))
    assert data.startswith(b"PK")
    reader = DocxReader(io.BytesIO(data))
    assert reader.paragraphs[0].text == "Intro"
    assert reader.paragraphs[0].style.name == "Heading 1"


def test_document_styles():
    reader = render([])
    styles = reader.styles
    assert styles["Normal"].font.name == "Arial"
    assert styles["Normal"].font.size == Pt(12)
    for name, size in (("Heading 1", 16), ("Heading 2", 14), ("Heading 3", 12)):
        assert styles[name].font.size == Pt(size)
        assert styles[name].font.bold
        assert styles[name].font.name == "Arial"
        assert str(styles[name].font.color.rgb) == "000000"
    assert styles["Heading 1"].paragraph_format.space_before == Pt(10)
    assert styles["Heading 1"].paragraph_format.line_spacing == 1.25
    code = styles["Code Style"]
    assert code.font.name == "Courier New"
    assert code.font.size == Pt(10)
    assert code.base_style.name == "Normal"


def test_numbering_definition_and_list_items(bridge):
    tokens = [
        ListToken(ordered=True, items=(ListItemToken("one"), ListItemToken("two"))),
        ListToken(ordered=False, items=(ListItemToken("dot"),)),
    ]
    reader = render(translated(bridge, tokens))
    numbering_xml = reader.part.numbering_part.element.xml
    assert 'w:numFmt w:val="decimal"' in numbering_xml
    assert 'w:lvlText w:val="%1."' in numbering_xml
    assert 'w:hanging="360"' in numbering_xml

    one, two, dot = reader.paragraphs
    assert one._p.pPr.numPr is not None and two._p.pPr.numPr is not None
    assert one._p.pPr.numPr.numId.val == two._p.pPr.numPr.numId.val
    assert dot.style.name == "List Bullet"
    assert one.paragraph_format.space_before > two.paragraph_format.space_before


def test_table_layout(bridge):
    token = TableToken(header=("A", "B", "C"), rows=(("1", "2", "3"), ("4", "5", "6")))
    reader = render(translated(bridge, [token]))
    (table,) = reader.tables
    assert len(table.rows) == 3
    assert len(table.columns) == 3
    first_cell = table.cell(0, 0)._tc.xml
    assert 'w:type="pct"' in first_cell and 'w:w="1650"' in first_cell
    assert table.rows[0]._tr.trPr.find(qn("w:tblHeader")) is not None
    assert table.rows[1]._tr.trPr.find(qn("w:tblHeader")) is None
    tbl_xml = table._tbl.xml
    assert 'w:color="666666"' in tbl_xml and 'w:color="000000"' in tbl_xml
    assert table.cell(2, 1).text == "5"


def test_blockquote_code_and_rule(bridge):
    tokens = [
        BlockquoteToken(tokens=(ParagraphToken("quoted"),)),
        CodeToken(text="print(1)\nprint(2)"),
        HrToken(),
    ]
    quote, code, rule = render(translated(bridge, tokens)).paragraphs
    assert "<w:left " in quote._p.xml and 'w:color="AAAAAA"' in quote._p.xml
    assert code.style.name == "Code Style"
    assert 'w:fill="F5F5F5"' in code._p.xml
    assert code.runs[0].font.name == "Courier New"
    assert "<w:bottom " in rule._p.xml
    assert rule.text == ""


def test_math_objects_are_embedded():
    inline = MathObject(element=make_omath("x"), latex="x")
    display = MathObject(element=make_omath("y"), latex="y", display=True)
    paragraph = Paragraph(
        runs=[
            Run(RunKind.PLAIN, "Value ", StyledText("Value ", font="Arial", size_pt=12)),
            Run(RunKind.INLINE_MATH, "$x$", inline),
            Run(RunKind.DISPLAY_MATH, "$$y$$", display),
        ]
    )
    document = Document(blocks=[paragraph])
    first = DocxReader(io.BytesIO(render_document(document)))
    second = DocxReader(io.BytesIO(render_document(document)))
    for reader in (first, second):
        p = reader.paragraphs[0]._p
        assert len(p.findall(".//" + qn("m:oMath"))) == 2
        assert p.find(qn("m:oMathPara")) is not None


def test_fallback_run_formatting():
    fallback = StyledText(r"$\foo{$", font="Courier New", size_pt=12, color="0066CC", fallback=True)
    reader = render([Paragraph(runs=[Run(RunKind.INLINE_MATH, r"$\foo{$", fallback)])])
    run = reader.paragraphs[0].runs[0]
    assert run.text == r"$\foo{$"
    assert run.font.name == "Courier New"
    assert str(run.font.color.rgb) == "0066CC"


def test_metadata_sets_core_properties():
    reader = render([], metadata={"title": "Report", "author": "Ops", "keywords": ["a", "b"]})
    assert reader.core_properties.title == "Report"
    assert reader.core_properties.author == "Ops"
    assert reader.core_properties.keywords == "a, b"


def test_invalid_style_raises_assembly_error():
    config = default_style_config()
    broken = replace(config, headings={1: HeadingStyle(size_pt=16, spacing=Spacing(), color="not-a-color")})
    with pytest.raises(AssemblyError):
        render_document(Document(blocks=[]), broken)

import asyncio
import io
import zipfile

from docx import Document as DocxReader
from docx.oxml.ns import qn

from conftest import StubBridge
from Md2Doc import converter
from Md2Doc.errors import MalformedTokenError
from Md2Doc.math_bridge import MathBridge
from Md2Doc.model import Heading, Paragraph, Spacer

SAMPLE = """\
---
title: Physics notes
---

# Title

Some **bold** and $x^2$ text.

| Quantity | Symbol |
|---|---|
| Energy | $E$ |


Closing line with $$\\frac{a}{b}$$.
"""


def document_xml(data: bytes) -> bytes:
    with zipfile.ZipFile(io.BytesIO(data)) as package:
        return package.read("word/document.xml")


def test_build_document_blocks(bridge):
    document = converter.build_document("# Title\n\nSome **bold** and $x^2$ text.", bridge=bridge)
    heading, paragraph = document.blocks
    assert isinstance(heading, Heading) and heading.text == "Title"
    assert isinstance(paragraph, Paragraph)
    assert [run.raw for run in paragraph.runs] == ["Some ", "**bold**", " and ", "$x^2$", " text."]


def test_convert_sample_document(bridge):
    data = converter.convert_markdown_sync(SAMPLE, bridge=bridge)
    reader = DocxReader(io.BytesIO(data))
    assert reader.core_properties.title == "Physics notes"
    assert reader.paragraphs[0].text == "Title"
    assert reader.paragraphs[0].style.name == "Heading 1"
    body = reader.paragraphs[1]
    bold_runs = [run for run in body.runs if run.bold]
    assert [run.text for run in bold_runs] == ["bold"]
    assert body._p.find(qn("m:oMath")) is not None
    assert len(reader.tables) == 1
    assert ("\\frac{a}{b}", True) in bridge.calls


def test_spacers_collapse_in_full_conversion(bridge):
    document = converter.build_document("One\n\n\n\n\nTwo", bridge=bridge)
    assert [type(block) for block in document.blocks] == [Paragraph, Spacer, Paragraph]


def test_conversion_is_repeatable(bridge):
    first = converter.convert_markdown_sync(SAMPLE, bridge=bridge)
    second = converter.convert_markdown_sync(SAMPLE, bridge=bridge)
    assert document_xml(first) == document_xml(second)


def test_math_gate_is_lazy():
    bridge = StubBridge()
    converter.convert_markdown_sync("No formulas here.", bridge=bridge)
    assert bridge.ready_calls == 0
    converter.convert_markdown_sync("Area $r^2$", bridge=bridge)
    assert bridge.ready_calls == 1


def test_malformed_formula_degrades_in_place():
    data = converter.convert_markdown_sync("Broken $\\foo{$ formula", bridge=MathBridge())
    reader = DocxReader(io.BytesIO(data))
    runs = reader.paragraphs[0].runs
    fallback = [run for run in runs if run.text == "$\\foo{$"]
    assert len(fallback) == 1
    assert fallback[0].font.name == "Courier New"
    assert str(fallback[0].font.color.rgb) == "0066CC"


def test_batch_isolates_failures(bridge):
    texts = ["# One", "---\n- not a mapping\n---\n\nBody", "Two $y$"]
    results = asyncio.run(converter.convert_batch(texts, bridge=bridge))
    assert isinstance(results[0], bytes)
    assert isinstance(results[1], MalformedTokenError)
    assert isinstance(results[2], bytes)


def test_unknown_command_degrades_in_place():
    document = converter.build_document("Value $\\foo$ here", bridge=MathBridge())
    (paragraph,) = document.blocks
    fallback = paragraph.runs[1].content
    assert fallback.text == "$\\foo$"
    assert fallback.fallback
    assert fallback.color == "0066CC"
    assert fallback.font == "Courier New"

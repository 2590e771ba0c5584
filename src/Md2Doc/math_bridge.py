from __future__ import annotations

import asyncio
import html.entities
import logging
import re
import threading
import xml.etree.ElementTree as ET
from typing import Callable

import latex2mathml.converter
import mathml2omml
from docx.oxml import OxmlElement, parse_xml
from docx.oxml.ns import nsdecls, qn

from .errors import ConversionError, MathEngineError
from .model import MathObject

logger = logging.getLogger(__name__)

# latex2mathml has no \text support; \mathrm keeps the characters but renders
# them in math roman instead of the surrounding text font.
_TEXT_COMMAND_RE = re.compile(r"\\text\{([^}]+)\}")

# latex2mathml copies unknown control sequences into token elements verbatim.
_UNKNOWN_COMMAND_RE = re.compile(r"\\[A-Za-z]+")

_PROBE_FORMULA = "x^2"


def preprocess(latex: str) -> str:
    """Rewrite commands the converter cannot handle into supported ones."""
    return _TEXT_COMMAND_RE.sub(r"\\mathrm{\1}", latex)


class MathBridge:
    """LaTeX to OMML conversion guarded by a one-time readiness gate."""

    def __init__(
        self,
        to_mathml: Callable[[str], str] | None = None,
        to_omml: Callable[..., str] | None = None,
    ) -> None:
        self._to_mathml = to_mathml or latex2mathml.converter.convert
        self._to_omml = to_omml or mathml2omml.convert
        self._lock = threading.Lock()
        self._ready = False
        self._entities: dict[str, int] = {}

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def ready(self) -> None:
        """Start the engine once; later calls return immediately."""
        if self._ready:
            return
        await asyncio.to_thread(self._start)

    def _start(self) -> None:
        with self._lock:
            if self._ready:
                return
            self._entities = dict(html.entities.name2codepoint)
            try:
                self._convert(_PROBE_FORMULA, display=False)
            except ConversionError as exc:
                raise MathEngineError(f"Math engine failed its start-up probe: {exc.reason}") from exc
            self._ready = True
            logger.info("Math engine initialized")

    def convert(self, latex: str, display: bool = False) -> MathObject:
        if not self._ready:
            self._start()
        return self._convert(latex, display)

    def _convert(self, latex: str, display: bool) -> MathObject:
        source = latex.strip()
        if not source:
            raise ConversionError(latex, "empty formula")
        _check_braces(source)

        prepared = preprocess(source)
        if prepared != source:
            logger.info("Replaced \\text{} with \\mathrm{} for conversion")
        try:
            mathml = self._to_mathml(prepared)
        except Exception as exc:  # the converters raise assorted exception types
            raise ConversionError(latex, str(exc) or type(exc).__name__) from exc
        _check_supported(latex, mathml)
        try:
            omml = self._to_omml(mathml, self._entities)
            element = _omml_element(omml)
        except Exception as exc:  # the converters raise assorted exception types
            raise ConversionError(latex, str(exc) or type(exc).__name__) from exc
        if not len(element):
            raise ConversionError(latex, "converter produced an empty math object")
        return MathObject(element=element, latex=latex, display=display)


def _check_braces(latex: str) -> None:
    depth = 0
    escaped = False
    for char in latex:
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth < 0:
                raise ConversionError(latex, "unexpected closing brace")
    if depth:
        raise ConversionError(latex, "unbalanced braces")


def _check_supported(latex: str, mathml: str) -> None:
    try:
        root = ET.fromstring(mathml)
    except ET.ParseError as exc:
        raise ConversionError(latex, f"converter produced invalid MathML: {exc}") from exc
    for node in root.iter():
        match = _UNKNOWN_COMMAND_RE.match((node.text or "").strip())
        if match:
            raise ConversionError(latex, f"unsupported command {match.group(0)}")


def _omml_element(omml: str):
    container = parse_xml(f"<m:oMathPara {nsdecls('m', 'w')}>{omml}</m:oMathPara>")
    omath = container.find(qn("m:oMath"))
    if omath is None:
        omath = OxmlElement("m:oMath")
        for child in list(container):
            omath.append(child)
    else:
        container.remove(omath)
    return omath


_bridge: MathBridge | None = None
_bridge_lock = threading.Lock()


def get_math_bridge() -> MathBridge:
    """Return the process-wide bridge instance."""
    global _bridge
    with _bridge_lock:
        if _bridge is None:
            _bridge = MathBridge()
        return _bridge

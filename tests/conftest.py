from __future__ import annotations

import pytest
from docx.oxml import OxmlElement

from Md2Doc.errors import ConversionError
from Md2Doc.model import MathObject


def make_omath(text: str):
    omath = OxmlElement("m:oMath")
    run = OxmlElement("m:r")
    t = OxmlElement("m:t")
    t.text = text
    run.append(t)
    omath.append(run)
    return omath


class StubBridge:
    """Math bridge double that fails on a chosen set of formulas."""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.calls: list[tuple[str, bool]] = []
        self.ready_calls = 0
        self.is_ready = False

    async def ready(self) -> None:
        self.ready_calls += 1
        self.is_ready = True

    def convert(self, latex: str, display: bool = False) -> MathObject:
        self.calls.append((latex, display))
        if latex in self.fail:
            raise ConversionError(latex, "unsupported construct")
        return MathObject(element=make_omath(latex), latex=latex, display=display)


@pytest.fixture
def bridge() -> StubBridge:
    return StubBridge(fail={r"\foo{"})

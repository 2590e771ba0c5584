from __future__ import annotations

from dataclasses import dataclass

from .model import Spacer, Spacing

SPACER_SPACING = Spacing(before=80, after=80)


@dataclass
class SpacingCoordinator:
    """Decides where blank spacer paragraphs go between blocks of different kinds.

    A spacer is emitted when a blank-line token follows a different kind of
    block. Runs of blank tokens collapse into a single spacer, and any real
    block resets the run.
    """

    last_kind: str | None = None
    consecutive_breaks: int = 0

    def observe(self, kind: str) -> Spacer | None:
        spacer = None
        if self.last_kind is not None and self.last_kind != kind:
            if kind == "space":
                self.consecutive_breaks += 1
                if self.consecutive_breaks <= 1:
                    spacer = Spacer(spacing=SPACER_SPACING)
            else:
                self.consecutive_breaks = 0
        if kind != "space":
            self.consecutive_breaks = 0
        self.last_kind = kind
        return spacer

"""A progress bar model that shows a percentage or a custom label."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

Colour = tuple[int, int, int]

HIGHLIGHT: Colour = (0, 120, 215)
BACKGROUND: Colour = (255, 255, 250)


@dataclass
class TextProgress:
    """Position, range and label of a text progress bar.

    ``width`` is the pixel width of the bar once it is shown; until then
    position changes are refused.
    """

    lower: int = 0
    upper: int = 100
    pos: int = 0
    step: int = 1
    show_text: bool = True
    text: str = ""
    fore_colour: Colour = HIGHLIGHT
    back_colour: Colour = BACKGROUND
    text_fore_colour: Colour = HIGHLIGHT
    text_back_colour: Colour = BACKGROUND
    width: Optional[int] = None
    redraws: int = 0
    _drawn_width: int = field(default=-1, repr=False)

    def set_range(self, lower: int, upper: int) -> None:
        self.lower = lower
        self.upper = upper

    def fraction(self) -> float:
        """Share of the range covered by the position; 0.0 for an empty range."""
        if self.upper == self.lower:
            return 0.0
        return (self.pos - self.lower) / (self.upper - self.lower)

    def bar_width(self, width: int) -> int:
        """Width of the filled part of a bar ``width`` pixels wide."""
        return int(self.fraction() * width)

    def label(self) -> str:
        """The text drawn on the bar, or an empty string when text is hidden."""
        if not self.show_text:
            return ""
        if self.text:
            return self.text
        return f"{int(self.fraction() * 100.0)}%"

    def set_pos(self, pos: int) -> int:
        """Move to ``pos`` and return the old position, or -1 if not shown."""
        if self.width is None:
            return -1
        old = self.pos
        self.pos = pos
        drawn = self.bar_width(self.width)
        if drawn != self._drawn_width:
            self._drawn_width = drawn
            self.redraws += 1
        return old

    def step_it(self) -> int:
        return self.set_pos(self.pos + self.step)

    def offset_pos(self, delta: int) -> int:
        return self.set_pos(self.pos + delta)

    def set_step(self, step: int) -> int:
        """Set the step size and return the previous one."""
        old = self.step
        self.step = step
        return old

    def set_text(self, text: Optional[str]) -> bool:
        """Replace the label text; return whether it changed."""
        text = text or ""
        if text == self.text:
            return False
        self.text = text
        self.redraws += 1
        return True

    def resize(self, width: int) -> None:
        """Set the bar width and force a redraw at the next position change."""
        if width < 0:
            raise ValueError("width must not be negative")
        self.width = width
        self._drawn_width = -1
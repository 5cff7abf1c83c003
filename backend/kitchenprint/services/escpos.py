"""
ESC/POS ticket documents

Tickets are first laid out as a line-structured TicketDocument (plain text
lines with alignment and emphasis, plus feed/cut markers) and only then
encoded to the printer command byte stream with python-escpos' Dummy
printer. Wrapping happens at layout time, so no printed line is ever wider
than the configured character width.
"""
import textwrap
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import List, Optional, Union

from escpos.printer import Dummy

# Western European code page: covers Spanish accents, ñ, ¿ and ¡
CODE_PAGE = "CP850"


class Align(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class TextSize(IntEnum):
    """Emphasis sizes as configured per printer (0=small .. 3=large)"""
    SMALL = 0
    NORMAL = 1
    MEDIUM = 2
    LARGE = 3

    @property
    def width_factor(self) -> int:
        return 2 if self is TextSize.LARGE else 1


@dataclass(frozen=True)
class TicketLine:
    text: str
    align: Align = Align.LEFT
    size: TextSize = TextSize.NORMAL
    bold: bool = False
    underline: bool = False


@dataclass(frozen=True)
class Feed:
    lines: int = 1


@dataclass(frozen=True)
class Cut:
    partial: bool = True


Element = Union[TicketLine, Feed, Cut]


@dataclass
class TicketDocument:
    """
    A ticket as printable lines.

    `width` is the number of characters per line at normal size. Double
    width text (TextSize.LARGE) fits half as many characters.
    """
    width: int
    line_spacing: Optional[int] = None  # dots; None keeps the printer default
    elements: List[Element] = field(default_factory=list)

    def effective_width(self, size: TextSize = TextSize.NORMAL) -> int:
        return max(1, self.width // size.width_factor)

    def text(
        self,
        text: str,
        *,
        align: Align = Align.LEFT,
        size: TextSize = TextSize.NORMAL,
        bold: bool = False,
        underline: bool = False,
        indent: str = "",
    ) -> "TicketDocument":
        """Add text, wrapped to the width available at `size`."""
        width = self.effective_width(size)
        for line in wrap_text(text, width, indent=indent):
            self.elements.append(TicketLine(line, align, size, bold, underline))
        return self

    def two_columns(
        self,
        left: str,
        right: str,
        *,
        size: TextSize = TextSize.NORMAL,
        bold: bool = False,
    ) -> "TicketDocument":
        """Left text and right-aligned value; the value drops to its own line when both don't fit."""
        width = self.effective_width(size)
        if len(left) + len(right) + 1 <= width:
            line = left + " " * (width - len(left) - len(right)) + right
            self.elements.append(TicketLine(line, Align.LEFT, size, bold))
            return self

        for line in wrap_text(left, width):
            self.elements.append(TicketLine(line, Align.LEFT, size, bold))
        for line in wrap_text(right, width):
            self.elements.append(TicketLine(line.rjust(width), Align.LEFT, size, bold))
        return self

    def separator(self, char: str = "-") -> "TicketDocument":
        self.elements.append(TicketLine(char * self.width))
        return self

    def blank(self) -> "TicketDocument":
        self.elements.append(TicketLine(""))
        return self

    def feed(self, lines: int = 1) -> "TicketDocument":
        self.elements.append(Feed(lines))
        return self

    def cut(self, partial: bool = True) -> "TicketDocument":
        self.elements.append(Cut(partial))
        return self

    @property
    def lines(self) -> List[TicketLine]:
        return [e for e in self.elements if isinstance(e, TicketLine)]

    def plain_text(self) -> str:
        """Printable text only, one line per row (used for previews and tests)."""
        return "\n".join(line.text for line in self.lines)

    def to_bytes(self) -> bytes:
        return render_escpos(self)


def wrap_text(text: str, width: int, *, indent: str = "") -> List[str]:
    """
    Wrap text to `width` columns keeping explicit line breaks.

    Words longer than the width are split; an empty string yields one
    empty line.
    """
    if width <= len(indent):
        indent = ""
    lines: List[str] = []
    for paragraph in (text or "").splitlines() or [""]:
        wrapped = textwrap.wrap(
            paragraph,
            width=width,
            initial_indent=indent,
            subsequent_indent=indent,
            break_long_words=True,
            break_on_hyphens=False,
        )
        lines.extend(wrapped or [""])
    return lines


def _size_kwargs(size: TextSize) -> dict:
    if size is TextSize.SMALL:
        return {"font": "b", "normal_textsize": True}
    if size is TextSize.MEDIUM:
        return {"font": "a", "double_height": True, "double_width": False}
    if size is TextSize.LARGE:
        return {"font": "a", "double_height": True, "double_width": True}
    return {"font": "a", "normal_textsize": True}


def render_escpos(document: TicketDocument) -> bytes:
    """Encode a document as an ESC/POS command stream."""
    printer = Dummy()
    printer.hw("INIT")
    printer.charcode(CODE_PAGE)
    if document.line_spacing is not None:
        printer.line_spacing(document.line_spacing)

    for element in document.elements:
        if isinstance(element, TicketLine):
            printer.set(
                align=element.align.value,
                bold=element.bold,
                underline=1 if element.underline else 0,
                **_size_kwargs(element.size),
            )
            printer.text(element.text + "\n")
        elif isinstance(element, Feed):
            printer.ln(element.lines)
        elif isinstance(element, Cut):
            printer.cut(mode="PART" if element.partial else "FULL")

    return printer.output

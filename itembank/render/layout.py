"""Page geometry and text measurement for printed exams.

All layout happens in millimetres on a y-down page; conversion to PDF
points happens only when drawing.
"""

from __future__ import annotations

import logging

import fitz  # type: ignore

logger = logging.getLogger(__name__)

MM_TO_PT = 72.0 / 25.4

# (width, height) in millimetres
PAPER_SIZES: dict[str, tuple[float, float]] = {
    "a4": (210.0, 297.0),
    "letter": (215.9, 279.4),
    "legal": (215.9, 355.6),
    "short-bond": (215.9, 279.4),
    "long-bond": (215.9, 355.6),
}

REGULAR_FONT = "helv"
BOLD_FONT = "hebo"

BLACK = (0.0, 0.0, 0.0)
RULE_GREY = (200 / 255, 200 / 255, 200 / 255)
ANSWER_BLUE = (70 / 255, 130 / 255, 180 / 255)

FOOTER_OFFSET_MM = 10.0
FOOTER_FONT_SIZE = 8


def mm(value: float) -> float:
    """Millimetres to PDF points."""
    return value * MM_TO_PT


def paper_dimensions(paper_size: str) -> tuple[float, float]:
    """(width, height) in mm for a named paper size.

    Raises:
        ValueError: If the size is unknown.
    """
    key = (paper_size or "").strip().lower()
    if key not in PAPER_SIZES:
        raise ValueError(f"Unknown paper size '{paper_size}', expected one of {sorted(PAPER_SIZES)}")
    return PAPER_SIZES[key]


def text_width_mm(text: str, fontsize: float, fontname: str = REGULAR_FONT) -> float:
    """Rendered width of `text` in mm, from the font's real metrics."""
    return fitz.get_text_length(text, fontname=fontname, fontsize=fontsize) / MM_TO_PT


def wrap_text(text: str, max_width_mm: float, fontsize: float, fontname: str = REGULAR_FONT) -> list[str]:
    """Greedy word wrap to `max_width_mm`.

    Explicit newlines are kept. Words wider than the line are split by
    character. Always returns at least one line.
    """
    lines: list[str] = []
    for paragraph in (text or "").split("\n"):
        words = paragraph.split()
        if not words:
            lines.append("")
            continue
        current = ""
        for word in words:
            candidate = f"{current} {word}" if current else word
            if text_width_mm(candidate, fontsize, fontname) <= max_width_mm:
                current = candidate
                continue
            if current:
                lines.append(current)
            current = ""
            while text_width_mm(word, fontsize, fontname) > max_width_mm and len(word) > 1:
                cut = len(word) - 1
                while cut > 1 and text_width_mm(word[:cut], fontsize, fontname) > max_width_mm:
                    cut -= 1
                lines.append(word[:cut])
                word = word[cut:]
            current = word
        lines.append(current)
    return lines or [""]


class PageCursor:
    """Drawing position on the current page of a document being built.

    One cursor is created per render call, so nothing is shared between
    documents.
    """

    def __init__(
        self,
        doc: fitz.Document,
        paper_size: str,
        margin_mm: float,
        page_numbering: bool,
    ):
        self.doc = doc
        self.width, self.height = paper_dimensions(paper_size)
        self.margin = margin_mm
        self.page_numbering = page_numbering
        self.page: fitz.Page | None = None
        self.page_index = 0
        self.y = margin_mm
        self.new_page()

    # -- geometry -------------------------------------------------------------

    @property
    def content_width(self) -> float:
        return self.width - 2 * self.margin

    @property
    def bottom(self) -> float:
        return self.height - self.margin

    @property
    def page_capacity(self) -> float:
        """Usable height of an empty page."""
        return self.bottom - self.margin

    @property
    def remaining(self) -> float:
        return self.bottom - self.y

    @property
    def page_number(self) -> int:
        return self.page_index + 1

    # -- pagination -----------------------------------------------------------

    def new_page(self) -> None:
        if self.page is not None:
            self.stamp_footer()
            self.page_index += 1
        self.page = self.doc.new_page(width=mm(self.width), height=mm(self.height))
        self.y = self.margin
        logger.debug(f"Started page {self.page_number}")

    def ensure(self, height: float) -> bool:
        """Break to a new page unless `height` fits. Returns True on a break."""
        if self.y + height <= self.bottom or self.y <= self.margin:
            return False
        self.new_page()
        return True

    def stamp_footer(self) -> None:
        if not self.page_numbering or self.page is None:
            return
        label = f"Page {self.page_number}"
        x = (self.width - text_width_mm(label, FOOTER_FONT_SIZE)) / 2
        self.text(x, self.height - FOOTER_OFFSET_MM, label, FOOTER_FONT_SIZE)

    def finish(self) -> bytes:
        self.stamp_footer()
        return self.doc.tobytes()

    # -- drawing (mm coordinates, y is the text baseline) ---------------------

    def text(
        self,
        x: float,
        y: float,
        text: str,
        fontsize: float,
        fontname: str = REGULAR_FONT,
        color: tuple[float, float, float] = BLACK,
    ) -> None:
        self.page.insert_text(
            fitz.Point(mm(x), mm(y)),
            text,
            fontsize=fontsize,
            fontname=fontname,
            color=color,
        )

    def centered_text(self, y: float, text: str, fontsize: float, fontname: str = REGULAR_FONT) -> None:
        x = (self.width - text_width_mm(text, fontsize, fontname)) / 2
        self.text(max(x, self.margin), y, text, fontsize, fontname)

    def line(self, x0: float, y0: float, x1: float, y1: float, color=BLACK, width: float = 0.5) -> None:
        self.page.draw_line(fitz.Point(mm(x0), mm(y0)), fitz.Point(mm(x1), mm(y1)), color=color, width=width)

    def circle(self, cx: float, cy: float, radius: float, filled: bool = False) -> None:
        self.page.draw_circle(
            fitz.Point(mm(cx), mm(cy)),
            mm(radius),
            color=BLACK,
            fill=BLACK if filled else None,
            width=0.5,
        )

    def square(self, x: float, y: float, size: float, crossed: bool = False) -> None:
        self.page.draw_rect(fitz.Rect(mm(x), mm(y), mm(x + size), mm(y + size)), color=BLACK, width=0.5)
        if crossed:
            self.line(x, y, x + size, y + size)
            self.line(x + size, y, x, y + size)

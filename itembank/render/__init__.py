"""Printable exam and answer key rendering."""

from itembank.render.layout import PAPER_SIZES
from itembank.render.renderer import (
    RenderOptions,
    render,
    render_answer_key,
    render_exam_set,
)

__all__ = [
    "PAPER_SIZES",
    "RenderOptions",
    "render",
    "render_answer_key",
    "render_exam_set",
]

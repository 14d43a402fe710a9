from __future__ import annotations

from ctxslice.buffer import Position, TextDocument
from ctxslice.services.parse_service import create_parser
from ctxslice.services.source_view import SourceView
from ctxslice.utils import OffsetRange

SOURCE = (
    "const a = 1;\n"
    "\n"
    "// adds numbers\n"
    "// twice\n"
    "function add(x, y) {\n"
    "  return x + y;\n"
    "}\n"
    "const b = 2;"
)

NESTED = (
    "const y = 1;\n"
    "function f() {\n"
    "  if (y) {\n"
    "    a();\n"
    "    b();\n"
    "  }\n"
    "  c();\n"
    "}\n"
)


def _view(text: str = SOURCE) -> SourceView:
    doc = TextDocument(text)
    source = doc.get_value().encode("utf-8")
    return SourceView(doc, create_parser("javascript").parse(source), source)


def test_lines_range_is_clamped_and_full_line():
    view = _view()

    span = view.lines_range(-3, 1)
    assert span == OffsetRange(0, len("const a = 1;"))
    assert view.text_for(view.lines_range(8, 40)) == "const b = 2;"
    assert view.text_for(view.lines_range(6, 2)) == "  return x + y;"


def test_leading_comments_are_attached_to_blocks():
    view = _view()
    function = view.root.named_children[3]

    assert function.type == "function_declaration"
    assert view.span_lines(view.expand_with_leading_comments(function)) == (3, 7)
    assert view.span_lines(view.expand_to_full_lines(function)) == (5, 7)
    assert view.span_lines(view.expand(function, include_comments=False)) == (5, 7)
    assert view.leading_comment_text_at(5) == "adds numbers twice"
    assert view.leading_comment_text_at(1) == ""


def test_syntax_sanity_never_ends_inside_a_block():
    view = _view()

    assert view.expand_with_syntax_sanity(6, 6) == (5, 7)
    assert view.expand_with_syntax_sanity(1, 6) == (1, 7)
    assert view.expand_with_syntax_sanity(-10, 99) == (1, 8)


def test_syntax_sanity_widens_to_the_outermost_block():
    view = _view(NESTED)

    assert view.expand_with_syntax_sanity(1, 4) == (1, 8)
    assert view.expand_with_syntax_sanity(5, 8) == (2, 8)
    assert view.expand_with_syntax_sanity(4, 5) == (2, 8)


def test_navigation_misses():
    view = _view()

    assert view.node_at(Position(0, 1)) is None
    assert view.node_at(Position(99, 1)) is None
    assert view.node_at(Position(6, 3)) is not None

    empty = _view("")
    assert empty.is_empty
    assert empty.node_at(Position(1, 1)) is None

    detached = SourceView(TextDocument("const a = 1;"), None, b"const a = 1;")
    assert detached.root is None
    assert detached.node_at(Position(1, 1)) is None


def test_text_from_ranges_joins_with_blank_line():
    view = _view()

    text = view.text_from_ranges(
        [view.lines_range(1, 1), OffsetRange(3, 3), view.lines_range(8, 8)]
    )

    assert text == "const a = 1;\n\nconst b = 2;"


def test_point_at_counts_utf8_columns():
    view = _view("const s = 'é' + x;")

    assert view.point_at(Position(1, 17)) == (0, 17)
    assert view.text_of(view.node_at(Position(1, 17))) == "x"

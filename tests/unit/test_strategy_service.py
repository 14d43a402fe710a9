from ctxslice.buffer import Position, TextDocument
from ctxslice.config import ContextOptions
from ctxslice.services.parse_service import create_parser
from ctxslice.services.source_view import SourceView
from ctxslice.services.strategy_service import (
    ENCLOSING_BLOCK_WITH_CONTEXT,
    ENCLOSING_FUNCTION,
    FALLBACK_LINES,
    TOP_LEVEL_WITH_SYNTAX_SANITY,
    looks_unfinished,
    select_context,
)

SOURCE = (
    "const limit = 10;\n"
    "\n"
    "function outer(items) {\n"
    "  items.forEach(function (item) {\n"
    "    if (item > limit) {\n"
    "      console.log(item);\n"
    "    }\n"
    "  });\n"
    "}\n"
    "\n"
    "const tail = 1;\n"
)

OUTER = "".join(SOURCE.splitlines(keepends=True)[2:9])


def _view(text: str = SOURCE, parsed: bool = True) -> SourceView:
    doc = TextDocument(text)
    source = doc.get_value().encode("utf-8")
    tree = create_parser("javascript").parse(source) if parsed else None
    return SourceView(doc, tree, source)


def test_enclosing_block_keeps_top_level_statement_whole():
    view = _view()

    result = select_context(view, Position(6, 7), ContextOptions(fallback_line_window=1))

    assert result.strategy == ENCLOSING_BLOCK_WITH_CONTEXT
    assert result.text == "\n" + OUTER
    assert result.text == view.buffer.get_value()[result.start_offset : result.end_offset]


def test_nesting_level_switches_to_enclosing_function():
    view = _view()
    options = ContextOptions(fallback_line_window=1, nesting_level=1)

    result = select_context(view, Position(6, 7), options)

    assert result.strategy == ENCLOSING_FUNCTION
    assert "function outer(items) {" in result.text


def test_top_level_cursor_widens_to_whole_blocks():
    view = _view()

    result = select_context(view, Position(1, 3), ContextOptions(fallback_line_window=3))

    assert result.strategy == TOP_LEVEL_WITH_SYNTAX_SANITY
    assert result.text == "const limit = 10;\n\n" + OUTER.rstrip("\n")


def test_top_level_window_does_not_stop_at_a_nested_block():
    text = (
        "const y = 1;\n"
        "function f() {\n"
        "  if (y) {\n"
        "    a();\n"
        "    b();\n"
        "  }\n"
        "  c();\n"
        "}\n"
    )
    view = _view(text)

    result = select_context(view, Position(1, 5), ContextOptions(fallback_line_window=3))

    assert result.strategy == TOP_LEVEL_WITH_SYNTAX_SANITY
    assert result.text == text.rstrip("\n")


def test_forced_raw_lines():
    view = _view()
    options = ContextOptions(fallback_line_window=1, force_raw_lines_around_cursor=True)

    result = select_context(view, Position(6, 7), options)

    assert result.strategy == FALLBACK_LINES
    assert result.text == (
        "    if (item > limit) {\n      console.log(item);\n    }"
    )


def test_missing_tree_uses_raw_lines():
    view = _view(parsed=False)

    result = select_context(view, Position(11, 1), ContextOptions(fallback_line_window=1))

    assert result.strategy == FALLBACK_LINES
    assert result.text == "\nconst tail = 1;\n"


def test_unfinished_code_uses_hybrid_slice():
    text = "const base = 1;\nfunction draft(a) {\n  if (a > base) {\n    return a"
    view = _view(text)

    result = select_context(view, Position(4, 13), ContextOptions(fallback_line_window=2))

    assert result.strategy == FALLBACK_LINES
    assert result.text.endswith("return a")
    assert "function draft(a) {" in result.text


def test_empty_buffer_yields_empty_text():
    view = _view("")

    result = select_context(view, Position(1, 1), ContextOptions())

    assert result.strategy == FALLBACK_LINES
    assert result.text == ""
    assert (result.start_offset, result.end_offset) == (0, 0)


def test_selection_is_stable_for_same_input():
    view = _view()
    options = ContextOptions(fallback_line_window=2)

    assert select_context(view, Position(5, 3), options) == select_context(
        view, Position(5, 3), options
    )


def test_looks_unfinished_heuristics():
    assert looks_unfinished(_view("const total = 1;"), 1) is False
    assert looks_unfinished(_view("const total"), 1) is True
    assert looks_unfinished(_view('pm.test("ok", function () {'), 1) is True
    assert looks_unfinished(_view("items.map((x) =>"), 1) is True

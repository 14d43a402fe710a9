from __future__ import annotations

from ctxslice.buffer import TextDocument
from ctxslice.config import TestCallPattern
from ctxslice.services.collector_service import (
    ARROW_FUNCTION_DECL,
    DECLARATION,
    FUNCTION_DECLARATION,
    FUNCTION_EXPRESSION_DECL,
    TEST_BLOCK,
    build_global_index,
    collect_global_declarations,
    collect_test_blocks,
    collect_top_level_blocks,
    collect_whole_blocks_in_window,
    render_test_skeleton,
)
from ctxslice.services.parse_service import create_parser
from ctxslice.services.source_view import SourceView

SOURCE = (
    "// shared limit\n"
    "const limit = 10;\n"
    "export function double(x) {\n"
    "  return x * 2;\n"
    "}\n"
    "const triple = (x) => x * 3;\n"
    "const make = function () { return {}; };\n"
    'pm.test("doubles", function () {\n'
    "  pm.expect(double(2)).to.equal(4);\n"
    "});\n"
    "pm.test(name, function () {});\n"
    "console.log(limit);\n"
)


def _view(text: str = SOURCE) -> SourceView:
    doc = TextDocument(text)
    source = doc.get_value().encode("utf-8")
    return SourceView(doc, create_parser("javascript").parse(source), source)


def test_global_declarations_include_exports_and_comments():
    view = _view()

    blocks = collect_global_declarations(view)

    assert [block.kind for block in blocks] == [
        DECLARATION,
        FUNCTION_DECLARATION,
        DECLARATION,
        DECLARATION,
    ]
    assert view.span_lines(blocks[0]) == (1, 2)
    assert view.span_lines(blocks[1]) == (3, 5)
    assert view.span_lines(collect_global_declarations(view, include_comments=False)[0]) == (2, 2)


def test_test_blocks_require_pattern_and_title():
    view = _view()

    (block,) = collect_test_blocks(view)

    assert block.kind == TEST_BLOCK
    assert view.span_lines(block) == (8, 10)
    assert collect_test_blocks(view, exclude=view.lines_range(9, 9)) == []
    assert collect_test_blocks(view, TestCallPattern("suite", "case")) == []


def test_top_level_blocks_are_classified():
    view = _view()

    kinds = [block.kind for block in collect_top_level_blocks(view)]

    assert kinds == [
        "lexical_declaration",
        FUNCTION_DECLARATION,
        ARROW_FUNCTION_DECL,
        FUNCTION_EXPRESSION_DECL,
        TEST_BLOCK,
    ]


def test_whole_blocks_in_window_keep_blocks_intact():
    view = _view()

    blocks = collect_whole_blocks_in_window(view, 4, 6)

    assert [view.span_lines(block) for block in blocks] == [(3, 5), (6, 6)]


def test_global_index_maps_names_to_blocks():
    view = _view()

    index = build_global_index(view)

    assert set(index) == {"limit", "double", "triple", "make"}
    assert index["double"].kind == FUNCTION_DECLARATION


def test_render_test_skeleton_keeps_literal_and_callee():
    view = _view()
    (block,) = collect_test_blocks(view)

    assert render_test_skeleton(block.node, view.source) == (
        'pm.test("doubles", function () { ... });'
    )

    custom = _view("suite.case(`adds ${n}`, () => {\n  run();\n});\n")
    pattern = TestCallPattern("suite", "case")
    (custom_block,) = collect_test_blocks(custom, pattern)
    assert render_test_skeleton(custom_block.node, custom.source, pattern) == (
        "suite.case(`adds ${n}`, function () { ... });"
    )

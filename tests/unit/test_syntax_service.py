from __future__ import annotations

from ctxslice.buffer import Position, TextDocument
from ctxslice.config import TestCallPattern
from ctxslice.services.parse_service import create_parser
from ctxslice.services.source_view import SourceView
from ctxslice.services.syntax_service import (
    NodeKind,
    container_for,
    count_identifier_uses,
    declared_names,
    elevate_by_levels,
    free_identifiers,
    identifiers_used,
    is_test_call,
    kind_of,
    nearest_enclosing_block,
    nearest_function,
    title_literal,
    title_of_test,
    top_level_ancestor,
    unwrap_export,
    walk_named,
)


def _view(text: str) -> SourceView:
    doc = TextDocument(text)
    source = doc.get_value().encode("utf-8")
    return SourceView(doc, create_parser("javascript").parse(source), source)


def _first(view: SourceView, node_type: str):
    return next(node for node in walk_named(view.root) if node.type == node_type)


def test_kind_of_maps_raw_types():
    view = _view("function a() {}\nconst b = 1;\nif (b) {}\n")

    kinds = [kind_of(child) for child in view.root.named_children]

    assert kinds == [NodeKind.FUNCTION, NodeKind.LEXICAL_DECLARATION, NodeKind.CONTROL_FLOW]
    assert kind_of(None) is NodeKind.OTHER


def test_declared_names_reads_exports_and_declarators():
    view = _view("export const a = 1, b = 2;\nfunction run() {}\nfoo();\n")
    export, function, call = view.root.named_children

    assert unwrap_export(export).type == "lexical_declaration"
    assert declared_names(export, view.source) == ["a", "b"]
    assert declared_names(function, view.source) == ["run"]
    assert declared_names(call, view.source) == []


def test_free_identifiers_skips_local_definitions():
    view = _view(
        "function total(items) {\n"
        "  const scale = 2;\n"
        "  return items.length * rate * scale + offset(items);\n"
        "}\n"
    )
    function = view.root.named_children[0]

    names = free_identifiers(function, view.source)

    assert "rate" in names
    assert "offset" in names
    assert "total" not in names
    assert "scale" not in names
    assert names.index("rate") < names.index("offset")


def test_identifier_usage_counts():
    view = _view("const a = 1;\nconst b = a + a;\nf(b);\n")

    usage = count_identifier_uses(view.root, view.source)

    assert usage["a"] == 2
    assert usage["b"] == 1
    assert usage["f"] == 1
    assert identifiers_used(view.root.named_children[1], view.source) == {"a"}


def test_test_calls_need_a_string_title():
    view = _view(
        'pm.test("status ok", function () {});\n'
        "pm.test(`status ${code} ok`, () => {});\n"
        "pm.test(name, function () {});\n"
        'other.test("x", function () {});\n'
    )
    calls = [child.named_children[0] for child in view.root.named_children]

    assert [is_test_call(call, view.source) for call in calls] == [True, True, False, False]
    assert title_of_test(calls[0], view.source) == "status ok"
    assert title_of_test(calls[1], view.source) == "status  ok"
    assert title_of_test(calls[2], view.source) is None
    assert title_literal(calls[0], view.source) == '"status ok"'
    assert is_test_call(calls[3], view.source, TestCallPattern("other", "test")) is True


def test_function_navigation_and_elevation():
    view = _view(
        "function outer() {\n"
        "  function inner() {\n"
        "    return 1;\n"
        "  }\n"
        "}\n"
    )
    node = view.node_at(Position(3, 5))

    inner = nearest_function(node)
    assert inner.type == "function_declaration"
    assert inner.start_point.row == 1
    assert elevate_by_levels(inner, 1).start_point.row == 0
    assert elevate_by_levels(inner, 50).start_point.row == 0
    assert elevate_by_levels(inner, -3) == inner
    assert nearest_enclosing_block(node).type == "statement_block"
    assert top_level_ancestor(node).start_point.row == 0


def test_container_for_callback_is_the_call():
    view = _view('pm.test("a", function () {\n  let x = 1;\n});\n')
    callback = _first(view, "function_expression")

    assert container_for(callback).type == "call_expression"
    assert nearest_enclosing_block(view.root) is None

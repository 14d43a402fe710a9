"""Node classification and navigation helpers over tree-sitter syntax trees."""

from __future__ import annotations

import re
from collections import Counter
from enum import Enum
from typing import TYPE_CHECKING, Iterator

from ..config import DEFAULT_TEST_PATTERN, MAX_NESTING_LEVEL, TestCallPattern

if TYPE_CHECKING:
    from tree_sitter import Node


class NodeKind(Enum):
    FUNCTION = "function"
    CLASS = "class"
    LEXICAL_DECLARATION = "lexical_declaration"
    VARIABLE_DECLARATION = "variable_declaration"
    EXPRESSION_STATEMENT = "expression_statement"
    EXPORT = "export"
    CONTROL_FLOW = "control_flow"
    CLAUSE = "clause"
    STATEMENT_BLOCK = "statement_block"
    FUNCTION_BODY = "function_body"
    CALL = "call"
    ARGUMENTS = "arguments"
    MEMBER = "member"
    IDENTIFIER = "identifier"
    STRING = "string"
    COMMENT = "comment"
    DECLARATOR = "declarator"
    PROGRAM = "program"
    OTHER = "other"


_KIND_BY_TYPE: dict[str, NodeKind] = {
    "function_declaration": NodeKind.FUNCTION,
    "function_expression": NodeKind.FUNCTION,
    "arrow_function": NodeKind.FUNCTION,
    "method_definition": NodeKind.FUNCTION,
    "generator_function": NodeKind.FUNCTION,
    "generator_function_declaration": NodeKind.FUNCTION,
    "class_method": NodeKind.FUNCTION,
    "function": NodeKind.FUNCTION,
    "class_declaration": NodeKind.CLASS,
    "abstract_class_declaration": NodeKind.CLASS,
    "lexical_declaration": NodeKind.LEXICAL_DECLARATION,
    "variable_declaration": NodeKind.VARIABLE_DECLARATION,
    "expression_statement": NodeKind.EXPRESSION_STATEMENT,
    "export_statement": NodeKind.EXPORT,
    "if_statement": NodeKind.CONTROL_FLOW,
    "for_statement": NodeKind.CONTROL_FLOW,
    "for_in_statement": NodeKind.CONTROL_FLOW,
    "for_of_statement": NodeKind.CONTROL_FLOW,
    "while_statement": NodeKind.CONTROL_FLOW,
    "do_statement": NodeKind.CONTROL_FLOW,
    "try_statement": NodeKind.CONTROL_FLOW,
    "switch_statement": NodeKind.CONTROL_FLOW,
    "catch_clause": NodeKind.CLAUSE,
    "finally_clause": NodeKind.CLAUSE,
    "statement_block": NodeKind.STATEMENT_BLOCK,
    "block_statement": NodeKind.STATEMENT_BLOCK,
    "function_body": NodeKind.FUNCTION_BODY,
    "call_expression": NodeKind.CALL,
    "new_expression": NodeKind.CALL,
    "arguments": NodeKind.ARGUMENTS,
    "member_expression": NodeKind.MEMBER,
    "identifier": NodeKind.IDENTIFIER,
    "string": NodeKind.STRING,
    "template_string": NodeKind.STRING,
    "comment": NodeKind.COMMENT,
    "variable_declarator": NodeKind.DECLARATOR,
    "program": NodeKind.PROGRAM,
}

_WHOLE_BLOCK_KINDS = frozenset(
    {
        NodeKind.FUNCTION,
        NodeKind.CLASS,
        NodeKind.LEXICAL_DECLARATION,
        NodeKind.VARIABLE_DECLARATION,
        NodeKind.EXPRESSION_STATEMENT,
        NodeKind.CONTROL_FLOW,
        NodeKind.EXPORT,
    }
)
_BLOCK_LIKE_KINDS = frozenset(
    {
        NodeKind.FUNCTION,
        NodeKind.CLASS,
        NodeKind.STATEMENT_BLOCK,
        NodeKind.FUNCTION_BODY,
        NodeKind.CONTROL_FLOW,
        NodeKind.CLAUSE,
    }
)
_DECLARATION_KINDS = frozenset(
    {NodeKind.LEXICAL_DECLARATION, NodeKind.VARIABLE_DECLARATION}
)
_QUOTE_RE = re.compile(r"^['\"`]|['\"`]$")
_INTERPOLATION_RE = re.compile(r"\$\{[^}]+\}")


def kind_of(node: "Node | None") -> NodeKind:
    if node is None:
        return NodeKind.OTHER
    return _KIND_BY_TYPE.get(node.type, NodeKind.OTHER)


def is_function_like(node: "Node | None") -> bool:
    return kind_of(node) is NodeKind.FUNCTION


def is_function_body(node: "Node | None") -> bool:
    return kind_of(node) in (NodeKind.STATEMENT_BLOCK, NodeKind.FUNCTION_BODY)


def is_declaration(node: "Node | None") -> bool:
    return kind_of(node) in _DECLARATION_KINDS


def is_whole_block_candidate(node: "Node | None") -> bool:
    return kind_of(node) in _WHOLE_BLOCK_KINDS


def is_block_like(node: "Node | None") -> bool:
    return kind_of(node) in _BLOCK_LIKE_KINDS


def is_call(node: "Node | None") -> bool:
    return kind_of(node) is NodeKind.CALL


def node_text(node: "Node", source: bytes) -> str:
    """Extract text content from a tree-sitter node."""
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def strip_quotes(text: str) -> str:
    return _QUOTE_RE.sub("", text)


def walk_named(node: "Node") -> Iterator["Node"]:
    """Yield *node* and its named descendants in document order."""

    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.named_children))


def iter_ancestors(node: "Node | None") -> Iterator["Node"]:
    """Yield *node* and each of its ancestors, innermost first."""

    current = node
    while current is not None:
        yield current
        current = current.parent


def unwrap_export(node: "Node") -> "Node":
    """Return the declaration inside ``export ...``; other nodes pass through."""

    if kind_of(node) is not NodeKind.EXPORT:
        return node
    inner = node.child_by_field_name("declaration")
    if inner is not None:
        return inner
    for child in node.named_children:
        if is_whole_block_candidate(child) or kind_of(child) is NodeKind.CLASS:
            return child
    return node


def wrap_function_if_argument(node: "Node") -> "Node":
    """Resolve a function passed to a call to the enclosing call expression."""

    parent = node.parent
    while parent is not None and parent.parent is not None:
        if is_call(parent):
            return parent
        parent = parent.parent
    return node


def container_for(node: "Node") -> "Node":
    """Return the node that must be kept whole when *node* is included."""

    if is_function_like(node):
        return wrap_function_if_argument(node)
    if kind_of(node) is NodeKind.EXPRESSION_STATEMENT:
        named = node.named_children
        if len(named) == 1 and is_call(named[0]):
            return named[0]
    return node


def has_error_in_ancestry(node: "Node | None", root: "Node | None") -> bool:
    for current in iter_ancestors(node):
        if current.has_error or current.is_missing:
            return True
    return bool(root is not None and root.has_error)


def nearest_enclosing_block(node: "Node | None") -> "Node | None":
    for current in iter_ancestors(node):
        if current.parent is None:
            break
        if is_block_like(current):
            return current
    return None


def nearest_function(node: "Node | None") -> "Node | None":
    for current in iter_ancestors(node):
        if is_function_like(current):
            return current
        if is_function_body(current) and is_function_like(current.parent):
            return current.parent
        if kind_of(current) is NodeKind.ARGUMENTS:
            for child in current.named_children:
                if is_function_like(child):
                    return child
    return None


def _next_enclosing_function(node: "Node") -> "Node | None":
    parent = node.parent
    while parent is not None:
        if is_function_like(parent):
            return parent
        if is_function_body(parent) and is_function_like(parent.parent):
            return parent.parent
        parent = parent.parent
    return None


def elevate_by_levels(node: "Node", levels: int) -> "Node":
    """Promote a function to its n-th outer enclosing function (n clamped to 0..50)."""

    safe_levels = max(0, min(int(levels or 0), MAX_NESTING_LEVEL))
    current = node
    for _ in range(safe_levels):
        promoted = _next_enclosing_function(current)
        if promoted is None:
            break
        current = promoted
    return current


def top_level_ancestor(node: "Node | None") -> "Node | None":
    """Return the ancestor that is a direct child of the root, if any."""

    last = None
    for current in iter_ancestors(node):
        if current.parent is None:
            return last
        last = current
    return None


def previous_named_sibling(node: "Node") -> "Node | None":
    sibling = node.prev_named_sibling
    while sibling is not None and sibling.is_missing:
        sibling = sibling.prev_named_sibling
    return sibling


def next_named_sibling(node: "Node") -> "Node | None":
    sibling = node.next_named_sibling
    while sibling is not None and sibling.is_missing:
        sibling = sibling.next_named_sibling
    return sibling


def leading_comment_start(node: "Node") -> "Node":
    """Return the first of the comments directly above *node*, or *node* itself."""

    start = node
    previous = node.prev_sibling
    while previous is not None and previous.type == "comment":
        if previous.end_point.row + 1 != start.start_point.row:
            break
        start = previous
        previous = previous.prev_sibling
    return start


def contains_type(node: "Node", types: frozenset[str] | set[str]) -> bool:
    return any(child.type in types for child in walk_named(node))


def is_definition_site(node: "Node") -> bool:
    parent = node.parent
    if parent is None:
        return False
    if parent.type == "variable_declarator":
        named = parent.named_children
        return bool(named) and named[0] == node
    if parent.type == "function_declaration":
        return parent.child_by_field_name("name") == node
    return False


def declared_names(node: "Node", source: bytes) -> list[str]:
    """Names a top-level block defines: a function name or its declarators."""

    target = unwrap_export(node)
    if target.type in ("function_declaration", "generator_function_declaration"):
        name = target.child_by_field_name("name")
        return [node_text(name, source)] if name is not None else []
    if not is_declaration(target):
        return []
    names: list[str] = []
    for current in walk_named(target):
        if current.type != "variable_declarator":
            continue
        ident = current.child_by_field_name("name")
        if ident is not None and ident.type == "identifier":
            text = node_text(ident, source)
            if text and text not in names:
                names.append(text)
    return names


def free_identifiers(node: "Node", source: bytes) -> list[str]:
    """Identifiers read inside *node* but not defined there, in first-seen order."""

    defs: set[str] = set()
    reads: dict[str, None] = {}
    for current in walk_named(node):
        if current.type in ("function_declaration", "generator_function_declaration"):
            name = current.child_by_field_name("name")
            if name is not None:
                defs.add(node_text(name, source))
        elif current.type == "variable_declarator":
            ident = current.child_by_field_name("name")
            if ident is not None and ident.type == "identifier":
                defs.add(node_text(ident, source))
        elif current.type == "identifier" and not is_definition_site(current):
            text = node_text(current, source)
            if text:
                reads.setdefault(text, None)
    return [name for name in reads if name not in defs]


def identifiers_used(node: "Node", source: bytes) -> set[str]:
    """Every non-definition identifier inside *node*."""

    return {
        node_text(current, source)
        for current in walk_named(node)
        if current.type == "identifier" and not is_definition_site(current)
    }


def count_identifier_uses(root: "Node", source: bytes) -> Counter[str]:
    usage: Counter[str] = Counter()
    for current in walk_named(root):
        if current.type != "identifier" or is_definition_site(current):
            continue
        parent = current.parent
        if (
            parent is not None
            and parent.type in ("property_definition", "field_definition")
            and parent.child_by_field_name("key") == current
        ):
            continue
        usage[node_text(current, source)] += 1
    return usage


def call_of_statement(node: "Node") -> "Node | None":
    """Return the call a top-level statement is, or wraps, if any."""

    if is_call(node):
        return node
    if kind_of(node) is NodeKind.EXPRESSION_STATEMENT:
        named = node.named_children
        if len(named) == 1 and is_call(named[0]):
            return named[0]
    return None


def first_argument(call: "Node") -> "Node | None":
    args = call.child_by_field_name("arguments")
    if args is None:
        return None
    named = [child for child in args.named_children if child.type != "comment"]
    return named[0] if named else None


def is_test_call(
    node: "Node | None",
    source: bytes,
    pattern: TestCallPattern = DEFAULT_TEST_PATTERN,
) -> bool:
    """True for ``<object>.<method>("title", ...)`` calls matching *pattern*."""

    if node is None or node.type != "call_expression":
        return False
    callee = node.child_by_field_name("function")
    if callee is None or callee.type != "member_expression":
        return False
    obj = callee.child_by_field_name("object")
    prop = callee.child_by_field_name("property")
    if obj is None or prop is None or obj.type != "identifier":
        return False
    if not pattern.matches(node_text(obj, source), node_text(prop, source)):
        return False
    arg = first_argument(node)
    return arg is not None and kind_of(arg) is NodeKind.STRING


def title_of_test(
    node: "Node | None",
    source: bytes,
    pattern: TestCallPattern = DEFAULT_TEST_PATTERN,
) -> str | None:
    """Return the title of a test call with quotes and interpolations removed."""

    if not is_test_call(node, source, pattern):
        return None
    arg = first_argument(node)
    return _INTERPOLATION_RE.sub("", strip_quotes(node_text(arg, source)))


def title_literal(node: "Node", source: bytes) -> str | None:
    """Return the raw first-argument literal of a call, quotes included."""

    arg = first_argument(node)
    if arg is None or kind_of(arg) is not NodeKind.STRING:
        return None
    return node_text(arg, source)


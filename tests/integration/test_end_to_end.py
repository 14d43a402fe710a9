from itertools import combinations

import pytest

from ctxslice import ContextExtractor, Position, TextDocument
from ctxslice.utils import ranges_overlap

COLLECTION = (
    'const baseUrl = "https://api.example.test";\n'
    "const timeoutMs = 500;\n"
    "\n"
    "function readUser(payload) {\n"
    "  return payload.user;\n"
    "}\n"
    "\n"
    "function readUserName(payload) {\n"
    "  return readUser(payload).name;\n"
    "}\n"
    "\n"
    'pm.test("status is 200", function () {\n'
    "  pm.response.to.have.status(200);\n"
    "});\n"
    "\n"
    'pm.test("user name is present", function () {\n'
    "  const body = pm.response.json();\n"
    "  const name = readUserName(body);\n"
    '  pm.expect(name).to.be.a("string");\n'
    "});\n"
)

CURSOR = Position(18, 5)


@pytest.fixture
def extractor():
    doc = TextDocument(COLLECTION)
    ex = ContextExtractor.create(doc, language="javascript")
    doc.on_did_change_content(ex.on_buffer_changed)
    return ex


def _ranked(extractor, **overrides):
    options = {"fallback_line_window": 1, "max_chars_budget": 1000, **overrides}
    return extractor.get_ranked_context_sections(CURSOR, options)


def test_every_tier_is_filled_without_overlap(extractor):
    sections = _ranked(extractor)

    assert "const name = readUserName(body);" in sections.lines_around_cursor
    assert "status is 200" not in sections.lines_around_cursor
    assert sections.declarations == (
        'const baseUrl = "https://api.example.test";\n\nconst timeoutMs = 500;'
    )
    assert sections.relevant_lines.startswith("function readUser(payload) {")
    assert "function readUserName(payload) {" in sections.relevant_lines
    assert sections.existing_tests == 'pm.test("status is 200", function () { ... });'

    spans = [item for items in sections.meta.offsets.values() for item in items]
    for first, second in combinations(spans, 2):
        assert not ranges_overlap(first, second)


def test_tiers_stay_within_budgets(extractor):
    sections = _ranked(extractor)
    budgets = sections.meta.budgets

    assert (budgets.a, budgets.b, budgets.c, budgets.d) == (400, 300, 200, 100)
    assert len(sections.declarations) <= budgets.b
    assert len(sections.relevant_lines) <= budgets.c
    assert len(sections.existing_tests) <= budgets.d
    assert sections.meta.picked_counts == {"A": 1, "B": 2, "C": 2, "D": 1, "skeletons": 1}


def test_title_tokens_come_from_enclosing_test(extractor):
    sections = _ranked(extractor)

    assert sections.meta.title_tokens == ("user", "name", "is", "present")
    assert sections.meta.strategy == "enclosing-block-with-context"


def test_small_budgets_drop_blocks_instead_of_clipping(extractor):
    sections = _ranked(extractor, tier_percents={"A": 0.97, "B": 0.01, "C": 0.01, "D": 0.01})

    assert sections.declarations == ""
    assert sections.relevant_lines == ""
    assert sections.existing_tests == ""
    assert "readUserName(body)" in sections.lines_around_cursor


def test_debug_explains_skipped_helpers(extractor):
    sections = _ranked(extractor, top_k=1, debug=True)

    assert sections.meta.picked_counts["C"] == 1
    reasons = {item.reason for item in sections.debug.skipped["C"]}
    assert reasons == {"top_k"}
    assert sections.debug.query_tokens


def test_edits_are_picked_up_on_next_query():
    doc = TextDocument(COLLECTION)
    ex = ContextExtractor.create(doc)
    doc.on_did_change_content(ex.on_buffer_changed)

    doc.insert(Position(3, 1), "const retries = 3;\n")
    sections = ex.get_ranked_context_sections(
        Position(19, 5), {"fallback_line_window": 1, "max_chars_budget": 1000}
    )

    assert "const retries = 3;" in sections.declarations
    assert "const name = readUserName(body);" in sections.lines_around_cursor


def test_empty_buffer_yields_empty_sections():
    ex = ContextExtractor.create(TextDocument(""))

    sections = ex.get_ranked_context_sections(Position(1, 1))

    assert sections.lines_around_cursor == ""
    assert sections.declarations == ""
    assert sections.relevant_lines == ""
    assert sections.existing_tests == ""
    assert sections.meta.strategy == "fallback-lines"
    assert sections.meta.budgets.total == 8000


def test_single_line_buffer_is_only_tier_a():
    ex = ContextExtractor.create(TextDocument("const x = 1;"))

    sections = ex.get_ranked_context_sections(Position(1, 1))

    assert sections.lines_around_cursor == "const x = 1;"
    assert sections.meta.strategy == "top-level-with-syntax-sanity"
    assert sections.declarations == ""
    assert sections.meta.picked_counts["B"] == 0


def test_out_of_range_cursor_falls_back_to_raw_lines():
    ex = ContextExtractor.create(TextDocument("const x = 1;\nconst y = 2;"))

    result = ex.get_context_around_cursor(Position(40, 1), {"fallback_line_window": 0})

    assert result.strategy == "fallback-lines"
    assert result.text == "const y = 2;"

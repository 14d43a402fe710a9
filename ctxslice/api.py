"""Public Python API for ctxslice."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Sequence

from .buffer import ContentChangedEvent, Position, TextBuffer
from .config import (
    DEFAULT_DECLARATIONS_BUDGET,
    DEFAULT_LANGUAGE,
    DEFAULT_RANKED_BUDGET,
    DEFAULT_RELEVANT_BUDGET,
    DEFAULT_TEST_PATTERN,
    MIN_RANKED_BUDGET,
    ContextOptions,
    TestCallPattern,
    coerce_options,
)
from .services.budget_service import (
    BudgetLedger,
    TierBudgets,
    derive_budgets,
    pack_texts,
    select_within_budget,
)
from .services.collector_service import (
    DECLARATION,
    HELPER_KINDS,
    BlockRange,
    build_global_index,
    collect_global_declarations,
    collect_test_blocks,
    render_test_skeleton,
)
from .services.dedupe_service import TIER_ORDER, dedupe_tiers, keep_accepted
from .services.dependency_service import (
    TIER_B,
    TIER_C,
    DependencyAddition,
    expand_with_dependencies,
)
from .services.parse_service import ParseManager, ParserSetupError, TreeStatus, create_parser
from .services.ranking_service import (
    RankedBlock,
    build_query_tokens,
    build_title_tokens,
    score_candidates,
)
from .services.similarity_service import SimilarBlock, rank_similar_blocks
from .services.source_view import SourceView
from .services.strategy_service import ContextResult, select_context
from .services.syntax_service import (
    count_identifier_uses,
    declared_names,
    identifiers_used,
    nearest_enclosing_block,
    top_level_ancestor,
)
from .utils import HasOffsets, OffsetRange, ranges_overlap

logger = logging.getLogger(__name__)

__all__ = [
    "ContextExtractor",
    "ContextResult",
    "DebugInfo",
    "DeclarationEntry",
    "DeclarationsMeta",
    "DeclarationsResult",
    "ExtractorError",
    "ParserSetupError",
    "RankedMeta",
    "RankedSections",
    "RelevantBlock",
    "RelevantBlocksMeta",
    "RelevantBlocksResult",
    "TreeStatus",
]

CURRENT_SCOPE = "current-scope"
HIGH_USAGE = "high-usage"
OTHER = "other"
HIGH_USAGE_MIN_USES = 2

OVER_BUDGET = "over_budget"
OVERLAP_EXCLUDED = "overlap_A"
BELOW_THRESHOLD = "below_threshold"
TOP_K_CUTOFF = "top_k"


class ExtractorError(ValueError):
    """Raised when extraction options supplied by the caller are invalid."""


@dataclass(frozen=True, slots=True)
class DeclarationEntry:
    start_offset: int
    end_offset: int
    name: str
    priority: str
    usage_count: int


@dataclass(frozen=True, slots=True)
class DeclarationsMeta:
    total_declarations: int
    current_scope_count: int
    high_usage_count: int
    other_count: int
    budget_used: int
    budget_limit: int


@dataclass(frozen=True, slots=True)
class DeclarationsResult:
    text: str
    declarations: tuple[DeclarationEntry, ...]
    meta: DeclarationsMeta


@dataclass(frozen=True, slots=True)
class RelevantBlock:
    start_offset: int
    end_offset: int
    kind: str
    score: float


@dataclass(frozen=True, slots=True)
class RelevantBlocksMeta:
    total_candidates: int
    above_threshold: int
    budget_used: int
    budget_limit: int
    top_k: int
    min_similarity_threshold: float
    query_tokens: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class RelevantBlocksResult:
    """Similar helpers, best first in ``blocks``; ``text`` follows file order."""

    text: str
    blocks: tuple[RelevantBlock, ...]
    current_block: OffsetRange
    meta: RelevantBlocksMeta


@dataclass(frozen=True, slots=True)
class SkippedBlock:
    start_offset: int
    end_offset: int
    reason: str
    score: float


@dataclass
class DebugInfo:
    title_tokens: list[str]
    query_tokens: list[str]
    budgets: TierBudgets
    scored: dict[str, list[RankedBlock | SimilarBlock]] = field(default_factory=dict)
    picked: dict[str, list[RankedBlock | SimilarBlock]] = field(default_factory=dict)
    skipped: dict[str, list[SkippedBlock]] = field(default_factory=dict)
    deps_added: list[DependencyAddition] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class RankedMeta:
    strategy: str
    budgets: TierBudgets
    offsets: dict[str, list[OffsetRange]]
    picked_counts: dict[str, int]
    title_tokens: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class RankedSections:
    lines_around_cursor: str
    declarations: str
    relevant_lines: str
    existing_tests: str
    meta: RankedMeta
    debug: DebugInfo | None = None


def _coerce_position(position: Position | Sequence[int]) -> Position:
    if isinstance(position, Position):
        return position
    line, column = position
    return Position(int(line), int(column))


class ContextExtractor:
    """Cursor-aware context extraction over one text buffer.

    Construct with :meth:`create`. Feed buffer change events to
    :meth:`on_buffer_changed`; queries reparse lazily before reading.
    """

    def __init__(
        self,
        buffer: TextBuffer,
        parser: Any,
        *,
        test_pattern: TestCallPattern | None = None,
    ) -> None:
        self._buffer = buffer
        self._parse = ParseManager(parser, buffer)
        self._pattern = test_pattern or DEFAULT_TEST_PATTERN
        self._last_debug: DebugInfo | None = None

    @classmethod
    def create(
        cls,
        buffer: TextBuffer,
        *,
        language: str = DEFAULT_LANGUAGE,
        parser: Any = None,
        test_pattern: TestCallPattern | None = None,
    ) -> "ContextExtractor":
        """Build an extractor and parse the buffer once.

        Raises :class:`ParserSetupError` when no parser can be created.
        """

        if parser is None:
            parser = create_parser(language)
        instance = cls(buffer, parser, test_pattern=test_pattern)
        instance._parse.ensure_current()
        return instance

    @property
    def test_pattern(self) -> TestCallPattern:
        return self._pattern

    # Tree lifecycle -----------------------------------------------------

    def get_tree_status(self) -> TreeStatus:
        return self._parse.status()

    def force_build_tree(self) -> None:
        self._parse.ensure_current()

    def on_buffer_changed(self, event: ContentChangedEvent) -> None:
        self._parse.record_change(event)

    def get_last_debug(self) -> DebugInfo | None:
        return self._last_debug

    def _view(self) -> SourceView:
        tree = self._parse.ensure_current()
        return SourceView(self._buffer, tree, self._parse.source)

    @staticmethod
    def _options(options: ContextOptions | Mapping[str, Any] | None) -> ContextOptions:
        try:
            return coerce_options(options)
        except (TypeError, ValueError) as exc:
            raise ExtractorError(str(exc)) from exc

    # Queries ------------------------------------------------------------

    def get_context_around_cursor(
        self,
        position: Position | Sequence[int],
        options: ContextOptions | Mapping[str, Any] | None = None,
    ) -> ContextResult:
        opts = self._options(options)
        return select_context(self._view(), _coerce_position(position), opts, self._pattern)

    def get_global_declarations(
        self,
        position: Position | Sequence[int],
        options: ContextOptions | Mapping[str, Any] | None = None,
    ) -> DeclarationsResult:
        """Top-level declarations, prioritized by use near the cursor, in file order.

        Priority: declarations used inside the cursor's top-level block, then
        those used at least twice in the file, then the rest.
        """

        opts = self._options(options)
        cursor = _coerce_position(position)
        budget = opts.budget_or(DEFAULT_DECLARATIONS_BUDGET)
        view = self._view()

        blocks = collect_global_declarations(view, opts.include_leading_comments)
        if not blocks:
            return DeclarationsResult(
                text="",
                declarations=(),
                meta=DeclarationsMeta(0, 0, 0, 0, 0, budget),
            )

        usage = count_identifier_uses(view.root, view.source)
        in_scope = self._identifiers_in_scope(view, cursor, usage)
        entries: list[tuple[DeclarationEntry, BlockRange]] = []
        for block in blocks:
            names = declared_names(block.node, view.source)
            name = names[0] if names else "unknown"
            count = usage.get(name, 0)
            if name in in_scope:
                priority = CURRENT_SCOPE
            elif count >= HIGH_USAGE_MIN_USES:
                priority = HIGH_USAGE
            else:
                priority = OTHER
            entries.append(
                (
                    DeclarationEntry(block.start_offset, block.end_offset, name, priority, count),
                    block,
                )
            )

        rank = {CURRENT_SCOPE: 0, HIGH_USAGE: 1, OTHER: 2}
        entries.sort(
            key=lambda item: (
                rank[item[0].priority],
                0 if item[0].priority == OTHER else -item[0].usage_count,
                item[0].start_offset,
            )
        )
        ledger = BudgetLedger(budget)
        selected = select_within_budget([entry for entry, _ in entries], ledger)
        selected.sort(key=lambda entry: entry.start_offset)

        counts = Counter(entry.priority for entry in selected)
        return DeclarationsResult(
            text=view.text_from_ranges(selected),
            declarations=tuple(selected),
            meta=DeclarationsMeta(
                total_declarations=len(blocks),
                current_scope_count=counts[CURRENT_SCOPE],
                high_usage_count=counts[HIGH_USAGE],
                other_count=counts[OTHER],
                budget_used=ledger.used,
                budget_limit=budget,
            ),
        )

    @staticmethod
    def _identifiers_in_scope(
        view: SourceView, cursor: Position, usage: Mapping[str, int]
    ) -> set[str]:
        node = view.node_at(cursor)
        if node is None:
            return set()
        block = nearest_enclosing_block(node)
        if block is None:
            return set(usage)
        scope = top_level_ancestor(block) or block
        return identifiers_used(scope, view.source)

    def get_relevant_blocks(
        self,
        position: Position | Sequence[int],
        options: ContextOptions | Mapping[str, Any] | None = None,
    ) -> RelevantBlocksResult:
        """Helper functions most similar to the code around the cursor."""

        opts = self._options(options)
        cursor = _coerce_position(position)
        budget = opts.budget_or(DEFAULT_RELEVANT_BUDGET)
        view = self._view()

        scored, edit = rank_similar_blocks(view, cursor, self._pattern)
        helpers = [item for item in scored if item.block.kind in HELPER_KINDS]
        eligible = [item for item in helpers if item.score >= opts.min_similarity_threshold]
        ledger = BudgetLedger(budget)
        picked = select_within_budget(eligible, ledger, limit=max(0, opts.top_k))

        return RelevantBlocksResult(
            text=view.text_from_ranges(sorted(picked, key=lambda item: item.start_offset)),
            blocks=tuple(
                RelevantBlock(item.start_offset, item.end_offset, item.block.kind, item.score)
                for item in picked
            ),
            current_block=edit.span,
            meta=RelevantBlocksMeta(
                total_candidates=len(helpers),
                above_threshold=len(eligible),
                budget_used=ledger.used,
                budget_limit=budget,
                top_k=opts.top_k,
                min_similarity_threshold=opts.min_similarity_threshold,
                query_tokens=tuple(edit.tokens),
            ),
        )

    def get_ranked_context_sections(
        self,
        position: Position | Sequence[int],
        options: ContextOptions | Mapping[str, Any] | None = None,
    ) -> RankedSections:
        """Run every tier, deduplicate across tiers and assemble the sections.

        Tier A is the cursor slice, Tier B the ranked declarations, Tier C
        similar helper functions and Tier D other tests as one-line
        skeletons. B and C then pull in the global definitions their blocks
        reference, one hop deep.
        """

        opts = self._options(options)
        cursor = _coerce_position(position)
        total = max(MIN_RANKED_BUDGET, opts.budget_or(DEFAULT_RANKED_BUDGET))
        budgets = derive_budgets(total, opts.tier_percents)
        view = self._view()
        pattern = self._pattern

        # Tier A
        tier_a = select_context(view, cursor, opts, pattern)
        a_span = OffsetRange(tier_a.start_offset, tier_a.end_offset)
        title_tokens = build_title_tokens(view, cursor, pattern)
        index = build_global_index(view)

        # Tier B
        declarations = [
            block
            for block in collect_global_declarations(view)
            if block.kind == DECLARATION and not ranges_overlap(block, a_span)
        ]
        ranked_b = score_candidates(
            view, declarations, a_span, cursor.line_number, budgets.b, title_tokens, pattern
        )
        ledger_b = BudgetLedger(budgets.b)
        picked_b = select_within_budget(ranked_b, ledger_b)

        # Tier C
        tests = collect_test_blocks(view, pattern)
        excluded: list[HasOffsets] = [a_span, *declarations, *tests]
        scored_c, _ = rank_similar_blocks(view, cursor, pattern)
        helpers = [item for item in scored_c if item.block.kind in HELPER_KINDS]
        eligible = [
            item
            for item in helpers
            if not any(ranges_overlap(item, other) for other in excluded)
            and item.score >= opts.min_similarity_threshold
        ]
        ledger_c = BudgetLedger(budgets.c)
        picked_c = select_within_budget(eligible, ledger_c, limit=max(0, opts.top_k))

        deps = expand_with_dependencies(
            view,
            [item.block for item in picked_b] + [item.block for item in picked_c],
            index,
            [a_span, *picked_b, *picked_c],
            {TIER_B: ledger_b, TIER_C: ledger_c},
        )

        # Tier D
        other_tests = collect_test_blocks(view, pattern, exclude=a_span)

        outcome = dedupe_tiers(
            {
                "A": [a_span],
                "B": [*picked_b, *(dep.block for dep in deps if dep.tier == TIER_B)],
                "C": [*picked_c, *(dep.block for dep in deps if dep.tier == TIER_C)],
                "D": other_tests,
            }
        )
        accepted_tests = sorted(
            keep_accepted(other_tests, outcome, "D"), key=lambda block: block.start_offset
        )
        skeletons = [
            render_test_skeleton(block.node, view.source, pattern) for block in accepted_tests
        ]
        kept = pack_texts(skeletons, budgets.d)
        packed = [skeletons[i] for i in kept]
        packed_tests = [accepted_tests[i] for i in kept]

        offsets = {tier: outcome.offsets(tier) for tier in ("A", "B", "C")}
        offsets["D"] = [OffsetRange(block.start_offset, block.end_offset) for block in packed_tests]
        logger.debug(
            "Ranked sections: B=%d C=%d D=%d deps=%d",
            len(offsets["B"]),
            len(offsets["C"]),
            len(packed),
            len(deps),
        )

        debug = None
        if opts.debug:
            debug = self._build_debug(
                view,
                cursor,
                title_tokens,
                budgets,
                ranked_b,
                picked_b,
                helpers,
                picked_c,
                excluded,
                opts,
                deps,
            )
        self._last_debug = debug

        return RankedSections(
            lines_around_cursor=view.text_from_ranges(offsets["A"]),
            declarations=view.text_from_ranges(offsets["B"]),
            relevant_lines=view.text_from_ranges(offsets["C"]),
            existing_tests="\n".join(packed),
            meta=RankedMeta(
                strategy=tier_a.strategy,
                budgets=budgets,
                offsets=offsets,
                picked_counts={
                    **{tier: len(offsets[tier]) for tier in TIER_ORDER},
                    "skeletons": len(packed),
                },
                title_tokens=tuple(title_tokens),
            ),
            debug=debug,
        )

    def _build_debug(
        self,
        view: SourceView,
        cursor: Position,
        title_tokens: list[str],
        budgets: TierBudgets,
        ranked_b: list[RankedBlock],
        picked_b: list[RankedBlock],
        helpers: list[SimilarBlock],
        picked_c: list[SimilarBlock],
        excluded: list[HasOffsets],
        opts: ContextOptions,
        deps: list[DependencyAddition],
    ) -> DebugInfo:
        picked_b_keys = {item.block.key for item in picked_b}
        skipped_b = [
            SkippedBlock(item.start_offset, item.end_offset, OVER_BUDGET, item.score)
            for item in ranked_b
            if item.block.key not in picked_b_keys
        ]

        picked_c_keys = {item.block.key for item in picked_c}
        skipped_c: list[SkippedBlock] = []
        kept_so_far = 0
        for item in helpers:
            if item.block.key in picked_c_keys:
                kept_so_far += 1
                continue
            if any(ranges_overlap(item, other) for other in excluded):
                reason = OVERLAP_EXCLUDED
            elif item.score < opts.min_similarity_threshold:
                reason = BELOW_THRESHOLD
            elif kept_so_far >= opts.top_k:
                reason = TOP_K_CUTOFF
            else:
                reason = OVER_BUDGET
            skipped_c.append(SkippedBlock(item.start_offset, item.end_offset, reason, item.score))

        return DebugInfo(
            title_tokens=list(title_tokens),
            query_tokens=build_query_tokens(view, cursor, self._pattern),
            budgets=budgets,
            scored={"B": list(ranked_b), "C": list(helpers)},
            picked={"B": list(picked_b), "C": list(picked_c)},
            skipped={"B": skipped_b, "C": skipped_c},
            deps_added=list(deps),
        )

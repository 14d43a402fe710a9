"""Helpers for rendering extraction results in a terminal or as JSON."""

from __future__ import annotations

import sys
from typing import Any, Iterable

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from .api import DebugInfo, DeclarationsResult, RankedSections, RelevantBlocksResult
from .services.strategy_service import ContextResult
from .text import Messages, Styles
from .utils import HasOffsets

_LEXERS = {"javascript": "javascript", "typescript": "typescript", "tsx": "tsx"}


def _encoding_supports(text: str, encoding: str | None) -> bool:
    if not encoding:
        return False
    try:
        text.encode(encoding)
    except (LookupError, UnicodeEncodeError):
        return False
    return True


def supports_unicode_output(console: Console | None = None) -> bool:
    sample = "·"
    if console is not None and _encoding_supports(sample, console.encoding):
        return True
    return _encoding_supports(sample, sys.stdout.encoding)


def section_title(title: str, console: Console | None = None) -> str:
    if supports_unicode_output(console):
        return title
    return title.replace("·", "-")


def _span(item: HasOffsets) -> dict[str, int]:
    return {"start_offset": item.start_offset, "end_offset": item.end_offset}


def _spans(items: Iterable[HasOffsets]) -> list[dict[str, int]]:
    return [_span(item) for item in items]


def context_payload(result: ContextResult) -> dict[str, Any]:
    return {"text": result.text, "strategy": result.strategy, **_span(result)}


def declarations_payload(result: DeclarationsResult) -> dict[str, Any]:
    meta = result.meta
    return {
        "text": result.text,
        "declarations": [
            {
                **_span(entry),
                "name": entry.name,
                "priority": entry.priority,
                "usage_count": entry.usage_count,
            }
            for entry in result.declarations
        ],
        "meta": {
            "total_declarations": meta.total_declarations,
            "current_scope_count": meta.current_scope_count,
            "high_usage_count": meta.high_usage_count,
            "other_count": meta.other_count,
            "budget_used": meta.budget_used,
            "budget_limit": meta.budget_limit,
        },
    }


def relevant_payload(result: RelevantBlocksResult) -> dict[str, Any]:
    meta = result.meta
    return {
        "text": result.text,
        "blocks": [
            {**_span(block), "kind": block.kind, "score": round(block.score, 4)}
            for block in result.blocks
        ],
        "current_block": _span(result.current_block),
        "meta": {
            "total_candidates": meta.total_candidates,
            "above_threshold": meta.above_threshold,
            "budget_used": meta.budget_used,
            "budget_limit": meta.budget_limit,
            "top_k": meta.top_k,
            "min_similarity_threshold": meta.min_similarity_threshold,
            "query_tokens": list(meta.query_tokens),
        },
    }


def debug_payload(debug: DebugInfo) -> dict[str, Any]:
    return {
        "title_tokens": list(debug.title_tokens),
        "query_tokens": list(debug.query_tokens),
        "budgets": debug.budgets.as_dict(),
        "scored": {tier: [item.as_dict() for item in items] for tier, items in debug.scored.items()},
        "picked": {tier: [item.as_dict() for item in items] for tier, items in debug.picked.items()},
        "skipped": {
            tier: [
                {**_span(item), "reason": item.reason, "score": round(item.score, 4)}
                for item in items
            ]
            for tier, items in debug.skipped.items()
        },
        "deps_added": [item.as_dict() for item in debug.deps_added],
    }


def ranked_payload(sections: RankedSections) -> dict[str, Any]:
    meta = sections.meta
    payload: dict[str, Any] = {
        "lines_around_cursor": sections.lines_around_cursor,
        "declarations": sections.declarations,
        "relevant_lines": sections.relevant_lines,
        "existing_tests": sections.existing_tests,
        "meta": {
            "strategy": meta.strategy,
            "budgets": meta.budgets.as_dict(),
            "offsets": {tier: _spans(items) for tier, items in meta.offsets.items()},
            "picked_counts": dict(meta.picked_counts),
            "title_tokens": list(meta.title_tokens),
        },
    }
    if sections.debug is not None:
        payload["debug"] = debug_payload(sections.debug)
    return payload


def render_code(console: Console, title: str, text: str, language: str) -> None:
    if not text:
        body: Any = f"[{Styles.INFO}]{Messages.INFO_EMPTY_SECTION}[/{Styles.INFO}]"
    else:
        body = Syntax(text, _LEXERS.get(language, "javascript"), line_numbers=False, word_wrap=True)
    console.print(
        Panel(body, title=f"[{Styles.TITLE}]{section_title(title, console)}[/{Styles.TITLE}]")
    )


def render_ranked(console: Console, sections: RankedSections, language: str) -> None:
    """Print every tier as a panel, followed by a budget summary table."""

    tiers = (
        ("A", Messages.TITLE_TIER_A, sections.lines_around_cursor),
        ("B", Messages.TITLE_TIER_B, sections.declarations),
        ("C", Messages.TITLE_TIER_C, sections.relevant_lines),
        ("D", Messages.TITLE_TIER_D, sections.existing_tests),
    )
    for _, title, text in tiers:
        render_code(console, title, text, language)

    budgets = sections.meta.budgets.as_dict()
    counts = sections.meta.picked_counts
    table = Table(title=Messages.TABLE_TITLE, header_style=Styles.TABLE_HEADER)
    table.add_column(Messages.TABLE_HEADER_TIER)
    table.add_column(Messages.TABLE_HEADER_BUDGET, justify="right")
    table.add_column(Messages.TABLE_HEADER_USED, justify="right")
    table.add_column(Messages.TABLE_HEADER_PICKED, justify="right")
    for tier, _, text in tiers:
        table.add_row(tier, str(budgets[tier]), str(len(text)), str(counts.get(tier, 0)))
    console.print(table)

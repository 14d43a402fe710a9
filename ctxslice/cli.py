"""Command line interface for ctxslice."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
import typer
from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .api import ContextExtractor, ExtractorError
from .buffer import Position, TextDocument
from .config import (
    SUPPORTED_LANGUAGES,
    Config,
    load_config,
    normalize_language,
    options_from_config,
    reset_config,
    set_budget,
    set_language,
    set_test_pattern,
    set_tier_percents,
)
from .output import (
    context_payload,
    declarations_payload,
    ranked_payload,
    relevant_payload,
    render_code,
    render_ranked,
)
from .services.parse_service import ParserSetupError
from .text import Messages, Styles

console = Console()

LANGUAGE_CHOICE = click.Choice(list(SUPPORTED_LANGUAGES), case_sensitive=False)

app = typer.Typer(
    help=Messages.APP_HELP,
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"ctxslice v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Global CLI options."""
    return None


def _styled(text: str, style: str) -> str:
    return f"[{style}]{text}[/{style}]"


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.root.handlers.clear()
    handler = RichHandler(console=console, rich_tracebacks=True, show_path=False)
    handler.setLevel(level)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
    )


def _validate_language(value: str) -> str:
    try:
        return normalize_language(value)
    except ValueError as exc:
        raise typer.BadParameter(
            Messages.ERROR_LANGUAGE_INVALID.format(
                value=value, allowed=", ".join(SUPPORTED_LANGUAGES)
            )
        ) from exc


def _read_source(path: Path) -> str:
    resolved = path.expanduser()
    if not resolved.is_file():
        console.print(_styled(Messages.ERROR_FILE_MISSING.format(path=resolved), Styles.ERROR))
        raise typer.Exit(code=1)
    try:
        return resolved.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        console.print(
            _styled(
                Messages.ERROR_FILE_UNREADABLE.format(path=resolved, reason=exc),
                Styles.ERROR,
            )
        )
        raise typer.Exit(code=1)


def _open_extractor(
    path: Path, language: str | None, verbose: bool
) -> tuple[ContextExtractor, Config, str]:
    _configure_logging(verbose)
    config = load_config()
    resolved_language = _validate_language(language or config.language)
    document = TextDocument(_read_source(path))
    try:
        extractor = ContextExtractor.create(
            document,
            language=resolved_language,
            test_pattern=config.test_pattern,
        )
    except ParserSetupError as exc:
        console.print(_styled(str(exc), Styles.ERROR))
        raise typer.Exit(code=1)
    return extractor, config, resolved_language


def _print_json(payload: dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=False, indent=2) + "\n")


def _fail(exc: Exception) -> None:
    console.print(_styled(str(exc), Styles.ERROR))
    raise typer.Exit(code=1)


@app.command(help=Messages.HELP_CONTEXT)
def context(
    path: Path = typer.Argument(..., help=Messages.HELP_FILE),
    line: int = typer.Option(1, "--line", "-l", min=1, help=Messages.HELP_LINE),
    column: int = typer.Option(1, "--column", "-c", min=1, help=Messages.HELP_COLUMN),
    language: str | None = typer.Option(
        None, "--language", click_type=LANGUAGE_CHOICE, help=Messages.HELP_LANGUAGE
    ),
    window: int | None = typer.Option(None, "--window", "-w", min=0, help=Messages.HELP_WINDOW),
    nesting: int | None = typer.Option(None, "--nesting", "-n", min=0, help=Messages.HELP_NESTING),
    raw: bool = typer.Option(False, "--raw", help=Messages.HELP_RAW),
    json_output: bool = typer.Option(False, "--json", help=Messages.HELP_JSON),
    verbose: bool = typer.Option(False, "--verbose", help=Messages.HELP_VERBOSE),
) -> None:
    extractor, config, resolved_language = _open_extractor(path, language, verbose)
    options = options_from_config(
        config,
        fallback_line_window=window,
        nesting_level=nesting,
        force_raw_lines_around_cursor=raw or None,
    )
    try:
        result = extractor.get_context_around_cursor(Position(line, column), options)
    except ExtractorError as exc:
        _fail(exc)
    if json_output:
        _print_json(context_payload(result))
        return
    render_code(
        console,
        Messages.TITLE_CONTEXT.format(strategy=result.strategy),
        result.text,
        resolved_language,
    )


@app.command(help=Messages.HELP_DECLARATIONS)
def declarations(
    path: Path = typer.Argument(..., help=Messages.HELP_FILE),
    line: int = typer.Option(1, "--line", "-l", min=1, help=Messages.HELP_LINE),
    column: int = typer.Option(1, "--column", "-c", min=1, help=Messages.HELP_COLUMN),
    language: str | None = typer.Option(
        None, "--language", click_type=LANGUAGE_CHOICE, help=Messages.HELP_LANGUAGE
    ),
    budget: int | None = typer.Option(None, "--budget", "-b", min=0, help=Messages.HELP_BUDGET),
    no_comments: bool = typer.Option(False, "--no-comments", help=Messages.HELP_NO_COMMENTS),
    json_output: bool = typer.Option(False, "--json", help=Messages.HELP_JSON),
    verbose: bool = typer.Option(False, "--verbose", help=Messages.HELP_VERBOSE),
) -> None:
    extractor, config, resolved_language = _open_extractor(path, language, verbose)
    # The stored budget is the ranked total; this query has its own default.
    options = options_from_config(
        config,
        include_leading_comments=False if no_comments else None,
    ).with_overrides(max_chars_budget=budget)
    try:
        result = extractor.get_global_declarations(Position(line, column), options)
    except ExtractorError as exc:
        _fail(exc)
    if json_output:
        _print_json(declarations_payload(result))
        return
    render_code(console, Messages.TITLE_DECLARATIONS, result.text, resolved_language)


@app.command(help=Messages.HELP_RELEVANT)
def relevant(
    path: Path = typer.Argument(..., help=Messages.HELP_FILE),
    line: int = typer.Option(1, "--line", "-l", min=1, help=Messages.HELP_LINE),
    column: int = typer.Option(1, "--column", "-c", min=1, help=Messages.HELP_COLUMN),
    language: str | None = typer.Option(
        None, "--language", click_type=LANGUAGE_CHOICE, help=Messages.HELP_LANGUAGE
    ),
    budget: int | None = typer.Option(None, "--budget", "-b", min=0, help=Messages.HELP_BUDGET),
    top_k: int | None = typer.Option(None, "--top-k", "-k", min=0, help=Messages.HELP_TOP_K),
    threshold: float | None = typer.Option(
        None, "--threshold", "-t", min=0.0, max=1.0, help=Messages.HELP_THRESHOLD
    ),
    json_output: bool = typer.Option(False, "--json", help=Messages.HELP_JSON),
    verbose: bool = typer.Option(False, "--verbose", help=Messages.HELP_VERBOSE),
) -> None:
    extractor, config, resolved_language = _open_extractor(path, language, verbose)
    options = options_from_config(
        config,
        top_k=top_k,
        min_similarity_threshold=threshold,
    ).with_overrides(max_chars_budget=budget)
    try:
        result = extractor.get_relevant_blocks(Position(line, column), options)
    except ExtractorError as exc:
        _fail(exc)
    if json_output:
        _print_json(relevant_payload(result))
        return
    render_code(console, Messages.TITLE_RELEVANT, result.text, resolved_language)


@app.command(help=Messages.HELP_RANKED)
def ranked(
    path: Path = typer.Argument(..., help=Messages.HELP_FILE),
    line: int = typer.Option(1, "--line", "-l", min=1, help=Messages.HELP_LINE),
    column: int = typer.Option(1, "--column", "-c", min=1, help=Messages.HELP_COLUMN),
    language: str | None = typer.Option(
        None, "--language", click_type=LANGUAGE_CHOICE, help=Messages.HELP_LANGUAGE
    ),
    budget: int | None = typer.Option(None, "--budget", "-b", min=0, help=Messages.HELP_BUDGET),
    window: int | None = typer.Option(None, "--window", "-w", min=0, help=Messages.HELP_WINDOW),
    nesting: int | None = typer.Option(None, "--nesting", "-n", min=0, help=Messages.HELP_NESTING),
    top_k: int | None = typer.Option(None, "--top-k", "-k", min=0, help=Messages.HELP_TOP_K),
    threshold: float | None = typer.Option(
        None, "--threshold", "-t", min=0.0, max=1.0, help=Messages.HELP_THRESHOLD
    ),
    raw: bool = typer.Option(False, "--raw", help=Messages.HELP_RAW),
    debug: bool = typer.Option(False, "--debug", help=Messages.HELP_DEBUG),
    json_output: bool = typer.Option(False, "--json", help=Messages.HELP_JSON),
    verbose: bool = typer.Option(False, "--verbose", help=Messages.HELP_VERBOSE),
) -> None:
    extractor, config, resolved_language = _open_extractor(path, language, verbose)
    options = options_from_config(
        config,
        max_chars_budget=budget,
        fallback_line_window=window,
        nesting_level=nesting,
        top_k=top_k,
        min_similarity_threshold=threshold,
        force_raw_lines_around_cursor=raw or None,
        debug=debug or None,
    )
    try:
        sections = extractor.get_ranked_context_sections(Position(line, column), options)
    except ExtractorError as exc:
        _fail(exc)
    if json_output:
        _print_json(ranked_payload(sections))
        return
    render_ranked(console, sections, resolved_language)
    if sections.debug is not None:
        console.print_json(json.dumps(ranked_payload(sections)["debug"], ensure_ascii=False))


@app.command(help=Messages.HELP_CONFIG)
def config(
    show: bool = typer.Option(False, "--show", help=Messages.HELP_SHOW_CONFIG),
    set_language_option: str | None = typer.Option(
        None,
        "--set-language",
        help=Messages.HELP_SET_LANGUAGE,
    ),
    set_budget_option: int | None = typer.Option(
        None,
        "--set-budget",
        help=Messages.HELP_SET_BUDGET,
    ),
    set_tiers_option: str | None = typer.Option(
        None,
        "--set-tiers",
        help=Messages.HELP_SET_TIERS,
    ),
    set_test_pattern_option: str | None = typer.Option(
        None,
        "--set-test-pattern",
        help=Messages.HELP_SET_TEST_PATTERN,
    ),
    reset: bool = typer.Option(False, "--reset", help=Messages.HELP_RESET_CONFIG),
) -> None:
    """Manage ctxslice defaults stored in ~/.ctxslice/config.json."""
    if set_budget_option is not None and set_budget_option < 0:
        raise typer.BadParameter(
            Messages.ERROR_CONFIG_VALUE_INVALID.format(field="max_chars_budget"),
            param_hint="--set-budget",
        )
    if set_language_option is not None:
        _validate_language(set_language_option)

    changed = False
    try:
        if reset:
            reset_config()
            console.print(_styled(Messages.INFO_CONFIG_RESET, Styles.SUCCESS))
            changed = True
        if set_language_option is not None:
            set_language(set_language_option)
            console.print(
                _styled(
                    Messages.INFO_LANGUAGE_SET.format(value=normalize_language(set_language_option)),
                    Styles.SUCCESS,
                )
            )
            changed = True
        if set_budget_option is not None:
            set_budget(set_budget_option)
            console.print(
                _styled(Messages.INFO_BUDGET_SET.format(value=set_budget_option), Styles.SUCCESS)
            )
            changed = True
        if set_tiers_option is not None:
            set_tier_percents(set_tiers_option)
            console.print(
                _styled(Messages.INFO_TIERS_SET.format(value=set_tiers_option), Styles.SUCCESS)
            )
            changed = True
        if set_test_pattern_option is not None:
            set_test_pattern(set_test_pattern_option)
            console.print(
                _styled(
                    Messages.INFO_TEST_PATTERN_SET.format(value=set_test_pattern_option.strip()),
                    Styles.SUCCESS,
                )
            )
            changed = True
    except ValueError as exc:
        _fail(exc)

    if show or not changed:
        _print_config_summary(load_config())


def _print_config_summary(current: Config) -> None:
    tiers = current.tier_percents.as_dict()
    console.print(
        _styled(
            Messages.INFO_CONFIG_SUMMARY.format(
                language=current.language,
                budget=current.max_chars_budget,
                tiers=", ".join(f"{tier}={value:g}" for tier, value in tiers.items()),
                window=current.fallback_line_window,
                nesting=current.nesting_level,
                comments="yes" if current.include_leading_comments else "no",
                top_k=current.top_k,
                threshold=f"{current.min_similarity_threshold:g}",
                pattern=current.test_pattern.callee,
            ),
            Styles.INFO,
        ),
        markup=True,
    )


def run(argv: list[str] | None = None) -> None:
    """Entry point wrapper allowing optional argument override."""
    if argv is None:
        app()
    else:
        app(args=list(argv))

"""Centralized user-facing text for ctxslice."""

from __future__ import annotations


class Styles:
    ERROR = "red"
    SUCCESS = "green"
    INFO = "dim"
    TITLE = "bold cyan"
    TABLE_HEADER = "bold magenta"


class Messages:
    APP_HELP = "ctxslice: cursor-aware, budgeted code context for completion prompts."
    HELP_FILE = "JavaScript or TypeScript source file to read."
    HELP_LINE = "1-based cursor line."
    HELP_COLUMN = "1-based cursor column."
    HELP_LANGUAGE = "Grammar to parse with (javascript, typescript, tsx)."
    HELP_BUDGET = "Total character budget."
    HELP_WINDOW = "Lines before and after the cursor for line windows."
    HELP_NESTING = "Promote the enclosing function this many levels (0-50)."
    HELP_TOP_K = "Maximum number of similar helper blocks."
    HELP_THRESHOLD = "Minimum Jaccard similarity for helper blocks."
    HELP_NO_COMMENTS = "Do not include leading comments with blocks."
    HELP_RAW = "Always use a raw line window for the cursor context."
    HELP_DEBUG = "Include the ranking debug payload."
    HELP_JSON = "Print machine-readable JSON."
    HELP_VERBOSE = "Log strategy and ranking decisions."
    HELP_CONTEXT = "Show the block of code around the cursor."
    HELP_DECLARATIONS = "Show the global declarations relevant to the cursor."
    HELP_RELEVANT = "Show helper blocks most similar to the code being edited."
    HELP_RANKED = "Show every context tier, ranked and deduplicated."
    HELP_CONFIG = "Show or update the stored defaults."
    HELP_SHOW_CONFIG = "Show current configuration."
    HELP_SET_LANGUAGE = "Set the default grammar."
    HELP_SET_BUDGET = "Set the default total character budget."
    HELP_SET_TIERS = "Set tier percentages as A,B,C,D fractions (e.g. 0.4,0.3,0.2,0.1)."
    HELP_SET_TEST_PATTERN = "Set the test call recognized as a test block (e.g. pm.test)."
    HELP_RESET_CONFIG = "Restore every default."

    ERROR_FILE_MISSING = "File does not exist: {path}"
    ERROR_FILE_UNREADABLE = "Unable to read {path}: {reason}"
    ERROR_LANGUAGE_INVALID = "Unsupported language '{value}'. Allowed values: {allowed}."
    ERROR_GRAMMAR_MISSING = (
        "tree-sitter grammars are not installed. "
        "Install tree-sitter-javascript and tree-sitter-typescript."
    )
    ERROR_PARSER_INIT = "Unable to initialize the {language} parser: {reason}"
    ERROR_TIER_PERCENTS_INVALID = (
        "Tier percentages must be four non-negative numbers (A,B,C,D)."
    )
    ERROR_TEST_PATTERN_INVALID = "Test pattern must look like object.method, got '{value}'."
    ERROR_CONFIG_VALUE_INVALID = "Invalid config value for {field}."

    INFO_CONFIG_SUMMARY = (
        "Language: {language}\n"
        "Total budget: {budget}\n"
        "Tier percents: {tiers}\n"
        "Line window: {window}\n"
        "Nesting level: {nesting}\n"
        "Leading comments: {comments}\n"
        "Top K: {top_k}\n"
        "Similarity threshold: {threshold}\n"
        "Test pattern: {pattern}"
    )
    INFO_LANGUAGE_SET = "Default language set to {value}."
    INFO_BUDGET_SET = "Default budget set to {value}."
    INFO_TIERS_SET = "Tier percentages set to {value}."
    INFO_TEST_PATTERN_SET = "Test pattern set to {value}."
    INFO_CONFIG_RESET = "Configuration restored to defaults."
    INFO_EMPTY_SECTION = "(empty)"

    TITLE_CONTEXT = "Context around cursor ({strategy})"
    TITLE_DECLARATIONS = "Global declarations"
    TITLE_RELEVANT = "Relevant blocks"
    TITLE_TIER_A = "Tier A · lines around cursor"
    TITLE_TIER_B = "Tier B · declarations"
    TITLE_TIER_C = "Tier C · relevant helpers"
    TITLE_TIER_D = "Tier D · existing tests"
    TABLE_TITLE = "Ranked context summary"
    TABLE_HEADER_TIER = "Tier"
    TABLE_HEADER_BUDGET = "Budget"
    TABLE_HEADER_USED = "Used"
    TABLE_HEADER_PICKED = "Picked"

import json

import pytest

from ctxslice import config as config_module
from ctxslice.config import ContextOptions, TestCallPattern, TierPercents


def _prepare_config(tmp_path, monkeypatch):
    config_dir = tmp_path / "config"
    config_file = config_dir / "config.json"
    monkeypatch.setattr(config_module, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_file)
    return config_file


def test_load_config_defaults(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)

    cfg = config_module.load_config()

    assert cfg.language == config_module.DEFAULT_LANGUAGE
    assert cfg.max_chars_budget == config_module.DEFAULT_RANKED_BUDGET
    assert cfg.tier_percents == TierPercents()
    assert cfg.top_k == config_module.DEFAULT_TOP_K
    assert cfg.test_pattern.callee == "pm.test"


def test_setters_persist_values(tmp_path, monkeypatch):
    config_file = _prepare_config(tmp_path, monkeypatch)

    config_module.set_language("TypeScript")
    config_module.set_budget(3000)
    config_module.set_tier_percents("0.5,0.2,0.2,0.1")
    config_module.set_test_pattern("suite.case")

    stored = json.loads(config_file.read_text())
    assert stored["language"] == "typescript"
    assert stored["max_chars_budget"] == 3000
    assert stored["tier_percents"] == {"A": 0.5, "B": 0.2, "C": 0.2, "D": 0.1}
    assert stored["test_pattern"] == "suite.case"

    cfg = config_module.load_config()
    assert cfg.test_pattern == TestCallPattern("suite", "case")
    assert cfg.tier_percents == TierPercents(0.5, 0.2, 0.2, 0.1)


def test_reset_config_restores_defaults(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)
    config_module.set_budget(1200)

    config_module.reset_config()

    assert config_module.load_config() == config_module.Config()


def test_invalid_stored_value_falls_back_to_defaults(tmp_path, monkeypatch):
    config_file = _prepare_config(tmp_path, monkeypatch)
    config_file.parent.mkdir(parents=True)
    config_file.write_text(json.dumps({"language": "cobol", "top_k": 9}))

    assert config_module.load_config() == config_module.Config()


def test_invalid_setter_values_raise(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)

    with pytest.raises(ValueError):
        config_module.set_language("ruby")
    with pytest.raises(ValueError):
        config_module.set_tier_percents("0.5,0.5")
    with pytest.raises(ValueError):
        config_module.set_test_pattern("pmtest")


def test_tier_percents_from_value():
    expected = TierPercents(0.4, 0.3, 0.2, 0.1)

    assert TierPercents.from_value(expected) is expected
    assert TierPercents.from_value({"a": 0.4, "B": 0.3, "c": 0.2, "D": 0.1}) == expected
    assert TierPercents.from_value([0.4, 0.3, 0.2, 0.1]) == expected
    assert TierPercents.from_value(" 0.4, 0.3 ,0.2,0.1") == expected
    with pytest.raises(ValueError):
        TierPercents.from_value({"a": 0.4})
    with pytest.raises(ValueError):
        TierPercents(-0.1, 0.3, 0.2, 0.1)


def test_test_call_pattern_parse():
    pattern = TestCallPattern.parse(" describe.it ")

    assert pattern.callee == "describe.it"
    assert pattern.matches("describe", "it")
    assert not pattern.matches("pm", "test")
    for bad in ("", "pm", "pm.", ".test", "pm.te st"):
        with pytest.raises(ValueError):
            TestCallPattern.parse(bad)


def test_line_window_resolution_order():
    assert ContextOptions().prefix_lines == 5
    assert ContextOptions(fallback_line_window=2).prefix_lines == 2
    assert ContextOptions(fallback_line_window=2, raw_prefix_lines=4).prefix_lines == 4
    options = ContextOptions(
        fallback_line_window=2, raw_suffix_lines=4, number_of_suffix_lines=1
    )
    assert options.suffix_lines == 1
    assert options.prefix_lines == 2
    assert ContextOptions(fallback_line_window=-3).prefix_lines == 0


def test_nesting_level_is_clamped():
    assert ContextOptions(nesting_level=-2).safe_nesting_level == 0
    assert ContextOptions(nesting_level=99).safe_nesting_level == config_module.MAX_NESTING_LEVEL


def test_coerce_options_from_mapping():
    options = config_module.coerce_options(
        {"top_k": 1, "tier_percents": "0.25,0.25,0.25,0.25", "debug": True}
    )

    assert options.top_k == 1
    assert options.debug is True
    assert options.tier_percents == TierPercents(0.25, 0.25, 0.25, 0.25)
    assert config_module.coerce_options(None) == ContextOptions()
    with pytest.raises(ValueError):
        config_module.coerce_options({"line_window": 3})


@pytest.mark.parametrize(
    "options",
    [
        {"top_k": "3"},
        {"top_k": None},
        {"max_chars_budget": 1.5},
        {"nesting_level": True},
        {"min_similarity_threshold": "0.2"},
        {"debug": 1},
    ],
)
def test_coerce_options_rejects_wrongly_typed_values(options):
    with pytest.raises(ValueError):
        config_module.coerce_options(options)


def test_coerce_options_accepts_optional_and_numeric_values():
    options = config_module.coerce_options(
        {"max_chars_budget": None, "min_similarity_threshold": 1, "tier_percents": None}
    )

    assert options.max_chars_budget is None
    assert options.min_similarity_threshold == 1.0
    assert options.tier_percents == config_module.DEFAULT_TIER_PERCENTS


def test_options_from_config_ignores_none_overrides():
    cfg = config_module.Config(fallback_line_window=7, top_k=2)

    options = config_module.options_from_config(cfg, top_k=None, debug=True)

    assert options.fallback_line_window == 7
    assert options.top_k == 2
    assert options.debug is True
    assert options.budget_or(100) == config_module.DEFAULT_RANKED_BUDGET
    assert ContextOptions().budget_or(100) == 100

from ctxslice.services.token_service import (
    CODE_STOPWORDS,
    cut_tokenize,
    dedupe_tokens,
    jaccard,
    split_camel_snake,
    tokenize,
)


def test_split_camel_snake_handles_mixed_identifiers():
    assert split_camel_snake("parseUserName_v2") == ["parse", "User", "Name", "v2"]
    assert split_camel_snake("a.b-c") == ["a", "b", "c"]


def test_dedupe_tokens_keeps_first_seen_order():
    assert dedupe_tokens(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]


def test_cut_tokenize_lowercases_and_drops_noise():
    assert cut_tokenize("computeTotalPrice(items)") == ["compute", "total", "price", "items"]
    assert cut_tokenize("const value = response.json()") == []
    assert cut_tokenize("x y zz") == ["zz"]
    assert cut_tokenize(None) == []


def test_cut_tokenize_accepts_custom_stopwords():
    assert cut_tokenize("const value", stopwords=frozenset()) == ["const", "value"]
    assert "function" in CODE_STOPWORDS


def test_tokenize_splits_titles_on_punctuation():
    assert tokenize("User name is present!") == ["user", "name", "is", "present"]
    assert tokenize("") == []


def test_jaccard_scores():
    assert jaccard({"a", "b"}, {"b", "c"}) == 1 / 3
    assert jaccard({"a"}, {"a"}) == 1.0
    assert jaccard(set(), set()) == 0.0
    assert jaccard({"a"}, set()) == 0.0

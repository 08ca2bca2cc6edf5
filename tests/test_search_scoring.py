"""Unit tests for tokenizing, term expansion and relevance scoring."""
import pytest

from bublr.schemas.records import PostRecord
from bublr.services.search import (
    MAX_INDEX_TERMS,
    edit_distance,
    expand_for_indexing,
    expand_term,
    partial_match_ratio,
    rank_candidates,
    score_post,
    strip_html,
    tokenize,
)


def _post(post_id="p1", title="", excerpt="", content="", search_queries=None):
    return PostRecord(
        id=post_id,
        author_id="u1",
        title=title,
        excerpt=excerpt,
        content=content,
        slug=post_id,
        published=True,
        search_queries=search_queries or [],
    )


# ── tokenize ──

def test_tokenize_lowercases_and_strips_punctuation():
    assert tokenize("The Cat SAT!!") == ["the", "cat", "sat"]


def test_tokenize_drops_short_and_duplicate_terms():
    assert tokenize("a an to hello HELLO world") == ["hello", "world"]


def test_tokenize_joins_apostrophes():
    assert tokenize("don't panic") == ["dont", "panic"]


@pytest.mark.parametrize("value", [None, "", "   ", 42, "?!"])
def test_tokenize_empty_inputs(value):
    assert tokenize(value) == []


def test_tokenize_optional_stop_words():
    assert tokenize("the quick fox", stop_words={"the"}) == ["quick", "fox"]


# ── expand_term ──

def test_expand_term_variants_in_order():
    assert expand_term("hello") == ["hello", "hel", "hell", "helo", "helllo", "hallo"]


def test_expand_short_term():
    # no prefixes for terms of 4 chars or fewer
    assert expand_term("cat") == ["cat", "catt", "cet"]


def test_expand_term_vowel_swap_replaces_every_occurrence():
    variants = expand_term("banana")
    assert "benene" in variants
    assert "bbanana" not in variants


def test_expand_term_drops_variants_shorter_than_three():
    assert all(len(v) >= 3 for v in expand_term("abcde"))


# ── expand_for_indexing ──

def test_expand_for_indexing_is_capped():
    post = _post(
        title="Programming Mountains",
        excerpt="Traveling with a laptop across beautiful landscapes",
        content="<p>Lots of <b>interesting</b> material here</p>",
    )
    terms = expand_for_indexing(post)
    assert len(terms) == MAX_INDEX_TERMS
    assert len(set(terms)) == len(terms)
    assert terms[0] == "programming"
    assert "programing" in terms


def test_expand_for_indexing_accepts_mappings():
    terms = expand_for_indexing({"title": "Cat", "excerpt": None})
    assert terms == ["cat", "catt", "cet"]


def test_expand_for_indexing_strips_markup():
    terms = expand_for_indexing(_post(content="<strong>zebra</strong>"))
    assert "strong" not in terms
    assert "zebra" in terms


def test_strip_html_unescapes_entities():
    assert strip_html("<p>Fish &amp; Chips</p>").split() == ["Fish", "&", "Chips"]


# ── edit distance / partial ratio ──

@pytest.mark.parametrize(
    "a, b, expected",
    [("kitten", "sitting", 3), ("", "abc", 3), ("abc", "", 3), ("same", "same", 0), ("flaw", "lawn", 2)],
)
def test_edit_distance(a, b, expected):
    assert edit_distance(a, b) == expected


def test_partial_ratio_word_prefix():
    assert partial_match_ratio("programming in python", "prog") == 0.9


def test_partial_ratio_term_starts_with_word():
    assert partial_match_ratio("a pro tool", "programming") == 0.8


def test_partial_ratio_shared_slice():
    assert partial_match_ratio("programmer", "programs") == 0.7


def test_partial_ratio_fuzzy_fallback():
    assert partial_match_ratio("good speling here", "spelling") == 0.6


def test_partial_ratio_no_match():
    assert partial_match_ratio("completely unrelated", "zebra") == 0.0
    assert partial_match_ratio("", "zebra") == 0.0


# ── scoring ──

def test_score_exact_title_match():
    post = _post(title="Hello World")
    score = score_post(post, "hello world", ["hello", "world"])
    # 100 exact + 75 contains + 2 × (50 + 0.9 × 20)
    assert score == pytest.approx(311)


def test_score_counts_search_queries():
    post = _post(title="Unrelated", search_queries=["zebra", "zebr"])
    assert score_post(post, "zebra", ["zebra"]) == pytest.approx(15)


def test_score_zero_for_no_match():
    post = _post(title="Cooking", excerpt="pasta", content="tomatoes")
    assert score_post(post, "zebra", ["zebra"]) == 0


def test_rank_drops_zero_scores_and_sorts_descending():
    weak = _post("weak", excerpt="a note about zebras")
    strong = _post("strong", title="Zebra")
    none = _post("none", title="Cooking")
    ranked = rank_candidates([weak, none, strong], "zebra", ["zebra"])
    assert [c.post.id for c in ranked] == ["strong", "weak"]
    assert ranked[0].score > ranked[1].score > 0


def test_rank_ties_keep_input_order():
    first = _post("first", title="Zebra")
    second = _post("second", title="Zebra")
    ranked = rank_candidates([first, second], "zebra", ["zebra"])
    assert [c.post.id for c in ranked] == ["first", "second"]


def test_misspelling_scores_through_edit_distance():
    writing = _post("writing", title="On Writing Every Day")
    unrelated = _post("cooking", title="Cooking Pasta")
    ranked = rank_candidates([unrelated, writing], "wrting", ["wrting"])
    assert [c.post.id for c in ranked] == ["writing"]
    # 0.6 fuzzy ratio at the title weight
    assert ranked[0].score == pytest.approx(12)

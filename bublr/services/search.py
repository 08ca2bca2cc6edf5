"""
Fuzzy post search.

The store can only answer "which posts carry any of these terms", so
posts are indexed with an expanded term set (prefixes, doubled/singled
letters, vowel swaps) and candidates are ranked in memory:

  title == query            +100
  title contains query       +75
  per query term:
    in title    +50, partial × 20
    in excerpt  +30, partial × 10
    in content  +20, partial × 5
    in search_queries  +15

A partial ratio is 0.9 (a word starts with the term), 0.8 (the term
starts with a word of 3+ chars) or 0.7 (a 70%-length slice of a word
occurs in the term); failing those, a word within
``len(term) // 3`` edits of the term scores 0.6. Partial bonuses only
apply to terms longer than 3 characters.
"""

import html
import logging
import math
import re
import time
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel

from bublr.errors import UpstreamError, call_upstream
from bublr.metrics import SEARCH_DURATION, SEARCH_REQUESTS
from bublr.schemas.records import PostRecord
from bublr.store.base import MAX_MEMBERSHIP_TERMS

logger = logging.getLogger("bublr.search")

MIN_TOKEN_LENGTH = 3
MAX_INDEX_TERMS = MAX_MEMBERSHIP_TERMS
DOUBLING_CONSONANTS = ("l", "r", "s", "t", "p", "n", "m")

_PUNCT_RE = re.compile(r"[^\w\s]")
_TAG_RE = re.compile(r"<[^>]*>")
_DOUBLED_RE = re.compile(r"(.)\1+")

# Field weights: (exact hit, partial multiplier)
TITLE_WEIGHTS = (50, 20)
EXCERPT_WEIGHTS = (30, 10)
CONTENT_WEIGHTS = (20, 5)
TITLE_EXACT_SCORE = 100
TITLE_CONTAINS_SCORE = 75
SEARCH_QUERIES_SCORE = 15


class SearchCandidate(BaseModel):
    post: PostRecord
    score: float


# ═══════════════════════════════════════════
#  Tokenising & indexing
# ═══════════════════════════════════════════

def strip_html(text: str) -> str:
    if not text:
        return ""
    return html.unescape(_TAG_RE.sub(" ", text))


def tokenize(text: Any, stop_words: Iterable[str] = ()) -> List[str]:
    """Lower-case, drop punctuation, split on whitespace, keep unique terms of 3+ chars.

    No stop-word list is applied unless one is passed in.
    """
    if not text or not isinstance(text, str):
        return []
    stop = set(stop_words)
    cleaned = _PUNCT_RE.sub("", text.lower())
    terms = (t for t in cleaned.split() if len(t) >= MIN_TOKEN_LENGTH and t not in stop)
    return list(dict.fromkeys(terms))


def expand_term(term: str) -> List[str]:
    """Spelling variants of one term, the term itself first."""
    variants = [term]

    if len(term) > 4:
        variants.extend(term[:i] for i in range(MIN_TOKEN_LENGTH, len(term)))

    if _DOUBLED_RE.search(term):
        variants.append(_DOUBLED_RE.sub(r"\1", term))

    for letter in DOUBLING_CONSONANTS:
        if letter in term:
            variants.append(term.replace(letter, letter * 2, 1))

    if "a" in term:
        variants.append(term.replace("a", "e"))
    if "e" in term:
        variants.append(term.replace("e", "a"))
    if "i" in term:
        variants.append(term.replace("i", "y"))

    return [v for v in variants if len(v) >= MIN_TOKEN_LENGTH]


def _field(post: Union[PostRecord, Mapping[str, Any]], name: str) -> str:
    if isinstance(post, Mapping):
        value = post.get(name)
    else:
        value = getattr(post, name, None)
    return value or ""


def expand_for_indexing(post: Union[PostRecord, Mapping[str, Any]]) -> List[str]:
    """Index terms for a post, at most ``MAX_INDEX_TERMS``.

    Title terms come first, so they are the last to be truncated away.
    """
    text = " ".join(
        (_field(post, "title"), _field(post, "excerpt"), strip_html(_field(post, "content")))
    )
    expanded: dict = {}
    for term in tokenize(text):
        for variant in expand_term(term):
            expanded.setdefault(variant, None)
            if len(expanded) >= MAX_INDEX_TERMS:
                return list(expanded)
    return list(expanded)


# ═══════════════════════════════════════════
#  Scoring
# ═══════════════════════════════════════════

def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance (insert, delete, substitute all cost 1)."""
    if not a:
        return len(b)
    if not b:
        return len(a)
    if len(a) > len(b):
        a, b = b, a

    prev = list(range(len(a) + 1))
    for j in range(1, len(b) + 1):
        curr = [j] + [0] * len(a)
        for i in range(1, len(a) + 1):
            cost = 0 if a[i - 1] == b[j - 1] else 1
            curr[i] = min(
                prev[i] + 1,         # deletion
                curr[i - 1] + 1,     # insertion
                prev[i - 1] + cost,  # substitution
            )
        prev = curr
    return prev[len(a)]


def _contains_slice(word: str, term: str) -> bool:
    needed = math.ceil(len(term) * 0.7)
    return any(term.find(word[i:i + needed]) != -1 for i in range(len(word) - needed + 1))


def partial_match_ratio(text: str, term: str) -> float:
    """Best partial-match ratio of ``term`` against the words of ``text``."""
    if not text or not term:
        return 0.0

    words = text.split()
    best = 0.0
    for word in words:
        if word.startswith(term):
            return 0.9
        if term.startswith(word) and len(word) >= 3:
            best = max(best, 0.8)
        elif len(term) >= 5 and best < 0.7 and _contains_slice(word, term):
            best = 0.7
    if best:
        return best

    max_errors = len(term) // 3
    if max_errors >= 1:
        for word in words:
            if abs(len(word) - len(term)) <= max_errors and edit_distance(word, term) <= max_errors:
                return 0.6
    return 0.0


def score_post(post: PostRecord, query: str, terms: Sequence[str]) -> float:
    title = post.title.lower()
    excerpt = post.excerpt.lower()
    content = strip_html(post.content).lower()
    phrase = query.strip().lower()

    score = 0.0
    if phrase and title == phrase:
        score += TITLE_EXACT_SCORE
    if phrase and phrase in title:
        score += TITLE_CONTAINS_SCORE

    for text, (hit, partial) in (
        (title, TITLE_WEIGHTS),
        (excerpt, EXCERPT_WEIGHTS),
        (content, CONTENT_WEIGHTS),
    ):
        for term in terms:
            if term in text:
                score += hit
            if len(term) > 3:
                score += partial_match_ratio(text, term) * partial

    if post.search_queries:
        indexed = set(post.search_queries)
        score += SEARCH_QUERIES_SCORE * sum(1 for term in terms if term in indexed)

    return score


def rank_candidates(
    posts: Iterable[PostRecord], query: str, terms: Sequence[str]
) -> List[SearchCandidate]:
    """Score, drop zero scores, sort descending. Ties keep retrieval order."""
    scored = (SearchCandidate(post=p, score=score_post(p, query, terms)) for p in posts)
    matched = [c for c in scored if c.score > 0]
    return sorted(matched, key=lambda c: -c.score)


# ═══════════════════════════════════════════
#  Engine
# ═══════════════════════════════════════════

class PostSearchEngine:
    def __init__(
        self,
        store,
        default_limit: int = 20,
        max_limit: int = 100,
        candidate_multiplier: int = 2,
        store_timeout: float = 5.0,
        stop_words: Iterable[str] = (),
    ):
        self.store = store
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.candidate_multiplier = max(1, candidate_multiplier)
        self.store_timeout = store_timeout
        self.stop_words = frozenset(stop_words)

    @classmethod
    def from_settings(cls, config, store) -> "PostSearchEngine":
        return cls(
            store,
            default_limit=config.SEARCH_DEFAULT_LIMIT,
            max_limit=config.SEARCH_MAX_LIMIT,
            candidate_multiplier=config.SEARCH_CANDIDATE_MULTIPLIER,
            store_timeout=config.STORE_TIMEOUT,
        )

    def _clamp(self, limit: Optional[int]) -> int:
        if limit is None:
            return self.default_limit
        return max(1, min(int(limit), self.max_limit))

    async def search(self, query: Optional[str], limit: Optional[int] = None) -> List[PostRecord]:
        return [c.post for c in await self.search_scored(query, limit)]

    async def search_scored(
        self, query: Optional[str], limit: Optional[int] = None
    ) -> List[SearchCandidate]:
        """Rank published posts for ``query``; store failures yield ``[]``."""
        limit = self._clamp(limit)
        start = time.perf_counter()
        try:
            terms = tokenize(query, self.stop_words) if query else []
            if not terms:
                posts = await self._recent(limit)
                SEARCH_REQUESTS.labels(result="recent").inc()
                return [SearchCandidate(post=p, score=0.0) for p in posts]

            candidates = await self._candidates(terms, limit)
            ranked = rank_candidates(candidates, query, terms)[:limit]
            SEARCH_REQUESTS.labels(result="ranked").inc()
            logger.debug(
                "Search %r: %d candidates, %d matched", query, len(candidates), len(ranked)
            )
            return ranked
        except UpstreamError as e:
            SEARCH_REQUESTS.labels(result="error").inc()
            logger.error("Error searching posts for %r: %s", query, e)
            return []
        finally:
            SEARCH_DURATION.observe(time.perf_counter() - start)

    async def _recent(self, limit: int) -> List[PostRecord]:
        return await call_upstream(
            "store.list_recent_published_posts",
            self.store.list_recent_published_posts,
            limit,
            timeout=self.store_timeout,
        )

    async def _candidates(self, terms: Sequence[str], limit: int) -> List[PostRecord]:
        """Term-index hits first, then recent posts, de-duplicated."""
        cap = limit * self.candidate_multiplier
        by_terms = await call_upstream(
            "store.find_published_posts_by_terms",
            self.store.find_published_posts_by_terms,
            list(terms[:MAX_MEMBERSHIP_TERMS]),
            cap,
            timeout=self.store_timeout,
        )
        recent = await self._recent(cap)

        seen = {}
        for post in [*by_terms, *recent]:
            seen.setdefault(post.id, post)
        return list(seen.values())

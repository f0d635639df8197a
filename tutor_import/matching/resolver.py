from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from rapidfuzz.distance import Levenshtein

from ..models.reference import FieldMatch, MatchType, ReferenceEntity, ReferenceKind
from .normalize import (
    alnum_chars,
    contains_phrase,
    core_text,
    expand_alias,
    normalize_text,
)

"""Fuzzy entity resolution.

Ranker.rank(query, candidates, kind) returns every plausible candidate scored
0..100, best first. There is no rejection threshold here: callers decide what
score is "matched", "matched but low confidence", or "unmatched".

Ordering is fully deterministic: score desc, edit distance asc, normalized
name asc, id asc.
"""

__all__ = [
    "Ranker",
    "SimilarityRanker",
    "MultiResolution",
    "char_similarity",
    "best_match",
    "top_match",
    "resolve_many",
]

EXACT_SCORE = 100
ALIAS_SCORE = 95
CORE_SCORE = 95


class Ranker(Protocol):
    def rank(
        self,
        query: str,
        candidates: Sequence[ReferenceEntity],
        kind: ReferenceKind | None = None,
    ) -> list[FieldMatch]: ...


def char_similarity(a: str, b: str) -> int:
    """Levenshtein similarity in percent of the longer string."""
    if not a or not b:
        return 0
    if a == b:
        return 100
    longest = max(len(a), len(b))
    return round((1 - Levenshtein.distance(a, b) / longest) * 100)


def _containment_score(q: str, n: str) -> int:
    if not (q in n or n in q):
        return 0
    shorter, longer = sorted((len(q), len(n)))
    if shorter >= 4:
        return round(shorter / longer * 90)
    if shorter >= 2:
        return round(shorter / longer * 75)
    return 0


def _word_score(q: str, n: str) -> int:
    q_words = q.split()
    n_words = n.split()
    hits = 0
    perfect = 0
    for qw in q_words:
        for nw in n_words:
            if qw == nw:
                hits += 1
                perfect += 1
                break
            if char_similarity(qw, nw) > 80:
                hits += 1
                break
    if len(q_words) == 1 and perfect:
        return 80
    width = max(len(q_words), len(n_words))
    if perfect:
        return round(hits / width * 85 + perfect / width * 10)
    return round(hits / width * 75)


@dataclass(frozen=True)
class _Scored:
    score: int
    match_type: MatchType
    name: str
    normalized: str


class SimilarityRanker:
    """Default ranker: exact / alias / core comparisons, then containment,
    word overlap and Levenshtein character similarity (max of all)."""

    def rank(
        self,
        query: str,
        candidates: Sequence[ReferenceEntity],
        kind: ReferenceKind | None = None,
    ) -> list[FieldMatch]:
        q = normalize_text(query)
        if not q or not candidates:
            return []
        q_chars = alnum_chars(q)
        q_core = core_text(q, kind)
        alias = expand_alias(q, kind)

        results: list[tuple[FieldMatch, str]] = []
        for entity in candidates:
            best: _Scored | None = None
            entity_chars: set[str] = set()
            for name in entity.names:
                n = normalize_text(name)
                if not n:
                    continue
                entity_chars |= alnum_chars(n)
                scored = self._score_name(q, q_core, alias, n, name, kind)
                if best is None or scored.score > best.score:
                    best = scored
            if best is None or best.score <= 0 or not (q_chars & entity_chars):
                continue
            match = FieldMatch(
                reference_id=entity.id,
                matched_name=entity.name,
                similarity_score=best.score,
                edit_distance=Levenshtein.distance(q, best.normalized),
                match_type=best.match_type,
            )
            results.append((match, normalize_text(entity.name)))

        results.sort(
            key=lambda item: (
                -item[0].similarity_score,
                item[0].edit_distance,
                item[1],
                item[0].reference_id,
            )
        )
        return [m for m, _ in results]

    def _score_name(
        self,
        q: str,
        q_core: str,
        alias: str | None,
        n: str,
        raw: str,
        kind: ReferenceKind | None,
    ) -> _Scored:
        if q == n:
            return _Scored(EXACT_SCORE, MatchType.EXACT, raw, n)
        if alias and (alias == n or contains_phrase(n, alias) or contains_phrase(alias, n)):
            return _Scored(ALIAS_SCORE, MatchType.ALIAS, raw, n)
        n_core = core_text(n, kind)
        if q_core and q_core == n_core:
            return _Scored(CORE_SCORE, MatchType.CORE, raw, n)

        score = max(
            _containment_score(q, n),
            _word_score(q, n),
            char_similarity(q, n),
        )
        if (q_core, n_core) != (q, n):
            core_sim = char_similarity(q_core, n_core)
            if core_sim > 80:
                score = max(score, min(90, core_sim + 10))
        return _Scored(score, MatchType.FUZZY, raw, n)


@dataclass(frozen=True)
class MultiResolution:
    """Per-token outcome for a delimited multi-value field."""
    matched: list[tuple[str, FieldMatch]] = field(default_factory=list)
    unmatched: list[str] = field(default_factory=list)

    @property
    def reference_ids(self) -> list[str]:
        """Union of matched ids, first occurrence order."""
        seen: list[str] = []
        for _, m in self.matched:
            if m.reference_id not in seen:
                seen.append(m.reference_id)
        return seen


def best_match(
    ranker: Ranker,
    query: str,
    candidates: Sequence[ReferenceEntity],
    kind: ReferenceKind | None,
    floor: int,
) -> FieldMatch | None:
    """Top-ranked candidate scoring at least ``floor``; None when nothing qualifies."""
    return top_match(ranker, query, candidates, kind, floor)[0]


def top_match(
    ranker: Ranker,
    query: str,
    candidates: Sequence[ReferenceEntity],
    kind: ReferenceKind | None,
    floor: int,
) -> tuple[FieldMatch | None, FieldMatch | None]:
    """best_match plus the runner-up when it scores exactly as high.

    A tie means the query cannot tell the two apart ("Jawa" against Jawa Barat
    and Jawa Timur); the deterministic ordering still picks the first.
    """
    ranked = ranker.rank(query, candidates, kind)
    if not ranked or ranked[0].similarity_score < floor:
        return None, None
    if len(ranked) > 1 and ranked[1].similarity_score == ranked[0].similarity_score:
        return ranked[0], ranked[1]
    return ranked[0], None


def resolve_many(
    ranker: Ranker,
    tokens: Iterable[str],
    candidates: Sequence[ReferenceEntity],
    kind: ReferenceKind | None,
    floor: int,
) -> MultiResolution:
    matched: list[tuple[str, FieldMatch]] = []
    unmatched: list[str] = []
    for token in tokens:
        token = token.strip()
        if not token:
            continue
        m = best_match(ranker, token, candidates, kind, floor)
        if m is None:
            unmatched.append(token)
        else:
            matched.append((token, m))
    return MultiResolution(matched=matched, unmatched=unmatched)

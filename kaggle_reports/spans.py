"""
Tweet Span Core
- Multiset word Jaccard (the competition metric)
- Contiguous word n-gram candidates, shortest first
- Tie-break ranking: best score, then fewest words, then first generated
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Iterator

WORD_RE = re.compile(r"\S+")


@dataclass(frozen=True)
class TextRecord:
    id: str
    raw_text: str
    sentiment_label: str | None = None


@dataclass(frozen=True)
class CandidateSpan:
    source_id: str
    span_text: str
    word_count: int
    start_word: int
    char_start: int
    char_end: int


@dataclass(frozen=True)
class ScoredCandidate:
    source_id: str
    span_text: str
    predicted_score: float
    word_count: int
    order: int = 0


@dataclass(frozen=True)
class Selection:
    source_id: str
    chosen_span: str


def jaccard(a, b):
    """
    Word-level Jaccard index with multiset semantics.

    Both strings are lower-cased and split on whitespace. A word repeated in
    both strings counts once per matching occurrence (min count) in the
    intersection and max count in the union. Two empty strings score 0.
    """
    words_a = Counter(str(a).lower().split())
    words_b = Counter(str(b).lower().split())
    union = sum((words_a | words_b).values())
    if union == 0:
        return 0.0
    intersection = sum((words_a & words_b).values())
    return intersection / union


def mean_jaccard(truths, predictions):
    """Average Jaccard over aligned (truth, prediction) pairs."""
    scores = [jaccard(t, p) for t, p in zip(truths, predictions)]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


class CandidateSpans:
    """
    All contiguous word spans of a text, by increasing length then position.

    Iterating twice starts over. Each span is cut from the original text, so
    inner spacing and casing are kept as written.
    """

    def __init__(self, text, source_id=""):
        if isinstance(text, TextRecord):
            source_id = text.id
            text = text.raw_text
        self.text = text
        self.source_id = source_id
        self._words = [(m.start(), m.end()) for m in WORD_RE.finditer(text)]

    @property
    def word_count(self):
        return len(self._words)

    def __len__(self):
        n = len(self._words)
        return n * (n + 1) // 2

    def __iter__(self) -> Iterator[CandidateSpan]:
        words = self._words
        n = len(words)
        for length in range(1, n + 1):
            for start in range(0, n - length + 1):
                char_start = words[start][0]
                char_end = words[start + length - 1][1]
                yield CandidateSpan(
                    source_id=self.source_id,
                    span_text=self.text[char_start:char_end],
                    word_count=length,
                    start_word=start,
                    char_start=char_start,
                    char_end=char_end,
                )


def select_best(scored: Iterable[ScoredCandidate]) -> Selection:
    """
    Pick the winning candidate for one source text.

    Highest predicted_score wins. Exact score ties go to the candidate with
    fewer words; a remaining tie keeps the first one seen.
    """
    best = None
    for candidate in scored:
        if best is None:
            best = candidate
            continue
        if candidate.predicted_score > best.predicted_score:
            best = candidate
        elif (candidate.predicted_score == best.predicted_score
              and candidate.word_count < best.word_count):
            best = candidate
    if best is None:
        raise ValueError("select_best() needs at least one scored candidate")
    return Selection(source_id=best.source_id, chosen_span=best.span_text)


def select_spans(candidates, scores):
    """
    Apply select_best per source text.

    Args:
        candidates: Candidate frame with source_id, span_text, word_count, order
        scores: Array of predicted scores aligned with candidates rows

    Returns:
        Dict mapping source_id -> Selection, in first-seen source order
    """
    if len(candidates) != len(scores):
        raise ValueError(
            f"Got {len(scores)} scores for {len(candidates)} candidates"
        )
    frame = candidates[['source_id', 'span_text', 'word_count', 'order']].copy()
    frame['predicted_score'] = scores

    selections = {}
    for source_id, group in frame.groupby('source_id', sort=False):
        group = group.sort_values('order', kind='mergesort')
        scored = (
            ScoredCandidate(
                source_id=source_id,
                span_text=row.span_text,
                predicted_score=float(row.predicted_score),
                word_count=int(row.word_count),
                order=int(row.order),
            )
            for row in group.itertuples(index=False)
        )
        selections[source_id] = select_best(scored)
    return selections

"""
Candidate Span Feature Engineering
Fixed feature schema for (original text, candidate span, remainder) triples.
Every feature-based scorer is trained and applied on FEATURE_COLUMNS.
"""

import re
import string
from functools import lru_cache

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from vaderSentiment.vaderSentiment import SentimentIntensityAnalyzer

from kaggle_reports.spans import CandidateSpans, jaccard

FIELDS = ('text', 'span', 'rest')
COUNT_STATS = ('chars', 'words', 'punct', 'exclaim')
SENTIMENT_LABELS = ('positive', 'negative', 'neutral')
PUNCTUATION = frozenset(string.punctuation)

IDENTITY_COLUMNS = [
    'source_id', 'order', 'span_text', 'word_count', 'start_word',
    'char_start', 'char_end', 'text', 'sentiment',
]


def _build_schema():
    schema = []
    for field in FIELDS:
        schema += [
            (f'{field}_chars', f'len({field})'),
            (f'{field}_words', f'len({field}.split())'),
            (f'{field}_punct', f'count of {field} characters in string.punctuation'),
            (f'{field}_exclaim', f'{field}.count("!")'),
            (f'{field}_compound', f'VADER compound score of {field}'),
            (f'{field}_pos', f'VADER positive proportion of {field}'),
            (f'{field}_neg', f'VADER negative proportion of {field}'),
        ]
    for part in ('span', 'rest'):
        for stat in COUNT_STATS:
            schema.append(
                (f'{part}_text_{stat}_ratio', f'safe_ratio({part}_{stat}, text_{stat})')
            )
    schema += [
        ('span_text_compound_diff', 'span_compound - text_compound'),
        ('span_rest_compound_diff', 'span_compound - rest_compound'),
        ('rest_text_compound_diff', 'rest_compound - text_compound'),
        ('span_text_compound_ratio', 'safe_ratio(span_compound, text_compound)'),
        ('rest_text_compound_ratio', 'safe_ratio(rest_compound, text_compound)'),
        ('span_start_frac', 'safe_ratio(start_word, text_words)'),
        ('span_is_whole', '1 if span_words == text_words else 0'),
    ]
    for label in SENTIMENT_LABELS:
        schema.append((f'sentiment_{label}', f'1 if sentiment == "{label}" else 0'))
    return tuple(schema)


# (name, formula) pairs; the order here is the column order
FEATURE_SCHEMA = _build_schema()
FEATURE_COLUMNS = [name for name, _ in FEATURE_SCHEMA]


@lru_cache(maxsize=1)
def _analyzer():
    return SentimentIntensityAnalyzer()


def sentiment_scores(text):
    """VADER (compound, pos, neg) for a string; all zero for empty text."""
    if not text or not text.strip():
        return 0.0, 0.0, 0.0
    scores = _analyzer().polarity_scores(text)
    return scores['compound'], scores['pos'], scores['neg']


def safe_ratio(num, den):
    """num / den, or 0.0 when the denominator is zero."""
    if den == 0:
        return 0.0
    return float(num) / float(den)


def remove_span(text, span, start=0):
    """
    Remove the first literal occurrence of span at or after `start`.

    The span is escaped so regex metacharacters match literally; the seam
    left behind is collapsed to a single space.
    """
    rest = text
    if span:
        match = re.compile(re.escape(span)).search(text, start)
        if match:
            rest = text[:match.start()] + ' ' + text[match.end():]
    return ' '.join(rest.split())


def remove_candidate(text, candidate):
    """Remainder of text with this candidate cut out at its own position."""
    return remove_span(text, candidate.span_text, start=candidate.char_start)


def _field_stats(value):
    compound, pos, neg = sentiment_scores(value)
    return {
        'chars': len(value),
        'words': len(value.split()),
        'punct': sum(1 for c in value if c in PUNCTUATION),
        'exclaim': value.count('!'),
        'compound': compound,
        'pos': pos,
        'neg': neg,
    }


def extract_features(text, span, rest, sentiment=None, start_word=0):
    """
    Compute the fixed feature vector for one candidate.

    Args:
        text: Original text
        span: Candidate span
        rest: Text remaining after removing the span
        sentiment: Record sentiment label, if known
        start_word: Index of the span's first word in the original text

    Returns:
        Dict with exactly the FEATURE_COLUMNS keys, in schema order
    """
    stats = {field: _field_stats(value)
             for field, value in zip(FIELDS, (text, span, rest))}

    features = {}
    for field in FIELDS:
        for stat, value in stats[field].items():
            features[f'{field}_{stat}'] = float(value)

    for part in ('span', 'rest'):
        for stat in COUNT_STATS:
            features[f'{part}_text_{stat}_ratio'] = safe_ratio(
                stats[part][stat], stats['text'][stat]
            )

    span_c = stats['span']['compound']
    text_c = stats['text']['compound']
    rest_c = stats['rest']['compound']
    features['span_text_compound_diff'] = span_c - text_c
    features['span_rest_compound_diff'] = span_c - rest_c
    features['rest_text_compound_diff'] = rest_c - text_c
    features['span_text_compound_ratio'] = safe_ratio(span_c, text_c)
    features['rest_text_compound_ratio'] = safe_ratio(rest_c, text_c)
    features['span_start_frac'] = safe_ratio(start_word, stats['text']['words'])
    features['span_is_whole'] = float(stats['span']['words'] == stats['text']['words'])

    label = (sentiment or '').strip().lower()
    for name in SENTIMENT_LABELS:
        features[f'sentiment_{name}'] = float(label == name)

    return {name: features[name] for name in FEATURE_COLUMNS}


def candidate_features(record, candidate):
    """Feature vector for a CandidateSpan of a TextRecord."""
    rest = remove_candidate(record.raw_text, candidate)
    return extract_features(
        record.raw_text,
        candidate.span_text,
        rest,
        sentiment=record.sentiment_label,
        start_word=candidate.start_word,
    )


def candidate_rows(record, selected_text=None, max_words=None):
    """One row per candidate of a record: identity columns + features (+ target)."""
    rows = []
    for order, candidate in enumerate(CandidateSpans(record)):
        if max_words is not None and candidate.word_count > max_words:
            break
        row = {
            'source_id': record.id,
            'order': order,
            'span_text': candidate.span_text,
            'word_count': candidate.word_count,
            'start_word': candidate.start_word,
            'char_start': candidate.char_start,
            'char_end': candidate.char_end,
            'text': record.raw_text,
            'sentiment': record.sentiment_label,
        }
        row.update(candidate_features(record, candidate))
        if selected_text is not None:
            row['target'] = jaccard(candidate.span_text, selected_text)
        rows.append(row)
    return rows


def build_candidate_frame(records, selected=None, n_jobs=1, max_words=None):
    """
    Build the candidate table for a batch of records.

    Args:
        records: Sequence of TextRecord
        selected: Optional mapping record id -> ground-truth span; adds 'target'
        n_jobs: joblib workers; records are independent of each other
        max_words: Optional cap on candidate length (in words)

    Returns:
        DataFrame with IDENTITY_COLUMNS + FEATURE_COLUMNS (+ 'target'),
        ordered by record then generation order
    """
    def selected_for(record):
        if selected is None:
            return None
        return selected.get(record.id, '')

    per_record = Parallel(n_jobs=n_jobs)(
        delayed(candidate_rows)(record, selected_for(record), max_words)
        for record in records
    )
    rows = [row for chunk in per_record for row in chunk]

    columns = IDENTITY_COLUMNS + FEATURE_COLUMNS
    if selected is not None:
        columns = columns + ['target']
    frame = pd.DataFrame(rows, columns=columns)
    frame[FEATURE_COLUMNS] = frame[FEATURE_COLUMNS].astype(np.float64)
    return frame

import numpy as np
import pandas as pd
import pytest
from sklearn.linear_model import LinearRegression

from kaggle_reports.span_features import FEATURE_COLUMNS, build_candidate_frame
from kaggle_reports.spans import Selection
from kaggle_reports.tweet_sentiment import (
    EnsembleScorer,
    FeatureModelScorer,
    load_tweets,
    predict_selections,
    run_tweet_report,
    selected_mapping,
    to_records,
    train_candidate_scorers,
)


class SpanLookupScorer:
    """Scores candidates from a fixed span -> score table (0 otherwise)."""

    def __init__(self, table):
        self.table = table

    def predict(self, candidates):
        return np.array([self.table.get(s, 0.0) for s in candidates['span_text']])


class ConstantModel:
    def __init__(self, value):
        self.value = value

    def predict(self, X):
        assert list(X.columns) == FEATURE_COLUMNS
        return np.full(len(X), self.value)


def test_to_records_excludes_malformed(tweet_frames):
    train, test = tweet_frames
    train = train.copy()
    train.loc[len(train)] = ['a11', np.nan, np.nan, 'neutral']

    records, dropped = to_records(train)
    test_records, test_dropped = to_records(test)

    assert dropped == ['a9', 'a11']
    assert [r.id for r in records][:2] == ['a1', 'a2']
    assert test_dropped == ['t2']
    assert [r.id for r in test_records] == ['t3', 't1', 't4']


def test_load_tweets_keeps_literal_null_words(tmp_path):
    path = tmp_path / 'tweets.csv'
    pd.DataFrame({
        'textID': ['001', '002'],
        'text': ['NA', ''],
        'sentiment': ['neutral', 'neutral'],
    }).to_csv(path, index=False)

    frame = load_tweets(path)

    assert list(frame['textID']) == ['001', '002']
    assert frame['text'].iloc[0] == 'NA'
    assert pd.isna(frame['text'].iloc[1])


def test_selected_mapping_fills_missing(tweet_frames):
    train, _ = tweet_frames
    train = train.copy()
    train.loc[0, 'selected_text'] = np.nan
    assert selected_mapping(train)['a1'] == ''


def test_predict_selections_shortest_on_tie_and_dropped_ids():
    records, dropped = to_records(pd.DataFrame({
        'textID': ['r1', 'r2'],
        'text': ['I am so very happy today', None],
        'sentiment': ['positive', 'neutral'],
    }))
    scorer = SpanLookupScorer({'so very happy': 1.0, 'very happy': 1.0})

    selections = predict_selections(records, dropped, scorer, n_jobs=1)

    assert selections == {
        'r1': Selection('r1', 'very happy'),
        'r2': Selection('r2', ''),
    }


def test_feature_model_scorer_uses_schema_columns(tweet_frames):
    train, _ = tweet_frames
    records, _ = to_records(train)
    candidates = build_candidate_frame(records[:2], n_jobs=1)

    scores = FeatureModelScorer(ConstantModel(0.3)).predict(candidates)

    assert scores.shape == (len(candidates),)
    assert np.allclose(scores, 0.3)


def test_ensemble_scorer_weighted_average():
    candidates = pd.DataFrame({'span_text': ['a', 'b']})
    ensemble = EnsembleScorer(
        [SpanLookupScorer({'a': 1.0}), SpanLookupScorer({'b': 1.0})], weights=[3, 1]
    )
    np.testing.assert_allclose(ensemble.predict(candidates), [0.75, 0.25])

    with pytest.raises(ValueError):
        EnsembleScorer([])
    with pytest.raises(ValueError):
        EnsembleScorer([SpanLookupScorer({})], weights=[1, 2])


def test_train_candidate_scorers_fit_and_save(tweet_frames, tmp_path):
    train, _ = tweet_frames
    records, _ = to_records(train)
    truths = selected_mapping(train)
    candidates = build_candidate_frame(records, selected=truths, n_jobs=1)

    scorer = train_candidate_scorers(candidates, truths, n_estimators=20, model_dir=tmp_path)

    assert (tmp_path / 'tweet_lightgbm.pkl').exists()
    assert (tmp_path / 'tweet_xgboost.pkl').exists()
    scores = scorer.predict(candidates)
    assert scores.shape == (len(candidates),)
    assert np.isfinite(scores).all()


def test_linear_regressor_plugs_in_as_scorer(tweet_frames):
    train, _ = tweet_frames
    records, _ = to_records(train)
    truths = selected_mapping(train)
    candidates = build_candidate_frame(records, selected=truths, n_jobs=1)
    model = LinearRegression().fit(candidates[FEATURE_COLUMNS], candidates['target'])

    selections = predict_selections(records, [], FeatureModelScorer(model), n_jobs=1)

    assert set(selections) == {r.id for r in records}


def test_run_tweet_report_end_to_end(data_dir, tmp_path, tweet_frames):
    _, test = tweet_frames
    path = tmp_path / 'tweets.csv'

    submission = run_tweet_report(
        data_dir=data_dir, submission_path=path, model_dir=tmp_path / 'models', n_jobs=1,
    )

    lines = path.read_text(encoding='utf-8').splitlines()
    assert lines[0] == 'textID,selected_text'
    assert len(lines) == len(test) + 1
    assert list(submission['textID']) == list(test['textID'])
    assert all(line.startswith('"') for line in lines[1:])
    blank = submission.set_index('textID').loc['t2', 'selected_text']
    assert blank == ''
    for text_id, span in zip(submission['textID'], submission['selected_text']):
        original = test.set_index('textID').loc[text_id, 'text']
        assert span in original


class FailingScorer:
    def predict(self, candidates):
        raise AssertionError("nothing to score")


def test_predict_selections_when_every_record_is_malformed():
    records, dropped = to_records(pd.DataFrame({
        'textID': ['x', 'y'],
        'text': ['   ', None],
        'sentiment': ['neutral', 'positive'],
    }))

    selections = predict_selections(records, dropped, FailingScorer(), n_jobs=1)

    assert records == []
    assert selections == {'x': Selection('x', ''), 'y': Selection('y', '')}


def test_run_tweet_report_all_blank_test_rows(data_dir, tmp_path):
    blank = pd.DataFrame({
        'textID': ['b2', 'b1'],
        'text': ['', '  '],
        'sentiment': ['neutral', 'negative'],
    })
    blank.to_csv(data_dir / 'tweet-sentiment-extraction' / 'test.csv', index=False)
    path = tmp_path / 'blank.csv'

    submission = run_tweet_report(
        data_dir=data_dir, submission_path=path, model_dir=tmp_path / 'models', n_jobs=1,
    )

    assert list(submission['textID']) == ['b2', 'b1']
    assert list(submission['selected_text']) == ['', '']
    assert path.read_text(encoding='utf-8').splitlines() == [
        'textID,selected_text', '"b2",""', '"b1",""',
    ]


def test_run_tweet_report_rejects_empty_training_sample(data_dir, tmp_path):
    with pytest.raises(ValueError, match='sample_frac'):
        run_tweet_report(
            data_dir=data_dir, submission_path=tmp_path / 'x.csv',
            model_dir=tmp_path / 'models', n_jobs=1, sample_frac=0.0,
        )

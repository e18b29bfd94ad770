from pathlib import Path
import sys

import numpy as np
import pandas as pd
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from kaggle_reports.config import HOUSING_DIR, TITANIC_DIR, TWEET_DIR  # noqa: E402

TITLES = ['Mr', 'Mrs', 'Miss', 'Master', 'Dr']


def make_titanic(n, seed, with_target=True, start_id=1):
    rng = np.random.default_rng(seed)
    sex = rng.choice(['male', 'female'], size=n)
    titles = [
        rng.choice(['Mr', 'Master', 'Dr']) if s == 'male' else rng.choice(['Mrs', 'Miss', 'Mlle'])
        for s in sex
    ]
    frame = pd.DataFrame({
        'PassengerId': np.arange(start_id, start_id + n),
        'Pclass': rng.choice([1, 2, 3], size=n),
        'Name': [f'Family{i}, {t}. Person' for i, t in enumerate(titles)],
        'Sex': sex,
        'Age': np.where(rng.random(n) < 0.2, np.nan, rng.uniform(1, 70, size=n).round()),
        'SibSp': rng.integers(0, 3, size=n),
        'Parch': rng.integers(0, 3, size=n),
        'Ticket': [f'T{i}' for i in range(n)],
        'Fare': np.where(rng.random(n) < 0.05, np.nan, rng.uniform(5, 200, size=n).round(2)),
        'Cabin': np.where(rng.random(n) < 0.7, None, 'C85'),
        'Embarked': np.where(rng.random(n) < 0.05, None, rng.choice(['S', 'C', 'Q'], size=n)),
    })
    if with_target:
        frame.insert(1, 'Survived', ((sex == 'female') | (rng.random(n) < 0.2)).astype(int))
    return frame


def make_housing(n, seed, with_target=True, start_id=1):
    rng = np.random.default_rng(seed)
    living = rng.uniform(700, 3000, size=n).round()
    frame = pd.DataFrame({
        'Id': np.arange(start_id, start_id + n),
        'MSSubClass': rng.choice([20, 60, 120], size=n),
        'Neighborhood': rng.choice(['NAmes', 'CollgCr', 'OldTown'], size=n),
        'LotFrontage': np.where(rng.random(n) < 0.2, np.nan, rng.uniform(40, 100, size=n).round()),
        'LotArea': rng.uniform(5000, 20000, size=n).round(),
        'OverallQual': rng.integers(3, 10, size=n),
        'YearBuilt': rng.integers(1900, 2008, size=n),
        'YearRemodAdd': rng.integers(1950, 2009, size=n),
        'ExterQual': rng.choice(['Ex', 'Gd', 'TA', 'Fa'], size=n),
        'KitchenQual': rng.choice(['Ex', 'Gd', 'TA', None], size=n),
        'BsmtQual': rng.choice(['Gd', 'TA', None], size=n),
        'PoolQC': [None] * n,
        'Alley': rng.choice(['Grvl', None], size=n),
        'GarageArea': np.where(rng.random(n) < 0.1, np.nan, rng.uniform(0, 800, size=n).round()),
        'TotalBsmtSF': rng.uniform(0, 1500, size=n).round(),
        'BsmtFullBath': rng.integers(0, 2, size=n).astype(float),
        'BsmtHalfBath': rng.integers(0, 2, size=n).astype(float),
        '1stFlrSF': living * 0.6,
        '2ndFlrSF': living * 0.4,
        'GrLivArea': living,
        'FullBath': rng.integers(1, 3, size=n),
        'HalfBath': rng.integers(0, 2, size=n),
        'MoSold': rng.integers(1, 13, size=n),
        'YrSold': rng.integers(2006, 2011, size=n),
    })
    if with_target:
        frame['SalePrice'] = (
            20000 + 80 * living + 10000 * frame['OverallQual'] + rng.normal(0, 5000, size=n)
        ).round()
    return frame


TWEETS_TRAIN = [
    ('a1', 'I am so very happy today', 'so very happy', 'positive'),
    ('a2', 'This is the worst day ever', 'worst day', 'negative'),
    ('a3', 'just going to the store', 'just going to the store', 'neutral'),
    ('a4', 'Love this song so much!', 'Love', 'positive'),
    ('a5', 'I hate waiting in line', 'hate', 'negative'),
    ('a6', 'The weather is okay I guess', 'The weather is okay I guess', 'neutral'),
    ('a7', 'Great game last night', 'Great game', 'positive'),
    ('a8', 'so sad about the news', 'so sad', 'negative'),
    ('a9', '', '', 'neutral'),
    ('a10', 'what a wonderful surprise (really)', 'wonderful', 'positive'),
]

TWEETS_TEST = [
    ('t3', 'terrible traffic this morning', 'negative'),
    ('t1', 'what a lovely day', 'positive'),
    ('t2', '   ', 'neutral'),
    ('t4', 'meeting at noon', 'neutral'),
]


@pytest.fixture
def titanic_frames():
    return make_titanic(80, seed=0), make_titanic(20, seed=1, with_target=False, start_id=900)


@pytest.fixture
def housing_frames():
    return make_housing(60, seed=0), make_housing(15, seed=1, with_target=False, start_id=2000)


@pytest.fixture
def tweet_frames():
    train = pd.DataFrame(TWEETS_TRAIN, columns=['textID', 'text', 'selected_text', 'sentiment'])
    test = pd.DataFrame(TWEETS_TEST, columns=['textID', 'text', 'sentiment'])
    return train, test


@pytest.fixture
def data_dir(tmp_path, titanic_frames, housing_frames, tweet_frames):
    """Data root laid out as <competition>/train.csv and test.csv."""
    for folder, (train, test) in [
        (TITANIC_DIR, titanic_frames),
        (HOUSING_DIR, housing_frames),
        (TWEET_DIR, tweet_frames),
    ]:
        target = tmp_path / 'Data' / folder
        target.mkdir(parents=True)
        train.to_csv(target / 'train.csv', index=False)
        test.to_csv(target / 'test.csv', index=False)
    return tmp_path / 'Data'

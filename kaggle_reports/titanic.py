"""
Titanic Survival Report
Manual cleaning and feature engineering, five classifiers with fixed
hyperparameters, averaged-probability ensemble, PassengerId/Survived submission.
"""

import os

import numpy as np
import pandas as pd
from sklearn.compose import ColumnTransformer
from sklearn.ensemble import GradientBoostingClassifier, RandomForestClassifier
from sklearn.impute import SimpleImputer
from sklearn.linear_model import LogisticRegression
from sklearn.metrics import accuracy_score
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder, StandardScaler
from sklearn.svm import SVC
from xgboost import XGBClassifier

from kaggle_reports.config import N_FOLDS, RANDOM_STATE, SUBMISSION_DIR, TITANIC_DIR
from kaggle_reports.ensemble import average_predictions
from kaggle_reports.modeling import ModelSpec, fit_models
from kaggle_reports.preprocessing import fill_group_median, load_competition_data, recode_levels
from kaggle_reports.submission import write_submission

ID_COL = 'PassengerId'
TARGET_COL = 'Survived'

TITLE_MAP = {
    'Mr': 'Mr', 'Mrs': 'Mrs', 'Miss': 'Miss', 'Master': 'Master',
    'Mlle': 'Miss', 'Ms': 'Miss', 'Mme': 'Mrs',
}

NUMERIC_COLS = ['Age', 'Fare', 'SibSp', 'Parch', 'FamilySize', 'FarePerPerson']
CATEGORICAL_COLS = ['Pclass', 'Sex', 'Embarked', 'Title', 'IsAlone', 'Deck']


def extract_title(name):
    """'Braund, Mr. Owen Harris' -> 'Mr'; unknown formats -> 'Rare'."""
    if not isinstance(name, str) or ',' not in name or '.' not in name:
        return 'Rare'
    title = name.split(',', 1)[1].split('.', 1)[0].strip()
    return TITLE_MAP.get(title, 'Rare')


def engineer_features(frame):
    """
    Clean and extend a raw Titanic frame (train or test).

    Features:
    - Title from Name, rare titles grouped
    - FamilySize, IsAlone, FarePerPerson
    - Deck from Cabin ('U' when unknown)
    - Embarked -> mode, Fare -> Pclass median, Age -> Title median
    - Sex recoded to 0/1
    """
    df = frame.copy()

    df['Title'] = df['Name'].apply(extract_title)
    df['FamilySize'] = df['SibSp'] + df['Parch'] + 1
    df['IsAlone'] = (df['FamilySize'] == 1).astype(int)
    df['Deck'] = df['Cabin'].apply(
        lambda c: c[0] if isinstance(c, str) and len(c) > 0 else 'U'
    )

    if df['Embarked'].notnull().any():
        df['Embarked'] = df['Embarked'].fillna(df['Embarked'].mode().iloc[0])
    df['Fare'] = fill_group_median(df, 'Fare', 'Pclass')
    df['FarePerPerson'] = df['Fare'] / df['FamilySize']
    df['Age'] = fill_group_median(df, 'Age', 'Title')

    df['Sex'] = recode_levels(df['Sex'], {'male': 0, 'female': 1})

    return df


def build_preprocessor():
    """Median-impute + scale numerics; mode-impute + one-hot categoricals."""
    num_pipe = Pipeline([
        ('imp', SimpleImputer(strategy='median')),
        ('sc', StandardScaler()),
    ])
    cat_pipe = Pipeline([
        ('imp', SimpleImputer(strategy='most_frequent')),
        ('ohe', OneHotEncoder(handle_unknown='ignore')),
    ])
    return ColumnTransformer([
        ('num', num_pipe, NUMERIC_COLS),
        ('cat', cat_pipe, CATEGORICAL_COLS),
    ])


def titanic_model_specs():
    """Classifiers with the fixed hyperparameters used for the report."""
    return [
        ModelSpec('LogisticRegression', lambda: LogisticRegression(
            C=1.0, max_iter=1000)),
        ModelSpec('SVC', lambda: SVC(
            C=1.0, kernel='rbf', gamma='scale', probability=True,
            random_state=RANDOM_STATE)),
        ModelSpec('RandomForest', lambda: RandomForestClassifier(
            n_estimators=400, max_depth=7, max_features='sqrt',
            random_state=RANDOM_STATE)),
        ModelSpec('GradientBoosting', lambda: GradientBoostingClassifier(
            n_estimators=200, learning_rate=0.05, max_depth=3,
            random_state=RANDOM_STATE)),
        ModelSpec('XGBoost', lambda: XGBClassifier(
            n_estimators=300, learning_rate=0.05, max_depth=4,
            subsample=0.8, colsample_bytree=0.8, eval_metric='logloss',
            random_state=RANDOM_STATE, verbosity=0)),
    ]


def accuracy_at_half(y_true, y_prob):
    return accuracy_score(y_true, (np.asarray(y_prob) >= 0.5).astype(int))


def run_titanic_report(data_dir=None, submission_path=None, n_splits=N_FOLDS, specs=None):
    """
    Full Titanic pipeline:
    1. Load train and test data
    2. Engineer features
    3. Train each model (OOF accuracy + final fit)
    4. Average probabilities into the ensemble
    5. Write submission
    """
    print("=" * 60)
    print("TITANIC SURVIVAL REPORT")
    print("=" * 60)

    print("\n[1/5] Loading data...")
    train, test = load_competition_data(TITANIC_DIR, data_dir)

    print("\n[2/5] Engineering features...")
    train = engineer_features(train)
    test = engineer_features(test)
    print(f"  Titles: {train['Title'].value_counts().to_dict()}")
    print(f"  Survival rate: {train[TARGET_COL].mean():.2%}")

    features = NUMERIC_COLS + CATEGORICAL_COLS
    X, y = train[features], train[TARGET_COL]
    X_test = test[features]

    print("\n[3/5] Training models...")
    specs = specs if specs is not None else titanic_model_specs()
    oof, test_probs, scores = fit_models(
        specs, build_preprocessor(), X, y, X_test, accuracy_at_half, n_splits=n_splits
    )

    print("\n[4/5] Averaging model probabilities...")
    names = [spec.name for spec in specs]
    oof_ensemble = average_predictions([oof[n] for n in names])
    ensemble_accuracy = accuracy_at_half(y, oof_ensemble)
    scores['Ensemble'] = float(ensemble_accuracy)
    for name, score in scores.items():
        print(f"  {name}: {score:.4f}")

    test_ensemble = average_predictions([test_probs[n] for n in names])
    survived = (test_ensemble >= 0.5).astype(int)

    print("\n[5/5] Writing submission...")
    if submission_path is None:
        submission_path = os.path.join(SUBMISSION_DIR, 'titanic_submission.csv')
    predictions = dict(zip(test[ID_COL], survived))
    submission = write_submission(
        predictions, test[ID_COL], submission_path, columns=(ID_COL, TARGET_COL)
    )

    print("\n✅ TITANIC SUBMISSION CREATED!")
    print(f"  File: {submission_path}")
    print(f"  Predicted survival rate: {submission[TARGET_COL].mean():.2%}")

    return submission, pd.Series(scores)

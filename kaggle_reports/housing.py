"""
Ames House Prices Report
- Outlier removal, absence-aware imputation, ordinal quality recoding
- log1p target and skew correction
- Linear + boosted regressors, SLSQP-optimized linear blend on OOF predictions
"""

import os

import numpy as np
import pandas as pd
from lightgbm import LGBMRegressor
from scipy.stats import skew
from sklearn.compose import ColumnTransformer, make_column_selector
from sklearn.ensemble import GradientBoostingRegressor
from sklearn.impute import SimpleImputer
from sklearn.linear_model import ElasticNet, Lasso, Ridge
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder, RobustScaler
from xgboost import XGBRegressor

from kaggle_reports.config import HOUSING_DIR, N_FOLDS, RANDOM_STATE, SUBMISSION_DIR
from kaggle_reports.ensemble import blend_predictions, optimize_blend_weights, rmse
from kaggle_reports.modeling import ModelSpec, fit_models
from kaggle_reports.preprocessing import (
    fill_group_median,
    load_competition_data,
    missing_summary,
    recode_levels,
)
from kaggle_reports.submission import write_submission

ID_COL = 'Id'
TARGET_COL = 'SalePrice'

# NA means "feature absent" for these columns
ABSENT_CATEGORICAL = [
    'PoolQC', 'MiscFeature', 'Alley', 'Fence', 'FireplaceQu',
    'GarageType', 'GarageFinish', 'GarageQual', 'GarageCond',
    'BsmtQual', 'BsmtCond', 'BsmtExposure', 'BsmtFinType1', 'BsmtFinType2',
    'MasVnrType',
]
ABSENT_NUMERIC = [
    'GarageYrBlt', 'GarageArea', 'GarageCars',
    'BsmtFinSF1', 'BsmtFinSF2', 'BsmtUnfSF', 'TotalBsmtSF',
    'BsmtFullBath', 'BsmtHalfBath', 'MasVnrArea',
]

QUALITY_LEVELS = {'Ex': 5, 'Gd': 4, 'TA': 3, 'Fa': 2, 'Po': 1, 'None': 0}
QUALITY_COLS = [
    'ExterQual', 'ExterCond', 'BsmtQual', 'BsmtCond', 'HeatingQC',
    'KitchenQual', 'FireplaceQu', 'GarageQual', 'GarageCond', 'PoolQC',
]

# Numeric codes that are really categories
AS_CATEGORY = ['MSSubClass', 'MoSold', 'YrSold']


def remove_outliers(frame):
    """Drop the huge-but-cheap houses (GrLivArea > 4000, SalePrice < 300k)."""
    mask = (frame['GrLivArea'] > 4000) & (frame[TARGET_COL] < 300000)
    print(f"  Removing {int(mask.sum())} outliers")
    return frame.loc[~mask].reset_index(drop=True)


def clean_housing(frame):
    """
    Clean a raw Ames frame (train or test).

    - Absent categoricals -> 'None', absent numerics -> 0
    - LotFrontage -> Neighborhood median
    - Quality levels Ex..Po -> 5..1 (None -> 0)
    - Year/month/class codes as categories
    - TotalSF, TotalBath, HouseAge, RemodAge
    """
    df = frame.copy()

    for col in ABSENT_CATEGORICAL:
        if col in df:
            df[col] = df[col].fillna('None')
    for col in ABSENT_NUMERIC:
        if col in df:
            df[col] = df[col].fillna(0)

    df['LotFrontage'] = fill_group_median(df, 'LotFrontage', 'Neighborhood')

    for col in QUALITY_COLS:
        if col in df:
            df[col] = recode_levels(df[col].fillna('None'), QUALITY_LEVELS, default=0).astype(int)

    for col in AS_CATEGORY:
        if col in df:
            df[col] = df[col].astype(str)

    df['TotalSF'] = df['TotalBsmtSF'] + df['1stFlrSF'] + df['2ndFlrSF']
    df['TotalBath'] = (
        df['FullBath'] + 0.5 * df['HalfBath']
        + df['BsmtFullBath'] + 0.5 * df['BsmtHalfBath']
    )
    df['HouseAge'] = df['YrSold'].astype(int) - df['YearBuilt']
    df['RemodAge'] = df['YrSold'].astype(int) - df['YearRemodAdd']

    return df


def log_transform_skewed(train, test, threshold=0.75, exclude=(ID_COL, TARGET_COL)):
    """
    log1p numeric columns whose train skew exceeds the threshold.

    Skew is measured on train only; the same columns are transformed in test.
    Returns (train, test, skewed_columns).
    """
    numeric = [
        c for c in train.select_dtypes(include=[np.number]).columns
        if c not in exclude
    ]
    skews = train[numeric].apply(lambda s: skew(s.dropna()))
    skewed = [c for c in skews.index if skews[c] > threshold and train[c].min() >= 0]

    train, test = train.copy(), test.copy()
    for col in skewed:
        train[col] = np.log1p(train[col])
        test[col] = np.log1p(test[col].clip(lower=0))
    return train, test, skewed


def build_preprocessor():
    """Median-impute numerics; mode-impute + one-hot categoricals; robust scaling."""
    num_pipe = Pipeline([
        ('imp', SimpleImputer(strategy='median')),
        ('sc', RobustScaler()),
    ])
    cat_pipe = Pipeline([
        ('imp', SimpleImputer(strategy='most_frequent')),
        ('ohe', OneHotEncoder(handle_unknown='ignore')),
    ])
    return ColumnTransformer([
        ('num', num_pipe, make_column_selector(dtype_include=np.number)),
        ('cat', cat_pipe, make_column_selector(dtype_exclude=np.number)),
    ])


def housing_model_specs():
    """Regressors with the fixed hyperparameters used for the report."""
    return [
        ModelSpec('Ridge', lambda: Ridge(alpha=10.0)),
        ModelSpec('Lasso', lambda: Lasso(alpha=0.0005, max_iter=50000)),
        ModelSpec('ElasticNet', lambda: ElasticNet(
            alpha=0.0005, l1_ratio=0.9, max_iter=50000)),
        ModelSpec('GradientBoosting', lambda: GradientBoostingRegressor(
            n_estimators=1500, learning_rate=0.03, max_depth=4,
            max_features='sqrt', min_samples_leaf=15, loss='huber',
            random_state=RANDOM_STATE)),
        ModelSpec('XGBoost', lambda: XGBRegressor(
            n_estimators=1500, learning_rate=0.03, max_depth=3,
            subsample=0.7, colsample_bytree=0.7, reg_alpha=0.005,
            tree_method='hist', random_state=RANDOM_STATE, verbosity=0)),
        ModelSpec('LightGBM', lambda: LGBMRegressor(
            n_estimators=1500, learning_rate=0.03, num_leaves=15,
            subsample=0.7, subsample_freq=1, colsample_bytree=0.7,
            random_state=RANDOM_STATE, verbose=-1)),
    ]


def run_housing_report(data_dir=None, submission_path=None, n_splits=N_FOLDS, specs=None):
    """
    Full Ames pipeline:
    1. Load train and test data
    2. Remove outliers, clean, engineer features
    3. log1p target and skewed features
    4. Train each model (OOF RMSE in log space + final fit)
    5. Optimize blend weights on OOF predictions
    6. Blend test predictions, expm1, write submission
    """
    print("=" * 60)
    print("AMES HOUSE PRICES REPORT")
    print("=" * 60)

    print("\n[1/6] Loading data...")
    train, test = load_competition_data(HOUSING_DIR, data_dir)
    print("  Most incomplete columns:")
    print(missing_summary(train).to_string())

    print("\n[2/6] Cleaning and engineering features...")
    train = remove_outliers(train)
    train = clean_housing(train)
    test = clean_housing(test)

    print("\n[3/6] Log-transforming target and skewed features...")
    y = np.log1p(train[TARGET_COL])
    print(f"  SalePrice skew: {skew(train[TARGET_COL]):.2f} -> {skew(y):.2f}")
    train, test, skewed = log_transform_skewed(train, test)
    print(f"  {len(skewed)} skewed features log1p-transformed")

    features = [c for c in train.columns if c not in (ID_COL, TARGET_COL)]
    X, X_test = train[features], test[features]

    print("\n[4/6] Training models...")
    specs = specs if specs is not None else housing_model_specs()
    oof, test_preds, scores = fit_models(
        specs, build_preprocessor(), X, y, X_test, rmse, n_splits=n_splits
    )

    print("\n[5/6] Optimizing blend weights on OOF predictions...")
    names = [spec.name for spec in specs]
    weights = optimize_blend_weights([oof[n] for n in names], y.values, rmse, names)
    scores['Blend'] = rmse(y, blend_predictions([oof[n] for n in names], weights))
    for name, score in scores.items():
        print(f"  {name} RMSE (log): {score:.4f}")

    print("\n[6/6] Blending test predictions and writing submission...")
    blend_log = blend_predictions([test_preds[n] for n in names], weights)
    prices = np.expm1(np.clip(blend_log, 0, 20))

    if submission_path is None:
        submission_path = os.path.join(SUBMISSION_DIR, 'housing_submission.csv')
    predictions = dict(zip(test[ID_COL], prices))
    submission = write_submission(
        predictions, test[ID_COL], submission_path, columns=(ID_COL, TARGET_COL)
    )

    print("\n✅ HOUSING SUBMISSION CREATED!")
    print(f"  File: {submission_path}")
    print(f"  Price range: [{submission[TARGET_COL].min():.0f}, {submission[TARGET_COL].max():.0f}]")

    return submission, pd.Series(dict(scores, **{f'weight_{n}': w for n, w in zip(names, weights)}))

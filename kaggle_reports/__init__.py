"""
Kaggle Competition Reports
==========================

Exploratory analysis and modeling pipelines for three Kaggle competitions:
Titanic survival, Ames house prices and tweet sentiment extraction.

Modules:
--------
- config: Paths, seeds and competition file names
- preprocessing: Shared CSV loading, level recoding and imputation helpers
- modeling: Fixed-hyperparameter model specs and out-of-fold training
- ensemble: Prediction averaging and blend-weight optimization
- submission: Ordered, complete submission writing
- spans: Jaccard scoring, span candidates and tie-break ranking
- span_features: Fixed-schema candidate features
- span_transformer: Transformer start/end span model
- titanic, housing, tweet_sentiment: The competition reports
"""

__version__ = "1.0.0"
__author__ = "Krithomedh"

"""
Configuration for the competition reports.
Paths, seeds and competition file names.
"""
from pathlib import Path

# Project root (parent of kaggle_reports/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Raw Kaggle CSVs live under Data/<competition>/
DATA_DIR = PROJECT_ROOT / "Data"
TITANIC_DIR = "titanic"
HOUSING_DIR = "house-prices"
TWEET_DIR = "tweet-sentiment-extraction"

TRAIN_FILE = "train.csv"
TEST_FILE = "test.csv"

# Output paths
MODEL_DIR = PROJECT_ROOT / "models"
SUBMISSION_DIR = PROJECT_ROOT / "submissions"

# Validation settings
RANDOM_STATE = 42
N_FOLDS = 5
VAL_SIZE = 0.2

# Tweet span model
TRANSFORMER_NAME = "roberta-base"
MAX_LENGTH = 96


def competition_paths(competition, data_dir=None):
    """Return (train_csv, test_csv) for a competition folder."""
    root = Path(data_dir) if data_dir is not None else DATA_DIR
    return root / competition / TRAIN_FILE, root / competition / TEST_FILE

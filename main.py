"""
Main Execution Script
Run one or all competition reports, from raw CSVs to submission files.
"""

import os
import time
from datetime import datetime

from kaggle_reports.config import MODEL_DIR, RANDOM_STATE, TRANSFORMER_NAME, TWEET_DIR, VAL_SIZE
from kaggle_reports.housing import run_housing_report
from kaggle_reports.titanic import run_titanic_report
from kaggle_reports.tweet_sentiment import run_tweet_report

REPORTS = ['titanic', 'housing', 'tweet']


def print_banner(text):
    """Print formatted banner."""
    print("\n" + "=" * 70)
    print(f"  {text}")
    print("=" * 70 + "\n")


def train_transformer_stage(args):
    """Fine-tune the transformer span model on a held-out split of the tweets."""
    from sklearn.model_selection import train_test_split

    from kaggle_reports.config import competition_paths
    from kaggle_reports.span_transformer import train_span_extractor
    from kaggle_reports.tweet_sentiment import is_malformed, load_tweets

    train_path, _ = competition_paths(TWEET_DIR, args.data_dir)
    tweets = load_tweets(train_path)
    tweets = tweets[~tweets['text'].apply(is_malformed)].reset_index(drop=True)
    tweets['selected_text'] = tweets['selected_text'].fillna('')
    train_part, val_part = train_test_split(
        tweets, test_size=VAL_SIZE, random_state=RANDOM_STATE, stratify=tweets['sentiment']
    )
    train_span_extractor(
        train_part, val_part,
        model_name=args.transformer_name,
        epochs=args.epochs,
        model_path=args.transformer_path,
    )


def main(args):
    """Execute the selected reports."""
    start_time = time.time()

    print_banner("KAGGLE COMPETITION REPORTS")
    print(f"Start time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    reports = REPORTS if args.report == 'all' else [args.report]
    results = {}

    if 'titanic' in reports:
        print_banner("TITANIC SURVIVAL")
        results['titanic'], _ = run_titanic_report(data_dir=args.data_dir)

    if 'housing' in reports:
        print_banner("AMES HOUSE PRICES")
        results['housing'], _ = run_housing_report(data_dir=args.data_dir)

    if 'tweet' in reports:
        if args.train_transformer:
            print_banner("TWEET SPAN TRANSFORMER")
            if os.path.exists(args.transformer_path) and not args.retrain:
                print("✓ Transformer checkpoint already exists. Skipping.")
            else:
                train_transformer_stage(args)

        print_banner("TWEET SENTIMENT EXTRACTION")
        use_transformer = args.train_transformer or args.blend_transformer
        results['tweet'] = run_tweet_report(
            data_dir=args.data_dir,
            sample_frac=args.sample_frac,
            n_jobs=args.n_jobs,
            max_words=args.max_words,
            retrain=args.retrain,
            transformer_path=args.transformer_path if use_transformer else None,
            transformer_weight=args.transformer_weight,
        )

    elapsed_time = time.time() - start_time
    minutes = int(elapsed_time // 60)
    seconds = int(elapsed_time % 60)

    print_banner("REPORTS COMPLETE!")
    print(f"Total execution time: {minutes}m {seconds}s")
    for name, submission in results.items():
        print(f"  {name}: {len(submission)} rows")

    return results


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description='Run Kaggle competition reports')
    parser.add_argument('report', nargs='?', choices=REPORTS + ['all'], default='all',
                        help='Which report to run')
    parser.add_argument('--data-dir', type=str, default=None,
                        help='Data root holding <competition>/train.csv and test.csv')
    parser.add_argument('--sample-frac', type=float, default=0.25,
                        help='Fraction of training tweets used to build candidates')
    parser.add_argument('--n-jobs', type=int, default=-1,
                        help='joblib workers for candidate feature building')
    parser.add_argument('--max-words', type=int, default=None,
                        help='Longest candidate span (in words)')
    parser.add_argument('--retrain', action='store_true',
                        help='Retrain models even if saved artifacts exist')
    parser.add_argument('--train-transformer', action='store_true',
                        help='Fine-tune the transformer span model and blend it in')
    parser.add_argument('--blend-transformer', action='store_true',
                        help='Blend in an existing transformer checkpoint')
    parser.add_argument('--transformer-name', type=str, default=TRANSFORMER_NAME,
                        help='Hugging Face backbone for the span model')
    parser.add_argument('--transformer-path', type=str,
                        default=os.path.join(MODEL_DIR, 'span_transformer.pth'),
                        help='Span model checkpoint path')
    parser.add_argument('--transformer-weight', type=float, default=0.5,
                        help='Blend weight of the transformer scorer')
    parser.add_argument('--epochs', type=int, default=3, help='Transformer epochs')

    main(parser.parse_args())

"""Cofactor model training script.

Trains the cofactorization recommender on historical review data up to a
configurable cutoff timestamp, reports top-K metrics on the held-out
validation pairs, then serializes the model to the models/ directory.

    python scripts/train_cofactor.py
    python scripts/train_cofactor.py --cutoff 2014-01-01 --factors 32 --max-iters 10
    python scripts/train_cofactor.py --data data/Home_and_Kitchen_filtered.csv
"""

import argparse
import logging
import os
import sys
import time
from collections import defaultdict

import pandas as pd

# Ensure project root is importable regardless of working directory
_SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
_PROJECT_ROOT = os.path.dirname(_SCRIPT_DIR)
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

from cofactor.cofactor_recommender import CofactorRecommender
from cofactor.config import CofactorConfig
from cofactor.evaluation import evaluate_top_k
from cofactor.interaction_tables import InteractionTableBuilder
from cofactor.model_store import save_model


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_DATA_PATH = os.path.join(_PROJECT_ROOT, 'data', 'Home_and_Kitchen_filtered.csv')

# Model hyperparameters; CLI flags below override the most common ones
COFACTOR_CONFIG = dict(
    factor=64,
    c0=0.1,
    c1=1.0,
    lambda_theta=1e-5,
    lambda_beta=1e-5,
    lambda_gamma=1.0,
    max_iters=15,
    convergence_rate=0.005,
    validation_metric='auc',
    validation_ratio=0.125,
    num_valid_per_record=10,
    min_users=5,
)
EVAL_K = 10


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _elapsed(start):
    return f"{time.time() - start:.1f}s"


def _determine_cutoff(cutoff_arg, df):
    """Unix timestamp of --cutoff (YYYY-MM-DD), or the latest interaction."""
    if cutoff_arg:
        return int(pd.to_datetime(cutoff_arg).timestamp())
    return int(df['unixReviewTime'].max()) + 1


def _held_out_by_user(pairs):
    held_out = defaultdict(list)
    for user, item in pairs:
        held_out[user].append(item)
    return dict(held_out)


# ---------------------------------------------------------------------------
# Main training routine
# ---------------------------------------------------------------------------

def train(data_path, cutoff_arg=None, models_dir=None, **overrides):
    print("=" * 60)
    print("RecSystem: cofactor model training")
    print("=" * 60)

    config = CofactorConfig(**{**COFACTOR_CONFIG, **overrides})

    # 1. Load data
    t0 = time.time()
    print(f"\n[1/5] Loading data from {data_path} ...")
    df = pd.read_csv(data_path)
    print(f"      {len(df):,} interactions loaded  ({_elapsed(t0)})")

    # 2. Determine cutoff
    cutoff_unix = _determine_cutoff(cutoff_arg, df)
    print(f"\n[2/5] Training cutoff: {pd.to_datetime(cutoff_unix, unit='s')} (unix={cutoff_unix})")

    # 3. Train
    t0 = time.time()
    print(f"\n[3/5] Training cofactor  (factors={config.factor}, max_iters={config.max_iters}) ...")
    recommender = CofactorRecommender(config).fit(df, cutoff_time=cutoff_unix)
    print(
        f"      {len(recommender.users):,} users × {len(recommender.items):,} items, "
        f"{recommender.n_iterations} iteration(s)  ({_elapsed(t0)})"
    )
    for i, loss in enumerate(recommender.loss_history, 1):
        print(f"        iteration {i:2d}  average loss {loss:.6f}")

    # 4. Evaluate on the held-out validation pairs
    print(f"\n[4/5] Evaluating top-{EVAL_K} on held-out pairs ...")
    builder = InteractionTableBuilder(
        min_users=config.min_users,
        cutoff_time=cutoff_unix,
        validation_ratio=config.validation_ratio,
        seed=config.seed,
    )
    user_to_items, _, validation_pairs = builder.build(df)
    metrics = evaluate_top_k(recommender, user_to_items, _held_out_by_user(validation_pairs), k=EVAL_K)
    for name, value in metrics.items():
        print(f"      {name:<14} {value:.4f}" if name != 'users' else f"      {name:<14} {value:,}")

    # 5. Persist
    print("\n[5/5] Saving model artifact ...")
    save_model(recommender, 'cofactor', models_dir=models_dir)
    print("=" * 60)
    return recommender, metrics


# ---------------------------------------------------------------------------
# CLI entry-point
# ---------------------------------------------------------------------------

if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Train the cofactor recommendation model.')
    parser.add_argument('--data', default=DEFAULT_DATA_PATH,
                        help='Path to review CSV file (default: data/Home_and_Kitchen_filtered.csv)')
    parser.add_argument('--cutoff', default=None,
                        help='Training cutoff date as YYYY-MM-DD.  Defaults to all data.')
    parser.add_argument('--models-dir', default=None, dest='models_dir',
                        help='Directory to write model artifacts (default: models/).')
    parser.add_argument('--factors', type=int, default=None, dest='factor')
    parser.add_argument('--max-iters', type=int, default=None, dest='max_iters')
    parser.add_argument('--lambda-gamma', type=float, default=None, dest='lambda_gamma')
    parser.add_argument('--validation-metric', choices=['auc', 'objective'], default=None,
                        dest='validation_metric')
    parser.add_argument('--update-global-bias', action='store_true', default=None,
                        dest='update_global_bias')
    parser.add_argument('--no-bias', action='store_false', default=None, dest='use_bias')
    parser.add_argument('--disable-cvtest', action='store_false', default=None,
                        dest='convergence_check')
    parser.add_argument('--log-level', default='INFO')
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format='%(asctime)s %(name)s %(message)s')
    overrides = {
        name: value for name, value in vars(args).items()
        if name not in ('data', 'cutoff', 'models_dir', 'log_level') and value is not None
    }
    train(data_path=args.data, cutoff_arg=args.cutoff, models_dir=args.models_dir, **overrides)

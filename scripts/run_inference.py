"""Inference example: load the cofactor model once, serve recommendations per user.

The model is deserialized a single time at start-up; every request after
that is a dot product against the learned item matrix, with no access to
raw data and no retraining.

Usage:
    # Train first (if not already done)
    python scripts/train_cofactor.py

    python scripts/run_inference.py
    python scripts/run_inference.py --user A1B2C3D4E5 --top-n 5
"""

import argparse
import os
import sys

import pandas as pd

_SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
_PROJECT_ROOT = os.path.dirname(_SCRIPT_DIR)
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

from cofactor.cofactor_recommender import CofactorRecommender
from cofactor.model_store import list_saved_models, load_model

DATA_PATH = os.path.join(_PROJECT_ROOT, 'data', 'Home_and_Kitchen_filtered.csv')
MODEL_NAME = 'cofactor'


def load_cofactor(models_dir=None):
    """Load the saved cofactor recommender, failing clearly if none exists."""
    if MODEL_NAME not in list_saved_models(models_dir):
        raise RuntimeError(
            "No saved cofactor model found in models/.  "
            "Run scripts/train_cofactor.py first."
        )
    return load_model(CofactorRecommender, MODEL_NAME, models_dir=models_dir)


def _pick_demo_user(data_path, min_interactions=5):
    """Pick a real user from the dataset to demo with."""
    df = pd.read_csv(data_path, usecols=['reviewerID', 'asin'])
    counts = df.groupby('reviewerID').size()
    eligible = counts[counts >= min_interactions].index.tolist()
    if not eligible:
        raise ValueError("No users with enough interactions found in the data.")
    return eligible[0], df[df['reviewerID'] == eligible[0]]['asin'].tolist()


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Run per-user inference with the cofactor model.')
    parser.add_argument('--user', default=None, help='User ID to generate recommendations for.')
    parser.add_argument('--top-n', type=int, default=10, dest='top_n')
    parser.add_argument('--models-dir', default=None, dest='models_dir')
    args = parser.parse_args()

    # --- LOAD ONCE (server startup / cold start) ---
    print("Loading cofactor model from disk ...")
    model = load_cofactor(args.models_dir)

    # --- PER-USER (request handler) ---
    if args.user:
        df = pd.read_csv(DATA_PATH, usecols=['reviewerID', 'asin'])
        user_id = args.user
        user_history = df[df['reviewerID'] == user_id]['asin'].tolist()
        if not user_history:
            print(f"User '{user_id}' not found in data or has no interactions.")
            sys.exit(1)
    else:
        print("No --user specified; picking a demo user from the data ...")
        user_id, user_history = _pick_demo_user(DATA_PATH)

    known = 'known' if user_id in model.user_to_idx else 'cold-start'
    print(f"User:    {user_id} ({known})")
    print(f"History: {len(user_history)} interactions\n")

    recs = model.recommend(user_id, user_history, top_n=args.top_n)
    print(f"Top-{args.top_n} cofactor recommendations:")
    print("-" * 50)
    for i, asin in enumerate(recs, 1):
        print(f"  {i:2d}. {asin}")

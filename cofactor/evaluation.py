import math

import numpy as np


def calculate_auc(positive_scores, negative_scores):
    """
    Calculates the AUC of a ranking from the scores of its positive and negative probes.

    Every (positive, negative) pair counts 1 if the positive scores higher,
    0.5 on a tie and 0 otherwise.

    Args:
        positive_scores (array-like): Scores of the held-out positive items.
        negative_scores (array-like): Scores of the sampled negative items.

    Returns:
        float: AUC in [0, 1], or None if either side is empty.
    """
    pos = np.asarray(positive_scores, dtype=float).reshape(-1, 1)
    neg = np.asarray(negative_scores, dtype=float).reshape(1, -1)
    if pos.size == 0 or neg.size == 0:
        return None
    wins = (pos > neg).sum() + 0.5 * (pos == neg).sum()
    return float(wins) / (pos.size * neg.size)


def calculate_precision_at_k(recommended_items, held_out_items, k):
    """
    Calculates Precision@K for a single user.

    Args:
        recommended_items (list): Ranked list of recommended item keys.
        held_out_items (list): Items the user interacted with in the test period.
        k (int): Cut-off rank.

    Returns:
        float: Precision@K score.
    """
    top_k = recommended_items[:k]
    if not top_k:
        return 0.0
    return len(set(top_k) & set(held_out_items)) / k


def calculate_recall_at_k(recommended_items, held_out_items, k):
    """
    Calculates Recall@K for a single user; 0.0 when nothing was held out.
    """
    if not held_out_items:
        return 0.0
    hits = len(set(recommended_items[:k]) & set(held_out_items))
    return hits / len(held_out_items)


def calculate_hit_at_k(recommended_items, held_out_items, k):
    """
    Returns 1 if any of the top-K recommendations was held out, 0 otherwise.
    """
    held_out = set(held_out_items)
    return int(any(item in held_out for item in recommended_items[:k]))


def calculate_ndcg_at_k(recommended_items, held_out_items, k):
    """
    Calculates NDCG@K for a single user with binary relevance.

    Args:
        recommended_items (list): Ranked list of recommended item keys.
        held_out_items (list): Items the user interacted with in the test period.
        k (int): Cut-off rank.

    Returns:
        float: NDCG@K between 0 and 1.
    """
    held_out = set(held_out_items)
    # rank r (0-indexed) is discounted by log2(r + 2)
    dcg = sum(
        1.0 / math.log2(rank + 2)
        for rank, item in enumerate(recommended_items[:k])
        if item in held_out
    )
    idcg = sum(1.0 / math.log2(rank + 2) for rank in range(min(len(held_out), k)))
    if idcg == 0:
        return 0.0
    return dcg / idcg


def evaluate_top_k(recommender, user_histories, held_out, k=10):
    """
    Averages the top-K metrics of a fitted recommender over held-out users.

    Args:
        recommender: Object with recommend(user_id, user_history, top_n).
        user_histories (dict): user -> items seen during training.
        held_out (dict): user -> items held out from training.
        k (int): Cut-off rank.

    Returns:
        dict: mean precision, recall, hit and ndcg @k, plus the user count.
    """
    totals = {'precision': 0.0, 'recall': 0.0, 'hit': 0.0, 'ndcg': 0.0}
    n_users = 0
    for user, actual in held_out.items():
        if not actual:
            continue
        recs = recommender.recommend(user, user_histories.get(user, []), top_n=k)
        totals['precision'] += calculate_precision_at_k(recs, actual, k)
        totals['recall'] += calculate_recall_at_k(recs, actual, k)
        totals['hit'] += calculate_hit_at_k(recs, actual, k)
        totals['ndcg'] += calculate_ndcg_at_k(recs, actual, k)
        n_users += 1
    metrics = {f"{name}@{k}": (value / n_users if n_users else 0.0) for name, value in totals.items()}
    metrics['users'] = n_users
    return metrics

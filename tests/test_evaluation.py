import math

import pytest

from cofactor.evaluation import (
    calculate_auc,
    calculate_hit_at_k,
    calculate_ndcg_at_k,
    calculate_precision_at_k,
    calculate_recall_at_k,
    evaluate_top_k,
)


def test_auc_counts_wins_and_ties():
    assert calculate_auc([0.9], [0.1, 0.95]) == 0.5
    assert calculate_auc([0.5], [0.5]) == 0.5
    assert calculate_auc([2.0, 1.0], [0.0]) == 1.0


def test_auc_is_undefined_without_negatives():
    assert calculate_auc([1.0], []) is None


def test_top_k_metrics():
    recs = ['a', 'b', 'c']
    assert calculate_precision_at_k(recs, ['b', 'z'], 3) == pytest.approx(1 / 3)
    assert calculate_recall_at_k(recs, ['b', 'z'], 3) == 0.5
    assert calculate_recall_at_k(recs, [], 3) == 0.0
    assert calculate_hit_at_k(recs, ['c'], 2) == 0
    assert calculate_hit_at_k(recs, ['c'], 3) == 1
    assert calculate_ndcg_at_k(recs, ['b'], 3) == pytest.approx(1 / math.log2(3))
    assert calculate_ndcg_at_k(recs, ['a'], 3) == 1.0


def test_evaluate_top_k_averages_over_users():
    class FixedRecommender:
        def recommend(self, user_id, user_history, top_n=10):
            return ['a', 'b'][:top_n]

    metrics = evaluate_top_k(FixedRecommender(), {}, {'u1': ['a'], 'u2': ['c'], 'u3': []}, k=2)
    assert metrics['users'] == 2
    assert metrics['hit@2'] == 0.5
    assert metrics['recall@2'] == 0.5

import numpy as np
import pandas as pd
import pytest

from cofactor.cofactor_recommender import CofactorRecommender
from cofactor.model_store import list_saved_models, load_model, save_model

INTERACTIONS = {
    'u0': ['i0', 'i1', 'i2'],
    'u1': ['i0', 'i1'],
    'u2': ['i1', 'i2', 'i3'],
    'u3': ['i3', 'i4'],
    'u4': ['i4', 'i5', 'i3'],
    'u5': ['i5', 'i4'],
    'u6': ['i0', 'i2'],
    'u7': ['i2', 'i3', 'i5'],
}


@pytest.fixture
def reviews():
    rows = [(u, i) for u, items in INTERACTIONS.items() for i in items]
    return pd.DataFrame(rows, columns=['reviewerID', 'asin'])


def _objective_recommender(**kwargs):
    params = dict(factor=3, validation_ratio=0.0, validation_metric='objective',
                  convergence_check=False, max_iters=8, seed=11, lambda_gamma=1.0)
    params.update(kwargs)
    return CofactorRecommender(**params)


def test_training_loss_is_non_increasing(reviews):
    rec = _objective_recommender().fit(reviews)
    history = rec.loss_history
    assert len(history) == rec.n_iterations == 8
    for prev, curr in zip(history, history[1:]):
        assert curr <= prev + 1e-9 * max(1.0, abs(prev))


def test_training_loss_is_non_increasing_with_bias_updates(reviews):
    rec = _objective_recommender(update_global_bias=True).fit(reviews)
    history = rec.loss_history
    for prev, curr in zip(history, history[1:]):
        assert curr <= prev + 1e-9 * max(1.0, abs(prev))


def test_convergence_stops_before_max_iters(reviews):
    rec = _objective_recommender(convergence_check=True, convergence_rate=1.0, max_iters=20)
    rec.fit(reviews)
    assert rec.n_iterations == 2
    assert len(rec.loss_history) == 2


def test_validation_pairs_drive_the_loop(reviews):
    rec = CofactorRecommender(factor=2, validation_ratio=0.3, max_iters=3, seed=5)
    rec.fit(reviews)
    assert 1 <= rec.n_iterations <= 3
    assert all(np.isfinite(rec.loss_history))


def test_fit_exposes_factor_matrices(reviews):
    rec = _objective_recommender(max_iters=2).fit(reviews)
    assert rec.user_factors.shape == (8, 3)
    assert rec.item_factors.shape == (6, 3)
    np.testing.assert_array_equal(rec.user_factors[rec.user_to_idx['u3']],
                                  rec.model.get_theta()['u3'])
    assert rec.counters['users'].value == 8
    assert rec.counters['items'].value == 6


def test_recommend_excludes_history(reviews):
    rec = _objective_recommender(max_iters=3).fit(reviews)
    recs = rec.recommend('u0', INTERACTIONS['u0'], top_n=10)
    assert len(recs) == 3
    assert not set(recs) & set(INTERACTIONS['u0'])


def test_recommend_for_cold_start_user(reviews):
    rec = _objective_recommender(max_iters=3).fit(reviews)
    recs = rec.recommend('stranger', ['i0'], top_n=2)
    assert len(recs) == 2 and 'i0' not in recs
    assert rec.recommend('stranger', ['unknown-item']) == []


def test_recommend_before_fit_raises():
    with pytest.raises(ValueError):
        CofactorRecommender().recommend('u0', [])


def test_model_store_round_trip(reviews, tmp_path):
    rec = _objective_recommender(max_iters=2).fit(reviews)
    save_model(rec, 'cofactor', models_dir=str(tmp_path))
    assert list_saved_models(str(tmp_path)) == ['cofactor']

    loaded = load_model(CofactorRecommender, 'cofactor', models_dir=str(tmp_path))
    assert loaded.recommend('u1', INTERACTIONS['u1'], top_n=3) == \
        rec.recommend('u1', INTERACTIONS['u1'], top_n=3)
    assert loaded.model.get_beta().factor == 3


def test_model_store_missing_artifact(tmp_path):
    assert list_saved_models(str(tmp_path / 'nothing')) == []
    with pytest.raises(FileNotFoundError):
        load_model(CofactorRecommender, 'cofactor', models_dir=str(tmp_path))


def test_model_store_rejects_other_classes(tmp_path):
    save_model({'not': 'a recommender'}, 'cofactor', models_dir=str(tmp_path))
    with pytest.raises(TypeError):
        load_model(CofactorRecommender, 'cofactor', models_dir=str(tmp_path))

import pandas as pd
import pytest

from cofactor.errors import InvalidConfigError
from cofactor.interaction_tables import InteractionTableBuilder


@pytest.fixture
def reviews():
    return pd.DataFrame({
        'reviewerID': ['u1', 'u1', 'u2', 'u2', 'u3', 'u1'],
        'asin': ['a', 'b', 'a', 'c', 'a', 'a'],
        'unixReviewTime': [1, 2, 3, 4, 5, 6],
    })


def test_build_without_validation(reviews):
    builder = InteractionTableBuilder()
    user_to_items, item_to_users, validation = builder.build(reviews)
    assert user_to_items == {'u1': ['a', 'b'], 'u2': ['a', 'c'], 'u3': ['a']}
    assert item_to_users == {'a': ['u1', 'u2', 'u3'], 'b': ['u1'], 'c': ['u2']}
    assert validation == []
    assert builder.training_matrix().toarray().tolist() == [[1, 1, 0], [1, 0, 1], [1, 0, 0]]


def test_full_validation_ratio_holds_everything_out(reviews):
    user_to_items, item_to_users, validation = InteractionTableBuilder(validation_ratio=1.0).build(reviews)
    assert user_to_items == {} and item_to_users == {}
    assert sorted(validation) == [('u1', 'a'), ('u1', 'b'), ('u2', 'a'), ('u2', 'c'), ('u3', 'a')]


def test_min_users_and_cutoff_filters(reviews):
    builder = InteractionTableBuilder(min_users=2, cutoff_time=5)
    user_to_items, item_to_users, _ = builder.build(reviews)
    assert item_to_users == {'a': ['u1', 'u2']}
    assert user_to_items == {'u1': ['a'], 'u2': ['a']}


def test_split_is_seeded(reviews):
    first = InteractionTableBuilder(validation_ratio=0.5, seed=7).build(reviews)
    second = InteractionTableBuilder(validation_ratio=0.5, seed=7).build(reviews)
    assert first == second


def test_invalid_ratio_rejected():
    with pytest.raises(InvalidConfigError):
        InteractionTableBuilder(validation_ratio=2.0)


def test_matrix_requires_build():
    with pytest.raises(ValueError):
        InteractionTableBuilder().training_matrix()

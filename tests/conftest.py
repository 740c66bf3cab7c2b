import pytest

from cofactor.weights import BiasTable, Weights

NUM_FACTORS = 2

# items
TOOTHBRUSH = 'toothbrush'
TOOTHPASTE = 'toothpaste'
SHAVER = 'shaver'

# users
MAKOTO = 'makoto'
TAKUYA = 'takuya'
JACKSON = 'jackson'
ALIEN = 'alien'  # referenced by data, never registered


@pytest.fixture
def theta():
    return Weights(NUM_FACTORS, {
        MAKOTO: [0.8, -0.7],
        TAKUYA: [-0.05, 1.7],
        JACKSON: [1.8, -0.3],
    })


@pytest.fixture
def beta():
    return Weights(NUM_FACTORS, {
        TOOTHBRUSH: [0.5, 0.3],
        TOOTHPASTE: [1.1, 0.9],
        SHAVER: [-2.2, 1.6],
    })


@pytest.fixture
def gamma():
    return Weights(NUM_FACTORS, {
        TOOTHBRUSH: [1.3, -0.2],
        TOOTHPASTE: [1.6, 0.1],
        SHAVER: [3.2, -0.4],
    })


@pytest.fixture
def beta_bias():
    return BiasTable({TOOTHBRUSH: 0.1, TOOTHPASTE: -1.9, SHAVER: 2.3})


@pytest.fixture
def gamma_bias():
    return BiasTable({TOOTHBRUSH: 3.4, TOOTHPASTE: -0.5, SHAVER: 1.1})


@pytest.fixture
def sppmi():
    return {
        TOOTHBRUSH: [(TOOTHPASTE, 1.22), (SHAVER, 1.22)],
        TOOTHPASTE: [(TOOTHBRUSH, 1.22), (SHAVER, 1.35)],
        SHAVER: [(TOOTHBRUSH, 1.22), (TOOTHPASTE, 1.35)],
    }


@pytest.fixture
def user_to_items():
    return {
        MAKOTO: [TOOTHBRUSH, SHAVER],
        TAKUYA: [TOOTHPASTE],
        JACKSON: [TOOTHPASTE, SHAVER],
    }


@pytest.fixture
def item_to_users():
    return {
        TOOTHBRUSH: [MAKOTO],
        TOOTHPASTE: [TAKUYA, MAKOTO, JACKSON],
        SHAVER: [JACKSON, MAKOTO],
    }

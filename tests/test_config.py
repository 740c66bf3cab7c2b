import pytest

from cofactor.config import CofactorConfig
from cofactor.errors import InvalidConfigError
from cofactor.rank_init import RankInitScheme
from cofactor.samples import ValidationMetric


def test_defaults():
    cfg = CofactorConfig()
    assert (cfg.factor, cfg.c0, cfg.c1) == (10, 0.1, 1.0)
    assert cfg.lambda_gamma == 1.0
    assert cfg.validation_metric == ValidationMetric.AUC
    scheme = cfg.rank_init_scheme()
    assert scheme.kind == RankInitScheme.GAUSSIAN
    assert scheme.stddev == pytest.approx(0.1)


def test_metric_aliases():
    assert CofactorConfig(validation_metric='LOSS').validation_metric == ValidationMetric.OBJECTIVE


@pytest.mark.parametrize('kwargs', [
    dict(factor=0),
    dict(max_iters=0),
    dict(validation_ratio=1.5),
    dict(validation_ratio=-0.1),
    dict(use_bias=False, update_global_bias=True),
    dict(rank_init='xavier'),
    dict(validation_metric='rmse'),
    dict(num_valid_per_record=0),
    dict(sppmi_shift=0),
])
def test_invalid_values_are_rejected_before_training(kwargs):
    with pytest.raises(InvalidConfigError):
        CofactorConfig(**kwargs)


def test_invalid_config_is_a_value_error():
    with pytest.raises(ValueError):
        CofactorConfig(factor=-1)

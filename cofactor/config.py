"""Hyper-parameters of a cofactorization run.

Defaults mirror the options of the batch training job; every value is
validated when the config is created, before any data is read.
"""

from dataclasses import asdict, dataclass

from cofactor.errors import InvalidConfigError
from cofactor.rank_init import RankInitScheme
from cofactor.samples import ValidationMetric


@dataclass
class CofactorConfig:
    factor: int = 10
    c0: float = 0.1                   # confidence of unobserved entries
    c1: float = 1.0                   # confidence of observed entries
    lambda_theta: float = 1e-5
    lambda_beta: float = 1e-5
    lambda_gamma: float = 1.0
    global_bias: float = 0.0
    update_global_bias: bool = False
    use_bias: bool = True
    rank_init: str = 'gaussian'
    max_init_value: float = 1.0
    min_init_stddev: float = 0.01
    max_iters: int = 1
    convergence_check: bool = True
    convergence_rate: float = 0.005
    validation_metric: str = 'auc'
    validation_ratio: float = 0.125
    num_valid_per_record: int = 10
    sppmi_shift: float = 1.0
    min_users: int = 1
    seed: int = 31

    def __post_init__(self):
        if self.factor <= 0:
            raise InvalidConfigError(f"'factor' must be positive: {self.factor}")
        if self.max_iters < 1:
            raise InvalidConfigError(
                f"'max_iters' must be greater than or equal to 1: {self.max_iters}"
            )
        if not 0.0 <= self.validation_ratio <= 1.0:
            raise InvalidConfigError("'validation_ratio' must be between 0.0 and 1.0")
        if self.update_global_bias and not self.use_bias:
            raise InvalidConfigError("Cannot set both 'update_global_bias' and 'no_bias'")
        if self.c0 < 0 or self.c1 < 0:
            raise InvalidConfigError("'c0' and 'c1' must be non-negative")
        if min(self.lambda_theta, self.lambda_beta, self.lambda_gamma) < 0:
            raise InvalidConfigError("Regularization factors must be non-negative")
        if self.num_valid_per_record < 1:
            raise InvalidConfigError(
                f"'num_valid_per_record' must be >= 1: {self.num_valid_per_record}"
            )
        if self.sppmi_shift <= 0:
            raise InvalidConfigError(f"'sppmi_shift' must be positive: {self.sppmi_shift}")
        # resolve names eagerly so typos fail here
        self.validation_metric = ValidationMetric.resolve(self.validation_metric)
        self.rank_init_scheme()

    def rank_init_scheme(self):
        return RankInitScheme.resolve(
            self.rank_init,
            max_init_value=self.max_init_value,
            init_stddev=self.min_init_stddev,
            stddev_floor=1.0 / self.factor,
        )

    def to_dict(self):
        return asdict(self)

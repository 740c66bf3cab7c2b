# Training / validation records consumed by the loss functions.
#
# A record is either a user context (features are the items the user
# interacted with) or an item context (features are the users who interacted
# with it, plus the item's SPPMI row). The two cases are distinct types; the
# loss functions dispatch on isinstance() and reject any other record.

from dataclasses import dataclass, field
from typing import Hashable, Optional, Tuple

from cofactor.errors import InvalidConfigError

# (key, value) pair; value is the observed preference (1.0 for implicit data)
# or the SPPMI weight.
Feature = Tuple[Hashable, float]


@dataclass(frozen=True)
class UserContext:
    key: Hashable
    features: Tuple[Feature, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ItemContext:
    key: Hashable
    features: Tuple[Feature, ...] = field(default_factory=tuple)
    sppmi: Optional[Tuple[Feature, ...]] = None


def as_features(keys, value=1.0):
    """Turn an iterable of keys into implicit-feedback features."""
    return tuple((k, float(value)) for k in keys)


def user_samples(user_to_items):
    return [UserContext(u, as_features(items)) for u, items in user_to_items.items()]


def item_samples(item_to_users, sppmi):
    return [
        ItemContext(i, as_features(users), tuple(sppmi[i]) if i in sppmi else None)
        for i, users in item_to_users.items()
    ]


class ValidationMetric:
    AUC = 'auc'
    OBJECTIVE = 'objective'

    @staticmethod
    def resolve(name):
        opt = str(name).strip().lower()
        if opt == 'auc':
            return ValidationMetric.AUC
        if opt in ('objective', 'loss'):
            return ValidationMetric.OBJECTIVE
        raise InvalidConfigError(f"{name} is not a supported validation metric.")

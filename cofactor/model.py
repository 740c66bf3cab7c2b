# Cofactorization engine: weighted matrix factorization + SPPMI embedding
#
# CofactorModel jointly fits two objectives that share the item vectors beta:
#
#   MF:     sum_{u,i} c_ui * (p_ui - theta_u . beta_i)^2
#           c_ui = c1 for observed (u, i) pairs, c0 for everything else
#   Embed:  sum_{i,j in SPPMI} (m_ij - beta_i . gamma_j - b_i - c_j - mu)^2
#
# plus ridge penalties lambda_theta, lambda_beta, lambda_gamma. Training is
# alternating least squares: with the other side fixed, every theta_u, beta_i
# and gamma_j has a closed-form ridge solution.
#
# The engine only sees in-memory aggregates (user -> items, item -> users,
# item -> SPPMI row). Sweep count and stopping policy belong to the caller
# (see cofactor_recommender.CofactorRecommender).
#
# Reference: Liang et al., "Factorization Meets the Item Embedding:
# Regularizing Matrix Factorization with Item Co-occurrence" (RecSys 2016)

import logging
from collections.abc import Mapping

import numpy as np

from cofactor import gram
from cofactor.counters import incr
from cofactor.errors import InvalidConfigError, NonFiniteLossError
from cofactor.evaluation import calculate_auc
from cofactor.rank_init import RankInitScheme
from cofactor.samples import ItemContext, UserContext, ValidationMetric
from cofactor.vector_math import add_in_place, dot_product, l2_norm, solve
from cofactor.weights import BiasTable, Weights

_logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Closed-form building blocks
#
# Pure functions over explicit tables so every solve can be checked against
# hand-computed fixtures. Keys missing from a table are not trainable and are
# skipped, never treated as zero vectors.
# ---------------------------------------------------------------------------

def weighted_sum(keys, weights, factor, weight):
    """weight * sum of w_k over the registered keys in `keys`."""
    out = np.zeros(factor)
    for k in keys:
        vec = weights.get(k)
        if vec is not None:
            add_in_place(out, vec, weight)
    return out


def _bias(table, key):
    if table is None:
        return 0.0
    return table.get(key, 0.0)


def calculate_rsd(key, neighbors, factor, own_bias, other_bias, other_weights, global_bias):
    """Bias-corrected SPPMI pull on `key`'s vector.

    sum_j (m_kj - own_bias[k] - other_bias[j] - global_bias) * other_weights[j]

    For a beta update own_bias is beta_bias and other_weights is gamma; for a
    gamma update the roles are swapped.
    """
    out = np.zeros(factor)
    if not neighbors:
        return out
    b_k = _bias(own_bias, key)
    for j, m_kj in neighbors:
        vec = other_weights.get(j)
        if vec is None:
            continue
        add_in_place(out, vec, m_kj - b_k - _bias(other_bias, j) - global_bias)
    return out


def calculate_new_theta_vector(user, rated_items, beta, factor, background, c0, c1):
    """Solve for theta[user] with beta fixed.

    Args:
        user:        User key (only used in error messages).
        rated_items: Item keys the user interacted with.
        beta:        Item weights table.
        factor:      Number of latent factors.
        background:  Read-only c0 * B^T B + lambda_theta * I for this sweep.
        c0, c1:      Confidence of unobserved / observed entries.

    Returns:
        New theta vector. Users with no registered items still get the
        regularized solution.
    """
    rhs = weighted_sum(rated_items, beta, factor, c1)
    correction = gram.weighted_gram_subset(rated_items, beta, factor, c1 - c0)
    M = gram.corrected_system(background, correction)
    return solve(M, rhs)


def calculate_new_beta_vector(item, raters, sppmi_row, theta, gamma, gamma_bias, beta_bias,
                              factor, background, c0, c1, global_bias):
    """Solve for beta[item] with theta, gamma and the biases fixed.

    rhs = c1 * sum_{u in raters} theta_u + calculate_rsd(item, ...)
    M   = background + (c1 - c0) * sum_{u in raters} theta_u theta_u^T
                     + sum_{j in sppmi_row} gamma_j gamma_j^T

    Args:
        item:        Item key.
        raters:      User keys that interacted with the item.
        sppmi_row:   List of (neighbor item, SPPMI weight), or None.
        theta:       User weights table.
        gamma:       Item embedding (context) weights table.
        gamma_bias:  Context bias table, or None when biases are disabled.
        beta_bias:   Item bias table, or None when biases are disabled.
        factor:      Number of latent factors.
        background:  Read-only c0 * T^T T + lambda_beta * I for this sweep.
        c0, c1:      Confidence of unobserved / observed entries.
        global_bias: Current global bias.

    Returns:
        New beta vector.
    """
    rhs = weighted_sum(raters, theta, factor, c1)
    rhs += calculate_rsd(item, sppmi_row, factor, beta_bias, gamma_bias, gamma, global_bias)

    correction = gram.weighted_gram_subset(raters, theta, factor, c1 - c0)
    if sppmi_row:
        neighbors = [j for j, _ in sppmi_row]
        correction += gram.weighted_gram_subset(neighbors, gamma, factor, 1.0)
    M = gram.corrected_system(background, correction)
    return solve(M, rhs)


def calculate_new_gamma_vector(item, sppmi_row, beta, gamma_bias, beta_bias, factor,
                               lambda_gamma, global_bias):
    """Ridge regression of gamma[item] on the SPPMI residuals only.

    Returns:
        New gamma vector, or None if no neighbor of `item` is trainable.
    """
    if not sppmi_row:
        return None
    neighbors = [j for j, _ in sppmi_row if j in beta]
    if not neighbors:
        return None
    rhs = calculate_rsd(item, sppmi_row, factor, gamma_bias, beta_bias, beta, global_bias)
    M = gram.with_ridge(gram.weighted_gram_subset(neighbors, beta, factor, 1.0), lambda_gamma)
    return solve(M, rhs)


def calculate_new_bias(item, sppmi_row, own_weights, other_weights, other_bias, global_bias):
    """Mean SPPMI residual of `item` once its vector term is removed.

    For beta_bias: mean_j (m_ij - beta_i . gamma_j - gamma_bias[j] - global_bias).
    Passing (gamma, beta, beta_bias) instead gives the gamma_bias update.

    Returns:
        New bias, or None when the item or all of its neighbors are unregistered.
    """
    vec = own_weights.get(item)
    if vec is None or not sppmi_row:
        return None
    total, count = 0.0, 0
    for j, m_ij in sppmi_row:
        other = other_weights.get(j)
        if other is None:
            continue
        total += m_ij - dot_product(vec, other) - _bias(other_bias, j) - global_bias
        count += 1
    if count == 0:
        return None
    return total / count


def calculate_new_global_bias(items, sppmi, beta, gamma, beta_bias, gamma_bias):
    """Mean residual over every trainable (item, neighbor) SPPMI pair.

    mean_{i,j} (m_ij - beta_i . gamma_j - beta_bias[i] - gamma_bias[j])

    Returns:
        New global bias, or None if there is no trainable pair.
    """
    total, count = 0.0, 0
    for i in items:
        vec = beta.get(i)
        row = sppmi.get(i)
        if vec is None or not row:
            continue
        b_i = _bias(beta_bias, i)
        for j, m_ij in row:
            other = gamma.get(j)
            if other is None:
                continue
            total += m_ij - dot_product(vec, other) - b_i - _bias(gamma_bias, j)
            count += 1
    if count == 0:
        return None
    return total / count


def _slice_mf_loss(vec, background, features, others, c0, c1):
    # background term against every registered counterpart, then swap the
    # observed entries for their c1-weighted error
    preds = background @ vec
    loss = c0 * float(preds @ preds)
    for k, value in features:
        other = others.get(k)
        if other is None:
            continue
        pred = dot_product(vec, other)
        loss += c1 * (value - pred) ** 2 - c0 * pred ** 2
    return loss


def calculate_mf_loss(samples, beta, theta, c0, c1):
    """Weighted squared error of the MF half.

    A UserContext accounts for the row of its user, an ItemContext for the
    column of its item: every observed entry contributes
    c1 * (value - theta_u . beta_i)^2 and every other registered entry
    c0 * (theta_u . beta_i)^2. Pass one kind of record to cover each entry
    once. Users and items that are not registered are skipped.

    Raises:
        TypeError: on a record that is neither a UserContext nor an ItemContext.
    """
    T = theta.as_matrix() if theta else None
    B = beta.as_matrix() if beta else None
    loss = 0.0
    for sample in samples:
        if isinstance(sample, UserContext):
            vec = theta.get(sample.key)
            if vec is None or B is None:
                continue
            loss += _slice_mf_loss(vec, B, sample.features, beta, c0, c1)
        elif isinstance(sample, ItemContext):
            vec = beta.get(sample.key)
            if vec is None or T is None:
                continue
            loss += _slice_mf_loss(vec, T, sample.features, theta, c0, c1)
        else:
            raise TypeError(f"Unsupported training record: {type(sample).__name__}")
    return loss


def calculate_embed_loss(samples, beta, gamma, beta_bias, gamma_bias, global_bias):
    """Squared SPPMI reconstruction error over item-context samples.

    User contexts carry no SPPMI row and add nothing.

    Raises:
        TypeError: on a record that is neither a UserContext nor an ItemContext.
    """
    loss = 0.0
    for sample in samples:
        if isinstance(sample, UserContext):
            continue
        if not isinstance(sample, ItemContext):
            raise TypeError(f"Unsupported training record: {type(sample).__name__}")
        b_i = beta.get(sample.key)
        if b_i is None or not sample.sppmi:
            continue
        bias_i = _bias(beta_bias, sample.key)
        for j, m_ij in sample.sppmi:
            g_j = gamma.get(j)
            if g_j is None:
                continue
            err = m_ij - dot_product(b_i, g_j) - bias_i - _bias(gamma_bias, j) - global_bias
            loss += err ** 2
    return loss


def sample_negatives(num_pos, num_neg, probes, universe, rng):
    """Fill the placeholders of a validation probe with sampled negatives.

    probes[:num_pos] hold the positives; probes[num_pos:num_pos + num_neg]
    are overwritten with distinct keys from `universe` that do not already
    appear among the positives. If fewer candidates exist than placeholders,
    the unused placeholders are removed from `probes`.

    Args:
        num_pos:  Number of positive slots at the head of `probes`.
        num_neg:  Number of placeholders to fill.
        probes:   Mutable list of keys, modified in place.
        universe: Candidate keys (trainable items).
        rng:      numpy Generator driving the draw.

    Returns:
        The filled `probes` list.
    """
    chosen = set(probes[:num_pos])
    candidates = [k for k in dict.fromkeys(universe) if k not in chosen]
    n = min(num_neg, len(candidates))
    picks = rng.choice(len(candidates), size=n, replace=False) if n else []
    probes[num_pos:num_pos + num_neg] = [candidates[p] for p in picks]
    return probes


# ---------------------------------------------------------------------------
# CofactorModel
# ---------------------------------------------------------------------------

class CofactorModel:
    """ALS co-factorization engine over one data partition.

    All parameter tables are owned by the instance; independent instances
    share nothing and may run in parallel.
    """

    def __init__(self, factor, rank_init=None, c0=0.1, c1=1.0, lambda_theta=1e-5,
                 lambda_beta=1e-5, lambda_gamma=1.0, global_bias=0.0,
                 validation_metric=ValidationMetric.AUC, num_valid_per_record=10,
                 use_bias=True, update_global_bias=False, rng=None):
        """
        Args:
            factor:               Number of latent dimensions F.
            rank_init:            RankInitScheme for new vectors (default: gaussian).
            c0:                   Confidence of unobserved user-item entries.
            c1:                   Confidence of observed user-item entries.
            lambda_theta:         Ridge penalty on user vectors.
            lambda_beta:          Ridge penalty on item vectors.
            lambda_gamma:         Ridge penalty on item embedding vectors.
            global_bias:          Initial global bias of the SPPMI term.
            validation_metric:    ValidationMetric.AUC or ValidationMetric.OBJECTIVE.
            num_valid_per_record: Negatives sampled per AUC validation probe.
            use_bias:             Learn per-item beta/gamma biases.
            update_global_bias:   Re-estimate the global bias every item sweep.
            rng:                  numpy Generator used for init and sampling.

        Raises:
            InvalidConfigError: on any out-of-range hyper-parameter.
        """
        if factor is None or int(factor) <= 0:
            raise InvalidConfigError(f"factor must be positive: {factor}")
        if c0 < 0 or c1 < 0:
            raise InvalidConfigError(f"c0 and c1 must be non-negative: c0={c0}, c1={c1}")
        if min(lambda_theta, lambda_beta, lambda_gamma) < 0:
            raise InvalidConfigError("Regularization factors must be non-negative")
        if update_global_bias and not use_bias:
            raise InvalidConfigError("Cannot update the global bias when biases are disabled")
        validation_metric = ValidationMetric.resolve(validation_metric)
        if validation_metric == ValidationMetric.AUC and num_valid_per_record < 1:
            raise InvalidConfigError(
                f"num_valid_per_record must be >= 1 for AUC validation: {num_valid_per_record}"
            )

        self.factor = int(factor)
        self.rank_init = rank_init or RankInitScheme(
            RankInitScheme.GAUSSIAN, stddev_floor=1.0 / self.factor
        )
        self.c0 = float(c0)
        self.c1 = float(c1)
        self.lambda_theta = float(lambda_theta)
        self.lambda_beta = float(lambda_beta)
        self.lambda_gamma = float(lambda_gamma)
        self.global_bias = float(global_bias)
        self.validation_metric = validation_metric
        self.num_valid_per_record = int(num_valid_per_record)
        self.use_bias = use_bias
        self.update_global_bias = update_global_bias
        self.rng = rng if rng is not None else np.random.default_rng()

        self.theta = Weights(self.factor)
        self.beta = Weights(self.factor)
        self.gamma = Weights(self.factor)
        self.beta_bias = BiasTable()
        self.gamma_bias = BiasTable()

        self._rated = {}
        self._counters = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_users(self, users):
        """Register user keys.

        `users` is an iterable of keys or a mapping user -> rated items. A
        mapping also records each user's history, which AUC validation never
        samples as a negative.
        """
        if isinstance(users, Mapping):
            for user, items in users.items():
                self._rated[user] = frozenset(items)
        added = self.theta.register(users, self.rank_init, self.rng)
        incr(self._counter('users'), added)
        _logger.debug("Registered %d users", added)

    def register_items(self, keys):
        keys = list(keys)
        added = self.beta.register(keys, self.rank_init, self.rng)
        self.gamma.register(keys, self.rank_init, self.rng)
        self.beta_bias.register(keys)
        self.gamma_bias.register(keys)
        incr(self._counter('items'), added)
        _logger.debug("Registered %d items", added)

    def register_counters(self, counters):
        """Attach instrumentation counters by name (see counters.COUNTER_NAMES)."""
        self._counters = dict(counters or {})

    def _counter(self, name):
        return self._counters.get(name)

    # ------------------------------------------------------------------
    # Sweeps
    # ------------------------------------------------------------------

    def update_with_users(self, user_to_items):
        """Theta half-sweep: re-solve every user vector with beta fixed."""
        background = gram.background_gram(self.beta, self.factor, self.c0, self.lambda_theta)

        updated = skipped = 0
        for user, items in user_to_items.items():
            if user not in self.theta:
                _logger.debug("Skipping unregistered user %r", user)
                skipped += 1
                continue
            trainable = sum(1 for i in items if i in self.beta)
            incr(self._counter('theta_total_features'), len(items))
            incr(self._counter('theta_trainable_features'), trainable)
            incr(self._counter('skipped_items'), len(items) - trainable)

            self.theta[user] = calculate_new_theta_vector(
                user, items, self.beta, self.factor, background, self.c0, self.c1
            )
            updated += 1

        incr(self._counter('skipped_users'), skipped)
        _logger.info("Updated %d user vectors (%d skipped)", updated, skipped)
        _logger.debug("|theta|: %f", l2_norm(self.theta.as_matrix().ravel()))

    def update_with_items(self, item_to_users, sppmi):
        """Item half-sweep: beta, gamma and biases per item, then the global bias."""
        background = gram.background_gram(self.theta, self.factor, self.c0, self.lambda_beta)
        beta_bias = self.beta_bias if self.use_bias else None
        gamma_bias = self.gamma_bias if self.use_bias else None

        updated = skipped = 0
        for item, users in item_to_users.items():
            if item not in self.beta:
                _logger.debug("Skipping unregistered item %r", item)
                skipped += 1
                continue
            row = sppmi.get(item)
            trainable = sum(1 for u in users if u in self.theta)
            incr(self._counter('beta_total_features'), len(users))
            incr(self._counter('beta_trainable_features'), trainable)
            incr(self._counter('skipped_users'), len(users) - trainable)
            if row:
                incr(self._counter('skipped_items'), sum(1 for j, _ in row if j not in self.gamma))

            self.beta[item] = calculate_new_beta_vector(
                item, users, row, self.theta, self.gamma, gamma_bias, beta_bias,
                self.factor, background, self.c0, self.c1, self.global_bias,
            )

            new_gamma = calculate_new_gamma_vector(
                item, row, self.beta, gamma_bias, beta_bias, self.factor,
                self.lambda_gamma, self.global_bias,
            )
            if new_gamma is not None:
                self.gamma[item] = new_gamma

            if self.use_bias:
                b = calculate_new_bias(
                    item, row, self.beta, self.gamma, self.gamma_bias, self.global_bias
                )
                if b is not None:
                    self.beta_bias[item] = b
                c = calculate_new_bias(
                    item, row, self.gamma, self.beta, self.beta_bias, self.global_bias
                )
                if c is not None:
                    self.gamma_bias[item] = c
            updated += 1

        if self.update_global_bias:
            mu = calculate_new_global_bias(
                item_to_users, sppmi, self.beta, self.gamma, self.beta_bias, self.gamma_bias
            )
            if mu is not None:
                self.global_bias = mu

        incr(self._counter('skipped_items'), skipped)
        _logger.info("Updated %d item vectors (%d skipped)", updated, skipped)
        _logger.debug("|beta|: %f", l2_norm(self.beta.as_matrix().ravel()))

    # ------------------------------------------------------------------
    # Loss, prediction and validation
    # ------------------------------------------------------------------

    def predict(self, user, item):
        """theta_u . beta_i, or None if either side is unregistered."""
        u = self.theta.get(user)
        i = self.beta.get(item)
        if u is None or i is None:
            return None
        return dot_product(u, i)

    def calculate_mf_loss(self, samples):
        return calculate_mf_loss(samples, self.beta, self.theta, self.c0, self.c1)

    def calculate_embed_loss(self, samples):
        beta_bias = self.beta_bias if self.use_bias else None
        gamma_bias = self.gamma_bias if self.use_bias else None
        return calculate_embed_loss(
            samples, self.beta, self.gamma, beta_bias, gamma_bias, self.global_bias
        )

    def calculate_reg_loss(self):
        loss = 0.0
        for lam, weights in ((self.lambda_theta, self.theta),
                             (self.lambda_beta, self.beta),
                             (self.lambda_gamma, self.gamma)):
            if weights:
                loss += lam * l2_norm(weights.as_matrix().ravel()) ** 2
        return loss

    def calculate_loss(self, samples):
        """Full objective: MF + SPPMI embedding + ridge terms.

        The MF term is taken over the user contexts in `samples` (one row per
        user) and the embedding term over the item contexts, so every observed
        pair is counted once.

        Raises:
            NonFiniteLossError: if the objective is NaN or infinite.
            TypeError: on a record that is neither a UserContext nor an ItemContext.
        """
        users, items = [], []
        for sample in samples:
            if isinstance(sample, UserContext):
                users.append(sample)
            elif isinstance(sample, ItemContext):
                items.append(sample)
            else:
                raise TypeError(f"Unsupported training record: {type(sample).__name__}")
        loss = self.calculate_mf_loss(users) + self.calculate_embed_loss(items)
        loss += self.calculate_reg_loss()
        if not np.isfinite(loss):
            raise NonFiniteLossError(f"Non-finite training loss: {loss}")
        return loss

    def trainable_items(self):
        return self.beta.keys_list()

    def validate(self, user, item):
        """Validation loss of one held-out (user, item) pair.

        Returns:
            For AUC: 1 - AUC of `item` against sampled negatives outside the
            history recorded by register_users(). For OBJECTIVE:
            c1 * (1 - theta_u . beta_i)^2. None when the pair cannot be scored
            (unregistered user or item, or no negative could be sampled).

        Raises:
            NonFiniteLossError: if a score or the loss is NaN or infinite.
        """
        score = self.predict(user, item)
        if score is None:
            return None
        if not np.isfinite(score):
            raise NonFiniteLossError(f"Non-finite score for ({user!r}, {item!r}): {score}")

        if self.validation_metric == ValidationMetric.OBJECTIVE:
            loss = self.c1 * (1.0 - score) ** 2
        else:
            rated = self._rated.get(user, frozenset())
            universe = [k for k in self.trainable_items() if k not in rated]
            probes = [item] + [None] * self.num_valid_per_record
            sample_negatives(1, self.num_valid_per_record, probes, universe, self.rng)
            negatives = probes[1:]
            if not negatives:
                return None
            u = self.theta[user]
            neg_scores = np.array([dot_product(u, self.beta[j]) for j in negatives])
            if not np.all(np.isfinite(neg_scores)):
                raise NonFiniteLossError(f"Non-finite negative scores for {user!r}")
            loss = 1.0 - calculate_auc([score], neg_scores)

        if not np.isfinite(loss):
            raise NonFiniteLossError(f"Non-finite validation loss for ({user!r}, {item!r})")
        return loss

    # ------------------------------------------------------------------
    # Read-out
    # ------------------------------------------------------------------

    def get_theta(self):
        return self.theta

    def get_beta(self):
        return self.beta

    def get_gamma(self):
        return self.gamma

    def get_beta_bias(self):
        return self.beta_bias

    def get_gamma_bias(self):
        return self.gamma_bias

    def get_global_bias(self):
        return self.global_bias

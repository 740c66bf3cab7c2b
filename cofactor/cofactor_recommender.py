# Cofactor recommender (MF regularized by item co-occurrence embeddings)
#
# Wraps CofactorModel with the same fit / recommend / save / load surface as
# the other recommenders of this package:
#
#   1. Split the interaction log into training adjacency tables and held-out
#      validation pairs (InteractionTableBuilder).
#   2. Compute the item-item SPPMI table from the training co-occurrences.
#   3. Register every user and item, then alternate
#        theta sweep -> beta/gamma/bias sweep -> validation
#      until the loss stops improving or max_iters is reached.
#   4. Keep the learned theta / beta as dense numpy matrices for scoring.
#
# score(u, i) = theta_u . beta_i; gamma and the biases only shape beta during
# training.

import logging

import joblib
import numpy as np

from cofactor.config import CofactorConfig
from cofactor.convergence import ConvergenceState
from cofactor.counters import counter_values, new_counters
from cofactor.interaction_tables import InteractionTableBuilder
from cofactor.model import CofactorModel
from cofactor.samples import item_samples, user_samples
from cofactor.sppmi import build_sppmi

_logger = logging.getLogger(__name__)


class CofactorRecommender:
    def __init__(self, config=None, **overrides):
        """
        Args:
            config:    CofactorConfig; defaults are used when omitted.
            overrides: Individual CofactorConfig fields, e.g. factor=32.
                       Applied on top of `config`.
        """
        if config is None:
            config = CofactorConfig(**overrides)
        elif overrides:
            config = CofactorConfig(**{**config.to_dict(), **overrides})
        self.config = config

        # Populated by fit()
        self.model = None          # trained CofactorModel
        self.user_factors = None   # shape: (n_users, factor)
        self.item_factors = None   # shape: (n_items, factor)
        self.users = None          # ordered list of user IDs (row index -> user_id)
        self.user_to_idx = None
        self.items = None          # ordered list of item IDs (row index -> item_id)
        self.item_to_idx = None
        self.loss_history = []
        self.n_iterations = 0
        self.counters = {}

    def _new_model(self):
        cfg = self.config
        return CofactorModel(
            cfg.factor,
            rank_init=cfg.rank_init_scheme(),
            c0=cfg.c0,
            c1=cfg.c1,
            lambda_theta=cfg.lambda_theta,
            lambda_beta=cfg.lambda_beta,
            lambda_gamma=cfg.lambda_gamma,
            global_bias=cfg.global_bias,
            validation_metric=cfg.validation_metric,
            num_valid_per_record=cfg.num_valid_per_record,
            use_bias=cfg.use_bias,
            update_global_bias=cfg.update_global_bias,
            rng=np.random.default_rng(cfg.seed),
        )

    def fit(self, df, user_col='reviewerID', item_col='asin', time_col='unixReviewTime',
            cutoff_time=None):
        """Trains the model on an interaction log.

        Args:
            df:          DataFrame with one row per (user, item) interaction.
            user_col:    Column holding user IDs.
            item_col:    Column holding item IDs.
            time_col:    Timestamp column, only read when cutoff_time is set.
            cutoff_time: Optional unix timestamp; later interactions are ignored.

        Returns:
            self (for method chaining).
        """
        builder = InteractionTableBuilder(
            min_users=self.config.min_users,
            cutoff_time=cutoff_time,
            validation_ratio=self.config.validation_ratio,
            seed=self.config.seed,
            user_col=user_col,
            item_col=item_col,
            time_col=time_col,
        )
        user_to_items, item_to_users, validation_pairs = builder.build(df)
        sppmi = build_sppmi(
            builder.training_matrix(), list(builder.items), shift=self.config.sppmi_shift
        )
        _logger.info(
            "Built tables: %d users, %d items, %d SPPMI rows, %d validation pairs",
            len(user_to_items), len(item_to_users), len(sppmi), len(validation_pairs),
        )
        return self.fit_tables(user_to_items, item_to_users, sppmi, validation_pairs)

    def fit_tables(self, user_to_items, item_to_users, sppmi, validation_pairs=()):
        """Runs the ALS sweeps on pre-built aggregates.

        Args:
            user_to_items:    dict user -> list of items.
            item_to_users:    dict item -> list of users.
            sppmi:            dict item -> list of (neighbor item, SPPMI weight).
            validation_pairs: Held-out (user, item) pairs. When empty, the
                              training objective drives the convergence check.

        Returns:
            self (for method chaining).
        """
        cfg = self.config
        model = self._new_model()
        self.counters = new_counters()
        model.register_counters(self.counters)
        model.register_users(user_to_items)
        model.register_items(item_to_users.keys())

        state = ConvergenceState(cfg.convergence_check, cfg.convergence_rate)
        samples = user_samples(user_to_items) + item_samples(item_to_users, sppmi)
        num_training = sum(len(v) for v in item_to_users.values())

        for iteration in range(cfg.max_iters):
            state.next()
            model.update_with_users(user_to_items)
            model.update_with_items(item_to_users, sppmi)

            num_validations = 0
            for user, item in validation_pairs:
                loss = model.validate(user, item)
                if loss is not None:
                    state.incr_loss(loss)
                    num_validations += 1

            if num_validations:
                observed = num_validations
            else:
                state.incr_loss(model.calculate_loss(samples))
                observed = num_training

            self.n_iterations = iteration + 1
            _logger.info(
                "Iteration %d/%d: average loss %.6f over %d %s examples",
                iteration + 1, cfg.max_iters, state.average_loss(observed), observed,
                'validation' if num_validations else 'training',
            )
            if state.is_converged(observed):
                break

        self.loss_history = list(state.history)
        self.model = model
        self._extract_factors()
        _logger.info("Counters: %s", counter_values(self.counters))
        return self

    def _extract_factors(self):
        theta = self.model.get_theta()
        beta = self.model.get_beta()
        self.users = theta.keys_list()
        self.items = beta.keys_list()
        self.user_to_idx = {u: idx for idx, u in enumerate(self.users)}
        self.item_to_idx = {i: idx for idx, i in enumerate(self.items)}
        self.user_factors = theta.as_matrix(self.users)
        self.item_factors = beta.as_matrix(self.items)

    def recommend(self, user_id, user_history, top_n=10):
        """
        Generates top-N item recommendations for a user.

        Known users are scored with their learned theta vector; unknown users
        fall back to the mean beta vector of their history.

        Args:
            user_id:      The user's ID.
            user_history: List of item IDs the user has already interacted with.
            top_n:        Number of recommendations to return.

        Returns:
            List of recommended item IDs, highest score first.
        """
        if self.item_factors is None:
            raise ValueError("Model is not trained. Call .fit() first.")

        history_idx = [self.item_to_idx[i] for i in user_history if i in self.item_to_idx]
        if user_id in self.user_to_idx:
            user_vector = self.user_factors[self.user_to_idx[user_id]]
        elif history_idx:
            user_vector = self.item_factors[history_idx].mean(axis=0)
        else:
            return []

        scores = self.item_factors @ user_vector
        scores[history_idx] = -np.inf

        top_n = min(top_n, len(self.items) - len(set(history_idx)))
        if top_n <= 0:
            return []
        top_indices = np.argsort(scores)[::-1][:top_n]
        return [self.items[i] for i in top_indices]

    def save(self, path):
        """Serialize the trained recommender (including the engine tables) with joblib."""
        joblib.dump(self, path)

    @classmethod
    def load(cls, path):
        """Load a previously saved CofactorRecommender from disk."""
        return joblib.load(path)

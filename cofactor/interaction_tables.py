# Turns an interaction log into the in-memory aggregates the engine consumes.
import numpy as np
import pandas as pd
from scipy.sparse import csr_matrix

from cofactor.errors import InvalidConfigError


class InteractionTableBuilder:
    def __init__(self, min_users=1, cutoff_time=None, validation_ratio=0.0, seed=31,
                 user_col='reviewerID', item_col='asin', time_col='unixReviewTime'):
        if not 0.0 <= validation_ratio <= 1.0:
            raise InvalidConfigError(
                f"validation_ratio must be between 0.0 and 1.0: {validation_ratio}"
            )
        self.min_users = min_users
        self.cutoff_time = cutoff_time
        self.validation_ratio = validation_ratio
        self.seed = seed
        self.user_col = user_col
        self.item_col = item_col
        self.time_col = time_col

        # populated by build()
        self.users = None
        self.items = None
        self.user_map = None
        self.item_map = None
        self.user_to_items = None
        self.item_to_users = None
        self.validation_pairs = None

    def _filter_items(self, df):
        """Drop items seen by fewer than min_users distinct users."""
        item_counts = df.groupby(self.item_col)[self.user_col].nunique()
        kept = item_counts[item_counts >= self.min_users].index
        return df[df[self.item_col].isin(kept)]

    def build(self, df):
        """Split the log into training adjacency tables and validation pairs.

        Each distinct (user, item) pair goes to validation with probability
        validation_ratio, otherwise to training.

        Args:
            df: DataFrame with at least the user and item columns (and the
                time column when cutoff_time is set).

        Returns:
            (user_to_items, item_to_users, validation_pairs)
        """
        if self.cutoff_time is not None:
            df = df[df[self.time_col] < self.cutoff_time]
        df = self._filter_items(df)
        pairs = df[[self.user_col, self.item_col]].drop_duplicates()

        rng = np.random.default_rng(self.seed)
        is_validation = rng.random(len(pairs)) < self.validation_ratio
        train = pairs[~is_validation]
        valid = pairs[is_validation]

        self.user_to_items = train.groupby(self.user_col, sort=False)[self.item_col].agg(list).to_dict()
        self.item_to_users = train.groupby(self.item_col, sort=False)[self.user_col].agg(list).to_dict()
        self.validation_pairs = list(valid.itertuples(index=False, name=None))

        self.users = pd.Index(list(self.user_to_items))
        self.items = pd.Index(list(self.item_to_users))
        self.user_map = {u: i for i, u in enumerate(self.users)}
        self.item_map = {it: i for i, it in enumerate(self.items)}
        return self.user_to_items, self.item_to_users, self.validation_pairs

    def training_matrix(self):
        """Binary (n_users, n_items) csr_matrix of the training pairs."""
        if self.user_to_items is None:
            raise ValueError("Tables are not built. Call .build() first.")
        rows, cols = [], []
        for user, items in self.user_to_items.items():
            for item in items:
                rows.append(self.user_map[user])
                cols.append(self.item_map[item])
        return csr_matrix(
            (np.ones(len(rows)), (rows, cols)),
            shape=(len(self.users), len(self.items)),
        )

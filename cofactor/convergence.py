# Convergence bookkeeping across training sweeps.
#
# Losses reported during a sweep are summed into `curr_losses`; next() rolls
# them into `prev_losses` at the start of the following sweep. The run is
# considered converged once the relative decrease between two consecutive
# sweeps falls below `convergence_rate`.

import logging

import numpy as np

from cofactor.errors import InvalidConfigError, NonFiniteLossError

_logger = logging.getLogger(__name__)


class ConvergenceState:
    def __init__(self, check=True, convergence_rate=0.005):
        if convergence_rate < 0:
            raise InvalidConfigError(f"convergence_rate must be >= 0: {convergence_rate}")
        self.check = check
        self.convergence_rate = convergence_rate
        self.curr_losses = 0.0
        self.prev_losses = float('inf')
        self.iteration = 0
        self.history = []

    def next(self):
        """Start a new sweep."""
        if self.iteration > 0:
            self.prev_losses = self.curr_losses
        self.curr_losses = 0.0
        self.iteration += 1

    def incr_loss(self, loss):
        if not np.isfinite(loss):
            raise NonFiniteLossError(f"Non-finite loss at iteration {self.iteration}: {loss}")
        self.curr_losses += loss

    def average_loss(self, num_instances):
        if num_instances <= 0:
            return self.curr_losses
        return self.curr_losses / num_instances

    def is_converged(self, num_instances):
        """Record this sweep's average loss and decide whether to stop."""
        avg = self.average_loss(num_instances)
        self.history.append(avg)
        if not self.check:
            return False
        if self.iteration <= 1 or not np.isfinite(self.prev_losses):
            return False

        if self.curr_losses > self.prev_losses:
            _logger.info(
                "Iteration #%d: loss increased %.6g -> %.6g",
                self.iteration, self.prev_losses, self.curr_losses,
            )
            return False
        if self.prev_losses == 0.0:
            return True

        change_rate = (self.prev_losses - self.curr_losses) / self.prev_losses
        if change_rate < self.convergence_rate:
            _logger.info(
                "Training converged at iteration #%d (change rate %.6g < %.6g)",
                self.iteration, change_rate, self.convergence_rate,
            )
            return True
        _logger.debug("Iteration #%d: change rate %.6g", self.iteration, change_rate)
        return False

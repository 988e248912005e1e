import logging
import math
from typing import Callable, List, Optional

import torch

logger = logging.getLogger(__name__)


class ConvergenceHandler:
    """
    Iteration control for the EM fit drivers.

    Parameters
    ----------
    max_iter : int
        Maximum number of EM iterations.
    min_iter : int
        Number of iterations always run, regardless of the tolerance.
    tol : float
        Convergence tolerance on the absolute log-likelihood change.
    verbose : bool
        Log progress at INFO level (DEBUG otherwise).
    callbacks : list of callables
        Observers, each called as fn(iteration, log_likelihood) once per iteration.
    """

    def __init__(
        self,
        max_iter: int,
        min_iter: int = 10,
        tol: float = 1e-3,
        verbose: bool = False,
        callbacks: Optional[List[Callable[[int, float], None]]] = None,
    ):
        if max_iter < 1:
            raise ValueError(f"max_iter must be positive, got {max_iter}")
        if min_iter < 0:
            raise ValueError(f"min_iter must be non-negative, got {min_iter}")
        self.max_iter = int(max_iter)
        self.min_iter = int(min_iter)
        self.tol = float(tol)
        self.verbose = verbose
        self.callbacks = list(callbacks or [])

        # Allocate convergence logs
        self.score = torch.full((max(self.max_iter, self.min_iter) + 1,), float("nan"), dtype=torch.float64)
        self.delta = torch.full_like(self.score, float("nan"))
        self.iter = 0
        self.is_converged = False

    def __repr__(self):
        return (f"{self.__class__.__name__}("
                f"max_iter={self.max_iter}, min_iter={self.min_iter}, "
                f"tol={self.tol}, verbose={self.verbose})")

    # ----------------------------------------------------------------------

    @property
    def keep_going(self) -> bool:
        """True while another iteration is required."""
        if self.iter < self.min_iter:
            return True
        return self.iter < self.max_iter and not self.is_converged

    @property
    def history(self) -> List[float]:
        """Log-likelihood recorded at each completed iteration."""
        return self.score[1:self.iter + 1].tolist()

    def push_pull(self, new_score: float) -> bool:
        """Record the log-likelihood of a new iteration and check convergence."""
        self.push(new_score)
        return self.check_converged()

    def push(self, new_score: float):
        """Store a new log-likelihood score and compute delta."""
        score_val = float(new_score.detach().item() if torch.is_tensor(new_score) else new_score)
        if self.iter + 1 >= self.score.numel():
            raise RuntimeError(f"Already ran the maximum of {self.iter} iterations")
        self.iter += 1
        self.score[self.iter] = score_val

        if self.iter > 1:
            self.delta[self.iter] = score_val - self.score[self.iter - 1]

    def check_converged(self) -> bool:
        """Check the tolerance, report progress and notify observers."""
        delta = float(self.delta[self.iter])
        self.is_converged = not math.isnan(delta) and abs(delta) <= self.tol

        level = logging.INFO if self.verbose else logging.DEBUG
        logger.log(level, "Iter %03d | Log L: %.6f | delta: %.6f%s",
                   self.iter, float(self.score[self.iter]), delta,
                   " | converged" if self.is_converged else "")

        for fn in self.callbacks:
            fn(self.iter, float(self.score[self.iter]))

        return self.is_converged

"""Sobol indices via SALib, the variance-based baseline for independent inputs.

Sobol indices assume independent inputs. For correlated parameters use
`Shapley`, whose effects remain well defined under dependence.

Typical usage example:

    from nodegsa.sa import Sobol, gsa

    result = gsa(model.get_loss_function(), Sobol(n_samples=1024), dist, batch=True)
    print(result.to_frame())
"""

import logging
from typing import Callable

import numpy as np

# SALib
from SALib.sample import sobol as ssobol
from SALib.analyze import sobol as asobol

from ..utils.copula import CopulaDistribution
from ..utils.results import SobolResult
from .config import SensitivityAnalysisProblem


class Sobol:
    """
    First- and total-order Sobol indices from a Saltelli design.

    Attributes:
        n_samples (int): Base sample size N. The design has N * (d + 2) rows
            and N should be a power of 2.
        calc_second_order (bool): Second-order indices. Not supported.
        seed (int | None): Seed for the design scrambling and bootstrap.

    Raises:
        NotImplementedError: If second-order indices are requested.
    """

    def __init__(
        self,
        n_samples: int = 1024,
        calc_second_order: bool = False,
        seed: int = None,
    ):
        if calc_second_order:
            raise NotImplementedError("Second-order Sobol indices are not supported")
        self.n_samples = n_samples
        self.calc_second_order = calc_second_order
        self.seed = seed

    @staticmethod
    def _problem(distribution_or_problem, names: list[str] = None) -> dict:
        if isinstance(distribution_or_problem, CopulaDistribution):
            return distribution_or_problem.to_problem(names)
        if isinstance(distribution_or_problem, SensitivityAnalysisProblem):
            return distribution_or_problem.to_dict()
        return dict(distribution_or_problem)

    def analyze(
        self,
        func: Callable,
        distribution_or_problem: CopulaDistribution | SensitivityAnalysisProblem | dict,
        batch: bool = False,
        names: list[str] = None,
    ) -> SobolResult:
        """
        Compute Sobol indices of the scalar output of func.

        Args:
            func (Callable): Model. Maps one input vector to a scalar, or with
                batch=True a matrix (n, d) to a vector (n,).
            distribution_or_problem: Independent CopulaDistribution, a
                SensitivityAnalysisProblem or a SALib problem dictionary.
            batch (bool): Whether func takes a matrix of inputs.
            names (list[str], optional): Input labels when a distribution is given.

        Returns:
            SobolResult: Indices clipped to [0, 1] with confidence half-widths.

        Raises:
            ValueError: If the distribution has correlated inputs or func
                returns non-finite values.
        """
        problem = self._problem(distribution_or_problem, names)

        samples = ssobol.sample(
            problem,
            N=self.n_samples,
            calc_second_order=self.calc_second_order,
            seed=self.seed,
        )   # shape (N * (D + 2), D)
        logging.info(f"Evaluating {samples.shape[0]} Saltelli samples.")

        if batch:
            y = np.asarray(func(samples), dtype=float).reshape(-1)
        else:
            y = np.array([float(func(x)) for x in samples])

        if not np.all(np.isfinite(y)):
            raise ValueError(
                f"Function returned {np.sum(~np.isfinite(y))} non-finite values"
            )

        si = asobol.analyze(
            problem,
            y,
            calc_second_order=self.calc_second_order,
            print_to_console=False,
            seed=self.seed,
        )

        return SobolResult(
            first_order=np.clip(si["S1"], 0, 1),
            first_order_conf=np.asarray(si["S1_conf"]),
            total_order=np.clip(si["ST"], 0, 1),
            total_order_conf=np.asarray(si["ST_conf"]),
            names=list(problem["names"]),
        )

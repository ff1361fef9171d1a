import numpy as np
import pytest
from nodegsa.sa import Sobol, SensitivityAnalysisProblem, gsa
from nodegsa.utils.copula import CopulaDistribution, GaussianCopula, equicorrelation
from nodegsa.utils.distributions import get_scipy_normal, get_scipy_uniform


def additive(X):
    return X[:, 0] + 2 * X[:, 1]


def test_additive_model_indices():
    # Var contributions 1/12 and 4/12 give S1 = ST = (0.2, 0.8, 0)
    dist = CopulaDistribution([get_scipy_uniform(0, 1) for _ in range(3)])
    result = gsa(additive, Sobol(n_samples=1024, seed=0), dist, batch=True, names=["a", "b", "c"])

    assert result.names == ["a", "b", "c"]
    assert np.allclose(result.first_order, [0.2, 0.8, 0.0], atol=0.1)
    assert np.allclose(result.total_order, [0.2, 0.8, 0.0], atol=0.1)
    assert np.all((result.first_order >= 0) & (result.first_order <= 1))


def test_problem_and_single_evaluation():
    problem = SensitivityAnalysisProblem(
        num_vars=2, names=["a", "b"], bounds=[[0.0, 1.0], [0.0, 1.0]], dists=["norm", "norm"]
    )
    result = Sobol(n_samples=512, seed=1).analyze(lambda x: x[0] + 2 * x[1], problem)
    assert np.allclose(result.first_order, [0.2, 0.8], atol=0.1)


def test_normal_distribution_is_converted():
    dist = CopulaDistribution([get_scipy_normal(0.0, 1.0), get_scipy_normal(0.0, 2.0)])
    result = Sobol(n_samples=512, seed=2).analyze(additive, dist, batch=True)
    assert result.names == ["x1", "x2"]
    # Variances 1 and 16
    assert np.allclose(result.total_order, [1 / 17, 16 / 17], atol=0.1)


def test_second_order_not_supported():
    with pytest.raises(NotImplementedError):
        Sobol(calc_second_order=True)


def test_correlated_inputs_rejected():
    dist = CopulaDistribution(
        [get_scipy_normal(), get_scipy_normal()],
        GaussianCopula(equicorrelation(2, 0.5)),
    )
    with pytest.raises(ValueError):
        Sobol(n_samples=64).analyze(additive, dist, batch=True)


def test_non_finite_output_rejected():
    dist = CopulaDistribution([get_scipy_uniform(0, 1), get_scipy_uniform(0, 1)])
    with pytest.raises(ValueError):
        Sobol(n_samples=64).analyze(lambda X: np.full(len(X), np.inf), dist, batch=True)

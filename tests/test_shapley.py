import numpy as np
import pytest
from nodegsa.sa import Shapley, gsa
from nodegsa.utils.copula import CopulaDistribution, GaussianCopula, equicorrelation
from nodegsa.utils.distributions import get_scipy_normal, get_scipy_uniform


def normal_inputs(d, rho=0.0):
    marginals = [get_scipy_normal(0.0, 1.0) for _ in range(d)]
    copula = GaussianCopula(equicorrelation(d, rho)) if rho else None
    return CopulaDistribution(marginals, copula)


def linear(x):
    return x[0] + x[1]


def linear_batch(X):
    return X[:, 0] + X[:, 1]


def test_effects_sum_to_one_exact():
    result = Shapley(n_var=500, n_outer=50, n_inner=3, seed=1).analyze(
        linear_batch, normal_inputs(3), batch=True
    )
    assert result.method == "exact"
    assert result.n_perms == 6
    assert np.isclose(result.shapley_effects.sum(), 1.0)


def test_effects_sum_to_one_random():
    result = Shapley(n_perms=7, n_var=500, n_outer=20, n_inner=2, seed=3).analyze(
        lambda X: X[:, 0] * X[:, 1] + X[:, 2] ** 2, normal_inputs(4, rho=0.3), batch=True
    )
    assert result.method == "random"
    assert result.n_perms == 7
    assert np.isclose(result.shapley_effects.sum(), 1.0)


def test_symmetric_inputs_share_variance():
    result = Shapley(n_var=2000, n_outer=500, n_inner=3, seed=0).analyze(
        linear_batch, normal_inputs(2), batch=True
    )
    assert np.allclose(result.shapley_effects, [0.5, 0.5], atol=0.1)
    assert np.isclose(result.var_y, 2.0, rtol=0.15)


def test_irrelevant_input_has_no_effect():
    result = Shapley(n_var=2000, n_outer=500, n_inner=3, seed=0).analyze(
        linear_batch, normal_inputs(3), batch=True
    )
    assert abs(result.shapley_effects[2]) < 0.1
    assert np.allclose(result.shapley_effects[:2], [0.5, 0.5], atol=0.1)


def test_correlated_input_shares_effect():
    # Y = X1 with corr(X1, X2) = rho gives effects (1 - rho^2 / 2, rho^2 / 2)
    rho = 0.8
    result = Shapley(n_var=4000, n_outer=2000, n_inner=3, seed=0).analyze(
        lambda X: X[:, 0], normal_inputs(2, rho), batch=True
    )
    expected = [1 - rho ** 2 / 2, rho ** 2 / 2]
    assert np.allclose(result.shapley_effects, expected, atol=0.08)


def test_batch_and_single_evaluation_agree():
    shapley = Shapley(n_perms=3, n_var=100, n_outer=10, n_inner=2, seed=5)
    dist = normal_inputs(3, rho=0.5)

    single = shapley.analyze(linear, dist)
    batched = shapley.analyze(linear_batch, dist, batch=True)

    assert np.allclose(single.shapley_effects, batched.shapley_effects)
    assert np.allclose(single.std_errors, batched.std_errors)


def test_confidence_interval():
    dist = CopulaDistribution([get_scipy_uniform(0, 1) for _ in range(3)])

    def f(X):
        return X[:, 0] + 2 * X[:, 1] + X[:, 2] ** 2

    narrow = Shapley(n_perms=20, n_var=200, n_outer=20, n_inner=3, ci_level=0.5, seed=2)
    wide = Shapley(n_perms=20, n_var=200, n_outer=20, n_inner=3, ci_level=0.99, seed=2)
    r50 = narrow.analyze(f, dist, batch=True)
    r99 = wide.analyze(f, dist, batch=True)

    assert np.all(r50.std_errors >= 0)
    assert np.all(r50.ci_lower <= r50.shapley_effects)
    assert np.all(r50.shapley_effects <= r50.ci_upper)
    assert np.allclose(r50.shapley_effects, r99.shapley_effects)
    assert np.all(r99.ci_upper - r99.ci_lower >= r50.ci_upper - r50.ci_lower)


def test_names_passed_to_result():
    result = gsa(
        linear_batch,
        Shapley(n_var=100, n_outer=10, n_inner=2, seed=0),
        normal_inputs(2),
        batch=True,
        names=["a", "b"],
    )
    assert result.names == ["a", "b"]
    assert list(result.to_frame()["name"]) == ["a", "b"]


def test_wrong_names_rejected_before_evaluation():
    calls = []

    def func(X):
        calls.append(len(X))
        return X.sum(axis=1)

    with pytest.raises(ValueError):
        Shapley(n_var=10).analyze(func, normal_inputs(2), batch=True, names=["a"])
    assert calls == []


def test_gsa_dispatches_to_method():
    shapley = Shapley(n_var=100, n_outer=10, n_inner=2, seed=4)
    dist = normal_inputs(2)
    direct = shapley.analyze(linear_batch, dist, batch=True)
    via_gsa = gsa(linear_batch, shapley, dist, batch=True)
    assert np.allclose(direct.shapley_effects, via_gsa.shapley_effects)


def test_single_input_gets_everything():
    result = Shapley(n_var=100, seed=0).analyze(lambda x: x[0] ** 2, normal_inputs(1))
    assert np.allclose(result.shapley_effects, [1.0])
    assert np.allclose(result.std_errors, [0.0])


@pytest.mark.parametrize("kwargs", [
    {"n_perms": 0},
    {"n_perms": -2},
    {"n_var": 1},
    {"n_outer": 0},
    {"n_inner": 1},
    {"ci_level": 0.0},
    {"ci_level": 1.5},
])
def test_invalid_settings(kwargs):
    with pytest.raises(ValueError):
        Shapley(**kwargs)


def test_exact_method_dimension_cap():
    with pytest.raises(ValueError):
        Shapley(n_var=10, max_exact_dim=8).analyze(lambda X: X.sum(axis=1), normal_inputs(9), batch=True)


def test_zero_variance_output():
    with pytest.raises(ValueError):
        Shapley(n_var=10).analyze(lambda x: 1.0, normal_inputs(2))


def test_non_finite_output():
    with pytest.raises(ValueError):
        Shapley(n_var=10).analyze(lambda X: np.full(len(X), np.nan), normal_inputs(2), batch=True)


def test_non_scalar_output():
    with pytest.raises(ValueError):
        Shapley(n_var=10).analyze(lambda x: x, normal_inputs(2))
    with pytest.raises(ValueError):
        Shapley(n_var=10).analyze(lambda X: X, normal_inputs(2), batch=True)

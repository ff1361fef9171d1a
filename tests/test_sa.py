import os

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest
from nodegsa import NeuralODEModel
from nodegsa.config import MetricConfig
from nodegsa.ode import generate_data, build_node, TrainingConfig
from nodegsa.sa import (
    SensitivityAnalysis,
    SensitivityAnalysisConfig,
    ShapleyConfig,
    plot_fit,
    plot_shapley_effects,
)
from nodegsa.utils.results import ShapleyResult, SobolResult


def make_model(hidden=2):
    data = generate_data(datasize=8)
    node = build_node(data, TrainingConfig(hidden=hidden))
    return NeuralODEModel.from_data(node, data, run_kwargs={"method": "rk4"})


def small_config(**kwargs):
    shapley = ShapleyConfig(n_perms=2, n_var=40, n_outer=4, n_inner=2)
    return SensitivityAnalysisConfig(shapley=shapley, **kwargs)


def test_input_distribution_centred_on_trained_vector():
    model = make_model()
    dist = SensitivityAnalysis(model, small_config(scale=0.1)).input_distribution()

    assert dist.dim == model.num_vars
    assert dist.is_independent()
    means = np.array([m.mean() for m in dist.marginals])
    assert np.allclose(means, model.theta)
    assert np.isclose(dist.marginals[0].std(), 0.2)


def test_input_distribution_correlated_and_uniform():
    model = make_model()
    dist = SensitivityAnalysis(
        model, small_config(marginal="uniform", correlation=0.09)
    ).input_distribution()

    assert not dist.is_independent()
    assert np.allclose(dist.copula.corr[0, 1], 0.09)
    low, high = dist.marginals[0].support()
    assert np.isclose(low, 1.9) and np.isclose(high, 2.1)


def test_input_distribution_unknown_marginal():
    with pytest.raises(ValueError):
        SensitivityAnalysis(make_model(), small_config(marginal="cauchy")).input_distribution()


def test_run_shapley_writes_results(tmp_path):
    model = make_model()
    metric = MetricConfig.from_dict({"params": ["u1", "u2"], "metrics": ["rmse", "nse"], "modes": ["min", "max"]})
    sa = SensitivityAnalysis(model, small_config(correlation=0.09, metric=metric, top=5))

    result = sa.run(tmp_path)

    assert isinstance(result, ShapleyResult)
    assert len(result) == model.num_vars
    assert result.names == model.names
    assert np.isclose(result.shapley_effects.sum(), 1.0)

    res_dir = os.path.join(tmp_path, "sa_results")
    plt_dir = os.path.join(tmp_path, "plots")
    for name in ("shapley_effects.csv", "shapley_effects.json", "shapley_effects.npy",
                 "shapley_std_errors.npy", "fit.json"):
        assert os.path.exists(os.path.join(res_dir, name))
    assert os.path.exists(os.path.join(plt_dir, "shapley_effects.png"))
    assert os.path.exists(os.path.join(plt_dir, "fit.png"))

    frame = pd.read_csv(os.path.join(res_dir, "shapley_effects.csv"))
    assert list(frame["name"]) == model.names


def test_rerun_into_same_directory_keeps_results(tmp_path):
    model = make_model()
    metric = MetricConfig.from_dict({"params": ["u1"], "metrics": ["rmse"], "modes": ["min"]})
    SensitivityAnalysis(model, small_config(seed=1, metric=metric)).run(tmp_path)

    res_dir = os.path.join(tmp_path, "sa_results")
    with open(os.path.join(res_dir, "fit.json")) as f:
        fit = f.read()

    with pytest.raises(FileExistsError):
        SensitivityAnalysis(model, small_config(seed=2, metric=metric)).run(tmp_path)

    saved = ShapleyResult.from_json(os.path.join(res_dir, "shapley_effects.json"))
    frame = pd.read_csv(os.path.join(res_dir, "shapley_effects.csv"))
    assert np.allclose(frame["shapley_effect"], saved.shapley_effects)
    assert np.allclose(np.load(os.path.join(res_dir, "shapley_effects.npy")), saved.shapley_effects)
    with open(os.path.join(res_dir, "fit.json")) as f:
        assert f.read() == fit


def test_run_sobol(tmp_path):
    model = make_model()
    result = SensitivityAnalysis(model, small_config(method="sobol", samples=8)).run(tmp_path)

    assert isinstance(result, SobolResult)
    assert len(result.first_order) == model.num_vars
    assert os.path.exists(os.path.join(tmp_path, "sa_results", "sobol_indices.csv"))


def test_sobol_rejects_correlation(tmp_path):
    sa = SensitivityAnalysis(make_model(), small_config(method="sobol", correlation=0.1))
    with pytest.raises(ValueError):
        sa.run(tmp_path)


def test_unknown_method(tmp_path):
    sa = SensitivityAnalysis(make_model(), small_config(method="morris"))
    with pytest.raises(ValueError):
        sa.run(tmp_path)


def test_plot_shapley_effects_top(tmp_path):
    result = ShapleyResult(
        shapley_effects=[0.1, 0.6, 0.3],
        std_errors=[0.01, 0.02, 0.03],
        ci_lower=[0.08, 0.56, 0.24],
        ci_upper=[0.12, 0.64, 0.36],
        names=["a", "b", "c"],
    )
    ax = plot_shapley_effects(result, top=2)
    assert [label.get_text() for label in ax.get_xticklabels()] == ["b", "c"]

    outfile = os.path.join(tmp_path, "effects.png")
    plot_shapley_effects(result, outfile=outfile)
    assert os.path.exists(outfile)


def test_plot_fit(tmp_path):
    model = make_model()
    outfile = os.path.join(tmp_path, "fit.png")
    plot_fit(model.ground, model.run(method="rk4"), outfile)
    assert os.path.exists(outfile)

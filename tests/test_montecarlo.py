import os

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest
from nodegsa import NeuralODEModel
from nodegsa.config import SpaceConfig
from nodegsa.montecarlo import MonteCarloConfig, Sim
from nodegsa.ode import generate_data, build_node, TrainingConfig
from nodegsa.utils.distributions import MARGINALS


def make_model():
    data = generate_data(datasize=10)
    node = build_node(data, TrainingConfig(hidden=4))
    return NeuralODEModel.from_data(node, data)


def make_config(**kwargs):
    space = SpaceConfig.from_dict(MARGINALS, {
        "u0[1]": ["normal", [2.0, 0.05]],
        "u0[2]": ["uniform", [-0.1, 0.1]],
    })
    return MonteCarloConfig(space=space, **kwargs)


def test_run_returns_one_trajectory_per_sample():
    sim = Sim(make_model(), make_config(), run_kwargs={"method": "rk4"}, seed=0)
    results = sim.run(n=8, workers=2)

    assert len(results) == 8
    starts = np.array([r[["u1", "u2"]].iloc[0].to_numpy() for r in results])
    assert np.all(np.abs(starts[:, 1]) <= 0.1)
    assert starts[:, 0].std() > 0


def test_serial_and_parallel_runs_agree():
    parallel = Sim(make_model(), make_config(), run_kwargs={"method": "rk4"}, seed=1).run(n=4)
    serial = Sim(make_model(), make_config(), run_kwargs={"method": "rk4"}, seed=1).run(n=4, parallel=False)
    for a, b in zip(parallel, serial):
        assert np.allclose(a.to_numpy(), b.to_numpy())


def test_sobol_requires_power_of_two():
    sim = Sim(make_model(), make_config(), run_kwargs={"method": "rk4"})
    with pytest.raises(ValueError):
        sim.run(n=6)


def test_latin_and_halton_accept_any_n():
    for engine in ("latin", "halton"):
        sim = Sim(make_model(), make_config(), run_kwargs={"method": "rk4"}, engine=engine)
        assert len(sim.run(n=5, parallel=False)) == 5


def test_unknown_engine():
    with pytest.raises(ValueError):
        Sim(make_model(), make_config(), engine="random")


def test_empty_space():
    with pytest.raises(ValueError):
        Sim(make_model(), MonteCarloConfig())


def test_correlated_samples():
    sim = Sim(make_model(), make_config(correlation=0.9), seed=0)
    samples = sim._sample_from_space(256, workers=1)
    x = np.array([[s["u0[1]"], s["u0[2]"]] for s in samples])
    assert np.corrcoef(x.T)[0, 1] > 0.7


def test_correlation_matrix_size_checked():
    with pytest.raises(ValueError):
        Sim(make_model(), make_config(correlation=np.eye(3).tolist()))


def test_outputs_and_overrides():
    sim = Sim(make_model(), make_config(outputs=["u2"]), run_kwargs={"method": "rk4"})
    results = sim.run(n=2, X={"net.2.bias[1]": 0.0})
    assert all(list(r.columns) == ["t", "u2"] for r in results)


def test_analyze_statistics():
    sim = Sim(make_model(), make_config(), run_kwargs={"method": "rk4"}, seed=0)
    results = sim.run(n=16, workers=2)
    results[3] = None

    stats = sim.analyze(results, index_columns=["t"])

    assert set(stats.keys()) == {"ci_low", "ci_high", "mean", "stddev", "stderr", "min_val", "max_val"}
    assert np.allclose(stats["mean"]["t"], results[0]["t"])
    assert np.allclose(stats["stddev"]["t"], results[0]["t"])
    assert np.all(stats["min_val"]["u1"] <= stats["mean"]["u1"])
    assert np.all(stats["mean"]["u1"] <= stats["max_val"]["u1"])
    assert np.all(stats["ci_low"]["u1"] <= stats["ci_high"]["u1"])
    assert np.allclose(stats["stderr"]["u1"], stats["stddev"]["u1"] / np.sqrt(15))


def test_analyze_all_failed():
    sim = Sim(make_model(), make_config())
    with pytest.raises(ValueError):
        sim.analyze([None, None], index_columns=["t"])


def test_plot_ci(tmp_path):
    sim = Sim(make_model(), make_config(), run_kwargs={"method": "rk4"}, seed=0)
    stats = sim.analyze(sim.run(n=4, parallel=False), index_columns=["t"])

    outfile = os.path.join(tmp_path, "ci.png")
    Sim.plot_ci(stats, ["u1", "u2"], outfile)
    assert os.path.exists(outfile)

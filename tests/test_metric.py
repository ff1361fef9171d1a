import numpy as np
import pytest
from nodegsa.config import MetricConfig
from nodegsa.utils.metric import (
    Metric,
    Mode,
    NSE,
    NNSE,
    RMSE,
    SSE,
    nash_sutcliffe_efficiency,
    normalized_nash_sutcliffe_efficiency,
    sum_squared_error,
)


def test_from_name_strips_suffix():
    m = Metric.from_name("rmse", "u1.late")
    assert isinstance(m, RMSE)
    assert m.name == "u1.late"
    assert m.output_name == "u1"


def test_from_name_without_suffix():
    m = Metric.from_name("SSE", "u2")
    assert isinstance(m, SSE)
    assert m.name == m.output_name == "u2"


def test_from_name_unknown():
    with pytest.raises(ValueError):
        Metric.from_name("kge", "u1")


def test_sum_squared_error():
    assert sum_squared_error([1.0, 2.0, 3.0], [1.0, 0.0, 4.0]) == 5.0


def test_nash_sutcliffe():
    y = np.array([1.0, 2.0, 3.0, 4.0])
    assert np.isclose(nash_sutcliffe_efficiency(y, y), 1.0)
    assert np.isclose(nash_sutcliffe_efficiency(y, np.full(4, y.mean())), 0.0)
    assert np.isclose(normalized_nash_sutcliffe_efficiency(y, y), 1.0)
    assert np.isclose(normalized_nash_sutcliffe_efficiency(y, np.full(4, y.mean())), 0.5)


def test_nse_and_nnse_use_their_own_functions():
    y = np.array([1.0, 2.0, 3.0, 4.0])
    pred = np.array([1.5, 2.0, 2.5, 4.5])
    assert np.isclose(NSE("u1").func(y, pred), nash_sutcliffe_efficiency(y, pred))
    assert np.isclose(NNSE("u1").func(y, pred), normalized_nash_sutcliffe_efficiency(y, pred))


def test_mode_from_name():
    assert Mode.from_name("MIN") is Mode.MIN
    assert Mode.from_name("max") == "max"
    with pytest.raises(ValueError):
        Mode.from_name("minimize")


def test_metric_config_from_dict():
    config = MetricConfig.from_dict({
        "params": ["u1", "u2", "u1.fit"],
        "metrics": ["rmse", "r2", "nse"],
        "modes": ["min", "max", "max"],
    })
    assert [m.name for m in config.metrics] == ["u1", "u2", "u1.fit"]
    assert [m.output_name for m in config.metrics] == ["u1", "u2", "u1"]
    assert config.modes == [Mode.MIN, Mode.MAX, Mode.MAX]


def test_metric_config_length_mismatch():
    with pytest.raises(ValueError):
        MetricConfig.from_dict({"params": ["u1"], "metrics": ["rmse", "r2"], "modes": ["min"]})


def test_metric_config_to_dict_round_trip():
    data = {
        "params": ["u1", "u2.b"],
        "metrics": ["sse", "nnse"],
        "modes": ["min", "max"],
    }
    assert MetricConfig.from_dict(data).to_dict() == data

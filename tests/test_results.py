import os

import numpy as np
import pandas as pd
import pytest
from nodegsa.utils.results import ShapleyResult, SobolResult, StatsResults


def make_result():
    return ShapleyResult(
        shapley_effects=[0.2, 0.5, 0.3],
        std_errors=[0.01, 0.02, 0.03],
        ci_lower=[0.18, 0.46, 0.24],
        ci_upper=[0.22, 0.54, 0.36],
        names=["a", "b", "c"],
        var_y=4.0,
        method="exact",
        n_perms=6,
    )


def test_shapley_result_vectors_are_arrays():
    result = make_result()
    assert isinstance(result.shapley_effects, np.ndarray)
    assert len(result) == 3


def test_shapley_result_default_names():
    result = ShapleyResult([0.5, 0.5], [0.0, 0.0], [0.5, 0.5], [0.5, 0.5])
    assert result.names == ["x1", "x2"]


def test_shapley_result_length_mismatch():
    with pytest.raises(ValueError):
        ShapleyResult([0.5, 0.5], [0.0], [0.5, 0.5], [0.5, 0.5])
    with pytest.raises(ValueError):
        ShapleyResult([0.5, 0.5], [0.0, 0.0], [0.5, 0.5], [0.5, 0.5], names=["a"])


def test_shapley_result_frame_and_top():
    result = make_result()
    frame = result.to_frame()
    assert list(frame.columns) == ["name", "shapley_effect", "std_error", "ci_lower", "ci_upper"]

    top = result.top(2)
    assert list(top["name"]) == ["b", "c"]


def test_shapley_result_json_round_trip(tmp_path):
    path = os.path.join(tmp_path, "shapley.json")
    result = make_result()
    result.to_json(path)

    loaded = ShapleyResult.from_json(path)
    assert loaded.names == result.names
    assert loaded.method == "exact"
    assert loaded.n_perms == 6
    assert loaded.var_y == 4.0
    assert np.allclose(loaded.ci_upper, result.ci_upper)

    with pytest.raises(FileExistsError):
        result.to_json(path)


def test_sobol_result_frame():
    result = SobolResult([0.2, 0.8], [0.01, 0.02], [0.25, 0.8], [0.01, 0.02], ["a", "b"])
    frame = result.to_frame()
    assert list(frame.columns) == ["name", "S1", "S1_conf", "ST", "ST_conf"]
    assert frame["ST"].iloc[0] == 0.25


def test_stats_results_save(tmp_path):
    stats = StatsResults({
        "mean": pd.DataFrame({"t": [0.0, 1.0], "u1": [2.0, 1.0]}),
        "stddev": pd.DataFrame({"t": [0.0, 1.0], "u1": [0.1, 0.2]}),
    })
    stats.save(tmp_path)

    assert sorted(os.listdir(tmp_path)) == ["mean.csv", "stddev.csv"]
    assert pd.read_csv(os.path.join(tmp_path, "mean.csv")).equals(stats["mean"])

"""Reference dynamics used to generate training trajectories.

The default system is the two-dimensional cubic spiral

    du/dt = (u ** 3) @ A,    A = [[-0.1, 2.0], [-2.0, -0.1]]

integrated from u0 = (2, 0) over t in [0, 1.5]. Its trajectory is the
"observed" time series that the neural ODE is fit to.

Typical usage example:

    from nodegsa.ode.dynamics import generate_data

    data = generate_data(datasize=30)
    data.head()   # columns: t, u1, u2
"""

import numpy as np
import pandas as pd
import torch
import torch.nn as nn
from torchdiffeq import odeint


TRUE_A = ((-0.1, 2.0), (-2.0, -0.1))


class SpiralDynamics(nn.Module):
    """Cubic spiral right-hand side `du/dt = (u**3) @ true_A`."""

    def __init__(self, true_A=TRUE_A):
        super().__init__()
        self.register_buffer("true_A", torch.as_tensor(true_A, dtype=torch.float64))

    def forward(self, t: torch.Tensor, u: torch.Tensor) -> torch.Tensor:
        return (u ** 3) @ self.true_A


def generate_data(
    u0=(2.0, 0.0),
    tspan: tuple[float, float] = (0.0, 1.5),
    datasize: int = 30,
    dynamics: nn.Module = None,
    method: str = "dopri5",
    state_names: tuple[str, ...] = ("u1", "u2"),
    rtol: float = 1e-9,
    atol: float = 1e-11,
) -> pd.DataFrame:
    """
    Integrate the reference dynamics on an evenly spaced grid.

    Args:
        u0 (Sequence[float]): Initial state.
        tspan (tuple[float, float]): Start and end time, both included.
        datasize (int): Number of time points.
        dynamics (nn.Module, optional): Right-hand side f(t, u). Defaults to
            `SpiralDynamics()`.
        method (str): torchdiffeq solver name.
        state_names (tuple[str, ...]): Column names of the state variables.
        rtol (float): Relative solver tolerance.
        atol (float): Absolute solver tolerance.

    Returns:
        pd.DataFrame: Column 't' followed by one column per state variable.

    Raises:
        ValueError: If datasize < 2, the time span is empty, or u0 and
            state_names differ in length.
    """
    if datasize < 2:
        raise ValueError(f"datasize must be at least 2, got {datasize}")
    if tspan[1] <= tspan[0]:
        raise ValueError(f"Invalid time span: {tspan}")
    if len(u0) != len(state_names):
        raise ValueError(
            f"u0 has {len(u0)} entries but {len(state_names)} state names were given"
        )

    dynamics = dynamics if dynamics is not None else SpiralDynamics()
    t = torch.linspace(tspan[0], tspan[1], datasize, dtype=torch.float64)
    y0 = torch.as_tensor(u0, dtype=torch.float64)

    with torch.no_grad():
        traj = odeint(dynamics, y0, t, method=method, rtol=rtol, atol=atol)  # (T, S)

    data = pd.DataFrame(traj.numpy(), columns=list(state_names))
    data.insert(0, "t", t.numpy())
    return data


def state_array(data: pd.DataFrame, state_names=None) -> np.ndarray:
    """Extract the (T, S) state matrix from a trajectory dataframe."""
    state_names = list(state_names) if state_names else [c for c in data.columns if c != "t"]
    return data[state_names].to_numpy(dtype=float)

"""Neural ODE whose derivative is a small multilayer perceptron.

The network follows the classic spiral example: the state is cubed, passed
through a tanh hidden layer and projected back to the state dimension. The
initial condition is learnable too, so the full optimization variable is the
flat state vector

    theta = [u0; net.0.weight; net.0.bias; net.2.weight; net.2.bias]

in `nn.Module.parameters()` order. Sensitivity analysis perturbs this vector,
and `NeuralODE.simulate` solves many perturbed copies at once by vectorizing
the derivative over weight vectors with `torch.func.vmap`.
"""

import numpy as np
import torch
import torch.nn as nn
from torch.func import functional_call, vmap
from torch.nn.utils import parameters_to_vector, vector_to_parameters
from torchdiffeq import odeint


class ODEFunc(nn.Module):
    """Derivative network f(t, u) = W2 tanh(W1 u³ + b1) + b2."""

    def __init__(self, state_dim: int = 2, hidden: int = 50):
        super().__init__()
        self.state_dim = state_dim
        self.hidden = hidden
        self.net = nn.Sequential(
            nn.Linear(state_dim, hidden),
            nn.Tanh(),
            nn.Linear(hidden, state_dim),
        ).double()

    def forward(self, t: torch.Tensor, u: torch.Tensor) -> torch.Tensor:
        return self.net(u ** 3)


class NeuralODE(nn.Module):
    """
    Neural ODE with a learnable initial condition.

    Attributes:
        func (ODEFunc): Derivative network.
        u0 (nn.Parameter): Initial state, shape (state_dim,).
    """

    def __init__(self, func: ODEFunc, u0):
        super().__init__()
        self.func = func
        self.u0 = nn.Parameter(torch.as_tensor(u0, dtype=torch.float64).clone())
        if self.u0.shape != (func.state_dim,):
            raise ValueError(
                f"u0 must have shape ({func.state_dim},), got {tuple(self.u0.shape)}"
            )

    @property
    def state_dim(self) -> int:
        return self.func.state_dim

    def forward(self, t: torch.Tensor, method: str = "dopri5", **kwargs) -> torch.Tensor:
        """Integrate from u0 over t. Returns shape (T, state_dim)."""
        return odeint(self.func, self.u0, t, method=method, **kwargs)

    def num_weights(self) -> int:
        return sum(p.numel() for p in self.func.parameters())

    def state_vector(self) -> np.ndarray:
        """Flat [u0; weights] vector as float64 numpy array."""
        with torch.no_grad():
            theta = torch.cat([self.u0, parameters_to_vector(self.func.parameters())])
        return theta.detach().cpu().numpy().copy()

    def load_state_vector(self, theta):
        """
        Overwrite u0 and the network weights from a flat vector.

        Raises:
            ValueError: If theta does not have `state_dim + num_weights()` entries.
        """
        theta = torch.as_tensor(np.asarray(theta), dtype=torch.float64).flatten()
        expected = self.state_dim + self.num_weights()
        if theta.numel() != expected:
            raise ValueError(f"State vector must have {expected} entries, got {theta.numel()}")
        with torch.no_grad():
            self.u0.copy_(theta[:self.state_dim])
            vector_to_parameters(theta[self.state_dim:], self.func.parameters())

    def parameter_names(self) -> list[str]:
        """One label per state-vector entry, 1-based, e.g. 'net.0.weight[3,1]'."""
        names = [f"u0[{i + 1}]" for i in range(self.state_dim)]
        for name, param in self.func.named_parameters():
            for idx in np.ndindex(*param.shape):
                names.append(f"{name}[{','.join(str(i + 1) for i in idx)}]")
        return names

    def _split_weights(self, weights: torch.Tensor) -> dict[str, torch.Tensor]:
        # (B, P) -> {name: (B, *shape)} in parameters() order
        params, offset = {}, 0
        for name, param in self.func.named_parameters():
            n = param.numel()
            params[name] = weights[:, offset:offset + n].reshape(-1, *param.shape)
            offset += n
        return params

    def batched_func(self, weights: torch.Tensor):
        """
        Derivative over a batch of weight vectors.

        Args:
            weights (torch.Tensor): Network weights, shape (B, num_weights()).

        Returns:
            Callable: f(t, u) mapping states of shape (B, state_dim) to their
                derivatives, member i using weights[i].
        """
        params = self._split_weights(weights)

        def single(p, u, t):
            return functional_call(self.func, p, (t, u))

        batched = vmap(single, in_dims=(0, 0, None))

        def f(t, u):
            return batched(params, u, t)

        return f

    def simulate(
        self,
        theta_batch: np.ndarray,
        t: torch.Tensor,
        method: str = "dopri5",
        **kwargs
    ) -> np.ndarray:
        """
        Solve one trajectory per row of theta_batch in a single odeint call.

        Args:
            theta_batch (np.ndarray): State vectors, shape (B, state_dim + num_weights()).
            t (torch.Tensor): Output time points, shape (T,).
            method (str): torchdiffeq solver name.
            **kwargs: Forwarded to `torchdiffeq.odeint` (rtol, atol, options).

        Returns:
            np.ndarray: Trajectories of shape (B, T, state_dim).
        """
        theta = torch.as_tensor(np.atleast_2d(theta_batch), dtype=torch.float64)
        y0 = theta[:, :self.state_dim]
        f = self.batched_func(theta[:, self.state_dim:])
        with torch.no_grad():
            traj = odeint(f, y0, t, method=method, **kwargs)  # (T, B, S)
        return traj.permute(1, 0, 2).cpu().numpy()

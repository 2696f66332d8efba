# Copyright 2023 Google LLC

# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at

#     https://www.apache.org/licenses/LICENSE-2.0

# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Semi-implicit correction of the gravity wave terms of shallow water.

The linear terms coupling divergence `D` and interface displacement `η`,

  ∂D/∂t = -g ∇²η + ...
  ∂η/∂t = -H₀ D + ...

limit the stable time step of explicit schemes. Treating them implicitly with
weight `α` (0 explicit, 1/2 centred, 1 backward) over a leapfrog step `2Δt`
leads to a linear system that is diagonal in the spherical harmonic basis, as
`∇²` only depends on the degree `l`. The inverse therefore reduces to a per
degree scalar `div_impl[l]` that is computed once per time step size by
`initialize_implicit`, and applied by `apply_correction` on every step.
"""

from __future__ import annotations

import dataclasses

from absl import logging
from spectral_dycore import errors
from spectral_dycore import spherical_harmonic
from spectral_dycore import triangular
from spectral_dycore import typing
import jax
import jax.numpy as jnp
import numpy as np


Array = typing.Array


@dataclasses.dataclass
class ImplicitOperatorState:
  """Precomputed operators of the semi-implicit correction.

  All per-degree arrays have one entry for each stored degree of `layout`,
  guard rows included. Writing `ξ = α Δt`:

  Attributes:
    layout: layout of the spectral fields the operators apply to.
    xi_h0: `ξ H₀`.
    xi_r_h0: `ξ H₀ R`.
    xi_g_laplacian: `ξ g λₗ` for the Laplacian eigenvalues `λₗ`.
    xi_gr_laplacian: `ξ g R λₗ`.
    div_impl: `1 / (1 - ξ H₀ ξ g λₗ)`.
    time_step: the time step `Δt` the operators were built for, `None` until
      the first call to `initialize_implicit`.
    implicit_weight: the implicit weight `α` the operators were built for.
  """

  layout: triangular.TriangularLayout
  xi_h0: float = 0.0
  xi_r_h0: float = 0.0
  xi_g_laplacian: np.ndarray | None = None
  xi_gr_laplacian: np.ndarray | None = None
  div_impl: np.ndarray | None = None
  time_step: float | None = None
  implicit_weight: float | None = None

  @classmethod
  def zeros(cls, layout: triangular.TriangularLayout) -> ImplicitOperatorState:
    """Uninitialized state with operators of the explicit scheme."""
    n = layout.n_degrees
    return cls(
        layout=layout,
        xi_g_laplacian=np.zeros(n),
        xi_gr_laplacian=np.zeros(n),
        div_impl=np.ones(n),
    )

  @property
  def initialized(self) -> bool:
    return self.time_step is not None


def _check_parameters(
    time_step: float,
    implicit_weight: float,
    layer_thickness: float,
    gravity: float,
    radius: float,
):
  if not 0 <= implicit_weight <= 1:
    raise errors.InvalidParameterError(
        f'`implicit_weight` must be in [0, 1]; got {implicit_weight}.'
    )
  if not time_step >= 0:
    raise errors.InvalidParameterError(
        f'`time_step` must be non-negative; got {time_step}.'
    )
  for name, value in [
      ('layer_thickness', layer_thickness),
      ('gravity', gravity),
      ('radius', radius),
  ]:
    if not (value > 0 and np.isfinite(value)):
      raise errors.InvalidParameterError(
          f'`{name}` must be positive; got {value}.'
      )


def initialize_implicit(
    time_step: float,
    implicit_weight: float,
    layer_thickness: float,
    gravity: float,
    radius: float,
    eigenvalues: spherical_harmonic.EigenvalueTable,
    state: ImplicitOperatorState,
) -> None:
  """Recomputes the operators of `state` in place.

  Must be called again whenever the time step or the implicit weight change.
  Nothing is written to `state` if any check fails.

  Args:
    time_step: time step `Δt`.
    implicit_weight: `α` in [0, 1].
    layer_thickness: mean layer thickness `H₀`.
    gravity: gravitational acceleration `g`.
    radius: radius `R` of the sphere.
    eigenvalues: Laplacian eigenvalues covering every degree of
      `state.layout`.
    state: the operators to overwrite.

  Raises:
    InvalidParameterError: if a parameter is out of range.
    ShapeMismatchError: if `eigenvalues` has fewer degrees than the layout.
    DegenerateOperatorError: if `1 - ξ H₀ ξ g λₗ` vanishes for some degree.
  """
  _check_parameters(time_step, implicit_weight, layer_thickness, gravity, radius)
  eigenvalues.check(state.layout)
  laplacian = eigenvalues.values[: state.layout.n_degrees]

  xi = implicit_weight * time_step
  xi_h0 = xi * layer_thickness
  xi_r_h0 = xi_h0 * radius
  xi_g_laplacian = xi * gravity * laplacian
  xi_gr_laplacian = xi * gravity * radius * laplacian
  denominator = 1 - xi_h0 * xi_g_laplacian
  with np.errstate(divide='ignore', over='ignore', invalid='ignore'):
    div_impl = 1 / denominator
  degenerate = (denominator == 0) | ~np.isfinite(div_impl)
  if degenerate.any():
    l = int(np.flatnonzero(degenerate)[0])
    raise errors.DegenerateOperatorError(
        f'implicit operator is singular at degree l = {l}: '
        f'1 - ξH₀·ξg∇² = {denominator[l]} for time_step = {time_step}, '
        f'implicit_weight = {implicit_weight}, '
        f'layer_thickness = {layer_thickness}'
    )

  state.xi_h0 = xi_h0
  state.xi_r_h0 = xi_r_h0
  state.xi_g_laplacian = xi_g_laplacian
  state.xi_gr_laplacian = xi_gr_laplacian
  state.div_impl = div_impl
  state.time_step = time_step
  state.implicit_weight = implicit_weight
  logging.debug(
      'initialized implicit operators: time_step=%s implicit_weight=%s',
      time_step,
      implicit_weight,
  )


@jax.named_call
def apply_correction(
    divergence_tendency: Array,
    pressure_tendency: Array,
    divergence_now: Array,
    divergence_prev: Array,
    pressure_now: Array,
    pressure_prev: Array,
    state: ImplicitOperatorState,
) -> tuple[jax.Array, jax.Array]:
  """Applies the semi-implicit correction to explicit tendencies.

  Every coefficient `(l, m)` of every level is corrected independently:

    G_D = ∂D/∂t - ξgR∇² (η_now - η_prev)
    G_η = ∂η/∂t - ξRH₀ (D_now - D_prev)
    δD  = (G_D - ξg∇² G_η) div_impl
    δη  = G_η - ξH₀ δD

  Args:
    divergence_tendency: explicit tendency of divergence.
    pressure_tendency: explicit tendency of the interface displacement.
    divergence_now: divergence at the current time.
    divergence_prev: divergence at the previous time.
    pressure_now: interface displacement at the current time.
    pressure_prev: interface displacement at the previous time.
    state: operators from `initialize_implicit`.

  Returns:
    Corrected tendencies `(δD, δη)` with the broadcast shape of the inputs.

  Raises:
    ValueError: if `state` was never initialized.
    ShapeMismatchError: if the inputs are not in `state.layout` or their
      leading dimensions do not broadcast.
  """
  if not state.initialized:
    raise ValueError(
        'implicit operators are not initialized; call `initialize_implicit`'
    )
  fields = dict(
      divergence_tendency=divergence_tendency,
      pressure_tendency=pressure_tendency,
      divergence_now=divergence_now,
      divergence_prev=divergence_prev,
      pressure_now=pressure_now,
      pressure_prev=pressure_prev,
  )
  for name, x in fields.items():
    state.layout.check(x, name)
  try:
    np.broadcast_shapes(*(np.shape(x) for x in fields.values()))
  except ValueError as e:
    shapes = {name: np.shape(x) for name, x in fields.items()}
    raise errors.ShapeMismatchError(
        f'leading dimensions do not broadcast: {shapes}'
    ) from e

  d_t, eta_t, d_now, d_prev, eta_now, eta_prev = (
      jnp.asarray(x) for x in fields.values()
  )
  # integer inputs are promoted to a floating type.
  real_dtype = np.finfo(jnp.result_type(*fields.values(), jnp.float32)).dtype
  degrees = state.layout.degrees
  xi_g_laplacian = state.xi_g_laplacian[degrees].astype(real_dtype)
  xi_gr_laplacian = state.xi_gr_laplacian[degrees].astype(real_dtype)
  div_impl = state.div_impl[degrees].astype(real_dtype)

  g_div = d_t - xi_gr_laplacian * (eta_now - eta_prev)
  g_eta = eta_t - state.xi_r_h0 * (d_now - d_prev)
  delta_div = (g_div - xi_g_laplacian * g_eta) * div_impl
  delta_eta = g_eta - state.xi_h0 * delta_div
  return delta_div, delta_eta

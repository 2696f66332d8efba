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

"""Fourier transforms along latitude rings of varying length."""

from spectral_dycore import grids
from spectral_dycore import typing

import jax
import jax.numpy as jnp
import numpy as np


Array = typing.Array


def wavenumbers_on_ring(nlon: int, n_orders: int) -> int:
  """Number of wavenumbers `m = 0, 1, ...` a ring of `nlon` points holds.

  Only wavenumbers with `2m < nlon` are kept. The Nyquist wavenumber of an
  even ring cannot distinguish cos from sin and is dropped.

  Args:
    nlon: number of equally spaced points on the ring.
    n_orders: number of wavenumbers requested.

  Returns:
    `min(n_orders, (nlon - 1) // 2 + 1)`.
  """
  return min(n_orders, (nlon - 1) // 2 + 1)


def _phase(offsets: np.ndarray, k: int, sign: int, dtype) -> np.ndarray:
  return np.exp(sign * 1j * np.outer(offsets, np.arange(k))).astype(dtype)


@jax.named_call
def rfft_rings(
    x: Array, topology: grids.GridTopology, n_orders: int
) -> jax.Array:
  """Fourier coefficients of every ring of a nodal field.

  Args:
    x: nodal field of shape `(..., topology.npoints)`.
    topology: the grid `x` lives on.
    n_orders: number of wavenumbers `m = 0, ..., n_orders - 1` to return.

  Returns:
    Complex array `g` of shape `(..., topology.nlat, n_orders)` with

      g[..., j, m] = 1/nlonⱼ Σᵢ x[..., j, i] exp(-i m λⱼᵢ)

    where λⱼᵢ are the longitudes of ring j. Wavenumbers that ring j cannot
    represent are zero.
  """
  x = jnp.asarray(x)
  dtype = jnp.result_type(x.dtype, np.complex64)
  out = jnp.zeros(x.shape[:-1] + (topology.nlat, n_orders), dtype=dtype)
  for group in topology.ring_groups:
    k = wavenumbers_on_ring(group.nlon, n_orders)
    coeffs = jnp.fft.rfft(x[..., group.points], axis=-1)[..., :k]
    phase = _phase(topology.lon_offsets[group.rings], k, -1, dtype)
    out = out.at[..., group.rings, :k].set(coeffs * phase / group.nlon)
  return out


@jax.named_call
def irfft_rings(g: Array, topology: grids.GridTopology) -> jax.Array:
  """Synthesizes a nodal field from the Fourier coefficients of its rings.

  The inverse of `rfft_rings` for wavenumbers each ring can represent:

    x[..., j, i] = g[..., j, 0] + 2 Re Σₘ g[..., j, m] exp(i m λⱼᵢ)

  Wavenumbers beyond what a ring of `nlon` points holds are dropped.

  Args:
    g: complex array of shape `(..., topology.nlat, n_orders)`.
    topology: the grid to synthesize on.

  Returns:
    Real array of shape `(..., topology.npoints)`.
  """
  g = jnp.asarray(g)
  n_orders = g.shape[-1]
  out = jnp.zeros(g.shape[:-2] + (topology.npoints,), dtype=g.real.dtype)
  for group in topology.ring_groups:
    k = wavenumbers_on_ring(group.nlon, n_orders)
    phase = _phase(topology.lon_offsets[group.rings], k, +1, g.dtype)
    coeffs = g[..., group.rings, :k] * phase * group.nlon
    padding = [(0, 0)] * (coeffs.ndim - 1) + [(0, group.nlon // 2 + 1 - k)]
    coeffs = jnp.pad(coeffs, padding)
    values = jnp.fft.irfft(coeffs, n=group.nlon, axis=-1)
    out = out.at[..., group.points].set(values)
  return out

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

"""Spherical harmonic transforms on latitude-ring grids, and the Laplacian."""

from __future__ import annotations

import dataclasses
import functools
from typing import Any

from absl import logging
from spectral_dycore import errors
from spectral_dycore import fourier
from spectral_dycore import grids
from spectral_dycore import legendre_table
from spectral_dycore import triangular
from spectral_dycore import typing
import jax
import jax.numpy as jnp
import numpy as np


Array = typing.Array
GridField = typing.GridField
SpectralField = typing.SpectralField


# All `einsum`s should be done at highest available precision.
einsum = functools.partial(jnp.einsum, precision=jax.lax.Precision.HIGHEST)


@dataclasses.dataclass(frozen=True, eq=False)
class EigenvalueTable:
  """Eigenvalues `λₗ = -l(l + 1) / R²` of the Laplacian on a sphere.

  Attributes:
    values: eigenvalue of every degree `l = 0, 1, ...`.
    radius: radius `R` of the sphere.
  """

  values: np.ndarray
  radius: float = 1.0

  def __post_init__(self):
    values = np.asarray(self.values, dtype=np.float64)
    if values.ndim != 1:
      raise errors.ShapeMismatchError(
          f'eigenvalues must be a vector; got shape {values.shape}'
      )
    object.__setattr__(self, 'values', values)

  @classmethod
  def from_degrees(cls, n_degrees: int, radius: float = 1.0) -> EigenvalueTable:
    if radius <= 0:
      raise errors.InvalidParameterError(
          f'`radius` must be positive; got {radius}.'
      )
    l = np.arange(n_degrees)
    return cls(-l * (l + 1) / radius**2, radius)

  @property
  def n_degrees(self) -> int:
    return len(self.values)

  def check(self, layout: triangular.TriangularLayout) -> None:
    """Raises `ShapeMismatchError` if some degree of `layout` is missing."""
    if self.n_degrees < layout.n_degrees:
      raise errors.ShapeMismatchError(
          f'eigenvalue table covers {self.n_degrees} degrees, layout stores '
          f'{layout.n_degrees}'
      )

  def for_layout(self, layout: triangular.TriangularLayout) -> np.ndarray:
    """Eigenvalue of every coefficient of `layout`."""
    self.check(layout)
    return self.values[layout.degrees]

  @functools.cached_property
  def inverse_values(self) -> np.ndarray:
    with np.errstate(divide='ignore', invalid='ignore'):
      inverse = 1 / self.values
    inverse[self.values == 0] = 0
    assert not np.isnan(inverse).any()
    return inverse

  @jax.named_call
  def laplacian(
      self, x: Array, layout: triangular.TriangularLayout
  ) -> jnp.ndarray:
    """Computes `∇²(x)` in the spectral basis."""
    layout.check(x)
    return x * self.for_layout(layout)

  @jax.named_call
  def inverse_laplacian(
      self, x: Array, layout: triangular.TriangularLayout
  ) -> jnp.ndarray:
    """Computes `(∇²)⁻¹(x)`; the mean (l = 0) maps to zero."""
    layout.check(x)
    self.check(layout)
    return x * self.inverse_values[layout.degrees]


@dataclasses.dataclass(frozen=True, eq=False)
class SpectralTransform:
  """Transforms between nodal values on a ring grid and spherical harmonics.

  A real field on the sphere is represented by the complex coefficients

    f(λ, φ) = Σₗ aₗ₀ P̄ₗ₀(sin φ) + 2 Re Σₗ Σₘ₌₁ aₗₘ P̄ₗₘ(sin φ) exp(i m λ)

  where `P̄ₗₘ` are the associated Legendre functions with unit L² norm on
  [-1, 1]. Coefficients are stored in the flat triangular `layout`, nodal
  values ring by ring as described by `topology`.

  The transform is exact (up to rounding) for fields inside the truncation
  if the grid has enough rings for its quadrature and every ring has more
  than `2 mmax` points. Otherwise it is an approximation.

  Attributes:
    topology: the ring grid of nodal fields.
    max_degree: the maximum total wavenumber `lmax`.
    max_order: the maximum longitudinal wavenumber `mmax`, defaults to
      `max_degree`.
    radius: radius of the sphere.
    dtype: real floating point type of nodal values. Spectral coefficients
      have the matching complex type.
    legendre_strategy: either 'precompute' or 'recompute', see
      `legendre_table.LEGENDRE_STRATEGIES`.
  """

  topology: grids.GridTopology
  max_degree: int
  max_order: int | None = None
  radius: float = 1.0
  dtype: Any = np.float32
  legendre_strategy: str = 'precompute'

  def __post_init__(self):
    if self.max_order is None:
      object.__setattr__(self, 'max_order', self.max_degree)
    object.__setattr__(self, 'dtype', np.dtype(self.dtype))
    if self.legendre_strategy not in legendre_table.LEGENDRE_STRATEGIES:
      raise errors.InvalidParameterError(
          f'Unknown Legendre strategy: {self.legendre_strategy}; available '
          f'strategies are {list(legendre_table.LEGENDRE_STRATEGIES)}'
      )
    if self.radius <= 0:
      raise errors.InvalidParameterError(
          f'`radius` must be positive; got {self.radius}.'
      )
    # validates max_degree and max_order.
    _ = self.layout
    limit = grids.get_truncation(self.topology.nlat_half, dealiasing=1)
    if self.max_degree > limit:
      raise errors.InvalidParameterError(
          f'truncation {self.max_degree} exceeds {limit}, the largest '
          f'degree {self.topology.nlat} rings can hold'
      )
    resolvable = (self.topology.max_nlon - 1) // 2
    if self.max_order > resolvable:
      logging.warning(
          'max_order = %d but the longest ring of the %s grid resolves only '
          'm <= %d; higher orders are dropped',
          self.max_order,
          self.topology.family,
          resolvable,
      )

  @classmethod
  def construct(
      cls,
      truncation: int,
      grid: str = 'full_gaussian',
      dealiasing: float = 2,
      **kwargs,
  ) -> SpectralTransform:
    """Constructs a transform with a grid sized for `truncation`.

    Args:
      truncation: the maximum degree `lmax` (and order `mmax`).
      grid: name of the grid family, see `grids.GRID_FAMILIES`.
      dealiasing: 2 for quadratic, 3 for cubic grids, see
        `grids.get_nlat_half`.
      **kwargs: passed on to the `SpectralTransform` constructor.

    Returns:
      Constructed SpectralTransform object.
    """
    nlat_half = grids.get_nlat_half(truncation, dealiasing, grid)
    topology = grids.get_topology(grid, nlat_half)
    return cls(topology, truncation, **kwargs)

  # The standard quadratic Gaussian grids have `4 nlat_half` longitudes and
  # `2 nlat_half` latitudes: T31 -> 96 x 48, T63 -> 192 x 96, T127 -> 384 x 192.

  @classmethod
  def T31(cls, **kwargs) -> SpectralTransform:
    return cls.construct(truncation=31, **kwargs)

  @classmethod
  def T63(cls, **kwargs) -> SpectralTransform:
    return cls.construct(truncation=63, **kwargs)

  @classmethod
  def T127(cls, **kwargs) -> SpectralTransform:
    return cls.construct(truncation=127, **kwargs)

  @functools.cached_property
  def layout(self) -> triangular.TriangularLayout:
    return triangular.TriangularLayout(self.max_degree, self.max_order)

  @property
  def modal_dtype(self) -> np.dtype:
    return np.result_type(self.dtype, np.complex64)

  @functools.cached_property
  def _rings(self) -> np.ndarray:
    """Rings the Legendre functions are tabulated on."""
    if self.topology.symmetric:
      north, _ = self.topology.hemisphere_pairs()
      return north
    return np.arange(self.topology.nlat)

  @functools.cached_property
  def legendre(self) -> legendre_table.LegendreTable:
    return legendre_table.get_legendre_table(
        self.legendre_strategy,
        self.layout,
        self.topology.sin_latitudes[self._rings],
        self.dtype,
    )

  @functools.cached_property
  def eigenvalues(self) -> EigenvalueTable:
    return EigenvalueTable.from_degrees(self.layout.n_degrees, self.radius)

  @functools.cached_property
  def _weights(self) -> np.ndarray:
    return self.topology.weights[self._rings].astype(self.dtype)

  @functools.cached_property
  def _order_matrices(self) -> tuple[np.ndarray, np.ndarray]:
    """One-hot `(size, n_orders)` matrices summing coefficients by order.

    Returns:
      The matrices restricted to coefficients with even and odd `l + m`.
    """
    one_hot = np.eye(self.layout.n_orders, dtype=self.dtype)[self.layout.orders]
    even = (self.layout.parity == 0)[:, np.newaxis]
    return one_hot * even, one_hot * ~even

  def _fold(self, g: jax.Array) -> jax.Array:
    """Spreads ring Fourier coefficients over the coefficients of `layout`.

    On symmetric grids the rings of both hemispheres are combined. As
    `P̄ₗₘ(-z) = (-1)ˡ⁺ᵐ P̄ₗₘ(z)`, the northern ring `N` and its mirror `S`
    contribute `N + S` to harmonics with even `l + m` and `N - S` to the
    others.

    Args:
      g: ring Fourier coefficients of shape `(..., nlat, n_orders)`.

    Returns:
      Array of shape `(..., len(_rings), layout.size)`.
    """
    orders = self.layout.orders
    if not self.topology.symmetric:
      return g[..., orders]
    north, south = self.topology.hemisphere_pairs()
    has_south = (south >= 0)[:, np.newaxis]
    g_north = g[..., north, :]
    g_south = jnp.where(has_south, g[..., np.maximum(south, 0), :], 0)
    even = (g_north + g_south)[..., orders]
    odd = (g_north - g_south)[..., orders]
    return jnp.where(self.layout.parity == 0, even, odd)

  def _unfold(self, even: jax.Array, odd: jax.Array) -> jax.Array:
    """Inverse of `_fold` for Legendre sums split by parity."""
    if not self.topology.symmetric:
      return even + odd
    north, south = self.topology.hemisphere_pairs()
    has_south = south >= 0
    shape = even.shape[:-2] + (self.topology.nlat, self.layout.n_orders)
    g = jnp.zeros(shape, even.dtype)
    g = g.at[..., north, :].set(even + odd)
    g = g.at[..., south[has_south], :].set((even - odd)[..., has_south, :])
    return g

  @jax.named_call
  def forward(self, x: GridField) -> SpectralField:
    """Maps the nodal field `x` to spherical harmonic coefficients.

    Args:
      x: real array of shape `(..., topology.npoints)`.

    Returns:
      Complex array of shape `(..., layout.size)`. Coefficients outside the
      truncation, including the guard row, are exactly zero.
    """
    self.topology.check(x)
    x = jnp.asarray(x, self.dtype)
    g = fourier.rfft_rings(x, self.topology, self.layout.n_orders)
    g = self._fold(g)
    coeffs = jnp.zeros(x.shape[:-1] + (self.layout.size,), self.modal_dtype)
    # blocks come in ring order, so sums are reproducible for both strategies.
    for rings, p in self.legendre.blocks():
      weighted = self._weights[rings, np.newaxis] * p
      coeffs = coeffs + einsum('jc,...jc->...c', weighted, g[..., rings, :])
    return jnp.where(self.layout.mask, coeffs, jnp.zeros((), coeffs.dtype))

  @jax.named_call
  def inverse(self, x: SpectralField) -> GridField:
    """Maps spherical harmonic coefficients `x` to nodal values.

    Args:
      x: complex array of shape `(..., layout.size)`.

    Returns:
      Real array of shape `(..., topology.npoints)`.
    """
    self.layout.check(x)
    x = jnp.asarray(x, self.modal_dtype)
    even_orders, odd_orders = self._order_matrices
    even_parts = []
    odd_parts = []
    for _, p in self.legendre.blocks():
      even_parts.append(einsum('jc,...c,cm->...jm', p, x, even_orders))
      odd_parts.append(einsum('jc,...c,cm->...jm', p, x, odd_orders))
    even = jnp.concatenate(even_parts, axis=-2)
    odd = jnp.concatenate(odd_parts, axis=-2)
    return fourier.irfft_rings(self._unfold(even, odd), self.topology)

  @jax.named_call
  def truncate(
      self,
      x: Array,
      max_degree: int | None = None,
      max_order: int | None = None,
  ) -> jax.Array:
    """Zeros all coefficients with `l > max_degree` or `m > max_order`.

    Args:
      x: spectral field of shape `(..., layout.size)`.
      max_degree: largest retained degree, defaults to `self.max_degree`.
      max_order: largest retained order, defaults to `self.max_order`.

    Returns:
      The truncated field. The guard row is always zero.
    """
    self.layout.check(x)
    if max_degree is None:
      max_degree = self.max_degree
    if max_order is None:
      max_order = self.max_order
    if max_degree < 0 or max_order < 0:
      raise errors.InvalidParameterError(
          f'truncation must be non-negative; got max_degree = {max_degree} '
          f'and max_order = {max_order}.'
      )
    mask = self.layout.truncation_mask(
        min(max_degree, self.max_degree), max_order
    )
    x = jnp.asarray(x)
    return jnp.where(mask, x, jnp.zeros((), x.dtype))

  def resize(
      self, x: Array, target: triangular.TriangularLayout
  ) -> jax.Array:
    """Copies `x` into the `target` layout, truncating or zero padding."""
    return triangular.resize(x, self.layout, target)

  def laplacian(self, x: Array) -> jnp.ndarray:
    """Computes `∇²(x)` in the spectral basis."""
    return self.eigenvalues.laplacian(x, self.layout)

  def inverse_laplacian(self, x: Array) -> jnp.ndarray:
    """Computes `(∇²)⁻¹(x)` in the spectral basis."""
    return self.eigenvalues.inverse_laplacian(x, self.layout)

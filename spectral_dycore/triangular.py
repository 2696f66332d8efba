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

"""Flat storage for triangularly truncated spherical harmonic coefficients."""

from __future__ import annotations

import dataclasses
import functools

from spectral_dycore import errors
from spectral_dycore import typing
import jax.numpy as jnp
import numpy as np


Array = typing.Array


@dataclasses.dataclass(frozen=True)
class TriangularLayout:
  """Index mapping between `(l, m)` pairs and a flat coefficient buffer.

  Coefficients are stored order-major: all degrees of order `m = 0` first,
  then all degrees of order `m = 1`, and so on. The run for order `m` starts
  at `offsets[m]` and holds the degrees `l = m, m + 1, ..., n_degrees - 1`.
  Entries with `m > l` have no storage at all.

  The last `guard_rows` degrees (`l > max_degree`) are kept so that
  operators coupling neighbouring degrees have somewhere to write; every
  operation that may populate them must zero them again.

  Attributes:
    max_degree: the maximum retained total wavenumber `lmax`.
    max_order: the maximum retained longitudinal wavenumber `mmax`. Defaults
      to `max_degree`. Must satisfy `max_order <= max_degree`.
    guard_rows: number of additional degrees stored above `max_degree`.
  """

  max_degree: int
  max_order: int | None = None
  guard_rows: int = 1

  def __post_init__(self):
    if self.max_order is None:
      object.__setattr__(self, 'max_order', self.max_degree)
    if self.max_degree < 0:
      raise errors.InvalidParameterError(
          f'`max_degree` must be non-negative; got {self.max_degree}.'
      )
    if not 0 <= self.max_order <= self.max_degree:
      raise errors.InvalidParameterError(
          'Expected 0 <= max_order <= max_degree; got '
          f'max_order = {self.max_order} and max_degree = {self.max_degree}.'
      )
    if self.guard_rows < 0:
      raise errors.InvalidParameterError(
          f'`guard_rows` must be non-negative; got {self.guard_rows}.'
      )

  @property
  def n_degrees(self) -> int:
    """Number of stored degrees, including the guard rows."""
    return self.max_degree + 1 + self.guard_rows

  @property
  def n_orders(self) -> int:
    return self.max_order + 1

  @functools.cached_property
  def offsets(self) -> np.ndarray:
    """Start of the run of each order; `offsets[-1]` is the buffer size."""
    lengths = self.n_degrees - np.arange(self.n_orders)
    return np.concatenate([[0], np.cumsum(lengths)])

  @property
  def size(self) -> int:
    return int(self.offsets[-1])

  @functools.cached_property
  def degrees(self) -> np.ndarray:
    """Total wavenumber `l` of every stored coefficient."""
    return np.concatenate(
        [np.arange(m, self.n_degrees) for m in range(self.n_orders)]
    )

  @functools.cached_property
  def orders(self) -> np.ndarray:
    """Longitudinal wavenumber `m` of every stored coefficient."""
    lengths = np.diff(self.offsets)
    return np.repeat(np.arange(self.n_orders), lengths)

  @functools.cached_property
  def parity(self) -> np.ndarray:
    """`(l + m) % 2`; zero for harmonics symmetric about the equator."""
    return (self.degrees + self.orders) % 2

  @functools.cached_property
  def mask(self) -> np.ndarray:
    """Coefficients inside the truncation, i.e. outside the guard rows."""
    return self.truncation_mask()

  def truncation_mask(
      self, max_degree: int | None = None, max_order: int | None = None
  ) -> np.ndarray:
    """Returns `l <= max_degree & m <= max_order` for stored coefficients."""
    if max_degree is None:
      max_degree = self.max_degree
    if max_order is None:
      max_order = self.max_order
    return (self.degrees <= max_degree) & (self.orders <= max_order)

  def order_slice(self, m: int) -> slice:
    """Slice of the flat buffer holding all degrees of order `m`."""
    if not 0 <= m < self.n_orders:
      raise IndexError(f'order m = {m} outside of [0, {self.max_order}]')
    return slice(int(self.offsets[m]), int(self.offsets[m + 1]))

  def index(self, l: int, m: int) -> int:
    """Flat index of the coefficient with degree `l` and order `m`."""
    if not 0 <= m <= l < self.n_degrees or m > self.max_order:
      raise IndexError(
          f'(l, m) = ({l}, {m}) is outside of the stored triangle with '
          f'n_degrees = {self.n_degrees} and max_order = {self.max_order}'
      )
    return int(self.offsets[m]) + l - m

  def zeros(
      self, shape: tuple[int, ...] = (), dtype=np.complex128
  ) -> np.ndarray:
    """Returns a zero spectral field with leading dimensions `shape`."""
    return np.zeros(tuple(shape) + (self.size,), dtype=dtype)

  def check(self, x: Array, name: str = 'spectral field') -> None:
    """Raises `ShapeMismatchError` if `x` is not stored in this layout."""
    shape = np.shape(x)
    if not shape or shape[-1] != self.size:
      raise errors.ShapeMismatchError(
          f'{name} has shape {shape}, expected trailing dimension '
          f'{self.size} for {self}'
      )

  def to_dense(self, x: Array) -> jnp.ndarray:
    """Expands `x` into a `(..., n_degrees, n_orders)` lower triangle."""
    self.check(x)
    dense = jnp.zeros(
        x.shape[:-1] + (self.n_degrees, self.n_orders), dtype=x.dtype
    )
    return dense.at[..., self.degrees, self.orders].set(x)

  def from_dense(self, dense: Array) -> jnp.ndarray:
    """Gathers the stored triangle out of a dense `(l, m)` matrix."""
    expected = (self.n_degrees, self.n_orders)
    if tuple(np.shape(dense)[-2:]) != expected:
      raise errors.ShapeMismatchError(
          f'dense field has shape {np.shape(dense)}, expected trailing '
          f'dimensions {expected}'
      )
    return jnp.asarray(dense)[..., self.degrees, self.orders]


def resize(
    x: Array, source: TriangularLayout, target: TriangularLayout
) -> jnp.ndarray:
  """Copies coefficients of `x` from `source` into the `target` layout.

  Coefficients that exist in both truncations are copied, all others are set
  to zero. This both truncates (to a smaller target) and pads (to a larger
  target). Guard rows of the target are always zero.

  Args:
    x: spectral field stored in `source`.
    source: layout of `x`.
    target: layout of the returned field.

  Returns:
    Array of shape `x.shape[:-1] + (target.size,)`.
  """
  source.check(x)
  l, m = target.degrees, target.orders
  shared = (
      (l <= source.max_degree)
      & (m <= source.max_order)
      & (l <= target.max_degree)
  )
  # clip the gather index for coefficients that are masked out anyway.
  m_clipped = np.minimum(m, source.max_order)
  source_index = np.where(shared, source.offsets[m_clipped] + l - m, 0)
  x = jnp.asarray(x)
  return jnp.where(shared, x[..., source_index], jnp.zeros((), x.dtype))

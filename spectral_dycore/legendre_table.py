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

"""Tables of associated Legendre functions evaluated on latitude rings.

Two strategies share one lookup contract. `PrecomputedLegendre` materializes
the whole `(rings, coefficients)` table once and keeps it for the lifetime of
the transform, which is fast but needs memory quadratic in the truncation.
`RecomputedLegendre` evaluates the row of a single ring whenever it is
requested, trading time for memory. Both evaluate the same recurrence in
float64 before casting to the working precision.
"""

from __future__ import annotations

import dataclasses
import functools
from typing import Iterator

from absl import logging
from spectral_dycore import associated_legendre
from spectral_dycore import errors
from spectral_dycore import triangular
import numpy as np


@dataclasses.dataclass(frozen=True, eq=False)
class LegendreTable:
  """Base class for associated Legendre function tables.

  Attributes:
    layout: triangular layout of the tabulated `(l, m)` pairs.
    sin_latitudes: sin(latitude) of the tabulated rings.
    dtype: real floating point type of the returned values.
  """

  layout: triangular.TriangularLayout
  sin_latitudes: np.ndarray
  dtype: np.dtype = np.dtype(np.float64)

  def __post_init__(self):
    object.__setattr__(
        self, 'sin_latitudes', np.atleast_1d(np.asarray(self.sin_latitudes))
    )
    object.__setattr__(self, 'dtype', np.dtype(self.dtype))

  @property
  def nrings(self) -> int:
    return len(self.sin_latitudes)

  @property
  def nbytes(self) -> int:
    """Memory held by materialized values."""
    raise NotImplementedError

  def ring(self, j: int) -> np.ndarray:
    """Values `cₗₘ Pᵐₗ(sin φⱼ)` of ring `j`, shape `(layout.size,)`."""
    raise NotImplementedError

  def blocks(self) -> Iterator[tuple[slice, np.ndarray]]:
    """Yields `(rings, values)` covering every ring exactly once, in order.

    `values` has shape `(len(rings), layout.size)`.
    """
    raise NotImplementedError

  def _evaluate(self, sin_latitudes: np.ndarray) -> np.ndarray:
    values = associated_legendre.evaluate_triangle(self.layout, sin_latitudes)
    return values.astype(self.dtype)


class PrecomputedLegendre(LegendreTable):
  """Table materialized once for all rings."""

  @functools.cached_property
  def values(self) -> np.ndarray:
    logging.info(
        'precomputing Legendre table: %d rings x %d coefficients (%s)',
        self.nrings,
        self.layout.size,
        self.dtype,
    )
    return self._evaluate(self.sin_latitudes)

  @property
  def nbytes(self) -> int:
    return self.values.nbytes

  def ring(self, j: int) -> np.ndarray:
    return self.values[j]

  def blocks(self) -> Iterator[tuple[slice, np.ndarray]]:
    yield slice(0, self.nrings), self.values


class RecomputedLegendre(LegendreTable):
  """Table evaluated one ring at a time, on every request."""

  @property
  def nbytes(self) -> int:
    return 0

  def ring(self, j: int) -> np.ndarray:
    if not 0 <= j < self.nrings:
      raise IndexError(f'ring {j} outside of [0, {self.nrings})')
    return self._evaluate(self.sin_latitudes[j : j + 1])[0]

  def blocks(self) -> Iterator[tuple[slice, np.ndarray]]:
    for j in range(self.nrings):
      yield slice(j, j + 1), self.ring(j)[np.newaxis]


LEGENDRE_STRATEGIES = dict(
    precompute=PrecomputedLegendre,
    recompute=RecomputedLegendre,
)


def get_legendre_table(
    strategy: str,
    layout: triangular.TriangularLayout,
    sin_latitudes: np.ndarray,
    dtype=np.float64,
) -> LegendreTable:
  """Constructs a Legendre table with the given lifecycle `strategy`."""
  table_cls = LEGENDRE_STRATEGIES.get(strategy)
  if table_cls is None:
    raise errors.InvalidParameterError(
        f'Unknown Legendre strategy: {strategy}; '
        f'available strategies are {list(LEGENDRE_STRATEGIES)}'
    )
  return table_cls(layout, sin_latitudes, dtype)

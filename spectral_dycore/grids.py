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

"""Latitude-ring grids on the sphere.

Every grid used by the spectral transform is a set of latitude rings. Each
ring has its own number of equally spaced longitude points, so "full" grids
(every ring equally long) and "reduced" grids (rings shrinking towards the
poles) are described by the same data: a `GridTopology`.

Nodal fields are flat arrays with all points of the northernmost ring first,
then the next ring to the south, and so on. Within a ring, points run
eastwards starting at the ring's longitude offset.
"""

from __future__ import annotations

import dataclasses
import functools
import math
from typing import Callable

from spectral_dycore import associated_legendre
from spectral_dycore import errors
import numpy as np
import scipy.fft


@dataclasses.dataclass(frozen=True)
class RingGroup:
  """Rings sharing the same number of longitude points.

  Attributes:
    nlon: number of longitude points on each ring of the group.
    rings: indices of the rings in the group, north to south.
    points: `(len(rings), nlon)` indices of the group's points in a flat
      nodal field.
  """

  nlon: int
  rings: np.ndarray
  points: np.ndarray


@dataclasses.dataclass(frozen=True, eq=False)
class GridTopology:
  """Descriptor of a latitude-ring grid.

  Attributes:
    family: name of the grid family, see `GRID_FAMILIES`.
    nlat_half: number of rings per hemisphere, including the equator ring if
      there is one.
    sin_latitudes: sin(latitude) of every ring, north to south.
    nlons: number of longitude points on every ring.
    weights: quadrature weights in sin(latitude) of every ring. These sum to
      2, the length of the interval [-1, 1].
    lon_offsets: longitude of the first point of every ring, in radians.
    symmetric: whether the rings are mirror images about the equator. If set,
      transforms only evaluate Legendre functions in the northern hemisphere.
  """

  family: str
  nlat_half: int
  sin_latitudes: np.ndarray
  nlons: np.ndarray
  weights: np.ndarray
  lon_offsets: np.ndarray
  symmetric: bool = True

  def __post_init__(self):
    for name in ('sin_latitudes', 'weights', 'lon_offsets'):
      object.__setattr__(
          self, name, np.asarray(getattr(self, name), dtype=np.float64)
      )
    object.__setattr__(self, 'nlons', np.asarray(self.nlons, dtype=int))
    shapes = {
        name: np.shape(getattr(self, name))
        for name in ('sin_latitudes', 'nlons', 'weights', 'lon_offsets')
    }
    if len(set(shapes.values())) != 1 or len(shapes['nlons']) != 1:
      raise errors.InvalidParameterError(
          f'ring descriptors must be vectors of equal length; got {shapes}'
      )
    if (self.nlons < 1).any():
      raise errors.InvalidParameterError('every ring needs at least 1 point')
    if self.symmetric and not self._is_mirrored():
      raise errors.InvalidParameterError(
          f'{self.family} rings are not symmetric about the equator'
      )

  def _is_mirrored(self) -> bool:
    return (
        np.allclose(self.sin_latitudes, -self.sin_latitudes[::-1], atol=1e-12)
        and np.array_equal(self.nlons, self.nlons[::-1])
        and np.allclose(self.weights, self.weights[::-1], atol=1e-12)
    )

  @property
  def nlat(self) -> int:
    return len(self.nlons)

  @functools.cached_property
  def ring_offsets(self) -> np.ndarray:
    """Index of the first point of every ring; the last entry is `npoints`."""
    return np.concatenate([[0], np.cumsum(self.nlons)])

  @property
  def npoints(self) -> int:
    return int(self.ring_offsets[-1])

  @property
  def latitudes(self) -> np.ndarray:
    return np.arcsin(self.sin_latitudes)

  @property
  def max_nlon(self) -> int:
    return int(self.nlons.max())

  def check(self, x, name: str = 'grid field') -> None:
    """Raises `ShapeMismatchError` if `x` is not a nodal field of this grid."""
    shape = np.shape(x)
    if not shape or shape[-1] != self.npoints:
      raise errors.ShapeMismatchError(
          f'{name} has shape {shape}, expected trailing dimension '
          f'{self.npoints} for the {self.family} grid with nlat_half = '
          f'{self.nlat_half}'
      )

  def ring_slice(self, j: int) -> slice:
    return slice(int(self.ring_offsets[j]), int(self.ring_offsets[j + 1]))

  def longitudes(self, j: int) -> np.ndarray:
    """Longitudes of the points on ring `j`, in radians."""
    nlon = self.nlons[j]
    return self.lon_offsets[j] + 2 * np.pi * np.arange(nlon) / nlon

  @functools.cached_property
  def _nodal_coordinates(self) -> tuple[np.ndarray, np.ndarray]:
    lon = np.concatenate([self.longitudes(j) for j in range(self.nlat)])
    lat = np.repeat(self.latitudes, self.nlons)
    return lon, lat

  def nodal_coordinates(self) -> tuple[np.ndarray, np.ndarray]:
    """Longitude and latitude of every grid point, in radians."""
    return self._nodal_coordinates

  def hemisphere_pairs(self) -> tuple[np.ndarray, np.ndarray]:
    """Northern rings and their southern mirror images.

    Returns:
      A pair `(north, south)` of ring indices. `north` runs from the north
      pole to the equator. `south[i]` is the mirror image of ring `north[i]`,
      or -1 for a ring on the equator.
    """
    north = np.arange((self.nlat + 1) // 2)
    south = self.nlat - 1 - north
    south = np.where(south == north, -1, south)
    return north, south

  @functools.cached_property
  def ring_groups(self) -> tuple[RingGroup, ...]:
    """Rings grouped by their number of longitude points."""
    groups = []
    for nlon in np.unique(self.nlons):
      rings = np.flatnonzero(self.nlons == nlon)
      points = self.ring_offsets[rings][:, np.newaxis] + np.arange(nlon)
      groups.append(RingGroup(int(nlon), rings, points))
    return tuple(groups)

  def with_symmetry(self, symmetric: bool) -> GridTopology:
    """Returns a copy with the `symmetric` flag replaced."""
    return dataclasses.replace(self, symmetric=symmetric)


def _mirror(north: np.ndarray, equator: bool, sign: int = 1) -> np.ndarray:
  """Extends northern ring values (pole to equator) to the whole sphere."""
  south = north[:-1] if equator else north
  return np.concatenate([north, sign * south[::-1]])


def _symmetric_topology(
    family: str,
    nlat_half: int,
    sin_latitudes: np.ndarray,
    nlons: np.ndarray,
    weights: np.ndarray,
    lon_offsets: np.ndarray,
    equator: bool,
) -> GridTopology:
  return GridTopology(
      family=family,
      nlat_half=nlat_half,
      sin_latitudes=_mirror(sin_latitudes, equator, sign=-1),
      nlons=_mirror(nlons, equator),
      weights=_mirror(weights, equator),
      lon_offsets=_mirror(lon_offsets, equator),
  )


def _gaussian_rings(nlat_half: int) -> tuple[np.ndarray, np.ndarray]:
  x, w = associated_legendre.gauss_legendre_nodes(2 * nlat_half)
  return x[::-1][:nlat_half], w[::-1][:nlat_half]


def _clenshaw_rings(nlat_half: int) -> tuple[np.ndarray, np.ndarray]:
  x, w = associated_legendre.clenshaw_nodes(2 * nlat_half - 1)
  return x[::-1][:nlat_half], w[::-1][:nlat_half]


def _octahedral_nlons(nlat_half: int) -> np.ndarray:
  return 16 + 4 * np.arange(1, nlat_half + 1)


def full_gaussian(nlat_half: int) -> GridTopology:
  """Regular grid on Gauss-Legendre latitudes with `4 nlat_half` longitudes."""
  z, w = _gaussian_rings(nlat_half)
  nlons = np.full(nlat_half, 4 * nlat_half)
  return _symmetric_topology(
      'full_gaussian', nlat_half, z, nlons, w, np.zeros(nlat_half), False
  )


def octahedral_gaussian(nlat_half: int) -> GridTopology:
  """Gauss-Legendre latitudes with `16 + 4j` points on the j-th ring."""
  z, w = _gaussian_rings(nlat_half)
  return _symmetric_topology(
      'octahedral_gaussian',
      nlat_half,
      z,
      _octahedral_nlons(nlat_half),
      w,
      np.zeros(nlat_half),
      False,
  )


def full_clenshaw(nlat_half: int) -> GridTopology:
  """Regular grid on latitudes equally spaced between (excluded) poles."""
  z, w = _clenshaw_rings(nlat_half)
  nlons = np.full(nlat_half, 4 * nlat_half)
  return _symmetric_topology(
      'full_clenshaw', nlat_half, z, nlons, w, np.zeros(nlat_half), True
  )


def octahedral_clenshaw(nlat_half: int) -> GridTopology:
  """Equally spaced latitudes with `16 + 4j` points on the j-th ring."""
  z, w = _clenshaw_rings(nlat_half)
  return _symmetric_topology(
      'octahedral_clenshaw',
      nlat_half,
      z,
      _octahedral_nlons(nlat_half),
      w,
      np.zeros(nlat_half),
      True,
  )


def _healpix_rings(nlat_half: int) -> tuple[np.ndarray, np.ndarray]:
  """sin(latitude) and points per ring of HEALPix, pole to equator."""
  nside = nlat_half // 2
  j = np.arange(1, nlat_half + 1)
  polar_cap = j < nside
  z = np.where(polar_cap, 1 - j**2 / (3 * nside**2), 4 / 3 - 2 * j / (3 * nside))
  nlons = np.where(polar_cap, 4 * j, 4 * nside)
  return z, nlons


def _healpix_offsets(nlat_half: int, nlons: np.ndarray) -> np.ndarray:
  nside = nlat_half // 2
  j = np.arange(1, nlat_half + 1)
  shifted = (j < nside) | ((j - nside) % 2 == 0)
  return np.where(shifted, np.pi / nlons, 0.0)


def _equal_area_weights(nlons: np.ndarray, npoints: int) -> np.ndarray:
  # every point covers the same area 4π / npoints; dividing a ring's share by
  # the 2π of the longitude integral leaves a weight in sin(latitude).
  return 2 * nlons / npoints


def healpix(nlat_half: int) -> GridTopology:
  """Equal-area HEALPix grid with `nside = nlat_half / 2`."""
  _check_even(nlat_half, 'healpix')
  z, nlons = _healpix_rings(nlat_half)
  npoints = 3 * nlat_half**2
  return _symmetric_topology(
      'healpix',
      nlat_half,
      z,
      nlons,
      _equal_area_weights(nlons, npoints),
      _healpix_offsets(nlat_half, nlons),
      True,
  )


def full_healpix(nlat_half: int) -> GridTopology:
  """HEALPix latitudes with `2 nlat_half` points on every ring."""
  _check_even(nlat_half, 'full_healpix')
  z, reduced_nlons = _healpix_rings(nlat_half)
  npoints = 3 * nlat_half**2
  return _symmetric_topology(
      'full_healpix',
      nlat_half,
      z,
      np.full(nlat_half, 2 * nlat_half),
      _equal_area_weights(reduced_nlons, npoints),
      np.zeros(nlat_half),
      True,
  )


def _octahealpix_rings(nlat_half: int) -> tuple[np.ndarray, np.ndarray]:
  j = np.arange(1, nlat_half + 1)
  return 1 - (j / nlat_half) ** 2, 4 * j


def octahealpix(nlat_half: int) -> GridTopology:
  """Equal-area grid with `4j` points on the j-th ring from the pole."""
  z, nlons = _octahealpix_rings(nlat_half)
  npoints = 4 * nlat_half**2
  return _symmetric_topology(
      'octahealpix',
      nlat_half,
      z,
      nlons,
      _equal_area_weights(nlons, npoints),
      np.pi / nlons,
      True,
  )


def full_octahealpix(nlat_half: int) -> GridTopology:
  """OctaHEALPix latitudes with `4 nlat_half` points on every ring."""
  z, reduced_nlons = _octahealpix_rings(nlat_half)
  npoints = 4 * nlat_half**2
  return _symmetric_topology(
      'full_octahealpix',
      nlat_half,
      z,
      np.full(nlat_half, 4 * nlat_half),
      _equal_area_weights(reduced_nlons, npoints),
      np.zeros(nlat_half),
      True,
  )


def _check_even(nlat_half: int, family: str):
  if nlat_half % 2:
    raise errors.InvalidParameterError(
        f'{family} grids need an even `nlat_half`; got {nlat_half}.'
    )


GRID_FAMILIES: dict[str, Callable[[int], GridTopology]] = dict(
    full_gaussian=full_gaussian,
    full_clenshaw=full_clenshaw,
    octahedral_gaussian=octahedral_gaussian,
    octahedral_clenshaw=octahedral_clenshaw,
    healpix=healpix,
    octahealpix=octahealpix,
    full_healpix=full_healpix,
    full_octahealpix=full_octahealpix,
)

_EVEN_NLAT_HALF = frozenset({'healpix', 'full_healpix'})


def get_topology(family: str, nlat_half: int) -> GridTopology:
  """Constructs the ring grid of `family` with `nlat_half` rings/hemisphere."""
  constructor = GRID_FAMILIES.get(family)
  if constructor is None:
    raise errors.InvalidParameterError(
        f'Unknown grid family: {family}; '
        f'available families are {list(GRID_FAMILIES)}'
    )
  if nlat_half < 1:
    raise errors.InvalidParameterError(
        f'`nlat_half` must be positive; got {nlat_half}.'
    )
  return constructor(nlat_half)


def get_nlat_half(
    truncation: int, dealiasing: float = 2, family: str = 'full_gaussian'
) -> int:
  """Number of rings per hemisphere for a spectral truncation.

  The number of longitudes on full grids is `4 nlat_half`, which is chosen
  as roughly `(dealiasing + 1) * truncation` and rounded up to a size with
  only small prime factors for fast Fourier transforms. A dealiasing of 2
  ("quadratic") avoids aliasing of quadratic terms, 3 ("cubic") of cubic
  terms.

  Args:
    truncation: the maximum degree `lmax` of the spectral representation.
    dealiasing: ratio between the number of longitudes and `truncation`,
      minus one.
    family: grid family, HEALPix grids need an even `nlat_half`.

  Returns:
    The number of latitude rings per hemisphere.
  """
  if dealiasing < 1:
    raise errors.InvalidParameterError(
        f'`dealiasing` must be at least 1; got {dealiasing}.'
    )
  if truncation < 0:
    raise errors.InvalidParameterError(
        f'`truncation` must be non-negative; got {truncation}.'
    )
  nlat_half = math.ceil(((dealiasing + 1) * truncation + 1) / 4)
  if family in _EVEN_NLAT_HALF:
    return 2 * scipy.fft.next_fast_len(math.ceil(nlat_half / 2), real=True)
  return scipy.fft.next_fast_len(nlat_half, real=True)


def get_truncation(nlat_half: int, dealiasing: float = 2) -> int:
  """Inverse of `get_nlat_half`: the truncation resolved by `nlat_half`."""
  if dealiasing < 1:
    raise errors.InvalidParameterError(
        f'`dealiasing` must be at least 1; got {dealiasing}.'
    )
  return math.floor((4 * nlat_half - 1) / (dealiasing + 1))

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

"""Analytic surface boundary conditions."""

from __future__ import annotations

import dataclasses

from spectral_dycore import shallow_water
from spectral_dycore import spherical_harmonic
from spectral_dycore import typing
import jax
import numpy as np


Array = typing.Array


@dataclasses.dataclass(frozen=True)
class Orography:
  """Surface height and the matching surface geopotential.

  Attributes:
    orography: surface height in the nodal basis.
    geopotential: surface geopotential `g h` in the spectral basis, truncated
      to the transform's truncation.
  """

  orography: Array
  geopotential: jax.Array


def zonal_ridge_orography(
    transform: spherical_harmonic.SpectralTransform,
    specs: shallow_water.ShallowWaterSpecs,
    eta0: float = 0.252,
    u0: float = 35.0,
    orography_scale: float = 1.0,
) -> Orography:
  """Zonally symmetric orography balancing the Jablonowski-Williamson jet.

  The surface geopotential is the one in geostrophic balance with the zonal
  jet of the baroclinic wave test case (Jablonowski and Williamson 2006,
  https://doi.org/10.1256/qj.06.12), a ridge along the equator with troughs
  in the midlatitudes.

  Args:
    transform: spectral transform defining grid and truncation.
    specs: physical constants, only radius, rotation and gravity are used.
    eta0: value of the vertical coordinate `η` at the reference level.
    u0: maximum speed of the zonal jet.
    orography_scale: factor applied to both orography and geopotential.

  Returns:
    The scaled orography and its surface geopotential.
  """
  _, lat = transform.topology.nodal_coordinates()
  sin_lat = np.sin(lat)
  cos_lat = np.cos(lat)
  eta_v = (1 - eta0) * np.pi / 2
  a = u0 * np.cos(eta_v) ** (3 / 2)
  jet = a * (-2 * sin_lat**6 * (cos_lat**2 + 1 / 3) + 10 / 63)
  rotation = (
      (8 / 5 * cos_lat**3 * (sin_lat**2 + 2 / 3) - np.pi / 4)
      * specs.radius
      * specs.angular_velocity
  )
  orography = a * (jet + rotation) / specs.g

  geopotential = transform.forward(orography) * specs.g
  geopotential = transform.truncate(geopotential)
  return Orography(
      orography=orography * orography_scale,
      geopotential=geopotential * orography_scale,
  )

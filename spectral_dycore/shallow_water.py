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

"""Single layer shallow water configuration and semi-implicit time stepping."""

from __future__ import annotations

import dataclasses

from absl import logging
from spectral_dycore import errors
from spectral_dycore import implicit
from spectral_dycore import spherical_harmonic
from spectral_dycore import typing
import jax
import numpy as np


Array = typing.Array

RADIUS = 6.371e6  # m
ANGULAR_VELOCITY = 7.29e-5  # 1/s
GRAVITY_ACCELERATION = 9.81  # m/s²
LAYER_THICKNESS = 8.5e3  # m

#  =============================================================================
#  Data Structures
#
#  Data classes that describe the state and parameters of the system.
#  =============================================================================


@jax.tree_util.register_pytree_node_class
@dataclasses.dataclass
class State:
  """Records the state of a system described by the shallow water equations.

  Attributes:
    vorticity: spectral coefficients of relative vorticity.
    divergence: spectral coefficients of divergence.
    pressure: spectral coefficients of the interface displacement `η`.
  """

  vorticity: Array
  divergence: Array
  pressure: Array

  def tree_flatten(self):
    return (self.vorticity, self.divergence, self.pressure), None

  @classmethod
  def tree_unflatten(cls, aux_data, children):
    del aux_data  # unused.
    return cls(*children)


@dataclasses.dataclass(frozen=True)
class ShallowWaterSpecs:
  """Records physical constants used in the shallow water equations.

  Attributes:
    radius: radius `R` of the planet.
    angular_velocity: angular velocity `Ω` of the rotating planet.
    gravity_acceleration: gravitational acceleration `g`.
    layer_thickness: mean layer thickness `H₀`.
    implicit_weight: weight `α` of the implicit terms, 0 for explicit, 1/2
      for centred and 1 for backward time stepping of gravity waves.
  """

  radius: float = RADIUS
  angular_velocity: float = ANGULAR_VELOCITY
  gravity_acceleration: float = GRAVITY_ACCELERATION
  layer_thickness: float = LAYER_THICKNESS
  implicit_weight: float = 0.5

  def __post_init__(self):
    for name in ('radius', 'gravity_acceleration', 'layer_thickness'):
      value = getattr(self, name)
      if not value > 0:
        raise errors.InvalidParameterError(
            f'`{name}` must be positive; got {value}.'
        )
    if not 0 <= self.implicit_weight <= 1:
      raise errors.InvalidParameterError(
          f'`implicit_weight` must be in [0, 1]; got {self.implicit_weight}.'
      )

  @property
  def g(self) -> float:
    """Alias for `gravity_acceleration`."""
    return self.gravity_acceleration

  @classmethod
  def nondimensional(cls, **kwargs) -> ShallowWaterSpecs:
    """Specs in units where the radius and the angular velocity are `1`."""
    radius = kwargs.pop('radius', RADIUS)
    angular_velocity = kwargs.pop('angular_velocity', ANGULAR_VELOCITY)
    time_scale = 1 / angular_velocity
    return cls(
        radius=1.0,
        angular_velocity=1.0,
        gravity_acceleration=(
            kwargs.pop('gravity_acceleration', GRAVITY_ACCELERATION)
            * time_scale**2 / radius
        ),
        layer_thickness=kwargs.pop('layer_thickness', LAYER_THICKNESS) / radius,
        **kwargs,
    )


#  =============================================================================
#  Helper Functions
#  =============================================================================


def get_coriolis(
    transform: spherical_harmonic.SpectralTransform, specs: ShallowWaterSpecs
) -> np.ndarray:
  """Returns the Coriolis parameter `2Ω sin φ` in the nodal basis."""
  _, lat = transform.topology.nodal_coordinates()
  return 2 * specs.angular_velocity * np.sin(lat)


def state_to_nodal(
    state: State, transform: spherical_harmonic.SpectralTransform
) -> State:
  """Converts a state to the nodal basis."""
  return jax.tree_util.tree_map(transform.inverse, state)


def state_to_modal(
    state: State, transform: spherical_harmonic.SpectralTransform
) -> State:
  """Converts a state to the spectral basis."""
  return jax.tree_util.tree_map(transform.forward, state)


#  =============================================================================
#  Semi-implicit correction of gravity waves
#
#  Divergence and interface displacement tendencies are corrected so that a
#  leapfrog step treats gravity waves implicitly. Vorticity is unaffected.
#  =============================================================================


@dataclasses.dataclass
class SemiImplicitShallowWater:
  """Owns the implicit operators of a shallow water model.

  The operators are rebuilt only when the time step or the physical constants
  differ from those they were last built for. Laplacian eigenvalues always use
  `specs.radius`, whatever radius `transform` was constructed with.

  Attributes:
    transform: spectral transform defining the layout.
    specs: physical constants.
    operators: implicit operators for `transform.layout`.
  """

  transform: spherical_harmonic.SpectralTransform
  specs: ShallowWaterSpecs
  operators: implicit.ImplicitOperatorState = dataclasses.field(init=False)
  _built_for: ShallowWaterSpecs | None = dataclasses.field(
      init=False, default=None, repr=False
  )

  def __post_init__(self):
    self.operators = implicit.ImplicitOperatorState.zeros(self.transform.layout)

  @property
  def eigenvalues(self) -> spherical_harmonic.EigenvalueTable:
    """Laplacian eigenvalues `-l(l+1)/R²` with `R = specs.radius`."""
    return spherical_harmonic.EigenvalueTable.from_degrees(
        self.transform.layout.n_degrees, self.specs.radius
    )

  def initialize(self, time_step: float) -> None:
    """Builds the operators for `time_step` unless they are current."""
    if self.operators.time_step == time_step and self._built_for == self.specs:
      return
    logging.debug(
        'rebuilding implicit operators for time_step=%s (was %s)',
        time_step,
        self.operators.time_step,
    )
    implicit.initialize_implicit(
        time_step,
        self.specs.implicit_weight,
        self.specs.layer_thickness,
        self.specs.g,
        self.specs.radius,
        self.eigenvalues,
        self.operators,
    )
    self._built_for = self.specs

  def correct(
      self,
      tendencies: State,
      now: State,
      previous: State,
      time_step: float,
  ) -> State:
    """Returns `tendencies` with the implicit correction applied.

    Args:
      tendencies: explicit tendencies.
      now: state at the current time.
      previous: state at the previous time.
      time_step: time step `Δt` of the leapfrog scheme.

    Returns:
      Corrected tendencies, vorticity unchanged.
    """
    self.initialize(time_step)
    divergence, pressure = implicit.apply_correction(
        tendencies.divergence,
        tendencies.pressure,
        now.divergence,
        previous.divergence,
        now.pressure,
        previous.pressure,
        self.operators,
    )
    return State(tendencies.vorticity, divergence, pressure)

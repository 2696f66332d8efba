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

"""Defines the spectral_dycore module."""

import spectral_dycore.associated_legendre
import spectral_dycore.boundaries
import spectral_dycore.errors
import spectral_dycore.fourier
import spectral_dycore.grids
import spectral_dycore.implicit
import spectral_dycore.legendre_table
import spectral_dycore.shallow_water
import spectral_dycore.spherical_harmonic
import spectral_dycore.triangular
import spectral_dycore.typing

__version__ = "1.0.0"

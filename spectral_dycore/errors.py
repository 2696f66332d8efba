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

"""Exceptions raised by spectral transforms and the implicit correction."""


class SpectralDycoreError(Exception):
  """Base class for errors raised by `spectral_dycore`."""


class ShapeMismatchError(SpectralDycoreError, ValueError):
  """A field does not match the layout of the tables it is used with."""


class InvalidParameterError(SpectralDycoreError, ValueError):
  """A configuration parameter is outside of its valid range."""


class DegenerateOperatorError(SpectralDycoreError, ArithmeticError):
  """The implicit operator `1 - ξ²H₀g∇²` is singular for some degree."""

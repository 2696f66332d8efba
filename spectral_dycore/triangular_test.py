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

"""Tests for triangular."""

from absl.testing import absltest
from absl.testing import parameterized
from spectral_dycore import errors
from spectral_dycore import triangular
from jax import config
import numpy as np

config.update('jax_enable_x64', True)


class TriangularLayoutTest(parameterized.TestCase):

  @parameterized.parameters(
      dict(max_degree=3, max_order=None, size=5 + 4 + 3 + 2),
      dict(max_degree=5, max_order=2, size=7 + 6 + 5),
      dict(max_degree=0, max_order=None, size=2),
  )
  def testSize(self, max_degree, max_order, size):
    layout = triangular.TriangularLayout(max_degree, max_order)
    self.assertEqual(layout.size, size)
    self.assertLen(layout.degrees, size)
    self.assertLen(layout.orders, size)

  def testIndexing(self):
    layout = triangular.TriangularLayout(3)
    self.assertEqual(layout.max_order, 3)
    self.assertEqual(layout.n_degrees, 5)
    # order-major: (0, 0), (1, 0), ..., (4, 0), (1, 1), ...
    self.assertEqual(layout.index(0, 0), 0)
    self.assertEqual(layout.index(4, 0), 4)
    self.assertEqual(layout.index(1, 1), 5)
    self.assertEqual(layout.index(3, 3), layout.size - 2)
    self.assertEqual(layout.order_slice(2), slice(9, 12))
    for i, (l, m) in enumerate(zip(layout.degrees, layout.orders)):
      self.assertEqual(layout.index(l, m), i)
      self.assertEqual(layout.parity[i], (l + m) % 2)

  @parameterized.parameters((1, 2), (5, 0), (4, 4), (-1, 0))
  def testIndexOutsideTriangle(self, l, m):
    layout = triangular.TriangularLayout(3, max_order=3)
    with self.assertRaises(IndexError):
      layout.index(l, m)

  def testMasks(self):
    layout = triangular.TriangularLayout(4, max_order=2)
    np.testing.assert_array_equal(layout.mask, layout.degrees <= 4)
    mask = layout.truncation_mask(max_degree=2, max_order=1)
    np.testing.assert_array_equal(
        mask, (layout.degrees <= 2) & (layout.orders <= 1)
    )

  def testDense(self):
    layout = triangular.TriangularLayout(4, max_order=3)
    rs = np.random.RandomState(0)
    x = rs.normal(size=(2, layout.size)) + 1j * rs.normal(size=(2, layout.size))
    dense = layout.to_dense(x)
    self.assertEqual(dense.shape, (2, layout.n_degrees, layout.n_orders))
    self.assertEqual(dense[1, 3, 2], x[1, layout.index(3, 2)])
    self.assertEqual(dense[0, 1, 2], 0)
    np.testing.assert_array_equal(layout.from_dense(dense), x)

  def testZerosAndCheck(self):
    layout = triangular.TriangularLayout(6)
    zeros = layout.zeros((3,))
    self.assertEqual(zeros.shape, (3, layout.size))
    self.assertEqual(zeros.dtype, np.complex128)
    layout.check(zeros)
    with self.assertRaisesRegex(errors.ShapeMismatchError, 'vorticity'):
      layout.check(np.zeros(layout.size + 1), 'vorticity')
    with self.assertRaises(errors.ShapeMismatchError):
      layout.from_dense(np.zeros((3, 3)))

  @parameterized.parameters(
      dict(max_degree=-1, max_order=None, guard_rows=1),
      dict(max_degree=3, max_order=4, guard_rows=1),
      dict(max_degree=3, max_order=-1, guard_rows=1),
      dict(max_degree=3, max_order=None, guard_rows=-1),
  )
  def testInvalid(self, max_degree, max_order, guard_rows):
    with self.assertRaises(errors.InvalidParameterError):
      triangular.TriangularLayout(max_degree, max_order, guard_rows)


class ResizeTest(parameterized.TestCase):

  def testPadAndTruncate(self):
    small = triangular.TriangularLayout(3)
    large = triangular.TriangularLayout(6, max_order=4)
    rs = np.random.RandomState(0)
    x = (rs.normal(size=small.size) + 1j) * small.mask

    padded = np.asarray(triangular.resize(x, small, large))
    for l, m in zip(small.degrees, small.orders):
      if l <= small.max_degree:
        self.assertEqual(padded[large.index(l, m)], x[small.index(l, m)])
    self.assertEqual(padded[large.index(5, 1)], 0)
    self.assertEqual(padded[large.index(4, 0)], 0)

    restored = triangular.resize(padded, large, small)
    np.testing.assert_array_equal(restored, x)

  def testGuardRowIsZero(self):
    large = triangular.TriangularLayout(6)
    small = triangular.TriangularLayout(3)
    x = np.ones((2, large.size), np.complex128)
    actual = np.asarray(triangular.resize(x, large, small))
    np.testing.assert_array_equal(actual[:, small.mask], 1)
    np.testing.assert_array_equal(actual[:, ~small.mask], 0)

  def testShapeMismatch(self):
    small = triangular.TriangularLayout(3)
    large = triangular.TriangularLayout(6)
    with self.assertRaises(errors.ShapeMismatchError):
      triangular.resize(large.zeros(), small, large)


if __name__ == '__main__':
  absltest.main()

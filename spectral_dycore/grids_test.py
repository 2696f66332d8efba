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

"""Tests for grids."""

from absl.testing import absltest
from absl.testing import parameterized
from spectral_dycore import errors
from spectral_dycore import grids
import numpy as np


class GridTopologyTest(parameterized.TestCase):

  @parameterized.parameters(
      dict(family='full_gaussian', nlat=16, npoints=16 * 32),
      dict(family='full_clenshaw', nlat=15, npoints=15 * 32),
      dict(
          family='octahedral_gaussian',
          nlat=16,
          npoints=2 * sum(16 + 4 * j for j in range(1, 9)),
      ),
      dict(
          family='octahedral_clenshaw',
          nlat=15,
          npoints=2 * sum(16 + 4 * j for j in range(1, 9)) - (16 + 4 * 8),
      ),
      dict(family='healpix', nlat=15, npoints=3 * 8**2),
      dict(family='full_healpix', nlat=15, npoints=15 * 16),
      dict(family='octahealpix', nlat=15, npoints=4 * 8**2),
      dict(family='full_octahealpix', nlat=15, npoints=15 * 32),
  )
  def testSizes(self, family, nlat, npoints):
    topology = grids.get_topology(family, 8)
    self.assertEqual(topology.family, family)
    self.assertEqual(topology.nlat_half, 8)
    self.assertEqual(topology.nlat, nlat)
    self.assertEqual(topology.npoints, npoints)
    self.assertEqual(topology.ring_offsets[-1], npoints)

  @parameterized.parameters(*grids.GRID_FAMILIES)
  def testRings(self, family):
    topology = grids.get_topology(family, 8)
    with self.subTest('weights sum to 2'):
      self.assertAlmostEqual(topology.weights.sum(), 2)
      self.assertTrue((topology.weights > 0).all())
    with self.subTest('north to south'):
      self.assertTrue((np.diff(topology.sin_latitudes) < 0).all())
      self.assertTrue((np.abs(topology.sin_latitudes) < 1).all())
    with self.subTest('mirror symmetric'):
      np.testing.assert_allclose(
          topology.sin_latitudes, -topology.sin_latitudes[::-1], atol=1e-14
      )
      np.testing.assert_array_equal(topology.nlons, topology.nlons[::-1])
      self.assertTrue(topology.symmetric)

  @parameterized.parameters(
      dict(family='full_gaussian', nlat_half=7),
      dict(family='octahealpix', nlat_half=5),
  )
  def testHemispherePairs(self, family, nlat_half):
    topology = grids.get_topology(family, nlat_half)
    north, south = topology.hemisphere_pairs()
    self.assertLen(north, nlat_half)
    for n, s in zip(north, south):
      if s < 0:
        self.assertAlmostEqual(topology.sin_latitudes[n], 0)
      else:
        self.assertAlmostEqual(
            topology.sin_latitudes[n], -topology.sin_latitudes[s]
        )
        self.assertEqual(topology.nlons[n], topology.nlons[s])
    self.assertEqual(
        (south < 0).sum(), 0 if family == 'full_gaussian' else 1
    )

  def testRingGroups(self):
    topology = grids.octahedral_gaussian(4)
    groups = topology.ring_groups
    self.assertEqual([g.nlon for g in groups], [20, 24, 28, 32])
    covered = np.sort(np.concatenate([g.points.ravel() for g in groups]))
    np.testing.assert_array_equal(covered, np.arange(topology.npoints))
    for group in groups:
      self.assertEqual(group.points.shape, (len(group.rings), group.nlon))
      for ring, points in zip(group.rings, group.points):
        self.assertEqual(points[0], topology.ring_offsets[ring])

  def testNodalCoordinates(self):
    topology = grids.healpix(4)
    lon, lat = topology.nodal_coordinates()
    self.assertEqual(lon.shape, (topology.npoints,))
    np.testing.assert_allclose(
        lon[topology.ring_slice(0)], np.pi / 4 + np.arange(4) * np.pi / 2
    )
    np.testing.assert_allclose(
        lat[topology.ring_slice(1)], np.arcsin(topology.sin_latitudes[1])
    )

  def testOctahealpixOffsets(self):
    topology = grids.octahealpix(3)
    np.testing.assert_allclose(topology.lon_offsets, np.pi / topology.nlons)

  def testEqualArea(self):
    # every point of an equal area grid represents the same area.
    for family in ('healpix', 'octahealpix'):
      topology = grids.get_topology(family, 6)
      np.testing.assert_allclose(
          topology.weights / topology.nlons,
          2 / topology.npoints,
      )

  def testWithSymmetry(self):
    topology = grids.full_clenshaw(5)
    general = topology.with_symmetry(False)
    self.assertFalse(general.symmetric)
    self.assertTrue(topology.symmetric)

  def testCheck(self):
    topology = grids.full_gaussian(3)
    topology.check(np.zeros((2, topology.npoints)))
    with self.assertRaises(errors.ShapeMismatchError):
      topology.check(np.zeros(topology.npoints - 1))

  def testAsymmetricRejected(self):
    with self.assertRaises(errors.InvalidParameterError):
      grids.GridTopology(
          family='custom',
          nlat_half=1,
          sin_latitudes=[0.5, -0.4],
          nlons=[4, 4],
          weights=[1.0, 1.0],
          lon_offsets=[0.0, 0.0],
      )
    topology = grids.GridTopology(
        family='custom',
        nlat_half=1,
        sin_latitudes=[0.5, -0.4],
        nlons=[4, 4],
        weights=[1.0, 1.0],
        lon_offsets=[0.0, 0.0],
        symmetric=False,
    )
    self.assertEqual(topology.npoints, 8)

  @parameterized.parameters(
      dict(family='healpix', nlat_half=5),
      dict(family='full_healpix', nlat_half=3),
      dict(family='gaussian', nlat_half=8),
      dict(family='full_gaussian', nlat_half=0),
  )
  def testInvalid(self, family, nlat_half):
    with self.assertRaises(errors.InvalidParameterError):
      grids.get_topology(family, nlat_half)


class ResolutionTest(parameterized.TestCase):

  @parameterized.parameters(
      dict(truncation=31, dealiasing=2, nlat_half=24),
      dict(truncation=63, dealiasing=2, nlat_half=48),
      dict(truncation=127, dealiasing=2, nlat_half=96),
      dict(truncation=31, dealiasing=3, nlat_half=32),
      dict(truncation=63, dealiasing=3, nlat_half=64),
  )
  def testNlatHalf(self, truncation, dealiasing, nlat_half):
    self.assertEqual(grids.get_nlat_half(truncation, dealiasing), nlat_half)
    self.assertEqual(grids.get_truncation(nlat_half, dealiasing), truncation)

  @parameterized.parameters(42, 85, 170)
  def testTruncationIdempotent(self, truncation):
    nlat_half = grids.get_nlat_half(truncation, 2)
    t = grids.get_truncation(nlat_half, 2)
    self.assertGreaterEqual(t, truncation)
    self.assertEqual(grids.get_nlat_half(t, 2), nlat_half)

  @parameterized.parameters(15, 31, 42, 63)
  def testHealpixEven(self, truncation):
    for family in ('healpix', 'full_healpix'):
      self.assertEqual(grids.get_nlat_half(truncation, 2, family) % 2, 0)

  def testInvalid(self):
    with self.assertRaises(errors.InvalidParameterError):
      grids.get_nlat_half(31, dealiasing=0.5)
    with self.assertRaises(errors.InvalidParameterError):
      grids.get_nlat_half(-1)
    with self.assertRaises(errors.InvalidParameterError):
      grids.get_truncation(24, dealiasing=0)


if __name__ == '__main__':
  absltest.main()

# -- Surface Field Tests -- #

'''
Implicit surface value and normal queries.
'''

from __future__ import annotations

import numpy as np
import pytest

from computationalFluids.ContainerSPH import constants as const


def testIsolatedQueryPoint(makeSystem):
    '''Far from every particle: value a - 1 and a zero normal.'''
    system = makeSystem([[0.0, 0.0, 0.0]])
    value, normal = system.surfaceInfo(np.array([0.4, 0.4, 0.4]))

    assert value == pytest.approx(const.isoThreshold - 1.0)
    np.testing.assert_array_equal(normal, [0.0, 0.0, 0.0])


def testValueAtParticle(makeSystem):
    mass = 2.0
    system = makeSystem([[0.0, 0.0, 0.0]], mass=mass)
    value, normal = system.surfaceInfo(np.zeros(3))

    expected = system.kernels.density(0.0) * mass / system.config.restDensity - (1.0 - const.isoThreshold)
    assert value == pytest.approx(expected)
    # Gradient vanishes at the particle center
    np.testing.assert_array_equal(normal, [0.0, 0.0, 0.0])


def testNormalPointsAwayFromFluid(makeSystem):
    system = makeSystem([[0.0, 0.0, 0.0]])

    _, normal = system.surfaceInfo(np.array([0.05, 0.0, 0.0]))
    np.testing.assert_allclose(normal, [1.0, 0.0, 0.0], atol=1e-12)

    _, normal = system.surfaceInfo(np.array([0.0, -0.03, 0.04]))
    np.testing.assert_allclose(normal, [0.0, -0.6, 0.8], atol=1e-12)


def testQueriesAreReadOnlyAndRepeatable(makeSystem):
    system = makeSystem([[0.0, 0.0, 0.0], [0.04, 0.0, 0.0], [0.0, 0.05, 0.0]])
    system.advance(0.01)

    before = system.particles.positions.copy()
    query = np.array([0.02, 0.02, 0.0])

    first = system.surfaceInfo(query)
    second = system.surfaceInfo(query)

    assert first[0] == second[0]
    np.testing.assert_array_equal(first[1], second[1])
    np.testing.assert_array_equal(system.particles.positions, before)
    assert system.isGridConsistent()


def testBatchMatchesSingleQueries(makeSystem):
    rng = np.random.default_rng(4)
    system = makeSystem(rng.uniform(-0.1, 0.1, size=(40, 3)), mass=0.05)
    queries = rng.uniform(-0.2, 0.2, size=(25, 3))

    values, normals = system.surfaceInfoBatch(queries)
    for i, query in enumerate(queries):
        value, normal = system.surfaceInfo(query)
        assert values[i] == pytest.approx(value)
        np.testing.assert_allclose(normals[i], normal, atol=1e-12)


def testNormalsAreUnitOrZero(makeSystem):
    rng = np.random.default_rng(8)
    system = makeSystem(rng.uniform(-0.15, 0.15, size=(60, 3)), mass=0.05)
    _, normals = system.surfaceInfoBatch(rng.uniform(-0.45, 0.45, size=(200, 3)))

    lengths = np.linalg.norm(normals, axis=1)
    assert np.all(np.isclose(lengths, 1.0) | (lengths == 0.0))


def testSampleLatticeShape(makeSystem):
    system = makeSystem([[0.0, 0.0, 0.0]], cubeCounts=(4, 5, 6))
    points, values, normals = system.sampleSurfaceLattice()

    assert points.shape == (5, 6, 7, 3)
    assert values.shape == (5, 6, 7)
    assert normals.shape == (5, 6, 7, 3)

    boundsMin, boundsMax = system.inflatedBoundingBox()
    np.testing.assert_allclose(points[0, 0, 0], boundsMin)
    np.testing.assert_allclose(points[-1, -1, -1], boundsMax)
    np.testing.assert_allclose(boundsMin, [-0.6, -0.6, -0.6])

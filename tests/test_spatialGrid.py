# -- Spatial Grid Tests -- #

'''
Cell addressing, neighborhoods, bucket bookkeeping, and the
vectorized neighbor gather.
'''

from __future__ import annotations

import numpy as np
import pytest

from computationalFluids.ContainerSPH.sph.spatialGrid import SpatialGrid


def _grid(counts=(4, 4, 4)) -> SpatialGrid:
    return SpatialGrid(np.zeros(3), np.ones(3), counts)


def testCellIndexAddressing():
    grid = _grid((4, 5, 6))

    assert grid.nCells == 120
    np.testing.assert_allclose(grid.cellSize, [0.25, 0.2, 1.0 / 6.0])

    # ix + nx * (iy + ny * iz)
    assert grid.cellIndex(np.array([0.6, 0.5, 0.9])) == 2 + 4 * (2 + 5 * 5)


def testCellIndexClampsOutsidePoints():
    grid = _grid()

    assert grid.cellIndex(np.array([-5.0, -5.0, -5.0])) == 0
    assert grid.cellIndex(np.array([5.0, 5.0, 5.0])) == grid.nCells - 1
    # Upper boundary belongs to the last cell
    assert grid.cellIndex(np.array([1.0, 0.0, 0.0])) == 3


def testCellIndexNanDoesNotCrash():
    grid = _grid()
    index = grid.cellIndex(np.array([np.nan, 0.1, 0.1]))
    assert 0 <= index < grid.nCells


def testNeighborhoodSizes():
    grid = _grid()

    corner = grid.cellIndex(np.array([0.1, 0.1, 0.1]))
    interior = grid.cellIndex(np.array([0.4, 0.4, 0.4]))
    face = grid.cellIndex(np.array([0.1, 0.4, 0.4]))

    assert len(grid.neighborhood(corner)) == 8
    assert len(grid.neighborhood(interior)) == 27
    assert len(grid.neighborhood(face)) == 18

    # Every neighborhood contains its own cell and no duplicates
    cells = grid.neighborhood(interior)
    assert interior in cells
    assert len(np.unique(cells)) == len(cells)


def testSingleCellGrid():
    grid = _grid((1, 1, 1))
    np.testing.assert_array_equal(grid.neighborhood(0), [0])


def testBucketBookkeeping():
    grid = _grid()
    cells = np.array([0, 0, 5, 63])
    grid.insertAll(cells)

    assert grid.isConsistent(cells)
    assert sorted(grid.cellParticles(0).tolist()) == [0, 1]

    grid.moveParticles(np.array([1]), np.array([0]), np.array([7]))
    moved = cells.copy()
    moved[1] = 7

    assert grid.isConsistent(moved)
    assert not grid.isConsistent(cells)
    assert grid.cellParticles(0).tolist() == [0]


def testRemoveMissingParticleRaises():
    grid = _grid()
    grid.addParticle(3, 0)

    with pytest.raises(KeyError):
        grid.removeParticle(4, 0)


def testInvalidGrid():
    with pytest.raises(ValueError):
        SpatialGrid(np.zeros(3), np.ones(3), (0, 4, 4))
    with pytest.raises(ValueError):
        SpatialGrid(np.ones(3), np.zeros(3), (4, 4, 4))


def testGatherPairsMatchesBruteForce():
    '''Grid gather finds exactly the pairs a full N^2 scan finds.'''
    rng = np.random.default_rng(3)
    positions = rng.uniform(0.0, 1.0, size=(300, 3))
    radius = 0.2

    grid = _grid((5, 5, 5))
    cells = grid.cellIndices(positions)
    grid.insertAll(cells)

    qIdx, pIdx = grid.gatherPairs(positions, cells, positions, radius * radius)
    found = set(zip(qIdx.tolist(), pIdx.tolist()))

    diff = positions[:, np.newaxis, :] - positions[np.newaxis, :, :]
    distSq = np.einsum('ijk,ijk->ij', diff, diff)
    expected = set(zip(*[a.tolist() for a in np.nonzero(distSq < radius * radius)]))

    assert found == expected
    # Self pairs are part of the result
    assert all((i, i) in found for i in range(len(positions)))


def testGatherPairsForArbitraryQueries():
    positions = np.array([[0.5, 0.5, 0.5], [0.55, 0.5, 0.5], [0.9, 0.9, 0.9]])
    grid = _grid()
    cells = grid.cellIndices(positions)
    grid.insertAll(cells)

    queries = np.array([[0.52, 0.5, 0.5], [0.1, 0.1, 0.1]])
    qIdx, pIdx = grid.gatherPairs(queries, grid.cellIndices(queries), positions, 0.1 ** 2)

    assert sorted(zip(qIdx.tolist(), pIdx.tolist())) == [(0, 0), (0, 1)]


def testGatherPairsEmpty():
    grid = _grid()
    qIdx, pIdx = grid.gatherPairs(np.empty((0, 3)), np.empty(0, dtype=np.int64), np.empty((0, 3)), 0.01)
    assert len(qIdx) == 0 and len(pIdx) == 0

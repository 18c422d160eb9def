# -- Uniform Spatial Grid for Neighbor Search -- #

'''
Cell-bucket spatial grid for SPH neighbor queries.

Divides a fixed bounding volume into a regular lattice of cells whose
size is at least the smoothing radius. Each cell owns a bucket with the
indices of the particles currently inside it, so every particle within
h of a point lies in that point's cell or one of its 26 neighbors.

Unlike a hash grid rebuilt every step, the buckets persist and are
updated incrementally: only particles that changed cell are moved,
in a single-threaded pass after all positions are final.

References:
-----------
Ihmsen et al. (2011) -- Parallel Neighbor-Search for SPH
Green (2010) -- Particle Simulation using CUDA
'''

from __future__ import annotations

import numpy as np


class SpatialGrid:
    '''
    Fixed 3D cell lattice with per-cell particle buckets.

    Cells are addressed by a linear index ix + nx * (iy + ny * iz).

    Parameters:
    -----------
    boundsMin : np.ndarray
        Lower corner of the grid volume [m]
    boundsMax : np.ndarray
        Upper corner of the grid volume [m]
    cellCounts : tuple[int, int, int]
        Number of cells along x, y, z
    '''

    def __init__(
        self,
        boundsMin: np.ndarray,
        boundsMax: np.ndarray,
        cellCounts: tuple[int, int, int],
    ) -> None:
        self._boundsMin = np.asarray(boundsMin, dtype=float).copy()
        self._boundsMax = np.asarray(boundsMax, dtype=float).copy()
        self._cellCounts = np.asarray(cellCounts, dtype=np.int64).copy()

        if self._cellCounts.shape != (3,) or np.any(self._cellCounts < 1):
            raise ValueError(f'cellCounts must be three counts >= 1, got {cellCounts}')
        if np.any(self._boundsMax <= self._boundsMin):
            raise ValueError('Grid bounds must have positive extent on every axis')

        self._cellSize = (self._boundsMax - self._boundsMin) / self._cellCounts
        self._nCells = int(np.prod(self._cellCounts))
        self._buckets: list[set[int]] = [set() for _ in range(self._nCells)]

        # Neighborhoods never change, computed lazily per cell
        self._neighborhoods: dict[int, np.ndarray] = {}

    ######################################################################
    # -- Properties -- #
    ######################################################################

    @property
    def boundsMin(self) -> np.ndarray:
        return self._boundsMin

    @property
    def boundsMax(self) -> np.ndarray:
        return self._boundsMax

    @property
    def cellCounts(self) -> np.ndarray:
        '''Cells along x, y, z.'''
        return self._cellCounts

    @property
    def cellSize(self) -> np.ndarray:
        '''Per-axis cell edge length [m].'''
        return self._cellSize

    @property
    def nCells(self) -> int:
        return self._nCells

    ######################################################################
    # -- Cell Addressing -- #
    ######################################################################

    def cellCoordinates(self, positions: np.ndarray) -> np.ndarray:
        '''
        Integer (ix, iy, iz) of the cells containing each position.

        Points outside the grid volume clamp to the nearest boundary cell.

        Parameters:
        -----------
        positions : np.ndarray
            Points, shape (N, 3) [m]

        Returns:
        --------
        np.ndarray : Cell coordinates, shape (N, 3)
        '''
        positions = np.asarray(positions, dtype=float).reshape(-1, 3)
        coords = np.floor((positions - self._boundsMin) / self._cellSize)
        coords = np.nan_to_num(coords, nan=0.0)
        coords = np.clip(coords, 0, self._cellCounts - 1)
        return coords.astype(np.int64)

    def linearIndex(self, coords: np.ndarray) -> np.ndarray:
        '''Linear cell indices for integer cell coordinates, shape (N,).'''
        nx, ny, _ = self._cellCounts
        coords = np.asarray(coords, dtype=np.int64).reshape(-1, 3)
        return coords[:, 0] + nx * (coords[:, 1] + ny * coords[:, 2])

    def cellIndices(self, positions: np.ndarray) -> np.ndarray:
        '''Linear cell index of every position, shape (N,).'''
        return self.linearIndex(self.cellCoordinates(positions))

    def cellIndex(self, position: np.ndarray) -> int:
        '''Linear index of the cell containing a single point.'''
        return int(self.cellIndices(position)[0])

    ######################################################################
    # -- Buckets -- #
    ######################################################################

    def addParticle(self, cell: int, particleIndex: int) -> None:
        self._buckets[cell].add(int(particleIndex))

    def removeParticle(self, cell: int, particleIndex: int) -> None:
        '''
        Erase a particle from a cell bucket.

        Raises:
        -------
        KeyError : If the particle is not in that bucket
        '''
        self._buckets[cell].remove(int(particleIndex))

    def cellParticles(self, cell: int) -> np.ndarray:
        '''Particle indices currently bucketed in a cell.'''
        bucket = self._buckets[cell]
        return np.fromiter(bucket, dtype=np.int64, count=len(bucket))

    def neighborhood(self, cell: int) -> np.ndarray:
        '''
        The cell and its face/edge/corner neighbors, clipped at the
        grid boundary (8 to 27 cells).
        '''
        cached = self._neighborhoods.get(cell)
        if cached is not None:
            return cached

        nx, ny, nz = self._cellCounts
        ix = cell % nx
        iy = (cell // nx) % ny
        iz = cell // (nx * ny)

        xs = np.arange(max(ix - 1, 0), min(ix + 2, nx))
        ys = np.arange(max(iy - 1, 0), min(iy + 2, ny))
        zs = np.arange(max(iz - 1, 0), min(iz + 2, nz))
        xx, yy, zz = np.meshgrid(xs, ys, zs, indexing='ij')
        coords = np.column_stack([xx.ravel(), yy.ravel(), zz.ravel()])

        cells = self.linearIndex(coords)
        self._neighborhoods[cell] = cells
        return cells

    def neighborhoodParticles(self, cell: int) -> np.ndarray:
        '''All particle indices bucketed in a cell's neighborhood.'''
        chunks = [self.cellParticles(c) for c in self.neighborhood(cell)]
        chunks = [c for c in chunks if len(c) > 0]
        if not chunks:
            return np.empty(0, dtype=np.int64)
        return np.concatenate(chunks)

    def insertAll(self, cellIndices: np.ndarray) -> None:
        '''Bucket particles 0..N-1 into the given cells.'''
        for particleIndex, cell in enumerate(cellIndices):
            self.addParticle(int(cell), particleIndex)

    def moveParticles(
        self,
        particleIndices: np.ndarray,
        oldCells: np.ndarray,
        newCells: np.ndarray,
    ) -> None:
        '''
        Apply a batch of re-bucketing moves.

        Each remove/add pair runs back to back, so between calls every
        particle sits in exactly one bucket.
        '''
        for particleIndex, oldCell, newCell in zip(particleIndices, oldCells, newCells):
            if oldCell == newCell:
                continue
            self.removeParticle(int(oldCell), int(particleIndex))
            self.addParticle(int(newCell), int(particleIndex))

    def isConsistent(self, cellIndices: np.ndarray) -> bool:
        '''
        Check that every particle sits in exactly the bucket of its
        stored cell index and nowhere else.

        Parameters:
        -----------
        cellIndices : np.ndarray
            Stored cell index of each particle, shape (N,)

        Returns:
        --------
        bool : True if the buckets match the stored indices
        '''
        nParticles = len(cellIndices)
        seen = np.zeros(nParticles, dtype=np.int64)

        for cell, bucket in enumerate(self._buckets):
            for particleIndex in bucket:
                if particleIndex < 0 or particleIndex >= nParticles:
                    return False
                if cellIndices[particleIndex] != cell:
                    return False
                seen[particleIndex] += 1

        return bool(np.all(seen == 1))

    ######################################################################
    # -- Vectorized Neighbor Gather -- #
    ######################################################################

    def gatherPairs(
        self,
        queryPositions: np.ndarray,
        queryCells: np.ndarray,
        particlePositions: np.ndarray,
        radiusSq: float,
    ) -> tuple[np.ndarray, np.ndarray]:
        '''
        Find every (query, particle) pair closer than the search radius.

        Queries are grouped by cell, so the 27-cell candidate list is
        gathered once per occupied cell and the distance checks for the
        whole group are done with NumPy broadcasting. Pairs are directed
        and, when the queries are the particles themselves, include the
        self pair (i, i).

        Parameters:
        -----------
        queryPositions : np.ndarray
            Query points, shape (M, 3) [m]
        queryCells : np.ndarray
            Cell index of each query point, shape (M,)
        particlePositions : np.ndarray
            Bucketed particle positions, shape (N, 3) [m]
        radiusSq : float
            Squared search radius; pairs with r^2 < radiusSq are kept

        Returns:
        --------
        tuple[np.ndarray, np.ndarray] :
            (queryIndices, particleIndices) of the pairs
        '''
        queryCells = np.asarray(queryCells, dtype=np.int64)
        if len(queryCells) == 0:
            return (np.empty(0, dtype=np.int64), np.empty(0, dtype=np.int64))

        order = np.argsort(queryCells, kind='stable')
        uniqueCells, starts = np.unique(queryCells[order], return_index=True)
        groups = np.split(order, starts[1:])

        qChunks: list[np.ndarray] = []
        pChunks: list[np.ndarray] = []

        for cell, members in zip(uniqueCells, groups):
            candidates = self.neighborhoodParticles(int(cell))
            if len(candidates) == 0:
                continue

            diff = (
                queryPositions[members][:, np.newaxis, :]
                - particlePositions[candidates][np.newaxis, :, :]
            )  # (nMembers, nCandidates, 3)
            distSq = np.einsum('ijk,ijk->ij', diff, diff)

            localQ, localP = np.nonzero(distSq < radiusSq)
            if len(localQ) > 0:
                qChunks.append(members[localQ])
                pChunks.append(candidates[localP])

        if not qChunks:
            return (np.empty(0, dtype=np.int64), np.empty(0, dtype=np.int64))

        return (np.concatenate(qChunks), np.concatenate(pChunks))

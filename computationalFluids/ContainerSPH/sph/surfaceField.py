# -- Implicit Surface Field -- #

'''
Scalar field and normal used to extract the fluid's isosurface.

At any query point x (not necessarily a particle), over particles j
with r^2 = |x - x_j|^2 < h^2:

    rho(x)      = sum_j W(r^2) * m_j
    grad rho(x) = sum_j 2 * (x - x_j) * dW/d(r^2) * m_j

    value  = rho / rho_0 - (1 - a)
    normal = normalize(-grad rho / rho_0)

The zero level set of value is the fluid surface: with a = 0.3 it sits
where the density has dropped to 70% of the rest density. The normal
points from the dense interior out through the surface. A query point
with no particle in range returns value a - 1 and a zero normal.

Evaluation only reads particle and grid state, so any number of
queries may run between two simulation steps.
'''

from __future__ import annotations

import numpy as np

from computationalFluids.ContainerSPH import constants as const
from computationalFluids.ContainerSPH.sph.kernels import KernelSet
from computationalFluids.ContainerSPH.sph.particles import ParticleStore
from computationalFluids.ContainerSPH.sph.spatialGrid import SpatialGrid


class SurfaceFieldEvaluator:
    '''
    Density-based implicit surface for an external mesher.

    Parameters:
    -----------
    particles : ParticleStore
        Particle state (read only)
    grid : SpatialGrid
        Neighbor grid the particles are bucketed in (read only)
    kernels : KernelSet
        Precomputed smoothing kernels
    restDensity : float
        Rest density rho_0 [kg/m^3]
    isoThreshold : float
        Threshold a placing the zero level set at rho = (1 - a) * rho_0
    '''

    def __init__(
        self,
        particles: ParticleStore,
        grid: SpatialGrid,
        kernels: KernelSet,
        restDensity: float,
        isoThreshold: float = const.isoThreshold,
    ) -> None:
        self._particles = particles
        self._grid = grid
        self._kernels = kernels
        self._restDensity = restDensity
        self._isoThreshold = isoThreshold

    @property
    def isoThreshold(self) -> float:
        return self._isoThreshold

    def surfaceInfo(self, position: np.ndarray) -> tuple[float, np.ndarray]:
        '''
        Field value and outward normal at a single point.

        Parameters:
        -----------
        position : np.ndarray
            Query point [m]

        Returns:
        --------
        tuple[float, np.ndarray] : (value, unit normal or zero vector)
        '''
        values, normals = self.surfaceInfoBatch(np.asarray(position, dtype=float).reshape(1, 3))
        return (float(values[0]), normals[0])

    def surfaceInfoBatch(self, positions: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        '''
        Field values and normals at many points.

        Parameters:
        -----------
        positions : np.ndarray
            Query points, shape (M, 3) [m]

        Returns:
        --------
        tuple[np.ndarray, np.ndarray] :
            values, shape (M,), and normals, shape (M, 3)
        '''
        positions = np.asarray(positions, dtype=float).reshape(-1, 3)
        nQueries = positions.shape[0]
        p = self._particles

        queryCells = self._grid.cellIndices(positions)
        qIdx, pIdx = self._grid.gatherPairs(
            positions, queryCells, p.positions, self._kernels.smoothingRadiusSq,
        )

        difference = positions[qIdx] - p.positions[pIdx]
        r2 = np.einsum('ij,ij->i', difference, difference)
        masses = p.masses[pIdx]

        density = np.bincount(
            qIdx, weights=self._kernels.densityBatch(r2) * masses, minlength=nQueries,
        )

        gradientWeight = self._kernels.densityGradientBatch(r2) * masses
        gradient = np.zeros((nQueries, 3))
        np.add.at(gradient, qIdx, 2.0 * difference * gradientWeight[:, np.newaxis])

        normals = -gradient / self._restDensity
        lengths = np.linalg.norm(normals, axis=1)
        nonZero = lengths > const.degenerateLength
        normals[nonZero] /= lengths[nonZero][:, np.newaxis]
        normals[~nonZero] = 0.0

        values = density / self._restDensity - (1.0 - self._isoThreshold)
        return (values, normals)

    def sampleLattice(
        self,
        boundsMin: np.ndarray,
        boundsMax: np.ndarray,
        cubeCounts: tuple[int, int, int],
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        '''
        Evaluate the field on every vertex of a regular meshing lattice.

        The lattice has cubeCounts + 1 vertices per axis, the layout a
        marching-tetrahedra mesher walks.

        Parameters:
        -----------
        boundsMin : np.ndarray
            Lower lattice corner [m]
        boundsMax : np.ndarray
            Upper lattice corner [m]
        cubeCounts : tuple[int, int, int]
            Cubes along x, y, z

        Returns:
        --------
        tuple[np.ndarray, np.ndarray, np.ndarray] :
            points (nx+1, ny+1, nz+1, 3), values (nx+1, ny+1, nz+1),
            normals (nx+1, ny+1, nz+1, 3)
        '''
        axes = [
            np.linspace(boundsMin[d], boundsMax[d], int(cubeCounts[d]) + 1)
            for d in range(3)
        ]
        xx, yy, zz = np.meshgrid(axes[0], axes[1], axes[2], indexing='ij')
        points = np.stack([xx, yy, zz], axis=-1)
        shape = points.shape[:3]

        values, normals = self.surfaceInfoBatch(points.reshape(-1, 3))
        return (points, values.reshape(shape), normals.reshape(shape + (3,)))

# -- Container SPH Fluid System -- #

'''
SPH fluid confined in a closed container.

Owns the particles, the neighbor grid, and the three step phases, and
exposes the two entry points used from outside:

    advance(elapsedTime)   -- one simulation step
    surfaceInfo(position)  -- implicit surface value and normal

Algorithm per step:
    1. Clamp dt to the configured maximum
    2. Gather neighbor pairs from the 27-cell grid neighborhoods
    3. Density pass (corrected density, volume, pressure)
    4. Force pass (pressure + viscosity + surface tension + gravity)
    5. Integration pass (symplectic Euler, swept container collisions)
    6. Re-bucket particles that changed grid cell

Each phase reads only state committed by the previous phase, and the
phases run strictly one after another.

References:
-----------
Mueller, Charypar & Gross (2003) -- Particle-Based Fluid Simulation
    for Interactive Applications
'''

from __future__ import annotations

from dataclasses import replace

import numpy as np

from computationalFluids.ContainerSPH import constants as const
from computationalFluids.ContainerSPH.geometry.transforms import inflateBoundingBox, worldToLocalDirection
from computationalFluids.ContainerSPH.sph.densitySolver import DensitySolver
from computationalFluids.ContainerSPH.sph.forceSolver import ForceSolver, ForceTerms
from computationalFluids.ContainerSPH.sph.integrator import SweptCollisionIntegrator
from computationalFluids.ContainerSPH.sph.kernels import KernelSet
from computationalFluids.ContainerSPH.sph.particles import ParticleStore
from computationalFluids.ContainerSPH.sph.protocols import ContainerGeometry, SphConfig, StepState
from computationalFluids.ContainerSPH.sph.spatialGrid import SpatialGrid
from computationalFluids.ContainerSPH.sph.surfaceField import SurfaceFieldEvaluator


class SphFluidSystem:
    '''
    Particle fluid in a container, stepped with fixed-clamp SPH.

    Parameters:
    -----------
    container : ContainerGeometry
        Closed container (local frame)
    config : SphConfig | None
        Construction parameters (defaults to SphConfig())
    transform : np.ndarray | None
        4x4 placement of the local frame in the world (default identity)
    particles : ParticleStore | None
        Explicit initial particles; when None, config.nParticles
        particles are scattered through the container interior

    Raises:
    -------
    ValueError : If the configuration is invalid or the grid cells are
        smaller than the smoothing radius
    '''

    def __init__(
        self,
        container: ContainerGeometry,
        config: SphConfig | None = None,
        transform: np.ndarray | None = None,
        particles: ParticleStore | None = None,
    ) -> None:
        self._config = config or SphConfig()
        if particles is not None:
            self._config = replace(self._config, nParticles=particles.nParticles)
        self._config.validate()

        self._container = container
        self._transform = np.eye(4) if transform is None else np.asarray(transform, dtype=float)
        self._kernels = KernelSet(self._config.smoothingRadius)

        boundsMin, boundsMax = self.inflatedBoundingBox()
        self._grid = SpatialGrid(boundsMin, boundsMax, self._config.cellCounts)
        if np.any(self._grid.cellSize < self._config.smoothingRadius):
            raise ValueError(
                f'Grid cell size {self._grid.cellSize} is smaller than the smoothing '
                f'radius {self._config.smoothingRadius}; use fewer cells'
            )

        if particles is None:
            rng = np.random.default_rng(self._config.seed)
            particles = ParticleStore.seedInContainer(
                container,
                nParticles=self._config.nParticles,
                restDensity=self._config.restDensity,
                totalVolume=self._config.totalVolume,
                rng=rng,
            )
        self._particles = particles
        self._particles.cellIndices = self._grid.cellIndices(self._particles.positions)
        self._grid.insertAll(self._particles.cellIndices)

        self._densitySolver = DensitySolver(self._kernels, self._config.restDensity)
        self._forceSolver = ForceSolver(
            self._kernels,
            viscosity=self._config.viscosity,
            pressure=self._config.pressure,
            surfaceTension=self._config.surfaceTension,
        )
        self._integrator = SweptCollisionIntegrator(container, self._grid)
        self._surfaceField = SurfaceFieldEvaluator(
            self._particles, self._grid, self._kernels, self._config.restDensity,
        )

        self._time: float = 0.0
        self._step: int = 0
        self._dt: float = 0.0
        self._nCellChanges: int = 0
        self._lastForces: ForceTerms | None = None

    ######################################################################
    # -- Simulation Step -- #
    ######################################################################

    def advance(self, elapsedTime: float) -> None:
        '''
        Run one Density -> Force -> Integration step.

        Parameters:
        -----------
        elapsedTime : float
            Requested step [s], clamped to [0, maxTimeStep]
        '''
        dt = min(max(float(elapsedTime), 0.0), self._config.maxTimeStep)
        p = self._particles

        pairs = self.neighborPairs()
        self._densitySolver.compute(p, pairs)
        self._lastForces = self._forceSolver.compute(p, pairs, self.localGravity())
        self._nCellChanges = self._integrator.integrate(p, dt)

        self._dt = dt
        self._time += dt
        self._step += 1

    def neighborPairs(self) -> tuple[np.ndarray, np.ndarray]:
        '''Directed (i, j) particle pairs with r^2 < h^2, self pairs included.'''
        p = self._particles
        return self._grid.gatherPairs(
            p.positions, p.cellIndices, p.positions, self._kernels.smoothingRadiusSq,
        )

    def localGravity(self) -> np.ndarray:
        '''Configured world gravity expressed in the local frame [m/s^2].'''
        return worldToLocalDirection(self._transform, self._config.gravity)

    ######################################################################
    # -- Surface Queries -- #
    ######################################################################

    def surfaceInfo(self, position: np.ndarray) -> tuple[float, np.ndarray]:
        '''
        Implicit surface value and outward normal at a local-frame point.

        Returns:
        --------
        tuple[float, np.ndarray] : (value, unit normal or zero vector)
        '''
        return self._surfaceField.surfaceInfo(position)

    def surfaceInfoBatch(self, positions: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        return self._surfaceField.surfaceInfoBatch(positions)

    def sampleSurfaceLattice(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        '''
        Field samples on the meshing lattice spanning the inflated box.

        Returns:
        --------
        tuple[np.ndarray, np.ndarray, np.ndarray] : (points, values, normals)
        '''
        boundsMin, boundsMax = self.inflatedBoundingBox()
        return self._surfaceField.sampleLattice(boundsMin, boundsMax, self._config.cubeCounts)

    ######################################################################
    # -- State Management -- #
    ######################################################################

    def inflatedBoundingBox(self) -> tuple[np.ndarray, np.ndarray]:
        '''Container bounding box scaled 1.2x about its center.'''
        boundsMin, boundsMax = self._container.boundingBox()
        return inflateBoundingBox(boundsMin, boundsMax, const.boundingBoxInflation)

    def resetVelocities(self) -> None:
        self._particles.resetVelocities()

    def isGridConsistent(self) -> bool:
        '''True if every particle is bucketed exactly in its stored cell.'''
        return self._grid.isConsistent(self._particles.cellIndices)

    ######################################################################
    # -- Properties -- #
    ######################################################################

    @property
    def currentState(self) -> StepState:
        '''Diagnostics snapshot after the last step.'''
        p = self._particles
        return StepState(
            time=self._time,
            step=self._step,
            dt=self._dt,
            kineticEnergy=p.kineticEnergy(),
            maxVelocity=p.maxSpeed(),
            maxDensityError=p.maxDensityError(self._config.restDensity),
            meanDensity=p.meanDensity(),
            nCellChanges=self._nCellChanges,
        )

    @property
    def transform(self) -> np.ndarray:
        '''4x4 placement of the local frame in the world.'''
        return self._transform

    @transform.setter
    def transform(self, value: np.ndarray) -> None:
        self._transform = np.asarray(value, dtype=float)

    @property
    def config(self) -> SphConfig:
        return self._config

    @property
    def container(self) -> ContainerGeometry:
        return self._container

    @property
    def particles(self) -> ParticleStore:
        return self._particles

    @property
    def grid(self) -> SpatialGrid:
        return self._grid

    @property
    def kernels(self) -> KernelSet:
        return self._kernels

    @property
    def lastForces(self) -> ForceTerms | None:
        '''Force components of the last step (None before the first step).'''
        return self._lastForces

    @property
    def integrator(self) -> SweptCollisionIntegrator:
        return self._integrator

    @property
    def time(self) -> float:
        '''Accumulated simulation time [s].'''
        return self._time

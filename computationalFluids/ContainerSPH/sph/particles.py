# -- SPH Particle Store -- #

'''
Fixed-size particle state stored as a structure of NumPy arrays.

Every per-particle attribute lives in its own contiguous array so the
density, force, and integration passes can work on all particles at
once. Particles are created once and never destroyed; only their
state changes from step to step.
'''

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from computationalFluids.ContainerSPH.sph.protocols import ContainerGeometry, sampleInterior


@dataclass
class ParticleStore:
    '''
    SPH particle state.

    Vector quantities have shape (N, 3), scalars shape (N,).

    Parameters:
    -----------
    positions : np.ndarray
        Positions in the system's local frame [m]
    velocities : np.ndarray
        Velocities [m/s]
    accelerations : np.ndarray
        Accelerations from the last force pass [m/s^2]
    masses : np.ndarray
        Masses, constant for the particle lifetime [kg]
    densities : np.ndarray
        Corrected densities from the last density pass [kg/m^3]
    volumes : np.ndarray
        mass / density [m^3]
    pressures : np.ndarray
        Equation-of-state pressures (dimensionless, may be negative)
    cellIndices : np.ndarray
        Owning spatial grid cell of each particle
    '''

    positions: np.ndarray
    velocities: np.ndarray
    accelerations: np.ndarray
    masses: np.ndarray
    densities: np.ndarray
    volumes: np.ndarray
    pressures: np.ndarray
    cellIndices: np.ndarray

    @property
    def nParticles(self) -> int:
        '''Number of particles.'''
        return self.positions.shape[0]

    def __len__(self) -> int:
        return self.nParticles

    def kineticEnergy(self) -> float:
        '''
        Total kinetic energy.

        KE = (1/2) * sum_i m_i * |v_i|^2

        Returns:
        --------
        float : Kinetic energy [J]
        '''
        speedsSq = np.sum(self.velocities * self.velocities, axis=1)
        return float(0.5 * np.sum(self.masses * speedsSq))

    def maxSpeed(self) -> float:
        '''Maximum velocity magnitude [m/s].'''
        if self.nParticles == 0:
            return 0.0
        return float(np.max(np.linalg.norm(self.velocities, axis=1)))

    def maxDensityError(self, restDensity: float) -> float:
        '''Maximum relative density error max |rho_i - rho_0| / rho_0.'''
        if self.nParticles == 0:
            return 0.0
        return float(np.max(np.abs(self.densities - restDensity)) / restDensity)

    def meanDensity(self) -> float:
        return float(np.mean(self.densities))

    def resetVelocities(self) -> None:
        '''Bring every particle to rest.'''
        self.velocities[:] = 0.0

    @classmethod
    def create(
        cls,
        positions: np.ndarray,
        mass: float,
        restDensity: float,
    ) -> ParticleStore:
        '''
        Create particles at rest at the given positions.

        Density starts at the rest density, volume at mass / rho_0 and
        pressure at zero. Cell indices are set to -1 until the particles
        are bucketed into a grid.

        Parameters:
        -----------
        positions : np.ndarray
            Initial positions, shape (N, 3) [m]
        mass : float
            Mass of every particle [kg]
        restDensity : float
            Rest density rho_0 [kg/m^3]

        Returns:
        --------
        ParticleStore : Initialized particle store
        '''
        positions = np.array(positions, dtype=float).reshape(-1, 3)
        nParticles = positions.shape[0]

        return cls(
            positions=positions,
            velocities=np.zeros((nParticles, 3)),
            accelerations=np.zeros((nParticles, 3)),
            masses=np.full(nParticles, float(mass)),
            densities=np.full(nParticles, float(restDensity)),
            volumes=np.full(nParticles, float(mass) / restDensity),
            pressures=np.zeros(nParticles),
            cellIndices=np.full(nParticles, -1, dtype=np.int64),
        )

    @classmethod
    def seedInContainer(
        cls,
        container: ContainerGeometry,
        nParticles: int,
        restDensity: float,
        totalVolume: float,
        rng: np.random.Generator,
    ) -> ParticleStore:
        '''
        Scatter particles uniformly through a container's interior.

        The total fluid mass totalVolume * rho_0 is split evenly
        across the particles.

        Parameters:
        -----------
        container : ContainerGeometry
            Closed container to fill
        nParticles : int
            Number of particles
        restDensity : float
            Rest density rho_0 [kg/m^3]
        totalVolume : float
            Total fluid volume [m^3]
        rng : np.random.Generator
            Random generator for the interior points

        Returns:
        --------
        ParticleStore : Particles at rest inside the container
        '''
        totalMass = totalVolume * restDensity
        mass = totalMass / nParticles
        positions = sampleInterior(container, nParticles, rng)
        return cls.create(positions, mass, restDensity)

# -- Swept-Collision Time Integration -- #

'''
Semi-implicit Euler integration with container collision response.

Update sequence per particle:
    v' = v + a * dt        (kick)
    s  = v' * dt           (remaining displacement)

The displacement is then swept through the container: while the ray
from the current position along s hits the wall closer than |s|, the
particle is moved to the hit, s loses its component along the wall
normal (inelastic, no bounce), the position is pushed a small bias back
inside, and v' loses its normal component the same way. When no wall
blocks the remaining displacement, x += s.

Finally particles whose position left their grid cell are re-bucketed
in one single-threaded pass, after every position is final.

All particles are swept together: each sub-iteration casts one batch
of rays for the particles that are still moving.

References:
-----------
Hairer et al. (2003) -- Geometric Numerical Integration
'''

from __future__ import annotations

from typing import Protocol

import numpy as np

from computationalFluids.ContainerSPH import constants as const
from computationalFluids.ContainerSPH.sph.particles import ParticleStore
from computationalFluids.ContainerSPH.sph.protocols import ContainerGeometry, castRays
from computationalFluids.ContainerSPH.sph.spatialGrid import SpatialGrid


######################################################################
# -- Time Integrator Protocol -- #
######################################################################

class TimeIntegrator(Protocol):
    '''Protocol for time integration schemes.'''

    def integrate(self, particles: ParticleStore, dt: float) -> int:
        '''
        Advance positions and velocities by one time step.

        Returns:
        --------
        int : Number of particles that changed grid cell
        '''
        ...


######################################################################
# -- Symplectic Euler with Swept Collisions -- #
######################################################################

class SweptCollisionIntegrator:
    '''
    Symplectic Euler integrator confined to a container.

    Parameters:
    -----------
    container : ContainerGeometry
        Closed container queried with rays every sub-iteration
    grid : SpatialGrid
        Grid whose buckets are updated after the move
    bias : float
        Distance pushed back along the wall normal after a hit [m]
    maxIterations : int
        Maximum wall hits resolved per particle per step
    '''

    def __init__(
        self,
        container: ContainerGeometry,
        grid: SpatialGrid,
        bias: float = const.collisionBias,
        maxIterations: int = const.maxCollisionIterations,
    ) -> None:
        self._container = container
        self._grid = grid
        self._bias = bias
        self._maxIterations = maxIterations

    @property
    def bias(self) -> float:
        return self._bias

    def integrate(self, particles: ParticleStore, dt: float) -> int:
        '''
        Advance all particles by dt and re-bucket the ones that moved cell.

        Parameters:
        -----------
        particles : ParticleStore
            Particle state, accelerations from the force pass
        dt : float
            Time step [s]

        Returns:
        --------
        int : Number of particles that changed grid cell
        '''
        # Kick: update velocities from accelerations
        velocities = particles.velocities + dt * particles.accelerations

        # Drift: sweep the (new) velocity displacement through the container
        positions = particles.positions.copy()
        remaining = dt * velocities
        self._sweep(positions, velocities, remaining)

        particles.positions = positions
        particles.velocities = velocities

        return self.rebucket(particles)

    def _sweep(
        self,
        positions: np.ndarray,
        velocities: np.ndarray,
        remaining: np.ndarray,
    ) -> None:
        '''
        Move positions along their remaining displacement, sliding
        along the container wall on every hit. Arrays are updated in place.
        '''
        lengths = np.linalg.norm(remaining, axis=1)
        active = lengths > const.degenerateLength

        # Zero-length displacements never cast a ray
        positions[~active] += remaining[~active]

        for _ in range(self._maxIterations):
            idx = np.flatnonzero(active)
            if len(idx) == 0:
                break

            lengths = np.linalg.norm(remaining[idx], axis=1)
            directions = remaining[idx] / lengths[:, np.newaxis]
            hits = castRays(self._container, positions[idx], directions)

            blocked = hits.hitMask & (hits.distances < lengths)

            # Unblocked: commit the remaining displacement
            free = idx[~blocked]
            positions[free] += remaining[free]
            active[free] = False

            hitIdx = idx[blocked]
            if len(hitIdx) == 0:
                continue

            normals = hits.normals[blocked]
            hitPositions = hits.positions[blocked]

            # Displacement left after reaching the wall, projected onto
            # the tangent plane
            left = positions[hitIdx] + remaining[hitIdx] - hitPositions
            left -= np.einsum('ij,ij->i', left, normals)[:, np.newaxis] * normals

            positions[hitIdx] = hitPositions - normals * self._bias
            remaining[hitIdx] = left

            vel = velocities[hitIdx]
            velocities[hitIdx] = vel - np.einsum('ij,ij->i', vel, normals)[:, np.newaxis] * normals

            # Sliding displacement too short to sweep: commit it directly
            stalled = hitIdx[np.linalg.norm(left, axis=1) <= const.degenerateLength]
            positions[stalled] += remaining[stalled]
            active[stalled] = False

        # Particles still active hit the iteration cap: they stay at their
        # last nudged position inside the container

    def rebucket(self, particles: ParticleStore) -> int:
        '''
        Move particles whose position left their cell into the new bucket.

        Returns:
        --------
        int : Number of particles moved
        '''
        oldCells = particles.cellIndices
        newCells = self._grid.cellIndices(particles.positions)
        moved = np.flatnonzero(oldCells != newCells)

        if len(moved) > 0:
            self._grid.moveParticles(moved, oldCells[moved], newCells[moved])
            particles.cellIndices = newCells

        return len(moved)

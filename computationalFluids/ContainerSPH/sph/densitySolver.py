# -- SPH Density Solver -- #

'''
Corrected density and pressure estimate for every particle.

For each particle i, over neighbors j (self included) with r^2 < h^2:

    raw_i        = sum_j W(r_ij^2) * m_j
    correction_i = sum_j W(r_ij^2) * m_j / rho_j(previous step)
    rho_i        = raw_i / correction_i
    V_i          = m_i / rho_i
    p_i          = raw_i / rho_0 - 1

Dividing by the correction sum (a Shepard normalization) compensates
for the truncated kernel support near the free surface and the
container walls. Pressure follows a linear equation of state on the
uncorrected sum, so it responds to compression and can go negative
where the fluid is sparse, pulling particles together.

All sums are scatter-adds over the directed neighbor pair list, so
every particle is written only from its own pairs.
'''

from __future__ import annotations

import numpy as np

from computationalFluids.ContainerSPH.sph.kernels import KernelSet
from computationalFluids.ContainerSPH.sph.particles import ParticleStore


class DensitySolver:
    '''
    Per-particle corrected density, volume, and pressure.

    Parameters:
    -----------
    kernels : KernelSet
        Precomputed smoothing kernels
    restDensity : float
        Rest density rho_0 [kg/m^3]
    '''

    def __init__(self, kernels: KernelSet, restDensity: float) -> None:
        self._kernels = kernels
        self._restDensity = restDensity

    def equationOfState(self, density: np.ndarray) -> np.ndarray:
        '''Linear equation of state p = rho / rho_0 - 1.'''
        return density / self._restDensity - 1.0

    def compute(
        self,
        particles: ParticleStore,
        pairs: tuple[np.ndarray, np.ndarray],
    ) -> None:
        '''
        Update densities, volumes, and pressures in place.

        Parameters:
        -----------
        particles : ParticleStore
            Particle state; densities from the previous step are read
            for the correction sum before being overwritten
        pairs : tuple[np.ndarray, np.ndarray]
            Directed (i, j) neighbor pairs with r^2 < h^2, self pairs
            included
        '''
        iIdx, jIdx = pairs
        nParticles = particles.nParticles

        dr = particles.positions[iIdx] - particles.positions[jIdx]
        r2 = np.einsum('ij,ij->i', dr, dr)

        kernelMass = self._kernels.densityBatch(r2) * particles.masses[jIdx]
        previousDensity = particles.densities

        raw = np.bincount(iIdx, weights=kernelMass, minlength=nParticles)
        correction = np.bincount(
            iIdx, weights=kernelMass / previousDensity[jIdx], minlength=nParticles,
        )

        # Isolated particles (no contributions at all) fall back to rho_0
        valid = correction > 0.0
        safeCorrection = np.where(valid, correction, 1.0)
        density = np.where(valid, raw / safeCorrection, self._restDensity)

        particles.densities = density
        particles.volumes = particles.masses / density
        particles.pressures = np.where(valid, self.equationOfState(raw), 0.0)

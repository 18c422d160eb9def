# -- SPH Force Solver -- #

'''
Pressure, viscosity, and surface tension forces converted to accelerations.

For each particle i, over neighbors j with r^2 < h^2 (d = x_i - x_j):

    F_pressure  -= d * Wp(r) * (p_i + p_j) / 2 * V_j
    F_viscosity += (v_j - v_i) * Wv(r) * V_j
    F_tension   += d * W(r^2)                  (m_j / m_i folded to 1)
    correction  += W(r^2) * V_j

Each force is then scaled by its uniform coefficient over the
correction sum, and

    a_i = (F_viscosity - F_pressure - F_tension) / rho_i + g_local

The tension term assumes every particle has the same mass. Particles
with no contributing neighbor keep a zero SPH force and only feel
gravity.
'''

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from computationalFluids.ContainerSPH.sph.kernels import KernelSet
from computationalFluids.ContainerSPH.sph.particles import ParticleStore


@dataclass
class ForceTerms:
    '''
    Normalized per-particle force components of the last pass.

    Parameters:
    -----------
    pressure : np.ndarray
        Pressure force F_pressure, shape (N, 3)
    viscosity : np.ndarray
        Viscosity force, shape (N, 3)
    tension : np.ndarray
        Surface tension force, shape (N, 3)
    correction : np.ndarray
        Kernel-weighted neighbor volume sum, shape (N,)
    '''

    pressure: np.ndarray
    viscosity: np.ndarray
    tension: np.ndarray
    correction: np.ndarray


class ForceSolver:
    '''
    Per-particle SPH force accumulation.

    Parameters:
    -----------
    kernels : KernelSet
        Precomputed smoothing kernels
    viscosity : float
        Viscosity coefficient
    pressure : float
        Pressure coefficient
    surfaceTension : float
        Surface tension coefficient
    '''

    def __init__(
        self,
        kernels: KernelSet,
        viscosity: float,
        pressure: float,
        surfaceTension: float,
    ) -> None:
        self._kernels = kernels
        self._viscosity = viscosity
        self._pressure = pressure
        self._surfaceTension = surfaceTension

    def compute(
        self,
        particles: ParticleStore,
        pairs: tuple[np.ndarray, np.ndarray],
        gravity: np.ndarray,
    ) -> ForceTerms:
        '''
        Accumulate forces and store accelerations in place.

        Densities, volumes, and pressures must already be final for
        this step.

        Parameters:
        -----------
        particles : ParticleStore
            Particle state
        pairs : tuple[np.ndarray, np.ndarray]
            Directed (i, j) neighbor pairs with r^2 < h^2
        gravity : np.ndarray
            Gravity in the system's local frame [m/s^2]

        Returns:
        --------
        ForceTerms : Normalized force components
        '''
        iIdx, jIdx = pairs
        nParticles = particles.nParticles
        kernels = self._kernels

        difference = particles.positions[iIdx] - particles.positions[jIdx]
        r2 = np.einsum('ij,ij->i', difference, difference)
        r = np.sqrt(r2)

        volume = particles.volumes[jIdx]
        meanPressure = 0.5 * (particles.pressures[jIdx] + particles.pressures[iIdx])
        kernelRR = kernels.densityBatch(r2)

        # --- Pair contributions --- #
        pressureContrib = -difference * (kernels.pressureBatch(r) * meanPressure * volume)[:, np.newaxis]
        viscosityContrib = (
            (particles.velocities[jIdx] - particles.velocities[iIdx])
            * (kernels.viscosityBatch(r) * volume)[:, np.newaxis]
        )
        tensionContrib = difference * kernelRR[:, np.newaxis]

        pressureForce = np.zeros((nParticles, 3))
        viscosityForce = np.zeros((nParticles, 3))
        tensionForce = np.zeros((nParticles, 3))
        np.add.at(pressureForce, iIdx, pressureContrib)
        np.add.at(viscosityForce, iIdx, viscosityContrib)
        np.add.at(tensionForce, iIdx, tensionContrib)
        correction = np.bincount(iIdx, weights=kernelRR * volume, minlength=nParticles)

        # --- Normalize and apply uniform coefficients --- #
        valid = correction > 0.0
        inverseCorrection = np.where(valid, 1.0 / np.where(valid, correction, 1.0), 0.0)
        pressureForce *= (self._pressure * inverseCorrection)[:, np.newaxis]
        viscosityForce *= (self._viscosity * inverseCorrection)[:, np.newaxis]
        tensionForce *= (self._surfaceTension * inverseCorrection)[:, np.newaxis]

        total = viscosityForce - pressureForce - tensionForce
        particles.accelerations = total / particles.densities[:, np.newaxis] + np.asarray(gravity, dtype=float)

        return ForceTerms(
            pressure=pressureForce,
            viscosity=viscosityForce,
            tension=tensionForce,
            correction=correction,
        )

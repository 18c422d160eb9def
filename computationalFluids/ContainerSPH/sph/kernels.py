# -- SPH Smoothing Kernels -- #

'''
Smoothing kernels for the container SPH engine.

Implements the three polynomial kernels of Mueller et al. (2003) with
coefficients precomputed from the smoothing radius h:

    poly6 (density)           W(r^2)  = 315 / (64 pi h^9) * (h^2 - r^2)^3
    poly6 gradient term       dW      = -3 * coeffPoly6 * (h^2 - r^2)^2
    spiky (pressure gradient) Wp(r)   = 45 / (pi h^6) * (h - r)^2 / r
    viscosity (Laplacian)     Wv(r)   = 45 / (pi h^6) * (h - r)

The kernels are only valid inside the support (r^2 < h^2). Callers
gate on the squared distance before evaluating them.

References:
-----------
Mueller, Charypar & Gross (2003) -- Particle-Based Fluid Simulation
    for Interactive Applications
'''

from __future__ import annotations

import math

import numpy as np


class KernelSet:
    '''
    Precomputed poly6 / spiky / viscosity kernels for one smoothing radius.

    Parameters:
    -----------
    smoothingRadius : float
        Kernel support radius h [m], must be positive
    '''

    def __init__(self, smoothingRadius: float) -> None:
        if not smoothingRadius > 0.0:
            raise ValueError(f'smoothingRadius must be positive, got {smoothingRadius}')

        h = float(smoothingRadius)
        h2 = h * h
        h6 = h2 * h2 * h2
        h9 = h6 * h2 * h

        self._h = h
        self._h2 = h2
        self._coeffPoly6 = 315.0 / (64.0 * math.pi * h9)
        self._coeffSpiky = 45.0 / (math.pi * h6)
        self._coeffVisc = 45.0 / (math.pi * h6)

    @property
    def smoothingRadius(self) -> float:
        '''Support radius h [m].'''
        return self._h

    @property
    def smoothingRadiusSq(self) -> float:
        '''Squared support radius h^2 [m^2].'''
        return self._h2

    @property
    def coeffPoly6(self) -> float:
        return self._coeffPoly6

    @property
    def coeffSpiky(self) -> float:
        return self._coeffSpiky

    @property
    def coeffVisc(self) -> float:
        return self._coeffVisc

    ######################################################################
    # -- Scalar Evaluation -- #
    ######################################################################

    def density(self, r2: float) -> float:
        '''
        Poly6 density kernel W(r^2).

        Parameters:
        -----------
        r2 : float
            Squared distance, r2 < h^2 [m^2]

        Returns:
        --------
        float : Kernel value [1/m^3]
        '''
        diff = self._h2 - r2
        return self._coeffPoly6 * diff * diff * diff

    def densityGradient(self, r2: float) -> float:
        '''
        Derivative of the poly6 kernel with respect to r^2.

        Multiply by d(r^2)/dx = 2 * (x_i - x_j) to get the spatial
        gradient component along x.
        '''
        diff = self._h2 - r2
        return -3.0 * self._coeffPoly6 * diff * diff

    def pressure(self, r: float) -> float:
        '''
        Spiky gradient magnitude divided by r.

        Returns 0 at r = 0 where the direction is undefined.
        '''
        if r == 0.0:
            return 0.0
        diff = self._h - r
        return self._coeffSpiky * diff * diff / r

    def viscosity(self, r: float) -> float:
        '''Viscosity kernel Laplacian Wv(r).'''
        return self._coeffVisc * (self._h - r)

    ######################################################################
    # -- Vectorized (Batch) Operations -- #
    ######################################################################

    def densityBatch(self, r2: np.ndarray) -> np.ndarray:
        '''Poly6 kernel for an array of squared distances, shape (N,).'''
        diff = self._h2 - r2
        return self._coeffPoly6 * diff * diff * diff

    def densityGradientBatch(self, r2: np.ndarray) -> np.ndarray:
        '''Poly6 d/d(r^2) term for an array of squared distances.'''
        diff = self._h2 - r2
        return -3.0 * self._coeffPoly6 * diff * diff

    def pressureBatch(self, r: np.ndarray) -> np.ndarray:
        '''
        Spiky gradient term for an array of distances.

        Zero-distance entries (self pairs) evaluate to 0.
        '''
        r = np.asarray(r, dtype=float)
        safeR = np.where(r > 0.0, r, 1.0)
        diff = self._h - r
        return np.where(r > 0.0, self._coeffSpiky * diff * diff / safeR, 0.0)

    def viscosityBatch(self, r: np.ndarray) -> np.ndarray:
        '''Viscosity kernel for an array of distances.'''
        return self._coeffVisc * (self._h - r)

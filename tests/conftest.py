# -- Shared Test Fixtures -- #

'''
Fixtures shared by the container SPH tests.
'''

from __future__ import annotations

import numpy as np
import pytest

from computationalFluids.ContainerSPH.geometry.containers import BoxContainer
from computationalFluids.ContainerSPH.sph.fluidSystem import SphFluidSystem
from computationalFluids.ContainerSPH.sph.particles import ParticleStore
from computationalFluids.ContainerSPH.sph.protocols import SphConfig


@pytest.fixture
def unitBox() -> BoxContainer:
    '''Unit cube centered at the origin.'''
    return BoxContainer.fromSize(np.ones(3))


@pytest.fixture
def makeSystem(unitBox):
    '''
    Factory for a fluid system with explicit particles.

    Usage:
        system = makeSystem([[0, 0, 0]], mass=1.0, gravity=[0, 0, 0])
    '''

    def _make(
        positions,
        mass: float = 1.0,
        container=None,
        gravity=None,
        **configOverrides,
    ) -> SphFluidSystem:
        config = SphConfig(
            gravity=np.array([0.0, -9.8, 0.0]) if gravity is None else np.asarray(gravity, dtype=float),
            **configOverrides,
        )
        particles = ParticleStore.create(np.asarray(positions, dtype=float), mass, config.restDensity)
        return SphFluidSystem(container or unitBox, config, particles=particles)

    return _make

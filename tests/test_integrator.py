# -- Integration and Collision Tests -- #

'''
Symplectic Euler stepping, swept wall collisions, and grid
re-bucketing through the full fluid system.
'''

from __future__ import annotations

import numpy as np
import pytest

from computationalFluids.ContainerSPH import constants as const
from computationalFluids.ContainerSPH.geometry.containers import BoxContainer, SphereContainer
from computationalFluids.ContainerSPH.sph.fluidSystem import SphFluidSystem
from computationalFluids.ContainerSPH.sph.particles import ParticleStore
from computationalFluids.ContainerSPH.sph.protocols import SphConfig


def testSingleParticleFreeFall(makeSystem):
    '''One step of an isolated particle is pure gravity.'''
    system = makeSystem([[0.0, 0.0, 0.0]], maxTimeStep=0.01)
    system.advance(0.01)

    p = system.particles
    np.testing.assert_allclose(p.velocities[0], [0.0, -0.098, 0.0], atol=1e-12)
    np.testing.assert_allclose(p.positions[0], [0.0, -0.00098, 0.0], atol=1e-12)


def testTimeStepClamp(makeSystem):
    system = makeSystem([[0.0, 0.0, 0.0]], maxTimeStep=0.005)

    system.advance(1.0)
    assert system.currentState.dt == pytest.approx(0.005)
    assert system.time == pytest.approx(0.005)

    # Negative elapsed time clamps to zero: nothing moves
    before = system.particles.positions.copy()
    velocities = system.particles.velocities.copy()
    system.advance(-0.1)
    assert system.currentState.dt == 0.0
    np.testing.assert_array_equal(system.particles.positions, before)
    np.testing.assert_array_equal(system.particles.velocities, velocities)


def testFloorCollisionSlides(makeSystem):
    '''A particle driven into the floor stops on it and keeps sliding.'''
    system = makeSystem([[0.0, -0.4999, 0.0]], gravity=[0.0, 0.0, 0.0])
    system.particles.velocities[0] = [0.1, -1.0, 0.0]

    system.advance(0.01)

    p = system.particles
    bias = system.integrator.bias
    np.testing.assert_allclose(p.positions[0], [0.001, -0.5 + bias, 0.0], atol=1e-12)
    np.testing.assert_allclose(p.velocities[0], [0.1, 0.0, 0.0], atol=1e-12)


def testCornerCollisionStaysInside(makeSystem):
    '''A particle fired into a corner ends inside with no outward velocity.'''
    system = makeSystem([[0.49, 0.49, 0.0]], gravity=[0.0, 0.0, 0.0])
    system.particles.velocities[0] = [3.0, 2.0, 0.0]

    system.advance(0.01)

    p = system.particles
    assert system.container.contains(p.positions)[0]
    assert p.velocities[0, 0] <= 0.0 + 1e-12
    assert p.velocities[0, 1] <= 0.0 + 1e-12


def testZeroDisplacementDoesNotMove(makeSystem):
    system = makeSystem([[0.1, 0.2, 0.3]], gravity=[0.0, 0.0, 0.0])
    system.advance(0.01)
    np.testing.assert_allclose(system.particles.positions[0], [0.1, 0.2, 0.3])


def testSphereCollisionNormalVelocityRemoved():
    sphere = SphereContainer(np.zeros(3), 0.5)
    particles = ParticleStore.create([[0.0, 0.0, 0.0]], 1.0, const.restDensity)
    system = SphFluidSystem(sphere, SphConfig(gravity=np.zeros(3)), particles=particles)
    system.particles.velocities[0] = [100.0, 0.0, 0.0]

    system.advance(0.01)

    p = system.particles
    assert np.linalg.norm(p.positions[0]) == pytest.approx(0.5 - system.integrator.bias, abs=1e-9)
    np.testing.assert_allclose(p.velocities[0], 0.0, atol=1e-9)


def testParticlesStayInsideBox():
    box = BoxContainer.fromSize(np.array([0.6, 0.6, 0.6]))
    config = SphConfig(nParticles=200, totalVolume=0.05, cellCounts=(7, 7, 7), seed=11)
    system = SphFluidSystem(box, config)

    for _ in range(30):
        system.advance(0.01)

    positions = system.particles.positions
    assert np.all(np.isfinite(positions))
    assert np.all(box.contains(positions))


def testParticlesStayInsideSphere():
    sphere = SphereContainer(np.zeros(3), 0.4)
    config = SphConfig(nParticles=200, totalVolume=0.05, cellCounts=(9, 9, 9), seed=5)
    system = SphFluidSystem(sphere, config)

    for _ in range(30):
        system.advance(0.01)

    radii = np.linalg.norm(system.particles.positions, axis=1)
    assert np.all(radii <= 0.4 + 1e-9)


def testGridStaysConsistent():
    box = BoxContainer.fromSize(np.array([0.6, 0.6, 0.6]))
    config = SphConfig(nParticles=150, totalVolume=0.05, cellCounts=(7, 7, 7), seed=2)
    system = SphFluidSystem(box, config)
    assert system.isGridConsistent()

    totalMoves = 0
    for _ in range(20):
        system.advance(0.01)
        totalMoves += system.currentState.nCellChanges
        assert system.isGridConsistent()
        np.testing.assert_array_equal(
            system.particles.cellIndices,
            system.grid.cellIndices(system.particles.positions),
        )

    assert totalMoves > 0


def testResetVelocities(makeSystem):
    system = makeSystem([[0.0, 0.0, 0.0], [0.2, 0.0, 0.0]])
    system.advance(0.01)
    assert system.currentState.kineticEnergy > 0.0

    system.resetVelocities()
    assert system.currentState.kineticEnergy == 0.0
    assert system.currentState.maxVelocity == 0.0


def testTiltedGravity(makeSystem):
    '''A tank rolled 90 degrees about z feels gravity along local -x.'''
    from computationalFluids.ContainerSPH.geometry.transforms import placementTransform

    system = makeSystem([[0.0, 0.0, 0.0]])
    system.transform = placementTransform(eulerDeg=np.array([0.0, 0.0, 90.0]))

    np.testing.assert_allclose(system.localGravity(), [-const.gravity, 0.0, 0.0], atol=1e-12)

    system.advance(0.01)
    assert system.particles.velocities[0, 0] < 0.0
    assert system.particles.velocities[0, 1] == pytest.approx(0.0, abs=1e-12)

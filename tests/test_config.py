# -- Configuration, Transform, and Scenario Tests -- #

'''
SphConfig validation and JSON loading, placement transforms, and
tank scenario construction.
'''

from __future__ import annotations

import json
import math

import numpy as np
import pytest

from computationalFluids.ContainerSPH.geometry.containers import BoxContainer
from computationalFluids.ContainerSPH.geometry.transforms import (
    inflateBoundingBox,
    mapVector,
    placementTransform,
    worldToLocalDirection,
)
from computationalFluids.ContainerSPH.scenarios.tankScenario import (
    TankScenarioConfig,
    createTankScenario,
    gridCounts,
    tankSummary,
)
from computationalFluids.ContainerSPH.sph.fluidSystem import SphFluidSystem
from computationalFluids.ContainerSPH.sph.particles import ParticleStore
from computationalFluids.ContainerSPH.sph.protocols import SphConfig


######################################################################
# -- SphConfig -- #
######################################################################

def testDefaultConfigIsValid():
    config = SphConfig()
    config.validate()

    assert config.particleMass == pytest.approx(config.totalVolume * config.restDensity / config.nParticles)
    assert config.smoothingRadiusSq == pytest.approx(config.smoothingRadius ** 2)


@pytest.mark.parametrize('overrides', [
    {'smoothingRadius': 0.0},
    {'nParticles': 0},
    {'restDensity': -1.0},
    {'totalVolume': 0.0},
    {'maxTimeStep': 0.0},
    {'cellCounts': (0, 4, 4)},
    {'cubeCounts': (4, 4)},
    {'gravity': np.zeros(2)},
])
def testInvalidConfigRaises(overrides):
    with pytest.raises(ValueError):
        SphConfig(**overrides).validate()


def testSystemRejectsInvalidConfig(unitBox):
    with pytest.raises(ValueError):
        SphFluidSystem(unitBox, SphConfig(nParticles=0))


def testSystemRejectsCellsSmallerThanRadius(unitBox):
    '''Cells narrower than h would break the 27-cell neighbor search.'''
    with pytest.raises(ValueError, match='smaller than the smoothing'):
        SphFluidSystem(unitBox, SphConfig(cellCounts=(20, 20, 20), nParticles=10, seed=0))


def testSystemDoesNotMutateConfig():
    config = SphConfig(nParticles=500)
    particles = ParticleStore.create(np.zeros((3, 3)), 1.0, config.restDensity)
    system = SphFluidSystem(BoxContainer.fromSize(np.ones(3)), config, particles=particles)

    assert config.nParticles == 500
    assert system.config.nParticles == 3


def testSeededPlacementIsReproducible(unitBox):
    first = SphFluidSystem(unitBox, SphConfig(nParticles=50, seed=42))
    second = SphFluidSystem(unitBox, SphConfig(nParticles=50, seed=42))

    np.testing.assert_array_equal(first.particles.positions, second.particles.positions)
    assert np.all(unitBox.contains(first.particles.positions))
    np.testing.assert_allclose(first.particles.masses, 0.3 * 1000.0 / 50)


def testConfigFromJson(tmp_path):
    path = tmp_path / 'fluid.json'
    path.write_text(json.dumps({
        'sph': {'smoothingRadius': 0.05, 'nParticles': 64, 'seed': 3},
        'fluid': {'restDensity': 998.0, 'gravity': 3.7},
        'grid': {'cellCounts': [4, 5, 6]},
    }))

    config = SphConfig.fromJson(str(path))

    assert config.smoothingRadius == 0.05
    assert config.nParticles == 64
    assert config.seed == 3
    assert config.restDensity == 998.0
    assert config.cellCounts == (4, 5, 6)
    np.testing.assert_allclose(config.gravity, [0.0, -3.7, 0.0])
    # Unspecified values keep their defaults
    assert config.viscosity == SphConfig().viscosity


def testConfigToDictRoundTrip():
    config = SphConfig(nParticles=12, gravity=np.array([1.0, -2.0, 0.5]))
    data = config.toDict()

    json.dumps(data)
    loaded = SphConfig.fromDict({'sph': data, 'fluid': data, 'grid': data})
    assert loaded.nParticles == 12
    np.testing.assert_allclose(loaded.gravity, [1.0, -2.0, 0.5])


######################################################################
# -- Transforms -- #
######################################################################

def testPlacementTransform():
    transform = placementTransform(
        translation=np.array([1.0, 2.0, 3.0]),
        eulerDeg=np.array([0.0, 0.0, 90.0]),
        scale=2.0,
    )

    np.testing.assert_allclose(transform[:3, 3], [1.0, 2.0, 3.0])
    np.testing.assert_allclose(transform[3], [0.0, 0.0, 0.0, 1.0])
    # Direction mapping ignores translation
    np.testing.assert_allclose(mapVector(transform, np.array([1.0, 0.0, 0.0])), [0.0, 2.0, 0.0], atol=1e-12)


def testWorldToLocalInvertsMapVector():
    transform = placementTransform(eulerDeg=np.array([20.0, -35.0, 60.0]), scale=1.5)
    vector = np.array([0.3, -9.8, 1.2])

    local = worldToLocalDirection(transform, vector)
    np.testing.assert_allclose(mapVector(transform, local), vector, atol=1e-12)


def testSingularTransformRaises():
    with pytest.raises(ValueError):
        worldToLocalDirection(placementTransform(scale=0.0), np.array([0.0, -9.8, 0.0]))


def testInflateBoundingBox():
    lo, hi = inflateBoundingBox(np.array([0.0, 0.0, 0.0]), np.array([1.0, 2.0, 4.0]), 1.2)

    np.testing.assert_allclose(lo, [-0.1, -0.2, -0.4])
    np.testing.assert_allclose(hi, [1.1, 2.2, 4.4])


######################################################################
# -- Tank Scenario -- #
######################################################################

def testGridCountsKeepCellsAtLeastH():
    for extent in [0.3, 0.72, 1.2, 1.0, 0.05]:
        counts = gridCounts(np.zeros(3), np.full(3, extent), 0.1)
        cellSize = extent / np.asarray(counts)
        assert min(counts) >= 1
        assert np.all((cellSize >= 0.1) | (np.asarray(counts) == 1))


def testSmallScenario():
    tankConfig = TankScenarioConfig.small()
    scenario = createTankScenario(tankConfig)
    system = scenario.system
    config = system.config

    assert config.totalVolume == pytest.approx(tankConfig.fillRatio * 0.6 ** 3)
    assert config.nParticles == 500
    assert np.all(system.grid.cellSize >= config.smoothingRadius)
    assert tuple(config.cubeCounts) == tuple(2 * c for c in config.cellCounts)
    assert system.isGridConsistent()

    summary = tankSummary(scenario)
    assert summary['containerType'] == 'box'
    assert summary['particleMass'] == pytest.approx(config.particleMass)


def testTiltedScenarioGravity():
    tankConfig = TankScenarioConfig.small()
    tankConfig.tiltDeg = (0.0, 0.0, 30.0)
    system = createTankScenario(tankConfig).system

    gravity = system.localGravity()
    assert np.linalg.norm(gravity) == pytest.approx(9.8)
    np.testing.assert_allclose(gravity, [-9.8 * math.sin(math.radians(30.0)), -9.8 * math.cos(math.radians(30.0)), 0.0], atol=1e-9)


def testSphereScenario():
    scenario = createTankScenario(TankScenarioConfig.sphere())
    config = scenario.system.config

    assert config.totalVolume == pytest.approx(0.5 * 4.0 / 3.0 * math.pi * 0.5 ** 3)
    assert np.all(np.linalg.norm(scenario.system.particles.positions, axis=1) <= 0.5)


def testScenarioFromJson(tmp_path):
    path = tmp_path / 'tank.json'
    path.write_text(json.dumps({
        'tank': {'type': 'box', 'size': [0.5, 0.4, 0.4], 'fillRatio': 0.5, 'tiltDeg': [5.0, 0.0, 0.0]},
        'sph': {'smoothingRadius': 0.1, 'nParticles': 100, 'seed': 1},
    }))

    tankConfig = TankScenarioConfig.fromJson(str(path))
    assert tankConfig.tankSize == (0.5, 0.4, 0.4)
    assert tankConfig.tiltDeg == (5.0, 0.0, 0.0)

    scenario = createTankScenario(tankConfig)
    assert scenario.system.config.totalVolume == pytest.approx(0.5 * 0.5 * 0.4 * 0.4)


def testScenarioErrors():
    with pytest.raises(ValueError):
        createTankScenario(TankScenarioConfig(containerType='cylinder'))
    with pytest.raises(ValueError):
        createTankScenario(TankScenarioConfig(containerType='mesh'))
    with pytest.raises(ValueError):
        createTankScenario(TankScenarioConfig(fillRatio=0.0))

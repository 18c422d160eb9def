# -- Tank Scenario -- #

'''
Fluid poured into a closed tank of configurable shape.

Builds a container (box, sphere, or mesh file), sizes the neighbor
grid so every cell is at least one smoothing radius wide, derives the
fluid volume from a fill ratio, and returns a ready-to-step
SphFluidSystem. An optional tilt places the tank rotated in the world,
so world gravity pulls across the container's local axes.

The scenario creates:
1. A container geometry in the tank's local frame
2. An SphConfig with grid and meshing lattice counts matched to h
3. A fluid system with particles scattered through the interior
'''

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, replace

import numpy as np

from computationalFluids.ContainerSPH import constants as const
from computationalFluids.ContainerSPH.geometry.containers import BoxContainer, MeshContainer, SphereContainer
from computationalFluids.ContainerSPH.geometry.transforms import inflateBoundingBox, placementTransform
from computationalFluids.ContainerSPH.sph.fluidSystem import SphFluidSystem
from computationalFluids.ContainerSPH.sph.protocols import BatchContainerGeometry, SphConfig


######################################################################
# -- Tank Scenario Configuration -- #
######################################################################

@dataclass
class TankScenarioConfig:
    '''
    Configuration for a tank scenario.

    Parameters:
    -----------
    containerType : str
        'box', 'sphere', or 'mesh'
    tankSize : tuple[float, float, float]
        Box edge lengths [m] (containerType='box')
    sphereRadius : float
        Sphere radius [m] (containerType='sphere')
    meshPath : str | None
        Mesh file path (containerType='mesh')
    fillRatio : float
        Fluid volume as a fraction of the container volume
    tiltDeg : tuple[float, float, float]
        Extrinsic x-y-z tilt of the tank in the world [degrees]
    cubesPerCell : int
        Meshing lattice resolution relative to the neighbor grid
    sph : SphConfig
        SPH parameters; cellCounts, cubeCounts and totalVolume are
        overwritten from the tank geometry
    '''

    containerType: str = 'box'
    tankSize: tuple[float, float, float] = (1.0, 1.0, 1.0)
    sphereRadius: float = 0.5
    meshPath: str | None = None
    fillRatio: float = 0.3
    tiltDeg: tuple[float, float, float] = (0.0, 0.0, 0.0)
    cubesPerCell: int = 2
    sph: SphConfig = field(default_factory=SphConfig)

    @classmethod
    def small(cls) -> TankScenarioConfig:
        '''
        Small box tank for quick testing.

        ~500 particles, a few milliseconds per step.
        '''
        return cls(
            containerType='box',
            tankSize=(0.6, 0.6, 0.6),
            fillRatio=0.3,
            sph=SphConfig(nParticles=500, smoothingRadius=0.1, seed=0),
        )

    @classmethod
    def standard(cls) -> TankScenarioConfig:
        '''
        Standard unit box tank, tilted 10 degrees about z.

        ~3000 particles.
        '''
        return cls(
            containerType='box',
            tankSize=(1.0, 1.0, 1.0),
            fillRatio=0.3,
            tiltDeg=(0.0, 0.0, 10.0),
            sph=SphConfig(nParticles=3000, smoothingRadius=0.08, seed=0),
        )

    @classmethod
    def sphere(cls) -> TankScenarioConfig:
        '''Half-filled spherical bowl.'''
        return cls(
            containerType='sphere',
            sphereRadius=0.5,
            fillRatio=0.5,
            sph=SphConfig(nParticles=1500, smoothingRadius=0.09, seed=0),
        )

    @classmethod
    def fromJson(cls, configPath: str) -> TankScenarioConfig:
        '''
        Load a scenario from a JSON file.

        Reads the 'tank' section for the container and hands the
        'sph', 'fluid', and 'grid' sections to SphConfig.

        Parameters:
        -----------
        configPath : str
            Path to the JSON configuration file

        Returns:
        --------
        TankScenarioConfig : Loaded scenario
        '''
        with open(configPath, 'r') as f:
            data = json.load(f)

        tankSection = data.get('tank', {})
        defaults = cls()

        return cls(
            containerType=tankSection.get('type', defaults.containerType),
            tankSize=tuple(tankSection.get('size', defaults.tankSize)),
            sphereRadius=tankSection.get('radius', defaults.sphereRadius),
            meshPath=tankSection.get('meshPath', defaults.meshPath),
            fillRatio=tankSection.get('fillRatio', defaults.fillRatio),
            tiltDeg=tuple(tankSection.get('tiltDeg', defaults.tiltDeg)),
            cubesPerCell=tankSection.get('cubesPerCell', defaults.cubesPerCell),
            sph=SphConfig.fromDict(data),
        )


@dataclass
class TankScenario:
    '''
    Result of building a tank scenario.

    Parameters:
    -----------
    config : TankScenarioConfig
        Scenario configuration
    container : BatchContainerGeometry
        Tank geometry in the local frame
    system : SphFluidSystem
        Fluid system ready to advance
    '''

    config: TankScenarioConfig
    container: BatchContainerGeometry
    system: SphFluidSystem


######################################################################
# -- Scenario Creation -- #
######################################################################

def createContainer(tankConfig: TankScenarioConfig) -> BatchContainerGeometry:
    '''
    Build the tank geometry centered at the local origin.

    Raises:
    -------
    ValueError : If the container type is unknown or a mesh path is missing
    '''
    if tankConfig.containerType == 'box':
        return BoxContainer.fromSize(np.asarray(tankConfig.tankSize, dtype=float))
    elif tankConfig.containerType == 'sphere':
        return SphereContainer(np.zeros(3), tankConfig.sphereRadius)
    elif tankConfig.containerType == 'mesh':
        if not tankConfig.meshPath:
            raise ValueError('containerType "mesh" requires meshPath')
        return MeshContainer(tankConfig.meshPath)
    else:
        raise ValueError(f'Unknown container type: {tankConfig.containerType}')


def gridCounts(
    boundsMin: np.ndarray,
    boundsMax: np.ndarray,
    smoothingRadius: float,
) -> tuple[int, int, int]:
    '''
    Largest per-axis cell counts whose cells are still >= h wide.
    '''
    extent = np.asarray(boundsMax, dtype=float) - np.asarray(boundsMin, dtype=float)
    counts = np.maximum(np.floor(extent / smoothingRadius), 1).astype(int)

    # floor() can round up at an exact multiple of h
    tooSmall = (extent / counts < smoothingRadius) & (counts > 1)
    counts[tooSmall] -= 1

    return (int(counts[0]), int(counts[1]), int(counts[2]))


def createTankScenario(tankConfig: TankScenarioConfig) -> TankScenario:
    '''
    Create a tank simulation from configuration.

    Parameters:
    -----------
    tankConfig : TankScenarioConfig
        Scenario configuration

    Returns:
    --------
    TankScenario : Container and fluid system ready to run
    '''
    if not 0.0 < tankConfig.fillRatio <= 1.0:
        raise ValueError(f'fillRatio must be in (0, 1], got {tankConfig.fillRatio}')

    container = createContainer(tankConfig)

    boundsMin, boundsMax = inflateBoundingBox(
        *container.boundingBox(), const.boundingBoxInflation,
    )
    cellCounts = gridCounts(boundsMin, boundsMax, tankConfig.sph.smoothingRadius)
    cubeCounts = tuple(c * tankConfig.cubesPerCell for c in cellCounts)

    sphConfig = replace(
        tankConfig.sph,
        cellCounts=cellCounts,
        cubeCounts=cubeCounts,
        totalVolume=tankConfig.fillRatio * container.volume(),
    )

    transform = placementTransform(eulerDeg=np.asarray(tankConfig.tiltDeg, dtype=float))
    system = SphFluidSystem(container, sphConfig, transform=transform)

    return TankScenario(config=tankConfig, container=container, system=system)


def tankSummary(scenario: TankScenario) -> dict:
    '''Key numbers of a built scenario, for console reports and export metadata.'''
    system = scenario.system
    config = system.config
    particleSpacing = (config.totalVolume / config.nParticles) ** (1.0 / 3.0)

    return {
        'containerType': scenario.config.containerType,
        'nParticles': config.nParticles,
        'smoothingRadius': config.smoothingRadius,
        'particleMass': config.particleMass,
        'totalVolume': config.totalVolume,
        'particleSpacing': particleSpacing,
        'neighborsPerParticle': 4.0 / 3.0 * math.pi * config.smoothingRadius ** 3 / particleSpacing ** 3,
        'cellCounts': list(config.cellCounts),
        'cubeCounts': list(config.cubeCounts),
        'tiltDeg': list(scenario.config.tiltDeg),
    }

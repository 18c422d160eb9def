# -- ContainerSPH Package -- #

'''
Particle fluid simulation (SPH) inside an arbitrary closed container.

Steps a fixed set of particles through density, force, and swept
collision phases, and exposes a density-based implicit surface for
isosurface extraction by an external mesher.
'''

__version__ = '0.1.0'

from computationalFluids.ContainerSPH.sph.fluidSystem import SphFluidSystem
from computationalFluids.ContainerSPH.sph.protocols import SphConfig, StepState
from computationalFluids.ContainerSPH.geometry.containers import BoxContainer, SphereContainer, MeshContainer
from computationalFluids.ContainerSPH.scenarios.tankScenario import TankScenarioConfig, createTankScenario
from computationalFluids.ContainerSPH.export.frameExporter import FrameExporter

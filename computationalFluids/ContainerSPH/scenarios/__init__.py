# -- Simulation Scenarios Package -- #

'''
Pre-configured container scenarios.

Each scenario builds a container and a matching SphConfig, sizing the
neighbor grid to the smoothing radius.
'''

from computationalFluids.ContainerSPH.scenarios.tankScenario import (
    TankScenarioConfig,
    TankScenario,
    createTankScenario,
)

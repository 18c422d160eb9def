# -- Container SPH Runner -- #

'''
Command-line entry point for running container SPH simulations.

Builds a tank scenario from a preset or JSON configuration, advances
the fluid for a fixed number of steps, displays progress, and
optionally exports frames (and implicit surface samples) for an
external mesher or viewer.

Usage:
    python -m computationalFluids.ContainerSPH                          # Small box tank
    python -m computationalFluids.ContainerSPH --preset sphere --steps 400
    python -m computationalFluids.ContainerSPH --config configs/boxTank.json
    python -m computationalFluids.ContainerSPH --check --no-export      # Verify invariants
'''

from __future__ import annotations

import argparse
import json
import time as timeModule
from dataclasses import replace

import numpy as np

from computationalFluids.ContainerSPH.export.frameExporter import FrameExporter
from computationalFluids.ContainerSPH.scenarios.tankScenario import (
    TankScenarioConfig,
    createTankScenario,
    tankSummary,
)


#--------------------------------------------------------------------#
# -- CLI Argument Parser -- #
#--------------------------------------------------------------------#

def buildParser() -> argparse.ArgumentParser:
    '''Build the CLI argument parser.'''
    parser = argparse.ArgumentParser(
        description='ContainerSPH -- particle fluid in a closed container',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        '--config', type=str, default=None,
        help='Path to JSON configuration file (overrides --preset)',
    )
    parser.add_argument(
        '--preset', type=str, default='small',
        choices=['small', 'standard', 'sphere'],
        help='Scenario preset (default: small)',
    )
    parser.add_argument(
        '--steps', type=int, default=None,
        help='Number of simulation steps (default: 200, or the config value)',
    )
    parser.add_argument(
        '--dt', type=float, default=None,
        help='Requested step size in seconds (default: the configured maximum)',
    )
    parser.add_argument(
        '--seed', type=int, default=None,
        help='Seed for particle placement',
    )
    parser.add_argument(
        '--sample-surface', action='store_true',
        help='Export implicit surface samples with the final frame',
    )
    parser.add_argument(
        '--check', action='store_true',
        help='Verify grid bookkeeping and containment after every step',
    )
    parser.add_argument(
        '--no-export', action='store_true',
        help='Skip frame data export',
    )
    parser.add_argument(
        '--output-dir', type=str, default='output',
        help='Output directory for exported frames (default: output)',
    )

    return parser


#--------------------------------------------------------------------#
# -- Runner Class -- #
#--------------------------------------------------------------------#

class FluidSimRunner:
    '''
    Runs a container SPH simulation and stores results.

    Handles the full pipeline: scenario setup, stepping loop with
    progress reporting, optional invariant checks, and export.

    Parameters:
    -----------
    nSteps : int
        Number of advance() calls
    dt : float | None
        Requested step size [s] (None = configured maximum)
    outputEvery : int
        Record a frame every this many steps
    '''

    def __init__(self, nSteps: int = 200, dt: float | None = None, outputEvery: int = 5) -> None:
        self._nSteps = nSteps
        self._dt = dt
        self._outputEvery = max(1, outputEvery)
        self._exporter: FrameExporter = FrameExporter()

    @property
    def nSteps(self) -> int:
        return self._nSteps

    @nSteps.setter
    def nSteps(self, value: int) -> None:
        self._nSteps = int(value)

    @property
    def dt(self) -> float | None:
        '''Requested step size [s], or None for the configured maximum.'''
        return self._dt

    @dt.setter
    def dt(self, value: float | None) -> None:
        self._dt = value

    @classmethod
    def fromConfig(cls, configPath: str) -> tuple[FluidSimRunner, TankScenarioConfig]:
        '''
        Build a runner and scenario from a JSON configuration file.

        The 'simulation' section sets steps, dt and outputEvery; the
        remaining sections describe the tank and the fluid.

        Parameters:
        -----------
        configPath : str
            Path to the JSON configuration file

        Returns:
        --------
        tuple[FluidSimRunner, TankScenarioConfig] : Runner and scenario
        '''
        with open(configPath, 'r') as f:
            data = json.load(f)

        simSection = data.get('simulation', {})
        runner = cls(
            nSteps=simSection.get('steps', 200),
            dt=simSection.get('dt', None),
            outputEvery=simSection.get('outputEvery', 5),
        )
        return runner, TankScenarioConfig.fromJson(configPath)

    def run(
        self,
        tankConfig: TankScenarioConfig,
        doExport: bool = True,
        exportDir: str = 'output',
        sampleSurface: bool = False,
        checkInvariants: bool = False,
        scenarioName: str = 'tank',
    ) -> dict:
        '''
        Run a tank simulation.

        Parameters:
        -----------
        tankConfig : TankScenarioConfig
            Scenario configuration
        doExport : bool
            Whether to export frame data
        exportDir : str
            Output directory for frame export
        sampleSurface : bool
            Attach a surface-field lattice sample to the final frame
        checkInvariants : bool
            Verify grid consistency and containment after every step
        scenarioName : str
            Scenario name for the export filename

        Returns:
        --------
        dict : Simulation results summary
        '''
        print()
        print('=' * 62)
        print('  CONTAINER SPH -- FLUID IN A CLOSED TANK')
        print('=' * 62)
        print()

        #--------------------------------------------------------------------#
        # Scenario Setup
        #--------------------------------------------------------------------#
        print('-' * 62)
        print('  SCENARIO SETUP')
        print('-' * 62)

        scenario = createTankScenario(tankConfig)
        system = scenario.system
        config = system.config
        summary = tankSummary(scenario)
        dt = config.maxTimeStep if self._dt is None else self._dt

        print(f'  Container:         {summary["containerType"]:>8}')
        print(f'  Fill Ratio:        {tankConfig.fillRatio:8.2f}')
        print(f'  Fluid Volume:      {config.totalVolume:8.4f} m^3')
        print(f'  Particles:         {config.nParticles:8d}')
        print(f'  Particle Mass:     {config.particleMass:8.4f} kg')
        print(f'  Particle Spacing:  {summary["particleSpacing"]:8.4f} m')
        print(f'  Smoothing Radius:  {config.smoothingRadius:8.4f} m')
        print(f'  Neighbors (est):   {summary["neighborsPerParticle"]:8.1f}')
        print(f'  Grid Cells:        {"x".join(str(c) for c in config.cellCounts):>8}')
        print(f'  Tilt:              {"/".join(f"{a:g}" for a in tankConfig.tiltDeg):>8} deg')
        print(f'  Steps:             {self._nSteps:8d}')
        print(f'  Requested dt:      {dt:8.4f} s')
        print()

        # Record initial frame
        self._exporter.addFrame(system.currentState, system.particles)

        #--------------------------------------------------------------------#
        # Simulation Loop
        #--------------------------------------------------------------------#
        print('-' * 62)
        print('  RUNNING SIMULATION')
        print('-' * 62)
        print()
        print(f'  {"Time":>8}  {"Step":>6}  {"MaxVel":>8}  {"DensErr":>8}  {"KE":>10}  {"Moved":>6}')
        print(f'  {"(s)":>8}  {"":>6}  {"(m/s)":>8}  {"(%)":>8}  {"(J)":>10}  {"cells":>6}')
        print('  ' + '-' * 58)

        wallClockStart = timeModule.time()
        printInterval = max(1, self._nSteps // 20)
        nViolations = 0

        for _ in range(self._nSteps):
            system.advance(dt)
            state = system.currentState

            if checkInvariants:
                nViolations += self._checkInvariants(scenario)

            if state.step % self._outputEvery == 0:
                self._exporter.addFrame(state, system.particles)

            if state.step % printInterval == 0:
                print(
                    f'  {state.time:8.4f}  {state.step:6d}  {state.maxVelocity:8.4f}  '
                    f'{state.maxDensityError * 100:8.2f}  {state.kineticEnergy:10.4f}  '
                    f'{state.nCellChanges:6d}'
                )

        wallClockSeconds = timeModule.time() - wallClockStart

        # Final frame
        finalState = system.currentState
        if finalState.step % self._outputEvery != 0:
            self._exporter.addFrame(finalState, system.particles)
        if sampleSurface:
            self._exporter.addSurfaceSample(*system.sampleSurfaceLattice())

        print()
        print(f'  Simulation complete.')
        print(f'  Total steps:       {finalState.step:8d}')
        print(f'  Wall-clock time:   {wallClockSeconds:8.1f} s')
        print(f'  Frames recorded:   {self._exporter.nFrames:8d}')
        if checkInvariants:
            print(f'  Invariant issues:  {nViolations:8d}')
        print()

        #--------------------------------------------------------------------#
        # Export
        #--------------------------------------------------------------------#
        exportPath = None
        if doExport:
            print('-' * 62)
            print('  EXPORTING FRAME DATA')
            print('-' * 62)

            exportPath = self._exporter.export(
                config=config,
                outputDir=exportDir,
                scenarioName=scenarioName,
                metadata={'scenario': summary},
            )
            print(f'  Exported to: {exportPath}')
            print()

        #--------------------------------------------------------------------#
        # Summary
        #--------------------------------------------------------------------#
        print('=' * 62)
        print('  SIMULATION SUMMARY')
        print('=' * 62)
        print(f'  Final KE:          {finalState.kineticEnergy:10.6f} J')
        print(f'  Mean Density:      {finalState.meanDensity:10.2f} kg/m^3')
        print(f'  Max Density Error: {finalState.maxDensityError * 100:8.3f} %')
        print(f'  Max Velocity:      {finalState.maxVelocity:8.4f} m/s')
        print('=' * 62)
        print()

        return {
            'finalState': finalState,
            'wallClockSeconds': wallClockSeconds,
            'nFrames': self._exporter.nFrames,
            'exportPath': exportPath,
            'invariantViolations': nViolations,
        }

    @staticmethod
    def _checkInvariants(scenario) -> int:
        '''Count grid bookkeeping and containment failures after a step.'''
        system = scenario.system
        nIssues = 0

        if not system.isGridConsistent():
            print('  WARNING: grid buckets disagree with stored particle cells')
            nIssues += 1

        outside = FluidSimRunner._outsideContainer(
            scenario.container, system.particles.positions, system.integrator.bias,
        )
        if np.any(outside):
            print(f'  WARNING: {int(np.sum(outside))} particles outside the container')
            nIssues += 1

        return nIssues

    @staticmethod
    def _outsideContainer(container, positions: np.ndarray, slack: float) -> np.ndarray:
        '''
        Mask of particles outside the container by more than slack.

        Particles may rest on the wall, so a point that fails the
        containment test is retried after stepping slack toward the
        center of the container bounds.
        '''
        outside = ~np.asarray(container.contains(positions), dtype=bool)
        if not np.any(outside):
            return outside

        lo, hi = container.boundingBox()
        center = 0.5 * (np.asarray(lo) + np.asarray(hi))
        toCenter = center - positions[outside]
        lengths = np.linalg.norm(toCenter, axis=1, keepdims=True)
        step = np.where(lengths > slack, slack / np.where(lengths > 0.0, lengths, 1.0), 1.0)
        nudged = positions[outside] + toCenter * step

        outside[outside] = ~np.asarray(container.contains(nudged), dtype=bool)
        return outside


#--------------------------------------------------------------------#
# -- CLI Entry Point -- #
#--------------------------------------------------------------------#

def main() -> None:
    '''CLI entry point.'''
    parser = buildParser()
    args = parser.parse_args()

    if args.config:
        runner, tankConfig = FluidSimRunner.fromConfig(args.config)
        scenarioName = tankConfig.containerType
    else:
        presets = {
            'small': TankScenarioConfig.small,
            'standard': TankScenarioConfig.standard,
            'sphere': TankScenarioConfig.sphere,
        }
        tankConfig = presets[args.preset]()
        runner = FluidSimRunner()
        scenarioName = args.preset

    # Command-line values win over config values
    if args.steps is not None:
        runner.nSteps = args.steps
    if args.dt is not None:
        runner.dt = args.dt
    if args.seed is not None:
        tankConfig.sph = replace(tankConfig.sph, seed=args.seed)

    runner.run(
        tankConfig,
        doExport=not args.no_export,
        exportDir=args.output_dir,
        sampleSurface=args.sample_surface,
        checkInvariants=args.check,
        scenarioName=scenarioName,
    )


if __name__ == '__main__':
    main()

# -- Fluid Frame Exporter -- #

'''
Exports container SPH frames as JSON for external meshers and viewers.

Collects particle snapshots during a run, plus optional implicit
surface samples on the meshing lattice, and writes them to a single
JSON file together with the run configuration and a diagnostics
history.
'''

from __future__ import annotations

import json
import os
from datetime import datetime

import numpy as np

from computationalFluids.ContainerSPH.sph.particles import ParticleStore
from computationalFluids.ContainerSPH.sph.protocols import SphConfig, StepState


class FrameExporter:
    '''
    Collects and exports simulation frame data as JSON.

    Usage:
        exporter = FrameExporter()
        # During simulation loop:
        exporter.addFrame(system.currentState, system.particles)
        # Optionally, after a frame:
        exporter.addSurfaceSample(*system.sampleSurfaceLattice())
        # After simulation:
        exporter.export(system.config, outputDir='output')

    Output JSON format:
    {
        "meta": { "type": "containerSph", "nFrames": ..., "created": "...", ... },
        "config": { "smoothingRadius": 0.1, ... },
        "frames": [
            {
                "time": 0.0,
                "step": 0,
                "positions": [[x0, y0, z0], ...],
                "velocityMagnitudes": [v0, ...],
                "densities": [rho0, ...],
                "surface": {            (only where a sample was added)
                    "shape": [nx+1, ny+1, nz+1],
                    "boundsMin": [...], "boundsMax": [...],
                    "values": [...], "normals": [[...], ...]
                }
            },
            ...
        ],
        "energy": {
            "times": [...],
            "kinetic": [...],
            "maxVelocity": [...],
            "densityError": [...]
        }
    }
    '''

    def __init__(self) -> None:
        self._frames: list[dict] = []
        self._history: dict[str, list[float]] = {
            'times': [],
            'kinetic': [],
            'maxVelocity': [],
            'densityError': [],
        }

    @property
    def nFrames(self) -> int:
        '''Number of collected frames.'''
        return len(self._frames)

    def addFrame(self, state: StepState, particles: ParticleStore) -> None:
        '''
        Record a simulation frame.

        Parameters:
        -----------
        state : StepState
            Diagnostics after the step
        particles : ParticleStore
            Current particle state
        '''
        velMagnitudes = np.linalg.norm(particles.velocities, axis=1)

        frame = {
            'time': round(state.time, 6),
            'step': state.step,
            'positions': np.round(particles.positions, 6).tolist(),
            'velocityMagnitudes': np.round(velMagnitudes, 6).tolist(),
            'densities': np.round(particles.densities, 2).tolist(),
        }
        self._frames.append(frame)

        self._history['times'].append(round(state.time, 6))
        self._history['kinetic'].append(round(state.kineticEnergy, 6))
        self._history['maxVelocity'].append(round(state.maxVelocity, 6))
        self._history['densityError'].append(round(state.maxDensityError, 6))

    def addSurfaceSample(
        self,
        points: np.ndarray,
        values: np.ndarray,
        normals: np.ndarray,
    ) -> None:
        '''
        Attach implicit surface samples to the most recent frame.

        Parameters:
        -----------
        points : np.ndarray
            Lattice points, shape (nx+1, ny+1, nz+1, 3)
        values : np.ndarray
            Field values, shape (nx+1, ny+1, nz+1)
        normals : np.ndarray
            Field normals, shape (nx+1, ny+1, nz+1, 3)

        Raises:
        -------
        RuntimeError : If no frame has been recorded yet
        '''
        if not self._frames:
            raise RuntimeError('addFrame() must be called before addSurfaceSample()')

        self._frames[-1]['surface'] = {
            'shape': list(values.shape),
            'boundsMin': points[0, 0, 0].tolist(),
            'boundsMax': points[-1, -1, -1].tolist(),
            'values': np.round(values.ravel(), 5).tolist(),
            'normals': np.round(normals.reshape(-1, 3), 5).tolist(),
        }

    def export(
        self,
        config: SphConfig,
        outputDir: str = 'output',
        scenarioName: str = 'tank',
        metadata: dict | None = None,
    ) -> str:
        '''
        Write all collected frames to a JSON file.

        Parameters:
        -----------
        config : SphConfig
            Configuration the frames were produced with
        outputDir : str
            Output directory path
        scenarioName : str
            Scenario name for the filename
        metadata : dict | None
            Extra entries merged into the meta section

        Returns:
        --------
        str : Path to the exported JSON file
        '''
        os.makedirs(outputDir, exist_ok=True)

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        filename = f'containerSph_{scenarioName}_{timestamp}.json'
        filepath = os.path.join(outputDir, filename)

        meta = {
            'type': 'containerSph',
            'dimensions': 3,
            'nFrames': len(self._frames),
            'nParticles': config.nParticles,
            'particleMass': config.particleMass,
            'created': datetime.now().isoformat(),
        }
        if metadata:
            meta.update(metadata)

        output = {
            'meta': meta,
            'config': config.toDict(),
            'frames': self._frames,
            'energy': self._history,
        }

        with open(filepath, 'w') as f:
            json.dump(output, f, indent=None, separators=(',', ':'))

        return filepath

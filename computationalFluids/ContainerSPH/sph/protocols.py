# -- Container SPH Protocols -- #

'''
Configuration, result dataclasses, and collaborator protocols for the
container SPH engine.

Defines the construction parameters (SphConfig), the per-step
diagnostics snapshot (StepState), the ray/intersection records, and
the ContainerGeometry protocol that any closed container must satisfy
to confine the fluid.
'''

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Protocol

import numpy as np

from computationalFluids.ContainerSPH import constants as const


######################################################################
# -- Simulation Configuration -- #
######################################################################

@dataclass
class SphConfig:
    '''
    Construction parameters for an SPH fluid system.

    All values are fixed for the lifetime of the system they build.

    Parameters:
    -----------
    smoothingRadius : float
        Kernel cutoff radius h [m]
    viscosity : float
        Viscosity force coefficient
    pressure : float
        Pressure force coefficient
    surfaceTension : float
        Surface tension force coefficient
    cellCounts : tuple[int, int, int]
        Neighbor grid cells along x, y, z
    cubeCounts : tuple[int, int, int]
        Meshing lattice cubes along x, y, z (forwarded to the mesher)
    nParticles : int
        Number of fluid particles
    restDensity : float
        Rest density rho_0 [kg/m^3]
    totalVolume : float
        Total fluid volume [m^3], sets the particle mass
    maxTimeStep : float
        Upper clamp on the elapsed time of one advance() [s]
    gravity : np.ndarray
        Gravity vector in world space [m/s^2]
    seed : int | None
        Seed for the interior-point generator (None = nondeterministic)
    '''

    smoothingRadius: float = const.smoothingRadius
    viscosity: float = const.viscosityCoefficient
    pressure: float = const.pressureCoefficient
    surfaceTension: float = const.surfaceTensionCoefficient
    cellCounts: tuple[int, int, int] = (10, 10, 10)
    cubeCounts: tuple[int, int, int] = (20, 20, 20)
    nParticles: int = 1000
    restDensity: float = const.restDensity
    totalVolume: float = 0.3
    maxTimeStep: float = const.maxTimeStep
    gravity: np.ndarray = field(
        default_factory=lambda: np.array([0.0, -const.gravity, 0.0])
    )
    seed: int | None = None

    @property
    def smoothingRadiusSq(self) -> float:
        '''Squared smoothing radius h^2 [m^2].'''
        return self.smoothingRadius * self.smoothingRadius

    @property
    def particleMass(self) -> float:
        '''Mass of each particle: totalVolume * rho_0 / nParticles [kg].'''
        return self.totalVolume * self.restDensity / self.nParticles

    def validate(self) -> None:
        '''
        Reject configurations that cannot produce a valid simulation.

        Raises:
        -------
        ValueError : If any parameter is out of range
        '''
        if not self.smoothingRadius > 0.0:
            raise ValueError(
                f'smoothingRadius must be positive, got {self.smoothingRadius}'
            )
        if self.nParticles < 1:
            raise ValueError(f'nParticles must be at least 1, got {self.nParticles}')
        if not self.restDensity > 0.0:
            raise ValueError(f'restDensity must be positive, got {self.restDensity}')
        if not self.totalVolume > 0.0:
            raise ValueError(f'totalVolume must be positive, got {self.totalVolume}')
        if not self.maxTimeStep > 0.0:
            raise ValueError(f'maxTimeStep must be positive, got {self.maxTimeStep}')
        if len(self.cellCounts) != 3 or min(self.cellCounts) < 1:
            raise ValueError(f'cellCounts must be three counts >= 1, got {self.cellCounts}')
        if len(self.cubeCounts) != 3 or min(self.cubeCounts) < 1:
            raise ValueError(f'cubeCounts must be three counts >= 1, got {self.cubeCounts}')
        if np.shape(self.gravity) != (3,):
            raise ValueError(f'gravity must be a 3-vector, got {self.gravity}')

    @classmethod
    def fromDict(cls, data: dict) -> SphConfig:
        '''
        Build a configuration from parsed JSON sections.

        Reads the 'sph', 'fluid', and 'grid' sections; missing keys
        fall back to the dataclass defaults.

        Parameters:
        -----------
        data : dict
            Parsed configuration document

        Returns:
        --------
        SphConfig : Loaded configuration
        '''
        sphSection = data.get('sph', {})
        fluidSection = data.get('fluid', {})
        gridSection = data.get('grid', {})
        defaults = cls()

        gravity = fluidSection.get('gravity', defaults.gravity.tolist())
        if isinstance(gravity, (int, float)):
            # Scalar magnitude: pull along -y
            gravity = [0.0, -float(gravity), 0.0]

        return cls(
            smoothingRadius=sphSection.get('smoothingRadius', defaults.smoothingRadius),
            viscosity=sphSection.get('viscosity', defaults.viscosity),
            pressure=sphSection.get('pressure', defaults.pressure),
            surfaceTension=sphSection.get('surfaceTension', defaults.surfaceTension),
            cellCounts=tuple(gridSection.get('cellCounts', defaults.cellCounts)),
            cubeCounts=tuple(gridSection.get('cubeCounts', defaults.cubeCounts)),
            nParticles=sphSection.get('nParticles', defaults.nParticles),
            restDensity=fluidSection.get('restDensity', defaults.restDensity),
            totalVolume=fluidSection.get('totalVolume', defaults.totalVolume),
            maxTimeStep=sphSection.get('maxTimeStep', defaults.maxTimeStep),
            gravity=np.asarray(gravity, dtype=float),
            seed=sphSection.get('seed', defaults.seed),
        )

    @classmethod
    def fromJson(cls, configPath: str) -> SphConfig:
        '''
        Load configuration from a JSON file.

        Parameters:
        -----------
        configPath : str
            Path to the JSON configuration file

        Returns:
        --------
        SphConfig : Loaded configuration
        '''
        with open(configPath, 'r') as f:
            data = json.load(f)
        return cls.fromDict(data)

    def toDict(self) -> dict:
        '''JSON-serializable view of the configuration.'''
        return {
            'smoothingRadius': self.smoothingRadius,
            'viscosity': self.viscosity,
            'pressure': self.pressure,
            'surfaceTension': self.surfaceTension,
            'cellCounts': list(self.cellCounts),
            'cubeCounts': list(self.cubeCounts),
            'nParticles': self.nParticles,
            'restDensity': self.restDensity,
            'totalVolume': self.totalVolume,
            'maxTimeStep': self.maxTimeStep,
            'gravity': np.asarray(self.gravity, dtype=float).tolist(),
            'seed': self.seed,
        }


######################################################################
# -- Step Diagnostics -- #
######################################################################

@dataclass
class StepState:
    '''
    Snapshot of the fluid after a call to advance().

    Parameters:
    -----------
    time : float
        Accumulated simulation time [s]
    step : int
        Number of completed steps
    dt : float
        Clamped time step of the last step [s]
    kineticEnergy : float
        Total kinetic energy [J]
    maxVelocity : float
        Maximum particle speed [m/s]
    maxDensityError : float
        Maximum relative density error |rho - rho_0| / rho_0
    meanDensity : float
        Mean particle density [kg/m^3]
    nCellChanges : int
        Particles re-bucketed into a different grid cell this step
    '''

    time: float
    step: int
    dt: float
    kineticEnergy: float
    maxVelocity: float
    maxDensityError: float
    meanDensity: float
    nCellChanges: int = 0


######################################################################
# -- Rays and Intersections -- #
######################################################################

@dataclass
class Ray:
    '''
    Half-line origin + t * direction, t >= 0.

    The direction is normalized on construction so that the
    parametric distance t of a hit is a length.
    '''

    origin: np.ndarray
    direction: np.ndarray

    def __post_init__(self) -> None:
        self.origin = np.asarray(self.origin, dtype=float)
        direction = np.asarray(self.direction, dtype=float)
        length = float(np.linalg.norm(direction))
        if length < const.degenerateLength:
            raise ValueError('Ray direction must be non-zero')
        self.direction = direction / length

    def pointAt(self, t: float) -> np.ndarray:
        return self.origin + t * self.direction


@dataclass
class Intersection:
    '''
    A single ray/surface hit.

    Parameters:
    -----------
    position : np.ndarray
        Hit point [m]
    normal : np.ndarray
        Unit outward surface normal at the hit
    rayParameterT : float
        Distance along the ray to the hit [m]
    '''

    position: np.ndarray
    normal: np.ndarray
    rayParameterT: float


@dataclass
class RayHits:
    '''
    Nearest hits for a batch of rays.

    Rows where hitMask is False carry distance inf and zero
    position/normal.

    Parameters:
    -----------
    hitMask : np.ndarray
        True where the ray hit the surface, shape (N,)
    distances : np.ndarray
        Ray parameter of the nearest hit, shape (N,)
    positions : np.ndarray
        Hit points, shape (N, 3)
    normals : np.ndarray
        Unit outward normals at the hits, shape (N, 3)
    '''

    hitMask: np.ndarray
    distances: np.ndarray
    positions: np.ndarray
    normals: np.ndarray

    @classmethod
    def empty(cls, nRays: int) -> RayHits:
        '''All-miss result for nRays rays.'''
        return cls(
            hitMask=np.zeros(nRays, dtype=bool),
            distances=np.full(nRays, np.inf),
            positions=np.zeros((nRays, 3)),
            normals=np.zeros((nRays, 3)),
        )

    def __len__(self) -> int:
        return len(self.hitMask)

    def at(self, index: int) -> Intersection | None:
        '''Hit record for one ray, or None if it missed.'''
        if not self.hitMask[index]:
            return None
        return Intersection(
            position=self.positions[index].copy(),
            normal=self.normals[index].copy(),
            rayParameterT=float(self.distances[index]),
        )


######################################################################
# -- Container Geometry Protocols -- #
######################################################################

class ContainerGeometry(Protocol):
    '''
    Protocol for the closed surface confining the fluid.

    These three queries are all the engine requires. Normals reported
    by intersections point out of the container interior. Containers
    that also provide the BatchContainerGeometry methods are queried
    in batch instead (see castRays and sampleInterior).
    '''

    def boundingBox(self) -> tuple[np.ndarray, np.ndarray]:
        '''Axis-aligned (minimum, maximum) corners of the container.'''
        ...

    def randomInteriorPoint(self, rng: np.random.Generator) -> np.ndarray:
        '''One uniformly distributed point strictly inside the container.'''
        ...

    def intersect(self, ray: Ray) -> Intersection | None:
        '''Nearest hit of the ray with the container surface.'''
        ...


class BatchContainerGeometry(ContainerGeometry, Protocol):
    '''Container that also answers its queries for whole arrays of points and rays.'''

    def randomInteriorPoints(self, count: int, rng: np.random.Generator) -> np.ndarray:
        '''count uniformly distributed interior points, shape (count, 3).'''
        ...

    def intersectRays(self, origins: np.ndarray, directions: np.ndarray) -> RayHits:
        '''Nearest hits for a batch of rays with unit directions.'''
        ...

    def contains(self, points: np.ndarray) -> np.ndarray:
        '''Boolean mask of points inside (or on) the container.'''
        ...


def castRays(
    container: ContainerGeometry,
    origins: np.ndarray,
    directions: np.ndarray,
) -> RayHits:
    '''
    Nearest container hits for a batch of rays.

    Uses the container's intersectRays when it has one, otherwise
    casts the rays one at a time through intersect.

    Parameters:
    -----------
    container : ContainerGeometry
        Closed container
    origins : np.ndarray
        Ray origins, shape (N, 3)
    directions : np.ndarray
        Unit ray directions, shape (N, 3)

    Returns:
    --------
    RayHits : Nearest hit per ray
    '''
    batch = getattr(container, 'intersectRays', None)
    if batch is not None:
        return batch(origins, directions)

    hits = RayHits.empty(len(origins))
    for k, (origin, direction) in enumerate(zip(origins, directions)):
        hit = container.intersect(Ray(origin, direction))
        if hit is None:
            continue
        hits.hitMask[k] = True
        hits.distances[k] = hit.rayParameterT
        hits.positions[k] = hit.position
        hits.normals[k] = hit.normal
    return hits


def sampleInterior(
    container: ContainerGeometry,
    count: int,
    rng: np.random.Generator,
) -> np.ndarray:
    '''count interior points, batched when the container supports it.'''
    batch = getattr(container, 'randomInteriorPoints', None)
    if batch is not None:
        return np.asarray(batch(count, rng), dtype=float)
    return np.array([container.randomInteriorPoint(rng) for _ in range(count)], dtype=float).reshape(count, 3)

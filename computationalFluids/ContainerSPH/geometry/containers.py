# -- Container Geometries -- #

'''
Closed containers that confine the fluid.

Each container answers the three queries the engine needs: its
bounding box, uniformly distributed interior points (used once to
seed the particles), and nearest ray/surface intersections (used on
every integration sub-step). Reported normals point out of the
container interior.

Containers:
    - BoxContainer: analytic axis-aligned box (slab test)
    - SphereContainer: analytic sphere (quadratic root)
    - MeshContainer: any watertight triangle mesh, via trimesh ray queries
'''

from __future__ import annotations

import math

import numpy as np
import trimesh

from computationalFluids.ContainerSPH import constants as const
from computationalFluids.ContainerSPH.sph.protocols import Intersection, Ray, RayHits


######################################################################
# -- Shared Container Behaviour -- #
######################################################################

class ContainerBase:
    '''
    Single-query conveniences on top of the batch queries.

    Subclasses implement boundingBox, randomInteriorPoints,
    intersectRays, and contains.
    '''

    def randomInteriorPoint(self, rng: np.random.Generator) -> np.ndarray:
        return self.randomInteriorPoints(1, rng)[0]

    def intersect(self, ray: Ray) -> Intersection | None:
        '''
        Nearest hit of a single ray.

        Parameters:
        -----------
        ray : Ray
            Ray with unit direction

        Returns:
        --------
        Intersection | None : Hit record, or None on a miss
        '''
        hits = self.intersectRays(ray.origin.reshape(1, 3), ray.direction.reshape(1, 3))
        return hits.at(0)

    def _rejectionSample(
        self,
        count: int,
        rng: np.random.Generator,
        batchSize: int = 4096,
    ) -> np.ndarray:
        '''Uniform interior points by rejection from the bounding box.'''
        lo, hi = self.boundingBox()
        collected: list[np.ndarray] = []
        nCollected = 0

        while nCollected < count:
            candidates = rng.uniform(lo, hi, size=(max(batchSize, count), 3))
            inside = candidates[self.contains(candidates)]
            collected.append(inside)
            nCollected += len(inside)

        return np.vstack(collected)[:count]


######################################################################
# -- Axis-Aligned Box -- #
######################################################################

class BoxContainer(ContainerBase):
    '''
    Axis-aligned box container.

    Parameters:
    -----------
    boundsMin : np.ndarray
        Lower corner [m]
    boundsMax : np.ndarray
        Upper corner [m]
    '''

    def __init__(self, boundsMin: np.ndarray, boundsMax: np.ndarray) -> None:
        self._min = np.asarray(boundsMin, dtype=float).copy()
        self._max = np.asarray(boundsMax, dtype=float).copy()
        if np.any(self._max <= self._min):
            raise ValueError('Box maximum must exceed minimum on every axis')

    @classmethod
    def fromSize(cls, size: np.ndarray, center: np.ndarray | None = None) -> BoxContainer:
        '''Box of the given edge lengths centered at center (default origin).'''
        size = np.asarray(size, dtype=float)
        center = np.zeros(3) if center is None else np.asarray(center, dtype=float)
        return cls(center - 0.5 * size, center + 0.5 * size)

    def boundingBox(self) -> tuple[np.ndarray, np.ndarray]:
        return (self._min.copy(), self._max.copy())

    def volume(self) -> float:
        return float(np.prod(self._max - self._min))

    def contains(self, points: np.ndarray) -> np.ndarray:
        points = np.asarray(points, dtype=float).reshape(-1, 3)
        return np.all((points >= self._min) & (points <= self._max), axis=1)

    def randomInteriorPoints(self, count: int, rng: np.random.Generator) -> np.ndarray:
        return rng.uniform(self._min, self._max, size=(count, 3))

    def intersectRays(self, origins: np.ndarray, directions: np.ndarray) -> RayHits:
        '''
        Slab test against the six faces.

        A ray starting inside the box reports the exit face; a ray
        starting outside reports the entry face.
        '''
        origins = np.asarray(origins, dtype=float).reshape(-1, 3)
        directions = np.asarray(directions, dtype=float).reshape(-1, 3)
        nRays = len(origins)
        hits = RayHits.empty(nRays)
        if nRays == 0:
            return hits

        with np.errstate(divide='ignore', invalid='ignore'):
            inverse = 1.0 / directions
            t1 = (self._min - origins) * inverse
            t2 = (self._max - origins) * inverse

        # Axes the ray runs parallel to: inside the slab = unbounded,
        # outside the slab = no hit
        parallel = directions == 0.0
        insideSlab = (origins >= self._min) & (origins <= self._max)
        tLow = np.where(parallel, np.where(insideSlab, -np.inf, np.inf), np.minimum(t1, t2))
        tHigh = np.where(parallel, np.where(insideSlab, np.inf, -np.inf), np.maximum(t1, t2))

        tEnter = np.max(tLow, axis=1)
        tExit = np.min(tHigh, axis=1)
        enterAxis = np.argmax(tLow, axis=1)
        exitAxis = np.argmin(tHigh, axis=1)

        useEnter = tEnter > const.rayEpsilon
        t = np.where(useEnter, tEnter, tExit)
        hitMask = (tExit >= tEnter) & (t > const.rayEpsilon) & np.isfinite(t)

        rows = np.arange(nRays)
        axis = np.where(useEnter, enterAxis, exitAxis)
        axisDirection = directions[rows, axis]

        # Outward normal: exit faces face along the ray, entry faces against it
        sign = np.where(useEnter, -np.sign(axisDirection), np.sign(axisDirection))
        normals = np.zeros((nRays, 3))
        normals[rows, axis] = sign

        idx = np.flatnonzero(hitMask)
        hits.hitMask[idx] = True
        hits.distances[idx] = t[idx]
        hits.positions[idx] = origins[idx] + t[idx][:, np.newaxis] * directions[idx]
        hits.normals[idx] = normals[idx]

        # Snap the hit coordinate exactly onto its face
        faceValue = np.where(sign > 0, self._max[axis], self._min[axis])
        hits.positions[idx, axis[idx]] = faceValue[idx]

        return hits


######################################################################
# -- Sphere -- #
######################################################################

class SphereContainer(ContainerBase):
    '''
    Spherical container.

    Parameters:
    -----------
    center : np.ndarray
        Sphere center [m]
    radius : float
        Sphere radius [m]
    '''

    def __init__(self, center: np.ndarray, radius: float) -> None:
        if not radius > 0.0:
            raise ValueError(f'radius must be positive, got {radius}')
        self._center = np.asarray(center, dtype=float).copy()
        self._radius = float(radius)

    @property
    def center(self) -> np.ndarray:
        return self._center

    @property
    def radius(self) -> float:
        return self._radius

    def boundingBox(self) -> tuple[np.ndarray, np.ndarray]:
        return (self._center - self._radius, self._center + self._radius)

    def volume(self) -> float:
        return 4.0 / 3.0 * math.pi * self._radius ** 3

    def contains(self, points: np.ndarray) -> np.ndarray:
        points = np.asarray(points, dtype=float).reshape(-1, 3)
        return np.linalg.norm(points - self._center, axis=1) <= self._radius

    def randomInteriorPoints(self, count: int, rng: np.random.Generator) -> np.ndarray:
        return self._rejectionSample(count, rng)

    def intersectRays(self, origins: np.ndarray, directions: np.ndarray) -> RayHits:
        '''
        Solve |o + t d - c|^2 = R^2 for the smallest positive t.
        '''
        origins = np.asarray(origins, dtype=float).reshape(-1, 3)
        directions = np.asarray(directions, dtype=float).reshape(-1, 3)
        nRays = len(origins)
        hits = RayHits.empty(nRays)
        if nRays == 0:
            return hits

        offset = origins - self._center
        b = np.einsum('ij,ij->i', offset, directions)
        c = np.einsum('ij,ij->i', offset, offset) - self._radius ** 2
        discriminant = b * b - c

        real = discriminant >= 0.0
        root = np.sqrt(np.where(real, discriminant, 0.0))
        tNear = -b - root
        tFar = -b + root
        t = np.where(tNear > const.rayEpsilon, tNear, tFar)
        hitMask = real & (t > const.rayEpsilon)

        idx = np.flatnonzero(hitMask)
        positions = origins[idx] + t[idx][:, np.newaxis] * directions[idx]
        hits.hitMask[idx] = True
        hits.distances[idx] = t[idx]
        hits.positions[idx] = positions
        hits.normals[idx] = (positions - self._center) / self._radius

        return hits


######################################################################
# -- Triangle Mesh -- #
######################################################################

class MeshContainer(ContainerBase):
    '''
    Container bounded by a watertight triangle mesh.

    Uses trimesh for ray casting and inside/outside tests. Face
    normals of a consistently wound closed mesh point outward.

    Parameters:
    -----------
    mesh : trimesh.Trimesh | str
        Mesh, or path to a mesh file readable by trimesh
    '''

    def __init__(self, mesh: trimesh.Trimesh | str) -> None:
        if isinstance(mesh, str):
            mesh = trimesh.load(mesh, force='mesh')

        self._mesh: trimesh.Trimesh = mesh

        # Auto-repair: fill holes and fix winding so normals face outward
        if not self._mesh.is_watertight:
            trimesh.repair.fill_holes(self._mesh)
        trimesh.repair.fix_normals(self._mesh)

        if not self._mesh.is_watertight:
            raise ValueError('MeshContainer requires a watertight mesh')

    @classmethod
    def box(cls, size: np.ndarray, center: np.ndarray | None = None) -> MeshContainer:
        '''Triangulated box of the given edge lengths.'''
        transform = np.eye(4)
        if center is not None:
            transform[:3, 3] = np.asarray(center, dtype=float)
        return cls(trimesh.creation.box(extents=np.asarray(size, dtype=float), transform=transform))

    @classmethod
    def icosphere(
        cls,
        radius: float,
        center: np.ndarray | None = None,
        subdivisions: int = 3,
    ) -> MeshContainer:
        '''Triangulated sphere.'''
        mesh = trimesh.creation.icosphere(subdivisions=subdivisions, radius=radius)
        if center is not None:
            mesh.apply_translation(np.asarray(center, dtype=float))
        return cls(mesh)

    @property
    def mesh(self) -> trimesh.Trimesh:
        return self._mesh

    def boundingBox(self) -> tuple[np.ndarray, np.ndarray]:
        bounds = np.asarray(self._mesh.bounds, dtype=float)
        return (bounds[0].copy(), bounds[1].copy())

    def volume(self) -> float:
        return float(self._mesh.volume)

    def contains(self, points: np.ndarray) -> np.ndarray:
        points = np.asarray(points, dtype=float).reshape(-1, 3)
        return np.asarray(self._mesh.contains(points), dtype=bool)

    def randomInteriorPoints(self, count: int, rng: np.random.Generator) -> np.ndarray:
        return self._rejectionSample(count, rng)

    def intersectRays(self, origins: np.ndarray, directions: np.ndarray) -> RayHits:
        '''
        Nearest forward hit of each ray against the mesh triangles.
        '''
        origins = np.asarray(origins, dtype=float).reshape(-1, 3)
        directions = np.asarray(directions, dtype=float).reshape(-1, 3)
        nRays = len(origins)
        hits = RayHits.empty(nRays)
        if nRays == 0:
            return hits

        locations, indexRay, indexTri = self._mesh.ray.intersects_location(
            ray_origins=origins,
            ray_directions=directions,
            multiple_hits=True,
        )
        if len(indexRay) == 0:
            return hits

        t = np.einsum('ij,ij->i', locations - origins[indexRay], directions[indexRay])
        forward = t > const.rayEpsilon
        locations = locations[forward]
        indexRay = indexRay[forward]
        indexTri = indexTri[forward]
        t = t[forward]
        if len(indexRay) == 0:
            return hits

        # Keep the closest hit per ray: sort by (ray, t), take first of each ray
        order = np.lexsort((t, indexRay))
        rays, first = np.unique(indexRay[order], return_index=True)
        nearest = order[first]

        hits.hitMask[rays] = True
        hits.distances[rays] = t[nearest]
        hits.positions[rays] = locations[nearest]
        hits.normals[rays] = self._mesh.face_normals[indexTri[nearest]]

        return hits

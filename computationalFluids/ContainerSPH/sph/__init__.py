# -- SPH Engine Package -- #

'''
Core Smoothed Particle Hydrodynamics (SPH) engine.

Provides the kernel set, the particle store, the uniform neighbor grid,
the density/force/integration phases, the implicit surface field, and
the fluid system that runs them in order.
'''

from computationalFluids.ContainerSPH.sph.protocols import (
    SphConfig,
    StepState,
    Ray,
    Intersection,
    RayHits,
    ContainerGeometry,
    BatchContainerGeometry,
    castRays,
    sampleInterior,
)
from computationalFluids.ContainerSPH.sph.kernels import KernelSet
from computationalFluids.ContainerSPH.sph.particles import ParticleStore
from computationalFluids.ContainerSPH.sph.spatialGrid import SpatialGrid
from computationalFluids.ContainerSPH.sph.densitySolver import DensitySolver
from computationalFluids.ContainerSPH.sph.forceSolver import ForceSolver, ForceTerms
from computationalFluids.ContainerSPH.sph.integrator import SweptCollisionIntegrator
from computationalFluids.ContainerSPH.sph.surfaceField import SurfaceFieldEvaluator
from computationalFluids.ContainerSPH.sph.fluidSystem import SphFluidSystem

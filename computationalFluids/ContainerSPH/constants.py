# -- Constants for Container SPH Simulation -- #

'''
Physical and numerical constants for the container SPH engine.
All lengths in simulation units (metres for the bundled scenarios).

References:
-----------
Mueller et al. (2003) -- Particle-Based Fluid Simulation for
    Interactive Applications
'''

#--------------------------------------------------------------------#
# -- Fluid Properties -- #
#--------------------------------------------------------------------#

# Rest density of the fluid [kg/m^3]
restDensity: float = 1000.0

# Gravitational acceleration magnitude [m/s^2]
gravity: float = 9.8

#--------------------------------------------------------------------#
# -- SPH Coefficients -- #
#--------------------------------------------------------------------#

# Smoothing radius h [m]
smoothingRadius: float = 0.1

# Uniform force coefficients applied after the correction normalization
viscosityCoefficient: float = 5.0
pressureCoefficient: float = 3000.0
surfaceTensionCoefficient: float = 5.0

# Largest time step a single advance() may take [s]
maxTimeStep: float = 0.01

#--------------------------------------------------------------------#
# -- Container Collision -- #
#--------------------------------------------------------------------#

# Distance a particle is pushed back along the wall normal after a hit [m]
# Keeps the next ray cast from re-detecting the same surface
collisionBias: float = 0.0005

# Upper bound on wall hits resolved per particle per step
maxCollisionIterations: int = 16

# Displacements shorter than this are treated as zero-length [m]
degenerateLength: float = 1e-12

# Ray hits closer than this to the origin are ignored [m]
rayEpsilon: float = 1e-9

#--------------------------------------------------------------------#
# -- Grid and Surface -- #
#--------------------------------------------------------------------#

# Container bounding box is scaled by this factor about its center
# before building the neighbor grid and the meshing lattice
boundingBoxInflation: float = 1.2

# Isosurface threshold a: value = density / rho_0 - (1 - a)
isoThreshold: float = 0.3

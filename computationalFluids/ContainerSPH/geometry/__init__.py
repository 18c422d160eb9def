# -- Container Geometry Package -- #

'''
Closed container geometries and placement transforms.
'''

from computationalFluids.ContainerSPH.geometry.containers import BoxContainer, SphereContainer, MeshContainer
from computationalFluids.ContainerSPH.geometry.transforms import (
    placementTransform,
    mapVector,
    worldToLocalDirection,
    inflateBoundingBox,
)

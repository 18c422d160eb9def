# -- Computational Fluids Package -- #

'''
Master package for the computational fluids toolkit.

Domain-specific sub-packages:
    - ContainerSPH: SPH fluid confined in an arbitrary closed container,
      with an implicit surface field for isosurface extraction
'''

# -- Export Package -- #

'''
Data export utilities for container SPH results.

Exports particle frames and implicit surface samples as JSON for
external meshers and viewers.
'''

from computationalFluids.ContainerSPH.export.frameExporter import FrameExporter

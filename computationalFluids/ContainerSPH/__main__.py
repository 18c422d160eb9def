# -- ContainerSPH Module Entry Point -- #

'''
Allows running the simulation with: python -m computationalFluids.ContainerSPH
'''

from computationalFluids.ContainerSPH.runner import main

main()

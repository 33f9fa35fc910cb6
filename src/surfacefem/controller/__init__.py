"""
The CONTROLLER layer drives the simulation loop and applies user edits.
"""

"""
The VIEW layer renders the surface with PyVista and forwards user input.
"""

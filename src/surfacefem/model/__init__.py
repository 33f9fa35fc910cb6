"""
The MODEL layer contains the session data and its persistence.
It has NO knowledge of the viewer (PyVista window) and does no numerics.
"""

"""
FEM Engine
==========
The core implementation of the surface equations.

Why is this file needed?
------------------------
1. Discretisation: it turns a triangulated surface into sparse stiffness,
   mass and advection operators (``analysis``).
2. Time-Stepping: it advances heat, wave, advection-diffusion and
   reaction-diffusion states one step at a time (``solvers``).
3. Inputs: surfaces and equation parameters live in ``pre``.

Note: This package is pure NumPy/SciPy and never touches the viewer.
"""

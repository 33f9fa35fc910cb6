from surfacefem.fea.analysis.finite_elements.tri3 import Tri3

__all__ = ["Tri3"]

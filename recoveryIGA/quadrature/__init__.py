"""
Quadrature module: Gauss-Legendre rules on the reference element.
"""

from .gauss import expand_tensor_grid, gauss_legendre_1d, gauss_legendre_2d, GaussQuadrature

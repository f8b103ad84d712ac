"""
Exceptions raised by the recovery engine.

Every failure aborts the current recovery call; no partial field is
returned. The classes map onto four kinds of failure:

- TopologyError: malformed mesh, negative parametric area, empty patch
- SizeMismatchError / UnsupportedBasisError: inconsistent or unsupported input
- QuadratureError / SolverError: numerical failures
- FieldEvaluationError: the raw field source could not produce a value
"""

from typing import Dict, Optional


class RecoveryError(Exception):
    """Base class for all recovery failures."""


class TopologyError(RecoveryError):
    """Raised for malformed mesh topology (bad bounds, broken linking, empty patch)."""


class SizeMismatchError(RecoveryError):
    """
    Raised when array sizes that must agree do not.

    Attributes:
        sizes: Mapping of quantity name -> actual size
    """

    def __init__(self, message: str, sizes: Optional[Dict[str, int]] = None):
        self.sizes = dict(sizes or {})
        if self.sizes:
            details = " ".join(f"{k}={v}" for k, v in self.sizes.items())
            message = f"{message} ({details})"
        super().__init__(message)


class UnsupportedBasisError(RecoveryError):
    """Raised for rational (weighted) spline bases."""


class QuadratureError(RecoveryError):
    """Raised when no valid quadrature rule exists for the requested order."""


class SolverError(RecoveryError):
    """
    Raised when a linear solve fails (singular or non-finite result).

    Attributes:
        stage: "global", "local" or "collocation"
        basis_id: Basis function whose local solve failed (SPR only)
    """

    def __init__(self, message: str, stage: str, basis_id: Optional[int] = None):
        self.stage = stage
        self.basis_id = basis_id
        super().__init__(message)


class FieldEvaluationError(RecoveryError):
    """Raised when the raw field source fails or returns malformed values."""

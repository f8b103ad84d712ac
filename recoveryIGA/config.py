"""
Recovery configuration.

Collects the parameters of a recovery call in one object:

    config = RecoveryConfig(method="spr", support_policy="extended")
    config = RecoveryConfig.from_dict({"method": "continuous_l2", "n_gauss": 4})

Loading configurations from files is left to the caller.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional


METHODS = ("greville", "discrete_l2", "continuous_l2", "spr")


@dataclass
class RecoveryConfig:
    """
    Parameters of a recovery call.

    Attributes:
        method: One of "greville", "discrete_l2", "continuous_l2", "spr"
        n_gauss: Gauss points per direction for continuous L2 (None = max order)
        support_policy: SPR support policy, "extended" or "auto"
        spr_cond_limit: Reject SPR local systems above this condition number
                        (None uses the solver default, 1e14)
    """
    method: str = "continuous_l2"
    n_gauss: Optional[int] = None
    support_policy: str = "extended"
    spr_cond_limit: Optional[float] = None

    def __post_init__(self):
        self.method = str(getattr(self.method, "value", self.method)).lower()
        if self.method not in METHODS:
            raise ValueError(f"Unknown recovery method: {self.method!r}, expected one of {METHODS}")
        if self.n_gauss is not None and (int(self.n_gauss) != self.n_gauss or self.n_gauss < 1):
            raise ValueError(f"n_gauss must be a positive integer, got {self.n_gauss}")
        if self.support_policy not in ("extended", "auto"):
            raise ValueError(f"Unknown support policy: {self.support_policy!r}")
        if self.spr_cond_limit is not None and self.spr_cond_limit <= 1.0:
            raise ValueError(f"spr_cond_limit must be > 1, got {self.spr_cond_limit}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RecoveryConfig':
        """
        Create a configuration from a plain dictionary.

        Raises:
            ValueError: Unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {unknown}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """Plain dictionary representation."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

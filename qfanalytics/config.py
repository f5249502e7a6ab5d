"""
config.py
---------
Numerical settings for the analytics library.
Defaults are read from environment variables so that tolerances can be tuned
per deployment without touching code.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SabrConfig:
    """Cut-offs used by the Hagan SABR expansion."""
    # |1 - rho| below this switches x(z) to the rho -> 1 closed form
    rho_cutoff: float       = float(os.getenv("QFA_SABR_RHO_CUTOFF", "1e-5"))
    # |1 + rho| below this switches x(z) to the rho -> -1 closed form
    rho_cutoff_negative: float = float(os.getenv("QFA_SABR_RHO_CUTOFF_NEG", "1e-8"))
    moneyness_cutoff: float = float(os.getenv("QFA_SABR_MONEYNESS_CUTOFF", "1e-12"))
    atm_eps: float          = 1e-7
    beta_eps: float         = 1e-8
    min_vol: float          = 1e-6
    small_z: float          = 1e-6
    large_neg_z: float      = -1e6
    large_pos_z: float      = 1e8
    # absolute strike floor of the second-order adjoint
    adjoint2_min_strike: float = float(os.getenv("QFA_SABR_ADJOINT2_MIN_STRIKE", "1e-6"))

    def __post_init__(self):
        if not 0.0 < self.rho_cutoff < 1.0:
            raise ValueError(f"rho_cutoff must be in (0, 1), got {self.rho_cutoff}")
        if not 0.0 < self.rho_cutoff_negative < 1.0:
            raise ValueError(
                f"rho_cutoff_negative must be in (0, 1), got {self.rho_cutoff_negative}")
        if not self.adjoint2_min_strike > 0.0:
            raise ValueError(
                f"adjoint2_min_strike must be positive, got {self.adjoint2_min_strike}")


@dataclass(frozen=True)
class SolverConfig:
    """Levenberg-Marquardt stopping criteria."""
    max_evaluations: int = int(os.getenv("QFA_SOLVER_MAX_EVAL", "5000"))
    xtol: float          = float(os.getenv("QFA_SOLVER_XTOL", "1e-15"))
    ftol: float          = float(os.getenv("QFA_SOLVER_FTOL", "1e-15"))
    gtol: float          = float(os.getenv("QFA_SOLVER_GTOL", "1e-15"))


@dataclass(frozen=True)
class LoggingConfig:
    """Library-wide logging defaults."""
    level: str              = os.getenv("QFA_LOG_LEVEL", "WARNING")
    log_dir: Optional[str]  = os.getenv("QFA_LOG_DIR") or None


DEFAULT_SABR_CONFIG = SabrConfig()
DEFAULT_SOLVER_CONFIG = SolverConfig()
DEFAULT_LOGGING_CONFIG = LoggingConfig()

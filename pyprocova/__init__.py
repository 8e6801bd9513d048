"""
PyProcova: prospective power for ANCOVA and PROCOVA trial analyses.

Estimates the nuisance parameters of a two-arm trial (outcome variance,
covariate correlation or R2) from historical data and turns them into power
with a noncentral-t and a Guenther-Schouten approximation. PROCOVA uses the
same machinery with a prognostic score column appended to the historical data.

Usage:
    from pyprocova import power
"""

__version__ = "0.1.0"

from pyprocova import power

__all__ = [
    "__version__",
    "power",
]

"""
Sample size and power for ANOVA / ANCOVA / PROCOVA trial designs.

``power_ancova`` estimates sigma and rho / R2 from historical data and
reports power under two models; ``power_nc`` and ``power_gs`` take those
entities directly, and ``samplesize_ancova`` solves for the total sample size.

Validates against: R pwr::pwr.t2n.test() (ANOVA branch, NC model)
"""

from pyprocova.power._common import (
    AncovaPowerResult,
    DataShapeError,
    InvalidAdjustmentSpec,
    PowerAnalysisError,
    PowerResult,
    PreconditionError,
    SingularCovarianceError,
)
from pyprocova.power._models import power_nc, power_gs
from pyprocova.power._stats import (
    INTERACTION_SUFFIX,
    add_interactions,
    coefficient_of_determination,
    covariate_correlation,
    outcome_variance,
)
from pyprocova.power._ancova import (
    AdjustmentSpec,
    Anova,
    MultiCovariate,
    SingleCovariate,
    adjustment_spec,
    power_ancova,
)
from pyprocova.power._samplesize import samplesize_ancova

__all__ = [
    "AncovaPowerResult",
    "PowerResult",
    "PowerAnalysisError",
    "PreconditionError",
    "InvalidAdjustmentSpec",
    "SingularCovarianceError",
    "DataShapeError",
    "power_nc",
    "power_gs",
    "INTERACTION_SUFFIX",
    "add_interactions",
    "outcome_variance",
    "covariate_correlation",
    "coefficient_of_determination",
    "AdjustmentSpec",
    "Anova",
    "SingleCovariate",
    "MultiCovariate",
    "adjustment_spec",
    "power_ancova",
    "samplesize_ancova",
]

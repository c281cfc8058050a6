"""Wage distribution package."""

from labour_ledger.wages.distribution import (
    INDIVIDUAL_DESCRIPTION,
    LINKED_DESCRIPTION,
    WageDistributionEngine,
    calculate_custom_distribution,
    calculate_equal_distribution,
    calculate_percentage_distribution,
    calculate_production_wage,
)

__all__ = [
    "INDIVIDUAL_DESCRIPTION",
    "LINKED_DESCRIPTION",
    "WageDistributionEngine",
    "calculate_custom_distribution",
    "calculate_equal_distribution",
    "calculate_percentage_distribution",
    "calculate_production_wage",
]

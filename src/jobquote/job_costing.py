"""Compare what a job actually cost against what the estimate expected."""

import logging
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .models import CompanySettings, PricingBreakdown, non_negative
from .pricing import expected_gross_margin_percent, round_money
from .tech_cost import average_technician_wage

logger = logging.getLogger(__name__)


class JobCostingActuals(BaseModel):
    """Figures entered after the job is done."""

    revenue: float = Field(default=0.0, description="Revenue actually received")
    material_cost: float = Field(default=0.0, description="Material cost including purchase tax")
    labor_hours: float = Field(default=0.0)
    labor_minutes: float = Field(default=0.0)
    notes: str = Field(default="")

    @field_validator("revenue", "material_cost", "labor_hours", "labor_minutes", mode="before")
    @classmethod
    def coerce_non_negative(cls, v: Any) -> float:
        return non_negative(v)

    @property
    def total_labor_minutes(self) -> float:
        return self.labor_hours * 60.0 + self.labor_minutes


class JobCostingFigures(BaseModel):
    """Revenue, cost and margin for one side of the comparison."""

    revenue: float
    material_cost: float
    labor_minutes: float
    labor_cost: float
    gross_profit: float
    gross_margin_percent: Optional[float] = None


class JobCostingResult(BaseModel):
    """Expected vs. actual job economics."""

    expected: JobCostingFigures
    actual: JobCostingFigures
    revenue_variance: float
    material_cost_variance: float
    labor_minutes_variance: float
    gross_profit_variance: float


def compare_to_estimate(
    breakdown: PricingBreakdown,
    actuals: JobCostingActuals,
    settings: CompanySettings,
) -> JobCostingResult:
    """Compare an estimate's expected economics with what actually happened.

    Labor on both sides is costed at the average technician wage.  Expected
    revenue includes processing fees, as billed to the customer.
    """
    wage = average_technician_wage(settings.technician_wages)

    expected_material = round_money(breakdown.materials.material_cost + breakdown.materials.purchase_tax)
    expected_labor_cost = round_money(wage * breakdown.labor.expected_minutes / 60.0)
    expected_profit = round_money(breakdown.total - expected_material - expected_labor_cost)
    expected = JobCostingFigures(
        revenue=breakdown.total,
        material_cost=expected_material,
        labor_minutes=breakdown.labor.expected_minutes,
        labor_cost=expected_labor_cost,
        gross_profit=expected_profit,
        gross_margin_percent=expected_gross_margin_percent(
            breakdown.total, expected_material + expected_labor_cost
        ),
    )

    minutes = actuals.total_labor_minutes
    actual_labor_cost = round_money(wage * minutes / 60.0)
    actual_profit = round_money(actuals.revenue - actuals.material_cost - actual_labor_cost)
    actual = JobCostingFigures(
        revenue=actuals.revenue,
        material_cost=actuals.material_cost,
        labor_minutes=minutes,
        labor_cost=actual_labor_cost,
        gross_profit=actual_profit,
        gross_margin_percent=expected_gross_margin_percent(
            actuals.revenue, actuals.material_cost + actual_labor_cost
        ),
    )

    if actual.gross_profit < expected.gross_profit:
        logger.info(
            f"Job came in ${expected.gross_profit - actual.gross_profit:.2f} under expected gross profit"
        )

    return JobCostingResult(
        expected=expected,
        actual=actual,
        revenue_variance=round_money(actual.revenue - expected.revenue),
        material_cost_variance=round_money(actual.material_cost - expected.material_cost),
        labor_minutes_variance=actual.labor_minutes - expected.labor_minutes,
        gross_profit_variance=round_money(actual.gross_profit - expected.gross_profit),
    )

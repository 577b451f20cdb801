"""Wage, overhead and required-revenue-per-billable-hour resolvers.

Turns the company's roster, expenses and capacity into the hourly figures a
technician must bill.  Every function is pure: the settings record and job
type are passed in explicitly.
"""

import logging
from typing import Iterable, Optional

from .config import PricingDefaultsConfig
from .models import (
    CompanySettings,
    ExpenseFrequency,
    ExpenseItem,
    JobTypePolicy,
    NetProfitMode,
    TechCostBreakdown,
    TechnicianWage,
    to_number,
)

logger = logging.getLogger(__name__)

WEEKS_PER_YEAR = 52
MONTHS_PER_YEAR = 12

FREQUENCY_TO_MONTHLY = {
    ExpenseFrequency.MONTHLY.value: 1.0,
    ExpenseFrequency.QUARTERLY.value: 1.0 / 3.0,
    ExpenseFrequency.BIANNUAL.value: 1.0 / 6.0,
    ExpenseFrequency.ANNUAL.value: 1.0 / 12.0,
}


def safe_divide(numerator: float, denominator: float) -> float:
    """Divide, returning 0 when the denominator is not positive."""
    if denominator <= 0:
        return 0.0
    return numerator / denominator


def average_technician_wage(wages: Iterable[TechnicianWage]) -> float:
    """Mean of the strictly positive hourly rates on the roster (0 if none)."""
    rates = [to_number(getattr(w, "hourly_rate", 0.0)) for w in wages or []]
    rates = [r for r in rates if r > 0]
    if not rates:
        return 0.0
    return sum(rates) / len(rates)


def monthly_from_itemized(items: Iterable[ExpenseItem]) -> float:
    """Sum itemized expenses normalized to a monthly cadence."""
    total = 0.0
    for item in items or []:
        # Enum members and plain values both key the cadence table
        frequency = getattr(item.frequency, "value", item.frequency)
        factor = FREQUENCY_TO_MONTHLY.get(frequency, 1.0)
        total += item.amount * factor
    return total


def monthly_overhead(settings: CompanySettings) -> float:
    """Business plus personal expenses per month."""
    if settings.business_apply_itemized:
        business = monthly_from_itemized(settings.business_expenses_itemized)
    else:
        business = settings.business_expenses_lump_sum_monthly

    if settings.personal_apply_itemized:
        personal = monthly_from_itemized(settings.personal_expenses_itemized)
    else:
        personal = settings.personal_expenses_lump_sum_monthly

    return business + personal


def total_hours_per_year(settings: CompanySettings) -> float:
    """Paid technician hours per year across the whole crew."""
    workdays_per_year = max(
        0.0,
        settings.workdays_per_week * WEEKS_PER_YEAR
        - settings.vacation_days_per_year
        - settings.sick_days_per_year,
    )
    hours_per_tech_year = workdays_per_year * settings.work_hours_per_day
    return hours_per_tech_year * settings.technicians


def resolve_efficiency_percent(
    job_type: Optional[JobTypePolicy],
    defaults: Optional[PricingDefaultsConfig] = None,
) -> float:
    defaults = defaults or PricingDefaultsConfig()
    if job_type is None:
        return defaults.default_efficiency_percent
    return job_type.efficiency_percent


def resolve_gross_margin_percent(
    job_type: Optional[JobTypePolicy],
    defaults: Optional[PricingDefaultsConfig] = None,
) -> float:
    defaults = defaults or PricingDefaultsConfig()
    if job_type is None:
        return defaults.default_gross_margin_percent
    return job_type.gross_margin_percent


def overhead_per_billable_hour(
    settings: CompanySettings,
    job_type: Optional[JobTypePolicy] = None,
    defaults: Optional[PricingDefaultsConfig] = None,
) -> float:
    """Annual overhead spread across effective (efficiency-adjusted) hours."""
    return compute_tech_cost_breakdown(settings, job_type, defaults).overhead_per_hour


def required_revenue_per_billable_hour(
    settings: CompanySettings,
    job_type: Optional[JobTypePolicy] = None,
    defaults: Optional[PricingDefaultsConfig] = None,
) -> float:
    """Flat-rate dollars per billable hour: the larger of the two floors."""
    return compute_tech_cost_breakdown(settings, job_type, defaults).required_revenue_per_billable_hour


def compute_tech_cost_breakdown(
    settings: CompanySettings,
    job_type: Optional[JobTypePolicy] = None,
    defaults: Optional[PricingDefaultsConfig] = None,
) -> TechCostBreakdown:
    """Resolve wage, overhead and required revenue for a job type.

    The gross-margin floor recovers the wage cost at the job type's margin
    target.  The net-profit floor recovers wage cost plus overhead plus the
    company's net profit goal.  The required revenue per billable hour is the
    larger of the two.  Any floor whose denominator would be zero or negative
    resolves to 0.

    Args:
        settings: Canonical company settings
        job_type: Job type policy, or None for the neutral defaults
        defaults: Engine defaults (neutral job type values)

    Returns:
        TechCostBreakdown with every intermediate figure
    """
    efficiency_percent = resolve_efficiency_percent(job_type, defaults)
    gross_margin_percent = resolve_gross_margin_percent(job_type, defaults)
    efficiency = efficiency_percent / 100.0
    gross_margin = gross_margin_percent / 100.0

    overhead_monthly = monthly_overhead(settings)
    overhead_annual = overhead_monthly * MONTHS_PER_YEAR

    total_hours_year = total_hours_per_year(settings)
    effective_hours_year = total_hours_year * efficiency
    billable_hours_per_month = effective_hours_year / MONTHS_PER_YEAR

    overhead_per_hour = safe_divide(overhead_annual, effective_hours_year)

    avg_wage = average_technician_wage(settings.technician_wages)
    # Wages are paid on every hour but only the efficient share is billable
    cogs_per_billable_hour = safe_divide(avg_wage, efficiency)

    loaded_labor_rate = cogs_per_billable_hour + overhead_per_hour
    loaded_labor_sell_rate = safe_divide(loaded_labor_rate, 1.0 - gross_margin)

    revenue_for_gross_margin = safe_divide(cogs_per_billable_hour, 1.0 - gross_margin)

    cost_plus_overhead = cogs_per_billable_hour + overhead_per_hour
    if settings.net_profit_goal_mode == NetProfitMode.DOLLAR.value:
        profit_per_hour = safe_divide(settings.net_profit_goal_amount_monthly, billable_hours_per_month)
        revenue_for_net_profit = cost_plus_overhead + profit_per_hour
    else:
        net_profit = settings.net_profit_goal_percent_of_revenue / 100.0
        revenue_for_net_profit = safe_divide(cost_plus_overhead, 1.0 - net_profit)

    required = max(revenue_for_gross_margin, revenue_for_net_profit)

    if total_hours_year <= 0 and overhead_annual > 0:
        logger.warning("No technician capacity configured; overhead is not recovered per hour")
    if required <= 0 < avg_wage:
        logger.warning("Required revenue per billable hour resolved to 0 (margin or profit target at 100%)")

    logger.debug(
        f"Tech cost: wage={avg_wage:.2f} overhead/hr={overhead_per_hour:.2f} "
        f"required/hr={required:.2f} (efficiency {efficiency_percent}%, margin {gross_margin_percent}%)"
    )

    return TechCostBreakdown(
        efficiency_percent=efficiency_percent,
        gross_margin_target_percent=gross_margin_percent,
        overhead_monthly=overhead_monthly,
        overhead_annual=overhead_annual,
        total_hours_year=total_hours_year,
        effective_hours_year=effective_hours_year,
        billable_hours_per_month=billable_hours_per_month,
        avg_tech_wage=avg_wage,
        overhead_per_hour=overhead_per_hour,
        loaded_labor_rate=loaded_labor_rate,
        loaded_labor_sell_rate=loaded_labor_sell_rate,
        cogs_per_billable_hour=cogs_per_billable_hour,
        revenue_per_billable_hour_for_gross_margin=revenue_for_gross_margin,
        revenue_per_billable_hour_for_net_profit=revenue_for_net_profit,
        required_revenue_per_billable_hour=required,
    )

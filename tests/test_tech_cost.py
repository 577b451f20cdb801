"""Tests for the wage, overhead and required revenue resolvers."""

import pytest

from jobquote.config import PricingDefaultsConfig
from jobquote.models import CompanySettings, ExpenseFrequency, ExpenseItem, JobTypePolicy, TechnicianWage
from jobquote.tech_cost import (
    average_technician_wage,
    compute_tech_cost_breakdown,
    monthly_from_itemized,
    monthly_overhead,
    overhead_per_billable_hour,
    required_revenue_per_billable_hour,
    safe_divide,
    total_hours_per_year,
)

# 2080 paid hours at 80% efficiency is 1664 billable hours; $10/billable hour of overhead
OVERHEAD_MONTHLY = 16640.0 / 12.0


@pytest.fixture
def settings():
    """One technician at $30/hr with $10 per billable hour of overhead at 80% efficiency."""
    return CompanySettings(
        technician_wages=[TechnicianWage(name="Alex", hourly_rate=30)],
        business_expenses_lump_sum_monthly=OVERHEAD_MONTHLY,
    )


@pytest.fixture
def job_type():
    """Flat-rate job type with 40% margin and 80% efficiency."""
    return JobTypePolicy(id="svc", name="Service", gross_margin_percent=40, efficiency_percent=80)


class TestHelpers:
    """Test the basic resolvers."""

    def test_safe_divide(self):
        """Test non-positive denominators resolve to 0."""
        assert safe_divide(5, 2) == 2.5
        assert safe_divide(5, 0) == 0.0
        assert safe_divide(5, -1) == 0.0

    def test_average_wage_ignores_non_positive(self):
        """Test only positive wages count toward the average."""
        wages = [TechnicianWage(hourly_rate=r) for r in (30, 0, -5, 40)]
        assert average_technician_wage(wages) == 35.0

    def test_average_wage_empty(self):
        """Test an empty roster averages to 0."""
        assert average_technician_wage([]) == 0.0

    def test_total_hours(self):
        """Test capacity accounts for time off and headcount."""
        settings = CompanySettings(vacation_days_per_year=10, sick_days_per_year=5, technicians=2)
        assert total_hours_per_year(settings) == (260 - 15) * 8 * 2

    def test_total_hours_never_negative(self):
        """Test more days off than workdays gives zero capacity."""
        settings = CompanySettings(workdays_per_week=1, vacation_days_per_year=100)
        assert total_hours_per_year(settings) == 0.0

    def test_itemized_frequencies(self):
        """Test itemized expenses are normalized to monthly."""
        items = [
            ExpenseItem(name="Rent", amount=1200, frequency="monthly"),
            ExpenseItem(name="Insurance", amount=3600, frequency="quarterly"),
            ExpenseItem(name="Trade show", amount=600, frequency="biannual"),
            ExpenseItem(name="License", amount=1200, frequency="annual"),
        ]
        assert monthly_from_itemized(items) == pytest.approx(1200 + 1200 + 100 + 100)

    def test_frequency_enum_members(self):
        """Test cadences given as enum members are not costed as monthly."""
        annual = ExpenseItem(name="License", amount=1200).model_copy(update={"frequency": ExpenseFrequency.ANNUAL})
        quarterly = ExpenseItem(name="Insurance", amount=300, frequency=ExpenseFrequency.QUARTERLY)
        assert monthly_from_itemized([annual]) == pytest.approx(100.0)
        assert monthly_from_itemized([quarterly]) == pytest.approx(100.0)
        assert monthly_from_itemized([ExpenseItem(amount=50)]) == pytest.approx(50.0)

    def test_lump_sum_used_unless_itemized(self):
        """Test the itemized list is ignored unless its flag is set."""
        settings = CompanySettings(
            business_expenses_lump_sum_monthly=1000,
            business_expenses_itemized=[ExpenseItem(amount=50)],
            personal_expenses_lump_sum_monthly=500,
        )
        assert monthly_overhead(settings) == 1500.0

        itemized = settings.model_copy(update={"business_apply_itemized": True})
        assert monthly_overhead(itemized) == 550.0


class TestRequiredRevenue:
    """Test the gross-margin and net-profit floors."""

    def test_gross_margin_floor_wins(self, settings, job_type):
        """Test the larger floor is the required revenue."""
        breakdown = compute_tech_cost_breakdown(settings, job_type)
        assert breakdown.total_hours_year == 2080.0
        assert breakdown.effective_hours_year == pytest.approx(1664.0)
        assert breakdown.overhead_per_hour == pytest.approx(10.0)
        assert breakdown.cogs_per_billable_hour == pytest.approx(37.5)
        assert breakdown.revenue_per_billable_hour_for_gross_margin == pytest.approx(62.5)
        assert breakdown.revenue_per_billable_hour_for_net_profit == pytest.approx(47.5)
        assert breakdown.required_revenue_per_billable_hour == pytest.approx(62.5)

    def test_net_profit_percent_floor_wins(self, settings, job_type):
        """Test a high net profit goal raises the required revenue."""
        settings = settings.model_copy(update={"net_profit_goal_percent_of_revenue": 50.0})
        assert required_revenue_per_billable_hour(settings, job_type) == pytest.approx(95.0)

    def test_net_profit_dollar_mode(self, settings):
        """Test a monthly dollar goal is spread across billable hours."""
        settings = settings.model_copy(
            update={"net_profit_goal_mode": "dollar", "net_profit_goal_amount_monthly": 1664.0}
        )
        job_type = JobTypePolicy(gross_margin_percent=20, efficiency_percent=80)
        breakdown = compute_tech_cost_breakdown(settings, job_type)
        assert breakdown.billable_hours_per_month == pytest.approx(1664.0 / 12)
        assert breakdown.revenue_per_billable_hour_for_net_profit == pytest.approx(59.5)
        assert breakdown.required_revenue_per_billable_hour == pytest.approx(59.5)

    def test_full_gross_margin_guarded(self, settings):
        """Test a 100% margin target resolves its floor to 0 instead of dividing by zero."""
        job_type = JobTypePolicy(gross_margin_percent=100, efficiency_percent=80)
        breakdown = compute_tech_cost_breakdown(settings, job_type)
        assert breakdown.revenue_per_billable_hour_for_gross_margin == 0.0
        assert breakdown.required_revenue_per_billable_hour == pytest.approx(47.5)

    def test_zero_capacity_guarded(self, job_type):
        """Test zero technicians gives no overhead per hour."""
        settings = CompanySettings(
            technicians=0,
            technician_wages=[TechnicianWage(hourly_rate=30)],
            business_expenses_lump_sum_monthly=1000,
        )
        assert overhead_per_billable_hour(settings, job_type) == 0.0
        assert required_revenue_per_billable_hour(settings, job_type) == pytest.approx(62.5)

    def test_zero_efficiency_guarded(self, settings):
        """Test zero efficiency resolves every per-billable-hour figure to 0."""
        job_type = JobTypePolicy(gross_margin_percent=40, efficiency_percent=0)
        breakdown = compute_tech_cost_breakdown(settings, job_type)
        assert breakdown.overhead_per_hour == 0.0
        assert breakdown.cogs_per_billable_hour == 0.0
        assert breakdown.required_revenue_per_billable_hour == 0.0

    def test_neutral_job_type(self, settings):
        """Test no job type uses the engine defaults."""
        breakdown = compute_tech_cost_breakdown(settings, None)
        assert breakdown.efficiency_percent == 100.0
        assert breakdown.gross_margin_target_percent == 70.0
        assert breakdown.revenue_per_billable_hour_for_gross_margin == pytest.approx(100.0)

    def test_custom_defaults(self, settings):
        """Test the neutral job type follows configured defaults."""
        defaults = PricingDefaultsConfig(default_gross_margin_percent=50, default_efficiency_percent=100)
        breakdown = compute_tech_cost_breakdown(settings, None, defaults)
        assert breakdown.revenue_per_billable_hour_for_gross_margin == pytest.approx(60.0)

    def test_loaded_labor_rate(self, settings, job_type):
        """Test the loaded labor rate is wage cost plus overhead per billable hour."""
        breakdown = compute_tech_cost_breakdown(settings, job_type)
        assert breakdown.loaded_labor_rate == pytest.approx(47.5)
        assert breakdown.loaded_labor_sell_rate == pytest.approx(47.5 / 0.6)

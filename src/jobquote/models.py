"""Pydantic models for pricing inputs and breakdown outputs."""

import math
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator


def to_number(value: Any, default: float = 0.0) -> float:
    """Coerce a value to a finite float, falling back to ``default``."""
    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return number


def non_negative(value: Any) -> float:
    """Coerce to a finite, non-negative float (negative values become 0)."""
    return max(0.0, to_number(value))


def clamp_percent(value: Any) -> float:
    """Coerce to a finite percentage clamped to [0, 100]."""
    return min(100.0, max(0.0, to_number(value)))


class BillingMode(str, Enum):
    """How labor is priced for a job type."""

    FLAT = "flat"
    HOURLY = "hourly"


class MarkupMode(str, Enum):
    """Material markup strategy."""

    TIERED = "tiered"
    FIXED = "fixed"


class NetProfitMode(str, Enum):
    """How the company expresses its net profit goal."""

    PERCENT = "percent"
    DOLLAR = "dollar"


class ExpenseFrequency(str, Enum):
    """Billing cadence of an itemized expense."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    BIANNUAL = "biannual"
    ANNUAL = "annual"


class RuleScope(str, Enum):
    """Which kind of record an admin rule applies to."""

    ESTIMATE = "estimate"
    ASSEMBLY = "assembly"
    BOTH = "both"


# ---------------------------------------------------------------------------
# Company settings
# ---------------------------------------------------------------------------


class ExpenseItem(BaseModel):
    """A single recurring business or personal expense."""

    name: str = Field(default="", description="Expense label")
    amount: float = Field(default=0.0, description="Amount per billing cadence", ge=0.0)
    frequency: ExpenseFrequency = Field(
        default=ExpenseFrequency.MONTHLY, description="Billing cadence"
    )

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> float:
        return non_negative(v)

    @field_validator("frequency", mode="before")
    @classmethod
    def coerce_frequency(cls, v: Any) -> str:
        """Unknown cadences are treated as monthly."""
        text = str(getattr(v, "value", v) or "").strip().lower()
        valid = {f.value for f in ExpenseFrequency}
        return text if text in valid else ExpenseFrequency.MONTHLY.value

    class Config:
        frozen = True
        use_enum_values = True


class TechnicianWage(BaseModel):
    """Hourly wage for one technician on the roster."""

    name: str = Field(default="", description="Technician name")
    hourly_rate: float = Field(default=0.0, description="Hourly wage")

    @field_validator("hourly_rate", mode="before")
    @classmethod
    def coerce_rate(cls, v: Any) -> float:
        return to_number(v)

    class Config:
        frozen = True


class MarkupTier(BaseModel):
    """Cost band with its own markup percentage.

    A band whose ``max`` is zero or negative has no upper bound.
    """

    min: float = Field(default=0.0, description="Inclusive lower bound of unit cost", ge=0.0)
    max: float = Field(default=0.0, description="Inclusive upper bound; <= 0 means unbounded")
    markup_percent: float = Field(
        default=0.0, description="Markup applied within this band", alias="percent"
    )

    @field_validator("min", mode="before")
    @classmethod
    def coerce_min(cls, v: Any) -> float:
        return non_negative(v)

    @field_validator("max", mode="before")
    @classmethod
    def coerce_max(cls, v: Any) -> float:
        return to_number(v)

    @field_validator("markup_percent", mode="before")
    @classmethod
    def coerce_percent(cls, v: Any) -> float:
        return clamp_percent(v)

    @property
    def unbounded(self) -> bool:
        return self.max <= 0

    def contains(self, cost: float) -> bool:
        """Check whether ``cost`` falls inside this band (bounds inclusive)."""
        if cost < self.min:
            return False
        return self.unbounded or cost <= self.max

    class Config:
        frozen = True
        populate_by_name = True


_PERCENT_FIELDS = (
    "net_profit_goal_percent_of_revenue",
    "material_purchase_tax_percent",
    "misc_material_percent",
    "material_markup_fixed_percent",
    "default_discount_percent",
    "processing_fee_percent",
)

_NON_NEGATIVE_FIELDS = (
    "workdays_per_week",
    "work_hours_per_day",
    "vacation_days_per_year",
    "sick_days_per_year",
    "technicians",
    "business_expenses_lump_sum_monthly",
    "personal_expenses_lump_sum_monthly",
    "net_profit_goal_amount_monthly",
    "min_billable_labor_minutes_per_job",
)


class CompanySettings(BaseModel):
    """Canonical company cost profile.

    Only canonical field names are accepted here; legacy aliases are mapped
    by :func:`jobquote.settings.normalize_company_settings` before a record
    reaches this model.
    """

    # Capacity
    workdays_per_week: float = Field(default=5.0, description="Workdays per week")
    work_hours_per_day: float = Field(default=8.0, description="Paid hours per workday")
    vacation_days_per_year: float = Field(default=0.0, description="Vacation days per technician")
    sick_days_per_year: float = Field(default=0.0, description="Sick days per technician")
    technicians: float = Field(default=1.0, description="Technician headcount for capacity")

    # Expenses
    business_apply_itemized: bool = Field(default=False, description="Use itemized business expenses")
    business_expenses_lump_sum_monthly: float = Field(default=0.0, description="Flat monthly business expenses")
    business_expenses_itemized: List[ExpenseItem] = Field(default_factory=list)
    personal_apply_itemized: bool = Field(default=False, description="Use itemized personal expenses")
    personal_expenses_lump_sum_monthly: float = Field(default=0.0, description="Flat monthly personal expenses")
    personal_expenses_itemized: List[ExpenseItem] = Field(default_factory=list)

    # Wages
    technician_wages: List[TechnicianWage] = Field(default_factory=list)

    # Net profit goal
    net_profit_goal_mode: NetProfitMode = Field(default=NetProfitMode.PERCENT)
    net_profit_goal_percent_of_revenue: float = Field(default=0.0)
    net_profit_goal_amount_monthly: float = Field(default=0.0)

    # Pricing parameters
    material_purchase_tax_percent: float = Field(default=0.0)
    misc_material_percent: float = Field(default=0.0)
    misc_applies_when_customer_supplies: bool = Field(default=False)
    material_markup_mode: MarkupMode = Field(default=MarkupMode.TIERED)
    material_markup_tiers: List[MarkupTier] = Field(default_factory=list)
    material_markup_fixed_percent: float = Field(default=0.0)
    default_discount_percent: float = Field(default=0.0)
    processing_fee_percent: float = Field(default=0.0)
    min_billable_labor_minutes_per_job: float = Field(default=0.0)

    @field_validator(*_PERCENT_FIELDS, mode="before")
    @classmethod
    def clamp_percentages(cls, v: Any) -> float:
        return clamp_percent(v)

    @field_validator(*_NON_NEGATIVE_FIELDS, mode="before")
    @classmethod
    def coerce_non_negative(cls, v: Any) -> float:
        return non_negative(v)

    @field_validator("business_expenses_itemized", "personal_expenses_itemized",
                     "technician_wages", "material_markup_tiers", mode="before")
    @classmethod
    def coerce_list(cls, v: Any) -> list:
        return list(v) if isinstance(v, (list, tuple)) else []

    class Config:
        frozen = True
        use_enum_values = True


class JobTypePolicy(BaseModel):
    """Margin and efficiency policy for a class of jobs."""

    id: Optional[str] = Field(None, description="Job type identifier")
    name: str = Field(default="Default", description="Display name")
    enabled: bool = Field(default=True)
    is_default: bool = Field(default=False)
    billing_mode: BillingMode = Field(default=BillingMode.FLAT)
    gross_margin_percent: float = Field(default=70.0, description="Target gross margin")
    efficiency_percent: float = Field(default=100.0, description="Billable share of labor time")
    allow_discounts: bool = Field(default=True)

    @field_validator("gross_margin_percent", mode="before")
    @classmethod
    def clamp_margin(cls, v: Any) -> float:
        return clamp_percent(v)

    @field_validator("efficiency_percent", mode="before")
    @classmethod
    def clamp_efficiency(cls, v: Any) -> float:
        if v is None:
            return 100.0
        return clamp_percent(to_number(v, 100.0))

    @field_validator("billing_mode", mode="before")
    @classmethod
    def coerce_mode(cls, v: Any) -> str:
        text = str(getattr(v, "value", v) or "").strip().lower()
        return BillingMode.HOURLY.value if text == "hourly" else BillingMode.FLAT.value

    class Config:
        frozen = True
        use_enum_values = True


# ---------------------------------------------------------------------------
# Catalog records and line items
# ---------------------------------------------------------------------------


class Material(BaseModel):
    """Catalog material."""

    id: str = Field(..., description="Material identifier", min_length=1)
    name: str = Field(default="", description="Material name")
    sku: Optional[str] = Field(None, description="Supplier SKU")
    base_cost: float = Field(default=0.0, description="Supplier unit cost")
    custom_cost: Optional[float] = Field(None, description="Company override cost")
    use_custom_cost: bool = Field(default=False, description="Prefer custom_cost over base_cost")
    taxable: bool = Field(default=True, description="Subject to purchase tax")
    labor_minutes: float = Field(default=0.0, description="Install minutes per unit")

    @field_validator("base_cost", "labor_minutes", mode="before")
    @classmethod
    def coerce_non_negative(cls, v: Any) -> float:
        return non_negative(v)

    @field_validator("custom_cost", mode="before")
    @classmethod
    def coerce_custom_cost(cls, v: Any) -> Optional[float]:
        return None if v is None else non_negative(v)

    @property
    def unit_cost(self) -> float:
        if self.use_custom_cost and self.custom_cost is not None:
            return self.custom_cost
        return self.base_cost

    class Config:
        frozen = True


class _LineBase(BaseModel):
    quantity: float = Field(default=1.0, description="Quantity multiplier")

    @field_validator("quantity", mode="before")
    @classmethod
    def coerce_quantity(cls, v: Any) -> float:
        if v is None:
            return 1.0
        return non_negative(v)

    class Config:
        frozen = True


class MaterialLine(_LineBase):
    """Line referencing a catalog material."""

    type: Literal["material"] = "material"
    material_id: str = Field(..., description="Catalog material id")
    cost_override: Optional[float] = Field(None, description="Line-level unit cost override")

    @field_validator("cost_override", mode="before")
    @classmethod
    def coerce_override(cls, v: Any) -> Optional[float]:
        return None if v is None else non_negative(v)


class BlankMaterialLine(_LineBase):
    """One-off material that does not exist in the catalog."""

    type: Literal["blank_material"] = "blank_material"
    name: str = Field(default="", description="Material label")
    cost: float = Field(default=0.0, description="Unit cost")
    taxable: bool = Field(default=True)
    labor_minutes: float = Field(default=0.0, description="Install minutes per unit")

    @field_validator("cost", "labor_minutes", mode="before")
    @classmethod
    def coerce_non_negative(cls, v: Any) -> float:
        return non_negative(v)


class LaborLine(_LineBase):
    """Standalone labor, decoupled from any material."""

    type: Literal["labor"] = "labor"
    name: str = Field(default="Labor", description="Labor description")
    minutes: float = Field(default=0.0, description="Minutes per unit")

    @field_validator("minutes", mode="before")
    @classmethod
    def coerce_minutes(cls, v: Any) -> float:
        return non_negative(v)


class AssemblyReference(_LineBase):
    """Nested assembly expanded with a quantity multiplier."""

    type: Literal["assembly"] = "assembly"
    assembly_id: str = Field(..., description="Catalog assembly id")


LineItem = Annotated[
    Union[MaterialLine, BlankMaterialLine, LaborLine, AssemblyReference],
    Field(discriminator="type"),
]


class Assembly(BaseModel):
    """Pre-built bundle of materials, labor and nested assemblies."""

    id: str = Field(..., description="Assembly identifier", min_length=1)
    name: str = Field(default="", description="Assembly name")
    job_type_id: Optional[str] = Field(None)
    use_admin_rules: bool = Field(default=False)
    customer_supplied_materials: bool = Field(default=False)
    items: List[LineItem] = Field(default_factory=list)

    class Config:
        frozen = True


class PricingFlags(BaseModel):
    """Per-estimate toggles consumed by the pricing engine."""

    customer_supplies_materials: bool = False
    apply_discount: bool = False
    apply_processing_fee: bool = False
    apply_misc_material: bool = True

    class Config:
        frozen = True


class EstimateOption(BaseModel):
    """Alternative line-item set (e.g. Bronze/Silver/Gold) on one estimate.

    ``None`` overrides inherit the base estimate's value.
    """

    id: str = Field(..., description="Option identifier")
    option_name: str = Field(default="", description="Display name")
    sort_order: int = Field(default=0)
    items: List[LineItem] = Field(default_factory=list)

    job_type_id: Optional[str] = None
    use_admin_rules: Optional[bool] = None
    discount_percent: Optional[float] = None
    customer_supplies_materials: Optional[bool] = None
    apply_discount: Optional[bool] = None
    apply_processing_fee: Optional[bool] = None
    apply_misc_material: Optional[bool] = None

    class Config:
        frozen = True


class Estimate(BaseModel):
    """Customer estimate."""

    id: str = Field(default="estimate", description="Estimate identifier")
    name: str = Field(default="", description="Estimate name")
    job_type_id: Optional[str] = None
    use_admin_rules: bool = False
    discount_percent: Optional[float] = Field(
        None, description="Overrides the company default discount percent"
    )
    flags: PricingFlags = Field(default_factory=PricingFlags)
    items: List[LineItem] = Field(default_factory=list)
    options: List[EstimateOption] = Field(default_factory=list)

    @field_validator("discount_percent", mode="before")
    @classmethod
    def clamp_discount(cls, v: Any) -> Optional[float]:
        return None if v is None else clamp_percent(v)

    class Config:
        frozen = True


class AdminRule(BaseModel):
    """Rule that assigns a job type when its conditions hold."""

    id: str = Field(default="", description="Rule identifier")
    name: str = Field(default="", description="Rule name")
    enabled: bool = True
    priority: int = Field(default=1, description="Lower runs first")
    applies_to: RuleScope = Field(default=RuleScope.BOTH)
    match_text: Optional[str] = Field(None, description="Case-insensitive name substring")
    min_expected_labor_minutes: Optional[float] = None
    min_material_cost: Optional[float] = None
    min_quantity: Optional[float] = None
    set_job_type_id: Optional[str] = Field(None, description="Job type to assign on match")

    @field_validator("min_expected_labor_minutes", "min_material_cost", "min_quantity", mode="before")
    @classmethod
    def coerce_threshold(cls, v: Any) -> Optional[float]:
        return None if v is None else non_negative(v)

    @field_validator("priority", mode="before")
    @classmethod
    def coerce_priority(cls, v: Any) -> int:
        return int(to_number(v, default=1.0))

    class Config:
        frozen = True
        use_enum_values = True


# ---------------------------------------------------------------------------
# Pricing output
# ---------------------------------------------------------------------------


class PricingLine(BaseModel):
    """Display split for one top-level line."""

    type: str = Field(..., description="Line type")
    name: Optional[str] = Field(None, description="Line label")
    quantity: float = Field(..., ge=0.0)
    material_cost: float = Field(default=0.0, description="Pre-tax extended material cost")
    purchase_tax: float = Field(default=0.0)
    material_price: float = Field(default=0.0, description="Marked-up material sell")
    labor_minutes: float = Field(default=0.0, description="Baseline minutes")
    labor_price: float = Field(default=0.0, description="Allocated share of labor sell")
    total_price: float = Field(default=0.0)

    class Config:
        frozen = True


class LaborBreakdown(BaseModel):
    """Labor time and pricing."""

    billing_mode: BillingMode
    actual_minutes: float = Field(..., description="Baseline minutes", ge=0.0)
    expected_minutes: float = Field(..., description="Efficiency-adjusted minutes", ge=0.0)
    base_rate: float = Field(default=0.0, description="Hourly cost rate")
    effective_rate: float = Field(default=0.0, description="Hourly sell rate")
    labor_cost: float = Field(default=0.0, ge=0.0)
    labor_sell: float = Field(default=0.0, ge=0.0)

    class Config:
        frozen = True
        use_enum_values = True


class MaterialBreakdown(BaseModel):
    """Material totals."""

    material_cost: float = Field(default=0.0, ge=0.0)
    purchase_tax: float = Field(default=0.0, ge=0.0)
    material_sell: float = Field(default=0.0, ge=0.0)
    raw_material_sell: float = Field(default=0.0, description="Sell before customer-supplied zeroing", ge=0.0)
    misc_material: float = Field(default=0.0, ge=0.0)

    class Config:
        frozen = True


class SubtotalBreakdown(BaseModel):
    """Discount preload figures."""

    target_subtotal: float = Field(default=0.0, ge=0.0)
    pre_discount_subtotal: float = Field(default=0.0, ge=0.0)
    discount_percent: float = Field(default=0.0, ge=0.0, le=100.0)
    discount_amount: float = Field(default=0.0, ge=0.0)
    subtotal_before_fees: float = Field(default=0.0, ge=0.0)

    class Config:
        frozen = True


class PricingBreakdown(BaseModel):
    """Complete, serializable result of one pricing request."""

    job_type_id: Optional[str] = None
    job_type_name: Optional[str] = None
    currency: str = Field(default="USD")
    lines: List[PricingLine] = Field(default_factory=list)
    labor: LaborBreakdown
    materials: MaterialBreakdown
    subtotals: SubtotalBreakdown
    processing_fee: float = Field(default=0.0, ge=0.0)
    total: float = Field(default=0.0, ge=0.0)
    gross_margin_target_percent: float = Field(default=0.0)
    gross_margin_expected_percent: Optional[float] = None
    warnings: List[str] = Field(default_factory=list)

    @property
    def cogs(self) -> float:
        return round(
            self.materials.material_cost + self.materials.purchase_tax + self.labor.labor_cost, 2
        )

    class Config:
        frozen = True


class TechCostBreakdown(BaseModel):
    """Every intermediate figure of the wage, overhead and revenue resolvers."""

    efficiency_percent: float
    gross_margin_target_percent: float

    overhead_monthly: float
    overhead_annual: float

    total_hours_year: float
    effective_hours_year: float
    billable_hours_per_month: float

    avg_tech_wage: float
    overhead_per_hour: float
    loaded_labor_rate: float
    loaded_labor_sell_rate: float

    cogs_per_billable_hour: float
    revenue_per_billable_hour_for_gross_margin: float
    revenue_per_billable_hour_for_net_profit: float
    required_revenue_per_billable_hour: float

    class Config:
        frozen = True

"""Deterministic pricing engine for material and labor line items.

Material lines are taxed and marked up, labor minutes are inflated by the
job type's efficiency (flat rate) or costed at wage (hourly), and a discount
preload and processing fee are layered on the resulting subtotal.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field

from .config import PricingDefaultsConfig
from .models import (
    BillingMode,
    CompanySettings,
    JobTypePolicy,
    LaborBreakdown,
    MarkupMode,
    MaterialBreakdown,
    PricingBreakdown,
    PricingFlags,
    PricingLine,
    SubtotalBreakdown,
    TechCostBreakdown,
    clamp_percent,
)
from .tech_cost import compute_tech_cost_breakdown, safe_divide

logger = logging.getLogger(__name__)


def round_money(value: float, places: int = 2) -> float:
    """Round half-up to ``places`` decimals."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))


def allocate_proportionally(total: float, weights: Sequence[float], places: int = 2) -> List[float]:
    """Split ``total`` by ``weights`` so the parts sum exactly to ``total``.

    Uses the largest-remainder method on the smallest currency unit.  When
    every weight is zero the parts are all zero.
    """
    if not weights:
        return []
    weight_sum = sum(w for w in weights if w > 0)
    if weight_sum <= 0:
        return [0.0] * len(weights)

    scale = 10 ** places
    total_units = int(round(round_money(total, places) * scale))
    exact = [(max(w, 0.0) / weight_sum) * total_units for w in weights]
    units = [int(e) for e in exact]
    remainder = total_units - sum(units)

    # Hand out leftover units to the largest fractional parts, earliest first on ties
    order = sorted(range(len(weights)), key=lambda i: (-(exact[i] - units[i]), i))
    for i in order[:remainder]:
        units[i] += 1

    return [u / scale for u in units]


class MaterialLinePrice(BaseModel):
    """Resolved cost and sell for one material line at its full quantity."""

    name: Optional[str] = None
    quantity: float = Field(..., ge=0.0)
    unit_cost: float = Field(..., ge=0.0)
    markup_percent: float = Field(default=0.0, ge=0.0)
    material_cost: float = Field(default=0.0, ge=0.0)
    purchase_tax: float = Field(default=0.0, ge=0.0)
    material_sell: float = Field(default=0.0, ge=0.0)
    raw_material_sell: float = Field(default=0.0, ge=0.0)
    misc_base: float = Field(default=0.0, ge=0.0, description="Sell the misc surcharge is charged on")
    labor_minutes: float = Field(default=0.0, ge=0.0)
    customer_supplied: bool = False

    class Config:
        frozen = True


class MaterialPricer:
    """Applies purchase tax and the company markup policy to material lines."""

    def __init__(self, settings: CompanySettings, places: int = 2):
        self.settings = settings
        self.places = places

    def resolve_markup_percent(self, unit_taxed_cost: float) -> float:
        """Markup percent for a unit cost.

        Tiered mode uses the first band (in listed order) containing the
        cost; bounds are inclusive and a band with ``max <= 0`` is
        unbounded.  Costs outside every band get no markup.
        """
        if self.settings.material_markup_mode == MarkupMode.FIXED.value:
            return self.settings.material_markup_fixed_percent

        for tier in self.settings.material_markup_tiers:
            if tier.contains(unit_taxed_cost):
                return tier.markup_percent
        return 0.0

    def price_line(
        self,
        unit_cost: float,
        quantity: float,
        taxable: bool,
        labor_minutes_per_unit: float = 0.0,
        customer_supplied: bool = False,
        name: Optional[str] = None,
    ) -> MaterialLinePrice:
        """Resolve one material line.

        Args:
            unit_cost: Resolved unit cost (override already applied)
            quantity: Extended quantity, including any assembly multiplier
            taxable: Whether purchase tax applies
            labor_minutes_per_unit: Intrinsic install minutes per unit
            customer_supplied: Zero cost and sell (labor is unaffected)
            name: Label for display

        Returns:
            MaterialLinePrice rounded at line granularity
        """
        tax_factor = 1.0 + (self.settings.material_purchase_tax_percent / 100.0 if taxable else 0.0)

        unit_taxed_cost = round_money(unit_cost * tax_factor, self.places)
        markup = self.resolve_markup_percent(unit_taxed_cost)

        material_cost = round_money(unit_cost * quantity, self.places)
        taxed_cost = round_money(material_cost * tax_factor, self.places)
        sell = round_money(taxed_cost * (1.0 + markup / 100.0), self.places)
        purchase_tax = round_money(taxed_cost - material_cost, self.places)
        labor_minutes = labor_minutes_per_unit * quantity

        if customer_supplied:
            misc_base = sell if self.settings.misc_applies_when_customer_supplies else 0.0
            return MaterialLinePrice(
                name=name,
                quantity=quantity,
                unit_cost=unit_cost,
                markup_percent=markup,
                raw_material_sell=sell,
                misc_base=misc_base,
                labor_minutes=labor_minutes,
                customer_supplied=True,
            )

        return MaterialLinePrice(
            name=name,
            quantity=quantity,
            unit_cost=unit_cost,
            markup_percent=markup,
            material_cost=material_cost,
            purchase_tax=purchase_tax,
            material_sell=sell,
            raw_material_sell=sell,
            misc_base=sell,
            labor_minutes=labor_minutes,
        )


def resolve_labor(
    baseline_minutes: float,
    job_type: JobTypePolicy,
    tech_cost: TechCostBreakdown,
    settings: CompanySettings,
    defaults: Optional[PricingDefaultsConfig] = None,
) -> LaborBreakdown:
    """Turn baseline minutes into expected minutes, labor cost and labor sell.

    Flat rate inflates the baseline by efficiency, floors it at the company's
    minimum billable minutes when any labor exists, and bills at the required
    revenue per billable hour.  Hourly bills the baseline at average wage
    grossed up by the margin target.
    """
    defaults = defaults or PricingDefaultsConfig()
    places = defaults.rounding_places
    baseline = max(0.0, baseline_minutes)
    wage = tech_cost.avg_tech_wage

    if job_type.billing_mode == BillingMode.HOURLY.value:
        labor_cost = round_money(baseline / 60.0 * wage, places)
        gross_margin = job_type.gross_margin_percent / 100.0
        labor_sell = round_money(safe_divide(labor_cost, 1.0 - gross_margin), places)
        return LaborBreakdown(
            billing_mode=BillingMode.HOURLY,
            actual_minutes=baseline,
            expected_minutes=baseline,
            base_rate=wage,
            effective_rate=safe_divide(wage, 1.0 - gross_margin),
            labor_cost=labor_cost,
            labor_sell=labor_sell,
        )

    efficiency = max(job_type.efficiency_percent, defaults.efficiency_floor_percent) / 100.0
    expected = baseline / efficiency
    minimum = settings.min_billable_labor_minutes_per_job
    if baseline > 0 and expected < minimum:
        logger.debug(f"Expected minutes {expected:.1f} raised to job minimum {minimum:.1f}")
        expected = minimum

    rate = tech_cost.required_revenue_per_billable_hour
    return LaborBreakdown(
        billing_mode=BillingMode.FLAT,
        actual_minutes=baseline,
        expected_minutes=expected,
        base_rate=tech_cost.loaded_labor_rate,
        effective_rate=rate,
        labor_cost=round_money(expected / 60.0 * wage, places),
        labor_sell=round_money(expected / 60.0 * rate, places),
    )


def misc_material_surcharge(
    misc_base: float,
    settings: CompanySettings,
    flags: PricingFlags,
    places: int = 2,
) -> float:
    """Misc consumables charge on the material sell eligible for it.

    ``misc_base`` is the pre customer-supplied sell, less any customer-supplied
    subtree the company policy exempts.
    """
    if not flags.apply_misc_material or misc_base <= 0:
        return 0.0
    if flags.customer_supplies_materials and not settings.misc_applies_when_customer_supplies:
        return 0.0
    return round_money(misc_base * settings.misc_material_percent / 100.0, places)


def apply_discount_preload(
    target_subtotal: float,
    discount_percent: float,
    discount_permitted: bool,
    apply_discount: bool,
    places: int = 2,
) -> SubtotalBreakdown:
    """Inflate the target subtotal so a later discount still nets the target.

    With the discount toggle off the inflated (preload) subtotal is charged;
    with it on, the charge drops back to the target and the difference is the
    discount.  A 100% discount has no finite preload, so its inflation is 0.
    """
    discount_percent = clamp_percent(discount_percent)
    target = round_money(target_subtotal, places)

    if not discount_permitted or discount_percent <= 0:
        return SubtotalBreakdown(
            target_subtotal=target,
            pre_discount_subtotal=target,
            discount_percent=0.0,
            discount_amount=0.0,
            subtotal_before_fees=target,
        )

    denominator = 1.0 - discount_percent / 100.0
    if denominator <= 0:
        logger.warning(f"Discount of {discount_percent}% cannot be preloaded; ignoring it")
        preload = target
    else:
        preload = round_money(target / denominator, places)

    if apply_discount:
        charged = target
        discount_amount = round_money(preload - target, places)
    else:
        charged = preload
        discount_amount = 0.0

    return SubtotalBreakdown(
        target_subtotal=target,
        pre_discount_subtotal=preload,
        discount_percent=discount_percent,
        discount_amount=discount_amount,
        subtotal_before_fees=charged,
    )


def expected_gross_margin_percent(revenue: float, cogs: float) -> Optional[float]:
    """Realized gross margin, or None when there is no revenue."""
    if revenue <= 0:
        return None
    return round((revenue - cogs) / revenue * 100.0, 4)


def build_breakdown(
    material_prices: Iterable[MaterialLinePrice],
    baseline_minutes: float,
    settings: CompanySettings,
    job_type: JobTypePolicy,
    flags: PricingFlags,
    discount_percent: Optional[float] = None,
    lines: Optional[List[PricingLine]] = None,
    warnings: Optional[List[str]] = None,
    defaults: Optional[PricingDefaultsConfig] = None,
    tech_cost: Optional[TechCostBreakdown] = None,
) -> PricingBreakdown:
    """Aggregate resolved materials and baseline minutes into a breakdown.

    Args:
        material_prices: Every resolved material line, nested ones included
        baseline_minutes: Total baseline (pre-efficiency) labor minutes
        settings: Canonical company settings
        job_type: Resolved job type policy
        flags: Estimate toggles
        discount_percent: Override of the company default discount
        lines: Per-line display splits (labor prices filled in here)
        warnings: Warnings collected while resolving lines
        defaults: Engine defaults
        tech_cost: Precomputed tech cost breakdown for this job type

    Returns:
        Complete PricingBreakdown
    """
    defaults = defaults or PricingDefaultsConfig()
    places = defaults.rounding_places
    tech_cost = tech_cost or compute_tech_cost_breakdown(settings, job_type, defaults)
    material_prices = list(material_prices)

    material_cost = round_money(sum(m.material_cost for m in material_prices), places)
    purchase_tax = round_money(sum(m.purchase_tax for m in material_prices), places)
    material_sell = round_money(sum(m.material_sell for m in material_prices), places)
    raw_material_sell = round_money(sum(m.raw_material_sell for m in material_prices), places)
    # Customer-supplied subtrees only count toward misc when the policy allows it
    misc_base = round_money(sum(m.misc_base for m in material_prices), places)
    misc = misc_material_surcharge(misc_base, settings, flags, places)

    labor = resolve_labor(baseline_minutes, job_type, tech_cost, settings, defaults)

    if discount_percent is None:
        discount_percent = settings.default_discount_percent
    subtotals = apply_discount_preload(
        material_sell + labor.labor_sell + misc,
        discount_percent,
        discount_permitted=job_type.allow_discounts,
        apply_discount=flags.apply_discount,
        places=places,
    )

    charged = subtotals.subtotal_before_fees
    processing_fee = 0.0
    if flags.apply_processing_fee:
        processing_fee = round_money(charged * settings.processing_fee_percent / 100.0, places)
    total = round_money(charged + processing_fee, places)

    cogs = material_cost + purchase_tax + labor.labor_cost
    lines = _allocate_line_labor(lines or [], labor.labor_sell, places)

    return PricingBreakdown(
        job_type_id=job_type.id,
        job_type_name=job_type.name,
        currency=defaults.currency,
        lines=lines,
        labor=labor,
        materials=MaterialBreakdown(
            material_cost=material_cost,
            purchase_tax=purchase_tax,
            material_sell=material_sell,
            raw_material_sell=raw_material_sell,
            misc_material=misc,
        ),
        subtotals=subtotals,
        processing_fee=processing_fee,
        total=total,
        gross_margin_target_percent=job_type.gross_margin_percent,
        gross_margin_expected_percent=expected_gross_margin_percent(charged, cogs),
        warnings=list(warnings or []),
    )


def _allocate_line_labor(lines: List[PricingLine], labor_sell: float, places: int) -> List[PricingLine]:
    """Back-allocate labor sell to display lines by baseline minute share."""
    shares = allocate_proportionally(labor_sell, [line.labor_minutes for line in lines], places)
    return [
        line.model_copy(
            update={
                "labor_price": share,
                "total_price": round_money(line.material_price + share, places),
            }
        )
        for line, share in zip(lines, shares)
    ]

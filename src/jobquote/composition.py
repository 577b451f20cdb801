"""Composition of assemblies and estimates into pricing breakdowns.

Assembly references are expanded recursively with their quantity multiplier.
Only baseline labor minutes travel upward, so the efficiency and minimum job
minutes policy is applied once, at the outermost record being priced.
"""

import logging
from typing import Any, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .catalog import CatalogLookup, InMemoryCatalog
from .config import PricingDefaultsConfig
from .models import (
    AdminRule,
    Assembly,
    AssemblyReference,
    BlankMaterialLine,
    CompanySettings,
    Estimate,
    EstimateOption,
    JobTypePolicy,
    LaborLine,
    MaterialLine,
    PricingBreakdown,
    PricingFlags,
    PricingLine,
    RuleScope,
)
from .pricing import MaterialLinePrice, MaterialPricer, build_breakdown, round_money
from .rules import RuleMetrics, select_job_type_by_rules
from .settings import normalize_company_settings, normalize_job_types
from .tech_cost import compute_tech_cost_breakdown

logger = logging.getLogger(__name__)

SettingsInput = Union[CompanySettings, Mapping[str, Any]]


class _LineTotals:
    """Everything one line contributes once fully expanded."""

    def __init__(self) -> None:
        self.material_prices: List[MaterialLinePrice] = []
        self.labor_minutes = 0.0

    def add_material(self, price: MaterialLinePrice) -> None:
        self.material_prices.append(price)
        self.labor_minutes += price.labor_minutes

    def merge(self, other: "_LineTotals") -> None:
        self.material_prices.extend(other.material_prices)
        self.labor_minutes += other.labor_minutes

    def total(self, field: str, places: int) -> float:
        return round_money(sum(getattr(p, field) for p in self.material_prices), places)


class LineComposer:
    """Expands line items against the catalog and resolves their materials."""

    def __init__(
        self,
        settings: CompanySettings,
        catalog: CatalogLookup,
        defaults: PricingDefaultsConfig,
    ) -> None:
        self.catalog = catalog
        self.places = defaults.rounding_places
        self.pricer = MaterialPricer(settings, self.places)
        self.warnings: List[str] = []

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def resolve(
        self,
        line: Any,
        multiplier: float = 1.0,
        customer_supplied: bool = False,
        ancestors: FrozenSet[str] = frozenset(),
    ) -> Optional[_LineTotals]:
        """Resolve one line at ``multiplier`` times its own quantity.

        Returns None when the line references something the catalog cannot
        resolve (or an assembly already on the expansion path); the caller
        skips its contribution.
        """
        quantity = multiplier * line.quantity
        totals = _LineTotals()

        if isinstance(line, MaterialLine):
            material = self.catalog.get_material(line.material_id)
            if material is None:
                self._warn(f"Material {line.material_id} not found; line skipped")
                return None
            unit_cost = line.cost_override if line.cost_override is not None else material.unit_cost
            totals.add_material(
                self.pricer.price_line(
                    unit_cost,
                    quantity,
                    material.taxable,
                    material.labor_minutes,
                    customer_supplied=customer_supplied,
                    name=material.name,
                )
            )
        elif isinstance(line, BlankMaterialLine):
            totals.add_material(
                self.pricer.price_line(
                    line.cost,
                    quantity,
                    line.taxable,
                    line.labor_minutes,
                    customer_supplied=customer_supplied,
                    name=line.name,
                )
            )
        elif isinstance(line, LaborLine):
            totals.labor_minutes += line.minutes * quantity
        elif isinstance(line, AssemblyReference):
            assembly = self.catalog.get_assembly(line.assembly_id)
            if assembly is None:
                self._warn(f"Assembly {line.assembly_id} not found; line skipped")
                return None
            if assembly.id in ancestors:
                self._warn(f"Assembly {assembly.id} references itself; line skipped")
                return None
            supplied = customer_supplied or assembly.customer_supplied_materials
            for child in assembly.items:
                child_totals = self.resolve(child, quantity, supplied, ancestors | {assembly.id})
                if child_totals is not None:
                    totals.merge(child_totals)
        else:
            self._warn(f"Unsupported line type {type(line).__name__}; line skipped")
            return None

        return totals

    def display_name(self, line: Any) -> Optional[str]:
        if isinstance(line, MaterialLine):
            material = self.catalog.get_material(line.material_id)
            return material.name if material else None
        if isinstance(line, AssemblyReference):
            assembly = self.catalog.get_assembly(line.assembly_id)
            return assembly.name if assembly else None
        return getattr(line, "name", None)

    def compose(
        self,
        items: Iterable[Any],
        customer_supplied: bool,
        ancestors: FrozenSet[str] = frozenset(),
    ) -> Tuple[List[MaterialLinePrice], float, List[PricingLine]]:
        """Resolve top-level lines into material prices, minutes and display lines."""
        material_prices: List[MaterialLinePrice] = []
        baseline_minutes = 0.0
        lines: List[PricingLine] = []

        for line in items:
            totals = self.resolve(line, 1.0, customer_supplied, ancestors)
            if totals is None:
                continue
            material_prices.extend(totals.material_prices)
            baseline_minutes += totals.labor_minutes
            material_price = totals.total("material_sell", self.places)
            lines.append(
                PricingLine(
                    type=line.type,
                    name=self.display_name(line),
                    quantity=line.quantity,
                    material_cost=totals.total("material_cost", self.places),
                    purchase_tax=totals.total("purchase_tax", self.places),
                    material_price=material_price,
                    labor_minutes=totals.labor_minutes,
                    total_price=material_price,
                )
            )

        return material_prices, baseline_minutes, lines


def resolve_job_type(
    job_type_id: Optional[str],
    job_types: Sequence[JobTypePolicy],
    defaults: Optional[PricingDefaultsConfig] = None,
) -> JobTypePolicy:
    """Pick the job type to price with.

    The explicitly selected job type wins when it exists and is enabled;
    otherwise the enabled default job type; otherwise a neutral policy built
    from the engine defaults.
    """
    defaults = defaults or PricingDefaultsConfig()

    if job_type_id is not None:
        for job_type in job_types:
            if job_type.id == job_type_id:
                if job_type.enabled:
                    return job_type
                logger.warning(f"Job type {job_type_id} is disabled; using the default job type")
                break
        else:
            logger.warning(f"Job type {job_type_id} not found; using the default job type")

    for job_type in job_types:
        if job_type.is_default and job_type.enabled:
            return job_type

    return JobTypePolicy(
        name="Default",
        gross_margin_percent=defaults.default_gross_margin_percent,
        efficiency_percent=defaults.default_efficiency_percent,
    )


def price_line_items(
    items: Iterable[Any],
    settings: SettingsInput,
    job_type: Optional[JobTypePolicy] = None,
    catalog: Optional[CatalogLookup] = None,
    flags: Optional[PricingFlags] = None,
    discount_percent: Optional[float] = None,
    config: Optional[PricingDefaultsConfig] = None,
    ancestors: FrozenSet[str] = frozenset(),
) -> PricingBreakdown:
    """Price a set of line items with one job type.

    Args:
        items: Material, blank material, labor and assembly lines
        settings: Company settings (canonical model or raw mapping)
        job_type: Job type policy; None uses the neutral defaults
        catalog: Catalog lookup for material and assembly ids
        flags: Customer-supplies, discount, fee and misc toggles
        discount_percent: Override of the company default discount
        config: Engine defaults
        ancestors: Assembly ids already being expanded (cycle guard)

    Returns:
        PricingBreakdown for the items
    """
    defaults = config or PricingDefaultsConfig()
    settings = normalize_company_settings(settings)
    job_type = job_type or resolve_job_type(None, [], defaults)
    catalog = catalog or InMemoryCatalog()
    flags = flags or PricingFlags()

    composer = LineComposer(settings, catalog, defaults)
    material_prices, baseline_minutes, lines = composer.compose(
        items, flags.customer_supplies_materials, ancestors
    )

    return build_breakdown(
        material_prices,
        baseline_minutes,
        settings,
        job_type,
        flags,
        discount_percent=discount_percent,
        lines=lines,
        warnings=composer.warnings,
        defaults=defaults,
        tech_cost=compute_tech_cost_breakdown(settings, job_type, defaults),
    )


def _apply_admin_rules(
    breakdown: PricingBreakdown,
    rules: Sequence[AdminRule],
    scope: RuleScope,
    name: str,
    quantity: float,
    job_types: Sequence[JobTypePolicy],
    current: JobTypePolicy,
) -> Optional[JobTypePolicy]:
    """Job type assigned by the first matching rule, if it differs from ``current``."""
    metrics = RuleMetrics(
        expected_labor_minutes=breakdown.labor.expected_minutes,
        material_cost=breakdown.materials.material_cost,
        quantity=quantity,
    )
    rule = select_job_type_by_rules(rules, scope, name, metrics)
    if rule is None or rule.set_job_type_id == current.id:
        return None

    for job_type in job_types:
        if job_type.id == rule.set_job_type_id and job_type.enabled:
            return job_type

    logger.warning(f"Admin rule '{rule.name}' assigns unknown job type {rule.set_job_type_id}")
    return None


def price_assembly(
    assembly: Assembly,
    settings: SettingsInput,
    catalog: Optional[CatalogLookup] = None,
    job_types: Optional[Iterable[Any]] = None,
    rules: Optional[Sequence[AdminRule]] = None,
    config: Optional[PricingDefaultsConfig] = None,
    flags: Optional[PricingFlags] = None,
) -> PricingBreakdown:
    """Price an assembly on its own.

    The assembly is the outermost record here, so efficiency and the minimum
    job minutes apply to its own baseline.
    """
    defaults = config or PricingDefaultsConfig()
    settings = normalize_company_settings(settings)
    policies = normalize_job_types(job_types)
    flags = flags or PricingFlags()
    if assembly.customer_supplied_materials and not flags.customer_supplies_materials:
        flags = flags.model_copy(update={"customer_supplies_materials": True})

    logger.info(f"Pricing assembly {assembly.id} ({len(assembly.items)} items)")

    job_type = resolve_job_type(assembly.job_type_id, policies, defaults)
    ancestors = frozenset({assembly.id})
    breakdown = price_line_items(
        assembly.items, settings, job_type, catalog, flags, config=defaults, ancestors=ancestors
    )

    if assembly.use_admin_rules and rules:
        quantity = sum(item.quantity for item in assembly.items)
        ruled = _apply_admin_rules(
            breakdown, rules, RuleScope.ASSEMBLY, assembly.name, quantity, policies, job_type
        )
        if ruled is not None:
            breakdown = price_line_items(
                assembly.items, settings, ruled, catalog, flags, config=defaults, ancestors=ancestors
            )

    return breakdown


def price_estimate(
    estimate: Estimate,
    settings: SettingsInput,
    catalog: Optional[CatalogLookup] = None,
    job_types: Optional[Iterable[Any]] = None,
    rules: Optional[Sequence[AdminRule]] = None,
    config: Optional[PricingDefaultsConfig] = None,
) -> PricingBreakdown:
    """Price an estimate's own line items.

    Args:
        estimate: Estimate with its items and flags
        settings: Company settings (canonical model or raw mapping)
        catalog: Catalog lookup for referenced materials and assemblies
        job_types: Available job types (models or raw mappings)
        rules: Admin rules, consulted when ``estimate.use_admin_rules`` is set
        config: Engine defaults

    Returns:
        PricingBreakdown for the estimate
    """
    defaults = config or PricingDefaultsConfig()
    settings = normalize_company_settings(settings)
    policies = normalize_job_types(job_types)

    logger.info(f"Pricing estimate {estimate.id} ({len(estimate.items)} items)")

    job_type = resolve_job_type(estimate.job_type_id, policies, defaults)
    breakdown = price_line_items(
        estimate.items,
        settings,
        job_type,
        catalog,
        estimate.flags,
        discount_percent=estimate.discount_percent,
        config=defaults,
    )

    if estimate.use_admin_rules and rules:
        quantity = sum(item.quantity for item in estimate.items)
        ruled = _apply_admin_rules(
            breakdown, rules, RuleScope.ESTIMATE, estimate.name, quantity, policies, job_type
        )
        if ruled is not None:
            breakdown = price_line_items(
                estimate.items,
                settings,
                ruled,
                catalog,
                estimate.flags,
                discount_percent=estimate.discount_percent,
                config=defaults,
            )

    return breakdown


def build_estimate_for_option(estimate: Estimate, option: EstimateOption) -> Estimate:
    """Merge an option's overrides onto its estimate; None inherits the base."""

    def pick(override: Any, base: Any) -> Any:
        return base if override is None else override

    base_flags = estimate.flags
    flags = PricingFlags(
        customer_supplies_materials=pick(option.customer_supplies_materials, base_flags.customer_supplies_materials),
        apply_discount=pick(option.apply_discount, base_flags.apply_discount),
        apply_processing_fee=pick(option.apply_processing_fee, base_flags.apply_processing_fee),
        apply_misc_material=pick(option.apply_misc_material, base_flags.apply_misc_material),
    )

    return estimate.model_copy(
        update={
            "job_type_id": pick(option.job_type_id, estimate.job_type_id),
            "use_admin_rules": pick(option.use_admin_rules, estimate.use_admin_rules),
            "discount_percent": pick(option.discount_percent, estimate.discount_percent),
            "flags": flags,
            "items": list(option.items),
            "options": [],
        }
    )


def price_estimate_options(
    estimate: Estimate,
    settings: SettingsInput,
    catalog: Optional[CatalogLookup] = None,
    job_types: Optional[Iterable[Any]] = None,
    rules: Optional[Sequence[AdminRule]] = None,
    config: Optional[PricingDefaultsConfig] = None,
) -> List[Tuple[EstimateOption, PricingBreakdown]]:
    """Price every option of an estimate, ordered by ``sort_order``."""
    settings = normalize_company_settings(settings)
    policies = normalize_job_types(job_types)
    results = []
    for option in sorted(estimate.options, key=lambda o: o.sort_order):
        option_estimate = build_estimate_for_option(estimate, option)
        breakdown = price_estimate(option_estimate, settings, catalog, policies, rules, config)
        results.append((option, breakdown))
    return results

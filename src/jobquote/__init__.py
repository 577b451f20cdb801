"""Job Quote - deterministic pricing engine for field-service estimates."""

__version__ = "0.1.0"

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
    Material,
    MaterialLine,
    PricingBreakdown,
    PricingFlags,
    TechCostBreakdown,
)
from .catalog import CatalogLookup, InMemoryCatalog
from .settings import normalize_admin_rules, normalize_company_settings, normalize_job_types
from .tech_cost import compute_tech_cost_breakdown, required_revenue_per_billable_hour
from .composition import (
    price_assembly,
    price_estimate,
    price_estimate_options,
    price_line_items,
    resolve_job_type,
)
from .job_costing import JobCostingActuals, compare_to_estimate
from .workbook import Workbook, load_workbook

__all__ = [
    "AdminRule",
    "Assembly",
    "AssemblyReference",
    "BlankMaterialLine",
    "CompanySettings",
    "Estimate",
    "EstimateOption",
    "JobTypePolicy",
    "LaborLine",
    "Material",
    "MaterialLine",
    "PricingBreakdown",
    "PricingFlags",
    "TechCostBreakdown",
    "CatalogLookup",
    "InMemoryCatalog",
    "normalize_company_settings",
    "normalize_job_types",
    "normalize_admin_rules",
    "compute_tech_cost_breakdown",
    "required_revenue_per_billable_hour",
    # Composition
    "price_assembly",
    "price_estimate",
    "price_estimate_options",
    "price_line_items",
    "resolve_job_type",
    "JobCostingActuals",
    "compare_to_estimate",
    "Workbook",
    "load_workbook",
]

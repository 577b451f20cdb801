"""Input boundary that maps legacy settings keys onto the canonical shape.

Stored settings, job types and admin rules have drifted over time, so the
same value may arrive under several names.  Everything is renamed here, once, so the
resolvers only ever see canonical field names.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .models import AdminRule, CompanySettings, JobTypePolicy

logger = logging.getLogger(__name__)


class SettingsAliases:
    """Alias tables: canonical_name -> list of historical names."""

    COMPANY_ALIASES = {
        "material_purchase_tax_percent": [
            "purchase_tax_percent",
            "material_tax_percent",
            "sales_tax_percent",
        ],
        "misc_material_percent": [
            "misc_materials_percent",
            "misc_percent",
        ],
        "misc_applies_when_customer_supplies": [
            "allow_misc_with_customer_materials",
            "misc_with_customer_materials",
            "apply_misc_when_customer_supplies",
        ],
        "default_discount_percent": [
            "discount_percent_default",
            "discount_percent",
        ],
        "processing_fee_percent": [
            "processing_fees_percent",
            "card_fee_percent",
        ],
        "min_billable_labor_minutes_per_job": [
            "min_labor_minutes",
            "minimum_billable_minutes",
            "min_billable_minutes",
        ],
        "material_markup_fixed_percent": [
            "material_markup_percent",
            "fixed_markup_percent",
        ],
        "technicians": [
            "technician_count",
            "techs",
        ],
        "work_hours_per_day": [
            "hours_per_day",
        ],
    }

    JOB_TYPE_ALIASES = {
        "gross_margin_percent": [
            "profit_margin_percent",
            "margin_percent",
        ],
        "billing_mode": [
            "mode",
        ],
    }

    ADMIN_RULE_ALIASES = {
        "applies_to": [
            "scope",
        ],
        "set_job_type_id": [
            "job_type_id",
        ],
    }

    # Legacy enum spellings
    VALUE_ALIASES = {
        "net_profit_goal_mode": {"fixed": "dollar", "amount": "dollar", "pct": "percent"},
        "billing_mode": {"flat_rate": "flat", "flatrate": "flat"},
        "material_markup_mode": {"tiers": "tiered", "flat": "fixed"},
        "applies_to": {"estimates": "estimate", "assemblies": "assembly", "all": "both"},
    }

    # business_expenses_mode / personal_expenses_mode are the older way of
    # saying *_apply_itemized
    EXPENSE_MODE_KEYS = {
        "business_expenses_mode": "business_apply_itemized",
        "personal_expenses_mode": "personal_apply_itemized",
    }

    @staticmethod
    def normalize_key(name: str) -> str:
        """Normalize a key for comparison (case, spaces, dashes)."""
        normalized = re.sub(r"[^\w]+", "_", str(name).strip().lower())
        return normalized.strip("_")

    @classmethod
    def build_lookup(cls, table: Mapping[str, Iterable[str]]) -> Dict[str, str]:
        lookup: Dict[str, str] = {}
        for canonical, aliases in table.items():
            for alias in aliases:
                lookup[cls.normalize_key(alias)] = canonical
        return lookup


_COMPANY_LOOKUP = SettingsAliases.build_lookup(SettingsAliases.COMPANY_ALIASES)
_JOB_TYPE_LOOKUP = SettingsAliases.build_lookup(SettingsAliases.JOB_TYPE_ALIASES)
_ADMIN_RULE_LOOKUP = SettingsAliases.build_lookup(SettingsAliases.ADMIN_RULE_ALIASES)


def canonicalize_keys(
    raw: Mapping[str, Any],
    lookup: Mapping[str, str],
    canonical_fields: Iterable[str],
) -> Dict[str, Any]:
    """Rename aliased keys to canonical names.

    A canonical key always wins over any of its aliases; among aliases the
    first one encountered wins.  Unknown keys are dropped.
    """
    fields = set(canonical_fields)
    result: Dict[str, Any] = {}
    from_alias: Dict[str, str] = {}

    for key, value in raw.items():
        norm = SettingsAliases.normalize_key(key)
        if norm in fields:
            result[norm] = value
            from_alias.pop(norm, None)
            continue
        canonical = lookup.get(norm)
        if canonical is None:
            continue
        if canonical in result:
            continue
        result[canonical] = value
        from_alias[canonical] = key

    for canonical, alias in from_alias.items():
        logger.debug(f"Mapped legacy key '{alias}' to '{canonical}'")

    return result


def _normalize_enum_values(data: Dict[str, Any]) -> None:
    for field, mapping in SettingsAliases.VALUE_ALIASES.items():
        value = data.get(field)
        if isinstance(value, str):
            data[field] = mapping.get(value.strip().lower(), value.strip().lower())


def normalize_company_settings(raw: Optional[Mapping[str, Any]]) -> CompanySettings:
    """Build canonical ``CompanySettings`` from a stored settings record.

    Args:
        raw: Settings mapping using any mix of canonical and legacy keys

    Returns:
        Validated, clamped ``CompanySettings``
    """
    if isinstance(raw, CompanySettings):
        return raw
    raw = dict(raw or {})

    data = canonicalize_keys(raw, _COMPANY_LOOKUP, CompanySettings.model_fields)

    for mode_key, flag_key in SettingsAliases.EXPENSE_MODE_KEYS.items():
        mode = raw.get(mode_key)
        if flag_key not in data and isinstance(mode, str):
            data[flag_key] = mode.strip().lower() == "itemized"

    _normalize_enum_values(data)

    # Older records stored the markup percent of a tier under "percent"
    tiers = data.get("material_markup_tiers")
    if isinstance(tiers, list):
        data["material_markup_tiers"] = [
            _normalize_tier(tier) for tier in tiers if isinstance(tier, Mapping)
        ]

    # Drop explicit nulls so model defaults apply
    data = {k: v for k, v in data.items() if v is not None}

    return CompanySettings(**data)


def _normalize_tier(tier: Mapping[str, Any]) -> Dict[str, Any]:
    result = dict(tier)
    if "markup_percent" not in result and "percent" in result:
        result["markup_percent"] = result.pop("percent")
    result.pop("percent", None)
    return result


def normalize_job_type(raw: Optional[Mapping[str, Any]]) -> Optional[JobTypePolicy]:
    """Build a canonical ``JobTypePolicy`` from a stored job type record."""
    if raw is None:
        return None
    if isinstance(raw, JobTypePolicy):
        return raw

    data = canonicalize_keys(dict(raw), _JOB_TYPE_LOOKUP, JobTypePolicy.model_fields)
    _normalize_enum_values(data)
    data = {k: v for k, v in data.items() if v is not None}
    if "id" in data:
        data["id"] = str(data["id"])
    return JobTypePolicy(**data)


def normalize_job_types(raw: Optional[Iterable[Mapping[str, Any]]]) -> List[JobTypePolicy]:
    """Normalize a list of job type records, skipping non-mapping entries."""
    result: List[JobTypePolicy] = []
    for entry in raw or []:
        if isinstance(entry, (Mapping, JobTypePolicy)):
            policy = normalize_job_type(entry)
            if policy is not None:
                result.append(policy)
        else:
            logger.warning(f"Ignoring malformed job type entry: {entry!r}")
    return result


def normalize_admin_rule(raw: Mapping[str, Any]) -> AdminRule:
    """Build a canonical ``AdminRule``; stored rules say ``scope``/``job_type_id``."""
    if isinstance(raw, AdminRule):
        return raw

    data = canonicalize_keys(dict(raw), _ADMIN_RULE_LOOKUP, AdminRule.model_fields)
    _normalize_enum_values(data)
    data = {k: v for k, v in data.items() if v is not None}
    for key in ("id", "set_job_type_id"):
        if key in data:
            data[key] = str(data[key])
    return AdminRule(**data)


def normalize_admin_rules(raw: Optional[Iterable[Mapping[str, Any]]]) -> List[AdminRule]:
    """Normalize a list of admin rule records, skipping non-mapping entries."""
    result: List[AdminRule] = []
    for entry in raw or []:
        if isinstance(entry, (Mapping, AdminRule)):
            result.append(normalize_admin_rule(entry))
        else:
            logger.warning(f"Ignoring malformed admin rule entry: {entry!r}")
    return result

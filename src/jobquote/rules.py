"""Admin rules that pick a job type for an estimate or assembly."""

import logging
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field

from .models import AdminRule, RuleScope

logger = logging.getLogger(__name__)


class RuleMetrics(BaseModel):
    """Figures a rule can test against its thresholds."""

    expected_labor_minutes: float = Field(default=0.0, ge=0.0)
    material_cost: float = Field(default=0.0, ge=0.0)
    quantity: float = Field(default=0.0, ge=0.0)


def _applies_to(rule: AdminRule, scope: RuleScope) -> bool:
    return rule.applies_to in (RuleScope.BOTH.value, scope.value)


def rule_matches(rule: AdminRule, name: str, metrics: RuleMetrics) -> bool:
    """Check whether every condition set on ``rule`` holds.

    A rule with no condition at all never matches.
    """
    conditions = []

    match_text = (rule.match_text or "").strip()
    if match_text:
        conditions.append(match_text.lower() in (name or "").lower())
    if rule.min_expected_labor_minutes is not None:
        conditions.append(metrics.expected_labor_minutes >= rule.min_expected_labor_minutes)
    if rule.min_material_cost is not None:
        conditions.append(metrics.material_cost >= rule.min_material_cost)
    if rule.min_quantity is not None:
        conditions.append(metrics.quantity >= rule.min_quantity)

    return bool(conditions) and all(conditions)


def ordered_rules(rules: Iterable[AdminRule], scope: RuleScope) -> List[AdminRule]:
    """Enabled rules for ``scope`` in ascending priority (stable on ties)."""
    candidates = [r for r in rules or [] if r.enabled and _applies_to(r, scope)]
    return sorted(candidates, key=lambda r: r.priority)


def select_job_type_by_rules(
    rules: Iterable[AdminRule],
    scope: RuleScope,
    name: str,
    metrics: Optional[RuleMetrics] = None,
) -> Optional[AdminRule]:
    """Return the first matching rule that assigns a job type, if any."""
    metrics = metrics or RuleMetrics()
    for rule in ordered_rules(rules, scope):
        if not rule.set_job_type_id:
            continue
        if rule_matches(rule, name, metrics):
            logger.debug(f"Admin rule '{rule.name}' matched '{name}' -> job type {rule.set_job_type_id}")
            return rule
    return None

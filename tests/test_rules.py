"""Tests for admin rule matching."""

from jobquote.models import AdminRule, RuleScope
from jobquote.rules import RuleMetrics, ordered_rules, rule_matches, select_job_type_by_rules


def _rule(rule_id, **kwargs):
    kwargs.setdefault("set_job_type_id", "install")
    return AdminRule(id=rule_id, name=rule_id, **kwargs)


class TestRuleMatches:
    """Test condition evaluation."""

    def test_no_conditions_never_matches(self):
        """Test a rule without conditions does not match."""
        assert rule_matches(_rule("empty"), "anything", RuleMetrics(quantity=5)) is False

    def test_match_text_case_insensitive(self):
        """Test match text is a case-insensitive substring."""
        rule = _rule("panel", match_text="Panel")
        assert rule_matches(rule, "200A PANEL upgrade", RuleMetrics())
        assert not rule_matches(rule, "Outlet", RuleMetrics())

    def test_thresholds_inclusive(self):
        """Test thresholds match at or above the limit."""
        rule = _rule("big", min_expected_labor_minutes=480, min_material_cost=100)
        assert rule_matches(rule, "", RuleMetrics(expected_labor_minutes=480, material_cost=100))
        assert not rule_matches(rule, "", RuleMetrics(expected_labor_minutes=479, material_cost=100))

    def test_all_conditions_required(self):
        """Test every set condition must hold."""
        rule = _rule("both", match_text="panel", min_quantity=2)
        assert not rule_matches(rule, "panel", RuleMetrics(quantity=1))
        assert rule_matches(rule, "panel", RuleMetrics(quantity=2))


class TestRuleSelection:
    """Test rule ordering and selection."""

    def test_priority_order(self):
        """Test lower priority numbers run first."""
        rules = [
            _rule("late", priority=5, match_text="job", set_job_type_id="b"),
            _rule("early", priority=1, match_text="job", set_job_type_id="a"),
        ]
        assert select_job_type_by_rules(rules, RuleScope.ESTIMATE, "job").id == "early"

    def test_disabled_and_scope_filtered(self):
        """Test disabled rules and rules for the other scope are ignored."""
        rules = [
            _rule("off", enabled=False, match_text="job"),
            _rule("assemblies", applies_to="assembly", match_text="job"),
            _rule("both", applies_to="both", priority=9, match_text="job"),
        ]
        assert [r.id for r in ordered_rules(rules, RuleScope.ESTIMATE)] == ["both"]
        assert [r.id for r in ordered_rules(rules, RuleScope.ASSEMBLY)] == ["assemblies", "both"]

    def test_rule_without_target_skipped(self):
        """Test a matching rule that assigns nothing is passed over."""
        rules = [
            AdminRule(id="noop", priority=1, match_text="job"),
            _rule("real", priority=2, match_text="job"),
        ]
        assert select_job_type_by_rules(rules, RuleScope.ESTIMATE, "job").id == "real"

    def test_no_match(self):
        """Test None when nothing matches."""
        assert select_job_type_by_rules([_rule("x", match_text="panel")], RuleScope.BOTH, "outlet") is None

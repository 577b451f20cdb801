"""Tests for settings normalization and legacy key aliases."""

import pytest

from jobquote.models import BillingMode, CompanySettings, JobTypePolicy
from jobquote.settings import (
    SettingsAliases,
    canonicalize_keys,
    normalize_admin_rule,
    normalize_admin_rules,
    normalize_company_settings,
    normalize_job_type,
    normalize_job_types,
)


class TestCanonicalizeKeys:
    """Test alias renaming at the input boundary."""

    def test_alias_mapped_to_canonical(self):
        """Test a legacy key is renamed to its canonical field."""
        settings = normalize_company_settings({"purchase_tax_percent": 8})
        assert settings.material_purchase_tax_percent == 8.0

    def test_canonical_key_wins_over_alias(self):
        """Test canonical key takes precedence regardless of order."""
        before = normalize_company_settings({"default_discount_percent": 5, "discount_percent": 20})
        after = normalize_company_settings({"discount_percent": 20, "default_discount_percent": 5})
        assert before.default_discount_percent == 5.0
        assert after.default_discount_percent == 5.0

    def test_first_alias_wins(self):
        """Test the first alias encountered wins among aliases."""
        settings = normalize_company_settings({"misc_percent": 3, "misc_materials_percent": 7})
        assert settings.misc_material_percent == 3.0

    def test_key_spelling_is_normalized(self):
        """Test keys are matched ignoring case, spaces and dashes."""
        settings = normalize_company_settings({"Purchase Tax-Percent": 6})
        assert settings.material_purchase_tax_percent == 6.0

    def test_unknown_keys_dropped(self):
        """Test unknown keys do not reach the canonical record."""
        result = canonicalize_keys({"foo": 1, "techs": 3}, {"techs": "technicians"}, ["technicians"])
        assert result == {"technicians": 3}

    def test_normalize_key(self):
        """Test key normalization."""
        assert SettingsAliases.normalize_key("  Min Billable-Minutes ") == "min_billable_minutes"


class TestCompanySettingsNormalization:
    """Test company settings coercion and defaults."""

    def test_defaults(self):
        """Test empty input yields the documented defaults."""
        settings = normalize_company_settings(None)
        assert settings.workdays_per_week == 5.0
        assert settings.work_hours_per_day == 8.0
        assert settings.technicians == 1.0
        assert settings.material_markup_mode == "tiered"
        assert settings.net_profit_goal_mode == "percent"
        assert settings.default_discount_percent == 0.0

    @pytest.mark.parametrize("raw, expected", [(150, 100.0), (-20, 0.0), ("12.5", 12.5), ("abc", 0.0)])
    def test_percent_clamping(self, raw, expected):
        """Test percentages are clamped to [0, 100]."""
        settings = normalize_company_settings({"processing_fee_percent": raw})
        assert settings.processing_fee_percent == expected

    def test_non_finite_becomes_zero(self):
        """Test NaN and infinity are treated as 0."""
        settings = normalize_company_settings(
            {"misc_material_percent": float("nan"), "business_expenses_lump_sum_monthly": float("inf")}
        )
        assert settings.misc_material_percent == 0.0
        assert settings.business_expenses_lump_sum_monthly == 0.0

    def test_negative_counts_become_zero(self):
        """Test negative capacity figures become 0."""
        settings = normalize_company_settings({"vacation_days_per_year": -4, "technicians": -1})
        assert settings.vacation_days_per_year == 0.0
        assert settings.technicians == 0.0

    def test_null_uses_default(self):
        """Test explicit nulls fall back to the model default."""
        settings = normalize_company_settings({"workdays_per_week": None})
        assert settings.workdays_per_week == 5.0

    def test_expense_mode_maps_to_flag(self):
        """Test the older *_expenses_mode keys set the itemized flags."""
        settings = normalize_company_settings(
            {"business_expenses_mode": "itemized", "personal_expenses_mode": "lump_sum"}
        )
        assert settings.business_apply_itemized is True
        assert settings.personal_apply_itemized is False

    def test_legacy_enum_values(self):
        """Test legacy enum spellings are mapped."""
        settings = normalize_company_settings(
            {"net_profit_goal_mode": "Fixed", "material_markup_mode": "tiers"}
        )
        assert settings.net_profit_goal_mode == "dollar"
        assert settings.material_markup_mode == "tiered"

    def test_tier_percent_key(self):
        """Test tiers stored with a 'percent' key are read as markup_percent."""
        settings = normalize_company_settings(
            {"material_markup_tiers": [{"min": 0, "max": 10, "percent": 100}, "junk"]}
        )
        assert len(settings.material_markup_tiers) == 1
        assert settings.material_markup_tiers[0].markup_percent == 100.0

    def test_unknown_expense_frequency_is_monthly(self):
        """Test unknown expense cadences are treated as monthly."""
        settings = normalize_company_settings(
            {"business_expenses_itemized": [{"name": "Rent", "amount": 100, "frequency": "weekly"}]}
        )
        assert settings.business_expenses_itemized[0].frequency == "monthly"

    def test_canonical_record_passes_through(self):
        """Test an already canonical record is returned unchanged."""
        settings = CompanySettings(technicians=3)
        assert normalize_company_settings(settings) is settings


class TestJobTypeNormalization:
    """Test job type normalization."""

    def test_aliases_and_id(self):
        """Test job type aliases and id coercion."""
        job_type = normalize_job_type({"id": 7, "mode": "hourly", "profit_margin_percent": 55})
        assert job_type.id == "7"
        assert job_type.billing_mode == "hourly"
        assert job_type.gross_margin_percent == 55.0

    def test_efficiency_null_is_full(self):
        """Test a missing efficiency means 100%."""
        assert JobTypePolicy(efficiency_percent=None).efficiency_percent == 100.0
        assert normalize_job_type({"efficiency_percent": None}).efficiency_percent == 100.0

    @pytest.mark.parametrize("mode, expected", [("flat_rate", "flat"), ("HOURLY", "hourly"), ("weird", "flat")])
    def test_billing_mode_values(self, mode, expected):
        """Test billing mode spellings."""
        assert normalize_job_type({"billing_mode": mode}).billing_mode == expected

    def test_billing_mode_enum_member(self):
        """Test an enum member is accepted as the billing mode."""
        assert JobTypePolicy(billing_mode=BillingMode.HOURLY).billing_mode == "hourly"

    def test_gross_margin_clamped(self):
        """Test gross margin is clamped like any other percentage."""
        assert normalize_job_type({"gross_margin_percent": 150}).gross_margin_percent == 100.0

    def test_malformed_entries_skipped(self):
        """Test non-mapping entries are ignored."""
        job_types = normalize_job_types([{"id": "a"}, "oops", None, {"id": "b"}])
        assert [j.id for j in job_types] == ["a", "b"]


class TestAdminRuleNormalization:
    """Test admin rule normalization."""

    def test_stored_rule_keys(self):
        """Test scope and job_type_id map onto the canonical rule fields."""
        rule = normalize_admin_rule({"name": "Big", "scope": "estimate", "job_type_id": 42, "min_quantity": 1})
        assert rule.applies_to == "estimate"
        assert rule.set_job_type_id == "42"
        assert rule.min_quantity == 1.0

    def test_canonical_key_wins(self):
        """Test canonical fields beat their aliases."""
        rule = normalize_admin_rule(
            {"scope": "assembly", "applies_to": "estimate", "job_type_id": "a", "set_job_type_id": "b"}
        )
        assert rule.applies_to == "estimate"
        assert rule.set_job_type_id == "b"

    @pytest.mark.parametrize(
        "scope, expected", [("Assemblies", "assembly"), ("ALL", "both"), ("estimate", "estimate")]
    )
    def test_scope_values(self, scope, expected):
        """Test scope spellings."""
        assert normalize_admin_rule({"scope": scope}).applies_to == expected

    def test_thresholds_coerced(self):
        """Test non-finite and negative thresholds become 0 while unset stays None."""
        rule = normalize_admin_rule(
            {"min_material_cost": float("nan"), "min_quantity": -3, "min_expected_labor_minutes": None}
        )
        assert rule.min_material_cost == 0.0
        assert rule.min_quantity == 0.0
        assert rule.min_expected_labor_minutes is None

    def test_malformed_entries_skipped(self):
        """Test non-mapping rule entries are ignored."""
        rules = normalize_admin_rules([{"id": "r1"}, 5, {"id": "r2"}])
        assert [r.id for r in rules] == ["r1", "r2"]

"""Example script demonstrating estimate pricing with the library API."""

from pathlib import Path

from jobquote import load_workbook, price_estimate, price_estimate_options
from jobquote.config import load_pricing_defaults


def main():
    """Run pricing example."""
    workbook_path = Path(__file__).parent / "sample_workbook.yaml"

    print(f"Loading workbook: {workbook_path}")
    workbook = load_workbook(workbook_path)
    catalog = workbook.catalog()
    defaults = load_pricing_defaults()

    print(f"Loaded {catalog.material_count} materials and {catalog.assembly_count} assemblies")
    print()

    breakdown = price_estimate(
        workbook.estimate,
        workbook.settings,
        catalog,
        workbook.job_types,
        workbook.admin_rules,
        defaults,
    )

    print("=" * 80)
    print(f"ESTIMATE: {workbook.estimate.name}")
    print("=" * 80)
    print(f"Job type: {breakdown.job_type_name}")
    print()

    for line in breakdown.lines:
        print(f"  {line.name or line.type:<30} {line.quantity:>5g}  ${line.total_price:>10,.2f}")
    print()

    print(f"Materials:       ${breakdown.materials.material_sell:,.2f}")
    print(f"Misc material:   ${breakdown.materials.misc_material:,.2f}")
    print(f"Labor ({breakdown.labor.expected_minutes:.0f} min): ${breakdown.labor.labor_sell:,.2f}")
    print(f"Subtotal:        ${breakdown.subtotals.subtotal_before_fees:,.2f}")
    print(f"Processing fee:  ${breakdown.processing_fee:,.2f}")
    print(f"Total:           ${breakdown.total:,.2f}")
    print()

    print("Options:")
    print("-" * 80)
    for option, option_breakdown in price_estimate_options(
        workbook.estimate,
        workbook.settings,
        catalog,
        workbook.job_types,
        workbook.admin_rules,
        defaults,
    ):
        print(f"  {option.option_name:<10} ${option_breakdown.total:>10,.2f}")


if __name__ == "__main__":
    main()

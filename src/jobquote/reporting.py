"""
Quote reporting module with multiple output formats.

Renders a pricing breakdown as a rich CLI table, a JSON report or a Markdown
document, with per-line splits, labor detail and the discount/fee summary.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .job_costing import JobCostingResult
from .models import EstimateOption, PricingBreakdown, TechCostBreakdown

logger = logging.getLogger(__name__)


def _money(value: float) -> str:
    return f"${value:,.2f}"


def _percent(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:.1f}%"


def tech_cost_table(tech_cost: TechCostBreakdown) -> Table:
    """Build the required-revenue card for a job type."""
    t = tech_cost
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Efficiency", _percent(t.efficiency_percent))
    table.add_row("Gross Margin Target", _percent(t.gross_margin_target_percent))
    table.add_row("Overhead (monthly)", _money(t.overhead_monthly))
    table.add_row("Paid Hours / Year", f"{t.total_hours_year:,.0f}")
    table.add_row("Billable Hours / Year", f"{t.effective_hours_year:,.0f}")
    table.add_row("Average Wage", f"{_money(t.avg_tech_wage)}/hr")
    table.add_row("Overhead / Billable Hour", f"{_money(t.overhead_per_hour)}/hr")
    table.add_row("COGS / Billable Hour", f"{_money(t.cogs_per_billable_hour)}/hr")
    table.add_row("Gross Margin Floor", f"{_money(t.revenue_per_billable_hour_for_gross_margin)}/hr")
    table.add_row("Net Profit Floor", f"{_money(t.revenue_per_billable_hour_for_net_profit)}/hr")
    table.add_row("[bold]Required Revenue[/bold]",
                  f"[bold]{_money(t.required_revenue_per_billable_hour)}/hr[/bold]")
    return table


def options_table(results: Sequence[Tuple[EstimateOption, PricingBreakdown]]) -> Table:
    """Side-by-side comparison of priced estimate options."""
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Option", style="cyan")
    table.add_column("Job Type")
    table.add_column("Minutes", justify="right")
    table.add_column("Materials", justify="right")
    table.add_column("Labor", justify="right")
    table.add_column("Subtotal", justify="right")
    table.add_column("Total", justify="right", style="bold green")
    for option, breakdown in results:
        table.add_row(
            option.option_name or option.id,
            breakdown.job_type_name or "Default",
            f"{breakdown.labor.expected_minutes:.0f}",
            _money(breakdown.materials.material_sell),
            _money(breakdown.labor.labor_sell),
            _money(breakdown.subtotals.subtotal_before_fees),
            _money(breakdown.total),
        )
    return table


def job_costing_table(result: JobCostingResult) -> Table:
    """Expected vs. actual job economics with variances."""
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Expected", justify="right")
    table.add_column("Actual", justify="right")
    table.add_column("Variance", justify="right")
    e, a = result.expected, result.actual
    table.add_row("Revenue", _money(e.revenue), _money(a.revenue), _money(result.revenue_variance))
    table.add_row("Material Cost", _money(e.material_cost), _money(a.material_cost),
                  _money(result.material_cost_variance))
    table.add_row("Labor Minutes", f"{e.labor_minutes:.0f}", f"{a.labor_minutes:.0f}",
                  f"{result.labor_minutes_variance:+.0f}")
    table.add_row("Labor Cost", _money(e.labor_cost), _money(a.labor_cost),
                  _money(a.labor_cost - e.labor_cost))
    table.add_row("Gross Profit", _money(e.gross_profit), _money(a.gross_profit),
                  _money(result.gross_profit_variance))
    table.add_row("Gross Margin", _percent(e.gross_margin_percent), _percent(a.gross_margin_percent), "")
    return table


class QuoteReportGenerator:
    """
    Generates quote reports from a pricing breakdown.

    Reports never recompute prices; every figure comes from the breakdown.
    """

    def __init__(
        self,
        breakdown: PricingBreakdown,
        title: str = "Estimate",
        tech_cost: Optional[TechCostBreakdown] = None,
        console: Optional[Console] = None,
    ):
        """
        Initialize the report generator.

        Args:
            breakdown: Pricing breakdown to render
            title: Report heading (estimate or assembly name)
            tech_cost: Optional tech cost card to include
            console: Rich console to print to (defaults to stdout)
        """
        self.breakdown = breakdown
        self.title = title
        self.tech_cost = tech_cost
        self.console = console or Console()

    def _summary_rows(self) -> List[Dict[str, Any]]:
        """Ordered (label, value) rows from materials through grand total."""
        b = self.breakdown
        rows = [
            {"label": "Material Cost", "value": b.materials.material_cost},
            {"label": "Purchase Tax", "value": b.materials.purchase_tax},
            {"label": "Material Price", "value": b.materials.material_sell},
            {"label": "Misc Material", "value": b.materials.misc_material},
            {"label": "Labor Price", "value": b.labor.labor_sell},
            {"label": "Target Subtotal", "value": b.subtotals.target_subtotal},
        ]
        if b.subtotals.discount_percent > 0:
            rows.append({"label": "Pre-Discount Subtotal", "value": b.subtotals.pre_discount_subtotal})
            rows.append({"label": f"Discount ({b.subtotals.discount_percent:g}%)",
                         "value": -b.subtotals.discount_amount})
        rows.append({"label": "Subtotal", "value": b.subtotals.subtotal_before_fees})
        rows.append({"label": "Processing Fee", "value": b.processing_fee})
        rows.append({"label": "Total", "value": b.total})
        return rows

    def generate_cli_table(self, show_lines: bool = True) -> None:
        """Generate and display formatted CLI tables using rich."""
        b = self.breakdown

        title = Panel(
            f"[bold cyan]{self.title}[/bold cyan]\n"
            f"Job type: {b.job_type_name or 'Default'} ({b.labor.billing_mode})",
            expand=False,
        )
        self.console.print(title)
        self.console.print()

        if show_lines and b.lines:
            self.console.print("[bold yellow]Line Items[/bold yellow]")
            line_table = Table(show_header=True, header_style="bold magenta")
            line_table.add_column("Type", style="cyan")
            line_table.add_column("Name")
            line_table.add_column("Qty", justify="right")
            line_table.add_column("Material", justify="right")
            line_table.add_column("Minutes", justify="right")
            line_table.add_column("Labor", justify="right")
            line_table.add_column("Total", justify="right", style="bold green")

            for line in b.lines:
                line_table.add_row(
                    line.type,
                    line.name or "",
                    f"{line.quantity:g}",
                    _money(line.material_price),
                    f"{line.labor_minutes:g}",
                    _money(line.labor_price),
                    _money(line.total_price),
                )

            self.console.print(line_table)
            self.console.print()

        self.console.print("[bold yellow]Labor[/bold yellow]")
        labor_table = Table(show_header=True, header_style="bold magenta")
        labor_table.add_column("Metric", style="cyan")
        labor_table.add_column("Value", justify="right")
        labor_table.add_row("Actual Minutes", f"{b.labor.actual_minutes:.0f}")
        labor_table.add_row("Expected Minutes", f"{b.labor.expected_minutes:.0f}")
        labor_table.add_row("Base Rate", f"{_money(b.labor.base_rate)}/hr")
        labor_table.add_row("Sell Rate", f"{_money(b.labor.effective_rate)}/hr")
        labor_table.add_row("Labor Cost", _money(b.labor.labor_cost))
        labor_table.add_row("Labor Price", _money(b.labor.labor_sell))
        self.console.print(labor_table)
        self.console.print()

        self.console.print("[bold yellow]Summary[/bold yellow]")
        summary_table = Table(show_header=True, header_style="bold magenta")
        summary_table.add_column("Item", style="cyan")
        summary_table.add_column("Amount", justify="right")
        for row in self._summary_rows():
            if row["label"] == "Total":
                summary_table.add_row("[bold]Total[/bold]", f"[bold]{_money(row['value'])}[/bold]")
            else:
                summary_table.add_row(row["label"], _money(row["value"]))
        summary_table.add_row("", "")
        summary_table.add_row("Target Gross Margin", _percent(b.gross_margin_target_percent))
        summary_table.add_row("Expected Gross Margin", _percent(b.gross_margin_expected_percent))
        self.console.print(summary_table)
        self.console.print()

        if self.tech_cost is not None:
            self._print_tech_cost()

        if b.warnings:
            self.console.print(f"[bold yellow]Warnings ({len(b.warnings)}):[/bold yellow]")
            for warning in b.warnings:
                self.console.print(f"  ! {warning}")
            self.console.print()

    def _print_tech_cost(self) -> None:
        self.console.print("[bold yellow]Tech Cost Breakdown[/bold yellow]")
        self.console.print(tech_cost_table(self.tech_cost))
        self.console.print()

    def generate_json_report(self, output_path: Optional[Path] = None) -> Dict[str, Any]:
        """
        Generate JSON report with the full breakdown.

        Args:
            output_path: Optional path to write JSON file

        Returns:
            Dict containing complete report data
        """
        b = self.breakdown
        report = {
            "metadata": {
                "title": self.title,
                "currency": b.currency,
                "tool_version": __version__,
                "job_type": {"id": b.job_type_id, "name": b.job_type_name},
            },
            "summary": {
                "total": b.total,
                "subtotal_before_fees": b.subtotals.subtotal_before_fees,
                "processing_fee": b.processing_fee,
                "gross_margin_target_percent": b.gross_margin_target_percent,
                "gross_margin_expected_percent": b.gross_margin_expected_percent,
            },
            "labor": b.labor.model_dump(mode="json"),
            "materials": b.materials.model_dump(mode="json"),
            "subtotals": b.subtotals.model_dump(mode="json"),
            "lines": [line.model_dump(mode="json") for line in b.lines],
            "warnings": list(b.warnings),
        }
        if self.tech_cost is not None:
            report["tech_cost"] = self.tech_cost.model_dump(mode="json")

        if output_path:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, "w") as f:
                json.dump(report, f, indent=2)
            logger.info(f"JSON report written to {output_path}")

        return report

    def generate_markdown_report(self, output_path: Path) -> None:
        """
        Generate Markdown quote summary.

        Args:
            output_path: Path to write Markdown file
        """
        b = self.breakdown
        out: List[str] = [
            f"# {self.title}",
            "",
            f"**Job type:** {b.job_type_name or 'Default'} ({b.labor.billing_mode})  ",
            f"**Currency:** {b.currency}",
            "",
        ]

        if b.lines:
            out += [
                "## Line Items",
                "",
                "| Type | Name | Qty | Material | Minutes | Labor | Total |",
                "|------|------|----:|---------:|--------:|------:|------:|",
            ]
            for line in b.lines:
                out.append(
                    f"| {line.type} | {line.name or ''} | {line.quantity:g} | {_money(line.material_price)} "
                    f"| {line.labor_minutes:g} | {_money(line.labor_price)} | {_money(line.total_price)} |"
                )
            out.append("")

        out += ["## Summary", "", "| Item | Amount |", "|------|-------:|"]
        for row in self._summary_rows():
            label = f"**{row['label']}**" if row["label"] == "Total" else row["label"]
            out.append(f"| {label} | {_money(row['value'])} |")
        out += [
            "",
            f"- Expected labor: {b.labor.expected_minutes:.0f} min (actual {b.labor.actual_minutes:.0f} min)",
            f"- Target gross margin: {_percent(b.gross_margin_target_percent)}",
            f"- Expected gross margin: {_percent(b.gross_margin_expected_percent)}",
            "",
        ]

        if b.warnings:
            out += ["## Warnings", ""]
            out += [f"- {w}" for w in b.warnings]
            out.append("")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text("\n".join(out))
        logger.info(f"Markdown report written to {output_path}")


def generate_report(
    breakdown: PricingBreakdown,
    format: str = "table",
    output_path: Optional[Path] = None,
    title: str = "Estimate",
    tech_cost: Optional[TechCostBreakdown] = None,
    show_lines: bool = True,
    console: Optional[Console] = None,
) -> Optional[Dict[str, Any]]:
    """
    Generate a quote report in the specified format.

    Args:
        breakdown: Pricing breakdown
        format: Output format ('table', 'json', 'markdown')
        output_path: Optional output file path
        title: Report heading
        tech_cost: Optional tech cost card
        show_lines: Include per-line table (table format)
        console: Rich console for table output

    Returns:
        Dict for JSON format, None for others
    """
    generator = QuoteReportGenerator(breakdown, title=title, tech_cost=tech_cost, console=console)

    if format == "table":
        generator.generate_cli_table(show_lines=show_lines)
        return None
    elif format == "json":
        return generator.generate_json_report(output_path)
    elif format == "markdown":
        if not output_path:
            raise ValueError("output_path required for Markdown format")
        generator.generate_markdown_report(output_path)
        return None
    else:
        raise ValueError(f"Unknown format: {format}")

"""Command-line interface for Job Quote."""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console

from jobquote import __version__
from jobquote.composition import (
    build_estimate_for_option,
    price_assembly,
    price_estimate,
    price_estimate_options,
    resolve_job_type,
)
from jobquote.config import Config, load_config
from jobquote.job_costing import JobCostingActuals, compare_to_estimate
from jobquote.logger import setup_logging_from_config
from jobquote.models import Estimate, PricingFlags
from jobquote.reporting import generate_report, job_costing_table, options_table, tech_cost_table
from jobquote.tech_cost import compute_tech_cost_breakdown
from jobquote.workbook import Workbook, load_workbook


def _app_config(ctx: click.Context) -> Config:
    return Config(**ctx.obj.get("config", {}))


def _select_option(estimate: Estimate, option_name: str) -> Estimate:
    """Merge the option matching ``option_name`` (id or display name) onto the estimate."""
    wanted = option_name.strip().lower()
    for option in estimate.options:
        if option.id.lower() == wanted or option.option_name.strip().lower() == wanted:
            return build_estimate_for_option(estimate, option)
    raise click.BadParameter(f"Estimate has no option named '{option_name}'", param_hint="--option")


def _require_estimate(workbook: Workbook) -> Estimate:
    if workbook.estimate is None:
        click.echo(f"Error: workbook {workbook.source_path} has no estimate", err=True)
        sys.exit(1)
    return workbook.estimate


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "-c",
    type=click.Path(path_type=Path),
    default="config/config.yaml",
    help="Path to configuration file",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging",
)
@click.pass_context
def main(ctx: click.Context, config: Path, verbose: bool) -> None:
    """Job Quote - flat-rate and hourly pricing for field-service estimates.

    Prices estimates and assemblies from a workbook of company settings,
    job types and catalog records.
    """
    ctx.ensure_object(dict)

    config_missing = False
    try:
        ctx.obj["config"] = load_config(config)
    except FileNotFoundError:
        config_missing = True
        ctx.obj["config"] = {}
    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    setup_logging_from_config(ctx.obj["config"].get("logging", {}), verbose=verbose)

    logger = logging.getLogger(__name__)
    logger.debug(f"Job Quote v{__version__}")
    if config_missing:
        logger.warning(f"Configuration file not found: {config}")
        logger.warning("Using default configuration")
    else:
        logger.debug(f"Loaded configuration from {config}")


@main.command()
@click.argument("workbook_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="Output file for the quote (format auto-detected from extension or use --format)",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "json", "markdown"]),
    default="table",
    help="Output format (default: table for CLI display)",
)
@click.option(
    "--option",
    "option_name",
    help="Price the named estimate option (e.g. Gold) instead of the base items",
)
@click.option(
    "--assembly",
    "assembly_id",
    help="Price a catalog assembly on its own instead of the estimate",
)
@click.option(
    "--apply-discount/--no-apply-discount",
    default=None,
    help="Override the estimate's discount toggle",
)
@click.pass_context
def quote(
    ctx: click.Context,
    workbook_file: Path,
    output: Optional[Path],
    format: str,
    option_name: Optional[str],
    assembly_id: Optional[str],
    apply_discount: Optional[bool],
) -> None:
    """Price the estimate in a workbook.

    WORKBOOK_FILE: YAML or JSON workbook with settings, job types, catalog and estimate
    """
    logger = logging.getLogger(__name__)
    app_config = _app_config(ctx)

    try:
        workbook = load_workbook(workbook_file)
        catalog = workbook.catalog()

        if assembly_id:
            assembly = catalog.get_assembly(assembly_id)
            if assembly is None:
                click.echo(f"Error: assembly {assembly_id} not found in workbook", err=True)
                sys.exit(1)
            title = assembly.name or assembly.id
            breakdown = price_assembly(
                assembly,
                workbook.settings,
                catalog,
                workbook.job_types,
                workbook.admin_rules,
                app_config.pricing,
                flags=PricingFlags(apply_discount=bool(apply_discount)),
            )
        else:
            estimate = _require_estimate(workbook)
            if option_name:
                estimate = _select_option(estimate, option_name)
            if apply_discount is not None:
                estimate = estimate.model_copy(
                    update={"flags": estimate.flags.model_copy(update={"apply_discount": apply_discount})}
                )
            title = estimate.name or estimate.id
            if option_name:
                title = f"{title} ({option_name})"
            breakdown = price_estimate(
                estimate,
                workbook.settings,
                catalog,
                workbook.job_types,
                workbook.admin_rules,
                app_config.pricing,
            )

        tech_cost = None
        if app_config.reporting.show_tech_cost:
            job_type = resolve_job_type(breakdown.job_type_id, workbook.job_types, app_config.pricing)
            tech_cost = compute_tech_cost_breakdown(workbook.settings, job_type, app_config.pricing)

        # Auto-detect format from output file extension if output specified
        report_format = format
        if output:
            ext = output.suffix.lower()
            if ext == ".json":
                report_format = "json"
            elif ext in [".md", ".markdown"]:
                report_format = "markdown"

        if report_format == "table":
            generate_report(
                breakdown,
                format="table",
                title=title,
                tech_cost=tech_cost,
                show_lines=app_config.reporting.show_lines,
            )
        else:
            if not output:
                ext = "md" if report_format == "markdown" else report_format
                output = Path(f"quote.{ext}")

            generate_report(breakdown, format=report_format, output_path=output, title=title, tech_cost=tech_cost)
            click.echo(f"{report_format.upper()} report saved to: {output}")

        click.echo(f"Total: {breakdown.currency} {breakdown.total:,.2f}")

    except click.BadParameter:
        raise
    except Exception as e:
        logger.exception(f"Error during pricing: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command("tech-cost")
@click.argument("workbook_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--job-type",
    "job_type_id",
    help="Job type id (default: the estimate's job type, then the default job type)",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.pass_context
def tech_cost(ctx: click.Context, workbook_file: Path, job_type_id: Optional[str], format: str) -> None:
    """Show the required revenue per billable hour for a job type.

    WORKBOOK_FILE: YAML or JSON workbook with settings and job types
    """
    logger = logging.getLogger(__name__)
    app_config = _app_config(ctx)

    try:
        workbook = load_workbook(workbook_file)
        if job_type_id is None and workbook.estimate is not None:
            job_type_id = workbook.estimate.job_type_id

        job_type = resolve_job_type(job_type_id, workbook.job_types, app_config.pricing)
        breakdown = compute_tech_cost_breakdown(workbook.settings, job_type, app_config.pricing)

        if format == "json":
            click.echo(json.dumps(breakdown.model_dump(mode="json"), indent=2))
            return

        console = Console()
        console.print(f"[bold cyan]Tech cost for job type: {job_type.name}[/bold cyan]")
        console.print(tech_cost_table(breakdown))

    except Exception as e:
        logger.exception(f"Error computing tech cost: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command()
@click.argument("workbook_file", type=click.Path(exists=True, path_type=Path))
@click.pass_context
def options(ctx: click.Context, workbook_file: Path) -> None:
    """Compare every option (e.g. Bronze/Silver/Gold) of the workbook's estimate.

    WORKBOOK_FILE: YAML or JSON workbook whose estimate has options
    """
    logger = logging.getLogger(__name__)
    app_config = _app_config(ctx)

    try:
        workbook = load_workbook(workbook_file)
        estimate = _require_estimate(workbook)

        if not estimate.options:
            click.echo("Estimate has no options.")
            return

        results = price_estimate_options(
            estimate,
            workbook.settings,
            workbook.catalog(),
            workbook.job_types,
            workbook.admin_rules,
            app_config.pricing,
        )
        click.echo(f"Priced {len(results)} options")
        Console().print(options_table(results))

    except Exception as e:
        logger.exception(f"Error pricing options: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command("job-cost")
@click.argument("workbook_file", type=click.Path(exists=True, path_type=Path))
@click.option("--revenue", type=float, required=True, help="Revenue actually received")
@click.option("--material-cost", type=float, required=True, help="Material cost including purchase tax")
@click.option("--labor-hours", type=float, default=0.0, help="Technician hours spent on the job")
@click.option("--labor-minutes", type=float, default=0.0, help="Additional technician minutes")
@click.option("--option", "option_name", help="Compare against the named estimate option")
@click.pass_context
def job_cost(
    ctx: click.Context,
    workbook_file: Path,
    revenue: float,
    material_cost: float,
    labor_hours: float,
    labor_minutes: float,
    option_name: Optional[str],
) -> None:
    """Compare a finished job's actuals against its estimate.

    WORKBOOK_FILE: YAML or JSON workbook holding the estimate
    """
    logger = logging.getLogger(__name__)
    app_config = _app_config(ctx)

    try:
        workbook = load_workbook(workbook_file)
        estimate = _require_estimate(workbook)
        if option_name:
            estimate = _select_option(estimate, option_name)

        breakdown = price_estimate(
            estimate,
            workbook.settings,
            workbook.catalog(),
            workbook.job_types,
            workbook.admin_rules,
            app_config.pricing,
        )
        actuals = JobCostingActuals(
            revenue=revenue,
            material_cost=material_cost,
            labor_hours=labor_hours,
            labor_minutes=labor_minutes,
        )
        result = compare_to_estimate(breakdown, actuals, workbook.settings)
        Console().print(job_costing_table(result))
        click.echo(f"Gross profit variance: {result.gross_profit_variance:+,.2f}")

    except click.BadParameter:
        raise
    except Exception as e:
        logger.exception(f"Error during job costing: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command()
@click.pass_context
def validate_config(ctx: click.Context) -> None:
    """Validate the configuration file."""
    logger = logging.getLogger(__name__)
    config = ctx.obj.get("config", {})

    if not config:
        click.echo("No configuration loaded or configuration is empty.")
        sys.exit(1)

    app_config = Config(**config)
    click.echo("Configuration is valid!")
    click.echo()
    click.echo("Pricing Defaults:")
    click.echo(f"  Currency: {app_config.pricing.currency}")
    click.echo(f"  Default Gross Margin: {app_config.pricing.default_gross_margin_percent}%")
    click.echo(f"  Default Efficiency: {app_config.pricing.default_efficiency_percent}%")
    click.echo(f"  Efficiency Floor: {app_config.pricing.efficiency_floor_percent}%")
    click.echo(f"  Rounding Places: {app_config.pricing.rounding_places}")
    click.echo()
    click.echo("Logging:")
    click.echo(f"  Level: {app_config.logging.level}")
    click.echo(f"  File: {app_config.logging.file or 'not set'}")
    click.echo()
    click.echo("Reporting:")
    click.echo(f"  Show Lines: {app_config.reporting.show_lines}")
    click.echo(f"  Show Tech Cost: {app_config.reporting.show_tech_cost}")
    logger.info("Configuration validation successful")


if __name__ == "__main__":
    main()

"""
run_water_risk.py – Standalone runner for the facility water-risk engine.

Reads one organisation's facilities, activity entries, production sites,
contract-manufacturer allocations and material impacts, then prints the
scarcity-weighted risk per facility and the organisation summary.

Usage
──────
# Against PostgreSQL (DATABASE_URL from .env, or --database-url)
python run_water_risk.py --organization-id 6f1c…

# Restrict activity entries / CM allocations to a reporting period
python run_water_risk.py --organization-id 6f1c… --period-start 2024-01-01 --period-end 2024-12-31

# Offline, from a JSON snapshot (built-in AWARE table unless the file has its own)
python run_water_risk.py --snapshot snapshot.json --show-events

# Write the full assessment as JSON
python run_water_risk.py --organization-id 6f1c… --json-out out/water_risk.json

# Create tables + AWARE reference rows first
python run_water_risk.py --init-schema
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import date
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from waterrisk import db
from waterrisk.config import get_config
from waterrisk.constants import RISK_HIGH, RISK_MEDIUM
from waterrisk.engine import WaterRiskAssessment, run_assessment
from waterrisk.sources import (
    PostgresWaterDataSource,
    SnapshotWaterDataSource,
    WaterDataFetchError,
)

log = logging.getLogger(__name__)
console = Console()

_RISK_STYLE = {RISK_HIGH: "bold red", RISK_MEDIUM: "yellow"}


def _configure_logging(level: int) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(message)s",
        datefmt="%H:%M:%S",
    )


def print_assessment(assessment: WaterRiskAssessment, show_events: bool = False) -> None:
    if not assessment.risks:
        console.print(f"[yellow]No facilities found for organisation {escape(assessment.organization_id)}.[/]")
    else:
        table = Table(title=f"Facility water risk – {escape(assessment.organization_id)}")
        table.add_column("Facility", style="cyan")
        table.add_column("Country")
        table.add_column("AWARE", justify="right")
        table.add_column("Risk")
        table.add_column("Net op. m³", justify="right")
        table.add_column("Op. weighted", justify="right")
        table.add_column("Embedded raw m³", justify="right")
        table.add_column("Emb. weighted", justify="right")
        table.add_column("Total weighted", justify="right")
        table.add_column("Source")
        for r in assessment.risks:
            style = _RISK_STYLE.get(r.risk_level, "green")
            table.add_row(
                escape(r.facility_name) + ("" if r.has_operational_data else " [dim](no op. data)[/]"),
                escape(r.country_code),
                f"{r.scarcity_factor:.2f}",
                f"[{style}]{r.risk_level}[/]",
                f"{r.operational_net:,.2f}",
                f"{r.operational_scarcity_weighted:,.2f}",
                f"{r.embedded_water_raw:,.2f}",
                f"{r.embedded_scarcity_weighted:,.2f}",
                f"{r.total_scarcity_weighted:,.2f}",
                escape(r.embedded_source or "-"),
            )
        console.print(table)

    s = assessment.summary
    style = _RISK_STYLE.get(s.overall_risk_level, "green")
    console.print(
        Panel(
            f"Facilities: [bold]{s.total_facilities}[/]   "
            f"High: {s.high_count}   Medium: {s.medium_count}   Low: {s.low_count}\n"
            f"Overall risk: [{style}]{s.overall_risk_level.upper()}[/]",
            title="Organisation summary",
            style="blue",
        )
    )

    warnings = [e for e in assessment.events if e.severity == "warning"]
    if show_events and assessment.events:
        events_table = Table(title="Data-quality events")
        events_table.add_column("Severity")
        events_table.add_column("Code", style="cyan")
        events_table.add_column("Facility")
        events_table.add_column("Detail")
        for e in assessment.events:
            events_table.add_row(
                e.severity,
                escape(e.code),
                escape(e.facility_id or "-"),
                escape(json.dumps(e.detail, default=str)),
            )
        console.print(events_table)
    elif warnings:
        console.print(f"[yellow]{len(warnings)} warning(s)[/] – rerun with --show-events for details.")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Compute scarcity-weighted facility water risk for one organisation."
    )
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--organization-id", default=None, help="Organisation to assess (PostgreSQL).")
    target.add_argument(
        "--snapshot", type=Path, default=None, metavar="FILE.json",
        help="Assess an offline JSON snapshot instead of the database.",
    )
    parser.add_argument(
        "--period-start", type=date.fromisoformat, default=None, metavar="YYYY-MM-DD",
        help="Only include activity entries / CM allocations on or after this date.",
    )
    parser.add_argument(
        "--period-end", type=date.fromisoformat, default=None, metavar="YYYY-MM-DD",
        help="Only include activity entries / CM allocations on or before this date.",
    )
    parser.add_argument("--json-out", type=Path, default=None, help="Write the assessment as JSON.")
    parser.add_argument("--show-events", action="store_true", help="Print every data-quality event.")
    parser.add_argument(
        "--init-schema", action="store_true",
        help="Apply schema/water_risk.sql (tables + AWARE factors) and exit.",
    )
    parser.add_argument(
        "--database-url", default=None,
        help="PostgreSQL connection string. Defaults to DATABASE_URL env var.",
    )
    parser.add_argument("--verbose", action="store_true", help="Log per-record calculations.")
    args = parser.parse_args(argv)
    if args.period_start and args.period_end and args.period_start > args.period_end:
        parser.error("--period-start must not be after --period-end")
    period_start = args.period_start.isoformat() if args.period_start else None
    period_end = args.period_end.isoformat() if args.period_end else None

    try:
        cfg = get_config()
    except EnvironmentError as exc:
        console.print(f"[red]Config error:[/] {escape(str(exc))}")
        return 1
    _configure_logging(logging.DEBUG if args.verbose else cfg.log_level_value)

    database_url = args.database_url or cfg.database_url

    if args.init_schema:
        if not database_url:
            console.print("[red]Error:[/] No DATABASE_URL found. Set it in .env or pass --database-url.")
            return 1
        ok, err = db.apply_schema(database_url)
        if not ok:
            console.print(f"[red]Schema apply failed:[/] {escape(str(err))}")
            return 1
        console.print("[green]Schema applied.[/]")
        return 0

    if args.snapshot is not None:
        try:
            source = SnapshotWaterDataSource.from_json_file(args.snapshot)
        except WaterDataFetchError as exc:
            console.print(f"[red]Error:[/] {escape(str(exc))}")
            return 1
        organization_id = source.organization_id or args.snapshot.stem
    elif args.organization_id:
        if not database_url:
            console.print(
                "[red]Error:[/] No DATABASE_URL found.\n"
                "Set it in your .env file or pass --database-url 'postgresql://...'"
            )
            return 1
        source = PostgresWaterDataSource(database_url)
        organization_id = args.organization_id
    else:
        parser.error("one of --organization-id or --snapshot is required")

    if period_start or period_end:
        log.info("Period filter: %s → %s", period_start or "any", period_end or "any")

    try:
        assessment = asyncio.run(
            run_assessment(
                organization_id,
                source,
                period_start=period_start,
                period_end=period_end,
                timeout=cfg.fetch_timeout_seconds,
            )
        )
    except WaterDataFetchError as exc:
        console.print(f"[red]Data fetch failed:[/] {escape(str(exc))}")
        return 1

    print_assessment(assessment, show_events=args.show_events)

    if args.json_out:
        args.json_out.parent.mkdir(parents=True, exist_ok=True)
        args.json_out.write_text(json.dumps(assessment.to_dict(), indent=2, default=str), encoding="utf-8")
        console.print(f"[green]Wrote[/] {escape(str(args.json_out))}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

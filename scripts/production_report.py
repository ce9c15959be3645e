#!/usr/bin/env python3
"""
Print the daily yarn production summary and headline statistics for a unit.

Reads settings through mill_config (MILL_DATABASE_URL overrides the URL),
connects, and prints per-date yarn totals newest first, grand totals per
yarn type, and the stats block with the top performing machine.

Usage:
    python3 scripts/production_report.py --unit 1
    python3 scripts/production_report.py --unit 2 --from 2024-01-01 --to 2024-01-31
    python3 scripts/production_report.py --unit 1 --db-url sqlite:///mill.db --init-db
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

W = 72


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Daily yarn production report for one unit")
    p.add_argument("--unit", type=int, required=True, help="Production unit")
    p.add_argument("--from", dest="date_from", default=None, help="First date (YYYY-MM-DD)")
    p.add_argument("--to", dest="date_to", default=None, help="Last date (YYYY-MM-DD)")
    p.add_argument("--machine", type=int, default=None, help="Restrict stats to one machine")
    p.add_argument("--config", type=Path, default=None, help="Settings YAML file")
    p.add_argument("--db-url", default=None, help="Database URL (overrides settings)")
    p.add_argument("--init-db", action="store_true", help="Create tables before reporting")
    return p.parse_args(argv)


def _fmt(value) -> str:
    return f"{value:,.2f}"


def print_daily_summary(report, out=None) -> None:
    out = out or sys.stdout
    print("=" * W, file=out)
    print("  DAILY YARN PRODUCTION".center(W), file=out)
    print("=" * W, file=out)
    if report.is_empty:
        print("  No production recorded in this range.", file=out)
        return
    for period in report.periods:
        print(
            f"  {period.period_start.isoformat()}  "
            f"machines={period.machine_count}  shifts={period.shift_count}  "
            f"total={_fmt(period.total_production)}  "
            f"eff={_fmt(period.average_efficiency)}%",
            file=out,
        )
        for total in period.yarn_totals:
            print(f"      {total.display_name:<30} {_fmt(total.total_production):>14}", file=out)
    print("-" * W, file=out)
    for total in report.grand_totals:
        print(f"  {total.display_name:<32} {_fmt(total.total_production):>14}", file=out)
    print(f"  {'GRAND TOTAL':<32} {_fmt(report.grand_total):>14}", file=out)


def print_stats(stats, out=None) -> None:
    out = out or sys.stdout
    print("=" * W, file=out)
    print("  STATISTICS".center(W), file=out)
    print("=" * W, file=out)
    print(f"  Window            {stats.date_from} .. {stats.date_to}", file=out)
    print(f"  Machines          {stats.active_machines} active / {stats.total_machines}", file=out)
    print(f"  Entries           {stats.total_entries} ({stats.today_entries} today)", file=out)
    print(f"  Actual            {_fmt(stats.total_actual)}", file=out)
    print(f"  Theoretical       {_fmt(stats.total_theoretical)}", file=out)
    print(f"  Overall eff.      {_fmt(stats.overall_efficiency)}%", file=out)
    print(f"  Weighted eff.     {_fmt(stats.average_efficiency)}%", file=out)
    top = stats.top_performer
    if top is not None:
        print(
            f"  Top performer     machine {top.machine_number} "
            f"({_fmt(top.average_efficiency)}% over {top.entry_count} entries)",
            file=out,
        )


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from mill_config import get_active_config
    from mill_kernel.db.engine import create_tables, get_session, init_engine_from_url
    from mill_kernel.db.immutability import register_immutability_listeners
    from mill_kernel.exceptions import MillKernelError
    from mill_kernel.logging_config import configure_logging
    from mill_kernel.selectors.production_selector import ProductionSelector

    settings = get_active_config(args.config)
    configure_logging(level=settings.log_level)

    db_url = args.db_url or settings.database.url
    init_engine_from_url(
        db_url,
        echo=settings.database.echo,
        pool_size=settings.database.pool_size,
        max_overflow=settings.database.max_overflow,
    )
    if args.init_db:
        create_tables()
    register_immutability_listeners()

    session = get_session()
    try:
        selector = ProductionSelector(
            session,
            units=settings.production.units,
            default_page_size=settings.production.default_page_size,
            max_page_size=settings.production.max_page_size,
            stats_window_days=settings.production.stats_window_days,
            abbreviations=settings.yarn_abbreviations,
        )
        report = selector.daily_yarn_report(args.unit, args.date_from, args.date_to)
        stats = selector.get_stats(args.unit, args.machine, args.date_from, args.date_to)
    except MillKernelError as exc:
        print(f"  ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 2
    finally:
        session.close()

    print_daily_summary(report)
    print()
    print_stats(stats)
    return 0


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
# ========================
# main.py
# ========================

"""
Command Line Entry Point for the Contact List Importer

Commands:
  generate      write a sample contacts CSV with injected errors
  create-list   create a subscriber list (optionally with column defaults)
  lists         show existing lists
  import        import a CSV into a list and write the CSV report
  demo          generate, create a list and import in one go
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from src.pipeline import ContactImportPipeline, PipelineError
from src.store import create_store
from src.utils import Config, DataGenerator, setup_logging

logger = logging.getLogger(__name__)

def _parse_defaults(pairs: List[str]) -> dict:
    """Turn `column=value` arguments into a defaults mapping."""
    defaults = {}
    for pair in pairs or []:
        column, sep, value = pair.partition('=')
        if not sep or not column:
            raise ValueError(f"Expected column=value, got '{pair}'")
        defaults[column.strip()] = value
    return defaults

async def _create_list(config: Config, title: str, defaults: dict) -> str:
    store = create_store(config)
    try:
        contact_list = await store.create_list(title, defaults)
    finally:
        await store.close()
    return contact_list.id

async def _show_lists(config: Config) -> None:
    store = create_store(config)
    try:
        for contact_list in await store.get_lists(limit=1000):
            count = await store.count_by_list(contact_list.id)
            print(f"{contact_list.id}  {contact_list.title}  ({count} subscribers)  defaults={contact_list.defaults}")
    finally:
        await store.close()

async def _import(config: Config, list_id: str, input_file: str, report_file: Optional[str]) -> dict:
    store = create_store(config)
    try:
        pipeline = ContactImportPipeline(store, list_id, config=config)
        report = await pipeline.run_file(input_file)
    finally:
        await store.close()

    if report_file is None:
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        report_file = str(Path(config.REPORT_DIR) / f"import_{list_id[:8]}_{stamp}.csv")
    pipeline.report_generator.save(report, report_file)
    return {**report.summary(), 'report_file': report_file}

def _print_import_summary(summary: dict) -> None:
    """Print final import summary."""
    print("\n" + "="*70)
    print("IMPORT SUMMARY")
    print("="*70)
    print(f"   • Rows seen: {summary['rows_seen']:,}")
    print(f"   • Added: {summary['added']:,}")
    print(f"   • Not added: {summary['not_added']:,}")
    for reason, count in summary['rejections_by_reason'].items():
        print(f"       - {reason}: {count:,}")
    print(f"   • Total subscribers in list: {summary['total_in_list']:,}")
    print(f"   • Batches: {summary['batches']} (peak {summary['peak_active_batches']} in flight, "
          f"{summary['source_pauses']} source pauses)")
    print(f"   • Report: {summary['report_file']}")
    print("="*70)

def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function."""
    p = argparse.ArgumentParser(prog="contacts")
    p.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
    p.add_argument("--log-file", default=None, help="Also log to logs/<file>")
    p.add_argument("--config", default=None, help="JSON file with setting overrides")
    sub = p.add_subparsers(dest="cmd", required=True)

    gen = sub.add_parser("generate", help="Generate a sample contacts CSV.")
    gen.add_argument("--output", default=None)
    gen.add_argument("--rows", type=int, default=None)
    gen.add_argument("--error-rate", type=float, default=None)
    gen.add_argument("--seed", type=int, default=42)

    create = sub.add_parser("create-list", help="Create a subscriber list.")
    create.add_argument("--title", required=True)
    create.add_argument("--default", action="append", dest="defaults", metavar="COLUMN=VALUE",
                        help="Default value for empty cells of a column (repeatable).")

    sub.add_parser("lists", help="Show existing lists.")

    imp = sub.add_parser("import", help="Import a CSV file into a list.")
    imp.add_argument("--list-id", required=True)
    imp.add_argument("--input", required=True)
    imp.add_argument("--report", default=None, help="Report output path.")

    demo = sub.add_parser("demo", help="Generate sample data and import it into a new list.")
    demo.add_argument("--rows", type=int, default=None)

    args = p.parse_args(argv)

    config = Config.load_from_file(args.config) if args.config else Config()
    if args.log_level:
        config.LOG_LEVEL = args.log_level

    setup_logging(log_level=config.LOG_LEVEL, log_file=args.log_file)
    invalid = config.invalid_settings()
    if invalid:
        logger.error(f"Invalid settings: {', '.join(invalid)}")
        return 2
    logger.debug(f"Configuration:\n{config}")
    config.ensure_directories()

    try:
        if args.cmd == "generate":
            output = args.output or config.DEFAULT_SAMPLE_FILE
            error_rate = config.SAMPLE_ERROR_RATE if args.error_rate is None else args.error_rate
            stats = DataGenerator(seed=args.seed).generate_dataset(
                output, args.rows or config.DEFAULT_SAMPLE_ROWS, error_rate=error_rate
            )
            print(f"Wrote {stats['total_rows']:,} rows to {output} ({stats['records_with_errors']:,} with errors)")
            return 0

        if args.cmd == "create-list":
            list_id = asyncio.run(_create_list(config, args.title, _parse_defaults(args.defaults)))
            print(list_id)
            return 0

        if args.cmd == "lists":
            asyncio.run(_show_lists(config))
            return 0

        if args.cmd == "import":
            _print_import_summary(asyncio.run(_import(config, args.list_id, args.input, args.report)))
            return 0

        if args.cmd == "demo":
            input_file = config.DEFAULT_SAMPLE_FILE
            DataGenerator(seed=42).generate_dataset(
                input_file, args.rows or config.DEFAULT_SAMPLE_ROWS, error_rate=config.SAMPLE_ERROR_RATE
            )
            list_id = asyncio.run(_create_list(
                config, f"Demo list {datetime.now():%Y-%m-%d %H:%M}", {'city': 'Unknown', 'company': 'Independent'}
            ))
            _print_import_summary(asyncio.run(_import(config, list_id, input_file, None)))
            return 0

    except PipelineError as e:
        logger.error(f"Import failed: {e.message}")
        return 1
    except ValueError as e:
        logger.error(str(e))
        return 2

    return 1

if __name__ == '__main__':
    sys.exit(main())

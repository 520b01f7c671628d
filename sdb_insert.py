#!/usr/bin/env python3
"""
sdb_insert.py - Add targets to the sdb

Resolves each target to an sdbid, and if the target is new stores its
epoch-propagated positions, cross-identifiers and catalogue counterparts.

Example usage:
    # A single target by name, or by coordinates in degrees at epoch 2000.0
    python sdb_insert.py one "Vega"
    python sdb_insert.py one 279.234735 38.783689

    # Many targets, one per line (a name, or "ra dec")
    python sdb_insert.py bulk targets.txt --report-dir ./reports
"""

import os
import sys
import argparse
import logging
from typing import List, Optional, Tuple

from sdb_lookup.config import (
    load_config, DEFAULT_DATABASE_URL, DEFAULT_PHOTOMETRY_URL, DEFAULT_MATCH_RADIUS_ARCSEC
)
from sdb_lookup.core.models import ProcessStatus, WritePolicy
from sdb_lookup.core.orchestrator import build_orchestrator
from sdb_lookup.exceptions import SdbLookupError, InvalidTargetError
from sdb_lookup.reports.json_reporter import JSONReporter
from sdb_lookup.storage.datastore import Datastore

# Set up logging
logging.basicConfig(level=logging.INFO,
                    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("sdb_insert")

# Exit codes for a single target
EXIT_CODES = {
    ProcessStatus.CREATED: 0,
    ProcessStatus.ALREADY_EXISTS: 0,
    ProcessStatus.RESOLUTION_FAILED: 2,
    ProcessStatus.CONFLICT_DETECTED: 3,
}


def parse_target_args(values: List[str]) -> Tuple[Optional[str], Optional[float], Optional[float]]:
    """
    Interpret positional target arguments.

    One value is a name; two values are ra and dec in degrees; three are a name
    followed by ra and dec.

    Raises:
        InvalidTargetError: Wrong number of values or coordinates that are not numbers.
    """
    try:
        if len(values) == 1:
            return values[0], None, None
        if len(values) == 2:
            return None, float(values[0]), float(values[1])
        if len(values) == 3:
            return values[0], float(values[1]), float(values[2])
    except ValueError:
        raise InvalidTargetError(f"Coordinates must be numbers in degrees: {' '.join(values)}")
    raise InvalidTargetError("Give a name, 'ra dec', or 'name ra dec'")


def read_targets(path: str) -> List[Tuple[Optional[str], Optional[float], Optional[float]]]:
    """
    Read a target list, one target per line.

    Blank lines and lines starting with '#' are ignored. A line of two numbers is
    a coordinate pair; anything else is a name.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Target file not found: {path}")

    targets = []
    with open(path, 'r') as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            parts = line.split()
            if len(parts) == 2:
                try:
                    targets.append((None, float(parts[0]), float(parts[1])))
                    continue
                except ValueError:
                    pass
            targets.append((line, None, None))

    logger.info(f"Read {len(targets)} targets from {path}")
    return targets


def build_config(args):
    """Configuration from the optional JSON file with command line overrides."""
    overrides = {
        'database_url': args.database_url,
        'photometry_url': args.photometry_url,
        'match_radius_arcsec': args.radius,
        'write_policy': args.write_policy,
        'timeout': args.timeout,
    }
    return load_config(args.config, overrides)


def handle_one_command(args) -> int:
    """Process a single target"""
    name, ra, dec = parse_target_args(args.target)
    config = build_config(args)

    orchestrator = build_orchestrator(config, datastore=open_datastore(config, args.drop_create))
    try:
        result = orchestrator.process_target(name=name, ra=ra, dec=dec)
    finally:
        orchestrator.close()

    print(f"\n{result.status.value}: {result.sdbid or '-'} {result.message}")
    if args.report_dir:
        JSONReporter(args.report_dir).generate_target_report(result)

    return EXIT_CODES[result.status]


def handle_bulk_command(args) -> int:
    """Process every target in a file"""
    targets = read_targets(args.targets_file)
    if not targets:
        logger.error(f"No targets found in {args.targets_file}")
        return 1
    config = build_config(args)

    orchestrator = build_orchestrator(config, datastore=open_datastore(config, args.drop_create))
    try:
        results = orchestrator.process_targets(targets, progress=not args.no_progress)
    finally:
        orchestrator.close()

    # Print summary
    print("\n=== sdb Insert Summary ===")
    print(f"Total targets: {len(results)}")
    for status in ProcessStatus:
        print(f"{status.value}: {sum(1 for r in results if r.status is status)}")

    if args.report_dir:
        report_file = JSONReporter(args.report_dir).generate_run_report(
            results, run_info={'targets_file': args.targets_file, 'config': config.to_dict()})
        print(f"\nDetailed report available at: {report_file}")

    # Worst outcome of the run
    return max(EXIT_CODES[r.status] for r in results)


def open_datastore(config, drop_create: bool) -> Datastore:
    datastore = Datastore(config.database_url)
    if drop_create:
        datastore.create_schema(drop=True)
    return datastore


def parse_args(argv=None):
    """
    Parse command line arguments

    Returns:
        argparse.Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Add targets to the sdb",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # Options shared by every command
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--config', help='JSON configuration file')
    common.add_argument('--database-url', help=f'sdb database URL (default {DEFAULT_DATABASE_URL})')
    common.add_argument('--photometry-url',
                        help=f'Database URL of the locally mirrored catalogues (default {DEFAULT_PHOTOMETRY_URL})')
    common.add_argument('--radius', type=float,
                        help=f'Match radius in arcsec (default {DEFAULT_MATCH_RADIUS_ARCSEC})')
    common.add_argument('--write-policy', choices=[p.value for p in WritePolicy],
                        help='Replace or append catalogue rows of a target (default replace)')
    common.add_argument('--timeout', type=int, help='Request timeout (seconds)')
    common.add_argument('--report-dir', help='Directory for JSON reports')
    common.add_argument('--drop-create', action='store_true', help='Drop and recreate all sdb tables first')
    common.add_argument('--verbose', '-v', action='store_true', help='Enable verbose output')

    # Create subparsers for different commands
    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    one_parser = subparsers.add_parser('one', parents=[common], help='Add one target',
                                       formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    one_parser.add_argument('target', nargs='+', metavar='TARGET',
                            help="Target name, 'ra dec' in degrees, or 'name ra dec'")

    bulk_parser = subparsers.add_parser('bulk', parents=[common], help='Add every target in a file',
                                        formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    bulk_parser.add_argument('targets_file', help='File with one name or "ra dec" per line')
    bulk_parser.add_argument('--no-progress', action='store_true', help='Hide the progress bar')

    # Parse arguments
    args = parser.parse_args(argv)

    # Show help if no command specified
    if not args.command:
        parser.print_help()
        sys.exit(1)

    return args


def main(argv=None):
    """Main entry point for the script"""
    # Parse command line arguments
    args = parse_args(argv)

    # Set log level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Handle the specified command
    try:
        if args.command == 'one':
            return handle_one_command(args)
        elif args.command == 'bulk':
            return handle_bulk_command(args)
        else:
            logger.error(f"Unknown command: {args.command}")
            return 1

    except InvalidTargetError as e:
        logger.error(f"Invalid target: {e}")
        return 2
    except SdbLookupError as e:
        logger.error(f"Pipeline error: {e}")
        return 1
    except FileNotFoundError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.critical("\n\nOperation interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        logger.exception("Stack trace:")
        return 1


if __name__ == "__main__":
    sys.exit(main())

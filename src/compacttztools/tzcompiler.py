#!/usr/bin/env python3
#
# Copyright 2018 Brian T. Park
#
# MIT License.

"""
Read the raw TZ Database files at the location specified by `--input_dir`,
compile the selected time zones into transition lists, and write their compact
transition tables as a JavaScript object (default), a JSON object (`--json`)
or a long-form text listing of the transitions (`--text`).

The compiler has a number of stages implemented by various helper classes:

* Extractor
    * Parse the raw TZDB files into a ZoneDatabase of ZoneLine and ZoneRule
      records and the resolved Links.
* BatchProcessor
    * Compile each zone into a TransitionList, validate it against the
      zoneinfo files, detect or fix calendar rollbacks, and encode the compact
      transition tables.
* Commenter
    * Merge the comments of the various stages.
* ZonesGenerator
    * Write the output file.

Informational Flags:

* --tz_version
    * Overrides the TZDB version read from the 'version' file.

Extractor Flags:

* --input_dir
    * Location of the raw TZDB files.
* --round_to_minutes
    * Round STDOFF, SAVE and UNTIL to the nearest minute.
* --systemv
    * Include the commented-out SystemV zones.

Selection Flags:

* --single_zone {zone}
    * Process only this zone or link.
* --filtered
    * Skip obsolete, administrative and redundant zones.
* --include_list {file}
    * Process only the zones and links in this file.

Transformer Flags:

* --start_year {start}
    * First year of the compiled transitions (default 1900).
* --until_year {until}
    * Last year (inclusive) of the compiled transitions (default 2050).
* --fix_rollbacks
    * Move the transitions which roll back the local date to midnight.
* --quiet
    * Do not report calendar rollbacks or other informational messages.

Validation Flags:

* --zoneinfo_dir {dir}
    * Validate against the TZif files in this directory, falling back to the
      zones of the host if a file is missing.
* --host_zones
    * Validate against the zones of the host only.

Generator Flags:

* --output_file {file}
    * Defaults to timezones.js, timezones.json or timezones.txt.
* --stdout
    * Write to stdout instead of a file.
* --json, --text
    * Select the output format.

Examples:

    $ compacttztools --input_dir tz --filtered --fix_rollbacks \\
        --zoneinfo_dir /usr/share/zoneinfo
"""

import argparse
import logging
import sys
from typing import Optional
from typing import Set

from compacttztools.data_types.ct_types import DEFAULT_MAX_YEAR
from compacttztools.data_types.ct_types import DEFAULT_MIN_YEAR
from compacttztools.data_types.ct_types import ParseError
from compacttztools.data_types.ct_types import TransitionOracle
from compacttztools.data_types.ct_types import UnknownZoneError
from compacttztools.data_types.ct_types import UnresolvedAliasError
from compacttztools.data_types.ct_types import create_compact_zones_database
from compacttztools.extractor.extractor import Extractor
from compacttztools.generator.zonesgenerator import ZonesGenerator
from compacttztools.generator.zonesgenerator import default_output_file
from compacttztools.oracle.hostzones import HostZonesOracle
from compacttztools.oracle.tzif import TzifOracle
from compacttztools.transformer.commenter import Commenter
from compacttztools.zone_processor.batch import BatchProcessor


def main() -> None:
    """
    Main driver for the compact time zone compiler which parses the IANA TZ
    Database files located at the --input_dir and generates the compact
    transition tables.

    Usage:
        tzcompiler.py [flags...]
    """
    # Configure command line flags.
    parser = argparse.ArgumentParser(
        description='Generate compact time zone transition tables.')

    # Extractor flags.
    parser.add_argument(
        '--input_dir', help='Location of the input directory', required=True)
    parser.add_argument(
        '--round_to_minutes',
        help='Round STDOFF, SAVE and UNTIL to the nearest minute',
        action='store_true',
    )
    parser.add_argument(
        '--systemv',
        help='Include the commented-out SystemV zones',
        action='store_true',
    )

    # Selection flags.
    parser.add_argument(
        '--single_zone',
        help='Process only the given zone or link',
    )
    parser.add_argument(
        '--filtered',
        help='Skip obsolete, administrative and redundant zones',
        action='store_true',
    )
    parser.add_argument(
        '--include_list',
        help='File containing list of zones and links to include',
        default='',
    )

    # Transformer flags.
    parser.add_argument(
        '--start_year',
        help=f'Start year of the transitions (default: {DEFAULT_MIN_YEAR})',
        type=int,
        default=DEFAULT_MIN_YEAR)
    parser.add_argument(
        '--until_year',
        help=(
            'Last year (inclusive) of the transitions '
            f'(default: {DEFAULT_MAX_YEAR})'
        ),
        type=int,
        default=DEFAULT_MAX_YEAR)
    parser.add_argument(
        '--fix_rollbacks',
        help='Eliminate calendar rollbacks',
        action='store_true',
    )
    parser.add_argument(
        '--quiet',
        help='Log warnings and errors only, without rollback warnings',
        action='store_true',
    )

    # Validation flags.
    parser.add_argument(
        '--zoneinfo_dir',
        help='Validate against the TZif files in this directory',
        default='',
    )
    parser.add_argument(
        '--host_zones',
        help='Validate against the time zones of the host',
        action='store_true',
    )

    # Generator flags.
    parser.add_argument(
        '--json',
        help='Generate a JSON file',
        action='store_true',
    )
    parser.add_argument(
        '--text',
        help='Generate the long-form text listing of the transitions',
        action='store_true',
    )
    parser.add_argument(
        '--output_file',
        help='Output file (default: timezones.{js,json,txt})',
        default='',
    )
    parser.add_argument(
        '--stdout',
        help='Write to stdout instead of a file',
        action='store_true',
    )

    # The tz_version does not affect any data processing. Its value is
    # copied into the generated file.
    parser.add_argument(
        '--tz_version',
        help='Version string of the TZ files (default: from "version" file)',
        default='',
    )

    # Parse the command line arguments
    args = parser.parse_args()

    if args.json and args.text:
        print('Only one of --json and --text can be given')
        sys.exit(1)
    if args.start_year > args.until_year:
        print(f'Invalid --start_year {args.start_year} > {args.until_year}')
        sys.exit(1)

    # Configure logging. This should normally be executed after the
    # parser.parse_args() because it allows us set the logging.level using a
    # flag.
    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO)

    # Read the zone list filter file.
    include_list = read_include_list(args.include_list)

    mode = 'json' if args.json else ('text' if args.text else 'js')
    output_file = '' if args.stdout else (
        args.output_file or default_output_file(mode))

    logging.info('======== Compact TZ Compiler settings')
    logging.info(
        f'Start year: {args.start_year}; Until year: {args.until_year}'
    )
    logging.info(f'Round to minutes: {args.round_to_minutes}')
    logging.info(f'Filtered: {args.filtered}')
    logging.info(f'Fix rollbacks: {args.fix_rollbacks}')
    logging.info(f'Output: {output_file or "(stdout)"} ({mode})')

    # Extract the TZ files
    logging.info('======== Extracting TZ Data files')
    extractor = Extractor(
        args.input_dir,
        round_to_minutes=args.round_to_minutes,
        include_systemv=args.systemv,
    )
    try:
        extractor.parse()
    except (ParseError, UnresolvedAliasError) as e:
        logging.error(str(e))
        sys.exit(1)
    extractor.print_summary()
    zidb = extractor.get_data()
    tz_version = args.tz_version or zidb.version

    # Select the oracle used for validation.
    oracle: Optional[TransitionOracle] = None
    fallback_oracle: Optional[TransitionOracle] = None
    oracle_preset = 'zoneinfo'
    if args.zoneinfo_dir:
        oracle = TzifOracle(args.zoneinfo_dir)
        fallback_oracle = HostZonesOracle()
    elif args.host_zones:
        oracle = HostZonesOracle()
        oracle_preset = 'host'

    # Compile, validate and encode the zones.
    processor = BatchProcessor(
        zidb=zidb,
        min_year=args.start_year,
        max_year=args.until_year,
        fix_calendar_rollbacks=args.fix_rollbacks,
        show_warnings=not args.quiet,
        round_to_minutes=args.round_to_minutes,
        oracle=oracle,
        oracle_preset=oracle_preset,
        fallback_oracle=fallback_oracle,
    )
    try:
        zone_ids = processor.select_zone_ids(
            single_zone=args.single_zone,
            filtered=args.filtered,
            include_list=include_list,
        )
    except UnknownZoneError as e:
        logging.error(str(e))
        sys.exit(1)
    result = processor.process(zone_ids)
    processor.print_summary(result)

    # Merge the comments of the various stages.
    logging.info('======== Merging zone comments')
    commenter = Commenter()
    commenter.transform(result)
    commenter.print_summary(result)

    # Collect the tables into a single JSON-serializable object.
    czdb = create_compact_zones_database(
        tz_version=tz_version,
        start_year=args.start_year,
        until_year=args.until_year,
        round_to_minutes=args.round_to_minutes,
        filtered=args.filtered,
        fix_rollbacks=args.fix_rollbacks,
        compact_tables=result.compact_tables,
        duplicates=result.duplicates,
        notable_zones=result.notable_zones,
        merged_notable_zones=result.merged_notable_zones,
    )

    logging.info('======== Generating output')
    generator = ZonesGenerator(
        czdb=czdb,
        mode=mode,
        output_file=output_file,
        zone_ids=zone_ids,
        transitions=result.transitions,
    )
    generator.generate_files('')

    logging.info('======== Finished processing TZ Data files.')


def read_include_list(filename: str) -> Set[str]:
    """Read file containing the list of zones and links to include. Empty
    list means 'include everything'.
    """
    zones: Set[str] = set()
    if not filename:
        return zones

    with open(filename) as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            if line.startswith('#'):
                continue
            zones.add(line)
    return zones


if __name__ == '__main__':
    main()

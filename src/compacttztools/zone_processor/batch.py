# Copyright 2019 Brian T. Park
#
# MIT License

"""
Runs the compiler over a selection of zones and links, validates each
TransitionList against an independent source of transitions, detects (and
optionally fixes) calendar rollbacks, and encodes the compact transition
tables. Per-zone problems are collected in the comments maps of the
BatchResult, and never abort the batch.

Usage:
    processor = BatchProcessor(zidb, 1900, 2050, oracle=TzifOracle(dir))
    zone_ids = processor.select_zone_ids(filtered=True)
    result = processor.process(zone_ids)
    processor.print_summary(result)
"""

import logging
import re
from typing import Dict
from typing import List
from typing import Optional
from typing import Set

from compacttztools.data_types.ct_types import BatchResult
from compacttztools.data_types.ct_types import TransitionOracle
from compacttztools.data_types.ct_types import UnknownZoneError
from compacttztools.data_types.ct_types import ZoneDatabase
from compacttztools.data_types.ct_types import add_comment
from compacttztools.data_types.ct_types import create_batch_result
from compacttztools.data_types.ct_types import merge_comments
from compacttztools.data_types.ct_types import print_comments_map
from compacttztools.generator.compactgenerator import \
    create_compact_transition_table
from compacttztools.generator.compactgenerator import validate_compact_table
from compacttztools.transformer.compiler import TransitionCompiler
from compacttztools.transformer.transitions import Rollbacks
from compacttztools.transformer.transitions import TransitionList

# Zones skipped by the 'filtered' selection.
SKIPPED_ZONES = re.compile(
    r'America/Indianapolis|America/Knox_IN|Asia/Riyadh\d\d')

# Regions whose locale starts after the second slash.
EXTENDED_REGIONS = re.compile(r'(America/Argentina|America/Indiana)/(.+)')

# Regions skipped by the 'filtered' selection.
SKIPPED_REGIONS = re.compile(
    r'Etc|GB|GB-Eire|GMT0|NZ|NZ-CHAT|SystemV|W-SU|Zulu|Mideast'
    r'|[A-Z]{3}(\d[A-Z]{3})?')

# Zones kept by the 'filtered' selection even though they have no locale.
MISC_UNIQUE = re.compile(
    r'CST6CDT|EET|EST5EDT|MST7MDT|PST8PDT|SystemV/AST4ADT|SystemV/CST6CDT'
    r'|SystemV/EST5EDT|SystemV/MST7MDT|SystemV/PST8PDT|SystemV/YST9YDT|WET')

# Comparison presets of the oracles.
ORACLE_PRESETS = ('zoneinfo', 'host')


def is_filtered_out(zone_id: str) -> bool:
    """Return True if 'zone_id' is an obsolete, administrative or redundant
    zone which the 'filtered' selection skips.
    """
    if SKIPPED_ZONES.fullmatch(zone_id):
        return True

    match = EXTENDED_REGIONS.fullmatch(zone_id)
    locale: Optional[str]
    if match:
        region = match.group(1)
        locale = match.group(2)
    else:
        region, slash, locale = zone_id.partition('/')
        if not slash:
            locale = None

    return (
        (locale is None or SKIPPED_REGIONS.fullmatch(region) is not None)
        and MISC_UNIQUE.fullmatch(zone_id) is None
    )


class BatchProcessor:
    """Compiles, validates and encodes a selection of zones of the
    ZoneDatabase.
    """

    def __init__(
        self,
        zidb: ZoneDatabase,
        min_year: int,
        max_year: int,
        fix_calendar_rollbacks: bool = False,
        show_warnings: bool = True,
        round_to_minutes: bool = False,
        oracle: Optional[TransitionOracle] = None,
        oracle_preset: str = 'zoneinfo',
        fallback_oracle: Optional[TransitionOracle] = None,
    ):
        """
        Args:
            zidb: parsed TZ Database
            min_year: first year of the compiled transitions
            max_year: last year (inclusive) of the compiled transitions
            fix_calendar_rollbacks: move the transitions which roll back the
                local date to midnight
            show_warnings: log the calendar rollbacks
            round_to_minutes: the zidb was parsed with times rounded to the
                nearest minute, so oracles are matched with a tolerance of
                60 seconds
            oracle: source of transitions used for validation, or None
            oracle_preset: comparison used for 'oracle' (zoneinfo|host)
            fallback_oracle: source of transitions, compared with the 'host'
                preset, used when 'oracle' does not know a zone
        """
        if oracle_preset not in ORACLE_PRESETS:
            raise ValueError(f'Unknown oracle preset {oracle_preset}')

        self.zidb = zidb
        self.min_year = min_year
        self.max_year = max_year
        self.fix_calendar_rollbacks = fix_calendar_rollbacks
        self.show_warnings = show_warnings
        self.round_to_minutes = round_to_minutes
        self.oracle = oracle
        self.oracle_preset = oracle_preset
        self.fallback_oracle = fallback_oracle
        self.tolerance = 60 if round_to_minutes else 0

    def select_zone_ids(
        self,
        single_zone: Optional[str] = None,
        filtered: bool = False,
        include_list: Optional[Set[str]] = None,
    ) -> List[str]:
        """Return the sorted zone and link ids to process. Raises
        UnknownZoneError if 'single_zone' is given but not selected.
        """
        zone_ids = []
        for zone_id in self.zidb.get_zone_ids():
            if single_zone is not None and zone_id != single_zone:
                continue
            if include_list and zone_id not in include_list:
                continue
            if filtered and is_filtered_out(zone_id):
                continue
            zone_ids.append(zone_id)

        if single_zone is not None and not zone_ids:
            raise UnknownZoneError(single_zone)

        zone_ids.sort()
        return zone_ids

    def process(self, zone_ids: List[str]) -> BatchResult:
        result = create_batch_result(
            zone_ids=zone_ids,
            total_zone_count=len(self.zidb.zones) + len(self.zidb.aliases),
        )

        logging.info('======== Compiling time zones')
        compiler = TransitionCompiler(self.zidb)
        result.transitions = compiler.compile_all(
            self.min_year, self.max_year, zone_ids)
        merge_comments(result.notable_zones, compiler.notable_zones)
        merge_comments(result.removed_zones, compiler.removed_zones)

        logging.info(
            '======== Creating compact transition tables%s%s',
            ' / validating' if self.oracle is not None else '',
            ' / checking for calendar rollbacks'
            if self.show_warnings or self.fix_calendar_rollbacks else '',
        )
        tables_to_zones: Dict[str, str] = {}
        for zone_id in zone_ids:
            tlist = result.transitions.get(zone_id)
            if tlist is None:
                continue

            self._validate(tlist, result)
            self._check_rollbacks(tlist, result)

            try:
                table = create_compact_transition_table(
                    tlist, self.fix_calendar_rollbacks)
            except ValueError as e:
                logging.error(str(e))
                add_comment(result.removed_zones, zone_id, str(e))
                continue

            first_zone_id = tables_to_zones.get(table)
            if first_zone_id is not None:
                result.duplicates[zone_id] = first_zone_id
            else:
                tables_to_zones[table] = zone_id
                result.compact_tables[zone_id] = table

        logging.info('======== Validating compact transition tables')
        for zone_id, table in sorted(result.compact_tables.items()):
            tlist = result.transitions[zone_id]
            try:
                valid = validate_compact_table(table, tlist)
            except ValueError as e:
                logging.error(f'{zone_id}: {e}')
                valid = False
            if not valid:
                logging.error(f'Compact table error: {zone_id}')
                add_comment(
                    result.table_notes, zone_id, 'Compact table error')

        return result

    def _validate(self, tlist: TransitionList, result: BatchResult) -> None:
        """Compare 'tlist' with the transitions of the oracle, falling back
        to the 'fallback_oracle' if the oracle does not know the zone.
        """
        if self.oracle is None:
            return

        zone_id = tlist.zone_id
        assert zone_id is not None
        reference = self.oracle.get_transitions(
            zone_id, self.min_year, self.max_year)
        preset = self.oracle_preset
        if reference is None and self.fallback_oracle is not None:
            reference = self.fallback_oracle.get_transitions(
                zone_id, self.min_year, self.max_year)
            preset = 'host'
            if reference is not None:
                add_comment(
                    result.validation_notes,
                    zone_id,
                    'Validated using host zones',
                )

        if reference is None:
            logging.warning(
                f'{zone_id} could not be read from the oracle for validation')
            add_comment(
                result.validation_notes, zone_id, 'No reference transitions')
            return

        if preset == 'host':
            matches = tlist.closely_matches_host_transitions(
                reference, self.tolerance)
        else:
            matches = tlist.closely_matches_zoneinfo_transitions(
                reference, self.tolerance)
        if not matches:
            logging.error(f'Compiled {zone_id} does not match {preset} version')
            add_comment(
                result.validation_notes,
                zone_id,
                f'Does not match {preset} version',
            )

    def _check_rollbacks(
        self,
        tlist: TransitionList,
        result: BatchResult,
    ) -> None:
        if not (self.show_warnings or self.fix_calendar_rollbacks):
            return

        zone_id = tlist.zone_id
        assert zone_id is not None
        status = tlist.find_calendar_rollbacks(
            self.fix_calendar_rollbacks, self.show_warnings)
        if status == Rollbacks.ROLLBACKS_FOUND:
            add_comment(
                result.rollback_notes, zone_id, 'Calendar rollbacks')
        elif status == Rollbacks.ROLLBACKS_FIXED:
            add_comment(
                result.rollback_notes, zone_id, 'Calendar rollbacks fixed')
        elif status == Rollbacks.ROLLBACKS_REMAIN:
            logging.error(f'Failed to fix calendar rollbacks in {zone_id}')
            add_comment(
                result.rollback_notes,
                zone_id,
                'Calendar rollbacks remain',
            )

    def print_summary(self, result: BatchResult) -> None:
        print_comments_map(
            'Removed %s zones which could not be encoded',
            result.removed_zones,
        )
        print_comments_map(
            'Noted %s zones which failed validation',
            result.validation_notes,
        )
        print_comments_map(
            'Noted %s zones with calendar rollbacks',
            result.rollback_notes,
        )
        print_comments_map(
            'Noted %s zones with compact table errors',
            result.table_notes,
        )

        selected = len(result.zone_ids)
        filtered = (
            f'filtered down to {selected}, '
            if selected < result.total_zone_count else ''
        )
        logging.info(
            f'Summary: {result.total_zone_count} time zone IDs, {filtered}'
            f'{len(result.compact_tables)} unique'
            f'; duplicates={len(result.duplicates)}'
            f'; removed={len(result.removed_zones)}'
        )

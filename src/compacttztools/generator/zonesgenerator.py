# Copyright 2020 Brian T. Park
#
# MIT License

"""
Writes the CompactZonesDatabase as a JavaScript object literal, as a JSON
object, or as the long-form text listing of the transitions of each zone.
"""

import json
import logging
import os
import sys
from typing import Dict
from typing import List
from typing import Optional
from typing import TextIO

from compacttztools.data_types.ct_types import CompactZonesDatabase
from compacttztools.transformer.transitions import TransitionList

DEFAULT_JS_FILE = 'timezones.js'
DEFAULT_JSON_FILE = 'timezones.json'
DEFAULT_TEXT_FILE = 'timezones.txt'

OUTPUT_MODES = ('js', 'json', 'text')


def default_output_file(mode: str) -> str:
    if mode == 'json':
        return DEFAULT_JSON_FILE
    if mode == 'text':
        return DEFAULT_TEXT_FILE
    return DEFAULT_JS_FILE


def create_description(czdb: CompactZonesDatabase) -> str:
    """Return the one-line description of the settings of the tables, e.g.
    'tz database version: 2023c, years 1900-2050, filtered'.
    """
    description = (
        f"tz database version: {czdb['tz_version']}, "
        f"years {czdb['start_year']}-{czdb['until_year']}"
    )
    if czdb['round_to_minutes']:
        description += ', rounded to nearest minute'
    if czdb['filtered']:
        description += ', filtered'
    if czdb['fix_rollbacks']:
        description += ', calendar rollbacks eliminated'
    return description


class ZonesGenerator:
    """Generate the 'js', 'json' or 'text' representation of the
    CompactZonesDatabase into 'output_file', or to stdout if 'output_file' is
    empty. The 'text' mode needs the TransitionList of every zone in
    'transitions'.
    """
    def __init__(
        self,
        czdb: CompactZonesDatabase,
        mode: str = 'js',
        output_file: str = '',
        zone_ids: Optional[List[str]] = None,
        transitions: Optional[Dict[str, TransitionList]] = None,
    ):
        if mode not in OUTPUT_MODES:
            raise ValueError(f'Unknown output mode {mode}')
        self.czdb = czdb
        self.mode = mode
        self.output_file = output_file
        self.zone_ids = zone_ids or []
        self.transitions = transitions or {}

    def generate_files(self, output_dir: str) -> None:
        """Write the output file into 'output_dir'."""
        if not self.output_file:
            self.write(sys.stdout)
            return

        full_filename = os.path.join(output_dir, self.output_file)
        with open(full_filename, 'w', encoding='utf-8') as output_file:
            self.write(output_file)
        logging.info("Created %s", full_filename)

    def write(self, out: TextIO) -> None:
        if self.mode == 'json':
            self._write_json(out)
        elif self.mode == 'text':
            self._write_text(out)
        else:
            self._write_js(out)

    def _write_json(self, out: TextIO) -> None:
        json.dump(self.get_zones_map(), out, indent=2)
        print(file=out)  # add terminating newline

    def _write_js(self, out: TextIO) -> None:
        entries = [
            f"  '{zone_id}': '{value}'"
            for zone_id, value in self.get_zones_map().items()
        ]
        print(f'  {{ // {create_description(self.czdb)}', file=out)
        if entries:
            print(',\n'.join(entries), file=out)
        print('  };', file=out)

    def _write_text(self, out: TextIO) -> None:
        duplicates = self.czdb['duplicates']
        for zone_id in self.zone_ids:
            zone_id = duplicates.get(zone_id, zone_id)
            tlist = self.transitions.get(zone_id)
            if tlist is None:
                continue
            out.write(tlist.dump())
            print(file=out)
            print(file=out)

    def get_zones_map(self) -> Dict[str, str]:
        """Return the map of the unique zones to their compact table, followed
        by the duplicate zones mapped to the zone with the same table.
        """
        zones_map: Dict[str, str] = {}
        zones_map.update(self.czdb['compact_tables'])
        zones_map.update(self.czdb['duplicates'])
        return zones_map

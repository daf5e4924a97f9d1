# Copyright 2020 Brian T. Park
#
# MIT License

import io
import json
import os
import tempfile
import unittest

from compacttztools.data_types.ct_types import BEGINNING_OF_TIME
from compacttztools.data_types.ct_types import CompactZonesDatabase
from compacttztools.data_types.ct_types import Transition
from compacttztools.data_types.ct_types import create_compact_zones_database
from compacttztools.generator.zonesgenerator import ZonesGenerator
from compacttztools.generator.zonesgenerator import create_description
from compacttztools.generator.zonesgenerator import default_output_file
from compacttztools.transformer.transitions import TransitionList

EAST_TABLE = '-0500 -0500 60;-50/0/EST -40/10/EDT;1;ABC.x'


def _create_czdb(
    round_to_minutes: bool = False,
    filtered: bool = False,
    fix_rollbacks: bool = False,
) -> CompactZonesDatabase:
    return create_compact_zones_database(
        tz_version='2023c',
        start_year=1900,
        until_year=2050,
        round_to_minutes=round_to_minutes,
        filtered=filtered,
        fix_rollbacks=fix_rollbacks,
        compact_tables={
            'Test/Fixed': '+0200 +0200 0',
            'Test/East': EAST_TABLE,
        },
        duplicates={'Test/Same': 'Test/Fixed'},
        notable_zones={'Test/East': {'b', 'a'}},
        merged_notable_zones={'Test/East': ['a', 'b']},
    )


class TestCompactZonesDatabase(unittest.TestCase):
    def test_create(self) -> None:
        czdb = _create_czdb()
        self.assertEqual(3, czdb['num_zones'])
        self.assertEqual(2, czdb['num_unique'])
        self.assertEqual(
            ['Test/East', 'Test/Fixed'], list(czdb['compact_tables'].keys()))
        self.assertEqual({'Test/East': ['a', 'b']}, czdb['notable_zones'])


class TestCreateDescription(unittest.TestCase):
    def test_description(self) -> None:
        self.assertEqual(
            'tz database version: 2023c, years 1900-2050',
            create_description(_create_czdb()),
        )
        self.assertEqual(
            'tz database version: 2023c, years 1900-2050, '
            'rounded to nearest minute, filtered, '
            'calendar rollbacks eliminated',
            create_description(_create_czdb(True, True, True)),
        )

    def test_default_output_file(self) -> None:
        self.assertEqual('timezones.js', default_output_file('js'))
        self.assertEqual('timezones.json', default_output_file('json'))
        self.assertEqual('timezones.txt', default_output_file('text'))


class TestZonesGenerator(unittest.TestCase):
    def test_js(self) -> None:
        generator = ZonesGenerator(_create_czdb())
        out = io.StringIO()
        generator.write(out)
        self.assertEqual(
            "  { // tz database version: 2023c, years 1900-2050\n"
            f"  'Test/East': '{EAST_TABLE}',\n"
            "  'Test/Fixed': '+0200 +0200 0',\n"
            "  'Test/Same': 'Test/Fixed'\n"
            "  };\n",
            out.getvalue(),
        )

    def test_json(self) -> None:
        generator = ZonesGenerator(_create_czdb(), mode='json')
        out = io.StringIO()
        generator.write(out)
        self.assertTrue(out.getvalue().endswith('}\n'))
        self.assertEqual(
            {
                'Test/East': EAST_TABLE,
                'Test/Fixed': '+0200 +0200 0',
                'Test/Same': 'Test/Fixed',
            },
            json.loads(out.getvalue()),
        )

    def test_text(self) -> None:
        fixed = TransitionList('Test/Fixed', [
            Transition(BEGINNING_OF_TIME, 7200, 0, 'XYZ'),
        ])
        generator = ZonesGenerator(
            _create_czdb(),
            mode='text',
            zone_ids=['Test/Fixed', 'Test/Nope', 'Test/Same'],
            transitions={'Test/Fixed': fixed},
        )
        out = io.StringIO()
        generator.write(out)
        self.assertEqual(2 * (fixed.dump() + '\n\n'), out.getvalue())

    def test_invalid_mode(self) -> None:
        self.assertRaises(
            ValueError, ZonesGenerator, _create_czdb(), mode='yaml')

    def test_generate_files(self) -> None:
        with tempfile.TemporaryDirectory() as output_dir:
            generator = ZonesGenerator(
                _create_czdb(), mode='json', output_file='zones.json')
            with self.assertLogs(level='INFO'):
                generator.generate_files(output_dir)
            with open(os.path.join(output_dir, 'zones.json')) as f:
                zones = json.load(f)
        self.assertEqual('Test/Fixed', zones['Test/Same'])


if __name__ == '__main__':
    unittest.main()

# Copyright 2019 Brian T. Park
#
# MIT License

import unittest
from typing import List
from typing import Optional
from typing import Tuple

from compacttztools.data_types.ct_types import BEGINNING_OF_TIME
from compacttztools.data_types.ct_types import CompileError
from compacttztools.data_types.ct_types import Transition
from compacttztools.data_types.ct_types import UnknownZoneError
from compacttztools.data_types.ct_types import ZoneDatabase
from compacttztools.dateutils import datetime_to_epoch_seconds
from compacttztools.extractor.extractor import parse_sources
from compacttztools.generator.compactgenerator import \
    create_compact_transition_table
from compacttztools.transformer.compiler import TransitionCompiler
from compacttztools.transformer.compiler import format_name

TEST_ZONES = """\
Rule    Tst     2000    max     -   Mar  Sun>=8   2:00    1:00    D
Rule    Tst     2000    max     -   Nov  Sun>=1   2:00    0       S

Zone Test/East      -5:00       Tst     E%sT
Zone Test/Fixed     2:00        -       XYZ
Zone Test/Odd       -5:00       -       E%sT
Zone Test/Bad       1:00        Nope    X%sT

Zone Test/Change    1:00        -       CET     2010 Jan 1 0:00u
                    2:00        -       EET

Link Test/East Test/Alias
Link Test/Bad Test/BadAlias
"""


def _create_zidb() -> ZoneDatabase:
    return parse_sources({'test': TEST_ZONES})


def _to_utc(y: int, m: int, d: int, seconds: int, utc_offset: int) -> int:
    """Convert the local date time at 'utc_offset' to epoch seconds."""
    return datetime_to_epoch_seconds(y, m, d, seconds) - utc_offset


class TestFormatName(unittest.TestCase):
    def test_format_name(self) -> None:
        self.assertEqual('EDT', format_name('E%sT', 'D', True))
        self.assertEqual('EST', format_name('E%sT', 'S', False))
        self.assertEqual('CT', format_name('C%sT', '', False))
        self.assertEqual('BST', format_name('GMT/BST', '', True))
        self.assertEqual('GMT', format_name('GMT/BST', '', False))
        self.assertEqual('LMT', format_name('LMT', '', False))

    def test_format_name_numeric(self) -> None:
        self.assertIsNone(format_name('+03', '', False))
        self.assertIsNone(format_name('-01/+00', '', True))
        self.assertIsNone(format_name('-01/+00', '', False))
        self.assertIsNone(format_name('%z', '', False))
        self.assertIsNone(format_name('%s', '', False))


class TestTransitionCompiler(unittest.TestCase):
    def test_fixed_offset_zone(self) -> None:
        compiler = TransitionCompiler(_create_zidb())
        tlist = compiler.compile('Test/Fixed', 1900, 2050)
        self.assertEqual(
            [Transition(BEGINNING_OF_TIME, 7200, 0, 'XYZ')],
            tlist.transitions,
        )
        self.assertEqual(
            '+0200 +0200 0', create_compact_transition_table(tlist))

    def test_rules(self) -> None:
        compiler = TransitionCompiler(_create_zidb())
        tlist = compiler.compile('Test/East', 2020, 2021)
        self.assertEqual('Test/East', tlist.zone_id)
        self.assertIsNone(tlist.alias_for)
        self.assertEqual(
            [
                (BEGINNING_OF_TIME, -18000, 0, 'EST'),
                (_to_utc(2020, 3, 8, 7200, -18000), -14400, 3600, 'EDT'),
                (_to_utc(2020, 11, 1, 7200, -14400), -18000, 0, 'EST'),
                (_to_utc(2021, 3, 14, 7200, -18000), -14400, 3600, 'EDT'),
                (_to_utc(2021, 11, 7, 7200, -14400), -18000, 0, 'EST'),
            ],
            [
                (t.time, t.utc_offset, t.dst_offset, t.name)
                for t in tlist
            ],
        )
        self.assertEqual('Tst', tlist[-1].rule.name)
        self.assertIsNone(tlist[0].rule)

    def test_rules_ends_in_standard_time(self) -> None:
        compiler = TransitionCompiler(_create_zidb())
        # Ends with the 2020-11-01 transition to standard time.
        tlist = compiler.compile('Test/East', 2020, 2020)
        self.assertEqual(3, len(tlist))
        self.assertEqual(0, tlist[-1].dst_offset)

    def test_zone_change(self) -> None:
        compiler = TransitionCompiler(_create_zidb())
        tlist = compiler.compile('Test/Change', 1900, 2050)
        self.assertEqual(
            [
                Transition(BEGINNING_OF_TIME, 3600, 0, 'CET'),
                Transition(
                    datetime_to_epoch_seconds(2010, 1, 1), 7200, 0, 'EET'),
            ],
            tlist.transitions,
        )

    def test_zone_change_trimmed(self) -> None:
        compiler = TransitionCompiler(_create_zidb())
        tlist = compiler.compile('Test/Change', 2011, 2050)
        self.assertEqual(
            [Transition(BEGINNING_OF_TIME, 7200, 0, 'EET')],
            tlist.transitions,
        )

    def test_alias(self) -> None:
        compiler = TransitionCompiler(_create_zidb())
        tlist = compiler.compile('Test/Alias', 2020, 2021)
        self.assertEqual('Test/Alias', tlist.zone_id)
        self.assertEqual('Test/East', tlist.alias_for)
        self.assertEqual(
            compiler.compile('Test/East', 2020, 2021).transitions,
            tlist.transitions,
        )

    def test_unresolved_name(self) -> None:
        compiler = TransitionCompiler(_create_zidb())
        tlist = compiler.compile('Test/Odd', 1900, 2050)
        self.assertEqual('E?T', tlist[0].name)
        self.assertIn('Test/Odd', compiler.notable_zones)

    def test_unknown_zone(self) -> None:
        compiler = TransitionCompiler(_create_zidb())
        self.assertRaises(
            UnknownZoneError, compiler.compile, 'Test/Nope', 1900, 2050)

    def test_unknown_rule(self) -> None:
        compiler = TransitionCompiler(_create_zidb())
        self.assertRaises(
            CompileError, compiler.compile, 'Test/Bad', 1900, 2050)

    def test_compile_all(self) -> None:
        compiler = TransitionCompiler(_create_zidb())
        tlists = compiler.compile_all(2020, 2021)
        self.assertEqual(
            [
                'Test/Alias',
                'Test/Change',
                'Test/East',
                'Test/Fixed',
                'Test/Odd',
            ],
            sorted(tlists.keys()),
        )
        self.assertEqual(
            ['Test/Bad', 'Test/BadAlias'],
            sorted(compiler.removed_zones.keys()),
        )

        alias = tlists['Test/Alias']
        east = tlists['Test/East']
        self.assertEqual('Test/Alias', alias.zone_id)
        self.assertEqual('Test/East', alias.alias_for)
        self.assertEqual(east.transitions, alias.transitions)
        self.assertIsNot(east.transitions, alias.transitions)

    def test_compile_all_selected(self) -> None:
        compiler = TransitionCompiler(_create_zidb())
        tlists = compiler.compile_all(2020, 2021, ['Test/Fixed'])
        self.assertEqual(['Test/Fixed'], list(tlists.keys()))


BOUNDARY_ZONES = """\
Rule    Su      1999    only    -   Oct  31       2:00    0       S
Rule    Su      2000    only    -   Apr  1        2:00    1:00    D

Rule    Br      2000    max     -   Apr  1        2:00    1:00    D
Rule    Br      2000    max     -   Oct  1        2:00    0       S

Rule    War     1942    only    -   Feb  9        2:00    1:00    W
Rule    War     1945    only    -   Aug  14       23:00u  1:00    P
Rule    War     1945    only    -   Sep  30       2:00    0       S

Rule    Neg     2000    max     -   Mar  lastSun  1:00u   0       -
Rule    Neg     2000    max     -   Oct  lastSun  1:00u   -1:00   -

Rule    StdR    2000    max     -   Mar  lastSun  2:00s   1:00    S
Rule    StdR    2000    max     -   Oct  lastSun  2:00s   0       -

# Wall clock UNTIL while DST is in effect.
Zone Test/Until     -5:00       Su      E%sT    2000 Jun 1 2:00
                    -6:00       -       CST

# Starts in the middle of DST.
Zone Test/Bridge    -6:00       -       CST     2005 Jun 1 0:00u
                    -5:00       Br      E%sT

# The first rule fires exactly at the start of the segment.
Zone Test/Snap      -5:00       -       EST     2005 Apr 1 2:00
                    -6:00       Br      C%sT

Zone Test/War       -5:00       War     E%sT
Zone Test/Neg       1:00        Neg     IST/GMT
Zone Test/Std       2:00        StdR    EE%sT
"""


def _compile_boundary(
    zone_id: str,
    min_year: int,
    max_year: int,
) -> List[Tuple[int, int, int, Optional[str]]]:
    compiler = TransitionCompiler(parse_sources({'test': BOUNDARY_ZONES}))
    tlist = compiler.compile(zone_id, min_year, max_year)
    return [(t.time, t.utc_offset, t.dst_offset, t.name) for t in tlist]


def _utc(y: int, m: int, d: int, hours: int) -> int:
    return datetime_to_epoch_seconds(y, m, d, hours * 3600)


class TestSegmentBoundaries(unittest.TestCase):
    def test_wall_until_in_dst(self) -> None:
        # 2000-06-01 02:00 EDT is 06:00 UTC, not 07:00 UTC.
        self.assertEqual(
            [
                (BEGINNING_OF_TIME, -18000, 0, 'EST'),
                (_utc(2000, 4, 1, 7), -14400, 3600, 'EDT'),
                (_utc(2000, 6, 1, 6), -21600, 0, 'CST'),
            ],
            _compile_boundary('Test/Until', 2000, 2050),
        )

    def test_bridge_from_earlier_rule(self) -> None:
        # The Apr 2005 rule fired before the segment started, so the segment
        # starts in EDT.
        self.assertEqual(
            [
                (BEGINNING_OF_TIME, -21600, 0, 'CST'),
                (_utc(2005, 6, 1, 0), -14400, 3600, 'EDT'),
                (_utc(2005, 10, 1, 6), -18000, 0, 'EST'),
                (_utc(2006, 4, 1, 7), -14400, 3600, 'EDT'),
                (_utc(2006, 10, 1, 6), -18000, 0, 'EST'),
            ],
            _compile_boundary('Test/Bridge', 2005, 2006),
        )

    def test_rule_at_segment_start(self) -> None:
        # 2005-04-01 02:00 under EST is 07:00 UTC, which is also when the
        # Apr rule of the new segment fires. No CST interval in between.
        self.assertEqual(
            [
                (BEGINNING_OF_TIME, -18000, 0, 'EST'),
                (_utc(2005, 4, 1, 7), -18000, 3600, 'CDT'),
                (_utc(2005, 10, 1, 7), -21600, 0, 'CST'),
                (_utc(2006, 4, 1, 8), -18000, 3600, 'CDT'),
                (_utc(2006, 10, 1, 7), -21600, 0, 'CST'),
            ],
            _compile_boundary('Test/Snap', 2005, 2006),
        )

    def test_utc_rule_and_name_only_change(self) -> None:
        self.assertEqual(
            [
                (BEGINNING_OF_TIME, -18000, 0, 'EST'),
                (_utc(1942, 2, 9, 7), -14400, 3600, 'EWT'),
                (_utc(1945, 8, 14, 23), -14400, 3600, 'EPT'),
                (_utc(1945, 9, 30, 6), -18000, 0, 'EST'),
            ],
            _compile_boundary('Test/War', 1942, 1945),
        )

    def test_negative_save(self) -> None:
        # The March rule does not change anything and is removed. The list
        # ends in standard time, which is the summer time.
        self.assertEqual(
            [
                (BEGINNING_OF_TIME, 3600, 0, 'IST'),
                (_utc(2020, 10, 25, 1), 0, -3600, 'GMT'),
                (_utc(2021, 3, 28, 1), 3600, 0, 'IST'),
            ],
            _compile_boundary('Test/Neg', 2020, 2021),
        )

    def test_standard_time_rule(self) -> None:
        # 2:00s is 00:00 UTC in both March and October.
        self.assertEqual(
            [
                (BEGINNING_OF_TIME, 7200, 0, 'EET'),
                (_utc(2020, 3, 29, 0), 10800, 3600, 'EEST'),
                (_utc(2020, 10, 25, 0), 7200, 0, 'EET'),
            ],
            _compile_boundary('Test/Std', 2020, 2020),
        )


if __name__ == '__main__':
    unittest.main()

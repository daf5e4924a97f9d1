# Copyright 2019 Brian T. Park
#
# MIT License

import os
import struct
import tempfile
import unittest
from typing import List
from typing import Tuple

from compacttztools.data_types.ct_types import BEGINNING_OF_TIME
from compacttztools.data_types.ct_types import Transition
from compacttztools.dateutils import datetime_to_epoch_seconds
from compacttztools.oracle.hostzones import HostZonesOracle
from compacttztools.oracle.hostzones import find_tzfile
from compacttztools.oracle.tzif import TzifOracle
from compacttztools.oracle.tzif import read_tzif_transitions

# (utoff, isdst, abbreviation index)
LocalTimeType = Tuple[int, bool, int]

T1 = datetime_to_epoch_seconds(2020, 3, 8, 7 * 3600)
T2 = datetime_to_epoch_seconds(2020, 11, 1, 6 * 3600)
T3 = datetime_to_epoch_seconds(2021, 3, 14, 7 * 3600)

EST_EDT_TYPES: List[LocalTimeType] = [
    (-18000, False, 0),
    (-14400, True, 4),
    (-18000, False, 8),
]
EST_EDT_CHARS = b'EST\x00EDT\x00+05\x00'


def _create_header(
    version: bytes, timecnt: int, typecnt: int, charcnt: int,
) -> bytes:
    return struct.pack(
        '>4sc15x6l', b'TZif', version, 0, 0, 0, timecnt, typecnt, charcnt)


def _create_block(
    times: List[int],
    type_indexes: List[int],
    types: List[LocalTimeType],
    chars: bytes,
    time_format: str,
) -> bytes:
    data = struct.pack(f'>{len(times)}{time_format}', *times)
    data += struct.pack(f'>{len(type_indexes)}B', *type_indexes)
    for utoff, is_dst, index in types:
        data += struct.pack('>l?B', utoff, is_dst, index)
    return data + chars


def _create_v1_file(
    times: List[int],
    type_indexes: List[int],
    types: List[LocalTimeType],
    chars: bytes,
) -> bytes:
    return (
        _create_header(b'\x00', len(times), len(types), len(chars))
        + _create_block(times, type_indexes, types, chars, 'l')
    )


def _create_v2_file(
    times: List[int],
    type_indexes: List[int],
    types: List[LocalTimeType],
    chars: bytes,
) -> bytes:
    # A 'slim' file, with a minimal version 1 data block.
    return (
        _create_header(b'2', 0, 1, 1)
        + _create_block([], [], [(0, False, 0)], b'\x00', 'l')
        + _create_header(b'2', len(times), len(types), len(chars))
        + _create_block(times, type_indexes, types, chars, 'q')
        + b'\nEST5EDT,M3.2.0,M11.1.0\n'
    )


class TestReadTzif(unittest.TestCase):
    def test_read_v1(self) -> None:
        content = _create_v1_file(
            [T1, T2], [1, 0], EST_EDT_TYPES, EST_EDT_CHARS)
        tlist = read_tzif_transitions(content, 'Test/East')
        self.assertEqual('Test/East', tlist.zone_id)
        self.assertEqual(
            [
                Transition(BEGINNING_OF_TIME, -18000, 0, 'EST'),
                Transition(T1, -14400, 3600, 'EDT'),
                Transition(T2, -18000, 0, 'EST'),
            ],
            tlist.transitions,
        )

    def test_read_v2(self) -> None:
        content = _create_v2_file(
            [-(2**59), T1, T2, T3],
            [0, 1, 2, 1],
            EST_EDT_TYPES,
            EST_EDT_CHARS,
        )
        tlist = read_tzif_transitions(content)
        self.assertEqual(
            [
                Transition(BEGINNING_OF_TIME, -18000, 0, 'EST'),
                Transition(T1, -14400, 3600, 'EDT'),
                Transition(T2, -18000, 0, None),
                Transition(T3, -14400, 3600, 'EDT'),
            ],
            tlist.transitions,
        )

    def test_duplicates_removed(self) -> None:
        content = _create_v1_file(
            [T1, T2, T3], [0, 1, 1], EST_EDT_TYPES, EST_EDT_CHARS)
        tlist = read_tzif_transitions(content)
        self.assertEqual(
            [
                Transition(BEGINNING_OF_TIME, -18000, 0, 'EST'),
                Transition(T2, -14400, 3600, 'EDT'),
            ],
            tlist.transitions,
        )

    def test_no_transitions(self) -> None:
        content = _create_v1_file([], [], [(3600, False, 0)], b'CET\x00')
        tlist = read_tzif_transitions(content)
        self.assertEqual(
            [Transition(BEGINNING_OF_TIME, 3600, 0, 'CET')],
            tlist.transitions,
        )

    def test_invalid(self) -> None:
        self.assertRaises(ValueError, read_tzif_transitions, b'')
        self.assertRaises(
            ValueError, read_tzif_transitions, b'XXXX' + bytes(40))
        content = _create_v1_file(
            [T1, T2], [1, 0], EST_EDT_TYPES, EST_EDT_CHARS)
        self.assertRaises(ValueError, read_tzif_transitions, content[:50])
        content = _create_v1_file(
            [T1], [5], EST_EDT_TYPES, EST_EDT_CHARS)
        self.assertRaises(ValueError, read_tzif_transitions, content)


class TestTzifOracle(unittest.TestCase):
    def test_get_transitions(self) -> None:
        with tempfile.TemporaryDirectory() as zoneinfo_dir:
            os.mkdir(os.path.join(zoneinfo_dir, 'Test'))
            with open(os.path.join(zoneinfo_dir, 'Test', 'East'), 'wb') as f:
                f.write(_create_v2_file(
                    [T1, T2, T3], [1, 0, 1], EST_EDT_TYPES, EST_EDT_CHARS))
            with open(os.path.join(zoneinfo_dir, 'Test', 'Bad'), 'wb') as f:
                f.write(b'not a tzif file')

            oracle = TzifOracle(zoneinfo_dir)

            # The trailing transition into DST is trimmed.
            tlist = oracle.get_transitions('Test/East', 1900, 2050)
            assert tlist is not None
            self.assertEqual(
                [
                    Transition(BEGINNING_OF_TIME, -18000, 0, 'EST'),
                    Transition(T1, -14400, 3600, 'EDT'),
                    Transition(T2, -18000, 0, 'EST'),
                ],
                tlist.transitions,
            )

            self.assertIsNone(oracle.get_transitions('Test/None', 1900, 2050))
            with self.assertLogs(level='WARNING'):
                self.assertIsNone(
                    oracle.get_transitions('Test/Bad', 1900, 2050))


@unittest.skipIf(
    find_tzfile('America/New_York') is None,
    'zoneinfo files not installed',
)
class TestHostZonesOracle(unittest.TestCase):
    def test_get_transitions(self) -> None:
        oracle = HostZonesOracle()
        tlist = oracle.get_transitions('America/New_York', 2000, 2030)
        assert tlist is not None
        self.assertEqual(BEGINNING_OF_TIME, tlist[0].time)
        self.assertEqual(-18000, tlist[0].utc_offset)
        self.assertEqual((-18000, 3600), tlist.nominal_offsets)
        for t in tlist:
            self.assertIn(t.dst_offset, (0, 3600))
            self.assertIn(t.utc_offset, (-18000, -14400))

    def test_unknown_zone(self) -> None:
        oracle = HostZonesOracle()
        self.assertIsNone(oracle.get_transitions('Test/Nowhere', 2000, 2030))


if __name__ == '__main__':
    unittest.main()

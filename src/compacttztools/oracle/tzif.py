# Copyright 2019 Brian T. Park
#
# MIT License

"""
Reads the transitions of a compiled zoneinfo (TZif) file, as produced by the
standard 'zic' compiler, into a TransitionList which can be used to validate
the TransitionCompiler. See RFC 8536 for the file format.

A TZif file starts with a 44-byte header and a data block with 32-bit times.
Version 2 and later files follow it with a second header and a data block with
64-bit times, which is used if present, since files created with 'zic -b slim'
leave the first data block empty.
"""

import logging
import os
import struct
from typing import List
from typing import NamedTuple
from typing import Optional

from compacttztools.data_types.ct_types import BEGINNING_OF_TIME
from compacttztools.data_types.ct_types import Transition
from compacttztools.transformer.transitions import TransitionList

# magic, version, unused, then the counts of isutccnt, isstdcnt, leapcnt,
# timecnt, typecnt, charcnt.
_HEADER_STRUCT_FORMAT = '>4sc15x6l'
_HEADER_SIZE = 44
_MAGIC = b'TZif'

# utoff (4 bytes), isdst (1 byte), abbreviation index (1 byte)
_LOCAL_TIME_TYPE_STRUCT_FORMAT = '>l?B'
_LOCAL_TIME_TYPE_SIZE = 6

# Times which 'zic' writes for the beginning of time in the v1 and v2 blocks.
_V1_BEGINNING_OF_TIME = -(2**31)
_V2_BEGINNING_OF_TIME = -(2**59)

# TZif records only a DST flag.
_DST_FLAG_OFFSET = 3600


class _Header(NamedTuple):
    version: bytes
    isutccnt: int
    isstdcnt: int
    leapcnt: int
    timecnt: int
    typecnt: int
    charcnt: int

    def data_block_size(self, time_size: int) -> int:
        return (
            self.timecnt * time_size
            + self.timecnt
            + self.typecnt * _LOCAL_TIME_TYPE_SIZE
            + self.charcnt
            + self.leapcnt * (time_size + 4)
            + self.isstdcnt
            + self.isutccnt
        )


def _read_header(content: bytes, offset: int) -> _Header:
    header_bytes = content[offset:offset + _HEADER_SIZE]
    if len(header_bytes) != _HEADER_SIZE:
        raise ValueError('TZif header truncated')
    magic, version, *counts = struct.unpack(_HEADER_STRUCT_FORMAT, header_bytes)
    if magic != _MAGIC:
        raise ValueError('zoneinfo file did not contain magic header')
    header = _Header(version, *counts)
    if header.typecnt == 0:
        raise ValueError('Local time records in block is zero')
    return header


def read_tzif_transitions(
    content: bytes,
    zone_id: Optional[str] = None,
) -> TransitionList:
    """Parse the contents of a TZif file into a TransitionList. Names which
    start with '+' or '-' are numeric and become None. The DST offset is
    either 0 or 3600, since the file does not record the DST amount.

    Raises ValueError if the content is not a valid TZif file.
    """
    header = _read_header(content, 0)
    offset = _HEADER_SIZE
    time_size = 4
    time_format = 'l'
    beginning_of_time = _V1_BEGINNING_OF_TIME
    if header.version != b'\x00':
        offset += header.data_block_size(time_size)
        header = _read_header(content, offset)
        offset += _HEADER_SIZE
        time_size = 8
        time_format = 'q'
        beginning_of_time = _V2_BEGINNING_OF_TIME

    if len(content) < offset + header.data_block_size(time_size):
        raise ValueError('TZif data block truncated')

    timecnt = header.timecnt
    times = struct.unpack_from(f'>{timecnt}{time_format}', content, offset)
    offset += timecnt * time_size
    type_indexes = struct.unpack_from(f'>{timecnt}B', content, offset)
    offset += timecnt

    types = []
    for _ in range(header.typecnt):
        types.append(struct.unpack_from(
            _LOCAL_TIME_TYPE_STRUCT_FORMAT, content, offset))
        offset += _LOCAL_TIME_TYPE_SIZE
    names_blob = content[offset:offset + header.charcnt]

    def get_name(index: int) -> Optional[str]:
        end = names_blob.find(b'\x00', index)
        if end < 0:
            end = len(names_blob)
        name = names_blob[index:end].decode('utf-8')
        if not name or name[0] in '+-':
            return None
        return name

    def create_transition(time: int, type_index: int) -> Transition:
        if type_index >= len(types):
            raise ValueError(
                f'Local time type {type_index} out of bounds {len(types)}')
        utc_offset, is_dst, name_index = types[type_index]
        return Transition(
            time=time,
            utc_offset=utc_offset,
            dst_offset=_DST_FLAG_OFFSET if is_dst else 0,
            name=get_name(name_index),
        )

    transitions: List[Transition] = []
    # Local time type 0 applies before the first transition.
    if timecnt == 0 or times[0] != beginning_of_time:
        transitions.append(create_transition(BEGINNING_OF_TIME, 0))
    for time, type_index in zip(times, type_indexes):
        if time == beginning_of_time:
            time = BEGINNING_OF_TIME
        transitions.append(create_transition(time, type_index))

    tlist = TransitionList(zone_id=zone_id, transitions=transitions)
    tlist.remove_duplicate_transitions()
    return tlist


class TzifOracle:
    """Provides the transitions of the TZif files under 'zoneinfo_dir', e.g.
    '/usr/share/zoneinfo'.
    """

    def __init__(self, zoneinfo_dir: str):
        self.zoneinfo_dir = zoneinfo_dir

    def get_transitions(
        self,
        zone_id: str,
        min_year: int,
        max_year: int,
    ) -> Optional[TransitionList]:
        """Return the trimmed transitions of 'zone_id', or None if its file
        does not exist or is invalid.
        """
        filename = os.path.join(self.zoneinfo_dir, zone_id)
        return read_tzif_file(filename, zone_id, min_year, max_year)


def read_tzif_file(
    filename: str,
    zone_id: str,
    min_year: int,
    max_year: int,
) -> Optional[TransitionList]:
    if not os.path.isfile(filename):
        return None
    try:
        with open(filename, 'rb') as f:
            content = f.read()
        tlist = read_tzif_transitions(content, zone_id)
    except (OSError, ValueError, struct.error) as e:
        logging.warning(f'{zone_id}: unable to read {filename}: {e}')
        return None
    tlist.trim(min_year, max_year)
    return tlist

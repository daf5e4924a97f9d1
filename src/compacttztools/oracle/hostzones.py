# Copyright 2019 Brian T. Park
#
# MIT License

"""
Provides the transitions of the time zone database installed on the host,
found through the search path of the Python 'zoneinfo' module. The DST
amounts and the offsets beyond the final transition are taken from
zoneinfo.ZoneInfo, which knows the POSIX TZ rule of the zone.
"""

import datetime
import logging
import os
import zoneinfo
from typing import Optional
from typing import Tuple

from compacttztools.data_types.ct_types import BEGINNING_OF_TIME
from compacttztools.data_types.ct_types import SECONDS_PER_DAY
from compacttztools.oracle.tzif import read_tzif_file
from compacttztools.transformer.transitions import TransitionList

_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)

# Number of quarter years after the final transition probed for the nominal
# standard and DST offsets.
_NOMINAL_OFFSET_PROBES = 8
_QUARTER_YEAR = 91 * SECONDS_PER_DAY


def find_tzfile(zone_id: str) -> Optional[str]:
    """Retrieve the path to a TZif file from a zone id."""
    for search_path in zoneinfo.TZPATH:
        filepath = os.path.join(search_path, zone_id)
        if os.path.isfile(filepath):
            return filepath
    return None


class HostZonesOracle:
    """Transitions from the zoneinfo files of the host. Unknown zones return
    None.
    """

    def get_transitions(
        self,
        zone_id: str,
        min_year: int,
        max_year: int,
    ) -> Optional[TransitionList]:
        filename = find_tzfile(zone_id)
        if filename is None:
            return None
        try:
            zone_info = zoneinfo.ZoneInfo(zone_id)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError) as e:
            logging.warning(f'{zone_id}: {e}')
            return None

        tlist = read_tzif_file(filename, zone_id, min_year, max_year)
        if tlist is None:
            return None

        # Replace the DST flags with the DST amounts.
        for i, t in enumerate(tlist.transitions):
            if t.dst_offset == 0 or t.time == BEGINNING_OF_TIME:
                continue
            _, dst_offset = _probe(zone_info, t.time)
            if dst_offset != 0:
                tlist.transitions[i] = t._replace(dst_offset=dst_offset)

        tlist.nominal_offsets = _find_nominal_offsets(zone_info, tlist)
        return tlist


def _probe(zone_info: zoneinfo.ZoneInfo, time: int) -> Tuple[int, int]:
    """Return the (utc_offset, dst_offset) at the epoch seconds 'time'."""
    dt = (_EPOCH + datetime.timedelta(seconds=time)).astimezone(zone_info)
    utc_offset = dt.utcoffset()
    dst = dt.dst()
    return (
        int(utc_offset.total_seconds()) if utc_offset is not None else 0,
        int(dst.total_seconds()) if dst is not None else 0,
    )


def _find_nominal_offsets(
    zone_info: zoneinfo.ZoneInfo,
    tlist: TransitionList,
) -> Tuple[int, int]:
    """Probe the zone past its final transition for the standard offset,
    and the DST amount if DST is still observed.
    """
    last = tlist[-1]
    std_offset = last.utc_offset - last.dst_offset
    dst_offset = 0
    if last.time == BEGINNING_OF_TIME:
        return (std_offset, dst_offset)

    for i in range(1, _NOMINAL_OFFSET_PROBES + 1):
        try:
            utc_offset, dst = _probe(zone_info, last.time + i * _QUARTER_YEAR)
        except OverflowError:
            break
        std_offset = utc_offset - dst
        if dst != 0:
            dst_offset = dst
            break
    return (std_offset, dst_offset)

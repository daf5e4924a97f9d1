# Copyright 2018 Brian T. Park
#
# MIT License.

"""
Parses the raw TZ Database files into the ZoneDatabase record, a collection of
ZoneLine, ZoneRule and alias entries. Each line of a file is classified once
by classify_line() into a RuleLine, LinkLine, ZoneHeaderLine or
ZoneContinuationLine.

Usage:
    extractor = Extractor(input_dir)
    extractor.parse()
    extractor.print_summary()
    zidb = extractor.get_data()
"""

import logging
import os
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional
from typing import Set
from typing import Tuple

from compacttztools.data_types.ct_types import CLOCK_TYPE_STD
from compacttztools.data_types.ct_types import CLOCK_TYPE_UTC
from compacttztools.data_types.ct_types import CLOCK_TYPE_WALL
from compacttztools.data_types.ct_types import END_OF_TIME
from compacttztools.data_types.ct_types import MAX_YEAR
from compacttztools.data_types.ct_types import MIN_YEAR
from compacttztools.data_types.ct_types import LinkLine
from compacttztools.data_types.ct_types import LinksMap
from compacttztools.data_types.ct_types import ParseError
from compacttztools.data_types.ct_types import ParsedLine
from compacttztools.data_types.ct_types import RuleLine
from compacttztools.data_types.ct_types import RuleSetsMap
from compacttztools.data_types.ct_types import UnresolvedAliasError
from compacttztools.data_types.ct_types import ZoneContinuationLine
from compacttztools.data_types.ct_types import ZoneDatabase
from compacttztools.data_types.ct_types import ZoneHeaderLine
from compacttztools.data_types.ct_types import ZoneLine
from compacttztools.data_types.ct_types import ZoneRule
from compacttztools.data_types.ct_types import ZonesMap
from compacttztools.dateutils import WEEK_TO_WEEK_INDEX
from compacttztools.dateutils import datetime_to_epoch_seconds
from compacttztools.dateutils import resolve_day_spec

# Returned by time_string_to_seconds() on a parsing error.
INVALID_SECONDS = 999999  # 277h46m69s

MONTH_NAMES = [
    'january',
    'february',
    'march',
    'april',
    'may',
    'june',
    'july',
    'august',
    'september',
    'october',
    'november',
    'december',
]

# Map of the clock suffix of the AT and UNTIL fields to the CLOCK_TYPE_*.
SUFFIX_TO_CLOCK_TYPE = {
    '': CLOCK_TYPE_WALL,
    'w': CLOCK_TYPE_WALL,
    's': CLOCK_TYPE_STD,
    'u': CLOCK_TYPE_UTC,
    'g': CLOCK_TYPE_UTC,
    'z': CLOCK_TYPE_UTC,
}


class Extractor:
    """Reads the TZ Database files from 'input_dir' and parses them into a
    ZoneDatabase.
    """

    # Files that contain the Zone, Rule and Link entries. Files which do not
    # exist in a particular TZDB release are skipped.
    ZONE_FILES = [
        'africa',
        'antarctica',
        'asia',
        'australasia',
        'europe',
        'northamerica',
        'pacificnew',
        'southamerica',
        'backward',
        'etcetera',
        'systemv',
    ]

    def __init__(
        self,
        input_dir: str,
        round_to_minutes: bool = False,
        include_systemv: bool = False,
    ):
        """
        Args:
            input_dir: directory of the raw TZDB files
            round_to_minutes: round STDOFF, SAVE and UNTIL to whole minutes
            include_systemv: enable the commented-out SystemV zones
        """
        self.input_dir = input_dir
        self.round_to_minutes = round_to_minutes
        self.include_systemv = include_systemv
        self.sources: Dict[str, str] = {}
        self.zidb: Optional[ZoneDatabase] = None

    def parse(self) -> None:
        """Read the zone files and parse them into a ZoneDatabase."""
        self.sources = read_source_files(self.input_dir, self.ZONE_FILES)
        self.zidb = parse_sources(
            self.sources,
            round_to_minutes=self.round_to_minutes,
            include_systemv=self.include_systemv,
        )

    def print_summary(self) -> None:
        zidb = self.get_data()
        rule_count = sum(len(rules) for rules in zidb.rule_sets.values())
        line_count = sum(len(lines) for lines in zidb.zones.values())
        logging.info(
            'TZ version: %s; Files: %d',
            zidb.version,
            len([name for name in self.sources if name != 'version']),
        )
        logging.info(
            'Zones: %d; Zone lines: %d; Rule sets: %d; Rules: %d; Links: %d',
            len(zidb.zones),
            line_count,
            len(zidb.rule_sets),
            rule_count,
            len(zidb.aliases),
        )

    def get_data(self) -> ZoneDatabase:
        if self.zidb is None:
            raise ValueError('Extractor.parse() has not been called')
        return self.zidb


def read_source_files(input_dir: str, names: Iterable[str]) -> Dict[str, str]:
    """Read the requested TZ source files from 'input_dir' into a map of
    {name -> text}. Missing files are skipped with a warning. The 'version'
    file, if it exists, is returned under the 'version' key.
    """
    sources: Dict[str, str] = {}
    for name in names:
        full_filename = os.path.join(input_dir, name)
        if not os.path.isfile(full_filename):
            logging.warning('Skipping missing file %s', full_filename)
            continue
        with open(full_filename, 'r', encoding='utf-8') as f:
            sources[name] = f.read()
        logging.info('Read %s', full_filename)

    version_filename = os.path.join(input_dir, 'version')
    if os.path.isfile(version_filename):
        with open(version_filename, 'r', encoding='utf-8') as f:
            sources['version'] = f.read()
    return sources


def parse_sources(
    sources: Dict[str, str],
    source_names: Optional[List[str]] = None,
    round_to_minutes: bool = False,
    include_systemv: bool = False,
) -> ZoneDatabase:
    """Parse the map of {source_name -> text} into a ZoneDatabase. If
    'source_names' is given, the sources are parsed in that order and each
    must be present. The 'version' entry, if any, is the TZDB version string.

    Raises ParseError on the first malformed line, and UnresolvedAliasError if
    a Link does not lead to a Zone.
    """
    if source_names is None:
        source_names = [name for name in sources if name != 'version']

    zones_map: ZonesMap = {}
    rule_sets: RuleSetsMap = {}
    links_map: LinksMap = {}

    for source_name in source_names:
        text = sources.get(source_name)
        if text is None:
            raise ParseError(
                f'Failed reading "{source_name}": File not found',
                source_name,
            )
        # Uncomment the commented-out time zones in the systemv file.
        if source_name == 'systemv' and include_systemv:
            text = text.replace('## Zone', 'Zone')
        _parse_source(
            source_name,
            text,
            zones_map,
            rule_sets,
            links_map,
            round_to_minutes,
        )

    aliases = _resolve_aliases(zones_map, links_map)
    version = sources.get('version', 'unknown').strip()
    return ZoneDatabase(
        zones=zones_map,
        rule_sets=rule_sets,
        aliases=aliases,
        version=version,
    )


def _parse_source(
    source_name: str,
    text: str,
    zones_map: ZonesMap,
    rule_sets: RuleSetsMap,
    links_map: LinksMap,
    round_to_minutes: bool,
) -> None:
    """Parse a single TZ source file, adding its entries to the given maps."""
    zone_id: Optional[str] = None
    zone_lines: List[ZoneLine] = []
    line_no = 0

    for line_no, line in _read_lines(text):
        try:
            parsed = classify_line(line, round_to_minutes)
        except ValueError as e:
            raise ParseError(str(e), source_name, line_no) from e

        if isinstance(parsed, RuleLine):
            rule = parsed.rule
            rule_sets.setdefault(rule.name, []).append(rule)
            continue
        if isinstance(parsed, LinkLine):
            links_map[parsed.link_name] = parsed.target
            continue

        if isinstance(parsed, ZoneHeaderLine):
            if zone_id is not None:
                raise ParseError(
                    f'Zone {zone_id} was not properly terminated',
                    source_name,
                    line_no,
                )
            zone_id = parsed.zone_id
            zone_lines = []
        elif zone_id is None:
            raise ParseError(
                'Zone continuation line outside of a Zone',
                source_name,
                line_no,
            )

        zone_line = parsed.zone_line
        zone_lines.append(zone_line)
        if zone_line.until == END_OF_TIME:
            zones_map[zone_id] = zone_lines
            zone_id = None

    if zone_id is not None:
        raise ParseError(
            f'Zone {zone_id} was not properly terminated',
            source_name,
            line_no,
        )


def _read_lines(text: str) -> Iterable[Tuple[int, str]]:
    """Yield (line_no, line) of the non-blank lines, with comments removed and
    trailing whitespace stripped. Leading whitespace is significant because it
    marks a Zone continuation line.
    """
    for line_no, line in enumerate(text.splitlines(), start=1):
        comment_start = line.find('#')
        if comment_start >= 0:
            line = line[:comment_start]
        line = line.rstrip()
        if not line:
            continue
        yield (line_no, line)


def _resolve_aliases(zones_map: ZonesMap, links_map: LinksMap) -> LinksMap:
    """Drop links which are shadowed by a real Zone, then map the remaining
    ones directly to a Zone, following chains of links.
    """
    aliases: LinksMap = {}
    for link_name, target in links_map.items():
        if link_name in zones_map:
            logging.info('Dropping Link %s shadowed by a Zone', link_name)
            continue

        visited: Set[str] = {link_name}
        while target not in zones_map:
            next_target = links_map.get(target)
            if next_target is None or target in visited:
                raise UnresolvedAliasError(link_name, target)
            visited.add(target)
            target = next_target
        aliases[link_name] = target
    return aliases


# -----------------------------------------------------------------------------
# Line parsers. These raise ValueError, which the caller converts into a
# ParseError holding the source name and line number.
# -----------------------------------------------------------------------------

def classify_line(line: str, round_to_minutes: bool = False) -> ParsedLine:
    """Parse a single comment-free line into one of the ParsedLine types.
    A line starting with whitespace is a Zone continuation line.
    """
    tokens = line.split()
    if not tokens:
        raise ValueError('Empty line')
    keyword = tokens[0]

    if line[0].isspace():
        return ZoneContinuationLine(
            zone_line=_parse_zone_line(tokens, line, round_to_minutes))
    if keyword == 'Rule':
        return RuleLine(rule=_parse_rule_line(tokens, line, round_to_minutes))
    if keyword == 'Link':
        if len(tokens) != 3:
            raise ValueError(f'Invalid Link line: {line}')
        return LinkLine(target=tokens[1], link_name=tokens[2])
    if keyword == 'Zone':
        if len(tokens) < 5:
            raise ValueError(f'Invalid Zone line: {line}')
        return ZoneHeaderLine(
            zone_id=tokens[1],
            zone_line=_parse_zone_line(tokens[2:], line, round_to_minutes),
        )
    raise ValueError(f'Unrecognized line: {line}')


def _parse_rule_line(
    tokens: List[str],
    line: str,
    round_to_minutes: bool,
) -> ZoneRule:
    """Parse 'Rule NAME FROM TO - IN ON AT SAVE LETTER/S'."""
    if len(tokens) < 9 or len(tokens) > 10:
        raise ValueError(f'Invalid Rule line: {line}')

    name = tokens[1]

    from_string = tokens[2].lower()
    if from_string in ('min', 'minimum'):
        from_year = MIN_YEAR
    else:
        from_year = _parse_year(tokens[2])

    to_string = tokens[3].lower()
    if to_string == 'only':
        to_year = from_year
    elif to_string in ('max', 'maximum'):
        to_year = MAX_YEAR
    else:
        to_year = _parse_year(tokens[3])
    if to_year < from_year:
        raise ValueError(f'Rule TO year {to_year} before FROM {from_year}')

    in_month = month_to_index(tokens[5])
    on_day_of_week, on_day_of_month = parse_on_day_string(tokens[6])

    at_time, at_suffix = parse_at_time_string(tokens[7])
    at_seconds = _parse_time(at_time)

    # SAVE can carry a 's' (standard) or 'd' (daylight) suffix.
    save_string = tokens[8]
    if save_string[-1] in 'sd':
        save_string = save_string[:-1]
    save = _parse_time(save_string)
    if round_to_minutes:
        save = round_seconds_to_minutes(save)

    letters = tokens[9] if len(tokens) > 9 else '-'
    if letters == '-':
        letters = ''

    return ZoneRule(
        name=name,
        from_year=from_year,
        to_year=to_year,
        in_month=in_month,
        on_day_of_week=on_day_of_week,
        on_day_of_month=on_day_of_month,
        at_seconds=at_seconds,
        at_type=SUFFIX_TO_CLOCK_TYPE[at_suffix],
        save=save,
        letters=letters,
        raw_line=line.strip(),
    )


def _parse_zone_line(
    tokens: List[str],
    line: str,
    round_to_minutes: bool,
) -> ZoneLine:
    """Parse the 'STDOFF RULES FORMAT [UNTIL]' fields of a Zone line."""
    if len(tokens) < 3:
        raise ValueError(f'Invalid Zone line: {line}')

    gmt_offset = _parse_time(tokens[0])
    if round_to_minutes:
        gmt_offset = round_seconds_to_minutes(gmt_offset)

    rules_string = tokens[1]
    rules: Optional[str] = None
    fixed_save = 0
    if rules_string == '-':
        pass
    elif rules_string[0].isdigit() or rules_string[0] == '-':
        fixed_save = _parse_time(rules_string)
        if round_to_minutes:
            fixed_save = round_seconds_to_minutes(fixed_save)
    else:
        rules = rules_string

    zone_format = tokens[2]

    if len(tokens) > 3:
        until, until_type = parse_until(
            tokens[3:], gmt_offset, round_to_minutes)
    else:
        until = END_OF_TIME
        until_type = CLOCK_TYPE_WALL

    return ZoneLine(
        gmt_offset=gmt_offset,
        rules=rules,
        fixed_save=fixed_save,
        format=zone_format,
        until=until,
        until_type=until_type,
        raw_line=line.strip(),
    )


def parse_until(
    tokens: List[str],
    gmt_offset: int,
    round_to_minutes: bool = False,
) -> Tuple[int, int]:
    """Parse the 'YEAR [MONTH [DAY [TIME]]]' fields of UNTIL into the epoch
    seconds and the clock type. Standard and wall clock times are converted
    using 'gmt_offset'. The DST offset of a wall clock time is not known yet,
    and must be subtracted later.
    """
    if len(tokens) > 4:
        raise ValueError(f'Invalid UNTIL: {" ".join(tokens)}')

    year = _parse_year(tokens[0])
    month = month_to_index(tokens[1]) if len(tokens) > 1 else 1
    day = 1
    if len(tokens) > 2:
        on_day_of_week, on_day_of_month = parse_on_day_string(tokens[2])
        year, month, day = resolve_day_spec(
            year, month, on_day_of_week, on_day_of_month)

    seconds = 0
    suffix = ''
    if len(tokens) > 3:
        time_string, suffix = parse_at_time_string(tokens[3])
        seconds = _parse_time(time_string)
        if round_to_minutes:
            seconds = round_seconds_to_minutes(seconds)

    until_type = SUFFIX_TO_CLOCK_TYPE[suffix]
    until = datetime_to_epoch_seconds(year, month, day, seconds)
    if until_type != CLOCK_TYPE_UTC:
        until -= gmt_offset
    return (until, until_type)


def month_to_index(month: str) -> int:
    """Convert a month name, or any unambiguous prefix of 3 or more letters, to
    its index (1-12). Case insensitive.
    """
    name = month.lower()
    if len(name) >= 3:
        for index, month_name in enumerate(MONTH_NAMES):
            if month_name.startswith(name):
                return index + 1
    raise ValueError(f'Invalid month "{month}"')


def parse_on_day_string(on_string: str) -> Tuple[int, int]:
    """Parse things like "Sun>=1", "lastSun", "20", "Fri<=2".
    Returns (on_day_of_week, on_day_of_month) where
        (0, dayOfMonth) = exact match on dayOfMonth
        (dayOfWeek, dayOfMonth) = matches dayOfWeek>=dayOfMonth
        (dayOfWeek, -dayOfMonth) = matches dayOfWeek<=dayOfMonth
        (dayOfWeek, 0) = matches lastDayOfWeek

    where
        dayOfWeek is represented by a number (Sun=1, ..., Sat=7),
        dayOfMonth is 1-31 (if >=), or (-1)-(-31) (if <=).
    """
    if on_string.isdigit():
        day = int(on_string)
        if day < 1 or day > 31:
            raise ValueError(f'Invalid day of month "{on_string}"')
        return (0, day)

    if on_string[:4] == 'last':
        return (_day_of_week_to_index(on_string[4:]), 0)

    for operator, sign in (('>=', 1), ('<=', -1)):
        index = on_string.find(operator)
        if index > 0:
            day_of_week = _day_of_week_to_index(on_string[:index])
            day_string = on_string[index + 2:]
            if not day_string.isdigit():
                raise ValueError(f'Invalid day "{on_string}"')
            day = int(day_string)
            if day < 1 or day > 31:
                raise ValueError(f'Invalid day of month "{on_string}"')
            return (day_of_week, sign * day)

    raise ValueError(f'Invalid day "{on_string}"')


def _day_of_week_to_index(day_of_week: str) -> int:
    """Accept 'Sun' and longer forms like 'Sunday'."""
    index = WEEK_TO_WEEK_INDEX.get(day_of_week[:3].capitalize())
    if index is None or len(day_of_week) < 3:
        raise ValueError(f'Invalid day of week "{day_of_week}"')
    return index


def parse_at_time_string(at_string: str) -> Tuple[str, str]:
    """Parses the '2:00s' string into '2:00' and 's'. If no suffix is given,
    the suffix is returned as the empty string. Throws ValueError if the suffix
    is not valid.
    """
    if not at_string:
        raise ValueError('Empty time string')
    last = at_string[-1]
    if last.isdigit():
        return (at_string, '')
    if last in SUFFIX_TO_CLOCK_TYPE:
        return (at_string[:-1], last)
    raise ValueError(f'Invalid time suffix "{last}" in "{at_string}"')


def time_string_to_seconds(time_string: str) -> int:
    """Converts the '[-]hh:mm:ss' string into +/- total seconds from 00:00.
    Returns INVALID_SECONDS if there is a parsing error.
    """
    if not time_string:
        return INVALID_SECONDS

    sign = 1
    if time_string[0] == '-':
        sign = -1
        time_string = time_string[1:]
    elif time_string[0] == '+':
        time_string = time_string[1:]

    try:
        elems = time_string.split(':')
        if len(elems) > 3:
            return INVALID_SECONDS
        hour = int(elems[0])
        minute = int(elems[1]) if len(elems) > 1 else 0
        second = int(elems[2]) if len(elems) > 2 else 0
    except ValueError:
        return INVALID_SECONDS

    # A number of countries use 24:00, and Japan uses 25:00(!).
    # Rule  Japan   1948    1951  -     Sep Sat>=8  25:00   0   	S
    if hour > 25:
        return INVALID_SECONDS
    if minute > 59:
        return INVALID_SECONDS
    if second > 59:
        return INVALID_SECONDS
    return sign * ((hour * 60 + minute) * 60 + second)


def round_seconds_to_minutes(seconds: int) -> int:
    """Round to the nearest whole minute, with 30 seconds rounding away from
    zero.
    """
    sign = -1 if seconds < 0 else 1
    return sign * ((abs(seconds) + 30) // 60 * 60)


def _parse_time(time_string: str) -> int:
    seconds = time_string_to_seconds(time_string)
    if seconds == INVALID_SECONDS:
        raise ValueError(f'Invalid time "{time_string}"')
    return seconds


def _parse_year(year_string: str) -> int:
    try:
        return int(year_string)
    except ValueError:
        raise ValueError(f'Invalid year "{year_string}"')

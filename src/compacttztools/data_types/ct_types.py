# Copyright 2020 Brian T. Park
#
# MIT License

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Collection
from typing import Dict
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import Set
from typing import TYPE_CHECKING
from typing import Union
from typing import cast
from typing_extensions import Protocol
from typing_extensions import TypedDict

if TYPE_CHECKING:
    from compacttztools.transformer.transitions import TransitionList

"""
Data types created or consumed by the various stages of the compiler. These
allow typing checking to be performed using mypy. Also contains global
constants and the exception types shared by multiple packages.
"""

# -----------------------------------------------------------------------------
# Constants used by various modules.
# -----------------------------------------------------------------------------

# Time of the first transition of every TransitionList, earlier than any real
# instant. Same magnitude as the JavaScript safe integer limit, so that the
# compact tables can be consumed by JavaScript.
BEGINNING_OF_TIME: int = -0x1FFFFFFFFFFFFF

# UNTIL of the final (open-ended) line of a Zone.
END_OF_TIME: int = 0x1FFFFFFFFFFFFF

# Markers for the 'min' FROM and 'max' TO fields of a RULE.
MIN_YEAR: int = -(2**31)
MAX_YEAR: int = 2**31 - 1

# Rules are never expanded before this year.
MIN_RULE_YEAR: int = 1800

# Year used as the upper bound of rules applied to an open-ended Zone line.
OPEN_UNTIL_YEAR: int = 9999

# Default year range of the compiled transitions.
DEFAULT_MIN_YEAR: int = 1900
DEFAULT_MAX_YEAR: int = 2050

# Placeholder for LETTERS which could not be determined.
UNKNOWN_LETTERS: str = '?'

# Clock basis of the AT and UNTIL fields.
CLOCK_TYPE_WALL: int = 0  # 'w' or no suffix
CLOCK_TYPE_STD: int = 1  # 's'
CLOCK_TYPE_UTC: int = 2  # 'u', 'g', 'z'

CLOCK_TYPE_SUFFIXES: Dict[int, str] = {
    CLOCK_TYPE_WALL: 'w',
    CLOCK_TYPE_STD: 's',
    CLOCK_TYPE_UTC: 'u',
}

SECONDS_PER_DAY = 86400


# -----------------------------------------------------------------------------
# Exceptions.
# -----------------------------------------------------------------------------

class CompactTzError(Exception):
    """Base class of errors raised by the compiler."""


class ParseError(CompactTzError):
    """Malformed or unexpected line in a TZ source file. Fatal to the run."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        line_no: int = 0,
    ):
        self.message = message
        self.source_name = source_name
        self.line_no = line_no
        text = message
        if source_name:
            text += f' ({source_name})'
        if line_no:
            text += f' (line {line_no})'
        super().__init__(text)


class UnresolvedAliasError(CompactTzError):
    """A Link which does not resolve to a real Zone."""

    def __init__(self, alias: str, target: str):
        self.alias = alias
        self.target = target
        super().__init__(f'{alias} is mapped to unknown time zone {target}')


class UnknownZoneError(CompactTzError):
    """Requested zone id is neither a Zone nor a Link."""

    def __init__(self, zone_id: str):
        self.zone_id = zone_id
        super().__init__(f'Unknown time zone: {zone_id}')


class CompileError(CompactTzError):
    """A Zone which cannot be compiled, e.g. it references a missing Rule."""


# -----------------------------------------------------------------------------
# Records produced by extractor.py.
# -----------------------------------------------------------------------------

class ZoneRule(NamedTuple):
    """Represents the 'RULE' lines in a tz database file. Those entries look
    like this:

    # Rule  NAME    FROM    TO    TYPE IN   ON      AT      SAVE    LETTER
    Rule    US      2007    max   -    Mar  Sun>=8  2:00    1:00    D
    Rule    US      2007    max   -    Nov  Sun>=1  2:00    0       S
    """
    name: str
    from_year: int  # MIN_YEAR means 'min'
    to_year: int  # MAX_YEAR means 'max'
    in_month: int  # month index (1-12)
    on_day_of_week: int  # 1=Sunday, 7=Saturday, 0={exact dayOfMonth match}
    on_day_of_month: int  # 1-31 "dow>=xx", -(1-31) "dow<=xx", 0={lastXxx}
    at_seconds: int  # AT in seconds since 00:00, may exceed 24:00
    at_type: int  # CLOCK_TYPE_*
    save: int  # offset from Standard time in seconds, may be negative
    letters: str  # 'D', 'S', '', but sometimes longer 'DD', 'CAT', etc.
    raw_line: str = ''


class ZoneLine(NamedTuple):
    """Represents the 'ZONE' lines in a tz database file. Those entries look
    like this:

    # Zone  NAME                STDOFF      RULES   FORMAT  [UNTIL]
    Zone    America/Chicago     -5:50:36    -       LMT     1883 Nov 18 12:09:24
                                -6:00       US      C%sT    1920
                                ...
                                -6:00       US      C%sT
    """
    gmt_offset: int  # STDOFF in seconds
    # Name of the RuleSet, or None if RULES is '-' or a fixed DST offset.
    rules: Optional[str]
    fixed_save: int  # parsed DST offset if RULES is 'hh:mm', else 0
    format: str  # abbreviation format (e.g. P%sT, E%sT, GMT/BST)
    until: int  # UTC seconds, less the DST of a wall time, or END_OF_TIME
    until_type: int  # CLOCK_TYPE_*
    raw_line: str = ''


# Map of zoneName -> ZoneLine[].
ZonesMap = Dict[str, List[ZoneLine]]

# Map of ruleSetName -> ZoneRule[].
RuleSetsMap = Dict[str, List[ZoneRule]]

# Map of linkName -> zoneName.
LinksMap = Dict[str, str]


# Tagged union of the lines recognized in a TZ source file.

class RuleLine(NamedTuple):
    rule: ZoneRule


class LinkLine(NamedTuple):
    target: str
    link_name: str


class ZoneHeaderLine(NamedTuple):
    zone_id: str
    zone_line: ZoneLine


class ZoneContinuationLine(NamedTuple):
    zone_line: ZoneLine


ParsedLine = Union[RuleLine, LinkLine, ZoneHeaderLine, ZoneContinuationLine]


class ZoneDatabase(NamedTuple):
    """Result of parsing all TZ source files. Read-only once created, so that
    it can be shared by every compilation.
    """
    zones: ZonesMap
    rule_sets: RuleSetsMap
    aliases: LinksMap  # resolved directly to a Zone
    version: str = 'unknown'

    def get_zone_ids(self) -> List[str]:
        """Sorted list of Zone and Link names."""
        return sorted(list(self.zones.keys()) + list(self.aliases.keys()))

    def resolve_zone_id(self, zone_id: str) -> str:
        target = self.aliases.get(zone_id, zone_id)
        if target not in self.zones:
            raise UnknownZoneError(zone_id)
        return target

    def get_zone(self, zone_id: str) -> List[ZoneLine]:
        return self.zones[self.resolve_zone_id(zone_id)]


# -----------------------------------------------------------------------------
# Transitions produced by compiler.py and the oracles.
# -----------------------------------------------------------------------------

class Transition(NamedTuple):
    """A change of UTC offset, DST offset or abbreviation at 'time'."""
    time: int  # UTC seconds, BEGINNING_OF_TIME for the first transition
    utc_offset: int  # seconds, positive eastward from UTC
    dst_offset: int  # seconds, 0 for standard time
    name: Optional[str]  # None for numeric offsets like '+03'
    rule: Optional[ZoneRule] = None  # provenance, never serialized


class TransitionOracle(Protocol):
    """Source of independently derived transitions, used for validation."""
    def get_transitions(
        self,
        zone_id: str,
        min_year: int,
        max_year: int,
    ) -> Optional['TransitionList']:
        ...


# -----------------------------------------------------------------------------
# Comments collected during compilation and validation.
# -----------------------------------------------------------------------------

# Map of {name -> Set[reason]} used to collect de-duped error messages or
# warnings. Set is not JSON serializable, so the type is Collection[str].
CommentsMap = Dict[str, Collection[str]]

# Map of {zoneName -> List[reason | {canonicalZone -> reasons}]}, created by
# commenter.py so that a Link also shows the comments of its Zone.
MergedCommentsMap = Dict[str, List[Union[str, CommentsMap]]]


def add_comment(comments: CommentsMap, name: str, reason: str) -> None:
    """Add the human readable 'reason' to the 'comments' CommentsMap.
    """
    reasons = cast(Optional[Set[str]], comments.get(name))
    if not reasons:
        reasons = set()
        comments[name] = reasons
    reasons.add(reason)


def merge_comments(target: CommentsMap, new: CommentsMap) -> None:
    """Merge 'new' CommentsMap into 'target' CommentsMap.
    """
    for name, new_reasons in new.items():
        old_reasons = cast(Optional[Set[str]], target.get(name))
        if not old_reasons:
            old_reasons = set()
            target[name] = old_reasons
        old_reasons.update(new_reasons)


def print_comments_map(
    label: str,
    comments: CommentsMap,
    max_comments: int = 5,
) -> None:
    """Print the zones named in 'comments' along with the reasons. Print up to
    a maximum of max_comments zones, keeping the top and bottom halves if
    there are more.
    """
    if len(comments) == 0:
        return

    # Print summary line, e.g.:
    # "Noted 3 zones with calendar rollbacks"
    logging.info(label, len(comments))

    sorted_comments = sorted(comments.items())
    num_items = len(sorted_comments)
    if num_items <= max_comments:
        for name, reasons in sorted_comments:
            logging.info(f'- {name} ({sorted(reasons)})')
    else:
        ellipses_printed = False
        limit = (max_comments - 1) // 2
        for index, (name, reasons) in enumerate(sorted_comments):
            if index < limit or index >= num_items - limit:
                logging.info(f'- {name} ({sorted(reasons)})')
            elif not ellipses_printed:
                logging.info('- [...]')
                ellipses_printed = True


# -----------------------------------------------------------------------------
# Result of the batch pipeline in batch.py, updated by commenter.py.
# -----------------------------------------------------------------------------

@dataclass
class BatchResult:
    """Result type of BatchProcessor.process().
    """

    zone_ids: List[str]  # selected zones and links, sorted
    total_zone_count: int  # number of zones and links in the ZoneDatabase
    transitions: Dict[str, 'TransitionList']  # {zoneName -> TransitionList}
    compact_tables: Dict[str, str]  # {zoneName -> table}, unique tables
    duplicates: Dict[str, str]  # {zoneName -> zoneName with same table}
    removed_zones: CommentsMap  # {zoneName -> reasons[]}
    notable_zones: CommentsMap  # {zoneName -> reasons[]}
    validation_notes: CommentsMap  # {zoneName -> reasons[]}
    rollback_notes: CommentsMap  # {zoneName -> reasons[]}
    table_notes: CommentsMap  # {zoneName -> reasons[]}
    merged_notable_zones: MergedCommentsMap  # {zoneName -> reasons[]}


def create_batch_result(
    zone_ids: List[str],
    total_zone_count: int,
) -> BatchResult:
    return BatchResult(
        zone_ids=zone_ids,
        total_zone_count=total_zone_count,
        transitions={},
        compact_tables={},
        duplicates={},
        removed_zones={},
        notable_zones={},
        validation_notes={},
        rollback_notes={},
        table_notes={},
        merged_notable_zones={},
    )


# -----------------------------------------------------------------------------
# The collection of compact transition tables, which is rendered into the
# different output formats by zonesgenerator.py.
# -----------------------------------------------------------------------------

class CompactZonesDatabase(TypedDict):
    """The compact transition tables of the selected zones, along with the
    settings which created them.
    """

    # Context data.
    tz_version: str
    start_year: int
    until_year: int
    round_to_minutes: bool
    filtered: bool
    fix_rollbacks: bool
    num_zones: int
    num_unique: int

    # Data from BatchProcessor.
    compact_tables: Dict[str, str]  # {zoneName -> table}, unique tables
    duplicates: Dict[str, str]  # {zoneName -> zoneName with same table}

    # Data from Commenter.
    notable_zones: CommentsMap
    merged_notable_zones: MergedCommentsMap


def create_compact_zones_database(
    tz_version: str,
    start_year: int,
    until_year: int,
    round_to_minutes: bool,
    filtered: bool,
    fix_rollbacks: bool,
    compact_tables: Dict[str, str],
    duplicates: Dict[str, str],
    notable_zones: CommentsMap,
    merged_notable_zones: MergedCommentsMap,
) -> CompactZonesDatabase:
    """Return an instance of CompactZonesDatabase from the various
    ingredients, with the maps sorted by zone name.
    """
    return {
        # Context data.
        'tz_version': tz_version,
        'start_year': start_year,
        'until_year': until_year,
        'round_to_minutes': round_to_minutes,
        'filtered': filtered,
        'fix_rollbacks': fix_rollbacks,
        'num_zones': len(compact_tables) + len(duplicates),
        'num_unique': len(compact_tables),

        # Data from BatchProcessor.
        'compact_tables': OrderedDict(sorted(compact_tables.items())),
        'duplicates': OrderedDict(sorted(duplicates.items())),

        # Data from Commenter.
        'notable_zones': _sort_comments(notable_zones),
        'merged_notable_zones': OrderedDict(
            sorted(merged_notable_zones.items())),
    }


def _sort_comments(comments: CommentsMap) -> CommentsMap:
    """Sort and convert {name -> Set(str)} to {name -> List(str)} to provide
    deterministic ordering.
    """
    return OrderedDict(
        (k, list(sorted(v)))
        for k, v in sorted(comments.items())
    )

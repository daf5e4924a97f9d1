# Copyright 2019 Brian T. Park
#
# MIT License

"""
The TransitionList holds the chronological list of Transitions of a single
zone, as produced by the TransitionCompiler, decoded from a compact table, or
read from an oracle. It implements the operations which are applied in-situ
after compilation (duplicate removal, trimming to a year range, calendar
rollback detection and correction) and the comparisons used for validation.
"""

import enum
import logging
from typing import Iterator
from typing import List
from typing import Optional
from typing import Tuple

from compacttztools.data_types.ct_types import BEGINNING_OF_TIME
from compacttztools.data_types.ct_types import SECONDS_PER_DAY
from compacttztools.data_types.ct_types import Transition
from compacttztools.data_types.ct_types import ZoneLine
from compacttztools.dateutils import epoch_seconds_to_datetime
from compacttztools.dateutils import format_datetime
from compacttztools.dateutils import format_offset_notation
from compacttztools.dateutils import local_date
from compacttztools.dateutils import local_year

# Window used to re-align two lists whose transitions are sampled differently,
# about three months.
ZONE_MATCHING_TOLERANCE = 90 * SECONDS_PER_DAY


class Rollbacks(enum.Enum):
    """Result of TransitionList.find_calendar_rollbacks()."""
    NO_ROLLBACKS = 0
    ROLLBACKS_FOUND = 1
    ROLLBACKS_FIXED = 2
    ROLLBACKS_REMAIN = 3


class TransitionList:
    """An ordered list of Transitions, strictly increasing in time. The first
    Transition has the BEGINNING_OF_TIME sentinel time.
    """

    def __init__(
        self,
        zone_id: Optional[str] = None,
        transitions: Optional[List[Transition]] = None,
        last_zone_line: Optional[ZoneLine] = None,
        alias_for: Optional[str] = None,
    ):
        """
        Args:
            zone_id: name of the zone, or None for an anonymous list
            transitions: initial Transitions, copied
            last_zone_line: final ZoneLine of the zone, used to derive the
                nominal standard and DST offsets
            alias_for: canonical zone if zone_id is a Link
        """
        self.zone_id = zone_id
        self.transitions: List[Transition] = list(transitions or [])
        self.last_zone_line = last_zone_line
        self.alias_for = alias_for

        # (std_offset, dst_offset) of the zone beyond the end of the list, set
        # only by oracles which can look further into the future.
        self.nominal_offsets: Optional[Tuple[int, int]] = None

    def __len__(self) -> int:
        return len(self.transitions)

    def __iter__(self) -> Iterator[Transition]:
        return iter(self.transitions)

    def __getitem__(self, index: int) -> Transition:
        return self.transitions[index]

    def __repr__(self) -> str:
        return (
            f'TransitionList(zone_id={self.zone_id!r}, '
            f'transitions={self.transitions!r})'
        )

    def append(self, transition: Transition) -> None:
        self.transitions.append(transition)

    def extend(self, transitions: List[Transition]) -> None:
        self.transitions.extend(transitions)

    def copy(self) -> 'TransitionList':
        """Shallow copy. The Transitions are immutable, so the copy can be
        modified without affecting this list.
        """
        tlist = TransitionList(
            zone_id=self.zone_id,
            transitions=self.transitions,
            last_zone_line=self.last_zone_line,
            alias_for=self.alias_for,
        )
        tlist.nominal_offsets = self.nominal_offsets
        return tlist

    # -------------------------------------------------------------------------
    # In-situ operations.
    # -------------------------------------------------------------------------

    def remove_duplicate_transitions(self) -> None:
        """Remove a Transition which occurs at the same time as the previous
        one, or which does not change the UTC offset, the DST offset or the
        name.
        """
        if not self.transitions:
            return

        result = [self.transitions[0]]
        for curr in self.transitions[1:]:
            prev = result[-1]
            if curr.time == prev.time or (
                curr.utc_offset == prev.utc_offset
                and curr.dst_offset == prev.dst_offset
                and curr.name == prev.name
            ):
                continue
            result.append(curr)
        self.transitions = result

    def trim(self, min_year: Optional[int], max_year: int) -> None:
        """Trim the list to the years [min_year, max_year]. The latest
        standard time Transition before min_year becomes the initial Transition
        at BEGINNING_OF_TIME, and the earlier Transitions are removed. Then
        trailing Transitions into DST, or after max_year, are removed, so that
        the list ends in standard time. If min_year is None, the beginning of
        the list is left alone.
        """
        transitions = self.transitions

        if min_year is not None:
            match = -1
            for i, t in enumerate(transitions):
                if t.time == BEGINNING_OF_TIME:
                    continue
                if local_year(t.time + 1, t.utc_offset) >= min_year:
                    break
                if t.dst_offset == 0:
                    match = i

            if match >= 0:
                del transitions[:match]
                transitions[0] = transitions[0]._replace(
                    time=BEGINNING_OF_TIME)

        i = len(transitions) - 1
        while i >= 0:
            t = transitions[i]
            if t.time != BEGINNING_OF_TIME:
                if (
                    t.dst_offset != 0
                    or local_year(t.time, t.utc_offset) > max_year
                ):
                    del transitions[i]
                else:
                    break
            i -= 1

    def find_calendar_rollbacks(
        self,
        fix_rollbacks: bool = False,
        show_warnings: bool = False,
    ) -> Rollbacks:
        """Find Transitions where the local calendar date moves backwards, for
        example a fall back from 00:30 to 23:30 of the previous day. If
        'fix_rollbacks' is True, each such Transition is moved earlier by its
        foray into the next day, so that the clock falls back from midnight,
        and the list is checked again. Only the first rollback of the list is
        logged, if 'show_warnings' is True.
        """
        has_rollbacks = False
        warning: Optional[str] = None

        for i in range(1, len(self.transitions)):
            prev = self.transitions[i - 1]
            curr = self.transitions[i]
            before_date = local_date(curr.time - 1, prev.utc_offset)
            after_date = local_date(curr.time, curr.utc_offset)
            if after_date >= before_date:
                continue

            has_rollbacks = True
            foray = calc_foray_into_next_day(curr.time, prev.utc_offset)
            if show_warnings and warning is None:
                before = format_datetime(curr.time - 1, prev.utc_offset)
                after = format_datetime(curr.time, curr.utc_offset)
                warning = (
                    f'{self.zone_id}: {before} rolls back to {after} '
                    f'({foray} second foray into next day)'
                )
            if fix_rollbacks:
                self.transitions[i] = curr._replace(time=curr.time - foray)

        if not has_rollbacks:
            return Rollbacks.NO_ROLLBACKS
        if not fix_rollbacks:
            if warning:
                logging.warning(warning)
            return Rollbacks.ROLLBACKS_FOUND

        still_has_rollbacks = (
            self.find_calendar_rollbacks(False, False)
            != Rollbacks.NO_ROLLBACKS
        )
        if still_has_rollbacks:
            if warning:
                logging.warning(f'{warning}: NOT FIXED')
            else:
                logging.error(
                    f'Failed to fix calendar rollbacks in {self.zone_id}')
            return Rollbacks.ROLLBACKS_REMAIN

        if warning:
            logging.warning(f'{warning}: fixed')
        return Rollbacks.ROLLBACKS_FIXED

    # -------------------------------------------------------------------------
    # Comparisons.
    # -------------------------------------------------------------------------

    def transitions_match(
        self,
        other: 'TransitionList',
        compare_names: bool = True,
    ) -> bool:
        """Return True if both lists have the same length, and the same time,
        offsets and (optionally) names at every index.
        """
        if len(self) != len(other):
            logging.error(
                f'{self.zone_id}: length {len(self)} != {len(other)}')
            return False

        for i, (t1, t2) in enumerate(zip(self.transitions, other.transitions)):
            if (
                t1.time != t2.time
                or t1.utc_offset != t2.utc_offset
                or t1.dst_offset != t2.dst_offset
                or (compare_names and t1.name != t2.name)
            ):
                _log_mismatch(self.zone_id, i, t1, t2)
                return False
        return True

    def closely_matches(
        self,
        reference: 'TransitionList',
        tolerance: int = 0,
        check_names: bool = False,
        check_dst_amount: bool = False,
        drop_name_only_changes: bool = False,
    ) -> bool:
        """Compare against a 'reference' list from an independent source,
        which may be sampled differently. A Transition which has no counterpart
        within ZONE_MATCHING_TOLERANCE in the other list is skipped. Aligned
        Transitions must agree in time and UTC offset within 'tolerance'
        seconds, and in whether DST is in effect. The DST amount and the name
        are compared only if requested.

        If 'drop_name_only_changes' is True, Transitions of either list which
        change only the name are ignored.
        """
        transitions = self.transitions
        theirs = reference.transitions
        if drop_name_only_changes:
            transitions = _drop_name_only_changes(transitions)
            theirs = _drop_name_only_changes(theirs)

        i = 1
        j = 1
        while i < len(transitions) and j < len(theirs):
            t = transitions[i]
            r = theirs[j]

            # Skip a Transition which has no counterpart in the other list.
            if t.time + ZONE_MATCHING_TOLERANCE < r.time:
                i += 1
                continue
            if r.time + ZONE_MATCHING_TOLERANCE < t.time:
                j += 1
                continue

            if (
                abs(t.time - r.time) > tolerance
                or abs(t.utc_offset - r.utc_offset) > tolerance
                or (t.dst_offset == 0) != (r.dst_offset == 0)
                or (check_dst_amount and t.dst_offset != r.dst_offset)
                or (check_names and t.name != r.name)
            ):
                _log_mismatch(self.zone_id, i, t, r)
                return False

            i += 1
            j += 1

        return True

    def closely_matches_host_transitions(
        self,
        reference: 'TransitionList',
        tolerance: int = 0,
    ) -> bool:
        """Compare against the host platform's zone rules, which do not record
        name-only changes, nor the abbreviations.
        """
        return self.closely_matches(
            reference,
            tolerance=tolerance,
            check_dst_amount=True,
            drop_name_only_changes=True,
        )

    def closely_matches_zoneinfo_transitions(
        self,
        reference: 'TransitionList',
        tolerance: int = 0,
    ) -> bool:
        """Compare against a compiled zoneinfo (TZif) file, which records
        names but only a DST flag.
        """
        return self.closely_matches(
            reference,
            tolerance=tolerance,
            check_names=True,
        )

    # -------------------------------------------------------------------------
    # Output.
    # -------------------------------------------------------------------------

    def dump(self) -> str:
        """Return the long-form listing of the Transitions, one per line, with
        the local time just before and at each Transition.
        """
        lines = [f'-------- {self.zone_id} --------']

        if not self.transitions:
            lines.append('(empty)')
        elif len(self.transitions) == 1:
            t = self.transitions[0]
            name = f' {t.name}' if t.name is not None else ''
            lines.append(
                f'Fixed UTC offset at {format_offset_notation(t.utc_offset)}'
                f'{name}'
            )
        else:
            t = self.transitions[0]
            name = f' {t.name}' if t.name is not None else ''
            lines.append(
                '____-__-__ __:__:__ ±____ ±____ --> ____-__-__ __:__:__ '
                f'{format_offset_notation(t.utc_offset)} '
                f'{format_offset_notation(t.dst_offset)}{name}'
            )
            for prev, curr in zip(self.transitions, self.transitions[1:]):
                before = format_datetime(curr.time - 1, prev.utc_offset)
                after = format_datetime(curr.time, curr.utc_offset)
                name = f' {curr.name}' if curr.name is not None else ''
                dst_marker = '*' if curr.dst_offset != 0 else ''
                lines.append(
                    f'{before} {format_offset_notation(prev.utc_offset)} '
                    f'{format_offset_notation(prev.dst_offset)} --> '
                    f'{after} {format_offset_notation(curr.utc_offset)} '
                    f'{format_offset_notation(curr.dst_offset)}'
                    f'{name}{dst_marker}'
                )

        return '\n'.join(lines) + '\n'


def _drop_name_only_changes(
    transitions: List[Transition],
) -> List[Transition]:
    """Return the Transitions which change the UTC or DST offset."""
    if not transitions:
        return transitions
    kept = [transitions[0]]
    for curr in transitions[1:]:
        prev = kept[-1]
        if (
            curr.utc_offset == prev.utc_offset
            and curr.dst_offset == prev.dst_offset
        ):
            continue
        kept.append(curr)
    return kept


def calc_foray_into_next_day(time: int, utc_offset: int) -> int:
    """Return the number of seconds since the local midnight at 'time' under
    'utc_offset'.
    """
    _, _, _, hour, minute, second = epoch_seconds_to_datetime(time, utc_offset)
    return (hour * 60 + minute) * 60 + second


def format_transition_time(t: Transition) -> str:
    if t.time == BEGINNING_OF_TIME:
        return '(beginning of time)'
    return format_datetime(t.time, t.utc_offset)


def _log_mismatch(
    zone_id: Optional[str],
    index: int,
    t1: Transition,
    t2: Transition,
) -> None:
    logging.error(f'{zone_id}: mismatch at index {index}')
    logging.error(
        f'  1: {t1.time}, {t1.utc_offset}, {t1.dst_offset}, {t1.name}: '
        f'{format_transition_time(t1)}'
    )
    logging.error(
        f'  2: {t2.time}, {t2.utc_offset}, {t2.dst_offset}, {t2.name}: '
        f'{format_transition_time(t2)}'
    )
    logging.error(f'  -: {t2.time - t1.time}')

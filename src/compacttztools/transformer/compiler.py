# Copyright 2019 Brian T. Park
#
# MIT License

"""
Replays the ZoneLines of a zone, and the ZoneRules referenced by them, into the
chronological TransitionList of the zone over the years [min_year, max_year].
"""

import logging
from typing import Dict
from typing import List
from typing import NamedTuple
from typing import Optional

from compacttztools.data_types.ct_types import BEGINNING_OF_TIME
from compacttztools.data_types.ct_types import CLOCK_TYPE_UTC
from compacttztools.data_types.ct_types import CLOCK_TYPE_WALL
from compacttztools.data_types.ct_types import CommentsMap
from compacttztools.data_types.ct_types import CompileError
from compacttztools.data_types.ct_types import END_OF_TIME
from compacttztools.data_types.ct_types import MIN_RULE_YEAR
from compacttztools.data_types.ct_types import OPEN_UNTIL_YEAR
from compacttztools.data_types.ct_types import Transition
from compacttztools.data_types.ct_types import UNKNOWN_LETTERS
from compacttztools.data_types.ct_types import ZoneDatabase
from compacttztools.data_types.ct_types import ZoneLine
from compacttztools.data_types.ct_types import ZoneRule
from compacttztools.data_types.ct_types import add_comment
from compacttztools.dateutils import datetime_to_epoch_seconds
from compacttztools.dateutils import local_year
from compacttztools.dateutils import resolve_day_spec
from compacttztools.transformer.transitions import TransitionList


class _ZoneContext:
    """State carried from one ZoneLine to the next."""

    def __init__(self) -> None:
        self.last_utc_offset = 0
        self.last_until = BEGINNING_OF_TIME
        self.last_until_type = CLOCK_TYPE_UTC
        self.until = END_OF_TIME


class _Candidate(NamedTuple):
    """A (rule, year) transition before its name is resolved."""
    time: int
    rule: ZoneRule


class TransitionCompiler:
    """Compiles the zones of a ZoneDatabase into TransitionLists.

    Usage:
        compiler = TransitionCompiler(zidb)
        tlist = compiler.compile('America/New_York', 1900, 2050)

    Zones whose names could not be resolved are noted in 'notable_zones'.
    Zones which could not be compiled by compile_all() are listed in
    'removed_zones'.
    """

    def __init__(self, zidb: ZoneDatabase):
        self.zidb = zidb
        self.notable_zones: CommentsMap = {}
        self.removed_zones: CommentsMap = {}

    def compile_all(
        self,
        min_year: int,
        max_year: int,
        zone_ids: Optional[List[str]] = None,
    ) -> Dict[str, TransitionList]:
        """Compile the given zones and links, or all of them if 'zone_ids' is
        None. Each Zone is compiled once, and its Links receive a copy of its
        TransitionList. A Zone which cannot be compiled is recorded in
        'removed_zones' along with its Links.
        """
        if zone_ids is None:
            zone_ids = self.zidb.get_zone_ids()

        compiled: Dict[str, TransitionList] = {}
        result: Dict[str, TransitionList] = {}
        for zone_id in zone_ids:
            target_id = self.zidb.resolve_zone_id(zone_id)
            if target_id in self.removed_zones:
                add_comment(
                    self.removed_zones, zone_id, f'Link to failed {target_id}')
                continue

            tlist = compiled.get(target_id)
            if tlist is None:
                try:
                    tlist = self.compile(target_id, min_year, max_year)
                except CompileError as e:
                    logging.error(str(e))
                    add_comment(self.removed_zones, target_id, str(e))
                    if zone_id != target_id:
                        add_comment(
                            self.removed_zones,
                            zone_id,
                            f'Link to failed {target_id}',
                        )
                    continue
                compiled[target_id] = tlist

            if zone_id == target_id:
                result[zone_id] = tlist
            else:
                alias = tlist.copy()
                alias.zone_id = zone_id
                alias.alias_for = target_id
                result[zone_id] = alias
        return result

    def compile(
        self,
        zone_id: str,
        min_year: int,
        max_year: int,
    ) -> TransitionList:
        """Compile a single zone (or link) into its TransitionList, trimmed
        to [min_year, max_year]. Raises UnknownZoneError if 'zone_id' does not
        exist, and CompileError if it refers to a missing Rule.
        """
        target_id = self.zidb.resolve_zone_id(zone_id)
        zone_lines = self.zidb.zones[target_id]
        tlist = TransitionList(
            zone_id=zone_id,
            last_zone_line=zone_lines[-1],
            alias_for=(target_id if target_id != zone_id else None),
        )
        context = _ZoneContext()

        for zone_line in zone_lines:
            context.until = zone_line.until

            if zone_line.rules is None:
                self._apply_fixed_save(zone_id, zone_line, tlist, context)
            else:
                self._apply_rules(
                    zone_id, zone_line, tlist, context, min_year, max_year)

            context.last_utc_offset = zone_line.gmt_offset
            context.last_until = context.until
            context.last_until_type = zone_line.until_type

            if context.until != END_OF_TIME:
                if local_year(context.until, zone_line.gmt_offset) > max_year:
                    break

        tlist.remove_duplicate_transitions()
        tlist.trim(min_year, max_year)
        return tlist

    def _apply_fixed_save(
        self,
        zone_id: str,
        zone_line: ZoneLine,
        tlist: TransitionList,
        context: _ZoneContext,
    ) -> None:
        """A ZoneLine without RULES, or with a fixed DST offset, starts with a
        single Transition.
        """
        save = zone_line.fixed_save
        name = self._format_name(
            zone_id, zone_line.format, UNKNOWN_LETTERS, save != 0)
        tlist.append(Transition(
            time=context.last_until,
            utc_offset=zone_line.gmt_offset + save,
            dst_offset=save,
            name=name,
        ))
        if (
            zone_line.until_type == CLOCK_TYPE_WALL
            and context.until != END_OF_TIME
        ):
            context.until -= save

    def _apply_rules(
        self,
        zone_id: str,
        zone_line: ZoneLine,
        tlist: TransitionList,
        context: _ZoneContext,
        min_year: int,
        max_year: int,
    ) -> None:
        """Create the Transitions of a ZoneLine which references a named set
        of Rules. The Transitions cover [segment start, segment end) where the
        start is the UNTIL of the previous ZoneLine.
        """
        assert zone_line.rules is not None
        rules = self.zidb.rule_sets.get(zone_line.rules)
        if rules is None:
            raise CompileError(
                f'{zone_id}: unknown Rule "{zone_line.rules}"')

        min_time = context.last_until
        last_dst = tlist[-1].dst_offset if len(tlist) > 0 else 0
        if context.until == END_OF_TIME:
            high_year = OPEN_UNTIL_YEAR
        else:
            high_year = local_year(context.until, zone_line.gmt_offset)

        candidates = _create_candidates(
            rules,
            zone_line.gmt_offset,
            context.last_utc_offset,
            last_dst,
            min_time,
            high_year,
            max_year,
        )

        # Pass 1: Candidates sorted by approximate time. A wall clock time is
        # relative to the DST offset of the preceding Rule.
        candidates.sort(key=lambda c: c.time)
        for i in range(len(candidates) - 1, 0, -1):
            curr = candidates[i]
            if curr.rule.at_type == CLOCK_TYPE_WALL:
                prev = candidates[i - 1]
                candidates[i] = curr._replace(time=curr.time - prev.rule.save)

        # Pass 2: Keep the candidates within the segment and the year range.
        kept: List[_Candidate] = []
        bridge: Optional[_Candidate] = None
        first_std_letters = UNKNOWN_LETTERS
        fallback_std_letters = UNKNOWN_LETTERS
        starts_at_min_time = False

        for candidate in candidates:
            rule = candidate.rule
            max_time = context.until
            if kept and zone_line.until_type == CLOCK_TYPE_WALL:
                max_time -= kept[-1].rule.save
            year = local_year(candidate.time)

            if (
                min_time <= candidate.time < max_time
                and min_year <= year <= max_year
            ):
                kept.append(candidate)
                if first_std_letters == UNKNOWN_LETTERS and rule.save == 0:
                    first_std_letters = rule.letters
                if candidate.time == min_time:
                    starts_at_min_time = True
            else:
                # The latest Rule in effect before the segment started.
                if candidate.time < min_time and (
                    bridge is None or bridge.time < candidate.time
                ):
                    bridge = candidate
                if rule.save == 0 and (
                    candidate.time < min_time
                    or fallback_std_letters == UNKNOWN_LETTERS
                ):
                    fallback_std_letters = rule.letters

        # Pass 3: Resolve the names, now that the order is known.
        new_transitions: List[Transition] = []
        if not starts_at_min_time:
            if bridge is not None:
                save = bridge.rule.save
                letters = bridge.rule.letters
                bridge_rule: Optional[ZoneRule] = bridge.rule
            else:
                save = 0
                letters = (
                    fallback_std_letters
                    if first_std_letters == UNKNOWN_LETTERS
                    else first_std_letters
                )
                bridge_rule = None
            new_transitions.append(Transition(
                time=min_time,
                utc_offset=zone_line.gmt_offset + save,
                dst_offset=save,
                name=self._format_name(
                    zone_id, zone_line.format, letters, save != 0),
                rule=bridge_rule,
            ))

        for candidate in kept:
            rule = candidate.rule
            new_transitions.append(Transition(
                time=candidate.time,
                utc_offset=zone_line.gmt_offset + rule.save,
                dst_offset=rule.save,
                name=self._format_name(
                    zone_id, zone_line.format, rule.letters, rule.save != 0),
                rule=rule,
            ))

        tlist.extend(new_transitions)

        # Align a wall clock UNTIL with the DST offset in effect at the end.
        if (
            zone_line.until_type == CLOCK_TYPE_WALL
            and context.until != END_OF_TIME
            and len(tlist) > 0
        ):
            last_rule = tlist[-1].rule
            if last_rule is not None:
                context.until -= last_rule.save

    def _format_name(
        self,
        zone_id: str,
        zone_format: str,
        letters: str,
        is_dst: bool,
    ) -> Optional[str]:
        if '%s' in zone_format and letters == UNKNOWN_LETTERS:
            suffix = ', DST' if is_dst else ''
            logging.warning(
                f'{zone_id}: unresolved time zone name {zone_format}{suffix}')
            add_comment(
                self.notable_zones,
                zone_id,
                f'Unresolved name "{zone_format}"{suffix}',
            )
        return format_name(zone_format, letters, is_dst)


def _create_candidates(
    rules: List[ZoneRule],
    gmt_offset: int,
    last_utc_offset: int,
    last_dst: int,
    min_time: int,
    high_year: int,
    max_year: int,
) -> List[_Candidate]:
    """Create one candidate per (rule, year) for the years overlapping the
    segment. A candidate which, interpreted with the offsets of the previous
    segment, falls exactly on the start of the segment is snapped to it.
    """
    candidates: List[_Candidate] = []
    for rule in rules:
        start_year = max(rule.from_year, MIN_RULE_YEAR)
        end_year = min(high_year, rule.to_year, max_year)
        for year in range(start_year, end_year + 1):
            y, m, d = resolve_day_spec(
                year, rule.in_month, rule.on_day_of_week, rule.on_day_of_month)
            local_seconds = datetime_to_epoch_seconds(y, m, d, rule.at_seconds)

            if rule.at_type == CLOCK_TYPE_UTC:
                time = local_seconds
                alt_time = local_seconds
            else:
                time = local_seconds - gmt_offset
                alt_time = local_seconds - last_utc_offset
                if rule.at_type == CLOCK_TYPE_WALL:
                    alt_time -= last_dst

            if alt_time == min_time:
                time = min_time
            candidates.append(_Candidate(time=time, rule=rule))
    return candidates


def format_name(zone_format: str, letters: str, is_dst: bool) -> Optional[str]:
    """Create the abbreviation from the FORMAT of a Zone line:

    * 'E%sT' substitutes the 'letters' of the Rule,
    * 'GMT/BST' selects the standard or the DST part,
    * anything else is used verbatim.

    Returns None for numeric names like '+03' or '%z', and for empty names.
    """
    if '%z' in zone_format:
        return None

    index = zone_format.find('%s')
    if index >= 0:
        name = zone_format[:index] + letters + zone_format[index + 2:]
    else:
        index = zone_format.find('/')
        if index >= 0:
            name = zone_format[index + 1:] if is_dst else zone_format[:index]
        else:
            name = zone_format

    if not name or name[0] in '+-':
        return None
    return name

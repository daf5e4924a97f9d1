# Copyright 2019 Brian T. Park
#
# MIT License

"""
Encodes a TransitionList into the compact transition table, and decodes it
back. The format borrows the base-60 numbers of the moment.js timezone
package, but is not compatible with it. A table has up to 5 sections
separated by ';':

    1. Header: 'BASE NOMINAL_STD DST_MINUTES', e.g. '-0500 -0500 60'.
    2. Unique offsets: 'UTC/DST[/NAME]' entries separated by spaces, the UTC
       and DST offsets in base-60 minutes with an optional fractional digit
       for the seconds.
    3. Index string: one base-60 digit per Transition after the first,
       selecting its entry in the unique offsets.
    4. Delta times: base-60 minutes from the previous Transition, separated by
       spaces. The first delta is relative to the epoch.
    5. Optional 'STD_RULE,DST_RULE' describing the final recurring rules.

Sections 2-4 are present only if there is more than one Transition.
"""

from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple

from compacttztools.data_types.ct_types import BEGINNING_OF_TIME
from compacttztools.data_types.ct_types import CLOCK_TYPE_STD
from compacttztools.data_types.ct_types import CLOCK_TYPE_UTC
from compacttztools.data_types.ct_types import MAX_YEAR
from compacttztools.data_types.ct_types import Transition
from compacttztools.data_types.ct_types import ZoneRule
from compacttztools.dateutils import format_offset_notation
from compacttztools.dateutils import parse_offset_notation
from compacttztools.generator.base60 import from_base60
from compacttztools.generator.base60 import to_base60
from compacttztools.transformer.transitions import TransitionList

# The index string uses a single base-60 digit per Transition.
MAX_UNIQUE_OFFSETS = 60


def create_compact_transition_table(
    tlist: TransitionList,
    fix_calendar_rollbacks: bool = False,
) -> str:
    """Encode the TransitionList into the compact transition table. If
    'fix_calendar_rollbacks' is True, the AT time of the final fall back rule
    is moved to midnight if it would otherwise cause a calendar rollback.

    Raises ValueError if the list is empty or has more than 60 unique
    offsets.
    """
    if len(tlist) == 0:
        raise ValueError(f'{tlist.zone_id}: cannot encode empty list')

    base_offset = tlist[0].utc_offset
    nominal_std, nominal_dst, final_std_rule, final_dst_rule = \
        find_nominal_offsets(tlist)

    header = (
        f'{format_offset_notation(base_offset)} '
        f'{format_offset_notation(nominal_std)} '
        f'{nominal_dst // 60}'
    )
    if len(tlist) == 1:
        return header

    unique_offsets: Dict[str, int] = {}
    offset_indexes: List[int] = []
    for t in tlist:
        offset = _encode_offset(t)
        index = unique_offsets.get(offset)
        if index is None:
            index = len(unique_offsets)
            unique_offsets[offset] = index
        offset_indexes.append(index)

    if len(unique_offsets) > MAX_UNIQUE_OFFSETS:
        raise ValueError(
            f'{tlist.zone_id}: {len(unique_offsets)} unique offsets, '
            f'more than {MAX_UNIQUE_OFFSETS}'
        )

    index_string = ''.join(to_base60(i) for i in offset_indexes[1:])

    deltas = []
    last_time = 0
    for t in tlist.transitions[1:]:
        deltas.append(to_base60(t.time - last_time, True))
        last_time = t.time

    sections = [
        header,
        ' '.join(unique_offsets.keys()),
        index_string,
        ' '.join(deltas),
    ]

    if final_std_rule is not None and final_dst_rule is not None:
        if fix_calendar_rollbacks:
            final_std_rule, final_dst_rule = _shift_fall_back_rule(
                final_std_rule, final_dst_rule, nominal_std)
        sections.append(
            f'{format_tail_rule(final_std_rule)},'
            f'{format_tail_rule(final_dst_rule)}'
        )

    return ';'.join(sections)


def find_nominal_offsets(
    tlist: TransitionList,
) -> Tuple[int, int, Optional[ZoneRule], Optional[ZoneRule]]:
    """Return the (std_offset, dst_offset) in effect beyond the end of the
    list, along with the final (open-ended) standard and DST rules if the zone
    still observes DST.
    """
    if tlist.nominal_offsets is not None:
        std_offset, dst_offset = tlist.nominal_offsets
        return (std_offset, dst_offset, None, None)

    std_offset = 0
    dst_offset = 0
    final_std_rule: Optional[ZoneRule] = None
    final_dst_rule: Optional[ZoneRule] = None
    looking_for_std = True
    looking_for_std_rule = True
    looking_for_dst = True
    last_rule_set: Optional[str] = None

    last_zone_line = tlist.last_zone_line
    if (
        last_zone_line is not None
        and last_zone_line.rules is None
        and last_zone_line.fixed_save == 0
    ):
        std_offset = last_zone_line.gmt_offset
        looking_for_std = False
        looking_for_dst = False

    for t in reversed(tlist.transitions):
        if not (looking_for_std or looking_for_std_rule or looking_for_dst):
            break

        rule = t.rule
        if rule is None:
            if looking_for_std:
                std_offset = t.utc_offset - t.dst_offset
            if looking_for_dst:
                dst_offset = t.dst_offset
            break

        if last_rule_set is None:
            last_rule_set = rule.name
        elif rule.name != last_rule_set:
            break

        if looking_for_std:
            std_offset = t.utc_offset - t.dst_offset
            looking_for_std = False

        if looking_for_std_rule and t.dst_offset == 0 \
                and rule.to_year == MAX_YEAR:
            final_std_rule = rule
            looking_for_std_rule = False

        if looking_for_dst and t.dst_offset != 0 \
                and rule.to_year == MAX_YEAR:
            dst_offset = t.dst_offset
            final_dst_rule = rule
            looking_for_dst = False

    return (std_offset, dst_offset, final_std_rule, final_dst_rule)


def _shift_fall_back_rule(
    std_rule: ZoneRule,
    dst_rule: ZoneRule,
    nominal_std: int,
) -> Tuple[ZoneRule, ZoneRule]:
    """Move the AT time of the rule which turns the clock back, so that it
    falls back from midnight instead of from just after midnight. Returns
    modified copies of (std_rule, dst_rule).
    """
    fall_back_rule = std_rule
    ahead_rule = dst_rule
    fall_back_amount = dst_rule.save

    # Negative DST falls back when entering DST.
    if fall_back_amount < 0:
        fall_back_rule = dst_rule
        ahead_rule = std_rule
        fall_back_amount = -fall_back_amount

    turnback_time = fall_back_rule.at_seconds
    if fall_back_rule.at_type == CLOCK_TYPE_UTC:
        turnback_time += nominal_std + ahead_rule.save
    elif fall_back_rule.at_type == CLOCK_TYPE_STD:
        turnback_time += ahead_rule.save

    if turnback_time > 0 and turnback_time - fall_back_amount < 0:
        shifted = fall_back_rule._replace(
            at_seconds=fall_back_rule.at_seconds - turnback_time)
        if fall_back_rule is std_rule:
            return (shifted, dst_rule)
        return (std_rule, shifted)

    return (std_rule, dst_rule)


def format_tail_rule(rule: ZoneRule) -> str:
    """Format as 'FROM_YEAR MONTH ON_DAY_OF_MONTH ON_DAY_OF_WEEK H:M AT_TYPE
    SAVE_MINUTES'. An exact day of month has a day of week of -1. The hour is
    negative if the AT time was shifted before midnight.
    """
    day_of_week = rule.on_day_of_week if rule.on_day_of_week != 0 else -1
    hour, minute = divmod(rule.at_seconds // 60, 60)
    return (
        f'{rule.from_year} {rule.in_month} {rule.on_day_of_month} '
        f'{day_of_week} {hour}:{minute} {rule.at_type} {rule.save // 60}'
    )


def _encode_offset(t: Transition) -> str:
    offset = f'{to_base60(t.utc_offset, True)}/{to_base60(t.dst_offset, True)}'
    if t.name:
        offset += f'/{t.name}'
    return offset


def parse_compact_zone_table(
    table: str,
    zone_id: Optional[str] = None,
) -> TransitionList:
    """Decode the compact transition table into a TransitionList. The final
    rules section, if any, is not needed for the Transitions and is ignored.

    A header-only table decodes into a single Transition without a name,
    whose DST offset is the difference between the base offset and the
    nominal standard offset.
    """
    tlist = TransitionList(zone_id=zone_id)
    sections = table.split(';')
    header = sections[0].split()
    if len(header) != 3:
        raise ValueError(f'Invalid compact table header "{sections[0]}"')
    base_offset = parse_offset_notation(header[0])
    nominal_std = parse_offset_notation(header[1])
    nominal_dst = int(header[2]) * 60
    tlist.nominal_offsets = (nominal_std, nominal_dst)

    if len(sections) == 1:
        tlist.append(Transition(
            time=BEGINNING_OF_TIME,
            utc_offset=base_offset,
            dst_offset=base_offset - nominal_std,
            name=None,
        ))
        return tlist

    if len(sections) < 4:
        raise ValueError(f'Invalid compact table "{table}"')

    offsets: List[Tuple[int, int, Optional[str]]] = []
    for entry in sections[1].split():
        parts = entry.split('/', 2)
        if len(parts) < 2:
            raise ValueError(f'Invalid offset entry "{entry}"')
        name = parts[2] if len(parts) > 2 else None
        offsets.append((
            from_base60(parts[0], True),
            from_base60(parts[1], True),
            name,
        ))
    if not offsets:
        raise ValueError(f'Invalid compact table "{table}"')

    utc_offset, dst_offset, name = offsets[0]
    tlist.append(Transition(
        time=BEGINNING_OF_TIME,
        utc_offset=utc_offset,
        dst_offset=dst_offset,
        name=name,
    ))

    index_string = sections[2]
    deltas = sections[3].split()
    if len(index_string) != len(deltas):
        raise ValueError(
            f'Index string length {len(index_string)} '
            f'!= {len(deltas)} delta times'
        )

    last_time = 0
    for digit, delta in zip(index_string, deltas):
        index = from_base60(digit)
        if not 0 <= index < len(offsets):
            raise ValueError(
                f'Invalid offset index {digit}: only {len(offsets)} offsets')
        utc_offset, dst_offset, name = offsets[index]
        last_time += from_base60(delta, True)
        tlist.append(Transition(
            time=last_time,
            utc_offset=utc_offset,
            dst_offset=dst_offset,
            name=name,
        ))

    return tlist


def validate_compact_table(table: str, tlist: TransitionList) -> bool:
    """Decode the 'table' and compare it with the TransitionList which
    produced it. A header-only table does not record the name.
    """
    decoded = parse_compact_zone_table(table, tlist.zone_id)
    return tlist.transitions_match(decoded, compare_names=(len(tlist) > 1))

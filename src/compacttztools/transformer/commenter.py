# Copyright 2022 Brian T. Park
#
# MIT License.

import logging
from typing import Dict
from typing import List
from typing import Union

from compacttztools.data_types.ct_types import BatchResult
from compacttztools.data_types.ct_types import CommentsMap
from compacttztools.data_types.ct_types import MergedCommentsMap
from compacttztools.data_types.ct_types import merge_comments


class Commenter:
    """Merge the comments collected by the various stages of the batch into
    'notable_zones', then merge the comments of each Zone into the Links which
    point to it.
    """

    def __init__(self) -> None:
        pass

    def transform(self, result: BatchResult) -> None:
        for comments in (
            result.validation_notes,
            result.rollback_notes,
            result.table_notes,
        ):
            merge_comments(result.notable_zones, comments)

        links_to_zones = _gather_links_to_zones(result)
        result.merged_notable_zones = _create_merged_comments_map(
            result.notable_zones,
            links_to_zones,
        )

    def print_summary(self, result: BatchResult) -> None:
        zone_count = len(result.merged_notable_zones)
        comment_count = _count_merged_counts_map(result.merged_notable_zones)
        logging.info(f"Zones: {zone_count}; Comments: {comment_count}")


def _gather_links_to_zones(result: BatchResult) -> Dict[str, str]:
    """Create a map of link names to the name of the zone they point to."""
    links_to_zones: Dict[str, str] = {}
    for zone_id, tlist in result.transitions.items():
        if tlist.alias_for is not None:
            links_to_zones[zone_id] = tlist.alias_for
    return links_to_zones


def _create_merged_comments_map(
    zone_comments: CommentsMap,
    links_to_zones: Dict[str, str],
) -> MergedCommentsMap:
    """Merge the comments of each zone into the links which use that zone.
    """

    merged_comments: MergedCommentsMap = {}

    # Pass 1: Copy the zone comments.
    for name, reasons in sorted(zone_comments.items()):
        merged_reasons: List[Union[str, CommentsMap]] = list(reasons)
        merged_reasons.sort()
        merged_comments[name] = merged_reasons

    # Pass 2: Add the comments of the target zone of each link.
    for link_name, zone_name in sorted(links_to_zones.items()):
        entry = zone_comments.get(zone_name)
        if entry is None:
            continue

        comments = list(entry)
        comments.sort()
        sub_zones_map: CommentsMap = {zone_name: comments}

        link_reasons = merged_comments.get(link_name)
        if link_reasons is None:
            link_reasons = list()
            merged_comments[link_name] = link_reasons
        link_reasons.append(sub_zones_map)

    return merged_comments


def _count_merged_counts_map(comments: MergedCommentsMap) -> int:
    count = 0
    for zone_name, reasons in comments.items():
        for reason in reasons:
            if isinstance(reason, str):
                count += 1
            else:
                for sub_zone_name, sub_reasons in reason.items():
                    count += len(sub_reasons)
    return count

"""
Lane layout for calendar rendering.

Overlapping reservations are placed side by side in lanes. Lane counts are
per overlap cluster (reservations connected through a chain of overlaps),
so an isolated reservation always renders at full width.
"""

from __future__ import annotations

from typing import Iterable

from .intervals import overlaps
from .models import LaneAssignment, Reservation


def layout_lanes(reservations: Iterable[Reservation]) -> dict[str, LaneAssignment]:
    """
    Assign each live reservation a zero-based lane and its cluster's lane count.

    Algorithm:
    1. Sort by start time, ties broken by reservation id
    2. Give each reservation the smallest lane not used by an already
       placed reservation that overlaps it
    3. Merge overlapping reservations into clusters and give every member
       the cluster's lane count (highest lane + 1)
    """
    ordered = sorted(
        (reservation for reservation in reservations if reservation.is_live),
        key=lambda reservation: (reservation.start, reservation.reservation_id),
    )

    lanes: list[int] = []
    parents = list(range(len(ordered)))

    def find(index: int) -> int:
        while parents[index] != index:
            parents[index] = parents[parents[index]]
            index = parents[index]
        return index

    for index, current in enumerate(ordered):
        occupied: set[int] = set()
        for placed_index in range(index):
            placed = ordered[placed_index]
            if overlaps(current.start, current.end, placed.start, placed.end):
                occupied.add(lanes[placed_index])
                parents[find(placed_index)] = find(index)

        lane = 0
        while lane in occupied:
            lane += 1
        lanes.append(lane)

    cluster_lanes: dict[int, int] = {}
    for index, lane in enumerate(lanes):
        root = find(index)
        cluster_lanes[root] = max(cluster_lanes.get(root, 0), lane + 1)

    return {
        reservation.reservation_id: LaneAssignment(lane=lanes[index], total_lanes=cluster_lanes[find(index)])
        for index, reservation in enumerate(ordered)
    }

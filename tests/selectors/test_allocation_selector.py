"""Tests for AllocationSelector overlap facts and listings."""

from booking_kernel.domain.values import TimeWindow
from booking_kernel.selectors.allocation_selector import AllocationSelector


class TestOverlapFacts:

    def test_overlap_sum_and_ids(self, kernel, session, projector_pool, make_event, at):
        morning = make_event(at(9), at(11))
        midday = make_event(at(10), at(13))
        evening = make_event(at(18), at(20))
        kernel.allocate(morning.id, projector_pool.id, 3)
        kernel.allocate(midday.id, projector_pool.id, 4)
        kernel.allocate(evening.id, projector_pool.id, 5)

        selector = AllocationSelector(session)
        window = TimeWindow(at(10, 30), at(12))
        assert selector.overlapping_quantity(projector_pool.id, window) == 7
        assert set(selector.overlapping_event_ids(projector_pool.id, window)) == {
            str(morning.id),
            str(midday.id),
        }

    def test_touching_windows_do_not_overlap(self, kernel, session, projector_pool, make_event, at):
        kernel.allocate(make_event(at(9), at(11)).id, projector_pool.id, 3)
        window = TimeWindow(at(11), at(12))
        assert AllocationSelector(session).overlapping_quantity(projector_pool.id, window) == 0

    def test_own_event_excluded(self, kernel, session, projector_pool, make_event, at):
        event = make_event(at(9), at(11))
        kernel.allocate(event.id, projector_pool.id, 3)
        selector = AllocationSelector(session)
        assert selector.overlapping_quantity(
            projector_pool.id, TimeWindow(at(9), at(11)), exclude_event_id=event.id
        ) == 0


class TestListing:

    def test_filters(self, kernel, session, projector_pool, exclusive_room, make_event, at):
        first = make_event(at(9), at(11))
        second = make_event(at(12), at(13))
        kernel.allocate(first.id, projector_pool.id, 2)
        kernel.allocate(first.id, exclusive_room.id, 1)
        kernel.allocate(second.id, projector_pool.id, 1)

        selector = AllocationSelector(session)
        assert len(selector.list_allocations()) == 3
        assert len(selector.list_allocations(event_id=first.id)) == 2
        assert len(selector.list_allocations(resource_id=projector_pool.id)) == 2
        assert len(
            selector.list_allocations(event_id=second.id, resource_id=exclusive_room.id)
        ) == 0

"""
Hypothesis-based property tests for the consumable ledger.

Random sequences of allocate / update / remove / restock / adjust are run
against a fresh consumable per generated case.  After every step:

- current balance == sum of all ledger quantities == cached stock
- a successful allocate leaves the projected balance at the event start >= 0

Fixtures are function-scoped and shared by every generated case of one test,
so each case works on its own resource and its own events.
"""

from datetime import timedelta

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from booking_kernel.domain.values import ResourceKind
from booking_kernel.exceptions import InsufficientInventoryError

allocate_ops = st.tuples(
    st.just("allocate"),
    st.integers(min_value=0, max_value=72),
    st.integers(min_value=1, max_value=60),
)
update_ops = st.tuples(
    st.just("update"),
    st.integers(min_value=0, max_value=10),
    st.integers(min_value=1, max_value=60),
)
remove_ops = st.tuples(st.just("remove"), st.integers(min_value=0, max_value=10))
restock_ops = st.tuples(
    st.just("restock"),
    st.integers(min_value=-24, max_value=72),
    st.integers(min_value=1, max_value=80),
)
adjust_ops = st.tuples(st.just("adjust"), st.integers(min_value=0, max_value=150))

operations = st.lists(
    st.one_of(allocate_ops, update_ops, remove_ops, restock_ops, adjust_ops),
    min_size=1,
    max_size=12,
)

PROPERTY_SETTINGS = settings(
    max_examples=40,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)


def _assert_conserved(kernel, resource_id):
    ledger_total = sum(t.quantity for t in kernel.transaction_history(resource_id))
    assert kernel.current_balance(resource_id) == ledger_total
    assert kernel.get_resource(resource_id).cached_current_stock == ledger_total


class TestLedgerConservation:

    @given(initial_stock=st.integers(min_value=0, max_value=120), steps=operations)
    @PROPERTY_SETTINGS
    def test_balance_matches_ledger_after_any_sequence(
        self,
        kernel,
        org_id,
        at,
        initial_stock,
        steps,
    ):
        resource = kernel.register_resource(
            "Fuzzed stock",
            ResourceKind.CONSUMABLE,
            organization_id=org_id,
            initial_stock=initial_stock,
        )
        bindings = []
        _assert_conserved(kernel, resource.id)

        for step in steps:
            match step:
                case ("allocate", hour, quantity):
                    event = kernel.register_event(
                        "Fuzz", org_id, at(hour), at(hour) + timedelta(hours=1)
                    )
                    try:
                        binding = kernel.allocate(event.id, resource.id, quantity)
                    except InsufficientInventoryError:
                        pass
                    else:
                        bindings.append(binding.id)
                        assert kernel.projected_balance(resource.id, at(hour)) >= 0
                case ("update", index, quantity) if bindings:
                    try:
                        kernel.update_quantity(bindings[index % len(bindings)], quantity)
                    except InsufficientInventoryError:
                        pass
                case ("remove", index) if bindings:
                    kernel.remove(bindings.pop(index % len(bindings)))
                case ("restock", hour, quantity):
                    kernel.restock(resource.id, quantity, effective_date=at(hour))
                case ("adjust", target):
                    kernel.adjust(resource.id, target, is_privileged=True)
                    assert kernel.current_balance(resource.id) == target
                case _:
                    continue
            _assert_conserved(kernel, resource.id)


class TestProjectionNeverNegativeAtAdmission:

    @given(
        requests=st.lists(
            st.tuples(
                st.integers(min_value=0, max_value=48),
                st.integers(min_value=1, max_value=40),
            ),
            min_size=1,
            max_size=10,
        )
    )
    @PROPERTY_SETTINGS
    def test_admitted_allocation_leaves_non_negative_projection(
        self,
        kernel,
        org_id,
        at,
        requests,
    ):
        resource = kernel.register_resource(
            "Fuzzed cups",
            ResourceKind.CONSUMABLE,
            organization_id=org_id,
            initial_stock=100,
        )
        for hour, quantity in requests:
            event = kernel.register_event("Fuzz", org_id, at(hour), at(hour, 30))
            before = kernel.projected_balance(resource.id, at(hour))
            try:
                kernel.allocate(event.id, resource.id, quantity)
            except InsufficientInventoryError as exc:
                assert exc.available == before
                assert quantity > before
            else:
                assert quantity <= before
                assert kernel.projected_balance(resource.id, at(hour)) == before - quantity

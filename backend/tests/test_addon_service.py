"""
Tests for AddonService and the add-on conflict graph.

Tests cover:
- Symmetric conflict writes (set, shrink, clear)
- Validation of conflict ids
- Add-on CRUD keeping the graph symmetric
- Property: symmetry holds after any sequence of writes
"""

from decimal import Decimal

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st
from sqlalchemy import delete, select

from dinein_api.models import Addon, AddonConflict, MenuItem
from dinein_api.services.domain import AddonService, TableLockService
from shared.utils.exceptions import NotFoundError, ValidationError


def edges(db_session) -> set[tuple[int, int]]:
    return set(
        db_session.execute(
            select(AddonConflict.addon_id, AddonConflict.conflicting_addon_id)
        ).all()
    )


def assert_symmetric(db_session) -> None:
    graph = edges(db_session)
    for a, b in graph:
        assert (b, a) in graph, f"edge {a}->{b} has no reverse"


class TestSetConflicts:
    """Tests for set_conflicts."""

    def test_conflict_is_mutual(self, db_session, seed_addons):
        cheese, bacon, _ = seed_addons
        service = AddonService(db_session)

        service.set_conflicts(cheese.id, [bacon.id])

        assert service.conflicts_with(cheese.id, bacon.id) is True
        assert service.conflicts_with(bacon.id, cheese.id) is True
        assert service.conflicting_ids(bacon.id) == {cheese.id}

    def test_dropped_ids_lose_reverse_edge(self, db_session, seed_addons):
        cheese, bacon, vegan = seed_addons
        service = AddonService(db_session)
        service.set_conflicts(cheese.id, [bacon.id, vegan.id])

        service.set_conflicts(cheese.id, [vegan.id])

        assert service.conflicting_ids(cheese.id) == {vegan.id}
        assert service.conflicting_ids(bacon.id) == set()
        assert service.conflicting_ids(vegan.id) == {cheese.id}
        assert_symmetric(db_session)

    def test_clearing_set_removes_all_edges(self, db_session, seed_addons):
        cheese, bacon, vegan = seed_addons
        service = AddonService(db_session)
        service.set_conflicts(cheese.id, [bacon.id, vegan.id])

        service.set_conflicts(cheese.id, [])

        assert edges(db_session) == set()

    def test_writing_from_other_side_keeps_existing_edges(self, db_session, seed_addons):
        cheese, bacon, vegan = seed_addons
        service = AddonService(db_session)
        service.set_conflicts(cheese.id, [bacon.id])

        service.set_conflicts(bacon.id, [cheese.id, vegan.id])

        assert service.conflicting_ids(cheese.id) == {bacon.id}
        assert service.conflicting_ids(vegan.id) == {bacon.id}
        assert_symmetric(db_session)

    def test_self_conflict_rejected(self, db_session, seed_addons):
        cheese = seed_addons[0]
        with pytest.raises(ValidationError):
            AddonService(db_session).set_conflicts(cheese.id, [cheese.id])

    def test_unknown_conflict_id(self, db_session, seed_addons):
        with pytest.raises(NotFoundError):
            AddonService(db_session).set_conflicts(seed_addons[0].id, [99999])
        assert edges(db_session) == set()

    def test_unknown_addon(self, db_session, seed_addons):
        with pytest.raises(NotFoundError):
            AddonService(db_session).set_conflicts(99999, [seed_addons[0].id])

    def test_addon_of_other_menu_item_rejected(self, db_session, seed_addons, seed_category):
        db_session.add(
            MenuItem(
                id="M002",
                category_id=seed_category.id,
                name="Salad",
                price=Decimal("7.00"),
                image_path="/Images/salad.jpg",
            )
        )
        croutons = Addon(menu_item_id="M002", name="Croutons", price=Decimal("0.50"))
        db_session.add(croutons)
        db_session.commit()

        with pytest.raises(ValidationError):
            AddonService(db_session).set_conflicts(seed_addons[0].id, [croutons.id])

    def test_find_conflicting_pairs(self, db_session, seed_addons):
        cheese, bacon, vegan = seed_addons
        service = AddonService(db_session)
        service.set_conflicts(vegan.id, [cheese.id, bacon.id])

        pairs = service.find_conflicting_pairs([cheese.id, bacon.id, vegan.id])

        assert pairs == sorted(
            [
                (min(cheese.id, vegan.id), max(cheese.id, vegan.id)),
                (min(bacon.id, vegan.id), max(bacon.id, vegan.id)),
            ]
        )
        assert service.find_conflicting_pairs([cheese.id, bacon.id]) == []
        assert service.find_conflicting_pairs([vegan.id]) == []


class TestAddonCrud:
    """Tests for create_addon, update_addon, delete_addon and listing."""

    def test_create_with_conflicts(self, db_session, seed_addons):
        cheese, bacon, _ = seed_addons
        service = AddonService(db_session)

        addon = service.create_addon("M001", "Tofu", Decimal("1.00"), conflict_ids=[cheese.id, bacon.id])

        assert service.conflicting_ids(addon.id) == {cheese.id, bacon.id}
        assert service.conflicting_ids(cheese.id) == {addon.id}
        assert_symmetric(db_session)

    def test_rejected_create_leaves_nothing_behind(self, db_session, seed_addons, clock):
        service = AddonService(db_session)

        with pytest.raises(NotFoundError):
            service.create_addon("M001", "Tofu", Decimal("1.00"), conflict_ids=[99999])
        # An unrelated commit on the same session must not carry the add-on
        TableLockService(db_session, clock).create_table(99)

        names = db_session.scalars(select(Addon.name)).all()
        assert "Tofu" not in names
        assert_symmetric(db_session)

    def test_create_for_unknown_menu_item(self, db_session, seed_menu_item):
        with pytest.raises(NotFoundError):
            AddonService(db_session).create_addon("X999", "Tofu", Decimal("1.00"))

    def test_required_addon_type(self, db_session, seed_menu_item):
        service = AddonService(db_session)
        addon = service.create_addon("M001", "Bun", Decimal("0.00"), is_required=True)

        assert service.get_addon(addon.id).type == "Required"

    def test_choice_type_is_stored(self, db_session, seed_menu_item):
        service = AddonService(db_session)
        addon = service.create_addon("M001", "Fries", Decimal("0.00"), type="Choice")

        db_session.expire_all()
        stored = db_session.get(Addon, addon.id)
        assert stored.type == "Choice"
        assert stored.is_required is False

    def test_update_type(self, db_session, seed_addons):
        service = AddonService(db_session)

        service.update_addon(seed_addons[0].id, type="Choice")

        assert service.get_addon(seed_addons[0].id).type == "Choice"

    def test_unknown_type_rejected(self, db_session, seed_menu_item):
        with pytest.raises(ValidationError):
            AddonService(db_session).create_addon("M001", "Fries", Decimal("0.00"), type="Combo")

    def test_update_replaces_conflict_set(self, db_session, seed_addons):
        cheese, bacon, vegan = seed_addons
        service = AddonService(db_session)
        service.set_conflicts(cheese.id, [bacon.id])

        service.update_addon(cheese.id, price=Decimal("1.75"), conflict_ids=[vegan.id])

        output = service.get_addon(cheese.id)
        assert output.price == Decimal("1.75")
        assert output.conflicting_addon_ids == [vegan.id]
        assert service.conflicting_ids(bacon.id) == set()
        assert_symmetric(db_session)

    def test_update_without_conflict_ids_keeps_set(self, db_session, seed_addons):
        cheese, bacon, _ = seed_addons
        service = AddonService(db_session)
        service.set_conflicts(cheese.id, [bacon.id])

        service.update_addon(cheese.id, name="Cheddar")

        assert service.conflicting_ids(cheese.id) == {bacon.id}

    def test_delete_removes_addon_from_every_set(self, db_session, seed_addons):
        cheese, bacon, vegan = seed_addons
        service = AddonService(db_session)
        service.set_conflicts(vegan.id, [cheese.id, bacon.id])

        service.delete_addon(vegan.id)

        assert db_session.get(Addon, vegan.id) is None
        assert service.conflicting_ids(cheese.id) == set()
        assert service.conflicting_ids(bacon.id) == set()
        assert edges(db_session) == set()

    def test_delete_unknown_addon(self, db_session, seed_addons):
        with pytest.raises(NotFoundError):
            AddonService(db_session).delete_addon(99999)

    def test_list_includes_conflict_sets(self, db_session, seed_addons):
        cheese, bacon, vegan = seed_addons
        service = AddonService(db_session)
        service.set_conflicts(cheese.id, [vegan.id])
        service.update_addon(bacon.id, is_available=False)

        everything = service.list_for_menu_item("M001")
        available = service.list_for_menu_item("M001", available_only=True)

        assert [a.name for a in everything] == ["Cheese", "Bacon", "Vegan patty"]
        assert [a.name for a in available] == ["Cheese", "Vegan patty"]
        assert available[0].conflicting_addon_ids == [vegan.id]
        assert all(a.type == "Optional" for a in everything)


# =============================================================================
# Property-based tests
# =============================================================================

ADDON_COUNT = 5

operations = st.lists(
    st.one_of(
        st.tuples(
            st.just("set"),
            st.integers(0, ADDON_COUNT - 1),
            st.sets(st.integers(0, ADDON_COUNT - 1), max_size=ADDON_COUNT),
        ),
        st.tuples(st.just("delete"), st.integers(0, ADDON_COUNT - 1), st.just(frozenset())),
    ),
    max_size=12,
)


class TestConflictGraphProperties:
    """Symmetry holds after any sequence of set/delete operations."""

    @given(ops=operations)
    @settings(
        max_examples=40,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    def test_graph_stays_symmetric(self, db_session, seed_menu_item, ops):
        db_session.execute(delete(AddonConflict))
        db_session.execute(delete(Addon))
        db_session.commit()

        service = AddonService(db_session)
        ids = [
            service.create_addon("M001", f"Addon {i}", Decimal("1.00")).id
            for i in range(ADDON_COUNT)
        ]
        alive = set(ids)

        for op, index, targets in ops:
            addon_id = ids[index]
            if addon_id not in alive:
                continue
            if op == "delete":
                service.delete_addon(addon_id)
                alive.discard(addon_id)
                continue
            conflict_ids = {ids[t] for t in targets if ids[t] in alive} - {addon_id}
            service.set_conflicts(addon_id, conflict_ids)
            assert service.conflicting_ids(addon_id) == conflict_ids

        graph = edges(db_session)
        for a, b in graph:
            assert (b, a) in graph
            assert a in alive and b in alive
        for a in alive:
            for b in alive:
                assert service.conflicts_with(a, b) == service.conflicts_with(b, a)

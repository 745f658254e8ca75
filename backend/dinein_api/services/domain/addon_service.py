"""
Add-on Domain Service.

Owns add-ons and the "cannot be combined" graph between them. The graph is
stored as directed AddonConflict rows and kept symmetric: every write of an
add-on's conflict set also rewrites the reverse edges, in one transaction.
"""

from collections.abc import Iterable
from decimal import Decimal

from sqlalchemy import delete, insert, or_, select
from sqlalchemy.orm import Session

from shared.config.constants import AddonType
from shared.config.logging import admin_logger
from shared.infrastructure.db import rollback_on_error, safe_commit
from shared.utils.exceptions import NotFoundError, ValidationError
from shared.utils.schemas import AddonOutput
from dinein_api.models import Addon, AddonConflict, MenuItem


def check_addon_type(value: str) -> str:
    if value not in AddonType.ALL:
        raise ValidationError(
            f"Add-on type must be one of: {', '.join(AddonType.ALL)}",
            field="type",
            value=value,
        )
    return value


class AddonService:
    """Domain service for add-ons and their conflict graph."""

    def __init__(self, db: Session):
        self._db = db

    # =========================================================================
    # Conflict graph queries
    # =========================================================================

    def conflicting_ids(self, addon_id: int) -> set[int]:
        """Ids the add-on cannot be combined with."""
        return set(
            self._db.scalars(
                select(AddonConflict.conflicting_addon_id).where(
                    AddonConflict.addon_id == addon_id
                )
            ).all()
        )

    def conflicts_with(self, a: int, b: int) -> bool:
        """Symmetric by construction: conflicts_with(a, b) == conflicts_with(b, a)."""
        return (
            self._db.scalar(
                select(AddonConflict.addon_id).where(
                    AddonConflict.addon_id == a,
                    AddonConflict.conflicting_addon_id == b,
                )
            )
            is not None
        )

    def conflict_map(self, addon_ids: Iterable[int]) -> dict[int, set[int]]:
        """Conflict sets for several add-ons in one query."""
        ids = list(set(addon_ids))
        result: dict[int, set[int]] = {aid: set() for aid in ids}
        if not ids:
            return result
        rows = self._db.execute(
            select(AddonConflict.addon_id, AddonConflict.conflicting_addon_id).where(
                AddonConflict.addon_id.in_(ids)
            )
        ).all()
        for addon_id, other_id in rows:
            result[addon_id].add(other_id)
        return result

    def find_conflicting_pairs(self, addon_ids: Iterable[int]) -> list[tuple[int, int]]:
        """
        Mutually exclusive pairs within a selection, as (smaller, larger) ids.

        Empty list means the selection is compatible.
        """
        ids = set(addon_ids)
        if len(ids) < 2:
            return []
        rows = self._db.execute(
            select(AddonConflict.addon_id, AddonConflict.conflicting_addon_id).where(
                AddonConflict.addon_id.in_(ids),
                AddonConflict.conflicting_addon_id.in_(ids),
            )
        ).all()
        return sorted({(min(a, b), max(a, b)) for a, b in rows})

    # =========================================================================
    # Conflict graph writes
    # =========================================================================

    @rollback_on_error
    def set_conflicts(self, addon_id: int, conflict_ids: Iterable[int]) -> set[int]:
        """
        Replace an add-on's conflict set and mirror it on the other side.

        Returns the new set.

        Raises:
            NotFoundError: the add-on or one of the ids does not exist
            ValidationError: self-conflict, or an id from another menu item
        """
        new_ids = self._apply_conflicts(addon_id, conflict_ids)
        safe_commit(self._db, "set add-on conflicts")

        admin_logger.info(
            "Add-on conflicts updated",
            addon_id=addon_id,
            conflict_ids=sorted(new_ids),
        )
        return new_ids

    def _apply_conflicts(self, addon_id: int, conflict_ids: Iterable[int]) -> set[int]:
        """
        Write the three-step conflict update. Does not commit.

        (a) ids no longer in the set drop addon_id from theirs
        (b) ids in the set gain addon_id
        (c) the add-on's own set becomes conflict_ids
        """
        new_ids = set(conflict_ids)
        if addon_id in new_ids:
            raise ValidationError(
                "An add-on cannot conflict with itself", addon_id=addon_id
            )

        # Lock every row involved, always in id order
        involved = sorted(new_ids | {addon_id})
        locked = {
            a.id: a
            for a in self._db.scalars(
                select(Addon)
                .where(Addon.id.in_(involved))
                .order_by(Addon.id)
                .with_for_update()
            ).all()
        }
        addon = locked.get(addon_id)
        if addon is None:
            raise NotFoundError("Add-on", addon_id)
        missing = sorted(new_ids - locked.keys())
        if missing:
            raise NotFoundError("Add-on", missing[0])
        foreign = sorted(
            i for i in new_ids if locked[i].menu_item_id != addon.menu_item_id
        )
        if foreign:
            raise ValidationError(
                "Conflicting add-ons must belong to the same menu item",
                addon_id=addon_id,
                foreign_ids=foreign,
            )

        own = self.conflicting_ids(addon_id)
        reverse = set(
            self._db.scalars(
                select(AddonConflict.addon_id).where(
                    AddonConflict.conflicting_addon_id == addon_id
                )
            ).all()
        )

        # (a)
        dropped = reverse - new_ids
        if dropped:
            self._db.execute(
                delete(AddonConflict)
                .where(
                    AddonConflict.addon_id.in_(dropped),
                    AddonConflict.conflicting_addon_id == addon_id,
                )
                .execution_options(synchronize_session=False)
            )
        # (b)
        gained = new_ids - reverse
        if gained:
            self._db.execute(
                insert(AddonConflict),
                [{"addon_id": i, "conflicting_addon_id": addon_id} for i in sorted(gained)],
            )
        # (c)
        removed = own - new_ids
        if removed:
            self._db.execute(
                delete(AddonConflict)
                .where(
                    AddonConflict.addon_id == addon_id,
                    AddonConflict.conflicting_addon_id.in_(removed),
                )
                .execution_options(synchronize_session=False)
            )
        added = new_ids - own
        if added:
            self._db.execute(
                insert(AddonConflict),
                [{"addon_id": addon_id, "conflicting_addon_id": i} for i in sorted(added)],
            )
        return new_ids

    # =========================================================================
    # Add-on CRUD
    # =========================================================================

    @rollback_on_error
    def create_addon(
        self,
        menu_item_id: str,
        name: str,
        price: Decimal,
        is_required: bool = False,
        type: str | None = None,
        conflict_ids: Iterable[int] = (),
    ) -> Addon:
        """
        Create an add-on and its conflict edges in one transaction.

        Without an explicit type, required add-ons are "Required" and the
        rest "Optional".
        """
        if type is None:
            type = AddonType.REQUIRED if is_required else AddonType.OPTIONAL
        check_addon_type(type)
        if self._db.get(MenuItem, menu_item_id) is None:
            raise NotFoundError("Menu item", menu_item_id)
        _check_price(price)

        addon = Addon(
            menu_item_id=menu_item_id,
            name=name.strip(),
            price=price,
            is_required=is_required,
            type=type,
            is_available=True,
        )
        self._db.add(addon)
        self._db.flush()
        self._apply_conflicts(addon.id, conflict_ids)
        safe_commit(self._db, "create add-on")
        self._db.refresh(addon)

        admin_logger.info(
            "Add-on created",
            addon_id=addon.id,
            menu_item_id=menu_item_id,
            type=addon.type,
        )
        return addon

    @rollback_on_error
    def update_addon(
        self,
        addon_id: int,
        name: str | None = None,
        price: Decimal | None = None,
        is_required: bool | None = None,
        type: str | None = None,
        is_available: bool | None = None,
        conflict_ids: Iterable[int] | None = None,
    ) -> Addon:
        """Partial update. conflict_ids, when given, replaces the whole set."""
        addon = self._db.get(Addon, addon_id)
        if addon is None:
            raise NotFoundError("Add-on", addon_id)

        if name is not None:
            addon.name = name.strip()
        if price is not None:
            _check_price(price)
            addon.price = price
        if is_required is not None:
            addon.is_required = is_required
        if type is not None:
            addon.type = check_addon_type(type)
        if is_available is not None:
            addon.is_available = is_available
        if conflict_ids is not None:
            self._apply_conflicts(addon_id, conflict_ids)

        safe_commit(self._db, "update add-on")
        self._db.refresh(addon)
        admin_logger.info("Add-on updated", addon_id=addon_id)
        return addon

    @rollback_on_error
    def delete_addon(self, addon_id: int) -> None:
        """Clear the add-on's conflicts on both sides, then remove it."""
        self._remove_addons([addon_id])
        safe_commit(self._db, "delete add-on")
        admin_logger.info("Add-on deleted", addon_id=addon_id)

    def remove_for_menu_item(self, menu_item_id: str) -> int:
        """Remove every add-on of a menu item. Does not commit."""
        ids = list(
            self._db.scalars(
                select(Addon.id).where(Addon.menu_item_id == menu_item_id)
            ).all()
        )
        if ids:
            self._remove_addons(ids)
        return len(ids)

    def _remove_addons(self, addon_ids: list[int]) -> None:
        for addon_id in addon_ids:
            self._apply_conflicts(addon_id, ())
        # Any stray edge left pointing at the removed rows goes too
        self._db.execute(
            delete(AddonConflict)
            .where(
                or_(
                    AddonConflict.addon_id.in_(addon_ids),
                    AddonConflict.conflicting_addon_id.in_(addon_ids),
                )
            )
            .execution_options(synchronize_session=False)
        )
        self._db.execute(
            delete(Addon)
            .where(Addon.id.in_(addon_ids))
            .execution_options(synchronize_session=False)
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_addon(self, addon_id: int) -> AddonOutput:
        addon = self._db.get(Addon, addon_id)
        if addon is None:
            raise NotFoundError("Add-on", addon_id)
        return self._to_output(addon, self.conflicting_ids(addon_id))

    def list_for_menu_item(
        self,
        menu_item_id: str,
        available_only: bool = False,
    ) -> list[AddonOutput]:
        """Add-ons of a menu item with their conflict sets."""
        if self._db.get(MenuItem, menu_item_id) is None:
            raise NotFoundError("Menu item", menu_item_id)

        query = select(Addon).where(Addon.menu_item_id == menu_item_id)
        if available_only:
            query = query.where(Addon.is_available.is_(True))
        addons = self._db.scalars(query.order_by(Addon.id)).all()

        conflicts = self.conflict_map(a.id for a in addons)
        return [self._to_output(a, conflicts[a.id]) for a in addons]

    def _to_output(self, addon: Addon, conflicts: set[int]) -> AddonOutput:
        return AddonOutput(
            id=addon.id,
            menu_item_id=addon.menu_item_id,
            name=addon.name,
            price=addon.price,
            is_required=addon.is_required,
            is_available=addon.is_available,
            type=addon.type,
            conflicting_addon_ids=sorted(conflicts),
        )


def _check_price(price: Decimal) -> None:
    if price < 0:
        raise ValidationError("Price cannot be negative", field="price", value=str(price))

"""
Public menu: available items, active categories and item add-ons.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import AddonOutput, CategoryOutput, MenuItemOutput
from dinein_api.services.domain import AddonService, MenuService


router = APIRouter(prefix="/api/menu", tags=["diner-menu"])


@router.get("", response_model=list[MenuItemOutput])
def get_menu(
    category_id: int | None = None,
    db: Session = Depends(get_db),
) -> list[MenuItemOutput]:
    """Available items of active categories, in display order."""
    items = MenuService(db).list_menu(available_only=True, category_id=category_id)
    return [MenuItemOutput.model_validate(i) for i in items]


@router.get("/categories", response_model=list[CategoryOutput])
def get_categories(db: Session = Depends(get_db)) -> list[CategoryOutput]:
    categories = MenuService(db).list_categories(active_only=True)
    return [CategoryOutput.model_validate(c) for c in categories]


@router.get("/{menu_item_id}/addons", response_model=list[AddonOutput])
def get_addons(menu_item_id: str, db: Session = Depends(get_db)) -> list[AddonOutput]:
    """Available add-ons of an item, each with the ids it cannot be combined with."""
    return AddonService(db).list_for_menu_item(menu_item_id, available_only=True)

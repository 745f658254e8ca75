"""
Menu item management endpoints.

Item ids are allocated by the server from the category prefix (C001,
C002, ...). next-id only previews; the id is fixed when the item is created.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import (
    MenuItemCreate,
    MenuItemOutput,
    MenuItemUpdate,
    NextIdOutput,
)
from dinein_api.services.domain import MenuService


router = APIRouter(tags=["admin-menu-items"])


@router.get("/menu-items", response_model=list[MenuItemOutput])
def list_menu_items(
    category_id: int | None = None,
    db: Session = Depends(get_db),
) -> list[MenuItemOutput]:
    """Every item, available or not."""
    items = MenuService(db).list_menu(category_id=category_id)
    return [MenuItemOutput.model_validate(i) for i in items]


@router.get("/categories/{category_id}/next-id", response_model=NextIdOutput)
def preview_next_id(category_id: int, db: Session = Depends(get_db)) -> NextIdOutput:
    return NextIdOutput(menu_item_id=MenuService(db).next_id(category_id))


@router.get("/menu-items/{menu_item_id}", response_model=MenuItemOutput)
def get_menu_item(menu_item_id: str, db: Session = Depends(get_db)) -> MenuItemOutput:
    return MenuItemOutput.model_validate(MenuService(db).get_menu_item(menu_item_id))


@router.post("/menu-items", response_model=MenuItemOutput, status_code=status.HTTP_201_CREATED)
def create_menu_item(body: MenuItemCreate, db: Session = Depends(get_db)) -> MenuItemOutput:
    item = MenuService(db).create_menu_item(
        body.category_id,
        body.name,
        body.price,
        description=body.description,
        image_path=body.image_path,
        is_available=body.is_available,
    )
    return MenuItemOutput.model_validate(item)


@router.patch("/menu-items/{menu_item_id}", response_model=MenuItemOutput)
def update_menu_item(
    menu_item_id: str,
    body: MenuItemUpdate,
    db: Session = Depends(get_db),
) -> MenuItemOutput:
    item = MenuService(db).update_menu_item(
        menu_item_id,
        **body.model_dump(exclude_unset=True),
    )
    return MenuItemOutput.model_validate(item)


@router.post("/menu-items/{menu_item_id}/toggle", response_model=MenuItemOutput)
def toggle_menu_item(menu_item_id: str, db: Session = Depends(get_db)) -> MenuItemOutput:
    return MenuItemOutput.model_validate(MenuService(db).toggle_availability(menu_item_id))


@router.delete("/menu-items/{menu_item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_menu_item(menu_item_id: str, db: Session = Depends(get_db)) -> None:
    """Delete an item with its add-ons. 409 while carts or orders reference it."""
    MenuService(db).delete_menu_item(menu_item_id)

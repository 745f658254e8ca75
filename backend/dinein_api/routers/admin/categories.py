"""
Category management endpoints.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import CategoryCreate, CategoryOutput, CategoryUpdate
from dinein_api.services.domain import MenuService


router = APIRouter(tags=["admin-categories"])


@router.get("/categories", response_model=list[CategoryOutput])
def list_categories(
    active_only: bool = False,
    db: Session = Depends(get_db),
) -> list[CategoryOutput]:
    categories = MenuService(db).list_categories(active_only=active_only)
    return [CategoryOutput.model_validate(c) for c in categories]


@router.get("/categories/next-display-order")
def next_display_order(db: Session = Depends(get_db)) -> dict[str, int]:
    """Suggested display order for a new category."""
    return {"display_order": MenuService(db).next_display_order()}


@router.get("/categories/{category_id}", response_model=CategoryOutput)
def get_category(category_id: int, db: Session = Depends(get_db)) -> CategoryOutput:
    return CategoryOutput.model_validate(MenuService(db).get_category(category_id))


@router.post("/categories", response_model=CategoryOutput, status_code=status.HTTP_201_CREATED)
def create_category(body: CategoryCreate, db: Session = Depends(get_db)) -> CategoryOutput:
    """Create a category. Prefix and active display order must be unique."""
    category = MenuService(db).create_category(
        name=body.name,
        prefix=body.prefix,
        display_order=body.display_order,
        description=body.description,
        is_active=body.is_active,
    )
    return CategoryOutput.model_validate(category)


@router.patch("/categories/{category_id}", response_model=CategoryOutput)
def update_category(
    category_id: int,
    body: CategoryUpdate,
    db: Session = Depends(get_db),
) -> CategoryOutput:
    category = MenuService(db).update_category(
        category_id,
        **body.model_dump(exclude_unset=True),
    )
    return CategoryOutput.model_validate(category)


@router.post("/categories/{category_id}/toggle", response_model=CategoryOutput)
def toggle_category(category_id: int, db: Session = Depends(get_db)) -> CategoryOutput:
    return CategoryOutput.model_validate(MenuService(db).toggle_category(category_id))


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(category_id: int, db: Session = Depends(get_db)) -> None:
    """Delete an empty category. 409 while it still has menu items."""
    MenuService(db).delete_category(category_id)

"""
Add-on management endpoints.

Conflict sets are symmetric: declaring that A conflicts with B also makes
B conflict with A, and deleting A removes it from every other set.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import (
    AddonCreate,
    AddonOutput,
    AddonUpdate,
    SetConflictsRequest,
)
from dinein_api.services.domain import AddonService


router = APIRouter(tags=["admin-addons"])


@router.get("/menu-items/{menu_item_id}/addons", response_model=list[AddonOutput])
def list_addons(menu_item_id: str, db: Session = Depends(get_db)) -> list[AddonOutput]:
    return AddonService(db).list_for_menu_item(menu_item_id)


@router.get("/addons/{addon_id}", response_model=AddonOutput)
def get_addon(addon_id: int, db: Session = Depends(get_db)) -> AddonOutput:
    return AddonService(db).get_addon(addon_id)


@router.post("/addons", response_model=AddonOutput, status_code=status.HTTP_201_CREATED)
def create_addon(body: AddonCreate, db: Session = Depends(get_db)) -> AddonOutput:
    service = AddonService(db)
    addon = service.create_addon(
        body.menu_item_id,
        body.name,
        body.price,
        is_required=body.is_required,
        type=body.type,
        conflict_ids=body.conflict_ids,
    )
    return service.get_addon(addon.id)


@router.patch("/addons/{addon_id}", response_model=AddonOutput)
def update_addon(
    addon_id: int,
    body: AddonUpdate,
    db: Session = Depends(get_db),
) -> AddonOutput:
    service = AddonService(db)
    service.update_addon(addon_id, **body.model_dump(exclude_unset=True))
    return service.get_addon(addon_id)


@router.put("/addons/{addon_id}/conflicts", response_model=AddonOutput)
def set_conflicts(
    addon_id: int,
    body: SetConflictsRequest,
    db: Session = Depends(get_db),
) -> AddonOutput:
    """Replace the add-on's conflict set. Counterparts are updated to match."""
    service = AddonService(db)
    service.set_conflicts(addon_id, body.conflict_ids)
    return service.get_addon(addon_id)


@router.delete("/addons/{addon_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_addon(addon_id: int, db: Session = Depends(get_db)) -> None:
    AddonService(db).delete_addon(addon_id)

"""
Picklists router - dropdown values by category
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from pydantic import BaseModel

from database import get_db
from models import Picklist
from schemas_calls import ActingCredentials
from routers.acting import verify_acting
import permissions
import picklists

router = APIRouter()


class PicklistCreate(BaseModel):
    acting: ActingCredentials
    category: str
    value: str
    sort_order: int = 0


class PicklistUpdate(BaseModel):
    acting: ActingCredentials
    value: Optional[str] = None
    sort_order: Optional[int] = None
    active: Optional[bool] = None


class ActingOnly(BaseModel):
    acting: ActingCredentials


def item_to_dict(item: Picklist) -> dict:
    return {
        "id": item.id,
        "category": item.category,
        "value": item.value,
        "sort_order": item.sort_order,
        "active": bool(item.active),
    }


@router.get("/categories")
async def list_categories(db: Session = Depends(get_db)):
    return {"categories": picklists.get_categories(db)}


@router.get("/category/{category}")
async def list_category(
    category: str,
    include_inactive: bool = False,
    db: Session = Depends(get_db)
):
    """Active items for a dropdown; include_inactive for the admin screen"""
    if include_inactive:
        items = picklists.get_picklists_for_admin(db, category)
    else:
        items = picklists.get_picklist_by_category(db, category)
    return [item_to_dict(i) for i in items]


@router.post("", status_code=201)
async def create_item(data: PicklistCreate, db: Session = Depends(get_db)):
    admin = verify_acting(db, data.acting)
    item = permissions.create_picklist_item_as(db, admin, data.category, data.value, data.sort_order)
    return item_to_dict(item)


@router.put("/{item_id}")
async def update_item(item_id: int, data: PicklistUpdate, db: Session = Depends(get_db)):
    admin = verify_acting(db, data.acting)
    item = permissions.update_picklist_item_as(
        db, admin, item_id,
        **data.model_dump(exclude={'acting'}, exclude_unset=True),
    )
    return item_to_dict(item)


@router.delete("/{item_id}")
async def delete_item(item_id: int, data: ActingOnly, db: Session = Depends(get_db)):
    """Soft delete - item stays for historical calls"""
    admin = verify_acting(db, data.acting)
    item = permissions.delete_picklist_item_as(db, admin, item_id)
    return item_to_dict(item)

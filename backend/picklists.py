"""
Picklists - categorized dropdown values (apparatus, call_type, town...)

Items are deactivated, never removed: historical calls reference them.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from database import commit_or_rollback
from errors import NotFoundError
from models import Picklist

logger = logging.getLogger(__name__)


def get_picklist_by_category(db: Session, category: str) -> List[Picklist]:
    """Active items for a dropdown"""
    return db.query(Picklist).filter(
        Picklist.category == category,
        Picklist.active == True,
    ).order_by(Picklist.sort_order, Picklist.value).all()


def get_picklists_for_admin(db: Session, category: str) -> List[Picklist]:
    """All items including inactive"""
    return db.query(Picklist).filter(
        Picklist.category == category
    ).order_by(Picklist.sort_order, Picklist.value).all()


def get_categories(db: Session) -> List[str]:
    rows = db.query(Picklist.category).distinct().order_by(Picklist.category).all()
    return [category for (category,) in rows]


def get_picklist_item(db: Session, item_id: int) -> Optional[Picklist]:
    return db.query(Picklist).filter(Picklist.id == item_id).first()


def _require_item(db: Session, item_id: int) -> Picklist:
    item = get_picklist_item(db, item_id)
    if not item:
        raise NotFoundError(f"Picklist item {item_id} not found")
    return item


def create_picklist_item(db: Session, category: str, value: str, sort_order: int = 0) -> Picklist:
    """Raises LedgerWriteError if (category, value) already exists"""
    item = Picklist(category=category, value=value, sort_order=sort_order, active=True)
    db.add(item)
    commit_or_rollback(db, f"create picklist item {category}/{value}")
    db.refresh(item)
    logger.info(f"Created picklist item {item.id} {category}/{value}")
    return item


def update_picklist_item(
    db: Session,
    item_id: int,
    value: Optional[str] = None,
    sort_order: Optional[int] = None,
    active: Optional[bool] = None,
) -> Picklist:
    """Category is fixed once created"""
    item = _require_item(db, item_id)
    if value is not None:
        item.value = value
    if sort_order is not None:
        item.sort_order = sort_order
    if active is not None:
        item.active = active
    commit_or_rollback(db, f"update picklist item {item_id}")
    return item


def delete_picklist_item(db: Session, item_id: int) -> Picklist:
    """Soft delete"""
    item = _require_item(db, item_id)
    item.active = False
    commit_or_rollback(db, f"deactivate picklist item {item_id}")
    logger.info(f"Deactivated picklist item {item_id} ({item.category}/{item.value})")
    return item

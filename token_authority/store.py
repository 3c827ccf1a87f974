"""
Credential store helpers over a SQLAlchemy session.
find_by / create / update / delete on a model, keyed by attribute name.
Write helpers return False on a database error (after rolling back) instead of raising;
pass commit=False to stage several writes and commit them together.
"""
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def find_by(db: Session, model, field: str, value: Any, *, for_update: bool = False) -> list:
    """
    All rows of model whose attribute ``field`` equals ``value``, in insertion order.
    for_update=True row-locks them (SELECT ... FOR UPDATE) until the transaction ends;
    SQLite ignores the clause and serializes writers on its database lock instead.
    """
    column = getattr(model, field)
    query = db.query(model).filter(column == value).order_by(model.id)
    if for_update:
        query = query.with_for_update()
    return query.all()


def create(db: Session, model, record: dict, *, commit: bool = True) -> bool:
    try:
        db.add(model(**record))
        if commit:
            db.commit()
        else:
            db.flush()
        return True
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Failed to create %s row: %s", model.__tablename__, e)
        return False


def update(db: Session, model, fields: dict, key_field: str, key_value: Any, *, commit: bool = True) -> bool:
    """Set ``fields`` on every row matching key_field == key_value. False if nothing matched."""
    try:
        column = getattr(model, key_field)
        values = {getattr(model, name): value for name, value in fields.items()}
        count = db.query(model).filter(column == key_value).update(values, synchronize_session="fetch")
        if commit:
            db.commit()
        else:
            db.flush()
        return count > 0
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Failed to update %s where %s: %s", model.__tablename__, key_field, e)
        return False


def delete(db: Session, model, key_field: str, key_value: Any, *, commit: bool = True) -> bool:
    try:
        column = getattr(model, key_field)
        db.query(model).filter(column == key_value).delete(synchronize_session="fetch")
        if commit:
            db.commit()
        else:
            db.flush()
        return True
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Failed to delete from %s where %s: %s", model.__tablename__, key_field, e)
        return False

"""Catalog and instructor data access."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import ProductType
from ..core.exceptions import RepositoryException
from ..models.product import Instructor, Product
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ProductRepository(BaseRepository[Product]):
    def __init__(self, db: Session):
        super().__init__(db, Product)

    def list_all(self) -> List[Product]:
        try:
            return self.db.query(Product).order_by(Product.id.asc()).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing products: {str(e)}")
            raise RepositoryException(f"Failed to list products: {str(e)}")

    def list_by_type(self, product_type: ProductType) -> List[Product]:
        try:
            return (
                self.db.query(Product)
                .filter(Product.type == product_type.value)
                .order_by(Product.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing {product_type.value} products: {str(e)}")
            raise RepositoryException(f"Failed to list products: {str(e)}")

    def replace_all(self, rows: List[Dict[str, Any]]) -> List[Product]:
        """
        Delete the whole catalog and insert ``rows``.

        Does not commit; the caller wraps this in one transaction so the
        catalog is never observed half-replaced.
        """
        try:
            self.db.query(Product).delete(synchronize_session="fetch")
            self.db.flush()
            created = [self.create(**row) for row in rows]
            return created
        except SQLAlchemyError as e:
            self.logger.error(f"Error replacing products: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to replace products: {str(e)}") from e

    def set_overrides(self, product_id: int, overrides: List[Dict[str, Any]]) -> Optional[Product]:
        return self.update(product_id, overrides=list(overrides))


class InstructorRepository(BaseRepository[Instructor]):
    def __init__(self, db: Session):
        super().__init__(db, Instructor)

    def list_all(self) -> List[Instructor]:
        try:
            return self.db.query(Instructor).order_by(Instructor.id.asc()).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing instructors: {str(e)}")
            raise RepositoryException(f"Failed to list instructors: {str(e)}")

# backend/alma_studio/services/product_service.py
"""
Product Service for the booking backend.

Catalog edits that touch several rows run inside one transaction so a
reader never sees a half-replaced catalog or an instructor deleted while
rules still point at them.
"""

from datetime import date
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.enums import ProductType
from ..core.exceptions import NotFoundException, ValidationException
from ..repositories.factory import RepositoryFactory
from ..schemas.product import InstructorRead, ProductRead, ProductWrite
from ..schemas.slot import OverrideSession
from .base import BaseService
from .recurrence import resolve_override_update

logger = logging.getLogger(__name__)


class ProductService(BaseService):
    """Catalog reads, override authoring and multi-row catalog writes."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.product_repository = RepositoryFactory.create_product_repository(db)
        self.instructor_repository = RepositoryFactory.create_instructor_repository(db)

    def list_products(self) -> List[ProductRead]:
        return [ProductRead.model_validate(row) for row in self.product_repository.list_all()]

    def get_product(self, product_id: int) -> ProductRead:
        row = self.product_repository.get_by_id(product_id)
        if row is None:
            raise NotFoundException(f"Product {product_id} not found", code="PRODUCT_NOT_FOUND")
        return ProductRead.model_validate(row)

    def list_instructors(self) -> List[InstructorRead]:
        return [InstructorRead.model_validate(row) for row in self.instructor_repository.list_all()]

    @BaseService.measure_operation("save_overrides")
    def save_overrides(
        self,
        product_id: int,
        override_date: date,
        sessions: Optional[List[OverrideSession]],
    ) -> ProductRead:
        """
        Set, replace or clear the override of one date.

        ``sessions=None`` cancels the date. A list equal to what the weekly
        rules already produce removes the override instead of storing it.
        """
        product = self.get_product(product_id)
        if product.type != ProductType.INTRODUCTORY_CLASS:
            raise ValidationException(
                "Overrides only apply to introductory classes", code="OVERRIDES_NOT_SUPPORTED"
            )
        overrides = resolve_override_update(product, override_date, sessions)
        with self.transaction():
            row = self.product_repository.set_overrides(
                product_id,
                [o.model_dump(mode="json") for o in sorted(overrides, key=lambda o: o.date)],
            )
        return ProductRead.model_validate(row)

    @BaseService.measure_operation("replace_products")
    def replace_products(self, products: List[ProductWrite]) -> List[ProductRead]:
        ids = [p.id for p in products]
        if len(ids) != len(set(ids)):
            raise ValidationException("Product ids must be unique", code="DUPLICATE_PRODUCT_ID")

        with self.transaction():
            rows = self.product_repository.replace_all(
                [{**p.model_dump(mode="json"), "price": p.price} for p in products]
            )
            result = [ProductRead.model_validate(row) for row in rows]
        self.logger.info(f"Replaced catalog with {len(result)} products")
        return result

    @BaseService.measure_operation("reassign_and_delete_instructor")
    def reassign_and_delete_instructor(self, instructor_id: int, replacement_id: int) -> int:
        """
        Point every introductory-class rule and override session of
        ``instructor_id`` at ``replacement_id``, then delete the instructor.

        Returns the number of products rewritten.
        """
        if instructor_id == replacement_id:
            raise ValidationException(
                "Replacement instructor must differ", code="SAME_INSTRUCTOR"
            )
        if self.instructor_repository.get_by_id(replacement_id) is None:
            raise NotFoundException(
                f"Instructor {replacement_id} not found", code="INSTRUCTOR_NOT_FOUND"
            )

        changed = 0
        with self.transaction():
            for row in self.product_repository.list_by_type(ProductType.INTRODUCTORY_CLASS):
                product = ProductRead.model_validate(row)
                touched = False

                rules = []
                for rule in product.scheduling_rules:
                    data = rule.model_dump(mode="json")
                    if rule.instructor_id == instructor_id:
                        data["instructor_id"] = replacement_id
                        data["id"] = None
                        touched = True
                    rules.append(data)

                overrides = []
                for override in product.overrides:
                    data = override.model_dump(mode="json")
                    for session in data.get("sessions") or []:
                        if session["instructor_id"] == instructor_id:
                            session["instructor_id"] = replacement_id
                            touched = True
                    overrides.append(data)

                if touched:
                    # Re-validate so rule ids are derived from the new instructor
                    rules = [
                        r.model_dump(mode="json")
                        for r in ProductRead.model_validate(
                            {**product.model_dump(mode="json"), "scheduling_rules": rules}
                        ).scheduling_rules
                    ]
                    self.product_repository.update(
                        product.id, scheduling_rules=rules, overrides=overrides
                    )
                    changed += 1

            self.instructor_repository.delete(instructor_id)

        self.logger.info(
            f"Reassigned instructor {instructor_id} to {replacement_id} on {changed} products"
        )
        return changed

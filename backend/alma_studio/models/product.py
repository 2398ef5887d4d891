"""Catalog products and the instructors who teach them."""

from sqlalchemy import JSON, Boolean, Column, Integer, Numeric, String, Text

from ..database import Base


class Product(Base):
    """
    A sellable studio product.

    ``scheduling_rules`` and ``overrides`` are only populated for
    introductory classes; ``classes`` only for class packages.
    """

    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    type = Column(String(50), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    classes = Column(Integer, nullable=True)
    price = Column(Numeric(10, 2), nullable=True)
    description = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    scheduling_rules = Column(JSON, nullable=True)
    overrides = Column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<Product {self.id} {self.type} {self.name!r}>"


class Instructor(Base):
    __tablename__ = "instructors"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    color_scheme = Column(String(50), nullable=True)

"""
Catalog and stock models

``products`` is owned by the catalog; the commerce core only reads it.
``product_stock`` holds the ledger counters and is only written through
conditional updates.
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, relationship

from .base import Base, TimestampMixin


class Product(Base, TimestampMixin):
    """Catalog product (read-only from the commerce side)"""

    __tablename__ = "products"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(14, 2), nullable=False)
    discount_percent = Column(Numeric(5, 2), nullable=False, default=0)
    category_id = Column(String(64), index=True)
    brand = Column(String(100), index=True)
    status = Column(String(20), nullable=False, default="active", index=True)

    stock: Mapped["ProductStock"] = relationship("ProductStock", back_populates="product", uselist=False)

    def __repr__(self):
        return f"<Product(id='{self.id}', name='{self.name}', price={self.price})>"


class ProductStock(Base, TimestampMixin):
    """Stock ledger counters, one row per product"""

    __tablename__ = "product_stock"

    product_id = Column(String(64), ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    on_hand = Column(Integer, nullable=False, default=0)
    reserved = Column(Integer, nullable=False, default=0)
    sold = Column(Integer, nullable=False, default=0)

    product: Mapped["Product"] = relationship("Product", back_populates="stock")

    __table_args__ = (
        CheckConstraint("on_hand >= 0", name="ck_product_stock_on_hand"),
        CheckConstraint("reserved >= 0", name="ck_product_stock_reserved"),
        CheckConstraint("reserved <= on_hand", name="ck_product_stock_reserved_le_on_hand"),
        CheckConstraint("sold >= 0", name="ck_product_stock_sold"),
    )

    def __repr__(self):
        return (
            f"<ProductStock(product_id='{self.product_id}', on_hand={self.on_hand}, "
            f"reserved={self.reserved}, sold={self.sold})>"
        )

"""Product model (read-only inventory used for serial number lookup)."""
import enum
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, DateTime, Index
from sqlalchemy.sql import func
from salesdesk.database import Base


class ProductStatus(str, enum.Enum):
    """Stock status of a product."""
    ACTIVE = 'active'
    INACTIVE = 'inactive'
    OUT_OF_STOCK = 'out_of_stock'


class Product(Base):
    """Product model."""

    __tablename__ = 'product'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    serial_number = Column(String(120), nullable=True, unique=True)
    sku = Column(String(120), nullable=True)
    brand = Column(String(120), nullable=True)
    price = Column(Numeric(12, 2), nullable=False, default=0, server_default='0')
    stock = Column(Integer, nullable=False, default=0, server_default='0')
    status = Column(String(20), nullable=False, default=ProductStatus.ACTIVE.value, server_default='active')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('ix_product_sku', 'sku'),
        Index('ix_product_status', 'status'),
    )

    @property
    def in_stock(self):
        return (self.stock or 0) > 0 and self.status == ProductStatus.ACTIVE.value

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'serialNumber': self.serial_number,
            'sku': self.sku,
            'brand': self.brand,
            'price': float(self.price or 0),
            'stock': self.stock,
            'status': self.status,
            'inStock': self.in_stock,
        }

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', serial_number='{self.serial_number}')>"

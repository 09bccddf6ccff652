"""Sale Item model."""
from sqlalchemy import Column, BigInteger, Integer, String, Text, Numeric, Boolean, DateTime, ForeignKey, CheckConstraint, false
from sqlalchemy.orm import relationship
from salesdesk.database import Base


class SaleItem(Base):
    """
    Sale Item - a serialized unit (or units) sold within a sale.

    product_name and price are snapshots taken at sale time; product_id is a
    loose reference to inventory and may point nowhere.
    """

    __tablename__ = 'sale_item'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    sale_id = Column(BigInteger, ForeignKey('sale.id', ondelete='CASCADE'), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    product_id = Column(BigInteger, nullable=True)
    serial_number = Column(String(120), nullable=False, index=True)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    price = Column(Numeric(12, 2), nullable=False)

    is_returned = Column(Boolean, nullable=False, default=False, server_default=false())
    return_date = Column(DateTime(timezone=True), nullable=True)
    return_reason = Column(Text, nullable=True)

    # Relationships
    sale = relationship('Sale', back_populates='items')

    __table_args__ = (
        CheckConstraint('quantity >= 1', name='ck_sale_item_quantity_positive'),
        CheckConstraint('price >= 0', name='ck_sale_item_price_non_negative'),
    )

    @property
    def line_total(self):
        return self.price * self.quantity

    def to_dict(self):
        return {
            'productId': self.product_id,
            'serialNumber': self.serial_number,
            'productName': self.product_name,
            'quantity': self.quantity,
            'price': float(self.price or 0),
            'isReturned': bool(self.is_returned),
            'returnDate': self.return_date.isoformat() if self.return_date else None,
            'returnReason': self.return_reason,
        }

    def __repr__(self):
        return f"<SaleItem(id={self.id}, serial_number='{self.serial_number}', qty={self.quantity})>"

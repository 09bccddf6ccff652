"""Sale Payment model for partial payments."""
from datetime import datetime
from sqlalchemy import Column, BigInteger, Integer, String, Text, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from salesdesk.database import Base


class SalePayment(Base):
    """
    Sale Payment - Individual payment for a sale.

    Payments are append-only: a sale accumulates them until it is paid off.
    """

    __tablename__ = 'sale_payment'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    sale_id = Column(BigInteger, ForeignKey('sale.id', ondelete='CASCADE'), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    amount = Column(Numeric(12, 2), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False, default=datetime.now)
    method = Column(String(30), nullable=False, default='cash')
    notes = Column(Text, nullable=True)

    # Relationships
    sale = relationship('Sale', back_populates='payments')

    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_sale_payment_amount_positive'),
    )

    def to_dict(self):
        return {
            'amount': float(self.amount or 0),
            'date': self.date.isoformat() if self.date else None,
            'method': self.method,
            'notes': self.notes,
        }

    def __repr__(self):
        return f"<SalePayment(id={self.id}, sale_id={self.sale_id}, method={self.method}, amount={self.amount})>"

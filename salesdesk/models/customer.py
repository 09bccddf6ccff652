"""Customer model."""
from decimal import Decimal
from sqlalchemy import Column, BigInteger, Integer, String, Text, Numeric, DateTime, Index
from sqlalchemy.sql import func
from salesdesk.database import Base


class Customer(Base):
    """Customer (cliente) with running purchase totals."""

    __tablename__ = 'customer'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    # Denormalized totals, adjusted whenever an attributed sale is created or deleted
    total_purchases = Column(Integer, nullable=False, default=0, server_default='0')
    total_spent = Column(Numeric(12, 2), nullable=False, default=Decimal('0'), server_default='0')

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('ix_customer_name', 'name'),
        Index('ix_customer_phone', 'phone'),
        Index('ix_customer_email', 'email'),
        Index('ix_customer_total_spent', 'total_spent'),
        Index('ix_customer_total_purchases', 'total_purchases'),
        Index('ix_customer_created_at', 'created_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'phone': self.phone,
            'email': self.email,
            'address': self.address,
            'notes': self.notes,
            'totalPurchases': self.total_purchases or 0,
            'totalSpent': float(self.total_spent or 0),
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.name}', total_purchases={self.total_purchases})>"

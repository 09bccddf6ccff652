"""Sale model."""
from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, BigInteger, Integer, String, Text, Numeric, DateTime, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from salesdesk.database import Base
import enum


class SaleStatus(str, enum.Enum):
    """Combined sale status exposed to callers."""
    PENDING = 'pending'
    PARTIAL = 'partial'
    PAID = 'paid'
    RETURNED = 'returned'


class PaymentStatus(str, enum.Enum):
    """Payment progress of a sale."""
    PENDING = 'pending'
    PARTIAL = 'partial'
    PAID = 'paid'


class ReturnStatus(str, enum.Enum):
    """How many of the sale's items have been returned."""
    NONE = 'none'
    PARTIAL = 'partial'
    RETURNED = 'returned'


def derive_payment_status(total_amount: Decimal, paid_amount: Decimal) -> PaymentStatus:
    """Payment status from the amount paid against the sale total."""
    if paid_amount == 0:
        return PaymentStatus.PENDING
    if paid_amount >= total_amount:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


def derive_return_status(items) -> ReturnStatus:
    """Return status from the items' returned flags."""
    returned = sum(1 for item in items if item.is_returned)
    if items and returned == len(items):
        return ReturnStatus.RETURNED
    if returned:
        return ReturnStatus.PARTIAL
    return ReturnStatus.NONE


def combine_status(payment_status: PaymentStatus, return_status: ReturnStatus) -> SaleStatus:
    """
    Combined status shown to callers.

    A sale whose items were all returned reports 'returned' even when it was
    fully paid; otherwise the payment status is shown.
    """
    if return_status == ReturnStatus.RETURNED:
        return SaleStatus.RETURNED
    return SaleStatus(payment_status.value)


class Sale(Base):
    """
    Sale (venta) with line items and payments.

    total_amount is fixed when the sale is created. paid_amount,
    remaining_amount and the status fields are derived from the payments and
    items by recalculate(), which every mutation path must call.
    """

    __tablename__ = 'sale'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)

    # Loose reference: deleting a customer leaves its sales in place
    customer_id = Column(BigInteger, nullable=False)
    customer_name = Column(String(200), nullable=False)

    total_amount = Column(Numeric(12, 2), nullable=False)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=Decimal('0'), server_default='0')
    remaining_amount = Column(Numeric(12, 2), nullable=False, default=Decimal('0'), server_default='0')

    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    return_status = Column(String(20), nullable=False, default=ReturnStatus.NONE.value)
    status = Column(String(20), nullable=False, default=SaleStatus.PENDING.value)

    notes = Column(Text, nullable=True)
    created_by = Column(String(64), nullable=True)
    sale_date = Column(DateTime(timezone=True), nullable=False, default=datetime.now)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Optimistic lock: every UPDATE of the row checks and bumps this counter
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    items = relationship(
        'SaleItem', back_populates='sale',
        cascade='all, delete-orphan', order_by='SaleItem.position'
    )
    payments = relationship(
        'SalePayment', back_populates='sale',
        cascade='all, delete-orphan', order_by='SalePayment.position'
    )

    __mapper_args__ = {'version_id_col': version}

    __table_args__ = (
        Index('ix_sale_customer_id', 'customer_id'),
        Index('ix_sale_customer_name', 'customer_name'),
        Index('ix_sale_status', 'status'),
        Index('ix_sale_sale_date', 'sale_date'),
        Index('ix_sale_created_by', 'created_by'),
        Index('ix_sale_created_at', 'created_at'),
        Index('ix_sale_total_amount', 'total_amount'),
        Index('ix_sale_remaining_amount', 'remaining_amount'),
        Index('ix_sale_customer_id_sale_date', 'customer_id', 'sale_date'),
        Index('ix_sale_status_sale_date', 'status', 'sale_date'),
        Index('ix_sale_created_by_sale_date', 'created_by', 'sale_date'),
    )

    @property
    def is_fully_returned(self):
        return self.return_status == ReturnStatus.RETURNED.value

    def recalculate(self):
        """Re-derive paid/remaining amounts and statuses from payments and items."""
        total = Decimal(str(self.total_amount or 0))
        paid = sum((Decimal(str(p.amount)) for p in self.payments), Decimal('0'))

        payment_status = derive_payment_status(total, paid)
        return_status = derive_return_status(self.items)

        self.paid_amount = paid
        self.remaining_amount = total - paid
        self.payment_status = payment_status.value
        self.return_status = return_status.value
        self.status = combine_status(payment_status, return_status).value

    def touch(self):
        """Mark the row as modified so the version check always runs."""
        self.updated_at = datetime.now()

    def to_dict(self):
        return {
            'id': self.id,
            'customerId': self.customer_id,
            'customerName': self.customer_name,
            'items': [item.to_dict() for item in self.items],
            'payments': [payment.to_dict() for payment in self.payments],
            'totalAmount': float(self.total_amount or 0),
            'paidAmount': float(self.paid_amount or 0),
            'remainingAmount': float(self.remaining_amount or 0),
            'status': self.status,
            'paymentStatus': self.payment_status,
            'returnStatus': self.return_status,
            'notes': self.notes,
            'createdBy': self.created_by,
            'saleDate': self.sale_date.isoformat() if self.sale_date else None,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Sale(id={self.id}, total={self.total_amount}, status={self.status})>"

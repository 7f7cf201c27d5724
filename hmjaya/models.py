# hmjaya/models.py
from __future__ import annotations

import enum
from datetime import date, datetime, timezone

from flask_login import UserMixin
from sqlalchemy import Enum as SAEnum

from .constants.roles import SALES
from .extensions import db


# Naive UTC everywhere: DB columns are "timestamp without time zone".
def utcnow_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _status_enum(enum_cls, name: str):
    # Stored as VARCHAR + CHECK so SQLite (tests) and Postgres behave the same
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda enum_cls: [e.value for e in enum_cls],
        native_enum=False,
        length=30,
    )


# =========================================================
# Status enums
# =========================================================
class OrderStatus(enum.Enum):
    NEW = "NEW"
    PENDING_CONFIRMATION = "PENDING_CONFIRMATION"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PurchaseOrderStatus(enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    READY_FOR_DELIVERY = "READY_FOR_DELIVERY"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class InvoiceStatus(enum.Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    PAID = "PAID"
    COMPLETED = "COMPLETED"
    OVERDUE = "OVERDUE"  # derived at read time, never stored
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"


class PaymentStatus(enum.Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"
    OVERPAID = "OVERPAID"


class InvoiceType(enum.Enum):
    PRODUCT = "PRODUCT"
    SERVICE = "SERVICE"


class DiscountType(enum.Enum):
    AMOUNT = "AMOUNT"
    PERCENTAGE = "PERCENTAGE"


class PaidStatus(enum.Enum):
    """Status of a single payment record."""
    PENDING = "PENDING"
    CLEARED = "CLEARED"
    CANCELED = "CANCELED"
    REJECTED = "REJECTED"


class PaymentMethod(enum.Enum):
    CASH = "CASH"
    TRANSFER_BANK = "TRANSFER_BANK"
    CEK = "CEK"


class DeliveryStatus(enum.Enum):
    PENDING = "PENDING"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"


class SwapStatus(enum.Enum):
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class SwapItemKind(enum.Enum):
    OLD = "OLD"
    REPLACEMENT = "REPLACEMENT"


class StockMovementType(enum.Enum):
    SALES_OUT = "SALES_OUT"
    RETURN_IN = "RETURN_IN"
    SWAP_OUT = "SWAP_OUT"
    SWAP_IN = "SWAP_IN"
    ADJUSTMENT = "ADJUSTMENT"


# =========================================================
# Lifecycle transitions
# =========================================================
ALLOWED_TRANSITIONS = {
    OrderStatus.NEW: {
        OrderStatus.PENDING_CONFIRMATION, OrderStatus.PROCESSING, OrderStatus.CANCELLED,
    },
    OrderStatus.PENDING_CONFIRMATION: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),

    PurchaseOrderStatus.PENDING: {PurchaseOrderStatus.PROCESSING, PurchaseOrderStatus.CANCELLED},
    PurchaseOrderStatus.PROCESSING: {
        PurchaseOrderStatus.PENDING,  # its invoice was deleted
        PurchaseOrderStatus.READY_FOR_DELIVERY,
        PurchaseOrderStatus.COMPLETED,
        PurchaseOrderStatus.CANCELLED,
    },
    PurchaseOrderStatus.READY_FOR_DELIVERY: {PurchaseOrderStatus.COMPLETED, PurchaseOrderStatus.CANCELLED},
    PurchaseOrderStatus.COMPLETED: set(),
    PurchaseOrderStatus.CANCELLED: set(),

    InvoiceStatus.DRAFT: {InvoiceStatus.SENT, InvoiceStatus.PAID, InvoiceStatus.CANCELLED},
    InvoiceStatus.SENT: {
        InvoiceStatus.DELIVERED, InvoiceStatus.PAID, InvoiceStatus.COMPLETED,
        InvoiceStatus.RETURNED, InvoiceStatus.CANCELLED,
    },
    InvoiceStatus.DELIVERED: {InvoiceStatus.COMPLETED, InvoiceStatus.RETURNED, InvoiceStatus.CANCELLED},
    InvoiceStatus.PAID: {
        InvoiceStatus.SENT,  # a payment was withdrawn
        InvoiceStatus.COMPLETED, InvoiceStatus.RETURNED, InvoiceStatus.CANCELLED,
    },
    InvoiceStatus.RETURNED: {InvoiceStatus.SENT, InvoiceStatus.PAID, InvoiceStatus.CANCELLED},
    InvoiceStatus.COMPLETED: set(),
    InvoiceStatus.CANCELLED: set(),

    PaidStatus.PENDING: {PaidStatus.CLEARED, PaidStatus.REJECTED, PaidStatus.CANCELED},
    PaidStatus.CLEARED: {PaidStatus.CANCELED},
    PaidStatus.REJECTED: set(),
    PaidStatus.CANCELED: set(),

    DeliveryStatus.PENDING: {
        DeliveryStatus.IN_TRANSIT, DeliveryStatus.DELIVERED,
        DeliveryStatus.RETURNED, DeliveryStatus.CANCELLED,
    },
    DeliveryStatus.IN_TRANSIT: {DeliveryStatus.DELIVERED, DeliveryStatus.RETURNED, DeliveryStatus.CANCELLED},
    DeliveryStatus.DELIVERED: set(),
    DeliveryStatus.RETURNED: set(),
    DeliveryStatus.CANCELLED: set(),
}


def can_transition(current, target) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def is_terminal(status) -> bool:
    return not ALLOWED_TRANSITIONS.get(status)


# =========================================================
# User model (Authentication + Roles)
# =========================================================
class User(UserMixin, db.Model):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(30), nullable=True)

    password_hash = db.Column(db.String(255), nullable=False)

    # OWNER / ADMIN / SALES / WAREHOUSE / HELPER / KEUANGAN
    role = db.Column(db.String(20), nullable=False, default=SALES)

    # Account lifecycle / security
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    must_change_password = db.Column(db.Boolean, nullable=False, default=False)
    password_changed_at = db.Column(db.DateTime, nullable=True)

    failed_login_attempts = db.Column(db.Integer, default=0, nullable=False)
    locked_until = db.Column(db.DateTime, nullable=True)
    last_login_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    __table_args__ = (
        db.UniqueConstraint("email", name="user_email_key"),
    )

    def __repr__(self) -> str:
        return f"<User {self.id} {self.email} {self.role}>"


# =========================================================
# Master data
# =========================================================
class Customer(db.Model):
    __tablename__ = "customer"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(40), nullable=False)
    name = db.Column(db.String(160), nullable=False)
    email = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(30), nullable=True)
    address = db.Column(db.String(255), nullable=False)
    city = db.Column(db.String(80), nullable=False)

    # GPS from field visits (optional)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    __table_args__ = (
        db.UniqueConstraint("code", name="customer_code_key"),
    )

    def __repr__(self) -> str:
        return f"<Customer {self.id} {self.code}>"


class Category(db.Model):
    __tablename__ = "category"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(40), nullable=False, unique=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)


class Tax(db.Model):
    __tablename__ = "tax"

    id = db.Column(db.Integer, primary_key=True)
    # Percent as entered, e.g. "11" for PPN 11%
    nominal = db.Column(db.String(10), nullable=False)
    notes = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    @property
    def percentage(self) -> float:
        try:
            return float(self.nominal)
        except (TypeError, ValueError):
            return 0.0

    def __repr__(self) -> str:
        return f"<Tax {self.id} {self.nominal}% active={self.is_active}>"


class Product(db.Model):
    __tablename__ = "product"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(40), nullable=False, unique=True)
    name = db.Column(db.String(160), nullable=False)
    description = db.Column(db.Text, nullable=True)
    unit = db.Column(db.String(20), nullable=False)

    price = db.Column(db.Float, nullable=False, default=0.0)          # base price, before tax
    cost = db.Column(db.Float, nullable=False, default=0.0)
    selling_price = db.Column(db.Float, nullable=True)               # price incl. tax, rounded up

    min_stock = db.Column(db.Integer, nullable=False, default=0)
    max_stock = db.Column(db.Integer, nullable=False, default=0)
    current_stock = db.Column(db.Integer, nullable=False, default=0)
    bottles_per_crate = db.Column(db.Integer, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    category_id = db.Column(db.Integer, db.ForeignKey("category.id"), nullable=False, index=True)
    category = db.relationship("Category", foreign_keys=[category_id], lazy="joined")

    tax_id = db.Column(db.Integer, db.ForeignKey("tax.id", ondelete="SET NULL"), nullable=True)
    tax = db.relationship("Tax", foreign_keys=[tax_id])

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    def __repr__(self) -> str:
        return f"<Product {self.id} {self.code} stock={self.current_stock}>"


class CompanyProfile(db.Model):
    __tablename__ = "company_profile"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(40), nullable=False, unique=True)
    name = db.Column(db.String(160), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(80), nullable=True)
    phone = db.Column(db.String(30), nullable=True)
    email = db.Column(db.String(120), nullable=True)
    owner = db.Column(db.String(120), nullable=True)

    bank_name = db.Column(db.String(80), nullable=True)
    bank_account = db.Column(db.String(60), nullable=True)
    account_name = db.Column(db.String(120), nullable=True)
    bank_name_2 = db.Column(db.String(80), nullable=True)
    bank_account_2 = db.Column(db.String(60), nullable=True)
    account_name_2 = db.Column(db.String(120), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)


# =========================================================
# Orders (sales) -> Purchase Orders (fulfilment)
# =========================================================
class Order(db.Model):
    __tablename__ = "order"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(40), nullable=False, unique=True)
    order_date = db.Column(db.Date, nullable=False, default=date.today)

    customer_id = db.Column(db.Integer, db.ForeignKey("customer.id"), nullable=False, index=True)
    customer = db.relationship("Customer", foreign_keys=[customer_id], lazy="joined")

    sales_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    sales = db.relationship("User", foreign_keys=[sales_id])

    status = db.Column(_status_enum(OrderStatus, "order_status"), nullable=False, default=OrderStatus.NEW)
    requires_confirmation = db.Column(db.Boolean, nullable=False, default=False)

    subtotal = db.Column(db.Float, nullable=False, default=0.0)
    discount = db.Column(db.Float, nullable=False, default=0.0)
    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    notes = db.Column(db.Text, nullable=True)

    confirmed_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    canceled_at = db.Column(db.DateTime, nullable=True)
    cancel_reason = db.Column(db.Text, nullable=True)

    items = db.relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    purchase_order = db.relationship("PurchaseOrder", back_populates="order", uselist=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    def __repr__(self) -> str:
        return f"<Order {self.id} {self.code} {self.status}>"


class OrderItem(db.Model):
    __tablename__ = "order_item"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("order.id", ondelete="CASCADE"), nullable=False)
    order = db.relationship("Order", back_populates="items")

    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False)
    product = db.relationship("Product", lazy="joined")

    quantity = db.Column(db.Integer, nullable=False, default=1)
    price = db.Column(db.Float, nullable=False, default=0.0)
    discount = db.Column(db.Float, nullable=False, default=0.0)
    total_price = db.Column(db.Float, nullable=False, default=0.0)


class PurchaseOrder(db.Model):
    __tablename__ = "purchase_order"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(40), nullable=False, unique=True)
    po_date = db.Column(db.Date, nullable=False, default=date.today)
    payment_deadline = db.Column(db.Date, nullable=True)

    order_id = db.Column(db.Integer, db.ForeignKey("order.id"), nullable=False, unique=True)
    order = db.relationship("Order", back_populates="purchase_order")

    creator_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    creator = db.relationship("User", foreign_keys=[creator_id])

    status = db.Column(
        _status_enum(PurchaseOrderStatus, "purchase_order_status"),
        nullable=False,
        default=PurchaseOrderStatus.PENDING,
    )

    subtotal = db.Column(db.Float, nullable=False, default=0.0)
    discount = db.Column(db.Float, nullable=False, default=0.0)
    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    notes = db.Column(db.Text, nullable=True)

    items = db.relationship("PurchaseOrderItem", back_populates="purchase_order", cascade="all, delete-orphan")
    invoices = db.relationship("Invoice", back_populates="purchase_order")

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    def __repr__(self) -> str:
        return f"<PurchaseOrder {self.id} {self.code} {self.status}>"


class PurchaseOrderItem(db.Model):
    __tablename__ = "purchase_order_item"

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(
        db.Integer, db.ForeignKey("purchase_order.id", ondelete="CASCADE"), nullable=False
    )
    purchase_order = db.relationship("PurchaseOrder", back_populates="items")

    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False)
    product = db.relationship("Product", lazy="joined")

    quantity = db.Column(db.Integer, nullable=False, default=1)
    price = db.Column(db.Float, nullable=False, default=0.0)
    discount = db.Column(db.Float, nullable=False, default=0.0)
    total_price = db.Column(db.Float, nullable=False, default=0.0)


# =========================================================
# Invoice
# =========================================================
class Invoice(db.Model):
    __tablename__ = "invoice"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(40), nullable=False, unique=True)

    invoice_date = db.Column(db.Date, nullable=False, default=date.today)
    due_date = db.Column(db.Date, nullable=True)

    type = db.Column(_status_enum(InvoiceType, "invoice_type"), nullable=False, default=InvoiceType.PRODUCT)
    use_delivery_note = db.Column(db.Boolean, nullable=False, default=False)

    status = db.Column(_status_enum(InvoiceStatus, "invoice_status"), nullable=False, default=InvoiceStatus.DRAFT)
    payment_status = db.Column(
        _status_enum(PaymentStatus, "invoice_payment_status"),
        nullable=False,
        default=PaymentStatus.UNPAID,
    )

    customer_id = db.Column(db.Integer, db.ForeignKey("customer.id"), nullable=True, index=True)
    customer = db.relationship("Customer", foreign_keys=[customer_id], lazy="joined")

    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_order.id"), nullable=True, index=True)
    purchase_order = db.relationship("PurchaseOrder", back_populates="invoices")

    # Totals
    subtotal = db.Column(db.Float, nullable=False, default=0.0)
    discount = db.Column(db.Float, nullable=False, default=0.0)
    discount_type = db.Column(_status_enum(DiscountType, "discount_type"), nullable=False, default=DiscountType.AMOUNT)
    tax_percentage = db.Column(db.Float, nullable=False, default=0.0)
    tax_amount = db.Column(db.Float, nullable=False, default=0.0)
    shipping_cost = db.Column(db.Float, nullable=False, default=0.0)
    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    paid_amount = db.Column(db.Float, nullable=False, default=0.0)
    remaining_amount = db.Column(db.Float, nullable=False, default=0.0)

    notes = db.Column(db.Text, nullable=True)

    # True while the invoiced goods are booked out of stock
    stock_committed = db.Column(db.Boolean, nullable=False, default=False)
    allow_redelivery = db.Column(db.Boolean, nullable=False, default=False)

    # Cancellation
    is_canceled = db.Column(db.Boolean, nullable=False, default=False)
    canceled_at = db.Column(db.DateTime, nullable=True)
    cancel_reason = db.Column(db.Text, nullable=True)
    canceled_by_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    canceled_by = db.relationship("User", foreign_keys=[canceled_by_id])

    created_by_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    created_by = db.relationship("User", foreign_keys=[created_by_id])

    items = db.relationship(
        "InvoiceItem", back_populates="invoice", cascade="all, delete-orphan", order_by="InvoiceItem.id"
    )
    payments = db.relationship("Payment", back_populates="invoice", order_by="Payment.id")
    deliveries = db.relationship("Delivery", back_populates="invoice", order_by="Delivery.id")
    delivery_note = db.relationship("DeliveryNote", back_populates="invoice", uselist=False)
    swaps = db.relationship("Swap", back_populates="invoice", order_by="Swap.id")

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    @property
    def latest_delivery(self):
        return self.deliveries[-1] if self.deliveries else None

    def __repr__(self) -> str:
        return f"<Invoice {self.id} {self.code} {self.status}/{self.payment_status}>"


class InvoiceItem(db.Model):
    __tablename__ = "invoice_item"

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoice.id", ondelete="CASCADE"), nullable=False)
    invoice = db.relationship("Invoice", back_populates="items")

    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False)
    product = db.relationship("Product", lazy="joined")

    quantity = db.Column(db.Integer, nullable=False, default=1)
    price = db.Column(db.Float, nullable=False, default=0.0)
    discount = db.Column(db.Float, nullable=False, default=0.0)
    discount_type = db.Column(_status_enum(DiscountType, "item_discount_type"), nullable=False, default=DiscountType.AMOUNT)
    total_price = db.Column(db.Float, nullable=False, default=0.0)


# =========================================================
# Payment
# =========================================================
class Payment(db.Model):
    __tablename__ = "payment"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(40), nullable=False, unique=True)
    payment_date = db.Column(db.Date, nullable=False, default=date.today)

    amount = db.Column(db.Float, nullable=False)
    method = db.Column(_status_enum(PaymentMethod, "payment_method"), nullable=False, default=PaymentMethod.CASH)
    status = db.Column(_status_enum(PaidStatus, "paid_status"), nullable=False, default=PaidStatus.PENDING)

    reference = db.Column(db.String(120), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    proof_url = db.Column(db.String(500), nullable=True)

    # Bank transfer
    bank_name = db.Column(db.String(80), nullable=True)
    account_number = db.Column(db.String(60), nullable=True)
    account_holder = db.Column(db.String(120), nullable=True)
    # Cheque (CEK)
    check_number = db.Column(db.String(60), nullable=True)
    check_bank = db.Column(db.String(80), nullable=True)
    check_due_date = db.Column(db.Date, nullable=True)

    invoice_id = db.Column(db.Integer, db.ForeignKey("invoice.id"), nullable=False, index=True)
    invoice = db.relationship("Invoice", back_populates="payments")

    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    user = db.relationship("User", foreign_keys=[user_id])

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    def __repr__(self) -> str:
        return f"<Payment {self.id} {self.code} {self.amount} {self.status}>"


# =========================================================
# Delivery (pengiriman) + Delivery Note (surat jalan)
# =========================================================
class Delivery(db.Model):
    __tablename__ = "delivery"

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoice.id"), nullable=False, index=True)
    invoice = db.relationship("Invoice", back_populates="deliveries")

    helper_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    helper = db.relationship("User", foreign_keys=[helper_id])

    status = db.Column(_status_enum(DeliveryStatus, "delivery_status"), nullable=False, default=DeliveryStatus.PENDING)
    delivery_date = db.Column(db.Date, nullable=False, default=date.today)
    delivered_at = db.Column(db.DateTime, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    return_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)


class DeliveryNote(db.Model):
    __tablename__ = "delivery_note"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(40), nullable=False, unique=True)
    delivery_date = db.Column(db.Date, nullable=False, default=date.today)
    driver_name = db.Column(db.String(120), nullable=False)
    vehicle_number = db.Column(db.String(30), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    # One note per invoice, enforced in the DB as well
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoice.id"), nullable=False, unique=True)
    invoice = db.relationship("Invoice", back_populates="delivery_note")

    customer_id = db.Column(db.Integer, db.ForeignKey("customer.id"), nullable=False)
    customer = db.relationship("Customer", foreign_keys=[customer_id])

    warehouse_user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    warehouse_user = db.relationship("User", foreign_keys=[warehouse_user_id])

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    def __repr__(self) -> str:
        return f"<DeliveryNote {self.id} {self.code} invoice={self.invoice_id}>"


# =========================================================
# Swap (tukar guling)
# =========================================================
class Swap(db.Model):
    __tablename__ = "swap"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(40), nullable=False, unique=True)
    swap_date = db.Column(db.Date, nullable=False, default=date.today)
    deadline = db.Column(db.Date, nullable=True)

    invoice_id = db.Column(db.Integer, db.ForeignKey("invoice.id"), nullable=False, index=True)
    invoice = db.relationship("Invoice", back_populates="swaps")

    status = db.Column(_status_enum(SwapStatus, "swap_status"), nullable=False, default=SwapStatus.COMPLETED)
    base_total = db.Column(db.Float, nullable=False, default=0.0)   # invoice total before the swap
    difference = db.Column(db.Float, nullable=False, default=0.0)   # replacement value - returned value
    notes = db.Column(db.Text, nullable=True)

    created_by_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    created_by = db.relationship("User", foreign_keys=[created_by_id])

    items = db.relationship("SwapItem", back_populates="swap", cascade="all, delete-orphan", order_by="SwapItem.id")

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)


class SwapItem(db.Model):
    __tablename__ = "swap_item"

    id = db.Column(db.Integer, primary_key=True)
    swap_id = db.Column(db.Integer, db.ForeignKey("swap.id", ondelete="CASCADE"), nullable=False)
    swap = db.relationship("Swap", back_populates="items")

    group_no = db.Column(db.Integer, nullable=False, default=1)
    kind = db.Column(_status_enum(SwapItemKind, "swap_item_kind"), nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False)
    product = db.relationship("Product", lazy="joined")

    quantity = db.Column(db.Integer, nullable=False)
    unit_value = db.Column(db.Float, nullable=False, default=0.0)     # cost (OLD) or selling price (REPLACEMENT)
    invoice_price = db.Column(db.Float, nullable=False, default=0.0)  # price on the invoice line
    # OLD rows: the share of the line discount taken with these units
    discount = db.Column(db.Float, nullable=False, default=0.0)
    discount_type = db.Column(_status_enum(DiscountType, "swap_item_discount_type"), nullable=False, default=DiscountType.AMOUNT)


# =========================================================
# Stock movements
# =========================================================
class StockMovement(db.Model):
    __tablename__ = "stock_movement"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    product = db.relationship("Product")

    type = db.Column(_status_enum(StockMovementType, "stock_movement_type"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)
    reference = db.Column(db.String(80), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    user = db.relationship("User", foreign_keys=[user_id])

    movement_date = db.Column(db.DateTime, nullable=False, default=utcnow_naive)


# =========================================================
# Field visits + sales targets
# =========================================================
class FieldVisit(db.Model):
    __tablename__ = "field_visit"

    id = db.Column(db.Integer, primary_key=True)
    sales_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    sales = db.relationship("User", foreign_keys=[sales_id], lazy="joined")

    customer_id = db.Column(db.Integer, db.ForeignKey("customer.id"), nullable=False)
    customer = db.relationship("Customer", foreign_keys=[customer_id], lazy="joined")

    visit_purpose = db.Column(db.String(255), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    latitude = db.Column(db.Float, nullable=False, default=0.0)
    longitude = db.Column(db.Float, nullable=False, default=0.0)
    photos = db.Column(db.JSON, nullable=False, default=list)

    visit_date = db.Column(db.Date, nullable=False, default=date.today)
    check_in_time = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)


class SalesTarget(db.Model):
    __tablename__ = "sales_target"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    user = db.relationship("User", foreign_keys=[user_id], lazy="joined")

    period = db.Column(db.String(7), nullable=False)  # YYYY-MM
    target_amount = db.Column(db.Float, nullable=False)
    achieved_amount = db.Column(db.Float, nullable=False, default=0.0)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    __table_args__ = (
        db.UniqueConstraint("user_id", "period", name="sales_target_user_period_key"),
    )

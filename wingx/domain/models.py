from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import String, ForeignKey, Numeric, DateTime, Boolean, Text, JSON, Index, func
from datetime import datetime
from enum import Enum
from typing import Optional
import uuid

class OrderStatus(str, Enum):
    PENDING_VERIFICATION = "pending_verification"
    PAID = "paid"
    REJECTED = "rejected"

class Role(str, Enum):
    ADMIN = "admin"
    STORE = "store"
    USER = "user"

# Roles allowed to see payments, the store and the live order feed
PAYMENT_ROLES = frozenset({Role.ADMIN, Role.STORE})

def new_document_id() -> str:
    # 20 chars, same shape as the storefront's document ids
    return uuid.uuid4().hex[:20]

class Base(DeclarativeBase):
    pass

class User(Base):
    __tablename__ = "users"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    display_name: Mapped[str] = mapped_column(String(200))
    # Null for accounts created through Google sign-in
    password_hash: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    provider: Mapped[str] = mapped_column(String(20), default="password")
    role: Mapped[str] = mapped_column(String(20), default=Role.USER.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        # Backs the pending-verification live query
        Index("ix_orders_status_created_at", "status", "created_at"),
    )
    id: Mapped[str] = mapped_column(String(40), primary_key=True, default=new_document_id)
    total_price: Mapped[float] = mapped_column(Numeric(10, 2))
    # Customer snapshot taken by the storefront at checkout
    customer_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    customer_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    delivery_method: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    # Legacy orders only carry a free-text client name
    client_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    # Mobile payment proof
    origin_bank: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    origin_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    payer_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    reference_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    payment_date: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(30), default=OrderStatus.PENDING_VERIFICATION.value)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
        lazy="selectin",
    )

class OrderItem(Base):
    __tablename__ = "order_items"
    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"))
    position: Mapped[int] = mapped_column(default=0)
    # Store product_id as plain string (catalog documents live elsewhere)
    product_id: Mapped[str] = mapped_column(String(40))
    name: Mapped[str] = mapped_column(String(200))
    price: Mapped[float] = mapped_column(Numeric(10, 2))
    quantity: Mapped[int]
    selected_size: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    selected_color: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    order: Mapped[Order] = relationship("Order", back_populates="items")

class Product(Base):
    __tablename__ = "products"
    id: Mapped[str] = mapped_column(String(40), primary_key=True, default=new_document_id)
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text)
    price: Mapped[float] = mapped_column(Numeric(10, 2))
    # categories[0] is the main category, the rest are its subcategories
    categories: Mapped[list] = mapped_column(JSON, default=list)
    image_url: Mapped[str] = mapped_column(String(500), default="")
    images: Mapped[list] = mapped_column(JSON, default=list)
    sizes: Mapped[list] = mapped_column(JSON, default=list)
    gender: Mapped[str] = mapped_column(String(20), default="Unisex")
    featured: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

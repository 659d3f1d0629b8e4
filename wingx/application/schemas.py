from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Literal, Optional

from wingx.domain.models import Order

DeliveryMethod = Literal["pickup", "delivery", "shipment"]
Gender = Literal["Hombre", "Mujer", "Unisex"]
PermissionState = Literal["default", "granted", "denied"]

# ---- Orders ----

class CustomerInfo(BaseModel):
    name: str
    phone: str = ""
    address: str = ""
    email: Optional[str] = None
    delivery_method: DeliveryMethod = "pickup"

class PaymentProof(BaseModel):
    origin_bank: str
    origin_phone: str
    payer_id: str
    reference_number: str
    payment_date: str

class OrderItemCreate(BaseModel):
    product_id: str
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    selected_size: Optional[str] = None
    selected_color: Optional[str] = None

class OrderItemRead(OrderItemCreate):
    class Config:
        from_attributes = True

class OrderCreate(BaseModel):
    """Checkout payload as written by the storefront."""
    id: Optional[str] = None
    items: list[OrderItemCreate]
    total_price: float = Field(..., ge=0)
    customer: Optional[CustomerInfo] = None
    client_name: Optional[str] = None
    payment_proof: Optional[PaymentProof] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

class OrderRead(BaseModel):
    id: str
    items: list[OrderItemRead]
    total_price: float
    customer: Optional[CustomerInfo] = None
    client_name: Optional[str] = None
    payment_proof: Optional[PaymentProof] = None
    status: str
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    verified_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        if self.customer and self.customer.name:
            return self.customer.name
        return self.client_name or "Cliente"

    @classmethod
    def from_model(cls, order: Order) -> "OrderRead":
        customer = None
        if order.customer_name is not None:
            customer = CustomerInfo(
                name=order.customer_name,
                phone=order.customer_phone or "",
                address=order.customer_address or "",
                email=order.customer_email,
                delivery_method=order.delivery_method or "pickup",
            )
        payment_proof = None
        if order.reference_number is not None:
            payment_proof = PaymentProof(
                origin_bank=order.origin_bank or "",
                origin_phone=order.origin_phone or "",
                payer_id=order.payer_id or "",
                reference_number=order.reference_number,
                payment_date=order.payment_date or "",
            )
        return cls(
            id=order.id,
            items=[OrderItemRead.model_validate(i) for i in order.items],
            total_price=float(order.total_price),
            customer=customer,
            client_name=order.client_name,
            payment_proof=payment_proof,
            status=order.status,
            rejection_reason=order.rejection_reason,
            notes=order.notes,
            created_at=order.created_at,
            verified_at=order.verified_at,
            updated_at=order.updated_at,
        )

# ---- Products ----

class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    categories: list[str] = Field(..., min_length=1)
    image_url: str = ""
    images: list[str] = Field(default_factory=list, max_length=5)
    sizes: list[str] = Field(default_factory=list)
    gender: Gender = "Unisex"
    featured: bool = False

    @model_validator(mode="after")
    def cover_is_listed(self):
        if self.image_url and self.image_url not in self.images:
            raise ValueError("image_url must be one of images")
        return self

class ProductRead(ProductCreate):
    id: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# ---- Auth ----

class RegisterRequest(BaseModel):
    email: str
    password: str
    display_name: str = Field(..., min_length=1)

class LoginRequest(BaseModel):
    email: str
    password: str

class GoogleSignInRequest(BaseModel):
    # Either the ID token from a completed popup, or the popup failure code
    id_token: Optional[str] = None
    popup_error: Optional[Literal["auth/popup-closed-by-user", "auth/popup-blocked"]] = None

class UserRead(BaseModel):
    id: str
    email: str
    display_name: str
    role: str
    provider: str

    class Config:
        from_attributes = True

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead
    redirect: str = "/"

class ImageKitAuth(BaseModel):
    token: str
    expire: int
    signature: str

# ---- Verification ----

class ApprovalPrompt(BaseModel):
    order_id: str
    short_id: str
    customer_name: str
    total: str

class ApproveRequest(BaseModel):
    confirm: bool = False

class RejectRequest(BaseModel):
    confirm: bool = False
    reason: Optional[str] = None

class VerificationResponse(BaseModel):
    outcome: Literal["approved", "rejected", "cancelled", "ignored"]
    order_id: str
    customer_message_url: Optional[str] = None

# ---- Product draft ----

class DraftFieldsUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[str] = None
    gender: Optional[Gender] = None
    featured: Optional[bool] = None

class CategorySelect(BaseModel):
    category: str

class ImageRef(BaseModel):
    url: str

class DraftRead(BaseModel):
    name: str
    description: str
    price: str
    categories: list[str]
    image_url: str
    images: list[str]
    sizes: list[str]
    gender: Gender
    featured: bool
    can_submit: bool
    available_subcategories: list[str]

class PublishResponse(BaseModel):
    product: ProductRead
    redirect: str = "/tienda"

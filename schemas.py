"""
Database Schemas

Sneaker storefront models.
Each top-level model maps to a MongoDB collection:
- Product -> "products"
- Order -> "orders"
- User -> "users"
- SupportTicket -> "support_tickets"
- Review -> "reviews"
- ActivityEntry -> "activity_log"
- Sale -> "sales"
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class Product(BaseModel):
    sku: str = Field(..., min_length=1, description="Stock keeping unit, unique")
    name: str = Field(..., description="Product name")
    brand: str = Field(..., description="Brand, e.g. 'Nike', 'Jordan'")
    gender: Optional[str] = Field(None, description="'men', 'women', 'unisex', ...")
    retail_price: float = Field(..., ge=0, description="Price in USD")
    image_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    description: str = "No description available."
    colorway: Optional[str] = None
    release_date: Optional[str] = None
    imported_at: datetime
    stock: Dict[str, int] = Field(default_factory=dict, description="Size key ('9_5') -> quantity")


class LineItem(BaseModel):
    item_id: str = Field(..., description="sku + '_' + size")
    product_id: str
    sku: str
    name: str
    brand: Optional[str] = None
    thumbnail_url: Optional[str] = None
    size: str
    unit_price: float = Field(..., ge=0)
    qty: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="qty * unit_price")


class Cart(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: List[LineItem] = Field(default_factory=list)

    @computed_field
    @property
    def total_qty(self) -> int:
        return sum(item.qty for item in self.items)

    @computed_field
    @property
    def total_price(self) -> float:
        return sum(item.price for item in self.items)


class Customer(BaseModel):
    first_name: str
    last_name: str
    email: str


class ShippingAddress(BaseModel):
    address: str
    country: str
    state: str = ""
    zip: str = ""


class Order(BaseModel):
    items: List[LineItem]
    subtotal: float = Field(..., ge=0, description="Sum of line prices in USD")
    shipping_cost: float = Field(..., ge=0)
    total: float = Field(..., ge=0)
    currency: str = Field("USD", description="Currency the customer saw at checkout")
    converted_total: float = Field(..., ge=0)
    customer: Customer
    shipping_address: ShippingAddress
    order_date: datetime
    status: str = "Processing"
    is_new: bool = Field(True, description="Not yet seen by an admin")
    user_id: Optional[str] = None


class Address(BaseModel):
    address_id: str
    first_name: str
    last_name: str
    address: str
    country: str
    state: str = ""
    zip: str = ""
    phone: str = ""
    is_default: bool = False


class User(BaseModel):
    user_id: str
    email: str
    first_name: str
    last_name: str
    password_hash: str
    role: str = Field("customer", description="'customer' or 'admin'")
    wishlist: List[Any] = Field(default_factory=list, description="Product ObjectIds")
    addresses: List[Address] = Field(default_factory=list)


class TicketMessage(BaseModel):
    sender: str = Field(..., description="'user' or 'admin'")
    name: str
    admin_name: Optional[str] = None
    message: str
    timestamp: datetime


class SupportTicket(BaseModel):
    ticket_id: str
    user_email: str
    user_id: Optional[str] = None
    subject: str
    status: str = "Open"
    messages: List[TicketMessage]


class Review(BaseModel):
    product_id: Any
    user_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""


class ActivityEntry(BaseModel):
    user_id: Optional[str] = None
    user_first_name: Optional[str] = None
    user_role: Optional[str] = None
    action_type: str
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime


class Sale(BaseModel):
    name: str
    discount_percentage: int = Field(..., ge=1, le=100)
    start_date: datetime
    end_date: datetime
    product_ids: List[Any]

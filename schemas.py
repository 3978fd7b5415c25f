"""
Database Schemas for the beverage store

Each Pydantic model represents a collection in MongoDB.
Collection name is the lowercase of the class name.
The *Create / *Update / *In models are request bodies.
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field, EmailStr

ORDER_STATUSES = ("pending", "confirmed", "preparing", "shipping", "delivered", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "failed")

OrderStatus = Literal["pending", "confirmed", "preparing", "shipping", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "paid", "failed"]
DiscountType = Literal["percentage", "fixed_amount", "free_shipping"]


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: Optional[EmailStr] = Field(None, description="Email address, unset for guests")
    password_hash: Optional[str] = Field(None, description="Hashed password")
    role: str = Field("customer", description="customer | admin")
    is_active: bool = Field(True)
    is_anonymous: bool = Field(False)


class Category(BaseModel):
    name: str = Field(...)
    slug: str = Field(..., description="URL-safe identifier")
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool = True


class Product(BaseModel):
    name: str
    slug: str
    description: Optional[str] = None
    category_id: str = Field(..., description="Category id")
    base_price: float = Field(..., ge=0)
    image_url: Optional[str] = None
    is_available: bool = True
    ingredients: List[str] = []
    nutrition_info: Optional[str] = None


class ProductOption(BaseModel):
    product_id: str
    option_group: str = Field(..., description="e.g., size, sugar or ice")
    option_value: str = Field(..., description="e.g., L or 70%")
    price_adjustment: float = 0.0
    is_default: bool = False


class Topping(BaseModel):
    name: str
    price: float = Field(..., ge=0)
    image_url: Optional[str] = None
    is_available: bool = True


class SelectedOptions(BaseModel):
    size: Optional[str] = None
    sugar: Optional[str] = None
    ice: Optional[str] = None


class SelectedTopping(BaseModel):
    topping_id: str
    quantity: int = Field(1, ge=1)


class CartItem(BaseModel):
    user_id: str
    product_id: str
    quantity: int = Field(1, ge=1)
    selected_options: SelectedOptions = SelectedOptions()
    selected_toppings: List[SelectedTopping] = []
    special_instructions: Optional[str] = None


class Promotion(BaseModel):
    code: str
    description: str = ""
    discount_type: DiscountType
    discount_value: float = Field(..., ge=0)
    max_discount_amount: Optional[float] = Field(None, ge=0)
    min_order_value: float = Field(0, ge=0)
    start_date: datetime
    end_date: datetime
    usage_limit: Optional[int] = Field(None, ge=0)
    user_usage_limit: int = Field(1, ge=0)
    is_active: bool = True


class Review(BaseModel):
    product_id: str
    user_id: str
    user_name: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    is_approved: bool = False


class OpeningHours(BaseModel):
    open: str = "08:00"
    close: str = "22:00"
    is_open: bool = True


def _default_opening_hours() -> Dict[str, OpeningHours]:
    days = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
    return {day: OpeningHours() for day in days}


class StoreSettings(BaseModel):
    store_name: str = "Thức Uống Việt Nam"
    store_phone: str = ""
    store_email: str = ""
    store_address: str = ""
    delivery_fee: float = 15000
    free_delivery_threshold: float = 100000
    tax_rate: float = 10
    order_statuses: List[str] = list(ORDER_STATUSES)
    payment_methods: List[str] = ["COD", "Banking", "Momo"]
    is_maintenance_mode: bool = False
    maintenance_message: str = "Hệ thống đang bảo trì, vui lòng quay lại sau."
    opening_hours: Dict[str, OpeningHours] = Field(default_factory=_default_opening_hours)


# Request bodies

class UserCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool = True


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: Optional[bool] = None


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    category_id: str
    base_price: float = Field(..., ge=0)
    image_url: Optional[str] = None
    is_available: bool = True
    ingredients: List[str] = []
    nutrition_info: Optional[str] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category_id: Optional[str] = None
    base_price: Optional[float] = Field(None, ge=0)
    image_url: Optional[str] = None
    is_available: Optional[bool] = None
    ingredients: Optional[List[str]] = None
    nutrition_info: Optional[str] = None


class ProductOptionCreate(BaseModel):
    option_group: str = Field(..., min_length=1)
    option_value: str = Field(..., min_length=1)
    price_adjustment: float = 0.0
    is_default: bool = False


class ToppingUpdate(BaseModel):
    name: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    image_url: Optional[str] = None
    is_available: Optional[bool] = None


class PromotionUpdate(BaseModel):
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[float] = Field(None, ge=0)
    max_discount_amount: Optional[float] = Field(None, ge=0)
    min_order_value: Optional[float] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    usage_limit: Optional[int] = Field(None, ge=0)
    user_usage_limit: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class CartItemIn(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)
    selected_options: SelectedOptions = SelectedOptions()
    selected_toppings: List[SelectedTopping] = []
    special_instructions: Optional[str] = None


class CartItemQuantity(BaseModel):
    quantity: int


class ReviewIn(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


class OrderCreate(BaseModel):
    shipping_address: str
    payment_method: str = Field("COD", min_length=1)
    promotion_code: Optional[str] = None
    notes: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class PaymentStatusUpdate(BaseModel):
    status: PaymentStatus


class UserStatusUpdate(BaseModel):
    is_active: bool

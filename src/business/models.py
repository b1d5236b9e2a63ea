"""
Business Data Models

Pydantic models for the shapes returned to API clients. Records are stored
with camelCase keys; models accept either the camelCase alias or the
snake_case attribute name and always serialize back to camelCase.

Entities that hold secrets only have public models (``PublicUser``,
``PublicPaymentProfile``). They do not declare the password or card hash
fields at all, so building one from a stored record drops them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


# ============================================================================
# ENUMERATIONS
# ============================================================================

class Role(str, Enum):
    """Session roles for access control."""
    ADMIN = "admin"
    MODERATOR = "moderator"
    CUSTOMER = "customer"


class ProductCategory(str, Enum):
    CLOTHES = "clothes"
    ELECTRONICS = "electronics"
    FOODS = "foods"
    OTHERS = "others"


class PaymentMethod(str, Enum):
    CARD_PAYMENT = "CARD_PAYMENT"
    PHONE_PAYMENT = "PHONE_PAYMENT"


class CardType(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


# ============================================================================
# BASE MODELS
# ============================================================================

class BaseBusinessModel(BaseModel):
    """
    Base class for business models.

    Serializes with camelCase keys and ignores unknown input keys, which is what
    lets public models be built straight from stored records.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        extra='ignore',
    )

    def to_api_dict(self) -> Dict[str, Any]:
        """JSON-ready dictionary with camelCase keys and no null fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode='json')


class AuditedModel(BaseBusinessModel):
    """Audit columns carried by every persisted record."""
    id: Optional[str] = None
    create_user_id: Optional[str] = None
    update_user_id: Optional[str] = None
    delete_user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None


class SessionModel(BaseBusinessModel):
    """Authenticated caller, decoded from the bearer token."""
    user_id: Optional[str] = None
    role: Optional[Role] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


# ============================================================================
# ENTITY MODELS
# ============================================================================

class PublicUser(AuditedModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[Role] = None
    image: Optional[str] = None


class Customer(AuditedModel):
    name: Optional[str] = None
    email: Optional[str] = None


class Product(AuditedModel):
    name: Optional[str] = None
    category: Optional[ProductCategory] = None
    image: Optional[str] = None
    price: Optional[int] = None


class PhoneData(BaseBusinessModel):
    country_code: Optional[str] = None
    area_code: Optional[str] = None
    number: Optional[str] = None


class PublicCardData(BaseBusinessModel):
    type: Optional[CardType] = None
    brand: Optional[str] = None
    holder_name: Optional[str] = None
    first_six: Optional[str] = None
    last_four: Optional[str] = None
    expiry_month: Optional[str] = None
    expiry_year: Optional[str] = None


class PublicPaymentProfile(AuditedModel):
    user_id: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    data: Optional[Union[PublicCardData, PhoneData]] = None

    @model_validator(mode='before')
    @classmethod
    def _shape_data(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        data = values.get('data')
        if not isinstance(data, dict):
            return values

        method = values.get('paymentMethod', values.get('payment_method'))
        if isinstance(method, Enum):
            method = method.value
        data_model = PublicCardData if method == PaymentMethod.CARD_PAYMENT.value else PhoneData
        return {**values, 'data': data_model.model_validate(data)}


class OrderItem(AuditedModel):
    order_id: Optional[str] = None
    product_id: Optional[str] = None
    quantity: Optional[int] = None
    unit_value: Optional[int] = None
    total_value: Optional[int] = None


class Order(AuditedModel):
    user_id: Optional[str] = None
    payment_profile_id: Optional[str] = None
    total_value: Optional[int] = None


class OrderWithItems(Order):
    order_items: List[OrderItem] = Field(default_factory=list)


# ============================================================================
# PAGINATION
# ============================================================================

class Page(BaseBusinessModel):
    """One page of a listing."""
    page: int
    per_page: int
    last_page: int
    total: int
    registers: List[Dict[str, Any]] = Field(default_factory=list)


__all__ = [
    'Role', 'ProductCategory', 'PaymentMethod', 'CardType',
    'BaseBusinessModel', 'AuditedModel', 'SessionModel',
    'PublicUser', 'Customer', 'Product',
    'PhoneData', 'PublicCardData', 'PublicPaymentProfile',
    'OrderItem', 'Order', 'OrderWithItems', 'Page',
]

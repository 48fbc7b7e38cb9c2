"""
Pydantic schemas for the marketplace API.
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared import constants

PackageStatusName = Literal["pending", "approved", "rejected", "archived"]
OrderStatusName = Literal["pending", "contacted", "rejected"]
EnterpriseStatusName = Literal["pending", "approved", "rejected", "completed"]
RoleName = Literal["user", "agent", "admin"]
BannerTypeName = Literal["travel", "normal", "enterprise"]


class StatusResponse(BaseModel):
    status: str = "ok"


class CountResponse(BaseModel):
    count: int


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, max_length=constants.MAX_NAME_LENGTH)
    username: Optional[str] = Field(default=None, max_length=constants.MAX_NAME_LENGTH)
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = Field(default=None, max_length=constants.MAX_BIO_LENGTH)


class BalanceResponse(BaseModel):
    user_id: str
    total: int


class PurchaseRequest(BaseModel):
    credits: int = Field(..., gt=0)
    description: str = Field(default="Credit purchase", max_length=200)


class GrantRequest(BaseModel):
    user_id: str
    amount: int = Field(..., gt=0)
    remark: str = Field(default=constants.ADMIN_GRANT_REMARK, max_length=200)


class PackagePayload(BaseModel):
    title: str = Field(..., max_length=constants.MAX_TITLE_LENGTH)
    description: Optional[str] = None
    content: Optional[str] = None
    destination: str
    departure: Optional[str] = None
    duration: int = Field(..., ge=1)
    original_price: float = Field(..., gt=0)
    discount_price: Optional[float] = None
    discount_expires_at: Optional[str] = None
    is_discounted: bool = False
    is_international: bool = False
    image: Optional[str] = None
    expire_at: Optional[str] = None


class PackageUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=constants.MAX_TITLE_LENGTH)
    description: Optional[str] = None
    content: Optional[str] = None
    destination: Optional[str] = None
    departure: Optional[str] = None
    duration: Optional[int] = Field(default=None, ge=1)
    original_price: Optional[float] = Field(default=None, gt=0)
    discount_price: Optional[float] = None
    discount_expires_at: Optional[str] = None
    is_discounted: Optional[bool] = None
    is_international: Optional[bool] = None
    image: Optional[str] = None
    expire_at: Optional[str] = None


class ModerationRequest(BaseModel):
    status: PackageStatusName
    note: Optional[str] = None


class FavoriteResponse(BaseModel):
    favorited: bool


class ReviewRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=constants.MAX_COMMENT_LENGTH)


class OrderCreate(BaseModel):
    package_id: str
    contact_name: str = Field(..., max_length=constants.MAX_NAME_LENGTH)
    contact_phone: str
    id_card: str
    travel_date: str


class OrderStatusUpdate(BaseModel):
    status: OrderStatusName
    reason: Optional[str] = None


class DecisionRequest(BaseModel):
    approve: bool
    reason: Optional[str] = None


class MessageCreate(BaseModel):
    message: str = Field(..., max_length=constants.MAX_MESSAGE_LENGTH)


class InfoFeeRequest(BaseModel):
    amount: Optional[float] = Field(default=None, ge=0)


class EnterpriseOrderCreate(BaseModel):
    contact_name: str = Field(..., max_length=constants.MAX_NAME_LENGTH)
    contact_phone: str
    departure_location: str
    destination_location: str
    travel_date: str
    people_count: int = Field(default=1, ge=1)
    requirements: Optional[str] = Field(
        default=None, max_length=constants.MAX_REQUIREMENTS_LENGTH
    )


class EnterpriseReview(BaseModel):
    status: EnterpriseStatusName
    reason: Optional[str] = None


class EnterpriseApplicationCreate(BaseModel):
    license_image: str
    qualification_image: str
    note: Optional[str] = None


class EnterpriseInfoFeeRequest(BaseModel):
    amount: float = Field(..., ge=0)


class DirectMessageCreate(BaseModel):
    receiver_id: str
    content: str = Field(..., max_length=constants.MAX_MESSAGE_LENGTH)


class BroadcastCreate(BaseModel):
    content: str = Field(..., max_length=constants.MAX_MESSAGE_LENGTH)


class PlanCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_location: str = Field(..., alias="from")
    to_location: str = Field(..., alias="to")
    travel_date: str = Field(..., alias="date")
    days: int
    preferences: List[str] = Field(default_factory=list)


class PlanUpdate(BaseModel):
    title: Optional[str] = None
    plan_text: Optional[str] = None


class PlanResponse(BaseModel):
    id: str
    status: str
    title: Optional[str] = None
    from_location: str
    to_location: str
    travel_date: str
    days: int
    preferences: Optional[list] = None
    plan_text: str
    poi_list: Optional[list] = None
    attempts: int = 0
    error: Optional[str] = None
    credits_charged: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class BannerCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=constants.MAX_TITLE_LENGTH)
    description: Optional[str] = None
    image_url: str = Field(..., min_length=1)
    link_url: Optional[str] = None
    is_active: bool = True
    banner_type: BannerTypeName = "travel"


class BannerUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=constants.MAX_TITLE_LENGTH)
    description: Optional[str] = None
    image_url: Optional[str] = None
    link_url: Optional[str] = None
    is_active: Optional[bool] = None
    banner_type: Optional[BannerTypeName] = None


class DestinationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=constants.MAX_TITLE_LENGTH)
    description: Optional[str] = None
    image_url: str = Field(..., min_length=1)
    link_url: Optional[str] = None
    is_active: bool = True


class DestinationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=constants.MAX_TITLE_LENGTH)
    description: Optional[str] = None
    image_url: Optional[str] = None
    link_url: Optional[str] = None
    is_active: Optional[bool] = None


class MoveRequest(BaseModel):
    direction: Literal["up", "down"]


class RoleUpdate(BaseModel):
    role: RoleName


class AgentApplicationCreate(BaseModel):
    company_name: str = Field(..., max_length=constants.MAX_TITLE_LENGTH)
    contact_person: str = Field(..., max_length=constants.MAX_NAME_LENGTH)
    contact_phone: str
    license_image: str


class ReviewNote(BaseModel):
    note: Optional[str] = None


class RejectRequest(BaseModel):
    reason: str


class SettingsUpdate(BaseModel):
    commission_rate: Optional[float] = Field(default=None, ge=0, le=1)
    email_registration_enabled: Optional[bool] = None
    is_publish_package_charged: Optional[bool] = None
    package_publish_cost: Optional[int] = Field(default=None, ge=0)
    max_travel_packages_per_agent: Optional[int] = Field(default=None, ge=0)
    maintenance_mode: Optional[bool] = None


class UploadResponse(BaseModel):
    bucket: str
    path: str
    url: str


class SignUrlResponse(BaseModel):
    url: str
    expires_in: int


class PaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(..., alias="orderId")
    alipay_trade_no: str = Field(default=constants.DEFAULT_ALIPAY_TRADE_NO, alias="alipayTradeNo")
    trade_status: str = Field(default="TRADE_SUCCESS", alias="tradeStatus")
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class PaymentResponse(BaseModel):
    success: bool
    message: str
    order: dict
    session_updated: bool

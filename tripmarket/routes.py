"""
HTTP routes for the marketplace API.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Query, UploadFile

from planner.base import PlanGenerator
from shared import constants
from shared.utils import utc_now_iso
from tripmarket import (
    credits,
    enterprise,
    home,
    messages,
    orders,
    packages,
    payments,
    plans,
    profiles,
    storage as uploads,
)
from tripmarket.auth import AuthUser
from tripmarket.config import get_settings
from tripmarket.db import DbClient
from tripmarket.dependencies import (
    get_circuit_breaker,
    get_current_user,
    get_db_client,
    get_plan_generator,
    get_queue_client,
    get_storage_client,
    require_admin,
    require_agent,
)
from tripmarket.errors import PermissionDeniedError
from tripmarket.queue import JobQueue
from tripmarket.resilience import CircuitBreaker
from tripmarket.schemas import (
    AgentApplicationCreate,
    BalanceResponse,
    BannerCreate,
    BannerUpdate,
    BroadcastCreate,
    CountResponse,
    DecisionRequest,
    DestinationCreate,
    DestinationUpdate,
    DirectMessageCreate,
    EnterpriseApplicationCreate,
    EnterpriseInfoFeeRequest,
    EnterpriseOrderCreate,
    EnterpriseReview,
    FavoriteResponse,
    GrantRequest,
    InfoFeeRequest,
    MessageCreate,
    ModerationRequest,
    MoveRequest,
    OrderCreate,
    OrderStatusUpdate,
    PackagePayload,
    PackageUpdate,
    PaymentRequest,
    PaymentResponse,
    PlanCreate,
    PlanResponse,
    PlanUpdate,
    ProfileUpdate,
    PurchaseRequest,
    RejectRequest,
    ReviewNote,
    ReviewRequest,
    RoleUpdate,
    SettingsUpdate,
    SignUrlResponse,
    StatusResponse,
    UploadResponse,
)
from tripmarket.storage import StorageClient
from tripmarket.worker import process_plan

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=StatusResponse)
def health():
    return StatusResponse()


# Profile and credits


@router.get("/me")
def get_me(user: AuthUser = Depends(get_current_user), db: DbClient = Depends(get_db_client)):
    profile = profiles.get_profile(db, user.id)
    profile["credits"] = credits.get_balance(db, user.id)
    return profile


@router.patch("/me")
def update_me(
    payload: ProfileUpdate,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return profiles.update_profile(db, user, payload.model_dump(exclude_unset=True))


@router.get("/credits", response_model=BalanceResponse)
def get_credits(user: AuthUser = Depends(get_current_user), db: DbClient = Depends(get_db_client)):
    return BalanceResponse(user_id=user.id, total=credits.get_balance(db, user.id))


@router.get("/credits/transactions")
def credit_transactions(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return credits.list_transactions(db, user.id, limit=limit, offset=offset)


@router.get("/credits/purchases")
def credit_purchases(user: AuthUser = Depends(get_current_user), db: DbClient = Depends(get_db_client)):
    return credits.list_purchases(db, user.id)


@router.post("/credits/purchase", response_model=BalanceResponse)
def purchase_credits(
    payload: PurchaseRequest,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    total = credits.purchase(db, user.id, payload.credits, payload.description)
    return BalanceResponse(user_id=user.id, total=total)


@router.post("/admin/credits/grant", response_model=BalanceResponse)
def grant_credits(
    payload: GrantRequest,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    total = credits.grant(db, payload.user_id, payload.amount, payload.remark)
    return BalanceResponse(user_id=payload.user_id, total=total)


# Packages


@router.get("/packages")
def list_packages(
    destination: Optional[str] = None,
    departure: Optional[str] = None,
    sort: Optional[str] = Query(None, pattern="^(hot|discount|international|newest)$"),
    limit: int = Query(packages.DEFAULT_PAGE_SIZE, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: DbClient = Depends(get_db_client),
):
    return packages.list_packages(
        db,
        destination=destination,
        departure=departure,
        sort=sort,
        limit=limit,
        offset=offset,
    )


@router.get("/packages/discounts")
def discounted_packages(db: DbClient = Depends(get_db_client)):
    return packages.recent_discounts(db, utc_now_iso())


@router.get("/packages/{package_id}")
def get_package(package_id: str, db: DbClient = Depends(get_db_client)):
    return packages.get_package(db, package_id)


@router.post("/packages", status_code=201)
def publish_package(
    payload: PackagePayload,
    agent: AuthUser = Depends(require_agent),
    db: DbClient = Depends(get_db_client),
):
    return packages.publish_package(db, agent, payload.model_dump())


@router.patch("/packages/{package_id}")
def update_package(
    package_id: str,
    payload: PackageUpdate,
    user: AuthUser = Depends(require_agent),
    db: DbClient = Depends(get_db_client),
):
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No changes supplied")
    return packages.update_package(db, user, package_id, changes)


@router.delete("/packages/{package_id}", response_model=StatusResponse)
def delete_package(
    package_id: str,
    user: AuthUser = Depends(require_agent),
    db: DbClient = Depends(get_db_client),
):
    packages.delete_package(db, user, package_id)
    return StatusResponse()


@router.get("/agent/packages")
def agent_packages(
    status: Optional[str] = Query(None, pattern="^(pending|approved|rejected|archived)$"),
    agent: AuthUser = Depends(require_agent),
    db: DbClient = Depends(get_db_client),
):
    return packages.list_packages(db, status=status, agent_id=agent.id, limit=100)


@router.get("/admin/packages")
def admin_packages(
    status: Optional[str] = Query("pending", pattern="^(pending|approved|rejected|archived)$"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return packages.list_packages(db, status=status, limit=limit, offset=offset)


@router.post("/admin/packages/{package_id}/moderate")
def moderate_package(
    package_id: str,
    payload: ModerationRequest,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return packages.moderate_package(db, package_id, payload.status, payload.note)


@router.get("/packages/{package_id}/favorite", response_model=FavoriteResponse)
def package_favorite_status(
    package_id: str,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return FavoriteResponse(favorited=packages.is_favorite(db, user.id, package_id))


@router.post("/packages/{package_id}/favorite", response_model=FavoriteResponse)
def toggle_package_favorite(
    package_id: str,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return FavoriteResponse(favorited=packages.toggle_favorite(db, user.id, package_id))


@router.get("/me/favorites")
def my_favorite_packages(user: AuthUser = Depends(get_current_user), db: DbClient = Depends(get_db_client)):
    return packages.list_favorites(db, user.id)


@router.get("/packages/{package_id}/reviews")
def package_reviews(package_id: str, db: DbClient = Depends(get_db_client)):
    return packages.list_reviews(db, package_id)


@router.post("/packages/{package_id}/reviews")
def review_package(
    package_id: str,
    payload: ReviewRequest,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return packages.upsert_review(db, user, package_id, payload.rating, payload.comment)


@router.get("/me/reviews")
def my_reviews(user: AuthUser = Depends(get_current_user), db: DbClient = Depends(get_db_client)):
    return packages.list_user_reviews(db, user.id)


# Orders


@router.post("/orders", status_code=201)
def create_order(
    payload: OrderCreate,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return orders.create_order(db, user, **payload.model_dump())


@router.get("/orders")
def my_orders(
    status: Optional[str] = Query(None, pattern="^(pending|contacted|rejected)$"),
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return orders.list_user_orders(db, user, status)


@router.get("/agent/orders")
def agent_orders(
    status: Optional[str] = Query(None, pattern="^(pending|contacted|rejected)$"),
    agent: AuthUser = Depends(require_agent),
    db: DbClient = Depends(get_db_client),
):
    return orders.list_agent_orders(db, agent, status)


@router.get("/admin/orders")
def admin_orders(
    status: Optional[str] = Query(None, pattern="^(pending|contacted|rejected)$"),
    contract_status: Optional[str] = Query(None, pattern="^(pending|confirmed|rejected)$"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return orders.list_all_orders(
        db, status=status, contract_status=contract_status, limit=limit, offset=offset
    )


@router.get("/orders/{order_id}")
def get_order(order_id: str, user: AuthUser = Depends(get_current_user), db: DbClient = Depends(get_db_client)):
    return orders.get_order(db, user, order_id)


@router.post("/orders/{order_id}/status")
def update_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    user: AuthUser = Depends(require_agent),
    db: DbClient = Depends(get_db_client),
):
    return orders.update_status(db, user, order_id, payload.status, payload.reason)


@router.post("/orders/{order_id}/contract")
def claim_contract(order_id: str, user: AuthUser = Depends(get_current_user), db: DbClient = Depends(get_db_client)):
    return orders.claim_contract(db, user, order_id)


@router.post("/admin/orders/{order_id}/contract")
def review_contract(
    order_id: str,
    payload: DecisionRequest,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return orders.review_contract(db, admin, order_id, payload.approve, payload.reason)


@router.get("/orders/{order_id}/messages")
def order_messages(order_id: str, user: AuthUser = Depends(get_current_user), db: DbClient = Depends(get_db_client)):
    return orders.list_order_messages(db, user, order_id)


@router.post("/orders/{order_id}/messages", status_code=201)
def send_order_message(
    order_id: str,
    payload: MessageCreate,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return orders.send_order_message(db, user, order_id, payload.message)


@router.post("/orders/{order_id}/messages/read", response_model=CountResponse)
def read_order_messages(order_id: str, user: AuthUser = Depends(get_current_user), db: DbClient = Depends(get_db_client)):
    return CountResponse(count=orders.mark_order_messages_read(db, user, order_id))


@router.post("/orders/{order_id}/info-fee", status_code=201)
def pay_order_info_fee(
    order_id: str,
    payload: InfoFeeRequest,
    agent: AuthUser = Depends(require_agent),
    db: DbClient = Depends(get_db_client),
):
    return orders.pay_info_fee(db, agent, order_id, payload.amount)


@router.get("/agent/info-fees")
def agent_info_fees(agent: AuthUser = Depends(require_agent), db: DbClient = Depends(get_db_client)):
    return orders.list_info_fee_logs(db, agent_id=agent.id)


@router.get("/admin/info-fees")
def admin_info_fees(
    agent_id: Optional[str] = None,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return orders.list_info_fee_logs(db, agent_id=agent_id)


# Enterprise requests


@router.post("/enterprise-orders", status_code=201)
def create_enterprise_order(
    payload: EnterpriseOrderCreate,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return enterprise.create_request(db, user, **payload.model_dump())


@router.get("/enterprise-orders")
def list_enterprise_orders(
    status: Optional[str] = Query(None, pattern="^(pending|approved|rejected|completed)$"),
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return enterprise.list_requests(
        db, user, status=status, date_from=date_from, date_to=date_to
    )


@router.get("/enterprise-orders/{order_id}")
def get_enterprise_order(order_id: str, user: AuthUser = Depends(get_current_user), db: DbClient = Depends(get_db_client)):
    return enterprise.get_request(db, user, order_id)


@router.post("/admin/enterprise-orders/{order_id}/review")
def review_enterprise_order(
    order_id: str,
    payload: EnterpriseReview,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return enterprise.review_request(db, order_id, payload.status, payload.reason)


@router.post("/enterprise-orders/{order_id}/applications", status_code=201)
def apply_for_enterprise_order(
    order_id: str,
    payload: EnterpriseApplicationCreate,
    agent: AuthUser = Depends(require_agent),
    db: DbClient = Depends(get_db_client),
):
    return enterprise.apply(db, agent, order_id, **payload.model_dump())


@router.get("/enterprise-orders/{order_id}/applications")
def enterprise_order_applications(
    order_id: str,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return enterprise.list_applications(db, order_id=order_id)


@router.get("/agent/enterprise-applications")
def my_enterprise_applications(agent: AuthUser = Depends(require_agent), db: DbClient = Depends(get_db_client)):
    return enterprise.list_applications(db, agent_id=agent.id)


@router.post("/admin/enterprise-applications/{application_id}/review")
def review_enterprise_application(
    application_id: str,
    payload: DecisionRequest,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return enterprise.review_application(db, application_id, payload.approve, payload.reason)


@router.post("/enterprise-orders/{order_id}/info-fee")
def pay_enterprise_info_fee(
    order_id: str,
    payload: EnterpriseInfoFeeRequest,
    agent: AuthUser = Depends(require_agent),
    db: DbClient = Depends(get_db_client),
):
    return enterprise.pay_info_fee(db, agent, order_id, payload.amount)


@router.get("/agent/enterprise-info-fees")
def enterprise_info_fees(agent: AuthUser = Depends(require_agent), db: DbClient = Depends(get_db_client)):
    return enterprise.list_info_fee_logs(db, agent.id)


# Messages


@router.get("/messages")
def inbox(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return messages.inbox(db, user, limit=limit, offset=offset)


@router.get("/messages/system")
def system_messages(user: AuthUser = Depends(get_current_user), db: DbClient = Depends(get_db_client)):
    return messages.system_messages(db)


@router.get("/messages/unread-count", response_model=CountResponse)
def unread_count(user: AuthUser = Depends(get_current_user), db: DbClient = Depends(get_db_client)):
    return CountResponse(count=messages.unread_count(db, user))


@router.get("/agent/order-messages")
def agent_order_messages(agent: AuthUser = Depends(require_agent), db: DbClient = Depends(get_db_client)):
    return messages.agent_order_feed(db, agent)


@router.post("/messages", status_code=201)
def send_message(
    payload: DirectMessageCreate,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return messages.send(db, user, payload.receiver_id, payload.content)


@router.post("/admin/messages/broadcast", status_code=201)
def broadcast_message(
    payload: BroadcastCreate,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return messages.broadcast(db, admin, payload.content)


@router.post("/messages/read-all", response_model=CountResponse)
def read_all_messages(user: AuthUser = Depends(get_current_user), db: DbClient = Depends(get_db_client)):
    return CountResponse(count=messages.mark_all_read(db, user))


@router.post("/messages/{message_id}/read")
def read_message(message_id: str, user: AuthUser = Depends(get_current_user), db: DbClient = Depends(get_db_client)):
    return messages.mark_read(db, user, message_id)


# Plans


@router.post("/plans", response_model=PlanResponse, status_code=202)
def request_plan(
    payload: PlanCreate,
    background_tasks: BackgroundTasks,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    queue: JobQueue = Depends(get_queue_client),
    breaker: CircuitBreaker = Depends(get_circuit_breaker),
    generator: PlanGenerator = Depends(get_plan_generator),
):
    """
    Queue a plan. Clients poll GET /plans/{id} until it leaves `queued`/`generating`.
    """
    settings = get_settings()
    request = plans.build_request(
        payload.from_location,
        payload.to_location,
        payload.travel_date,
        payload.days,
        payload.preferences,
    )
    inline = settings.inline_plan_generation
    plan = plans.request_plan(
        db,
        user,
        request,
        breaker=breaker,
        queue=None if inline else queue,
        cost=settings.plan_generation_cost,
    )
    if inline:
        background_tasks.add_task(
            process_plan, plan["id"], db=db, generator=generator, breaker=breaker
        )
    return plan


@router.get("/plans", response_model=list[PlanResponse])
def my_plans(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return plans.list_plans(db, user, limit=limit, offset=offset)


@router.get("/plans/{plan_id}", response_model=PlanResponse)
def get_plan(plan_id: str, user: AuthUser = Depends(get_current_user), db: DbClient = Depends(get_db_client)):
    return plans.get_plan(db, user, plan_id)


@router.patch("/plans/{plan_id}", response_model=PlanResponse)
def update_plan(
    plan_id: str,
    payload: PlanUpdate,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return plans.update_plan(db, user, plan_id, title=payload.title, plan_text=payload.plan_text)


@router.get("/share/plans/{plan_id}")
def shared_plan(plan_id: str, db: DbClient = Depends(get_db_client)):
    return plans.get_shared_plan(db, plan_id)


@router.post("/plans/{plan_id}/favorite", response_model=FavoriteResponse)
def toggle_plan_favorite(plan_id: str, user: AuthUser = Depends(get_current_user), db: DbClient = Depends(get_db_client)):
    return FavoriteResponse(favorited=plans.toggle_favorite(db, user, plan_id))


@router.get("/me/plan-favorites", response_model=list[PlanResponse])
def my_plan_favorites(user: AuthUser = Depends(get_current_user), db: DbClient = Depends(get_db_client)):
    return plans.list_favorites(db, user)


# Agent applications and admin


@router.post("/agent-applications", status_code=201)
def submit_agent_application(
    payload: AgentApplicationCreate,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return profiles.submit_agent_application(db, user, **payload.model_dump())


@router.get("/agent-applications/mine")
def my_agent_applications(user: AuthUser = Depends(get_current_user), db: DbClient = Depends(get_db_client)):
    return profiles.list_agent_applications(db, user_id=user.id)


@router.get("/admin/agent-applications")
def admin_agent_applications(
    status: Optional[str] = Query(None, pattern="^(pending|approved|rejected)$"),
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return profiles.list_agent_applications(db, status=status)


@router.post("/admin/agent-applications/{application_id}/approve")
def approve_agent_application(
    application_id: str,
    payload: ReviewNote,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return profiles.approve_agent_application(db, application_id, payload.note or "")


@router.post("/admin/agent-applications/{application_id}/reject")
def reject_agent_application(
    application_id: str,
    payload: RejectRequest,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return profiles.reject_agent_application(db, application_id, payload.reason)


@router.get("/admin/users")
def admin_users(
    role: Optional[str] = Query(None, pattern="^(user|agent|admin)$"),
    search: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return profiles.list_users(db, role=role, search=search, limit=limit, offset=offset)


@router.post("/admin/users/{user_id}/role")
def set_user_role(
    user_id: str,
    payload: RoleUpdate,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return profiles.set_user_role(db, admin, user_id, payload.role)


@router.get("/settings")
def system_settings(db: DbClient = Depends(get_db_client)):
    return profiles.get_system_settings(db)


@router.patch("/admin/settings")
def update_system_settings(
    payload: SettingsUpdate,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return profiles.update_system_settings(db, payload.model_dump(exclude_unset=True))


@router.get("/admin/dashboard")
def admin_dashboard(admin: AuthUser = Depends(require_admin), db: DbClient = Depends(get_db_client)):
    return profiles.dashboard_counts(db)


# Home content


@router.get("/home")
def home_content(db: DbClient = Depends(get_db_client)):
    return home.home_content(db)


@router.get("/home/banners")
def home_banners(banner_type: Optional[str] = None, db: DbClient = Depends(get_db_client)):
    return home.list_items(db, home.BANNERS, banner_type=banner_type)


@router.get("/home/destinations")
def home_destinations(db: DbClient = Depends(get_db_client)):
    return home.list_items(db, home.DESTINATIONS)


@router.get("/admin/banners")
def admin_banners(
    banner_type: Optional[str] = None,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return home.list_items(db, home.BANNERS, active_only=False, banner_type=banner_type)


@router.post("/admin/banners", status_code=201)
def create_banner(
    payload: BannerCreate,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return home.create_item(db, home.BANNERS, payload.model_dump())


@router.patch("/admin/banners/{banner_id}")
def update_banner(
    banner_id: str,
    payload: BannerUpdate,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return home.update_item(db, home.BANNERS, banner_id, payload.model_dump(exclude_unset=True))


@router.delete("/admin/banners/{banner_id}", response_model=StatusResponse)
def delete_banner(
    banner_id: str,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    home.delete_item(db, home.BANNERS, banner_id)
    return StatusResponse()


@router.post("/admin/banners/{banner_id}/move")
def move_banner(
    banner_id: str,
    payload: MoveRequest,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return home.move_item(db, home.BANNERS, banner_id, payload.direction)


@router.get("/admin/destinations")
def admin_destinations(admin: AuthUser = Depends(require_admin), db: DbClient = Depends(get_db_client)):
    return home.list_items(db, home.DESTINATIONS, active_only=False)


@router.post("/admin/destinations", status_code=201)
def create_destination(
    payload: DestinationCreate,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return home.create_item(db, home.DESTINATIONS, payload.model_dump())


@router.patch("/admin/destinations/{destination_id}")
def update_destination(
    destination_id: str,
    payload: DestinationUpdate,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    changes = payload.model_dump(exclude_unset=True)
    return home.update_item(db, home.DESTINATIONS, destination_id, changes)


@router.delete("/admin/destinations/{destination_id}", response_model=StatusResponse)
def delete_destination(
    destination_id: str,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    home.delete_item(db, home.DESTINATIONS, destination_id)
    return StatusResponse()


@router.post("/admin/destinations/{destination_id}/move")
def move_destination(
    destination_id: str,
    payload: MoveRequest,
    admin: AuthUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return home.move_item(db, home.DESTINATIONS, destination_id, payload.direction)


# Storage


@router.post("/uploads/{kind}", response_model=UploadResponse, status_code=201)
async def upload_file(
    kind: str,
    file: UploadFile = File(...),
    order_id: Optional[str] = Form(None),
    user: AuthUser = Depends(get_current_user),
    storage: StorageClient = Depends(get_storage_client),
):
    if kind not in uploads.UPLOAD_KINDS:
        raise HTTPException(status_code=404, detail="Unknown upload kind")
    data = await file.read()
    stored = uploads.upload(
        storage,
        kind=kind,
        user_id=user.id,
        filename=file.filename or "upload",
        data=data,
        content_type=file.content_type or "",
        order_id=order_id,
    )
    return UploadResponse(**stored)


@router.get("/storage/sign", response_model=SignUrlResponse)
def sign_url(
    bucket: str,
    path: str,
    user: AuthUser = Depends(get_current_user),
    storage: StorageClient = Depends(get_storage_client),
):
    if bucket not in uploads.UPLOAD_KINDS.values():
        raise HTTPException(status_code=404, detail="Unknown bucket")
    if not uploads.is_safe_path(path):
        raise HTTPException(status_code=400, detail="Invalid storage path")
    if not (user.is_admin or uploads.owns_path(user.id, path)):
        raise PermissionDeniedError("You cannot access this file")
    expires_in = constants.SIGNED_URL_EXPIRES_SECONDS
    return SignUrlResponse(url=storage.presign_get(bucket, path, expires_in), expires_in=expires_in)


@router.delete("/storage", response_model=StatusResponse)
def delete_file(
    bucket: str,
    path: str,
    user: AuthUser = Depends(get_current_user),
    storage: StorageClient = Depends(get_storage_client),
):
    if bucket not in uploads.UPLOAD_KINDS.values():
        raise HTTPException(status_code=404, detail="Unknown bucket")
    if not uploads.is_safe_path(path):
        raise HTTPException(status_code=400, detail="Invalid storage path")
    if not (user.is_admin or uploads.owns_path(user.id, path)):
        raise PermissionDeniedError("You cannot delete this file")
    storage.delete(bucket, path)
    return StatusResponse()


# Payments


@router.post("/process-alipay-payment", response_model=PaymentResponse)
def process_alipay_payment(
    payload: PaymentRequest,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    result = payments.process_payment(
        db,
        user,
        order_id=payload.order_id,
        trade_no=payload.alipay_trade_no,
        trade_status=payload.trade_status,
        session_id=payload.session_id,
    )
    return PaymentResponse(
        success=result.success,
        message=result.message,
        order=result.order,
        session_updated=result.session_updated,
    )

"""
Dependency wiring for the FastAPI app and the worker.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header

from planner.base import OfflinePlanGenerator, PlanGenerator
from tripmarket.auth import AuthClient, AuthUser, InMemoryAuthClient, bearer_token, load_user
from tripmarket.config import get_settings
from tripmarket.db import DbClient, InMemoryDbClient, PostgresDbClient
from tripmarket.errors import PermissionDeniedError
from tripmarket.queue import InMemoryJobQueue, JobQueue, RedisJobQueue
from tripmarket.resilience import CircuitBreaker
from tripmarket.rest import SupabaseAuthClient, SupabaseRestClient, SupabaseStorageClient
from tripmarket.storage import CosStorageClient, InMemoryStorageClient, StorageClient

_db_client: DbClient | None = None
_auth_client: AuthClient | None = None
_storage_client: StorageClient | None = None
_queue_client: JobQueue | None = None
_plan_generator: PlanGenerator | None = None
_circuit_breaker: CircuitBreaker | None = None


def _has_supabase(settings) -> bool:
    return bool(settings.supabase_url and settings.supabase_service_key)


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client is not None:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _db_client = InMemoryDbClient()
    elif settings.database_url:
        _db_client = PostgresDbClient(settings.database_url)
    elif _has_supabase(settings):
        _db_client = SupabaseRestClient(
            settings.supabase_url,
            settings.supabase_service_key,
            timeout=settings.request_timeout_seconds,
        )
    else:
        _db_client = InMemoryDbClient()
    return _db_client


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client is not None:
        return _auth_client

    settings = get_settings()
    if settings.use_in_memory_backends or not _has_supabase(settings):
        _auth_client = InMemoryAuthClient()
    else:
        _auth_client = SupabaseAuthClient(
            settings.supabase_url,
            settings.supabase_service_key,
            timeout=settings.request_timeout_seconds,
        )
    return _auth_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client is not None:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or settings.storage_backend == "memory":
        _storage_client = InMemoryStorageClient(base_url=settings.storage_public_base_url)
    elif settings.storage_backend == "cos":
        _storage_client = CosStorageClient(
            bucket=settings.cos_bucket or "",
            region=settings.cos_region or "",
            endpoint=settings.cos_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.storage_public_base_url,
        )
    else:
        _storage_client = SupabaseStorageClient(
            settings.supabase_url or "",
            settings.supabase_service_key or "",
            timeout=settings.request_timeout_seconds,
        )
    return _storage_client


def get_queue_client() -> JobQueue:
    """
    Return a singleton queue client for dispatching plan jobs to workers.
    """
    global _queue_client
    if _queue_client is not None:
        return _queue_client

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _queue_client = RedisJobQueue(
            url=settings.redis_url,
            queue_key=settings.redis_queue_key,
        )
    else:
        _queue_client = InMemoryJobQueue()
    return _queue_client


def get_plan_generator() -> PlanGenerator:
    global _plan_generator
    if _plan_generator is not None:
        return _plan_generator

    settings = get_settings()
    if settings.plan_provider == "coze" and settings.coze_api_key:
        from planner.coze import CozeWorkflowClient

        _plan_generator = CozeWorkflowClient(
            api_key=settings.coze_api_key,
            workflow_id=settings.coze_workflow_id,
            base_url=settings.coze_base_url,
            timeout=settings.request_timeout_seconds,
        )
    elif settings.plan_provider == "gemini" and settings.gemini_api_key:
        from planner.gemini import GeminiPlanGenerator

        _plan_generator = GeminiPlanGenerator(
            api_key=settings.gemini_api_key, model=settings.gemini_model
        )
    else:
        _plan_generator = OfflinePlanGenerator()
    return _plan_generator


def get_circuit_breaker() -> CircuitBreaker:
    """Per-process breaker shared by the API (for 503 checks) and the worker."""
    global _circuit_breaker
    if _circuit_breaker is not None:
        return _circuit_breaker

    settings = get_settings()
    _circuit_breaker = CircuitBreaker(
        threshold=settings.circuit_breaker_threshold,
        reset_timeout=settings.circuit_breaker_timeout_seconds,
    )
    return _circuit_breaker


def reset_clients() -> None:
    """Drop all singletons; the next access rebuilds them from settings."""
    global _db_client, _auth_client, _storage_client, _queue_client
    global _plan_generator, _circuit_breaker
    _db_client = None
    _auth_client = None
    _storage_client = None
    _queue_client = None
    _plan_generator = None
    _circuit_breaker = None


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    db: DbClient = Depends(get_db_client),
    auth_client: AuthClient = Depends(get_auth_client),
) -> AuthUser:
    return load_user(db, auth_client, bearer_token(authorization))


def require_admin(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    if not user.is_admin:
        raise PermissionDeniedError("Admin role required")
    return user


def require_agent(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    """Agents, and admins acting on their behalf."""
    if not (user.is_agent or user.is_admin):
        raise PermissionDeniedError("Agent role required")
    return user

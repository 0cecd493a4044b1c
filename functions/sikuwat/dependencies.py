"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shared.types import Role
from sikuwat.auth import AuthClient, AuthUser, InMemoryAuthClient, SupabaseAuthClient
from sikuwat.config import get_settings
from sikuwat.db import DbClient, InMemoryDbClient, PostgresDbClient
from sikuwat.storage import InMemoryStorageClient, S3StorageClient, StorageClient

logger = logging.getLogger(__name__)

ADMIN_REQUIRED = "Unauthorized - Admin access required"
USER_REQUIRED = "Unauthorized - User access required"
PENDING_APPROVAL = "Account pending admin approval"

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_auth_client: AuthClient | None = None

_bearer = HTTPBearer(auto_error=False)


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so rows persist across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        logger.info("Using in-memory database")
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if (
        settings.use_in_memory_backends
        or not settings.storage_endpoint
        or not settings.storage_access_key_id
    ):
        base_url = settings.public_storage_base()
        _storage_client = (
            InMemoryStorageClient(base_url=base_url)
            if base_url
            else InMemoryStorageClient()
        )
    else:
        _storage_client = S3StorageClient(
            bucket=settings.storage_bucket,
            region=settings.storage_region or "",
            endpoint=settings.storage_endpoint,
            access_key_id=settings.storage_access_key_id,
            secret_access_key=settings.storage_secret_access_key or "",
            public_base_url=settings.public_storage_base(),
        )
    return _storage_client


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client:
        return _auth_client

    settings = get_settings()
    if (
        settings.use_in_memory_backends
        or not settings.supabase_url
        or not settings.supabase_anon_key
        or not settings.supabase_service_role_key
    ):
        logger.info("Using in-memory auth")
        _auth_client = InMemoryAuthClient()
    else:
        _auth_client = SupabaseAuthClient(
            url=settings.supabase_url,
            anon_key=settings.supabase_anon_key,
            service_role_key=settings.supabase_service_role_key,
            timeout=settings.request_timeout,
        )
    return _auth_client


def get_access_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Optional[str]:
    return credentials.credentials if credentials else None


def get_optional_user(
    token: Optional[str] = Depends(get_access_token),
    auth: AuthClient = Depends(get_auth_client),
) -> Optional[AuthUser]:
    if not token:
        return None
    return auth.get_user(token)


def get_current_user(
    user: Optional[AuthUser] = Depends(get_optional_user),
) -> AuthUser:
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def require_admin(user: Optional[AuthUser] = Depends(get_optional_user)) -> AuthUser:
    if user is None or user.role != Role.ADMIN:
        raise HTTPException(status_code=401, detail=ADMIN_REQUIRED)
    return user


def require_farmer(
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
) -> AuthUser:
    """A signed-in farmer whose account an admin has approved."""
    if user.role != Role.USER:
        raise HTTPException(status_code=401, detail=USER_REQUIRED)
    profile = db.get_profile(user.id)
    if profile is None or not profile.is_approved:
        raise HTTPException(status_code=403, detail=PENDING_APPROVAL)
    return user

"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException

from writory.auth import AuthVerifier, FirebaseAuthVerifier, Identity, StaticAuthVerifier
from writory.config import get_settings
from writory.db import DbClient, InMemoryDbClient, SqlDbClient
from writory.errors import AuthError
from writory.mailer import InMemoryMailer, Mailer, ResendMailer
from writory.queue import InMemoryJobQueue, JobQueue, RedisJobQueue
from writory.storage import InMemoryStorageClient, S3StorageClient, StorageClient

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_queue_client: JobQueue | None = None
_mailer: Mailer | None = None
_auth_verifier: AuthVerifier | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client. Admin emails from configuration are
    seeded into the admin store on first use.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _db_client = InMemoryDbClient()
    elif not settings.database_url:
        raise RuntimeError(
            "DATABASE_URL is required unless USE_IN_MEMORY_BACKENDS is set"
        )
    else:
        _db_client = SqlDbClient(
            settings.database_url,
            create_tables=not settings.run_migrations_on_startup,
        )
    for email in settings.admin_email_list:
        _db_client.add_admin(email)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.s3_bucket:
        logger.warning("S3_BUCKET not configured; uploads are kept in memory")
        _storage_client = InMemoryStorageClient()
    elif not settings.s3_public_base_url:
        # Stored submission links must outlive any presigned URL lifetime.
        raise RuntimeError("S3_PUBLIC_BASE_URL is required when S3_BUCKET is set")
    else:
        _storage_client = S3StorageClient(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint,
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.s3_public_base_url,
        )
    return _storage_client


def get_queue_client() -> JobQueue:
    """
    Return a singleton queue client for handing email jobs to the worker.
    """
    global _queue_client
    if _queue_client:
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


def get_mailer() -> Mailer:
    global _mailer
    if _mailer:
        return _mailer

    settings = get_settings()
    if settings.resend_api_key and not settings.use_in_memory_backends:
        _mailer = ResendMailer(
            api_key=settings.resend_api_key, from_email=settings.mail_from
        )
    else:
        logger.warning("RESEND_API_KEY not configured; emails are only logged")
        _mailer = InMemoryMailer()
    return _mailer


def get_auth_verifier() -> AuthVerifier:
    global _auth_verifier
    if _auth_verifier:
        return _auth_verifier

    settings = get_settings()
    if settings.use_in_memory_backends:
        _auth_verifier = StaticAuthVerifier()
    else:
        _auth_verifier = FirebaseAuthVerifier(settings.firebase_project_id)
    return _auth_verifier


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_optional_identity(
    authorization: Optional[str] = Header(None),
    verifier: AuthVerifier = Depends(get_auth_verifier),
) -> Optional[Identity]:
    """Identity for an optional bearer token; a bad token is still rejected."""
    token = _bearer_token(authorization)
    if token is None:
        return None
    try:
        return verifier.verify(token)
    except AuthError as err:
        raise HTTPException(status_code=err.status_code, detail=str(err))


def get_current_identity(
    identity: Optional[Identity] = Depends(get_optional_identity),
) -> Identity:
    if identity is None:
        raise HTTPException(status_code=401, detail="Sign-in required")
    return identity


def require_admin(
    identity: Identity = Depends(get_current_identity),
    db: DbClient = Depends(get_db_client),
) -> Identity:
    if (
        not identity.email
        or not identity.email_verified
        or not db.is_admin(identity.email)
    ):
        raise HTTPException(status_code=403, detail="Admin access required")
    return identity

"""
Ownership checks shared by the route modules.
"""

from __future__ import annotations

from fastapi import HTTPException

from writory.auth import Identity
from writory.db import DbClient, UserRecord


def is_admin_identity(db: DbClient, identity: Identity) -> bool:
    return bool(
        identity.email and identity.email_verified and db.is_admin(identity.email)
    )


def load_user_for(
    db: DbClient, uid: str, identity: Identity, *, allow_admin: bool = True
) -> UserRecord:
    """Returns the user `uid` if the caller owns it (or is an admin)."""
    if identity.uid != uid and not (allow_admin and is_admin_identity(db, identity)):
        raise HTTPException(status_code=403, detail="Not allowed for this user")
    user = db.get_user_by_uid(uid)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def current_user(db: DbClient, identity: Identity) -> UserRecord:
    """Returns the signed-in user's row, creating it on first use."""
    user = db.get_user_by_uid(identity.uid)
    if user:
        return user
    if not identity.email:
        raise HTTPException(
            status_code=400, detail="Signed-in account has no email address"
        )
    user, _ = db.get_or_create_user(
        identity.uid, identity.email, name=identity.name, phone=identity.phone
    )
    return user

"""
Identity verification for signed-in users.

The frontend signs users in with Firebase and sends the ID token as a
bearer token. Only claims from a verified token are trusted.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Optional, Protocol

import firebase_admin
from firebase_admin import auth as firebase_auth

from writory.errors import AuthError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    uid: str
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    email_verified: bool = False


class AuthVerifier(Protocol):
    def verify(self, token: str) -> Identity:
        ...


class FirebaseAuthVerifier:
    _init_lock = threading.Lock()

    def __init__(self, project_id: Optional[str] = None):
        self.project_id = project_id
        with self._init_lock:
            try:
                self.app = firebase_admin.get_app()
            except ValueError:
                options = {"projectId": project_id} if project_id else None
                self.app = firebase_admin.initialize_app(options=options)

    def verify(self, token: str) -> Identity:
        try:
            claims = firebase_auth.verify_id_token(token, app=self.app)
        except (ValueError, firebase_auth.InvalidIdTokenError) as exc:
            raise AuthError("Invalid or expired sign-in token.") from exc
        except firebase_auth.CertificateFetchError as exc:
            logger.exception("Could not fetch Firebase signing certificates")
            raise AuthError("Could not verify sign-in token.") from exc
        email = claims.get("email")
        return Identity(
            uid=claims["uid"],
            email=email.lower() if email else None,
            name=claims.get("name"),
            phone=claims.get("phone_number"),
            email_verified=bool(claims.get("email_verified")),
        )


@dataclass
class StaticAuthVerifier:
    """Maps fixed tokens to identities. Used in tests and local runs."""

    identities: dict[str, Identity] = field(default_factory=dict)

    def add(self, token: str, identity: Identity) -> None:
        self.identities[token] = identity

    def verify(self, token: str) -> Identity:
        identity = self.identities.get(token)
        if identity is None:
            raise AuthError("Invalid or expired sign-in token.")
        return identity

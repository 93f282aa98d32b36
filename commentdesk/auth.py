"""
Admin access gate - password checks, signed tokens and admin accounts

Passwords are stored as salted pbkdf2_sha256 hashes. A successful login
returns a signed, expiring JWT which every admin endpoint verifies through
the ``require_admin`` dependency.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.hash import pbkdf2_sha256 as hasher

from commentdesk.errors import (
    AuthenticationFailed,
    DomainRuleViolation,
    InvalidToken,
    NotFound,
    StoreError,
    TokenRequired,
    ValidationFailed,
)
from commentdesk.models import AdminAccount, utcnow
from commentdesk.store import RecordStore

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# Columns an admin may change on another admin account
UPDATABLE_ADMIN_FIELDS = ("name", "role", "is_active")


def hash_password(password: str) -> str:
    """Hash password with pbkdf2_sha256"""
    return hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against hash"""
    try:
        return hasher.verify(password, password_hash)
    except (ValueError, TypeError):
        return False


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


class TokenService:
    """Issues and checks admin session tokens."""

    def __init__(self, secret: str, issuer: str = "commentdesk", expire_minutes: int = 480):
        if not secret:
            raise ValueError("A signing secret is required for admin tokens")
        self.secret = secret
        self.issuer = issuer
        self.expire_minutes = expire_minutes

    def issue(self, profile: Mapping[str, Any]) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": profile["id"],
            "email": profile["email"],
            "name": profile.get("name"),
            "role": profile.get("role") or "admin",
            "iss": self.issuer,
            "iat": now,
            "exp": now + timedelta(minutes=self.expire_minutes),
        }
        return jwt.encode(payload, self.secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> Dict[str, Any]:
        """Return the admin profile carried by ``token``.

        Raises:
            InvalidToken: bad signature, expired, wrong issuer or not a JWT.
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[ALGORITHM], issuer=self.issuer)
        except JWTError as e:
            logger.info(f"Rejected admin token: {e}")
            raise InvalidToken() from e

        if not payload.get("sub") or not payload.get("email"):
            raise InvalidToken()
        return {
            "id": payload["sub"],
            "email": payload["email"],
            "name": payload.get("name"),
            "role": payload.get("role") or "admin",
        }


bearer = HTTPBearer(auto_error=False)


def admin_dependency(
    token_service: TokenService, admins: Optional["AdminService"] = None
) -> Callable[..., Dict[str, Any]]:
    """Build a FastAPI dependency that admits only holders of a valid token.

    With ``admins`` given, the token's account must also still exist and be
    active, so deactivating or deleting an admin revokes access at once.
    """

    def require_admin(
        creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    ) -> Dict[str, Any]:
        if creds is None or not creds.credentials:
            raise TokenRequired()
        profile = token_service.verify(creds.credentials)
        if admins is not None and not admins.is_active(profile["id"]):
            logger.info(f"Rejected token for inactive or deleted admin {profile['id']}")
            raise InvalidToken()
        return profile

    return require_admin


class AdminService:
    """Admin account storage and credential checks."""

    def __init__(self, store: RecordStore):
        self.store = store

    def _find_by_email(self, email: str) -> Optional[AdminAccount]:
        rows = self.store.query(
            "SELECT * FROM admin_users WHERE email = :email", {"email": normalize_email(email)}
        )
        return AdminAccount.from_row(rows[0]) if rows else None

    def _get(self, admin_id: str) -> AdminAccount:
        row = self.store.get_by_id("admin_users", admin_id)
        if not row:
            raise NotFound("Admin not found")
        return AdminAccount.from_row(row)

    def authenticate(self, email: Optional[str], password: Optional[str]) -> Dict[str, Any]:
        """Return the admin profile for valid credentials.

        Unknown email, inactive account and wrong password all fail the same
        way so callers cannot probe which accounts exist.
        """
        if not normalize_email(email) or not password:
            raise ValidationFailed("Email and password are required")

        account = self._find_by_email(email)
        if account is None or not account.is_active:
            logger.info(f"Login rejected for {normalize_email(email)}: no active account")
            raise AuthenticationFailed("Invalid credentials")
        if not verify_password(password, account.password_hash):
            logger.info(f"Login rejected for {account.email}: wrong password")
            raise AuthenticationFailed("Invalid credentials")

        try:
            self.store.update("admin_users", account.id, {"last_login": utcnow().isoformat()})
        except StoreError as e:
            logger.warning(f"Could not record last login for {account.email}: {e}")

        return account.profile()

    def list_admins(self) -> List[Dict[str, Any]]:
        rows = self.store.query("SELECT * FROM admin_users ORDER BY created_at DESC")
        return [AdminAccount.from_row(row).to_public_dict() for row in rows]

    def is_active(self, admin_id: str) -> bool:
        row = self.store.get_by_id("admin_users", admin_id)
        return bool(row and row.get("is_active"))

    def create_admin(
        self,
        email: Optional[str],
        password: Optional[str],
        name: Optional[str] = None,
        role: Optional[str] = "admin",
    ) -> Dict[str, Any]:
        email = normalize_email(email)
        if not email or not password:
            raise ValidationFailed("Email and password are required")
        if self._find_by_email(email) is not None:
            raise DomainRuleViolation("Admin with this email already exists")

        now = utcnow()
        account = AdminAccount(
            id=str(uuid.uuid4()),
            email=email,
            password_hash=hash_password(password),
            name=(name or "").strip() or None,
            role=role or "admin",
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self.store.insert("admin_users", [account.to_row()])
        logger.info(f"Created admin account {account.email}")
        return account.to_public_dict()

    def update_admin(self, admin_id: str, changes: Mapping[str, Any]) -> None:
        fields = {key: changes[key] for key in UPDATABLE_ADMIN_FIELDS if key in changes}
        if not fields:
            raise ValidationFailed("No valid fields to update")
        if "is_active" in fields and not isinstance(fields["is_active"], bool):
            raise ValidationFailed("is_active must be true or false")
        if "role" in fields and not (fields["role"] or "").strip():
            raise ValidationFailed("role must not be empty")

        self._get(admin_id)
        self.store.update("admin_users", admin_id, fields)
        logger.info(f"Updated admin {admin_id}: {sorted(fields)}")

    def change_password(self, admin_id: str, new_password: Optional[str]) -> None:
        if not new_password:
            raise ValidationFailed("New password is required")
        self._get(admin_id)
        self.store.update("admin_users", admin_id, {"password_hash": hash_password(new_password)})
        logger.info(f"Password changed for admin {admin_id}")

    def delete_admin(self, admin_id: str) -> None:
        if not self.store.delete("admin_users", admin_id):
            raise NotFound("Admin not found")
        logger.info(f"Deleted admin {admin_id}")

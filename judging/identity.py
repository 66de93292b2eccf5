"""
Credential hashing and session tokens.

The core only ever sees a ``Principal``; this module is the thin identity
provider in front of it.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import timedelta
from typing import Callable, Dict, Optional, Tuple

from .errors import AuthenticationError, PermissionDeniedError
from .models import Principal, Role
from .store import JudgingStore

logger = logging.getLogger(__name__)


def sha256(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def hash_password(password: str) -> str:
    salt = secrets.token_hex(8)
    return f"sha256${salt}${sha256(salt + password)}"


def verify_password(password: str, stored: str) -> bool:
    if not stored:
        return False
    if stored.startswith("sha256$"):
        parts = stored.split("$", 2)
        if len(parts) != 3:
            logger.warning("Malformed password hash on record")
            return False
        _, salt, digest = parts
        return secrets.compare_digest(sha256(salt + password), digest)
    # unsalted hashes from older imports
    return secrets.compare_digest(sha256(password), stored)


def require_role(principal: Principal, *roles: Role) -> Principal:
    if principal.role not in roles:
        allowed = ", ".join(r.value for r in roles)
        raise PermissionDeniedError(f"This action requires one of: {allowed}.")
    return principal


class IdentityProvider:
    def __init__(self, store: JudgingStore, session_ttl_hours: int = 12):
        self.store = store
        self.session_ttl = timedelta(hours=session_ttl_hours)
        # one lookup per role; a new Role member without an entry fails at startup
        self._lookups: Dict[Role, Callable[[str], Optional[object]]] = {
            Role.judge: store.get_judge_by_username,
            Role.superjudge: store.get_super_judge_by_username,
            Role.admin: store.get_admin_by_username,
        }
        missing = set(Role) - set(self._lookups)
        if missing:
            raise RuntimeError(f"No account lookup for roles: {sorted(r.value for r in missing)}")

    def ensure_admin(self, username: str, password: str) -> None:
        if self.store.get_admin_by_username(username) is None:
            self.store.add_admin("Administrator", username, hash_password(password))
            logger.info("Created bootstrap admin account '%s'", username)

    def authenticate(self, username: str, password: str, role: Role) -> Tuple[str, Principal]:
        account = self._lookups[role](username.strip())
        if account is None or not verify_password(password, account.password_hash):
            logger.warning("Failed %s login for '%s'", role.value, username)
            raise AuthenticationError("Invalid username or password.")
        principal = Principal(id=account.id, role=role, display_name=account.name)
        token = secrets.token_urlsafe(24)
        self.store.create_session(token, principal, self.session_ttl)
        logger.info("%s '%s' logged in", role.value, username)
        return token, principal

    def principal_for_token(self, token: Optional[str]) -> Principal:
        if not token:
            raise AuthenticationError("Missing session token.")
        principal = self.store.get_session(token)
        if principal is None:
            raise AuthenticationError("Invalid or expired session.")
        return principal

    def logout(self, token: str) -> None:
        self.store.delete_session(token)

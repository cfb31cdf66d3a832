from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import jwt, JWTError
import hashlib
import secrets
import time
import logging

from app.core.config import SECRET_KEY, ACCESS_TOKEN_EXPIRE_MINUTES
from app.core.ttl_cache import TTLCache

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class JWTSessionManager:
    """JWT-based session manager"""

    def __init__(self, secret_key: str = SECRET_KEY, access_token_expiry: Optional[timedelta] = None):
        self.secret_key = secret_key
        self.algorithm = ALGORITHM
        self.access_token_expiry = access_token_expiry or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

        # Revoked token hashes live only until the token would have expired anyway
        self.revoked_tokens = TTLCache(max(self.access_token_expiry.total_seconds(), 1), clock=time.time)

        # Cleanup old revoked tokens every hour
        self._last_cleanup = time.time()
        self._cleanup_interval = 3600  # 1 hour

    def _cleanup_revoked_tokens(self):
        """Clean up expired revoked tokens to prevent memory growth"""
        current_time = time.time()

        # Only cleanup if enough time has passed
        if current_time - self._last_cleanup < self._cleanup_interval:
            return

        removed = self.revoked_tokens.purge_expired()
        self._last_cleanup = current_time
        if removed:
            logger.info(f"Cleaned up {removed} expired revoked tokens")

    def _get_token_hash(self, token: str) -> str:
        """Get a hash of the token for storage (saves memory)"""
        return hashlib.sha256(token.encode()).hexdigest()

    def create_session(self, user_id: str, email: Optional[str] = None) -> Dict[str, Any]:
        """Create a JWT access token for an authenticated dashboard user"""
        now = datetime.now(timezone.utc)

        access_payload = {
            "sub": str(user_id),  # Subject (user id)
            "email": email,
            "iat": now,           # Issued at
            "exp": now + self.access_token_expiry,  # Expires
            "type": "access",
            "session_id": secrets.token_urlsafe(16),  # Unique session identifier
        }

        access_token = jwt.encode(access_payload, self.secret_key, algorithm=self.algorithm)

        return {
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": int(self.access_token_expiry.total_seconds()),
            "session_id": access_payload["session_id"],
        }

    def get_session(self, token: str) -> Optional[Dict[str, Any]]:
        """Validate and decode JWT token"""
        try:
            # Clean up expired revoked tokens periodically
            self._cleanup_revoked_tokens()

            if self._get_token_hash(token) in self.revoked_tokens:
                return None

            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])

            if payload.get("type") != "access":
                return None

            exp = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
            return {
                "user_id": payload["sub"],
                "email": payload.get("email"),
                "session_id": payload["session_id"],
                "expires_at": exp.isoformat(),
            }

        except (JWTError, KeyError):
            return None

    def revoke(self, token: str) -> bool:
        """Revoke a token (logout)"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return False

        remaining = payload["exp"] - time.time()
        if remaining > 0:
            self.revoked_tokens.set(self._get_token_hash(token), ttl_seconds=remaining)
        return True

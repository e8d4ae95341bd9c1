"""Authentication service: single shared password, in-memory sessions."""

import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

import bcrypt
import yaml

from keybook.models.auth import Session
from keybook.models.config import AuthSettings
from keybook.services.yaml_service import YAMLService

logger = logging.getLogger("keybook")

DEFAULT_PASSWORD = "adminadmin"
BCRYPT_ROUNDS = 12


class AuthService:
    """Service for password checks and session tokens."""

    def __init__(self, auth_settings: AuthSettings, config_path: Optional[Path] = None):
        """
        Initialize auth service.

        Args:
            auth_settings: Authentication settings from config
            config_path: config.yaml to persist the password hash into. The hash
                is kept in memory only when None.
        """
        self.settings = auth_settings
        self.config_path = config_path
        self._sessions: Dict[str, Session] = {}

        if self.settings.enabled and not self.settings.password_hash:
            logger.warning(f"No password hash configured, using the default password '{DEFAULT_PASSWORD}'")
            self._store_hash(self.hash_password(DEFAULT_PASSWORD))

    @property
    def is_enabled(self) -> bool:
        """Whether authentication is enforced."""
        return self.settings.enabled

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password with bcrypt."""
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")

    def verify_password(self, password: str) -> bool:
        """Check a password against the stored hash."""
        if not self.settings.password_hash:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), self.settings.password_hash.encode("utf-8"))
        except ValueError as e:
            # malformed hash in config.yaml
            logger.error(f"Password verification failed: {e}")
            return False

    def create_session(self, user_agent: Optional[str] = None, ip_address: Optional[str] = None) -> Session:
        """Open a new session."""
        self._purge_expired()
        session = Session.open(
            str(uuid.uuid4()),
            self.settings.session_expiry_hours,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        self._sessions[session.token] = session
        where = ip_address or "unknown address"
        logger.info(f"Session opened from {where}, expires {session.expires_at:%Y-%m-%d %H:%M}")
        return session

    def validate_session(self, token: str) -> Optional[Session]:
        """Return the session for a token, or None if unknown or expired."""
        session = self._sessions.get(token)
        if session is None:
            return None
        if session.is_expired():
            del self._sessions[token]
            return None
        return session

    def invalidate_session(self, token: str) -> bool:
        """Close a session. Returns False if the token was not open."""
        if self._sessions.pop(token, None) is None:
            return False
        logger.info("Session closed")
        return True

    def change_password(self, current_password: str, new_password: str) -> bool:
        """
        Replace the password and close every open session.

        Returns:
            False if the current password is wrong
        """
        if not self.verify_password(current_password):
            return False
        self._store_hash(self.hash_password(new_password))
        self._sessions.clear()
        logger.info("Password changed, all sessions closed")
        return True

    def _purge_expired(self) -> None:
        now = datetime.now()
        expired = [token for token, session in self._sessions.items() if session.is_expired(now)]
        for token in expired:
            del self._sessions[token]
        if expired:
            logger.debug(f"Purged {len(expired)} expired sessions")

    def _store_hash(self, password_hash: str) -> None:
        """Keep the hash in memory and write it back to config.yaml when one is in use."""
        self.settings.password_hash = password_hash
        if self.config_path is None:
            return
        try:
            config_data = YAMLService.load_yaml(self.config_path) if self.config_path.exists() else {}
            config_data.setdefault("auth", {})["password_hash"] = password_hash
            YAMLService.save_yaml(self.config_path, config_data)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Could not persist password hash to {self.config_path}: {e}")

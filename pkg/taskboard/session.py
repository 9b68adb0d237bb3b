"""
Session boundary: who is acting.

Credentials live elsewhere; the core only needs the acting user's id.
"""
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class Session:
    """Holds the signed-in user id for one application session."""

    def __init__(self, user_id: Optional[str] = None):
        self._user_id = str(user_id) if user_id else None

    @property
    def current_user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def is_authenticated(self) -> bool:
        return self._user_id is not None

    def sign_in(self, user_id: str) -> None:
        if not user_id:
            raise ValueError("user_id is required")
        self._user_id = str(user_id)
        logger.info(f"Session signed in as {self._user_id}")

    def sign_out(self) -> None:
        if self._user_id is not None:
            logger.info(f"Session for {self._user_id} signed out")
        self._user_id = None

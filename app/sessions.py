# Session store: the create/get/destroy capability behind API-key authentication

import logging
from abc import ABC, abstractmethod
from typing import Optional
import utils

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    @abstractmethod
    def create(self, user_id: str) -> str:
        """Issue a new key for user_id and return it; only its hash is kept."""

    @abstractmethod
    def get(self, api_key: str) -> Optional[str]:
        """The user id the key belongs to, or None."""

    @abstractmethod
    def destroy(self, api_key: str) -> None:
        """Revoke the key."""


class StoreSessionStore(SessionStore):
    """Keeps hashed API keys in the sessions table of the given store."""

    def __init__(self, store):
        self.store = store

    def create(self, user_id):
        api_key = utils.generate_api_key()
        self.store.create_session(utils.hash_api_key(api_key), user_id)
        logger.info(f"Issued API key for user {user_id}")
        return api_key

    def get(self, api_key):
        if not api_key:
            return None
        return self.store.get_session_user_id(utils.hash_api_key(api_key))

    def destroy(self, api_key):
        self.store.delete_session(utils.hash_api_key(api_key))
        logger.info("Revoked API key")

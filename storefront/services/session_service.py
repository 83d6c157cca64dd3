# storefront/services/session_service.py
import json
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import redis

from storefront.utils.logging import get_logger
from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL, SESSION_MAX_AGE

logger = get_logger(__name__)


class SessionStore:
    """
    Server-side anonymous sessions kept in Redis.

    - one key per session: session:{id} -> JSON payload
    - the key expires together with the session (EX), nothing to clean up
    - the cookie only carries the random session id
    """

    def __init__(self, client: redis.Redis | None = None, max_age: int = SESSION_MAX_AGE):
        self.redis = client or redis.Redis.from_url(REDIS_URL, decode_responses=True)
        self.max_age = max_age

    @staticmethod
    def _key(session_id: str) -> str:
        return f"session:{session_id}"

    @redis_retry()
    def create_session(self, user_id: str | None = None) -> str:
        session_id = uuid.uuid4().hex
        now = datetime.now(timezone.utc)
        payload = {
            "id": session_id,
            "user_id": user_id,
            "created_at": now.isoformat(),
            "expires_at": (now + timedelta(seconds=self.max_age)).isoformat(),
        }

        # SET session:<id> <json> NX EX <max_age>
        created = self.redis.set(
            name=self._key(session_id),
            value=json.dumps(payload),
            nx=True,
            ex=self.max_age,
        )
        if not created:
            raise redis.RedisError(f"Session id collision for {session_id}")

        logger.info(f"Created session {session_id}")
        return session_id

    @redis_retry()
    def get_session(self, session_id: str) -> Dict[str, Any] | None:
        raw = self.redis.get(self._key(session_id))
        if raw is None:
            return None
        return json.loads(raw)

    @redis_retry()
    def delete_session(self, session_id: str) -> bool:
        logger.info(f"Deleting session {session_id}")
        return bool(self.redis.delete(self._key(session_id)))

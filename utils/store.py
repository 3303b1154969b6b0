# utils/store.py
"""Users, permissions and schools.

Schools are static configuration. Users live in Redis, one hash per
``(school, username)``::

    user:<school_id>:<username>
        password     Fernet token
        is_parent    "1" / "0"
        permission   "1" / "0"
        children     orjson {name: id}
        updated_at   unix seconds

School permission overrides set by an admin live in the
``school_permissions`` hash; without one the configured default applies.
"""
import logging
import time

import orjson
import redis
from cryptography.fernet import Fernet, InvalidToken

from config import config
from scraping.models import Credentials, School
from sessions.errors import NotFound, StoreError

logger = logging.getLogger(__name__)

SCHOOL_PERMISSIONS_HASH = "school_permissions"


def load_schools(path: str | None = None) -> list[School]:
    """Reads the school list from ``SCHOOLS_FILE`` or falls back to the built-in one."""
    path = path if path is not None else config.SCHOOLS_FILE
    if path:
        try:
            with open(path, "rb") as f:
                raw = orjson.loads(f.read())
        except (OSError, orjson.JSONDecodeError) as e:
            logger.critical(f"Could not read schools file {path}: {e}")
            raise
        logger.info(f"Loaded {len(raw)} schools from {path}")
    else:
        raw = config.DEFAULT_SCHOOLS
    return [School.from_dict(item) for item in raw]


def _user_key(username: str, school_id) -> str:
    return f"user:{int(school_id)}:{username}"


def _flag(value) -> bool:
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    return str(value) == "1"


class UserStore:
    def __init__(self, redis_client, fernet: Fernet | None = None, schools=None):
        self.redis = redis_client
        self.fernet = fernet or Fernet(config.ENCRYPTION_KEY.encode())
        schools = schools if schools is not None else load_schools()
        self._schools = {school.id: school for school in schools}

    @property
    def _client(self):
        if self.redis is None:
            logger.error("Redis client unavailable for the user store.")
            raise StoreError(log_message="Redis client unavailable")
        return self.redis

    # --- Schools ---

    def get_schools(self) -> list[School]:
        return list(self._schools.values())

    def get_school(self, school_id) -> School:
        try:
            return self._schools[int(school_id)]
        except (KeyError, TypeError, ValueError):
            raise NotFound(f"School {school_id} not found") from None

    def get_school_permission(self, school_id) -> bool:
        school = self.get_school(school_id)
        try:
            override = self._client.hget(SCHOOL_PERMISSIONS_HASH, str(school.id))
        except redis.exceptions.RedisError as e:
            logger.error(f"[Redis] Error reading permission of school {school_id}: {e}")
            raise StoreError(log_message=f"Redis error: {e}") from e
        if override is None:
            return school.permission
        return _flag(override)

    def set_school_permission(self, school_id, permission: bool) -> None:
        school = self.get_school(school_id)
        try:
            self._client.hset(SCHOOL_PERMISSIONS_HASH, str(school.id), "1" if permission else "0")
        except redis.exceptions.RedisError as e:
            logger.error(f"[Redis] Error setting permission of school {school_id}: {e}")
            raise StoreError(log_message=f"Redis error: {e}") from e
        logger.info(f"School {school.id} permission set to {permission}")

    # --- Users ---

    def _read_user(self, username: str, school_id) -> dict:
        school = self.get_school(school_id)
        try:
            record = self._client.hgetall(_user_key(username, school.id))
        except redis.exceptions.RedisError as e:
            logger.error(f"[Redis] Error reading user {username}@{school_id}: {e}")
            raise StoreError(log_message=f"Redis error: {e}") from e
        if not record:
            raise NotFound(f"User {username} not found in school {school_id}")
        return {
            (k.decode("utf-8") if isinstance(k, bytes) else k): v
            for k, v in record.items()
        }

    def get_user_auth_data(self, username: str, school_id) -> tuple[School, Credentials]:
        record = self._read_user(username, school_id)
        token = record.get("password")
        if not token:
            raise NotFound(f"No stored password for {username}")
        if isinstance(token, str):
            token = token.encode("utf-8")
        try:
            password = self.fernet.decrypt(token).decode("utf-8")
        except InvalidToken as e:
            logger.error(
                f"InvalidToken: Failed to decrypt password for {username}. Stored data might be corrupted or using wrong key."
            )
            raise StoreError(log_message=f"Undecryptable password for {username}") from e
        return self.get_school(school_id), Credentials(username=username, password=password)

    def get_user_permission(self, username: str, school_id) -> bool:
        record = self._read_user(username, school_id)
        return _flag(record.get("permission", "1"))

    def get_user_children(self, username: str, school_id) -> dict:
        record = self._read_user(username, school_id)
        raw = record.get("children")
        if not raw:
            return {}
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            logger.error(f"Corrupt children map stored for {username}: {e}")
            raise StoreError(log_message=f"Corrupt children map for {username}") from e

    def update_user(
        self, username: str, password: str, is_parent: bool, school_id, children_map: dict
    ) -> None:
        """Creates or refreshes the user's record. New users start out permitted."""
        school = self.get_school(school_id)
        key = _user_key(username, school.id)
        try:
            encrypted = self.fernet.encrypt(password.encode("utf-8"))
            pipe = self._client.pipeline()
            pipe.hset(
                key,
                mapping={
                    "password": encrypted,
                    "is_parent": "1" if is_parent else "0",
                    "children": orjson.dumps(children_map or {}),
                    "updated_at": str(int(time.time())),
                },
            )
            pipe.hsetnx(key, "permission", "1")
            pipe.execute()
        except redis.exceptions.RedisError as e:
            logger.error(f"[Redis] Error storing user {username}@{school_id}: {e}")
            raise StoreError(log_message=f"Redis error: {e}") from e
        logger.info(f"Stored/Updated user {username} for school {school.id}")

    def set_user_permission(self, username: str, school_id, permission: bool) -> None:
        school = self.get_school(school_id)
        key = _user_key(username, school.id)
        try:
            if not self._client.exists(key):
                raise NotFound(f"User {username} not found in school {school_id}")
            self._client.hset(key, "permission", "1" if permission else "0")
        except redis.exceptions.RedisError as e:
            logger.error(f"[Redis] Error setting permission of {username}: {e}")
            raise StoreError(log_message=f"Redis error: {e}") from e
        logger.info(f"User {username}@{school.id} permission set to {permission}")

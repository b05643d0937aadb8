"""
Cache key and TTL registry.

Key functions are pure: the same inputs always produce the same key, and every
dimension that changes the cached value is encoded in the key.
"""

from enum import IntEnum
from typing import Any

import orjson
from pydantic import BaseModel

from telehealth_cache.core.config.constants import (
    KEY_NAMESPACE_AI,
    KEY_NAMESPACE_ANALYSIS,
    KEY_NAMESPACE_DOCTOR,
    KEY_NAMESPACE_DOCTORS,
    KEY_NAMESPACE_RATE_LIMIT,
    KEY_NAMESPACE_TAG,
    KEY_NAMESPACE_USER,
)


class CacheTTL(IntEnum):
    """TTL tiers in seconds, chosen per data-volatility class."""

    VERY_SHORT = 60
    SHORT = 300
    MEDIUM = 900
    HOUR = 3600
    DAY = 86400
    WEEK = 604800
    MONTH = 2592000

    USER_PROFILE = 3600
    DOCTOR_LIST = 300
    AI_ANALYSIS = 2592000
    SESSION = 86400
    RATE_LIMIT_WINDOW = 60


def canonicalize_filters(filters: BaseModel | dict[str, Any] | None) -> str:
    """
    Serialize a filter set deterministically.

    Unset (None) fields are dropped and the remaining fields are serialized as
    JSON with sorted keys, so ``{"b": 1, "a": 2}`` and ``{"a": 2, "b": 1}``
    produce the same string. An empty filter set yields ``""``.
    """
    if filters is None:
        return ""
    if isinstance(filters, BaseModel):
        data = filters.model_dump(mode="json", exclude_none=True)
    else:
        data = {k: v for k, v in filters.items() if v is not None}
    if not data:
        return ""
    return orjson.dumps(data, option=orjson.OPT_SORT_KEYS).decode("utf-8")


def key_namespace(key: str) -> str:
    """First segment of a key, used as the metrics label."""
    return key.split(":", 1)[0]


class CacheKeys:
    """Key builders for every cached concept."""

    DOCTOR_LIST_TAG = f"{KEY_NAMESPACE_DOCTORS}:list"

    # User
    @staticmethod
    def user_profile(user_id: str) -> str:
        return f"{KEY_NAMESPACE_USER}:{user_id}:profile"

    @staticmethod
    def user_session(user_id: str) -> str:
        return f"{KEY_NAMESPACE_USER}:{user_id}:session"

    @staticmethod
    def user_preferences(user_id: str) -> str:
        return f"{KEY_NAMESPACE_USER}:{user_id}:preferences"

    # AI analysis
    @staticmethod
    def analysis(image_hash: str) -> str:
        return f"{KEY_NAMESPACE_ANALYSIS}:{image_hash}"

    @staticmethod
    def analysis_explanation(analysis_id: str, language: str) -> str:
        return f"{KEY_NAMESPACE_ANALYSIS}:{analysis_id}:explanation:{language}"

    @staticmethod
    def ai_result(purpose: str, digest: str, *secondary: str) -> str:
        """``ai:<purpose>:<digest>[:<secondary>...]``"""
        return ":".join((KEY_NAMESPACE_AI, purpose, digest, *secondary))

    # Doctors
    @staticmethod
    def doctor_profile(doctor_id: str) -> str:
        return f"{KEY_NAMESPACE_DOCTOR}:{doctor_id}:profile"

    @staticmethod
    def doctor_list(filters: BaseModel | dict[str, Any] | None = None) -> str:
        canonical = canonicalize_filters(filters)
        if not canonical:
            return f"{CacheKeys.DOCTOR_LIST_TAG}:all"
        return f"{CacheKeys.DOCTOR_LIST_TAG}:{canonical}"

    # Appointments
    @staticmethod
    def appointment(appointment_id: str) -> str:
        return f"appointment:{appointment_id}"

    @staticmethod
    def user_appointments(user_id: str) -> str:
        return f"{KEY_NAMESPACE_USER}:{user_id}:appointments"

    @staticmethod
    def doctor_appointments(doctor_id: str) -> str:
        return f"{KEY_NAMESPACE_DOCTOR}:{doctor_id}:appointments"

    # Rate limiting
    @staticmethod
    def rate_limit(endpoint: str, identity: str) -> str:
        return f"{KEY_NAMESPACE_RATE_LIMIT}:{endpoint}:{identity}"

    # Admin
    @staticmethod
    def admin_stats() -> str:
        return "admin:stats"

    @staticmethod
    def admin_requests(status: str | None = None) -> str:
        return f"admin:requests:{status}" if status else "admin:requests:all"

    # Messaging
    @staticmethod
    def chat_channel(channel_id: str) -> str:
        return f"chat:{channel_id}"

    @staticmethod
    def notification_queue() -> str:
        return "queue:notifications"

    # Tag index
    @staticmethod
    def tag(name: str) -> str:
        return f"{KEY_NAMESPACE_TAG}:{name}"

# ============================================================================
# SiteCheck - Check Scheduling Configuration
# ============================================================================
# Database-backed configuration with type casting and defaults.
# Calendar days are taken in the configured site timezone.
# ============================================================================

import datetime
import json
import logging
from typing import Any, Dict
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .repository import get_db

logger = logging.getLogger("checks.config")

UK_TIMEZONE = ZoneInfo("Europe/London")

# key -> (default, value_type, category)
DEFAULT_CONFIG = {
    "timezone": ("Europe/London", "string", "general"),

    # Generation
    "lookahead_days": (30, "int", "generation"),
    "generation_enabled": (False, "bool", "generation"),
    "generation_hour": (2, "int", "generation"),

    # Claims
    "claim_expiry_hours": (4, "int", "claims"),
    "claim_release_interval_minutes": (15, "int", "claims"),
}


class CheckConfig:
    """
    Configuration manager for check scheduling.

    Values live in the check_config table; anything not stored falls back to
    DEFAULT_CONFIG.
    """

    _cache: Dict[str, Any] = {}
    _cache_loaded: bool = False

    @classmethod
    def _load_cache(cls):
        if cls._cache_loaded:
            return

        for key, (default, vtype, category) in DEFAULT_CONFIG.items():
            cls._cache[key] = default

        conn = get_db()
        rows = conn.execute("SELECT key, value, value_type FROM check_config").fetchall()
        conn.close()

        for row in rows:
            cls._cache[row["key"]] = cls._cast_value(row["value"], row["value_type"])

        cls._cache_loaded = True

    @classmethod
    def _cast_value(cls, value: str, value_type: str) -> Any:
        if value is None:
            return None
        if value_type == "bool":
            return value.lower() in ("true", "1", "yes", "on")
        if value_type == "int":
            try:
                return int(value)
            except ValueError:
                logger.warning(f"[Checks] Config value {value!r} is not an int, using 0")
                return 0
        if value_type == "json":
            try:
                return json.loads(value)
            except ValueError:
                return {}
        return value

    @classmethod
    def _serialize_value(cls, value: Any, value_type: str) -> str:
        if value is None:
            return ""
        if value_type == "bool":
            return "true" if value else "false"
        if value_type == "json":
            return json.dumps(value)
        return str(value)

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        cls._load_cache()
        return cls._cache.get(key, default)

    @classmethod
    def set(cls, key: str, value: Any, value_type: str = None, category: str = "general",
            user: str = None) -> bool:
        cls._load_cache()

        if value_type is None:
            if key in DEFAULT_CONFIG:
                _, value_type, category = DEFAULT_CONFIG[key]
            elif isinstance(value, bool):
                value_type = "bool"
            elif isinstance(value, int):
                value_type = "int"
            elif isinstance(value, (dict, list)):
                value_type = "json"
            else:
                value_type = "string"

        old_value = cls._cache.get(key)
        serialized = cls._serialize_value(value, value_type)

        conn = get_db()
        conn.execute(
            """INSERT INTO check_config (key, value, value_type, category, updated_by)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(key) DO UPDATE SET
               value = excluded.value,
               value_type = excluded.value_type,
               category = excluded.category,
               updated_at = CURRENT_TIMESTAMP,
               updated_by = excluded.updated_by""",
            (key, serialized, value_type, category, user),
        )
        conn.commit()
        conn.close()

        cls._cache[key] = cls._cast_value(serialized, value_type)

        if old_value != cls._cache[key]:
            logger.info(f"[Checks] Config {key} changed from {old_value!r} to {value!r} by {user or 'system'}")
        return True

    @classmethod
    def get_all(cls) -> Dict[str, Any]:
        cls._load_cache()
        return dict(cls._cache)

    @classmethod
    def reset_cache(cls):
        cls._cache = {}
        cls._cache_loaded = False

    @classmethod
    def init_defaults(cls):
        """Write any missing default values to the check_config table."""
        conn = get_db()
        for key, (default, value_type, category) in DEFAULT_CONFIG.items():
            conn.execute(
                """INSERT OR IGNORE INTO check_config (key, value, value_type, category)
                   VALUES (?, ?, ?, ?)""",
                (key, cls._serialize_value(default, value_type), value_type, category),
            )
        conn.commit()
        conn.close()
        cls.reset_cache()


# Convenience functions
def get_config(key: str, default: Any = None) -> Any:
    return CheckConfig.get(key, default)


def set_config(key: str, value: Any, user: str = None) -> bool:
    return CheckConfig.set(key, value, user=user)


# ============================================================================
# Timezone Helpers
# ============================================================================

def get_timezone() -> ZoneInfo:
    """Get the configured site timezone."""
    tz_name = get_config("timezone", "Europe/London")
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"[Checks] Unknown timezone {tz_name!r}, using Europe/London")
        return UK_TIMEZONE


def get_local_now() -> datetime.datetime:
    """Current time in the configured timezone."""
    return datetime.datetime.now(get_timezone())

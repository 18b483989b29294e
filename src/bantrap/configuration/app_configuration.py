from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from bantrap.datatypes.trap_datatypes import DEFAULT_DELETE_MESSAGE_SECONDS, PREVIEW_LIMIT
from bantrap.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml")
DEFAULT_DB_PATH = Path("./data/bantrap.db")

# Discord rejects delete_message_seconds above 7 days
MAX_DELETE_MESSAGE_SECONDS = 7 * 24 * 60 * 60
# Embed field values are capped at 1024 characters
MAX_PREVIEW_LIMIT = 1000


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    The class caches the contents of ``./config/app_config.yml`` and exposes
    typed shortcuts for the few global knobs Bantrap has. A missing or
    malformed file yields an empty mapping, so every shortcut falls back to
    its default.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.warning("[APP CONFIGURATION] Config file %s not found, using defaults.", self.config_path)
            return {}
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if not isinstance(data, dict):
            if data is not None:
                logger.error("[APP CONFIGURATION] Config %s is not a mapping, ignoring it.", self.config_path)
            return {}
        return data

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._data.get(name, {})
        return section if isinstance(section, dict) else {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Re-read the YAML file, replace the in-memory cache and return it."""
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Current cached configuration mapping. Callers should not mutate it."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def database_path(self) -> Path:
        """Location of the SQLite file holding trap settings."""
        value = self._section("database").get("path")
        if not value:
            return DEFAULT_DB_PATH.resolve()
        return Path(str(value)).expanduser().resolve()

    @property
    def delete_message_seconds(self) -> int:
        """Message-retention window applied to every trap ban, in seconds.

        Defaults to 7 days and is clamped to Discord's accepted range.
        """
        raw = self._section("enforcement").get("delete_message_seconds", DEFAULT_DELETE_MESSAGE_SECONDS)
        try:
            seconds = int(raw)
        except (TypeError, ValueError):
            logger.warning("[APP CONFIGURATION] Invalid delete_message_seconds %r, using default.", raw)
            return DEFAULT_DELETE_MESSAGE_SECONDS
        return max(0, min(seconds, MAX_DELETE_MESSAGE_SECONDS))

    @property
    def preview_limit(self) -> int:
        """Maximum number of message characters quoted in an audit record."""
        raw = self._section("audit").get("preview_limit", PREVIEW_LIMIT)
        try:
            limit = int(raw)
        except (TypeError, ValueError):
            logger.warning("[APP CONFIGURATION] Invalid preview_limit %r, using default.", raw)
            return PREVIEW_LIMIT
        return max(1, min(limit, MAX_PREVIEW_LIMIT))

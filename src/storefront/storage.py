"""Key-value storage for storefront collections."""

import copy
import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Protocol

import structlog

from .errors import StorageCorruptedError

logger = structlog.get_logger(__name__)

# Centralized storage constants
DATA_DIR_ENV = "STOREFRONT_DATA_DIR"

ORDERS_KEY = "orders"
EVENTS_KEY = "analytics_events"
PAGE_VIEWS_KEY = "page_views"
SESSIONS_KEY = "user_sessions"
CART_KEY = "cart"
PRODUCTS_KEY = "products"

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def get_data_dir() -> Path:
    """Data directory from STOREFRONT_DATA_DIR, or ./data under the working directory."""
    return Path(os.environ.get(DATA_DIR_ENV) or Path.cwd() / "data")


class KeyValueStore(Protocol):
    """Synchronous JSON persistence: one value per string key."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...


class MemoryStore:
    """In-process store. Values are deep-copied in and out, like a serialize round trip."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str) -> Any | None:
        if key not in self._data:
            return None
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStore:
    """Stores each key as <data_dir>/<key>.json, rewritten whole on every set."""

    def __init__(self, data_dir: Path | str | None = None):
        """
        Initialize JsonFileStore.

        Args:
            data_dir: Override data directory. Defaults to get_data_dir().
        """
        self.data_dir = Path(data_dir) if data_dir is not None else get_data_dir()

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.data_dir / f"{key}.json"

    def _ensure_dir(self) -> None:
        """Ensure data directory exists."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def exists(self, key: str) -> bool:
        return self._path(key).exists()

    def get(self, key: str) -> Any | None:
        """
        Load the value stored under key.

        Returns None if nothing has been stored yet.

        Raises:
            StorageCorruptedError: If the file is not valid JSON.
        """
        path = self._path(key)
        if not path.exists():
            return None

        with open(path, "r", encoding="utf-8") as f:
            try:
                return json.load(f)
            except json.JSONDecodeError as e:
                logger.error("Stored value is not valid JSON", key=key, path=str(path))
                raise StorageCorruptedError(key, str(path)) from e

    def set(self, key: str, value: Any) -> None:
        """
        Save a value atomically.

        Uses write-to-temp-then-rename for atomicity.
        """
        path = self._path(key)
        self._ensure_dir()

        fd, temp_path = tempfile.mkstemp(
            dir=self.data_dir, prefix=f".{key}_", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2, ensure_ascii=False)
                f.write("\n")  # trailing newline
            os.replace(temp_path, path)
        except Exception:
            # Clean up temp file on failure (ignore errors if already removed)
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

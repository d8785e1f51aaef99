"""
Provider credential pool.
Merges credentials from configuration with credentials registered at runtime.
"""
import sqlite3
from typing import Awaitable, Callable, Iterable

from models.chat_models import Credential, CredentialSource
from utils.errors import StaticCredentialError
from utils.kv_store import KeyValueStore
from utils.logger import app_logger, mask_secret


class CredentialPool:
    """Deduplicated union of static and dynamic provider credentials."""

    DYNAMIC_KEY = "credentials:dynamic"

    def __init__(self, kv: KeyValueStore, static_credentials: Iterable[str] = ()):
        self._kv = kv
        self._static = list(dict.fromkeys(v.strip() for v in static_credentials if v and v.strip()))

    @property
    def static_values(self) -> list[str]:
        return list(self._static)

    def dynamic_values(self) -> list[str]:
        """Runtime-registered credentials in registration order."""
        try:
            stored = self._kv.get(self.DYNAMIC_KEY)
        except sqlite3.Error as e:
            app_logger.warning(f"Dynamic credential fetch failed: {e}")
            return []

        if not isinstance(stored, list):
            return []
        return [v for v in stored if isinstance(v, str) and v]

    def _save_dynamic(self, values: list[str]) -> None:
        self._kv.set(self.DYNAMIC_KEY, values)

    def get_all(self) -> list[Credential]:
        """Effective pool: static first, then dynamic, each value at most once."""
        pool = {value: Credential(value, CredentialSource.STATIC) for value in self._static}
        for value in self.dynamic_values():
            pool.setdefault(value, Credential(value, CredentialSource.DYNAMIC))
        return list(pool.values())

    def add(self, value: str) -> bool:
        """Register a dynamic credential. Returns False if it is already pooled."""
        value = (value or "").strip()
        if not value:
            raise ValueError("Credential must not be empty")

        dynamic = self.dynamic_values()
        if value in self._static or value in dynamic:
            return False

        dynamic.append(value)
        self._save_dynamic(dynamic)
        app_logger.info(f"Credential {mask_secret(value)} added ({len(self._static) + len(dynamic)} pooled)")
        return True

    def remove(self, values: set[str]) -> int:
        """
        Remove dynamic credentials.

        Raises:
            StaticCredentialError: if any value is a static credential; nothing is removed.
        """
        static_hits = [v for v in values if v in self._static]
        if static_hits:
            raise StaticCredentialError(
                f"{len(static_hits)} of the given credentials come from configuration and cannot be removed."
            )

        dynamic = self.dynamic_values()
        kept = [v for v in dynamic if v not in values]
        removed = len(dynamic) - len(kept)
        if removed:
            self._save_dynamic(kept)
            app_logger.info(f"Removed {removed} dynamic credential(s)")
        return removed

    def remove_at(self, index: int) -> Credential:
        """Remove the dynamic credential at a 1-based index."""
        dynamic = self.dynamic_values()
        if index < 1 or index > len(dynamic):
            raise IndexError(f"No database credential #{index} (have {len(dynamic)})")

        value = dynamic[index - 1]
        self.remove({value})
        return Credential(value, CredentialSource.DYNAMIC)

    def clear_dynamic(self) -> int:
        """Remove every dynamic credential."""
        count = len(self.dynamic_values())
        self._save_dynamic([])
        app_logger.info(f"Cleared {count} dynamic credential(s)")
        return count

    async def prune(self, is_exhausted: Callable[[Credential], Awaitable[bool]]) -> int:
        """
        Remove dynamic credentials whose quota check reports nothing left.
        A check that raises keeps the credential.
        """
        exhausted = set()
        for value in self.dynamic_values():
            if value in self._static:
                continue
            credential = Credential(value, CredentialSource.DYNAMIC)
            try:
                if await is_exhausted(credential):
                    exhausted.add(value)
                    app_logger.info(f"Credential {mask_secret(value)} has no quota left")
            except Exception as e:
                app_logger.warning(f"Quota check failed for {mask_secret(value)}, keeping it: {e}")

        if not exhausted:
            return 0
        return self.remove(exhausted)

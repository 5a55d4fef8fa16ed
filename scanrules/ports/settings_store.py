# /scanrules/ports/settings_store.py
from __future__ import annotations

from typing import Protocol


class SettingsStorePort(Protocol):
    def get(self, name: str) -> str | None:
        """Return the raw textual value of a named setting, or None."""

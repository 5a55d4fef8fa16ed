# /scanrules/adapters/system/static_settings_store.py
from __future__ import annotations

from collections.abc import Mapping


class StaticSettingsStore:
    def __init__(self, values: Mapping[str, str | int] | None = None) -> None:
        self._values = {k: str(v) for k, v in (values or {}).items()}

    def get(self, name: str) -> str | None:
        return self._values.get(name)

from __future__ import annotations

import json
import os
from typing import Dict, Optional

from marble_race.config import BASE_DIR, get_config
from marble_race.database import queries as marble_queries

BALANCE_KEY = get_config("economy.balance_key", "marbleRaceGems")
STARTING_GEMS = int(get_config("economy.starting_gems", 1000))


class JsonFileBackend:
    """Stores string values in one JSON object on disk."""

    def __init__(self, path: str):
        self.path = path

    def _read_all(self) -> Dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as err:
            print(f"  -> Warning: could not read {self.path} ({err}).")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> bool:
        data = self._read_all()
        data[key] = value
        directory = os.path.dirname(self.path)
        tmp_path = f"{self.path}.tmp"
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            # Readers only ever see a complete file.
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as err:
            print(f"  -> Failed to write {self.path}: {err}")
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            return False
        return True


class PostgresBackend:
    def get(self, key: str) -> Optional[str]:
        return marble_queries.get_stored_value(key)

    def set(self, key: str, value: str) -> bool:
        return marble_queries.set_stored_value(key, value)


class MemoryBackend:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def set(self, key: str, value: str) -> bool:
        self.values[key] = value
        return True


def default_backend():
    """
    Picks the persistence backend from config, overridable through
    MARBLE_BALANCE_BACKEND / MARBLE_BALANCE_PATH.
    """
    backend_name = os.getenv("MARBLE_BALANCE_BACKEND") or get_config("storage.backend", "file")
    backend_name = str(backend_name).lower()
    if backend_name in ("postgres", "postgresql", "db"):
        return PostgresBackend()
    if backend_name == "memory":
        return MemoryBackend()
    path = os.getenv("MARBLE_BALANCE_PATH") or get_config("storage.path", "data/balance.json")
    if not os.path.isabs(path):
        path = os.path.join(BASE_DIR, path)
    return JsonFileBackend(path)


def parse_balance(raw, default: int = STARTING_GEMS) -> int:
    if raw is None:
        return default
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    return value if value >= 0 else default


class BalanceStore:
    """
    Holds the player's gem balance and writes it through to the backend
    after every debit and credit.
    """

    def __init__(self, backend=None, key: str = BALANCE_KEY, default: int = STARTING_GEMS):
        self.backend = backend if backend is not None else default_backend()
        self.key = key
        self.default = default
        self._gems = self.load()

    def __repr__(self):
        return f"<BalanceStore key={self.key} gems={self._gems}>"

    @property
    def gems(self) -> int:
        return self._gems

    def load(self) -> int:
        self._gems = parse_balance(self.backend.get(self.key), self.default)
        return self._gems

    def save(self) -> bool:
        saved = self.backend.set(self.key, str(self._gems))
        if not saved:
            print(f"!!! Balance of {self._gems} gems was not persisted.")
        return saved

    def can_cover(self, amount: int) -> bool:
        return 0 < amount <= self._gems

    def debit(self, amount: int) -> bool:
        """
        Removes ``amount`` gems. Skipped (returns False) unless
        0 < amount <= balance, so the balance never goes negative.
        """
        if not self.can_cover(amount):
            return False
        self._gems -= amount
        self.save()
        return True

    def credit(self, amount: int) -> int:
        if amount > 0:
            self._gems += amount
        self.save()
        return self._gems

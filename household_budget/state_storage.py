"""Key-value persistence for per-user dashboard state (forecast inputs)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from . import config
from .forecast import ForecastState
from .logging_setup import get_logger

logger = get_logger(__name__)

FORECAST_STATE_KEY = 'forecast_inputs_sheet_v1'


class MemoryStateBackend:
    """Dict-backed store; state lives only as long as the process."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = dict(data or {})

    def get(self, key: str) -> Any:
        return self.data.get(key)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value


class JsonFileStateBackend:
    """All keys in one JSON object on disk. A missing or corrupt file reads as empty."""

    def __init__(self, path: Path | None = None):
        self.path = Path(path or config.FORECAST_STATE_PATH)

    def _load_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open('r', encoding='utf-8') as handle:
                data = json.load(handle)
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Any:
        return self._load_all().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._load_all()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open('w', encoding='utf-8') as handle:
            json.dump(data, handle, indent=2, sort_keys=True)


class ForecastStateStore:
    """Loads and saves :class:`ForecastState` under a fixed key."""

    def __init__(self, backend: Any = None, key: str = FORECAST_STATE_KEY):
        self.backend = backend if backend is not None else JsonFileStateBackend()
        self.key = key

    def load(self) -> ForecastState:
        return ForecastState.from_dict(self.backend.get(self.key))

    def save(self, state: ForecastState) -> None:
        self.backend.set(self.key, state.to_dict())

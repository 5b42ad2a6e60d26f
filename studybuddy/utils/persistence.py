"""
Progression persistence.

Stores and retrieves per-user ProgressionState. The engine treats the
store as a black box with atomic per-user load/save; failures surface as
PersistenceFailure.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol, runtime_checkable

from ..config import config
from ..exceptions import PersistenceFailure
from ..models.progression import ProgressionLedger, ProgressionState
from .validation import ProgressionStateValidator

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def new_progression_state() -> ProgressionState:
    """Fresh state for a user with no saved progress."""
    return ProgressionState(
        ledger=ProgressionLedger(weekly_goal_minutes=config.progression.weekly_goal_minutes)
    )


@runtime_checkable
class ProgressionStore(Protocol):
    """Durable per-user progression storage."""

    async def load(self, user_id: str) -> ProgressionState:
        """Load a user's state (a fresh state if none was saved)."""
        ...

    async def save(self, user_id: str, state: ProgressionState) -> None:
        """Persist a user's state atomically."""
        ...


class InMemoryProgressionStore:
    """Dictionary-backed store; copies on the way in and out."""

    def __init__(self):
        self._states: Dict[str, ProgressionState] = {}

    async def load(self, user_id: str) -> ProgressionState:
        state = self._states.get(user_id)
        return state.copy() if state is not None else new_progression_state()

    async def save(self, user_id: str, state: ProgressionState) -> None:
        self._states[user_id] = state.copy()

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._states


class JsonProgressionStore:
    """
    One JSON file per user, validated against progression.schema.json.

    Features:
    - Schema validation before writing and after reading
    - Atomic writes (temp file + os.replace)
    - Blocking file I/O runs in a worker thread
    """

    def __init__(self, directory: Optional[Path | str] = None, validate: bool = True):
        """
        Initialize the store.

        Args:
            directory: Where user files live (default: config.paths.progression_dir)
            validate: Whether to validate against the schema
        """
        self.directory = Path(directory) if directory else config.paths.progression_dir
        self.directory.mkdir(parents=True, exist_ok=True)
        self.validator = ProgressionStateValidator() if validate else None

    def path_for(self, user_id: str) -> Path:
        return self.directory / f"{_UNSAFE_FILENAME_CHARS.sub('_', user_id)}.json"

    async def load(self, user_id: str) -> ProgressionState:
        return await asyncio.to_thread(self._load_sync, user_id)

    async def save(self, user_id: str, state: ProgressionState) -> None:
        await asyncio.to_thread(self._save_sync, user_id, state)

    def _check(self, user_id: str, data: dict) -> None:
        if self.validator is None:
            return
        result = self.validator.validate(data)
        if not result.valid:
            raise PersistenceFailure(
                f"Invalid progression state for {user_id}: " + "; ".join(result.errors),
                user_id=user_id,
            )

    def _load_sync(self, user_id: str) -> ProgressionState:
        filepath = self.path_for(user_id)
        if not filepath.exists():
            return new_progression_state()

        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceFailure(f"Failed to load progress for {user_id}: {e}", user_id=user_id) from e

        self._check(user_id, data)
        try:
            return ProgressionState.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceFailure(f"Corrupt progress for {user_id}: {e}", user_id=user_id) from e

    def _save_sync(self, user_id: str, state: ProgressionState) -> None:
        data = state.to_dict()
        self._check(user_id, data)

        filepath = self.path_for(user_id)
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(tmp_path, filepath)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise PersistenceFailure(f"Failed to save progress for {user_id}: {e}", user_id=user_id) from e

        logger.debug("Saved progress for %s to %s", user_id, filepath)

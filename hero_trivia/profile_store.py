"""
Player profile store.

The in-memory profile is authoritative while the process runs; the storage
port is a best-effort cache of record. Write failures are logged and never
interrupt gameplay.
"""
import copy
import json
import logging
import os
import re
import tempfile
import time
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import PersistenceError
from .models import (
    Achievement, GameSession, PlayerAnswer, PlayerProfile, PlayerStatistics, SessionSummary
)

EXPERIENCE_PER_LEVEL = 1000
FAST_ANSWER_MS = 2000


def level_for_experience(experience: int) -> int:
    return 1 + max(0, experience) // EXPERIENCE_PER_LEVEL


class ProfileStorage:
    """Persistence port over a JSON-serialisable profile record."""

    def get(self, profile_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def set(self, profile_id: str, record: Dict[str, Any]) -> None:
        raise NotImplementedError

    def clear(self, profile_id: str) -> None:
        raise NotImplementedError


class InMemoryProfileStorage(ProfileStorage):
    """Process-local storage, used in tests and when no directory is configured."""

    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {}

    def get(self, profile_id: str) -> Optional[Dict[str, Any]]:
        record = self._records.get(profile_id)
        return copy.deepcopy(record) if record is not None else None

    def set(self, profile_id: str, record: Dict[str, Any]) -> None:
        self._records[profile_id] = copy.deepcopy(record)

    def clear(self, profile_id: str) -> None:
        self._records.pop(profile_id, None)


class JsonFileProfileStorage(ProfileStorage):
    """One JSON file per profile inside a device-scoped directory."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _path_for(self, profile_id: str) -> Path:
        safe_id = re.sub(r'[^A-Za-z0-9_.-]', '_', str(profile_id))
        return self.directory / f"{safe_id}.json"

    def get(self, profile_id: str) -> Optional[Dict[str, Any]]:
        path = self._path_for(profile_id)
        if not path.exists():
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Corrupt profile file {path}: {e}") from e
        except OSError as e:
            raise PersistenceError(f"Cannot read profile file {path}: {e}") from e

    def set(self, profile_id: str, record: Dict[str, Any]) -> None:
        path = self._path_for(profile_id)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=str(self.directory), prefix=f".{path.stem}-", suffix=".tmp")
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(record, f, indent=2)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot write profile file {path}: {e}") from e

    def clear(self, profile_id: str) -> None:
        path = self._path_for(profile_id)
        try:
            if path.exists():
                path.unlink()
        except OSError as e:
            raise PersistenceError(f"Cannot remove profile file {path}: {e}") from e


def profile_to_dict(profile: PlayerProfile) -> Dict[str, Any]:
    return asdict(profile)


def profile_from_dict(data: Dict[str, Any]) -> PlayerProfile:
    """
    Rebuild a profile from its stored record.

    Unknown keys are ignored and missing ones take their defaults, so records
    written by older versions still load.
    """
    stats_data = data.get("statistics") or {}
    stats_fields = PlayerStatistics.__dataclass_fields__
    statistics = PlayerStatistics(**{k: v for k, v in stats_data.items() if k in stats_fields})

    achievement_fields = Achievement.__dataclass_fields__
    achievements = [
        Achievement(**{k: v for k, v in entry.items() if k in achievement_fields})
        for entry in data.get("achievements", [])
    ]

    experience = int(data.get("experience", 0))
    return PlayerProfile(
        id=str(data["id"]),
        display_name=data.get("display_name", str(data["id"])),
        level=level_for_experience(experience),
        experience=experience,
        statistics=statistics,
        total_score=int(data.get("total_score", 0)),
        games_played=int(data.get("games_played", 0)),
        achievements=achievements,
        settings=dict(data.get("settings", {}))
    )


class PlayerProfileStore:
    """Owns one player's profile and folds gameplay results into it."""

    def __init__(self, storage: ProfileStorage, profile_id: str, display_name: Optional[str] = None):
        """
        Initialize the store.

        Args:
            storage: Persistence port
            profile_id: Stable identifier of the player
            display_name: Name shown for a newly created profile
        """
        self.logger = logging.getLogger(__name__)
        self.storage = storage
        self.profile_id = str(profile_id)
        self.display_name = display_name or self.profile_id
        self.profile = self._new_profile()
        self.last_persistence_error: Optional[str] = None

    def _new_profile(self) -> PlayerProfile:
        return PlayerProfile(id=self.profile_id, display_name=self.display_name)

    def load(self) -> PlayerProfile:
        """
        Load the stored profile, or start a fresh one when none is usable.

        Returns:
            The in-memory profile
        """
        try:
            record = self.storage.get(self.profile_id)
        except PersistenceError as e:
            self._log_persistence_failure("load", e)
            record = None

        if record is None:
            self.profile = self._new_profile()
            return self.profile

        try:
            self.profile = profile_from_dict(record)
        except (KeyError, TypeError, ValueError) as e:
            self._log_persistence_failure("load", PersistenceError(f"Malformed profile record: {e}"))
            self.profile = self._new_profile()
        return self.profile

    def record_answer(self, answer: PlayerAnswer) -> None:
        """Update running statistics for one resolved question."""
        stats = self.profile.statistics
        stats.total_questions_answered += 1
        n = stats.total_questions_answered
        stats.average_response_time_ms += (answer.response_time_ms - stats.average_response_time_ms) / n

        if answer.timed_out:
            stats.timeouts += 1
        elif answer.skipped:
            stats.skips += 1

        if answer.is_correct:
            stats.correct_answers += 1
            category = answer.archetype.value
            stats.category_counts[category] = stats.category_counts.get(category, 0) + 1
            stats.favorite_category = max(stats.category_counts, key=stats.category_counts.get)
            if answer.response_time_ms < FAST_ANSWER_MS:
                stats.fast_answers += 1

    def record_session(self, session: GameSession, summary: SessionSummary) -> None:
        """Fold the aggregates of a finished session into the profile."""
        self.profile.games_played += 1
        self.profile.total_score += session.score
        self.profile.statistics.total_time_played_sec += summary.duration_sec
        if session.best_streak > self.profile.statistics.best_streak:
            self.profile.statistics.best_streak = session.best_streak

        self.logger.info(
            f"Recorded session {session.id} for profile {self.profile_id}: "
            f"score {session.score}, games played {self.profile.games_played}",
            extra={
                'event_type': 'profile_session_recorded',
                'profile_id': self.profile_id,
                'session_id': session.id,
                'timestamp': time.time()
            }
        )

    def update_settings(self, **settings: Any) -> None:
        self.profile.settings.update(settings)

    def save(self) -> bool:
        """
        Persist the profile.

        Returns:
            True if the write succeeded, False if it failed and was logged
        """
        try:
            self.storage.set(self.profile_id, profile_to_dict(self.profile))
        except PersistenceError as e:
            self._log_persistence_failure("save", e)
            return False
        self.last_persistence_error = None
        return True

    def reset(self) -> PlayerProfile:
        """Clear the stored profile and start over in memory."""
        try:
            self.storage.clear(self.profile_id)
        except PersistenceError as e:
            self._log_persistence_failure("reset", e)
        self.profile = self._new_profile()
        return self.profile

    def _log_persistence_failure(self, operation: str, error: PersistenceError) -> None:
        self.last_persistence_error = str(error)
        self.logger.error(
            f"Profile persistence failed during {operation} for {self.profile_id}: {error}",
            extra={
                'event_type': 'profile_persistence_error',
                'profile_id': self.profile_id,
                'operation': operation,
                'timestamp': time.time()
            }
        )

"""
Configuration manager for game defaults.
"""
import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import GameMode, GameSettings, SessionConfig


class ConfigManager:
    """Manages validated game settings and builds per-session config from them."""

    # Validation limits
    MIN_QUESTION_COUNT = 1
    MAX_QUESTION_COUNT = 100
    MIN_TIME_PER_QUESTION = 5
    MAX_TIME_PER_QUESTION = 300  # 5 minutes
    MIN_BLITZ_BUDGET = 10
    MAX_BLITZ_BUDGET = 900  # 15 minutes
    MAX_ADVANCE_DELAY = 30
    MAX_HISTORY_LIMIT = 200

    def __init__(self, settings: Optional[GameSettings] = None):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._settings = settings or GameSettings()

    def get_settings(self) -> GameSettings:
        """
        Get a copy of the current settings.

        Returns:
            GameSettings object with current configuration
        """
        return replace(self._settings)

    def get_session_config(self, mode: GameMode) -> SessionConfig:
        """
        Build the session config a new session of the given mode should use.

        Args:
            mode: Game mode being started

        Returns:
            SessionConfig carrying only the overrides relevant to the mode
        """
        mode = GameMode(mode)
        if mode is GameMode.BLITZ:
            return SessionConfig(total_time_sec=self._settings.blitz_budget_sec)
        if mode is GameMode.SURVIVAL:
            return SessionConfig(time_per_question_sec=self._settings.time_per_question_sec)
        return SessionConfig(
            question_count=self._settings.question_count,
            time_per_question_sec=self._settings.time_per_question_sec
        )

    def _set_bounded_int(self, field_name: str, label: str, value: Any, minimum: int, maximum: int, unit: str = "") -> Dict[str, Any]:
        if isinstance(value, bool) or not isinstance(value, int):
            error_msg = f"{label} must be an integer, got {type(value).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(value).__name__}"
            }

        if value < minimum:
            error_msg = f"{label} must be at least {minimum}{unit}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Too low: Minimum {label.lower()} is {minimum}{unit}"
            }

        if value > maximum:
            error_msg = f"{label} cannot exceed {maximum}{unit}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Too high: Maximum {label.lower()} is {maximum}{unit}"
            }

        setattr(self._settings, field_name, value)
        self.logger.info(f"{label} set to {value}{unit}")
        return {
            'success': True,
            'message': f"{label} set to {value}{unit}",
            'user_message': f"✅ {label} set to {value}{unit}"
        }

    def set_question_count(self, count: int) -> Dict[str, Any]:
        """
        Set the number of questions in fixed-length modes.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        return self._set_bounded_int(
            'question_count', "Question count", count,
            self.MIN_QUESTION_COUNT, self.MAX_QUESTION_COUNT
        )

    def set_time_per_question(self, seconds: int) -> Dict[str, Any]:
        return self._set_bounded_int(
            'time_per_question_sec', "Time per question", seconds,
            self.MIN_TIME_PER_QUESTION, self.MAX_TIME_PER_QUESTION, "s"
        )

    def set_blitz_budget(self, seconds: int) -> Dict[str, Any]:
        return self._set_bounded_int(
            'blitz_budget_sec', "Blitz time budget", seconds,
            self.MIN_BLITZ_BUDGET, self.MAX_BLITZ_BUDGET, "s"
        )

    def set_advance_delay(self, seconds: float) -> Dict[str, Any]:
        """Set the pause between revealing an answer and showing the next question."""
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)) or not 0 <= seconds <= self.MAX_ADVANCE_DELAY:
            error_msg = f"Advance delay must be between 0 and {self.MAX_ADVANCE_DELAY} seconds, got {seconds!r}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Advance delay must be between 0 and {self.MAX_ADVANCE_DELAY} seconds"
            }
        self._settings.advance_delay_sec = float(seconds)
        return {
            'success': True,
            'message': f"Advance delay set to {seconds}s",
            'user_message': f"✅ Advance delay set to {seconds}s"
        }

    def set_dataset_path(self, path: Optional[str]) -> Dict[str, Any]:
        """
        Set a custom subject dataset, or None for the bundled one.

        Args:
            path: Path to a JSON subject file

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if path is None:
            self._settings.dataset_path = None
            self.logger.info("Dataset path reset to the bundled dataset")
            return {
                'success': True,
                'message': "Using bundled dataset",
                'user_message': "✅ Using the bundled character dataset"
            }

        if not isinstance(path, str) or not path.strip():
            error_msg = "Dataset path must be a non-empty string"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Invalid dataset path: Path cannot be empty"
            }

        dataset = Path(path)
        if not dataset.is_file():
            error_msg = f"Dataset file not found: {path}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Dataset file not found: {path}"
            }

        if not os.access(dataset, os.R_OK):
            error_msg = f"Dataset file is not readable: {path}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Permission denied: Cannot read {path}"
            }

        self._settings.dataset_path = path
        self.logger.info(f"Dataset path set to {path}")
        return {
            'success': True,
            'message': f"Dataset path set to {path}",
            'user_message': f"✅ Dataset set to {path}"
        }

    def set_profile_directory(self, directory: str) -> Dict[str, Any]:
        if not isinstance(directory, str) or not directory.strip():
            error_msg = "Profile directory must be a non-empty string"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Invalid profile directory: Path cannot be empty"
            }
        self._settings.profile_directory = directory
        self.logger.info(f"Profile directory set to {directory}")
        return {
            'success': True,
            'message': f"Profile directory set to {directory}",
            'user_message': f"✅ Profiles will be stored in {directory}"
        }

    def load_from_dict(self, quiz_config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply the ``quiz`` section of config.json.

        Every recognised key is validated through its setter; invalid values
        are reported and the previous value is kept.

        Args:
            quiz_config: Mapping of setting names to values

        Returns:
            Dictionary with overall success status and the list of errors
        """
        setters = {
            'question_count': self.set_question_count,
            'time_per_question_sec': self.set_time_per_question,
            'blitz_budget_sec': self.set_blitz_budget,
            'advance_delay_sec': self.set_advance_delay,
            'dataset_path': self.set_dataset_path,
            'profile_directory': self.set_profile_directory,
        }
        errors: List[str] = []

        for key, value in quiz_config.items():
            if key in setters:
                result = setters[key](value)
                if not result['success']:
                    errors.append(result['error'])
            elif key == 'tick_seconds':
                if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
                    self._settings.tick_seconds = float(value)
                else:
                    errors.append(f"tick_seconds must be a positive number, got {value!r}")
            elif key == 'history_limit':
                if isinstance(value, int) and not isinstance(value, bool) and 0 < value <= self.MAX_HISTORY_LIMIT:
                    self._settings.history_limit = value
                else:
                    errors.append(f"history_limit must be between 1 and {self.MAX_HISTORY_LIMIT}, got {value!r}")
            else:
                self.logger.warning(f"Ignoring unknown quiz setting: {key}")

        for error in errors:
            self.logger.warning(f"Configuration value rejected: {error}")

        return {'success': not errors, 'errors': errors}

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._settings = GameSettings()
        self.logger.info("All settings reset to default values")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }
        s = self._settings

        if not self.MIN_QUESTION_COUNT <= s.question_count <= self.MAX_QUESTION_COUNT:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid question count: {s.question_count}")

        if not self.MIN_TIME_PER_QUESTION <= s.time_per_question_sec <= self.MAX_TIME_PER_QUESTION:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid time per question: {s.time_per_question_sec}")

        if not self.MIN_BLITZ_BUDGET <= s.blitz_budget_sec <= self.MAX_BLITZ_BUDGET:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid blitz time budget: {s.blitz_budget_sec}")

        if s.tick_seconds <= 0:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid tick seconds: {s.tick_seconds}")

        if not 1 <= s.history_limit <= self.MAX_HISTORY_LIMIT:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid history limit: {s.history_limit}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        s = self._settings
        dataset = s.dataset_path or "bundled"
        return (
            f"Game Settings:\n"
            f"• Story questions: {s.question_count}\n"
            f"• Time per question: {s.time_per_question_sec} seconds\n"
            f"• Blitz budget: {s.blitz_budget_sec} seconds\n"
            f"• Dataset: {dataset}\n"
            f"• Profiles: {s.profile_directory}"
        )

    def get_configuration_health_check(self) -> Dict[str, Any]:
        """
        Perform a health check of the configuration.

        Returns:
            Dictionary with health status and recommendations
        """
        health_check = {
            'healthy': True,
            'warnings': [],
            'errors': [],
            'recommendations': []
        }

        validation_result = self.validate_settings()
        if not validation_result['valid']:
            health_check['healthy'] = False
            health_check['errors'].extend(f"❌ {issue}" for issue in validation_result['issues'])

        profile_dir = Path(self._settings.profile_directory)
        if not profile_dir.exists():
            health_check['warnings'].append(
                f"⚠️ Profile directory does not exist: {self._settings.profile_directory}"
            )
            health_check['recommendations'].append(
                "The profile directory will be created on the first save."
            )
        elif not os.access(profile_dir, os.W_OK):
            health_check['healthy'] = False
            health_check['errors'].append(
                f"❌ Cannot write to profile directory: {self._settings.profile_directory}"
            )
            health_check['recommendations'].append(
                "Check file permissions for the profile directory; progress will not persist."
            )

        if self._settings.time_per_question_sec < 10:
            health_check['warnings'].append(
                f"⚠️ Short timer duration ({self._settings.time_per_question_sec}s) may not give players enough time"
            )
            health_check['recommendations'].append(
                "Consider using at least 10 seconds per question."
            )

        return health_check

"""
Configuration manager for trivia bot settings and game parameters.
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import LANGUAGES, GameSettings


class ConfigManager:
    """Manages bot configuration settings and game parameters."""

    # Default configuration values
    DEFAULT_TIMER_DURATION = 30
    DEFAULT_FEEDBACK_DELAY = 2
    DEFAULT_QUESTIONS_PER_CATEGORY = 6
    DEFAULT_TICK_INTERVAL = 1.0
    DEFAULT_LANGUAGE = "ar"
    DEFAULT_DATA_DIRECTORY = "./data/"
    DEFAULT_RESULTS_DIRECTORY = "./results/"

    # Validation limits
    MIN_TIMER_DURATION = 5
    MAX_TIMER_DURATION = 300  # 5 minutes
    MIN_FEEDBACK_DELAY = 0
    MAX_FEEDBACK_DELAY = 10
    MIN_QUESTIONS_PER_CATEGORY = 1
    MAX_QUESTIONS_PER_CATEGORY = 20

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._apply_defaults()

    def _apply_defaults(self) -> None:
        self._settings = GameSettings(
            timer_duration=self.DEFAULT_TIMER_DURATION,
            feedback_delay=self.DEFAULT_FEEDBACK_DELAY,
            questions_per_category=self.DEFAULT_QUESTIONS_PER_CATEGORY,
            tick_interval=self.DEFAULT_TICK_INTERVAL,
        )
        self._default_language = self.DEFAULT_LANGUAGE
        self._data_directory = self.DEFAULT_DATA_DIRECTORY
        self._results_directory = self.DEFAULT_RESULTS_DIRECTORY

    def apply_config(self, config: Optional[Dict[str, Any]]) -> List[str]:
        """
        Apply the `game` section of a loaded config.json.

        Invalid values are logged and left at their defaults.

        Args:
            config: Parsed configuration dictionary

        Returns:
            List of error messages for values that were rejected
        """
        game_config = (config or {}).get('game', {})
        setters = [
            ('timer_duration', self.set_timer_duration),
            ('feedback_delay', self.set_feedback_delay),
            ('questions_per_category', self.set_questions_per_category),
            ('default_language', self.set_default_language),
            ('data_directory', self.set_data_directory),
            ('results_directory', self.set_results_directory),
        ]
        errors = []
        for key, setter in setters:
            if key not in game_config:
                continue
            result = setter(game_config[key])
            if not result['success']:
                errors.append(result['error'])
        if errors:
            self.logger.warning(f"Ignored {len(errors)} invalid configuration values")
        return errors

    def get_game_settings(self) -> GameSettings:
        """
        Get a copy of the current game settings.

        Returns:
            GameSettings object with current configuration
        """
        return GameSettings(
            timer_duration=self._settings.timer_duration,
            feedback_delay=self._settings.feedback_delay,
            questions_per_category=self._settings.questions_per_category,
            tick_interval=self._settings.tick_interval,
        )

    def _set_bounded_int(self, name: str, label: str, value: Any,
                         minimum: int, maximum: int, unit: str = "") -> Dict[str, Any]:
        """
        Validate an integer setting against its range and store it.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        suffix = f" {unit}" if unit else ""
        if isinstance(value, bool) or not isinstance(value, int):
            error_msg = f"{label} must be an integer, got {type(value).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(value).__name__}"
            }

        if value < minimum:
            error_msg = f"{label} must be at least {minimum}{suffix}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ {label} too small: Minimum is {minimum}{suffix}"
            }

        if value > maximum:
            error_msg = f"{label} cannot exceed {maximum}{suffix}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ {label} too large: Maximum is {maximum}{suffix}"
            }

        setattr(self._settings, name, value)
        self.logger.info(f"{label} set to {value}{suffix}")
        return {
            'success': True,
            'message': f"{label} set to {value}{suffix}",
            'user_message': f"✅ {label} set to {value}{suffix}"
        }

    def set_timer_duration(self, duration: int) -> Dict[str, Any]:
        """
        Set the per-question countdown.

        Args:
            duration: Timer duration in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        return self._set_bounded_int(
            'timer_duration', "Timer duration", duration,
            self.MIN_TIMER_DURATION, self.MAX_TIMER_DURATION, "seconds"
        )

    def get_timer_duration(self) -> int:
        return self._settings.timer_duration

    def set_feedback_delay(self, delay: int) -> Dict[str, Any]:
        """
        Set how long answer feedback stays up before the next question.

        Args:
            delay: Delay in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        return self._set_bounded_int(
            'feedback_delay', "Feedback delay", delay,
            self.MIN_FEEDBACK_DELAY, self.MAX_FEEDBACK_DELAY, "seconds"
        )

    def get_feedback_delay(self) -> int:
        return self._settings.feedback_delay

    def set_questions_per_category(self, count: int) -> Dict[str, Any]:
        return self._set_bounded_int(
            'questions_per_category', "Questions per category", count,
            self.MIN_QUESTIONS_PER_CATEGORY, self.MAX_QUESTIONS_PER_CATEGORY
        )

    def get_questions_per_category(self) -> int:
        return self._settings.questions_per_category

    def set_default_language(self, language: str) -> Dict[str, Any]:
        """
        Set the language used for new sessions.

        Args:
            language: 'ar' or 'en'

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if language not in LANGUAGES:
            error_msg = f"Language must be one of {', '.join(LANGUAGES)}, got {language!r}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Unsupported language: choose {' or '.join(LANGUAGES)}"
            }

        self._default_language = language
        self.logger.info(f"Default language set to {language}")
        return {
            'success': True,
            'message': f"Default language set to {language}",
            'user_message': f"✅ Default language set to {language}"
        }

    def get_default_language(self) -> str:
        return self._default_language

    def _validate_directory(self, label: str, directory: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(directory, str) or not directory.strip():
            error_msg = f"{label} must be a non-empty string"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid {label.lower()}: Please provide a valid path"
            }
        return None

    def set_data_directory(self, directory: str) -> Dict[str, Any]:
        """
        Set the directory holding category files and purchases.

        Args:
            directory: Path to the data directory

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        error = self._validate_directory("Data directory", directory)
        if error:
            return error

        path = Path(directory)
        if path.exists() and not path.is_dir():
            error_msg = f"Data directory path exists but is not a directory: {directory}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Path exists but is not a directory: {directory}"
            }

        self._data_directory = directory
        self.logger.info(f"Data directory set to {directory}")
        return {
            'success': True,
            'message': f"Data directory set to {directory}",
            'user_message': f"✅ Data directory set to {directory}"
        }

    def get_data_directory(self) -> str:
        return self._data_directory

    def set_results_directory(self, directory: str) -> Dict[str, Any]:
        error = self._validate_directory("Results directory", directory)
        if error:
            return error

        self._results_directory = directory
        self.logger.info(f"Results directory set to {directory}")
        return {
            'success': True,
            'message': f"Results directory set to {directory}",
            'user_message': f"✅ Results directory set to {directory}"
        }

    def get_results_directory(self) -> str:
        return self._results_directory

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._apply_defaults()
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

        bounds = [
            ("timer duration", self._settings.timer_duration,
             self.MIN_TIMER_DURATION, self.MAX_TIMER_DURATION),
            ("feedback delay", self._settings.feedback_delay,
             self.MIN_FEEDBACK_DELAY, self.MAX_FEEDBACK_DELAY),
            ("questions per category", self._settings.questions_per_category,
             self.MIN_QUESTIONS_PER_CATEGORY, self.MAX_QUESTIONS_PER_CATEGORY),
        ]
        for label, value, minimum, maximum in bounds:
            if not isinstance(value, int) or value < minimum or value > maximum:
                validation_result["valid"] = False
                validation_result["issues"].append(f"Invalid {label}: {value}")

        if self._default_language not in LANGUAGES:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid default language: {self._default_language}")

        if not isinstance(self._data_directory, str) or not self._data_directory.strip():
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid data directory: {self._data_directory}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        return (
            f"Game Settings:\n"
            f"• Timer: {self._settings.timer_duration} seconds\n"
            f"• Feedback delay: {self._settings.feedback_delay} seconds\n"
            f"• Questions per category: {self._settings.questions_per_category}\n"
            f"• Default language: {self._default_language}\n"
            f"• Data Directory: {self._data_directory}"
        )

    def get_configuration_health_check(self) -> Dict[str, Any]:
        """
        Check settings and data directory accessibility.

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

        data_dir = Path(self._data_directory)
        if not data_dir.exists():
            health_check['healthy'] = False
            health_check['errors'].append(f"❌ Data directory does not exist: {self._data_directory}")
            health_check['recommendations'].append(
                "Create the data directory with a categories/ folder and purchases.json."
            )
        elif not os.access(data_dir, os.R_OK):
            health_check['healthy'] = False
            health_check['errors'].append(f"❌ Cannot read data directory: {self._data_directory}")

        if self._settings.timer_duration < 10:
            health_check['warnings'].append(
                f"⚠️ Short timer duration ({self._settings.timer_duration}s) may not give players enough time"
            )
            health_check['recommendations'].append("Consider using at least 10 seconds per question.")

        return health_check

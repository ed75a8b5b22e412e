"""
Unit tests for the ConfigManager class.
"""
import shutil
import tempfile
import unittest
from pathlib import Path

from trivia.config_manager import ConfigManager


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager settings management."""

    def setUp(self):
        """Set up test fixtures."""
        self.config_manager = ConfigManager()
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_default_settings(self):
        """Test that default settings are correctly initialized."""
        settings = self.config_manager.get_game_settings()

        self.assertEqual(settings.timer_duration, 30)
        self.assertEqual(settings.feedback_delay, 2)
        self.assertEqual(settings.questions_per_category, 6)
        self.assertEqual(self.config_manager.get_default_language(), "ar")
        self.assertEqual(self.config_manager.get_data_directory(), "./data/")

    def test_get_game_settings_returns_copy(self):
        settings = self.config_manager.get_game_settings()
        settings.timer_duration = 99

        self.assertEqual(self.config_manager.get_timer_duration(), 30)

    def test_set_timer_duration_valid(self):
        result = self.config_manager.set_timer_duration(45)

        self.assertTrue(result['success'])
        self.assertIn("45 seconds", result['message'])
        self.assertEqual(self.config_manager.get_timer_duration(), 45)

    def test_set_timer_duration_boundaries(self):
        self.assertTrue(self.config_manager.set_timer_duration(5)['success'])
        self.assertTrue(self.config_manager.set_timer_duration(300)['success'])

        too_small = self.config_manager.set_timer_duration(4)
        self.assertFalse(too_small['success'])
        self.assertIn("at least 5", too_small['error'])

        too_large = self.config_manager.set_timer_duration(301)
        self.assertFalse(too_large['success'])
        self.assertIn("cannot exceed 300", too_large['error'])
        self.assertEqual(self.config_manager.get_timer_duration(), 300)

    def test_set_timer_duration_wrong_type(self):
        for value in ("30", 30.5, None, True):
            with self.subTest(value=value):
                result = self.config_manager.set_timer_duration(value)
                self.assertFalse(result['success'])
                self.assertIn("must be an integer", result['error'])

    def test_set_feedback_delay(self):
        self.assertTrue(self.config_manager.set_feedback_delay(0)['success'])
        self.assertEqual(self.config_manager.get_feedback_delay(), 0)
        self.assertFalse(self.config_manager.set_feedback_delay(11)['success'])

    def test_set_questions_per_category(self):
        self.assertTrue(self.config_manager.set_questions_per_category(10)['success'])
        self.assertEqual(self.config_manager.get_questions_per_category(), 10)
        self.assertFalse(self.config_manager.set_questions_per_category(0)['success'])

    def test_set_default_language(self):
        self.assertTrue(self.config_manager.set_default_language("en")['success'])
        self.assertEqual(self.config_manager.get_default_language(), "en")

        result = self.config_manager.set_default_language("fr")
        self.assertFalse(result['success'])
        self.assertEqual(self.config_manager.get_default_language(), "en")

    def test_set_data_directory(self):
        self.assertTrue(self.config_manager.set_data_directory(self.temp_dir)['success'])
        self.assertEqual(self.config_manager.get_data_directory(), self.temp_dir)

        self.assertFalse(self.config_manager.set_data_directory("")['success'])
        self.assertFalse(self.config_manager.set_data_directory(None)['success'])

    def test_set_data_directory_to_file(self):
        file_path = Path(self.temp_dir) / "file.txt"
        file_path.write_text("x")

        result = self.config_manager.set_data_directory(str(file_path))
        self.assertFalse(result['success'])
        self.assertIn("not a directory", result['error'])

    def test_set_results_directory(self):
        self.assertTrue(self.config_manager.set_results_directory("./out/")['success'])
        self.assertEqual(self.config_manager.get_results_directory(), "./out/")

    def test_apply_config(self):
        errors = self.config_manager.apply_config({
            'game': {
                'timer_duration': 20,
                'feedback_delay': 3,
                'default_language': 'en',
                'questions_per_category': 50,
            }
        })

        self.assertEqual(len(errors), 1)
        self.assertIn("Questions per category", errors[0])
        self.assertEqual(self.config_manager.get_timer_duration(), 20)
        self.assertEqual(self.config_manager.get_feedback_delay(), 3)
        self.assertEqual(self.config_manager.get_default_language(), "en")
        self.assertEqual(self.config_manager.get_questions_per_category(), 6)

    def test_apply_config_without_game_section(self):
        self.assertEqual(self.config_manager.apply_config({}), [])
        self.assertEqual(self.config_manager.apply_config(None), [])

    def test_reset_to_defaults(self):
        self.config_manager.set_timer_duration(60)
        self.config_manager.set_default_language("en")

        self.config_manager.reset_to_defaults()

        self.assertEqual(self.config_manager.get_timer_duration(), 30)
        self.assertEqual(self.config_manager.get_default_language(), "ar")

    def test_validate_settings(self):
        self.assertTrue(self.config_manager.validate_settings()['valid'])

        self.config_manager._settings.timer_duration = 1
        result = self.config_manager.validate_settings()
        self.assertFalse(result['valid'])
        self.assertIn("Invalid timer duration: 1", result['issues'])

    def test_settings_summary(self):
        summary = self.config_manager.get_settings_summary()

        self.assertTrue(summary.startswith("Game Settings:"))
        self.assertIn("Timer: 30 seconds", summary)
        self.assertIn("Default language: ar", summary)

    def test_health_check_missing_directory(self):
        self.config_manager.set_data_directory(str(Path(self.temp_dir) / "missing"))
        health = self.config_manager.get_configuration_health_check()

        self.assertFalse(health['healthy'])
        self.assertTrue(health['recommendations'])

    def test_health_check_short_timer_warning(self):
        self.config_manager.set_data_directory(self.temp_dir)
        self.config_manager.set_timer_duration(5)
        health = self.config_manager.get_configuration_health_check()

        self.assertTrue(health['healthy'])
        self.assertEqual(len(health['warnings']), 1)


if __name__ == '__main__':
    unittest.main()

"""
Unit tests for the TriviaController class.
"""
import json
import random
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock, patch

from trivia.config_manager import ConfigManager
from trivia.data_manager import DataManager
from trivia.models import SessionPhase, Team
from trivia.quiz_controller import TriviaController
from trivia.quiz_engine import EngineEvent
from trivia.session_clock import ManualScheduler
from tests.test_fixtures import TestFixtures


class TestTriviaController(unittest.TestCase):
    """Test cases for TriviaController session management."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        data_dir = TestFixtures.create_temp_data_directory(self.temp_dir)
        self.results_dir = Path(self.temp_dir) / "results"
        self.data_manager = DataManager(str(data_dir), str(self.results_dir))
        self.data_manager.load_data()

        self.config_manager = ConfigManager()
        self.config_manager.set_timer_duration(10)
        self.config_manager.set_default_language("en")

        self.schedulers = []
        self.controller = TriviaController(
            self.data_manager, self.config_manager,
            scheduler_factory=self.make_scheduler, rng=random.Random(1)
        )
        self.channel_id = 12345

    def tearDown(self):
        self.controller.close_all()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def make_scheduler(self):
        scheduler = ManualScheduler()
        self.schedulers.append(scheduler)
        return scheduler

    def engine(self):
        return self.controller.get_session(self.channel_id).engine

    def play_to_finish(self):
        engine = self.engine()
        while engine.phase is SessionPhase.IN_PROGRESS:
            self.controller.select_answer(self.channel_id, engine.current_question.correct_option)
            self.controller.advance(self.channel_id)

    def test_start_game_success(self):
        """Test successful game start."""
        result = self.controller.start_game(self.channel_id, "classic")

        self.assertTrue(result['success'])
        info = result['session_info']
        self.assertEqual(info['total_questions'], 8)
        self.assertEqual(info['purchase_ref'], "classic")
        self.assertEqual(info['language'], "en")
        self.assertTrue(info['session_id'].startswith(f"{self.channel_id}-"))
        self.assertTrue(self.controller.has_active_session(self.channel_id))

    def test_start_game_uses_configured_settings(self):
        self.config_manager.set_questions_per_category(2)
        self.controller.start_game(self.channel_id, "classic")

        engine = self.engine()
        self.assertEqual(len(engine.state.pool), 6)
        self.assertEqual(engine.settings.timer_duration, 10)

    def test_start_game_conflict(self):
        self.controller.start_game(self.channel_id, "classic")
        result = self.controller.start_game(self.channel_id, "duo")

        self.assertFalse(result['success'])
        self.assertIn("/stop", result['user_message'])
        self.assertEqual(self.controller.get_session(self.channel_id).descriptor.purchase_ref, "classic")

    def test_start_game_unknown_purchase(self):
        result = self.controller.start_game(self.channel_id, "missing")

        self.assertFalse(result['success'])
        self.assertIn("/purchases", result['user_message'])
        self.assertIsNone(self.controller.get_session(self.channel_id))

    def test_start_game_invalid_language(self):
        result = self.controller.start_game(self.channel_id, "classic", language="fr")
        self.assertFalse(result['success'])
        self.assertIn("Unsupported language", result['error'])

    def test_start_game_empty_purchase(self):
        result = self.controller.start_game(self.channel_id, "nothing")

        self.assertFalse(result['success'])
        self.assertTrue(result['empty'])
        self.assertIs(self.engine().phase, SessionPhase.EMPTY)
        self.assertFalse(self.controller.has_active_session(self.channel_id))

        # An empty session does not block a new game
        self.assertTrue(self.controller.start_game(self.channel_id, "duo")['success'])

    def test_team_mode_start(self):
        self.controller.start_game(self.channel_id, "classic", team_mode=True)

        pool = self.engine().state.pool
        self.assertTrue(all(q.team is not None for q in pool))
        # classic has three categories: geography and science go to team1
        team1_categories = {q.category_id for q in pool if q.team is Team.TEAM1}
        self.assertEqual(team1_categories, {"geography", "science"})

    def test_select_answer(self):
        self.controller.start_game(self.channel_id, "classic")
        correct = self.engine().current_question.correct_option

        result = self.controller.select_answer(self.channel_id, correct)

        self.assertTrue(result['success'])
        self.assertEqual(result['session_info']['answers_recorded'], 1)
        self.assertFalse(self.controller.select_answer(self.channel_id, correct)['success'])

    def test_operation_without_session(self):
        result = self.controller.select_answer(self.channel_id, "A")

        self.assertFalse(result['success'])
        self.assertIn("/play", result['user_message'])
        self.assertEqual(self.controller.get_error_summary(self.channel_id)['error_count'], 1)

    def test_use_hint_in_session_language(self):
        self.controller.start_game(self.channel_id, "classic", language="ar")

        result = self.controller.use_hint(self.channel_id)

        self.assertTrue(result['success'])
        self.assertTrue(result['value'].startswith("شرح"))

    def test_lifelines_through_controller(self):
        self.controller.start_game(self.channel_id, "classic")

        eliminated = self.controller.use_eliminate(self.channel_id)
        self.assertTrue(eliminated['success'])
        self.assertEqual(len(eliminated['value']), 2)

        skipped = self.controller.use_skip(self.channel_id)
        self.assertTrue(skipped['success'])
        self.assertEqual(skipped['session_info']['current_question'], 2)
        self.assertFalse(self.controller.use_skip(self.channel_id)['success'])

    def test_advance_requires_answer(self):
        self.controller.start_game(self.channel_id, "classic")
        self.assertFalse(self.controller.advance(self.channel_id)['success'])

    def test_finished_game_saves_results(self):
        self.controller.start_game(self.channel_id, "duo")
        self.play_to_finish()

        engine = self.engine()
        self.assertIs(engine.phase, SessionPhase.FINISHED)
        self.assertEqual(engine.state.result.percentage, 100.0)
        self.assertTrue(self.controller.get_session(self.channel_id).results_saved)

        with open(self.results_dir / f"{engine.session_id}.json", encoding='utf-8') as f:
            record = json.load(f)
        self.assertEqual(record['purchase_ref'], "duo")
        self.assertEqual(len(record['answers']), 6)
        self.assertFalse(self.controller.has_active_session(self.channel_id))

    def test_results_save_failure_is_reported(self):
        self.controller.start_game(self.channel_id, "duo")
        with patch.object(self.data_manager, 'save_results', return_value=False):
            self.play_to_finish()

        self.assertIs(self.engine().phase, SessionPhase.FINISHED)
        self.assertFalse(self.controller.get_session(self.channel_id).results_saved)

    def test_external_listener_receives_events(self):
        listener = Mock()
        self.controller.start_game(self.channel_id, "duo", listener=listener)
        self.play_to_finish()

        events = [call.args[0] for call in listener.call_args_list]
        self.assertEqual(events[0], EngineEvent.STARTED)
        self.assertEqual(events[-1], EngineEvent.FINISHED)

    def test_restart_game(self):
        self.controller.start_game(self.channel_id, "duo")
        self.play_to_finish()

        result = self.controller.restart_game(self.channel_id)

        self.assertTrue(result['success'])
        engine = self.engine()
        self.assertIs(engine.phase, SessionPhase.IN_PROGRESS)
        self.assertEqual(engine.state.answers, [])
        self.assertEqual(engine.state.totals.score, 0)
        self.assertFalse(self.controller.get_session(self.channel_id).results_saved)

    def test_restart_refused_while_game_running(self):
        self.controller.start_game(self.channel_id, "duo")
        engine = self.engine()
        self.controller.select_answer(self.channel_id, engine.current_question.correct_option)
        self.controller.advance(self.channel_id)
        before = (engine.state.current_index, engine.state.totals.score, len(engine.state.answers))

        result = self.controller.restart_game(self.channel_id)

        self.assertFalse(result['success'])
        self.assertIn("still running", result['user_message'])
        self.assertIs(self.engine(), engine)
        self.assertIs(engine.phase, SessionPhase.IN_PROGRESS)
        self.assertEqual((engine.state.current_index, engine.state.totals.score, len(engine.state.answers)),
                         before)
        self.assertEqual(before[0], 1)

    def test_restart_without_session(self):
        result = self.controller.restart_game(self.channel_id)
        self.assertFalse(result['success'])

    def test_stop_game(self):
        self.controller.start_game(self.channel_id, "classic")
        engine = self.engine()

        result = self.controller.stop_game(self.channel_id)

        self.assertTrue(result['success'])
        self.assertIsNone(self.controller.get_session(self.channel_id))
        self.schedulers[0].advance(100)
        self.assertEqual(engine.state.answers, [])

        self.assertFalse(self.controller.stop_game(self.channel_id)['success'])

    def test_timeout_through_scheduler(self):
        self.controller.start_game(self.channel_id, "classic")
        self.schedulers[0].advance(10)

        self.assertTrue(self.engine().state.answers[0].timed_out)

    def test_set_language(self):
        self.controller.start_game(self.channel_id, "classic")

        self.assertTrue(self.controller.set_language(self.channel_id, "ar")['success'])
        self.assertEqual(self.controller.get_session(self.channel_id).language, "ar")
        self.assertFalse(self.controller.set_language(self.channel_id, "fr")['success'])

    def test_set_language_without_session_sets_default(self):
        self.controller.set_language(999, "ar")
        self.assertEqual(self.config_manager.get_default_language(), "ar")

    def test_status_summary(self):
        self.assertEqual(self.controller.get_session_status_summary(self.channel_id),
                         "No trivia session in this channel.")

        self.controller.start_game(self.channel_id, "classic", team_mode=True)
        summary = self.controller.get_session_status_summary(self.channel_id)

        self.assertIn("Purchase: classic", summary)
        self.assertIn("Progress: 1/8", summary)
        self.assertIn("Team 1: 0 | Team 2: 0", summary)
        self.assertIn("Turn: team1", summary)

    def test_multiple_channels(self):
        self.controller.start_game(1, "classic")
        self.controller.start_game(2, "duo")
        self.controller.start_game(3, "nothing")

        self.assertEqual(set(self.controller.get_all_active_sessions()), {1, 2})
        self.assertEqual(self.controller.close_all(), 3)
        self.assertEqual(self.controller.get_all_active_sessions(), {})


if __name__ == '__main__':
    unittest.main()

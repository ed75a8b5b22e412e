"""
Unit tests for bilingual embed rendering.
"""
import unittest

from trivia.models import Team
from trivia.quiz_engine import QuizSessionEngine
from trivia.rendering import (
    COLOR_ACTIVE, COLOR_URGENT, COLOR_WARNING, MAX_REVIEW_FIELDS,
    build_empty_embed, build_question_embed, build_results_embed, build_session_embed,
    missed_question_indexes, should_refresh_timer, t, timer_color,
)
from trivia.session_clock import ManualScheduler
from tests.test_fixtures import TestFixtures


def field_values(embed):
    return [field.value for field in embed.fields]


class RenderingTestCase(unittest.TestCase):

    def make_engine(self, pool, team_mode=False):
        self.scheduler = ManualScheduler()
        engine = QuizSessionEngine(
            "render-session", team_mode=team_mode,
            settings=TestFixtures.create_game_settings(timer_duration=10),
            scheduler=self.scheduler,
        )
        engine.start(pool)
        return engine


class TestStrings(unittest.TestCase):
    """Test cases for string lookup and timer helpers."""

    def test_lookup_and_format(self):
        self.assertEqual(t('question_title', 'en', number=2, total=5), "🎯 Question 2/5")
        self.assertEqual(t('question_title', 'ar', number=2, total=5), "🎯 السؤال 2/5")

    def test_unknown_language_falls_back_to_english(self):
        self.assertEqual(t('hint', 'fr'), "💡 Hint")

    def test_timer_refresh_throttle(self):
        self.assertEqual([r for r in range(30, -1, -1) if should_refresh_timer(r)],
                         [30, 25, 20, 15, 10, 5, 4, 3, 2, 1, 0])

    def test_timer_color(self):
        self.assertEqual(timer_color(20), COLOR_ACTIVE)
        self.assertEqual(timer_color(4), COLOR_WARNING)
        self.assertEqual(timer_color(1), COLOR_URGENT)


class TestQuestionEmbed(RenderingTestCase):
    """Test cases for the in-progress question embed."""

    def test_question_embed_english(self):
        engine = self.make_engine(TestFixtures.create_sample_questions(3))
        embed = build_question_embed(engine, 'en', category_name="Science")

        self.assertEqual(embed.title, "🎯 Question 1/3")
        self.assertEqual(embed.description, "Question q1?")
        self.assertIn("**A.** Option A", embed.fields[0].value)
        self.assertIn("10 seconds", field_values(embed))
        self.assertIn("Science", field_values(embed))
        self.assertEqual(embed.footer.text, "Pick an answer before time runs out")

    def test_question_embed_arabic(self):
        engine = self.make_engine(TestFixtures.create_sample_questions(3))
        embed = build_question_embed(engine, 'ar')

        self.assertEqual(embed.description, "سؤال q1؟")
        self.assertIn("**B.** خيار B", embed.fields[0].value)

    def test_eliminated_options_struck_through(self):
        engine = self.make_engine([TestFixtures.create_question(correct_option="D")])
        engine.use_eliminate()

        options = build_question_embed(engine, 'en').fields[0].value
        self.assertIn("~~**A.** Option A~~", options)
        self.assertIn("~~**B.** Option B~~", options)
        self.assertNotIn("~~**D.", options)

    def test_answer_marks_and_feedback(self):
        engine = self.make_engine([TestFixtures.create_question(correct_option="A")])
        engine.select_answer("C")

        embed = build_question_embed(engine, 'en')
        options = embed.fields[0].value
        self.assertIn("**A.** Option A ✅", options)
        self.assertIn("**C.** Option C ❌", options)
        self.assertIn("❌ Incorrect", field_values(embed))
        self.assertEqual(embed.footer.text, "Explanation q1")

    def test_correct_feedback_shows_points(self):
        engine = self.make_engine([TestFixtures.create_question(correct_option="A", tier=4)])
        engine.select_answer("A")

        self.assertIn("✅ Correct! +40", field_values(build_question_embed(engine, 'en')))

    def test_hint_field(self):
        engine = self.make_engine(TestFixtures.create_sample_questions(2))
        hint = engine.use_hint('en')

        embed = build_question_embed(engine, 'en', hint_text=hint)
        self.assertIn("Explanation q1", field_values(embed))

    def test_hurry_footer(self):
        engine = self.make_engine(TestFixtures.create_sample_questions(2))
        self.scheduler.advance(6)

        self.assertEqual(build_question_embed(engine, 'en').footer.text, "⚡ Time running out!")

    def test_team_mode_fields(self):
        pool = [TestFixtures.create_question("q1", correct_option="A", team=Team.TEAM1),
                TestFixtures.create_question("q2", correct_option="B", team=Team.TEAM2)]
        engine = self.make_engine(pool, team_mode=True)
        engine.select_answer("B")

        values = field_values(build_question_embed(engine, 'en'))
        self.assertIn("Team 1: 0\nTeam 2: 0", values)
        self.assertIn("Team 2", values)
        self.assertIn("🔁 Team 2 can steal this question!", values)

    def test_steal_window_keeps_answer_hidden(self):
        pool = [TestFixtures.create_question("q1", correct_option="A", team=Team.TEAM1),
                TestFixtures.create_question("q2", correct_option="B", team=Team.TEAM2)]
        engine = self.make_engine(pool, team_mode=True)
        engine.select_answer("B")
        self.assertTrue(engine.turns.steal_active)

        embed = build_question_embed(engine, 'en')
        options = embed.fields[0].value
        self.assertNotIn("✅", options)
        self.assertIn("**B.** Option B ❌", options)
        self.assertNotEqual(embed.footer.text, "Explanation q1")

        self.scheduler.advance(engine.settings.feedback_delay)
        self.assertNotIn("✅", build_question_embed(engine, 'en').fields[0].value)

        engine.select_answer("C")
        embed = build_question_embed(engine, 'en')
        self.assertIn("**A.** Option A ✅", embed.fields[0].value)
        self.assertEqual(embed.footer.text, "Explanation q1")


class TestResultsEmbed(RenderingTestCase):
    """Test cases for the finished-session embed."""

    def finish(self, engine, options):
        for option in options:
            engine.select_answer(option)
            self.scheduler.advance(engine.settings.feedback_delay)

    def test_individual_results(self):
        pool = [TestFixtures.create_question("q1", correct_option="A", tier=1),
                TestFixtures.create_question("q2", correct_option="B", tier=3)]
        engine = self.make_engine(pool)
        self.finish(engine, ["A", "C"])

        embed = build_results_embed(engine, 'en')
        self.assertEqual(embed.title, "🏁 Game Over!")
        self.assertIn("10 / 40", embed.description)
        self.assertIn("25% Correct", embed.description)
        self.assertIn("Try again", embed.description)
        self.assertEqual(missed_question_indexes(engine), [1])
        self.assertIn("Question 2", [field.name for field in embed.fields])

    def test_team_results_winner(self):
        pool = [TestFixtures.create_question("q1", correct_option="A", tier=2, team=Team.TEAM1),
                TestFixtures.create_question("q2", correct_option="B", tier=1, team=Team.TEAM2)]
        engine = self.make_engine(pool, team_mode=True)
        self.finish(engine, ["A", "B"])

        embed = build_results_embed(engine, 'en')
        self.assertEqual(embed.description, "🏆 Winner: Team 1")
        self.assertIn("20 / 30 (67%)", field_values(embed))

    def test_team_results_tie_arabic(self):
        pool = [TestFixtures.create_question("q1", correct_option="A", team=Team.TEAM1)]
        engine = self.make_engine(pool, team_mode=True)
        self.finish(engine, ["B", "C"])

        self.assertEqual(build_results_embed(engine, 'ar').description, "🤝 تعادل!")

    def test_review_is_capped(self):
        count = MAX_REVIEW_FIELDS + 3
        engine = self.make_engine(TestFixtures.create_sample_questions(count))
        while engine.current_question is not None:
            engine.select_answer(engine.current_question.incorrect_options[0])
            engine.advance()

        embed = build_results_embed(engine, 'en')
        question_fields = [f for f in embed.fields if f.name.startswith("Question ")]
        self.assertEqual(len(question_fields), MAX_REVIEW_FIELDS)
        self.assertEqual(embed.footer.text, "and 3 more questions")


class TestSessionEmbed(RenderingTestCase):
    """Test cases for phase dispatch."""

    def test_empty_embed(self):
        self.assertEqual(build_empty_embed('en').description, "No questions available in this category")
        self.assertIn("could not be loaded", build_empty_embed('en', load_failed=True).description)

    def test_dispatch_on_phase(self):
        engine = QuizSessionEngine("render-session")
        engine.start([])
        self.assertEqual(build_session_embed(engine, 'en').title, "No Questions Available")

        engine = self.make_engine(TestFixtures.create_sample_questions(1))
        self.assertEqual(build_session_embed(engine, 'en').title, "🎯 Question 1/1")

        engine.use_skip()
        self.assertEqual(build_session_embed(engine, 'en').title, "🏁 Game Over!")


if __name__ == '__main__':
    unittest.main()

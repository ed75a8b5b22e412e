"""
Bilingual Discord embeds for trivia sessions.
"""
from typing import Dict, List, Optional

import discord

from .models import OPTION_LABELS, Feedback, FinalResult, SessionPhase, Team
from .quiz_engine import QuizSessionEngine
from .scoring import points_for_tier

COLOR_ACTIVE = 0x00ff00
COLOR_WARNING = 0xff6600
COLOR_URGENT = 0xff0000
COLOR_INFO = 0x6699ff
COLOR_RESULTS = 0xffd700

MAX_REVIEW_FIELDS = 10

STRINGS: Dict[str, Dict[str, str]] = {
    'question_title': {'ar': "🎯 السؤال {number}/{total}", 'en': "🎯 Question {number}/{total}"},
    'time_remaining': {'ar': "⏱️ الوقت المتبقي", 'en': "⏱️ Time Remaining"},
    'seconds': {'ar': "{value} ثانية", 'en': "{value} seconds"},
    'points': {'ar': "🏅 النقاط", 'en': "🏅 Points"},
    'category': {'ar': "📚 الفئة", 'en': "📚 Category"},
    'score': {'ar': "📊 النتيجة", 'en': "📊 Score"},
    'turn': {'ar': "🎮 الدور", 'en': "🎮 Turn"},
    'team1': {'ar': "الفريق الأول", 'en': "Team 1"},
    'team2': {'ar': "الفريق الثاني", 'en': "Team 2"},
    'steal_banner': {'ar': "🔁 فرصة سرقة لـ {team}!", 'en': "🔁 {team} can steal this question!"},
    'correct': {'ar': "✅ إجابة صحيحة! +{points}", 'en': "✅ Correct! +{points}"},
    'incorrect': {'ar': "❌ إجابة خاطئة", 'en': "❌ Incorrect"},
    'timeout': {'ar': "⌛ انتهى الوقت", 'en': "⌛ Time's up"},
    'skipped': {'ar': "⏭️ تم تخطي السؤال", 'en': "⏭️ Question skipped"},
    'hint': {'ar': "💡 تلميح", 'en': "💡 Hint"},
    'lifelines': {'ar': "🛟 المساعدات", 'en': "🛟 Lifelines"},
    'lifeline_hint': {'ar': "تلميح", 'en': "Hint"},
    'lifeline_skip': {'ar': "تخطي", 'en': "Skip"},
    'lifeline_eliminate': {'ar': "حذف إجابتين", 'en': "50/50"},
    'next_question': {'ar': "السؤال التالي", 'en': "Next Question"},
    'finish_game': {'ar': "إنهاء اللعبة", 'en': "Finish Game"},
    'footer_answer': {'ar': "اختر إجابة قبل انتهاء الوقت", 'en': "Pick an answer before time runs out"},
    'footer_hurry': {'ar': "⚡ الوقت ينفد!", 'en': "⚡ Time running out!"},
    'game_over': {'ar': "🏁 انتهت اللعبة!", 'en': "🏁 Game Over!"},
    'percent_correct': {'ar': "{percent}% صحيح", 'en': "{percent}% Correct"},
    'answer_review': {'ar': "📝 مراجعة الإجابات", 'en': "📝 Answer Review"},
    'question_n': {'ar': "السؤال {number}", 'en': "Question {number}"},
    'correct_answer': {'ar': "الإجابة الصحيحة: ", 'en': "Correct answer: "},
    'review_more': {'ar': "و {count} أسئلة أخرى", 'en': "and {count} more questions"},
    'winner': {'ar': "🏆 الفائز: {team}", 'en': "🏆 Winner: {team}"},
    'tie': {'ar': "🤝 تعادل!", 'en': "🤝 It's a tie!"},
    'play_again': {'ar': "لعب مرة أخرى", 'en': "Play Again"},
    'no_questions_title': {'ar': "لا توجد أسئلة", 'en': "No Questions Available"},
    'no_questions': {
        'ar': "لا توجد أسئلة في هذه الفئة حالياً",
        'en': "No questions available in this category",
    },
    'load_failed': {
        'ar': "تعذر تحميل الأسئلة. حاول مرة أخرى لاحقاً.",
        'en': "Questions could not be loaded. Please try again later.",
    },
    'band_exceptional': {'ar': "أداء استثنائي! 🌟", 'en': "Exceptional performance! 🌟"},
    'band_great': {'ar': "أداء رائع! 🎉", 'en': "Great job! 🎉"},
    'band_good': {'ar': "أداء جيد 👍", 'en': "Good effort 👍"},
    'band_try_again': {'ar': "حاول مرة أخرى 💪", 'en': "Try again 💪"},
}


def t(key: str, language: str, **kwargs) -> str:
    """Look up a UI string in the given language, falling back to English."""
    entry = STRINGS[key]
    text = entry.get(language) or entry['en']
    return text.format(**kwargs) if kwargs else text


def team_name(team: Team, language: str) -> str:
    return t(team.value, language)


def should_refresh_timer(remaining: int) -> bool:
    """Timer embeds are edited every 5 units and on each of the final 5."""
    return remaining % 5 == 0 or remaining <= 5


def timer_color(remaining: int) -> int:
    if remaining > 5:
        return COLOR_ACTIVE
    if remaining > 2:
        return COLOR_WARNING
    return COLOR_URGENT


def answer_revealed(engine: QuizSessionEngine) -> bool:
    """True once the current question is settled for good and its answer may be shown."""
    if not engine.state.answer_locked:
        return False
    return not (engine.team_mode and engine.turns.steal_active)


def format_option(engine: QuizSessionEngine, label: str, language: str) -> str:
    question = engine.current_question
    text = question.option(label, language) if question else ""
    line = f"**{label}.** {text}"
    if engine.lifelines.is_eliminated(label):
        return f"~~{line}~~"
    if engine.state.answer_locked and question is not None:
        if label == question.correct_option and answer_revealed(engine):
            return f"{line} ✅"
        if label == engine.state.selected_option:
            return f"{line} ❌"
    return line


def feedback_banner(engine: QuizSessionEngine, language: str) -> Optional[str]:
    feedback = engine.state.feedback
    if feedback is None:
        return None
    if feedback is Feedback.CORRECT:
        points = engine.state.answers[-1].points_earned if engine.state.answers else 0
        return t('correct', language, points=points)
    return t(feedback.value, language)


def build_question_embed(engine: QuizSessionEngine, language: str,
                         category_name: Optional[str] = None,
                         hint_text: Optional[str] = None) -> discord.Embed:
    """
    Render the current question with its options, timer and scores.

    Args:
        engine: Session engine in the in-progress phase
        language: 'ar' or 'en'
        category_name: Display name of the question's category
        hint_text: Revealed hint, shown while the hint is visible

    Returns:
        Discord embed for the question message
    """
    question = engine.current_question
    state = engine.state
    remaining = state.time_remaining

    embed = discord.Embed(
        title=t('question_title', language, number=state.current_index + 1, total=len(state.pool)),
        description=question.prompt(language) if question else "",
        color=timer_color(remaining) if not state.answer_locked else COLOR_INFO
    )

    embed.add_field(
        name="\u200b",
        value="\n".join(format_option(engine, label, language) for label in OPTION_LABELS),
        inline=False
    )

    embed.add_field(
        name=t('time_remaining', language),
        value=t('seconds', language, value=remaining),
        inline=True
    )
    if question is not None:
        embed.add_field(name=t('points', language), value=str(points_for_tier(question.tier)), inline=True)
    if category_name:
        embed.add_field(name=t('category', language), value=category_name, inline=True)

    totals = state.totals
    if engine.team_mode:
        embed.add_field(
            name=t('score', language),
            value=(f"{t('team1', language)}: {totals.team1_score}\n"
                   f"{t('team2', language)}: {totals.team2_score}"),
            inline=True
        )
        embed.add_field(
            name=t('turn', language),
            value=team_name(engine.turns.current_team, language),
            inline=True
        )
        if engine.turns.steal_active:
            embed.add_field(
                name="\u200b",
                value=t('steal_banner', language, team=team_name(engine.turns.current_team, language)),
                inline=False
            )
    else:
        embed.add_field(name=t('score', language), value=str(totals.score), inline=True)

    if state.lifelines.hint_visible and hint_text:
        embed.add_field(name=t('hint', language), value=hint_text, inline=False)

    banner = feedback_banner(engine, language)
    if banner:
        embed.add_field(name="\u200b", value=banner, inline=False)
        if (question is not None and answer_revealed(engine)
                and question.explanation(language) and state.feedback is not Feedback.SKIPPED):
            embed.set_footer(text=question.explanation(language)[:2048])
    else:
        embed.set_footer(text=t('footer_hurry' if remaining <= 5 else 'footer_answer', language))

    return embed


def band_message(result: FinalResult, language: str) -> str:
    return t(f"band_{result.band}", language) if result.band else ""


def missed_question_indexes(engine: QuizSessionEngine) -> List[int]:
    """Indexes of pool questions that never received a correct answer."""
    answered_correctly = {r.question_index for r in engine.state.answers if r.is_correct}
    return [i for i in range(len(engine.state.pool)) if i not in answered_correctly]


def build_results_embed(engine: QuizSessionEngine, language: str) -> discord.Embed:
    """
    Render the finished session: score, percentage, winner and answer review.

    Args:
        engine: Session engine in the finished phase
        language: 'ar' or 'en'

    Returns:
        Discord embed for the results message
    """
    result = engine.state.result or engine.compute_result()

    if result.team_mode:
        if result.winner == "tie":
            description = t('tie', language)
        else:
            description = t('winner', language, team=team_name(Team(result.winner), language))
    else:
        description = (f"**{result.score} / {result.max_score}** · "
                       f"{t('percent_correct', language, percent=round(result.percentage))}\n"
                       f"{band_message(result, language)}")

    embed = discord.Embed(title=t('game_over', language), description=description, color=COLOR_RESULTS)

    if result.team_mode:
        for team, score, percent in (
            (Team.TEAM1, result.team1_score, result.team1_percentage),
            (Team.TEAM2, result.team2_score, result.team2_percentage),
        ):
            embed.add_field(
                name=team_name(team, language),
                value=f"{score} / {result.max_score} ({round(percent)}%)",
                inline=True
            )

    missed = missed_question_indexes(engine)
    if missed:
        embed.add_field(name=t('answer_review', language), value="\u200b", inline=False)
        for index in missed[:MAX_REVIEW_FIELDS]:
            question = engine.state.pool[index]
            embed.add_field(
                name=t('question_n', language, number=index + 1),
                value=(f"{question.prompt(language)[:900]}\n"
                       f"{t('correct_answer', language)}{question.correct_option}. "
                       f"{question.option(question.correct_option, language)}"),
                inline=False
            )
        if len(missed) > MAX_REVIEW_FIELDS:
            embed.set_footer(text=t('review_more', language, count=len(missed) - MAX_REVIEW_FIELDS))

    return embed


def build_empty_embed(language: str, load_failed: bool = False) -> discord.Embed:
    """Terminal view when a session has no questions to play."""
    return discord.Embed(
        title=t('no_questions_title', language),
        description=t('load_failed' if load_failed else 'no_questions', language),
        color=COLOR_URGENT
    )


def build_session_embed(engine: QuizSessionEngine, language: str, **kwargs) -> discord.Embed:
    """Pick the embed matching the engine's phase."""
    if engine.phase is SessionPhase.FINISHED:
        return build_results_embed(engine, language)
    if engine.phase is SessionPhase.EMPTY:
        return build_empty_embed(language, load_failed=engine.state.load_failed)
    return build_question_embed(engine, language, **kwargs)

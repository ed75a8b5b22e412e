"""
Single-use lifelines: hint, skip and eliminate-two.
"""
import logging
from typing import Optional, Tuple

from .models import OPTION_LABELS, Lifeline, LifelineState, Question

HINT_FALLBACK = {
    'ar': "فكّر جيداً في الخيارات المتاحة.",
    'en': "Think carefully about the available options.",
}


class LifelineManager:
    """
    Owns the lifeline flags for one session.

    The `*_used` flags only move from unused to used. Hint visibility and
    eliminated labels belong to the current question and are cleared by
    `clear_question_effects()` on every advance. Calls made after an answer is
    locked, or for an already used lifeline, do nothing.
    """

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id
        self.state = LifelineState()
        self.logger = logging.getLogger(__name__)

    def reset(self) -> None:
        """Return every lifeline to unused. Only called when a session (re)starts."""
        self.state = LifelineState()

    def clear_question_effects(self) -> None:
        self.state.hint_visible = False
        self.state.eliminated = frozenset()

    def is_available(self, lifeline: Lifeline, answer_locked: bool = False) -> bool:
        return not answer_locked and not self.state.is_used(lifeline)

    def is_eliminated(self, label: str) -> bool:
        return label in self.state.eliminated

    def use_hint(self, question: Question, answer_locked: bool, language: str = 'ar') -> Optional[str]:
        """
        Reveal the current question's explanation.

        Returns:
            The hint text, or None if the hint cannot be used now
        """
        if not self.is_available(Lifeline.HINT, answer_locked):
            self._log_ignored(Lifeline.HINT, answer_locked)
            return None

        self.state.hint_used = True
        self.state.hint_visible = True
        self.logger.info(f"Hint used in session {self.session_id} on question {question.id}")
        return question.explanation(language) or HINT_FALLBACK.get(language, HINT_FALLBACK['en'])

    def use_skip(self, answer_locked: bool) -> bool:
        """
        Consume the skip lifeline. The caller records the skipped answer and advances.

        Returns:
            True if the skip was consumed
        """
        if not self.is_available(Lifeline.SKIP, answer_locked):
            self._log_ignored(Lifeline.SKIP, answer_locked)
            return False

        self.state.skip_used = True
        self.logger.info(f"Skip used in session {self.session_id}")
        return True

    def use_eliminate(self, question: Question, answer_locked: bool) -> Optional[Tuple[str, str]]:
        """
        Exclude the first two incorrect options in label order.

        Returns:
            The two eliminated labels, or None if the lifeline cannot be used now
        """
        if not self.is_available(Lifeline.ELIMINATE, answer_locked):
            self._log_ignored(Lifeline.ELIMINATE, answer_locked)
            return None

        removed = tuple(label for label in OPTION_LABELS if label != question.correct_option)[:2]
        self.state.eliminate_used = True
        self.state.eliminated = frozenset(removed)
        self.logger.info(
            f"Eliminate used in session {self.session_id} on question {question.id}: {', '.join(removed)}"
        )
        return removed[0], removed[1]

    def _log_ignored(self, lifeline: Lifeline, answer_locked: bool) -> None:
        reason = "answer already selected" if answer_locked else "already used"
        self.logger.debug(f"Ignored {lifeline.value} lifeline in session {self.session_id}: {reason}")

"""
Quiz session engine for the trivia bot.
Drives the question lifecycle: present, answer or timeout, feedback, advance, finish.
"""
import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from .lifelines import LifelineManager
from .models import (
    OPTION_LABELS, AnswerRecord, Feedback, FinalResult, GameSettings, Question,
    SessionDescriptor, SessionPhase, SessionState, Team,
)
from .question_pool import PoolEmpty, PoolLoadError, QuestionPoolLoader
from .scoring import max_score, percentage, performance_band, points_for_tier
from .session_clock import ManualScheduler, Scheduler, SessionClock, TimerHandle, TimerLifecycleLogger
from .turns import TurnController

logger = logging.getLogger(__name__)


class InvalidTransition(Exception):
    """An operation was attempted outside its valid phase or state."""
    pass


class EngineEvent(Enum):
    """Notifications emitted to the engine listener."""
    STARTED = "started"
    TICK = "tick"
    ANSWERED = "answered"
    HINT = "hint"
    ELIMINATED = "eliminated"
    SKIPPED = "skipped"
    STEAL_OPENED = "steal_opened"
    REOPENED = "reopened"
    ADVANCED = "advanced"
    FINISHED = "finished"
    EMPTY = "empty"


EngineListener = Callable[[EngineEvent, "QuizSessionEngine", Dict[str, Any]], Any]


class QuizSessionEngine:
    """
    State machine for one trivia session.

    All mutation goes through the public operations below. Calls that are not
    valid for the current state return False or None and leave the state
    untouched. Timer callbacks carry an epoch that changes on every question
    advance or steal reopen, so superseded timers are ignored.
    """

    def __init__(self, session_id: str, team_mode: bool = False,
                 settings: Optional[GameSettings] = None,
                 scheduler: Optional[Scheduler] = None,
                 listener: Optional[EngineListener] = None,
                 starting_team: Team = Team.TEAM1):
        """
        Args:
            session_id: Identifier used for logging and result persistence
            team_mode: Enables turn order and the steal mechanic
            settings: Timer, feedback delay and pool sizing
            scheduler: Delayed-callback source; defaults to a ManualScheduler
            listener: Called as listener(event, engine, data) after every change
            starting_team: Team that answers the first question in team mode
        """
        self.session_id = session_id
        self.team_mode = team_mode
        self.settings = settings or GameSettings()
        self.scheduler = scheduler or ManualScheduler()
        self.listener = listener
        self.state = SessionState(session_id=session_id, team_mode=team_mode)
        self.lifelines = LifelineManager(session_id)
        self.turns = TurnController(starting_team)
        self.clock = SessionClock(
            self.scheduler,
            duration=self.settings.timer_duration,
            tick_interval=self.settings.tick_interval,
            session_id=session_id,
        )
        self._epoch = 0
        self._feedback_handle: Optional[TimerHandle] = None
        self._sync_substates()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self, loader: QuestionPoolLoader, descriptor: SessionDescriptor) -> bool:
        """
        Assemble the pool through the loader and start the session.

        Returns:
            True if the session entered in-progress, False if it ended in the empty phase
        """
        self.state.phase = SessionPhase.LOADING
        try:
            pool = loader.load(descriptor)
        except PoolEmpty as e:
            self._enter_empty(str(e), load_failed=False)
            return False
        except PoolLoadError as e:
            self._enter_empty(str(e), load_failed=True)
            return False
        return self.start(pool)

    def start(self, pool: Sequence[Question]) -> bool:
        """
        Begin (or restart) the session at the first question.

        Lifelines, turn order and scores all return to their initial values.

        Args:
            pool: Ordered, non-empty question list

        Returns:
            True if the session started
        """
        if not pool:
            if self.state.phase is SessionPhase.IN_PROGRESS:
                self._log_ignored("start", InvalidTransition("empty pool while a session is in progress"))
                return False
            self._enter_empty("Question pool is empty", load_failed=False)
            return False

        self._cancel_timers()
        self._epoch += 1
        self.lifelines.reset()
        self.turns.reset()
        self.state = SessionState(
            session_id=self.session_id,
            team_mode=self.team_mode,
            phase=SessionPhase.IN_PROGRESS,
            pool=tuple(pool),
            time_remaining=self.settings.timer_duration,
        )
        self._sync_substates()

        logger.info(
            f"Session {self.session_id} started with {len(pool)} questions",
            extra={
                'event_type': 'session_started',
                'session_id': self.session_id,
                'team_mode': self.team_mode,
                'question_count': len(pool),
                'timestamp': time.time()
            }
        )
        self._start_question_clock()
        self._emit(EngineEvent.STARTED, {'question_count': len(pool)})
        return True

    def close(self) -> None:
        """Tear down all pending timers. The session state is left as-is for inspection."""
        self._cancel_timers()
        self._epoch += 1
        logger.info(
            f"Session {self.session_id} closed",
            extra={
                'event_type': 'session_closed',
                'session_id': self.session_id,
                'phase': self.state.phase.value,
                'timestamp': time.time()
            }
        )

    # ------------------------------------------------------------------
    # Player operations
    # ------------------------------------------------------------------

    def select_answer(self, option: str) -> bool:
        """
        Lock in an answer for the current question.

        Args:
            option: Option label A-D

        Returns:
            True if the answer was accepted
        """
        try:
            question = self._require_open_question()
            label = str(option).strip().upper()
            if label not in OPTION_LABELS:
                raise InvalidTransition(f"unknown option '{option}'")
            if self.lifelines.is_eliminated(label):
                raise InvalidTransition(f"option {label} is eliminated")
        except InvalidTransition as e:
            self._log_ignored("select_answer", e)
            return False

        self._settle(question, label)
        return True

    def use_hint(self, language: str = 'ar') -> Optional[str]:
        """
        Reveal the explanation for the current question.

        Returns:
            Hint text, or None if the hint is not available
        """
        try:
            question = self._require_in_progress_question()
        except InvalidTransition as e:
            self._log_ignored("use_hint", e)
            return None

        text = self.lifelines.use_hint(question, self.state.answer_locked, language)
        if text is not None:
            self._emit(EngineEvent.HINT, {'text': text, 'question_id': question.id})
        return text

    def use_eliminate(self) -> Optional[Tuple[str, str]]:
        """
        Remove two incorrect options from the current question.

        Returns:
            The two eliminated labels, or None if the lifeline is not available
        """
        try:
            question = self._require_in_progress_question()
        except InvalidTransition as e:
            self._log_ignored("use_eliminate", e)
            return None

        removed = self.lifelines.use_eliminate(question, self.state.answer_locked)
        if removed is not None:
            self._emit(EngineEvent.ELIMINATED, {'labels': removed, 'question_id': question.id})
        return removed

    def use_skip(self) -> bool:
        """
        Skip the current question without penalty and advance immediately.

        Returns:
            True if the skip was applied
        """
        try:
            question = self._require_in_progress_question()
        except InvalidTransition as e:
            self._log_ignored("use_skip", e)
            return False

        if not self.lifelines.use_skip(self.state.answer_locked):
            return False

        self.clock.stop()
        team = self.turns.on_skip() if self.team_mode else None
        record = AnswerRecord(
            question_id=question.id,
            question_index=self.state.current_index,
            selected_option=None,
            is_correct=None,
            elapsed=self.clock.elapsed,
            points_earned=0,
            team=team,
            skipped=True,
        )
        self.state.answers.append(record)
        self.state.feedback = Feedback.SKIPPED
        self._sync_substates()
        self._emit(EngineEvent.SKIPPED, {'record': record})
        self._advance()
        return True

    def advance(self) -> bool:
        """
        Move to the next question once the current one is settled.

        Suppressed while a steal is pending on the current question.

        Returns:
            True if the engine advanced (or finished)
        """
        try:
            return self._advance()
        except InvalidTransition as e:
            self._log_ignored("advance", e)
            return False

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def phase(self) -> SessionPhase:
        return self.state.phase

    @property
    def current_question(self) -> Optional[Question]:
        return self.state.current_question

    @property
    def epoch(self) -> int:
        return self._epoch

    def get_progress(self) -> Dict[str, Any]:
        """
        Get a summary of the current position and scores.

        Returns:
            Dictionary with progress information
        """
        total = len(self.state.pool)
        return {
            'phase': self.state.phase.value,
            'current_question': min(self.state.current_index + 1, total) if total else 0,
            'total_questions': total,
            'time_remaining': self.state.time_remaining,
            'team_mode': self.team_mode,
            'current_team': self.turns.current_team.value if self.team_mode else None,
            'steal_active': self.turns.steal_active if self.team_mode else False,
            'totals': self.state.totals.to_dict(),
            'answers_recorded': len(self.state.answers),
        }

    def build_results_payload(self) -> Dict[str, Any]:
        """Final totals, the answer list and the shown question ids, ready for persistence."""
        return {
            'session_id': self.session_id,
            'team_mode': self.team_mode,
            'totals': self.state.totals.to_dict(),
            'result': self.state.result.to_dict() if self.state.result else None,
            'answers': [record.to_dict() for record in self.state.answers],
            'question_ids': [question.id for question in self.state.pool],
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_in_progress_question(self) -> Question:
        if self.state.phase is not SessionPhase.IN_PROGRESS:
            raise InvalidTransition(f"session is {self.state.phase.value}")
        question = self.state.current_question
        if question is None:
            raise InvalidTransition("no current question")
        return question

    def _require_open_question(self) -> Question:
        question = self._require_in_progress_question()
        if self.state.answer_locked:
            raise InvalidTransition("answer already settled for this question")
        return question

    def _settle(self, question: Question, selected: Optional[str]) -> None:
        """Record an attempt (answer or timeout), update totals and schedule what comes next."""
        self.clock.stop()
        timed_out = selected is None
        correct = selected == question.correct_option
        points = points_for_tier(question.tier) if correct else 0

        team: Optional[Team] = None
        advance = True
        steal_opened = False
        if self.team_mode:
            outcome = self.turns.settle(correct)
            team = outcome.answering_team
            advance = outcome.advance
            steal_opened = outcome.steal_opened

        self.state.totals.add(points, team)
        record = AnswerRecord(
            question_id=question.id,
            question_index=self.state.current_index,
            selected_option=selected,
            is_correct=correct,
            elapsed=self.clock.elapsed,
            points_earned=points,
            team=team,
            timed_out=timed_out,
        )
        self.state.answers.append(record)
        self.state.selected_option = selected
        if timed_out:
            self.state.feedback = Feedback.TIMEOUT
        else:
            self.state.feedback = Feedback.CORRECT if correct else Feedback.INCORRECT
        self._sync_substates()

        logger.info(
            f"Session {self.session_id} question {self.state.current_index + 1}: "
            f"{self.state.feedback.value}, {points} points" + (f" to {team.value}" if team else ""),
            extra={
                'event_type': 'answer_settled',
                'session_id': self.session_id,
                'question_id': question.id,
                'points': points,
                'timestamp': time.time()
            }
        )
        self._emit(EngineEvent.ANSWERED, {'record': record})

        if steal_opened:
            self._emit(EngineEvent.STEAL_OPENED, {'team': self.turns.current_team})
        elif not advance:
            return

        self._feedback_handle = self.scheduler.call_later(
            self.settings.feedback_delay, self._on_feedback_elapsed, self._epoch, steal_opened
        )

    def _on_feedback_elapsed(self, epoch: int, reopen: bool) -> None:
        if epoch != self._epoch or self.state.phase is not SessionPhase.IN_PROGRESS:
            TimerLifecycleLogger.log_stale_callback(
                self.session_id, f"feedback delay for epoch {epoch} ignored (current {self._epoch})"
            )
            return

        self._feedback_handle = None
        if reopen:
            self._reopen_for_steal()
        else:
            self.advance()

    def _reopen_for_steal(self) -> None:
        """Give the opposing team the same question with a fresh clock."""
        self._epoch += 1
        self.state.selected_option = None
        self.state.feedback = None
        self._start_question_clock()
        self._emit(EngineEvent.REOPENED, {'team': self.turns.current_team})

    def _advance(self) -> bool:
        if self.state.phase is not SessionPhase.IN_PROGRESS:
            raise InvalidTransition(f"session is {self.state.phase.value}")
        if self.team_mode and self.turns.steal_active:
            raise InvalidTransition("steal attempt pending on current question")
        if not self.state.answer_locked:
            raise InvalidTransition("current question not settled")

        self._cancel_feedback_handle()
        self.clock.stop()
        self._epoch += 1
        self.state.current_index += 1
        self.state.selected_option = None
        self.state.feedback = None
        self.lifelines.clear_question_effects()
        self.turns.on_advance()
        self._sync_substates()

        if self.state.current_index >= len(self.state.pool):
            self._finish()
            return True

        self._start_question_clock()
        self._emit(EngineEvent.ADVANCED, {'index': self.state.current_index})
        return True

    def _finish(self) -> None:
        self._cancel_timers()
        self.state.phase = SessionPhase.FINISHED
        self.state.time_remaining = 0
        self.state.result = self.compute_result()
        logger.info(
            f"Session {self.session_id} finished",
            extra={
                'event_type': 'session_finished',
                'session_id': self.session_id,
                'result': self.state.result.to_dict(),
                'timestamp': time.time()
            }
        )
        self._emit(EngineEvent.FINISHED, {'result': self.state.result})

    def compute_result(self) -> FinalResult:
        """Compute the results-screen values from the current totals."""
        total = max_score(self.state.pool)
        totals = self.state.totals
        if not self.team_mode:
            percent = percentage(totals.score, total)
            return FinalResult(
                team_mode=False,
                max_score=total,
                score=totals.score,
                percentage=percent,
                band=performance_band(percent),
            )

        if totals.team1_score > totals.team2_score:
            winner = Team.TEAM1.value
        elif totals.team2_score > totals.team1_score:
            winner = Team.TEAM2.value
        else:
            winner = "tie"
        # Both team percentages are shares of the whole pool's value.
        return FinalResult(
            team_mode=True,
            max_score=total,
            team1_score=totals.team1_score,
            team2_score=totals.team2_score,
            team1_percentage=percentage(totals.team1_score, total),
            team2_percentage=percentage(totals.team2_score, total),
            winner=winner,
        )

    def _enter_empty(self, reason: str, load_failed: bool) -> None:
        self._cancel_timers()
        self.state.phase = SessionPhase.EMPTY
        self.state.load_error = reason
        self.state.load_failed = load_failed
        log = logger.error if load_failed else logger.warning
        log(
            f"Session {self.session_id} has no questions: {reason}",
            extra={
                'event_type': 'session_empty',
                'session_id': self.session_id,
                'load_failed': load_failed,
                'timestamp': time.time()
            }
        )
        self._emit(EngineEvent.EMPTY, {'reason': reason, 'load_failed': load_failed})

    def _start_question_clock(self) -> None:
        self.state.time_remaining = self.settings.timer_duration
        self.clock.start(self._epoch, self._on_tick, self._on_expire)

    def _on_tick(self, remaining: int) -> None:
        self.state.time_remaining = remaining
        self._emit(EngineEvent.TICK, {'remaining': remaining})

    def _on_expire(self, epoch: int) -> None:
        if epoch != self._epoch or self.state.phase is not SessionPhase.IN_PROGRESS or self.state.answer_locked:
            TimerLifecycleLogger.log_stale_callback(
                self.session_id, f"expiry for epoch {epoch} ignored (current {self._epoch})"
            )
            return

        question = self.state.current_question
        if question is not None:
            self._settle(question, None)

    def _cancel_feedback_handle(self) -> None:
        if self._feedback_handle is not None:
            self._feedback_handle.cancel()
            self._feedback_handle = None

    def _cancel_timers(self) -> None:
        self._cancel_feedback_handle()
        self.clock.cancel()

    def _sync_substates(self) -> None:
        # Keep the consolidated state value pointing at the live sub-states.
        self.state.lifelines = self.lifelines.state
        self.state.turn = self.turns.state

    def _log_ignored(self, operation: str, error: InvalidTransition) -> None:
        logger.debug(f"Session {self.session_id}: ignored {operation} ({error})")

    def _emit(self, event: EngineEvent, data: Dict[str, Any]) -> None:
        if self.listener is None:
            return
        try:
            self.listener(event, self, data)
        except Exception as e:
            logger.error(
                f"Listener failed for {event.value} in session {self.session_id}: {e}",
                exc_info=True,
                extra={
                    'event_type': 'listener_error',
                    'session_id': self.session_id,
                    'timestamp': time.time()
                }
            )

"""
Trivia session controller.
Manages one session engine per Discord channel, result saving and error reporting.
"""
import logging
import random
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .config_manager import ConfigManager
from .data_manager import DataManager
from .models import LANGUAGES, SessionDescriptor, SessionPhase
from .question_pool import QuestionPoolLoader
from .quiz_engine import EngineEvent, EngineListener, QuizSessionEngine
from .session_clock import AsyncioScheduler, Scheduler


class TriviaControllerError(Exception):
    """Base exception for trivia controller errors."""
    pass


class SessionConflictError(TriviaControllerError):
    """Raised when a game is started in a channel that is already playing."""
    pass


class SessionNotFoundError(TriviaControllerError):
    """Raised when operating on a channel without a session."""
    pass


class PurchaseNotFoundError(TriviaControllerError):
    """Raised when the requested purchase is not known to the data manager."""
    pass


class GameInProgressError(TriviaControllerError):
    """Raised when play again is requested before the channel's game has ended."""
    pass


@dataclass
class ChannelSession:
    """A session engine bound to a channel, plus presentation bookkeeping."""
    channel_id: int
    descriptor: SessionDescriptor
    engine: QuizSessionEngine
    language: str
    start_time: datetime = field(default_factory=datetime.now)
    results_saved: bool = False


class TriviaController:
    """
    Orchestrates trivia sessions across Discord channels.

    Each channel can have at most one running session. Finished and empty
    sessions stay registered so their results can still be shown, and are
    replaced by the next game started in that channel.
    """

    def __init__(self, data_manager: DataManager, config_manager: ConfigManager,
                 scheduler_factory: Optional[Callable[[], Scheduler]] = None,
                 rng: Optional[random.Random] = None):
        """
        Initialize the trivia controller.

        Args:
            data_manager: Question source and results sink
            config_manager: Game settings
            scheduler_factory: Builds the timer scheduler for each session
            rng: Shared random source for pool shuffling
        """
        self.logger = logging.getLogger(__name__)
        self.data_manager = data_manager
        self.config_manager = config_manager
        self.scheduler_factory = scheduler_factory or AsyncioScheduler
        self.rng = rng or random.Random()

        # Sessions mapped by channel ID
        self._sessions: Dict[int, ChannelSession] = {}
        self._session_errors: Dict[int, List[str]] = {}

    # ------------------------------------------------------------------
    # Session lookup
    # ------------------------------------------------------------------

    def get_session(self, channel_id: int) -> Optional[ChannelSession]:
        return self._sessions.get(channel_id)

    def has_active_session(self, channel_id: int) -> bool:
        """
        Check if a channel has a game in progress.

        Args:
            channel_id: Discord channel identifier

        Returns:
            True if the channel's session is loading or in progress
        """
        session = self._sessions.get(channel_id)
        return session is not None and session.engine.phase in (SessionPhase.LOADING, SessionPhase.IN_PROGRESS)

    def _require_session(self, channel_id: int) -> ChannelSession:
        session = self._sessions.get(channel_id)
        if session is None:
            raise SessionNotFoundError(f"No trivia session in channel {channel_id}")
        return session

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_game(self, channel_id: int, purchase_ref: str, team_mode: bool = False,
                   language: Optional[str] = None,
                   listener: Optional[EngineListener] = None) -> Dict[str, Any]:
        """
        Load a purchase's questions and start a session in a channel.

        Args:
            channel_id: Discord channel identifier
            purchase_ref: Purchase whose categories supply the questions
            team_mode: Play as two teams with steals
            language: 'ar' or 'en'; defaults to the configured language
            listener: Receives engine events for presentation

        Returns:
            Dictionary with operation results and error information
        """
        try:
            if self.has_active_session(channel_id):
                raise SessionConflictError(f"Trivia game already running in channel {channel_id}")

            if purchase_ref not in self.data_manager.get_available_purchases():
                raise PurchaseNotFoundError(f"Purchase '{purchase_ref}' not found")

            language = language or self.config_manager.get_default_language()
            if language not in LANGUAGES:
                raise ValueError(f"Unsupported language: {language}")

            previous = self._sessions.pop(channel_id, None)
            if previous is not None:
                previous.engine.close()

            settings = self.config_manager.get_game_settings()
            descriptor = SessionDescriptor(
                session_id=f"{channel_id}-{int(time.time() * 1000)}",
                purchase_ref=purchase_ref,
                team_mode=team_mode,
            )
            engine = QuizSessionEngine(
                descriptor.session_id,
                team_mode=team_mode,
                settings=settings,
                scheduler=self.scheduler_factory(),
                listener=self._make_listener(channel_id, listener),
            )
            session = ChannelSession(
                channel_id=channel_id,
                descriptor=descriptor,
                engine=engine,
                language=language,
            )
            self._sessions[channel_id] = session

            loader = QuestionPoolLoader(self.data_manager, settings.questions_per_category, self.rng)
            started = engine.load(loader, descriptor)
            self._cleanup_session_errors(channel_id)

            if not started:
                return {
                    'success': False,
                    'empty': True,
                    'error': engine.state.load_error,
                    'message': f"No questions available for purchase '{purchase_ref}'",
                    'user_message': "❌ No questions are available for this purchase.",
                    'session_info': self.get_session_progress(channel_id)
                }

            self.logger.info(
                f"Started trivia session {descriptor.session_id} in channel {channel_id}: "
                f"purchase='{purchase_ref}', team_mode={team_mode}, questions={len(engine.state.pool)}"
            )
            return {
                'success': True,
                'message': f"Trivia game for purchase '{purchase_ref}' started",
                'session_info': self.get_session_progress(channel_id)
            }

        except Exception as e:
            return self._handle_session_error(channel_id, e, "start_game")

    def restart_game(self, channel_id: int, listener: Optional[EngineListener] = None) -> Dict[str, Any]:
        """
        Play again with the same purchase and mode once the game has ended.

        Args:
            channel_id: Discord channel identifier
            listener: Replacement listener; the existing one is kept when None

        Returns:
            Dictionary with operation results and error information
        """
        try:
            session = self._require_session(channel_id)
            if session.engine.phase not in (SessionPhase.FINISHED, SessionPhase.EMPTY):
                raise GameInProgressError(
                    f"Session {session.engine.session_id} is {session.engine.phase.value}"
                )
            session.engine.close()
            if listener is not None:
                session.engine.listener = self._make_listener(channel_id, listener)
            session.results_saved = False
            session.start_time = datetime.now()

            loader = QuestionPoolLoader(
                self.data_manager, session.engine.settings.questions_per_category, self.rng
            )
            started = session.engine.load(loader, session.descriptor)
            return {
                'success': started,
                'message': "Trivia game restarted" if started else "No questions available",
                'session_info': self.get_session_progress(channel_id)
            }
        except Exception as e:
            return self._handle_session_error(channel_id, e, "restart_game")

    def stop_game(self, channel_id: int) -> Dict[str, Any]:
        """
        Stop a channel's game, tearing down its timers. Partial results are discarded.

        Args:
            channel_id: Discord channel identifier

        Returns:
            Dictionary with operation results and error information
        """
        session_info = self.get_session_progress(channel_id)
        session = self._sessions.pop(channel_id, None)
        if session is None:
            return {
                'success': False,
                'message': "No trivia game to stop in this channel",
                'user_message': "ℹ️ No trivia game found in this channel"
            }

        session.engine.close()
        self._cleanup_session_errors(channel_id)
        self.logger.info(f"Stopped trivia session {session.descriptor.session_id} in channel {channel_id}")
        return {
            'success': True,
            'message': "Trivia game stopped",
            'session_info': session_info
        }

    def close_all(self) -> int:
        """Stop every session. Used on bot shutdown."""
        channel_ids = list(self._sessions.keys())
        for channel_id in channel_ids:
            self.stop_game(channel_id)
        return len(channel_ids)

    # ------------------------------------------------------------------
    # Player operations
    # ------------------------------------------------------------------

    def _apply(self, channel_id: int, operation: str, action: Callable[[QuizSessionEngine], Any]) -> Dict[str, Any]:
        try:
            session = self._require_session(channel_id)
            value = action(session.engine)
        except Exception as e:
            return self._handle_session_error(channel_id, e, operation)

        accepted = value is not None and value is not False
        return {
            'success': accepted,
            'value': value,
            'message': f"{operation} applied" if accepted else f"{operation} ignored",
            'session_info': self.get_session_progress(channel_id)
        }

    def select_answer(self, channel_id: int, option: str) -> Dict[str, Any]:
        return self._apply(channel_id, "select_answer", lambda engine: engine.select_answer(option))

    def use_hint(self, channel_id: int) -> Dict[str, Any]:
        """
        Use the hint lifeline in the channel's language.

        Returns:
            Result dictionary; 'value' holds the hint text when accepted
        """
        session = self._sessions.get(channel_id)
        language = session.language if session else self.config_manager.get_default_language()
        return self._apply(channel_id, "use_hint", lambda engine: engine.use_hint(language))

    def use_skip(self, channel_id: int) -> Dict[str, Any]:
        return self._apply(channel_id, "use_skip", lambda engine: engine.use_skip())

    def use_eliminate(self, channel_id: int) -> Dict[str, Any]:
        return self._apply(channel_id, "use_eliminate", lambda engine: engine.use_eliminate())

    def advance(self, channel_id: int) -> Dict[str, Any]:
        return self._apply(channel_id, "advance", lambda engine: engine.advance())

    def set_language(self, channel_id: int, language: str) -> Dict[str, Any]:
        """
        Switch the display language of a channel's session.

        Args:
            channel_id: Discord channel identifier
            language: 'ar' or 'en'

        Returns:
            Dictionary with success status and user-friendly message
        """
        if language not in LANGUAGES:
            return {
                'success': False,
                'error': f"Unsupported language: {language}",
                'user_message': f"❌ Unsupported language: choose {' or '.join(LANGUAGES)}"
            }
        session = self._sessions.get(channel_id)
        if session is None:
            return self.config_manager.set_default_language(language)

        session.language = language
        return {
            'success': True,
            'message': f"Language set to {language}",
            'user_message': f"✅ Language set to {language}"
        }

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_session_progress(self, channel_id: int) -> Optional[Dict[str, Any]]:
        """
        Get progress information for a channel's session.

        Args:
            channel_id: Discord channel identifier

        Returns:
            Dictionary with progress information, or None if no session exists
        """
        session = self._sessions.get(channel_id)
        if session is None:
            return None

        progress = session.engine.get_progress()
        progress.update({
            'session_id': session.descriptor.session_id,
            'purchase_ref': session.descriptor.purchase_ref,
            'language': session.language,
            'start_time': session.start_time,
            'results_saved': session.results_saved,
        })
        return progress

    def get_session_status_summary(self, channel_id: int) -> str:
        """
        Get a human-readable summary of the session status.

        Args:
            channel_id: Discord channel identifier

        Returns:
            Formatted string describing the session status
        """
        progress = self.get_session_progress(channel_id)
        if progress is None:
            return "No trivia session in this channel."

        status_parts = [
            f"Purchase: {progress['purchase_ref']}",
            f"Progress: {progress['current_question']}/{progress['total_questions']}",
            f"Status: {progress['phase'].replace('_', ' ').title()}",
        ]

        totals = progress['totals']
        if progress['team_mode']:
            status_parts.append(f"Team 1: {totals['team1_score']} | Team 2: {totals['team2_score']}")
            if progress['phase'] == SessionPhase.IN_PROGRESS.value:
                turn = f"Turn: {progress['current_team']}"
                if progress['steal_active']:
                    turn += " (steal)"
                status_parts.append(turn)
        else:
            status_parts.append(f"Score: {totals['score']}")

        duration = datetime.now() - progress['start_time']
        minutes = int(duration.total_seconds() // 60)
        seconds = int(duration.total_seconds() % 60)
        status_parts.append(f"Duration: {minutes}m {seconds}s")

        return " | ".join(status_parts)

    def get_all_active_sessions(self) -> Dict[int, Dict[str, Any]]:
        """Progress for every channel with a game in progress."""
        return {
            channel_id: self.get_session_progress(channel_id)
            for channel_id in self._sessions
            if self.has_active_session(channel_id)
        }

    def get_error_summary(self, channel_id: int) -> Dict[str, Any]:
        errors = self._session_errors.get(channel_id, [])
        return {
            'channel_id': channel_id,
            'error_count': len(errors),
            'recent_errors': errors[-5:],
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _make_listener(self, channel_id: int, listener: Optional[EngineListener]) -> EngineListener:
        def on_event(event: EngineEvent, engine: QuizSessionEngine, data: Dict[str, Any]) -> None:
            if event is EngineEvent.FINISHED:
                self._save_results(channel_id, engine)
            if listener is not None:
                listener(event, engine, data)
        return on_event

    def _save_results(self, channel_id: int, engine: QuizSessionEngine) -> None:
        session = self._sessions.get(channel_id)
        payload = engine.build_results_payload()
        if session is not None:
            payload['purchase_ref'] = session.descriptor.purchase_ref
            payload['language'] = session.language
        saved = self.data_manager.save_results(engine.session_id, payload)
        if session is not None:
            session.results_saved = saved
        if not saved:
            self.logger.warning(f"Results for session {engine.session_id} were not saved")

    def _handle_session_error(self, channel_id: int, error: Exception, operation: str) -> Dict[str, Any]:
        """
        Log a failed operation and build the error result.

        Args:
            channel_id: Discord channel identifier
            error: The exception that occurred
            operation: Description of the operation that failed

        Returns:
            Dictionary with error details and a user-friendly message
        """
        if isinstance(error, TriviaControllerError):
            self.logger.warning(f"{operation} rejected for channel {channel_id}: {error}")
        else:
            self.logger.error(f"Error in {operation} for channel {channel_id}: {error}", exc_info=True)

        self._session_errors.setdefault(channel_id, []).append(f"{operation}: {error}")
        return {
            'success': False,
            'error': str(error),
            'operation': operation,
            'user_message': self._get_user_friendly_error_message(error, operation)
        }

    def _get_user_friendly_error_message(self, error: Exception, operation: str) -> str:
        if isinstance(error, SessionConflictError):
            return "❌ A trivia game is already running in this channel. Stop it first with `/stop`."
        if isinstance(error, SessionNotFoundError):
            return "❌ No trivia game in this channel. Start one with `/play`."
        if isinstance(error, PurchaseNotFoundError):
            return "❌ Purchase not found. See available purchases with `/purchases`."
        if isinstance(error, GameInProgressError):
            return "❌ This channel's game is still running. Finish it or use `/stop` before playing again."
        if isinstance(error, ValueError):
            return f"❌ {error}"
        return f"❌ An unexpected error occurred during {operation}. Please try again."

    def _cleanup_session_errors(self, channel_id: int) -> None:
        self._session_errors.pop(channel_id, None)

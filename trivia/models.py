"""
Core data models for the trivia session engine.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple


OPTION_LABELS: Tuple[str, ...] = ("A", "B", "C", "D")
LANGUAGES: Tuple[str, ...] = ("ar", "en")


class Team(Enum):
    """Team identifiers for team mode."""
    TEAM1 = "team1"
    TEAM2 = "team2"

    @property
    def opponent(self) -> "Team":
        return Team.TEAM2 if self is Team.TEAM1 else Team.TEAM1


class SessionPhase(Enum):
    """Coarse lifecycle state of a session."""
    LOADING = "loading"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"
    EMPTY = "empty"  # terminal "no questions available" view


class Feedback(Enum):
    """Outcome banner shown after a question is settled."""
    CORRECT = "correct"
    INCORRECT = "incorrect"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"


class Lifeline(Enum):
    HINT = "hint"
    SKIP = "skip"
    ELIMINATE = "eliminate"


def pick_text(language: str, arabic: Optional[str], english: Optional[str]) -> Optional[str]:
    """Select the text for a language, falling back to the other one when missing."""
    if language == "en":
        return english or arabic
    return arabic or english


@dataclass(frozen=True)
class Question:
    """A single bilingual multiple-choice question. Immutable once loaded."""
    id: str
    prompt_ar: str
    prompt_en: str
    options_ar: Dict[str, str]
    options_en: Dict[str, str]
    correct_option: str
    tier: Optional[int] = None
    explanation_ar: Optional[str] = None
    explanation_en: Optional[str] = None
    category_id: Optional[str] = None
    team: Optional[Team] = None

    def prompt(self, language: str) -> str:
        return pick_text(language, self.prompt_ar, self.prompt_en) or ""

    def option(self, label: str, language: str) -> str:
        return pick_text(language, self.options_ar.get(label), self.options_en.get(label)) or ""

    def explanation(self, language: str) -> Optional[str]:
        return pick_text(language, self.explanation_ar, self.explanation_en)

    @property
    def incorrect_options(self) -> List[str]:
        return [label for label in OPTION_LABELS if label != self.correct_option]


@dataclass(frozen=True)
class Category:
    """A question category as stored by the data collaborator."""
    id: str
    name_ar: str
    name_en: str = ""

    def name(self, language: str) -> str:
        return pick_text(language, self.name_ar, self.name_en) or self.id


@dataclass(frozen=True)
class SessionDescriptor:
    """Input describing which purchase to play and how."""
    session_id: str
    purchase_ref: str
    team_mode: bool = False


@dataclass(frozen=True)
class AnswerRecord:
    """One settled attempt on a question. Never mutated after creation."""
    question_id: str
    question_index: int
    selected_option: Optional[str]
    is_correct: Optional[bool]
    elapsed: int
    points_earned: int
    team: Optional[Team] = None
    timed_out: bool = False
    skipped: bool = False

    def to_dict(self) -> Dict[str, object]:
        return {
            'question_id': self.question_id,
            'question_index': self.question_index,
            'selected_option': self.selected_option,
            'is_correct': self.is_correct,
            'elapsed': self.elapsed,
            'points_earned': self.points_earned,
            'team': self.team.value if self.team else None,
            'timed_out': self.timed_out,
            'skipped': self.skipped,
        }


@dataclass
class LifelineState:
    """Single-use lifeline flags plus the current question's transient effects."""
    hint_used: bool = False
    skip_used: bool = False
    eliminate_used: bool = False
    hint_visible: bool = False
    eliminated: FrozenSet[str] = frozenset()

    def is_used(self, lifeline: Lifeline) -> bool:
        return getattr(self, f"{lifeline.value}_used")

    def to_dict(self) -> Dict[str, object]:
        return {
            'hint_used': self.hint_used,
            'skip_used': self.skip_used,
            'eliminate_used': self.eliminate_used,
            'hint_visible': self.hint_visible,
            'eliminated': sorted(self.eliminated),
        }


@dataclass
class TurnState:
    """Whose turn it is in team mode and whether a steal is in progress."""
    current_team: Team = Team.TEAM1
    steal_active: bool = False

    def to_dict(self) -> Dict[str, object]:
        return {'current_team': self.current_team.value, 'steal_active': self.steal_active}


@dataclass
class SessionTotals:
    """Running scores. Points are only ever added."""
    score: int = 0
    team1_score: int = 0
    team2_score: int = 0

    def add(self, points: int, team: Optional[Team] = None) -> None:
        if points <= 0:
            return
        if team is Team.TEAM1:
            self.team1_score += points
        elif team is Team.TEAM2:
            self.team2_score += points
        else:
            self.score += points

    def to_dict(self) -> Dict[str, int]:
        return {'score': self.score, 'team1_score': self.team1_score, 'team2_score': self.team2_score}


@dataclass(frozen=True)
class FinalResult:
    """Finish-state computation surfaced to the results screen."""
    team_mode: bool
    max_score: int
    score: int = 0
    percentage: float = 0.0
    band: Optional[str] = None
    team1_score: int = 0
    team2_score: int = 0
    team1_percentage: float = 0.0
    team2_percentage: float = 0.0
    winner: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {'team_mode': self.team_mode, 'max_score': self.max_score}
        if self.team_mode:
            data.update({
                'team1_score': self.team1_score,
                'team2_score': self.team2_score,
                'team1_percentage': self.team1_percentage,
                'team2_percentage': self.team2_percentage,
                'winner': self.winner,
            })
        else:
            data.update({'score': self.score, 'percentage': self.percentage, 'band': self.band})
        return data


@dataclass
class GameSettings:
    """Configuration for a trivia session."""
    timer_duration: int = 30
    feedback_delay: int = 2
    questions_per_category: int = 6
    tick_interval: float = 1.0


@dataclass
class SessionState:
    """
    The whole engine state in one value.

    Only QuizSessionEngine operations transition it; `to_dict()` gives a
    serializable snapshot.
    """
    session_id: str
    team_mode: bool = False
    phase: SessionPhase = SessionPhase.LOADING
    pool: Tuple[Question, ...] = ()
    current_index: int = 0
    selected_option: Optional[str] = None
    feedback: Optional[Feedback] = None
    time_remaining: int = 0
    lifelines: LifelineState = field(default_factory=LifelineState)
    turn: TurnState = field(default_factory=TurnState)
    totals: SessionTotals = field(default_factory=SessionTotals)
    answers: List[AnswerRecord] = field(default_factory=list)
    result: Optional[FinalResult] = None
    load_error: Optional[str] = None
    load_failed: bool = False

    @property
    def current_question(self) -> Optional[Question]:
        if self.phase is not SessionPhase.IN_PROGRESS:
            return None
        if 0 <= self.current_index < len(self.pool):
            return self.pool[self.current_index]
        return None

    @property
    def answer_locked(self) -> bool:
        return self.feedback is not None

    def to_dict(self) -> Dict[str, object]:
        return {
            'session_id': self.session_id,
            'team_mode': self.team_mode,
            'phase': self.phase.value,
            'question_ids': [q.id for q in self.pool],
            'current_index': self.current_index,
            'selected_option': self.selected_option,
            'feedback': self.feedback.value if self.feedback else None,
            'time_remaining': self.time_remaining,
            'lifelines': self.lifelines.to_dict(),
            'turn': self.turn.to_dict(),
            'totals': self.totals.to_dict(),
            'answers': [answer.to_dict() for answer in self.answers],
            'result': self.result.to_dict() if self.result else None,
            'load_error': self.load_error,
            'load_failed': self.load_failed,
        }

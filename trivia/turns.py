"""
Team turn order and the single steal attempt after a miss.
"""
import logging
from dataclasses import dataclass

from .models import Team, TurnState


@dataclass(frozen=True)
class TurnOutcome:
    """What the engine should do after a team attempt is settled."""
    answering_team: Team
    advance: bool
    steal_opened: bool = False


class TurnController:
    """
    Tracks whose turn it is in team mode.

    A miss with no steal in progress hands the same question to the other team.
    A second miss on the same question ends it; at most two attempts per question.
    """

    def __init__(self, starting_team: Team = Team.TEAM1):
        self.starting_team = starting_team
        self.state = TurnState(current_team=starting_team)
        self.logger = logging.getLogger(__name__)

    @property
    def current_team(self) -> Team:
        return self.state.current_team

    @property
    def steal_active(self) -> bool:
        return self.state.steal_active

    def reset(self) -> None:
        self.state = TurnState(current_team=self.starting_team)

    def settle(self, correct: bool) -> TurnOutcome:
        """
        Apply the result of the current team's attempt.

        Args:
            correct: Whether the answering team picked the correct option

        Returns:
            TurnOutcome naming the team that answered and whether to advance
        """
        answering = self.state.current_team

        if correct:
            self.state.current_team = answering.opponent
            self.state.steal_active = False
            return TurnOutcome(answering_team=answering, advance=True)

        if not self.state.steal_active:
            self.state.steal_active = True
            self.state.current_team = answering.opponent
            self.logger.debug(f"Steal opened for {answering.opponent.value}")
            return TurnOutcome(answering_team=answering, advance=False, steal_opened=True)

        # Failed steal: the original team's opponent is the stealing team, which keeps the turn.
        self.state.steal_active = False
        return TurnOutcome(answering_team=answering, advance=True)

    def on_skip(self) -> Team:
        """
        Settle a skipped attempt. It never opens a steal.

        Returns:
            The team that skipped
        """
        answering = self.state.current_team
        if self.state.steal_active:
            self.state.steal_active = False
        else:
            self.state.current_team = answering.opponent
        return answering

    def on_advance(self) -> None:
        self.state.steal_active = False

"""
Question pool assembly for a trivia session.
"""
import dataclasses
import logging
import math
import random
import time
from typing import List, Optional, Protocol, Sequence, Tuple

from .models import Question, SessionDescriptor, Team


class PoolEmpty(Exception):
    """Raised when no questions resolve for a session."""

    def __init__(self, purchase_ref: str, category_count: int = 0):
        self.purchase_ref = purchase_ref
        self.category_count = category_count
        super().__init__(
            f"No questions available for purchase '{purchase_ref}' "
            f"({category_count} categories resolved)"
        )


class PoolLoadError(Exception):
    """Raised when the data-access collaborators fail during pool assembly."""

    def __init__(self, purchase_ref: str, cause: Exception):
        self.purchase_ref = purchase_ref
        self.cause = cause
        super().__init__(f"Failed to load questions for purchase '{purchase_ref}': {cause}")


class QuestionSource(Protocol):
    """The data-access surface the loader needs."""

    def get_purchase_categories(self, purchase_ref: str) -> List[str]:
        ...

    def fetch_questions(self, category_id: str, limit: int,
                        order_by_difficulty_asc: bool = True) -> List[Question]:
        ...


class QuestionPoolLoader:
    """Builds the ordered, immutable question pool for one session."""

    def __init__(self, source: QuestionSource, questions_per_category: int = 6,
                 rng: Optional[random.Random] = None):
        """
        Args:
            source: Category resolution and question fetch collaborator
            questions_per_category: Upper bound fetched from each category
            rng: Random source for shuffling; pass a seeded instance for deterministic order
        """
        self.source = source
        self.questions_per_category = questions_per_category
        self.rng = rng or random.Random()
        self.logger = logging.getLogger(__name__)

    def load(self, descriptor: SessionDescriptor) -> Tuple[Question, ...]:
        """
        Resolve the purchase's categories and assemble the shuffled pool.

        Args:
            descriptor: Session id, purchase reference and mode flag

        Returns:
            Non-empty tuple of questions in presentation order

        Raises:
            PoolEmpty: If the purchase resolves to no questions
            PoolLoadError: If a data-access call fails
        """
        try:
            category_ids = list(self.source.get_purchase_categories(descriptor.purchase_ref))
            if descriptor.team_mode:
                questions = self._assemble_team(category_ids)
            else:
                questions = self._fetch_all(category_ids)
        except Exception as e:
            self.logger.error(
                f"Pool load failed for purchase {descriptor.purchase_ref}: {e}",
                extra={
                    'event_type': 'pool_load_failed',
                    'session_id': descriptor.session_id,
                    'timestamp': time.time()
                }
            )
            raise PoolLoadError(descriptor.purchase_ref, e) from e

        if not questions:
            self.logger.warning(
                f"No questions resolved for purchase {descriptor.purchase_ref}",
                extra={
                    'event_type': 'pool_empty',
                    'session_id': descriptor.session_id,
                    'timestamp': time.time()
                }
            )
            raise PoolEmpty(descriptor.purchase_ref, len(category_ids))

        self.rng.shuffle(questions)

        self.logger.info(
            f"Assembled pool of {len(questions)} questions from {len(category_ids)} categories",
            extra={
                'event_type': 'pool_loaded',
                'session_id': descriptor.session_id,
                'team_mode': descriptor.team_mode,
                'timestamp': time.time()
            }
        )
        return tuple(questions)

    def _fetch_all(self, category_ids: Sequence[str], team: Optional[Team] = None) -> List[Question]:
        questions: List[Question] = []
        for category_id in category_ids:
            fetched = self.source.fetch_questions(
                category_id, self.questions_per_category, order_by_difficulty_asc=True
            )
            if not fetched:
                self.logger.debug(f"Category {category_id} contributed no questions")
                continue
            for question in list(fetched)[:self.questions_per_category]:
                if team is not None:
                    question = dataclasses.replace(question, team=team)
                questions.append(question)
        return questions

    def _assemble_team(self, category_ids: Sequence[str]) -> List[Question]:
        team1_categories, team2_categories = split_categories(category_ids)
        return (self._fetch_all(team1_categories, Team.TEAM1)
                + self._fetch_all(team2_categories, Team.TEAM2))


def split_categories(category_ids: Sequence[str]) -> Tuple[List[str], List[str]]:
    """Split categories between the teams; team1 takes the extra one when the count is odd."""
    pivot = math.ceil(len(category_ids) / 2)
    return list(category_ids[:pivot]), list(category_ids[pivot:])

"""
Question generation for the Hero Trivia engine.
Builds multiple-choice questions from the subject dataset.
"""
import logging
import random
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .exceptions import InsufficientDataError
from .models import Archetype, Difficulty, Question, Subject
from .scoring import base_points

logger = logging.getLogger(__name__)

OPTION_COUNT = 4
DISTRACTOR_COUNT = OPTION_COUNT - 1

# Topped up into creators questions when the dataset alone is too small
FALLBACK_CREATORS = [
    "Jack Kirby", "Steve Ditko", "John Romita", "Gene Colan",
    "John Buscema", "Chris Claremont", "Jim Starlin", "Roy Thomas"
]


class QuestionGenerator:
    """Produces one quiz question at a time while avoiding short-term repeats."""

    DEFAULT_HISTORY_LIMIT = 20

    def __init__(
        self,
        subjects: Sequence[Subject],
        rng: Optional[random.Random] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT
    ):
        """
        Initialize the generator.

        Args:
            subjects: Dataset to draw questions from
            rng: Random source, injectable for deterministic tests
            history_limit: Size at which the repeat history is cleared

        Raises:
            InsufficientDataError: If fewer than four subjects are supplied
        """
        distinct_names = {s.name for s in subjects}
        if len(distinct_names) < OPTION_COUNT:
            raise InsufficientDataError(
                f"At least {OPTION_COUNT} distinct subjects are required to build questions, "
                f"got {len(distinct_names)}"
            )
        self._subjects = list(subjects)
        self._rng = rng or random.Random()
        self._archetypes = list(Archetype)
        self._history: Set[Tuple[Archetype, int, Difficulty]] = set()
        self._combinations = len(self._subjects) * len(self._archetypes)
        self._history_limit = max(1, min(history_limit, self._combinations))
        self._sequence = 0

    @property
    def history_size(self) -> int:
        return len(self._history)

    def generate(self, difficulty: Difficulty) -> Question:
        """
        Generate one question, retrying a bounded number of times to avoid repeats.

        Args:
            difficulty: Difficulty the question is scored at

        Returns:
            A new Question with four distinct options
        """
        question, key = self._pick_fresh(difficulty)
        if question is None and self._history:
            # Every buildable combination is recent: start a new cycle
            logger.debug("No fresh question left in history window, clearing history")
            self._history.clear()
            question, key = self._pick_fresh(difficulty)

        if question is None:
            # Accept a repeat; identity questions always build from unique names
            subject = self._rng.choice(self._subjects)
            question = self._build(Archetype.IDENTITY, subject, difficulty)
            key = (Archetype.IDENTITY, subject.id, difficulty)
            logger.debug(f"Accepted repeat question {question.id} after exhausting retries")

        self._history.add(key)
        if len(self._history) >= self._history_limit:
            logger.debug(f"Question history reached {self._history_limit} entries, clearing")
            self._history.clear()

        return question

    def _pick_fresh(self, difficulty: Difficulty) -> Tuple[Optional[Question], Optional[Tuple[Archetype, int, Difficulty]]]:
        for _ in range(self._combinations):
            archetype = self._rng.choice(self._archetypes)
            subject = self._rng.choice(self._subjects)
            candidate_key = (archetype, subject.id, difficulty)
            if candidate_key in self._history:
                continue
            question = self._build(archetype, subject, difficulty)
            if question is not None:
                return question, candidate_key
        return None, None

    def generate_batch(self, count: int, difficulty: Difficulty) -> List[Question]:
        """
        Generate a fixed-length list of questions.

        Args:
            count: Number of questions to generate
            difficulty: Difficulty for every question

        Returns:
            List of generated questions; empty when count is less than 1
        """
        if count < 1:
            return []
        return [self.generate(difficulty) for _ in range(count)]

    def _build(self, archetype: Archetype, subject: Subject, difficulty: Difficulty) -> Optional[Question]:
        others = [s for s in self._subjects if s.id != subject.id]

        if archetype is Archetype.IDENTITY:
            correct = subject.name
            distractors = self._pick_distractors(correct, [s.name for s in others])
            if subject.image_url:
                prompt = "Who is this character?"
            else:
                prompt = f"Which character first appeared in {subject.first_appearance.comic}?"
            explanation = (
                f"This is {subject.name} ({subject.real_name}), who first appeared in "
                f"{subject.first_appearance.comic} in {subject.first_appearance.year}."
            )

        elif archetype is Archetype.POWERS:
            power = self._rng.choice(subject.powers)
            correct = subject.name
            candidates = [
                s.name for s in others
                if power.lower() not in (p.lower() for p in s.powers)
            ]
            distractors = self._pick_distractors(correct, candidates)
            prompt = f"Which character has the power of {power}?"
            explanation = f"{subject.name} has {power} among their abilities. {subject.facts[0]}"

        elif archetype is Archetype.REAL_NAME:
            correct = subject.real_name
            distractors = self._pick_distractors(correct, [s.real_name for s in others])
            prompt = f"What is {subject.name}'s real name?"
            explanation = f"{subject.name}'s real name is {subject.real_name}."

        elif archetype is Archetype.FIRST_APPEARANCE:
            year = subject.first_appearance.year
            correct = str(year)
            nearby = [str(year + offset) for offset in (-3, -2, -1, 1, 2, 3)]
            distractors = self._pick_distractors(
                correct, [str(s.first_appearance.year) for s in others], fallback=nearby
            )
            prompt = f"When did {subject.name} first appear in comics?"
            explanation = (
                f"{subject.name} first appeared in {subject.first_appearance.comic} "
                f"in {subject.first_appearance.year}."
            )

        elif archetype is Archetype.CREATORS:
            correct = subject.creators[0]
            own = set(subject.creators)
            candidates = [c for s in others for c in s.creators if c not in own]
            fallback = [c for c in FALLBACK_CREATORS if c not in own]
            distractors = self._pick_distractors(correct, candidates, fallback=fallback)
            prompt = f"Who was one of the creators of {subject.name}?"
            explanation = f"{subject.name} was created by {' and '.join(subject.creators)}."

        else:
            fact = self._rng.choice(subject.facts)
            correct = subject.name
            distractors = self._pick_distractors(correct, [s.name for s in others])
            prompt = f"Which character is known for this fact: \"{fact}\"?"
            explanation = f"This fact applies to {subject.name}. {fact}"

        if len(distractors) < DISTRACTOR_COUNT:
            return None

        options = [correct] + distractors
        self._rng.shuffle(options)
        self._sequence += 1

        return Question(
            id=f"{archetype.value}-{subject.id}-{self._sequence}",
            archetype=archetype,
            difficulty=difficulty,
            prompt=prompt,
            options=options,
            correct_index=options.index(correct),
            explanation=explanation,
            points=base_points(difficulty),
            subject=subject,
            image_url=subject.image_url
        )

    def _pick_distractors(
        self,
        correct: str,
        candidates: Iterable[str],
        fallback: Iterable[str] = ()
    ) -> List[str]:
        pool: List[str] = []
        for value in candidates:
            if value != correct and value not in pool:
                pool.append(value)

        picks = self._rng.sample(pool, min(DISTRACTOR_COUNT, len(pool)))

        if len(picks) < DISTRACTOR_COUNT:
            extras = []
            for value in fallback:
                if value != correct and value not in picks and value not in extras:
                    extras.append(value)
            picks.extend(self._rng.sample(extras, min(DISTRACTOR_COUNT - len(picks), len(extras))))

        return picks

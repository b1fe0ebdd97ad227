"""Number validation, winning-set derivation and match counting."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from .errors import (
    InvalidPredictionLengthError,
    InvalidRandomWordsError,
    PredictionOutOfRangeError,
)

PREDICTION_SIZE = 6
"""Numbers each entrant must submit."""

MIN_NUMBER = 1
MAX_NUMBER = 50
"""Inclusive bounds accepted for predicted numbers."""

NUM_WORDS = 6
"""Random words requested per draw, one per winning number."""

WINNING_MODULUS = 49
"""Winning numbers are ``word % 49 + 1`` and therefore never exceed 49."""

REQUIRED_MATCHES = 3
"""Minimum match count for an entrant to win."""


@dataclass(frozen=True)
class MatchEvaluation:
    """Result of matching one entrant against the winning set.

    Attributes
    ----------
    identity : str
        Entrant identity.
    prediction : tuple[int, ...]
        Numbers submitted by the entrant.
    match_count : int
        Cross-product match count, see :func:`count_matches`.
    passed : bool
        ``True`` when ``match_count`` reached the required threshold.
    """

    identity: str
    prediction: tuple[int, ...]
    match_count: int
    passed: bool


def validate_prediction(prediction: Sequence[int]) -> list[int]:
    """Return ``prediction`` as a list after checking its length and range.

    Parameters
    ----------
    prediction : Sequence[int]
        Numbers submitted by an entrant.

    Raises
    ------
    InvalidPredictionLengthError
        If the prediction does not contain exactly six numbers.
    PredictionOutOfRangeError
        If any element is not an integer in ``[1, 50]``.
    """

    numbers = list(prediction)
    if len(numbers) != PREDICTION_SIZE:
        raise InvalidPredictionLengthError(len(numbers), PREDICTION_SIZE)
    for value in numbers:
        if isinstance(value, bool) or not isinstance(value, int):
            raise PredictionOutOfRangeError(value, MIN_NUMBER, MAX_NUMBER)
        if value < MIN_NUMBER or value > MAX_NUMBER:
            raise PredictionOutOfRangeError(value, MIN_NUMBER, MAX_NUMBER)
    return numbers


def normalize_winning_set(random_words: Sequence[int]) -> tuple[int, ...]:
    """Map raw oracle words onto the winning numbers.

    Each word becomes ``word % 49 + 1``. Duplicates are kept, and 50 can never
    be drawn even though entrants may predict it.
    """

    if len(random_words) != NUM_WORDS:
        raise InvalidRandomWordsError(len(random_words), NUM_WORDS)
    return tuple((int(word) % WINNING_MODULUS) + 1 for word in random_words)


def count_matches(prediction: Iterable[int], winning_set: Sequence[int]) -> int:
    """Count pairs ``(j, k)`` where ``prediction[j] == winning_set[k]``.

    This is a multiset cross product, not a set intersection: a number that
    appears twice in the prediction and twice in the winning set counts four
    times.
    """

    matches = 0
    for predicted in prediction:
        for drawn in winning_set:
            if predicted == drawn:
                matches += 1
    return matches


def evaluate_entrant(
    identity: str,
    prediction: Sequence[int],
    winning_set: Sequence[int],
    *,
    required_matches: int = REQUIRED_MATCHES,
) -> MatchEvaluation:
    """Match one entrant and classify it as winner or not."""

    match_count = count_matches(prediction, winning_set)
    return MatchEvaluation(
        identity=identity,
        prediction=tuple(prediction),
        match_count=match_count,
        passed=match_count >= required_matches,
    )


__all__ = [
    "MAX_NUMBER",
    "MIN_NUMBER",
    "MatchEvaluation",
    "NUM_WORDS",
    "PREDICTION_SIZE",
    "REQUIRED_MATCHES",
    "WINNING_MODULUS",
    "count_matches",
    "evaluate_entrant",
    "normalize_winning_set",
    "validate_prediction",
]

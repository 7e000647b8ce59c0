import math
import unicodedata
from typing import Any, Iterable, List, Sequence

from pokequiz.models import InputMode, Player, Question


BASE_POINTS = 1000
MAX_SPEED_BONUS = 500
BONUS_DECAY_PER_SEC = 33.3
# The bonus runs out at 15s whatever the room's time limit is
BONUS_WINDOW_SEC = 15.0

TEXT_TOLERANCE = 2

SURVIVAL_DECAY_EVERY = 5
SURVIVAL_DECAY_STEP_SEC = 2
SURVIVAL_MIN_LIMIT_SEC = 5


def normalize_answer(value: str) -> str:
    """Case-fold, strip diacritics and surrounding whitespace."""
    decomposed = unicodedata.normalize('NFD', value.casefold())
    return ''.join(ch for ch in decomposed if not unicodedata.combining(ch)).strip()


def levenshtein(a: str, b: str) -> int:
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def is_text_match(answer: Any, expected: str, tolerance: int = TEXT_TOLERANCE) -> bool:
    """Accept free-text answers with up to ``tolerance`` typos."""
    if not isinstance(answer, str) or not answer.strip():
        return False
    a = normalize_answer(answer)
    b = normalize_answer(expected)
    if a == b:
        return True
    return levenshtein(a, b) <= tolerance


def is_choice_match(answer: Any, options: Sequence[str], expected: str) -> bool:
    """Resolve an option index; anything that is not a valid index is wrong."""
    if isinstance(answer, bool) or not isinstance(answer, int):
        return False
    if not 0 <= answer < len(options):
        return False
    return options[answer] == expected


def is_correct(question: Question, answer: Any) -> bool:
    if question.input_mode == InputMode.TEXT:
        return is_text_match(answer, question.answer)
    return is_choice_match(answer, question.options, question.answer)


def points_for(elapsed_seconds: float) -> int:
    """Points for a correct answer given ``elapsed_seconds`` into the round."""
    elapsed = max(0.0, elapsed_seconds)
    if elapsed >= BONUS_WINDOW_SEC:
        return BASE_POINTS
    bonus = max(0, MAX_SPEED_BONUS - math.floor(elapsed * BONUS_DECAY_PER_SEC))
    return BASE_POINTS + bonus


def survival_time_limit(current_limit: float, question_index: int) -> float:
    """Shorten the survival countdown every few questions, down to a floor."""
    if question_index > 0 and question_index % SURVIVAL_DECAY_EVERY == 0:
        return max(SURVIVAL_MIN_LIMIT_SEC, current_limit - SURVIVAL_DECAY_STEP_SEC)
    return current_limit


def rank_players(players: Iterable[Player]) -> List[dict]:
    """Order by score, highest first; equal scores keep join order."""
    ordered = sorted(players, key=lambda p: -p.score)
    ranked = []
    for position, player in enumerate(ordered, start=1):
        entry = player.to_dict()
        entry['rank'] = position
        ranked.append(entry)
    return ranked


def fastest_correct(players: Iterable[Player]):
    correct = [p for p in players if p.is_correct and p.last_answer_time is not None]
    if not correct:
        return None
    return sorted(correct, key=lambda p: p.last_answer_time)[0]

"""
Scores are always derived from the answer log.

Nothing here mutates a stored total: recomputing over the same snapshot gives
the same scores and ranks, whatever order or how many times notifications
arrived.
"""

from typing import Dict, Iterable, List, Optional

from pinquiz.config import settings
from pinquiz.models.game import Answer, Player, PlayerScore, Question


def score_contribution(seconds_left: int) -> int:
    """Points for one correct answer: base plus a bonus per second left"""
    return settings.base_points + max(0, seconds_left) * settings.time_bonus_per_second


def seconds_left(answer: Answer, time_limit: int) -> int:
    return max(0, time_limit - answer.time_taken)


def first_answers(answers: Iterable[Answer]) -> List[Answer]:
    """Keep only the first answer per (player, question index)"""
    seen = set()
    result = []
    for answer in answers:
        key = (answer.player_id, answer.question_index)
        if key in seen:
            continue
        seen.add(key)
        result.append(answer)
    return result


def aggregate_scores(players: List[Player], answers: Iterable[Answer],
                     questions: Iterable[Question]) -> List[PlayerScore]:
    """Score every player on the roster; result is ranked (see ``rank_scores``)"""
    time_limits: Dict[str, int] = {question.id: question.time_limit for question in questions}
    scores = {
        player.id: PlayerScore(player_id=player.id, player_name=player.player_name)
        for player in players
    }

    for answer in first_answers(answers):
        entry = scores.get(answer.player_id)
        if entry is None or not answer.is_correct:
            continue
        entry.score += score_contribution(seconds_left(answer, time_limits.get(answer.question_id, 0)))
        entry.correct_answers += 1

    return rank_scores(list(scores.values()))


def rank_scores(scores: List[PlayerScore]) -> List[PlayerScore]:
    """Sort by score descending and assign competition ranks (1, 2, 2, 4).

    ``scores`` must be in roster order; the sort is stable so ties keep it.
    """
    ordered = sorted(scores, key=lambda entry: -entry.score)
    previous_score = None
    for position, entry in enumerate(ordered, start=1):
        if entry.score != previous_score:
            rank = position
            previous_score = entry.score
        entry.rank = rank
    return ordered


def leaderboard(scores: List[PlayerScore], limit: int = None) -> List[PlayerScore]:
    limit = settings.leaderboard_size if limit is None else limit
    return scores[:limit]


def find_player_score(scores: List[PlayerScore], player_id: str) -> Optional[PlayerScore]:
    for entry in scores:
        if entry.player_id == player_id:
            return entry
    return None

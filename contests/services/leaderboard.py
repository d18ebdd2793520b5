"""
Leaderboard ranking for contest results.

Results are ordered by total score (highest first) and then by completion
time, so that of two equal scores the earlier finisher ranks higher.
"""
from dataclasses import dataclass
from typing import Iterable, List

from contests.models import Result

MEDAL_POSITIONS = {
    1: '🥇 1st Place',
    2: '🥈 2nd Place',
    3: '🥉 3rd Place',
}


def position_label(rank: int) -> str:
    return MEDAL_POSITIONS.get(rank, f"{rank}th Place")


def is_publicly_viewable(result) -> bool:
    # Second clause alone admits every row not explicitly hidden.
    return (result.status == Result.Status.CHECKED and result.visible is True) or result.visible is not False


def display_name(user) -> str:
    profile = getattr(user, 'profile', None)
    if profile is not None and profile.display_name:
        return profile.display_name
    return user.get_full_name() or user.username


@dataclass
class RankedEntry:
    rank: int
    position: str
    result: Result

    def to_public_dict(self) -> dict:
        result = self.result
        return {
            'rank': self.rank,
            'position': self.position,
            'user_id': result.user_id,
            'user_name': display_name(result.user),
            'score': float(result.total_score),
            'max_score': float(result.max_score),
            'percentage': float(result.percentage),
            'completed_at': result.completed_at,
            'time_spent': result.time_spent,
        }

    def to_admin_dict(self) -> dict:
        data = self.to_public_dict()
        data.update({
            'id': self.result.id,
            'user_email': self.result.user.email,
            'visible': self.result.visible,
            'status': self.result.status,
        })
        return data


class LeaderboardRanker:

    @staticmethod
    def order(results: Iterable) -> list:
        return sorted(results, key=lambda r: (-r.total_score, r.completed_at, getattr(r, 'pk', None) or 0))

    def rank_all(self, results: Iterable) -> List[RankedEntry]:
        return [
            RankedEntry(rank=index, position=position_label(index), result=result)
            for index, result in enumerate(self.order(results), 1)
        ]

    def rank(self, results: Iterable) -> List[RankedEntry]:
        return self.rank_all(r for r in results if is_publicly_viewable(r))


class LeaderboardService:

    @classmethod
    def get_contest_leaderboard(cls, window, storage) -> dict:
        with storage.guard('load leaderboard'):
            results = list(
                Result.objects.filter(contest_id=window.contest_id)
                .select_related('user', 'user__profile')
            )

        leaderboard = [entry.to_public_dict() for entry in LeaderboardRanker().rank(results)]
        return {
            'success': True,
            'contest_id': window.contest_id,
            'contest_title': window.title,
            'contest_type': window.contest_type,
            'total_participants': len(leaderboard),
            'leaderboard': leaderboard,
            'top_three': leaderboard[:3],
        }

"""
밥알지수(rice index): 참여/호스팅/리뷰/노쇼 이력으로 계산하는 0.0~100.0 신뢰 점수.

저장하지 않고 조회 시점에 통계에서 다시 계산한다.
- 활동 이력(참가·호스팅·리뷰 작성)이 하나라도 있으면 기본 점수 40.0 아래로 내려가지 않음
- 결과는 항상 [0.0, 100.0]
- 가중치는 정책 값이며 항목별 상한이 있음
"""
import math
from dataclasses import dataclass

BASELINE_SCORE = 40.0
MIN_SCORE = 0.0
MAX_SCORE = 100.0

# 항목: (1건당 가점, 항목 상한)
ACTIVITY_WEIGHTS: dict[str, tuple[float, float]] = {
    "completed_meetups": (2.0, 30.0),
    "hosted_meetups": (1.5, 15.0),
    "joined_meetups": (0.5, 5.0),
    "reviews_written": (0.5, 5.0),
}

# 받은 평균 평점(0~5) 1점당 가점
RATING_WEIGHT = 2.0
MAX_RATING = 5.0

# 노쇼 1건당 감점
NO_SHOW_WEIGHT = 10.0


@dataclass(frozen=True)
class ReputationStats:
    joined_meetups: int = 0
    hosted_meetups: int = 0
    completed_meetups: int = 0
    reviews_written: int = 0
    average_rating: float = 0.0
    no_show_penalties: int = 0


@dataclass(frozen=True)
class RiceLevel:
    level: str
    description: str


# (최소 점수, 레벨) 높은 순
RICE_LEVELS: list[tuple[float, RiceLevel]] = [
    (98.1, RiceLevel("밥神 (밥신)", "전설적인 유저")),
    (90.0, RiceLevel("찰밥대장", "거의 완벽한 활동 이력")),
    (80.0, RiceLevel("밥도둑 밥상", "상위권, 최고의 매너 보유")),
    (70.0, RiceLevel("고봉밥", "후기 품질도 높고 꾸준한 출석")),
    (60.0, RiceLevel("따끈한 밥그릇", "후기와 출석률 모두 양호")),
    (40.0, RiceLevel("밥 한 숟갈", "일반 유저, 평균적인 활동")),
]
LOWEST_LEVEL = RiceLevel("티스푼", "반복된 신고/노쇼, 신뢰 낮음")


def _non_negative(value) -> float:
    """NaN/음수 → 0. +inf는 그대로 (항목 상한에서 잘림)."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    except OverflowError:
        # float 범위를 넘는 정수
        return math.inf if value > 0 else 0.0
    if math.isnan(number) or number < 0:
        return 0.0
    return number


def has_activity(stats: ReputationStats) -> bool:
    return (
        _non_negative(stats.joined_meetups) > 0
        or _non_negative(stats.hosted_meetups) > 0
        or _non_negative(stats.reviews_written) > 0
    )


def compute_score(stats: ReputationStats) -> float:
    score = BASELINE_SCORE
    for field, (per_item, cap) in ACTIVITY_WEIGHTS.items():
        score += min(_non_negative(getattr(stats, field)) * per_item, cap)
    score += min(_non_negative(stats.average_rating), MAX_RATING) * RATING_WEIGHT
    score -= _non_negative(stats.no_show_penalties) * NO_SHOW_WEIGHT

    if has_activity(stats):
        score = max(score, BASELINE_SCORE)
    return round(min(max(score, MIN_SCORE), MAX_SCORE), 1)


def rice_level(score: float) -> RiceLevel:
    for threshold, level in RICE_LEVELS:
        if score >= threshold:
            return level
    return LOWEST_LEVEL

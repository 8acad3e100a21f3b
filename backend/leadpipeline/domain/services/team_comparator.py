"""
Team Performance Comparator
Ranks agents by contact success rate
"""
from typing import Dict, List

from leadpipeline.domain.models.analytics import (
    ContactAnalytics,
    Impact,
    TeamComparison,
    TeamRecommendation,
    TeamRecommendationType,
)

DEFAULT_AVERAGE_TOLERANCE = 5.0
DEFAULT_NEEDS_IMPROVEMENT_RATIO = 0.8


def compare_team(
    by_agent: Dict[str, ContactAnalytics],
    tolerance: float = DEFAULT_AVERAGE_TOLERANCE,
    needs_improvement_ratio: float = DEFAULT_NEEDS_IMPROVEMENT_RATIO
) -> TeamComparison:
    """
    Compare agents by the success rate (0-100) of their contact analytics.

    - top performer: highest rate (ties broken by agent id)
    - average performer: first agent, by descending rate, within tolerance of the mean
    - needs improvement: rate below needs_improvement_ratio * mean

    An empty team yields an empty comparison.
    """
    if not by_agent:
        return TeamComparison()

    success_rates = {agent_id: analytics.success_rate for agent_id, analytics in by_agent.items()}

    ranked = sorted(success_rates.items(), key=lambda item: (-item[1], item[0]))
    mean = sum(success_rates.values()) / len(success_rates)

    average = next(
        (agent_id for agent_id, rate in ranked if abs(rate - mean) < tolerance),
        None,
    )
    needs_improvement = [
        agent_id for agent_id, rate in ranked
        if rate < mean * needs_improvement_ratio
    ]

    recommendations: List[TeamRecommendation] = []
    if needs_improvement:
        recommendations.append(TeamRecommendation(
            type=TeamRecommendationType.TRAINING,
            title="Contact technique training",
            description="Some team members are performing below the team average.",
            target_agents=needs_improvement,
            priority=Impact.HIGH,
        ))

    return TeamComparison(
        top_performer=ranked[0][0],
        average_performer=average,
        needs_improvement=needs_improvement,
        team_mean_success_rate=mean,
        recommendations=recommendations,
    )

import math
from typing import Optional
from pms_client.schemas.goal import GoalSet
from pms_client.schemas.competency import CompetencyEvaluation
from pms_client.schemas.performance import PerformanceSummary

GOAL_WEIGHT = 0.7
COMPETENCY_WEIGHT = 0.3

def _round_half_up(value: float, step: float = 1.0) -> float:
    return math.floor(value / step + 0.5) * step

def get_goals_progress(goal_set: Optional[GoalSet]) -> float:
    """% of goals whose achieved ratio reached 100"""
    if goal_set is None or not goal_set.goals:
        return 0.0
    completed = sum(1 for g in goal_set.goals if (g.achieved_ratio or 0) >= 100)
    return completed / len(goal_set.goals) * 100

def get_competency_average(evaluation: Optional[CompetencyEvaluation]) -> float:
    """Mean competency total; unscored competencies count as 0"""
    if evaluation is None or not evaluation.competencies:
        return 0.0
    totals = [c.competency_total_score or 0 for c in evaluation.competencies.values()]
    return sum(totals) / len(totals)

def calculate_offline_summary(
    goal_set: Optional[GoalSet], evaluation: Optional[CompetencyEvaluation]
) -> PerformanceSummary:
    goals_progress = get_goals_progress(goal_set)
    competency_average = get_competency_average(evaluation)
    overall = goals_progress * GOAL_WEIGHT + competency_average * COMPETENCY_WEIGHT

    return PerformanceSummary(
        goals_progress=_round_half_up(goals_progress),
        competency_average=round(_round_half_up(competency_average, 0.05), 2),
        overall_rating=_round_half_up(overall),
        offline=True,
    )

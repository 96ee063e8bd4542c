import unittest

from pms_client.schemas.competency import CompetencyEvaluation, CompetencyScore
from pms_client.schemas.goal import Goal, GoalSet
from pms_client.services.performance import (
    calculate_offline_summary,
    get_competency_average,
    get_goals_progress,
)


class TestOfflineSummary(unittest.TestCase):
    def setUp(self) -> None:
        self.goals = GoalSet(
            goals=[
                Goal(title="Close books", weightage=40, achieved_ratio=100),
                Goal(title="Audit", weightage=30, achieved_ratio=120),
                Goal(title="Hiring", weightage=20, achieved_ratio=50),
                Goal(title="Training", weightage=10),
            ]
        )
        self.evaluation = CompetencyEvaluation(
            competencies={
                "c1": CompetencyScore(behaviour_1_score=4, behaviour_2_score=4),
                "c2": CompetencyScore(behaviour_1_score=3, behaviour_2_score=4),
            }
        )

    def test_goals_progress_counts_completed_goals(self) -> None:
        self.assertEqual(get_goals_progress(self.goals), 50)
        self.assertEqual(get_goals_progress(GoalSet()), 0)
        self.assertEqual(get_goals_progress(None), 0)

    def test_competency_average(self) -> None:
        self.assertEqual(get_competency_average(self.evaluation), 3.75)
        self.assertEqual(get_competency_average(None), 0)

    def test_unscored_competency_counts_as_zero(self) -> None:
        self.evaluation.competencies["c3"] = CompetencyScore(behaviour_1_score=5)
        self.assertEqual(get_competency_average(self.evaluation), 2.5)

    def test_summary_weights_goals_and_competencies(self) -> None:
        summary = calculate_offline_summary(self.goals, self.evaluation)
        self.assertTrue(summary.offline)
        self.assertEqual(summary.goals_progress, 50)
        self.assertEqual(summary.competency_average, 3.75)
        # 50 * 0.7 + 3.75 * 0.3 = 36.125
        self.assertEqual(summary.overall_rating, 36)

    def test_summary_without_inputs(self) -> None:
        summary = calculate_offline_summary(None, None)
        self.assertEqual(
            (summary.goals_progress, summary.competency_average, summary.overall_rating), (0, 0, 0)
        )

    def test_competency_average_rounds_to_twentieths(self) -> None:
        evaluation = CompetencyEvaluation(
            competencies={
                "c1": CompetencyScore(behaviour_1_score=4, behaviour_2_score=5),
                "c2": CompetencyScore(behaviour_1_score=3, behaviour_2_score=3),
                "c3": CompetencyScore(behaviour_1_score=4, behaviour_2_score=4),
            }
        )
        # mean 3.8333
        self.assertEqual(calculate_offline_summary(None, evaluation).competency_average, 3.85)


if __name__ == "__main__":
    unittest.main()

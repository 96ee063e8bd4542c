from pydantic import BaseModel, Field, computed_field, model_validator
from typing import Any, Dict, Optional

class CompetencyScore(BaseModel):
    behaviour_1: Optional[str] = None
    behaviour_1_score: Optional[int] = Field(None, ge=1, le=5)
    behaviour_2: Optional[str] = None
    behaviour_2_score: Optional[int] = Field(None, ge=1, le=5)
    other_remarks: Optional[str] = None
    reviewer_emp_code: Optional[str] = None

    @computed_field
    @property
    def competency_total_score(self) -> Optional[float]:
        if self.behaviour_1_score is None or self.behaviour_2_score is None:
            return None
        return (self.behaviour_1_score + self.behaviour_2_score) / 2

class CompetencyEvaluation(BaseModel):
    emp_code: Optional[str] = None
    competencies: Dict[str, CompetencyScore] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _rows_to_mapping(cls, data: Any) -> Any:
        """
        Accepts the row format used by the sheet backend:
        a list of {competency_id|competency_name, behaviour_1, ...}.
        """
        if isinstance(data, list):
            data = {"competencies": data}
        if isinstance(data, dict) and isinstance(data.get("competencies"), list):
            keyed = {}
            for row in data["competencies"]:
                key = row.get("competency_id") or row.get("competency_name")
                if key is None:
                    raise ValueError("competency row without competency_id or competency_name")
                keyed[str(key)] = row
            data = {**data, "competencies": keyed}
        return data

    @property
    def average_total(self) -> Optional[float]:
        totals = [c.competency_total_score for c in self.competencies.values() if c.competency_total_score is not None]
        if not totals:
            return None
        return sum(totals) / len(totals)

class CompetencyMasterItem(BaseModel):
    competency_id: str
    competency_name: str
    description: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True

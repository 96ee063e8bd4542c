from pydantic import AliasChoices, BaseModel, Field, computed_field, field_validator, model_validator
from typing import Any, List, Optional

class Goal(BaseModel):
    title: str = Field(..., validation_alias=AliasChoices("title", "kra_title"))
    kpis: List[str] = Field(default_factory=list, validation_alias=AliasChoices("kpis", "kpi_description"))
    weightage: float = 0
    mid_year_status: Optional[str] = Field(None, validation_alias=AliasChoices("mid_year_status", "mid_year_review"))
    achieved_ratio: Optional[float] = None

    @field_validator("kpis", mode="before")
    @classmethod
    def _single_kpi(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value] if value.strip() else []
        return value

    @computed_field
    @property
    def calculated_score(self) -> Optional[float]:
        # weightage x achieved ratio, recomputed whenever either input changes
        if self.achieved_ratio is None:
            return None
        return self.weightage * self.achieved_ratio / 100

class GoalSet(BaseModel):
    emp_code: Optional[str] = None
    goals: List[Goal] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _bare_list(cls, data: Any) -> Any:
        # the backend may answer with just the list of goal rows
        if isinstance(data, list):
            return {"goals": data}
        return data

    @property
    def total_weightage(self) -> float:
        return sum(g.weightage for g in self.goals)

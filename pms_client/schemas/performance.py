from pydantic import AliasChoices, BaseModel, Field

class PerformanceSummary(BaseModel):
    goals_progress: float = Field(0, validation_alias=AliasChoices("goals_progress", "goalsProgress"))
    competency_average: float = Field(0, validation_alias=AliasChoices("competency_average", "competencyAverage"))
    overall_rating: float = Field(0, validation_alias=AliasChoices("overall_rating", "overallRating"))
    offline: bool = False

    model_config = {"extra": "allow"}

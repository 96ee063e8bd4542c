from enum import Enum
from pydantic import BaseModel, Field
from typing import Dict, Optional

class WindowName(str, Enum):
    GOAL_SETTING = "goal_setting"
    MID_YEAR = "mid_year"
    YEAR_END = "year_end"
    COMPETENCY = "competency"

class WindowState(str, Enum):
    INACTIVE = "Inactive"
    ACTIVE_EDITABLE = "ActiveEditable"
    ACTIVE_READ_ONLY = "ActiveReadOnly"

class WindowConfig(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    active: bool = False
    read_only: bool = Field(False, alias="readOnly")
    start_month: Optional[int] = Field(None, alias="startMonth", ge=1, le=12)
    end_month: Optional[int] = Field(None, alias="endMonth", ge=1, le=12)

    model_config = {"populate_by_name": True}

    @property
    def state(self) -> WindowState:
        if not self.active:
            return WindowState.INACTIVE
        if self.read_only:
            return WindowState.ACTIVE_READ_ONLY
        return WindowState.ACTIVE_EDITABLE

class TimeWindowConfig(BaseModel):
    # Wire names follow the admin System Config screen
    goal_setting: Optional[WindowConfig] = Field(None, alias="kraKpiWindow")
    mid_year: Optional[WindowConfig] = Field(None, alias="midYearWindow")
    year_end: Optional[WindowConfig] = Field(None, alias="yearEndWindow")
    competency: Optional[WindowConfig] = Field(None, alias="competencyWindow")

    model_config = {"populate_by_name": True}

    def window(self, name: WindowName) -> Optional[WindowConfig]:
        return getattr(self, WindowName(name).value)

    def as_dict(self) -> Dict[WindowName, Optional[WindowConfig]]:
        return {name: self.window(name) for name in WindowName}

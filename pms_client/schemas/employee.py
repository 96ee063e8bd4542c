from pydantic import AliasChoices, BaseModel, Field
from typing import Optional

class EmployeeRecord(BaseModel):
    emp_code: str = Field(..., validation_alias=AliasChoices("emp_code", "empCode", "employeeCode"))
    name: Optional[str] = None
    division: Optional[str] = None
    designation: Optional[str] = None
    location: Optional[str] = None
    department: Optional[str] = None
    role: str = Field("individual_user", validation_alias=AliasChoices("role", "user_type"))

    model_config = {"extra": "allow"}

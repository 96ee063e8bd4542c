from enum import Enum
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from .employee import EmployeeRecord

class SessionState(str, Enum):
    ANONYMOUS = "Anonymous"
    AUTHENTICATED = "Authenticated"
    LOCKED = "Locked"
    EXPIRED = "Expired"
    LOGGED_OUT = "LoggedOut"

class AuthResult(BaseModel):
    user: EmployeeRecord
    token: Optional[str] = None
    offline: bool = False

class Session(BaseModel):
    principal_id: str
    role: str
    issued_at: float
    last_activity: float
    offline: bool = False
    token: Optional[str] = None
    user: EmployeeRecord

class ActivityEntry(BaseModel):
    timestamp: float
    action: str
    emp_code: str = "unknown"
    details: Dict[str, Any] = Field(default_factory=dict)

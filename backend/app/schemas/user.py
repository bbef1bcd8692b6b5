from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr

from backend.app.models.enums import AppRole


class UserRead(BaseModel):
    id: str
    email: EmailStr
    full_name: Optional[str] = None
    role: AppRole
    school_id: Optional[str] = None
    guardian_id: Optional[str] = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)

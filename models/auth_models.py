from pydantic import BaseModel
from typing import Optional


class UserSession(BaseModel):
    user_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None

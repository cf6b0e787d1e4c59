from pydantic import BaseModel
from typing import Optional

class UserInDB(BaseModel):
    id: int
    email: str
    name: Optional[str] = None

    class Config:
        from_attributes = True

"""Admin user-management schemas."""

from typing import Literal

from pydantic import BaseModel


class RoleUpdateRequest(BaseModel):
    role: Literal["user", "admin"]

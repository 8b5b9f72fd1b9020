from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from maintenance_api.models.enums import Priority, Role


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    role: Role = Role.TENANT


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    full_name: str
    role: Role
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BuildingCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1, max_length=50)
    state: str = Field(..., min_length=1, max_length=50)
    zip_code: str = Field(..., min_length=1, max_length=10)
    manager_id: Optional[int] = None


class BuildingResponse(BaseModel):
    id: int
    name: str
    address: str
    city: str
    state: str
    zip_code: str
    full_address: str
    manager_id: Optional[int] = None
    is_active: bool
    active_ticket_count: int = 0  # tickets whose status is not CLOSED
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoomCreate(BaseModel):
    building_id: int
    floor_number: int
    room_number: str = Field(..., min_length=1, max_length=20)
    room_type: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=500)


class RoomResponse(BaseModel):
    id: int
    building_id: int
    floor_number: int
    room_number: str
    room_type: Optional[str] = None
    description: Optional[str] = None
    location: str
    is_active: bool
    active_ticket_count: int = 0
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=500)
    default_priority: Priority = Priority.MEDIUM


class CategoryResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    default_priority: Priority
    is_active: bool
    ticket_count: int = 0
    active_ticket_count: int = 0
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from maintenance_api.core.timeutils import to_naive_utc
from maintenance_api.models.enums import Priority, Role, TicketStatus


def _not_blank(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


NonBlankStr = Annotated[str, AfterValidator(_not_blank)]


class UserSummary(BaseModel):
    id: int
    username: str
    full_name: str
    role: Role

    model_config = ConfigDict(from_attributes=True)


class StatusHistoryResponse(BaseModel):
    id: int
    ticket_id: int
    old_status: Optional[TicketStatus] = Field(None, description="Status before the change; null for the creation entry.")
    new_status: TicketStatus = Field(..., description="Status after the change.")
    actor_id: int = Field(..., description="The user who performed the operation.")
    actor_name: Optional[str] = None
    reason: Optional[str] = Field(None, description="Free-text reason recorded with the change.")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TicketCreate(BaseModel):
    title: NonBlankStr = Field(..., min_length=1, max_length=200, description="Short summary of the issue.")
    description: NonBlankStr = Field(..., min_length=1, description="Full description of the issue.")
    category_id: int
    building_id: int
    room_id: Optional[int] = Field(None, description="Room within the building, if the issue is room-specific.")
    priority: Optional[Priority] = Field(None, description="Defaults to the category's default priority.")
    status: Optional[TicketStatus] = Field(None, description="Defaults to OPEN.")
    estimated_completion: Optional[datetime] = None

    @field_validator("estimated_completion")
    @classmethod
    def normalize_estimated_completion(cls, v):
        return to_naive_utc(v)


class TicketUpdate(BaseModel):
    """Full replacement of the editable ticket fields. Reporter and assignee are not editable here."""
    title: NonBlankStr = Field(..., min_length=1, max_length=200)
    description: NonBlankStr = Field(..., min_length=1)
    category_id: int
    priority: Priority
    status: TicketStatus
    building_id: int
    room_id: Optional[int] = None
    estimated_completion: Optional[datetime] = None
    resolution_notes: Optional[str] = None

    @field_validator("estimated_completion")
    @classmethod
    def normalize_estimated_completion(cls, v):
        return to_naive_utc(v)


class TicketStatusUpdate(BaseModel):
    status: TicketStatus = Field(..., description="The target status for the ticket.")
    reason: Optional[str] = Field(None, max_length=1000, description="The reason for the status change.")


class TicketAssignment(BaseModel):
    assignee_id: int = Field(..., description="The user the ticket is assigned to.")


class ResolutionRequest(BaseModel):
    resolution_notes: NonBlankStr = Field(..., min_length=1, description="What was done to resolve the issue.")
    reason: Optional[str] = Field(None, max_length=1000, description="Reason recorded in the status history.")


class TicketResponse(BaseModel):
    id: int
    title: str
    description: str
    category_id: int
    priority: Priority
    status: TicketStatus
    reporter_id: int
    assignee_id: Optional[int] = None
    building_id: int
    room_id: Optional[int] = None
    estimated_completion: Optional[datetime] = None
    actual_completion: Optional[datetime] = None
    resolution_notes: Optional[str] = None
    location: str
    is_overdue: bool
    is_assigned: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TicketDetailResponse(TicketResponse):
    reporter: UserSummary
    assignee: Optional[UserSummary] = None
    status_history: List[StatusHistoryResponse] = []


class CommentCreate(BaseModel):
    content: NonBlankStr = Field(..., min_length=1)
    is_internal: bool = Field(False, description="Internal comments are hidden from tenants.")


class CommentResponse(BaseModel):
    id: int
    ticket_id: int
    author_id: int
    author_name: str
    content: str
    is_internal: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AttachmentCreate(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=255)
    original_file_name: str = Field(..., min_length=1, max_length=255)
    file_type: str = Field(..., min_length=1, max_length=100)
    file_size: int = Field(..., gt=0)
    file_path: str = Field(..., min_length=1, max_length=500)


class AttachmentResponse(AttachmentCreate):
    id: int
    ticket_id: int
    uploaded_by_id: int
    uploaded_at: datetime
    is_image: bool

    model_config = ConfigDict(from_attributes=True)

from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Base Models
# =============================================================================

class APIModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

class Health(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "studiodesk"

# =============================================================================
# Task Models
# =============================================================================
# Request bodies are typed loosely: TaskLifecycle and ProgressEngine check
# field values so that bad input surfaces as 400 with a message, not as a
# schema error.

class TaskCreate(APIModel):
    title: Optional[Any] = None
    description: Optional[Any] = None
    type: Optional[Any] = None
    category: Optional[Any] = None
    status: Optional[Any] = None
    priority: Optional[Any] = None
    due_date: Optional[Any] = Field(default=None, alias="dueDate")
    tags: Optional[Any] = None

class TaskUpdate(APIModel):
    title: Optional[Any] = None
    description: Optional[Any] = None
    type: Optional[Any] = None
    category: Optional[Any] = None
    status: Optional[Any] = None
    priority: Optional[Any] = None
    due_date: Optional[Any] = Field(default=None, alias="dueDate")
    tags: Optional[Any] = None

class TaskAttachmentOut(APIModel):
    id: str
    name: str
    url: str
    type: str
    size: int
    uploaded_at: str = Field(alias="uploadedAt")

class TaskOut(APIModel):
    id: str
    title: str
    description: Optional[str] = None
    type: str
    category: Optional[str] = None
    status: str
    priority: str
    due_date: Optional[str] = Field(default=None, alias="dueDate")
    tags: List[str] = Field(default_factory=list)
    attachments: List[TaskAttachmentOut] = Field(default_factory=list)
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

class TaskDeleted(BaseModel):
    message: str = "Task deleted successfully"
    task: TaskOut

# =============================================================================
# Protocol Models
# =============================================================================

class ProtocolOut(APIModel):
    id: int
    name: str
    status: str
    progress: float
    last_session: Optional[str] = None
    notes: str = ""
    next_focus: str = ""
    design_status: str
    is_active_for_practice: bool
    admin_notes: str = ""

class ProtocolSummaryOut(BaseModel):
    total: int
    not_started: int
    in_progress: int
    completed: int
    average_progress: float

class ProtocolStatusUpdate(BaseModel):
    status: Optional[Any] = None
    progress: Optional[Any] = None
    notes: Optional[Any] = None
    next_focus: Optional[Any] = None

class ProtocolMeta(BaseModel):
    id: int
    name: str
    design_status: str
    is_active_for_practice: bool
    admin_notes: str = ""

class ProtocolMetaUpdate(BaseModel):
    id: int
    name: Optional[str] = None
    design_status: Optional[str] = None
    is_active_for_practice: Optional[bool] = None
    admin_notes: Optional[str] = None

# =============================================================================
# Session Models
# =============================================================================

class SessionCreate(BaseModel):
    date: Optional[Any] = None
    piece_title: Optional[Any] = None
    composer: Optional[Any] = None
    duration_minutes: Optional[Any] = None
    subjective_progress_score: Optional[Any] = None
    notes: Optional[Any] = None
    next_time_hint: Optional[Any] = None

class BasicSessionCreate(BaseModel):
    date: Optional[Any] = None
    piece_title: Optional[Any] = None
    duration_minutes: Optional[Any] = None
    notes: Optional[Any] = None
    status_after_session: Optional[Any] = None

class SessionOut(APIModel):
    id: str
    protocol_id: int
    date: str
    piece_title: str
    composer: str = ""
    duration_minutes: int = 0
    subjective_progress_score: Optional[int] = None
    notes: str = ""
    next_time_hint: str = ""
    kind: str
    status_after_session: Optional[str] = None

class SessionRecorded(BaseModel):
    session: SessionOut
    protocol: ProtocolOut

# =============================================================================
# Incoming Webhooks
# =============================================================================

class IncomingWebhookAck(BaseModel):
    success: bool = True
    message: str = "Webhook received successfully"
    timestamp: str

class IncomingWebhookStatus(BaseModel):
    status: str = "ready"
    message: str
    timestamp: str

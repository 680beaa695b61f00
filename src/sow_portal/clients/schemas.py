"""Request and response models for the SOW backend REST contract.

The backend mixes camelCase (Step Functions, templates) and snake_case
(notifications, users) field names; models accept whichever the endpoint
sends and serialize back using the wire names.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# ── Step Functions Executions ───────────────────────────────────────────────


class ExecutionState(str, Enum):
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"
    ABORTED = "ABORTED"


FAILED_EXECUTION_STATES: frozenset[ExecutionState] = frozenset({
    ExecutionState.FAILED,
    ExecutionState.TIMED_OUT,
    ExecutionState.ABORTED,
})


class ExecutionError(BaseModel):
    error: str | None = None
    cause: str | None = None


class ExecutionStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    execution_arn: str = Field(alias="executionArn")
    execution_id: str | None = None
    status: ExecutionState
    start_date: str | None = Field(default=None, alias="startDate")
    stop_date: str | None = Field(default=None, alias="stopDate")
    error: ExecutionError | None = None
    output: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status != ExecutionState.RUNNING


class GenerationStarted(BaseModel):
    """Response of any endpoint that kicks off a Step Functions execution."""

    model_config = ConfigDict(populate_by_name=True)

    execution_arn: str | None = Field(default=None, alias="executionArn")
    execution_id: str | None = None
    message: str = ""
    start_date: str | None = Field(default=None, alias="startDate")


class GenerateSOWRequest(BaseModel):
    deal_id: str
    company_id: str
    template_id: str | None = None
    additional_instructions: str | None = None
    capacity_info: str | None = None

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "companyId": self.company_id,
            "dealId": self.deal_id,
            "templateId": self.template_id,
        }
        if self.additional_instructions:
            body["additionalInstructions"] = self.additional_instructions
        if self.capacity_info:
            body["capacityInfo"] = self.capacity_info
        return body


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateDiagramRequest(_CamelModel):
    s3_key: str
    customer: str | None = None
    project: str | None = None


class GenerateTCORequest(_CamelModel):
    s3_key: str
    sharepoint_folder_path: str | None = None
    deal_id: str | None = None
    customer: str | None = None
    project: str | None = None
    template_id: str | None = None


class GenerateTCOResponse(_CamelModel):
    """TCO generation answers either asynchronously (execution) or inline (totals)."""

    message: str = ""
    execution_arn: str | None = None
    start_date: str | None = None
    success: bool | None = None
    deal_id: str | None = None
    total_monthly_cost: float | None = None
    total_annual_cost: float | None = None
    services_count: int | None = None
    console_url: str | None = None
    sharepoint_url: str | None = None
    total_cost: float | None = None


class FinalizeResult(_CamelModel):
    """Outcome of finalizing SOW, architecture or TCO artifacts in SharePoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    message: str | None = None
    finalized: bool = False
    final_file_name: str | None = None
    final_file_url: str | None = None
    deleted_versions: list[str] = Field(default_factory=list)
    progress: str | None = None


# ── Files ───────────────────────────────────────────────────────────────────


class StoredFile(BaseModel):
    model_config = ConfigDict(extra="allow")

    file_name: str | None = Field(default=None, validation_alias=AliasChoices("name", "file_name"))
    key: str | None = Field(default=None, validation_alias=AliasChoices("key", "file_key"))
    size: int | None = None
    content_type: str | None = None
    last_modified: str | None = None


class PresignedUpload(BaseModel):
    upload_url: str
    key: str
    expires_in: int | None = None


class PresignedDownload(BaseModel):
    download_url: str
    expires_in: int | None = None


# ── Templates ───────────────────────────────────────────────────────────────


class TemplateType(str, Enum):
    KNOWLEDGE_BASE = "KNOWLEDGE_BASE"
    SOW_TEMPLATE = "SOW_TEMPLATE"


class TemplateVariable(BaseModel):
    name: str
    type: str
    description: str = ""
    schema_: dict[str, str] | None = Field(default=None, alias="schema")

    model_config = ConfigDict(populate_by_name=True)


class DocumentTemplate(_CamelModel):
    id: str | None = None
    name: str
    description: str | None = None
    type: TemplateType | None = None
    filename: str | None = None
    s3_key: str | None = None
    file_size: int | None = None
    content_type: str | None = None
    download_url: str | None = None
    template_filename: str | None = None
    default_prompt: str | None = None
    implementation_prompt: str | None = None
    architecture_prompt: str | None = None
    essential_pricing_prompt: str | None = None
    growth_pricing_prompt: str | None = None
    template_variables: list[TemplateVariable] | None = None
    created_at: str | None = Field(default=None, alias="created_at")
    updated_at: str | None = Field(default=None, alias="updated_at")


class DocumentUploadUrl(_CamelModel):
    upload_url: str
    s3_key: str


class DealTemplate(BaseModel):
    deal_id: str
    template_id: str
    assigned_by: str | None = None
    assigned_at: str | None = None
    additional_instructions: str | None = None
    capacity_info: str | None = None


# ── Meetings ────────────────────────────────────────────────────────────────


class AvomaMeeting(BaseModel):
    model_config = ConfigDict(extra="allow")

    meeting_id: str
    title: str = ""
    start_time: str | None = None
    end_time: str | None = None
    duration: float | None = None
    participants: list[str] = Field(default_factory=list)
    transcript_available: bool = False
    notes_available: bool = False
    recording_available: bool = False


class SyncAvomaResult(BaseModel):
    success: bool
    meetings_synced: int = 0
    message: str = ""


# ── Notifications ───────────────────────────────────────────────────────────


class NotificationType(str, Enum):
    DEAL_ASSIGNED = "DEAL_ASSIGNED"
    DEAL_REASSIGNED = "DEAL_REASSIGNED"
    SOW_READY_FOR_REVIEW = "SOW_READY_FOR_REVIEW"
    DEAL_STATUS_UPDATED = "DEAL_STATUS_UPDATED"
    SOW_FLAGGED_FOR_REWORK = "SOW_FLAGGED_FOR_REWORK"


class Notification(BaseModel):
    id: str
    type: NotificationType
    title: str
    message: str
    owner_id: str | None = None
    role: str | None = None
    deal_id: str | None = None
    deal_name: str | None = None
    is_read: bool = False
    created_at: str
    read_at: str | None = None
    read_by: str | None = None
    created_by: str | None = None
    created_by_name: str | None = None


class NotificationsPage(BaseModel):
    notifications: list[Notification] = Field(default_factory=list)
    unread_count: int = 0
    total: int = 0


class CreateNotificationRequest(BaseModel):
    type: NotificationType
    title: str
    message: str
    owner_id: str | None = None
    role: str | None = None
    deal_id: str | None = None
    deal_name: str | None = None
    assignee_name: str | None = None


# ── Users ───────────────────────────────────────────────────────────────────


class CognitoUser(BaseModel):
    id: str
    email: str
    username: str | None = None
    name: str
    status: str
    enabled: bool
    groups: list[str] = Field(default_factory=list)
    role: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class CreateUserRequest(BaseModel):
    email: str
    username: str
    name: str
    role: str | None = None


# ── Chat ────────────────────────────────────────────────────────────────────


class ChatCitation(BaseModel):
    model_config = ConfigDict(extra="allow")

    text: str | None = None
    references: list[dict[str, Any]] = Field(default_factory=list)


class ChatResponse(_CamelModel):
    answer: str
    session_id: str | None = None
    citations: list[ChatCitation] = Field(default_factory=list)

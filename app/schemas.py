import datetime as dt
from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models import (
    AttendanceStatus,
    BroadcastStatus,
    FieldType,
    GrievanceCategory,
    GrievanceStatus,
    LeaderboardPeriod,
    MaterialType,
    Role,
    SosStatus,
    StockItemStatus,
    VisitRating,
)


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool


class OkResponse(BaseModel):
    ok: bool = True


class OrganisationRead(BaseModel):
    id: str
    name: str
    logo_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ZoneCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    city: str | None = Field(default=None, max_length=255)
    meeting_lat: float = Field(ge=-90, le=90)
    meeting_lng: float = Field(ge=-180, le=180)
    meeting_address: str | None = Field(default=None, max_length=1024)
    geofence_radius: int | None = Field(default=None, ge=0)


class ZoneRead(BaseModel):
    id: str
    name: str
    city: str | None = None
    meeting_lat: float
    meeting_lng: float
    meeting_address: str | None = None
    geofence_radius: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class UserSummary(BaseModel):
    id: str
    name: str
    employee_id: str | None = None
    avatar_url: str | None = None
    zone_id: str | None = None

    model_config = ConfigDict(from_attributes=True)


class UserRead(BaseModel):
    id: str
    org_id: str
    name: str
    mobile: str | None = None
    email: str | None = None
    role: Role
    employee_id: str | None = None
    zone_id: str | None = None
    supervisor_id: str | None = None
    city: str | None = None
    state: str | None = None
    avatar_url: str | None = None
    is_active: bool
    joined_date: date | None = None

    model_config = ConfigDict(from_attributes=True)


class UserProfileRead(UserRead):
    zone: ZoneRead | None = None
    organisation: OrganisationRead | None = None


class UserCreate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    mobile: str | None = Field(default=None, min_length=10, max_length=15)
    email: str | None = Field(default=None, max_length=255)
    password: str = Field(min_length=8, max_length=128)
    role: Role = Role.EXECUTIVE
    employee_id: str | None = Field(default=None, max_length=64)
    zone_id: str | None = None
    supervisor_id: str | None = None
    city: str | None = None
    state: str | None = None
    joined_date: date | None = None

    @model_validator(mode="after")
    def _validate_login(self) -> "UserCreate":
        if not (self.email or "").strip() and not (self.mobile or "").strip():
            raise ValueError("Either email or mobile is required.")
        return self


class UserUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=255)
    zone_id: str | None = None
    supervisor_id: str | None = None
    is_active: bool | None = None
    employee_id: str | None = Field(default=None, max_length=64)
    city: str | None = None
    avatar_url: str | None = None


class UserListResponse(BaseModel):
    items: list[UserRead]
    pagination: PageMeta


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=6, max_length=128)
    fcm_token: str | None = Field(default=None, max_length=512)
    device_id: str | None = Field(default=None, max_length=255)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int | None = None
    expires_at: int | None = None
    user: UserProfileRead | None = None


class CheckInRequest(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    zone_id: str | None = None
    activity_id: str | None = None
    selfie_url: str | None = Field(default=None, max_length=1024)
    address: str | None = Field(default=None, max_length=1024)


class CheckOutRequest(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    selfie_url: str | None = Field(default=None, max_length=1024)


class BreakRead(BaseModel):
    id: str
    started_at: datetime
    ended_at: datetime | None = None
    duration_minutes: int | None = None

    model_config = ConfigDict(from_attributes=True)


class AttendanceRead(BaseModel):
    id: str
    user_id: str
    zone_id: str | None = None
    activity_id: str | None = None
    date: dt.date
    status: AttendanceStatus
    checkin_at: datetime
    checkin_lat: float
    checkin_lng: float
    checkin_selfie_url: str | None = None
    checkin_address: str | None = None
    checkin_distance_m: int
    checkout_at: datetime | None = None
    checkout_lat: float | None = None
    checkout_lng: float | None = None
    checkout_selfie_url: str | None = None
    break_minutes: int
    working_minutes: int | None = None
    breaks: list[BreakRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class TeamAttendanceRead(AttendanceRead):
    user: UserSummary | None = None


class BreakEndResponse(BaseModel):
    attendance: AttendanceRead
    duration_minutes: int


class AttendanceHistoryResponse(BaseModel):
    items: list[AttendanceRead]
    pagination: PageMeta


class StockItemCreate(BaseModel):
    product_name: str = Field(min_length=1, max_length=255)
    sku: str | None = Field(default=None, max_length=128)
    category: str | None = Field(default=None, max_length=128)
    unit: str = Field(default="units", min_length=1, max_length=32)
    quantity_allocated: int = Field(gt=0)


class StockAllocationCreate(BaseModel):
    user_id: str
    date: dt.date | None = None
    zone_id: str | None = None
    activity_id: str | None = None
    notes: str | None = None
    items: list[StockItemCreate] = Field(min_length=1)


class StockItemReview(BaseModel):
    status: Literal["accepted", "rejected", "partially_accepted"]
    quantity_accepted: int | None = Field(default=None, ge=0)
    rejection_reason: str | None = Field(default=None, max_length=1024)


class StockItemRead(BaseModel):
    id: str
    allocation_id: str
    position: int
    product_name: str
    sku: str | None = None
    category: str | None = None
    unit: str
    quantity_allocated: int
    quantity_accepted: int | None = None
    status: StockItemStatus
    rejection_reason: str | None = None

    model_config = ConfigDict(from_attributes=True)


class StockAllocationRead(BaseModel):
    id: str
    user_id: str
    zone_id: str | None = None
    activity_id: str | None = None
    date: dt.date
    notes: str | None = None
    status: StockItemStatus
    reviewed_at: datetime | None = None
    created_at: datetime
    items: list[StockItemRead] = Field(default_factory=list)
    user: UserSummary | None = None

    model_config = ConfigDict(from_attributes=True)


class StockReviewResponse(BaseModel):
    item: StockItemRead
    allocation_status: StockItemStatus
    reviewed_at: datetime | None = None


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    name: str | None = None
    avatar_url: str | None = None
    zone_id: str | None = None
    overall_score: float
    engagements: int
    conversions: int
    attendance_days: int
    is_me: bool = False


class LeaderboardResponse(BaseModel):
    period: LeaderboardPeriod
    period_start: date
    rule_version: int
    entries: list[LeaderboardEntry]


class LeaderboardMeResponse(BaseModel):
    period: LeaderboardPeriod
    period_start: date
    rule_version: int
    score: LeaderboardEntry | None = None


class SosTriggerRequest(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    address: str | None = Field(default=None, max_length=1024)
    message: str | None = Field(default=None, max_length=2000)


class SosResolveRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)


class SosRead(BaseModel):
    id: str
    user_id: str
    zone_id: str | None = None
    latitude: float
    longitude: float
    address: str | None = None
    message: str | None = None
    status: SosStatus
    notified_user_ids: list[str] = Field(default_factory=list)
    acknowledged_by: str | None = None
    acknowledged_at: datetime | None = None
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    resolution_notes: str | None = None
    created_at: datetime
    user: UserSummary | None = None

    model_config = ConfigDict(from_attributes=True)


class BroadcastOption(BaseModel):
    label: str = Field(min_length=1, max_length=255)
    value: str = Field(min_length=1, max_length=255)


class BroadcastCreate(BaseModel):
    question: str = Field(min_length=5)
    options: list[BroadcastOption] = Field(min_length=2)
    correct_option: int | None = Field(default=None, ge=0)
    is_urgent: bool = False
    deadline_at: datetime | None = None
    target_roles: list[Role] = Field(default_factory=lambda: [Role.EXECUTIVE])
    target_zone_ids: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_correct_option(self) -> "BroadcastCreate":
        if self.correct_option is not None and self.correct_option >= len(self.options):
            raise ValueError("correct_option must index one of the options.")
        return self


class BroadcastRead(BaseModel):
    id: str
    question: str
    options: list[BroadcastOption]
    correct_option: int | None = None
    is_urgent: bool
    deadline_at: datetime | None = None
    status: BroadcastStatus
    target_roles: list[str]
    created_at: datetime
    already_answered: bool = False
    my_answer: int | None = None


class BroadcastAnswerRequest(BaseModel):
    selected: int = Field(ge=0)


class BroadcastAnswerResponse(BaseModel):
    id: str
    question_id: str
    selected: int
    is_correct: bool | None = None
    correct_option: int | None = None
    answered_at: datetime


class BroadcastTally(BaseModel):
    index: int
    label: str
    value: str
    count: int


class BroadcastResults(BaseModel):
    id: str
    question: str
    status: BroadcastStatus
    correct_option: int | None = None
    total_answers: int
    tally: list[BroadcastTally]


class GrievanceCreate(BaseModel):
    category: GrievanceCategory
    against_role: Role | None = None
    incident_date: date | None = None
    description: str = Field(min_length=20, max_length=5000)
    evidence_urls: list[str] = Field(default_factory=list, max_length=10)
    is_anonymous: bool = False


class GrievanceUpdate(BaseModel):
    status: Literal["under_review", "resolved", "dismissed"]
    resolution: str | None = Field(default=None, max_length=5000)


class GrievanceRead(BaseModel):
    id: str
    reference_no: str
    category: GrievanceCategory
    against_role: Role | None = None
    incident_date: date | None = None
    description: str
    evidence_urls: list[str] = Field(default_factory=list)
    is_anonymous: bool
    status: GrievanceStatus
    resolution: str | None = None
    submitted_by: str | None = None
    submitter: UserSummary | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GrievanceListResponse(BaseModel):
    items: list[GrievanceRead]
    pagination: PageMeta


class LearningMaterialCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    category: str | None = Field(default=None, max_length=128)
    type: MaterialType
    file_url: str = Field(min_length=1, max_length=1024)
    thumbnail_url: str | None = Field(default=None, max_length=1024)
    duration_min: int | None = Field(default=None, ge=0)
    page_count: int | None = Field(default=None, ge=0)
    target_roles: list[Role] = Field(default_factory=lambda: [Role.EXECUTIVE])
    is_mandatory: bool = False


class LearningProgressUpdate(BaseModel):
    progress_pct: int = Field(ge=0, le=100)
    is_completed: bool | None = None


class LearningProgressRead(BaseModel):
    material_id: str
    progress_pct: int
    is_completed: bool
    completed_at: datetime | None = None
    last_accessed: datetime

    model_config = ConfigDict(from_attributes=True)


class LearningMaterialRead(BaseModel):
    id: str
    title: str
    description: str | None = None
    category: str | None = None
    type: MaterialType
    file_url: str
    thumbnail_url: str | None = None
    duration_min: int | None = None
    page_count: int | None = None
    target_roles: list[str]
    is_mandatory: bool
    published_at: datetime
    my_progress: LearningProgressRead | None = None

    model_config = ConfigDict(from_attributes=True)


class NotificationRead(BaseModel):
    id: str
    type: str
    title: str
    body: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationListResponse(BaseModel):
    items: list[NotificationRead]
    pagination: PageMeta
    unread_count: int


class MarkAllReadResponse(BaseModel):
    updated: int


class FcmTokenRequest(BaseModel):
    fcm_token: str = Field(min_length=1, max_length=512)
    device_id: str | None = Field(default=None, max_length=255)


class FormFieldCreate(BaseModel):
    label: str = Field(min_length=1, max_length=255)
    field_key: str = Field(min_length=1, max_length=128, pattern=r"^[a-z_]+$")
    field_type: FieldType
    placeholder: str | None = Field(default=None, max_length=255)
    help_text: str | None = Field(default=None, max_length=1024)
    is_required: bool = False
    sort_order: int = 0
    options: list[dict[str, Any]] = Field(default_factory=list)
    validation: dict[str, Any] = Field(default_factory=dict)


class FormFieldRead(BaseModel):
    id: str
    template_id: str
    label: str
    field_key: str
    field_type: FieldType
    placeholder: str | None = None
    help_text: str | None = None
    is_required: bool
    sort_order: int
    options: list[dict[str, Any]] = Field(default_factory=list)
    validation: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)


class FormTemplateCreate(BaseModel):
    activity_id: str
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    requires_photo: bool = False
    requires_gps: bool = True
    fields: list[FormFieldCreate] = Field(default_factory=list)


class FormTemplateRead(BaseModel):
    id: str
    activity_id: str
    name: str
    description: str | None = None
    requires_photo: bool
    requires_gps: bool
    is_active: bool
    fields: list[FormFieldRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class FormResponseIn(BaseModel):
    field_key: str = Field(min_length=1, max_length=128)
    value_text: str | None = None
    value_number: float | None = None
    value_bool: bool | None = None
    value_json: Any = None
    photo_url: str | None = Field(default=None, max_length=1024)


class FormSubmitRequest(BaseModel):
    template_id: str
    activity_id: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    address: str | None = Field(default=None, max_length=1024)
    outlet_name: str | None = Field(default=None, max_length=255)
    consumer_age: str | None = Field(default=None, max_length=32)
    consumer_gender: str | None = Field(default=None, max_length=32)
    is_converted: bool = False
    responses: list[FormResponseIn] = Field(min_length=1)


class FormResponseRead(BaseModel):
    id: str
    field_id: str
    field_key: str
    value_text: str | None = None
    value_number: float | None = None
    value_bool: bool | None = None
    value_json: Any = None
    photo_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class FormSubmissionRead(BaseModel):
    id: str
    user_id: str
    template_id: str
    activity_id: str | None = None
    attendance_id: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    address: str | None = None
    outlet_name: str | None = None
    consumer_age: str | None = None
    consumer_gender: str | None = None
    is_converted: bool
    submitted_at: datetime
    responses: list[FormResponseRead] = Field(default_factory=list)
    user: UserSummary | None = None

    model_config = ConfigDict(from_attributes=True)


class FormSubmissionListResponse(BaseModel):
    items: list[FormSubmissionRead]
    pagination: PageMeta


class UploadResponse(BaseModel):
    url: str
    path: str
    bucket: str


class AnalyticsSummary(BaseModel):
    date: dt.date
    checked_in: int
    active_now: int
    engagements: int
    conversions: int
    conversion_rate: float
    total_executives: int
    active_sos_alerts: int
    open_grievances: int


class ActivityFeedItem(BaseModel):
    id: str
    type: Literal["check_in", "form_submission", "sos"]
    time: datetime
    description: str
    meta: dict[str, Any] = Field(default_factory=dict)


class HourlyBucket(BaseModel):
    hour: int
    label: str
    engagements: int
    conversions: int


class VisitCreate(BaseModel):
    executive_id: str | None = None
    rating: VisitRating
    remarks: str | None = Field(default=None, max_length=2000)
    photo_url: str | None = Field(default=None, max_length=1024)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class VisitRead(BaseModel):
    id: str
    executive_id: str
    visitor_id: str
    zone_id: str | None = None
    date: dt.date
    visited_at: datetime
    rating: VisitRating
    remarks: str | None = None
    photo_url: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    model_config = ConfigDict(from_attributes=True)


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    schema_guard: dict[str, Any] = Field(default_factory=dict)

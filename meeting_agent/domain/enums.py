"""Domain enums."""

from enum import Enum


class WorkflowStep(str, Enum):
    INTENT_DETECTION = "intent_detection"
    CALENDAR_ACCESS_VERIFICATION = "calendar_access_verification"
    MEETING_TYPE_SELECTION = "meeting_type_selection"
    TIME_DATE_COLLECTION = "time_date_collection"
    AVAILABILITY_CHECK = "availability_check"
    CONFLICT_RESOLUTION = "conflict_resolution"
    ATTENDEE_COLLECTION = "attendee_collection"
    MEETING_DETAILS_COLLECTION = "meeting_details_collection"
    VALIDATION = "validation"
    AGENDA_GENERATION = "agenda_generation"
    AGENDA_APPROVAL = "agenda_approval"
    APPROVAL = "approval"
    CREATION = "creation"
    COMPLETED = "completed"


class MeetingType(str, Enum):
    PHYSICAL = "physical"
    ONLINE = "online"


class MeetingStatus(str, Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    CREATED = "created"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class UIBlockType(str, Enum):
    INTENT_PROMPT = "intent_prompt"
    CALENDAR_ACCESS = "calendar_access"
    MEETING_TYPE_SELECTION = "meeting_type_selection"
    TIME_SELECTION = "time_selection"
    AVAILABILITY_CHECK = "availability_check"
    CONFLICT_RESOLUTION = "conflict_resolution"
    ATTENDEE_MANAGEMENT = "attendee_management"
    TITLE_SUGGESTIONS = "title_suggestions"
    VALIDATION_SUMMARY = "validation_summary"
    AGENDA_EDITOR = "agenda_editor"
    MEETING_APPROVAL = "meeting_approval"
    CREATION_STATUS = "creation_status"
    COMPLETION = "completion"


class UIBlockAction(str, Enum):
    TYPE_SELECT = "type_select"
    ATTENDEES_UPDATE = "attendees_update"
    CONTINUE = "continue"
    APPROVE = "approve"
    EDIT = "edit"
    AGENDA_UPDATE = "agenda_update"
    AGENDA_APPROVE = "agenda_approve"
    AGENDA_REGENERATE = "agenda_regenerate"


class Intent(str, Enum):
    SCHEDULE_MEETING = "schedule_meeting"
    MODIFY_MEETING = "modify_meeting"
    OTHER = "other"


class EmailJobState(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIALLY_FAILED = "partially_failed"


class ErrorCode(str, Enum):
    INVALID_REQUEST = "INVALID_REQUEST"
    WORKFLOW_NOT_FOUND = "WORKFLOW_NOT_FOUND"
    EMAIL_JOB_NOT_FOUND = "EMAIL_JOB_NOT_FOUND"
    WORKFLOW_ALREADY_EXISTS = "WORKFLOW_ALREADY_EXISTS"
    WORKFLOW_STEP_INVALID = "WORKFLOW_STEP_INVALID"
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    EXTERNAL_SERVICE_FAILURE = "EXTERNAL_SERVICE_FAILURE"
    INTERNAL_ERROR = "INTERNAL_ERROR"

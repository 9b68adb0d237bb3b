"""
Project/Task schema.

Kanban columns, in board order (any column is reachable from any other):
  todo → in-progress → review → completed

Entities are frozen snapshots. The store swaps whole records on every
mutation, so a handle given to a caller never changes under it.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional, Tuple, Dict, Any, Iterable

from .errors import ValidationError


def utc_now() -> datetime:
    """Aware UTC timestamp."""
    return datetime.now(timezone.utc)


def to_utc(value: Any, field_name: str = "date") -> Optional[datetime]:
    """Coerce a datetime, date or ISO-8601 string to an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"Invalid date for {field_name}: '{value}'")
    else:
        raise ValidationError(
            f"Invalid date for {field_name}: expected datetime, date or ISO string, "
            f"got {type(value).__name__}"
        )
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def unique(values: Iterable[str]) -> Tuple[str, ...]:
    """De-duplicate while keeping first-seen order."""
    seen = []
    for v in values:
        v = str(v)
        if v not in seen:
            seen.append(v)
    return tuple(seen)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


class _WireEnum(Enum):
    """Enum keyed by its wire value with a strict parser."""

    @classmethod
    def parse(cls, value: Any):
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ValidationError(
                f"Invalid {cls.__name__}: '{value}'. Allowed: {allowed}"
            )


class ProjectStatus(_WireEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ON_HOLD = "on-hold"
    CANCELLED = "cancelled"


class TaskStatus(_WireEnum):
    """Kanban columns. Declaration order is board order."""
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    REVIEW = "review"
    COMPLETED = "completed"


class Priority(_WireEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


@dataclass(frozen=True)
class Comment:
    """A comment on exactly one task."""
    id: str
    content: str
    author_id: str
    task_id: str
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "author_id": self.author_id,
            "task_id": self.task_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Comment":
        return cls(
            id=data["id"],
            content=data.get("content", ""),
            author_id=data.get("author_id", ""),
            task_id=data.get("task_id", ""),
            created_at=to_utc(data.get("created_at")) or utc_now(),
            updated_at=to_utc(data.get("updated_at")) or utc_now(),
        )


@dataclass(frozen=True)
class Attachment:
    """File metadata attached to exactly one task."""
    id: str
    name: str
    size: int = 0
    content_type: str = ""
    url: str = ""
    uploaded_by: str = ""
    uploaded_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "size": self.size,
            "type": self.content_type,
            "url": self.url,
            "uploaded_by": self.uploaded_by,
            "uploaded_at": _iso(self.uploaded_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Attachment":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            size=int(data.get("size", 0)),
            content_type=data.get("type", ""),
            url=data.get("url", ""),
            uploaded_by=data.get("uploaded_by", ""),
            uploaded_at=to_utc(data.get("uploaded_at")) or utc_now(),
        )


@dataclass(frozen=True)
class Project:
    """A project grouping tasks and a team."""

    id: str
    name: str
    description: str = ""
    status: ProjectStatus = ProjectStatus.ACTIVE
    priority: Priority = Priority.MEDIUM
    start_date: datetime = field(default_factory=utc_now)
    end_date: Optional[datetime] = None
    progress: int = 0                      # percent, 0..100
    owner_id: str = ""
    team_members: Tuple[str, ...] = ()     # set semantics, first-seen order

    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "progress": self.progress,
            "owner_id": self.owner_id,
            "team_members": list(self.team_members),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        """
        Deserialize from dict.

        Payload fields go through the same checks as create_project, so a
        stored record with e.g. progress=500 is rejected, not loaded.
        """
        from .validation import FieldValidator, PROJECT_FIELDS, check_date_range

        payload = {k: v for k, v in data.items() if k in PROJECT_FIELDS}
        fields = FieldValidator().validate(payload, PROJECT_FIELDS)
        fields.setdefault("start_date", utc_now())
        check_date_range(fields["start_date"], fields.get("end_date"))
        return cls(
            id=data["id"],
            created_at=to_utc(data.get("created_at")) or utc_now(),
            updated_at=to_utc(data.get("updated_at")) or utc_now(),
            **fields,
        )


def is_overdue(task: "Task", now: datetime) -> bool:
    """Due date present, already passed, and the task is not completed."""
    return (
        task.due_date is not None
        and task.due_date < now
        and task.status != TaskStatus.COMPLETED
    )


@dataclass(frozen=True)
class Task:
    """A kanban task belonging to one project."""

    id: str
    title: str
    project_id: str
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: Priority = Priority.MEDIUM
    assignee_id: Optional[str] = None
    due_date: Optional[datetime] = None
    tags: Tuple[str, ...] = ()

    # Owned children, removed together with the task
    attachments: Tuple[Attachment, ...] = ()
    comments: Tuple[Comment, ...] = ()

    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def is_overdue(self, now: datetime) -> bool:
        return is_overdue(self, now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "assignee_id": self.assignee_id,
            "project_id": self.project_id,
            "due_date": _iso(self.due_date),
            "tags": list(self.tags),
            "attachments": [a.to_dict() for a in self.attachments],
            "comments": [c.to_dict() for c in self.comments],
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Deserialize from dict, validating payload fields like create_task."""
        from .validation import FieldValidator, TASK_FIELDS

        payload = {k: v for k, v in data.items() if k in TASK_FIELDS}
        fields = FieldValidator().validate(payload, TASK_FIELDS)
        return cls(
            id=data["id"],
            attachments=tuple(Attachment.from_dict(a) for a in data.get("attachments", [])),
            comments=tuple(Comment.from_dict(c) for c in data.get("comments", [])),
            created_at=to_utc(data.get("created_at")) or utc_now(),
            updated_at=to_utc(data.get("updated_at")) or utc_now(),
            **fields,
        )


@dataclass(frozen=True)
class DashboardStats:
    """Derived dashboard counters. Recomputed, never stored."""
    total_projects: int = 0
    active_projects: int = 0
    completed_tasks: int = 0
    pending_tasks: int = 0
    overdue_tasks: int = 0
    team_members: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalProjects": self.total_projects,
            "activeProjects": self.active_projects,
            "completedTasks": self.completed_tasks,
            "pendingTasks": self.pending_tasks,
            "overdueTasks": self.overdue_tasks,
            "teamMembers": self.team_members,
        }

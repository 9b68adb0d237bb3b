"""
Entity store: sole owner of the Project and Task collections.

Every operation awaits one backend round trip. Local validation runs
before the round trip; existence and conflict checks are re-run after it,
together with the mutation and the subscriber fan-out, with no await in
between. Interleaved operations therefore never observe a half-applied
change, and a caller awaiting a mutation never sees listeners notified
with state older than its own change.
"""
import itertools
import logging
import time
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .backend import SimulatedBackend
from .errors import ConflictError, NotFoundError, ValidationError
from .schema import Attachment, Comment, Project, Task, to_utc, utc_now
from .validation import (
    FieldValidator,
    PROJECT_FIELDS,
    TASK_FIELDS,
    check_date_range,
)

logger = logging.getLogger(__name__)

_id_counter = itertools.count(1)


def make_entity_id(prefix: str) -> str:
    """
    Generate a unique, roughly sortable entity ID.

    ms timestamp + process-wide counter + random hex: the counter keeps ids
    distinct when many are minted inside the same millisecond.
    """
    ts = int(time.time() * 1000)
    seq = next(_id_counter)
    rand = uuid.uuid4().hex[:6]
    return f"{prefix}-{ts}-{seq:06d}-{rand}"


@dataclass(frozen=True)
class ChangeEvent:
    """Published to listeners after every successful mutation."""
    collection: str                              # "projects" | "tasks"
    action: str                                  # "created" | "updated" | "deleted"
    entity_id: str
    entity: Optional[Union[Project, Task]]       # None after delete
    previous: Optional[Union[Project, Task]]     # None after create
    items: Tuple[Union[Project, Task], ...]      # full collection snapshot
    detail: str = ""                             # e.g. "comment_added"


Listener = Callable[[ChangeEvent], None]


class EntityStore:
    """Async store for projects and tasks with change notification."""

    def __init__(self, backend: Optional[SimulatedBackend] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.backend = backend if backend is not None else SimulatedBackend()
        self._clock = clock or utc_now
        self.validator = FieldValidator()

        self._projects: Dict[str, Project] = {}
        self._tasks: Dict[str, Task] = {}
        self._listeners: List[Listener] = []
        self._current_project_id: Optional[str] = None
        self._pending_reads = 0

    # ──────────────────────────────────────────
    # Subscription
    # ──────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unregisters it."""
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _publish(self, collection: str, action: str, entity_id: str,
                 entity=None, previous=None, detail: str = "") -> None:
        items = self.projects if collection == "projects" else self.tasks
        event = ChangeEvent(
            collection=collection,
            action=action,
            entity_id=entity_id,
            entity=entity,
            previous=previous,
            items=items,
            detail=detail,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    f"Listener {listener!r} failed on {collection}.{action} ({entity_id})"
                )

    # ──────────────────────────────────────────
    # Synchronous snapshots
    # ──────────────────────────────────────────

    @property
    def projects(self) -> Tuple[Project, ...]:
        return tuple(self._projects.values())

    @property
    def tasks(self) -> Tuple[Task, ...]:
        return tuple(self._tasks.values())

    @property
    def is_loading(self) -> bool:
        return self._pending_reads > 0

    @property
    def current_project(self) -> Optional[Project]:
        if self._current_project_id is None:
            return None
        return self._projects.get(self._current_project_id)

    def get_project(self, project_id: str) -> Optional[Project]:
        return self._projects.get(project_id)

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def set_current_project(self, project_id: Optional[str]) -> Optional[Project]:
        """Select the project the presentation is focused on (None clears)."""
        if project_id is None:
            self._current_project_id = None
            return None
        project = self._require_project(project_id)
        self._current_project_id = project_id
        return project

    # ──────────────────────────────────────────
    # Helpers
    # ──────────────────────────────────────────

    def _now(self) -> datetime:
        return to_utc(self._clock())

    def _stamp(self, previous: datetime) -> datetime:
        """updated_at never moves backwards."""
        return max(self._now(), previous)

    def _require_project(self, project_id: str) -> Project:
        project = self._projects.get(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        return project

    def _require_task(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found")
        return task

    def _task_ids_for(self, project_id: str) -> List[str]:
        return [t.id for t in self._tasks.values() if t.project_id == project_id]

    def _check_version(self, entity, expected_updated_at) -> None:
        if expected_updated_at is None:
            return
        expected = to_utc(expected_updated_at, "expected_updated_at")
        if entity.updated_at != expected:
            raise ConflictError(
                f"{type(entity).__name__} {entity.id} was modified at "
                f"{entity.updated_at.isoformat()}, expected {expected.isoformat()}"
            )

    def _merge_project(self, project: Project, fields: Dict[str, Any]) -> Project:
        merged = replace(project, **fields)
        check_date_range(merged.start_date, merged.end_date)
        return merged

    # ──────────────────────────────────────────
    # Reads
    # ──────────────────────────────────────────

    async def list_projects(self) -> Tuple[Project, ...]:
        """All projects, in creation order."""
        self._pending_reads += 1
        try:
            await self.backend.round_trip("list_projects")
        finally:
            self._pending_reads -= 1
        return self.projects

    async def list_tasks(self, project_id: Optional[str] = None) -> Tuple[Task, ...]:
        """All tasks, or only those whose project_id matches."""
        self._pending_reads += 1
        try:
            await self.backend.round_trip("list_tasks", project_id)
        finally:
            self._pending_reads -= 1
        if project_id is None:
            return self.tasks
        return tuple(t for t in self._tasks.values() if t.project_id == project_id)

    # ──────────────────────────────────────────
    # Projects
    # ──────────────────────────────────────────

    async def create_project(self, data: Dict[str, Any]) -> Project:
        """
        Create a project from caller data (no id or timestamps).

        Raises:
            ValidationError: empty name, start_date after end_date, bad values.
            TransientError: the round trip failed; nothing was created.
        """
        fields = self.validator.validate(data, PROJECT_FIELDS)
        if "start_date" not in fields:
            fields["start_date"] = self._now()
            end = fields.get("end_date")
            if end is not None and end < fields["start_date"]:
                raise ValidationError(
                    f"end_date {end.isoformat()} is in the past and start_date "
                    f"defaults to now; pass a start_date on or before end_date"
                )
        check_date_range(fields["start_date"], fields.get("end_date"))

        await self.backend.round_trip("create_project")

        now = self._now()
        project = Project(
            id=make_entity_id("prj"),
            created_at=now,
            updated_at=now,
            **fields,
        )
        self._projects[project.id] = project
        logger.info(f"Project created: {project.id} ({project.name})")
        self._publish("projects", "created", project.id, entity=project)
        return project

    async def update_project(self, project_id: str, patch: Dict[str, Any],
                             expected_updated_at=None) -> Project:
        """
        Merge patch over an existing project. Only provided fields change.

        expected_updated_at, when given, must match the stored updated_at
        (optimistic concurrency); otherwise ConflictError.
        """
        fields = self.validator.validate(patch, PROJECT_FIELDS, partial=True)
        self._merge_project(self._require_project(project_id), fields)

        await self.backend.round_trip("update_project", project_id)

        previous = self._require_project(project_id)
        self._check_version(previous, expected_updated_at)
        updated = replace(
            self._merge_project(previous, fields),
            updated_at=self._stamp(previous.updated_at),
        )
        self._projects[project_id] = updated
        logger.info(f"Project updated: {project_id} fields={sorted(fields)}")
        self._publish("projects", "updated", project_id, entity=updated, previous=previous)
        return updated

    async def delete_project(self, project_id: str) -> Project:
        """
        Delete a project.

        Raises:
            NotFoundError: no such project.
            ConflictError: tasks still reference it; delete or move them first.
        """
        self._check_deletable(project_id)

        await self.backend.round_trip("delete_project", project_id)

        project = self._check_deletable(project_id)
        del self._projects[project_id]
        if self._current_project_id == project_id:
            self._current_project_id = None
        logger.info(f"Project deleted: {project_id}")
        self._publish("projects", "deleted", project_id, previous=project)
        return project

    def _check_deletable(self, project_id: str) -> Project:
        project = self._require_project(project_id)
        dependents = self._task_ids_for(project_id)
        if dependents:
            raise ConflictError(
                f"Project {project_id} still has {len(dependents)} task(s); "
                f"delete or reassign them first"
            )
        return project

    # ──────────────────────────────────────────
    # Tasks
    # ──────────────────────────────────────────

    async def create_task(self, data: Dict[str, Any]) -> Task:
        """
        Create a task inside an existing project.

        Raises:
            ValidationError: empty title or bad values.
            NotFoundError: project_id does not reference a project.
        """
        fields = self.validator.validate(data, TASK_FIELDS)
        self._require_project(fields["project_id"])

        await self.backend.round_trip("create_task")

        self._require_project(fields["project_id"])
        now = self._now()
        task = Task(
            id=make_entity_id("tsk"),
            created_at=now,
            updated_at=now,
            **fields,
        )
        self._tasks[task.id] = task
        logger.info(f"Task created: {task.id} ({task.title}) in {task.project_id}")
        self._publish("tasks", "created", task.id, entity=task)
        return task

    async def update_task(self, task_id: str, patch: Dict[str, Any],
                          expected_updated_at=None) -> Task:
        """
        Merge patch over an existing task. A status patch is how the kanban
        board moves cards between columns.
        """
        fields = self.validator.validate(patch, TASK_FIELDS, partial=True)
        self._require_task(task_id)
        if "project_id" in fields:
            self._require_project(fields["project_id"])

        await self.backend.round_trip("update_task", task_id)

        previous = self._require_task(task_id)
        if "project_id" in fields:
            self._require_project(fields["project_id"])
        self._check_version(previous, expected_updated_at)
        updated = replace(previous, updated_at=self._stamp(previous.updated_at), **fields)
        self._tasks[task_id] = updated
        if previous.status != updated.status:
            logger.info(
                f"Task {task_id} moved {previous.status.value} → {updated.status.value}"
            )
        else:
            logger.info(f"Task updated: {task_id} fields={sorted(fields)}")
        self._publish("tasks", "updated", task_id, entity=updated, previous=previous)
        return updated

    async def delete_task(self, task_id: str) -> Task:
        """Delete a task together with its comments and attachments."""
        self._require_task(task_id)

        await self.backend.round_trip("delete_task", task_id)

        task = self._require_task(task_id)
        del self._tasks[task_id]
        logger.info(
            f"Task deleted: {task_id} "
            f"(with {len(task.comments)} comment(s), {len(task.attachments)} attachment(s))"
        )
        self._publish("tasks", "deleted", task_id, previous=task)
        return task

    async def add_comment(self, task_id: str, content: str, author_id: str = "") -> Comment:
        """Append a comment to a task."""
        if not content or not str(content).strip():
            raise ValidationError("Comment content cannot be empty")
        self._require_task(task_id)

        await self.backend.round_trip("add_comment", task_id)

        previous = self._require_task(task_id)
        now = self._stamp(previous.updated_at)
        comment = Comment(
            id=make_entity_id("cmt"),
            content=str(content),
            author_id=author_id,
            task_id=task_id,
            created_at=now,
            updated_at=now,
        )
        updated = replace(previous, comments=previous.comments + (comment,), updated_at=now)
        self._tasks[task_id] = updated
        logger.info(f"Comment {comment.id} added to {task_id}")
        self._publish("tasks", "updated", task_id, entity=updated, previous=previous,
                      detail="comment_added")
        return comment

    async def add_attachment(self, task_id: str, name: str, size: int = 0,
                             content_type: str = "", url: str = "",
                             uploaded_by: str = "") -> Attachment:
        """Append attachment metadata to a task."""
        if not name or not str(name).strip():
            raise ValidationError("Attachment name cannot be empty")
        if isinstance(size, bool) or not isinstance(size, int) or size < 0:
            raise ValidationError(f"Attachment size must be a non-negative integer, got: {size!r}")
        self._require_task(task_id)

        await self.backend.round_trip("add_attachment", task_id)

        previous = self._require_task(task_id)
        now = self._stamp(previous.updated_at)
        attachment = Attachment(
            id=make_entity_id("att"),
            name=str(name),
            size=size,
            content_type=content_type,
            url=url,
            uploaded_by=uploaded_by,
            uploaded_at=now,
        )
        updated = replace(
            previous, attachments=previous.attachments + (attachment,), updated_at=now
        )
        self._tasks[task_id] = updated
        logger.info(f"Attachment {attachment.id} ({attachment.name}) added to {task_id}")
        self._publish("tasks", "updated", task_id, entity=updated, previous=previous,
                      detail="attachment_added")
        return attachment

"""
Tests for the entity schema and payload validation.
"""
from datetime import date, datetime, timedelta, timezone

import pytest

from pkg.taskboard.errors import ValidationError
from pkg.taskboard.schema import (
    Attachment,
    Comment,
    DashboardStats,
    Priority,
    Project,
    ProjectStatus,
    Task,
    TaskStatus,
    is_overdue,
    to_utc,
    unique,
)
from pkg.taskboard.validation import FieldValidator, PROJECT_FIELDS, TASK_FIELDS

NOW = datetime(2024, 2, 22, 12, 0, tzinfo=timezone.utc)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Enums & coercion helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_task_status_board_order():
    """Columns are declared in board order"""
    assert [s.value for s in TaskStatus] == ["todo", "in-progress", "review", "completed"]


def test_enum_parse_accepts_value_and_member():
    assert TaskStatus.parse("in-progress") is TaskStatus.IN_PROGRESS
    assert ProjectStatus.parse(ProjectStatus.ON_HOLD) is ProjectStatus.ON_HOLD
    assert Priority.parse("urgent") is Priority.URGENT


def test_enum_parse_rejects_unknown():
    with pytest.raises(ValidationError) as exc:
        TaskStatus.parse("done")
    assert "Allowed" in str(exc.value)


def test_to_utc_variants():
    """Naive datetimes are UTC, dates are midnight UTC, ISO strings parse"""
    assert to_utc(datetime(2024, 1, 1, 8, 30)) == datetime(2024, 1, 1, 8, 30, tzinfo=timezone.utc)
    assert to_utc(date(2024, 1, 15)) == datetime(2024, 1, 15, tzinfo=timezone.utc)
    assert to_utc("2024-01-15T10:00:00Z") == datetime(2024, 1, 15, 10, tzinfo=timezone.utc)
    plus_two = datetime(2024, 1, 1, 12, tzinfo=timezone(timedelta(hours=2)))
    assert to_utc(plus_two) == datetime(2024, 1, 1, 10, tzinfo=timezone.utc)
    assert to_utc(None) is None


def test_to_utc_rejects_garbage():
    with pytest.raises(ValidationError):
        to_utc("next tuesday", "due_date")
    with pytest.raises(ValidationError):
        to_utc(42, "due_date")


def test_unique_keeps_first_seen_order():
    assert unique(["b", "a", "b", "c", "a"]) == ("b", "a", "c")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Entities
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_task_defaults():
    task = Task(id="tsk-1", title="Write docs", project_id="prj-1")
    assert task.status == TaskStatus.TODO
    assert task.priority == Priority.MEDIUM
    assert task.comments == ()
    assert task.attachments == ()


def test_entities_are_immutable():
    task = Task(id="tsk-1", title="Write docs", project_id="prj-1")
    with pytest.raises(Exception):
        task.status = TaskStatus.COMPLETED


def test_task_serialization():
    """to_dict and from_dict round-trip, children included"""
    comment = Comment(id="cmt-1", content="Looks good", author_id="2", task_id="tsk-1")
    attachment = Attachment(id="att-1", name="wireframes.pdf", size=1024, content_type="application/pdf")
    task = Task(
        id="tsk-1",
        title="Write docs",
        project_id="prj-1",
        status=TaskStatus.REVIEW,
        due_date=NOW,
        tags=("docs", "api"),
        comments=(comment,),
        attachments=(attachment,),
    )

    data = task.to_dict()
    assert data["status"] == "review"
    assert data["tags"] == ["docs", "api"]
    assert data["attachments"][0]["type"] == "application/pdf"
    assert data["due_date"] == NOW.isoformat()

    restored = Task.from_dict(data)
    assert restored == task


def test_project_serialization():
    project = Project(
        id="prj-1",
        name="Website Redesign",
        status=ProjectStatus.ON_HOLD,
        priority=Priority.HIGH,
        start_date=NOW,
        team_members=("1", "2"),
    )
    data = project.to_dict()
    assert data["status"] == "on-hold"
    assert data["end_date"] is None
    assert Project.from_dict(data) == project


@pytest.mark.parametrize("changes", [
    {"progress": 500},
    {"name": ""},
    {"status": "archived"},
    {"end_date": "2000-01-01"},
])
def test_project_from_dict_validates_fields(changes):
    data = Project(id="prj-1", name="Website Redesign", start_date=NOW).to_dict()
    data.update(changes)
    with pytest.raises(ValidationError):
        Project.from_dict(data)


@pytest.mark.parametrize("changes", [
    {"title": "   "},
    {"priority": "someday"},
    {"tags": "docs"},
])
def test_task_from_dict_validates_fields(changes):
    data = Task(id="tsk-1", title="Write docs", project_id="prj-1").to_dict()
    data.update(changes)
    with pytest.raises(ValidationError):
        Task.from_dict(data)


def test_dashboard_stats_camel_case_keys():
    stats = DashboardStats(total_projects=3, overdue_tasks=1)
    data = stats.to_dict()
    assert data["totalProjects"] == 3
    assert data["overdueTasks"] == 1
    assert set(data) == {
        "totalProjects", "activeProjects", "completedTasks",
        "pendingTasks", "overdueTasks", "teamMembers",
    }


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Overdue predicate
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestOverdue:

    def _task(self, **kw):
        return Task(id="tsk-1", title="T", project_id="prj-1", **kw)

    def test_past_due_open_task_is_overdue(self):
        assert is_overdue(self._task(due_date=NOW - timedelta(days=1)), NOW)

    def test_completed_task_is_never_overdue(self):
        task = self._task(due_date=NOW - timedelta(days=1), status=TaskStatus.COMPLETED)
        assert not is_overdue(task, NOW)

    def test_no_due_date_is_not_overdue(self):
        assert not is_overdue(self._task(), NOW)

    def test_due_exactly_now_is_not_overdue(self):
        assert not self._task(due_date=NOW).is_overdue(NOW)

    def test_future_due_date_is_not_overdue(self):
        assert not is_overdue(self._task(due_date=NOW + timedelta(hours=1)), NOW)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# FieldValidator
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestFieldValidator:

    def setup_method(self):
        self.v = FieldValidator()

    def test_project_defaults_applied(self):
        result = self.v.validate({"name": "P"}, PROJECT_FIELDS)
        assert result["status"] == ProjectStatus.ACTIVE
        assert result["priority"] == Priority.MEDIUM
        assert result["progress"] == 0
        assert result["team_members"] == ()
        assert "start_date" not in result

    def test_partial_leaves_missing_fields_out(self):
        result = self.v.validate({"progress": "40"}, PROJECT_FIELDS, partial=True)
        assert result == {"progress": 40}

    def test_missing_required_raises(self):
        with pytest.raises(ValidationError, match="Missing required field: name"):
            self.v.validate({}, PROJECT_FIELDS)

    @pytest.mark.parametrize("name", ["", "   "])
    def test_empty_name_raises(self, name):
        with pytest.raises(ValidationError, match="cannot be empty"):
            self.v.validate({"name": name}, PROJECT_FIELDS)

    @pytest.mark.parametrize("progress", [-1, 101, "abc", 12.5, True])
    def test_progress_out_of_range_or_not_integer(self, progress):
        with pytest.raises(ValidationError):
            self.v.validate({"name": "P", "progress": progress}, PROJECT_FIELDS)

    def test_progress_bounds_inclusive(self):
        assert self.v.validate({"name": "P", "progress": 100}, PROJECT_FIELDS)["progress"] == 100
        assert self.v.validate({"name": "P", "progress": 0}, PROJECT_FIELDS)["progress"] == 0

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError, match="Unknown fields: colour"):
            self.v.validate({"name": "P", "colour": "red"}, PROJECT_FIELDS)

    @pytest.mark.parametrize("owned", ["id", "created_at", "updated_at"])
    def test_store_owned_fields_rejected(self, owned):
        with pytest.raises(ValidationError, match="cannot be set"):
            self.v.validate({"title": "T", "project_id": "p", owned: "x"}, TASK_FIELDS)

    def test_task_nullable_fields(self):
        result = self.v.validate(
            {"assignee_id": None, "due_date": None}, TASK_FIELDS, partial=True
        )
        assert result == {"assignee_id": None, "due_date": None}

    def test_start_date_cannot_be_cleared(self):
        with pytest.raises(ValidationError):
            self.v.validate({"start_date": None}, PROJECT_FIELDS, partial=True)
        with pytest.raises(ValidationError):
            self.v.validate({"start_date": ""}, PROJECT_FIELDS, partial=True)

    def test_tags_deduplicated(self):
        result = self.v.validate(
            {"title": "T", "project_id": "p", "tags": ["ui", "api", "ui"]}, TASK_FIELDS
        )
        assert result["tags"] == ("ui", "api")

    def test_tags_as_string_rejected(self):
        with pytest.raises(ValidationError):
            self.v.validate({"title": "T", "project_id": "p", "tags": "ui"}, TASK_FIELDS)

    def test_bad_status_rejected(self):
        with pytest.raises(ValidationError):
            self.v.validate({"title": "T", "project_id": "p", "status": "doing"}, TASK_FIELDS)

    def test_non_mapping_rejected(self):
        with pytest.raises(ValidationError):
            self.v.validate(["name"], PROJECT_FIELDS)

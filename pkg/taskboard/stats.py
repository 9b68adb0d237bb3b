"""
Dashboard aggregates and derived board views.

Pure functions over entity snapshots. "now" is always passed in, so the
same inputs give the same answer.
"""
from datetime import datetime
from typing import Dict, Iterable, Optional, Sequence, Tuple, Union

from .schema import (
    DashboardStats,
    Project,
    ProjectStatus,
    Task,
    TaskStatus,
    is_overdue,
    to_utc,
)


def compute_stats(projects: Iterable[Project], tasks: Iterable[Task],
                  now: datetime) -> DashboardStats:
    """
    Count dashboard figures in one pass over each collection.

    team_members is the size of the union of every project's team, not the
    set of task assignees.
    """
    now = to_utc(now, "now")

    total_projects = 0
    active_projects = 0
    members = set()
    for project in projects:
        total_projects += 1
        if project.status == ProjectStatus.ACTIVE:
            active_projects += 1
        members.update(project.team_members)

    completed = 0
    pending = 0
    overdue = 0
    for task in tasks:
        if task.status == TaskStatus.COMPLETED:
            completed += 1
        else:
            pending += 1
        if is_overdue(task, now):
            overdue += 1

    return DashboardStats(
        total_projects=total_projects,
        active_projects=active_projects,
        completed_tasks=completed,
        pending_tasks=pending,
        overdue_tasks=overdue,
        team_members=len(members),
    )


def group_by_status(tasks: Iterable[Task]) -> Dict[TaskStatus, Tuple[Task, ...]]:
    """Kanban columns in board order; every column present, input order kept."""
    columns = {status: [] for status in TaskStatus}
    for task in tasks:
        columns[task.status].append(task)
    return {status: tuple(items) for status, items in columns.items()}


def search_tasks(tasks: Sequence[Task], term: str = "") -> Tuple[Task, ...]:
    """Case-insensitive match on title or description."""
    needle = (term or "").strip().lower()
    if not needle:
        return tuple(tasks)
    return tuple(
        t for t in tasks
        if needle in t.title.lower() or needle in t.description.lower()
    )


def filter_projects(projects: Sequence[Project], term: str = "",
                    status: Optional[Union[ProjectStatus, str]] = None) -> Tuple[Project, ...]:
    """Search name/description and optionally keep a single status ("all" = any)."""
    needle = (term or "").strip().lower()
    wanted = None
    if status is not None and status != "all":
        wanted = ProjectStatus.parse(status)

    result = []
    for p in projects:
        if needle and needle not in p.name.lower() and needle not in p.description.lower():
            continue
        if wanted is not None and p.status != wanted:
            continue
        result.append(p)
    return tuple(result)

"""
Activity log: an audit trail of store changes.

Subscribes to the EntityStore and records one entry per change, tagged
with the session's acting user. Entries stay in memory for the activity
feed and, when a path is given, are appended as JSON lines.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .schema import TaskStatus, utc_now
from .session import Session
from .store import ChangeEvent, EntityStore, make_entity_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActivityEntry:
    """One recorded action."""
    id: str
    action: str
    entity_type: str                 # "project" | "task"
    entity_id: str
    user_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
        }


def describe(event: ChangeEvent) -> List[Dict[str, Any]]:
    """
    Map a change event to (action, metadata) records.

    A status change yields task_status_changed, plus task_completed when
    the new column is completed.
    """
    entity_type = "project" if event.collection == "projects" else "task"

    if event.detail:
        return [{"action": event.detail, "metadata": {}}]

    if event.action != "updated":
        name = event.entity or event.previous
        label = getattr(name, "name", None) or getattr(name, "title", "")
        return [{"action": f"{entity_type}_{event.action}", "metadata": {"label": label}}]

    if (
        entity_type == "task"
        and event.previous is not None
        and event.entity is not None
        and event.previous.status != event.entity.status
    ):
        records = [{
            "action": "task_status_changed",
            "metadata": {
                "from_status": event.previous.status.value,
                "to_status": event.entity.status.value,
            },
        }]
        if event.entity.status == TaskStatus.COMPLETED:
            records.append({"action": "task_completed", "metadata": {"label": event.entity.title}})
        return records

    return [{"action": f"{entity_type}_updated", "metadata": {}}]


class ActivityRecorder:
    """Records store changes as ActivityEntry rows (optionally to .jsonl)."""

    def __init__(self, store: EntityStore, session: Optional[Session] = None,
                 log_path: Optional[Path] = None):
        self.session = session or Session()
        self.log_path = Path(log_path) if log_path else None
        if self.log_path is not None:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.entries: List[ActivityEntry] = []
        self._unsubscribe: Optional[Callable[[], None]] = store.subscribe(self.record)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def record(self, event: ChangeEvent) -> List[ActivityEntry]:
        entity_type = "project" if event.collection == "projects" else "task"
        created = []
        for rec in describe(event):
            entry = ActivityEntry(
                id=make_entity_id("act"),
                action=rec["action"],
                entity_type=entity_type,
                entity_id=event.entity_id,
                user_id=self.session.current_user_id,
                metadata=rec["metadata"],
            )
            self.entries.append(entry)
            self._write(entry)
            created.append(entry)
        return created

    def recent(self, limit: int = 10) -> List[ActivityEntry]:
        """Newest first."""
        return list(reversed(self.entries[-limit:])) if limit > 0 else []

    def _write(self, entry: ActivityEntry) -> None:
        if self.log_path is None:
            return
        data = {k: v for k, v in entry.to_dict().items() if v is not None}
        try:
            with open(self.log_path, "a") as f:
                f.write(json.dumps(data, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.error(f"Failed to write activity log: {e}")

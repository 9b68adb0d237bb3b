"""
Kanban board: turns a drag gesture into at most one task status change.

Gesture lifecycle:
  Idle → Dragging → Dropped → Committing → Idle
                                         ↘ Reverted → Idle   (commit failed)
  Dragging/Dropped → Idle                 (cancel, no target, same column)

Only one gesture is live at a time. Once Committing starts, the store
call runs to completion; cancelling the task awaiting drop() does not
abort it, and the board still settles when the store answers.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union

from .errors import DragRejected, NotFoundError, TaskboardError, ValidationError
from .schema import Task, TaskStatus
from .store import ChangeEvent, EntityStore

logger = logging.getLogger(__name__)


class DragPhase(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"        # task detached from its column, store untouched
    DROPPED = "dropped"          # released over a valid column
    COMMITTING = "committing"    # update_task in flight
    REVERTED = "reverted"        # commit failed, card goes back


class DropOutcome(Enum):
    COMMITTED = "committed"
    NOOP = "noop"
    REVERTED = "reverted"


ALLOWED_NEXT = {
    DragPhase.IDLE: [DragPhase.DRAGGING],
    DragPhase.DRAGGING: [DragPhase.DROPPED, DragPhase.IDLE],
    DragPhase.DROPPED: [DragPhase.COMMITTING, DragPhase.IDLE],
    DragPhase.COMMITTING: [DragPhase.IDLE, DragPhase.REVERTED],
    DragPhase.REVERTED: [DragPhase.IDLE],
}


@dataclass(frozen=True)
class BoardState:
    """What the presentation needs to draw the gesture."""
    phase: DragPhase = DragPhase.IDLE
    task_id: Optional[str] = None
    source_status: Optional[TaskStatus] = None
    target_status: Optional[TaskStatus] = None
    error: Optional[TaskboardError] = None


@dataclass(frozen=True)
class DropResult:
    outcome: DropOutcome
    task: Optional[Task] = None
    error: Optional[TaskboardError] = None

    @property
    def committed(self) -> bool:
        return self.outcome == DropOutcome.COMMITTED


StateListener = Callable[[BoardState], None]


class KanbanBoard:
    """Drag-and-drop transition controller over an EntityStore."""

    def __init__(self, store: EntityStore):
        self.store = store
        self._state = BoardState()
        self._listeners: List[StateListener] = []
        self._commit_observed = False
        self._unsubscribe_store = store.subscribe(self._on_store_change)

    def close(self) -> None:
        """Stop listening to the store."""
        self._unsubscribe_store()

    # ──────────────────────────────────────────
    # State + subscription
    # ──────────────────────────────────────────

    @property
    def state(self) -> BoardState:
        return self._state

    @property
    def phase(self) -> DragPhase:
        return self._state.phase

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener. Returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _transition(self, new_state: BoardState) -> None:
        current = self._state.phase
        if new_state.phase not in ALLOWED_NEXT[current]:
            raise DragRejected(
                f"Cannot go from {current.value} to {new_state.phase.value}"
            )
        self._state = new_state
        logger.debug(
            f"Board {current.value} → {new_state.phase.value} (task={new_state.task_id})"
        )
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception(f"Board listener {listener!r} failed on {new_state.phase.value}")

    def _to_idle(self) -> None:
        self._transition(BoardState())

    def _on_store_change(self, event: ChangeEvent) -> None:
        st = self._state
        if (
            st.phase == DragPhase.COMMITTING
            and event.collection == "tasks"
            and event.entity_id == st.task_id
            and event.entity is not None
            and event.entity.status == st.target_status
        ):
            self._commit_observed = True

    # ──────────────────────────────────────────
    # Gesture operations
    # ──────────────────────────────────────────

    def begin_drag(self, task_id: str) -> Task:
        """
        Pick up a task.

        Raises:
            DragRejected: another gesture is still live (wait for idle).
            NotFoundError: no such task in the store.
        """
        if self._state.phase != DragPhase.IDLE:
            raise DragRejected(
                f"Drag of {self._state.task_id} is {self._state.phase.value}; "
                f"wait until the board is idle"
            )
        task = self.store.get_task(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found")

        self._transition(BoardState(
            phase=DragPhase.DRAGGING,
            task_id=task.id,
            source_status=task.status,
        ))
        return task

    def cancel_drag(self) -> bool:
        """
        Abandon the gesture before commit. Returns False if nothing was live.

        Raises:
            DragRejected: the commit already started.
        """
        phase = self._state.phase
        if phase == DragPhase.IDLE:
            return False
        if phase not in (DragPhase.DRAGGING, DragPhase.DROPPED):
            raise DragRejected(f"Cannot cancel while {phase.value}")
        logger.debug(f"Drag of {self._state.task_id} cancelled")
        self._to_idle()
        return True

    async def drop(self, target_status: Optional[Union[TaskStatus, str]]) -> DropResult:
        """
        Release the dragged task over a column.

        None or an unknown column means "no valid target" and cancels.
        Dropping on the task's own column is a no-op with no store call.
        A failed commit drives the board through Reverted back to Idle and
        returns the failure; the stored task is left untouched.
        """
        st = self._state
        if st.phase != DragPhase.DRAGGING:
            raise DragRejected(f"No drag to drop (board is {st.phase.value})")

        target = _parse_column(target_status)
        task = self.store.get_task(st.task_id)
        if target is None:
            self._to_idle()
            return DropResult(DropOutcome.NOOP, task)

        self._transition(BoardState(
            phase=DragPhase.DROPPED,
            task_id=st.task_id,
            source_status=st.source_status,
            target_status=target,
        ))
        if self._state.phase != DragPhase.DROPPED:
            # a listener cancelled the gesture on Dropped
            return DropResult(DropOutcome.NOOP, task)

        current = task.status if task is not None else st.source_status
        if current == target:
            logger.debug(f"Task {st.task_id} dropped on its own column ({target.value})")
            self._to_idle()
            return DropResult(DropOutcome.NOOP, task)

        self._commit_observed = False
        self._transition(BoardState(
            phase=DragPhase.COMMITTING,
            task_id=st.task_id,
            source_status=st.source_status,
            target_status=target,
        ))

        commit = asyncio.ensure_future(self.store.update_task(st.task_id, {"status": target}))
        try:
            updated = await asyncio.shield(commit)
        except TaskboardError as e:
            return self._revert(e)
        except asyncio.CancelledError:
            logger.info(f"Caller stopped waiting on the commit of {st.task_id}; it keeps running")
            commit.add_done_callback(self._settle_detached)
            raise
        except Exception:
            logger.error(f"Commit of {st.task_id} aborted unexpectedly")
            self._to_idle()
            raise

        return self._complete(updated)

    def _complete(self, updated: Task) -> DropResult:
        st = self._state
        if not self._commit_observed:
            logger.warning(f"Commit of {st.task_id} finished without a change notification")
        logger.info(
            f"Task {st.task_id} dragged {st.source_status.value} → {st.target_status.value}"
        )
        self._to_idle()
        return DropResult(DropOutcome.COMMITTED, updated)

    def _settle_detached(self, commit: "asyncio.Future[Task]") -> None:
        """Finish a gesture whose drop() caller was cancelled mid-commit."""
        if commit.cancelled():
            logger.warning(f"Commit of {self._state.task_id} was cancelled")
            self._to_idle()
            return
        error = commit.exception()
        if error is None:
            self._complete(commit.result())
        elif isinstance(error, TaskboardError):
            self._revert(error)
        else:
            logger.error(f"Commit of {self._state.task_id} failed: {error!r}")
            self._to_idle()

    def _revert(self, error: TaskboardError) -> DropResult:
        st = self._state
        logger.warning(
            f"Drag of {st.task_id} to {st.target_status.value} reverted: {error}"
        )
        self._transition(BoardState(
            phase=DragPhase.REVERTED,
            task_id=st.task_id,
            source_status=st.source_status,
            target_status=st.target_status,
            error=error,
        ))
        self._to_idle()
        return DropResult(DropOutcome.REVERTED, self.store.get_task(st.task_id), error)

    # ──────────────────────────────────────────
    # Rendering helpers
    # ──────────────────────────────────────────

    @property
    def dragged_task(self) -> Optional[Task]:
        """The detached task while it is being dragged."""
        if self._state.phase in (DragPhase.DRAGGING, DragPhase.DROPPED):
            return self.store.get_task(self._state.task_id)
        return None

    def columns(self) -> Dict[TaskStatus, Tuple[Task, ...]]:
        """
        Column membership as the board should draw it right now.

        The dragged task is left out while held, and shown in its target
        column while the commit is in flight.
        """
        st = self._state
        cols: Dict[TaskStatus, list] = {status: [] for status in TaskStatus}
        for task in self.store.tasks:
            if task.id == st.task_id:
                if st.phase in (DragPhase.DRAGGING, DragPhase.DROPPED):
                    continue
                if st.phase == DragPhase.COMMITTING:
                    cols[st.target_status].append(task)
                    continue
            cols[task.status].append(task)
        return {status: tuple(items) for status, items in cols.items()}


def _parse_column(value: Optional[Union[TaskStatus, str]]) -> Optional[TaskStatus]:
    if value is None:
        return None
    try:
        return TaskStatus.parse(value)
    except ValidationError:
        logger.debug(f"Ignoring drop on unknown column {value!r}")
        return None

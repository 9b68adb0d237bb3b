# Taskboard core: project/task state, dashboard aggregates, kanban drag protocol
#
# Components:
#   schema.py     - Data model (Project, Task, Comment, Attachment, DashboardStats)
#   errors.py     - Error kinds surfaced by every operation
#   validation.py - Field schemas, payload validation and coercion
#   backend.py    - Simulated remote round trip (latency, failure injection)
#   store.py      - EntityStore: async CRUD, snapshots, change notification
#   stats.py      - Dashboard aggregates and derived views (columns, search)
#   board.py      - KanbanBoard: drag gesture state machine with rollback
#   session.py    - Acting user accessor
#   activity.py   - Activity log recorder (JSONL audit trail)
#   config.py     - YAML configuration
#   seed.py       - YAML sample workspace loader

"""
Task subsystem.

Components:
- task_models.py: data structures (Task, RecurrenceType, TaskPriority) and the date codec
- recurrence.py: recurrence engine (window generation, refill, series update/delete/lookup)
- task_store.py: SQLite-backed storage implementing the TaskRepo port
- task_scheduler.py: polling scheduler that keeps every series window topped up
- task_api.py: small high-level helpers used by user-facing flows
"""

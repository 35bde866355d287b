"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskState, Trigger, ControlAction)
- task_store.py: SQLite-backed storage with an in-process cache
- timefmt.py: relative-time markers and deadline parsing
- presentation.py: pure task -> (embed, controls) rendering
- lifecycle.py: state machine and message side effects
- sweep.py: periodic reconciliation against the chat backend
"""

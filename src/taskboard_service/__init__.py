"""Taskboard service.

A task-management API: administrators create and assign tasks, assignees work
through checklists that drive task progress, and notifications are persisted
and pushed in real time to recipients who are currently connected.
"""

__version__ = "0.1.0"

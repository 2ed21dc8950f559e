"""Background service helpers for the OBS Metrics Bridge."""

from .task_supervisor import supervise_task

__all__ = ["supervise_task"]

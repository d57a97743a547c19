"""Run states for a navigation session."""

from __future__ import annotations

from enum import Enum


class RunState(Enum):
    """States for the session run-state machine.

    RUNNING is the initial state. STOPPED is absorbing.
    """

    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"

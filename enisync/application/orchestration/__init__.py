"""
Application Orchestration Package

Architectural Intent:
- Contains workflow orchestration components
- Convergence waits shared by every multi-step lifecycle operation
"""

from enisync.application.orchestration.convergence import (
    ConvergenceWaiter,
    PollResult,
    PollState,
    WaitReport,
    pending_on,
)

__all__ = ["ConvergenceWaiter", "PollResult", "PollState", "WaitReport", "pending_on"]

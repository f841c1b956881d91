"""AI Agents package."""

from pettycash.agents.ai_agents import (
    REPORT_FAILED,
    REPORT_NO_DATA,
    REPORT_NO_KEY,
    CategoryAgent,
    ReportAgent,
)

__all__ = [
    "REPORT_FAILED",
    "REPORT_NO_DATA",
    "REPORT_NO_KEY",
    "CategoryAgent",
    "ReportAgent",
]

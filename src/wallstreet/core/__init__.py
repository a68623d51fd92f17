"""Periodic settlement trigger."""

from wallstreet.core.scheduler import SettlementScheduler, TickReport, build_orchestrator

__all__ = ["SettlementScheduler", "TickReport", "build_orchestrator"]

"""
工单流程模块
"""

from .facade import WorkOrderFacade
from .orchestrator import WorkOrderOrchestrator
from .review import ReviewEngine

__all__ = ["WorkOrderFacade", "WorkOrderOrchestrator", "ReviewEngine"]

"""taskflow Core Workflow -- 状态机、权限、智能转换、状态联动与批量操作"""

from .batch import BatchCoordinator
from .cascade import CascadeEngine
from .event_log import EventLog
from .hierarchy import ancestors, is_subtask, leaf_first, task_depth
from .operations import OperationOutcome, TaskOperations
from .orchestrator import (
    REJECTED_TRANSITIONS,
    TRANSITION_PLAN,
    TransitionOrchestrator,
    plan_transition,
)
from .permissions import PermissionResolver
from .state_machine import StateMachine

__all__ = [
    "StateMachine",
    "PermissionResolver",
    "EventLog",
    "TaskOperations",
    "OperationOutcome",
    "CascadeEngine",
    "TransitionOrchestrator",
    "TRANSITION_PLAN",
    "REJECTED_TRANSITIONS",
    "plan_transition",
    "BatchCoordinator",
    "task_depth",
    "ancestors",
    "is_subtask",
    "leaf_first",
]

"""任务状态机 -- 纯流转合法性判断，无副作用

这是合法性的底线；TransitionOrchestrator 在其上叠加意图相关的业务规则。
"""

from ..errors import InvalidTransitionError
from ..models.enums import (
    STATUS_LABELS,
    TaskStatus,
    available_transitions,
    can_transition,
)


class StateMachine:
    """四状态有向流转表"""

    def can_transition(self, from_status: TaskStatus, to_status: TaskStatus) -> bool:
        return can_transition(from_status, to_status)

    def available_transitions(self, status: TaskStatus) -> frozenset[TaskStatus]:
        return available_transitions(status)

    def validate(self, from_status: TaskStatus, to_status: TaskStatus) -> None:
        """校验流转，不合法时抛出 InvalidTransitionError（附可选目标）"""
        if self.can_transition(from_status, to_status):
            return
        available = sorted(self.available_transitions(from_status))
        labels = ", ".join(STATUS_LABELS[s] for s in available)
        raise InvalidTransitionError(
            f"不能从「{STATUS_LABELS[from_status]}」转换到「{STATUS_LABELS[to_status]}」，"
            f"可选: {labels}",
            details={
                "from": from_status.value,
                "to": to_status.value,
                "available": [s.value for s in available],
            },
        )

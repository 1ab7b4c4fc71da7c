"""BatchCoordinator -- 批量完成 / 批量删除

批量操作整体不是原子的：每一项独立处理，单项失败只记录在结果中，
不会中断其他项。单项内部（状态变更 + 事件 + 联动）仍保持原子。
"""

import structlog

from ..errors import ErrorCode, MissingFieldsError, TaskflowError
from ..models.enums import STATUS_LABELS, TaskStatus
from ..models.results import BatchCompleteResult, BatchDeleteResult, BatchFailure
from ..models.task import Task
from ..store import StoreGroup
from .hierarchy import leaf_first
from .orchestrator import TransitionOrchestrator
from .permissions import PermissionResolver

log = structlog.get_logger()


class BatchCoordinator:
    """批量操作协调器"""

    def __init__(
        self,
        stores: StoreGroup,
        orchestrator: TransitionOrchestrator,
        permissions: PermissionResolver,
    ) -> None:
        self._stores = stores
        self._orchestrator = orchestrator
        self._permissions = permissions

    async def batch_complete(self, user_id: str, task_ids: list[str]) -> BatchCompleteResult:
        """逐个以智能转换推进到已完成

        结果分类：
        - success: 到达已完成
        - auto_reviewed: 停在审核中
        - failed: 失败原因与错误码

        全部处理完后，对每个成功完成的任务再执行一次完成联动检查。
        """
        if not task_ids:
            raise MissingFieldsError("请提供要完成的任务ID列表")

        result = BatchCompleteResult()
        for task_id in task_ids:
            try:
                outcome = await self._orchestrator.resolve(user_id, task_id, TaskStatus.DONE)
            except TaskflowError as e:
                result.failed.append(
                    BatchFailure(task_id=task_id, reason=e.message, code=e.code.value)
                )
                continue
            except Exception as e:
                log.error(
                    "batch_complete_item_failed",
                    task_id=task_id,
                    error_type=type(e).__name__,
                )
                result.failed.append(
                    BatchFailure(
                        task_id=task_id,
                        reason="未知错误",
                        code=ErrorCode.UNKNOWN_ERROR.value,
                    )
                )
                continue

            if outcome.actual_status == TaskStatus.DONE:
                result.success.append(task_id)
            elif outcome.actual_status == TaskStatus.REVIEW:
                result.auto_reviewed.append(task_id)
            else:
                result.failed.append(
                    BatchFailure(
                        task_id=task_id,
                        reason=f"状态转换为「{STATUS_LABELS[outcome.actual_status]}」，未完成",
                        code=ErrorCode.INVALID_TRANSITION.value,
                    )
                )

        # 补充联动：每项单独提交，失败不影响结果
        for task_id in result.success:
            try:
                await self._orchestrator.propagate_completion(task_id, user_id)
            except Exception as e:
                log.error(
                    "cascade_failed",
                    task_id=task_id,
                    phase="batch_complete",
                    error_type=type(e).__name__,
                    error=str(e),
                )

        log.info(
            "batch_complete_finished",
            user_id=user_id,
            success=len(result.success),
            auto_reviewed=len(result.auto_reviewed),
            failed=len(result.failed),
        )
        return result

    async def batch_delete(self, user_id: str, task_ids: list[str]) -> BatchDeleteResult:
        """逐个检查删除权限，删除可删除的任务及其全部后代（叶子优先）

        subtask_count 为被连带删除的后代任务数（去重，不含请求中本身成功删除的任务）。
        """
        if not task_ids:
            raise MissingFieldsError("请提供要删除的任务ID列表")

        result = BatchDeleteResult()
        task_store = self._stores.task_store

        async with self._stores.unit_of_work():
            to_delete: dict[str, Task] = {}
            descendant_ids: set[str] = set()

            for task_id in dict.fromkeys(task_ids):
                ctx = await task_store.find_task_with_relations(task_id)
                if ctx is None:
                    result.failed.append(
                        BatchFailure(
                            task_id=task_id,
                            reason="任务不存在",
                            code=ErrorCode.TASK_NOT_FOUND.value,
                        )
                    )
                    continue
                if not await self._permissions.can_delete(ctx, user_id):
                    result.failed.append(
                        BatchFailure(
                            task_id=task_id,
                            reason="无权删除此任务（需要：项目负责人/管理员）",
                            code=ErrorCode.FORBIDDEN.value,
                        )
                    )
                    continue

                result.success.append(task_id)
                to_delete[task_id] = ctx.task
                for descendant in await task_store.find_descendants(task_id):
                    to_delete.setdefault(descendant.task_id, descendant)
                    descendant_ids.add(descendant.task_id)

            for task in leaf_first(list(to_delete.values())):
                await task_store.delete_task(task.task_id)

        result.subtask_count = len(descendant_ids - set(result.success))
        log.info(
            "batch_delete_finished",
            user_id=user_id,
            success=len(result.success),
            failed=len(result.failed),
            subtask_count=result.subtask_count,
        )
        return result

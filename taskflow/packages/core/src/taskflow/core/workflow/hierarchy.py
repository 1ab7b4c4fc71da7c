"""三级任务体系辅助方法

Level 1 = 主任务（无 parent_id）
Level 2 = 子任务（父任务是 Level 1）
Level 3 = 子子任务（父任务是 Level 2）

所有向上遍历都是带上限的迭代循环，不使用递归。
"""

from ..config import MAX_TASK_DEPTH
from ..models.task import Task
from ..store.protocols import TaskStore

# 向上遍历的硬上限（多一步用于发现越界的脏数据）
_WALK_LIMIT = MAX_TASK_DEPTH + 1


async def task_depth(task_store: TaskStore, task: Task) -> int:
    """获取任务层级（根任务为 1）"""
    depth = 1
    parent_id = task.parent_id
    while parent_id and depth < _WALK_LIMIT:
        parent = await task_store.find_task(parent_id)
        if parent is None:
            break
        depth += 1
        parent_id = parent.parent_id
    return depth


async def ancestors(task_store: TaskStore, task: Task) -> list[Task]:
    """获取祖先任务列表，由近及远"""
    result: list[Task] = []
    parent_id = task.parent_id
    while parent_id and len(result) < _WALK_LIMIT:
        parent = await task_store.find_task(parent_id)
        if parent is None:
            break
        result.append(parent)
        parent_id = parent.parent_id
    return result


def is_subtask(task: Task) -> bool:
    """是否为子任务（Level 2 或 Level 3）"""
    return task.parent_id is not None


def leaf_first(tasks: list[Task]) -> list[Task]:
    """按叶子优先排序，删除时保证子任务先于父任务

    输入应对后代闭合（包含每个任务的全部子任务）。
    按轮次剥离叶子，轮数以层级上限为界。
    """
    remaining = {t.task_id: t for t in tasks}
    ordered: list[Task] = []
    for _ in range(_WALK_LIMIT):
        if not remaining:
            break
        parent_ids = {t.parent_id for t in remaining.values() if t.parent_id}
        leaves = [t for task_id, t in remaining.items() if task_id not in parent_ids]
        for leaf in leaves:
            del remaining[leaf.task_id]
        ordered.extend(leaves)
    ordered.extend(remaining.values())
    return ordered

# autoschedule/writer.py
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from .models import Block, WriteError
from .normalize import normalize_block

logger = logging.getLogger(__name__)

UpdateTaskFn = Callable[[str, Dict[str, Any]], Any]

BLOCKS_FIELD = "scheduledBlocks"


def _payload(blocks: Iterable[Block], field: str) -> Dict[str, Any]:
    return {field: [b.to_dict() for b in blocks]}


def _write_one(task_id: str, blocks: List[Block],
               update_task_fn: UpdateTaskFn, field: str) -> Optional[WriteError]:
    try:
        update_task_fn(task_id, _payload(blocks, field))
    except Exception as exc:  # each task's write stands alone
        logger.warning("saving schedule for task %s failed: %s", task_id, exc)
        return WriteError(task_id, str(exc) or exc.__class__.__name__)
    logger.debug("saved %d block(s) for task %s", len(blocks), task_id)
    return None


def apply_placements(placements: Mapping[str, List[Block]],
                     update_task_fn: UpdateTaskFn,
                     *,
                     max_workers: int = 1,
                     field: str = BLOCKS_FIELD) -> List[WriteError]:
    """
    Persist placements through ``update_task_fn(task_id, {field: [...]})``.

    Every task with at least one block gets its stored blocks replaced; tasks
    without blocks are not touched, so a failed placement never wipes an
    earlier schedule. A failing write does not stop the others: errors are
    returned, one per task, in placement order.
    """
    pending = [(task_id, list(blocks)) for task_id, blocks in placements.items() if blocks]

    if max_workers <= 1 or len(pending) <= 1:
        results = [_write_one(task_id, blocks, update_task_fn, field)
                   for task_id, blocks in pending]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = [pool.submit(_write_one, task_id, blocks, update_task_fn, field)
                       for task_id, blocks in pending]
            results = [f.result() for f in futures]

    errors = [r for r in results if r is not None]
    logger.info("saved schedules for %d task(s), %d failed",
                len(pending) - len(errors), len(errors))
    return errors


def update_task_schedule(task_id: str,
                         blocks: Iterable[Union[Block, Mapping[str, Any]]],
                         update_task_fn: UpdateTaskFn,
                         field: str = BLOCKS_FIELD) -> List[Block]:
    """
    Replace one task's blocks by hand (manual reschedule). Blocks may be
    ``Block`` objects or stored block dicts; all are stamped with ``task_id``.
    Errors from ``update_task_fn`` propagate.
    """
    normalized = [normalize_block(b, task_id) for b in blocks]
    normalized = [b if b.task_id == task_id else Block(task_id, b.date, b.start_minute, b.end_minute)
                  for b in normalized]
    update_task_fn(task_id, _payload(normalized, field))
    return normalized

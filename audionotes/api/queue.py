from fastapi import APIRouter, Depends

from audionotes.api.deps import get_current_user_id, get_processing_queue
from audionotes.worker.queue import ProcessingQueue

router = APIRouter(prefix="/queue", tags=["queue"])


@router.get("")
def get_queue_stats(
    _user_id: str = Depends(get_current_user_id),
    queue: ProcessingQueue = Depends(get_processing_queue),
):
    return {"ok": True, **queue.stats()}

import logging

from fastapi import APIRouter, Depends

from cleanup import cleanup_service
from responses import ok
from security import CurrentUser, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/cleanup/status")
def cleanup_status(current: CurrentUser = Depends(get_current_user)):
    return ok(cleanup_service.status())


@router.post("/cleanup/manual")
def manual_cleanup(current: CurrentUser = Depends(get_current_user)):
    logger.info("Manager %s triggered ticket cleanup", current.email)
    removed = cleanup_service.run_once()
    return ok({"removed": removed, **cleanup_service.status()}, message=f"Removed {removed} completed tickets")

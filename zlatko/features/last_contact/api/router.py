"""
Admin route for last-contact repair.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from zlatko.auth.verify import current_user_id
from zlatko.features.last_contact.domain import ReconciliationError
from zlatko.features.last_contact.services import last_contact_reconciler
from zlatko.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/fix-last-contact")
async def fix_last_contact(user_id: str = Depends(current_user_id)):
    """Rewrite the caller's prospects' last_contact_date from their communications."""
    try:
        result = await last_contact_reconciler.reconcile(user_id)
    except ReconciliationError as e:
        return JSONResponse(status_code=500, content={"error": str(e)})
    except Exception as e:
        logger.error("fix-last-contact failed", user_id=user_id, error=str(e))
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return result.to_dict()

"""
Engagement insights for a single prospect.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from zlatko.auth.verify import current_user_id
from zlatko.features.last_contact.repository import ProspectRepository
from zlatko.infrastructure.observability.logging import get_logger
from zlatko.models.api.sync_request import InsightsRequest
from zlatko.services.insights_service import InsightsError, InsightsInput, insights_service

logger = get_logger(__name__)

router = APIRouter(tags=["insights"])


@router.post("/prospects/{prospect_id}/insights")
async def generate_prospect_insights(
    prospect_id: str, request: InsightsRequest, user_id: str = Depends(current_user_id)
):
    prospect = await ProspectRepository.get_prospect(user_id, prospect_id)
    if prospect is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prospect not found")

    data = InsightsInput(
        company=prospect.company,
        last_contact_date=prospect.last_contact_date,
        status=request.status,
        deal_value=request.deal_value,
        product_type=request.product_type,
        next_action=request.next_action,
        last_activity=request.last_activity,
    )
    try:
        insights = await insights_service.generate_insights(data, prospect_id=prospect_id)
    except InsightsError as e:
        logger.error("Insights generation failed", user_id=user_id, prospect_id=prospect_id)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": "Failed to generate insights", "details": str(e)},
        )

    return insights.to_dict()

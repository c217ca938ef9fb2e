"""Gmail auth route aggregation."""

from fastapi import APIRouter

from zlatko.routes.gmail_auth import oauth, status

router = APIRouter(prefix="/auth/gmail", tags=["gmail-auth"])

router.include_router(oauth.router)
router.include_router(status.router)
# DELETE /auth/gmail sits on the prefix itself
router.add_api_route("", status.disconnect_gmail_account, methods=["DELETE"])

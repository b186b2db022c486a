import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.database import get_db
from app.dependencies import get_identity_provider
from app.schemas.registration import CustomTokenRequest, CustomTokenResponse
from app.services.errors import HandoffCodeError, IdentityProviderError
from app.services.handoff_service import is_well_formed_uid, redeem_handoff_code
from app.utils.response import create_response, server_error_response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Session"])


def _token_error(message: str, status_code: int, code: str | None = None):
    return create_response({"error": message, "code": code}, status_code=status_code, with_ok=False)


@router.post("/createCustomToken")
async def create_custom_token(
    request: Request,
    db: Session = Depends(get_db),
    identity=Depends(get_identity_provider),
):
    """Re-mints a sign-in token for a freshly provisioned principal in exchange for its handoff code."""
    try:
        body = await request.json()
    except ValueError:
        body = None
    body = CustomTokenRequest.model_validate(body if isinstance(body, dict) else {})

    if not is_well_formed_uid(body.uid):
        logger.error("Missing or invalid UID in custom token request")
        return _token_error("Missing or invalid UID", status.HTTP_400_BAD_REQUEST, "handoff/invalid-uid")

    try:
        await run_in_threadpool(redeem_handoff_code, db, body.uid, body.code)
        token = await run_in_threadpool(identity.mint_custom_token, body.uid)
        # The claim only sticks once a token exists
        await run_in_threadpool(db.commit)
    except HandoffCodeError as exc:
        db.rollback()
        return _token_error(exc.message, exc.status_code, exc.code)
    except IdentityProviderError as exc:
        db.rollback()
        logger.exception("Error minting custom token for uid=%s", body.uid)
        return server_error_response({"error": exc.message, "code": exc.code}, exc)
    except Exception as exc:
        db.rollback()
        logger.exception("Error in /createCustomToken for uid=%s", body.uid)
        code = getattr(exc, "code", None)
        return server_error_response(
            {"error": str(exc) or "Internal server error", "code": str(code) if code else None},
            exc,
        )

    logger.info("Created custom token for uid=%s", body.uid)
    return create_response(CustomTokenResponse(token=token).model_dump(), with_ok=False)

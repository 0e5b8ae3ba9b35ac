"""Generate-response API router."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from replygate.common.exceptions import (
    GenerationAuthError,
    GenerationError,
    GenerationQuotaError,
    UserNotFoundError,
)
from replygate.common.schemas import ErrorResponse
from replygate.common.security import current_user_id
from replygate.generation.client import GenerationRequest
from replygate.generation.schemas import (
    GenerateRequest,
    GenerateResponse,
    QuotaExceededResponse,
    UsageSnapshot,
)
from replygate.usage.service import REASON_TRIAL_EXPIRED

router = APIRouter()


def _get_usage_service():
    from replygate.deps import get_usage_service
    return get_usage_service()


def _get_generation_client():
    from replygate.deps import get_generation_client
    return get_generation_client()


def _get_db():
    from replygate.deps import get_db
    return get_db()


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, message=message).model_dump(),
    )


@router.post(
    "/ai/generate-response",
    response_model=GenerateResponse,
    responses={
        403: {"model": QuotaExceededResponse},
        429: {"model": QuotaExceededResponse},
        500: {"model": ErrorResponse},
    },
)
async def generate_response(body: GenerateRequest, user_id: str = Depends(current_user_id)):
    svc = _get_usage_service()
    generator = _get_generation_client()
    db = _get_db()
    request = GenerationRequest(
        client_message=body.client_message.strip(),
        query_type=body.query_type,
        tone=body.tone,
    )
    try:
        async with db.get_session() as session:
            outcome = await svc.check_and_consume(session, user_id, request, generator)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except GenerationQuotaError:
        return _error(
            429, "quota_exceeded",
            "Generation provider quota exceeded. Please check your account limits.",
        )
    except GenerationAuthError:
        return _error(
            500, "api_key_invalid",
            "Generation provider configuration error. Please check your API key.",
        )
    except GenerationError as e:
        return _error(500, "generation_failed", e.message or "Failed to generate response")

    decision = outcome.decision
    if not outcome.allowed:
        if decision.reason == REASON_TRIAL_EXPIRED:
            status_code = 403
            message = "Your free trial has expired. Upgrade to Pro or Enterprise to continue."
        else:
            status_code = 429
            message = (
                f"Daily limit of {decision.limit.as_int()} replies reached. "
                "Upgrade to Pro for unlimited replies."
            )
        return JSONResponse(
            status_code=status_code,
            content=QuotaExceededResponse(
                error=decision.reason,
                message=message,
                upgrade_required=decision.upgrade_required,
                used=decision.used,
                limit=decision.limit.as_int(),
                plan=decision.plan,
            ).model_dump(),
        )

    return GenerateResponse(
        id=outcome.event.id,
        response=outcome.generation.text,
        confidence=outcome.generation.confidence,
        generation_time=outcome.generation.generation_time_ms,
        usage=UsageSnapshot(
            used=decision.used,
            limit=decision.limit.as_int(),
            plan=decision.plan,
        ),
    )

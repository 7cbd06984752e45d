from __future__ import annotations

from json import JSONDecodeError

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from ...core.errors import GatewayError
from ...core.security import enforce_admission
from ...schemas.errors import ErrorResponse
from ...schemas.verify import AssessmentResult, VerifyRequest
from ...services.recaptcha import Assessor

router = APIRouter(prefix="/api/v1", dependencies=[Depends(enforce_admission)])


def get_assessor(request: Request) -> Assessor:
    return request.app.state.recaptcha_service


async def _read_verify_request(request: Request) -> VerifyRequest:
    # Parsed in the handler so admission runs before the body is touched.
    try:
        payload = await request.json()
    except (JSONDecodeError, UnicodeDecodeError) as exc:
        raise GatewayError.validation(
            "invalid request body",
            details=[{"loc": ["body"], "msg": "body is not valid JSON"}],
        ) from exc
    try:
        return VerifyRequest.model_validate(payload)
    except ValidationError as exc:
        raise GatewayError.validation(
            "invalid request body",
            details=[
                {"loc": ["body", *item["loc"]], "msg": item["msg"]} for item in exc.errors()
            ],
        ) from exc


@router.post(
    "/recaptcha/verify",
    response_model=AssessmentResult,
    response_model_exclude_none=True,
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": VerifyRequest.model_json_schema()}},
        }
    },
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def verify_recaptcha(
    request: Request,
    assessor: Assessor = Depends(get_assessor),
) -> AssessmentResult:
    """Delegate token validation to reCAPTCHA Enterprise."""

    payload = await _read_verify_request(request)
    return await assessor.assess(payload.token, payload.action)

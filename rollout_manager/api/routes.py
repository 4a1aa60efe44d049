"""
Agent endpoint routes: health, deploy and rollback.

Bodies are parsed inside the handlers, after the router's bearer check, so an
unauthenticated request is rejected before its payload is looked at.
"""

import logging
from typing import Any, Dict, Type, TypeVar

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from rollout_manager.agent import AgentService
from rollout_manager.errors import DoubleFailure, ValidationError
from rollout_manager.models import ApplyResult, ApplyState, DeployRequest, RollbackRequest
from rollout_manager.utils.log_sanitizer import sanitize_for_log

from .dependencies import get_agent_service, require_access_token

logger = logging.getLogger(__name__)

PayloadT = TypeVar("PayloadT", bound=BaseModel)

health_router = APIRouter(tags=["system"])
router = APIRouter(tags=["deployment"], dependencies=[Depends(require_access_token)])


def _validation_message(exc: PydanticValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        problems.append(f"{location or 'body'}: {error.get('msg', 'invalid')}")
    return "Invalid request: " + "; ".join(problems)


async def parse_payload(request: Request, model: Type[PayloadT]) -> PayloadT:
    """
    Validate the JSON body against a request model.

    Raises:
        ValidationError: If the body is not JSON or does not match the model
    """
    body = await request.body()
    try:
        return model.model_validate_json(body)
    except PydanticValidationError as e:
        raise ValidationError(_validation_message(e))


@health_router.get("/health")
async def health() -> Dict[str, Any]:
    """Liveness check, no authorization required."""
    return {"success": True}


@router.post("/deploy")
async def deploy(
    request: Request,
    service: AgentService = Depends(get_agent_service),
) -> Any:
    """Apply a new configuration generation to one slot."""
    payload = await parse_payload(request, DeployRequest)
    logger.info(
        f"Deploy requested for {sanitize_for_log(payload.app)}:{sanitize_for_log(payload.tag)}"
    )
    result = await service.deploy(payload)
    return _to_response(result, "Deploy")


@router.post("/rollback")
async def rollback(
    request: Request,
    service: AgentService = Depends(get_agent_service),
) -> Any:
    """Restore the backup generation of one slot."""
    payload = await parse_payload(request, RollbackRequest)
    logger.info(
        f"Rollback requested for {sanitize_for_log(payload.app)}:{sanitize_for_log(payload.tag)}"
    )
    result = await service.rollback(payload.target)
    return _to_response(result, "Rollback")


def _to_response(result: ApplyResult, operation: str) -> Any:
    if result.succeeded:
        return {"success": True, "state": result.state.value}

    if result.state == ApplyState.DOUBLE_FAILED:
        rollback_error = result.rollback.error if result.rollback else None
        raise DoubleFailure(
            f"{operation} of {result.app}:{result.tag} failed ({result.error}) and "
            f"rollback also failed ({rollback_error}); manual intervention required",
            rollback_error=rollback_error,
        )

    content: Dict[str, Any] = {
        "error": f"{operation} of {result.app}:{result.tag} failed: {result.error}",
        "state": result.state.value,
        "stage": result.failed_stage.value if result.failed_stage else None,
    }
    if result.state == ApplyState.ROLLED_BACK:
        content["error"] += " (previous generation restored)"
    return JSONResponse(status_code=500, content=content)

"""AI collaboration endpoint."""

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from marginalia.ai.errors import ConfigurationError, ValidationError
from marginalia.ai.protocol import FAILURE_MESSAGE
from marginalia.api.deps import AIProtocolDep
from marginalia.schemas.ai import AskAIResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["ai"])


@router.post("/ai", response_model=AskAIResponse, response_model_exclude_none=True)
async def ask_ai(request: Request, protocol: AIProtocolDep):
    """
    Ask the margin editor about a selection.

    The body is read raw so validation failures can name the offending
    field. Provider failures and timeouts come back as 200 with a
    user-facing `message`; only a malformed request (400) and a missing
    credential (500) are reported as errors.
    """
    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid JSON body"},
        )

    try:
        result = await protocol.handle(payload)
    except ValidationError as e:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(e)})
    except ConfigurationError as e:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": str(e)},
        )
    except Exception:
        logger.exception("Unexpected error in AI endpoint")
        return JSONResponse(status_code=status.HTTP_200_OK, content={"message": FAILURE_MESSAGE})

    return result.response


@router.api_route("/ai", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def ai_method_not_allowed() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        content={"error": "Method not allowed. Use POST."},
        headers={"Allow": "POST"},
    )

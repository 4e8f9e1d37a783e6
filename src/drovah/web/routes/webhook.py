"""Push webhook endpoint for Drovah.

``POST /api/v1/webhook`` authenticates the request, resolves the pushed
repository to a project directory and hands the build to the orchestrator.
The response is sent before the build starts; build errors are only logged.

Status codes:
    204: Build accepted.
    400: Body is not JSON or lacks ``repository.name``.
    401: A header could not be decoded or the signature did not verify.
    406: No project directory for the repository.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, Response
from fastapi import status as http_status
from pydantic import ValidationError

from drovah.errors import MalformedHeaderError, WebhookAuthError
from drovah.logging import get_logger
from drovah.web.webhooks import WebhookAuthenticator, WebhookData, decode_headers

logger = get_logger(__name__)


def create_webhook_router() -> APIRouter:
    """Create the push webhook router.

    Routes:
        POST /api/v1/webhook - Trigger pull and build for a repository
    """
    router = APIRouter(prefix="/api/v1", tags=["webhook"])

    @router.post("/webhook", status_code=http_status.HTTP_204_NO_CONTENT)
    async def receive_push(request: Request) -> Response:
        body = await request.body()
        authenticator: WebhookAuthenticator = request.app.state.authenticator

        try:
            headers = decode_headers(request.scope["headers"])
            authenticator.verify(headers, body)
        except MalformedHeaderError as e:
            logger.warning("webhook_header_malformed")
            raise HTTPException(
                status_code=http_status.HTTP_401_UNAUTHORIZED,
                detail="Couldn't parse header",
            ) from e
        except WebhookAuthError as e:
            logger.warning(
                "webhook_rejected",
                reason=str(e),
                error_type=type(e).__name__,
            )
            raise HTTPException(
                status_code=http_status.HTTP_401_UNAUTHORIZED,
                detail="Invalid signature",
            ) from e

        try:
            data = WebhookData.model_validate_json(body)
        except ValidationError as e:
            logger.warning("webhook_payload_invalid", error_count=e.error_count())
            raise HTTPException(
                status_code=http_status.HTTP_400_BAD_REQUEST,
                detail="Invalid webhook payload",
            ) from e

        project = data.repository.name
        orchestrator = request.app.state.orchestrator
        if not orchestrator.project_exists(project):
            logger.info("webhook_unknown_project", project=project)
            raise HTTPException(
                status_code=http_status.HTTP_406_NOT_ACCEPTABLE,
                detail="Project doesn't exist",
            )

        orchestrator.submit(project)
        logger.info("webhook_accepted", project=project)
        return Response(status_code=http_status.HTTP_204_NO_CONTENT)

    return router

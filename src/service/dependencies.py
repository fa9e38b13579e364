"""FastAPI glue between HTTP requests and the admission pipeline.

Routes declare admission with a dependency:

    @app.post("/ask-ai")
    async def ask_ai(admitted: AdmittedRequest = Depends(admission(ASK_AI_SCHEMA))):
        ...

The dependency copies the HTTP request into a GatewayRequest, runs the
pipeline from the application's container and stores the resulting identity
on ``request.state.auth``. Rejections propagate as GatewayError and are
rendered by the exception handler in src.service.main.
"""

import json
from typing import Any, Awaitable, Callable, Optional

import structlog
from fastapi import Request
from slowapi.util import get_remote_address

from ..gateway.pipeline import AuthMode
from ..models.requests import AdmittedRequest, GatewayRequest
from ..models.schema import Schema

logger = structlog.get_logger()

UpstreamHandler = Callable[[AdmittedRequest], Awaitable[Any]]

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def read_body(request: Request) -> Any:
    """Decode the request body as JSON (or form data); empty or unreadable bodies become {}."""
    content_type = request.headers.get("content-type", "")

    if content_type.startswith(_FORM_TYPES):
        form = await request.form()
        return {name: value for name, value in form.items() if isinstance(value, str)}

    raw = await request.body()
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.debug("Request body is not valid JSON", path=request.url.path, error=str(e))
        return {}


async def build_gateway_request(request: Request) -> GatewayRequest:
    """Copy the parts of a FastAPI request the admission stages need."""
    return GatewayRequest(
        body=await read_body(request),
        headers=dict(request.headers),
        query=dict(request.query_params),
        origin=get_remote_address(request),
        path=request.url.path,
        method=request.method,
    )


def admission(
    schema: Optional[Schema] = None,
    auth_mode: AuthMode = "required",
) -> Callable[[Request], Awaitable[AdmittedRequest]]:
    """Create a dependency that admits requests against ``schema``.

    Args:
        schema: Route schema (see src.service.schemas)
        auth_mode: "required" or "optional"

    Returns:
        Async dependency returning the AdmittedRequest
    """

    async def admit_request(request: Request) -> AdmittedRequest:
        pipeline = request.app.state.container.get("admission_pipeline")
        gateway_request = await build_gateway_request(request)
        admitted = pipeline.admit(gateway_request, schema, auth_mode)
        request.state.auth = admitted.identity
        return admitted

    return admit_request


def register_upstream(app, route: str, handler: UpstreamHandler) -> None:
    """Register the upstream handler that receives admitted requests for ``route``."""
    app.state.container.get("upstream_handlers")[route] = handler

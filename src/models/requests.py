"""Request models exchanged between the HTTP layer and the admission pipeline.

GatewayRequest is the framework-neutral view of an inbound call: everything the
admission stages need is copied into it, so the stages never touch the HTTP
framework directly. AdmittedRequest is what the pipeline hands to the upstream
handler once every stage has passed.

Used by:
    - src.auth.key_resolver: Reads headers, query and body
    - src.gateway.pipeline: Input and output of AdmissionPipeline.admit
    - src.service.dependencies: Builds GatewayRequest from a FastAPI Request
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..auth.models import Identity


class GatewayRequest(BaseModel):
    """Structured inbound request.

    Header names are lower-cased on construction so lookups are
    case-insensitive, matching HTTP semantics.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    body: Any = Field(default_factory=dict, description="Decoded JSON body (usually a mapping)")
    headers: dict[str, str] = Field(default_factory=dict)
    query: dict[str, Any] = Field(default_factory=dict)
    origin: Optional[str] = Field(None, description="Network origin (client address)")
    path: str = "/"
    method: str = "POST"

    @field_validator("headers", mode="before")
    @classmethod
    def lowercase_header_names(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {str(name).lower(): value for name, value in v.items()}
        return v

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    @property
    def user_agent(self) -> Optional[str]:
        return self.header("user-agent")


class AdmittedRequest(BaseModel):
    """Request that passed validation, authentication and rate limiting."""

    request: GatewayRequest
    validated: bool = True
    identity: Identity

    @property
    def body(self) -> Any:
        return self.request.body

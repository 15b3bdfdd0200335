"""
Programmatic key fetch for trusted integrations.
Gated by the static API key only; engagement rules are not applied here.
"""
import logging

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import PlainTextResponse

from keygate.core.exceptions import AuthorizationDenied
from keygate.services.disclosure.service import DisclosureService

logger = logging.getLogger("api.key")

router = APIRouter(tags=["key"])


def get_disclosure(request: Request) -> DisclosureService:
    return request.app.state.context.disclosure


@router.get("/key", response_class=PlainTextResponse)
def read_key(
    api_key: str | None = Query(default=None),
    x_api_key: str | None = Header(default=None),
    disclosure: DisclosureService = Depends(get_disclosure),
) -> PlainTextResponse:
    try:
        value = disclosure.fetch_key(api_key or x_api_key)
    except AuthorizationDenied:
        logger.info("key_http_denied", extra={"path": "/key", "status_code": 401})
        return PlainTextResponse("Unauthorized", status_code=401)
    return PlainTextResponse(value, headers={"Cache-Control": "no-store"})

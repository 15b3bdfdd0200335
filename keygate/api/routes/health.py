from fastapi import APIRouter
from fastapi.responses import PlainTextResponse


router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
def root() -> str:
    """Uptime ping for hosting monitors."""
    return "Webserver OK, Bot OK"


@router.get("/health")
def health() -> dict:
    """Liveness probe - always returns 200 if app is running."""
    return {"status": "ok"}

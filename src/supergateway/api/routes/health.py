"""
Route API pour le health check.
"""
from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from ...core.constants import HEALTH_PATH

router = APIRouter()


@router.get(HEALTH_PATH, response_class=PlainTextResponse)
async def health_check():
    """Liveness: indépendant de l'état de l'enfant et des sessions."""
    return "OK"

import random

from fastapi import APIRouter, Depends

from .. import mock_ai
from ..auth import get_current_user
from ..models import User
from ..schemas import ImageValidationRequest, TicketRequest
from .deps import get_rng

router = APIRouter(prefix="/ocr", tags=["ocr"])


@router.post("/process-ticket")
async def process_ticket(
    payload: TicketRequest,
    current_user: User = Depends(get_current_user),
    rng: random.Random = Depends(get_rng),
):
    return mock_ai.process_ticket(rng)


@router.get("/history")
async def ticket_history(current_user: User = Depends(get_current_user)):
    return {"tickets": [], "total": 0}


@router.post("/validate-image")
async def validate_image(
    payload: ImageValidationRequest,
    current_user: User = Depends(get_current_user),
):
    return mock_ai.validate_image(payload.image)

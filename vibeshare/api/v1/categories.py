from __future__ import annotations

from fastapi import APIRouter, Depends

from vibeshare.api.v1.deps import get_categorizer
from vibeshare.core.config import settings
from vibeshare.models.user import User
from vibeshare.schemas.categorization import CategorizeIn, CategorizeOut
from vibeshare.services.auth import get_current_user
from vibeshare.services.categorization import Categorizer

router = APIRouter(prefix="/categories", tags=["categories"])


@router.post("", response_model=CategorizeOut)
async def categorize_content(
    payload: CategorizeIn,
    categorizer: Categorizer = Depends(get_categorizer),
    _current_user: User = Depends(get_current_user),
) -> CategorizeOut:
    timeout_ms = payload.timeout_ms or settings.categorization_timeout_ms
    categories = await categorizer(payload.content, timeout_ms)
    return CategorizeOut(service=settings.categorization_service, categories=categories)

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, status

from app.services.brainstorm import BrainstormService, PromptCategory
from app.services.models import ApiResponse, BrainstormPrompt, CategoryView

from ..dependencies import get_brainstorm_service
from ..errors import AppError

router = APIRouter(tags=["brainstorm"], prefix="/brainstorm")

MIN_PROMPTS = 1
MAX_PROMPTS = 10


@router.get("/categories", response_model=ApiResponse[List[CategoryView]])
async def list_categories() -> ApiResponse[List[CategoryView]]:
    categories = [
        CategoryView(id=category.value, name=category.value, display_name=category.display_name)
        for category in PromptCategory
    ]
    return ApiResponse[List[CategoryView]](data=categories)


@router.get("/{category}", response_model=ApiResponse[List[BrainstormPrompt]])
async def get_creative_prompts(
    category: str,
    count: int = Query(4),
    brainstorm_service: BrainstormService = Depends(get_brainstorm_service),
) -> ApiResponse[List[BrainstormPrompt]]:
    try:
        prompt_category = PromptCategory(category)
    except ValueError:
        raise AppError(f"Invalid category: {category}", status.HTTP_400_BAD_REQUEST) from None
    if not MIN_PROMPTS <= count <= MAX_PROMPTS:
        raise AppError(f"count must be between {MIN_PROMPTS} and {MAX_PROMPTS}", status.HTTP_400_BAD_REQUEST)

    prompts = await brainstorm_service.generate_prompts(prompt_category, count)
    return ApiResponse[List[BrainstormPrompt]](data=prompts)

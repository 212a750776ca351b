from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from src.consular.domain.models.user import User
from src.consular.security import get_current_user
from src.consular.services.assistant.service import assistant_service

router = APIRouter(prefix="/assistant", tags=["assistant"])


class FormHelpRequest(BaseModel):
    field_name: str = Field(min_length=1)
    question: str = Field(min_length=1)
    service_id: Optional[UUID] = None
    field_label: Optional[str] = None
    current_value: Optional[str] = None
    language: str = "fr"


class FormHelpResponse(BaseModel):
    answer: str
    success: bool


@router.post("/form-help", response_model=FormHelpResponse)
async def form_help(payload: FormHelpRequest, current_user: User = Depends(get_current_user)) -> FormHelpResponse:
    """Explain what a form field expects. Provider failures yield a generic message."""

    result = assistant_service.form_help(
        current_user,
        field_name=payload.field_name,
        question=payload.question,
        service_id=payload.service_id,
        field_label=payload.field_label,
        current_value=payload.current_value,
        language=payload.language,
    )
    return FormHelpResponse(answer=result.answer, success=result.success)

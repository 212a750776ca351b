from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from src.consular.domain.models.user import User
from src.consular.errors import ValidationError
from src.consular.infra.db import inmemory as repos
from src.consular.services.assistant.backends import (
    FormHelpBackend,
    FormHelpContext,
    get_form_help_backend_from_env,
)

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = "The assistant is unavailable right now. Please try again later."


@dataclass
class FormHelpAnswer:
    answer: str
    success: bool


class FormAssistantService:
    def __init__(self, backend: FormHelpBackend | None = None) -> None:
        self._backend = backend

    @property
    def backend(self) -> FormHelpBackend:
        if self._backend is None:
            self._backend = get_form_help_backend_from_env()
        return self._backend

    def set_backend(self, backend: FormHelpBackend | None) -> None:
        self._backend = backend

    def form_help(
        self,
        user: User,
        *,
        field_name: str,
        question: str,
        service_id: Optional[UUID] = None,
        field_label: Optional[str] = None,
        current_value: Optional[str] = None,
        language: str = "fr",
    ) -> FormHelpAnswer:
        if not field_name.strip() or not question.strip():
            raise ValidationError("Both the field and the question are required")

        context = FormHelpContext(
            field_name=field_name,
            question=question,
            field_label=field_label,
            current_value=current_value,
            language=language,
        )
        if service_id is not None:
            service = repos.consular_service_repository.get(service_id)
            if service is not None:
                context.service_name = service.name
                context.service_category = service.category.value
        if user.profile_id is not None:
            profile = repos.profile_repository.get(user.profile_id)
            if profile is not None:
                context.user_first_name = profile.first_name

        try:
            answer = self.backend.answer(context)
        except Exception:
            logger.exception("Form assistant backend failed for field %s", field_name)
            return FormHelpAnswer(answer=FAILURE_MESSAGE, success=False)
        return FormHelpAnswer(answer=answer, success=True)


assistant_service = FormAssistantService()

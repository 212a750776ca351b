from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

from src.consular.config import settings


@dataclass
class FormHelpContext:
    """What the assistant knows about the form being filled in."""

    field_name: str
    question: str
    service_name: Optional[str] = None
    service_category: Optional[str] = None
    field_label: Optional[str] = None
    current_value: Optional[str] = None
    language: str = "fr"
    user_first_name: Optional[str] = None
    extra: Dict[str, str] = field(default_factory=dict)


class FormHelpBackend(Protocol):
    """Protocol for backends answering form-filling questions."""

    def answer(self, context: FormHelpContext) -> str:  # pragma: no cover - interface
        raise NotImplementedError


# Canned guidance keyed by common form field names.
_DEMO_FIELD_HINTS: Dict[str, str] = {
    "birth_date": "Enter your date of birth exactly as it appears on your birth certificate (YYYY-MM-DD).",
    "birth_place": "Enter the city where you were born, as written on your birth certificate.",
    "nationality": "Select the nationality shown on your current passport.",
    "address": "Give your current residential address in the country where you live.",
    "phone_number": "Use international format, for example +33612345678.",
    "passport_number": "Copy the number printed at the top right of your passport's photo page.",
    "identity_photo": "Upload a recent colour photo on a plain light background, face uncovered.",
}


class DemoFormHelpBackend:
    """Deterministic backend used for tests and when no LLM is configured."""

    def answer(self, context: FormHelpContext) -> str:
        hint = _DEMO_FIELD_HINTS.get(context.field_name)
        label = context.field_label or context.field_name.replace("_", " ")
        if hint is None:
            hint = f"Fill in '{label}' with the information shown on your official documents."
        if context.service_name:
            return f"{hint} This field is part of the '{context.service_name}' form."
        return hint


class LLMFormHelpBackend:
    """Form help through the OpenAI Python client.

    Expects OPENAI_API_KEY to be set and uses the model named by LLM_MODEL.
    """

    def __init__(self, model: Optional[str] = None) -> None:  # pragma: no cover - external service
        self._model = model or settings.llm_model

    def answer(self, context: FormHelpContext) -> str:  # pragma: no cover - external service
        api_key = settings.openai_api_key
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY must be set to use LLMFormHelpBackend")

        try:
            from openai import OpenAI
        except ImportError as exc:
            raise RuntimeError(
                "LLMFormHelpBackend requires the 'openai' package. Install it with 'pip install openai'"
            ) from exc

        client = OpenAI(api_key=api_key, timeout=settings.provider_timeout_seconds)

        system_prompt = (
            "You are a consular agent helping a citizen fill in an online form. "
            "Be polite and concise. Answer in the user's language. "
            "Only explain what the field expects; never invent personal data."
        )
        details = [f"Field: {context.field_label or context.field_name}"]
        if context.service_name:
            details.append(f"Service: {context.service_name}")
        if context.service_category:
            details.append(f"Category: {context.service_category}")
        if context.current_value:
            details.append(f"Current value: {context.current_value}")
        details.append(f"Language: {context.language}")
        details.append(f"Question: {context.question}")

        response = client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": "\n".join(details)},
            ],
            temperature=0.3,
            max_tokens=400,
        )
        content = response.choices[0].message.content if response.choices else None
        if not content:
            return DemoFormHelpBackend().answer(context)
        return content.strip()


def get_form_help_backend_from_env() -> FormHelpBackend:
    """Select a backend based on ASSISTANT_BACKEND.

    - "demo": canned per-field answers
    - "llm": LLMFormHelpBackend
    - "auto" (default): "llm" when OPENAI_API_KEY is set, otherwise "demo"
    """

    backend_name = settings.assistant_backend.lower()
    if backend_name == "llm" or (backend_name == "auto" and settings.openai_api_key):
        return LLMFormHelpBackend()
    return DemoFormHelpBackend()

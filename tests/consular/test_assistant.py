import pytest

from src.consular.errors import ValidationError
from src.consular.services.assistant.backends import DemoFormHelpBackend, FormHelpContext
from src.consular.services.assistant.service import FAILURE_MESSAGE, FormAssistantService


class FailingBackend:
    def answer(self, context):
        raise TimeoutError("provider timed out")


class RecordingBackend:
    def __init__(self):
        self.contexts = []

    def answer(self, context):
        self.contexts.append(context)
        return "Use the date from your birth certificate."


def test_demo_backend_knows_common_fields():
    answer = DemoFormHelpBackend().answer(FormHelpContext(field_name="phone_number", question="Which format?"))
    assert "+33612345678" in answer


def test_demo_backend_mentions_the_service():
    answer = DemoFormHelpBackend().answer(
        FormHelpContext(field_name="mother_name", question="?", field_label="Mother's name", service_name="Passport")
    )
    assert "Mother's name" in answer
    assert "'Passport'" in answer


def test_form_help_passes_service_and_profile_context(make_user, make_profile, make_service, organization):
    user = make_user()
    make_profile(user, first_name="Marie")
    service = make_service(organization, name="Passport renewal")
    backend = RecordingBackend()

    result = FormAssistantService(backend).form_help(
        user, field_name="birth_date", question="Which date?", service_id=service.id, language="en"
    )

    assert result.success
    context = backend.contexts[0]
    assert context.service_name == "Passport renewal"
    assert context.service_category == "PASSPORT"
    assert context.user_first_name == "Marie"
    assert context.language == "en"


def test_backend_failure_returns_generic_message(make_user):
    result = FormAssistantService(FailingBackend()).form_help(make_user(), field_name="address", question="What?")
    assert result.success is False
    assert result.answer == FAILURE_MESSAGE


def test_blank_question_is_rejected(make_user):
    with pytest.raises(ValidationError):
        FormAssistantService(DemoFormHelpBackend()).form_help(make_user(), field_name="address", question="  ")

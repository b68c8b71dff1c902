import pytest
from langchain_core.messages import AIMessage

from src.pipeline.state import TenantHints, WebsiteData
from src.prompts import PromptTemplate
from src.services.llm_service import EmailDraftService, fallback_draft, parse_draft_response


class FakeChatModel:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.messages = None

    def invoke(self, messages):
        self.messages = messages
        if self.error is not None:
            raise self.error
        return AIMessage(content=self.content)


@pytest.fixture
def website():
    return WebsiteData(
        company_name="Acme Inc",
        summary="Rocket skates and anvils",
        page_text="x" * 1500,
        services=["Delivery"],
        products=["Anvil"],
    )


@pytest.fixture
def hints():
    return TenantHints(company_name="MagLoft", company_description="Publishing software", source="default")


def test_parse_json_response():
    draft = parse_draft_response('{"subject": "Hi Alice", "body": "Welcome aboard"}', "Alice")

    assert draft.subject == "Hi Alice"
    assert draft.body == "Welcome aboard"


def test_parse_fenced_json_response():
    content = '```json\n{"subject": "Hi", "body": "Text"}\n```'

    assert parse_draft_response(content, "Alice").body == "Text"


def test_parse_subject_body_markers():
    draft = parse_draft_response("Subject: Quick hello\nBody: Nice to meet you.\nThanks", "Alice")

    assert draft.subject == "Quick hello"
    assert draft.body == "Nice to meet you.\nThanks"


def test_parse_plain_text_uses_fallback_subject():
    draft = parse_draft_response("Just a friendly note.", "Alice")

    assert draft.subject == "Welcome to our product, Alice!"
    assert draft.body == "Just a friendly note."


def test_parse_empty_response_raises():
    with pytest.raises(ValueError):
        parse_draft_response("", "Alice")


def test_fallback_draft_prefers_scraped_company_name(website):
    draft = fallback_draft("Alice", "acme.com", website)

    assert draft.subject == "Welcome to our product, Alice!"
    assert "Acme Inc (acme.com)" in draft.body
    assert "acme.com (acme.com)" in fallback_draft("Alice", "acme.com").body


def test_generate_returns_model_draft(website, hints):
    model = FakeChatModel('{"subject": "Anvils, Alice?", "body": "Saw your anvils."}')
    service = EmailDraftService(client=model)

    draft = service.generate("Alice", "alice@acme.com", "acme.com", website, hints)

    assert draft.subject == "Anvils, Alice?"
    system, user = model.messages
    assert "MagLoft" in system.content
    assert "Publishing software" in system.content
    assert "Acme Inc" in user.content
    assert "x" * 1000 + "..." in user.content
    assert "x" * 1001 not in user.content


def test_generate_falls_back_when_model_errors(website, hints):
    service = EmailDraftService(client=FakeChatModel(error=RuntimeError("rate limited")))

    draft = service.generate("Alice", "alice@acme.com", "acme.com", website, hints)

    assert draft == fallback_draft("Alice", "acme.com", website)


def test_custom_template_replaces_default_instructions(website):
    hints = TenantHints(
        company_name="Globex",
        prompt_template="Greet {name} from {company_name} in under {max_words} words. Keep {unknown}.",
        max_words=80,
        source="company",
    )
    service = EmailDraftService(client=FakeChatModel())

    _, user = service.build_messages("Alice", "alice@acme.com", "acme.com", website, hints)

    assert "Greet Alice from Acme Inc in under 80 words. Keep {unknown}." in user.content
    assert "Write a brief, personalized email" not in user.content


def test_prompt_template_blanks_optional_params():
    prompt = PromptTemplate(
        template="Hi {name}{suffix}",
        required_params=["name"],
        optional_params=["suffix"],
    )

    assert prompt.format(name="Alice") == "Hi Alice"
    assert prompt.format(name="Alice", suffix="!") == "Hi Alice!"


def test_prompt_template_requires_params():
    prompt = PromptTemplate(template="{name} at {domain}", required_params=["name", "domain"])

    with pytest.raises(ValueError, match="domain, name"):
        prompt.format()

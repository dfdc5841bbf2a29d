import asyncio
from types import SimpleNamespace

import pytest

import towndesk.generator as generator
from towndesk.chat import answer_question
from towndesk.config import DEFAULT_MODEL, Settings
from towndesk.errors import GenerationError
from towndesk.generator import AnswerGenerator, GeneratorConfig, is_model_not_found
from towndesk.models import ServiceRecord

_real_make_client = generator._make_client


class FakeStatusError(Exception):
    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


@pytest.fixture(autouse=True)
def _fake_client(monkeypatch):
    # Never build a real SDK client in unit tests.
    monkeypatch.setattr(generator, "_make_client", lambda config: f"client:{config.model}")


@pytest.fixture
def calls():
    return []


def make_gen(model="gemini-custom"):
    return AnswerGenerator(GeneratorConfig(model=model, api_key="test-key"))


def test_success_returns_stripped_text(monkeypatch, calls):
    async def fake_call_model(client, *, model, prompt):
        calls.append((client, model, prompt))
        return "  Senior Meals Co serves Linden.  "

    monkeypatch.setattr(generator, "_call_model", fake_call_model)
    gen = make_gen()
    assert asyncio.run(gen.generate("p")) == "Senior Meals Co serves Linden."
    assert calls == [("client:gemini-custom", "gemini-custom", "p")]


def test_not_found_rebinds_to_default_and_retries_once(monkeypatch, calls):
    async def fake_call_model(client, *, model, prompt):
        calls.append(model)
        if model != DEFAULT_MODEL:
            raise Exception("404 models/gemini-custom is not found for API version v1beta")
        return "retried answer"

    monkeypatch.setattr(generator, "_call_model", fake_call_model)
    gen = make_gen()
    original = gen.config

    assert asyncio.run(gen.generate("p")) == "retried answer"
    assert calls == ["gemini-custom", DEFAULT_MODEL]
    assert gen.model_name == DEFAULT_MODEL
    # rebinding replaces the config instead of mutating it
    assert original.model == "gemini-custom"
    assert gen.config is not original


def test_status_code_404_counts_as_not_found(monkeypatch, calls):
    async def fake_call_model(client, *, model, prompt):
        calls.append(model)
        if model != DEFAULT_MODEL:
            raise FakeStatusError("model unavailable", 404)
        return "ok"

    monkeypatch.setattr(generator, "_call_model", fake_call_model)
    assert asyncio.run(make_gen().generate("p")) == "ok"
    assert calls == ["gemini-custom", DEFAULT_MODEL]


def test_other_errors_do_not_retry(monkeypatch, calls):
    async def fake_call_model(client, *, model, prompt):
        calls.append(model)
        raise FakeStatusError("quota exceeded", 429)

    monkeypatch.setattr(generator, "_call_model", fake_call_model)
    gen = make_gen()
    with pytest.raises(GenerationError) as ei:
        asyncio.run(gen.generate("p"))
    assert calls == ["gemini-custom"]
    assert gen.model_name == "gemini-custom"
    assert isinstance(ei.value.__cause__, FakeStatusError)


def test_not_found_on_default_model_does_not_retry(monkeypatch, calls):
    async def fake_call_model(client, *, model, prompt):
        calls.append(model)
        raise Exception("404 not found")

    monkeypatch.setattr(generator, "_call_model", fake_call_model)
    with pytest.raises(GenerationError):
        asyncio.run(make_gen(DEFAULT_MODEL).generate("p"))
    assert calls == [DEFAULT_MODEL]


def test_failed_retry_raises_generation_error(monkeypatch, calls):
    async def fake_call_model(client, *, model, prompt):
        calls.append(model)
        raise Exception("Not Found")

    monkeypatch.setattr(generator, "_call_model", fake_call_model)
    with pytest.raises(GenerationError, match="Retry with"):
        asyncio.run(make_gen().generate("p"))
    assert calls == ["gemini-custom", DEFAULT_MODEL]


def test_blank_completion_is_a_generation_error(monkeypatch):
    async def fake_call_model(client, *, model, prompt):
        return "   "

    monkeypatch.setattr(generator, "_call_model", fake_call_model)
    with pytest.raises(GenerationError):
        asyncio.run(make_gen().generate("p"))


@pytest.mark.parametrize(
    "exc,expected",
    [
        (Exception("models/foo is NOT FOUND"), True),
        (Exception("NotFound"), True),
        (Exception("HTTP 404"), True),
        (FakeStatusError("gone", 404), True),
        (FakeStatusError("server error", 500), False),
        (Exception("permission denied"), False),
    ],
)
def test_is_model_not_found(exc, expected):
    assert is_model_not_found(exc) is expected


def test_create_without_api_key_returns_none(monkeypatch):
    monkeypatch.setattr(generator, "_make_client", _real_make_client)
    assert AnswerGenerator.create(Settings(api_key="", model_name="gemini-custom")) is None


def test_create_falls_back_to_default_model_on_init_failure(monkeypatch):
    def flaky_make_client(config):
        if config.model != DEFAULT_MODEL:
            raise ValueError("bad model config")
        return "client"

    monkeypatch.setattr(generator, "_make_client", flaky_make_client)
    gen = AnswerGenerator.create(Settings(api_key="k", model_name="gemini-custom"))
    assert gen is not None
    assert gen.model_name == DEFAULT_MODEL


def test_create_uses_configured_model(monkeypatch):
    gen = AnswerGenerator.create(Settings(api_key="k", model_name="gemini-custom", generation_timeout=5.0))
    assert gen.model_name == "gemini-custom"
    assert gen.config.timeout == 5.0



def stub_client(content, sent, closed=None):
    async def create(**kwargs):
        sent.append(kwargs)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

    async def close():
        if closed is not None:
            closed.append(True)

    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)), close=close)


def test_completion_request_carries_model_and_prompt():
    sent = []
    gen = AnswerGenerator(GeneratorConfig(model="gemini-custom", api_key="k"), client=stub_client(" Hello. ", sent))
    assert asyncio.run(gen.generate("meals in Linden?")) == "Hello."
    assert sent == [{"model": "gemini-custom", "messages": [{"role": "user", "content": "meals in Linden?"}]}]


def test_none_content_raises_then_pipeline_falls_back():
    sent = []
    gen = AnswerGenerator(GeneratorConfig(model="gemini-custom", api_key="k"), client=stub_client(None, sent))
    with pytest.raises(GenerationError):
        asyncio.run(gen.generate("p"))
    assert len(sent) == 1

    directory = (ServiceRecord(town="Linden", category="Meals", name="Senior Meals Co", url="http://x"),)
    result = asyncio.run(answer_question("meals", None, directory, gen))
    assert result.meta.answered_by == "fallback"
    assert result.answer.startswith("Senior Meals Co serves Linden.")


def test_real_client_gets_timeout_and_no_sdk_retries(monkeypatch):
    import openai

    built = []

    def fake_async_openai(**kwargs):
        built.append(kwargs)
        return "sdk-client"

    monkeypatch.setattr(openai, "AsyncOpenAI", fake_async_openai)
    client = _real_make_client(GeneratorConfig(model="gemini-custom", api_key="k", base_url="http://gw/", timeout=7.5))

    assert client == "sdk-client"
    assert built == [{"api_key": "k", "base_url": "http://gw/", "timeout": 7.5, "max_retries": 0}]


def test_concurrent_rebind_still_retries_failed_request(monkeypatch, calls):
    gen = make_gen()

    async def fake_call_model(client, *, model, prompt):
        calls.append(model)
        if model != DEFAULT_MODEL:
            # another request hits 404 first and rebinds while this call is in flight
            await gen._rebind(DEFAULT_MODEL)
            raise Exception("404 model not found")
        return "answer from default"

    monkeypatch.setattr(generator, "_call_model", fake_call_model)
    assert asyncio.run(gen.generate("p")) == "answer from default"
    assert calls == ["gemini-custom", DEFAULT_MODEL]
    assert gen.model_name == DEFAULT_MODEL


def test_rebind_closes_previous_client(monkeypatch):
    closed = []
    sent = []
    monkeypatch.setattr(generator, "_make_client", lambda config: stub_client("ok", sent))
    gen = AnswerGenerator(GeneratorConfig(model="gemini-custom", api_key="k"), client=stub_client("x", [], closed))

    asyncio.run(gen._rebind(DEFAULT_MODEL))
    assert closed == [True]
    assert gen.model_name == DEFAULT_MODEL


def test_aclose_closes_current_client():
    closed = []
    gen = AnswerGenerator(GeneratorConfig(api_key="k"), client=stub_client("x", [], closed))
    asyncio.run(gen.aclose())
    assert closed == [True]

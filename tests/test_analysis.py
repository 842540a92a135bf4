"""Tests for the AI service façade and page analysis."""

import base64

import pytest
import pytest_mock

from browsermcp.ai import AIProviderError, AIResponse, AIService, PageAnalyst, create_adapter
from browsermcp.ai.analysis import build_content_prompt
from browsermcp.ai.anthropic_adapter import AnthropicAdapter
from browsermcp.ai.gemini_adapter import GeminiAdapter
from browsermcp.ai.openai_adapter import OpenAIAdapter
from browsermcp.browser import ElementNotFound, NavigationFailure
from browsermcp.browser.core import LINKS_SCRIPT, TABLES_SCRIPT
from browsermcp.config import AIConfig, ConfigError, ProviderConfig

from .conftest import FakeElement, FakeResponse


def _response(text: str) -> AIResponse:
    return AIResponse(text=text, model="test-model", provider="GEMINI")


@pytest.fixture
def adapter(mocker: pytest_mock.MockerFixture):
    fake = mocker.Mock()
    fake.provider = "GEMINI"
    fake.model_name = "test-model"
    fake.generate_text = mocker.AsyncMock(return_value=_response("text answer"))
    fake.generate_text_with_image = mocker.AsyncMock(return_value=_response("image answer"))
    fake.generate_chat_response = mocker.AsyncMock(return_value=_response("chat answer"))
    return fake


@pytest.fixture
def analyst(tools, adapter):
    return PageAnalyst(tools, AIService(AIConfig(), adapter=adapter))


@pytest.mark.parametrize(
    "provider, adapter_cls",
    [("GEMINI", GeminiAdapter), ("ANTHROPIC", AnthropicAdapter), ("OPENAI", OpenAIAdapter)],
)
def test_create_adapter_selects_provider(provider, adapter_cls):
    key = ProviderConfig(api_key="k", model_name="m")
    config = AIConfig(provider=provider, gemini=key, anthropic=key, openai=key)

    assert isinstance(create_adapter(config), adapter_cls)


def test_create_adapter_rejects_unknown_provider():
    with pytest.raises(ConfigError):
        create_adapter(AIConfig(provider="MISTRAL"))


@pytest.mark.asyncio
async def test_service_delegates_and_reraises(adapter):
    service = AIService(AIConfig(), adapter=adapter)

    assert (await service.generate_chat_response([{"role": "user", "content": "hi"}])).text == (
        "chat answer"
    )

    adapter.generate_text.side_effect = AIProviderError("GEMINI", "down")
    with pytest.raises(AIProviderError):
        await service.generate_text("hi")


def test_service_creates_adapter_lazily():
    service = AIService(AIConfig())

    assert service.provider == "GEMINI"
    with pytest.raises(ValueError, match="No Gemini API key"):
        service.adapter


def test_build_content_prompt_limits_sections():
    tables = [{"headers": ["h"], "rows": [[str(r)] for r in range(20)]} for _ in range(7)]
    links = [{"text": f"link{i}", "url": f"/{i}"} for i in range(30)]

    prompt = build_content_prompt(
        url="https://example.com",
        title="Example",
        question="What?",
        text="x" * 13_000,
        tables=tables,
        links=links,
    )

    assert "... (content truncated)" in prompt
    assert "Table 5:" in prompt
    assert "Table 6:" not in prompt
    assert "\n9\n" in prompt
    assert "\n10\n" not in prompt
    assert "- link19: /19" in prompt
    assert "link20" not in prompt
    assert prompt.rstrip().endswith("If the page does not contain the answer, say so.")
    assert "QUESTION: What?" in prompt


@pytest.mark.asyncio
async def test_analyze_screenshot(analyst, adapter, manager):
    handle = await manager.get_page()
    handle.page.url = "https://example.com"
    handle.page.page_title = "Example"

    result = await analyst.analyze_screenshot(
        "What colour is the header?", max_tokens=256, session_id=handle.session_id
    )

    assert result["analysis"] == "image answer"
    assert result["session_id"] == handle.session_id
    assert result["model"] == "test-model"
    prompt, image, mime, options = adapter.generate_text_with_image.call_args.args
    assert "Question: What colour is the header?" in prompt
    assert "URL: https://example.com" in prompt
    assert base64.b64decode(image) == b"page-png"
    assert mime == "image/png"
    assert options.max_tokens == 256
    assert options.temperature == 0.7


@pytest.mark.asyncio
async def test_analyze_screenshot_missing_selector(analyst, manager):
    handle = await manager.get_page()

    with pytest.raises(ElementNotFound):
        await analyst.analyze_screenshot("q", selector="#nope", session_id=handle.session_id)


@pytest.mark.asyncio
async def test_analyze_content(analyst, adapter, manager):
    handle = await manager.get_page()
    page = handle.page
    page.page_title = "Prices"
    page.body_text = "Widget costs 5 dollars"
    page.scripts[TABLES_SCRIPT] = [{"headers": ["item", "price"], "rows": [["widget", "5"]]}]
    page.scripts[LINKS_SCRIPT] = [{"text": "Shop", "url": "/shop"}]

    result = await analyst.analyze_content(
        "https://example.com/prices", "How much is a widget?", session_id=handle.session_id
    )

    assert result == {
        "question": "How much is a widget?",
        "answer": "text answer",
        "url": "https://example.com/prices",
        "title": "Prices",
        "model": "test-model",
        "provider": "GEMINI",
        "session_id": handle.session_id,
    }
    prompt, options = adapter.generate_text.call_args.args
    assert "Widget costs 5 dollars" in prompt
    assert "item | price" in prompt
    assert "- Shop: /shop" in prompt
    assert "HTML SOURCE" not in prompt
    assert options.temperature == 0.3
    assert options.max_tokens == 1000


@pytest.mark.asyncio
async def test_analyze_content_with_html_and_without_extras(analyst, adapter, manager):
    handle = await manager.get_page()
    handle.page.html = "<html><p>raw</p></html>"
    handle.page.scripts[LINKS_SCRIPT] = [{"text": "Shop", "url": "/shop"}]

    await analyst.analyze_content(
        "https://example.com",
        "q",
        extract_html=True,
        extract_links=False,
        extract_tables=False,
        session_id=handle.session_id,
    )

    prompt = adapter.generate_text.call_args.args[0]
    assert "HTML SOURCE:\n<html><p>raw</p></html>" in prompt
    assert "IMPORTANT LINKS" not in prompt
    assert "TABLES" not in prompt


@pytest.mark.asyncio
async def test_analyze_content_navigation_failure(analyst, adapter, manager):
    handle = await manager.get_page()
    handle.page.next_response = FakeResponse(500, "Server Error")

    with pytest.raises(NavigationFailure):
        await analyst.analyze_content("https://example.com", "q", session_id=handle.session_id)

    adapter.generate_text.assert_not_called()


@pytest.mark.asyncio
async def test_analyze_webpage_with_screenshot(analyst, adapter, manager):
    handle = await manager.get_page()
    handle.page.elements["#ready"] = FakeElement("div")

    result = await analyst.analyze_webpage(
        "https://example.com",
        "What is shown?",
        wait_for_selector="#ready",
        session_id=handle.session_id,
    )

    assert result["answer"] == "image answer"
    assert result["session_id"] == handle.session_id
    assert handle.page.screenshots == [{"type": "jpeg", "quality": 70, "full_page": False}]
    prompt, image, mime, options = adapter.generate_text_with_image.call_args.args
    assert mime == "image/jpeg"
    assert base64.b64decode(image) == b"page-jpeg"
    assert options.max_tokens == 2048
    adapter.generate_text.assert_not_called()


@pytest.mark.asyncio
async def test_analyze_webpage_falls_back_to_html(analyst, adapter, manager):
    handle = await manager.get_page()
    handle.page.html = "<html>" + "a" * 100_010 + "</html>"

    result = await analyst.analyze_webpage(
        "https://example.com", "q", extract_screenshot=False, session_id=handle.session_id
    )

    assert result["answer"] == "text answer"
    prompt = adapter.generate_text.call_args.args[0]
    assert "HTML Content:\n<html>" in prompt
    assert prompt.endswith("...[HTML truncated]")
    adapter.generate_text_with_image.assert_not_called()


@pytest.mark.asyncio
async def test_analyze_webpage_requires_question(analyst):
    with pytest.raises(ValueError):
        await analyst.analyze_webpage("https://example.com", " ")


@pytest.mark.asyncio
async def test_extract_structured_data_repairs_json(analyst, adapter):
    adapter.generate_text.return_value = _response('{"name": "Ada", "born": 1815,}')

    data = await analyst.extract_structured_data(
        "Ada Lovelace was born in 1815.", {"name": "string", "born": "integer"}
    )

    assert data == {"name": "Ada", "born": 1815}
    prompt = adapter.generate_text.call_args.args[0]
    assert '"born": "integer"' in prompt
    assert "Ada Lovelace was born in 1815." in prompt


@pytest.mark.asyncio
async def test_extract_structured_data_rejects_non_object(analyst, adapter):
    adapter.generate_text.return_value = _response("[1, 2, 3]")

    with pytest.raises(AIProviderError):
        await analyst.extract_structured_data("text", {"a": "string"})


@pytest.mark.asyncio
async def test_extract_structured_data_validates_input(analyst):
    with pytest.raises(ValueError):
        await analyst.extract_structured_data("", {"a": "string"})
    with pytest.raises(ValueError):
        await analyst.extract_structured_data("text", {})

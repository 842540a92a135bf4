"""AI-assisted page analysis built on top of :class:`BrowserTools`."""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, List, Mapping, Optional

import json_repair

from browsermcp.browser.core import BrowserTools, capture_png

from .base import AIProviderError, GenerationOptions
from .service import AIService

MAX_TEXT_CHARS = 12_000
MAX_HTML_CHARS = 100_000
MAX_TABLES = 5
MAX_TABLE_ROWS = 10
MAX_LINKS = 20

logger = logging.getLogger(__name__)


def build_content_prompt(
    *,
    url: str,
    title: str,
    question: str,
    text: str,
    tables: Optional[List[Mapping[str, Any]]] = None,
    links: Optional[List[Mapping[str, str]]] = None,
) -> str:
    """Assemble the text-only analysis prompt from extracted page content."""
    sections = [
        f"URL: {url}",
        f"TITLE: {title}",
        "",
        "CONTENT:",
        text[:MAX_TEXT_CHARS] + ("... (content truncated)" if len(text) > MAX_TEXT_CHARS else ""),
    ]
    if tables:
        sections.extend(["", "TABLES:"])
        for index, table in enumerate(tables[:MAX_TABLES], start=1):
            sections.append(f"Table {index}:")
            headers = table.get("headers") or []
            if headers:
                sections.append(" | ".join(headers))
                sections.append(" | ".join("---" for _ in headers))
            for row in (table.get("rows") or [])[:MAX_TABLE_ROWS]:
                sections.append(" | ".join(row))
            sections.append("")
    if links:
        sections.extend(["", "IMPORTANT LINKS:"])
        for link in links[:MAX_LINKS]:
            sections.append(f"- {link.get('text', '')}: {link.get('url', '')}")
    sections.extend(
        [
            "",
            f"QUESTION: {question}",
            "",
            "Answer the question using only the page content above. "
            "If the page does not contain the answer, say so.",
        ]
    )
    return "\n".join(sections)


class PageAnalyst:
    """Answer questions about pages by pairing browser captures with an AI model."""

    def __init__(self, tools: BrowserTools, ai: AIService) -> None:
        self._tools = tools
        self._ai = ai

    async def analyze_screenshot(
        self,
        question: str,
        *,
        selector: Optional[str] = None,
        full_page: bool = False,
        temperature: float = 0.7,
        max_tokens: int = 1024,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Screenshot the current page and ask the model about it."""
        if not question or not question.strip():
            raise ValueError("question must be a non-empty string.")
        logger.info("analyze_screenshot call: question=%r selector=%r", question, selector)
        async with self._tools.session_page(session_id) as handle:
            page = handle.page
            data = await capture_png(page, selector=selector, full_page=full_page)
            url = page.url
            title = await page.title()
        prompt = (
            "Analyze the following screenshot of a webpage.\n\n"
            f"URL: {url}\n"
            f"Title: {title}\n\n"
            f"Question: {question}\n\n"
            "Describe what you see and answer the question based only on the screenshot."
        )
        response = await self._ai.generate_text_with_image(
            prompt,
            base64.b64encode(data).decode("ascii"),
            "image/png",
            GenerationOptions(temperature=temperature, max_tokens=max_tokens),
        )
        return {
            "analysis": response.text,
            "url": url,
            "title": title,
            "model": response.model,
            "provider": response.provider,
            "session_id": handle.session_id,
        }

    async def analyze_content(
        self,
        url: str,
        question: str,
        *,
        extract_html: bool = False,
        extract_tables: bool = True,
        extract_links: bool = True,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Navigate to ``url``, extract its content and answer ``question``."""
        if not url or not url.strip():
            raise ValueError("url must be a non-empty string.")
        if not question or not question.strip():
            raise ValueError("question must be a non-empty string.")
        logger.info("analyze_content call: url=%s question=%r", url, question)
        async with self._tools.session_page(session_id) as handle:
            page = handle.page
            await self._tools.goto(page, url.strip(), timeout=self._tools.default_timeout_ms)
            title = await page.title()
            current_url = page.url
            text = await self._tools.page_text(page)
            tables = await self._tools.page_tables(page) if extract_tables else None
            links = await self._tools.page_links(page) if extract_links else None
            html = await page.content() if extract_html else None

        prompt = build_content_prompt(
            url=current_url,
            title=title,
            question=question,
            text=text,
            tables=tables,
            links=links,
        )
        if html:
            prompt += "\n\nHTML SOURCE:\n" + html[:MAX_HTML_CHARS]
        response = await self._ai.generate_text(
            prompt, GenerationOptions(temperature=0.3, max_tokens=1000)
        )
        logger.info("analyze_content answered %d chars for %s", len(response.text), current_url)
        return {
            "question": question,
            "answer": response.text,
            "url": current_url,
            "title": title,
            "model": response.model,
            "provider": response.provider,
            "session_id": handle.session_id,
        }

    async def analyze_webpage(
        self,
        url: str,
        question: str,
        *,
        extract_screenshot: bool = True,
        wait_for_selector: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Answer ``question`` about ``url`` from a screenshot or, failing that, its HTML."""
        if not url or not url.strip():
            raise ValueError("url must be a non-empty string.")
        if not question or not question.strip():
            raise ValueError("question must be a non-empty string.")
        logger.info("Analyzing webpage: %s with question: %s", url, question)
        timeout = timeout_ms or self._tools.default_timeout_ms
        async with self._tools.session_page(session_id) as handle:
            page = handle.page
            await self._tools.goto(page, url.strip(), timeout=timeout)
            if wait_for_selector:
                await page.wait_for_selector(wait_for_selector, timeout=timeout)
            title = await page.title()
            current_url = page.url
            html = await page.content()
            screenshot: Optional[bytes] = None
            if extract_screenshot:
                screenshot = await page.screenshot(type="jpeg", quality=70, full_page=False)

        prompt = (
            "I need you to analyze this webpage and answer a specific question.\n\n"
            f"URL: {current_url}\n"
            f"Title: {title}\n\n"
            f"Question: {question}\n\n"
        )
        options = GenerationOptions(temperature=0.3, max_tokens=2048)
        if screenshot:
            prompt += (
                "I have included a screenshot of the webpage. Analyze it to provide "
                "the most accurate answer.\n\n"
                "If the information needed to answer the question is not present on "
                "this webpage, indicate that."
            )
            response = await self._ai.generate_text_with_image(
                prompt, base64.b64encode(screenshot).decode("ascii"), "image/jpeg", options
            )
        else:
            truncated = html
            if len(html) > MAX_HTML_CHARS:
                truncated = html[:MAX_HTML_CHARS] + "...[HTML truncated]"
            prompt += (
                "Analyze the HTML to provide the most accurate answer. If the "
                "information needed to answer the question is not present on this "
                "webpage, indicate that.\n\n"
                f"HTML Content:\n{truncated}"
            )
            response = await self._ai.generate_text(prompt, options)

        logger.info("Successfully analyzed webpage: %s", current_url)
        return {
            "title": title,
            "url": current_url,
            "answer": response.text,
            "model": response.model,
            "provider": response.provider,
            "session_id": handle.session_id,
        }

    async def extract_structured_data(
        self, text: str, schema: Mapping[str, Any]
    ) -> Dict[str, Any]:
        """Ask the model to pull fields matching ``schema`` out of ``text``.

        The reply is parsed with :mod:`json_repair`, so fenced blocks, trailing
        commas and similar near-JSON answers are accepted.
        """
        if not text or not text.strip():
            raise ValueError("text must be a non-empty string.")
        if not isinstance(schema, Mapping) or not schema:
            raise ValueError("schema must be a non-empty mapping.")
        logger.info("Extracting structured data with AI")
        prompt = (
            "Extract structured data from the following text according to this JSON schema:\n"
            f"{json.dumps(dict(schema), indent=2)}\n\n"
            f"Text:\n{text}\n\n"
            "Return ONLY a JSON object matching the schema, without any additional "
            "text or explanation."
        )
        response = await self._ai.generate_text(prompt, GenerationOptions(temperature=0.2))
        data = json_repair.loads(response.text)
        if not isinstance(data, dict):
            logger.debug("AI response: %s", response.text)
            raise AIProviderError(
                response.provider, "failed to parse structured data from the model reply"
            )
        logger.info("Data extraction complete: %d keys", len(data))
        return data


__all__ = ["PageAnalyst", "build_content_prompt"]

from __future__ import annotations

import logging
from typing import Callable, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from stronghold.config.constants import LLM_REQUEST_TIMEOUT, llm_model

logger = logging.getLogger(__name__)

GenerateFn = Callable[[str], str]

SYSTEM_PROMPT = (
    "You are a fitness coach. Return ONLY valid JSON. "
    "Do not include markdown, code fences, or extra commentary."
)


def build_llm_generate(
    model: Optional[str] = None,
    system_prompt: str = SYSTEM_PROMPT,
    llm: Optional[ChatOpenAI] = None,
) -> GenerateFn:
    """Return ``generate(prompt) -> text`` backed by a chat model.

    Retries are disabled; callers decide what a failed call means.
    """
    chat = llm or ChatOpenAI(
        model=model or llm_model(),
        temperature=0,
        max_retries=0,
        request_timeout=LLM_REQUEST_TIMEOUT,
    )

    def generate(prompt: str) -> str:
        response = chat.invoke([SystemMessage(content=system_prompt), HumanMessage(content=prompt)])
        raw_content = response.content if isinstance(response.content, str) else ""
        logger.debug("[generate] chars=%d", len(raw_content))
        return raw_content

    return generate

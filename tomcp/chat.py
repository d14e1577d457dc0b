"""
Grounded chat against a website's content.

The system prompt carries the target URL and its normalised Markdown; only the
most recent history turns are forwarded to keep the prompt small.
"""
from __future__ import annotations

import logging
import os
import time
from typing import Callable, List, Optional, Protocol, Sequence

from openai import OpenAI
from pydantic import BaseModel

from .config import ChatConfig
from .retry import RetryPolicy, call_with_retry, linear_backoff

logger = logging.getLogger(__name__)

EMPTY_RESPONSE = "No response generated"

SYSTEM_PROMPT = """You are a helpful assistant that answers questions about the website {url}.
You have access to the website's content below. Answer questions based on this content.
If the answer isn't in the content, say so honestly.

Website Content:
{content}"""


class ChatTurn(BaseModel):
    # caller history is forwarded as-is, whatever roles it uses
    role: str
    content: str


class ChatRequest(BaseModel):
    url: Optional[str] = None
    message: Optional[str] = None
    history: Optional[List[ChatTurn]] = None
    apiKey: Optional[str] = None


class ChatModel(Protocol):
    def generate(self, messages: List[dict], max_tokens: int) -> str:
        ...


class OpenAIChatModel:
    """Any OpenAI-compatible chat completions endpoint."""

    def __init__(self, client: OpenAI, model: str) -> None:
        self.client = client
        self.model = model

    def generate(self, messages: List[dict], max_tokens: int) -> str:
        resp = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=max_tokens,
        )
        if not resp.choices:
            return ""
        return resp.choices[0].message.content or ""


def build_chat_model(cfg: Optional[ChatConfig] = None) -> Optional[ChatModel]:
    """Return a model client, or None when credentials are not configured."""
    cfg = cfg or ChatConfig()
    api_key = os.getenv(cfg.api_key_env, "")
    if not api_key:
        logger.warning("%s is not set; chat is disabled", cfg.api_key_env)
        return None
    base_url = cfg.base_url
    if "{account_id}" in base_url:
        account_id = os.getenv(cfg.account_id_env, "")
        if not account_id:
            logger.warning(
                "%s is not set; chat is disabled", cfg.account_id_env
            )
            return None
        base_url = base_url.format(account_id=account_id)
    return OpenAIChatModel(OpenAI(api_key=api_key, base_url=base_url), cfg.model)


def build_messages(
    target_url: str,
    grounding_text: str,
    user_message: str,
    history: Sequence[ChatTurn],
    history_turns: int = 6,
) -> List[ChatTurn]:
    recent = list(history)[-history_turns:] if history_turns > 0 else []
    return [
        ChatTurn(
            role="system",
            content=SYSTEM_PROMPT.format(url=target_url, content=grounding_text),
        ),
        *recent,
        ChatTurn(role="user", content=user_message),
    ]


class ChatOrchestrator:
    def __init__(
        self,
        model: ChatModel,
        cfg: Optional[ChatConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.model = model
        self.cfg = cfg or ChatConfig()
        self.policy = RetryPolicy(
            max_attempts=self.cfg.max_attempts,
            backoff=linear_backoff(self.cfg.backoff_ms / 1000),
        )
        self._sleep = sleep

    def complete(
        self,
        target_url: str,
        grounding_text: str,
        user_message: str,
        history: Sequence[ChatTurn] = (),
    ) -> str:
        """Answer ``user_message`` from ``grounding_text``.

        Model errors are retried per the policy; the last one propagates.
        """
        messages = [
            t.model_dump()
            for t in build_messages(
                target_url,
                grounding_text,
                user_message,
                history,
                self.cfg.history_turns,
            )
        ]
        logger.info(
            "Chat for %s: %d messages, %d grounding chars",
            target_url,
            len(messages),
            len(grounding_text),
        )
        text = call_with_retry(
            lambda: self.model.generate(messages, self.cfg.max_tokens),
            self.policy,
            sleep=self._sleep,
        )
        return text or EMPTY_RESPONSE

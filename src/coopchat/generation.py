"""Host-side generation backends.

``LocalChatBackend`` plays the part of the host application's chat: it stores
messages, runs a completion for each combined prompt and reports the new
assistant message id back to the session, which then broadcasts it.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Optional, Set

import httpx

from .collaborators import ChatMessage


Completion = Callable[[str], Awaitable[str]]


async def echo_completion(prompt: str) -> str:
    """Offline completion used when no model endpoint is configured."""
    return f"(echo) {prompt}"


class HttpCompletion:
    """Completion against an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(
        self,
        base_url: str,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    async def __call__(self, prompt: str) -> str:
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers=headers,
                json={
                    "model": self.model,
                    "messages": [{"role": "user", "content": prompt}],
                },
            )
            response.raise_for_status()
            data = response.json()
            return data["choices"][0]["message"]["content"]


class LocalChatBackend:
    """In-process chat store plus completion runner.

    Args:
        completion: Coroutine function turning a prompt into a reply
        on_generated: Called with the assistant message id once a reply is stored
        on_failed: Called with the exception if a completion fails
    """

    def __init__(
        self,
        completion: Completion = echo_completion,
        on_generated: Optional[Callable[[str], None]] = None,
        on_failed: Optional[Callable[[BaseException], None]] = None,
    ):
        self.completion = completion
        self.on_generated = on_generated
        self.on_failed = on_failed
        self.messages: List[ChatMessage] = []
        self._tasks: Set[asyncio.Task] = set()

    def generate(self, prompt: str) -> None:
        self.messages.append(ChatMessage(role="user", message=prompt))
        task = asyncio.get_running_loop().create_task(self._complete(prompt))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def get_last_generated_message(self, message_id: str) -> Optional[ChatMessage]:
        for message in reversed(self.messages):
            if message.id == message_id:
                return message
        return None

    def add_assistant_message(self, text: str) -> ChatMessage:
        message = ChatMessage(role="assistant", message=text)
        self.messages.append(message)
        return message

    async def _complete(self, prompt: str) -> None:
        try:
            reply = await self.completion(prompt)
            if not isinstance(reply, str):
                raise TypeError(f"completion returned {type(reply).__name__}, expected str")
        except Exception as e:
            # any failure abandons the round; the session decides what to log
            if self.on_failed is not None:
                self.on_failed(e)
            return
        message = self.add_assistant_message(reply)
        if self.on_generated is not None:
            self.on_generated(message.id)

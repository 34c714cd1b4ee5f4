"""Concrete implementations for chat-completion providers."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models import ASSISTANT_ROLE, SYSTEM_ROLE, USER_ROLE, Message


class LLM(ABC):
    """Abstract Base Class for all chat-completion providers."""

    @abstractmethod
    def generate_response(
        self, messages: List[Dict[str, str]], model: Optional[str] = None, **kwargs: Any
    ) -> Any:
        """Generates a response from the LLM provider.

        This method should return the provider's native, rich response object
        directly from their SDK.

        Parameters
        ----------
        messages : List[Dict[str, str]]
            Ordered ``{"role", "content"}`` dictionaries, system instruction
            first and the newest user message last.
        model : str, optional
            The specific model to use. Falls back to the provider's default.
        **kwargs : Any
            Provider-specific parameters (e.g., temperature) to be passed
            directly to the SDK.

        Returns
        -------
        Any
            The provider's native, rich response object.
        """
        pass

    @abstractmethod
    def extract_choices(self, response: Any) -> List[Message]:
        """Extracts the candidate replies from the provider's native response.

        Parameters
        ----------
        response : Any
            The provider's native response object from generate_response.

        Returns
        -------
        List[Message]
            Candidate replies in provider order. Empty when the provider
            returned no choices.
        """
        pass


class OpenAI(LLM):
    def __init__(
        self, default_model: str = "gpt-4", timeout: float = 60.0, client: Any = None
    ):
        if client is None:
            from openai import OpenAI

            client = OpenAI(timeout=timeout)
        self.client = client
        self.model = default_model
        self.timeout = timeout

    def generate_response(self, messages, model=None, **kwargs):
        kwargs.setdefault("timeout", self.timeout)
        return self.client.chat.completions.create(
            messages=messages, model=model or self.model, **kwargs
        )

    def extract_choices(self, response: Any) -> List[Message]:
        return [
            Message(role=ASSISTANT_ROLE, content=choice.message.content or "")
            for choice in (response.choices or [])
        ]


class Anthropic(LLM):
    def __init__(
        self,
        default_model: str = "claude-3-5-sonnet-20241022",
        timeout: float = 60.0,
        client: Any = None,
    ):
        if client is None:
            from anthropic import Anthropic

            client = Anthropic(timeout=timeout)
        self.client = client
        self.model = default_model
        self.timeout = timeout

    def generate_response(self, messages, model=None, **kwargs):
        # The Messages API takes the system instruction as a separate parameter.
        system = "\n\n".join(m["content"] for m in messages if m["role"] == SYSTEM_ROLE)
        chat = [m for m in messages if m["role"] != SYSTEM_ROLE]
        if system:
            kwargs["system"] = system
        if "max_tokens" not in kwargs:
            kwargs["max_tokens"] = 1024
        kwargs.setdefault("timeout", self.timeout)
        return self.client.messages.create(
            model=model or self.model, messages=chat, **kwargs
        )

    def extract_choices(self, response: Any) -> List[Message]:
        text = "".join(
            block.text
            for block in (response.content or [])
            if getattr(block, "type", None) == "text"
        )
        if not text:
            return []
        return [Message(role=ASSISTANT_ROLE, content=text)]


class Ollama(LLM):
    def __init__(
        self,
        default_model: str = "llama3.1",
        timeout: float = 60.0,
        host: Optional[str] = None,
        client: Any = None,
    ):
        if client is None:
            from ollama import Client

            client = Client(host=host, timeout=timeout)
        self.client = client
        self.model = default_model

    def generate_response(self, messages, model=None, **kwargs):
        # Client.chat takes no per-call timeout; it is set on the client.
        return self.client.chat(model=model or self.model, messages=messages, **kwargs)

    def extract_choices(self, response: Any) -> List[Message]:
        message = response["message"] if response else None
        if not message:
            return []
        return [Message(role=ASSISTANT_ROLE, content=message["content"] or "")]


class Echo(LLM):
    """Offline provider that repeats the last user prompt back."""

    def __init__(self, default_model: str = "echo-v1"):
        self.model = default_model

    def generate_response(self, messages, model=None, **kwargs):
        user_prompt = next(
            (m["content"] for m in reversed(messages) if m["role"] == USER_ROLE),
            "nothing",
        )
        return {
            "model": model or self.model,
            "choices": [
                {"message": {"role": ASSISTANT_ROLE, "content": f"You said: {user_prompt}"}}
            ],
        }

    def extract_choices(self, response: Any) -> List[Message]:
        return [
            Message(role=ASSISTANT_ROLE, content=choice["message"]["content"])
            for choice in response.get("choices", [])
        ]

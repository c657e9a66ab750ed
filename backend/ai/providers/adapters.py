"""
AI Provider Adapters
Translates one generic "generate instruction" request into each vendor's native API.

Supports:
- OpenAI chat completions (also DeepSeek, Qwen and custom OpenAI-compatible endpoints)
- Azure OpenAI (api-key header)
- Anthropic messages
- Google Gemini generateContent
- Ollama chat (local)
"""

import ipaddress
import socket
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import urlparse

import httpx
from langchain_core.messages import BaseMessage

from models import ProviderKind

MAX_TOKENS = 100
TEMPERATURE = 0.7


class UpstreamError(Exception):
    """The vendor answered, but not with a usable instruction."""
    pass


# Hostnames that always resolve to the local machine or a cloud metadata service
_LOCAL_HOSTNAMES = ('localhost', 'localhost.localdomain', 'ip6-localhost', 'ip6-loopback')
_METADATA_HOSTNAMES = ('metadata.google.internal', 'metadata')


def _host_address(host: str) -> Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
    """Parse host as an IP address, including shorthand IPv4 such as 127.1."""
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        try:
            # inet_aton accepts the short, octal and hex forms resolvers honour
            address = ipaddress.IPv4Address(socket.inet_aton(host))
        except (OSError, ValueError):
            return None

    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped
    return address


def validate_base_url(url: str, allow_internal: bool = False) -> str:
    """
    Validate that a provider endpoint URL is safe and well-formed.

    Link-local and cloud metadata endpoints are always rejected, even when
    internal hosts are allowed (e.g. a local Ollama server).

    Args:
        url: The URL to validate
        allow_internal: If False (default), blocks loopback/private/reserved addresses

    Returns:
        The validated URL

    Raises:
        ValueError: If URL is invalid or potentially dangerous
    """
    if not url:
        raise ValueError("api_url cannot be empty")

    parsed = urlparse(url)

    # Must have valid scheme
    if parsed.scheme not in ('http', 'https'):
        raise ValueError("api_url must use http or https scheme")

    # Must have valid host
    if not parsed.netloc or not parsed.hostname:
        raise ValueError("Invalid api_url format: missing host")

    host = parsed.hostname.lower().rstrip('.')
    address = _host_address(host)

    # Block link-local and metadata endpoints (SSRF protection)
    if host in _METADATA_HOSTNAMES or (address is not None and address.is_link_local):
        raise ValueError("api_url cannot point to link-local or metadata endpoints")

    if allow_internal:
        return url

    # Block localhost variants
    if host in _LOCAL_HOSTNAMES or host.endswith('.localhost'):
        raise ValueError("api_url cannot point to localhost")

    if address is not None:
        if address.is_loopback or address.is_unspecified:
            raise ValueError("api_url cannot point to localhost")
        if address.is_private or address.is_reserved:
            raise ValueError("api_url cannot point to private IP addresses")

    return url


def _split_messages(messages: List[BaseMessage]) -> Tuple[str, List[Dict[str, str]]]:
    """Separate the system prompt from the conversational turns."""
    system_parts = []
    turns = []
    for message in messages:
        if message.type == "system":
            system_parts.append(str(message.content))
        elif message.type == "ai":
            turns.append({"role": "assistant", "content": str(message.content)})
        else:
            turns.append({"role": "user", "content": str(message.content)})
    return "\n".join(system_parts), turns


def _chat_messages(messages: List[BaseMessage]) -> List[Dict[str, str]]:
    """OpenAI-style role/content list, system prompt first."""
    system, turns = _split_messages(messages)
    chat = [{"role": "system", "content": system}] if system else []
    return chat + turns


class ProviderAdapter(ABC):
    """Abstract base class for vendor protocol adapters."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Adapter name for logging/debugging."""
        pass

    @abstractmethod
    def build_headers(self, credential: str) -> Dict[str, str]:
        pass

    @abstractmethod
    def build_payload(self, model: str, messages: List[BaseMessage]) -> Dict[str, Any]:
        pass

    @abstractmethod
    def extract_text(self, data: Dict[str, Any]) -> str:
        """Pull the generated text out of the vendor's response envelope."""
        pass

    @property
    def requires_credential(self) -> bool:
        return True

    async def generate(
        self,
        client: httpx.AsyncClient,
        api_url: str,
        model: str,
        credential: str,
        messages: List[BaseMessage],
        timeout: float,
    ) -> str:
        """
        Call the vendor endpoint and return the instruction text.

        Raises:
            httpx.HTTPError: On network errors, timeouts and non-success statuses
            UpstreamError: If the response body is not the expected shape
        """
        headers = {"Content-Type": "application/json"}
        headers.update(self.build_headers(credential))

        response = await client.post(
            api_url,
            headers=headers,
            json=self.build_payload(model, messages),
            timeout=timeout,
        )
        response.raise_for_status()

        try:
            text = self.extract_text(response.json())
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            raise UpstreamError(f"{self.name}: malformed response body") from e

        if not isinstance(text, str) or not text.strip():
            raise UpstreamError(f"{self.name}: empty instruction")
        return text.strip()


class OpenAIChatAdapter(ProviderAdapter):
    """OpenAI chat completions with bearer-token auth."""

    @property
    def name(self) -> str:
        return "OpenAI"

    def build_headers(self, credential: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {credential}"}

    def build_payload(self, model: str, messages: List[BaseMessage]) -> Dict[str, Any]:
        return {
            "model": model,
            "messages": _chat_messages(messages),
            "max_tokens": MAX_TOKENS,
            "temperature": TEMPERATURE,
        }

    def extract_text(self, data: Dict[str, Any]) -> str:
        return data["choices"][0]["message"]["content"]


class AzureOpenAIAdapter(OpenAIChatAdapter):
    """Azure OpenAI (and APIM-proxied) deployments use an api-key header."""

    @property
    def name(self) -> str:
        return "Azure OpenAI"

    def build_headers(self, credential: str) -> Dict[str, str]:
        return {"api-key": credential}


class AnthropicAdapter(ProviderAdapter):
    """Anthropic messages API."""

    API_VERSION = "2023-06-01"

    @property
    def name(self) -> str:
        return "Anthropic"

    def build_headers(self, credential: str) -> Dict[str, str]:
        return {"x-api-key": credential, "anthropic-version": self.API_VERSION}

    def build_payload(self, model: str, messages: List[BaseMessage]) -> Dict[str, Any]:
        system, turns = _split_messages(messages)
        payload = {
            "model": model,
            "max_tokens": MAX_TOKENS,
            "temperature": TEMPERATURE,
            "messages": turns,
        }
        if system:
            payload["system"] = system
        return payload

    def extract_text(self, data: Dict[str, Any]) -> str:
        return data["content"][0]["text"]


class GeminiAdapter(ProviderAdapter):
    """Google Gemini generateContent; the model is part of the endpoint URL."""

    @property
    def name(self) -> str:
        return "Gemini"

    def build_headers(self, credential: str) -> Dict[str, str]:
        return {"x-goog-api-key": credential}

    def build_payload(self, model: str, messages: List[BaseMessage]) -> Dict[str, Any]:
        system, turns = _split_messages(messages)
        payload = {
            "contents": [
                {
                    "role": "model" if turn["role"] == "assistant" else "user",
                    "parts": [{"text": turn["content"]}],
                }
                for turn in turns
            ],
            "generationConfig": {
                "maxOutputTokens": MAX_TOKENS,
                "temperature": TEMPERATURE,
            },
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        return payload

    def extract_text(self, data: Dict[str, Any]) -> str:
        return data["candidates"][0]["content"]["parts"][0]["text"]


class OllamaAdapter(ProviderAdapter):
    """Ollama (local) chat endpoint, no authentication."""

    @property
    def name(self) -> str:
        return "Ollama"

    @property
    def requires_credential(self) -> bool:
        return False

    def build_headers(self, credential: str) -> Dict[str, str]:
        return {}

    def build_payload(self, model: str, messages: List[BaseMessage]) -> Dict[str, Any]:
        return {
            "model": model,
            "messages": _chat_messages(messages),
            "stream": False,
            "options": {"temperature": TEMPERATURE, "num_predict": MAX_TOKENS},
        }

    def extract_text(self, data: Dict[str, Any]) -> str:
        return data["message"]["content"]


# Adapter registry; kinds without an entry get the templated fallback
_openai = OpenAIChatAdapter()

_ADAPTERS: Dict[ProviderKind, ProviderAdapter] = {
    ProviderKind.OPENAI: _openai,
    ProviderKind.DEEPSEEK: _openai,
    ProviderKind.QWEN: _openai,
    ProviderKind.CUSTOM: _openai,
    ProviderKind.AZURE_OPENAI: AzureOpenAIAdapter(),
    ProviderKind.ANTHROPIC: AnthropicAdapter(),
    ProviderKind.GEMINI: GeminiAdapter(),
    ProviderKind.OLLAMA: OllamaAdapter(),
}


def get_adapter(kind: ProviderKind) -> Optional[ProviderAdapter]:
    """Return the adapter for a provider kind, or None if none is registered."""
    return _ADAPTERS.get(kind)

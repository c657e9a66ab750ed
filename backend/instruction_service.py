"""
Instruction Service
Generates a short, localized instruction for a UI element through the user's AI provider.
"""

import logging
from typing import Any, Dict, Tuple

import httpx
from sqlmodel import Session, select
from starlette.concurrency import run_in_threadpool

from ai.prompts import build_instruction_messages, fallback_instruction
from ai.providers.adapters import UpstreamError, get_adapter
from config_service import NotFoundError, get_owned_provider
from crypto import CredentialCipher, CredentialError, RECONFIGURATION_SENTINEL
from models import AIProvider, Language

logger = logging.getLogger(__name__)


class InstructionService:
    """Dispatches instruction generation to the adapter of the provider's kind."""

    def __init__(self, http_client: httpx.AsyncClient, cipher: CredentialCipher, timeout: float = 15.0):
        self.http_client = http_client
        self.cipher = cipher
        self.timeout = timeout

    async def generate(
        self,
        session: Session,
        user_id: str,
        element_label: str,
        html_context: str,
        language_code: str,
        provider_id: str,
    ) -> Dict[str, Any]:
        """
        Returns {instruction, language, provider, tts_voice_tag}.

        Vendor failures never reach the caller: the templated fallback
        instruction is returned instead, in the same envelope.

        Raises:
            NotFoundError: If the provider or language does not exist for this user
        """
        # Blocking queries run off the event loop; only the vendor call is awaited
        provider, language = await run_in_threadpool(
            self._lookup, session, user_id, provider_id, language_code
        )

        instruction = await self._instruction_for(provider, language, element_label, html_context)

        return {
            "instruction": instruction,
            "language": language.code,
            "provider": provider.name,
            "tts_voice_tag": language.tts_voice_tag,
        }

    def _lookup(
        self,
        session: Session,
        user_id: str,
        provider_id: str,
        language_code: str,
    ) -> Tuple[AIProvider, Language]:
        provider = get_owned_provider(session, user_id, provider_id)
        if provider is None:
            raise NotFoundError("AI provider not found")

        language = session.exec(
            select(Language).where(Language.code == language_code, Language.user_id == user_id)
        ).first()
        if language is None:
            raise NotFoundError("Language not found")

        return provider, language

    async def _instruction_for(
        self,
        provider: AIProvider,
        language: Language,
        element_label: str,
        html_context: str,
    ) -> str:
        adapter = get_adapter(provider.kind)
        if adapter is None:
            logger.warning(
                "No adapter for provider %s (kind=%s); using fallback instruction",
                provider.id, provider.kind.value,
            )
            return fallback_instruction(element_label)

        credential = ""
        if adapter.requires_credential:
            try:
                credential = self.cipher.decrypt(provider.credential_encrypted)
            except CredentialError as e:
                logger.warning("Provider %s credential unusable (%s); using fallback instruction", provider.id, e)
                return fallback_instruction(element_label)
            if credential == RECONFIGURATION_SENTINEL:
                logger.warning("Provider %s needs its API key re-entered; using fallback instruction", provider.id)
                return fallback_instruction(element_label)

        messages = build_instruction_messages(element_label, html_context, language.label)

        try:
            return await adapter.generate(
                self.http_client,
                provider.api_url,
                provider.model,
                credential,
                messages,
                self.timeout,
            )
        except httpx.HTTPStatusError as e:
            logger.warning(
                "%s call for provider %s returned %s; using fallback instruction",
                adapter.name, provider.id, e.response.status_code,
            )
        except (httpx.HTTPError, httpx.InvalidURL, UpstreamError) as e:
            logger.warning(
                "%s call for provider %s failed (%s: %s); using fallback instruction",
                adapter.name, provider.id, type(e).__name__, e,
            )
        return fallback_instruction(element_label)

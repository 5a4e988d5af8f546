"""Provider client for OpenAI-compatible chat-completion APIs."""

from __future__ import annotations

import logging
import os
from typing import Callable, Optional, Protocol, Tuple

import requests

from ..config.schemas import ApiConfig
from .batch import BatchRequest
from .errors import EmptyReply, NetworkFailure, NoCredentialError, ProviderError

logger = logging.getLogger(__name__)

CREDENTIAL_ENV_VARS: Tuple[str, ...] = ("GROQ_API_KEY", "VITE_GROQ_API_KEY")


class Provider(Protocol):
    """Anything that turns a composed request into the provider's raw reply text."""

    def complete(self, request: BatchRequest) -> str:
        ...


class CallableProvider:
    """Adapt a plain ``call(payload) -> text`` function to ``Provider``."""

    def __init__(self, call: Callable[[BatchRequest], str]) -> None:
        self._call = call

    def complete(self, request: BatchRequest) -> str:
        return self._call(request)


class Translator:
    """Call the external translation API using the OpenAI-compatible schema."""

    def __init__(
        self,
        api_config: ApiConfig,
        session: Optional[requests.Session] = None,
        log: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._api_config = api_config
        self._session = session or requests.Session()
        self._log_callback = log

    def _log(self, message: str) -> None:
        if self._log_callback:
            self._log_callback(message)
        else:
            logger.debug(message)

    def resolve_api_key(self) -> Optional[str]:
        if self._api_config.api_key:
            return self._api_config.api_key
        for name in CREDENTIAL_ENV_VARS:
            value = os.environ.get(name)
            if value:
                return value
        return None

    def build_payload(self, request: BatchRequest) -> dict:
        return {
            "model": self._api_config.model,
            "messages": [
                {"role": "system", "content": request.system},
                {"role": "user", "content": request.prompt},
            ],
            "temperature": self._api_config.temperature,
            "max_tokens": self._api_config.batch_max_tokens if request.is_batch else self._api_config.max_tokens,
            "stream": False,
        }

    def complete(self, request: BatchRequest) -> str:
        """Send ``request`` and return the reply text, stripped.

        Raises:
            NoCredentialError: No API key in config or environment.
            NetworkFailure: Transport error or timeout.
            ProviderError: Non-2xx status.
            EmptyReply: 2xx status without usable content.
        """
        api_key = self.resolve_api_key()
        if not api_key:
            raise NoCredentialError("未配置翻译API密钥")

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }
        payload = self.build_payload(request)
        self._log(f"请求模型: {self._api_config.model}，条目数: {len(request.entries)}")

        try:
            response = self._session.post(
                self._api_config.endpoint,
                json=payload,
                headers=headers,
                timeout=self._api_config.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise NetworkFailure(f"API请求失败: {exc}") from exc

        self._log(f"API响应状态码: {response.status_code}")
        if not 200 <= response.status_code < 300:
            raise ProviderError(response.status_code, response.text)

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise EmptyReply(f"API响应缺少内容: {exc}") from exc

        if not isinstance(content, str) or not content.strip():
            raise EmptyReply("API返回空内容")

        self._log(f"API返回内容: {content[:50]}{'...' if len(content) > 50 else ''}")
        return content.strip()

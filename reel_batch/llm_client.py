"""
LLM access for structural analysis.

Two backends, both over plain HTTP with requests:
- Anthropic Messages API (Claude)
- Local Ollama (llama3.2, qwen3, mistral, ...)

build_provider_chain() puts Claude first when a key is configured and
Ollama behind it; ProviderChain returns the first reply that arrives.
"""

import os
import time
import requests
from dataclasses import dataclass
from typing import Optional, Sequence

from utils.logger import get_logger
from utils.retry import RetryConfig, retry_operation, first_success, FallbackError

logger = get_logger()


# =============================================================================
# PROVIDERS
# =============================================================================

@dataclass
class ModelInfo:
    id: str
    name: str
    cost_tier: str  # 'free', 'low', 'medium'


@dataclass
class ProviderConfig:
    id: str
    name: str
    api_key_env: str  # empty when no key is needed
    base_url: str
    models: list[ModelInfo]


PROVIDERS = {
    'anthropic': ProviderConfig(
        id='anthropic',
        name='Anthropic',
        api_key_env='ANTHROPIC_API_KEY',
        base_url='https://api.anthropic.com/v1',
        models=[
            ModelInfo('claude-3-haiku-20240307', 'Claude 3 Haiku (Recommended)', 'low'),
            ModelInfo('claude-3-5-sonnet-20241022', 'Claude 3.5 Sonnet', 'medium'),
        ]
    ),
    'local': ProviderConfig(
        id='local',
        name='Local (Ollama)',
        api_key_env='',
        base_url='http://localhost:11434/api',
        models=[
            ModelInfo('llama3.2', 'Llama 3.2 (Recommended)', 'free'),
            ModelInfo('qwen3', 'Qwen 3', 'free'),
            ModelInfo('llama3.1', 'Llama 3.1', 'free'),
            ModelInfo('mistral', 'Mistral', 'free'),
        ]
    ),
}

ANTHROPIC_VERSION = "2023-06-01"

# Rate limits, gateway errors and Anthropic's 529 "overloaded"
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504, 529}


class TransientLLMError(Exception):
    """Provider failure worth retrying (rate limit, overload, network)"""


class AllProvidersFailedError(FallbackError):
    """Every provider in a ProviderChain failed"""


# =============================================================================
# CLIENT
# =============================================================================

class LLMClient:
    """
    One provider/model pair.

    Usage:
        client = LLMClient(provider='anthropic', model='claude-3-haiku-20240307')
        reply = client.chat(user_prompt, system_prompt=system_prompt)
    """

    def __init__(
        self,
        provider: str,
        model: str,
        api_key: Optional[str] = None,
        timeout: int = 120,
        max_tokens: int = 2000,
        max_retries: int = 2,
        base_delay: float = 1.0,
        max_delay: float = 30.0
    ):
        """
        Args:
            provider: 'anthropic' or 'local'
            model: Model ID
            api_key: Read from the provider's env var when omitted
            timeout: Per-request timeout in seconds
            max_retries: Extra attempts after a transient failure
        """
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown provider: {provider}. Valid: {list(PROVIDERS)}")

        self.provider = provider
        self.model = model
        self.config = PROVIDERS[provider]
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.retry = RetryConfig(
            max_attempts=max_retries + 1,
            initial_delay=base_delay,
            max_delay=max_delay,
            jitter=False,
            retryable_exceptions=(TransientLLMError,)
        )

        self.api_key = None
        if self.config.api_key_env:
            self.api_key = api_key or os.getenv(self.config.api_key_env)
            if not self.api_key:
                raise ValueError(
                    f"Missing API key for {provider}. Set {self.config.api_key_env} environment variable."
                )

    @property
    def name(self) -> str:
        return f"{self.provider}/{self.model}"

    def chat(
        self,
        user_prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.0
    ) -> str:
        """
        Send one prompt and return the reply text.

        Raises:
            TransientLLMError: Still rate limited / unreachable after retries
            requests.exceptions.HTTPError: Non-retryable HTTP status
            ValueError: Reply had no usable text
        """
        call = self._call_anthropic if self.provider == 'anthropic' else self._call_ollama
        started = time.time()
        reply = retry_operation(
            call, user_prompt, system_prompt, temperature,
            config=self.retry,
            category="LLM"
        )
        logger.debug("LLM", f"{self.name} replied in {time.time() - started:.2f}s")
        return reply

    def _post(self, path: str, payload: dict, headers: Optional[dict] = None) -> dict:
        url = f"{self.config.base_url}/{path}"
        try:
            if headers:
                response = requests.post(url, headers=headers, json=payload, timeout=self.timeout)
            else:
                response = requests.post(url, json=payload, timeout=self.timeout)
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            raise TransientLLMError(f"{self.name} unreachable: {e}") from e

        if response.status_code in RETRYABLE_STATUS_CODES:
            raise TransientLLMError(f"{self.name} returned HTTP {response.status_code}")
        response.raise_for_status()
        return response.json()

    def _call_anthropic(self, user_prompt: str, system_prompt: Optional[str], temperature: float) -> str:
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": user_prompt}]
        }
        if system_prompt:
            payload["system"] = system_prompt

        data = self._post("messages", payload, headers={
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json"
        })
        block = (data.get('content') or [{}])[0]
        if block.get('type') != 'text':
            raise ValueError("Unexpected response format from Claude")
        return block['text']

    def _call_ollama(self, user_prompt: str, system_prompt: Optional[str], temperature: float) -> str:
        prompt = f"{system_prompt}\n\n{user_prompt}" if system_prompt else user_prompt
        data = self._post("generate", {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": temperature, "num_predict": self.max_tokens}
        })
        if not data.get('response'):
            raise ValueError("Empty response from Ollama")
        return data['response']


# =============================================================================
# FALLBACK CHAIN
# =============================================================================

class ProviderChain:
    """Clients tried in order; same chat() signature as LLMClient."""

    def __init__(self, clients: Sequence[LLMClient]):
        self.clients = list(clients)

    @property
    def name(self) -> str:
        return " -> ".join(c.name for c in self.clients) or "(empty)"

    def chat(
        self,
        user_prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.0
    ) -> str:
        options = [
            (client.name, lambda c=client: c.chat(user_prompt, system_prompt=system_prompt, temperature=temperature))
            for client in self.clients
        ]
        return first_success(options, label="LLM provider", category="LLM", error_cls=AllProvidersFailedError)


def build_provider_chain(config) -> ProviderChain:
    """
    Claude first when an Anthropic key is configured, Ollama as fallback.

    Args:
        config: utils.config.AppConfig
    """
    clients = []
    if config.anthropic_api_key:
        clients.append(LLMClient(
            provider='anthropic',
            model=config.anthropic_model,
            api_key=config.anthropic_api_key,
            timeout=config.stage_timeout
        ))
    clients.append(LLMClient(
        provider='local',
        model=config.ollama_model,
        timeout=config.stage_timeout
    ))
    chain = ProviderChain(clients)
    logger.debug("LLM", f"Provider chain: {chain.name}")
    return chain


def get_available_providers() -> list[dict]:
    """
    Providers with availability: Anthropic when its key is set, Ollama when
    its server answers (only installed models are listed).
    """
    result = []

    for provider_id, config in PROVIDERS.items():
        models = [{'id': m.id, 'name': m.name, 'cost_tier': m.cost_tier} for m in config.models]

        if provider_id == 'local':
            try:
                response = requests.get(f"{config.base_url}/tags", timeout=2)
                available = response.status_code == 200
                installed = {m['name'].split(':')[0] for m in response.json().get('models', [])} if available else set()
                models = [m for m in models if m['id'] in installed]
            except requests.exceptions.RequestException:
                logger.debug("LLM", "Ollama not reachable")
                available, models = False, []
        else:
            available = bool(os.getenv(config.api_key_env))
            if not available:
                models = []

        result.append({'id': config.id, 'name': config.name, 'available': available, 'models': models})

    return result

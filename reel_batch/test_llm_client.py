"""
Tests for the LLM client and provider fallback chain.
HTTP calls are replaced with fakes; nothing leaves the machine.
"""

import pytest
import requests

from reel_batch import llm_client
from reel_batch.llm_client import (
    AllProvidersFailedError,
    LLMClient,
    ProviderChain,
    TransientLLMError,
    build_provider_chain,
    get_available_providers,
)
from utils import retry
from utils.config import AppConfig


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def json(self):
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error", response=self)


class StubClient:
    def __init__(self, name, reply=None, error=None):
        self.name = name
        self.reply = reply
        self.error = error
        self.calls = 0

    def chat(self, user_prompt, system_prompt=None, temperature=0.0):
        self.calls += 1
        if self.error:
            raise self.error
        return self.reply


@pytest.mark.parametrize('provider', ['nope', 'openai', 'google'])
def test_unknown_provider_rejected(provider):
    with pytest.raises(ValueError):
        LLMClient(provider=provider, model='x')


def test_missing_api_key_rejected(monkeypatch):
    monkeypatch.delenv('ANTHROPIC_API_KEY', raising=False)
    with pytest.raises(ValueError):
        LLMClient(provider='anthropic', model='claude-3-haiku-20240307')


def test_anthropic_request_shape(monkeypatch):
    captured = {}

    def fake_post(url, headers=None, json=None, timeout=None):
        captured.update(url=url, headers=headers, json=json, timeout=timeout)
        return FakeResponse({'content': [{'type': 'text', 'text': '{"ok": true}'}]})

    monkeypatch.setattr(llm_client.requests, 'post', fake_post)
    client = LLMClient(provider='anthropic', model='claude-3-haiku-20240307', api_key='sk-test', timeout=42)

    assert client.chat('analyze this', system_prompt='be terse') == '{"ok": true}'
    assert captured['url'].endswith('/messages')
    assert captured['headers']['x-api-key'] == 'sk-test'
    assert captured['json']['system'] == 'be terse'
    assert captured['json']['messages'] == [{'role': 'user', 'content': 'analyze this'}]
    assert captured['timeout'] == 42


def test_ollama_empty_response_is_an_error(monkeypatch):
    monkeypatch.setattr(
        llm_client.requests, 'post',
        lambda url, json=None, timeout=None: FakeResponse({'response': ''})
    )
    client = LLMClient(provider='local', model='llama3.2')

    with pytest.raises(ValueError):
        client.chat('hi')


def test_retryable_http_status_is_retried(monkeypatch):
    replies = [FakeResponse({}, status_code=503), FakeResponse({'response': 'second try'})]
    monkeypatch.setattr(llm_client.requests, 'post', lambda url, json=None, timeout=None: replies.pop(0))
    monkeypatch.setattr(retry.time, 'sleep', lambda seconds: None)

    client = LLMClient(provider='local', model='llama3.2', max_retries=1)
    assert client.chat('hi') == 'second try'
    assert replies == []


def test_non_retryable_http_status_raises(monkeypatch):
    calls = []

    def fake_post(url, json=None, timeout=None):
        calls.append(url)
        return FakeResponse({}, status_code=400)

    monkeypatch.setattr(llm_client.requests, 'post', fake_post)
    client = LLMClient(provider='local', model='llama3.2', max_retries=3)

    with pytest.raises(requests.exceptions.HTTPError):
        client.chat('hi')
    assert len(calls) == 1


def test_chain_first_success_wins():
    first = StubClient('anthropic/claude', reply='from claude')
    second = StubClient('local/llama3.2', reply='from ollama')

    assert ProviderChain([first, second]).chat('prompt') == 'from claude'
    assert first.calls == 1
    assert second.calls == 0


def test_chain_falls_back_on_failure():
    first = StubClient('anthropic/claude', error=RuntimeError('quota exceeded'))
    second = StubClient('local/llama3.2', reply='from ollama')

    assert ProviderChain([first, second]).chat('prompt') == 'from ollama'
    assert first.calls == 1 and second.calls == 1


def test_chain_aggregates_all_failures():
    chain = ProviderChain([
        StubClient('anthropic/claude', error=RuntimeError('quota exceeded')),
        StubClient('local/llama3.2', error=ConnectionError('ollama not running')),
    ])

    with pytest.raises(AllProvidersFailedError) as excinfo:
        chain.chat('prompt')

    assert [name for name, _ in excinfo.value.errors] == ['anthropic/claude', 'local/llama3.2']
    assert 'quota exceeded' in str(excinfo.value)
    assert 'ollama not running' in str(excinfo.value)


def test_build_provider_chain_prefers_claude_when_key_set():
    chain = build_provider_chain(AppConfig(anthropic_api_key='sk-test', ollama_model='qwen3'))
    assert [c.name for c in chain.clients] == ['anthropic/claude-3-haiku-20240307', 'local/qwen3']


def test_build_provider_chain_without_key_uses_ollama_only():
    chain = build_provider_chain(AppConfig())
    assert [c.name for c in chain.clients] == ['local/llama3.2']


def test_unreachable_provider_gives_up_after_retries(monkeypatch):
    calls = []

    def fake_post(url, json=None, timeout=None):
        calls.append(url)
        raise requests.exceptions.ConnectionError("connection refused")

    monkeypatch.setattr(llm_client.requests, 'post', fake_post)
    monkeypatch.setattr(retry.time, 'sleep', lambda seconds: None)
    client = LLMClient(provider='local', model='llama3.2', max_retries=2)

    with pytest.raises(TransientLLMError, match='unreachable'):
        client.chat('hi')
    assert len(calls) == 3


def test_available_providers(monkeypatch):
    def ollama_down(url, timeout=None):
        raise requests.exceptions.ConnectionError("refused")

    monkeypatch.setenv('ANTHROPIC_API_KEY', 'sk-test')
    monkeypatch.setattr(llm_client.requests, 'get', ollama_down)

    providers = {p['id']: p for p in get_available_providers()}

    assert set(providers) == {'anthropic', 'local'}
    assert providers['anthropic']['available'] is True
    assert providers['anthropic']['models'][0]['id'] == 'claude-3-haiku-20240307'
    assert providers['local']['available'] is False
    assert providers['local']['models'] == []


def test_available_providers_lists_installed_ollama_models(monkeypatch):
    monkeypatch.delenv('ANTHROPIC_API_KEY', raising=False)
    monkeypatch.setattr(
        llm_client.requests, 'get',
        lambda url, timeout=None: FakeResponse({'models': [{'name': 'qwen3:latest'}, {'name': 'phi:2b'}]})
    )

    providers = {p['id']: p for p in get_available_providers()}

    assert providers['anthropic']['available'] is False
    assert providers['local']['available'] is True
    assert [m['id'] for m in providers['local']['models']] == ['qwen3']

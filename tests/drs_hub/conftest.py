"""Shared fixtures for DrsHub tests.

Backends are faked at the transport layer: every service DrsHub talks to
(DRS providers, Bond, externalcreds, Sam) is a route on one
``httpx.MockTransport`` handler, so the real client, retry controller and
error mapping all run unchanged.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Tuple

import httpx
import pytest

from DrsHub.config import DeploymentEnv, DrsHubSettings
from DrsHub.net.client import ResilientHttpClient, build_async_client
from DrsHub.orchestrator.resolver import DrsResolver


@dataclass
class FakeReply:
    status: int = 200
    json: Any = None
    text: Optional[str] = None
    delay: float = 0.0


class FakeBackend:
    """Route table for ``httpx.MockTransport``.

    Routes are keyed by method and URL without its query string. Each route
    holds a queue of replies; the last reply repeats once the queue drains.
    Unrouted requests get a 404 so a missing route fails loudly in asserts.
    """

    def __init__(self) -> None:
        self._routes: Dict[Tuple[str, str], Deque[FakeReply]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.requests: List[httpx.Request] = []

    def add(
        self,
        method: str,
        url: str,
        *,
        status: int = 200,
        json: Any = None,
        text: Optional[str] = None,
        delay: float = 0.0,
    ) -> "FakeBackend":
        reply = FakeReply(status=status, json=json, text=text, delay=delay)
        self._routes.setdefault((method.upper(), url), deque()).append(reply)
        return self

    def calls_to(self, url: str, method: Optional[str] = None) -> int:
        return sum(
            1 for m, u in self.calls if u == url and (method is None or m == method.upper())
        )

    def last_request(self, url: str) -> httpx.Request:
        for request in reversed(self.requests):
            if str(request.url).split("?", 1)[0] == url:
                return request
        raise AssertionError(f"No request was made to {url}")

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url).split("?", 1)[0]
        key = (request.method, url)
        self.calls.append(key)
        self.requests.append(request)

        replies = self._routes.get(key)
        if not replies:
            return httpx.Response(404, text=f"no route for {request.method} {url}")
        reply = replies.popleft() if len(replies) > 1 else replies[0]
        if reply.delay:
            await asyncio.sleep(reply.delay)
        if reply.text is not None:
            return httpx.Response(reply.status, text=reply.text)
        if reply.json is None:
            return httpx.Response(reply.status)
        return httpx.Response(reply.status, json=reply.json)


class FakeSecretStore:
    def __init__(self, secrets: Optional[Mapping[str, str]] = None) -> None:
        self.secrets = dict(secrets or {})
        self.reads: List[str] = []

    async def get_secret(self, name: str) -> str:
        self.reads.append(name)
        return self.secrets[name]


class FakeSigner:
    def __init__(self) -> None:
        self.calls: List[Tuple[str, str, Dict[str, Any], int]] = []

    async def sign(
        self,
        bucket: str,
        object_name: str,
        service_account_key: Mapping[str, Any],
        ttl_seconds: int,
    ) -> str:
        self.calls.append((bucket, object_name, dict(service_account_key), ttl_seconds))
        return f"https://storage.googleapis.com/{bucket}/{object_name}?X-Goog-Signature=fake"


async def no_sleep(_: float) -> None:
    return None


def make_http(backend: FakeBackend, settings: DrsHubSettings, **kwargs: Any) -> ResilientHttpClient:
    client = build_async_client(settings.http, transport=httpx.MockTransport(backend))
    return ResilientHttpClient(
        client, settings.retry, sleep=no_sleep, config=settings.http, **kwargs
    )


@pytest.fixture
def settings() -> DrsHubSettings:
    return DrsHubSettings(env=DeploymentEnv.DEV)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def secrets() -> FakeSecretStore:
    return FakeSecretStore()


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def http_factory() -> Callable[..., ResilientHttpClient]:
    return make_http


@pytest.fixture
def run_resolve(settings, backend, secrets) -> Callable[..., Dict[str, Any]]:
    """Resolve one URI against ``backend`` inside a fresh event loop.

    Keyword arguments other than ``force_access_url`` go to :class:`DrsResolver`.
    """

    def _run(
        url: Any,
        fields: Any,
        authorization: Optional[str] = "Bearer user-token",
        *,
        force_access_url: bool = False,
        **resolver_kwargs: Any,
    ) -> Dict[str, Any]:
        async def _go() -> Dict[str, Any]:
            http = make_http(backend, settings)
            try:
                resolver = DrsResolver(settings, http, secrets=secrets, **resolver_kwargs)
                return await resolver.resolve(
                    url, fields, authorization, force_access_url=force_access_url
                )
            finally:
                await http.aclose()

        return asyncio.run(_go())

    return _run

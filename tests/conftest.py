"""Shared fixtures: a frozen Buenos Aires clock, seeded in-memory repositories and a fake LLM client."""

import asyncio
import json
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
import pytz

from cashe.agents.llm_fallback import LLMFallback
from cashe.agents.nlp_agent import NLPAgent
from cashe.schemas.core import Platform, UserAccount, UserCategory
from cashe.utils.memory_store import build_memory_repositories, seed_demo_user

BUENOS_AIRES = pytz.timezone("America/Argentina/Buenos_Aires")
CHAT_ID = "5491100000000"


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, current: datetime):
        self.current = current

    def __call__(self) -> datetime:
        return self.current

    def today(self):
        return self.current.date()

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


class FakeCompletions:
    def __init__(self, content=None, delay: float = 0.0, error: Exception = None):
        self.content = content
        self.delay = delay
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeLLMClient:
    """Stands in for AsyncOpenAI: ``client.chat.completions.create(...)``."""

    def __init__(self, payload=None, delay: float = 0.0, error: Exception = None):
        content = payload if isinstance(payload, str) or payload is None else json.dumps(payload)
        self.completions = FakeCompletions(content, delay, error)
        self.chat = SimpleNamespace(completions=self.completions)


@pytest.fixture
def clock():
    # Wednesday 18 March 2026, 10:00 in Buenos Aires
    return FixedClock(BUENOS_AIRES.localize(datetime(2026, 3, 18, 10, 0)))


@pytest.fixture
def repos():
    identity, ledger, states = build_memory_repositories()
    user_id = seed_demo_user(identity, Platform.TELEGRAM, CHAT_ID)
    return SimpleNamespace(identity=identity, ledger=ledger, states=states, user_id=user_id)


@pytest.fixture
def simple_repos():
    """One account, one expense category and one income category."""
    identity, ledger, states = build_memory_repositories()
    identity.link_platform_user(Platform.TELEGRAM, CHAT_ID, "user-1")
    identity.add_account("user-1", UserAccount(id="acc-efectivo", name="Efectivo", icon="💵",
                                               initial_balance=10000))
    identity.add_category("user-1", UserCategory(id="cat-comida", name="Comida", type="expense", icon="🍔"))
    identity.add_category("user-1", UserCategory(id="cat-sueldo", name="Sueldo", type="income", icon="💰"))
    return SimpleNamespace(identity=identity, ledger=ledger, states=states, user_id="user-1")


@pytest.fixture
def context(repos):
    return asyncio.run(repos.identity.get_user_context(repos.user_id))


def make_agent(repos, clock, llm=None, ttl_minutes=None) -> NLPAgent:
    return NLPAgent(repos.identity, repos.ledger, repos.states, llm=llm or LLMFallback(),
                    clock=clock, ttl_minutes=ttl_minutes)


@pytest.fixture
def agent(repos, clock):
    return make_agent(repos, clock)


@pytest.fixture
def simple_agent(simple_repos, clock):
    return make_agent(simple_repos, clock)

"""Shared fakes for scheduler tests."""

import asyncio

import pytest

from pagetranslate.config import RequestContext
from pagetranslate.gemini_client import TranslationClient


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start=1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class EchoClient(TranslationClient):
    """Translates each line by prefixing it; records every call."""

    def __init__(self, prefix="ZH:", errors=None, yields=2):
        self.prefix = prefix
        self.errors = list(errors or [])
        self.yields = yields
        self.calls = []
        self.events = []
        self.active = 0
        self.max_active = 0

    async def translate(self, text, context):
        index = len(self.calls)
        self.calls.append(text)
        self.events.append(("start", index))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            for _ in range(self.yields):
                await asyncio.sleep(0)
            if self.errors:
                error = self.errors.pop(0)
                if error is not None:
                    raise error
            return "\n".join(f"{self.prefix}{line}" for line in text.split("\n"))
        finally:
            self.active -= 1
            self.events.append(("end", index))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def context():
    return RequestContext(api_key="test-key-123456", target_language="zh", model="gemini-pro")


@pytest.fixture
def client():
    return EchoClient()

"""
docsync Test Configuration and Fixtures

All fixtures avoid real git, filesystem and API access:

- InMemoryFileStore stands in for the project tree
- FakeVersionControl (tests/fakes.py) mirrors HEAD into that store
- ScriptedGenerator (tests/fakes.py) returns canned, valid content
"""

import pytest

from docsync.config.environment import reset_environment
from docsync.config.loader import reset_config
from docsync.config.models import DocsyncConfig, ModulesConfig, SyncConfig
from docsync.orchestrator import SyncOrchestrator, build_orchestrator
from docsync.storage.filestore import InMemoryFileStore
from docsync.storage.tiers import TierStore

from tests.fakes import FakeVersionControl, ScriptedGenerator, no_sleep


@pytest.fixture(autouse=True)
def reset_globals(monkeypatch):
    """Reset global configuration and environment between tests."""
    monkeypatch.delenv("DOCSYNC_CONFIG", raising=False)
    reset_config()
    reset_environment()
    yield
    reset_config()
    reset_environment()


@pytest.fixture
def config() -> DocsyncConfig:
    """Configuration with zero delays and auto assignment off."""
    return DocsyncConfig(
        modules=ModulesConfig(auto_assign=False),
        sync=SyncConfig(
            max_attempts=2,
            unit_timeout_seconds=5,
            rate_limit_delay=0,
            module_rate_limit_delay=0,
            max_requeues=1,
            concurrency=4,
        ),
    )


@pytest.fixture
def store() -> InMemoryFileStore:
    return InMemoryFileStore()


@pytest.fixture
def vcs(store: InMemoryFileStore) -> FakeVersionControl:
    return FakeVersionControl(worktree=store)


@pytest.fixture
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture
def tier_store(store: InMemoryFileStore, config: DocsyncConfig) -> TierStore:
    return TierStore(store, config)


@pytest.fixture
def orchestrator(
    config: DocsyncConfig,
    generator: ScriptedGenerator,
    vcs: FakeVersionControl,
    store: InMemoryFileStore,
) -> SyncOrchestrator:
    return build_orchestrator(config, generator=generator, vcs=vcs, store=store, sleep=no_sleep)

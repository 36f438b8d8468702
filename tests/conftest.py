"""
Shared pytest fixtures.
"""

import pytest

from fakes import (
    FakeCompletion,
    FakeEmbedder,
    FakeTextIndex,
    FakeVectorIndex,
    RecordingNotifier,
    make_store,
)
from toolstack.data.config import (
    AuthConfig,
    ChatConfig,
    DeploymentEnvironment,
    NotificationConfig,
    Settings,
    SyncConfig,
)
from toolstack.factory import ServiceFactory

JWT_SECRET = "test-secret-with-at-least-32-bytes!!"


@pytest.fixture
def sync_config(tmp_path):
    return SyncConfig(
        batch_size=3,
        batch_delay_seconds=0.0,
        progress_lines=100,
        time_budget_seconds=540.0,
        time_margin_seconds=30.0,
        state_dir=tmp_path / "state",
    )


@pytest.fixture
def settings(sync_config):
    return Settings(
        environment=DeploymentEnvironment.DEV,
        notifications=NotificationConfig(bot_token=None, chat_id=None, enabled=False),
        sync=sync_config,
        chat=ChatConfig(top_k=5, temperature=0.7, max_tokens=500, root_url="https://www.toolstack.pro"),
        auth=AuthConfig(jwt_secret=JWT_SECRET, jwt_algorithm="HS256", jwt_audience=None, sync_token=None),
    )


@pytest.fixture
def store():
    return make_store(7)


@pytest.fixture
def text_index():
    return FakeTextIndex()


@pytest.fixture
def vector_index():
    return FakeVectorIndex()


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def completion():
    return FakeCompletion()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def factory(settings, store, text_index, vector_index, embedder, completion, notifier):
    return ServiceFactory(
        settings,
        store=store,
        embedder=embedder,
        completion=completion,
        vector_index=vector_index,
        text_index=text_index,
        notifier=notifier,
    )

from pathlib import Path

import pytest

from bloxfolio.auth import sign_up
from bloxfolio.config import Settings
from bloxfolio.models import BuilderInput
from bloxfolio.storage import Storage

TEST_API_KEY = "sk-or-v1-testkey0123456789"
TEST_WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture
def storage(tmp_path: Path) -> Storage:
    """A fresh JSON store under tmp_path for every test."""
    return Storage(tmp_path / "data")


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        openrouter_api_key=TEST_API_KEY,
        openrouter_base_url="https://llm.test/api/v1",
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret=TEST_WEBHOOK_SECRET,
        data_dir=tmp_path / "data",
    )


@pytest.fixture
def user_token(storage: Storage):
    """(token, user) for a freshly signed-up account."""
    return sign_up(storage, "builder_bob", "hunter2hunter2")


@pytest.fixture
def user(user_token):
    return user_token[1]


@pytest.fixture
def brief() -> BuilderInput:
    return BuilderInput(
        roblox_username="BuilderBob",
        primary_role="Scripter",
        signature_style="Clean combat systems",
        notable_projects="Sword Sim (2M visits)",
        skill_focus="LuaU, DataStores",
        target_audience="Studio leads",
    )

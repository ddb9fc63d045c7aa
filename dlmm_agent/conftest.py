import copy

import pytest

import dlmm_agent.core.config as config

# Env fallbacks read by core.config; cleared so a developer shell never leaks in
CONFIG_ENV_KEYS = (
    "DLMM_AGENT_CONFIG_PATH",
    "DLMM_AGENT_CONFIG",
    "READ_RPC_URL",
    "WRITE_RPC_URL",
    "WS_RPC_URL",
    "SECRET_KEY",
    "SLACK_TOKEN",
    "SLACK_CHANNEL",
    "TINYBIRD_URL",
    "TINYBIRD_TOKEN",
    "DLMM_POOL_SDK",
)


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "smoke" in item.nodeid:
            item.add_marker(pytest.mark.smoke)


@pytest.fixture
def isolated_config(monkeypatch: pytest.MonkeyPatch):
    for key in CONFIG_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    original = copy.deepcopy(config.CONFIG)
    config.set_config({})
    yield config
    config.set_config(original)

import pytest


@pytest.fixture(autouse=True)
def clean_board_env(monkeypatch):
    """Keep VB_* settings from the developer's shell out of the tests."""
    for name in ("VB_DATA_DIR", "VB_SAVE_INTERVAL", "VB_SESSION_TTL", "VB_LAYOUT_TIMEOUT",
                 "VB_ELK_URL", "VB_LOG_LEVEL", "VB_HTTP_HOST", "VB_HTTP_PORT", "VB_CORS_ORIGINS"):
        monkeypatch.delenv(name, raising=False)

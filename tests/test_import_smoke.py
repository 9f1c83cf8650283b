import sys
import pytest
from unittest.mock import patch

@pytest.mark.parametrize("delivery_mode", ["qr", "link"])
@pytest.mark.parametrize("mock_passport", ["true", "false"])
def test_import_graph_smoke(delivery_mode, mock_passport):
    """
    Verify that the app can be imported without crashing,
    regardless of delivery/verifier flags.
    """
    with patch.dict("os.environ", {
        "DELIVERY_MODE": delivery_mode,
        "SELF_MOCK_PASSPORT": mock_passport,
        "DISCORD_BOT_TOKEN": "",
    }):
        for name in ("selfgate.main", "selfgate.settings"):
            sys.modules.pop(name, None)

        try:
            import selfgate.main
            import selfgate.core.engine
            import selfgate.bot.discord_bot
        except ImportError as e:
            pytest.fail(f"Import failed with delivery={delivery_mode} mock={mock_passport}: {e}")

        assert selfgate.main.app.state.engine.config.delivery_mode == delivery_mode

def test_uvicorn_importable():
    """
    Simulate uvicorn import string loading.
    """
    from selfgate.main import app
    assert app is not None

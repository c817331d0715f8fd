"""Test that the project setup is working correctly."""

import wallet_relay


def test_version() -> None:
    """Test that version is defined."""
    assert wallet_relay.__version__ == "0.1.0"


def test_import_modules() -> None:
    """Test that all subpackages can be imported."""
    from wallet_relay import app, bot, config, delivery, monitor, shutdown

    assert app is not None
    assert bot is not None
    assert config is not None
    assert delivery is not None
    assert monitor is not None
    assert shutdown is not None

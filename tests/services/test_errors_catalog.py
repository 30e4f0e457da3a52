import pytest

from appdeployer.errors_catalog import actionable_error


def test_actionable_error_formats_message_with_suggested_action():
    message = actionable_error("pull_failed", branch="main", path="/work/shop")

    assert "Failed to pull latest changes from branch main." in message
    assert "Suggested action:" in message
    assert "/work/shop" in message


def test_actionable_error_rejects_unknown_key():
    with pytest.raises(KeyError, match="Unknown error catalog key"):
        actionable_error("does_not_exist")

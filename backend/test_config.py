"""
Startup configuration checks: a missing hosted-service URL or key is the
only fatal error, and it halts with a non-zero exit code.
"""

from unittest.mock import patch

import pytest

from backend import config


def test_exit_when_required_env_missing(capsys):
    with pytest.raises(SystemExit) as exc_info:
        config.require_env_or_exit(["SUPABASE_URL"])
    assert exc_info.value.code == 1
    err = capsys.readouterr().err
    assert "SUPABASE_URL" in err
    assert "[CONFIG]" in err


def test_no_exit_when_nothing_missing():
    assert config.require_env_or_exit([]) is None


def test_missing_required_env_in_supabase_mode():
    with patch.object(config, "IS_SUPABASE", True), \
            patch.object(config, "SUPABASE_URL", ""), \
            patch.object(config, "SUPABASE_ANON_KEY", "anon-key"):
        assert config.missing_required_env() == ["SUPABASE_URL"]


def test_sqlite_mode_requires_nothing():
    with patch.object(config, "IS_SUPABASE", False), \
            patch.object(config, "SUPABASE_URL", ""), \
            patch.object(config, "SUPABASE_ANON_KEY", ""):
        assert config.missing_required_env() == []

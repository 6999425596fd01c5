# frontend/test_frontend_config.py
# Backend URL resolution per environment

from unittest.mock import patch

import pytest

from frontend import config


def test_local_falls_back_to_dev_backend(monkeypatch):
    monkeypatch.delenv("BACKEND_URL", raising=False)
    with patch.object(config, "ENV", "local"):
        assert config.get_api_base_url() == config.LOCAL_BACKEND_URL


def test_configured_url_is_trimmed(monkeypatch):
    monkeypatch.setenv("BACKEND_URL", " https://api.example.com/ ")
    with patch.object(config, "ENV", "production"):
        assert config.get_api_base_url() == "https://api.example.com"


def test_production_without_url_raises(monkeypatch):
    monkeypatch.delenv("BACKEND_URL", raising=False)
    with patch.object(config, "ENV", "production"):
        with pytest.raises(RuntimeError, match="PRODUCTION"):
            config.get_api_base_url()


@pytest.mark.parametrize("url", ["http://api.example.com", "https://localhost:3010"])
def test_staging_rejects_insecure_urls(url):
    with pytest.raises(ValueError):
        config.validate_api_url(url, "staging")


def test_local_accepts_plain_http():
    config.validate_api_url("http://127.0.0.1:3010", "local")

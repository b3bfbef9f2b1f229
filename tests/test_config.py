import json
import logging

import config
import log


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("GYM_CURRENCY_SYMBOL", "€")
    monkeypatch.setenv("GYM_BUSINESS_TIMEZONE_OFFSET", "2")
    settings = config.Settings()
    assert settings.currency_symbol == "€"
    assert settings.business_timezone_offset == 2
    assert settings.default_admin_username == "admin"


def test_get_settings_is_cached(monkeypatch):
    monkeypatch.setattr(config, "_cached_settings", None)
    assert config.get_settings() is config.get_settings()


def test_json_formatter():
    record = logging.LogRecord("crud", logging.INFO, __file__, 1, "Created plan %s", (3,), None)
    line = json.loads(log.JsonFormatter().format(record))
    assert line["level"] == "INFO"
    assert line["name"] == "crud"
    assert line["msg"] == "Created plan 3"

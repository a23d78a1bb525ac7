"""Tests for structura.core.config."""

import os

import pytest
from pydantic import ValidationError

from structura.core.config import (
    BrokersConfig,
    ReaderConfig,
    SeederConfig,
    StorageConfig,
    UpstreamConfig,
    _auto_cast,
    _merge_env_vars,
    load_config,
)
from structura.core.exceptions import ConfigError
from structura.core.models import PriceRange, StorageBackend


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate from real STRUCTURA_* variables and any ./structura.yml."""
    for key in list(os.environ):
        if key.startswith("STRUCTURA_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


class TestStorageConfig:
    def test_defaults_to_sqlite(self):
        c = StorageConfig()
        assert c.backend == StorageBackend.SQLITE
        assert c.sqlite_path.endswith("structura.db")


class TestUpstreamConfig:
    def test_default_base_url(self):
        assert UpstreamConfig().base_url == "https://query1.finance.yahoo.com"

    def test_trailing_slash_stripped(self):
        c = UpstreamConfig(base_url="https://query2.finance.yahoo.com/")
        assert c.base_url == "https://query2.finance.yahoo.com"

    def test_scheme_required(self):
        with pytest.raises(ValidationError, match="http"):
            UpstreamConfig(base_url="query1.finance.yahoo.com")


class TestSeederConfig:
    def test_defaults(self):
        c = SeederConfig()
        assert c.universe == ()
        assert c.request_delay == 0.2
        assert c.history_range == "5y"
        assert c.interval == "1d"
        assert c.default_batch_size == 10

    def test_universe_is_ordered_tuple(self):
        c = SeederConfig(universe=["TCS.NS", "INFY.NS", "^NSEI"])
        assert c.universe == ("TCS.NS", "INFY.NS", "^NSEI")

    def test_universe_strips_blanks(self):
        c = SeederConfig(universe=[" TCS.NS ", "", "INFY.NS"])
        assert c.universe == ("TCS.NS", "INFY.NS")

    def test_duplicate_symbols_rejected(self):
        with pytest.raises(ValidationError, match="duplicate"):
            SeederConfig(universe=["TCS.NS", "TCS.NS"])

    def test_negative_delay_rejected(self):
        with pytest.raises(ValidationError, match="request_delay"):
            SeederConfig(request_delay=-1)

    def test_unknown_history_range_rejected(self):
        with pytest.raises(ValidationError, match="history_range"):
            SeederConfig(history_range="7y")

    def test_batch_size_positive(self):
        with pytest.raises(ValidationError, match="default_batch_size"):
            SeederConfig(default_batch_size=0)


class TestReaderConfig:
    def test_defaults(self):
        c = ReaderConfig()
        assert c.row_limit == 100_000
        assert c.default_range == PriceRange.ONE_YEAR

    def test_row_limit_positive(self):
        with pytest.raises(ValidationError, match="row_limit"):
            ReaderConfig(row_limit=0)


class TestBrokersConfig:
    def test_defaults(self):
        c = BrokersConfig()
        assert c.default_suffix == ".NS"
        assert c.timeout == 20.0
        assert c.upstox.api_key is None
        assert c.zerodha.api_secret is None

    def test_suffix_needs_dot(self):
        with pytest.raises(ValidationError, match="default_suffix"):
            BrokersConfig(default_suffix="NS")


class TestLoadConfig:
    def test_defaults_without_file(self):
        config = load_config()
        assert config.storage.backend == StorageBackend.SQLITE
        assert config.seeder.universe == ()
        assert config.api.api_key is None

    def test_yaml_loading(self, tmp_path):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text(
            "seeder:\n"
            "  request_delay: 0.5\n"
            "  universe:\n"
            "    - RELIANCE.NS\n"
            "    - '^NSEI'\n"
            "brokers:\n"
            "  zerodha:\n"
            "    api_key: kitekey\n"
        )
        config = load_config(config_path=str(yaml_file))
        assert config.seeder.request_delay == 0.5
        assert config.seeder.universe == ("RELIANCE.NS", "^NSEI")
        assert config.brokers.zerodha.api_key == "kitekey"

    def test_default_file_in_cwd(self, tmp_path):
        (tmp_path / "structura.yml").write_text("reader:\n  row_limit: 500\n")
        config = load_config()
        assert config.reader.row_limit == 500

    def test_config_env_var_path(self, tmp_path, monkeypatch):
        yaml_file = tmp_path / "other.yml"
        yaml_file.write_text("api:\n  port: 9001\n")
        monkeypatch.setenv("STRUCTURA_CONFIG", str(yaml_file))
        config = load_config()
        assert config.api.port == 9001

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text("seeder:\n  request_delay: 0.5\n")
        monkeypatch.setenv("STRUCTURA_SEEDER__REQUEST_DELAY", "1.5")
        config = load_config(config_path=str(yaml_file))
        assert config.seeder.request_delay == 1.5

    def test_numeric_secret_stays_string(self, monkeypatch):
        monkeypatch.setenv("STRUCTURA_BROKERS__ZERODHA__API_SECRET", "0012345")
        config = load_config()
        assert config.brokers.zerodha.api_secret == "0012345"

    def test_missing_config_file_raises(self):
        with pytest.raises(ConfigError, match="not found"):
            load_config(config_path="/nonexistent/file.yml")

    def test_missing_env_config_file_raises(self, monkeypatch):
        monkeypatch.setenv("STRUCTURA_CONFIG", "/nonexistent/structura.yml")
        with pytest.raises(ConfigError, match="STRUCTURA_CONFIG"):
            load_config()

    def test_non_mapping_yaml_raises(self, tmp_path):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(config_path=str(yaml_file))

    def test_invalid_value_wrapped_in_config_error(self, tmp_path):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text("seeder:\n  history_range: forever\n")
        with pytest.raises(ConfigError):
            load_config(config_path=str(yaml_file))

    def test_config_is_frozen(self):
        config = load_config()
        with pytest.raises(ValidationError):
            config.seeder = None


class TestAutoCast:
    def test_true(self):
        assert _auto_cast("true") is True
        assert _auto_cast("TRUE") is True

    def test_false(self):
        assert _auto_cast("false") is False

    def test_int(self):
        assert _auto_cast("42") == 42

    def test_float(self):
        assert _auto_cast("0.25") == 0.25

    def test_string(self):
        assert _auto_cast("https://example.com/callback") == "https://example.com/callback"


class TestMergeEnvVars:
    def test_simple_override(self, monkeypatch):
        monkeypatch.setenv("TEST_READER__ROW_LIMIT", "5000")
        result = _merge_env_vars({"reader": {"row_limit": 10}}, "TEST_")
        assert result["reader"]["row_limit"] == 5000

    def test_creates_nested_structure(self, monkeypatch):
        monkeypatch.setenv("TEST_BROKERS__UPSTOX__REDIRECT_URI", "https://app.example/cb")
        result = _merge_env_vars({}, "TEST_")
        assert result["brokers"]["upstox"]["redirect_uri"] == "https://app.example/cb"

    def test_skips_config_key(self, monkeypatch):
        monkeypatch.setenv("TEST_CONFIG", "/some/path")
        result = _merge_env_vars({}, "TEST_")
        assert "config" not in result

    def test_string_keys_not_cast(self, monkeypatch):
        monkeypatch.setenv("TEST_API__API_KEY", "12345")
        result = _merge_env_vars({}, "TEST_")
        assert result["api"]["api_key"] == "12345"

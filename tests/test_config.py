"""Tests for configuration loading and credential resolution."""

import os
from unittest.mock import patch

from modalbox.config import (
    Credentials,
    ModalConfig,
    load_config,
    resolve_credentials,
)
from modalbox.models.sandbox import Runtime


class TestResolveCredentials:
    """Tests for resolve_credentials."""

    def test_explicit_values(self):
        config = ModalConfig(token_id="ak-1", token_secret="as-1")
        with patch.dict(os.environ, {}, clear=True):
            assert resolve_credentials(config) == Credentials("ak-1", "as-1")

    def test_each_field_falls_back_independently(self):
        config = ModalConfig(token_id="ak-1")
        with patch.dict(os.environ, {"MODAL_TOKEN_SECRET": "as-env"}, clear=True):
            assert resolve_credentials(config) == Credentials("ak-1", "as-env")

    def test_missing_half_returns_none(self):
        with patch.dict(os.environ, {"MODAL_TOKEN_ID": "ak-env"}, clear=True):
            assert resolve_credentials(ModalConfig()) is None

    def test_empty_strings_count_as_missing(self):
        env = {"MODAL_TOKEN_ID": "", "MODAL_TOKEN_SECRET": ""}
        with patch.dict(os.environ, env, clear=True):
            assert resolve_credentials(ModalConfig(token_id="", token_secret="")) is None


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(str(tmp_path / "absent.yaml"))
        assert config == ModalConfig()

    def test_reads_modal_section(self, tmp_path):
        path = tmp_path / "modal.yaml"
        path.write_text(
            "modal:\n"
            "  token_id: ak-file\n"
            "  token_secret: as-file\n"
            "  runtime: python\n"
            "  timeout: 900\n"
            "  environment: staging\n"
            "  ports: [3000, 8080]\n",
            encoding="utf-8",
        )

        config = load_config(str(path))

        assert config.token_id == "ak-file"
        assert config.token_secret == "as-file"
        assert config.runtime == Runtime.PYTHON
        assert config.timeout == 900
        assert config.environment == "staging"
        assert config.ports == [3000, 8080]

    def test_path_from_environment(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text("modal:\n  timeout: 60\n", encoding="utf-8")

        with patch.dict(os.environ, {"MODALBOX_CONFIG": str(path)}):
            assert load_config().timeout == 60

    def test_empty_or_malformed_section(self, tmp_path):
        empty = tmp_path / "empty.yaml"
        empty.write_text("", encoding="utf-8")
        scalar = tmp_path / "scalar.yaml"
        scalar.write_text("modal: nope\n", encoding="utf-8")

        assert load_config(str(empty)) == ModalConfig()
        assert load_config(str(scalar)) == ModalConfig()

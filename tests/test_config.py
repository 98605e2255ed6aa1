"""
Configuration loading tests.
"""

import json

from core.config import AppConfig


class TestAppConfig:
    """Tests for JSON + environment configuration."""

    def test_defaults_when_file_missing(self, tmp_path):
        config = AppConfig.load(str(tmp_path / "missing.json"), environ={})
        assert config.generation.temperature == 0.8
        assert config.generation.seed == 299792458
        assert config.generation.repeat_penalty == 1.1
        assert config.generation.repeat_last_n == 64
        assert config.generation.max_tokens == 128
        assert config.embedding.dim == 1024
        assert config.model.device == "cpu"

    def test_loads_sections_from_file(self, tmp_path):
        path = tmp_path / "ragserve.json"
        path.write_text(json.dumps({
            "model": {"family": "phi-2", "model_path": "/models/phi.pt"},
            "generation": {"max_tokens": 16, "unknown_key": 1},
            "bogus_section": {"x": 1},
        }))
        config = AppConfig.load(str(path), environ={})
        assert config.model.family == "phi-2"
        assert config.model.model_path == "/models/phi.pt"
        assert config.generation.max_tokens == 16
        assert config.generation.temperature == 0.8
        assert config.config_path == path

    def test_invalid_json_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        config = AppConfig.load(str(path), environ={})
        assert config.generation.max_tokens == 128

    def test_env_overrides_are_typed(self, tmp_path):
        environ = {
            "RAGSERVE_MODEL__DEVICE": "cuda",
            "RAGSERVE_GENERATION__MAX_TOKENS": "256",
            "RAGSERVE_GENERATION__TEMPERATURE": "0.2",
            "RAGSERVE_LOGGING__LOG_TO_FILE": "false",
            "RAGSERVE_NOPE__X": "1",
            "OTHER": "ignored",
        }
        config = AppConfig.load(str(tmp_path / "missing.json"), environ=environ)
        assert config.model.device == "cuda"
        assert config.generation.max_tokens == 256
        assert config.generation.temperature == 0.2
        assert config.logging.log_to_file is False

    def test_bad_env_value_ignored(self, tmp_path):
        config = AppConfig.load(str(tmp_path / "missing.json"), environ={"RAGSERVE_SERVER__PORT": "eighty"})
        assert config.server.port == 8000

    def test_config_path_from_env(self, tmp_path):
        path = tmp_path / "alt.json"
        path.write_text(json.dumps({"server": {"port": 9100}}))
        config = AppConfig.load(environ={"RAGSERVE_CONFIG": str(path)})
        assert config.server.port == 9100

    def test_to_dict_round_trips_sections(self):
        data = AppConfig().to_dict()
        assert set(data) == {"model", "embedding", "generation", "storage", "logging", "server"}
        assert data["storage"]["database_url"].startswith("sqlite")

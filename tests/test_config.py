"""Tests for Settings configuration loading."""

from threatgraph.config import (
    GraphSettings,
    QuerySettings,
    RiskSettings,
    Settings,
)
from threatgraph.models.severity import SeverityLevel


class TestSettingsDefaults:
    def test_graph_defaults(self):
        s = GraphSettings()
        assert s.removal_policy == "cascade"
        assert s.dedupe_relations is True

    def test_risk_defaults(self):
        s = RiskSettings()
        assert s.normalization_factor == 9.5
        assert s.severity_weights[SeverityLevel.CRITICAL] == 10
        assert s.severity_weights[SeverityLevel.UNKNOWN] == 0
        assert s.level_thresholds[0] == (80.0, SeverityLevel.CRITICAL)
        assert s.intent_severity == SeverityLevel.LOW
        assert s.consistency_tolerance == 15.0

    def test_query_defaults(self):
        s = QuerySettings()
        assert s.default_limit == 50
        assert s.max_hops == 6

    def test_root_settings_defaults(self):
        s = Settings()
        assert isinstance(s.graph, GraphSettings)
        assert isinstance(s.risk, RiskSettings)
        assert s.log_level == "INFO"


class TestSettingsLoad:
    def test_load_default(self):
        s = Settings.load()
        assert isinstance(s, Settings)
        assert s.risk.normalization_factor == 9.5

    def test_load_from_yaml(self, tmp_path):
        config_file = tmp_path / "test_config.yaml"
        config_file.write_text(
            "graph:\n"
            "  removal_policy: strict\n"
            "risk:\n"
            "  normalization_factor: 10.0\n"
            "query:\n"
            "  default_limit: 5\n"
        )
        s = Settings.load(config_file)
        assert s.graph.removal_policy == "strict"
        assert s.risk.normalization_factor == 10.0
        assert s.query.default_limit == 5

    def test_load_nonexistent_path(self, tmp_path):
        """Non-existent config should use defaults."""
        s = Settings.load(tmp_path / "nonexistent.yaml")
        assert isinstance(s, Settings)
        assert s.graph.removal_policy == "cascade"

    def test_load_empty_yaml(self, tmp_path):
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        s = Settings.load(config_file)
        assert isinstance(s, Settings)

    def test_load_string_path(self, tmp_path):
        config_file = tmp_path / "str_test.yaml"
        config_file.write_text("query:\n  max_hops: 3\n")
        s = Settings.load(str(config_file))
        assert s.query.max_hops == 3

    def test_partial_weights_merge_with_defaults(self, tmp_path):
        config_file = tmp_path / "weights.yaml"
        config_file.write_text("risk:\n  severity_weights:\n    critical: 12\n")
        s = Settings.load(config_file)
        assert s.risk.severity_weights[SeverityLevel.CRITICAL] == 12
        assert s.risk.severity_weights[SeverityLevel.HIGH] == 8

    def test_thresholds_sorted_descending(self, tmp_path):
        config_file = tmp_path / "levels.yaml"
        config_file.write_text(
            "risk:\n"
            "  level_thresholds:\n"
            "    - [0, info]\n"
            "    - [50, high]\n"
            "    - [90, critical]\n"
        )
        s = Settings.load(config_file)
        assert [level for _, level in s.risk.level_thresholds] == [
            SeverityLevel.CRITICAL, SeverityLevel.HIGH, SeverityLevel.INFO,
        ]

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("THREATGRAPH_QUERY__DEFAULT_LIMIT", "7")
        s = Settings()
        assert s.query.default_limit == 7

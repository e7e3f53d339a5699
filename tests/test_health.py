"""Tests for health.py - Health checks."""
import pytest
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import health


@pytest.mark.unit
class TestHealthChecks:
    """Test individual and aggregated checks."""

    def test_pattern_registry(self):
        check = health.check_pattern_registry()
        assert check.healthy
        assert check.metadata["roles_count"] == 2
        assert check.metadata["patterns_count"] > 40

    def test_pattern_registry_out_of_sync(self):
        with patch("dispatcher.verify_dispatch_tables", side_effect=RuntimeError("missing=['X']")):
            check = health.check_pattern_registry()
        assert not check.healthy
        assert "missing" in check.message

    def test_logging(self):
        assert health.check_logging().healthy

    def test_audit_log_in_memory_by_default(self):
        with patch.object(health.config.audit, "log_path", None):
            check = health.check_audit_log()
        assert check.healthy
        assert check.metadata["sink"] == "memory"

    def test_audit_log_jsonl(self, tmp_path):
        with patch.object(health.config.audit, "log_path", tmp_path / "audit.jsonl"):
            check = health.check_audit_log()
        assert check.healthy
        assert check.metadata["sink"] == "jsonl"

    def test_status_without_llm(self):
        status = health.get_health_status()
        assert set(status.checks) == {"pattern_registry", "logging", "audit_log", "disk_space"}
        data = status.to_dict()
        assert data["healthy"] == status.healthy
        assert data["checks"]["logging"]["healthy"]

    def test_llm_check_reachable(self):
        response = MagicMock()
        response.choices = [MagicMock()]
        with patch("openai.chat") as mock_chat:
            mock_chat.completions.create.return_value = response
            status = health.get_health_status(include_llm_check=True)
        assert status.checks["llm_connection"].healthy

    def test_llm_check_error(self):
        with patch("openai.chat") as mock_chat:
            mock_chat.completions.create.side_effect = RuntimeError("no api key")
            check = health.check_llm_connection()
        assert not check.healthy
        assert "no api key" in check.message

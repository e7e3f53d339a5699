"""Pytest configuration and shared fixtures."""
import json
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add src directory to Python path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def fast_supervisor():
    """Supervisor whose progress ticks do not sleep."""
    from config import SimulatorConfig
    from deployment_simulator import DeploymentSupervisor

    supervisor = DeploymentSupervisor(SimulatorConfig(interval_seconds=0, step=5))
    yield supervisor
    supervisor.shutdown()


@pytest.fixture
def slow_supervisor():
    """Supervisor slow enough that a test can act while a deployment is in flight."""
    from config import SimulatorConfig
    from deployment_simulator import DeploymentSupervisor

    supervisor = DeploymentSupervisor(SimulatorConfig(interval_seconds=0.2, step=5))
    yield supervisor
    supervisor.shutdown()


@pytest.fixture
def directory():
    from collaborators import UserDirectory
    return UserDirectory()


@pytest.fixture
def build_system(fast_supervisor):
    from collaborators import InMemoryBuildSystem
    return InMemoryBuildSystem(fast_supervisor)


@pytest.fixture
def source_control():
    from collaborators import InMemorySourceControl
    from config import SourceControlConfig
    return InMemorySourceControl(SourceControlConfig())


@pytest.fixture
def seeded(directory, build_system, source_control):
    """Directory, build system and source control populated with the sample data."""
    from collaborators import seed_sample_data
    seed_sample_data(directory, build_system, source_control)
    return directory, build_system, source_control


@pytest.fixture
def admin_context(seeded):
    from collaborators import CommandContext
    directory, build_system, source_control = seeded
    return CommandContext(
        user=directory.find_user("admin"), build_system=build_system, source_control=source_control
    )


@pytest.fixture
def user_context(seeded):
    from collaborators import CommandContext
    directory, build_system, source_control = seeded
    return CommandContext(
        user=directory.find_user("developer"), build_system=build_system, source_control=source_control
    )


@pytest.fixture
def audit_sink():
    from audit import InMemoryAuditSink
    return InMemoryAuditSink()


@pytest.fixture
def processor(seeded, audit_sink):
    """Command processor over seeded collaborators with the LLM fallback off."""
    from command_processor import VoiceCommandProcessor
    from config import LLMConfig
    directory, build_system, source_control = seeded
    return VoiceCommandProcessor(directory, build_system, source_control, audit_sink, LLMConfig(enabled=False))


@pytest.fixture
def mock_llm_response():
    """Build a mock OpenAI chat completion carrying the given JSON payload."""

    def make(payload):
        mock_response = MagicMock()
        mock_choice = MagicMock()
        mock_message = MagicMock()

        mock_message.content = json.dumps(payload)
        mock_choice.message = mock_message
        mock_response.choices = [mock_choice]

        mock_usage = MagicMock()
        mock_usage.prompt_tokens = 120
        mock_usage.completion_tokens = 12
        mock_response.usage = mock_usage
        return mock_response

    return make


@pytest.fixture
def mock_metrics():
    """Fresh CommandMetrics for testing."""
    from metrics import CommandMetrics
    return CommandMetrics()

"""
Pytest configuration and shared fixtures for GCP Waste Agent tests.
"""

import tempfile
from pathlib import Path
from unittest.mock import Mock

import pytest

from gcp_waste_agent.core.config import Config, ConfigManager
from gcp_waste_agent.services.inventory import GcpCredentials
from gcp_waste_agent.state.run_store import RunStore

from builders import make_disk, make_service, make_snapshot, make_sql, make_vm


@pytest.fixture
def temp_config_dir():
    """Create a temporary directory for config files during tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def config_manager(temp_config_dir):
    return ConfigManager(config_dir=temp_config_dir)


@pytest.fixture
def run_store(tmp_path):
    return RunStore(run_dir=tmp_path / "runs")


@pytest.fixture
def sample_config():
    """Sample configuration for testing."""
    return Config(project_id="acme-prod-123", user_intent="Cut dev spend.", industry="FinTech")


@pytest.fixture
def credentials():
    return GcpCredentials(project_id="acme-prod-123", access_token="ya29.test-token")


@pytest.fixture
def mock_console():
    """Mock Rich console for CLI testing."""
    return Mock()


@pytest.fixture
def clean_snapshot():
    """Inventory with no waste at all."""
    return make_snapshot(
        vms=[make_vm("web-01", cpu=0.6), make_vm("api-01", cpu=0.4)],
        disks=[make_disk("web-01-boot", users=["instances/web-01"], size_gb=100)],
        sql_instances=[make_sql("prod-db", connections=12)],
        run_services=[make_service("frontend", requests=5000)],
    )


@pytest.fixture
def wasteful_snapshot():
    """Inventory with one finding of every kind."""
    return make_snapshot(
        vms=[
            make_vm("web-01", cpu=0.03),
            make_vm("batch-01", cpu=0.10, machine_type="n1-standard-2"),
            make_vm("train-01", cpu=0.05, has_gpu=True, machine_type="a2-highgpu-1g"),
            make_vm("api-01", cpu=0.7),
        ],
        disks=[make_disk("backup-1", hours_detached=300)],
        sql_instances=[make_sql("dev-db", connections=0)],
        run_services=[make_service("test-api", requests=0)],
    )

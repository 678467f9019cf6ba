"""
Shared fixtures for failwind tests.
"""

import pytest

from failwind.config import load_config


@pytest.fixture
def deps_config(tmp_path):
    """Configuration with every path inside a temporary directory."""
    return load_config(
        config_file=tmp_path / "missing.toml",
        overrides={
            "silent": True,
            "job": {"n_threads": 4, "timeout": 30000},
            "path": {
                "package": str(tmp_path / "site"),
                "snapshot": str(tmp_path / "deps-snap"),
                "log": str(tmp_path / "deps.log"),
                "spec": str(tmp_path / "plugins.toml"),
            },
        },
    )

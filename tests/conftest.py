"""
Pytest configuration: provider mocks and shared stack configuration.
"""

from pathlib import Path

import pulumi
import pytest

from config import SecurityGroupConfig, StackSettings, load_settings
from tests.mocks import AliCloudMocks

SETTINGS_FILE = Path(__file__).resolve().parent.parent / "config.yaml"


@pytest.fixture(autouse=True)
def mocks() -> AliCloudMocks:
    """Install fresh provider mocks for every test."""
    instance = AliCloudMocks()
    pulumi.runtime.set_mocks(instance, preview=False)
    return instance


@pytest.fixture
def settings() -> StackSettings:
    return load_settings(str(SETTINGS_FILE))


@pytest.fixture
def security_group() -> SecurityGroupConfig:
    return SecurityGroupConfig.from_dict({
        "name": "web",
        "description": "web servers",
        "innerAccessPolicy": "Accept",
        "rules": [
            {
                "name": "ssh",
                "description": "SSH",
                "type": "ingress",
                "protocol": "tcp",
                "portRange": "22/22",
                "cidrIP": "10.0.0.0/8",
                "priority": 1,
                "policy": "accept",
            },
            {
                "name": "https",
                "description": "HTTPS",
                "type": "ingress",
                "protocol": "tcp",
                "portRange": "443/443",
                "cidrIP": "0.0.0.0/0",
                "priority": 5,
                "policy": "accept",
            },
            {
                "name": "all",
                "type": "egress",
                "protocol": "all",
                "portRange": "-1/-1",
                "cidrIP": "0.0.0.0/0",
                "priority": 100,
                "policy": "drop",
            },
        ],
    })

"""
This module defines the data structures for the Alibaba Cloud stack configuration.
Settings come from a YAML file (camelCase keys) and the security group from Pulumi stack config.
"""

import re
from collections import Counter
from dataclasses import MISSING, dataclass, field, fields
from typing import Any, Dict, List

import pulumi
import yaml

RULE_TYPES = ("ingress", "egress")

REQUIRED_KEYS = ["region", "resourceGroup", "bucket", "certificate", "cdn", "network", "instance"]

def to_snake_case(name: str) -> str:
    return re.sub(r'(?<=[a-z0-9])(?=[A-Z])', '_', name).lower()

def _from_mapping(cls, data: Any, section: str):
    if not isinstance(data, dict):
        raise ValueError(f"Configuration section '{section}' must be a mapping")
    known = {f.name for f in fields(cls)}
    kwargs = {}
    for key, value in data.items():
        attr = to_snake_case(key)
        if attr not in known:
            raise ValueError(f"Unknown configuration key: {section}.{key}")
        if attr in kwargs:
            raise ValueError(f"Duplicate configuration key: {section}.{key}")
        kwargs[attr] = value
    for f in fields(cls):
        if f.name not in kwargs and f.default is MISSING and f.default_factory is MISSING:
            raise ValueError(f"Missing required configuration key: {section}.{f.name}")
    return kwargs

@dataclass(frozen=True)
class SecurityGroupRuleConfig:
    name: str
    type: str
    protocol: str
    port_range: str
    cidr_ip: str
    priority: int
    policy: str
    description: str = ""

    @classmethod
    def from_dict(cls, data: Any, section: str = "rule") -> "SecurityGroupRuleConfig":
        kwargs = _from_mapping(cls, data, section)
        if kwargs["type"] not in RULE_TYPES:
            raise ValueError(f"{section}.type must be one of {RULE_TYPES}, got '{kwargs['type']}'")
        priority = kwargs["priority"]
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise ValueError(f"{section}.priority must be an integer, got {priority!r}")
        return cls(**kwargs)

@dataclass(frozen=True)
class SecurityGroupConfig:
    name: str
    description: str = ""
    inner_access_policy: str = "Accept"
    rules: List[SecurityGroupRuleConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "SecurityGroupConfig":
        kwargs = _from_mapping(cls, data, "securityGroup")
        raw_rules = kwargs.get("rules") or []
        if not isinstance(raw_rules, list):
            raise ValueError("securityGroup.rules must be a list")
        kwargs["rules"] = [
            SecurityGroupRuleConfig.from_dict(rule, f"securityGroup.rules[{i}]")
            for i, rule in enumerate(raw_rules)
        ]
        return cls(**kwargs)

@dataclass(frozen=True)
class ResourceGroupSettings:
    name: str
    display_name: str

@dataclass(frozen=True)
class BucketSettings:
    name: str
    acl: str = "private"
    redundancy_type: str = "LRS"
    storage_class: str = "Standard"
    access_monitor: str = "Disabled"

@dataclass(frozen=True)
class CertificateSettings:
    id: str
    name: str
    region: str

@dataclass(frozen=True)
class CdnSettings:
    domain_name: str
    cdn_type: str = "web"
    scope: str = "domestic"
    private_oss_auth: bool = True

@dataclass(frozen=True)
class NetworkSettings:
    vpc_name: str
    vpc_cidr_block: str
    vswitch_name: str
    zone_id: str
    vswitch_cidr_block: str

@dataclass(frozen=True)
class InstanceSettings:
    name: str
    host_name: str
    image_id: str
    instance_type: str
    key_name: str
    instance_charge_type: str = "PrePaid"
    period_unit: str = "Month"
    auto_renew_period: int = 1
    renewal_status: str = "Normal"
    internet_charge_type: str = "PayByBandwidth"
    internet_max_bandwidth_out: int = 3
    maintenance_action: str = "AutoRecover"
    spot_strategy: str = "NoSpot"
    status: str = "Running"
    stopped_mode: str = "Not-applicable"
    system_disk_category: str = "cloud_essd_entry"
    system_disk_size: int = 40

SECTIONS = {
    "resource_group": ResourceGroupSettings,
    "bucket": BucketSettings,
    "certificate": CertificateSettings,
    "cdn": CdnSettings,
    "network": NetworkSettings,
    "instance": InstanceSettings,
}

@dataclass(frozen=True)
class StackSettings:
    region: str
    resource_group: ResourceGroupSettings
    bucket: BucketSettings
    certificate: CertificateSettings
    cdn: CdnSettings
    network: NetworkSettings
    instance: InstanceSettings
    protect: bool = True

    @classmethod
    def from_dict(cls, data: Any) -> "StackSettings":
        kwargs = _from_mapping(cls, data, "settings")
        for attr, section_cls in SECTIONS.items():
            kwargs[attr] = section_cls(**_from_mapping(section_cls, kwargs[attr], attr))
        return cls(**kwargs)

def load_config(file_path: str) -> Dict[str, Any]:
    """Load and validate YAML configuration from the given file path."""
    with open(file_path, "r") as file:
        config_data = yaml.safe_load(file)

    if not isinstance(config_data, dict):
        raise ValueError(f"Configuration file '{file_path}' must contain a mapping")

    for key in REQUIRED_KEYS:
        if key not in config_data:
            raise ValueError(f"Missing required configuration key: {key}")

    return config_data

def load_settings(file_path: str) -> StackSettings:
    return StackSettings.from_dict(load_config(file_path))

def load_security_group(config: pulumi.Config) -> SecurityGroupConfig:
    """Read the security group definition stored under the `securityGroup` stack-config key."""
    return SecurityGroupConfig.from_dict(config.require_object("securityGroup"))

def rule_resource_name(group_name: str, rule: SecurityGroupRuleConfig) -> str:
    return f"sg-rule-{group_name}-{rule.type}-{rule.name}"

def duplicate_rule_names(group: SecurityGroupConfig) -> List[str]:
    """Rule resource names shared by more than one rule, in first-seen order."""
    counts = Counter(rule_resource_name(group.name, rule) for rule in group.rules)
    return [name for name, count in counts.items() if count > 1]

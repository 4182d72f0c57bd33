import pulumi
import pulumi_alicloud as alicloud
from typing import Any, Dict, List, Optional

from config import (
    SecurityGroupConfig,
    StackSettings,
    duplicate_rule_names,
    rule_resource_name,
)

CDN_OSS_FUNCTION = "l2_oss_key"

def cdn_url(domain_id: str) -> str:
    return "https://" + domain_id

def on_off(flag: bool) -> str:
    return "on" if flag else "off"

class AliCloudResourceBuilder:
    """Provisions the stack's resources in a fixed order, wiring each id into the next step.

    Every step raises on failure and nothing after it runs; the engine owns retries and rollback.
    """

    def __init__(self, settings: StackSettings, security_group: SecurityGroupConfig):
        self.settings = settings
        self.security_group = security_group
        self.resources: Dict[str, Any] = {}
        self.rules: List[alicloud.ecs.SecurityGroupRule] = []
        self.provider: Optional[alicloud.Provider] = None

    def _opts(self, protect: bool = True) -> pulumi.ResourceOptions:
        return pulumi.ResourceOptions(
            provider=self.provider,
            protect=self.settings.protect if protect else None,
        )

    def _register(self, key: str, pulumi_name: str, resource: Any) -> Any:
        self.resources[key] = resource
        pulumi.log.info(f"Created resource: {pulumi_name} ({key})")
        return resource

    def build(self):
        self.build_provider()
        self.build_resource_group()
        self.build_bucket()
        self.lookup_certificate()
        self.build_cdn_domain()
        self.build_cdn_domain_config()
        self.build_vpc()
        self.build_vswitch()
        self.build_security_group()
        self.build_security_group_rules()
        self.build_instance()

    def build_provider(self) -> alicloud.Provider:
        # Region comes from settings, not the alicloud:region stack setting
        self.provider = alicloud.Provider("alicloud", region=self.settings.region)
        pulumi.log.info(f"Using alicloud provider in region '{self.settings.region}'")
        return self.provider

    def build_resource_group(self) -> alicloud.resourcemanager.ResourceGroup:
        rg = self.settings.resource_group
        group = alicloud.resourcemanager.ResourceGroup(
            rg.name,
            display_name=rg.display_name,
            resource_group_name=rg.name,
            opts=self._opts(),
        )
        return self._register("resource_group", rg.name, group)

    def build_bucket(self) -> alicloud.oss.Bucket:
        cfg = self.settings.bucket
        pulumi_name = f"oss-bucket-{cfg.name}"
        bucket = alicloud.oss.Bucket(
            pulumi_name,
            access_monitor=alicloud.oss.BucketAccessMonitorArgs(status=cfg.access_monitor),
            acl=cfg.acl,
            bucket=cfg.name,
            redundancy_type=cfg.redundancy_type,
            storage_class=cfg.storage_class,
            opts=self._opts(),
        )
        return self._register("bucket", pulumi_name, bucket)

    def lookup_certificate(self) -> alicloud.cas.ServiceCertificate:
        # Existing certificate, read only
        cert = self.settings.certificate
        certificate = alicloud.cas.ServiceCertificate.get(
            cert.name,
            cert.id,
            certificate_name=cert.name,
            opts=pulumi.ResourceOptions(provider=self.provider),
        )
        self.resources["certificate"] = certificate
        pulumi.log.info(f"Fetched existing certificate '{cert.name}' ({cert.id})")
        return certificate

    def build_cdn_domain(self) -> alicloud.cdn.DomainNew:
        cdn = self.settings.cdn
        bucket = self.resources["bucket"]
        certificate = self.resources["certificate"]
        domain = alicloud.cdn.DomainNew(
            cdn.domain_name,
            cdn_type=cdn.cdn_type,
            certificate_config=alicloud.cdn.DomainNewCertificateConfigArgs(
                cert_id=certificate.id,
                cert_name=certificate.certificate_name,
                cert_region=self.settings.certificate.region,
                cert_type="cas",
                server_certificate=certificate.cert,
            ),
            domain_name=cdn.domain_name,
            resource_group_id=self.resources["resource_group"].id,
            scope=cdn.scope,
            sources=[
                alicloud.cdn.DomainNewSourceArgs(
                    content=pulumi.Output.concat(bucket.bucket, ".", bucket.extranet_endpoint),
                    type="oss",
                )
            ],
            opts=self._opts(),
        )
        return self._register("cdn_domain", cdn.domain_name, domain)

    def build_cdn_domain_config(self) -> alicloud.cdn.DomainConfig:
        cdn = self.settings.cdn
        pulumi_name = f"{cdn.domain_name}-{CDN_OSS_FUNCTION}"
        domain_config = alicloud.cdn.DomainConfig(
            pulumi_name,
            domain_name=self.resources["cdn_domain"].domain_name,
            function_args=[
                alicloud.cdn.DomainConfigFunctionArgArgs(
                    arg_name="private_oss_ram_unauthorized",
                    arg_value="off",
                ),
                alicloud.cdn.DomainConfigFunctionArgArgs(
                    arg_name="private_oss_auth",
                    arg_value=on_off(cdn.private_oss_auth),
                ),
            ],
            function_name=CDN_OSS_FUNCTION,
            opts=self._opts(protect=False),
        )
        return self._register("cdn_domain_config", pulumi_name, domain_config)

    def build_vpc(self) -> alicloud.vpc.Network:
        net = self.settings.network
        pulumi_name = f"vpc-{net.vpc_name}"
        vpc = alicloud.vpc.Network(
            pulumi_name,
            cidr_block=net.vpc_cidr_block,
            resource_group_id=self.resources["resource_group"].id,
            vpc_name=net.vpc_name,
            opts=self._opts(),
        )
        return self._register("vpc", pulumi_name, vpc)

    def build_vswitch(self) -> alicloud.vpc.Switch:
        net = self.settings.network
        zone_suffix = net.zone_id.rsplit("-", 1)[-1]
        pulumi_name = f"vsw-{net.vpc_name}-zone-{zone_suffix}"
        vswitch = alicloud.vpc.Switch(
            pulumi_name,
            zone_id=net.zone_id,
            cidr_block=net.vswitch_cidr_block,
            vpc_id=self.resources["vpc"].id,
            vswitch_name=net.vswitch_name,
            opts=self._opts(),
        )
        return self._register("vswitch", pulumi_name, vswitch)

    def build_security_group(self) -> alicloud.ecs.SecurityGroup:
        sg = self.security_group
        pulumi_name = f"sg-{sg.name}"
        group = alicloud.ecs.SecurityGroup(
            pulumi_name,
            description=sg.description,
            inner_access_policy=sg.inner_access_policy,
            security_group_name=sg.name,
            security_group_type="normal",
            vpc_id=self.resources["vpc"].id,
            resource_group_id=self.resources["resource_group"].id,
            opts=self._opts(),
        )
        return self._register("security_group", pulumi_name, group)

    def build_security_group_rules(self) -> List[alicloud.ecs.SecurityGroupRule]:
        sg = self.security_group
        for name in duplicate_rule_names(sg):
            pulumi.log.warn(f"Security group rule name '{name}' is used by more than one rule")

        group_id = self.resources["security_group"].id
        for rule in sg.rules:
            pulumi_name = rule_resource_name(sg.name, rule)
            self.rules.append(alicloud.ecs.SecurityGroupRule(
                pulumi_name,
                description=rule.description,
                policy=rule.policy,
                security_group_id=group_id,
                ip_protocol=rule.protocol,
                type=rule.type,
                port_range=rule.port_range,
                cidr_ip=rule.cidr_ip,
                priority=rule.priority,
                opts=self._opts(),
            ))
            pulumi.log.info(f"Created resource: {pulumi_name} (security_group_rule)")
        return self.rules

    def build_instance(self) -> alicloud.ecs.Instance:
        cfg = self.settings.instance
        vswitch = self.resources["vswitch"]
        instance = alicloud.ecs.Instance(
            cfg.name,
            auto_renew_period=cfg.auto_renew_period,
            availability_zone=vswitch.zone_id,
            host_name=cfg.host_name,
            image_id=cfg.image_id,
            instance_charge_type=cfg.instance_charge_type,
            instance_name=cfg.name,
            instance_type=cfg.instance_type,
            internet_charge_type=cfg.internet_charge_type,
            internet_max_bandwidth_out=cfg.internet_max_bandwidth_out,
            key_name=cfg.key_name,
            maintenance_action=cfg.maintenance_action,
            period_unit=cfg.period_unit,
            renewal_status=cfg.renewal_status,
            security_groups=[self.resources["security_group"].id],
            spot_strategy=cfg.spot_strategy,
            status=cfg.status,
            stopped_mode=cfg.stopped_mode,
            system_disk_category=cfg.system_disk_category,
            system_disk_size=cfg.system_disk_size,
            vswitch_id=vswitch.id,
            resource_group_id=self.resources["resource_group"].id,
            opts=self._opts(),
        )
        return self._register("instance", cfg.name, instance)

    def outputs(self) -> Dict[str, Any]:
        instance = self.resources["instance"]
        return {
            "bucketName": self.resources["bucket"].id,
            "cdnDomainName": self.resources["cdn_domain"].id.apply(cdn_url),
            "ecsPrivateIp": instance.private_ip,
            "ecsPublicIp": instance.public_ip,
        }

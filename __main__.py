import pulumi
from config import load_security_group, load_settings
from provisioning import AliCloudResourceBuilder

DEFAULT_SETTINGS_FILE = "config.yaml"

def main():
    stack_config = pulumi.Config()
    settings_file = stack_config.get("settingsFile") or DEFAULT_SETTINGS_FILE

    try:
        settings = load_settings(settings_file)
        security_group = load_security_group(stack_config)
    except Exception as e:
        pulumi.log.error(f"Failed to load configuration: {e}")
        raise

    builder = AliCloudResourceBuilder(settings, security_group)

    try:
        builder.build()
    except Exception as e:
        pulumi.log.error(f"Failed during resource build: {e}")
        raise

    for name, value in builder.outputs().items():
        try:
            pulumi.export(name, value)
        except Exception as e:
            pulumi.log.warn(f"Failed to export output '{name}': {e}")

if __name__ == "__main__":
    main()

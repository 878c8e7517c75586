"""Command line entry point"""

import os
import sys
import logging
import argparse
import subprocess
from typing import Optional

from managed_disk_sample.config import CONFIG_FILE, SECRET_FILE, ConfigError, SampleConfig
from managed_disk_sample.sample import AzureClients, ManagedDiskSample

logger = logging.getLogger(__name__)

SUBSCRIPTION_ENV_VAR = 'AZURE_SUBSCRIPTION_ID'

NOISY_LOGGERS = [
    'azure',
    'azure.core.pipeline.policies.http_logging_policy',
    'azure.mgmt',
    'azure.identity',
    'urllib3',
]


class SubscriptionNotFoundError(RuntimeError):
    """No subscription id could be resolved"""


def setup_logging(verbose: bool = False):
    """Setup logging configuration"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    # Reduce Azure SDK logging verbosity
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def resolve_subscription_id(subscription_id: Optional[str] = None) -> str:
    """Pick the subscription: explicit value, then environment, then az cli default"""
    if subscription_id:
        return subscription_id

    subscription_id = os.getenv(SUBSCRIPTION_ENV_VAR)
    if subscription_id:
        logger.debug(f"Using subscription from {SUBSCRIPTION_ENV_VAR}")
        return subscription_id

    try:
        result = subprocess.run(['az', 'account', 'show', '--query', 'id', '-o', 'tsv'],
                                capture_output=True, text=True, check=True)
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        raise SubscriptionNotFoundError(
            f"Could not get subscription ID from {SUBSCRIPTION_ENV_VAR} or Azure CLI. "
            f"Run 'az login' or provide --subscription-id"
        ) from e

    subscription_id = result.stdout.strip()
    if not subscription_id:
        raise SubscriptionNotFoundError("Azure CLI returned an empty subscription ID")
    logger.debug("Using default subscription from Azure CLI")
    return subscription_id


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Create a VM with un-managed disks, deallocate it and convert it to managed disks'
    )
    parser.add_argument('--subscription-id',
                        help='Azure subscription ID (defaults to AZURE_SUBSCRIPTION_ID, then az cli default)')

    # Configuration options (these override config.yaml values if provided)
    parser.add_argument('--config', default=CONFIG_FILE,
                        help='Path to the YAML configuration file')
    parser.add_argument('--secrets', default=SECRET_FILE,
                        help='Path to the dotenv file holding admin credentials')
    parser.add_argument('--location',
                        help='Azure region for the VM and its resources (overrides config.yaml)')
    parser.add_argument('--resource-group-location',
                        help='Azure region for the resource group (overrides config.yaml)')
    parser.add_argument('--vm-size',
                        help='VM size (overrides config.yaml)')
    parser.add_argument('--admin-username',
                        help='Admin username (overrides .env.secret)')
    parser.add_argument('--admin-password',
                        help='Admin password (overrides .env.secret)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable debug logging')
    return parser


def main(argv=None, credential=None) -> int:
    """Main CLI interface"""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = SampleConfig(
            location=args.location,
            resource_group_location=args.resource_group_location,
            vm_size=args.vm_size,
            admin_username=args.admin_username,
            admin_password=args.admin_password,
            config_file=args.config,
            secret_file=args.secrets
        )
        subscription_id = resolve_subscription_id(args.subscription_id)
    except (ConfigError, SubscriptionNotFoundError) as e:
        print(f"❌ Error: {e}")
        return 1

    clients = AzureClients.create(subscription_id, credential)
    sample = ManagedDiskSample(clients, config)
    result = sample.run()

    if result.succeeded:
        print(f"✅ VM migrated to managed disks: {result.vm_id}")
    else:
        print(f"❌ Sample did not complete: {result.error}")
    if result.resource_group_id and not result.cleaned_up:
        print(f"⚠️  Resource group may need manual deletion: {result.resource_group_id}")
    return 0


if __name__ == '__main__':
    sys.exit(main())

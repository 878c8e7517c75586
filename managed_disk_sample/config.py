"""
Sample configuration, resource names and throwaway admin credentials.

Values come from, in order of precedence:
- explicit constructor arguments (the CLI passes its flags through here)
- config.yaml
- built-in defaults

Admin credentials come from .env.secret (ADMIN_USERNAME / ADMIN_PASSWORD)
and are generated when the file does not provide them.

Every run provisions a fresh set of resources, so names get a random
numeric suffix. Storage account names are the strictest (3-24 chars,
lowercase letters and digits only) and every name follows those rules.
"""

import os
import re
import random
import secrets
import string
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

CONFIG_FILE = 'config.yaml'
SECRET_FILE = '.env.secret'

# The resource group lives in a different region than everything inside it.
DEFAULT_LOCATION = 'eastus'
DEFAULT_RESOURCE_GROUP_LOCATION = 'southcentralus'
DEFAULT_VM_SIZE = 'Standard_DS1_v2'
DEFAULT_IMAGE = {
    'publisher': 'Canonical',
    'offer': 'UbuntuServer',
    'sku': '16.04-LTS',
    'version': 'latest'
}
DEFAULT_DATA_DISKS = [
    {'name': 'mydatadisk1', 'size_gb': 100},
    {'name': 'mydatadisk2', 'size_gb': 50},
]
DEFAULT_VNET_ADDRESS_PREFIX = '10.0.0.0/16'
DEFAULT_SUBNET_ADDRESS_PREFIX = '10.0.0.0/28'

DEFAULT_NAME_PREFIXES = {
    'resource_group': 'rgCOMV',
    'storage_account': 'storage',
    'subnet': 'sub',
    'vnet': 'vnet',
    'nic': 'nic',
    'ip_config': 'config',
    'vm': 'VM1',
}

PASSWORD_SYMBOLS = '!@#$%^&*'


class ConfigError(ValueError):
    """Raised when config.yaml holds something unusable"""


def create_random_name(prefix: str, max_len: int = 24) -> str:
    """Return prefix plus a random numeric suffix, alphanumeric and lowercase"""
    clean_prefix = re.sub(r'[^a-z0-9]', '', prefix.lower())
    suffix = ''.join(random.choices(string.digits, k=8))
    return f"{clean_prefix}{suffix}"[:max_len]


def create_username() -> str:
    """Generate an admin username for the VM"""
    return f"tirekicker{random.randint(1000, 9999)}"


def create_password(length: int = 16) -> str:
    """Generate a password satisfying Azure's Linux VM complexity rules"""
    if length < 8:
        raise ValueError("Password length must be at least 8")

    required = [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.digits),
        secrets.choice(PASSWORD_SYMBOLS),
    ]
    alphabet = string.ascii_letters + string.digits + PASSWORD_SYMBOLS
    rest = [secrets.choice(alphabet) for _ in range(length - len(required))]

    chars = required + rest
    random.SystemRandom().shuffle(chars)
    return ''.join(chars)


@dataclass(frozen=True)
class ResourceNames:
    """Names of every resource created by one run"""
    resource_group: str
    storage_account: str
    subnet: str
    vnet: str
    nic: str
    ip_config: str
    vm: str

    @classmethod
    def generate(cls, prefixes: Optional[Dict[str, str]] = None) -> 'ResourceNames':
        merged = dict(DEFAULT_NAME_PREFIXES)
        merged.update(prefixes or {})
        return cls(**{key: create_random_name(prefix) for key, prefix in merged.items()
                      if key in DEFAULT_NAME_PREFIXES})


def load_config(config_file: str = CONFIG_FILE) -> Dict:
    """Load configuration from config.yaml file"""
    if not os.path.exists(config_file):
        logger.debug(f"{config_file} not found, using default configuration")
        return {}

    with open(config_file, 'r') as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file} must contain a mapping, got {type(data).__name__}")
    return data


def load_secrets(secret_file: str = SECRET_FILE) -> Dict[str, Optional[str]]:
    """Load admin credentials from .env.secret file"""
    if os.path.exists(secret_file):
        load_dotenv(secret_file)
    else:
        logger.debug(f"{secret_file} not found, admin credentials will be generated")
    return {
        'admin_username': os.getenv('ADMIN_USERNAME'),
        'admin_password': os.getenv('ADMIN_PASSWORD')
    }


@dataclass
class SampleConfig:
    """Tunables for one run of the sample"""
    location: str = None
    resource_group_location: str = None
    vm_size: str = None
    image: Dict[str, str] = None
    data_disks: List[Dict] = None
    vnet_address_prefix: str = None
    subnet_address_prefix: str = None
    name_prefixes: Dict[str, str] = field(default_factory=dict)
    admin_username: str = None
    admin_password: str = None
    config_file: str = CONFIG_FILE
    secret_file: str = SECRET_FILE

    def __post_init__(self):
        config_data = load_config(self.config_file)
        secrets_data = load_secrets(self.secret_file)

        self.location = self.location or config_data.get('location', DEFAULT_LOCATION)
        self.resource_group_location = (self.resource_group_location
                                        or config_data.get('resource_group_location',
                                                           DEFAULT_RESOURCE_GROUP_LOCATION))
        self.vm_size = self.vm_size or config_data.get('vm_size', DEFAULT_VM_SIZE)

        if self.image is None:
            image = config_data.get('image') or {}
            if not isinstance(image, dict):
                raise ConfigError(f"'image' must be a mapping, got {type(image).__name__}")
            self.image = dict(DEFAULT_IMAGE, **image)

        if self.data_disks is None:
            data_disks = config_data.get('data_disks')
            self.data_disks = data_disks if data_disks is not None else DEFAULT_DATA_DISKS

        self.vnet_address_prefix = (self.vnet_address_prefix
                                    or config_data.get('vnet_address_prefix', DEFAULT_VNET_ADDRESS_PREFIX))
        self.subnet_address_prefix = (self.subnet_address_prefix
                                      or config_data.get('subnet_address_prefix', DEFAULT_SUBNET_ADDRESS_PREFIX))
        self.name_prefixes = self.name_prefixes or config_data.get('name_prefixes') or {}

        self.admin_username = self.admin_username or secrets_data['admin_username'] or create_username()
        self.admin_password = self.admin_password or secrets_data['admin_password'] or create_password()

        self._validate()

    def _validate(self):
        if not isinstance(self.data_disks, list):
            raise ConfigError(f"'data_disks' must be a list, got {type(self.data_disks).__name__}")
        for disk in self.data_disks:
            if not isinstance(disk, dict):
                raise ConfigError(f"Data disk entry must be a mapping: {disk}")
            if 'name' not in disk or 'size_gb' not in disk:
                raise ConfigError(f"Data disk entry needs 'name' and 'size_gb': {disk}")
            try:
                size_gb = int(disk['size_gb'])
            except (TypeError, ValueError):
                raise ConfigError(f"Data disk {disk['name']} has a non-numeric size: {disk['size_gb']}")
            if size_gb <= 0:
                raise ConfigError(f"Data disk {disk['name']} must have a positive size")
        if not isinstance(self.name_prefixes, dict):
            raise ConfigError(f"'name_prefixes' must be a mapping, got {type(self.name_prefixes).__name__}")
        missing = [key for key in DEFAULT_IMAGE if not self.image.get(key)]
        if missing:
            raise ConfigError(f"Image reference is missing: {', '.join(missing)}")

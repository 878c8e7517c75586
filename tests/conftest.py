from unittest.mock import MagicMock

import pytest

from managed_disk_sample.config import ResourceNames, SampleConfig
from managed_disk_sample.sample import AzureClients

SUBSCRIPTION_ID = '00000000-0000-0000-0000-000000000000'
RG_PATH = f'/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/rg-1'


def _resource(name, resource_id):
    resource = MagicMock()
    resource.name = name
    resource.id = resource_id
    return resource


class FakeAzure:
    """MagicMock clients whose operations append to self.calls in order"""

    def __init__(self):
        self.calls = []
        self.clients = AzureClients(
            subscription_id=SUBSCRIPTION_ID,
            resource_client=MagicMock(),
            storage_client=MagicMock(),
            network_client=MagicMock(),
            compute_client=MagicMock(),
        )

        rg = _resource('rg-1', RG_PATH)
        self._record(self.resource_groups, 'create_or_update', 'create-rg', rg, poller=False)
        self._record(self.clients.storage_client.storage_accounts, 'begin_create', 'create-storage',
                     _resource('storage1', f'{RG_PATH}/providers/Microsoft.Storage/storageAccounts/storage1'))
        self._record(self.clients.network_client.virtual_networks, 'begin_create_or_update', 'create-vnet',
                     _resource('vnet1', f'{RG_PATH}/providers/Microsoft.Network/virtualNetworks/vnet1'))
        self.clients.network_client.subnets.get.return_value = _resource(
            'sub1', f'{RG_PATH}/providers/Microsoft.Network/virtualNetworks/vnet1/subnets/sub1')
        self._record(self.clients.network_client.network_interfaces, 'begin_create_or_update', 'create-nic',
                     _resource('nic1', f'{RG_PATH}/providers/Microsoft.Network/networkInterfaces/nic1'))
        self._record(self.virtual_machines, 'begin_create_or_update', 'create-vm',
                     _resource('vm1', f'{RG_PATH}/providers/Microsoft.Compute/virtualMachines/vm1'))
        self._record(self.virtual_machines, 'begin_deallocate', 'deallocate', None)
        self._record(self.virtual_machines, 'begin_convert_to_managed_disks', 'convert', None)
        self._record(self.resource_groups, 'begin_delete', 'delete-rg', None)

    @property
    def resource_groups(self):
        return self.clients.resource_client.resource_groups

    @property
    def virtual_machines(self):
        return self.clients.compute_client.virtual_machines

    def _record(self, operations, method, label, value, poller=True):
        def side_effect(*args, **kwargs):
            self.calls.append(label)
            if not poller:
                return value
            result = MagicMock()
            result.result.return_value = value
            return result
        getattr(operations, method).side_effect = side_effect

    def fail(self, operations, method, label, error):
        """Make an operation record its call and then raise"""
        def side_effect(*args, **kwargs):
            self.calls.append(label)
            raise error
        getattr(operations, method).side_effect = side_effect


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Run from an empty directory with no credentials in the environment"""
    monkeypatch.chdir(tmp_path)
    for name in ('ADMIN_USERNAME', 'ADMIN_PASSWORD', 'AZURE_SUBSCRIPTION_ID'):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture
def fake_azure():
    return FakeAzure()


@pytest.fixture
def config(isolated_env):
    return SampleConfig(admin_username='tirekicker', admin_password='Secret-Pass1!')


@pytest.fixture
def names():
    return ResourceNames(
        resource_group='rg-1',
        storage_account='storage1',
        subnet='sub1',
        vnet='vnet1',
        nic='nic1',
        ip_config='config1',
        vm='vm1',
    )

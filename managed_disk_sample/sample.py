"""
Azure Compute sample: convert a VM from un-managed to managed disks.

Steps:
- Create a resource group, storage account, virtual network and NIC
- Create a Linux VM whose OS and data disks are VHD blobs in the storage account
- Deallocate the VM
- Convert the VM to managed disks
- Delete the resource group, whatever happened before
"""

import time
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Optional

from azure.identity import DefaultAzureCredential
from azure.mgmt.compute import ComputeManagementClient
from azure.mgmt.network import NetworkManagementClient
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.storage import StorageManagementClient
from azure.mgmt.compute.models import (
    VirtualMachine, HardwareProfile, StorageProfile, OSDisk, DataDisk,
    NetworkProfile, OSProfile, NetworkInterfaceReference, ImageReference,
    VirtualHardDisk, DiskCreateOptionTypes, CachingTypes, OperatingSystemTypes
)
from azure.mgmt.network.models import (
    NetworkInterface, NetworkInterfaceIPConfiguration, IPAllocationMethod,
    VirtualNetwork, AddressSpace, Subnet
)
from azure.mgmt.resource.resources.models import ResourceGroup
from azure.mgmt.storage.models import (
    StorageAccountCreateParameters, Sku, SkuName, Kind
)

from managed_disk_sample.config import ResourceNames, SampleConfig

logger = logging.getLogger(__name__)


def format_duration(seconds: float) -> str:
    """Format duration in a human-readable way"""
    if seconds < 60:
        return f"{seconds:.1f} seconds"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f} minutes ({seconds:.1f} seconds)"
    else:
        hours = seconds / 3600
        minutes = (seconds % 3600) / 60
        return f"{hours:.1f} hours, {minutes:.1f} minutes ({seconds:.1f} seconds)"


@dataclass
class AzureClients:
    """Management clients bound to one credential and subscription"""
    subscription_id: str
    resource_client: ResourceManagementClient
    storage_client: StorageManagementClient
    network_client: NetworkManagementClient
    compute_client: ComputeManagementClient

    @classmethod
    def create(cls, subscription_id: str, credential=None) -> 'AzureClients':
        credential = credential or DefaultAzureCredential()
        return cls(
            subscription_id=subscription_id,
            resource_client=ResourceManagementClient(credential, subscription_id),
            storage_client=StorageManagementClient(credential, subscription_id),
            network_client=NetworkManagementClient(credential, subscription_id),
            compute_client=ComputeManagementClient(credential, subscription_id),
        )


def vhd_uri(storage_name: str, blob_name: str) -> str:
    return f"https://{storage_name}.blob.core.windows.net/vhds/{blob_name}.vhd"


@dataclass
class SampleResult:
    """Outcome of one run"""
    succeeded: bool = False
    resource_group_id: Optional[str] = None
    vm_id: Optional[str] = None
    cleaned_up: bool = False
    error: Optional[BaseException] = None


class ManagedDiskSample:
    """Provision an un-managed disk VM, deallocate it and migrate it to managed disks"""

    def __init__(self, clients: AzureClients, config: SampleConfig,
                 names: Optional[ResourceNames] = None):
        self.clients = clients
        self.config = config
        self.names = names or ResourceNames.generate(config.name_prefixes)

    def run(self) -> SampleResult:
        """Run every step, then delete the resource group"""
        result = SampleResult()
        start_time = self._log_operation_start("managed disk conversion sample")

        try:
            with self.resource_group_scope(result) as rg:
                vm = self._provision_and_migrate(rg)
                result.vm_id = vm.id
            result.succeeded = True
        except Exception as e:
            result.error = e
            logger.exception(f"❌ Sample failed: {e}")

        self._log_operation_end("managed disk conversion sample", start_time, result.succeeded)
        return result

    @contextmanager
    def resource_group_scope(self, result: SampleResult) -> Iterator[ResourceGroup]:
        """Create the resource group and always attempt to delete it on exit"""
        rg = self.create_resource_group()
        result.resource_group_id = rg.id
        try:
            yield rg
        finally:
            result.cleaned_up = self.delete_resource_group(rg)

    def _provision_and_migrate(self, rg: ResourceGroup) -> VirtualMachine:
        self.create_storage_account(rg.name)
        subnet = self.create_virtual_network(rg.name)
        nic = self.create_network_interface(rg.name, subnet.id)

        vm = self.create_virtual_machine(rg.name, nic.id)
        self.deallocate_virtual_machine(rg.name, vm)
        self.convert_to_managed_disks(rg.name, vm)
        return vm

    def create_resource_group(self) -> ResourceGroup:
        rg_name = self.names.resource_group
        logger.info(f"Creating resource group {rg_name} in {self.config.resource_group_location}")
        rg = self.clients.resource_client.resource_groups.create_or_update(
            rg_name, ResourceGroup(location=self.config.resource_group_location)
        )
        logger.info(f"Resource group created: {rg.id}")
        return rg

    def create_storage_account(self, rg_name: str):
        storage_name = self.names.storage_account
        logger.info(f"Creating storage account: {storage_name}")

        storage_params = StorageAccountCreateParameters(
            sku=Sku(name=SkuName.STANDARD_LRS),
            kind=Kind.STORAGE_V2,
            location=self.config.location
        )

        operation = self.clients.storage_client.storage_accounts.begin_create(
            rg_name, storage_name, storage_params
        )
        result = operation.result()
        logger.info(f"Storage account created: {storage_name}")
        return result

    def create_virtual_network(self, rg_name: str) -> Subnet:
        """Create the VNet with its single subnet and return the subnet"""
        logger.info(f"Creating virtual network: {self.names.vnet}")
        vnet_params = VirtualNetwork(
            location=self.config.location,
            address_space=AddressSpace(address_prefixes=[self.config.vnet_address_prefix]),
            subnets=[
                Subnet(
                    name=self.names.subnet,
                    address_prefix=self.config.subnet_address_prefix
                )
            ]
        )

        vnet_operation = self.clients.network_client.virtual_networks.begin_create_or_update(
            rg_name, self.names.vnet, vnet_params
        )
        vnet_operation.result()

        subnet = self.clients.network_client.subnets.get(rg_name, self.names.vnet, self.names.subnet)
        logger.info(f"Virtual network created with subnet: {subnet.id}")
        return subnet

    def create_network_interface(self, rg_name: str, subnet_id: str) -> NetworkInterface:
        logger.info(f"Creating network interface: {self.names.nic}")
        nic_params = NetworkInterface(
            location=self.config.location,
            ip_configurations=[
                NetworkInterfaceIPConfiguration(
                    name=self.names.ip_config,
                    private_ip_allocation_method=IPAllocationMethod.DYNAMIC,
                    primary=True,
                    subnet=Subnet(id=subnet_id)
                )
            ]
        )

        nic_operation = self.clients.network_client.network_interfaces.begin_create_or_update(
            rg_name, self.names.nic, nic_params
        )
        nic = nic_operation.result()
        logger.info(f"Network interface created: {nic.id}")
        return nic

    def build_vm_parameters(self, nic_id: str) -> VirtualMachine:
        """VM definition with a VHD-backed OS disk and empty VHD data disks"""
        vm_name = self.names.vm
        storage_name = self.names.storage_account

        data_disks = [
            DataDisk(
                lun=lun,
                name=disk['name'],
                create_option=DiskCreateOptionTypes.EMPTY,
                disk_size_gb=int(disk['size_gb']),
                vhd=VirtualHardDisk(uri=vhd_uri(storage_name, disk['name']))
            )
            for lun, disk in enumerate(self.config.data_disks, start=1)
        ]

        return VirtualMachine(
            location=self.config.location,
            hardware_profile=HardwareProfile(vm_size=self.config.vm_size),
            os_profile=OSProfile(
                computer_name=vm_name,
                admin_username=self.config.admin_username,
                admin_password=self.config.admin_password
            ),
            network_profile=NetworkProfile(
                network_interfaces=[
                    NetworkInterfaceReference(id=nic_id, primary=True)
                ]
            ),
            storage_profile=StorageProfile(
                image_reference=ImageReference(**self.config.image),
                os_disk=OSDisk(
                    name=vm_name,
                    os_type=OperatingSystemTypes.LINUX,
                    caching=CachingTypes.NONE,
                    create_option=DiskCreateOptionTypes.FROM_IMAGE,
                    vhd=VirtualHardDisk(uri=vhd_uri(storage_name, vm_name))
                ),
                data_disks=data_disks
            )
        )

    def create_virtual_machine(self, rg_name: str, nic_id: str) -> VirtualMachine:
        logger.info("🖥️ Creating an un-managed Linux VM")
        start_time = time.time()

        operation = self.clients.compute_client.virtual_machines.begin_create_or_update(
            rg_name, self.names.vm, self.build_vm_parameters(nic_id)
        )
        vm = operation.result()

        logger.info(f"Created a Linux VM with un-managed OS and data disks: {vm.id}")
        logger.info(f"⏱️ VM created in {format_duration(time.time() - start_time)}")
        return vm

    def deallocate_virtual_machine(self, rg_name: str, vm: VirtualMachine):
        logger.info(f"Deallocate VM: {vm.id}")
        self.clients.compute_client.virtual_machines.begin_deallocate(rg_name, vm.name).result()
        logger.info(f"De-allocated VM: {vm.id}")

    def convert_to_managed_disks(self, rg_name: str, vm: VirtualMachine):
        # The VM must be deallocated first
        logger.info(f"Migrate VM: {vm.id}")
        self.clients.compute_client.virtual_machines.begin_convert_to_managed_disks(
            rg_name, vm.name
        ).result()
        logger.info(f"Migrated VM: {vm.id}")

    def delete_resource_group(self, rg: ResourceGroup) -> bool:
        """Delete the resource group; errors are logged, never raised"""
        try:
            logger.info(f"🗑️ Deleting Resource Group: {rg.id}")
            self.clients.resource_client.resource_groups.begin_delete(rg.name).result()
            logger.info(f"Deleted Resource Group: {rg.id}")
            return True
        except Exception as e:
            logger.error(f"Failed to delete resource group {rg.name}: {e}")
            return False

    def _log_operation_start(self, operation: str) -> float:
        start_time = time.time()
        logger.info(f"🚀 Starting {operation} at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        return start_time

    def _log_operation_end(self, operation: str, start_time: float, succeeded: bool = True):
        duration = format_duration(time.time() - start_time)
        if succeeded:
            logger.info(f"✅ {operation} completed in {duration}")
        else:
            logger.info(f"⛔ {operation} stopped after {duration}")

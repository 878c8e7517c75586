"""Convert an Azure VM from un-managed to managed disks"""

from managed_disk_sample.sample import ManagedDiskSample, SampleResult

__all__ = ['ManagedDiskSample', 'SampleResult']

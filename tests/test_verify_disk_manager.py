import sys
import os
import unittest

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from disk_manager.exceptions import AuthenticationError, PrivilegeRequiredError
from disk_manager.hardware import MockHardwareProvider
from disk_manager.models import BlockDevice


class TestMockDiskManager(unittest.TestCase):
    def setUp(self):
        self.provider = MockHardwareProvider()

    def test_list_disks(self):
        disks = self.provider.list_block_devices()
        self.assertEqual(len(disks), 2)
        self.assertEqual(disks[0].name, 'sda')
        self.assertEqual(disks[0].children[1].mountpoint, '/')
        self.assertEqual(disks[1].name, 'sdb')
        self.assertTrue(disks[1].removable)

    def test_list_returns_copies(self):
        disks = self.provider.list_block_devices()
        disks[1].children[0].mountpoint = '/tampered'
        self.assertEqual(self.provider.list_block_devices()[1].children[0].mountpoint, '')

    def test_usage_only_reported_when_mounted(self):
        part = self.provider.list_block_devices()[1].children[0]
        self.assertEqual(part.fs_size, 0)

        self.provider.mount('sdb1', '/media/test/sdb1', 'exfat', password='raspberry')
        part = self.provider.list_block_devices()[1].children[0]
        self.assertEqual(part.fs_size, 32 * 1024**3)
        self.assertEqual(part.fs_used, 8 * 1024**3)
        self.assertEqual(part.fs_avail, 24 * 1024**3)

    def test_privilege_is_checked(self):
        with self.assertRaises(PrivilegeRequiredError):
            self.provider.mount('sdb1', '/media/test/sdb1', 'exfat')
        with self.assertRaises(AuthenticationError):
            self.provider.mount('sdb1', '/media/test/sdb1', 'exfat', password='nope')
        self.assertEqual(self.provider.calls, [])

    def test_passwordless_provider(self):
        provider = MockHardwareProvider(passwordless=True)
        self.assertEqual(provider.mount('sdb1', '/media/test/sdb1', 'exfat'), '/media/test/sdb1')

    def test_format_partition(self):
        self.provider.mount('sdb1', '/media/test/sdb1', 'exfat', password='raspberry')
        self.provider.format('sdb1', 'ntfs', 'Archive', password='raspberry')

        part = self.provider.list_block_devices()[1].children[0]
        self.assertEqual(part.fstype, 'ntfs')
        self.assertEqual(part.label, 'Archive')
        self.assertEqual(part.mountpoint, '')

    def test_hotplug_notifies_listeners(self):
        events = []
        self.provider.add_hotplug_listener(lambda: events.append('change'))

        self.provider.add_usb_disk('sdc', 16 * 1024**3)
        self.assertEqual(len(events), 1)
        self.assertIn('sdc', [d.name for d in self.provider.list_block_devices()])

        self.assertTrue(self.provider.detach_disk('sdc'))
        self.assertEqual(len(events), 2)
        self.assertFalse(self.provider.detach_disk('sdc'))
        self.assertEqual(len(events), 2)

    def test_attach_whole_disk(self):
        self.provider.attach_disk(BlockDevice(name='sdd', type='disk', size_bytes=4 * 1024**3,
                                              removable=True, fstype='vfat'), notify=False)
        self.assertEqual(self.provider.list_block_devices()[-1].name, 'sdd')


if __name__ == '__main__':
    unittest.main()

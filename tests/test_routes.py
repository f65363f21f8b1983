import sys
import os
import unittest
from unittest.mock import patch

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app import create_app
from config import Config
from disk_manager.hardware import MockHardwareProvider

GIB = 1024**3


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    MOCK_HARDWARE = True
    HOTPLUG_MONITOR = False
    MEDIA_ROOT = '/media/test'
    EVENTS_KEEPALIVE = 1
    LOG_LEVEL = 'WARNING'


class RoutesTestCase(unittest.TestCase):

    def setUp(self):
        self.provider = MockHardwareProvider()
        self.app = create_app(TestConfig, provider=self.provider)
        self.client = self.app.test_client()

    def removable(self):
        resp = self.client.get('/storage')
        self.assertEqual(resp.status_code, 200)
        return {d['name']: d for d in resp.get_json()['removable']}


class TestStorage(RoutesTestCase):

    @patch('utils.shutil.disk_usage')
    def test_storage(self, disk_usage):
        disk_usage.return_value = (64 * GIB, 16 * GIB, 48 * GIB)
        data = self.client.get('/storage').get_json()

        self.assertEqual(data['rootStorage']['usedPercent'], 25)
        self.assertEqual(data['rootStorage']['totalHuman'], '64.0GB')
        self.assertEqual(len(data['removable']), 1)

        sdb = data['removable'][0]
        self.assertEqual(sdb['name'], 'sdb')
        self.assertEqual(sdb['label'], 'BACKUP')
        self.assertEqual(sdb['deviceType'], 'usb')
        self.assertEqual(sdb['sizeHuman'], '32.0GB')
        self.assertEqual(sdb['mountpoint'], '')
        self.assertNotIn('fsUsedPercent', sdb)

    @patch('utils.shutil.disk_usage', side_effect=OSError('gone'))
    def test_unknown_root_storage(self, disk_usage):
        data = self.client.get('/storage').get_json()
        self.assertIsNone(data['rootStorage'])
        self.assertEqual(len(data['removable']), 1)

    def test_system_disk_never_listed(self):
        self.assertNotIn('sda', self.removable())

    def test_hotplugged_disk_shows_up(self):
        self.provider.add_usb_disk('sdc', 500 * GIB, model='Expansion', label='MEDIA')
        devices = self.removable()
        self.assertEqual(devices['sdc']['deviceType'], 'portable')
        self.provider.detach_disk('sdc')
        self.assertNotIn('sdc', self.removable())


class TestMountRoutes(RoutesTestCase):

    def test_mount_requires_password(self):
        resp = self.client.post('/mount', json={'device': 'sdb'})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.get_json(), {'error': 'Password required', 'requiresAuth': True})

    def test_wrong_password(self):
        resp = self.client.post('/mount', json={'device': 'sdb', 'password': 'letmein'})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.get_json(), {'error': 'Incorrect password', 'requiresAuth': True})

    def test_mount_then_usage_is_reported(self):
        resp = self.client.post('/mount', json={'device': 'sdb', 'password': 'raspberry'})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json(), {'ok': True, 'mountpoint': '/media/test/BACKUP'})

        sdb = self.removable()['sdb']
        self.assertEqual(sdb['mountpoint'], '/media/test/BACKUP')
        self.assertEqual(sdb['fsUsedHuman'], '8.0GB')
        self.assertEqual(sdb['fsAvailHuman'], '24.0GB')
        self.assertEqual(sdb['fsUsedPercent'], 25)

    def test_refused_and_invalid(self):
        resp = self.client.post('/mount', json={'device': 'sda', 'password': 'raspberry'})
        self.assertEqual(resp.status_code, 403)

        resp = self.client.post('/mount', json={'password': 'raspberry'})
        self.assertEqual(resp.status_code, 400)

        resp = self.client.post('/mount', data='not json', content_type='application/json')
        self.assertEqual(resp.status_code, 400)

        resp = self.client.post('/mount', json={'device': 'sdz', 'password': 'raspberry'})
        self.assertEqual(resp.status_code, 404)
        self.assertIn('error', resp.get_json())

    def test_unmount(self):
        self.client.post('/mount', json={'device': 'sdb', 'password': 'raspberry'})
        resp = self.client.post('/unmount', json={'device': 'sdb'})
        self.assertEqual(resp.status_code, 401)

        resp = self.client.post('/unmount', json={'device': 'sdb', 'password': 'raspberry'})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json(), {'ok': True})
        self.assertEqual(self.removable()['sdb']['mountpoint'], '')

    def test_busy_device(self):
        locks = self.app.extensions['disk_manager'].locks
        self.assertTrue(locks.try_acquire('sdb'))
        try:
            resp = self.client.post('/mount', json={'device': 'sdb', 'password': 'raspberry'})
        finally:
            locks.release('sdb')
        self.assertEqual(resp.status_code, 409)

    def test_get_not_allowed(self):
        resp = self.client.get('/mount')
        self.assertEqual(resp.status_code, 405)
        self.assertEqual(resp.get_json(), {'error': 'Method not allowed'})


class TestFormatRoute(RoutesTestCase):

    def test_format(self):
        resp = self.client.post('/format', json={
            'device': 'sdb', 'filesystem': 'ext4', 'label': 'Photos', 'password': 'raspberry'})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json(), {'ok': True, 'message': 'Formatted /dev/sdb1 as ext4'})

        sdb = self.removable()['sdb']
        self.assertEqual(sdb['fsType'], 'ext4')
        self.assertEqual(sdb['label'], 'Photos')

    def test_format_defaults_to_exfat(self):
        resp = self.client.post('/format', json={'device': 'sdb', 'password': 'raspberry'})
        self.assertEqual(resp.get_json()['message'], 'Formatted /dev/sdb1 as exfat')

    def test_unsupported_filesystem(self):
        resp = self.client.post('/format', json={'device': 'sdb', 'filesystem': 'btrfs', 'password': 'raspberry'})
        self.assertEqual(resp.status_code, 400)

    def test_format_requires_password(self):
        resp = self.client.post('/format', json={'device': 'sdb', 'filesystem': 'vfat'})
        self.assertEqual(resp.status_code, 401)
        self.assertTrue(resp.get_json()['requiresAuth'])
        self.assertEqual(self.provider.calls, [])

    def test_system_disk(self):
        resp = self.client.post('/format', json={'device': 'sda', 'filesystem': 'vfat', 'password': 'raspberry'})
        self.assertEqual(resp.status_code, 403)


class TestUsbEvents(RoutesTestCase):

    def test_stream(self):
        notifier = self.app.extensions['disk_manager'].notifier
        resp = self.client.get('/usb-events')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.mimetype, 'text/event-stream')
        self.assertEqual(resp.headers['Cache-Control'], 'no-cache')

        chunks = iter(resp.response)
        self.assertEqual(next(chunks), b'retry: 10000\n\n')
        self.assertEqual(notifier.subscriber_count, 1)

        self.provider.add_usb_disk('sdc', 16 * GIB)
        self.assertEqual(next(chunks), b'data: {"type": "change"}\n\n')

        # nothing pending: keep-alive comment after EVENTS_KEEPALIVE seconds
        self.assertEqual(next(chunks), b':\n\n')

        resp.close()
        self.assertEqual(notifier.subscriber_count, 0)


class TestLabels(RoutesTestCase):

    def test_label_lifecycle(self):
        resp = self.client.post('/labels', json={'device': 'sdb', 'label': 'Holiday photos'})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()['displayLabel'], 'Holiday photos')

        self.assertEqual(self.removable()['sdb']['displayLabel'], 'Holiday photos')
        labels = self.client.get('/labels').get_json()['labels']
        self.assertEqual(list(labels.values()), ['Holiday photos'])

        resp = self.client.post('/labels', json={'device': 'sdb', 'label': ''})
        self.assertIsNone(resp.get_json()['displayLabel'])
        self.assertEqual(self.client.get('/labels').get_json()['labels'], {})

    def test_label_validation(self):
        resp = self.client.post('/labels', json={'device': 'sdb', 'label': 'x' * 65})
        self.assertEqual(resp.status_code, 400)

        resp = self.client.post('/labels', json={'device': 'sdb', 'label': 7})
        self.assertEqual(resp.status_code, 400)

        resp = self.client.post('/labels', json={'device': 'sda', 'label': 'root'})
        self.assertEqual(resp.status_code, 404)


class TestGenericErrors(RoutesTestCase):

    def test_unknown_route(self):
        resp = self.client.get('/nope')
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.get_json(), {'error': 'Not found'})


if __name__ == '__main__':
    unittest.main()

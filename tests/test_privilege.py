import sys
import os
import subprocess
import unittest
from unittest.mock import patch

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from disk_manager.exceptions import AuthenticationError, PrivilegeRequiredError
from disk_manager.privilege import PrivilegedRunner
from disk_manager.utils import run_command

PASSWORD_REQUIRED = (False, 'sudo: a password is required')


class TestRunCommand(unittest.TestCase):

    @patch('disk_manager.utils.subprocess.run')
    def test_success(self, run):
        run.return_value = subprocess.CompletedProcess(['lsblk'], 0, stdout='out\n', stderr='')
        self.assertEqual(run_command(['lsblk']), (True, 'out'))

    @patch('disk_manager.utils.subprocess.run')
    def test_failure_returns_stderr(self, run):
        run.return_value = subprocess.CompletedProcess(['mount'], 32, stdout='', stderr='mount: busy\n')
        self.assertEqual(run_command(['mount']), (False, 'mount: busy'))

    @patch('disk_manager.utils.subprocess.run')
    def test_stdin_is_passed(self, run):
        run.return_value = subprocess.CompletedProcess(['sudo'], 0, stdout='', stderr='')
        run_command(['sudo', '-S', 'true'], input_text='pw\n', timeout=3)
        self.assertEqual(run.call_args.kwargs['input'], 'pw\n')
        self.assertEqual(run.call_args.kwargs['timeout'], 3)

    @patch('disk_manager.utils.subprocess.run', side_effect=FileNotFoundError())
    def test_missing_binary(self, run):
        self.assertEqual(run_command(['mkfs.exfat']), (False, 'Command not found: mkfs.exfat'))

    @patch('disk_manager.utils.subprocess.run', side_effect=subprocess.TimeoutExpired(['mkfs.ntfs'], 1))
    def test_timeout(self, run):
        success, output = run_command(['mkfs.ntfs'], timeout=1)
        self.assertFalse(success)
        self.assertIn('timed out', output)


@patch('disk_manager.privilege.run_command')
class TestPrivilegedRunner(unittest.TestCase):

    def setUp(self):
        self.runner = PrivilegedRunner(timeout=7)

    def test_passwordless_sudo(self, run_command):
        run_command.return_value = (True, '')
        self.assertEqual(self.runner.run(['mount', '/dev/sdb1', '/media/x']), (True, ''))
        run_command.assert_called_once_with(['sudo', '-n', 'mount', '/dev/sdb1', '/media/x'], timeout=7)

    def test_privilege_required_without_password(self, run_command):
        run_command.side_effect = [PASSWORD_REQUIRED]
        with self.assertRaises(PrivilegeRequiredError) as ctx:
            self.runner.run(['mount', '/dev/sdb1', '/media/x'])
        self.assertNotIsInstance(ctx.exception, AuthenticationError)
        self.assertEqual(run_command.call_count, 1)

    def test_password_retry(self, run_command):
        run_command.side_effect = [PASSWORD_REQUIRED, (True, '')]
        self.assertEqual(self.runner.run(['umount', '/media/x'], password='secret'), (True, ''))

        args, kwargs = run_command.call_args
        self.assertEqual(args[0], ['sudo', '-S', '-p', '', 'umount', '/media/x'])
        self.assertEqual(kwargs['input_text'], 'secret\n')

    def test_wrong_password(self, run_command):
        run_command.side_effect = [
            PASSWORD_REQUIRED,
            (False, 'Sorry, try again.\nsudo: 1 incorrect password attempt'),
        ]
        with self.assertRaises(AuthenticationError):
            self.runner.run(['mkfs.ext4', '/dev/sdb1'], password='wrong')

    def test_command_failure_is_returned(self, run_command):
        run_command.return_value = (False, 'mount: /media/x: special device /dev/sdb1 does not exist.')
        success, output = self.runner.run(['mount', '/dev/sdb1', '/media/x'], password='secret')
        self.assertFalse(success)
        self.assertIn('does not exist', output)
        # no second sudo round trip for ordinary failures
        self.assertEqual(run_command.call_count, 1)

    def test_failure_after_password(self, run_command):
        run_command.side_effect = [PASSWORD_REQUIRED, (False, 'umount: /media/x: target is busy.')]
        self.assertEqual(self.runner.run(['umount', '/media/x'], password='secret'),
                         (False, 'umount: /media/x: target is busy.'))

    def test_timeout_override(self, run_command):
        run_command.return_value = (True, '')
        self.runner.run(['mkfs.exfat', '/dev/sdb1'], timeout=300)
        self.assertEqual(run_command.call_args.kwargs['timeout'], 300)


if __name__ == '__main__':
    unittest.main()

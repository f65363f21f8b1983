"""
exceptions.py
-------------
Error taxonomy for removable device operations.
Each error knows the HTTP status it maps to, so routes only have to
serialise whatever reaches them.
"""


class DiskManagerError(Exception):
    """Base class for every error the disk manager reports to a caller."""
    status_code = 500
    default_message = 'Operation failed'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)

    @property
    def message(self):
        return str(self)

    def to_dict(self):
        return {'error': self.message}


class InvalidRequestError(DiskManagerError):
    status_code = 400
    default_message = 'Invalid request'


class UnsupportedFilesystemError(InvalidRequestError):
    default_message = 'Unsupported filesystem'


class DeviceNotFoundError(DiskManagerError):
    status_code = 404
    default_message = 'Device not found'


class UnsafeDeviceError(DiskManagerError):
    """Raised before any destructive primitive when a system volume is targeted."""
    status_code = 403
    default_message = 'Refusing to operate on a system device'


class PrivilegeRequiredError(DiskManagerError):
    """Elevated privilege is needed and no password was supplied. Retryable."""
    status_code = 401
    default_message = 'Password required'

    def to_dict(self):
        return {'error': self.message, 'requiresAuth': True}


class AuthenticationError(PrivilegeRequiredError):
    """A password was supplied but rejected."""
    default_message = 'Incorrect password'


class DeviceBusyError(DiskManagerError):
    status_code = 409
    default_message = 'Device is busy'


class OperationFailedError(DiskManagerError):
    status_code = 500
    default_message = 'Operation failed'

"""Error types raised by the content store, mailer and config loader"""


class ContentStoreError(Exception):
    """Base class for content store failures"""
    status_code = 500


class ValidationError(ContentStoreError):
    """Client input is missing a required field or is malformed"""
    status_code = 400


class NotFound(ContentStoreError):
    """No record with the requested id"""
    status_code = 404


class StorageUnavailable(ContentStoreError):
    """Backing file or uploads directory cannot be read or written"""
    status_code = 500


class MailerError(Exception):
    pass


class ConfigError(Exception):
    pass

class ProvisionException(Exception):
    """Base class for every user-data provisioning failure."""


class UnsupportedProviderException(ProvisionException):
    """No known cloud provider matched the running environment."""


class UserDataFetchException(ProvisionException):
    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


class FetchTimeoutException(ProvisionException):
    pass


class CloudConfigParseException(ProvisionException):
    pass


class PathScopeViolationException(ProvisionException):
    pass


class DaemonConfigException(ProvisionException):
    pass


class FileWriteException(ProvisionException):
    pass


class InitdataMetaException(ProvisionException):
    pass


class UnsupportedDigestAlgorithmException(ProvisionException):
    pass


class MissingStaticFileException(ProvisionException):
    pass


class StaticFileEncodingException(ProvisionException):
    pass

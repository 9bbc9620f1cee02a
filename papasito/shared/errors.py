"""Exceptions raised by domain services and outbound integrations"""


class ServiceError(Exception):
    """A domain operation failed; the message is safe to show to the caller"""


class WalletError(ServiceError):
    pass


class SubscriptionError(ServiceError):
    pass


class IntegrationError(Exception):
    """A third-party integration is unavailable or misconfigured"""

"""Custom exceptions for marc-archive."""


class MarcArchiveError(Exception):
    """Base exception for all marc-archive errors."""


class NotFoundError(MarcArchiveError):
    """Exception raised when the requested mailing list does not exist upstream."""


class TransportError(MarcArchiveError):
    """Exception raised for network errors or non-success upstream responses."""


class ParseError(MarcArchiveError):
    """Exception raised when an upstream page does not have the expected shape."""


class CacheError(MarcArchiveError):
    """Exception raised when the local cache cannot be written."""


class ValidationError(MarcArchiveError):
    """Exception raised for invalid caller input."""

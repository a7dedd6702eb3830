"""
Exception types raised by the trainer core.
"""


class NihongoError(Exception):
    """Base class for all trainer errors."""


class ConfigError(NihongoError):
    """Required configuration (connection string, API key) is missing or invalid."""


class StorageError(NihongoError):
    """The local document store could not be read or written."""


class RemoteStoreError(NihongoError):
    """A call to the remote document store failed (network, auth, quota)."""


class ArchiveError(RemoteStoreError):
    """
    A remote lesson archive did not commit.

    The archive is written as one transaction, so nothing was persisted.
    Callers may retry the whole archive call.
    """


class ContentGenerationError(NihongoError):
    """The content-generation API failed or returned an unusable lesson."""


class SpeechError(NihongoError):
    """Speech synthesis failed or the provider is not supported."""


class SessionFinishedError(NihongoError):
    """A grade was submitted after the review queue was exhausted."""

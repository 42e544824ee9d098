"""Exception hierarchy shared by the engine and its collaborators."""

from __future__ import annotations


class VPCError(Exception):
    """Base class for every error raised by the vpc packages."""


class ObjectNotFound(VPCError):
    """The requested object does not exist (anymore) in the store."""


class ConflictError(VPCError):
    """An optimistic update lost against a concurrent writer."""


class ExternalError(VPCError):
    """A collaborator outside the process failed."""


class StoreError(ExternalError):
    """The resource store rejected or failed a request."""


class LinkError(ExternalError):
    """Netlink operation on a host link failed."""


class MetadataError(ExternalError):
    """The instance metadata endpoint could not be queried."""


class DataError(VPCError):
    """Declared state cannot be applied as-is (bad route, missing owner...)."""

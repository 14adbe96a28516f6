"""Exception types for configport.

Expected problems with a package (missing fields, bad checksums, version
drift) are reported through ``ValidationOutcome`` issues instead. These
exceptions cover the cases where an operation cannot continue at all.
"""


class ConfigPortError(Exception):
    """Base class for all configport errors."""


class ArchiveError(ConfigPortError):
    """Raised when a package container cannot be read or written safely."""


class ManifestNotFoundError(ArchiveError):
    """Raised when an archive has no root ``manifest.json`` member."""


class ExportError(ConfigPortError):
    """Raised when an export cannot produce a package."""


class PackageImportError(ConfigPortError):
    """Raised when an import cannot be applied."""

from .fingerprint import VersionEntry, VersionFingerprint
from .labels import Labels

__all__ = ["VersionEntry", "VersionFingerprint", "Labels"]

"""Artifact module for byte-addressable model storage."""

from .models import Artifact
from .store import ArtifactStore, DatabaseArtifactStore, FileArtifactStore

__all__ = [
    "Artifact",
    "ArtifactStore",
    "DatabaseArtifactStore",
    "FileArtifactStore",
]

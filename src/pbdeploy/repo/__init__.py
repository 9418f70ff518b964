"""
Management of the local Helm chart repository config and the indexes of the repositories listed in it.
"""

from pbdeploy.repo.file import RepositoryEntry, RepositoryFile
from pbdeploy.repo.index import ChartRepository
from pbdeploy.repo.sync import sync_repository

__all__ = ["ChartRepository", "RepositoryEntry", "RepositoryFile", "sync_repository"]

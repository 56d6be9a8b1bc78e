"""Business logic services for stocksync."""

from stocksync.services.cache_sweeper import CacheSweeper, SweepResult
from stocksync.services.export_reader import ExportFormatError, iter_export, open_export
from stocksync.services.importer import ImportPipeline, ImportResult, ImportService
from stocksync.services.kv_store import KVStore
from stocksync.services.linker import EanLinker, LinkerError, LinkResult
from stocksync.services.registrar import FileRegistrar, RegisteredFile, RegistrarError
from stocksync.services.remote_catalog import (
    RemoteCatalogClient,
    RemoteCatalogDecodeError,
    RemoteCatalogError,
    RemoteCatalogHTTPError,
)

__all__ = [
    "CacheSweeper",
    "EanLinker",
    "ExportFormatError",
    "FileRegistrar",
    "ImportPipeline",
    "ImportResult",
    "ImportService",
    "KVStore",
    "LinkResult",
    "LinkerError",
    "RegisteredFile",
    "RegistrarError",
    "RemoteCatalogClient",
    "RemoteCatalogDecodeError",
    "RemoteCatalogError",
    "RemoteCatalogHTTPError",
    "SweepResult",
    "iter_export",
    "open_export",
]

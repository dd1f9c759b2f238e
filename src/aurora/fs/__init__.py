"""ONFS — directories, files, persistence, and application files.

Re-exports public symbols so callers can write::

    from aurora.fs import Filesystem, Directory, File
"""

from aurora.fs.appfile import (
    APP_EXTENSION,
    ApplicationLoader,
    ApplicationRecord,
    InvalidApplicationRecordError,
    decode_application_record,
    encode_application,
    is_application_file,
    write_application_file,
)
from aurora.fs.filesystem import (
    ROOT_MARKER,
    CorruptFilesystemError,
    Filesystem,
    FilesystemDirectory,
    NotFoundError,
    split_path,
    storage_key,
)
from aurora.fs.nodes import Directory, File, Node, NodeType
from aurora.fs.storage import FileStorage, MemoryStorage, Storage

__all__ = [
    "APP_EXTENSION",
    "ROOT_MARKER",
    "ApplicationLoader",
    "ApplicationRecord",
    "CorruptFilesystemError",
    "Directory",
    "File",
    "FileStorage",
    "Filesystem",
    "FilesystemDirectory",
    "InvalidApplicationRecordError",
    "MemoryStorage",
    "Node",
    "NodeType",
    "NotFoundError",
    "Storage",
    "decode_application_record",
    "encode_application",
    "is_application_file",
    "split_path",
    "storage_key",
    "write_application_file",
]

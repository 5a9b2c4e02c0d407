"""Archive detection and extraction."""

from .codecs import Codec, ExtractionTool, ToolOutcome, ToolStatus
from .engine import ArchiveExtractor, extract_archive
from .exceptions import ArchiveError, ExtractionError, MountError, UnsupportedArchiveError
from .formats import ArchiveFormat, is_archive_file, sniff_format
from .sandbox import ExtractionSandbox, ModePolicy, allow_all_modes, skip_empty_modes

__all__ = [
    "ArchiveError",
    "ArchiveExtractor",
    "ArchiveFormat",
    "Codec",
    "ExtractionError",
    "ExtractionSandbox",
    "ExtractionTool",
    "ModePolicy",
    "MountError",
    "ToolOutcome",
    "ToolStatus",
    "UnsupportedArchiveError",
    "allow_all_modes",
    "extract_archive",
    "is_archive_file",
    "skip_empty_modes",
    "sniff_format",
]

"""Pacote system: escrita diária, compressão, retenção e erros.

Re-exports úteis para importações curtas.
"""

from .log_helpers import compress_file, prune_archives, write_json, write_text
from .writer import DailyLogWriter

__all__ = ["DailyLogWriter", "compress_file", "prune_archives", "write_json", "write_text"]

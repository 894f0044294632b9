"""Play records: model, dedup keys and source export parsing."""

from teal_shared.records.keys import create_record_key
from teal_shared.records.models import PlayArtist, PlayRecord
from teal_shared.records.parser import ExportFormatError, ExportParser

__all__ = ["ExportFormatError", "ExportParser", "PlayArtist", "PlayRecord", "create_record_key"]

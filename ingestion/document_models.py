from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass(frozen=True)
class NormalizedDocument:
    text: str  # extracted text, may be blank
    metadata: Dict[str, str] = field(default_factory=dict)  # source_path_or_url, original_filename, page_number, ...
    id: Optional[str] = None


@dataclass(frozen=True)
class StagedRecord:
    id: str  # sanitized, unique within one staging run
    contents: str


@dataclass(frozen=True)
class SourceDescriptor:
    type: str  # "file" | "url"
    path_or_url: str
    original_filename: str

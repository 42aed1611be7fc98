from __future__ import annotations

import itertools
import re
import shutil
import uuid
from pathlib import Path, PurePath
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import orjson

from common.errors import StagingIOError
from common.logger import get_logger
from ingestion.document_models import NormalizedDocument, StagedRecord

log = get_logger(__name__)

MAX_ID_LENGTH = 200
_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def _meta(doc: NormalizedDocument, key: str) -> Optional[str]:
    value = (doc.metadata or {}).get(key)
    if value is None:
        return None
    value = str(value)
    return value if value.strip() else None


def base_record_id(doc: NormalizedDocument) -> str:
    """
    Pick the human-readable part of a staged id:
    metadata.id -> original_filename -> last path segment of the source -> uuid.
    """
    base = doc.id if doc.id and doc.id.strip() else None
    base = base or _meta(doc, "id") or _meta(doc, "original_filename")
    if base is None:
        source = _meta(doc, "source_path_or_url")
        name = PurePath(source).name if source and source != "/" else ""
        base = name or uuid.uuid4().hex

    page = _meta(doc, "page_number")
    if page and f"_p{page}" not in base:
        base += f"_p{page}"
    return base


def sanitize_record_id(base: str, max_length: int = MAX_ID_LENGTH) -> str:
    cleaned = _UNSAFE_ID_CHARS.sub("_", base)[:max_length]
    return cleaned or f"doc_{uuid.uuid4().hex[:8]}"


def make_record_id(doc: NormalizedDocument, seq: int) -> str:
    suffix = f"_{seq}"
    return sanitize_record_id(base_record_id(doc), MAX_ID_LENGTH - len(suffix)) + suffix


def staged_pairs(
    documents: Iterable[NormalizedDocument],
) -> Iterator[Tuple[NormalizedDocument, StagedRecord]]:
    """Pair every document with non-blank text with its StagedRecord."""
    counter = itertools.count()
    for doc in documents:
        if doc is None or doc.text is None or not doc.text.strip():
            log.warning(
                "Skipping document with empty content: %s",
                getattr(doc, "metadata", None),
            )
            continue
        yield doc, StagedRecord(id=make_record_id(doc, next(counter)), contents=doc.text)


class CorpusStager:
    """
    Writes documents as one JSON file per record into a staging directory
    that is wiped before every run.
    """

    def __init__(self, staging_path: Path | str):
        self.staging_path = Path(staging_path)
        self.last_manifest: List[Dict[str, Any]] = []

    def reset(self) -> None:
        try:
            if self.staging_path.exists():
                shutil.rmtree(self.staging_path)
            self.staging_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StagingIOError(
                f"Cannot prepare staging directory {self.staging_path}: {e}"
            ) from e

    def stage(self, documents: Iterable[NormalizedDocument]) -> int:
        self.reset()

        documents = list(documents or [])
        manifest: List[Dict[str, Any]] = []
        for doc, record in staged_pairs(documents):
            path = self.staging_path / f"{record.id}.json"
            try:
                path.write_bytes(
                    orjson.dumps(
                        {"id": record.id, "contents": record.contents},
                        option=orjson.OPT_INDENT_2,
                    )
                )
            except (OSError, TypeError) as e:
                log.error("Failed to write staged record %s: %s", record.id, e)
                continue
            manifest.append(
                {
                    "id": record.id,
                    "source": (doc.metadata or {}).get("source_path_or_url"),
                    "page": (doc.metadata or {}).get("page_number"),
                    "len": len(record.contents),
                }
            )

        self.last_manifest = manifest
        log.info(
            "Staged %d record(s) into %s (%d skipped)",
            len(manifest),
            self.staging_path,
            len(documents) - len(manifest),
        )
        return len(manifest)

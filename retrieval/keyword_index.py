from __future__ import annotations

import os
import shutil
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import bm25s
import orjson

from common.errors import IndexBuildError
from common.logger import get_logger

log = get_logger(__name__)

MANIFEST_FILE = "manifest.json"
ENGINE_DIR = "bm25"


class IndexState(str, Enum):
    EMPTY = "empty"
    BUILDING = "building"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class KeywordIndexHandle:
    path: Path
    build_id: str
    doc_count: int
    engine: Optional[bm25s.BM25]  # None for an empty index


@dataclass(frozen=True)
class OpenResult:
    handle: Optional[KeywordIndexHandle]
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.handle is not None


def default_threads() -> int:
    return max(1, (os.cpu_count() or 1) // 2)


def tokenize(text: str) -> List[str]:
    """Lowercase, split on word characters, drop English stopwords."""
    tokens = bm25s.tokenize(
        [text], stopwords="en", return_ids=False, show_progress=False
    )[0]
    return [t for t in tokens if t]


def _read_manifest(index_path: Path) -> Dict[str, Any]:
    return orjson.loads((index_path / MANIFEST_FILE).read_bytes())


class KeywordIndexBuilder:
    """
    Builds a BM25 keyword index from a staging directory of JSON records.

    Every build goes into a sibling temp directory and is swapped into
    `index_path` only once it is complete, so a failed or timed-out build
    leaves the previous index readable.
    """

    def __init__(
        self,
        index_path: Path | str,
        threads: int | None = None,
        build_timeout: float | None = None,
    ):
        self.index_path = Path(index_path)
        self.threads = threads or default_threads()
        self.build_timeout = build_timeout
        self._state = IndexState.EMPTY

    @property
    def state(self) -> IndexState:
        return self._state

    def build(
        self,
        staged_count: int,
        staging_path: Path | str,
        index_path: Path | str | None = None,
    ) -> None:
        final = Path(index_path) if index_path else self.index_path
        staging_path = Path(staging_path)
        deadline = (
            time.monotonic() + self.build_timeout if self.build_timeout else None
        )

        final.parent.mkdir(parents=True, exist_ok=True)
        tmp = final.parent / f".{final.name}.building-{uuid.uuid4().hex[:8]}"
        self._state = IndexState.BUILDING
        log.info(
            "Building keyword index for %d staged record(s): %s -> %s",
            staged_count,
            staging_path,
            final,
        )
        try:
            doc_count = self._build_into(tmp, staged_count, staging_path, deadline)
            self._check_deadline(deadline)
            self._swap(tmp, final)
        except IndexBuildError:
            self._state = IndexState.FAILED
            shutil.rmtree(tmp, ignore_errors=True)
            raise
        except Exception as e:
            self._state = IndexState.FAILED
            shutil.rmtree(tmp, ignore_errors=True)
            log.error("Keyword index build failed: %s", e, exc_info=True)
            raise IndexBuildError(f"Failed to build keyword index: {e}") from e

        self._state = IndexState.READY
        log.info("Keyword index ready at %s (%d document(s))", final, doc_count)

    def _check_deadline(self, deadline: float | None) -> None:
        if deadline is not None and time.monotonic() > deadline:
            raise IndexBuildError(
                f"Keyword index build exceeded {self.build_timeout}s timeout"
            )

    def _prepare_record(self, path: Path) -> Dict[str, Any]:
        rec = orjson.loads(path.read_bytes())
        contents = rec.get("contents") or ""
        return {
            "id": rec.get("id") or path.stem,
            "raw": contents,
            "contents": contents,
            "tokens": tokenize(contents),
        }

    def _build_into(
        self,
        target: Path,
        staged_count: int,
        staging_path: Path,
        deadline: float | None,
    ) -> int:
        target.mkdir(parents=True)
        records: List[Dict[str, Any]] = []

        if staged_count > 0:
            files = sorted(staging_path.glob("*.json"))
            if len(files) != staged_count:
                log.warning(
                    "Staged count %d does not match %d file(s) in %s",
                    staged_count,
                    len(files),
                    staging_path,
                )
            with ThreadPoolExecutor(max_workers=self.threads) as pool:
                for rec in pool.map(self._prepare_record, files):
                    self._check_deadline(deadline)
                    if not rec["tokens"]:
                        log.info("Record %s has no searchable terms, not indexed", rec["id"])
                        continue
                    records.append(rec)

        if records:
            corpus = [{k: r[k] for k in ("id", "raw", "contents")} for r in records]
            engine = bm25s.BM25(corpus=corpus)
            engine.index([r["tokens"] for r in records], show_progress=False)
            self._check_deadline(deadline)
            engine.save(str(target / ENGINE_DIR))
        else:
            log.warning("No indexable records, writing an empty keyword index")

        manifest = {
            "format": "bm25s",
            "build_id": uuid.uuid4().hex,
            "doc_count": len(records),
            "built_at": datetime.now(timezone.utc).isoformat(),
        }
        (target / MANIFEST_FILE).write_bytes(
            orjson.dumps(manifest, option=orjson.OPT_INDENT_2)
        )
        return len(records)

    def _swap(self, tmp: Path, final: Path) -> None:
        old: Path | None = None
        if final.exists():
            old = final.parent / f".{final.name}.old-{uuid.uuid4().hex[:8]}"
            final.rename(old)
        try:
            tmp.rename(final)
        except OSError:
            if old is not None:
                old.rename(final)
            raise
        if old is not None:
            shutil.rmtree(old, ignore_errors=True)

    def try_open(self) -> OpenResult:
        """Check whether the index on disk can be opened. Never raises."""
        path = self.index_path
        if not path.is_dir():
            return OpenResult(None, f"index directory {path} does not exist")
        try:
            manifest = _read_manifest(path)
            doc_count = int(manifest["doc_count"])
            build_id = str(manifest["build_id"])
        except (OSError, KeyError, TypeError, ValueError) as e:
            return OpenResult(None, f"index manifest unreadable: {e}")

        if doc_count == 0:
            return OpenResult(KeywordIndexHandle(path, build_id, 0, None))
        try:
            engine = bm25s.BM25.load(str(path / ENGINE_DIR), load_corpus=True)
        except Exception as e:
            return OpenResult(None, f"keyword engine could not open index: {e}")
        return OpenResult(KeywordIndexHandle(path, build_id, doc_count, engine))

    def is_available(self) -> bool:
        result = self.try_open()
        if not result.ok:
            log.warning("Keyword index not available: %s", result.reason)
        return result.ok

    def generation(self) -> Optional[str]:
        try:
            return str(_read_manifest(self.index_path)["build_id"])
        except (OSError, KeyError, TypeError, ValueError):
            return None

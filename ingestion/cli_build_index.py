from __future__ import annotations

import argparse

from app.bootstrap import build_services
from common.errors import IndexBuildError, RebuildInProgressError, StagingIOError
from common.logger import get_logger

log = get_logger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Reprocess all configured sources and rebuild the keyword + vector indexes."
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Only report whether the keyword index is usable",
    )
    args = parser.parse_args()

    services = build_services()
    indexer = services.indexer

    if args.status:
        available = indexer.is_index_available()
        print("available" if available else "unavailable")
        raise SystemExit(0 if available else 1)

    try:
        staged = indexer.reprocess_all_sources()
    except RebuildInProgressError as e:
        log.error("%s", e)
        raise SystemExit(2)
    except (StagingIOError, IndexBuildError) as e:
        log.error("Rebuild failed: %s", e)
        raise SystemExit(1)

    log.info("Rebuild finished, %d record(s) indexed", staged)


if __name__ == "__main__":
    main()

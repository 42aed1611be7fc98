from __future__ import annotations

from pathlib import Path, PurePath
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from common.logger import get_logger

log = get_logger(__name__)

MAX_READ_BYTES = 10 * 1024 * 1024
PREVIEW_CHARS = 200


class AccessDenied(Exception):
    pass


class FilesystemTool:
    """
    `list_files` / `read_file` scoped to configured roots.

    Roots are resolved once into an immutable alias -> canonical path mapping.
    Every call re-resolves the target (following symlinks) and checks it is
    still inside its root.
    """

    def __init__(self, roots: Mapping[str, Any]):
        resolved: Dict[str, Path] = {}
        aliases: Dict[str, str] = {}
        for key, root in (roots or {}).items():
            path = Path(root.path if hasattr(root, "path") else root)
            alias = getattr(root, "alias", None)
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                log.error("Could not create filesystem root %s for '%s': %s", path, key, e)
            resolved[key] = path.resolve()
            if alias:
                aliases[alias] = key
            log.info("Registered filesystem root '%s' (alias=%s) -> %s", key, alias, resolved[key])

        if not resolved:
            log.warning("No filesystem roots configured, file tools will reject every call")
        self.roots: Mapping[str, Path] = MappingProxyType(resolved)
        self._aliases: Mapping[str, str] = MappingProxyType(aliases)

    def _root(self, root_alias: str) -> Path:
        key = root_alias if root_alias in self.roots else self._aliases.get(root_alias)
        if key is None:
            available = sorted(set(self.roots) | set(self._aliases))
            raise ValueError(
                f"Invalid rootAlias: '{root_alias}'. Available configured root aliases: {available}"
            )
        return self.roots[key]

    def resolve_path(self, root_alias: str, sub_path: Optional[str]) -> Path:
        root = self._root(root_alias)
        sub = PurePath(sub_path or "")
        if sub.is_absolute():
            raise ValueError(f"Sub-path must be relative: {sub_path}")
        target = (root / sub).resolve()
        if not target.is_relative_to(root):
            log.warning(
                "Path outside root rejected: alias=%s root=%s target=%s",
                root_alias,
                root,
                target,
            )
            raise AccessDenied("Path traversal attempt detected. Access denied.")
        return target

    def list_files(self, root_alias: str, sub_path: str = "") -> Dict[str, Any]:
        if not root_alias or not root_alias.strip():
            return {"error": "rootAlias cannot be empty."}
        try:
            target = self.resolve_path(root_alias, sub_path)
            if not target.exists():
                return {"error": f"Path does not exist: {target}"}
            if not target.is_dir():
                return {"error": f"Path is not a directory: {target}"}
            items = [
                ("D: " if p.is_dir() else "F: ") + p.name
                for p in sorted(target.iterdir())
            ]
        except (AccessDenied, ValueError) as e:
            return {"error": str(e)}
        except OSError as e:
            log.error("list_files failed for %s/%s: %s", root_alias, sub_path, e)
            return {"error": f"IO Error: {e}"}
        return {"path": str(target), "items": items, "status": "Successfully listed files."}

    def read_file(self, root_alias: str, file_path: str) -> Dict[str, Any]:
        if not root_alias or not root_alias.strip() or not file_path or not file_path.strip():
            return {"error": "rootAlias and filePath cannot be empty."}
        try:
            target = self.resolve_path(root_alias, file_path)
            if not target.exists():
                return {"error": f"File does not exist: {target}"}
            if not target.is_file():
                return {"error": f"Path is not a regular file: {target}"}
            size = target.stat().st_size
            if size > MAX_READ_BYTES:
                return {
                    "error": f"File is too large to read (max 10MB): {target}, size: {size} bytes"
                }
            content = target.read_text(encoding="utf-8", errors="replace")
        except (AccessDenied, ValueError) as e:
            return {"error": str(e)}
        except OSError as e:
            log.error("read_file failed for %s/%s: %s", root_alias, file_path, e)
            return {"error": f"IO Error: {e}"}

        preview = content[:PREVIEW_CHARS] + ("..." if len(content) > PREVIEW_CHARS else "")
        return {
            "file_path": str(target),
            "content_length": len(content),
            "status": f"Successfully read file. Preview: {preview}",
        }

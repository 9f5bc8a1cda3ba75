"""Storage capability used by the pipeline, plus a filesystem-backed vault."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Iterator, List, Protocol


class Storage(Protocol):
    """Minimal host storage surface; paths are vault-relative and '/'-separated."""

    def exists(self, path: str) -> bool: ...

    def create_folder(self, path: str) -> None: ...

    def read_text(self, path: str) -> str: ...

    def write_text(self, path: str, text: str) -> None: ...

    def write_binary(self, path: str, data: bytes) -> None: ...


def ensure_folder(storage: Storage, folder: str) -> None:
    """Create every missing segment of ``folder``, outermost first."""
    current = ""
    for segment in [part for part in folder.split("/") if part]:
        current = f"{current}/{segment}" if current else segment
        if not storage.exists(current):
            storage.create_folder(current)


class FileSystemVault:
    """Storage rooted at a directory on the local filesystem."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        target = (self.root / PurePosixPath(path)).resolve()
        if target != self.root and self.root not in target.parents:
            raise PermissionError(f"Path {path} escapes the vault root {self.root}")
        return target

    def relative(self, path: Path) -> str:
        """Vault-relative, '/'-separated form of an absolute or relative path."""
        return Path(path).resolve().relative_to(self.root).as_posix()

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def create_folder(self, path: str) -> None:
        self._resolve(path).mkdir(parents=False, exist_ok=True)

    def read_text(self, path: str) -> str:
        return self._resolve(path).read_text(encoding="utf-8")

    def write_text(self, path: str, text: str) -> None:
        self._resolve(path).write_text(text, encoding="utf-8")

    def write_binary(self, path: str, data: bytes) -> None:
        self._resolve(path).write_bytes(data)

    def markdown_files(self) -> List[str]:
        return sorted(self.relative(p) for p in self._iter_markdown())

    def _iter_markdown(self) -> Iterator[Path]:
        for path in self.root.rglob("*.md"):
            parts = path.relative_to(self.root).parts
            if path.is_file() and not any(part.startswith(".") for part in parts):
                yield path

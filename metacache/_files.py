from __future__ import annotations

from pathlib import Path

from metacache._utils import hexdigest


class FileManager:
    """
    Maps cache keys onto a two level directory layout.

    The SHA-1 digest of a key is split after its first `spread` characters,
    so `GET https://example.com/` lives in `<base>/c7/4f...`. This bounds the
    number of entries in any single directory.
    """

    def __init__(self, base_path: Path, spread: int = 2) -> None:
        self.base_path = base_path
        self.spread = spread

    def path_for(self, key: str) -> Path:
        digest = hexdigest(key)
        return self.base_path / digest[: self.spread] / digest[self.spread :]

    def write_to(self, path: Path, data: bytes) -> None:
        with open(path, "wb") as f:
            f.write(data)

    def read_from(self, path: Path) -> bytes:
        with open(path, "rb") as f:
            return f.read()

"""Scoped ownership of intermediate files"""

import logging
import shutil
import uuid
from pathlib import Path
from typing import List


class TempArtifacts:
    """
    Collects temporary paths and removes them when the scope exits.

    With `owns_root` the root directory itself is removed last, so concurrent
    scopes can each work in a private directory. Cleanup runs on every exit
    path. Failures are logged at WARNING and never raised, so they cannot mask
    the error that ended the scope.
    """

    def __init__(self, root: Path, prefix: str = "tmp", owns_root: bool = False):
        self.root = Path(root)
        self.prefix = prefix
        self.owns_root = owns_root
        self.paths: List[Path] = []
        self.logger = logging.getLogger(__name__)

    @classmethod
    def private(cls, parent: Path, prefix: str = "tmp") -> "TempArtifacts":
        """Scope rooted in a fresh uniquely named directory under `parent`"""
        return cls(Path(parent) / f"{prefix}_{uuid.uuid4().hex}", prefix=prefix, owns_root=True)

    def __enter__(self) -> "TempArtifacts":
        self.root.mkdir(parents=True, exist_ok=True)
        if self.owns_root:
            self.track(self.root)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.cleanup()
        return False

    def new_path(self, suffix: str) -> Path:
        """Reserve a unique path under the root and track it"""
        return self.track(self.root / f"{self.prefix}_{uuid.uuid4().hex[:10]}{suffix}")

    def track(self, path: Path) -> Path:
        self.paths.append(Path(path))
        return Path(path)

    def cleanup(self) -> None:
        for path in reversed(self.paths):
            try:
                if path.is_dir():
                    shutil.rmtree(path)
                elif path.exists():
                    path.unlink()
            except OSError as e:
                self.logger.warning(f"Failed to remove temporary artifact {path}: {e}")
        self.paths.clear()

"""Per-request temporary workspace.

Each export owns one uniquely named directory for its whole lifetime. The
directory holds every downloaded asset and intermediate artifact and is
removed on every exit path.
"""

import asyncio
import logging
import shutil
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator
from uuid import uuid4

from export_service.exceptions import WorkspaceCreateFailedError

logger = logging.getLogger(__name__)

WORKSPACE_PREFIX = "export_"


class Workspace:
    """Exclusively-owned temporary directory for one export request."""

    MANIFEST_NAME = "filelist.txt"
    CONCAT_NAME = "concat.mp4"
    OUTPUT_NAME = "output.mp4"

    def __init__(self, path: Path):
        self.path = path
        self._destroyed = False

    @classmethod
    def create(cls, root: str | Path) -> "Workspace":
        """Allocate a new workspace directory under root.

        Raises:
            WorkspaceCreateFailedError: If the directory cannot be created
        """
        path = Path(root) / f"{WORKSPACE_PREFIX}{uuid4().hex}"
        try:
            # exist_ok=False: a name collision must never share a directory
            path.mkdir(parents=True, exist_ok=False)
        except OSError as e:
            raise WorkspaceCreateFailedError(f"Failed to create workspace {path}: {e}") from e
        logger.info(f"[WORKSPACE] Created {path}")
        return cls(path)

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def destroy(self) -> None:
        """Recursively remove the workspace. Never raises."""
        if self._destroyed:
            return
        self._destroyed = True
        if not self.path.exists():
            return
        try:
            shutil.rmtree(self.path)
            logger.info(f"[WORKSPACE] Removed {self.path}")
        except OSError:
            logger.exception(f"[WORKSPACE] Failed to remove {self.path}")

    # ------------------------------------------------------------------
    # Artifact paths
    # ------------------------------------------------------------------

    def image_path(self, index: int, ext: str) -> Path:
        return self.path / f"image_{index}{ext}"

    def audio_path(self, ext: str) -> Path:
        return self.path / f"audio{ext}"

    def segment_path(self, index: int) -> Path:
        return self.path / f"video_{index}.mp4"

    @property
    def manifest_path(self) -> Path:
        return self.path / self.MANIFEST_NAME

    @property
    def concat_path(self) -> Path:
        return self.path / self.CONCAT_NAME

    @property
    def output_path(self) -> Path:
        return self.path / self.OUTPUT_NAME


@asynccontextmanager
async def acquire_workspace(root: str | Path) -> AsyncIterator[Workspace]:
    """Create a workspace and destroy it exactly once when the block exits."""
    workspace = await asyncio.to_thread(Workspace.create, root)
    try:
        yield workspace
    finally:
        await asyncio.to_thread(workspace.destroy)

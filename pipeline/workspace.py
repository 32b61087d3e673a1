"""
Media workspace: where inputs are read from and outputs are written to.
"""
from pathlib import Path
from typing import Union
from uuid import uuid4

import structlog

from pipeline.errors import InputNotFound, ValidationError, WorkspaceError

logger = structlog.get_logger()


class MediaWorkspace:
    """Resolves client paths under the media root and names outputs.

    Client paths are relative to ``media_root`` (a leading ``/`` is allowed,
    as in ``/uploads/clip.mp4``). Outputs live in ``output_dir`` and carry a
    random token so concurrent requests never collide.
    """

    def __init__(self, media_root: Union[str, Path], output_dir: Union[str, Path]):
        self.media_root = Path(media_root).resolve()
        output_dir = Path(output_dir)
        if not output_dir.is_absolute():
            output_dir = self.media_root / output_dir
        self.output_dir = output_dir.resolve()

    def prepare(self) -> None:
        """Create the output directory. Called once at startup."""
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WorkspaceError(f"Cannot create output directory {self.output_dir}: {e}") from e
        logger.info("Workspace ready", media_root=str(self.media_root), output_dir=str(self.output_dir))

    def resolve_input(self, client_path: str, field: str = "inputPath") -> Path:
        """Map a client path to an existing file inside the media root."""
        if not client_path or not isinstance(client_path, str):
            raise ValidationError(f"{field} is required", field=field)
        if "\x00" in client_path:
            raise ValidationError(f"Dangerous character in {field}", field=field)

        candidate = (self.media_root / client_path.lstrip("/")).resolve()
        if not candidate.is_relative_to(self.media_root):
            raise ValidationError(f"Directory traversal in {field}", field=field)
        if not candidate.is_file():
            raise InputNotFound(client_path)
        return candidate

    def new_output_path(self, prefix: str, extension: str) -> Path:
        return self.output_dir / f"{prefix}_{uuid4().hex}.{extension}"

    def new_frames_dir(self) -> Path:
        return self.output_dir / f"frames_{uuid4().hex}"

    def new_auxiliary_path(self, prefix: str, extension: str) -> Path:
        return self.output_dir / f".{prefix}_{uuid4().hex}.{extension}"

    def public_path(self, path: Path) -> str:
        """Path as clients see it: rooted at the media root."""
        try:
            return "/" + path.resolve().relative_to(self.media_root).as_posix()
        except ValueError:
            return str(path)

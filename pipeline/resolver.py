"""
Classifies what a pipeline left at its output location.
"""
from typing import Optional

import structlog

from pipeline.errors import ArtifactMissing
from pipeline.models import ArtifactDescriptor, ArtifactKind, OutputKind, PipelineSpec
from pipeline.workspace import MediaWorkspace

logger = structlog.get_logger()

AUDIO_EXTENSIONS = {".mp3", ".aac", ".m4a", ".ogg", ".opus", ".flac", ".wav"}


class ArtifactResolver:
    """Builds an ``ArtifactDescriptor`` from a finished pipeline."""

    def __init__(self, workspace: MediaWorkspace, preview_limit: int = 10):
        self.workspace = workspace
        self.preview_limit = preview_limit

    def resolve(self, spec: PipelineSpec, log_tail: Optional[str] = None) -> ArtifactDescriptor:
        output = spec.output_path

        if spec.output_kind == OutputKind.FRAME_DIRECTORY:
            if not output.is_dir():
                raise ArtifactMissing(self.workspace.public_path(output), details=log_tail)
            entries = sorted(entry.name for entry in output.iterdir() if entry.is_file())
            if not entries:
                raise ArtifactMissing(self.workspace.public_path(output), details=log_tail)
            return ArtifactDescriptor(
                path=output,
                public_path=self.workspace.public_path(output),
                kind=ArtifactKind.FRAME_DIRECTORY,
                frame_count=len(entries),
                sample_entries=entries[:self.preview_limit],
            )

        if not output.is_file():
            raise ArtifactMissing(self.workspace.public_path(output), details=log_tail)

        kind = ArtifactKind.AUDIO if output.suffix.lower() in AUDIO_EXTENSIONS else ArtifactKind.FILE
        descriptor = ArtifactDescriptor(
            path=output,
            public_path=self.workspace.public_path(output),
            kind=kind,
            size_bytes=output.stat().st_size,
        )
        logger.debug("Artifact resolved", path=descriptor.public_path, kind=kind.value)
        return descriptor

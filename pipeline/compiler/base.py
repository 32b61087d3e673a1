"""
Building blocks shared by the compile strategies.
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import structlog

from pipeline.models import (
    MediaProbe,
    OperationKind,
    OperationRequest,
    OutputKind,
    PipelineSpec,
    TimeoutClass,
)
from pipeline.workspace import MediaWorkspace

logger = structlog.get_logger()

OPTION_SPECIALS = re.compile(r"([\\':])")
GRAPH_SPECIALS = re.compile(r"([\\'\[\],;])")


class ProbeScope(str, Enum):
    """Which inputs a strategy needs probed before compiling."""
    NONE = "none"
    PRIMARY = "primary"
    ALL_INPUTS = "all_inputs"


def escape_value(value: Any) -> str:
    """Escape a user-supplied value for use inside a filter description.

    FFmpeg parses a filter graph twice: once to split the graph on
    ``[ ] , ;`` and once to split each filter's options on ``:``. Both levels
    are escaped so a value can never open a new option or a new filter.
    """
    text = OPTION_SPECIALS.sub(r"\\\1", str(value))
    return GRAPH_SPECIALS.sub(r"\\\1", text)


def format_number(value: Union[int, float]) -> str:
    """Render a number without float noise (``1920``, ``0.5``, ``0.333333``)."""
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return format(number, ".6f").rstrip("0").rstrip(".")


def format_seconds(value: float) -> str:
    return format(float(value), ".3f").rstrip("0").rstrip(".")


@dataclass
class CompileContext:
    """Everything a strategy may read; strategies never touch the filesystem."""
    request: OperationRequest
    workspace: MediaWorkspace
    paths: Dict[str, Any] = field(default_factory=dict)
    probes: Dict[Path, MediaProbe] = field(default_factory=dict)

    @property
    def kind(self) -> OperationKind:
        return self.request.kind

    @property
    def primary_input(self) -> Path:
        return self.request.primary_input

    @property
    def options(self) -> Any:
        return self.request.options

    def path(self, name: str) -> Any:
        return self.paths[name]

    def probe_of(self, path: Path) -> MediaProbe:
        return self.probes[path]


class CommandBuilder:
    """Accumulates an FFmpeg argument vector for one pipeline."""

    GLOBAL_ARGS = ['-y', '-hide_banner', '-nostdin']

    def __init__(self, kind: OperationKind):
        self.kind = kind
        self.inputs: List[Path] = []
        self._input_args: List[str] = []
        self._args: List[str] = []
        self.filter_graph: Optional[str] = None

    def add_input(self, path: Path, *pre_args: str) -> int:
        """Add an input (with options that apply to it) and return its index."""
        self._input_args.extend(pre_args)
        self._input_args.extend(['-i', str(path)])
        self.inputs.append(path)
        return len(self.inputs) - 1

    def add(self, *args: str) -> "CommandBuilder":
        self._args.extend(args)
        return self

    def video_filter(self, chain: str) -> "CommandBuilder":
        self.filter_graph = chain
        return self.add('-vf', chain)

    def filter_complex(self, graph: str, maps: Sequence[str] = ()) -> "CommandBuilder":
        self.filter_graph = graph
        self.add('-filter_complex', graph)
        for label in maps:
            self.add('-map', label)
        return self

    def build(
        self,
        output_path: Path,
        output_kind: OutputKind = OutputKind.FILE,
        timeout_class: TimeoutClass = TimeoutClass.STANDARD,
        auxiliary: Tuple[Path, ...] = (),
        label: str = "",
        output_target: Optional[str] = None,
    ) -> PipelineSpec:
        """Finish the argument vector. ``output_target`` overrides the
        positional output (e.g. ``-`` for analysis passes)."""
        target = output_target if output_target is not None else str(output_path)
        arguments = [*self.GLOBAL_ARGS, *self._input_args, *self._args, target]
        spec = PipelineSpec(
            kind=self.kind,
            arguments=arguments,
            inputs=list(self.inputs),
            output_path=output_path,
            output_kind=output_kind,
            filter_graph=self.filter_graph,
            auxiliary_artifacts=list(auxiliary),
            timeout_class=timeout_class,
            label=label or self.kind.value,
        )
        logger.debug("Built FFmpeg command", operation=self.kind.value, arguments=arguments)
        return spec


def single_input(ctx: CompileContext) -> CommandBuilder:
    """Builder for the common one-input case."""
    builder = CommandBuilder(ctx.kind)
    builder.add_input(ctx.primary_input)
    return builder

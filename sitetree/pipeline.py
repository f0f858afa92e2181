from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

from jinja2 import Environment

from .content import DEFAULT_TEMPLATE, DEFAULT_TIMEZONE
from .render import create_environment
from .tree import Directory, Processor, crawl, process_tree
from .writer import Progress, WriteQueue, write_tree

PHASES = ("parse", "process", "generate")


class ProcessorError(RuntimeError):
    pass


class BuildError(RuntimeError):
    def __init__(self, phase: str, cause: BaseException, count: int = 1) -> None:
        message = f"{phase} failed: {cause}"
        if count > 1:
            message += f" ({count - 1} more failure{'s' if count > 2 else ''} recorded)"
        super().__init__(message)
        self.phase = phase
        self.cause = cause
        self.count = count


@dataclass(frozen=True)
class Failure:
    phase: str
    error: BaseException
    path: Optional[Path] = None


class BuildErrors:
    """Per-run failure collector, safe to record into from write workers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._failures: list[Failure] = []

    def record(self, phase: str, error: BaseException, path: Optional[Path] = None) -> None:
        if phase not in PHASES:
            raise ValueError(f"Unknown build phase: {phase}")
        with self._lock:
            self._failures.append(Failure(phase, error, path))

    def failures(self, phase: str) -> list[Failure]:
        with self._lock:
            return [failure for failure in self._failures if failure.phase == phase]

    def first(self, phase: str) -> Optional[BaseException]:
        failures = self.failures(phase)
        return failures[0].error if failures else None

    def check(self, phase: str) -> None:
        failures = self.failures(phase)
        if failures:
            raise BuildError(phase, failures[0].error, len(failures))


@dataclass
class BuildContext:
    content_dir: Path = Path("content")
    output_dir: Path = Path("static")
    templates_dir: Path = Path("templates")
    default_template: str = DEFAULT_TEMPLATE
    timezone: str = DEFAULT_TIMEZONE
    workers: int = 1
    progress: bool = True
    verbose: bool = False
    site_url: str = ""
    highlight_class: str = "highlight"
    errors: BuildErrors = field(default_factory=BuildErrors)
    processor: Optional[Processor] = None
    environment: Optional[Environment] = None

    def __post_init__(self) -> None:
        # Fail early on unknown zones instead of once per document.
        ZoneInfo(self.timezone)

    def set_processor(self, processor: Processor) -> None:
        if self.processor is not None:
            raise ProcessorError("A metadata processor is already registered")
        self.processor = processor

    def log(self, message: str) -> None:
        print(message, flush=True)

    def log_file(self, path: Path) -> None:
        if self.verbose:
            self.log(f" -> {path.as_posix()}")

    def templates(self) -> Environment:
        if self.environment is None:
            self.environment = create_environment(
                self.templates_dir, site_url=self.site_url, highlight_class=self.highlight_class
            )
        return self.environment


def build_site(context: BuildContext) -> Directory:
    environment = context.templates()

    context.log("==> Crawling")
    root = crawl(context.content_dir, context)

    context.log("==> Parsing")
    context.errors.check("parse")

    if context.processor is not None:
        context.log("==> Processing")
    process_tree(root, context.content_dir, context)
    context.errors.check("process")

    context.log("==> Generating")
    context.output_dir.mkdir(parents=True, exist_ok=True)
    progress = Progress() if context.progress else None
    queue = WriteQueue(context.errors, workers=context.workers, progress=progress)
    with queue:
        write_tree(root, context.output_dir, queue, environment, context)
        queue.wait()
    context.errors.check("generate")
    return root

from __future__ import annotations

import os
import shutil
import stat
import sys
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING, Optional, TextIO

from jinja2 import Environment

from .render import render_document, write_text
from .tree import Asset, ContentNode, Directory, Document

if TYPE_CHECKING:
    from .pipeline import BuildContext, BuildErrors


class CopyError(OSError):
    pass


def copy_file(src: Path, dst: Path) -> None:
    """Copy ``src`` to ``dst``, hard-linking when the filesystem allows it.

    Identical files are left alone. When linking fails for any reason the
    bytes are copied and flushed to storage before returning.
    """
    src_stat = os.stat(src)
    if not stat.S_ISREG(src_stat.st_mode):
        raise CopyError(f"Non-regular source file: {src}")
    try:
        dst_stat = os.stat(dst)
    except FileNotFoundError:
        dst_stat = None
    if dst_stat is not None:
        if not stat.S_ISREG(dst_stat.st_mode):
            raise CopyError(f"Non-regular destination file: {dst}")
        if os.path.samestat(src_stat, dst_stat):
            return
    try:
        os.link(src, dst)
        return
    except OSError:
        pass
    copy_file_contents(src, dst)


def copy_file_contents(src: Path, dst: Path) -> None:
    with open(src, "rb") as fsrc, open(dst, "wb") as fdst:
        shutil.copyfileobj(fsrc, fdst)
        fdst.flush()
        os.fsync(fdst.fileno())


def write_document(env: Environment, node: Document, target: Path) -> None:
    write_text(target, render_document(env, node, node.metadata.template))


class Progress:
    """Single-line textual progress bar."""

    def __init__(self, stream: Optional[TextIO] = None, width: int = 40) -> None:
        self._stream = stream if stream is not None else sys.stderr
        self._width = width
        self._lock = threading.Lock()
        self.total = 0
        self.count = 0

    def start(self, total: int) -> None:
        with self._lock:
            self.total = total
            self._render()

    def advance(self) -> None:
        with self._lock:
            self.count += 1
            self._render()

    def finish(self) -> None:
        with self._lock:
            self._render()
            self._stream.write("\n")
            self._stream.flush()

    def _render(self) -> None:
        if not self.total:
            return
        filled = self._width * min(self.count, self.total) // self.total
        bar = "#" * filled + " " * (self._width - filled)
        self._stream.write(f"\r[{bar}] {self.count}/{self.total}")
        self._stream.flush()


class WriteQueue:
    """Tracks in-flight write units and waits for all of them."""

    def __init__(self, errors: BuildErrors, workers: int = 1, progress: Optional[Progress] = None) -> None:
        self._errors = errors
        self._progress = progress
        self._lock = threading.Lock()
        self._futures: list[Future] = []
        self._completed = 0
        self._executor = ThreadPoolExecutor(max_workers=max(1, workers))

    def __enter__(self) -> WriteQueue:
        return self

    def __exit__(self, *exc_info) -> None:
        self._executor.shutdown(wait=True)

    def __len__(self) -> int:
        with self._lock:
            return len(self._futures)

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    def submit(self, fn: Callable[..., None], *args: object, path: Optional[Path] = None) -> Future:
        future = self._executor.submit(self._run, fn, args, path)
        with self._lock:
            self._futures.append(future)
        return future

    def _run(self, fn: Callable[..., None], args: tuple, path: Optional[Path]) -> None:
        try:
            fn(*args)
        except Exception as exc:
            self._errors.record("generate", exc, path)
        finally:
            with self._lock:
                self._completed += 1
            if self._progress is not None:
                self._progress.advance()

    def wait(self) -> int:
        """Block until every registered unit has finished; return how many ran."""
        with self._lock:
            futures = list(self._futures)
        if self._progress is not None:
            self._progress.start(len(futures))
        for future in futures:
            future.result()
        if self._progress is not None:
            self._progress.finish()
        return len(futures)


def write_tree(node: ContentNode, path: Path, queue: WriteQueue, env: Environment, context: BuildContext) -> None:
    target = path / node.name if node.name else path
    context.log_file(target)
    match node:
        case Directory():
            try:
                target.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                context.errors.record("generate", exc, target)
                return
            for child in node.children:
                write_tree(child, target, queue, env, context)
        case Document():
            queue.submit(write_document, env, node, target, path=target)
        case Asset():
            queue.submit(copy_file, node.source_path, target, path=target)

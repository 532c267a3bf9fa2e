from __future__ import annotations

import threading
from enum import StrEnum
from typing import TYPE_CHECKING

from src_context.file_manipulation import input_relative, is_git_path, normalize_path, walk_files
from src_context.logging import logger
from src_context.patterns import build_ignore_rules

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path

    from src_context.patterns import IgnoreRules
    from src_context.settings import Settings

Snapshot = dict[str, tuple[int, int]]


class ChangeKind(StrEnum):
    ADD = "add"
    CHANGE = "change"
    UNLINK = "unlink"


def is_watched(match_path: str, rules: IgnoreRules | None) -> bool:
    """False for paths a build would drop; minified paths still show up as placeholders."""
    if rules is None or rules.minify.matches(match_path):
        return True
    return not rules.is_ignored(match_path)


def take_snapshot(
    input_paths: Sequence[str],
    base_dir: Path,
    exclude: Sequence[str] = (),
    rules: IgnoreRules | None = None,
) -> Snapshot:
    """Record `(mtime_ns, size)` for every file under the input paths.

    Args:
        input_paths (Sequence[str]): files or directories to watch
        base_dir (Path): directory relative input paths are resolved against
        exclude (Sequence[str]): paths (relative to `base_dir`) never reported, e.g. the output file
        rules (IgnoreRules | None): ignore patterns, matched against input-relative paths

    Returns:
        Snapshot: file path to `(mtime_ns, size)`
    """
    excluded = {normalize_path(p) for p in exclude}
    snapshot: Snapshot = {}
    for raw in input_paths or ["."]:
        input_path = input_relative(raw, base_dir)
        absolute = base_dir / input_path
        if absolute.is_dir():
            paths = [(normalize_path(f"{input_path}/{rel}"), rel) for rel in walk_files(absolute)]
        else:
            paths = [(input_path, input_path)]
        for path, match_path in paths:
            if path in excluded or is_git_path(path) or not is_watched(match_path, rules):
                continue
            try:
                st = (base_dir / path).stat()
            except OSError:
                continue
            snapshot[path] = (st.st_mtime_ns, st.st_size)
    return snapshot


def diff_snapshots(before: Snapshot, after: Snapshot) -> list[tuple[ChangeKind, str]]:
    """List add/change/unlink events between two snapshots, sorted by path."""
    events: list[tuple[ChangeKind, str]] = []
    for path in sorted(before.keys() | after.keys()):
        if path not in before:
            events.append((ChangeKind.ADD, path))
        elif path not in after:
            events.append((ChangeKind.UNLINK, path))
        elif before[path] != after[path]:
            events.append((ChangeKind.CHANGE, path))
    return events


class Debouncer:
    """Run `action` once after `delay` seconds without new triggers.

    A trigger arriving while a call is pending replaces it. Calls never overlap: a
    call that comes due while another is running waits for it, and is dropped if a
    newer trigger or a `cancel` arrives meanwhile.
    """

    def __init__(self, action: Callable[[], None], delay: float) -> None:
        self.action = action
        self.delay = delay
        self._timer: threading.Timer | None = None
        self._generation = 0
        self._lock = threading.Lock()
        self._run_lock = threading.Lock()

    def trigger(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._timer = threading.Timer(self.delay, self._fire, args=(self._generation,))
            self._timer.daemon = True
            self._timer.start()

    def _fire(self, generation: int) -> None:
        with self._run_lock:
            with self._lock:
                # Superseded by a later trigger or cancelled.
                if generation != self._generation:
                    return
                self._timer = None
            self.action()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


def ignore_rules(settings: Settings) -> IgnoreRules:
    return build_ignore_rules(
        settings.base_dir,
        cli_ignores=settings.cli_ignores,
        custom_ignore_file=settings.custom_ignore_file,
        minify_file=settings.minify_file,
        no_default_ignores=settings.no_default_ignores,
    )


def watch(settings: Settings, rebuild: Callable[[], None], stop: threading.Event | None = None) -> None:
    """Poll the input paths and rebuild after each burst of changes.

    Runs until `stop` is set or the user interrupts. The initial build is the
    caller's job. Files the build would ignore (default, custom and CLI patterns),
    `.git` and the output file never trigger a rebuild; the ignore files are re-read
    on every poll.

    Args:
        settings (Settings): `watch_interval`, `debounce_seconds` and the paths to watch
        rebuild (Callable[[], None]): called once per quiet period after changes
        stop (threading.Event | None): set it to end the loop
    """
    stop = stop or threading.Event()
    exclude = [input_relative(str(settings.output), settings.base_dir)] if settings.output else []
    debouncer = Debouncer(rebuild, settings.debounce_seconds)
    previous = take_snapshot(settings.effective_input_paths, settings.base_dir, exclude, ignore_rules(settings))
    logger.info("Watching %s for changes", ", ".join(settings.effective_input_paths))
    try:
        while not stop.wait(settings.watch_interval):
            current = take_snapshot(settings.effective_input_paths, settings.base_dir, exclude, ignore_rules(settings))
            events = diff_snapshots(previous, current)
            previous = current
            for kind, path in events:
                logger.info("File %s: %s", kind, path)
            if events:
                debouncer.trigger()
    except KeyboardInterrupt:
        logger.info("Stopped watching")
    finally:
        debouncer.cancel()

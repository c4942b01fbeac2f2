"""Console reporting for compression passes: colors, tagged lines, step timing."""

import os
import sys
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field

RESET = "\033[0m"

# SGR codes by style name
STYLES = {
    "bold": "1",
    "dim": "2",
    "cyan": "36",
    "magenta": "35",
    "bright_red": "91",
    "bright_green": "92",
    "bright_yellow": "93",
    "bright_cyan": "96",
}

# Width of the right-aligned level tag column
TAG_WIDTH = 6


def _color_enabled() -> bool:
    """Colors only on a TTY, and never when NO_COLOR is set."""
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


_USE_COLOR = _color_enabled()

# Set by quiet_output(); hides progress chatter but never warnings
_QUIET: ContextVar[bool] = ContextVar("scene_squash_quiet", default=False)


@contextmanager
def quiet_output(enabled: bool = True) -> Iterator[None]:
    """Hide steps, details, banners and summaries inside the block.

    ``log_info`` and ``log_warn`` still print. Only the current context is
    affected, so worker threads must run in a copy of it.
    """
    token = _QUIET.set(enabled)
    try:
        yield
    finally:
        _QUIET.reset(token)


def is_quiet() -> bool:
    return _QUIET.get()


def style(name: str, text: str) -> str:
    """Wrap text in the named ANSI style when the terminal supports it."""
    if not _USE_COLOR:
        return text
    return f"\033[{STYLES[name]}m{text}{RESET}"


def bold(text: str) -> str:
    return style("bold", text)


def dim(text: str) -> str:
    return style("dim", text)


def cyan(text: str) -> str:
    return style("cyan", text)


def magenta(text: str) -> str:
    return style("magenta", text)


def bright_red(text: str) -> str:
    return style("bright_red", text)


def bright_green(text: str) -> str:
    return style("bright_green", text)


def bright_yellow(text: str) -> str:
    return style("bright_yellow", text)


def bright_cyan(text: str) -> str:
    return style("bright_cyan", text)


def _emit(tag: str, paint: Callable[[str], str], msg: str) -> None:
    pad = " " * max(0, TAG_WIDTH - len(tag))
    print(f"{pad}{paint(tag)}  {msg}")


def log_info(msg: str) -> None:
    _emit("INFO", cyan, msg)


def log_ok(msg: str) -> None:
    if not is_quiet():
        _emit("OK", bright_green, msg)


def log_warn(msg: str) -> None:
    _emit("WARN", bright_yellow, msg)


def log_detail(msg: str, indent: int = 6) -> None:
    """Print an indented line under the current step."""
    if not is_quiet():
        print(f"{' ' * indent}{msg}")


def log_timing(msg: str, seconds: float) -> None:
    if not is_quiet():
        _emit("TIME", dim, f"{msg}: {bright_cyan(format_duration(seconds))}")


def _banner(title: str, char: str, width: int, paint: Callable[[str], str]) -> None:
    if is_quiet():
        return
    rule = paint(char * width)
    print(f"\n{rule}\n  {title}\n{rule}")


def print_header(title: str, char: str = "=", width: int = 60) -> None:
    """Print a bold title between two cyan rules."""
    _banner(bold(title), char, width, cyan)


def print_section(title: str, char: str = "-", width: int = 60) -> None:
    """Print a plain title between two dim rules."""
    _banner(title, char, width, dim)


def format_duration(seconds: float) -> str:
    """Format seconds as μs, ms, s or minutes depending on magnitude."""
    if seconds < 1e-3:
        return f"{seconds * 1e6:.0f}μs"
    if seconds < 1:
        return f"{seconds * 1e3:.1f}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    mins, secs = divmod(seconds, 60)
    return f"{int(mins)}m {secs:.1f}s"


def format_count(count: int, singular: str, plural: str | None = None) -> str:
    """'1 mesh', '3 meshes', '1,200 groups'."""
    if plural is None:
        plural = singular + ("es" if singular.endswith(("sh", "s", "x")) else "s")
    return f"{count:,} {singular if count == 1 else plural}"


def format_delta(before: int, after: int, unit: str = "") -> str:
    """Signed change, green when it shrank and red when it grew."""
    diff = after - before
    if diff == 0:
        return dim("no change")
    if diff < 0:
        return bright_green(f"-{-diff:,}{unit}")
    return bright_red(f"+{diff:,}{unit}")


def format_dims(width: int, height: int) -> str:
    return f"{width}x{height}"


@dataclass
class TimingResult:
    """Elapsed time of a ``timed`` block, filled in on exit."""

    elapsed: float
    message: str


@contextmanager
def timed(description: str, print_on_exit: bool = True) -> Iterator[TimingResult]:
    """Time a block; the yielded result's ``elapsed`` is set when it exits.

    Usage:
        with timed("Merge stone", print_on_exit=False) as t:
            merge_group(group)
        log_detail(format_duration(t.elapsed))
    """
    result = TimingResult(elapsed=0.0, message=description)
    start = time.perf_counter()
    try:
        yield result
    finally:
        result.elapsed = time.perf_counter() - start
        if print_on_exit:
            log_timing(description, result.elapsed)


@dataclass
class StepTimer:
    """Numbered pipeline steps with per-step timings.

    ``on_step`` receives each step message after it is printed, so callers
    can forward stage changes to a progress callback.
    """

    total_steps: int
    on_step: Callable[[str], None] | None = None
    timings: list[tuple[str, float]] = field(default_factory=list)
    _started: float = field(default_factory=time.perf_counter, repr=False)
    _step_start: float | None = field(default=None, repr=False)

    @property
    def current(self) -> int:
        return len(self.timings)

    def _close_step(self, now: float) -> None:
        if self._step_start is None or not self.timings:
            return
        name, _ = self.timings[-1]
        self.timings[-1] = (name, now - self._step_start)
        self._step_start = None

    def step(self, message: str) -> None:
        """Close the running step and start the next one."""
        now = time.perf_counter()
        self._close_step(now)
        self.timings.append((message, 0.0))
        self._step_start = now
        if not is_quiet():
            counter = f"[{self.current}/{self.total_steps}]"
            print(f"\n{cyan(counter)} {message}")
        if self.on_step is not None:
            self.on_step(message)

    def finish(self) -> None:
        self._close_step(time.perf_counter())

    def total_elapsed(self) -> float:
        return time.perf_counter() - self._started

    def print_summary(self) -> None:
        """Print one right-aligned timing row per step, then the total."""
        if is_quiet():
            return
        print_section("Timing Summary", width=50)
        for name, elapsed in self.timings:
            print(f"  {name:<40}{bright_cyan(format_duration(elapsed))}")
        print(dim("-" * 50))
        total = format_duration(self.total_elapsed())
        print(f"  {bold('Total')}{' ' * 35}{bright_green(total)}")


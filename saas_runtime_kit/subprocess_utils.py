from __future__ import annotations

import os
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from textwrap import shorten
from typing import Mapping, Sequence

from .logging_utils import get_logger


logger = get_logger(__name__)


_BRAILLE_FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]
_ASCII_FRAMES = ["|", "/", "-", "\\"]


def _is_tty(stream) -> bool:  # noqa: ANN001
    try:
        return bool(getattr(stream, "isatty") and stream.isatty())
    except Exception:  # noqa: BLE001
        return False


def _env_show_progress() -> bool:
    raw = os.getenv("CLI_SHOW_PROGRESS")
    if raw is None:
        return True
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_idle_seconds(default: float = 2.0) -> float:
    raw = os.getenv("CLI_PROGRESS_IDLE_SECONDS")
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _format_elapsed(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:0.1f}s"
    minutes = int(seconds // 60)
    sec = int(seconds % 60)
    return f"{minutes}m{sec:02d}s"


class _IdleSpinner:
    """
    명령이 idle_seconds 이상 걸릴 때만 stderr 한 줄에 스피너 + 경과시간을 그린다.
    빠르게 끝나는 gcloud describe 들은 화면에 아무것도 남기지 않는다.
    """

    def __init__(
        self,
        message: str,
        *,
        stream=None,  # noqa: ANN001
        style: str = "braille",
        interval: float = 0.12,
        idle_seconds: float = 2.0,
    ) -> None:
        self._message = message
        self._stream = stream if stream is not None else sys.stderr
        self._frames = _ASCII_FRAMES if style == "ascii" else _BRAILLE_FRAMES
        self._interval = max(float(interval), 0.02)
        self._idle_seconds = max(float(idle_seconds), 0.0)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_len = 0

    def _render(self, idx: int, elapsed: float) -> None:
        frame = self._frames[idx % len(self._frames)]
        text = f"{frame} {self._message}  {_format_elapsed(elapsed)}"
        self._last_len = max(self._last_len, len(text))
        self._stream.write("\r" + text)
        self._stream.flush()

    def start(self) -> None:
        if self._thread is not None:
            return
        started = time.monotonic()

        def _run() -> None:
            if self._stop.wait(self._idle_seconds):
                return
            idx = 0
            while not self._stop.is_set():
                self._render(idx, time.monotonic() - started)
                idx += 1
                self._stop.wait(self._interval)

        self._thread = threading.Thread(target=_run, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
        if self._last_len > 0:
            self._stream.write("\r" + (" " * self._last_len) + "\r")
            self._stream.flush()

    def __enter__(self) -> "_IdleSpinner":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.stop()


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: str
    stderr: str


class CommandError(RuntimeError):
    """
    외부 명령 실패.

    returncode 가 None 이면 명령을 실행조차 못한 경우(바이너리 없음, 타임아웃)이다.
    """

    def __init__(
        self,
        message: str,
        *,
        cmd: Sequence[str],
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


def run_command(
    cmd: Sequence[str],
    *,
    env: Mapping[str, str] | None = None,
    timeout: float | None = 900.0,
    spinner_message: str | None = None,
    show_progress: bool | None = None,
    progress_idle_seconds: float | None = None,
    progress_style: str = "braille",
    progress_interval: float = 0.12,
) -> RunResult:
    """
    subprocess 실행 공통 유틸.

    stdout/stderr 를 캡처하고, 실패 시 CommandError 에 stderr 를 그대로 담는다.
    (gcloud 에러 종류 판별은 호출 측에서 stderr 를 보고 한다)
    """
    cmd_str = " ".join(cmd)
    logger.info("명령 실행: %s", cmd_str)

    effective_show = _env_show_progress() if show_progress is None else bool(show_progress)
    idle = _env_idle_seconds() if progress_idle_seconds is None else float(progress_idle_seconds)

    spinner: _IdleSpinner | None = None
    if effective_show and _is_tty(sys.stderr):
        spinner = _IdleSpinner(
            spinner_message or shorten(cmd_str, width=72, placeholder="…"),
            stream=sys.stderr,
            style=progress_style,
            interval=progress_interval,
            idle_seconds=idle,
        )
        spinner.start()

    try:
        result = subprocess.run(  # noqa: S603
            list(cmd),
            capture_output=True,
            text=True,
            timeout=timeout,
            env=dict(env) if env is not None else None,
        )
    except FileNotFoundError as e:
        raise CommandError(
            f"필요한 명령을 찾을 수 없습니다: {cmd[0]} (gcloud CLI 가 설치되어 있는지 확인하세요)",
            cmd=cmd,
        ) from e
    except subprocess.TimeoutExpired as e:
        raise CommandError(
            f"명령 실행이 {timeout}초 안에 끝나지 않았습니다: {cmd_str}",
            cmd=cmd,
        ) from e
    finally:
        if spinner is not None:
            spinner.stop()

    stdout = result.stdout or ""
    stderr = result.stderr or ""
    if stdout:
        logger.debug("명령 stdout: %s", shorten(stdout.strip(), width=2000))
    if stderr:
        logger.debug("명령 stderr: %s", shorten(stderr.strip(), width=2000))

    if result.returncode != 0:
        detail = ""
        if stderr.strip():
            detail = "\nstderr:\n" + shorten(stderr.strip(), width=2000)
        elif stdout.strip():
            detail = "\nstdout:\n" + shorten(stdout.strip(), width=2000)
        raise CommandError(
            f"명령 실행 실패: {cmd_str} (exit={result.returncode}){detail}",
            cmd=cmd,
            returncode=result.returncode,
            stdout=stdout,
            stderr=stderr,
        )

    return RunResult(returncode=result.returncode, stdout=stdout, stderr=stderr)

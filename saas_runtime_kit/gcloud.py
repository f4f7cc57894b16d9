"""
gcloud
------

gcloud CLI 호출 래퍼.

실패한 명령의 stderr 를 보고 "리소스 없음"과 "권한/네트워크 등 다른 오류"를
구분하여 google.api_core 예외로 바꿔 던진다. ensure_* 함수들은 NotFound 일 때만
리소스를 생성한다.
"""

from __future__ import annotations

from typing import Sequence

from google.api_core import exceptions

from .logging_utils import get_logger
from .subprocess_utils import CommandError, run_command


logger = get_logger(__name__)


GCLOUD_BIN = "gcloud"

_NOT_FOUND_MARKERS = (
    "not_found",
    "was not found",
    "does not exist",
)
_PERMISSION_MARKERS = (
    "permission_denied",
    "does not have permission",
)
_ALREADY_EXISTS_MARKERS = (
    "already_exists",
    "already exists",
)

# gcloud projects describe 는 보이지 않는(없는 것 포함) 프로젝트에 대해
# "... (or it may not exist)" 가 붙은 권한 오류를 낸다.
# 다른 리소스의 PERMISSION_DENIED 에도 같은 문구가 붙으므로 projects describe 에서만 쓴다.
PROJECT_HIDDEN_MARKERS = ("or it may not exist",)


def classify_error(err: CommandError, not_found_markers: Sequence[str] = ()) -> Exception:
    """
    gcloud 실패를 종류별 예외로 변환한다. 판별할 수 없으면 err 를 그대로 돌려준다.

    not_found_markers 는 호출 측이 "이 명령에서는 없음으로 본다"고 지정한 문구로,
    권한 오류 판별보다 먼저 확인한다.
    """
    if err.returncode is None:
        # 바이너리 없음 / 타임아웃
        return err

    stderr = (err.stderr or "").lower()
    message = str(err)

    if any(m.lower() in stderr for m in not_found_markers):
        return exceptions.NotFound(message)
    if any(m in stderr for m in _PERMISSION_MARKERS):
        return exceptions.PermissionDenied(message)
    if any(m in stderr for m in _NOT_FOUND_MARKERS):
        return exceptions.NotFound(message)
    if any(m in stderr for m in _ALREADY_EXISTS_MARKERS):
        return exceptions.AlreadyExists(message)
    return err


def gcloud(
    args: Sequence[str],
    *,
    project: str | None = None,
    timeout: float | None = 900.0,
    not_found_markers: Sequence[str] = (),
) -> str:
    """
    gcloud 명령을 실행하고 stdout 을 반환한다.

    Raises:
        google.api_core.exceptions.NotFound: 리소스가 없음
        google.api_core.exceptions.PermissionDenied: 권한 부족
        google.api_core.exceptions.AlreadyExists: 이미 존재함
        CommandError: 그 외 모든 실패
    """
    cmd = [GCLOUD_BIN, *args]
    if project:
        cmd.append(f"--project={project}")

    try:
        result = run_command(cmd, timeout=timeout)
    except CommandError as e:
        classified = classify_error(e, not_found_markers)
        if classified is e:
            raise
        logger.debug("gcloud 오류 분류: %s", type(classified).__name__)
        raise classified from e

    return result.stdout


def exists(
    args: Sequence[str],
    *,
    project: str | None = None,
    not_found_markers: Sequence[str] = (),
) -> bool:
    """
    describe 계열 명령으로 리소스 존재 여부를 확인한다.

    NotFound 만 False 로 바꾸고, 그 외 오류는 그대로 전파한다.
    """
    try:
        gcloud(args, project=project, not_found_markers=not_found_markers)
    except exceptions.NotFound:
        return False
    return True

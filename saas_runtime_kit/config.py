from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv


ENV_FILES_DEFAULT_ORDER = [".env", ".env.setup"]

DEFAULT_REGION = "us-central1"
DEFAULT_SAAS_TYPE_PREFIX = "hellosaas"


def load_env_files(base_dir: str = ".",
                   files: Optional[List[str]] = None) -> None:
    """
    주어진 디렉토리에서 .env 계열 파일을 순서대로 로드한다.
    후순위 파일이 같은 키를 덮어쓴다.
    """
    order = files or ENV_FILES_DEFAULT_ORDER
    for name in order:
        path = os.path.join(base_dir, name)
        if os.path.exists(path):
            load_dotenv(path, override=True)


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} 값은 숫자여야 합니다: {raw!r}") from e


@dataclass
class SetupConfig:
    # 필수 입력
    gcp_project_id: str
    artifact_registry_name: str

    gcp_region: str = DEFAULT_REGION

    # 선택: 프로젝트 생성 위치 / 결제 계정 연결
    gcp_folder_id: Optional[str] = None
    billing_account_id: Optional[str] = None

    # SaaS runtime P4SA 생성 대기 (지수 백오프)
    p4sa_poll_initial: float = 2.0
    p4sa_poll_maximum: float = 15.0
    p4sa_poll_timeout: float = 180.0

    saas_type_prefix: str = DEFAULT_SAAS_TYPE_PREFIX

    @classmethod
    def from_env(cls) -> "SetupConfig":
        """
        환경변수에서 설정을 읽는다.

        필수 값(GCP_PROJECT_ID, ARTIFACT_REGISTRY_NAME)이 비어 있어도 여기서는
        실패하지 않는다. CLI 에서 프롬프트로 채운 뒤 validate() 로 검증한다.
        """
        return cls(
            gcp_project_id=(os.getenv("GCP_PROJECT_ID") or "").strip(),
            artifact_registry_name=(os.getenv("ARTIFACT_REGISTRY_NAME") or "").strip(),
            gcp_region=os.getenv("GCP_REGION") or DEFAULT_REGION,
            gcp_folder_id=os.getenv("GCP_FOLDER") or None,
            billing_account_id=os.getenv("BILLING_ACCOUNT") or None,
            p4sa_poll_initial=_get_float("P4SA_POLL_INITIAL_SECONDS", 2.0),
            p4sa_poll_maximum=_get_float("P4SA_POLL_MAXIMUM_SECONDS", 15.0),
            p4sa_poll_timeout=_get_float("P4SA_POLL_TIMEOUT_SECONDS", 180.0),
            saas_type_prefix=os.getenv("SAAS_TYPE_PREFIX") or DEFAULT_SAAS_TYPE_PREFIX,
        )

    def missing_inputs(self) -> List[str]:
        missing: List[str] = []
        if not self.gcp_project_id:
            missing.append("GCP_PROJECT_ID")
        if not self.artifact_registry_name:
            missing.append("ARTIFACT_REGISTRY_NAME")
        return missing

    def validate(self) -> None:
        missing = self.missing_inputs()
        if missing:
            raise ValueError(
                "필수 입력값이 비어 있습니다: " + ", ".join(missing)
            )


@dataclass
class SetupContext:
    """
    한 번의 setup 실행 동안 단계 사이에 전달되는 값들.

    앞 단계가 채운 값(project_number, 서비스 계정 이메일)을 뒤 단계가 읽는다.
    """

    cfg: SetupConfig

    project_number: Optional[str] = None
    saas_runtime_sa: Optional[str] = None
    compute_default_sa: Optional[str] = None
    infra_manager_sa: Optional[str] = None
    build_sa: Optional[str] = None

    # 이번 실행에서 새로 생성한 리소스
    created: List[str] = field(default_factory=list)

    @property
    def project_id(self) -> str:
        return self.cfg.gcp_project_id

    def require(self, name: str) -> str:
        value = getattr(self, name)
        if not value:
            raise RuntimeError(f"이전 단계에서 {name} 값이 설정되지 않았습니다.")
        return value

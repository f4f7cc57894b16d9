"""
gcp_iam
-------

서비스 계정 확인/생성 및 프로젝트 IAM 역할 부여를 담당하는 모듈.

- SaaS runtime P4SA: Google 이 관리하는 계정이라 직접 만들 수 없다 (gcp_saas_runtime 참고)
- Infra Manager SA: infra-manager-sa 를 확인 후 없으면 생성
- Build SA: Compute 기본 SA 를 사용하고, 없으면 compute-sa 를 대신 만든다
"""

from __future__ import annotations

from typing import Sequence

from google.api_core import exceptions

from . import gcloud
from .config import SetupContext
from .logging_utils import get_logger


logger = get_logger(__name__)


SAAS_RUNTIME_ROLES = [
    "roles/artifactregistry.admin",
    "roles/iam.serviceAccountShortTermTokenMinter",
    "roles/config.admin",
    "roles/storage.admin",
    "roles/iam.serviceAccountUser",
]

INFRA_MANAGER_ROLES = [
    "roles/config.admin",
    "roles/storage.admin",
    "roles/container.admin",
    "roles/iam.serviceAccountUser",
    "roles/compute.admin",
]

BUILD_ROLES = [
    "roles/cloudbuild.builds.builder",
    "roles/artifactregistry.writer",
    "roles/developerconnect.admin",
    "roles/developerconnect.tokenAccessor",
    "roles/logging.logWriter",
    "roles/storage.admin",
]

INFRA_MANAGER_SA_NAME = "infra-manager-sa"
INFRA_MANAGER_SA_DISPLAY_NAME = "Inframanager SA used for Deployment actuation"

COMPUTE_FALLBACK_SA_NAME = "compute-sa"
COMPUTE_FALLBACK_SA_DISPLAY_NAME = "Compute Service Account"


def saas_runtime_p4sa_email(project_number: str) -> str:
    return f"service-{project_number}@gcp-sa-saasservicemgmt.iam.gserviceaccount.com"


def compute_default_sa_email(project_number: str) -> str:
    return f"{project_number}-compute@developer.gserviceaccount.com"


def service_account_email(name: str, project_id: str) -> str:
    return f"{name}@{project_id}.iam.gserviceaccount.com"


def describe_service_account(project_id: str, email: str) -> None:
    """
    서비스 계정을 조회한다. 없으면 google.api_core.exceptions.NotFound.
    """
    gcloud.gcloud(["iam", "service-accounts", "describe", email], project=project_id)


def service_account_exists(project_id: str, email: str) -> bool:
    try:
        describe_service_account(project_id, email)
    except exceptions.NotFound:
        return False
    return True


def ensure_service_account(
    ctx: SetupContext,
    name: str,
    display_name: str,
) -> str:
    """
    사용자 관리 서비스 계정이 존재하는지 확인하고, 없으면 생성한 뒤 이메일을 반환한다.
    """
    email = service_account_email(name, ctx.project_id)

    if service_account_exists(ctx.project_id, email):
        logger.info("서비스 계정이 이미 존재합니다: %s", email)
        return email

    logger.info("서비스 계정 생성: %s", email)
    gcloud.gcloud(
        [
            "iam",
            "service-accounts",
            "create",
            name,
            f"--display-name={display_name}",
        ],
        project=ctx.project_id,
    )
    ctx.created.append(f"serviceAccount:{email}")
    return email


def grant_roles(
    project_id: str,
    account: str,
    roles: Sequence[str],
    description: str,
) -> None:
    """
    account 에 roles 를 순서대로 하나씩 부여한다.

    이미 가진 역할을 다시 부여하는 것은 API 쪽에서 no-op 이므로 사전 확인은 하지 않는다.
    """
    logger.info("%s 권한 부여 시작", description)
    member = f"serviceAccount:{account}"
    for role in roles:
        logger.info("권한 부여: %s -> %s", role, member)
        gcloud.gcloud(
            [
                "projects",
                "add-iam-policy-binding",
                project_id,
                f"--member={member}",
                f"--role={role}",
                "--condition=None",
                "--format=none",
            ]
        )
    logger.info("%s 권한 부여 완료", description)


def ensure_infra_manager_sa(ctx: SetupContext) -> None:
    logger.info("Inframanager 서비스 계정 확인")
    ctx.infra_manager_sa = ensure_service_account(
        ctx,
        INFRA_MANAGER_SA_NAME,
        INFRA_MANAGER_SA_DISPLAY_NAME,
    )


def resolve_build_sa(ctx: SetupContext) -> None:
    """
    Compute 기본 서비스 계정을 빌드용 SA 로 사용한다.
    기본 SA 가 없으면(드문 경우) compute-sa 를 확인/생성하여 대신 사용한다.
    """
    compute_sa = ctx.require("compute_default_sa")
    logger.info("Compute 기본 서비스 계정 확인: %s", compute_sa)

    if service_account_exists(ctx.project_id, compute_sa):
        ctx.build_sa = compute_sa
        logger.info("Compute 서비스 계정을 사용합니다: %s", compute_sa)
        return

    logger.warning("Compute 기본 서비스 계정이 없습니다. 대체 서비스 계정을 사용합니다.")
    ctx.build_sa = ensure_service_account(
        ctx,
        COMPUTE_FALLBACK_SA_NAME,
        COMPUTE_FALLBACK_SA_DISPLAY_NAME,
    )
    logger.info("대체 서비스 계정을 사용합니다: %s", ctx.build_sa)


def grant_saas_runtime_roles(ctx: SetupContext) -> None:
    grant_roles(
        ctx.project_id,
        ctx.require("saas_runtime_sa"),
        SAAS_RUNTIME_ROLES,
        "SaaS runtime service account",
    )


def grant_infra_manager_roles(ctx: SetupContext) -> None:
    grant_roles(
        ctx.project_id,
        ctx.require("infra_manager_sa"),
        INFRA_MANAGER_ROLES,
        "Inframanager",
    )


def grant_build_roles(ctx: SetupContext) -> None:
    grant_roles(
        ctx.project_id,
        ctx.require("build_sa"),
        BUILD_ROLES,
        "Compute Default SA",
    )


def check_service_accounts(project_id: str, project_number: str) -> list[str]:
    """
    세 서비스 계정의 존재 여부만 확인한다. (생성하지 않음)
    """
    results: list[str] = []
    targets = [
        ("SaaS runtime P4SA", saas_runtime_p4sa_email(project_number)),
        ("Inframanager SA", service_account_email(INFRA_MANAGER_SA_NAME, project_id)),
        ("Compute 기본 SA", compute_default_sa_email(project_number)),
    ]
    for label, email in targets:
        if service_account_exists(project_id, email):
            results.append(f"ServiceAccount: 존재함 ({label}: {email})")
        else:
            results.append(f"ServiceAccount: 없음 (생성이 필요함) ({label}: {email})")
    return results

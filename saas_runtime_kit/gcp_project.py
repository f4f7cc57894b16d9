"""
gcp_project
-----------

GCP 프로젝트 생성, 결제 계정 연결, 필수 API enable, 프로젝트 번호 조회를
담당하는 모듈.
"""

from __future__ import annotations

from google.api_core import exceptions

from . import gcloud
from .config import SetupConfig, SetupContext
from .logging_utils import get_logger


logger = get_logger(__name__)


REQUIRED_APIS = [
    "compute.googleapis.com",
    "artifactregistry.googleapis.com",
    "config.googleapis.com",
    "storage.googleapis.com",
    "developerconnect.googleapis.com",
    "cloudbuild.googleapis.com",
    "saasservicemgmt.googleapis.com",
]


def ensure_project(ctx: SetupContext) -> None:
    """
    프로젝트가 존재하는지 확인하고, 없으면 생성한다.
    """
    cfg = ctx.cfg
    project = cfg.gcp_project_id
    logger.info("GCP 프로젝트 확인: %s", project)

    if gcloud.exists(
        ["projects", "describe", project],
        not_found_markers=gcloud.PROJECT_HIDDEN_MARKERS,
    ):
        logger.info("프로젝트 %s 가 이미 존재하여 생성을 건너뜁니다.", project)
        return

    create_args = ["projects", "create", project]
    if cfg.gcp_folder_id:
        create_args.append(f"--folder={cfg.gcp_folder_id}")
    gcloud.gcloud(create_args)
    ctx.created.append(f"project:{project}")
    logger.info("GCP 프로젝트를 생성했습니다: %s", project)


def link_billing(ctx: SetupContext) -> None:
    """
    BILLING_ACCOUNT 가 설정된 경우에만 프로젝트에 결제 계정을 연결한다.
    """
    billing = ctx.cfg.billing_account_id
    if not billing:
        logger.info("BILLING_ACCOUNT 가 설정되지 않아 결제 계정 연결을 건너뜁니다.")
        return

    logger.info("결제 계정 연결: %s -> %s", ctx.project_id, billing)
    gcloud.gcloud(
        [
            "billing",
            "projects",
            "link",
            ctx.project_id,
            f"--billing-account={billing}",
        ]
    )


def enable_apis(ctx: SetupContext) -> None:
    """
    필수 API 를 하나씩 enable 한다. 하나라도 실패하면 예외가 전파된다.
    """
    logger.info("API 활성화: %s", REQUIRED_APIS)
    for api in REQUIRED_APIS:
        logger.info("API 활성화 중: %s", api)
        gcloud.gcloud(["services", "enable", api], project=ctx.project_id)
    logger.info("필수 API 활성화 완료.")


def get_project_number(project_id: str) -> str:
    out = gcloud.gcloud(
        ["projects", "describe", project_id, "--format=value(projectNumber)"],
        project=project_id,
    )
    number = out.strip()
    if not number:
        raise RuntimeError(f"프로젝트 번호를 가져오지 못했습니다: {project_id}")
    return number


def check_project_and_apis(cfg: SetupConfig) -> list[str]:
    """
    프로젝트와 필수 API 상태를 확인한다. 실제 생성/enable 은 하지 않는다.
    """
    results: list[str] = []
    project = cfg.gcp_project_id

    try:
        found = gcloud.exists(
            ["projects", "describe", project, "--quiet"],
            not_found_markers=gcloud.PROJECT_HIDDEN_MARKERS,
        )
    except exceptions.GoogleAPICallError as e:
        results.append(f"Project: 조회 실패 ({e.__class__.__name__})")
        return results
    except gcloud.CommandError as e:
        results.append(f"Project: 확인 불가 ({e})")
        return results

    if not found:
        results.append(f"Project: 없음 (생성이 필요함) ({project})")
        return results
    results.append(f"Project: 존재함 ({project})")

    for api in REQUIRED_APIS:
        out = gcloud.gcloud(
            [
                "services",
                "list",
                "--enabled",
                f"--filter=config.name:{api}",
                "--format=value(config.name)",
            ],
            project=project,
        )
        if out.strip():
            results.append(f"API: 활성화됨 ({api})")
        else:
            results.append(f"API: 비활성화 (enable 필요) ({api})")

    return results

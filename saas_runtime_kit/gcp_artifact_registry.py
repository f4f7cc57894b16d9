"""
gcp_artifact_registry
---------------------

SaaS Runtime blueprint 를 저장할 Artifact Registry 리포지토리 확인/생성 모듈.
"""

from __future__ import annotations

from google.api_core import exceptions

from . import gcloud
from .config import SetupConfig, SetupContext
from .logging_utils import get_logger


logger = get_logger(__name__)


REPOSITORY_FORMAT = "docker"
REPOSITORY_DESCRIPTION = "Artifact Registry to store SaaS Runtime blueprints"


def _describe_args(cfg: SetupConfig) -> list[str]:
    return [
        "artifacts",
        "repositories",
        "describe",
        cfg.artifact_registry_name,
        f"--location={cfg.gcp_region}",
    ]


def ensure_repository(ctx: SetupContext) -> None:
    """
    Artifact Registry 리포가 존재하는지 확인하고,
    없으면 생성한다.
    """
    cfg = ctx.cfg
    repo = cfg.artifact_registry_name
    logger.info("Artifact Registry 리포 확인: %s (%s)", repo, cfg.gcp_region)

    if gcloud.exists(_describe_args(cfg), project=ctx.project_id):
        logger.info("Artifact Registry 리포 %s 가 이미 존재합니다.", repo)
        return

    gcloud.gcloud(
        [
            "artifacts",
            "repositories",
            "create",
            repo,
            f"--repository-format={REPOSITORY_FORMAT}",
            f"--location={cfg.gcp_region}",
            f"--description={REPOSITORY_DESCRIPTION}",
        ],
        project=ctx.project_id,
    )
    ctx.created.append(f"artifactRegistry:{cfg.gcp_region}/{repo}")
    logger.info("Artifact Registry 리포를 생성했습니다: %s", repo)


def check_repository(cfg: SetupConfig) -> str:
    """
    Artifact Registry 리포지토리 존재 여부를 확인만 하고, 생성하지 않는다.
    """
    repo = cfg.artifact_registry_name
    try:
        found = gcloud.exists(_describe_args(cfg), project=cfg.gcp_project_id)
    except exceptions.GoogleAPICallError as e:
        return f"Artifact Registry: 조회 실패 ({e.__class__.__name__})"
    except gcloud.CommandError:
        return "Artifact Registry: gcloud 명령 실패로 상태 확인 불가"

    if found:
        return f"Artifact Registry: 리포지토리 존재함 ({repo})"
    return f"Artifact Registry: 리포지토리 없음 (생성이 필요함) ({repo})"

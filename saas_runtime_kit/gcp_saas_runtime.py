"""
gcp_saas_runtime
----------------

SaaS runtime P4SA(service-<번호>@gcp-sa-saasservicemgmt...) 준비.

P4SA 는 직접 생성할 수 없고, SaaS type 리소스를 처음 만들 때 부수 효과로 생긴다.
그래서 임시 SaaS type 을 만들고, P4SA 가 조회될 때까지 백오프로 폴링한 뒤,
임시 SaaS type 을 지운다.
"""

from __future__ import annotations

import time

from google.api_core import exceptions, retry

from . import gcloud, gcp_iam
from .config import SetupContext
from .logging_utils import get_logger


logger = get_logger(__name__)


def temp_saas_type_name(prefix: str) -> str:
    return f"{prefix}-{int(time.time())}"


def _create_saas_type(ctx: SetupContext, name: str) -> bool:
    region = ctx.cfg.gcp_region
    try:
        gcloud.gcloud(
            [
                "alpha",
                "saas",
                "saas-types",
                "create",
                name,
                f"--location={region}",
                f"--locations=name={region}",
            ],
            project=ctx.project_id,
        )
    except (exceptions.GoogleAPICallError, gcloud.CommandError) as e:
        logger.warning("임시 SaaS type 생성 실패 (P4SA 는 이미 만들어졌을 수 있음): %s", e)
        return False
    return True


def _delete_saas_type(ctx: SetupContext, name: str) -> None:
    try:
        gcloud.gcloud(
            [
                "alpha",
                "saas",
                "saas-types",
                "delete",
                name,
                f"--location={ctx.cfg.gcp_region}",
                "--quiet",
            ],
            project=ctx.project_id,
        )
    except (exceptions.GoogleAPICallError, gcloud.CommandError) as e:
        logger.warning("임시 SaaS type 삭제 실패: %s", e)


def wait_for_service_account(ctx: SetupContext, email: str) -> None:
    """
    서비스 계정이 조회될 때까지 지수 백오프로 기다린다.

    NotFound 일 때만 재시도하며, 시간 초과 시 google.api_core.exceptions.RetryError.
    권한 오류 등은 즉시 전파된다.
    """
    cfg = ctx.cfg

    def _on_error(exc: Exception) -> None:
        logger.info("P4SA 가 아직 조회되지 않습니다. 재시도합니다: %s", email)
        logger.debug("P4SA 조회 실패 상세: %s", exc)

    poll = retry.Retry(
        predicate=retry.if_exception_type(exceptions.NotFound),
        initial=cfg.p4sa_poll_initial,
        maximum=cfg.p4sa_poll_maximum,
        multiplier=2.0,
        timeout=cfg.p4sa_poll_timeout,
        on_error=_on_error,
    )
    poll(gcp_iam.describe_service_account)(ctx.project_id, email)


def ensure_saas_runtime_sa(ctx: SetupContext) -> None:
    email = ctx.require("saas_runtime_sa")
    logger.info("SaaS runtime 서비스 계정 확인: %s", email)

    if gcp_iam.service_account_exists(ctx.project_id, email):
        logger.info("SaaS runtime 서비스 계정이 이미 존재합니다.")
        return

    name = temp_saas_type_name(ctx.cfg.saas_type_prefix)
    logger.info("P4SA 생성을 위해 임시 SaaS type 을 만듭니다: %s", name)
    created = _create_saas_type(ctx, name)
    try:
        wait_for_service_account(ctx, email)
    finally:
        _delete_saas_type(ctx, name)

    if created:
        ctx.created.append(f"serviceAccount:{email}")
    logger.info("SaaS runtime 서비스 계정이 준비되었습니다: %s", email)

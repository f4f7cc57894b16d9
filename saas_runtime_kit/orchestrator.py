from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .config import SetupConfig, SetupContext
from .logging_utils import get_logger
from . import (
    gcp_artifact_registry,
    gcp_iam,
    gcp_project,
    gcp_saas_runtime,
)


logger = get_logger(__name__)

# 실행 순서 그대로. 뒤 단계는 앞 단계가 SetupContext 에 채운 값을 사용한다.
ALL_STEPS: List[str] = [
    "validate",
    "project",
    "billing",
    "apis",
    "project_number",
    "saas_runtime_sa",
    "saas_runtime_roles",
    "infra_manager_sa",
    "infra_manager_roles",
    "build_sa",
    "build_roles",
    "artifact_registry",
]


def validate_inputs(ctx: SetupContext) -> None:
    cfg = ctx.cfg
    logger.info("입력값 검증")
    cfg.validate()

    logger.info("다음 값으로 진행합니다:")
    logger.info("GCP Project ID: %s", cfg.gcp_project_id)
    logger.info("Artifact Registry Name: %s", cfg.artifact_registry_name)
    logger.info("Region: %s", cfg.gcp_region)
    if cfg.gcp_folder_id:
        logger.info("Folder ID: %s", cfg.gcp_folder_id)
    if cfg.billing_account_id:
        logger.info("Billing Account ID: %s", cfg.billing_account_id)


def resolve_project_number(ctx: SetupContext) -> None:
    """
    프로젝트 번호를 조회하고, 번호로부터 파생되는 서비스 계정 이메일을 채운다.
    """
    number = gcp_project.get_project_number(ctx.project_id)
    logger.info("프로젝트 번호: %s", number)

    ctx.project_number = number
    ctx.saas_runtime_sa = gcp_iam.saas_runtime_p4sa_email(number)
    ctx.compute_default_sa = gcp_iam.compute_default_sa_email(number)


def _step_functions() -> Dict[str, Callable[[SetupContext], None]]:
    return {
        "validate": validate_inputs,
        "project": gcp_project.ensure_project,
        "billing": gcp_project.link_billing,
        "apis": gcp_project.enable_apis,
        "project_number": resolve_project_number,
        "saas_runtime_sa": gcp_saas_runtime.ensure_saas_runtime_sa,
        "saas_runtime_roles": gcp_iam.grant_saas_runtime_roles,
        "infra_manager_sa": gcp_iam.ensure_infra_manager_sa,
        "infra_manager_roles": gcp_iam.grant_infra_manager_roles,
        "build_sa": gcp_iam.resolve_build_sa,
        "build_roles": gcp_iam.grant_build_roles,
        "artifact_registry": gcp_artifact_registry.ensure_repository,
    }


@dataclass
class SetupResult:
    context: SetupContext
    executed: List[str] = field(default_factory=list)
    not_run: List[str] = field(default_factory=list)
    failed_step: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def has_failures(self) -> bool:
        return self.failed_step is not None


def run_setup(cfg: SetupConfig) -> SetupResult:
    """
    모든 단계를 순서대로 실행한다.

    한 단계에서 예외가 발생하면 그 단계를 실패로 기록하고 이후 단계는 실행하지 않는다.
    재시도는 하지 않는다.
    """
    ctx = SetupContext(cfg=cfg)
    result = SetupResult(context=ctx)
    steps = _step_functions()

    for idx, name in enumerate(ALL_STEPS, start=1):
        logger.info("Step %d/%d: %s", idx, len(ALL_STEPS), name)
        try:
            steps[name](ctx)
        except Exception as e:  # noqa: BLE001
            result.failed_step = name
            result.error = e
            result.not_run = ALL_STEPS[idx:]
            logger.exception("단계 실행 실패: %s", name)
            break
        result.executed.append(name)

    if not result.has_failures:
        logger.info("모든 단계를 완료했습니다.")
    return result


def _format_summary(result: SetupResult) -> str:
    ctx = result.context
    lines: List[str] = []
    lines.append("# Setup summary")
    lines.append(f"- project: {ctx.cfg.gcp_project_id or '(not set)'}")
    if ctx.project_number:
        lines.append(f"- project_number: {ctx.project_number}")
    lines.append("")

    lines.append("## Service accounts")
    lines.append(f"- saas_runtime: {ctx.saas_runtime_sa or '(unresolved)'}")
    lines.append(f"- infra_manager: {ctx.infra_manager_sa or '(unresolved)'}")
    lines.append(f"- build: {ctx.build_sa or '(unresolved)'}")
    lines.append("")

    lines.append("## Executed steps")
    if result.executed:
        for s in result.executed:
            lines.append(f"- {s}")
    else:
        lines.append("- (none)")

    lines.append("")
    lines.append("## Created resources")
    if ctx.created:
        for r in ctx.created:
            lines.append(f"- {r}")
    else:
        lines.append("- (none)")

    lines.append("")
    lines.append("## Failed step")
    if result.failed_step:
        lines.append(f"- {result.failed_step}: {result.error}")
        lines.append("")
        lines.append("## Not run")
        for s in result.not_run:
            lines.append(f"- {s}")
    else:
        lines.append("- (none)")

    return "\n".join(lines)


def apply_setup(cfg: SetupConfig) -> tuple[str, bool]:
    """
    Returns:
        summary: 사람이 읽기 좋은 텍스트 요약
        has_failures: 실패한 단계가 있는지 여부
    """
    result = run_setup(cfg)
    return _format_summary(result), result.has_failures


def plan_setup(cfg: SetupConfig) -> str:
    """
    설정값과 실행될 단계/역할 목록을 요약한다. 실제 GCP 호출은 하지 않는다.
    """
    lines: List[str] = []
    lines.append("# Setup plan")
    lines.append(f"- project: {cfg.gcp_project_id or '(not set)'}")
    lines.append(f"- artifact_registry: {cfg.artifact_registry_name or '(not set)'}")
    lines.append(f"- region: {cfg.gcp_region}")
    lines.append(f"- folder: {cfg.gcp_folder_id or '(not set)'}")
    lines.append(f"- billing_account: {cfg.billing_account_id or '(not set)'}")
    lines.append("")

    lines.append("## Steps")
    for idx, name in enumerate(ALL_STEPS, start=1):
        suffix = ""
        if name == "billing" and not cfg.billing_account_id:
            suffix = " (SKIPPED: BILLING_ACCOUNT 미설정)"
        lines.append(f"{idx}. {name}{suffix}")
    lines.append("")

    lines.append("## APIs")
    for api in gcp_project.REQUIRED_APIS:
        lines.append(f"- {api}")

    role_sets = [
        ("SaaS runtime SA roles", gcp_iam.SAAS_RUNTIME_ROLES),
        ("Inframanager SA roles", gcp_iam.INFRA_MANAGER_ROLES),
        ("Build SA roles", gcp_iam.BUILD_ROLES),
    ]
    for title, roles in role_sets:
        lines.append("")
        lines.append(f"## {title}")
        for role in roles:
            lines.append(f"- {role}")

    missing = cfg.missing_inputs()
    if missing:
        lines.append("")
        lines.append("필수 입력값이 비어 있습니다: " + ", ".join(missing))

    return "\n".join(lines)


def check_setup(cfg: SetupConfig, show_all: bool = False) -> tuple[str, bool]:
    """
    실제 리소스 생성 없이 현재 상태를 점검한다.

    Returns:
        summary: 사람이 읽기 좋은 텍스트 요약
        has_issues: 없는 리소스나 조회 실패가 하나라도 있는지 여부
    """
    lines: List[str] = []
    issues: List[str] = []

    lines.append("# Setup pre-check")
    lines.append(f"- project: {cfg.gcp_project_id}")
    lines.append(f"- region: {cfg.gcp_region}")
    lines.append("")

    def _record(section: str, results: List[str]) -> None:
        lines.append(f"## {section}")
        for r in results:
            if show_all:
                lines.append(f"- {r}")
            if "없음" in r or "비활성화" in r or "실패" in r or "확인 불가" in r:
                issues.append(r)
        lines.append("")

    try:
        project_results = gcp_project.check_project_and_apis(cfg)
    except Exception as e:  # noqa: BLE001
        project_results = [f"Project/APIs: 체크 중 예외 발생: {e}"]
        issues.append(project_results[0])
    _record("Project & APIs", project_results)

    project_ready = any(r.startswith("Project: 존재함") for r in project_results)
    if project_ready:
        try:
            number = gcp_project.get_project_number(cfg.gcp_project_id)
            sa_results = gcp_iam.check_service_accounts(cfg.gcp_project_id, number)
        except Exception as e:  # noqa: BLE001
            sa_results = [f"ServiceAccount: 체크 중 예외 발생: {e}"]
            issues.append(sa_results[0])
        _record("Service accounts", sa_results)

        try:
            ar_status = gcp_artifact_registry.check_repository(cfg)
        except Exception as e:  # noqa: BLE001
            ar_status = f"Artifact Registry: 체크 중 예외 발생: {e}"
            issues.append(ar_status)
        _record("Artifact Registry", [ar_status])

    lines.append("## Summary")
    if issues:
        lines.append("- 상태: setup 실행 시 생성/변경될 항목이 있거나 확인이 필요합니다.")
        lines.append("")
        lines.append("### Issues")
        for i in issues:
            lines.append(f"- {i}")
    else:
        lines.append("- 상태: 모든 리소스가 준비되어 있습니다.")

    if not show_all:
        lines.append("")
        lines.append("자세한 상태를 보려면 `saas-runtime-setup check -a` 를 실행하세요.")

    return "\n".join(lines), bool(issues)

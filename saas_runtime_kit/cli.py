import sys
from dataclasses import replace
from typing import Optional

import click

from .config import load_env_files, SetupConfig
from .logging_utils import setup_logging, get_logger
from .orchestrator import apply_setup, plan_setup, check_setup


logger = get_logger(__name__)


@click.group()
@click.option(
    "-C",
    "--chdir",
    "chdir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=".",
    help="작업 디렉토리 (.env / .env.setup 위치, 기본: 현재 디렉토리)",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="로그 레벨을 DEBUG로 올립니다.",
)
@click.pass_context
def main(ctx: click.Context, chdir: str, verbose: int) -> None:
    """SaaS Runtime 용 GCP 프로젝트 초기 구성 CLI"""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["chdir"] = chdir
    ctx.obj["verbose"] = verbose


def _load_config_from_ctx(
    ctx: click.Context,
    *,
    project_id: Optional[str] = None,
    registry_name: Optional[str] = None,
    region: Optional[str] = None,
    folder: Optional[str] = None,
    billing_account: Optional[str] = None,
    prompt_missing: bool = False,
) -> SetupConfig:
    """
    env 파일 → 환경변수 → CLI 옵션 순으로 덮어쓴 설정을 만든다.
    prompt_missing 이면 비어 있는 필수값을 터미널에서 입력받는다.
    """
    base_dir: str = ctx.obj["chdir"]
    load_env_files(base_dir)
    cfg = SetupConfig.from_env()

    overrides = {
        "gcp_project_id": project_id,
        "artifact_registry_name": registry_name,
        "gcp_region": region,
        "gcp_folder_id": folder,
        "billing_account_id": billing_account,
    }
    cfg = replace(cfg, **{k: v.strip() for k, v in overrides.items() if v is not None})

    if prompt_missing and sys.stdin.isatty():
        if not cfg.gcp_project_id:
            cfg.gcp_project_id = click.prompt(
                "Enter GCP Project ID", default="", show_default=False
            ).strip()
        if not cfg.artifact_registry_name:
            cfg.artifact_registry_name = click.prompt(
                "Enter Artifact Registry Name", default="", show_default=False
            ).strip()

    logger.debug("Config loaded: %s", cfg)
    return cfg


@main.command()
@click.pass_context
def plan(ctx: click.Context) -> None:
    """현재 설정과 실행될 단계/API/역할 목록을 출력 (GCP 호출 없음)"""
    try:
        cfg = _load_config_from_ctx(ctx)
    except Exception as e:  # noqa: BLE001
        click.echo(f"[ERROR] 설정 로드 실패: {e}", err=True)
        sys.exit(1)

    click.echo(plan_setup(cfg))


@main.command(name="setup")
@click.option("--project-id", "project_id", type=str, default=None, help="GCP 프로젝트 ID (GCP_PROJECT_ID)")
@click.option(
    "--registry-name",
    "registry_name",
    type=str,
    default=None,
    help="Artifact Registry 리포지토리 이름 (ARTIFACT_REGISTRY_NAME)",
)
@click.option("--region", "region", type=str, default=None, help="리전 (GCP_REGION, 기본 us-central1)")
@click.option("--folder", "folder", type=str, default=None, help="프로젝트를 생성할 폴더 ID (GCP_FOLDER)")
@click.option(
    "--billing-account",
    "billing_account",
    type=str,
    default=None,
    help="연결할 결제 계정 ID (BILLING_ACCOUNT)",
)
@click.pass_context
def setup(
    ctx: click.Context,
    project_id: Optional[str],
    registry_name: Optional[str],
    region: Optional[str],
    folder: Optional[str],
    billing_account: Optional[str],
) -> None:
    """프로젝트/API/서비스 계정/IAM/Artifact Registry 를 순서대로 구성"""
    try:
        cfg = _load_config_from_ctx(
            ctx,
            project_id=project_id,
            registry_name=registry_name,
            region=region,
            folder=folder,
            billing_account=billing_account,
            prompt_missing=True,
        )
    except Exception as e:  # noqa: BLE001
        click.echo(f"[ERROR] 설정 로드 실패: {e}", err=True)
        sys.exit(1)

    summary, has_failures = apply_setup(cfg)
    click.echo(summary)

    if has_failures:
        click.echo("[ERROR] setup 이 중간에 실패했습니다. 위 요약의 Failed step 을 확인하세요.", err=True)
        sys.exit(1)


@main.command()
@click.option(
    "-a",
    "--all",
    "show_all",
    is_flag=True,
    help="모든 체크 항목의 상세 상태를 출력합니다. (기본은 이슈만 요약)",
)
@click.option("--project-id", "project_id", type=str, default=None, help="GCP 프로젝트 ID (GCP_PROJECT_ID)")
@click.option("--registry-name", "registry_name", type=str, default=None, help="Artifact Registry 이름")
@click.pass_context
def check(
    ctx: click.Context,
    show_all: bool,
    project_id: Optional[str],
    registry_name: Optional[str],
) -> None:
    """
    현재 GCP 리소스 상태를 점검한다.
    (실제 리소스 생성/변경은 하지 않는다)
    """
    try:
        cfg = _load_config_from_ctx(ctx, project_id=project_id, registry_name=registry_name)
        cfg.validate()
    except Exception as e:  # noqa: BLE001
        click.echo(f"[ERROR] 설정 로드 실패: {e}", err=True)
        sys.exit(1)

    report, has_issues = check_setup(cfg, show_all=show_all)
    click.echo(report)

    if has_issues:
        sys.exit(1)


@main.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """
    현재 디렉토리에 env 템플릿(.env.setup.example)을 복사한다.
    """
    import os
    from importlib import resources

    base_dir: str = ctx.obj["chdir"]
    name = ".env.setup.example"
    target = os.path.join(base_dir, name)
    if os.path.exists(target):
        click.echo(f"{name} 이(가) 이미 존재하여 건너뜀")
        return

    try:
        template = resources.files("saas_runtime_kit.examples").joinpath("env.setup.example")
        with template.open("r", encoding="utf-8") as src, open(target, "w", encoding="utf-8") as dst:
            dst.write(src.read())
    except FileNotFoundError:
        click.echo("템플릿 env.setup.example 을(를) 패키지에서 찾을 수 없습니다.", err=True)
        sys.exit(1)
    click.echo(f"{name} 템플릿을 생성했습니다.")

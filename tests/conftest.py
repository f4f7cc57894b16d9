"""
pytest 설정:

로컬 작업 환경에 설치된 다른 버전의 saas_runtime_kit 패키지가 존재할 때,
`pytest` 실행 시 site-packages 쪽이 먼저 import 되어 테스트가 깨질 수 있다.
테스트는 항상 현재 레포의 소스를 대상으로 해야 하므로, repo root 를 sys.path 최상단에 고정한다.

또한 gcloud 를 실제로 호출하지 않도록, 리소스 상태를 메모리에 흉내내는 FakeGcloud 를 제공한다.
"""

from __future__ import annotations

import os
import sys

import pytest


_REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _REPO_ROOT not in sys.path:
    sys.path.insert(0, _REPO_ROOT)


from saas_runtime_kit import gcloud as gcloud_module  # noqa: E402
from saas_runtime_kit.config import SetupConfig  # noqa: E402
from saas_runtime_kit.subprocess_utils import CommandError, RunResult  # noqa: E402


PROJECT_ID = "test-project"
PROJECT_NUMBER = "123456789012"

PROJECT_HIDDEN_STDERR = (
    "ERROR: (gcloud.projects.describe) User [me@example.com] does not have permission "
    "to access projects instance [{project}] (or it may not exist): "
    "The caller does not have permission"
)
SA_NOT_FOUND_STDERR = "ERROR: (gcloud.iam.service-accounts.describe) NOT_FOUND: Unknown service account"
REPO_NOT_FOUND_STDERR = "ERROR: (gcloud.artifacts.repositories.describe) NOT_FOUND: Requested entity was not found."
SA_PERMISSION_DENIED_STDERR = (
    "ERROR: (gcloud.iam.service-accounts.describe) PERMISSION_DENIED: "
    "Permission 'iam.serviceAccounts.get' denied on resource (or it may not exist)."
)
REPO_PERMISSION_DENIED_STDERR = (
    "ERROR: (gcloud.artifacts.repositories.describe) PERMISSION_DENIED: "
    "Permission 'artifactregistry.repositories.get' denied on resource (or it may not exist)."
)


def make_cfg(**overrides) -> SetupConfig:
    values = dict(
        gcp_project_id=PROJECT_ID,
        artifact_registry_name="blueprints",
        p4sa_poll_initial=0.01,
        p4sa_poll_maximum=0.02,
        p4sa_poll_timeout=1.0,
    )
    values.update(overrides)
    return SetupConfig(**values)


def _split(cmd: list[str]) -> tuple[list[str], dict[str, str]]:
    args: list[str] = []
    flags: dict[str, str] = {}
    for part in cmd[1:]:
        if part.startswith("--"):
            key, _, value = part[2:].partition("=")
            flags[key] = value
        else:
            args.append(part)
    return args, flags


class FakeGcloud:
    """
    gcloud 명령을 받아 메모리 상의 프로젝트/서비스 계정/리포 상태를 흉내낸다.

    - Compute API 를 enable 하면 Compute 기본 SA 가 생긴다 (compute_default_on_enable)
    - 임시 SaaS type 을 만들면 P4SA 가 생긴다 (p4sa_on_saas_type)
    - p4sa_not_found_polls 만큼은 P4SA describe 가 NOT_FOUND 를 낸다 (비동기 생성 흉내)
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.projects: dict[str, str] = {}
        self.service_accounts: set[str] = set()
        self.repositories: set[tuple[str, str, str]] = set()
        self.enabled_apis: set[tuple[str, str]] = set()
        self.bindings: list[tuple[str, str, str]] = []
        self.saas_types: set[str] = set()
        self.billing_links: list[tuple[str, str]] = []

        self.compute_default_on_enable = True
        self.p4sa_on_saas_type = True
        self.p4sa_not_found_polls = 0
        self.failures: dict[tuple[str, ...], str] = {}

    # ------------------------------------------------------------------
    # helpers for tests
    # ------------------------------------------------------------------
    def fail(self, *prefix: str, stderr: str = "ERROR: INTERNAL: boom") -> None:
        self.failures[tuple(prefix)] = stderr

    def provision(self, project_id: str = PROJECT_ID, registry: str = "blueprints",
                  region: str = "us-central1") -> None:
        self.projects[project_id] = PROJECT_NUMBER
        self.service_accounts.update(
            {
                f"service-{PROJECT_NUMBER}@gcp-sa-saasservicemgmt.iam.gserviceaccount.com",
                f"{PROJECT_NUMBER}-compute@developer.gserviceaccount.com",
                f"infra-manager-sa@{project_id}.iam.gserviceaccount.com",
            }
        )
        self.repositories.add((project_id, region, registry))

    @property
    def create_calls(self) -> list[list[str]]:
        return [c for c in self.calls if "create" in _split(c)[0][:4]]

    def calls_matching(self, *prefix: str) -> list[list[str]]:
        n = len(prefix)
        return [c for c in self.calls if tuple(_split(c)[0][:n]) == prefix]

    # ------------------------------------------------------------------
    def _fail(self, cmd: list[str], stderr: str) -> RunResult:
        raise CommandError(
            f"명령 실행 실패: {' '.join(cmd)} (exit=1)",
            cmd=cmd,
            returncode=1,
            stderr=stderr,
        )

    def __call__(self, cmd, **kwargs) -> RunResult:  # noqa: ANN001, ARG002
        cmd = list(cmd)
        self.calls.append(cmd)
        args, flags = _split(cmd)
        project = flags.get("project", "")

        for prefix, stderr in self.failures.items():
            if tuple(args[: len(prefix)]) == prefix:
                return self._fail(cmd, stderr)

        out = ""
        head = tuple(args[:3])

        if head[:2] == ("projects", "describe"):
            pid = args[2]
            if pid not in self.projects:
                return self._fail(cmd, PROJECT_HIDDEN_STDERR.format(project=pid))
            if flags.get("format") == "value(projectNumber)":
                out = self.projects[pid] + "\n"
            else:
                out = f"projectId: {pid}\n"
        elif head[:2] == ("projects", "create"):
            self.projects[args[2]] = PROJECT_NUMBER
        elif head[:2] == ("projects", "add-iam-policy-binding"):
            self.bindings.append((args[2], flags["member"], flags["role"]))
        elif head == ("billing", "projects", "link"):
            self.billing_links.append((args[3], flags["billing-account"]))
        elif head[:2] == ("services", "enable"):
            self.enabled_apis.add((project, args[2]))
            if args[2] == "compute.googleapis.com" and self.compute_default_on_enable:
                number = self.projects[project]
                self.service_accounts.add(f"{number}-compute@developer.gserviceaccount.com")
        elif head[:2] == ("services", "list"):
            api = flags["filter"].split(":", 1)[1]
            if (project, api) in self.enabled_apis:
                out = api + "\n"
        elif head == ("iam", "service-accounts", "describe"):
            email = args[3]
            if email.startswith("service-") and email in self.service_accounts and self.p4sa_not_found_polls > 0:
                self.p4sa_not_found_polls -= 1
                return self._fail(cmd, SA_NOT_FOUND_STDERR)
            if email not in self.service_accounts:
                return self._fail(cmd, SA_NOT_FOUND_STDERR)
            out = f"email: {email}\n"
        elif head == ("iam", "service-accounts", "create"):
            self.service_accounts.add(f"{args[3]}@{project}.iam.gserviceaccount.com")
        elif head == ("alpha", "saas", "saas-types"):
            verb, name = args[3], args[4]
            if verb == "create":
                self.saas_types.add(name)
                if self.p4sa_on_saas_type:
                    number = self.projects[project]
                    self.service_accounts.add(
                        f"service-{number}@gcp-sa-saasservicemgmt.iam.gserviceaccount.com"
                    )
            elif verb == "delete":
                self.saas_types.discard(name)
        elif head == ("artifacts", "repositories", "describe"):
            if (project, flags["location"], args[3]) not in self.repositories:
                return self._fail(cmd, REPO_NOT_FOUND_STDERR)
            out = f"name: {args[3]}\n"
        elif head == ("artifacts", "repositories", "create"):
            self.repositories.add((project, flags["location"], args[3]))
        else:
            raise AssertionError(f"예상하지 못한 gcloud 호출: {cmd}")

        return RunResult(returncode=0, stdout=out, stderr="")


@pytest.fixture
def fake_gcloud(monkeypatch: pytest.MonkeyPatch) -> FakeGcloud:
    fake = FakeGcloud()
    monkeypatch.setattr(gcloud_module, "run_command", fake)
    return fake

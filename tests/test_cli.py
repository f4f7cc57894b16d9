import pytest
from click.testing import CliRunner

from saas_runtime_kit.cli import main

from conftest import PROJECT_ID


_ENV_KEYS = ["GCP_PROJECT_ID", "ARTIFACT_REGISTRY_NAME", "GCP_REGION", "GCP_FOLDER", "BILLING_ACCOUNT"]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    monkeypatch.setenv("P4SA_POLL_INITIAL_SECONDS", "0.01")
    monkeypatch.setenv("P4SA_POLL_MAXIMUM_SECONDS", "0.02")
    monkeypatch.setenv("P4SA_POLL_TIMEOUT_SECONDS", "1")


def test_setup_without_inputs_exits_1_and_calls_nothing(fake_gcloud, tmp_path) -> None:
    runner = CliRunner()

    result = runner.invoke(main, ["-C", str(tmp_path), "setup"])

    assert result.exit_code == 1
    assert "- validate:" in result.output
    assert fake_gcloud.calls == []


def test_setup_with_options_succeeds(fake_gcloud, tmp_path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        main,
        ["-C", str(tmp_path), "setup", "--project-id", PROJECT_ID, "--registry-name", "blueprints"],
    )

    assert result.exit_code == 0, result.output
    assert "# Setup summary" in result.output
    assert "## Failed step\n- (none)" in result.output


def test_setup_reads_env_file(fake_gcloud, tmp_path) -> None:
    (tmp_path / ".env.setup").write_text(
        f"GCP_PROJECT_ID={PROJECT_ID}\nARTIFACT_REGISTRY_NAME=from-file\n", encoding="utf-8"
    )
    runner = CliRunner()

    result = runner.invoke(main, ["-C", str(tmp_path), "setup"])

    assert result.exit_code == 0, result.output
    assert (PROJECT_ID, "us-central1", "from-file") in fake_gcloud.repositories


def test_plan_prints_steps(fake_gcloud, tmp_path) -> None:
    runner = CliRunner()

    result = runner.invoke(main, ["-C", str(tmp_path), "plan"])

    assert result.exit_code == 0
    assert "# Setup plan" in result.output
    assert "artifact_registry" in result.output
    assert fake_gcloud.calls == []


def test_check_requires_inputs(fake_gcloud, tmp_path) -> None:
    runner = CliRunner()

    result = runner.invoke(main, ["-C", str(tmp_path), "check"])

    assert result.exit_code == 1
    assert fake_gcloud.calls == []


def test_init_writes_template_once(tmp_path) -> None:
    runner = CliRunner()

    first = runner.invoke(main, ["-C", str(tmp_path), "init"])
    second = runner.invoke(main, ["-C", str(tmp_path), "init"])

    assert first.exit_code == 0
    assert "GCP_PROJECT_ID=" in (tmp_path / ".env.setup.example").read_text(encoding="utf-8")
    assert "건너뜀" in second.output

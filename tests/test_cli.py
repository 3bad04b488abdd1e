"""CLI tests running against the in-memory secret store."""
from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

from dotsecrets.cli import app
from dotsecrets.services.providers import InMemoryProvider

runner = CliRunner()


@pytest.fixture(autouse=True)
def mock_store(isolated_env, tmp_path, monkeypatch):
    """Run the CLI in mock mode with a small secret store."""
    secrets_file = tmp_path / "mock-secrets.yml"
    secrets_file.write_text(yaml.safe_dump({
        "Employee": {
            "API_KEY": {"credential": "abc123"},
            "GITHUB_TOKEN": {"credential": "ghp_xyz"},
            "DB_PW": {"credential": "s3cr3t", "username": "app"},
        },
        "Private": {
            "API_KEY": {"credential": "private-key"},
        },
    }))
    monkeypatch.setenv("DOTSECRETS_MOCK", "1")
    monkeypatch.setenv("DOTSECRETS_MOCK_SECRETS", str(secrets_file))
    monkeypatch.setenv("DOTSECRETS_ACCOUNT", "personal")
    return secrets_file


@pytest.fixture
def env_template(tmp_path):
    path = tmp_path / "env.sh.template"
    path.write_text("export TOKEN=${API_KEY}\n")
    return path


class TestHelp:
    """Test help output."""

    def test_main_help(self):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        output = result.stdout
        assert "Inject secrets from 1Password" in output
        for command in ("process", "inject-all", "validate", "diff", "warm-cache", "clear-cache", "secret"):
            assert command in output

    def test_process_help(self):
        result = runner.invoke(app, ["process", "--help"])
        assert result.exit_code == 0
        assert "--dry-run" in result.stdout
        assert "--allow-missing" in result.stdout


class TestProcessCommand:
    """Test the process command."""

    def test_process_file(self, env_template, tmp_path):
        result = runner.invoke(app, ["process", str(env_template)])

        assert result.exit_code == 0
        assert (tmp_path / "env.sh").read_text() == "export TOKEN=abc123\n"
        assert "abc123" not in result.stdout

    def test_process_other_vault(self, env_template, tmp_path):
        result = runner.invoke(app, ["process", str(env_template), "--vault", "Private"])
        assert result.exit_code == 0
        assert (tmp_path / "env.sh").read_text() == "export TOKEN=private-key\n"

    def test_missing_secret_fails_without_writing(self, tmp_path):
        source = tmp_path / "env.template"
        source.write_text("a=${API_KEY}\nb=${NOPE}\n")

        result = runner.invoke(app, ["process", str(source)])
        assert result.exit_code == 1
        assert "NOPE" in result.stdout
        assert not (tmp_path / "env").exists()

    def test_allow_missing(self, tmp_path):
        source = tmp_path / "env.template"
        source.write_text("a=${API_KEY}\nb=${NOPE}\n")

        result = runner.invoke(app, ["process", str(source), "--allow-missing"])
        assert result.exit_code == 0
        assert (tmp_path / "env").read_text() == "a=abc123\nb=${NOPE}\n"

    def test_dry_run_is_redacted(self, env_template, tmp_path):
        result = runner.invoke(app, ["process", str(env_template), "--dry-run"])

        assert result.exit_code == 0
        assert "<API_KEY: 6 chars>" in result.stdout
        assert "abc123" not in result.stdout
        assert not (tmp_path / "env.sh").exists()

    def test_stdout_output(self, env_template, tmp_path):
        result = runner.invoke(app, ["process", str(env_template), "-o", "-"])
        assert result.exit_code == 0
        assert "export TOKEN=abc123" in result.stdout
        assert not (tmp_path / "env.sh").exists()

    def test_stdout_output_reports_missing(self, tmp_path):
        source = tmp_path / "env.template"
        source.write_text("x=${NOPE}\n")

        result = runner.invoke(app, ["process", str(source), "-o", "-", "--allow-missing"])
        assert result.exit_code == 0
        assert result.stdout.endswith("x=${NOPE}\n")
        # Warning is logged before the content is echoed
        assert "NOPE" in result.output.replace("x=${NOPE}", "")

    def test_stdin(self):
        result = runner.invoke(app, ["process", "--stdin"], input="x=%%DB_PW:username%%")
        assert result.exit_code == 0
        assert "x=app" in result.stdout

    def test_stdin_reports_missing(self):
        result = runner.invoke(app, ["process", "--stdin", "--allow-missing"], input="x=%%NOPE%%\n")
        assert result.exit_code == 0
        assert result.stdout.endswith("x=%%NOPE%%\n")
        assert "NOPE" in result.output.replace("x=%%NOPE%%", "")

    def test_plain_file_is_copied(self, tmp_path):
        source = tmp_path / "plain.template"
        source.write_text("nothing here\n")

        result = runner.invoke(app, ["process", str(source)])
        assert result.exit_code == 0
        assert (tmp_path / "plain").read_text() == "nothing here\n"

    def test_stdin_with_path_rejected(self, env_template):
        result = runner.invoke(app, ["process", str(env_template), "--stdin"])
        assert result.exit_code == 1
        assert "--stdin" in result.stdout

    def test_no_input(self):
        result = runner.invoke(app, ["process"])
        assert result.exit_code == 1
        assert "No input" in result.stdout

    def test_directory_needs_recursive(self, tmp_path):
        templates = tmp_path / "templates"
        templates.mkdir()
        result = runner.invoke(app, ["process", str(templates)])
        assert result.exit_code == 1
        assert "-r" in result.stdout

    def test_directory_recursive(self, tmp_path):
        templates = tmp_path / "templates"
        (templates / "nested").mkdir(parents=True)
        (templates / "a.template").write_text("${API_KEY}\n")
        (templates / "nested" / "b.tmpl").write_text("{{GITHUB_TOKEN}}\n")
        (templates / "broken.template").write_text("${NOPE}\n")

        result = runner.invoke(app, ["process", str(templates), "-r"])

        assert result.exit_code == 1
        assert (templates / "a").read_text() == "abc123\n"
        assert (templates / "nested" / "b").read_text() == "ghp_xyz\n"
        assert not (templates / "broken").exists()
        assert "1 failed" in result.stdout

    def test_unknown_format(self, env_template):
        result = runner.invoke(app, ["process", str(env_template), "--format", "yaml"])
        assert result.exit_code == 1
        assert "Unsupported template format" in result.stdout

    def test_not_signed_in(self, env_template, tmp_path):
        signed_out = InMemoryProvider(signed_in=False, account="personal")
        with patch("dotsecrets.cli_support.create_provider", return_value=signed_out):
            result = runner.invoke(app, ["process", str(env_template)])

        assert result.exit_code == 1
        assert "Not signed in" in result.stdout
        assert not (tmp_path / "env.sh").exists()


class TestInjectAll:
    """Test processing the usual dotfile locations."""

    def test_inject_all(self, tmp_path):
        home = tmp_path / "fakehome"
        (home / ".aws").mkdir(parents=True)
        (home / ".aws" / "credentials.template").write_text("key=${API_KEY}\n")
        (home / ".aws" / "credentials").write_text("old\n")

        result = runner.invoke(app, ["inject-all", "--home", str(home)])

        assert result.exit_code == 0
        assert (home / ".aws" / "credentials").read_text() == "key=abc123\n"
        assert (home / ".aws" / "credentials.backup").read_text() == "old\n"

    def test_nothing_to_do(self, tmp_path):
        result = runner.invoke(app, ["inject-all", "--home", str(tmp_path / "empty")])
        assert result.exit_code == 0
        assert "No template files found" in result.stdout


class TestValidateAndDiff:
    """Test read-only commands."""

    def test_validate_passes(self, env_template):
        result = runner.invoke(app, ["validate", str(env_template)])
        assert result.exit_code == 0
        assert "Validation passed" in result.stdout
        assert "API_KEY" in result.stdout

    def test_validate_reports_missing(self, tmp_path):
        source = tmp_path / "env.template"
        source.write_text("a=${API_KEY}\nb=${NOPE}\n")

        result = runner.invoke(app, ["validate", str(source)])
        assert result.exit_code == 1
        assert "NOPE" in result.stdout
        assert "Validation failed" in result.stdout

    def test_validate_without_checks(self, tmp_path):
        source = tmp_path / "env.template"
        source.write_text("b=${NOPE}\n")

        result = runner.invoke(app, ["validate", str(source), "--no-check"])
        assert result.exit_code == 0

    def test_diff(self, env_template, tmp_path):
        result = runner.invoke(app, ["diff", str(env_template)])

        assert result.exit_code == 0
        assert "+export TOKEN=abc123" in result.stdout
        assert not (tmp_path / "env.sh").exists()


class TestCacheCommands:
    """Test cache management commands."""

    def test_warm_cache(self):
        result = runner.invoke(app, ["warm-cache"])
        assert result.exit_code == 0
        assert "Warmed 3 secrets" in result.stdout

    def test_clear_cache(self, tmp_path):
        runner.invoke(app, ["warm-cache"])
        assert (tmp_path / "cache").exists()

        result = runner.invoke(app, ["clear-cache"])
        assert result.exit_code == 0
        assert not (tmp_path / "cache").exists()

    def test_cache_status(self):
        runner.invoke(app, ["warm-cache"])
        result = runner.invoke(app, ["cache-status"])
        assert result.exit_code == 0
        assert "Entries" in result.stdout
        assert "abc123" not in result.stdout

    def test_bad_ttl_is_reported(self, monkeypatch):
        monkeypatch.setenv("DOTSECRETS_CACHE_TTL", "soon")
        result = runner.invoke(app, ["cache-status"])
        assert result.exit_code == 1
        assert "DOTSECRETS_CACHE_TTL" in result.stdout


class TestSecretCommands:
    """Test the secret subcommands."""

    def test_get(self):
        result = runner.invoke(app, ["secret", "get", "API_KEY"])
        assert result.exit_code == 0
        assert result.stdout == "abc123\n"

    def test_get_field(self):
        result = runner.invoke(app, ["secret", "get", "DB_PW", "--field", "username"])
        assert result.stdout == "app\n"

    def test_get_missing(self):
        result = runner.invoke(app, ["secret", "get", "NOPE"])
        assert result.exit_code == 1
        assert "Secret not found" in result.stdout

    def test_get_default(self):
        result = runner.invoke(app, ["secret", "get", "NOPE", "--default", "fallback"])
        assert result.exit_code == 0
        assert result.stdout == "fallback\n"

    def test_exists(self):
        assert runner.invoke(app, ["secret", "exists", "API_KEY"]).exit_code == 0
        assert runner.invoke(app, ["secret", "exists", "NOPE"]).exit_code == 1

    def test_set(self):
        result = runner.invoke(app, ["secret", "set", "NEW_KEY", "--value", "hunter2"])
        assert result.exit_code == 0
        assert "Created secret: NEW_KEY" in result.stdout
        assert "hunter2" not in result.stdout

    def test_list(self):
        result = runner.invoke(app, ["secret", "list", "--vault", "Private"])
        assert result.exit_code == 0
        assert "API_KEY" in result.stdout
        assert "GITHUB_TOKEN" not in result.stdout

    def test_env(self):
        result = runner.invoke(app, ["secret", "env"])
        assert result.exit_code == 0
        assert "export GITHUB_TOKEN=ghp_xyz" in result.stdout

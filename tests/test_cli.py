import click
from click.testing import CliRunner

import appdeployer.cli as cli_module

TOKEN = "ghp_example_token_123"


def _fake_deployer(captured, exit_code=0):
    class FakeDeployer:
        def __init__(self, config, dry_run=False):
            captured["config"] = config
            captured["dry_run"] = dry_run

        def run(self):
            return exit_code

    return FakeDeployer


def _fake_teardown(captured, exit_code=0):
    class FakeTeardown:
        def __init__(self, config):
            captured["teardown"] = config

        def run(self):
            return exit_code

    return FakeTeardown


def test_cli_uses_config_and_allows_cli_override(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config_file = tmp_path / "deploy.yml"
    config_file.write_text(
        "repo_url: https://github.com/acme/shop.git\n"
        "branch: develop\n"
        "ssh_user: deploy\n"
        "host: 198.51.100.7\n"
        "ssh_key: ~/.ssh/id_ed25519\n"
        "app_port: 8080\n"
        "http_timeout: 30\n",
        encoding="utf-8",
    )

    captured = {}
    monkeypatch.setattr(cli_module, "AppDeployer", _fake_deployer(captured))

    result = CliRunner().invoke(
        cli_module.main,
        [
            "--config",
            str(config_file),
            "--host",
            "203.0.113.10",
            "--token",
            TOKEN,
            "--dry-run",
        ],
    )

    assert result.exit_code == 0
    config = captured["config"]
    assert config.repo_url == "https://github.com/acme/shop.git"
    assert config.branch == "develop"
    assert config.host == "203.0.113.10"
    assert config.app_port == 8080
    assert config.http_timeout == 30.0
    assert captured["dry_run"] is True


def test_cli_reads_token_from_environment(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    captured = {}
    monkeypatch.setattr(cli_module, "AppDeployer", _fake_deployer(captured))

    result = CliRunner().invoke(
        cli_module.main,
        [
            "--repo-url",
            "https://github.com/acme/shop.git",
            "--ssh-user",
            "deploy",
            "--host",
            "203.0.113.10",
            "--ssh-key",
            "id_ed25519",
            "--app-port",
            "8080",
        ],
        env={"APPDEPLOYER_TOKEN": TOKEN},
    )

    assert result.exit_code == 0
    assert captured["config"].token == TOKEN
    assert captured["config"].branch == "main"
    assert TOKEN not in result.output


def test_cli_reprompts_until_port_is_valid(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    captured = {}
    monkeypatch.setattr(cli_module, "AppDeployer", _fake_deployer(captured))

    result = CliRunner().invoke(
        cli_module.main,
        [
            "--repo-url",
            "https://github.com/acme/shop.git",
            "--token",
            TOKEN,
            "--branch",
            "main",
            "--ssh-user",
            "deploy",
            "--host",
            "203.0.113.10",
            "--ssh-key",
            "id_ed25519",
        ],
        input="99999\nabc\n8080\n",
    )

    assert result.exit_code == 0
    assert "Invalid port number" in result.output
    assert captured["config"].app_port == 8080


def test_cli_prompts_for_missing_values(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    captured = {}
    monkeypatch.setattr(cli_module, "AppDeployer", _fake_deployer(captured))

    result = CliRunner().invoke(
        cli_module.main,
        [],
        input="\n".join(
            [
                "https://github.com/acme/shop.git",
                TOKEN,
                "",
                "deploy",
                "203.0.113.10",
                "id_ed25519",
                "8080",
            ]
        )
        + "\n",
    )

    assert result.exit_code == 0
    config = captured["config"]
    assert config.repo_url == "https://github.com/acme/shop.git"
    assert config.token == TOKEN
    assert config.branch == "main"
    assert config.ssh_user == "deploy"
    assert config.app_port == 8080


def test_cli_rejects_invalid_port_option(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    captured = {}
    monkeypatch.setattr(cli_module, "AppDeployer", _fake_deployer(captured))

    result = CliRunner().invoke(
        cli_module.main,
        [
            "--repo-url",
            "https://github.com/acme/shop.git",
            "--token",
            TOKEN,
            "--branch",
            "main",
            "--ssh-user",
            "deploy",
            "--host",
            "203.0.113.10",
            "--ssh-key",
            "id_ed25519",
            "--app-port",
            "70000",
        ],
    )

    assert result.exit_code == 20
    assert "config" not in captured


def test_cli_exhausted_input_is_a_missing_parameter(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    captured = {}
    monkeypatch.setattr(cli_module, "AppDeployer", _fake_deployer(captured))

    result = CliRunner().invoke(cli_module.main, [], input="")

    assert result.exit_code == 20
    assert "config" not in captured


def test_cli_interrupted_prompt_exits_with_interrupt_code(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    captured = {}
    monkeypatch.setattr(cli_module, "AppDeployer", _fake_deployer(captured))

    def interrupted_prompt(*_args, **_kwargs):
        raise click.Abort()

    monkeypatch.setattr(cli_module.click, "prompt", interrupted_prompt)

    result = CliRunner().invoke(cli_module.main, [])

    assert result.exit_code == 11
    assert "config" not in captured


def test_cli_configured_run_does_not_prompt_for_branch(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    captured = {}
    monkeypatch.setattr(cli_module, "AppDeployer", _fake_deployer(captured))

    def unexpected_prompt(text, *_args, **_kwargs):
        raise AssertionError(f"unexpected prompt: {text}")

    monkeypatch.setattr(cli_module.click, "prompt", unexpected_prompt)

    result = CliRunner().invoke(
        cli_module.main,
        [
            "--repo-url",
            "https://github.com/acme/shop.git",
            "--ssh-user",
            "deploy",
            "--host",
            "203.0.113.10",
            "--ssh-key",
            "id_ed25519",
            "--app-port",
            "8080",
        ],
        env={"APPDEPLOYER_TOKEN": TOKEN},
    )

    assert result.exit_code == 0
    assert captured["config"].branch == "main"


def test_cli_propagates_pipeline_exit_code(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli_module, "AppDeployer", _fake_deployer({}, exit_code=24))

    result = CliRunner().invoke(
        cli_module.main,
        [
            "--repo-url",
            "https://github.com/acme/shop.git",
            "--token",
            TOKEN,
            "--branch",
            "main",
            "--ssh-user",
            "deploy",
            "--host",
            "203.0.113.10",
            "--ssh-key",
            "id_ed25519",
            "--app-port",
            "8080",
        ],
    )

    assert result.exit_code == 24


def test_cli_cleanup_dispatches_to_teardown(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    captured = {}
    monkeypatch.setattr(cli_module, "AppDeployer", _fake_deployer(captured))
    monkeypatch.setattr(cli_module, "ProjectTeardown", _fake_teardown(captured))

    result = CliRunner().invoke(
        cli_module.main,
        [
            "--cleanup",
            "--ssh-user",
            "deploy",
            "--host",
            "203.0.113.10",
            "--ssh-key",
            "id_ed25519",
            "--project-name",
            "shop",
        ],
    )

    assert result.exit_code == 0
    assert captured["teardown"].project_name == "shop"
    assert captured["teardown"].remote_base_dir == "/opt/app"
    assert "config" not in captured


def test_cli_cleanup_requires_project_name(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    captured = {}
    monkeypatch.setattr(cli_module, "ProjectTeardown", _fake_teardown(captured))

    result = CliRunner().invoke(
        cli_module.main,
        ["--cleanup", "--ssh-user", "deploy", "--host", "203.0.113.10", "--ssh-key", "id_ed25519"],
        input="\n",
    )

    assert result.exit_code == 20
    assert "teardown" not in captured


def test_cli_uses_default_config_file_and_writes_run_log(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".appdeployer.yml").write_text(
        "repo_url: https://github.com/acme/shop.git\n"
        "token: ghp_example_token_123\n"
        "ssh_user: deploy\n"
        "host: 203.0.113.10\n"
        "ssh_key: id_ed25519\n"
        "app_port: '8080'\n"
        "log_dir: logs\n",
        encoding="utf-8",
    )
    captured = {}
    monkeypatch.setattr(cli_module, "AppDeployer", _fake_deployer(captured))

    result = CliRunner().invoke(cli_module.main, [])

    assert result.exit_code == 0
    assert captured["config"].app_port == 8080
    log_files = list((tmp_path / "logs").glob("deploy_*.log"))
    assert len(log_files) == 1
    assert TOKEN not in log_files[0].read_text(encoding="utf-8")


def test_cli_rejects_unknown_config_keys(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config_file = tmp_path / "deploy.yml"
    config_file.write_text("unexpected: true\n", encoding="utf-8")

    result = CliRunner().invoke(cli_module.main, ["--config", str(config_file)])

    assert result.exit_code == 20

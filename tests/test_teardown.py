import subprocess

import pytest

from appdeployer.errors import DeployerError
from appdeployer.models import ProjectIdentity, TeardownConfig
from appdeployer.teardown import ProjectTeardown


def build_teardown(tmp_path, project_name="shop"):
    key = tmp_path / "id_ed25519"
    key.write_text("key", encoding="utf-8")
    return ProjectTeardown(
        TeardownConfig(
            ssh_user="deploy",
            host="203.0.113.10",
            ssh_key=str(key),
            project_name=project_name,
        )
    )


def fake_execute(returncode, scripts):
    def execute(script, timeout=None):
        scripts.append(script)
        return subprocess.CompletedProcess(["ssh"], returncode, stdout="", stderr="")

    return execute


def test_steps_tolerate_missing_resources(tmp_path):
    teardown = build_teardown(tmp_path)
    steps = {step.name: step.body for step in teardown.build_steps(ProjectIdentity(name="shop"))}

    assert list(steps) == [
        "check_privileges",
        "remove_containers",
        "remove_proxy_rule",
        "reload_proxy",
        "remove_project_dir",
    ]
    assert "if command -v docker" in steps["remove_containers"]
    assert "|| true" in steps["remove_containers"]
    assert "sudo -n rm -f /etc/nginx/conf.d/shop.conf" in steps["remove_proxy_rule"]
    assert "Nginx reload skipped." in steps["reload_proxy"]
    assert "sudo -n rm -rf /opt/app/shop" in steps["remove_project_dir"]


def test_cleanup_of_absent_project_succeeds(tmp_path):
    teardown = build_teardown(tmp_path)
    scripts = []
    teardown.ssh_transport.execute = fake_execute(0, scripts)

    assert teardown.run() == 0
    assert len(scripts) == 1
    assert "PROJECT_NAME=shop" in scripts[0]


@pytest.mark.parametrize("returncode", [255, 30])
def test_remote_failure_exits_with_teardown_code(tmp_path, returncode):
    teardown = build_teardown(tmp_path)
    teardown.ssh_transport.execute = fake_execute(returncode, [])

    assert teardown.run() == 12


def test_runner_error_exits_with_teardown_code(tmp_path):
    teardown = build_teardown(tmp_path)

    def failing_execute(script, timeout=None):
        raise DeployerError("Required command not found: ssh.")

    teardown.ssh_transport.execute = failing_execute

    assert teardown.run() == 12


@pytest.mark.parametrize("project_name", ["../etc", "", "a b"])
def test_unsafe_project_name_is_rejected_before_connecting(tmp_path, project_name):
    teardown = build_teardown(tmp_path, project_name=project_name)
    scripts = []
    teardown.ssh_transport.execute = fake_execute(0, scripts)

    assert teardown.run() == 20
    assert scripts == []

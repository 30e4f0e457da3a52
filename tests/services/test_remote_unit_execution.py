import os
import shutil
import subprocess

import pytest

import appdeployer.models as models_module
from appdeployer.core import AppDeployer
from appdeployer.errors import DeploymentHealthError, ProxyConfigError
from appdeployer.models import BuildDescriptor, DeploymentConfig, ProjectIdentity, TeardownConfig
from appdeployer.services.provisioner import ProvisionerService
from appdeployer.services.remote_script import RemoteScript, last_step, raise_for_remote_exit
from appdeployer.teardown import ProjectTeardown

pytestmark = pytest.mark.skipif(shutil.which("bash") is None, reason="bash is required")

IDENTITY = ProjectIdentity(name="shop")
COMPOSE = BuildDescriptor(compose_file="docker-compose.yml")

FAKE_TOOLS = {
    "sudo": """#!/bin/sh
[ "$1" = "-n" ] && shift
if [ -n "$FAKE_SUDO_DENIED" ]; then
    exit 1
fi
exec "$@"
""",
    "docker": """#!/bin/sh
echo "docker $*" >> "$FAKE_CALLS"
state="$FAKE_STATE/containers"
case "$*" in
    *" down "*) rm -f "$state" ;;
    *" up "*) [ -n "$FAKE_NO_START" ] || echo "shop-web-1" > "$state" ;;
    *" ps "*) cat "$state" 2>/dev/null ;;
esac
exit 0
""",
    "nginx": """#!/bin/sh
echo "nginx $*" >> "$FAKE_CALLS"
if [ "$1" = "-t" ] && [ -n "$FAKE_NGINX_INVALID" ]; then
    echo "nginx: [emerg] invalid configuration"
    exit 1
fi
exit 0
""",
    "systemctl": """#!/bin/sh
echo "systemctl $*" >> "$FAKE_CALLS"
""",
    "apt-get": """#!/bin/sh
echo "apt-get $*" >> "$FAKE_CALLS"
""",
    "usermod": """#!/bin/sh
echo "usermod $*" >> "$FAKE_CALLS"
""",
    "id": """#!/bin/sh
echo deploy
""",
}


class FakeHost:
    """A temporary directory standing in for the target host."""

    def __init__(self, root):
        self.root = root
        self.bin_dir = root / "bin"
        self.state_dir = root / "state"
        self.conf_dir = root / "conf.d"
        self.default_site = root / "sites-enabled" / "default"
        self.base_dir = root / "app"
        self.calls_file = root / "calls.log"

        for path in (self.bin_dir, self.state_dir, self.conf_dir, self.base_dir / "shop"):
            path.mkdir(parents=True)
        self.default_site.parent.mkdir()
        self.default_site.write_text("server { listen 80 default_server; }\n", encoding="utf-8")

        for name, body in FAKE_TOOLS.items():
            tool = self.bin_dir / name
            tool.write_text(body, encoding="utf-8")
            tool.chmod(0o755)

    @property
    def rule_file(self):
        return self.conf_dir / "shop.conf"

    @property
    def containers(self):
        state = self.state_dir / "containers"
        return state.read_text(encoding="utf-8") if state.exists() else ""

    def calls(self):
        return self.calls_file.read_text(encoding="utf-8") if self.calls_file.exists() else ""

    def run(self, script, **fake_env):
        if self.calls_file.exists():
            self.calls_file.unlink()
        env = dict(os.environ)
        env.update(
            PATH=f"{self.bin_dir}{os.pathsep}{os.environ.get('PATH', '')}",
            FAKE_CALLS=str(self.calls_file),
            FAKE_STATE=str(self.state_dir),
        )
        env.update(fake_env)
        return subprocess.run(
            ["bash", "-c", script],
            env=env,
            capture_output=True,
            text=True,
            timeout=60,
        )


@pytest.fixture
def host(tmp_path, monkeypatch):
    fake_host = FakeHost(tmp_path)
    monkeypatch.setattr(models_module, "PROXY_CONF_DIR", str(fake_host.conf_dir))
    monkeypatch.setattr(models_module, "REMOTE_LOG_TEMPLATE", str(tmp_path / "deploy_{name}.log"))
    monkeypatch.setattr(ProvisionerService, "DEFAULT_SITE", str(fake_host.default_site))
    return fake_host


def deploy_unit(host, app_port, descriptor=COMPOSE):
    config = DeploymentConfig(
        repo_url="https://github.com/acme/shop.git",
        token="unused",
        ssh_user="deploy",
        host="203.0.113.10",
        ssh_key="unused",
        app_port=app_port,
        remote_base_dir=str(host.base_dir),
    )
    deployer = AppDeployer(config)
    deployer.identity = IDENTITY
    deployer.remote_dir = str(host.base_dir / "shop")
    deployer.descriptor = descriptor
    return deployer.build_remote_script().render()


def test_repeated_deploy_converges_to_same_state(host):
    first = host.run(deploy_unit(host, 8080))
    rule_after_first = host.rule_file.read_text(encoding="utf-8")
    containers_after_first = host.containers

    second = host.run(deploy_unit(host, 8080))

    assert first.returncode == 0, first.stdout + first.stderr
    assert second.returncode == 0, second.stdout + second.stderr
    assert host.rule_file.read_text(encoding="utf-8") == rule_after_first
    assert host.containers == containers_after_first == "shop-web-1\n"
    assert "proxy_pass http://localhost:8080;" in rule_after_first
    assert "systemctl reload nginx" in host.calls()
    assert not host.default_site.exists()
    assert not (host.conf_dir / "shop.conf.previous").exists()
    assert "Remote run completed successfully." in second.stdout


def test_port_change_replaces_rule(host):
    host.run(deploy_unit(host, 8080))

    result = host.run(deploy_unit(host, 9090))

    rule = host.rule_file.read_text(encoding="utf-8")
    assert result.returncode == 0, result.stdout + result.stderr
    assert "proxy_pass http://localhost:9090;" in rule
    assert "8080" not in rule


def test_rejected_rule_keeps_previous_rule_and_skips_reload(host):
    host.run(deploy_unit(host, 8080))

    result = host.run(deploy_unit(host, 9090), FAKE_NGINX_INVALID="1")

    rule = host.rule_file.read_text(encoding="utf-8")
    assert result.returncode == 31
    assert "localhost:8080" in rule
    assert "9090" not in rule
    assert "nginx -t" in host.calls()
    assert "systemctl reload" not in host.calls()
    assert not (host.conf_dir / "shop.conf.previous").exists()
    with pytest.raises(ProxyConfigError, match="activate_proxy_rule") as error:
        raise_for_remote_exit(result.returncode, result.stdout, IDENTITY)
    assert error.value.exit_code == 31


def test_rejected_first_rule_is_removed(host):
    result = host.run(deploy_unit(host, 8080), FAKE_NGINX_INVALID="1")

    assert result.returncode == 31
    assert not host.rule_file.exists()


def test_stack_without_running_containers_fails_validation(host):
    result = host.run(deploy_unit(host, 8080), FAKE_NO_START="1")

    assert result.returncode == 32
    assert last_step(result.stdout) == "check_running_containers"
    with pytest.raises(DeploymentHealthError) as error:
        raise_for_remote_exit(result.returncode, result.stdout, IDENTITY)
    assert error.value.exit_code == 32


def test_missing_privileges_stop_before_any_change(host):
    result = host.run(deploy_unit(host, 8080), FAKE_SUDO_DENIED="1")

    assert result.returncode == 30
    assert last_step(result.stdout) == "check_privileges"
    assert host.calls() == ""
    assert host.default_site.exists()


def test_teardown_removes_deployment_and_tolerates_repeat(host):
    host.run(deploy_unit(host, 8080))
    teardown = ProjectTeardown(
        TeardownConfig(
            ssh_user="deploy",
            host="203.0.113.10",
            ssh_key="unused",
            project_name="shop",
            remote_base_dir=str(host.base_dir),
        )
    )
    script = RemoteScript(IDENTITY, teardown.build_steps(IDENTITY)).render()

    first = host.run(script)
    second = host.run(script)

    assert first.returncode == 0, first.stdout + first.stderr
    assert second.returncode == 0, second.stdout + second.stderr
    assert not host.rule_file.exists()
    assert not (host.base_dir / "shop").exists()
    assert host.containers == ""

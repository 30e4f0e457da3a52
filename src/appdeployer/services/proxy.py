"""Nginx reverse-proxy rule generation and activation steps."""

import shlex
from dataclasses import dataclass
from typing import List

from appdeployer.constants import DEFAULT_SERVER_NAME, REMOTE_EXIT_PROXY_INVALID
from appdeployer.models import ProjectIdentity
from appdeployer.services.remote_script import RemoteStep

HEREDOC_TERMINATOR = "APPDEPLOYER_PROXY_RULE"

_RULE_TEMPLATE = """\
# Managed by appdeployer for project {project_name}
server {{
    listen {listen_port};
    listen [::]:{listen_port};
    server_name {server_name};

    location / {{
        proxy_pass http://localhost:{app_port};
        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;
    }}
}}
"""


@dataclass(frozen=True)
class ProxyRule:
    """One rule per project, rewritten in full on every deploy."""

    identity: ProjectIdentity
    app_port: int
    server_name: str = DEFAULT_SERVER_NAME
    listen_port: int = 80

    @property
    def path(self) -> str:
        return self.identity.proxy_rule_path

    @property
    def upstream(self) -> str:
        return f"localhost:{self.app_port}"

    def render(self) -> str:
        return _RULE_TEMPLATE.format(
            project_name=self.identity.name,
            listen_port=self.listen_port,
            server_name=self.server_name,
            app_port=self.app_port,
        )


class ProxyConfiguratorService:
    """Writes the rule, validates it with ``nginx -t`` and reloads Nginx.

    A rule that fails validation is replaced by the previous file (or
    removed) and Nginx is not reloaded, so live traffic keeps the old config.
    """

    def build_steps(self, rule: ProxyRule) -> List[RemoteStep]:
        return [self._write_step(rule), self._activate_step(rule)]

    def _write_step(self, rule: ProxyRule) -> RemoteStep:
        rule_path = shlex.quote(rule.path)
        body = (
            'log_remote "Configuring Nginx reverse proxy..."\n'
            f"RULE_PATH={rule_path}\n"
            'if [ -f "$RULE_PATH" ]; then\n'
            '    sudo -n cp -p "$RULE_PATH" "$RULE_PATH.previous"\n'
            "else\n"
            '    sudo -n rm -f "$RULE_PATH.previous"\n'
            "fi\n"
            f"sudo -n tee \"$RULE_PATH\" > /dev/null <<'{HEREDOC_TERMINATOR}'\n"
            f"{rule.render()}"
            f"{HEREDOC_TERMINATOR}\n"
            'log_remote "Nginx configuration written to $RULE_PATH"\n'
        )
        return RemoteStep("write_proxy_rule", body)

    def _activate_step(self, rule: ProxyRule) -> RemoteStep:
        body = f"""
RULE_PATH={shlex.quote(rule.path)}
log_remote "Testing Nginx configuration..."
if NGINX_TEST_OUTPUT="$(sudo -n nginx -t 2>&1)"; then
    sudo -n rm -f "$RULE_PATH.previous"
    sudo -n systemctl reload nginx
    log_remote "Nginx configuration test successful and service reloaded."
else
    echo "$NGINX_TEST_OUTPUT"
    if [ -f "$RULE_PATH.previous" ]; then
        sudo -n mv -f "$RULE_PATH.previous" "$RULE_PATH"
    else
        sudo -n rm -f "$RULE_PATH"
    fi
    fail {REMOTE_EXIT_PROXY_INVALID} "Nginx configuration test failed for $RULE_PATH. Previous rule restored; reload skipped."
fi
"""
        return RemoteStep("activate_proxy_rule", body)

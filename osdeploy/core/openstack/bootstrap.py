# osdeploy/core/openstack/bootstrap.py

"""
인스턴스 user-data 로 보낼 bootstrap 스크립트 렌더링.

템플릿 안의 마커 한 줄을 `echo "export K=V" >> <env-file>` 줄들로 바꾸고
base64 로 인코딩한다.
"""

from __future__ import annotations

import base64
import re
import shlex
from pathlib import Path
from typing import List, Mapping, Optional

from osdeploy.core.errors import ValidationError

CONFIG_MARKER = "#OSDEPLOY_CONFIG#"
DEFAULT_TEMPLATE = Path(__file__).parent / "templates" / "bootstrap.sh"
ENV_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def load_template(path: Optional[str] = None) -> str:
    template_path = Path(path) if path else DEFAULT_TEMPLATE
    return template_path.read_text(encoding="utf-8")


def shell_value(value: str) -> str:
    """env 파일에는 작은따옴표로 quote 된 값이 들어가고, echo 의 큰따옴표 안에서 한 번 더 escape 한다."""
    return re.sub(r'(["$`\\])', r"\\\1", shlex.quote(str(value)))


def render_config_lines(config: Mapping[str, str], env_file: str) -> List[str]:
    lines = []
    for key, value in config.items():
        if not ENV_NAME.fullmatch(key):
            raise ValidationError(f"Invalid environment variable name '{key}'", field="config", key=key)
        lines.append(f'echo "export {key}={shell_value(value)}" >> {env_file}')
    return lines


def render_bootstrap_script(
    template: str,
    config: Mapping[str, str],
    env_file: str,
    marker: str = CONFIG_MARKER,
) -> str:
    lines = template.splitlines()
    rendered: List[str] = []
    found = False
    for line in lines:
        if not found and line.strip() == marker:
            rendered.extend(render_config_lines(config, env_file))
            found = True
        else:
            rendered.append(line)

    if not found:
        raise ValidationError(f"Bootstrap template has no '{marker}' line", marker=marker)

    script = "\n".join(rendered)
    if template.endswith("\n"):
        script += "\n"
    return script


def encode_user_data(script: str) -> str:
    return base64.b64encode(script.encode("utf-8")).decode("ascii")

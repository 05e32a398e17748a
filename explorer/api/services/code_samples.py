"""Copy-pasteable request snippets. Pure string templates, nothing is executed."""

import json
from pprint import pformat
from typing import Any, Mapping
from .models import CodeSamples


def _has_body(body: Any) -> bool:
    return body is not None and not (isinstance(body, (dict, list, str)) and len(body) == 0)


def _pretty(body: Any) -> str:
    return json.dumps(body, indent=2, ensure_ascii=False)


def generate_curl(url: str, method: str, headers: Mapping[str, str], body: Any = None) -> str:
    cmd = f'curl -X {method.upper()} "{url}"'
    for key, value in headers.items():
        cmd += f' \\\n  -H "{key}: {value}"'
    if _has_body(body):
        # Single quotes inside the payload would end the shell string
        payload = _pretty(body).replace("'", "'\\''")
        cmd += f" \\\n  -d '{payload}'"
    return cmd


def generate_fetch(url: str, method: str, headers: Mapping[str, str], body: Any = None) -> str:
    lines = [
        f'const response = await fetch("{url}", {{',
        f'  method: "{method.upper()}",',
        "  headers: {",
    ]
    lines += [f'    "{key}": "{value}",' for key, value in headers.items()]
    lines.append("  },")
    if _has_body(body):
        payload = _pretty(body).replace("\n", "\n    ")
        lines.append(f"  body: JSON.stringify({payload})")
    lines.append("});")
    lines.append("")
    lines.append("const data = await response.json();")
    lines.append("console.log(data);")
    return "\n".join(lines)


def generate_python(url: str, method: str, headers: Mapping[str, str], body: Any = None) -> str:
    lines = ["import requests", "", "response = requests.request(", f'    "{method.upper()}",', f'    "{url}",']
    lines.append("    headers={")
    lines += [f'        "{key}": "{value}",' for key, value in headers.items()]
    lines.append("    },")
    if _has_body(body):
        payload = pformat(body, sort_dicts=False).replace("\n", "\n    ")
        lines.append(f"    json={payload},")
    lines.append(")")
    lines.append("print(response.json())")
    return "\n".join(lines)


def generate_all(url: str, method: str, headers: Mapping[str, str], body: Any = None) -> CodeSamples:
    return CodeSamples(
        curl=generate_curl(url, method, headers, body),
        fetch=generate_fetch(url, method, headers, body),
        python=generate_python(url, method, headers, body),
    )

import os
import re
from collections.abc import Mapping
from typing import Any

import orjson

ENV_PLACEHOLDER_RE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


def json_dumps(value: Any) -> str:
    # On bytes/str dumps output:
    # https://github.com/ijl/orjson/issues/66
    return orjson.dumps(value).decode()


def dumpcut(data: Any, max_length: int, full_key: str, cut_key: str, cut_sep: str = "…") -> dict[str, Any]:
    """
    Shortcut for logging some JSONable data with limited length and a distinct key for the cut values.

    >>> dumpcut({"value": "short"}, max_length=20, full_key="fk", cut_key="ck")
    {'fk': {'value': 'short'}}
    >>> dumpcut({"value": "long" * 10}, max_length=20, full_key="fk", cut_key="ck")
    {'ck': '{"value":"…onglong"}'}
    """
    assert len(cut_sep) < max_length // 2
    data_s = data if isinstance(data, str) else json_dumps(data)
    if len(data_s) <= max_length:
        return {full_key: data}
    half_len = max_length // 2
    right_len = half_len - len(cut_sep)
    assert right_len > 0
    data_cut = "".join((data_s[:half_len], cut_sep, data_s[-right_len:]))
    return {cut_key: data_cut}


def apply_env_vars(url: str, env: Mapping[str, str] | None = None) -> str:
    """
    Fill the `{NAME}` placeholders in the URL from the environment.

    An empty string is returned if any of the referenced values is missing or empty,
    since a URL with a missing API key is not usable.

    >>> apply_env_vars("https://api.example.com/v1?key={API_KEY}", env={"API_KEY": "secret123"})
    'https://api.example.com/v1?key=secret123'
    >>> apply_env_vars("https://{API_VERSION}.example.com/?key={API_KEY}", env={"API_KEY": "secret123"})
    ''
    >>> apply_env_vars("https://api.example.com/v1?key={API_KEY", env={"API_KEY": "secret123"})
    'https://api.example.com/v1?key={API_KEY'
    """
    values = os.environ if env is None else env
    names = ENV_PLACEHOLDER_RE.findall(url)
    if not names:
        return url
    if not all(values.get(name) for name in names):
        return ""
    return ENV_PLACEHOLDER_RE.sub(lambda match: values[match.group(1)], url)

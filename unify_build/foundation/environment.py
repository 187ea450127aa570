from __future__ import annotations

import os
from collections.abc import Mapping

EnvironmentProvider = Mapping[str, str]


def process_environment() -> EnvironmentProvider:
    return os.environ


def read_env(env: EnvironmentProvider, name: str | None) -> str | None:
    """Return the value of `name` in `env`, or None when unset, blank or unnamed."""

    if name is None or not str(name).strip():
        return None
    value = env.get(str(name))
    if value is None or not str(value).strip():
        return None
    return str(value)

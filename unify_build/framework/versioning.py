from __future__ import annotations

from unify_build.foundation.environment import EnvironmentProvider, process_environment, read_env
from unify_build.framework.config import DEFAULT_VERSION_ENV

GITVERSION_ENV = "GITVERSION_MAJORMINORPATCH"
FALLBACK_VERSION = "0.1.0"


def _non_empty(value: str | None) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def resolve_version(
    *,
    version: str | None = None,
    version_env: str | None = DEFAULT_VERSION_ENV,
    artifacts_version: str | None = None,
    external_version: str | None = None,
    env: EnvironmentProvider | None = None,
) -> str:
    """
    Resolve the build version. First match wins:

    1. explicit `version`
    2. environment variable named by `version_env`
    3. `external_version` supplied by the caller
    4. GITVERSION_MAJORMINORPATCH
    5. `artifacts_version`
    6. "0.1.0"

    Blank strings count as absent. Never touches the filesystem.
    """

    environ = process_environment() if env is None else env
    return (
        _non_empty(version)
        or read_env(environ, version_env)
        or _non_empty(external_version)
        or read_env(environ, GITVERSION_ENV)
        or _non_empty(artifacts_version)
        or FALLBACK_VERSION
    )

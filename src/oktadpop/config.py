"""Environment-driven configuration with fail-fast validation.

All settings are read once at process start from the process environment,
falling back to a `.env` file found from the working directory upwards,
and turned into a frozen :class:`~oktadpop.models.Settings`:

* **Identity** -- ``OKTA_ORG_URL``, ``OKTA_CLIENT_ID``, ``OKTA_SCOPES``.
* **Keys** -- each key is given either inline (``OKTA_CC_PRIVATE_KEY``) or
  as a file path (``OKTA_CC_PRIVATE_KEY_FILE``). The DPoP public key is
  optional and derived from the private key when absent.
* **Request settings** -- ``OKTA_HTTP_TIMEOUT`` and ``OKTA_VERIFY_SSL``.

Nothing silently defaults to an empty string: :func:`load_settings`
collects every problem it finds and raises a single
:class:`~oktadpop.exceptions.ConfigError` listing them all.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from typing import Optional

from dotenv import dotenv_values, find_dotenv
from pydantic import ValidationError

from oktadpop.exceptions import ConfigError
from oktadpop.models import KeySource, RequestConfig, ServiceIdentity, Settings

ENV_ORG_URL = "OKTA_ORG_URL"
ENV_CLIENT_ID = "OKTA_CLIENT_ID"
ENV_SCOPES = "OKTA_SCOPES"
ENV_CC_PRIVATE_KEY = "OKTA_CC_PRIVATE_KEY"
ENV_DPOP_PRIVATE_KEY = "OKTA_DPOP_PRIVATE_KEY"
ENV_DPOP_PUBLIC_KEY = "OKTA_DPOP_PUBLIC_KEY"
ENV_HTTP_TIMEOUT = "OKTA_HTTP_TIMEOUT"
ENV_VERIFY_SSL = "OKTA_VERIFY_SSL"

_FILE_SUFFIX = "_FILE"
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def parse_scopes(raw: str) -> list[str]:
    """Split a scope string on whitespace and commas, keeping order and dropping duplicates."""
    scopes: list[str] = []
    for item in re.split(r"[\s,]+", raw.strip()):
        if item and item not in scopes:
            scopes.append(item)
    return scopes


def _key_source(
    env: Mapping[str, str],
    name: str,
    errors: list[str],
    required: bool = True,
) -> Optional[KeySource]:
    """Resolve ``NAME`` / ``NAME_FILE`` into a :class:`KeySource`."""
    value = env.get(name, "").strip()
    path = env.get(name + _FILE_SUFFIX, "").strip()
    if value and path:
        errors.append(f"Set only one of {name} or {name}{_FILE_SUFFIX}")
        return None
    if not value and not path:
        if required:
            errors.append(f"Missing {name} or {name}{_FILE_SUFFIX}")
        return None
    if value:
        # Inline PEM often arrives with escaped newlines from .env files or CI secrets.
        return KeySource(value=value.replace("\\n", "\n"))
    return KeySource(path=os.path.expanduser(path))


def _request_config(env: Mapping[str, str], errors: list[str]) -> RequestConfig:
    timeout = 30.0
    raw_timeout = env.get(ENV_HTTP_TIMEOUT, "").strip()
    if raw_timeout:
        try:
            timeout = float(raw_timeout)
        except ValueError:
            errors.append(f"{ENV_HTTP_TIMEOUT} must be a number of seconds, got {raw_timeout!r}")
        else:
            if timeout <= 0:
                errors.append(f"{ENV_HTTP_TIMEOUT} must be positive, got {raw_timeout!r}")

    verify_ssl = True
    raw_verify = env.get(ENV_VERIFY_SSL, "").strip().lower()
    if raw_verify in _FALSE_VALUES:
        verify_ssl = False
    elif raw_verify and raw_verify not in _TRUE_VALUES:
        errors.append(f"{ENV_VERIFY_SSL} must be true or false, got {raw_verify!r}")

    return RequestConfig(timeout=timeout, verify_ssl=verify_ssl)


def _environment(dotenv_path: Optional[str] = None) -> dict[str, str]:
    """Merge a `.env` file under the process environment; process values win."""
    path = dotenv_path if dotenv_path is not None else find_dotenv(usecwd=True)
    env: dict[str, str] = {}
    if path:
        env.update((k, v) for k, v in dotenv_values(path).items() if v is not None)
    env.update(os.environ)
    return env


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[str] = None,
) -> Settings:
    """Build :class:`~oktadpop.models.Settings` from environment variables.

    Args:
        environ: Mapping to read from. Defaults to ``os.environ`` layered
            over the nearest `.env` file.
        dotenv_path: Explicit `.env` file, used only when *environ* is not
            given. Defaults to searching from the working directory upwards.

    Returns:
        The validated, frozen settings.

    Raises:
        ConfigError: If any required variable is missing or malformed. The
            message lists every problem found, one per line.
    """
    env = _environment(dotenv_path) if environ is None else environ
    errors: list[str] = []

    domain = env.get(ENV_ORG_URL, "").strip()
    client_id = env.get(ENV_CLIENT_ID, "").strip()
    scopes = parse_scopes(env.get(ENV_SCOPES, ""))
    if not domain:
        errors.append(f"Missing {ENV_ORG_URL}")
    if not client_id:
        errors.append(f"Missing {ENV_CLIENT_ID}")
    if not scopes:
        errors.append(f"Missing {ENV_SCOPES}")

    cc_key = _key_source(env, ENV_CC_PRIVATE_KEY, errors)
    dpop_private = _key_source(env, ENV_DPOP_PRIVATE_KEY, errors)
    dpop_public = _key_source(env, ENV_DPOP_PUBLIC_KEY, errors, required=False)
    request = _request_config(env, errors)

    identity: Optional[ServiceIdentity] = None
    if domain and client_id and scopes:
        try:
            identity = ServiceIdentity(domain=domain, client_id=client_id, scopes=scopes)
        except ValidationError as exc:
            errors.extend(f"{err['loc'][0]}: {err['msg']}" for err in exc.errors())

    if errors:
        raise ConfigError("Invalid configuration:\n  " + "\n  ".join(errors))

    assert identity is not None and cc_key is not None and dpop_private is not None
    return Settings(
        identity=identity,
        client_assertion_key=cc_key,
        dpop_private_key=dpop_private,
        dpop_public_key=dpop_public,
        request=request,
    )

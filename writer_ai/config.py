"""
Central configuration loader for the Writer AI service.

Reads ``~/.config/writer_ai_service/config.yaml`` and an adjacent ``.env``,
merges environment-variable overrides (``WRITER_AI_`` prefix) and the
standard ``OPENAI_*`` credential variables, and builds an immutable
:class:`Settings` value.  Components receive that value (or pieces of it)
as arguments; nothing outside this module reads the environment.
"""

import logging
import os
import threading
from dataclasses import dataclass, field, fields
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from writer_ai import __version__
from writer_ai.exceptions import ConfigurationError
from writer_ai.providers.family import ProviderFamily, classify_provider

logger = logging.getLogger(__name__)

APP_DIR_NAME = "writer_ai_service"
TEMPLATE_PARAM_KEY = "prompt_template"
TEMPLATE_PLACEHOLDER = "{{input}}"


def default_config_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Return the config file location (``WRITER_AI_CONFIG`` wins)."""
    env = os.environ if environ is None else environ
    override = env.get("WRITER_AI_CONFIG")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / APP_DIR_NAME / "config.yaml"


def default_cache_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Return the platform cache directory for the response cache."""
    env = os.environ if environ is None else environ
    base = env.get("XDG_CACHE_HOME") or str(Path.home() / ".cache")
    return Path(base).expanduser() / APP_DIR_NAME / "response_cache"


def mask_secret(value: Optional[str]) -> str:
    """Mask a credential for logging, keeping the first and last 4 chars."""
    if not value:
        return "[not set]"
    if len(value) <= 8:
        return "[too short]"
    return f"{value[:4]}...{value[-4:]}"


def freeze_params(params: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    """Build the read-only request-parameter overlay.

    The prompt template is applied before the request body is built, so a
    ``prompt_template`` key in the overrides would re-specify it.  Such a
    key is dropped here, with a warning, and can never reach a provider.

    Raises:
        ConfigurationError: If *params* is not a mapping.
    """
    if params is None:
        return MappingProxyType({})
    if not isinstance(params, Mapping):
        raise ConfigurationError(
            f"llm.params must be a mapping, got {type(params).__name__}"
        )
    cleaned = {str(k): v for k, v in params.items()}
    if TEMPLATE_PARAM_KEY in cleaned:
        logger.warning(
            "Ignoring prompt_template inside llm.params; "
            "set llm.prompt_template instead",
        )
        del cleaned[TEMPLATE_PARAM_KEY]
    return MappingProxyType(cleaned)


_TRUE_STRINGS = ("1", "true", "yes", "on")
_FALSE_STRINGS = ("0", "false", "no", "off")


def _as_int(value: Any, name: str) -> int:
    """Accept an int or a decimal string; reject bools, floats and the rest."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _as_float(value: Any, name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            pass
    raise ConfigurationError(f"{name} must be a number, got {value!r}")


def _as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


# ---------------------------------------------------------------------------
# Settings dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ApiSettings:
    host: str = "127.0.0.1"
    port: int = 8989
    version: str = __version__

    def __post_init__(self) -> None:
        object.__setattr__(self, "port", _as_int(self.port, "api.port"))
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"api.port out of range: {self.port}")


@dataclass(frozen=True)
class LlmSettings:
    """Provider endpoint, model and credentials.

    Attributes:
        url: Provider endpoint the request is POSTed to.
        model_name: Model identifier sent with every request.
        prompt_template: Optional template containing ``{{input}}``.
        params: Read-only overrides merged into the request body.
        api_key: Bearer token for providers that need one.
        org_id: Optional OpenAI organization id.
        project_id: Optional OpenAI project id.
        timeout_seconds: Per-call timeout for provider requests.
        family: Provider family, derived from ``url``.
    """

    url: str = "https://api.openai.com/v1/responses"
    model_name: str = "gpt-4o"
    prompt_template: Optional[str] = None
    params: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    api_key: Optional[str] = None
    org_id: Optional[str] = None
    project_id: Optional[str] = None
    timeout_seconds: float = 60.0
    family: ProviderFamily = field(init=False)

    def __post_init__(self) -> None:
        if not self.url or not self.url.strip():
            raise ConfigurationError("llm.url must not be empty")
        if not self.model_name or not self.model_name.strip():
            raise ConfigurationError("llm.model_name must not be empty")
        object.__setattr__(
            self, "timeout_seconds", _as_float(self.timeout_seconds, "llm.timeout_seconds")
        )
        if self.timeout_seconds <= 0:
            raise ConfigurationError("llm.timeout_seconds must be positive")
        if self.prompt_template is not None and TEMPLATE_PLACEHOLDER not in self.prompt_template:
            logger.warning(
                "Prompt template has no %s placeholder; input text will be ignored",
                TEMPLATE_PLACEHOLDER,
            )
        object.__setattr__(self, "params", freeze_params(self.params))
        object.__setattr__(self, "family", classify_provider(self.url))


@dataclass(frozen=True)
class CacheSettings:
    """Response cache configuration.

    ``max_size_mb`` is accepted and reported but no eviction policy
    enforces it.
    """

    enabled: bool = True
    ttl_days: int = 30
    max_size_mb: int = 100
    directory: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "enabled", _as_bool(self.enabled, "cache.enabled"))
        object.__setattr__(self, "ttl_days", _as_int(self.ttl_days, "cache.ttl_days"))
        object.__setattr__(
            self, "max_size_mb", _as_int(self.max_size_mb, "cache.max_size_mb")
        )
        if self.ttl_days < 0:
            raise ConfigurationError("cache.ttl_days must be >= 0")
        if self.max_size_mb < 0:
            raise ConfigurationError("cache.max_size_mb must be >= 0")


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"
    format: str = "json"

    def __post_init__(self) -> None:
        if self.format not in ("json", "text"):
            raise ConfigurationError(
                f"logging.format must be 'json' or 'text', got {self.format!r}"
            )


@dataclass(frozen=True)
class Settings:
    """Top-level settings container."""
    api: ApiSettings = field(default_factory=ApiSettings)
    llm: LlmSettings = field(default_factory=LlmSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


_SECTIONS = {
    "api": ApiSettings,
    "llm": LlmSettings,
    "cache": CacheSettings,
    "logging": LoggingSettings,
}


# ---------------------------------------------------------------------------
# YAML loader
# ---------------------------------------------------------------------------

def _load_yaml(path: Path) -> Dict[str, Any]:
    """Read and parse a YAML file.  Returns ``{}`` if the file is missing."""
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
    return data if isinstance(data, dict) else {}


def _section_values(name: str, data: Any) -> Dict[str, Any]:
    """Keep only the keys that the section dataclass accepts."""
    if not isinstance(data, dict):
        return {}
    accepted = {f.name for f in fields(_SECTIONS[name]) if f.init}
    values = {}
    for key, value in data.items():
        if key not in accepted:
            logger.warning("Unknown config key ignored: %s.%s", name, key)
            continue
        values[key] = value
    return values


# ---------------------------------------------------------------------------
# Env-var overrides  (WRITER_AI_SECTION_KEY  e.g. WRITER_AI_API_PORT)
# ---------------------------------------------------------------------------

_TYPE_MAP = {
    int: int,
    float: float,
    bool: lambda v: v.lower() in ("1", "true", "yes"),
    str: str,
}


def _apply_env_overrides(
    sections: Dict[str, Dict[str, Any]], environ: Mapping[str, str]
) -> None:
    """Override scalar fields via ``WRITER_AI_<SECTION>_<KEY>`` env vars."""
    for section_name, cls in _SECTIONS.items():
        defaults = cls()
        prefix = f"WRITER_AI_{section_name.upper()}_"
        for f in fields(cls):
            if not f.init or f.name == "params":
                continue
            env_key = prefix + f.name.upper()
            env_val = environ.get(env_key)
            if env_val is None:
                continue
            current = sections[section_name].get(f.name, getattr(defaults, f.name))
            cast = _TYPE_MAP.get(type(current), str)
            try:
                sections[section_name][f.name] = cast(env_val)
                logger.debug("Env override applied: %s", env_key)
            except (ValueError, TypeError):
                logger.warning("Invalid env override %s=%s", env_key, env_val)


_CREDENTIAL_ENV = {
    "api_key": "OPENAI_API_KEY",
    "org_id": "OPENAI_ORG_ID",
    "project_id": "OPENAI_PROJECT_ID",
}


def _apply_credential_env(
    llm: Dict[str, Any], environ: Mapping[str, str]
) -> None:
    """Fill unset credentials from the standard ``OPENAI_*`` variables."""
    for key, env_key in _CREDENTIAL_ENV.items():
        if llm.get(key):
            continue
        env_val = environ.get(env_key)
        if env_val:
            llm[key] = env_val
            logger.info("Using %s from environment", env_key)


def load_settings(
    config_path: Optional[Path] = None,
    env_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build a :class:`Settings` value from file and environment.

    1. Calls ``load_dotenv()`` on ``.env`` beside the config file.
    2. Reads the YAML config file.
    3. Applies ``WRITER_AI_*`` overrides, then ``OPENAI_*`` credentials.

    Args:
        config_path: Override the YAML config file path.
        env_path: Override the ``.env`` file path.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        A fully validated, immutable ``Settings``.

    Raises:
        ConfigurationError: If any value is invalid.
    """
    path = config_path or default_config_path(environ)
    load_dotenv(env_path or path.parent / ".env", override=False)
    env = os.environ if environ is None else environ

    raw = _load_yaml(path)
    sections = {name: _section_values(name, raw.get(name)) for name in _SECTIONS}
    _apply_env_overrides(sections, env)
    _apply_credential_env(sections["llm"], env)

    if not sections["cache"].get("directory"):
        sections["cache"]["directory"] = str(default_cache_dir(env))

    try:
        settings = Settings(
            api=ApiSettings(**sections["api"]),
            llm=LlmSettings(**sections["llm"]),
            cache=CacheSettings(**sections["cache"]),
            logging=LoggingSettings(**sections["logging"]),
        )
    except TypeError as exc:
        raise ConfigurationError(str(exc)) from exc

    if settings.llm.family.requires_api_key and not settings.llm.api_key:
        # Not fatal: the request fails with MissingCredentialError instead.
        logger.warning(
            "No API key configured for %s provider", settings.llm.family.value
        )

    logger.info(
        "Settings loaded",
        extra={
            "config_path": str(path),
            "provider_family": settings.llm.family.value,
            "model": settings.llm.model_name,
            "api_key": mask_secret(settings.llm.api_key),
        },
    )
    return settings


# ---------------------------------------------------------------------------
# Default config file
# ---------------------------------------------------------------------------

DEFAULT_PROMPT_TEMPLATE = """\
Improve the provided text input for clarity, grammar, and overall communication, \
ensuring it's fluently expressed in English.

# Steps

1. **Identify Errors**: Examine the input text for grammatical, spelling, and punctuation errors.
2. **Improve Clarity**: Rephrase sentences to improve clarity and flow while maintaining the original meaning.
3. **Ensure Fluency**: Adjust the text to sound natural and fluent in English.
4. **Check Consistency**: Ensure the tone remains consistent throughout the text.

# Output Format

- Provide a single improved version of the input text as a plain sentence or paragraph.
- Do not include the original text in the response.

{{input}}
"""


def _default_config_yaml() -> str:
    template = "\n".join(
        f"    {line}" if line else "" for line in DEFAULT_PROMPT_TEMPLATE.splitlines()
    )
    return f"""\
# Writer AI service configuration.
# Every scalar can be overridden with WRITER_AI_<SECTION>_<KEY>,
# e.g. WRITER_AI_API_PORT=9000.

api:
  host: 127.0.0.1
  port: 8989

llm:
  # OpenAI Responses API. Use http://localhost:11434/api/chat for Ollama.
  url: https://api.openai.com/v1/responses
  model_name: gpt-4o
  # Also read from OPENAI_API_KEY / OPENAI_ORG_ID / OPENAI_PROJECT_ID.
  api_key: ""
  # org_id: ""
  # project_id: ""
  timeout_seconds: 60
  params:
    temperature: 0.7
    max_output_tokens: 500
    top_p: 1
  prompt_template: |
{template}

cache:
  enabled: true
  ttl_days: 30
  max_size_mb: 100

logging:
  level: INFO
  format: json
"""


def write_default_config(path: Optional[Path] = None, force: bool = False) -> bool:
    """Create a default config file.

    Args:
        path: Destination (defaults to :func:`default_config_path`).
        force: Overwrite an existing file.

    Returns:
        ``True`` if a file was written, ``False`` if one already existed.
    """
    target = path or default_config_path()
    if target.exists() and not force:
        logger.info("Config file already exists: %s", target)
        return False
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(_default_config_yaml(), encoding="utf-8")
    logger.info("Created default config file at %s", target)
    return True


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Optional[Settings] = None
_lock = threading.Lock()


def get_settings(
    *,
    config_path: Optional[Path] = None,
    env_path: Optional[Path] = None,
    _force_reload: bool = False,
) -> Settings:
    """Return the process-wide :class:`Settings`, loading it on first use.

    Only entry points (CLI, app factory) call this; everything else is
    handed the value explicitly.
    """
    global _settings

    if _settings is not None and not _force_reload:
        return _settings

    with _lock:
        if _settings is not None and not _force_reload:
            return _settings
        _settings = load_settings(config_path=config_path, env_path=env_path)
        return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for testing)."""
    global _settings
    with _lock:
        _settings = None

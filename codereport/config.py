"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from pathlib import Path
from typing import Any

import yaml

from codereport.errors import ConfigInvalid
from codereport.models import Severity

CONFIG_VERSION = 1
REPORTS_DIR = ".codereports"
CONFIG_FILENAME = "config.yaml"


@dataclass(frozen=True)
class TagPolicy:
    severity: Severity = Severity.LOW
    expires: int | None = None  # Days until expiry; None = never expires
    enabled: bool = True

    def expires_at(self, created: date) -> date | None:
        if self.expires is None:
            return None
        return created + timedelta(days=self.expires)


# Policy for tags referenced by reports but missing from config
FALLBACK_POLICY = TagPolicy(severity=Severity.LOW, expires=None)

DEFAULT_TAGS: dict[str, TagPolicy] = {
    "todo": TagPolicy(Severity.LOW, None),
    "refactor": TagPolicy(Severity.MEDIUM, 180),
    "buggy": TagPolicy(Severity.HIGH, 90),
    "critical": TagPolicy(Severity.BLOCKING, 14),
}


@dataclass
class CodeReportConfig:
    tags: dict[str, TagPolicy] = field(default_factory=lambda: dict(DEFAULT_TAGS))
    version: int = CONFIG_VERSION

    def policy_for(self, tag: str) -> TagPolicy | None:
        return self.tags.get(tag.lower())

    def effective_policy(self, tag: str) -> TagPolicy:
        return self.policy_for(tag) or FALLBACK_POLICY

    @property
    def enabled_tags(self) -> list[str]:
        return sorted(name for name, policy in self.tags.items() if policy.enabled)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "tags": {
                name: {
                    "enabled": policy.enabled,
                    "severity": policy.severity.value,
                    "expires": policy.expires,
                }
                for name, policy in self.tags.items()
            },
        }


def config_path(repo_root: str | Path) -> Path:
    return Path(repo_root) / REPORTS_DIR / CONFIG_FILENAME


def load_config(repo_root: str | Path) -> CodeReportConfig:
    """Load .codereports/config.yaml merged over the built-in tag defaults.

    A missing file yields the defaults. Anything malformed raises ConfigInvalid.
    """
    path = config_path(repo_root)
    if not path.exists():
        return CodeReportConfig()

    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigInvalid(path, f"not valid YAML: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigInvalid(path, f"not UTF-8: {e}") from e
    except OSError as e:
        raise ConfigInvalid(path, f"unreadable: {e}") from e

    if raw is None:
        return CodeReportConfig()
    if not isinstance(raw, dict):
        raise ConfigInvalid(path, "top level must be a mapping")

    version = raw.get("version", CONFIG_VERSION)
    if version != CONFIG_VERSION:
        raise ConfigInvalid(path, f"unsupported config version: {version} (expected {CONFIG_VERSION})")

    tags_raw = raw.get("tags") or {}
    if not isinstance(tags_raw, dict):
        raise ConfigInvalid(path, "'tags' must be a mapping of tag name to policy")

    tags = dict(DEFAULT_TAGS)
    for name, entry in tags_raw.items():
        key = str(name).lower()
        tags[key] = _parse_tag_policy(path, key, entry or {}, tags.get(key))

    return CodeReportConfig(tags=tags, version=version)


def _parse_tag_policy(path: Path, name: str, entry: Any, base: TagPolicy | None) -> TagPolicy:
    if not isinstance(entry, dict):
        raise ConfigInvalid(path, f"tag '{name}' must be a mapping")
    base = base or TagPolicy()

    severity_raw = entry.get("severity", base.severity.value)
    try:
        severity = Severity(str(severity_raw).lower())
    except ValueError:
        raise ConfigInvalid(path, f"tag '{name}': unknown severity: {severity_raw}") from None

    # Accept the long spelling as an alias
    expires = entry.get("expires", entry.get("expiration_days", base.expires))
    if expires is not None:
        if isinstance(expires, bool) or not isinstance(expires, int) or expires < 0:
            raise ConfigInvalid(
                path, f"tag '{name}': expires must be a non-negative integer, got {expires!r}"
            )

    enabled = entry.get("enabled", base.enabled)
    if not isinstance(enabled, bool):
        raise ConfigInvalid(path, f"tag '{name}': enabled must be true or false")

    return TagPolicy(severity=severity, expires=expires, enabled=enabled)


def write_default_config(repo_root: str | Path) -> Path:
    """Write the default config.yaml. Returns its path."""
    path = config_path(repo_root)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(CodeReportConfig().to_dict(), sort_keys=False))
    return path

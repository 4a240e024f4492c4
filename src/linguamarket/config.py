"""Settlement configuration — identities, fee parameters and input limits.

Loaded from a JSON file (``SettlementConfig.from_config_file``) or from
``LINGUAMARKET_*`` environment variables, optionally seeded from a
``.env`` file (``SettlementConfig.from_env``). Unset values fall back to
the defaults below.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

ENV_PREFIX = "LINGUAMARKET_"
BASIS_POINTS = 10_000


@dataclass(frozen=True)
class SettlementConfig:
    """Static parameters of one settlement engine instance."""
    controller_id: str = "controller"
    escrow_account: str = "engine"
    platform_wallet: str = "platform"
    platform_fee_rate_bp: int = 500
    max_platform_fee_rate_bp: int = 1_000
    translator_share_bp: int = 7_000
    hash_length: int = 64
    max_language_length: int = 10
    min_approval_threshold: int = 1
    max_approval_threshold: int = 10
    require_registration: bool = False
    min_verifier_stake: int = 0
    log_level: str = "INFO"

    def validate(self) -> list[str]:
        """Return a list of configuration errors (empty = OK)."""
        errors: list[str] = []
        for name in ("controller_id", "escrow_account", "platform_wallet"):
            if not getattr(self, name):
                errors.append(f"{name} must be non-empty")
        if self.escrow_account == self.platform_wallet:
            errors.append("escrow_account and platform_wallet must differ")
        if not 0 <= self.max_platform_fee_rate_bp <= BASIS_POINTS:
            errors.append(
                f"max_platform_fee_rate_bp must be in [0, {BASIS_POINTS}], "
                f"got {self.max_platform_fee_rate_bp}"
            )
        if not 0 <= self.platform_fee_rate_bp <= self.max_platform_fee_rate_bp:
            errors.append(
                f"platform_fee_rate_bp must be in [0, {self.max_platform_fee_rate_bp}], "
                f"got {self.platform_fee_rate_bp}"
            )
        if not 0 <= self.translator_share_bp <= BASIS_POINTS:
            errors.append(
                f"translator_share_bp must be in [0, {BASIS_POINTS}], "
                f"got {self.translator_share_bp}"
            )
        if self.hash_length <= 0:
            errors.append("hash_length must be positive")
        if self.max_language_length <= 0:
            errors.append("max_language_length must be positive")
        if not 1 <= self.min_approval_threshold <= self.max_approval_threshold:
            errors.append(
                "approval thresholds must satisfy 1 <= min <= max, got "
                f"[{self.min_approval_threshold}, {self.max_approval_threshold}]"
            )
        if self.min_verifier_stake < 0:
            errors.append("min_verifier_stake must be non-negative")
        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            errors.append(f"log_level is not a logging level: {self.log_level!r}")
        return errors

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> SettlementConfig:
        """Build from a plain mapping. Unknown keys and invalid values raise ValueError."""
        known = {f.name: f for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        config = cls(**{k: _coerce(known[k].type, v) for k, v in data.items()})
        errors = config.validate()
        if errors:
            raise ValueError("Invalid configuration: " + "; ".join(errors))
        return config

    @classmethod
    def from_config_file(cls, path: Path) -> SettlementConfig:
        """Load from a JSON object file."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file must contain a JSON object: {path}")
        return cls.from_mapping(data)

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> SettlementConfig:
        """Load from LINGUAMARKET_* variables, after reading an optional .env file."""
        if environ is None:
            if env_file is not None:
                load_dotenv(env_file, override=False)
            environ = os.environ
        data: dict[str, Any] = {}
        for f in dataclasses.fields(cls):
            value = environ.get(ENV_PREFIX + f.name.upper())
            if value is not None:
                data[f.name] = value
        return cls.from_mapping(data)


def _coerce(type_name: Any, value: Any) -> Any:
    """Convert env/JSON values to the field's declared type."""
    # Annotations are strings under postponed evaluation.
    type_name = str(type_name)
    if type_name == "bool":
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"Not a boolean: {value!r}")
    if type_name == "int":
        if isinstance(value, bool):
            raise ValueError(f"Not an integer: {value!r}")
        return int(value)
    return str(value)

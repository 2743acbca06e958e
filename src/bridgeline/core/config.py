# src/bridgeline/core/config.py
"""
Configuration schema and loading for bridgeline.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

import os
import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from bridgeline.contracts.chain import DestinationContext


class BatchOptions(BaseModel):
    """Per-batch execution options.

    concurrency=1 (the default) is strictly sequential: bridging shares the
    signing account's nonce sequence on the source chain, so submission order
    matches input order. Raising it is only allowed when nonce allocation is
    serialized outside this process; then submission order is best-effort and
    results arrive in completion order.

    Example YAML:
        batch:
          concurrency: 2
          nonce_serialized_externally: true
          per_item_timeout_ms: 300000
    """

    model_config = {"frozen": True}

    concurrency: int = Field(default=1, gt=0, description="Maximum items approving/bridging at once")
    retry_failed_on_submit: bool = Field(
        default=False,
        description="Re-queue token ids that failed in an earlier batch instead of rejecting them",
    )
    per_item_timeout_ms: int = Field(
        default=600_000,
        gt=0,
        description="Time budget for all awaited chain calls of one item",
    )
    nonce_serialized_externally: bool = Field(
        default=False,
        description="Caller guarantees source-chain nonces are allocated serially elsewhere",
    )

    @model_validator(mode="after")
    def validate_parallel_nonces(self) -> "BatchOptions":
        """Parallel dispatch needs an external nonce guarantee."""
        if self.concurrency > 1 and not self.nonce_serialized_externally:
            raise ValueError(
                "concurrency > 1 requires nonce_serialized_externally=true "
                "(parallel bridge submissions share the signing account's nonce sequence)"
            )
        return self

    @property
    def per_item_timeout_seconds(self) -> float:
        return self.per_item_timeout_ms / 1000


class GateSettings(BaseModel):
    """PreCrime gate configuration.

    simulation_attempts counts TOTAL tries of the read-only simulation call,
    so 1 means no retry. Retries only apply when the simulation
    infrastructure faulted; a verdict is never retried.
    """

    model_config = {"frozen": True}

    simulation_attempts: int = Field(default=1, gt=0, description="Total forked-simulation attempts")
    initial_delay_seconds: float = Field(default=0.5, gt=0, description="Initial backoff between attempts")
    max_delay_seconds: float = Field(default=10.0, gt=0, description="Maximum backoff between attempts")
    exponential_base: float = Field(default=2.0, gt=1.0, description="Exponential backoff base")
    gas_warning_ratio: float = Field(
        default=0.9,
        gt=0,
        le=1.0,
        description="Warn when simulated gas use exceeds this share of the destination gas limit",
    )


class SourceChainSettings(BaseModel):
    """The chain NFTs are bridged from."""

    model_config = {"frozen": True}

    chain_id: int = Field(gt=0, description="EVM chain id the wallet must be connected to")
    name: str = Field(default="source", description="Human-readable chain name")


class DestinationSettings(BaseModel):
    """One destination chain, keyed by name in BridgeSettings.destinations."""

    model_config = {"frozen": True}

    chain_id: int = Field(gt=0)
    endpoint_id: int = Field(gt=0, description="LayerZero endpoint id (EID)")
    recipient: str = Field(description="Receiving address on the destination chain")
    contract_address: str | None = Field(default=None, description="Destination ONFT (peer) contract")
    pre_crime_address: str | None = Field(default=None, description="PreCrime contract used for simulation")

    @field_validator("recipient", "contract_address", "pre_crime_address")
    @classmethod
    def validate_address(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if not re.fullmatch(r"0x[0-9a-fA-F]{40}", v):
            raise ValueError(f"not a 20-byte hex address: {v!r}")
        return v

    def to_context(self, name: str) -> DestinationContext:
        return DestinationContext(
            chain_id=self.chain_id,
            name=name,
            endpoint_id=self.endpoint_id,
            recipient=self.recipient,
            contract_address=self.contract_address,
            pre_crime_address=self.pre_crime_address,
        )


class ChainSettings(BaseModel):
    """Chain-interaction capability selection.

    Only the in-memory "scripted" chain ships with bridgeline; real chain
    clients are supplied by the embedding application.
    """

    model_config = {"frozen": True}

    plugin: Literal["scripted"] = "scripted"
    options: dict[str, Any] = Field(default_factory=dict)


class LoggingSettings(BaseModel):
    """Logging output configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    json_output: bool = False


class TelemetrySettings(BaseModel):
    """OpenTelemetry tracing configuration."""

    model_config = {"frozen": True}

    tracing_enabled: bool = False
    service_name: str = "bridgeline"


class BridgeSettings(BaseModel):
    """Top-level bridgeline configuration.

    Example YAML:
        source:
          chain_id: 11155111
          name: sepolia
        destinations:
          base-sepolia:
            chain_id: 84532
            endpoint_id: 40245
            recipient: "0x..."
        batch:
          concurrency: 1
    """

    model_config = {"frozen": True}

    source: SourceChainSettings
    destinations: dict[str, DestinationSettings] = Field(description="Named destination chains")
    default_destination: str | None = Field(
        default=None,
        description="Destination used when none is given (defaults to the only one configured)",
    )
    batch: BatchOptions = Field(default_factory=BatchOptions)
    gate: GateSettings = Field(default_factory=GateSettings)
    chain: ChainSettings = Field(default_factory=ChainSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)

    @field_validator("destinations")
    @classmethod
    def validate_destinations_not_empty(cls, v: dict[str, DestinationSettings]) -> dict[str, DestinationSettings]:
        if not v:
            raise ValueError("At least one destination is required")
        return v

    @model_validator(mode="after")
    def validate_default_destination(self) -> "BridgeSettings":
        if self.default_destination is not None and self.default_destination not in self.destinations:
            raise ValueError(
                f"default_destination '{self.default_destination}' is not one of: {', '.join(sorted(self.destinations))}"
            )
        return self

    def destination(self, name: str | None = None) -> DestinationContext:
        """Resolve a destination by name, falling back to the default.

        Raises:
            KeyError: If the name is unknown, or no name was given and the
                default is ambiguous.
        """
        if name is None:
            name = self.default_destination
        if name is None:
            if len(self.destinations) != 1:
                raise KeyError("several destinations configured and no default_destination set")
            name = next(iter(self.destinations))
        if name not in self.destinations:
            raise KeyError(f"unknown destination '{name}'")
        return self.destinations[name].to_context(name)


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values."""

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            default = match.group(2)
            if default is not None:
                return default
            # Unset and no default: leave it for validation to reject
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        if isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        if isinstance(value, list):
            return [_expand_value(item) for item in value]
        return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lower_keys(value: Any) -> Any:
    """Dynaconf upper-cases top-level keys; lower-case every mapping key for Pydantic.

    Destination names are kept as written except for case: YAML keys are
    conventionally lower-case already.
    """
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_lower_keys(item) for item in value]
    return value


def load_settings(config_path: Path) -> BridgeSettings:
    """Load settings from a YAML file with environment variable overrides.

    Precedence (highest first):
    1. Environment variables (BRIDGELINE_*), nested keys with "__",
       e.g. BRIDGELINE_BATCH__CONCURRENCY=2
    2. Config file
    3. Defaults from the Pydantic schema

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValidationError: If configuration fails Pydantic validation
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="BRIDGELINE",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k: v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    raw_config = _lower_keys(raw_config)
    raw_config = _expand_env_vars(raw_config)

    return BridgeSettings(**raw_config)


def resolve_config(settings: BridgeSettings) -> dict[str, Any]:
    """Convert validated settings to a JSON-ready dict (explicit values + defaults)."""
    return settings.model_dump(mode="json")

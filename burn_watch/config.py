from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)
from solders.pubkey import Pubkey

from burn_watch.errors import ConfigurationError

SPL_TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"  # official mainnet USDC mint

KNOWN_SINKS = ("stdout", "file", "database")


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(".env",),
        env_prefix="BW_",
        extra="ignore",
        yaml_file="config/burn_watch.yaml",
    )

    # Solana
    sol_rpc_url: str = "https://api.mainnet-beta.solana.com"
    mint_address: str = USDC_MINT
    # Comma-separated; Token-2022 shares the Burn/BurnChecked layouts
    token_program_ids: str = f"{SPL_TOKEN_PROGRAM_ID},{TOKEN_2022_PROGRAM_ID}"
    commitment: str = "confirmed"
    request_timeout_sec: float = 15.0
    check_endpoint: bool = True  # call getHealth before the loop starts

    # Polling
    poll_interval_sec: float = 10.0
    initial_lookback: int = 20  # signatures read on the first cycle when no cursor exists
    scan_page_limit: int = 1000  # getSignaturesForAddress limit per page (1-1000)
    scan_max_pages: int = 10

    # Dedup
    dedup_capacity: int = 10_000

    # Backoff around RPC calls
    backoff_initial_sec: float = 1.0
    backoff_multiplier: float = 2.0
    backoff_max_sec: float = 60.0

    # Output
    sinks: str = "stdout"  # comma-separated: stdout,file,database
    output_path: str = "burns.jsonl"
    database_url: str = "sqlite+pysqlite:///burn_watch.db"
    persist_cursor: bool = False  # checkpoint the cursor in the database and resume on restart

    # Logging
    log_level: str = "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # env beats .env beats the optional YAML file
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    # --- Validators to fall back to defaults when optional envs are set but empty ---
    @field_validator("token_program_ids", "sinks", "commitment", "log_level", mode="before")
    @classmethod
    def _empty_str_to_default(cls, v, info):
        if v == "":
            return cls.model_fields[info.field_name].default
        return v

    def token_programs(self) -> frozenset[str]:
        return frozenset(x.strip() for x in self.token_program_ids.split(",") if x.strip())

    def sink_names(self) -> list[str]:
        names: list[str] = []
        for raw in self.sinks.split(","):
            name = raw.strip().lower()
            if name and name not in names:
                names.append(name)
        return names

    def ensure_valid(self) -> None:
        """
        Raise ConfigurationError for settings the watcher cannot run with.
        Called once at startup, before the poll loop.
        """
        for label, addr in [("mint_address", self.mint_address)] + [
            ("token_program_ids", p) for p in sorted(self.token_programs())
        ]:
            try:
                Pubkey.from_string(addr)
            except ValueError as e:
                raise ConfigurationError(f"{label}: invalid base58 address {addr!r}") from e
        if not self.token_programs():
            raise ConfigurationError("token_program_ids must list at least one program")
        if not self.sol_rpc_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"sol_rpc_url must be an http(s) URL: {self.sol_rpc_url!r}")
        if self.poll_interval_sec <= 0:
            raise ConfigurationError("poll_interval_sec must be positive")
        if self.dedup_capacity <= 0:
            raise ConfigurationError("dedup_capacity must be positive")
        if not (1 <= self.scan_page_limit <= 1000):
            raise ConfigurationError("scan_page_limit must be between 1 and 1000")
        if not (1 <= self.initial_lookback <= 1000):
            raise ConfigurationError("initial_lookback must be between 1 and 1000")
        if self.scan_max_pages < 1:
            raise ConfigurationError("scan_max_pages must be at least 1")
        if self.backoff_initial_sec <= 0 or self.backoff_max_sec < self.backoff_initial_sec:
            raise ConfigurationError("backoff_initial_sec must be positive and <= backoff_max_sec")
        if self.backoff_multiplier <= 1.0:
            raise ConfigurationError("backoff_multiplier must be greater than 1")
        unknown = [n for n in self.sink_names() if n not in KNOWN_SINKS]
        if unknown:
            raise ConfigurationError(f"unknown sink(s): {', '.join(unknown)}")
        if not self.sink_names():
            raise ConfigurationError("at least one sink must be configured")

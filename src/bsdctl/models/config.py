"""Configuration models."""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class HostProfile(BaseModel):
    """Connection profile for one managed host."""

    model_config = {"frozen": True}

    name: str = Field(..., min_length=1)
    hostname: str = Field(..., min_length=1)
    port: int = Field(22, ge=1, le=65535)
    user: str = "root"
    key_path: str = Field(..., min_length=1)

    @field_validator("key_path")
    @classmethod
    def expand_key_path(cls, v: str) -> str:
        """Expand a leading ~ in the key path.

        Args:
            v: Field value

        Returns:
            Expanded path
        """
        return str(Path(v).expanduser())

    @property
    def destination(self) -> str:
        """user@hostname, as used on an ssh command line."""
        return f"{self.user}@{self.hostname}"

    @property
    def known_hosts_name(self) -> str:
        """Host name as recorded in known_hosts (bracketed for non-standard ports)."""
        if self.port == 22:
            return self.hostname
        return f"[{self.hostname}]:{self.port}"


class Settings(BaseModel):
    """Tunable behaviour shared by all hosts."""

    connect_timeout: float = Field(10.0, gt=0)
    bootstrap_timeout: float = Field(15.0, gt=0)
    expected_system: str | None = "FreeBSD"
    replication_key_path: str = "~/.ssh/id_replication"
    scrub_settle_delay: float = Field(1.0, ge=0)
    vm_settle_delay: float = Field(2.0, ge=0)
    vm_restart_settle_delay: float = Field(3.0, ge=0)


class OutputConfig(BaseModel):
    """Output preferences."""

    confirm_destructive: bool = True

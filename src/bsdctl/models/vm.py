"""Virtual machine (vm-bhyve) models."""

from enum import Enum

from pydantic import BaseModel, Field


class VMState(str, Enum):
    """Run state reported by `vm list`."""

    RUNNING = "running"
    STOPPED = "stopped"
    LOCKED = "locked"
    UNKNOWN = "unknown"


class VirtualMachine(BaseModel):
    """One row of `vm list`."""

    model_config = {"frozen": True}

    name: str
    datastore: str = "default"
    loader: str = "-"
    cpu: str = "-"
    memory: str = "-"
    vnc: str = "-"
    autostart: bool = False
    state: VMState = VMState.UNKNOWN
    pid: int | None = None

    @property
    def is_running(self) -> bool:
        return self.state is VMState.RUNNING


class VMInfo(BaseModel):
    """Detailed information from `vm info <name>`."""

    model_config = {"frozen": True}

    name: str
    cpu: str | None = None
    memory: str | None = None
    loader: str | None = None
    autostart: bool = False
    state: str | None = None
    disks: list[dict[str, str]] = Field(default_factory=list)
    networks: list[dict[str, str]] = Field(default_factory=list)
    properties: dict[str, str] = Field(default_factory=dict)


class VMBhyveStatus(BaseModel):
    """Whether vm-bhyve is installed and enabled on the host."""

    model_config = {"frozen": True}

    installed: bool = False
    enabled: bool = False
    vm_dir: str | None = None

    @property
    def usable(self) -> bool:
        return self.installed and self.enabled and bool(self.vm_dir)


class VMCreateOptions(BaseModel):
    """Options for `vm create`."""

    name: str = Field(..., min_length=1)
    template: str = "default"
    disk_size: str = "20G"
    cpu: int = Field(1, ge=1)
    memory: str = "512M"
    datastore: str | None = None

"""Network models: interfaces, wireless, bridges, switches and routes."""

from enum import Enum

from pydantic import BaseModel, Field


class InterfaceType(str, Enum):
    """Interface family, derived from the driver name and flags."""

    ETHERNET = "ethernet"
    WIRELESS = "wireless"
    BRIDGE = "bridge"
    TAP = "tap"
    EPAIR = "epair"
    LOOPBACK = "loopback"
    VLAN = "vlan"
    LAGG = "lagg"
    OTHER = "other"


class InterfaceStatus(str, Enum):
    """Link status."""

    UP = "up"
    DOWN = "down"
    NO_CARRIER = "no_carrier"
    UNKNOWN = "unknown"


# Cloned interface types which may be destroyed with `ifconfig X destroy`.
DESTROYABLE_TYPES = frozenset(
    {
        InterfaceType.BRIDGE,
        InterfaceType.TAP,
        InterfaceType.EPAIR,
        InterfaceType.VLAN,
        InterfaceType.LAGG,
    }
)


class NetworkInterface(BaseModel):
    """A network interface from `ifconfig -a`, merged with counters."""

    model_config = {"frozen": True}

    name: str
    type: InterfaceType = InterfaceType.OTHER
    status: InterfaceStatus = InterfaceStatus.UNKNOWN
    mac: str | None = None
    ipv4: str | None = None
    ipv4_netmask: str | None = None
    ipv6: str | None = None
    ipv6_prefix: int | None = None
    mtu: int | None = None
    dhcp: bool = False
    media: str | None = None
    flags: list[str] = Field(default_factory=list)
    description: str | None = None
    groups: list[str] = Field(default_factory=list)
    rx_bytes: int = 0
    tx_bytes: int = 0
    rx_packets: int = 0
    tx_packets: int = 0
    rx_errors: int = 0
    tx_errors: int = 0

    @property
    def is_destroyable(self) -> bool:
        return self.type in DESTROYABLE_TYPES

    @property
    def is_up(self) -> bool:
        return "UP" in self.flags


class InterfaceStats(BaseModel):
    """Per-interface counters from `netstat -ibn`."""

    model_config = {"frozen": True}

    name: str
    rx_packets: int = 0
    rx_errors: int = 0
    rx_bytes: int = 0
    tx_packets: int = 0
    tx_errors: int = 0
    tx_bytes: int = 0


class WirelessSecurity(str, Enum):
    """Advertised security of a wireless network."""

    OPEN = "open"
    WEP = "wep"
    WPA = "wpa"
    WPA2 = "wpa2"


class WirelessNetwork(BaseModel):
    """One result of `ifconfig <wlan> scan`."""

    model_config = {"frozen": True}

    ssid: str
    bssid: str
    channel: int = 0
    rate: str = "-"
    rssi: int = -100
    noise: int = -95
    security: WirelessSecurity = WirelessSecurity.OPEN
    is_connected: bool = False

    @property
    def signal_quality(self) -> int:
        """RSSI mapped from [-90, -30] dBm onto 0-100."""
        clamped = max(-90, min(-30, self.rssi))
        return round((clamped + 90) * 100 / 60)

    @property
    def is_secured(self) -> bool:
        return self.security is not WirelessSecurity.OPEN


class WirelessStatus(BaseModel):
    """Association state of a wireless interface."""

    model_config = {"frozen": True}

    interface: str
    ssid: str | None = None
    bssid: str | None = None
    channel: int | None = None
    rssi: int | None = None
    rate: str | None = None
    auth_mode: str | None = None
    associated: bool = False


class BridgeInterface(BaseModel):
    """A bridge and its member ports."""

    model_config = {"frozen": True}

    name: str
    members: list[str] = Field(default_factory=list)
    ipv4: str | None = None
    ipv4_netmask: str | None = None
    status: InterfaceStatus = InterfaceStatus.UNKNOWN
    stp: bool = False


class VMSwitch(BaseModel):
    """A vm-bhyve virtual switch from `vm switch list`."""

    model_config = {"frozen": True}

    name: str
    type: str = "standard"
    iface: str | None = None
    address: str | None = None
    is_private: bool = False
    mtu: int | None = None
    vlan: int | None = None
    ports: list[str] = Field(default_factory=list)


# netstat(1) routing flags.
ROUTE_FLAGS = {
    "U": "up",
    "G": "gateway",
    "H": "host",
    "S": "static",
    "B": "blackhole",
    "R": "reject",
    "D": "dynamic",
    "M": "modified",
    "C": "cloning",
    "L": "link",
    "1": "protocol 1",
    "2": "protocol 2",
    "3": "protocol 3",
}


class RouteEntry(BaseModel):
    """One row of `netstat -rn`."""

    model_config = {"frozen": True}

    destination: str
    gateway: str
    flags: str = ""
    netif: str = ""
    expire: str | None = None

    @property
    def is_default(self) -> bool:
        return self.destination == "default"

    @property
    def is_ipv6(self) -> bool:
        return ":" in self.destination or ":" in self.gateway

    @property
    def flag_descriptions(self) -> list[str]:
        return [ROUTE_FLAGS[flag] for flag in self.flags if flag in ROUTE_FLAGS]

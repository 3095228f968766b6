"""Network interface, wireless, bridge, switch and route operations."""

import hashlib
import ipaddress
import logging

from ..models.network import (
    DESTROYABLE_TYPES,
    BridgeInterface,
    InterfaceType,
    NetworkInterface,
    RouteEntry,
    VMSwitch,
    WirelessNetwork,
    WirelessStatus,
)
from ..parsers.network import (
    parse_bridges,
    parse_interface_names,
    parse_interface_stats,
    parse_interfaces,
    parse_rc_conf,
    parse_routes,
    parse_vm_switches,
    parse_wireless_scan,
    parse_wireless_status,
)
from ..remote.exceptions import InvalidArgumentError
from ..remote.session import Session
from ..utils.shell import join, quote, require

logger = logging.getLogger(__name__)

WPA_SUPPLICANT_CONF = "/etc/wpa_supplicant.conf"

_CLONED_PREFIXES = ("bridge", "tap", "epair", "vlan", "lagg")
_BRIDGEABLE_TYPES = frozenset(
    {
        InterfaceType.ETHERNET,
        InterfaceType.TAP,
        InterfaceType.EPAIR,
        InterfaceType.VLAN,
        InterfaceType.LAGG,
    }
)


def _validate_ipv4(value: str, what: str) -> str:
    value = require(value, what)
    try:
        ipaddress.IPv4Address(value)
    except ValueError as e:
        raise InvalidArgumentError(f"{what} '{value}' is not an IPv4 address") from e
    return value


def _is_ipv6(*values: str | None) -> bool:
    return any(value and ":" in value for value in values)


# Interfaces


async def list_interfaces(session: Session) -> list[NetworkInterface]:
    """List interfaces with counters and DHCP configuration."""
    output = await session.execute("ifconfig -a")
    stats = parse_interface_stats(await session.execute("netstat -ibn"))
    rc_conf = parse_rc_conf(await session.execute("sysrc -a"))
    return parse_interfaces(output, stats, rc_conf)


async def set_interface_up(session: Session, name: str) -> None:
    await session.execute(f"ifconfig {quote(require(name, 'Interface'))} up")
    logger.info("Brought up %s", name)


async def set_interface_down(session: Session, name: str) -> None:
    await session.execute(f"ifconfig {quote(require(name, 'Interface'))} down")
    logger.info("Brought down %s", name)


async def renew_dhcp(session: Session, name: str) -> None:
    await session.execute(f"dhclient {quote(require(name, 'Interface'))}")
    logger.info("Renewed DHCP lease on %s", name)


async def configure_dhcp(session: Session, name: str) -> None:
    """Persist DHCP configuration for an interface and request a lease."""
    name = require(name, "Interface")
    await session.execute(f"sysrc {quote(f'ifconfig_{name}=DHCP')} && dhclient {quote(name)}")
    logger.info("Configured %s for DHCP", name)


async def configure_static(
    session: Session,
    name: str,
    address: str,
    netmask: str,
    gateway: str | None = None,
) -> None:
    """Persist and apply a static IPv4 address, and optionally the default route.

    Args:
        session: Session to the host
        name: Interface name
        address: IPv4 address
        netmask: Dotted netmask
        gateway: Default router, left untouched when None
    """
    name = require(name, "Interface")
    address = _validate_ipv4(address, "Address")
    netmask = _validate_ipv4(netmask, "Netmask")
    config = f"inet {address} netmask {netmask}"
    commands = [
        f"sysrc {quote(f'ifconfig_{name}={config}')}",
        f"ifconfig {quote(name)} inet {quote(address)} netmask {quote(netmask)}",
    ]
    if gateway:
        gateway = _validate_ipv4(gateway, "Gateway")
        commands += [
            f"sysrc {quote(f'defaultrouter={gateway}')}",
            "(route delete default >/dev/null 2>&1 || true)",
            f"route add default {quote(gateway)}",
        ]
    await session.execute(" && ".join(commands))
    logger.info("Configured %s with %s/%s", name, address, netmask)


async def set_mtu(session: Session, name: str, mtu: int) -> None:
    if not 68 <= mtu <= 65535:
        raise InvalidArgumentError(f"MTU {mtu} out of range (68-65535)")
    await session.execute(f"ifconfig {quote(require(name, 'Interface'))} mtu {int(mtu)}")
    logger.info("Set MTU of %s to %d", name, mtu)


async def set_description(session: Session, name: str, description: str) -> None:
    """Set or, with an empty description, clear an interface description."""
    name = require(name, "Interface")
    if description.strip():
        await session.execute(f"ifconfig {quote(name)} description {quote(description.strip())}")
    else:
        await session.execute(f"ifconfig {quote(name)} -description")
    logger.info("Updated description of %s", name)


def is_cloned_interface(name: str) -> bool:
    """Whether an interface name belongs to a destroyable cloned type."""
    return name.startswith(_CLONED_PREFIXES) or "." in name


async def destroy_interface(session: Session, interface: NetworkInterface | str) -> None:
    """Destroy a cloned interface (bridge, tap, epair, vlan or lagg).

    Raises:
        InvalidArgumentError: For physical or loopback interfaces
    """
    if isinstance(interface, NetworkInterface):
        name, destroyable = interface.name, interface.type in DESTROYABLE_TYPES
    else:
        name = require(interface, "Interface")
        destroyable = is_cloned_interface(name)
    if not destroyable:
        raise InvalidArgumentError(f"{name} is not a cloned interface and cannot be destroyed")
    await session.execute(f"ifconfig {quote(name)} destroy")
    logger.info("Destroyed interface %s", name)


# Wireless


async def get_wireless_interface(session: Session) -> str | None:
    """First interface in the wlan group, or None."""
    names = parse_interface_names(await session.execute("ifconfig -g wlan 2>/dev/null || true"))
    return names[0] if names else None


async def _wireless_interface(session: Session, interface: str | None) -> str:
    if interface:
        return require(interface, "Interface")
    found = await get_wireless_interface(session)
    if found is None:
        raise InvalidArgumentError(f"No wireless interface on {session.profile.name}")
    return found


async def get_wireless_status(session: Session, interface: str | None = None) -> WirelessStatus | None:
    """Association state of the wireless interface, None if there is none."""
    if interface is None:
        interface = await get_wireless_interface(session)
        if interface is None:
            return None
    output = await session.execute(f"ifconfig {quote(interface)}")
    return parse_wireless_status(interface, output)


async def scan_wireless(session: Session, interface: str | None = None) -> list[WirelessNetwork]:
    """Scan for networks, marking the one currently associated."""
    interface = await _wireless_interface(session, interface)
    status = await get_wireless_status(session, interface)
    output = await session.execute(f"ifconfig {quote(interface)} up scan")
    connected = status.bssid if status is not None and status.associated else None
    return parse_wireless_scan(output, connected)


def wpa_psk(ssid: str, passphrase: str) -> str:
    """Derive the 256-bit WPA PSK, as wpa_passphrase does."""
    return hashlib.pbkdf2_hmac("sha1", passphrase.encode(), ssid.encode(), 4096, 32).hex()


def wpa_supplicant_config(ssid: str, password: str | None = None) -> str:
    """Render a wpa_supplicant.conf for a single network.

    The SSID is written hex-encoded and the passphrase is stored as the
    derived PSK, so neither needs escaping and the plaintext never lands
    on disk.
    """
    if password is not None and not 8 <= len(password) <= 63:
        raise InvalidArgumentError("WPA passphrase must be 8 to 63 characters")
    lines = [
        "ctrl_interface=/var/run/wpa_supplicant",
        "network={",
        f"\tssid={ssid.encode().hex()}",
        "\tscan_ssid=1",
    ]
    if password is None:
        lines.append("\tkey_mgmt=NONE")
    else:
        lines.append(f"\tpsk={wpa_psk(ssid, password)}")
    lines.append("}")
    return "\n".join(lines) + "\n"


async def connect_wireless(
    session: Session,
    ssid: str,
    password: str | None = None,
    interface: str | None = None,
) -> None:
    """Join a wireless network and request a DHCP lease.

    Args:
        session: Session to the host
        ssid: Network name
        password: WPA passphrase, None for an open network
        interface: Wireless interface, detected when None
    """
    ssid = require(ssid, "SSID")
    interface = await _wireless_interface(session, interface)
    config = wpa_supplicant_config(ssid, password)
    conf = quote(WPA_SUPPLICANT_CONF)
    command = " && ".join(
        [
            f"printf '%s' {quote(config)} > {conf}",
            f"chmod 600 {conf}",
            f"(wpa_cli -i {quote(interface)} reconfigure >/dev/null 2>&1"
            f" || wpa_supplicant -B -i {quote(interface)} -c {conf})",
            f"dhclient {quote(interface)}",
        ]
    )
    redacted = f"<write {WPA_SUPPLICANT_CONF} for {ssid!r}> && dhclient {interface}"
    await session.execute(command, log_as=redacted)
    logger.info("Connected %s to %s", interface, ssid)


async def disconnect_wireless(session: Session, interface: str | None = None) -> None:
    interface = await _wireless_interface(session, interface)
    await session.execute(f"wpa_cli -i {quote(interface)} disconnect")
    logger.info("Disconnected %s", interface)


# Bridges


async def list_bridges(session: Session) -> list[BridgeInterface]:
    return parse_bridges(await session.execute("ifconfig -a"))


async def list_bridgeable_interfaces(session: Session) -> list[str]:
    """Interfaces that can join a bridge and are not already members of one."""
    output = await session.execute("ifconfig -a")
    members = {member for bridge in parse_bridges(output) for member in bridge.members}
    return [
        interface.name
        for interface in parse_interfaces(output)
        if interface.type in _BRIDGEABLE_TYPES and interface.name not in members
    ]


def _require_bridge(name: str) -> str:
    name = require(name, "Bridge")
    if not name.startswith("bridge"):
        raise InvalidArgumentError(f"Bridge names must start with 'bridge', got '{name}'")
    return name


async def create_bridge(
    session: Session,
    name: str,
    members: list[str],
    address: str | None = None,
    netmask: str | None = None,
    stp: bool = False,
) -> None:
    """Create a bridge, apply it now and persist it in rc.conf.

    Args:
        session: Session to the host
        name: Bridge name, such as bridge0
        members: Member interfaces
        address: Optional IPv4 address for the bridge
        netmask: Netmask for the address
        stp: Enable spanning tree on every member
    """
    name = _require_bridge(name)
    members = [require(member, "Member") for member in members]

    config: list[str] = []
    for member in members:
        config += ["addm", member]
        if stp:
            config += ["stp", member]
    if address:
        config += ["inet", _validate_ipv4(address, "Address"), "netmask", _validate_ipv4(netmask or "", "Netmask")]
    config.append("up")

    commands = [
        f"ifconfig {quote(name)} create",
        f"ifconfig {quote(name)} {join(config)}",
        f"sysrc {quote(f'cloned_interfaces+={name}')}",
        f"sysrc {quote(f'ifconfig_{name}=' + ' '.join(config))}",
    ]
    await session.execute(" && ".join(commands))
    logger.info("Created %s with members %s", name, ", ".join(members) or "none")


async def delete_bridge(session: Session, name: str) -> None:
    """Destroy a bridge and remove it from rc.conf."""
    name = _require_bridge(name)
    commands = [
        f"ifconfig {quote(name)} destroy",
        f"sysrc {quote(f'cloned_interfaces-={name}')}",
        f"(sysrc -x {quote(f'ifconfig_{name}')} >/dev/null 2>&1 || true)",
    ]
    await session.execute(" && ".join(commands))
    logger.info("Deleted %s", name)


async def add_bridge_member(session: Session, bridge: str, member: str) -> None:
    bridge = _require_bridge(bridge)
    await session.execute(f"ifconfig {quote(bridge)} addm {quote(require(member, 'Member'))}")
    logger.info("Added %s to %s", member, bridge)


async def remove_bridge_member(session: Session, bridge: str, member: str) -> None:
    bridge = _require_bridge(bridge)
    await session.execute(f"ifconfig {quote(bridge)} deletem {quote(require(member, 'Member'))}")
    logger.info("Removed %s from %s", member, bridge)


# vm-bhyve switches


async def list_vm_switches(session: Session) -> list[VMSwitch]:
    return parse_vm_switches(await session.execute("vm switch list"))


async def create_vm_switch(
    session: Session,
    name: str,
    interface: str | None = None,
    address: str | None = None,
) -> None:
    """Create a standard switch, optionally with an uplink and an address."""
    name = require(name, "Switch")
    commands = [f"vm switch create {quote(name)}"]
    if interface:
        commands.append(f"vm switch add {quote(name)} {quote(interface.strip())}")
    if address:
        commands.append(f"vm switch address {quote(name)} {quote(address.strip())}")
    await session.execute(" && ".join(commands))
    logger.info("Created switch %s", name)


async def delete_vm_switch(session: Session, name: str) -> None:
    await session.execute(f"vm switch destroy {quote(require(name, 'Switch'))}")
    logger.info("Deleted switch %s", name)


# Routes


async def list_routes(session: Session, ipv6: bool = False) -> list[RouteEntry]:
    family = "inet6" if ipv6 else "inet"
    return parse_routes(await session.execute(f"netstat -rn -f {family}"))


async def add_route(session: Session, destination: str, gateway: str, netif: str | None = None) -> None:
    """Add a static route.

    Args:
        session: Session to the host
        destination: Network, host or "default"
        gateway: Next hop
        netif: Force the outgoing interface
    """
    destination = require(destination, "Destination")
    gateway = require(gateway, "Gateway")
    args = ["route", "add"]
    if _is_ipv6(destination, gateway):
        args.append("-inet6")
    args += [destination, gateway]
    if netif:
        args += ["-ifp", netif.strip()]
    await session.execute(join(args))
    logger.info("Added route %s via %s", destination, gateway)


async def delete_route(session: Session, destination: str, gateway: str | None = None) -> None:
    destination = require(destination, "Destination")
    args = ["route", "delete"]
    if _is_ipv6(destination, gateway):
        args.append("-inet6")
    args.append(destination)
    if gateway and not gateway.startswith("link#"):
        args.append(gateway)
    await session.execute(join(args))
    logger.info("Deleted route %s", destination)

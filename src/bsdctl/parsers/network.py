"""Parsers for ifconfig, netstat, sysrc and vm-bhyve switch output."""

import logging
import re

from ..models.network import (
    BridgeInterface,
    InterfaceStats,
    InterfaceStatus,
    InterfaceType,
    NetworkInterface,
    RouteEntry,
    VMSwitch,
    WirelessNetwork,
    WirelessSecurity,
    WirelessStatus,
)
from ..remote.exceptions import ParseError

logger = logging.getLogger(__name__)

_HEADER_RE = re.compile(r"^(?P<name>[A-Za-z0-9_.\-]+):\s+flags=[0-9a-f]+<(?P<flags>[^>]*)>(?P<rest>.*)$")
_MTU_RE = re.compile(r"\bmtu\s+(\d+)")
_MEMBER_RE = re.compile(r"^member:\s+(?P<name>\S+)\s+flags=[0-9a-f]+<(?P<flags>[^>]*)>")
_SCAN_RE = re.compile(
    r"^(?P<ssid>.*?)\s+"
    r"(?P<bssid>[0-9a-fA-F]{2}(?::[0-9a-fA-F]{2}){5})\s+"
    r"(?P<channel>\d+)\s+"
    r"(?P<rate>\S+)\s+"
    r"(?P<rssi>-?\d+):(?P<noise>-?\d+)\s+"
    r"(?P<interval>\d+)\s*"
    r"(?P<caps>[A-Z]*)"
    r"(?P<ies>.*)$"
)
_ASSOC_RE = re.compile(r'ssid\s+(?P<ssid>"[^"]*"|\S+)\s+channel\s+(?P<channel>\d+).*?\bbssid\s+(?P<bssid>\S+)')
_AUTHMODE_RE = re.compile(r"\bauthmode\s+(\S+)")

_TYPE_PREFIXES = (
    ("lo", InterfaceType.LOOPBACK),
    ("bridge", InterfaceType.BRIDGE),
    ("tap", InterfaceType.TAP),
    ("epair", InterfaceType.EPAIR),
    ("vlan", InterfaceType.VLAN),
    ("lagg", InterfaceType.LAGG),
    ("wlan", InterfaceType.WIRELESS),
)

_STATUS_WORDS = {
    "active": InterfaceStatus.UP,
    "associated": InterfaceStatus.UP,
    "running": InterfaceStatus.UP,
    "no carrier": InterfaceStatus.NO_CARRIER,
    "inactive": InterfaceStatus.DOWN,
    "down": InterfaceStatus.DOWN,
}


def hex_netmask_to_dotted(value: str) -> str:
    """Convert an ifconfig netmask such as 0xffffff00 to 255.255.255.0.

    Dotted values are returned unchanged.

    Raises:
        ParseError: If the value is neither form
    """
    if "." in value:
        return value
    try:
        mask = int(value, 16)
    except ValueError as e:
        raise ParseError(f"Bad netmask '{value}'", value) from e
    return ".".join(str((mask >> shift) & 0xFF) for shift in (24, 16, 8, 0))


def _split_blocks(output: str) -> list[tuple[re.Match[str], list[str]]]:
    """Split `ifconfig -a` into (header match, stripped body lines) per interface."""
    blocks: list[tuple[re.Match[str], list[str]]] = []
    for raw in output.splitlines():
        if not raw.strip():
            continue
        if not raw[0].isspace():
            match = _HEADER_RE.match(raw.rstrip())
            if match is None:
                logger.debug("Skipping unrecognised ifconfig line %r", raw)
                continue
            blocks.append((match, []))
        elif blocks:
            blocks[-1][1].append(raw.strip())
    return blocks


def _interface_type(name: str, body: list[str], groups: list[str]) -> InterfaceType:
    if "wlan" in groups:
        return InterfaceType.WIRELESS
    if any(line.startswith("vlan:") for line in body):
        return InterfaceType.VLAN
    for prefix, kind in _TYPE_PREFIXES:
        if name.startswith(prefix):
            return kind
    if any(line.startswith("ether ") for line in body):
        return InterfaceType.ETHERNET
    return InterfaceType.OTHER


def _interface_from_block(header: re.Match[str], body: list[str]) -> NetworkInterface:
    name = header.group("name")
    flags = [flag for flag in header.group("flags").split(",") if flag]
    values: dict[str, object] = {"name": name, "flags": flags}

    if match := _MTU_RE.search(header.group("rest")):
        values["mtu"] = int(match.group(1))

    groups: list[str] = []
    status_text = None
    for line in body:
        words = line.split()
        key = words[0]
        if key == "ether" and len(words) > 1:
            values["mac"] = words[1]
        elif key == "inet" and "ipv4" not in values and len(words) > 1:
            values["ipv4"] = words[1]
            if "netmask" in words and words.index("netmask") + 1 < len(words):
                values["ipv4_netmask"] = hex_netmask_to_dotted(words[words.index("netmask") + 1])
        elif key == "inet6" and len(words) > 1:
            address = words[1].split("%", 1)[0]
            # Prefer a global address over the link-local one
            if "ipv6" not in values or str(values["ipv6"]).startswith("fe80:"):
                values["ipv6"] = address
                if "prefixlen" in words and words.index("prefixlen") + 1 < len(words):
                    values["ipv6_prefix"] = int(words[words.index("prefixlen") + 1])
        elif key == "media:":
            values["media"] = line.split(":", 1)[1].strip()
        elif key == "status:":
            status_text = line.split(":", 1)[1].strip().lower()
        elif key == "description:":
            values["description"] = line.split(":", 1)[1].strip()
        elif key == "groups:":
            groups = words[1:]

    if status_text is not None:
        status = _STATUS_WORDS.get(status_text, InterfaceStatus.UNKNOWN)
    else:
        status = InterfaceStatus.UP if "UP" in flags else InterfaceStatus.DOWN
    values["status"] = status
    values["groups"] = groups
    values["type"] = _interface_type(name, body, groups)
    return NetworkInterface(**values)


def parse_interface_stats(output: str) -> dict[str, InterfaceStats]:
    """Parse the `<Link#N>` rows of `netstat -ibn`.

    Rows have 12 columns, or 11 when the address column is empty; the
    counters are read from the right.
    """
    stats: dict[str, InterfaceStats] = {}
    for line in output.splitlines():
        fields = line.split()
        if len(fields) not in (11, 12) or not fields[2].startswith("<Link"):
            continue
        try:
            stats[fields[0]] = InterfaceStats(
                name=fields[0],
                rx_packets=int(fields[-8]),
                rx_errors=int(fields[-7]),
                rx_bytes=int(fields[-5]),
                tx_packets=int(fields[-4]),
                tx_errors=int(fields[-3]),
                tx_bytes=int(fields[-2]),
            )
        except ValueError:
            logger.debug("Skipping netstat line %r", line)
    return stats


def parse_rc_conf(output: str) -> dict[str, str]:
    """Parse `sysrc -a` into a key/value map."""
    values: dict[str, str] = {}
    for line in output.splitlines():
        key, sep, value = line.partition(":")
        if not sep or not key.strip() or " " in key.strip():
            continue
        values[key.strip()] = value.strip()
    return values


def dhcp_interfaces(rc_conf: dict[str, str]) -> set[str]:
    """Interfaces configured with DHCP in rc.conf."""
    names = set()
    for key, value in rc_conf.items():
        if key.startswith("ifconfig_") and "DHCP" in value.upper():
            names.add(key[len("ifconfig_"):])
    return names


def parse_interfaces(
    output: str,
    stats: dict[str, InterfaceStats] | None = None,
    rc_conf: dict[str, str] | None = None,
) -> list[NetworkInterface]:
    """Parse `ifconfig -a`, merged with counters and DHCP configuration.

    Args:
        output: Output of `ifconfig -a`
        stats: Counters from parse_interface_stats
        rc_conf: Values from parse_rc_conf

    Returns:
        One NetworkInterface per interface block
    """
    stats = stats or {}
    dhcp = dhcp_interfaces(rc_conf or {})
    interfaces = []
    for header, body in _split_blocks(output):
        try:
            interface = _interface_from_block(header, body)
        except (ParseError, ValueError) as e:
            logger.debug("Skipping interface %s: %s", header.group("name"), e)
            continue
        update: dict[str, object] = {"dhcp": interface.name in dhcp}
        counters = stats.get(interface.name)
        if counters is not None:
            update.update(counters.model_dump(exclude={"name"}))
        interfaces.append(interface.model_copy(update=update))
    return interfaces


def parse_bridges(output: str) -> list[BridgeInterface]:
    """Extract bridges and their members from `ifconfig -a`."""
    bridges = []
    for header, body in _split_blocks(output):
        name = header.group("name")
        if not name.startswith("bridge"):
            continue
        members = []
        stp = False
        for line in body:
            if match := _MEMBER_RE.match(line):
                members.append(match.group("name"))
                stp = stp or "STP" in match.group("flags").split(",")
        try:
            interface = _interface_from_block(header, body)
        except (ParseError, ValueError) as e:
            logger.debug("Skipping bridge %s: %s", name, e)
            continue
        bridges.append(
            BridgeInterface(
                name=name,
                members=members,
                ipv4=interface.ipv4,
                ipv4_netmask=interface.ipv4_netmask,
                status=interface.status,
                stp=stp,
            )
        )
    return bridges


def parse_interface_names(output: str) -> list[str]:
    """Parse a whitespace separated interface list such as `ifconfig -l` output."""
    return output.split()


def _security(caps: str, ies: str) -> WirelessSecurity:
    if "RSN" in ies:
        return WirelessSecurity.WPA2
    if "WPA" in ies:
        return WirelessSecurity.WPA
    if "P" in caps:
        return WirelessSecurity.WEP
    return WirelessSecurity.OPEN


def parse_wireless_scan(output: str, connected_bssid: str | None = None) -> list[WirelessNetwork]:
    """Parse `ifconfig <wlan> scan`.

    Columns are anchored on the BSSID, so SSIDs containing spaces survive.

    Args:
        output: Scan output, header line included
        connected_bssid: BSSID of the current association, if any

    Returns:
        Networks with a visible SSID
    """
    networks = []
    connected = (connected_bssid or "").lower()
    for line in output.splitlines():
        if not line.strip() or line.lstrip().startswith("SSID"):
            continue
        match = _SCAN_RE.match(line.rstrip())
        if match is None:
            logger.debug("Skipping scan line %r", line)
            continue
        ssid = match.group("ssid").strip()
        if not ssid:
            logger.debug("Skipping hidden network %s", match.group("bssid"))
            continue
        bssid = match.group("bssid").lower()
        networks.append(
            WirelessNetwork(
                ssid=ssid,
                bssid=bssid,
                channel=int(match.group("channel")),
                rate=match.group("rate"),
                rssi=int(match.group("rssi")),
                noise=int(match.group("noise")),
                security=_security(match.group("caps"), match.group("ies")),
                is_connected=bool(connected) and bssid == connected,
            )
        )
    return networks


def parse_wireless_status(interface: str, output: str) -> WirelessStatus:
    """Parse `ifconfig <wlan>` into its association state."""
    values: dict[str, object] = {"interface": interface}
    text = " ".join(line.strip() for line in output.splitlines())
    if match := _ASSOC_RE.search(text):
        ssid = match.group("ssid").strip('"')
        values["ssid"] = ssid or None
        values["channel"] = int(match.group("channel"))
        values["bssid"] = match.group("bssid").lower()
    if match := _AUTHMODE_RE.search(text):
        values["auth_mode"] = match.group(1)
    for line in output.splitlines():
        line = line.strip()
        if line.startswith("status:"):
            values["associated"] = line.split(":", 1)[1].strip() == "associated"
    return WirelessStatus(**values)


def parse_route_line(line: str) -> RouteEntry:
    """Parse one row of `netstat -rn`."""
    fields = line.split()
    if len(fields) < 4:
        raise ParseError("Expected at least 4 columns", line)
    return RouteEntry(
        destination=fields[0],
        gateway=fields[1],
        flags=fields[2],
        netif=fields[3],
        expire=fields[4] if len(fields) > 4 else None,
    )


def parse_routes(output: str) -> list[RouteEntry]:
    """Parse `netstat -rn -f inet` or `-f inet6`."""
    routes = []
    for line in output.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(("Routing tables", "Internet", "Destination")):
            continue
        try:
            routes.append(parse_route_line(stripped))
        except ParseError as e:
            logger.debug("Skipping route line %r: %s", e.line, e)
    return routes


def _optional_int(value: str) -> int | None:
    return int(value) if value.isdigit() else None


def _optional_text(value: str) -> str | None:
    return None if value == "-" else value


def parse_vm_switch_line(line: str) -> VMSwitch:
    """Parse one row of `vm switch list`.

    Columns: NAME TYPE IFACE ADDRESS PRIVATE MTU VLAN PORTS, with PORTS
    empty for switches without uplinks.
    """
    fields = line.split()
    if len(fields) < 7:
        raise ParseError("Expected at least 7 columns", line)
    name, kind, iface, address, private, mtu, vlan = fields[:7]
    ports = [port for port in ",".join(fields[7:]).split(",") if port and port != "-"]
    return VMSwitch(
        name=name,
        type=kind,
        iface=_optional_text(iface),
        address=_optional_text(address),
        is_private=private.lower() == "yes",
        mtu=_optional_int(mtu),
        vlan=_optional_int(vlan),
        ports=ports,
    )


def parse_vm_switches(output: str) -> list[VMSwitch]:
    """Parse `vm switch list`."""
    switches = []
    for line in output.splitlines():
        if not line.strip() or line.startswith("NAME"):
            continue
        try:
            switches.append(parse_vm_switch_line(line))
        except ParseError as e:
            logger.debug("Skipping switch line %r: %s", e.line, e)
    return switches

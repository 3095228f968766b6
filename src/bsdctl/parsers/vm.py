"""Parsers for vm-bhyve output."""

import logging
import re

from ..models.vm import VirtualMachine, VMInfo, VMState
from ..remote.exceptions import ParseError

logger = logging.getLogger(__name__)

# AUTO and STATE may contain spaces: "Yes [1]", "Running (1234)"
_VM_LINE_RE = re.compile(
    r"^(?P<name>\S+)\s+(?P<datastore>\S+)\s+(?P<loader>\S+)\s+(?P<cpu>\S+)\s+"
    r"(?P<memory>\S+)\s+(?P<vnc>\S+)\s+(?P<auto>Yes(?:\s+\[\d+\])?|No)\s+(?P<state>.+?)\s*$"
)
_PID_RE = re.compile(r"\((\d+)\)")

_SECTIONS = {"virtual-disk": "disks", "network-interface": "networks"}


def _vm_state(text: str) -> tuple[VMState, int | None]:
    lowered = text.lower()
    pid = None
    if lowered.startswith("running"):
        match = _PID_RE.search(text)
        pid = int(match.group(1)) if match else None
        return VMState.RUNNING, pid
    if lowered.startswith("stopped"):
        return VMState.STOPPED, None
    if lowered.startswith("locked"):
        return VMState.LOCKED, None
    return VMState.UNKNOWN, None


def parse_vm_line(line: str) -> VirtualMachine:
    """Parse one row of `vm list`."""
    match = _VM_LINE_RE.match(line.rstrip())
    if match is None:
        raise ParseError("Unrecognised vm list row", line)
    state, pid = _vm_state(match.group("state"))
    return VirtualMachine(
        name=match.group("name"),
        datastore=match.group("datastore"),
        loader=match.group("loader"),
        cpu=match.group("cpu"),
        memory=match.group("memory"),
        vnc=match.group("vnc"),
        autostart=match.group("auto").startswith("Yes"),
        state=state,
        pid=pid,
    )


def parse_vms(output: str) -> list[VirtualMachine]:
    """Parse `vm list`, skipping the header and malformed rows."""
    vms = []
    for line in output.splitlines():
        if not line.strip() or line.startswith("NAME"):
            continue
        try:
            vms.append(parse_vm_line(line))
        except ParseError as e:
            logger.debug("Skipping vm line %r: %s", e.line, e)
    return vms


def parse_vm_info(name: str, output: str) -> VMInfo:
    """Parse `vm info <name>`.

    Top-level `key: value` lines become properties. Indented blocks under
    `virtual-disk` and `network-interface` headers become one dict per
    device; a `number:` key starts a new device.

    Args:
        name: VM name, used when the output does not name it
        output: Command output

    Returns:
        VMInfo
    """
    properties: dict[str, str] = {}
    devices: dict[str, list[dict[str, str]]] = {"disks": [], "networks": []}
    section: str | None = None
    section_indent = 0

    for raw in output.splitlines():
        if not raw.strip() or raw.strip().startswith("---"):
            continue
        indent = len(raw) - len(raw.lstrip())
        line = raw.strip()
        key, sep, value = line.partition(":")
        key, value = key.strip(), value.strip()

        if key == "Virtual Machine" and sep:
            name = value or name
            continue
        if not sep:
            section = line
            section_indent = indent
            if section in _SECTIONS:
                devices[_SECTIONS[section]].append({})
            continue
        if section is not None and indent > section_indent:
            target = _SECTIONS.get(section)
            if target is None:
                continue
            items = devices[target]
            if key == "number" and items and items[-1]:
                items.append({})
            items[-1][key] = value
            continue
        section = None
        properties[key] = value

    return VMInfo(
        name=name,
        cpu=properties.get("cpu"),
        memory=properties.get("memory"),
        loader=properties.get("loader"),
        autostart=properties.get("autostart", "").split(" ")[0].lower() in ("yes", "true", "on"),
        state=properties.get("state"),
        disks=[item for item in devices["disks"] if item],
        networks=[item for item in devices["networks"] if item],
        properties=properties,
    )

"""vm-bhyve virtual machine operations."""

import logging

from ..models.vm import VirtualMachine, VMBhyveStatus, VMCreateOptions, VMInfo
from ..parsers.vm import parse_vm_info, parse_vms
from ..remote.session import Session
from ..utils.shell import join, quote, require

logger = logging.getLogger(__name__)

_ENABLED_VALUES = frozenset({"yes", "true", "on", "1"})


async def check_vm_bhyve(session: Session) -> VMBhyveStatus:
    """Report whether vm-bhyve is installed, enabled and has a vm_dir."""
    installed = (await session.run("which vm")).exit_status == 0
    if not installed:
        return VMBhyveStatus(installed=False)
    result = await session.run("sysrc -n vm_enable vm_dir")
    values = result.stdout.splitlines() if result.exit_status == 0 else []
    enabled = bool(values) and values[0].strip().lower() in _ENABLED_VALUES
    vm_dir = values[1].strip() if len(values) > 1 and values[1].strip() else None
    return VMBhyveStatus(installed=True, enabled=enabled, vm_dir=vm_dir)


async def list_vms(session: Session) -> list[VirtualMachine]:
    return parse_vms(await session.execute("vm list"))


async def start_vm(session: Session, name: str) -> None:
    await session.execute(f"vm start {quote(require(name, 'VM name'))}")
    logger.info("Start requested for %s", name)


async def stop_vm(session: Session, name: str) -> None:
    await session.execute(f"vm stop {quote(require(name, 'VM name'))}")
    logger.info("Stop requested for %s", name)


async def restart_vm(session: Session, name: str) -> None:
    await session.execute(f"vm restart {quote(require(name, 'VM name'))}")
    logger.info("Restart requested for %s", name)


async def poweroff_vm(session: Session, name: str) -> None:
    """Hard power off, without a guest shutdown."""
    await session.execute(f"vm poweroff -f {quote(require(name, 'VM name'))}")
    logger.info("Powered off %s", name)


async def destroy_vm(session: Session, name: str) -> None:
    """Destroy a VM and its disks. Irreversible."""
    await session.execute(f"vm destroy -f {quote(require(name, 'VM name'))}")
    logger.info("Destroyed %s", name)


async def get_vm_info(session: Session, name: str) -> VMInfo:
    name = require(name, "VM name")
    return parse_vm_info(name, await session.execute(f"vm info {quote(name)}"))


async def create_vm(session: Session, options: VMCreateOptions) -> None:
    """Create a VM from a template."""
    args = ["vm", "create", "-t", options.template, "-s", options.disk_size]
    if options.datastore:
        args += ["-d", options.datastore]
    args += ["-c", str(options.cpu), "-m", options.memory, require(options.name, "VM name")]
    await session.execute(join(args))
    logger.info("Created VM %s from template %s", options.name, options.template)

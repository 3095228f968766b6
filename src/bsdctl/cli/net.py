"""Network interface, wireless, bridge, switch and route commands."""

import typer

from ..utils import (
    colored_status,
    console,
    create_table,
    print_error,
    print_info,
    prompt,
    usage_bar,
    yes_no,
)
from ..utils.helpers import async_to_sync, ordered_group
from ._shared import confirm_action, finish, host_option, open_state, run_with_spinner, split_list, yes_option

_CMD_ORDER = [
    "interfaces", "up", "down", "dhcp", "static", "mtu", "describe", "destroy",
    "wifi",
    "bridges", "bridge-create", "bridge-delete", "bridge-add", "bridge-remove",
    "switches", "switch-create", "switch-delete",
    "routes", "route-add", "route-delete",
]

app = typer.Typer(help="Manage network interfaces and routing", no_args_is_help=True, cls=ordered_group(_CMD_ORDER))
wifi_app = typer.Typer(help="Scan for and join wireless networks", no_args_is_help=True)
app.add_typer(wifi_app, name="wifi")


@app.command("interfaces")
@async_to_sync
async def list_interfaces(host: str = host_option()) -> None:
    """List network interfaces."""
    async with open_state(host) as state:
        result = await run_with_spinner("Loading interfaces...", state.refresh_interfaces())
        if result.last_error:
            print_error(state.error or result.last_error)
            raise typer.Exit(1)

        table = create_table(
            title=f"Interfaces on {state.session.profile.name}",
            columns=[("Name", "cyan"), ("Type", ""), ("Status", ""), ("IPv4", ""), ("MAC", "dim"),
                     ("MTU", ""), ("DHCP", ""), ("Description", "")],
        )
        for iface in result.items:
            address = f"{iface.ipv4}/{iface.ipv4_netmask}" if iface.ipv4 and iface.ipv4_netmask else iface.ipv4
            table.add_row(
                iface.name,
                iface.type.value,
                colored_status(iface.status.value.replace("_", " ")),
                address or "-",
                iface.mac or "-",
                str(iface.mtu or "-"),
                yes_no(iface.dhcp),
                iface.description or "",
            )
        console.print(table)


@app.command("up")
@async_to_sync
async def interface_up(name: str = typer.Argument(..., help="Interface"), host: str = host_option()) -> None:
    """Bring an interface up."""
    async with open_state(host) as state:
        finish(await state.set_interface_up(name))


@app.command("down")
@async_to_sync
async def interface_down(
    name: str = typer.Argument(..., help="Interface"),
    yes: bool = yes_option(),
    host: str = host_option(),
) -> None:
    """Bring an interface down."""
    async with open_state(host) as state:
        if not confirm_action(f"Bring {name} down? Connections over it will drop.", yes):
            return
        finish(await state.set_interface_down(name))


@app.command("dhcp")
@async_to_sync
async def dhcp(
    name: str = typer.Argument(..., help="Interface"),
    renew: bool = typer.Option(False, "--renew", "-r", is_flag=True, help="Only renew the current lease"),
    host: str = host_option(),
) -> None:
    """Configure an interface for DHCP, or renew its lease."""
    async with open_state(host) as state:
        if renew:
            finish(await state.renew_dhcp(name))
        else:
            finish(await run_with_spinner(f"Requesting a lease on {name}...", state.configure_dhcp(name)))


@app.command("static")
@async_to_sync
async def static(
    name: str = typer.Argument(..., help="Interface"),
    address: str = typer.Argument(..., help="IPv4 address"),
    netmask: str = typer.Option("255.255.255.0", "--netmask", "-m", help="Netmask"),
    gateway: str = typer.Option(None, "--gateway", "-g", help="Default gateway"),
    yes: bool = yes_option(),
    host: str = host_option(),
) -> None:
    """Assign a static IPv4 address."""
    async with open_state(host) as state:
        if not confirm_action(f"Set {name} to {address}/{netmask}?", yes):
            return
        finish(await state.configure_static(name, address, netmask, gateway))


@app.command("mtu")
@async_to_sync
async def mtu(
    name: str = typer.Argument(..., help="Interface"),
    value: int = typer.Argument(..., help="MTU in bytes"),
    host: str = host_option(),
) -> None:
    """Set the MTU of an interface."""
    async with open_state(host) as state:
        finish(await state.set_mtu(name, value))


@app.command("describe")
@async_to_sync
async def describe(
    name: str = typer.Argument(..., help="Interface"),
    description: str = typer.Argument("", help="Description, empty to clear"),
    host: str = host_option(),
) -> None:
    """Set or clear an interface description."""
    async with open_state(host) as state:
        finish(await state.set_description(name, description))


@app.command("destroy")
@async_to_sync
async def destroy(
    name: str = typer.Argument(..., help="Cloned interface (bridge, tap, epair, vlan, lagg)"),
    yes: bool = yes_option(),
    host: str = host_option(),
) -> None:
    """Destroy a cloned interface."""
    async with open_state(host) as state:
        if not confirm_action(f"Destroy interface {name}?", yes):
            return
        finish(await state.destroy_interface(name))


@wifi_app.command("status")
@async_to_sync
async def wifi_status(host: str = host_option()) -> None:
    """Show the wireless association."""
    async with open_state(host) as state:
        status = await state.refresh_wireless()
        if state.error:
            print_error(state.error)
            raise typer.Exit(1)
        if status is None:
            print_info("No wireless interface found")
            return
        if not status.associated:
            print_info(f"{status.interface}: not associated")
            return
        console.print(
            f"[bold]{status.interface}[/bold] associated with [cyan]{status.ssid}[/cyan] "
            f"({status.bssid}, channel {status.channel}, {status.auth_mode or 'open'})"
        )


@wifi_app.command("scan")
@async_to_sync
async def wifi_scan(
    interface: str = typer.Option(None, "--interface", "-i", help="Wireless interface (detected if omitted)"),
    host: str = host_option(),
) -> None:
    """Scan for wireless networks."""
    async with open_state(host) as state:
        result = await run_with_spinner("Scanning...", state.scan_wireless(interface))
        if result.last_error:
            print_error(state.error or result.last_error)
            raise typer.Exit(1)
        if not result.items:
            print_info("No networks found")
            return

        table = create_table(
            title="Wireless networks",
            columns=[("", "green"), ("SSID", "cyan"), ("BSSID", "dim"), ("Channel", ""), ("Signal", ""),
                     ("Security", "")],
        )
        for network in sorted(result.items, key=lambda n: n.rssi, reverse=True):
            table.add_row(
                "*" if network.is_connected else "",
                network.ssid,
                network.bssid,
                str(network.channel),
                usage_bar(network.signal_quality),
                network.security.value,
            )
        console.print(table)


@wifi_app.command("connect")
@async_to_sync
async def wifi_connect(
    ssid: str = typer.Argument(..., help="Network name"),
    password: str = typer.Option(None, "--password", "-p", help="WPA passphrase (prompted if omitted)"),
    open_network: bool = typer.Option(False, "--open", is_flag=True, help="Join an open network"),
    interface: str = typer.Option(None, "--interface", "-i", help="Wireless interface (detected if omitted)"),
    host: str = host_option(),
) -> None:
    """Join a wireless network."""
    if password is None and not open_network:
        password = prompt(f"Passphrase for {ssid}", password=True)
    async with open_state(host) as state:
        finish(await run_with_spinner(f"Connecting to {ssid}...", state.connect_wireless(ssid, password, interface)))


@wifi_app.command("disconnect")
@async_to_sync
async def wifi_disconnect(
    interface: str = typer.Option(None, "--interface", "-i", help="Wireless interface (detected if omitted)"),
    host: str = host_option(),
) -> None:
    """Leave the current wireless network."""
    async with open_state(host) as state:
        finish(await state.disconnect_wireless(interface))


@app.command("bridges")
@async_to_sync
async def list_bridges(host: str = host_option()) -> None:
    """List bridges and their members."""
    async with open_state(host) as state:
        result = await state.refresh_bridges()
        if result.last_error:
            print_error(state.error or result.last_error)
            raise typer.Exit(1)
        if not result.items:
            print_info("No bridges found")
            return

        table = create_table(
            title="Bridges",
            columns=[("Name", "cyan"), ("Status", ""), ("Members", ""), ("IPv4", ""), ("STP", "")],
        )
        for bridge in result.items:
            table.add_row(
                bridge.name,
                colored_status(bridge.status.value.replace("_", " ")),
                ", ".join(bridge.members) or "-",
                bridge.ipv4 or "-",
                yes_no(bridge.stp),
            )
        console.print(table)


@app.command("bridge-create")
@async_to_sync
async def create_bridge(
    name: str = typer.Argument(..., help="Bridge name (e.g. bridge0)"),
    members: str = typer.Option(None, "--members", "-m", help="Member interfaces, comma separated"),
    address: str = typer.Option(None, "--address", "-a", help="IPv4 address"),
    netmask: str = typer.Option(None, "--netmask", help="Netmask for the address"),
    stp: bool = typer.Option(False, "--stp", is_flag=True, help="Enable spanning tree on members"),
    host: str = host_option(),
) -> None:
    """Create a bridge and persist it in rc.conf."""
    async with open_state(host) as state:
        finish(await state.create_bridge(name, split_list(members), address, netmask, stp))


@app.command("bridge-delete")
@async_to_sync
async def delete_bridge(
    name: str = typer.Argument(..., help="Bridge name"),
    yes: bool = yes_option(),
    host: str = host_option(),
) -> None:
    """Delete a bridge and its rc.conf entries."""
    async with open_state(host) as state:
        if not confirm_action(f"Delete bridge {name}?", yes):
            return
        finish(await state.delete_bridge(name))


@app.command("bridge-add")
@async_to_sync
async def bridge_add(
    bridge: str = typer.Argument(..., help="Bridge name"),
    member: str = typer.Argument(..., help="Interface to add"),
    host: str = host_option(),
) -> None:
    """Add a member interface to a bridge."""
    async with open_state(host) as state:
        finish(await state.add_bridge_member(bridge, member))


@app.command("bridge-remove")
@async_to_sync
async def bridge_remove(
    bridge: str = typer.Argument(..., help="Bridge name"),
    member: str = typer.Argument(..., help="Interface to remove"),
    host: str = host_option(),
) -> None:
    """Remove a member interface from a bridge."""
    async with open_state(host) as state:
        finish(await state.remove_bridge_member(bridge, member))


@app.command("switches")
@async_to_sync
async def list_switches(host: str = host_option()) -> None:
    """List vm-bhyve virtual switches."""
    async with open_state(host) as state:
        result = await state.refresh_switches()
        if result.last_error:
            print_error(state.error or result.last_error)
            raise typer.Exit(1)
        if not result.items:
            print_info("No virtual switches found")
            return

        table = create_table(
            title="Virtual switches",
            columns=[("Name", "cyan"), ("Type", ""), ("Uplink", ""), ("Address", ""), ("Private", ""),
                     ("Ports", "")],
        )
        for switch in result.items:
            table.add_row(
                switch.name,
                switch.type,
                switch.iface or "-",
                switch.address or "-",
                yes_no(switch.is_private),
                ", ".join(switch.ports) or "-",
            )
        console.print(table)


@app.command("switch-create")
@async_to_sync
async def create_switch(
    name: str = typer.Argument(..., help="Switch name"),
    interface: str = typer.Option(None, "--interface", "-i", help="Uplink interface"),
    address: str = typer.Option(None, "--address", "-a", help="Address in CIDR form"),
    host: str = host_option(),
) -> None:
    """Create a virtual switch."""
    async with open_state(host) as state:
        finish(await state.create_vm_switch(name, interface, address))


@app.command("switch-delete")
@async_to_sync
async def delete_switch(
    name: str = typer.Argument(..., help="Switch name"),
    yes: bool = yes_option(),
    host: str = host_option(),
) -> None:
    """Delete a virtual switch."""
    async with open_state(host) as state:
        if not confirm_action(f"Delete switch {name}?", yes):
            return
        finish(await state.delete_vm_switch(name))


@app.command("routes")
@async_to_sync
async def list_routes(
    ipv6: bool = typer.Option(False, "--ipv6", "-6", is_flag=True, help="Show IPv6 routes"),
    host: str = host_option(),
) -> None:
    """Show the routing table."""
    async with open_state(host) as state:
        result = await state.refresh_routes()
        if result.last_error:
            print_error(state.error or result.last_error)
            raise typer.Exit(1)
        routes = [r for r in result.items if r.is_ipv6 == ipv6]

        table = create_table(
            title="IPv6 routes" if ipv6 else "IPv4 routes",
            columns=[("Destination", "cyan"), ("Gateway", ""), ("Flags", ""), ("Interface", ""), ("Expire", "dim")],
        )
        for route in routes:
            destination = f"[bold]{route.destination}[/bold]" if route.is_default else route.destination
            table.add_row(destination, route.gateway, route.flags, route.netif, route.expire or "")
        console.print(table)


@app.command("route-add")
@async_to_sync
async def add_route(
    destination: str = typer.Argument(..., help="Destination network or host, or 'default'"),
    gateway: str = typer.Argument(..., help="Gateway address"),
    interface: str = typer.Option(None, "--interface", "-i", help="Outgoing interface"),
    host: str = host_option(),
) -> None:
    """Add a route."""
    async with open_state(host) as state:
        finish(await state.add_route(destination, gateway, interface))


@app.command("route-delete")
@async_to_sync
async def delete_route(
    destination: str = typer.Argument(..., help="Destination network or host"),
    gateway: str = typer.Option(None, "--gateway", "-g", help="Gateway of the route"),
    yes: bool = yes_option(),
    host: str = host_option(),
) -> None:
    """Delete a route."""
    async with open_state(host) as state:
        if not confirm_action(f"Delete route to {destination}?", yes):
            return
        finish(await state.delete_route(destination, gateway))

"""Tests for ifconfig, netstat and vm switch parsing."""

import pytest

from bsdctl.models.network import InterfaceStatus, InterfaceType, WirelessSecurity
from bsdctl.parsers.network import (
    dhcp_interfaces,
    hex_netmask_to_dotted,
    parse_bridges,
    parse_interface_stats,
    parse_interfaces,
    parse_rc_conf,
    parse_routes,
    parse_vm_switches,
    parse_wireless_scan,
    parse_wireless_status,
)
from bsdctl.remote.exceptions import ParseError

IFCONFIG = """\
em0: flags=1008843<UP,BROADCAST,RUNNING,SIMPLEX,MULTICAST,LOWER_UP> metric 0 mtu 1500
\tdescription: uplink
\toptions=4e524bb<RXCSUM,TXCSUM,VLAN_MTU>
\tether 08:00:27:aa:bb:cc
\tinet 192.168.1.10 netmask 0xffffff00 broadcast 192.168.1.255
\tinet6 fe80::a00:27ff:feaa:bbcc%em0 prefixlen 64 scopeid 0x1
\tinet6 2001:db8::10 prefixlen 64
\tmedia: Ethernet autoselect (1000baseT <full-duplex>)
\tstatus: active
\tnd6 options=23<PERFORMNUD,ACCEPT_RTADV,AUTO_LINKLOCAL>
em1: flags=8802<BROADCAST,SIMPLEX,MULTICAST> metric 0 mtu 1500
\tether 08:00:27:aa:bb:cd
\tmedia: Ethernet autoselect
\tstatus: no carrier
lo0: flags=1008049<UP,LOOPBACK,RUNNING,MULTICAST,LOWER_UP> metric 0 mtu 16384
\tinet 127.0.0.1 netmask 0xff000000
\tgroups: lo
bridge0: flags=1008843<UP,BROADCAST,RUNNING,SIMPLEX,MULTICAST,LOWER_UP> metric 0 mtu 1500
\tether 58:9c:fc:10:ff:01
\tinet 10.0.0.1 netmask 0xffffff00 broadcast 10.0.0.255
\tid 00:00:00:00:00:00 priority 32768 hellotime 2 fwddelay 15
\tgroups: bridge
\tmember: tap0 flags=143<LEARNING,DISCOVER,AUTOEDGE,AUTOPTP>
\tmember: em1 flags=1e7<LEARNING,DISCOVER,STP,AUTOEDGE,PTP,AUTOPTP>
wlan0: flags=8843<UP,BROADCAST,RUNNING,SIMPLEX,MULTICAST> metric 0 mtu 1500
\tether 00:11:22:33:44:55
\tgroups: wlan
\tssid HomeNet channel 6 (2437 MHz 11g ht/20) bssid aa:bb:cc:dd:ee:ff
\tregdomain FCC country US authmode WPA2/802.11i privacy ON
\tstatus: associated
"""

NETSTAT = """\
Name    Mtu Network       Address              Ipkts Ierrs Idrop     Ibytes    Opkts Oerrs     Obytes  Coll
em0    1500 <Link#1>      08:00:27:aa:bb:cc   123456     2     0   98765432    65432     1    1234567     0
em0       - 192.168.1.0/2 192.168.1.10         10000     -     -     800000     9000     -     700000     -
lo0   16384 <Link#3>      lo0                     42     0     0       4200       42     0       4200     0
"""

SCAN = """\
SSID/MESH ID    BSSID              CHAN RATE    S:N     INT CAPS
HomeNet         aa:bb:cc:dd:ee:ff    6   54M  -52:-95   100 EPS  RSN HTCAP WME
Coffee Shop     11:22:33:44:55:66   11   54M  -71:-95   100 ES   WME
Legacy          22:33:44:55:66:77    1   11M  -80:-95   100 EPS  WPA
                33:44:55:66:77:88   36   54M  -60:-95   100 EPS  RSN
"""


class TestNetmask:
    def test_hex(self):
        assert hex_netmask_to_dotted("0xffffff00") == "255.255.255.0"
        assert hex_netmask_to_dotted("0xffff0000") == "255.255.0.0"

    def test_dotted_passthrough(self):
        assert hex_netmask_to_dotted("255.255.255.0") == "255.255.255.0"

    def test_bad(self):
        with pytest.raises(ParseError):
            hex_netmask_to_dotted("zz")


class TestInterfaces:
    @pytest.fixture
    def interfaces(self):
        rc_conf = parse_rc_conf("hostname: alpha\nifconfig_em0: DHCP\nifconfig_em1: inet 10.1.1.1/24\n")
        parsed = parse_interfaces(IFCONFIG, parse_interface_stats(NETSTAT), rc_conf)
        return {i.name: i for i in parsed}

    def test_ethernet(self, interfaces):
        em0 = interfaces["em0"]
        assert em0.type is InterfaceType.ETHERNET
        assert em0.status is InterfaceStatus.UP
        assert em0.mac == "08:00:27:aa:bb:cc"
        assert em0.ipv4 == "192.168.1.10"
        assert em0.ipv4_netmask == "255.255.255.0"
        assert em0.ipv6 == "2001:db8::10"
        assert em0.ipv6_prefix == 64
        assert em0.mtu == 1500
        assert em0.description == "uplink"
        assert em0.dhcp

    def test_counters_merged(self, interfaces):
        em0 = interfaces["em0"]
        assert em0.rx_packets == 123456
        assert em0.rx_errors == 2
        assert em0.rx_bytes == 98765432
        assert em0.tx_packets == 65432
        assert em0.tx_errors == 1
        assert em0.tx_bytes == 1234567

    def test_no_carrier(self, interfaces):
        assert interfaces["em1"].status is InterfaceStatus.NO_CARRIER
        assert not interfaces["em1"].dhcp

    def test_types(self, interfaces):
        assert interfaces["lo0"].type is InterfaceType.LOOPBACK
        assert interfaces["bridge0"].type is InterfaceType.BRIDGE
        assert interfaces["wlan0"].type is InterfaceType.WIRELESS
        assert interfaces["wlan0"].status is InterfaceStatus.UP

    def test_stats_rows(self):
        stats = parse_interface_stats(NETSTAT)
        assert set(stats) == {"em0", "lo0"}
        assert stats["lo0"].rx_bytes == 4200


class TestRcConf:
    def test_dhcp_detection(self):
        rc = parse_rc_conf("ifconfig_em0: SYNCDHCP\nifconfig_wlan0: WPA DHCP\nifconfig_em1: up\nbad line\n")
        assert dhcp_interfaces(rc) == {"em0", "wlan0"}


class TestBridges:
    def test_members_and_stp(self):
        (bridge,) = parse_bridges(IFCONFIG)
        assert bridge.name == "bridge0"
        assert bridge.members == ["tap0", "em1"]
        assert bridge.stp
        assert bridge.ipv4 == "10.0.0.1"


class TestWireless:
    def test_scan(self):
        networks = {n.ssid: n for n in parse_wireless_scan(SCAN, connected_bssid="AA:BB:CC:DD:EE:FF")}
        assert set(networks) == {"HomeNet", "Coffee Shop", "Legacy"}
        assert networks["HomeNet"].security is WirelessSecurity.WPA2
        assert networks["HomeNet"].is_connected
        assert networks["HomeNet"].rssi == -52
        assert networks["Coffee Shop"].security is WirelessSecurity.OPEN
        assert networks["Coffee Shop"].channel == 11
        assert not networks["Coffee Shop"].is_connected
        assert networks["Legacy"].security is WirelessSecurity.WPA

    def test_status(self):
        wlan0 = IFCONFIG.split("wlan0:", 1)[1]
        status = parse_wireless_status("wlan0", "wlan0:" + wlan0)
        assert status.ssid == "HomeNet"
        assert status.channel == 6
        assert status.bssid == "aa:bb:cc:dd:ee:ff"
        assert status.auth_mode == "WPA2/802.11i"
        assert status.associated

    def test_status_not_associated(self):
        status = parse_wireless_status("wlan0", "wlan0: flags=8802<BROADCAST> mtu 1500\n\tstatus: no carrier\n")
        assert status.ssid is None
        assert not status.associated


class TestRoutes:
    def test_parse(self):
        output = """\
Routing tables

Internet:
Destination        Gateway            Flags     Netif Expire
default            192.168.1.1        UGS         em0
127.0.0.1          link#3             UH          lo0
192.168.1.0/24     link#1             U           em0
10.9.9.9           192.168.1.254      UGHS        em0   1200
"""
        routes = parse_routes(output)
        assert [r.destination for r in routes] == ["default", "127.0.0.1", "192.168.1.0/24", "10.9.9.9"]
        assert routes[0].is_default
        assert routes[0].gateway == "192.168.1.1"
        assert routes[3].expire == "1200"
        assert routes[1].expire is None


class TestVMSwitches:
    def test_parse(self):
        output = """\
NAME     TYPE      IFACE       ADDRESS        PRIVATE  MTU   VLAN  PORTS
public   standard  vm-public   -              no       -     -     em0
private  standard  vm-private  10.10.0.1/24   yes      9000  20    em1,lagg0
"""
        switches = parse_vm_switches(output)
        assert switches[0].name == "public"
        assert switches[0].address is None
        assert switches[0].ports == ["em0"]
        assert not switches[0].is_private
        assert switches[1].is_private
        assert switches[1].mtu == 9000
        assert switches[1].vlan == 20
        assert switches[1].ports == ["em1", "lagg0"]

    def test_short_row_skipped(self):
        assert parse_vm_switches("NAME TYPE\nbroken row\n") == []

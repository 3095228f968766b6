"""Tests for disk inventory parsing and availability filtering."""

from bsdctl.models.zfs import Disk
from bsdctl.parsers.disks import (
    available_disks,
    parse_disk_list,
    parse_labels,
    parse_mounted_devices,
    parse_partition_schemes,
    parse_pool_members,
    resolve_labels,
    strip_partition_suffix,
)

GEOM = """\
Geom name: ada0
Providers:
1. Name: ada0
   Mediasize: 256060514304 (238G)
   Sectorsize: 512
   Mode: r2w2e3
   descr: Samsung SSD 860 EVO
   ident: S3Z1NB0K
Geom name: ada1
Providers:
1. Name: ada1
   Mediasize: 4000787030016 (3.6T)
   descr: WDC WD40EFRX
Geom name: da0
Providers:
1. Name: da0
   Mediasize: 16008609792 (15G)
   descr: SanDisk Ultra
Geom name: cd0
Providers:
1. Name: cd0
   Mediasize: 0 (0B)
   descr: TSSTcorp DVD
"""

ZPOOL_STATUS = """\
  pool: zroot
 state: ONLINE
config:

\tNAME           STATE     READ WRITE CKSUM
\tzroot          ONLINE       0     0     0
\t  /dev/ada0p3  ONLINE       0     0     0

errors: No known data errors
"""

MOUNTS = "/dev/ada0p2\tnone\tswap\tsw\t0 0\ntmpfs\t/tmp\ttmpfs\trw\t0 0\n"

GPART = """\
=>       40  500118112  ada0  GPT  (238G)
         40       1024     1  freebsd-boot  (512K)
=>       40  31266736  da0  MBR  (15G)
"""


class TestDiskList:
    def test_parse(self):
        disks = parse_disk_list(GEOM)
        assert [d.name for d in disks] == ["ada0", "ada1", "da0", "cd0"]
        assert disks[0].size == "238G"
        assert disks[1].description == "WDC WD40EFRX"


class TestMembership:
    def test_pool_members_strip_dev(self):
        assert parse_pool_members(ZPOOL_STATUS) == {"ada0p3"}

    def test_mirror_groups_skipped(self):
        output = ZPOOL_STATUS.replace("\t  /dev/ada0p3", "\t  mirror-0       ONLINE 0 0 0\n\t    /dev/ada1")
        assert parse_pool_members(output) == {"ada1"}

    def test_mounted_devices(self):
        assert parse_mounted_devices(MOUNTS) == {"ada0p2"}

    def test_partition_schemes(self):
        assert parse_partition_schemes(GPART) == {"ada0": "GPT", "da0": "MBR"}

    def test_strip_partition_suffix(self):
        assert strip_partition_suffix("ada0p2") == "ada0"
        assert strip_partition_suffix("da1s1a") == "da1"
        assert strip_partition_suffix("nvd0") == "nvd0"


class TestAvailableDisks:
    def test_excludes_used_partitioned_and_optical(self):
        disks = parse_disk_list(GEOM)
        in_use = parse_pool_members(ZPOOL_STATUS) | parse_mounted_devices(MOUNTS)
        result = available_disks(disks, in_use, parse_partition_schemes(GPART))
        assert [d.name for d in result] == ["ada1", "da0"]
        by_name = {d.name: d for d in result}
        assert not by_name["ada1"].needs_wipe
        assert by_name["da0"].needs_wipe
        assert by_name["da0"].partition_scheme == "MBR"

    def test_whole_disk_in_use(self):
        disks = [Disk(name="ada1"), Disk(name="ada2")]
        assert [d.name for d in available_disks(disks, {"ada1"})] == ["ada2"]


GLABEL = """\
gpt/zfs0  N/A  ada1p3
gptid/4d2f7a1e-4b8f-11ee-9c3a-0cc47a1b2c3d  N/A  ada1p1
garbage line
"""


class TestLabels:
    def test_parse(self):
        assert parse_labels(GLABEL) == {
            "gpt/zfs0": "ada1p3",
            "gptid/4d2f7a1e-4b8f-11ee-9c3a-0cc47a1b2c3d": "ada1p1",
        }

    def test_header_of_plain_status_skipped(self):
        output = "                                      Name  Status  Components\ngpt/swap0     N/A  ada0p2\n"
        assert parse_labels(output) == {"gpt/swap0": "ada0p2"}

    def test_labelled_pool_member_excludes_its_disk(self):
        status = "  pool: tank\nconfig:\n\ttank ONLINE\n\t  /dev/gpt/zfs0 ONLINE\nerrors: none\n"
        in_use = resolve_labels(parse_pool_members(status), parse_labels(GLABEL))
        assert in_use == {"ada1p3"}
        disks = [Disk(name="ada1"), Disk(name="ada2")]
        assert [d.name for d in available_disks(disks, in_use)] == ["ada2"]

    def test_unlabelled_devices_unchanged(self):
        assert resolve_labels({"ada0p2", "da0"}, {}) == {"ada0p2", "da0"}

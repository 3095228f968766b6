"""bsdctl - Remote administration for FreeBSD hosts."""

__version__ = "0.1.0"

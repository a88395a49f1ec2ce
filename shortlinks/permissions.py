"""Capability flags carried by tokens.

``ADMIN`` is a superset flag: a token holding it passes every check no
matter which other flags are stored.
"""
import enum


class Capability(enum.Flag):
    NONE = 0
    ADMIN = enum.auto()
    CREATE_LINK = enum.auto()
    CREATE_TOKEN = enum.auto()
    VIEW_IPS = enum.auto()


_COLUMNS = {
    Capability.ADMIN: "admin_perm",
    Capability.CREATE_LINK: "create_link_perm",
    Capability.CREATE_TOKEN: "create_token_perm",
    Capability.VIEW_IPS: "view_ips_perm",
}


def satisfies(granted: Capability, requested: Capability) -> bool:
    if Capability.ADMIN in granted:
        return True
    return (requested & ~granted) == Capability.NONE


def from_flags(admin=False, create_link=False, create_token=False, view_ips=False) -> Capability:
    caps = Capability.NONE
    if admin:
        caps |= Capability.ADMIN
    if create_link:
        caps |= Capability.CREATE_LINK
    if create_token:
        caps |= Capability.CREATE_TOKEN
    if view_ips:
        caps |= Capability.VIEW_IPS
    return caps


def from_row(row) -> Capability:
    caps = Capability.NONE
    for cap, column in _COLUMNS.items():
        if getattr(row, column):
            caps |= cap
    return caps


def to_columns(caps: Capability) -> dict[str, bool]:
    return {column: cap in caps for cap, column in _COLUMNS.items()}

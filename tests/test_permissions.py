import pytest

from shortlinks.permissions import Capability, from_flags, from_row, satisfies, to_columns

ALL_REQUESTS = [
    Capability.NONE,
    Capability.ADMIN,
    Capability.CREATE_LINK,
    Capability.CREATE_TOKEN,
    Capability.VIEW_IPS,
    Capability.CREATE_LINK | Capability.VIEW_IPS,
    Capability.ADMIN | Capability.CREATE_TOKEN | Capability.VIEW_IPS | Capability.CREATE_LINK,
]


@pytest.mark.parametrize("requested", ALL_REQUESTS)
def test_admin_passes_every_check(requested):
    assert satisfies(Capability.ADMIN, requested)


def test_empty_grant_only_passes_empty_request():
    assert satisfies(Capability.NONE, Capability.NONE)
    for requested in ALL_REQUESTS[1:]:
        assert not satisfies(Capability.NONE, requested)


def test_every_requested_flag_must_be_granted():
    granted = Capability.CREATE_LINK | Capability.VIEW_IPS
    assert satisfies(granted, Capability.CREATE_LINK)
    assert satisfies(granted, Capability.CREATE_LINK | Capability.VIEW_IPS)
    assert not satisfies(granted, Capability.CREATE_TOKEN)
    assert not satisfies(granted, Capability.CREATE_LINK | Capability.CREATE_TOKEN)
    assert not satisfies(granted, Capability.ADMIN)


def test_column_round_trip():
    caps = from_flags(create_link=True, view_ips=True)
    columns = to_columns(caps)
    assert columns == {
        "admin_perm": False,
        "create_link_perm": True,
        "create_token_perm": False,
        "view_ips_perm": True,
    }

    class Row:
        pass

    row = Row()
    for name, value in columns.items():
        setattr(row, name, value)
    assert from_row(row) == caps

import pytest

from memberwait.templateref import split


def test_split_three_parts():
    assert split("base-dev-abcdef") == ("base", "dev", "abcdef")


def test_revision_keeps_remaining_dashes():
    tier, kind, revision = split("appstudio-tenant-123456-789")
    assert (tier, kind) == ("appstudio", "tenant")
    assert revision == "123456-789"


def test_parts_join_back_to_reference():
    ref = "advanced-stage-1a2b-3c4d"
    assert "-".join(split(ref)) == ref


@pytest.mark.parametrize("ref", ["", "base", "base-dev"])
def test_invalid_reference(ref):
    with pytest.raises(ValueError, match="invalid templateref"):
        split(ref)
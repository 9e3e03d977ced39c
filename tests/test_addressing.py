import pytest

from conftest import mesh_data
from vpn_mesh.addressing import ApipaBook, is_azure_apipa
from vpn_mesh.builders.azure import azure_apipa_addresses
from vpn_mesh.config import parse_config
from vpn_mesh.errors import ConfigurationError
from vpn_mesh.models import ALL_PAIRS

AWS_GOOGLE, AWS_AZURE, GOOGLE_AZURE = ALL_PAIRS


def test_link_offsets_are_stable():
    book = ApipaBook()

    first = book.link(AWS_GOOGLE, 0, 0)
    last = book.link(AWS_GOOGLE, 1, 1)

    assert (first.cidr, first.first, first.second) == ("169.254.10.0/30", "169.254.10.1", "169.254.10.2")
    assert last.cidr == "169.254.10.12/30"
    assert book.link(AWS_GOOGLE, 1, 1) == last


def test_links_do_not_overlap():
    book = ApipaBook()

    cidrs = {book.link(AWS_AZURE, c, t).cidr for c in range(2) for t in range(2)}

    assert len(cidrs) == 4


def test_exhausted_block_raises():
    book = ApipaBook({"aws-google": "169.254.10.0/29"})

    assert book.capacity(AWS_GOOGLE) == 2
    with pytest.raises(ConfigurationError, match="exhausted"):
        book.link(AWS_GOOGLE, 1, 0)


def test_missing_block_raises():
    with pytest.raises(ConfigurationError, match="No APIPA block"):
        ApipaBook({"aws-google": "169.254.10.0/24"}).link(GOOGLE_AZURE, 0)


@pytest.mark.parametrize("block", ["10.0.0.0/24", "169.254.10.0/31", "not-a-cidr"])
def test_invalid_blocks_are_rejected(block):
    with pytest.raises(ConfigurationError):
        ApipaBook({"aws-google": block})


def test_azure_apipa_range():
    assert is_azure_apipa("169.254.21.2")
    assert is_azure_apipa("169.254.22.255")
    assert not is_azure_apipa("169.254.10.1")


def test_azure_addresses_per_interface():
    config = parse_config(mesh_data("prod"))

    addresses = azure_apipa_addresses(config)

    assert addresses[0] == ["169.254.21.2", "169.254.21.6", "169.254.22.2"]
    assert addresses[1] == ["169.254.21.10", "169.254.21.14", "169.254.22.10"]


def test_azure_addresses_outside_range_are_rejected():
    data = mesh_data("prod")
    data["apipa"] = {"aws-azure": "169.254.30.0/24"}
    config = parse_config(data)

    with pytest.raises(ConfigurationError, match="outside"):
        azure_apipa_addresses(config)

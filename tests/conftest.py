import logging

import pytest

from lifxcontrol.api.protocol import LifxProtocol
from lifxcontrol.config import LifxConfig
from lifxcontrol.io import LifxClient

from .fakes import FakeLight, FakeNetwork, mac_bytes


@pytest.fixture
def logger():
    return logging.getLogger("lifxcontrol.tests")


@pytest.fixture
def network():
    return FakeNetwork()


@pytest.fixture
def client(network, logger):
    return network.attach(LifxClient(logger=logger))


@pytest.fixture
def config():
    return LifxConfig(timeout=0.2, discovery_interval=0.05)


@pytest.fixture
def protocol(network, client, config, logger):
    protocol = LifxProtocol(logger=logger, config=config)
    protocol.client = client
    return protocol


@pytest.fixture
def bulb(network):
    return network.add(FakeLight("192.0.2.10", mac_bytes(0x10), label="Kitchen", product=27))


@pytest.fixture
def strip(network):
    return network.add(FakeLight("192.0.2.20", mac_bytes(0x20), label="Shelf", product=31, zone_count=20))


@pytest.fixture
def extended_strip(network):
    return network.add(FakeLight("192.0.2.30", mac_bytes(0x30), label="Desk", product=32,
                                 firmware=(2, 80), zone_count=20))

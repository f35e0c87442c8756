"""Mock utilities for testing external dependencies."""

from unittest.mock import MagicMock

from pyrad.client import Timeout


class FakeCoAPacket(dict):
    """Stands in for a pyrad packet; attributes are set with item assignment."""

    def __init__(self, code: int):
        super().__init__()
        self.code = code


class FakeCoAClient:
    """Mock pyrad client that records sent packets and answers with ``reply_code``."""

    instances: list["FakeCoAClient"] = []

    def __init__(self, server: str = "", secret: bytes = b"", dict=None, coaport: int = 3799, **kwargs):
        self.server = server
        self.secret = secret
        self.coaport = coaport
        self.retries = None
        self.timeout = None
        self.sent: list[FakeCoAPacket] = []
        self.reply_code: int | None = None
        self.raise_timeout = False
        FakeCoAClient.instances.append(self)

    def CreateCoAPacket(self, code: int, **kwargs) -> FakeCoAPacket:
        return FakeCoAPacket(code)

    def SendPacket(self, packet: FakeCoAPacket):
        self.sent.append(packet)
        if self.raise_timeout:
            raise Timeout()
        reply = MagicMock()
        reply.code = self.reply_code
        return reply


def fake_client_factory(reply_code: int | None = None, raise_timeout: bool = False):
    """Build a ``Client`` replacement whose instances reply with ``reply_code``."""
    FakeCoAClient.instances = []

    def _factory(*args, **kwargs):
        client = FakeCoAClient(*args, **kwargs)
        client.reply_code = reply_code
        client.raise_timeout = raise_timeout
        return client

    return _factory

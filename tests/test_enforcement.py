"""Tests for CoA / Disconnect-Message enforcement."""

from unittest.mock import MagicMock, patch

import pytest
from pyrad.packet import CoAACK, CoARequest, DisconnectACK, DisconnectNAK, DisconnectRequest

from app.config import settings
from app.models.catalog import NasDevice, NasType
from app.services import enforcement
from app.services.bandwidth_policy import PolicyAttribute
from app.services.credential_crypto import encrypt_credential
from tests.mocks import FakeCoAClient, fake_client_factory


@pytest.fixture()
def coa_client():
    """Route pyrad through the fake client; yields a setter for the reply code."""

    def _install(reply_code=None, raise_timeout=False):
        factory = fake_client_factory(reply_code=reply_code, raise_timeout=raise_timeout)
        return patch("app.services.enforcement.Client", side_effect=factory)

    with patch("app.services.enforcement._load_dictionary", return_value=MagicMock()):
        yield _install


class TestDisconnectUser:
    def test_ack_is_success(self, coa_client):
        with coa_client(reply_code=DisconnectACK):
            ok = enforcement.disconnect_user(
                "10.0.0.1",
                "nas-secret",
                "acme_alice",
                session_id="81a0c3f2",
                framed_ip="100.64.0.10",
            )

        assert ok is True
        client = FakeCoAClient.instances[0]
        assert client.server == "10.0.0.1"
        assert client.secret == b"nas-secret"
        assert client.coaport == settings.coa_port
        packet = client.sent[0]
        assert packet.code == DisconnectRequest
        assert packet["User-Name"] == "acme_alice"
        assert packet["Acct-Session-Id"] == "81a0c3f2"
        assert packet["Framed-IP-Address"] == "100.64.0.10"

    def test_nak_is_failure(self, coa_client):
        with coa_client(reply_code=DisconnectNAK):
            assert enforcement.disconnect_user("10.0.0.1", "nas-secret", "acme_alice") is False

    def test_timeout_is_failure(self, coa_client):
        with coa_client(raise_timeout=True):
            assert enforcement.disconnect_user("10.0.0.1", "nas-secret", "acme_alice") is False

    def test_missing_secret_sends_nothing(self, coa_client):
        with coa_client(reply_code=DisconnectACK):
            assert enforcement.disconnect_user("10.0.0.1", "", "acme_alice") is False

        assert FakeCoAClient.instances == []

    def test_custom_coa_port(self, coa_client):
        with coa_client(reply_code=DisconnectACK):
            enforcement.disconnect_user("10.0.0.1", "nas-secret", "acme_alice", coa_port=1700)

        assert FakeCoAClient.instances[0].coaport == 1700

    def test_dictionary_failure_is_failure(self):
        with patch(
            "app.services.enforcement._load_dictionary", side_effect=OSError("missing dictionary")
        ):
            assert enforcement.disconnect_user("10.0.0.1", "nas-secret", "acme_alice") is False


class TestChangeUserBandwidth:
    def test_coa_carries_rate_limit(self, coa_client):
        with coa_client(reply_code=CoAACK):
            ok = enforcement.change_user_bandwidth(
                "10.0.0.1", "nas-secret", "acme_alice", "50M/25M", session_id="81a0c3f2"
            )

        assert ok is True
        packet = FakeCoAClient.instances[0].sent[0]
        assert packet.code == CoARequest
        assert packet["Mikrotik-Rate-Limit"] == "50M/25M"

    def test_disconnect_ack_is_not_coa_success(self, coa_client):
        with coa_client(reply_code=DisconnectACK):
            assert (
                enforcement.change_user_bandwidth("10.0.0.1", "nas-secret", "acme_alice", "1M/1M")
                is False
            )

    def test_vendor_attributes_sent(self, coa_client):
        attributes = [
            PolicyAttribute("WISPr-Bandwidth-Max-Down", "20000000", 1),
            PolicyAttribute("WISPr-Bandwidth-Max-Up", "10000000", 1),
        ]

        with coa_client(reply_code=CoAACK):
            ok = enforcement.change_user_bandwidth("10.0.0.2", "nas-secret", "acme_alice", attributes)

        assert ok is True
        packet = FakeCoAClient.instances[0].sent[0]
        assert packet["WISPr-Bandwidth-Max-Down"] == "20000000"
        assert packet["WISPr-Bandwidth-Max-Up"] == "10000000"
        assert "Mikrotik-Rate-Limit" not in packet


class TestSessionFanOut:
    def test_registered_nas_secret_preferred(self, coa_client, db_session, tenant, nas_device, make_session):
        make_session("acme_alice", nas_ip="10.0.0.1")

        with coa_client(reply_code=DisconnectACK):
            result = enforcement.disconnect_all_user_sessions(
                db_session, tenant.slug, "alice", secret="fallback"
            )

        assert result == enforcement.SessionDisconnectResult(attempted=1, disconnected=1)
        assert FakeCoAClient.instances[0].secret == b"nas-secret"

    def test_unregistered_nas_uses_fallback(self, coa_client, db_session, tenant, make_session):
        make_session("acme_alice", nas_ip="10.9.9.9")

        with coa_client(reply_code=DisconnectACK):
            result = enforcement.disconnect_all_user_sessions(
                db_session, tenant.slug, "alice", secret="fallback"
            )

        assert result.disconnected == 1
        assert FakeCoAClient.instances[0].secret == b"fallback"

    def test_partial_failure_counted(self, coa_client, db_session, tenant, nas_device, make_session):
        make_session("acme_alice", nas_ip="10.0.0.1")
        make_session("acme_alice", nas_ip="10.9.9.9")

        with coa_client(reply_code=DisconnectACK):
            result = enforcement.disconnect_all_user_sessions(db_session, tenant.slug, "alice")

        assert result.attempted == 2
        assert result.disconnected == 1

    def test_disconnect_subscriber_uses_assigned_nas(self, coa_client, db_session, subscriber, make_session):
        make_session("acme_alice", nas_ip="10.0.0.1")

        with coa_client(reply_code=DisconnectACK):
            result = enforcement.disconnect_subscriber(db_session, subscriber)

        assert result.disconnected == 1

    def test_apply_plan_to_online_sessions(self, coa_client, db_session, subscriber, plan, make_session):
        make_session("acme_alice", nas_ip="10.0.0.1")
        make_session("beta_alice", nas_ip="10.0.0.1")

        with coa_client(reply_code=CoAACK):
            updated = enforcement.apply_plan_to_online_sessions(db_session, subscriber, plan)

        assert updated == 1
        packet = FakeCoAClient.instances[0].sent[0]
        assert packet["User-Name"] == "acme_alice"
        assert packet["Mikrotik-Rate-Limit"] == "20M/10M"


def test_bundled_dictionary_defines_vendor_attributes():
    dictionary = enforcement._load_dictionary(settings.radius_dictionary_path)

    assert "Mikrotik-Rate-Limit" in dictionary
    assert "Acct-Session-Id" in dictionary


class TestVendorRateChange:
    @pytest.fixture()
    def cisco_device(self, db_session, tenant):
        device = NasDevice(
            tenant_id=tenant.id,
            name="Edge BNG",
            short_name="bng-1",
            nas_ip="10.0.0.2",
            secret=encrypt_credential("cisco-secret"),
            nas_type=NasType.cisco,
        )
        db_session.add(device)
        db_session.commit()
        return device

    def test_session_on_cisco_gets_wispr_attributes(
        self, coa_client, db_session, subscriber, plan, cisco_device, make_session
    ):
        make_session("acme_alice", nas_ip="10.0.0.2")

        with coa_client(reply_code=CoAACK):
            updated = enforcement.apply_plan_to_online_sessions(db_session, subscriber, plan)

        assert updated == 1
        client = FakeCoAClient.instances[0]
        assert client.secret == b"cisco-secret"
        packet = client.sent[0]
        assert packet["WISPr-Bandwidth-Max-Down"] == "20000000"
        assert packet["WISPr-Bandwidth-Max-Up"] == "10000000"
        assert "Mikrotik-Rate-Limit" not in packet

    def test_each_session_uses_its_own_vendor(
        self, coa_client, db_session, subscriber, plan, cisco_device, make_session
    ):
        make_session("acme_alice", nas_ip="10.0.0.1")
        make_session("acme_alice", nas_ip="10.0.0.2")

        with coa_client(reply_code=CoAACK):
            updated = enforcement.apply_plan_to_online_sessions(db_session, subscriber, plan)

        assert updated == 2
        by_server = {client.server: client.sent[0] for client in FakeCoAClient.instances}
        assert by_server["10.0.0.1"]["Mikrotik-Rate-Limit"] == "20M/10M"
        assert by_server["10.0.0.2"]["WISPr-Bandwidth-Max-Down"] == "20000000"

    def test_unregistered_session_uses_assigned_nas_vendor(
        self, coa_client, db_session, make_subscriber, tenant, plan, cisco_device, make_session
    ):
        bob = make_subscriber(tenant, "bob", plan=plan, nas_device=cisco_device)
        make_session("acme_bob", nas_ip="10.9.9.9")

        with coa_client(reply_code=CoAACK):
            enforcement.apply_plan_to_online_sessions(db_session, bob, plan)

        client = FakeCoAClient.instances[0]
        assert client.server == "10.9.9.9"
        assert client.secret == b"cisco-secret"
        assert "WISPr-Bandwidth-Max-Down" in client.sent[0]


def test_integer_attributes_packed_as_numbers():
    assert enforcement._coa_value("WISPr-Bandwidth-Max-Down", "20000000") == 20000000
    assert enforcement._coa_value("Mikrotik-Rate-Limit", "20M/10M") == "20M/10M"

from __future__ import annotations

import struct

import pytest

from allonectl.core.errors import TransportSendError, TransportTimeoutError
from allonectl.transports.orvibo import (
    PADDING,
    OrviboTransport,
    build_packet,
    discovery_packet,
    learn_packet,
    parse_mac,
    parse_packet,
)

MAC = bytes.fromhex("accf23001122")
ADDRESS = "AC:CF:23:00:11:22"


def _discovery_reply(mac: bytes, device_id: bytes) -> bytes:
    return build_packet(b"qa", b"\x00" + mac + PADDING + mac[::-1] + PADDING + device_id + b"\x00" * 5)


def _transport(monkeypatch: pytest.MonkeyPatch) -> tuple[OrviboTransport, list[tuple[bytes, str]]]:
    transport = OrviboTransport()
    sent: list[tuple[bytes, str]] = []
    monkeypatch.setattr(transport, "_ensure_open", lambda: None)
    monkeypatch.setattr(transport, "_send", lambda packet, host: sent.append((packet, host)))
    return transport, sent


def test_packet_header_carries_total_length() -> None:
    assert discovery_packet() == bytes.fromhex("686400067161")
    packet = learn_packet(MAC)
    assert len(packet) == 24
    assert packet[:6] == bytes.fromhex("686400186c73")


def test_parse_packet_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        parse_packet(b"xx\x00\x06qa")
    with pytest.raises(ValueError):
        parse_packet(b"hd\x00\x09qa")


def test_parse_mac_rejects_bad_addresses() -> None:
    assert parse_mac("ac-cf-23-00-11-22") == MAC
    with pytest.raises(TransportSendError):
        parse_mac("not-a-mac")
    with pytest.raises(TransportSendError):
        parse_mac("AC:CF:23")


def test_discovery_reply_recorded_with_host() -> None:
    transport = OrviboTransport()
    reply = _discovery_reply(MAC, b"IRD005")
    assert len(reply) == 0x2A

    transport.handle_datagram(reply, "192.168.1.50")
    transport.handle_datagram(_discovery_reply(bytes.fromhex("accf23334455"), b"SOC002"), "192.168.1.51")

    devices = {d.address: d for d in transport._discovered.values()}
    assert devices[ADDRESS].is_allone
    assert not devices["AC:CF:23:33:44:55"].is_allone
    assert transport._host_for(ADDRESS) == "192.168.1.50"


def test_learned_code_goes_to_capture_handler() -> None:
    transport = OrviboTransport()
    captured: list[tuple[str, str]] = []
    transport.set_capture_handler(lambda code, address: captured.append((code, address)))

    code = bytes.fromhex("a1b2c3d4")
    transport.handle_datagram(build_packet(b"ls", MAC + PADDING + b"\x00" * 8 + code), "192.168.1.50")

    assert captured == [("a1b2c3d4", ADDRESS)]


def test_learning_ack_is_not_a_capture(monkeypatch: pytest.MonkeyPatch) -> None:
    transport, sent = _transport(monkeypatch)
    captured: list[tuple[str, str]] = []
    transport.set_capture_handler(lambda code, address: captured.append((code, address)))

    def _acknowledge(packet: bytes, host: str) -> None:
        sent.append((packet, host))
        transport.handle_datagram(learn_packet(MAC), "192.168.1.50")

    monkeypatch.setattr(transport, "_send", _acknowledge)

    transport.begin_learning(ADDRESS, timeout_s=1.0)

    assert sent == [(learn_packet(MAC), "255.255.255.255")]
    assert captured == []


def test_learning_without_ack_times_out(monkeypatch: pytest.MonkeyPatch) -> None:
    transport, _ = _transport(monkeypatch)
    with pytest.raises(TransportTimeoutError):
        transport.begin_learning(ADDRESS, timeout_s=0.01)
    assert transport._learn_acks == {}


def test_emit_packet_layout(monkeypatch: pytest.MonkeyPatch) -> None:
    transport, sent = _transport(monkeypatch)
    transport.handle_datagram(_discovery_reply(MAC, b"IRD005"), "192.168.1.50")

    transport.emit_code("a1b2c3", ADDRESS)

    [(packet, host)] = sent
    assert host == "192.168.1.50"
    parsed = parse_packet(packet)
    assert parsed.command == b"ic"
    assert parsed.body[:6] == MAC
    assert parsed.body[12:16] == bytes.fromhex("65000000")
    (length,) = struct.unpack("<H", parsed.body[18:20])
    assert length == 3
    assert parsed.body[20:] == bytes.fromhex("a1b2c3")


def test_emit_rejects_non_hex_code(monkeypatch: pytest.MonkeyPatch) -> None:
    transport, sent = _transport(monkeypatch)
    with pytest.raises(TransportSendError):
        transport.emit_code("A1B2CZ", ADDRESS)
    assert sent == []

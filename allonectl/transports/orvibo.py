"""Orvibo AllOne UDP transport.

Every packet is ``hd`` + big-endian total length + a two-letter command.
Discovery (``qa``) is broadcast; replies carry the MAC at offset 7 and a
device id at offset 31 (``IRD...`` for AllOnes). A device must be subscribed
(``cl``) before it accepts commands. Learning (``ls``) is acknowledged with a
short ``ls`` packet; the captured code arrives later as a long ``ls`` packet
whose payload starts at offset 26. Codes are blasted with ``ic``.
"""

from __future__ import annotations

import logging
import socket
import struct
import threading
import time
from dataclasses import dataclass

from allonectl.core.errors import (
    TransportConnectError,
    TransportSendError,
    TransportTimeoutError,
)
from allonectl.core.model import Device
from allonectl.transports.base import CaptureHandler

LOGGER = logging.getLogger(__name__)

MAGIC = b"hd"
PADDING = b"\x20" * 6
HEADER_LEN = 6
LEARN_ACK_LEN = 24
LEARNED_CODE_OFFSET = 26

CMD_DISCOVER = b"qa"
CMD_SUBSCRIBE = b"cl"
CMD_LEARN = b"ls"
CMD_EMIT = b"ic"

ALLONE_DEVICE_ID = b"IRD"


@dataclass(frozen=True)
class Packet:
    command: bytes
    body: bytes
    raw: bytes


def format_mac(mac: bytes) -> str:
    return ":".join(f"{b:02X}" for b in mac)


def parse_mac(address: str) -> bytes:
    cleaned = address.strip().replace(":", "").replace("-", "")
    try:
        mac = bytes.fromhex(cleaned)
    except ValueError as exc:
        raise TransportSendError(f"Invalid device address '{address}'") from exc
    if len(mac) != 6:
        raise TransportSendError(f"Invalid device address '{address}'")
    return mac


def build_packet(command: bytes, body: bytes = b"") -> bytes:
    return MAGIC + struct.pack(">H", HEADER_LEN + len(body)) + command + body


def parse_packet(data: bytes) -> Packet:
    if len(data) < HEADER_LEN or not data.startswith(MAGIC):
        raise ValueError("not an Orvibo packet")
    (length,) = struct.unpack(">H", data[2:4])
    if length != len(data):
        raise ValueError(f"length field {length} does not match packet size {len(data)}")
    return Packet(command=data[4:6], body=data[6:], raw=data)


def discovery_packet() -> bytes:
    return build_packet(CMD_DISCOVER)


def subscribe_packet(mac: bytes) -> bytes:
    return build_packet(CMD_SUBSCRIBE, mac + PADDING + mac[::-1] + PADDING)


def learn_packet(mac: bytes) -> bytes:
    return build_packet(CMD_LEARN, mac + PADDING + bytes.fromhex("010000000000"))


def emit_packet(mac: bytes, code: bytes, sequence: int) -> bytes:
    body = (
        mac
        + PADDING
        + bytes.fromhex("65000000")
        + struct.pack(">H", sequence & 0xFFFF)
        + struct.pack("<H", len(code))
        + code
    )
    return build_packet(CMD_EMIT, body)


def parse_discovery_reply(packet: Packet) -> Device | None:
    raw = packet.raw
    if packet.command != CMD_DISCOVER or len(raw) < 37:
        return None
    mac = format_mac(raw[7:13])
    device_id = raw[31:37]
    is_allone = device_id.startswith(ALLONE_DEVICE_ID)
    label = "AllOne" if is_allone else "Orvibo device"
    return Device(address=mac, name=f"{label} {mac}", is_allone=is_allone)


class OrviboTransport:
    def __init__(
        self,
        *,
        port: int = 10000,
        broadcast_address: str = "255.255.255.255",
        bind_address: str = "",
    ) -> None:
        self.port = port
        self.broadcast_address = broadcast_address
        self.bind_address = bind_address
        self._sock: socket.socket | None = None
        self._receiver: threading.Thread | None = None
        self._closed = threading.Event()
        self._lock = threading.Lock()
        self._hosts: dict[str, str] = {}
        self._discovered: dict[str, Device] = {}
        self._learn_acks: dict[str, threading.Event] = {}
        self._handler: CaptureHandler | None = None
        self._sequence = 0

    def set_capture_handler(self, handler: CaptureHandler | None) -> None:
        self._handler = handler

    def discover_devices(self, timeout_s: float = 3.0) -> list[Device]:
        self._ensure_open()
        with self._lock:
            self._discovered.clear()
        self._send(discovery_packet(), self.broadcast_address)
        time.sleep(timeout_s)
        with self._lock:
            devices = list(self._discovered.values())

        for device in devices:
            if device.is_allone:
                self._send(subscribe_packet(parse_mac(device.address)), self._host_for(device.address))
        LOGGER.info("Discovered %d Orvibo devices", len(devices))
        return devices

    def begin_learning(self, address: str, *, timeout_s: float = 5.0) -> None:
        mac = parse_mac(address)
        key = format_mac(mac)
        self._ensure_open()
        ack = threading.Event()
        with self._lock:
            self._learn_acks[key] = ack
        try:
            self._send(learn_packet(mac), self._host_for(key))
            if not ack.wait(timeout_s):
                raise TransportTimeoutError(
                    f"AllOne {key} did not acknowledge learning mode within {timeout_s:g}s"
                )
        finally:
            with self._lock:
                self._learn_acks.pop(key, None)

    def emit_code(self, code: str, address: str) -> None:
        mac = parse_mac(address)
        try:
            payload = bytes.fromhex(code)
        except ValueError as exc:
            raise TransportSendError(f"IR code is not valid hex: {code!r}") from exc
        self._ensure_open()
        with self._lock:
            self._sequence += 1
            sequence = self._sequence
        self._send(emit_packet(mac, payload, sequence), self._host_for(format_mac(mac)))

    def close(self) -> None:
        self._closed.set()
        if self._sock is not None:
            self._sock.close()
        if self._receiver is not None:
            self._receiver.join(timeout=1.0)
        self._sock = None
        self._receiver = None

    def handle_datagram(self, data: bytes, host: str) -> None:
        try:
            packet = parse_packet(data)
        except ValueError as exc:
            LOGGER.debug("Ignoring datagram from %s: %s", host, exc)
            return

        if packet.command == CMD_DISCOVER:
            device = parse_discovery_reply(packet)
            if device is None:
                return
            with self._lock:
                self._hosts[device.address] = host
                self._discovered[device.address] = device
            return

        if packet.command == CMD_LEARN and len(packet.raw) >= HEADER_LEN + 6:
            address = format_mac(packet.raw[6:12])
            if len(packet.raw) <= LEARN_ACK_LEN:
                with self._lock:
                    ack = self._learn_acks.get(address)
                if ack is not None:
                    ack.set()
                return
            code = packet.raw[LEARNED_CODE_OFFSET:].hex()
            LOGGER.info("Captured %d byte IR code from %s", len(code) // 2, address)
            handler = self._handler
            if handler is None:
                LOGGER.warning("Captured IR code from %s but no handler is registered", address)
                return
            handler(code, address)

    def _host_for(self, address: str) -> str:
        with self._lock:
            return self._hosts.get(address, self.broadcast_address)

    def _ensure_open(self) -> None:
        if self._sock is not None:
            return
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.bind((self.bind_address, self.port))
        except OSError as exc:
            raise TransportConnectError(f"Could not open UDP socket on port {self.port}: {exc}") from exc
        sock.settimeout(0.5)
        self._sock = sock
        self._closed.clear()
        self._receiver = threading.Thread(target=self._receive_loop, name="orvibo-receiver", daemon=True)
        self._receiver.start()

    def _receive_loop(self) -> None:
        while not self._closed.is_set():
            sock = self._sock
            if sock is None:
                return
            try:
                data, (host, _port) = sock.recvfrom(1024)
            except socket.timeout:
                continue
            except OSError:
                if self._closed.is_set():
                    return
                LOGGER.exception("Orvibo receive failed")
                continue
            try:
                self.handle_datagram(data, host)
            except Exception:
                LOGGER.exception("Failed to handle datagram from %s", host)

    def _send(self, packet: bytes, host: str) -> None:
        if self._sock is None:
            raise TransportSendError("Orvibo transport is closed")
        try:
            self._sock.sendto(packet, (host, self.port))
        except OSError as exc:
            raise TransportSendError(f"UDP send to {host}:{self.port} failed: {exc}") from exc

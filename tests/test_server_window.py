import socket
import struct

import pytest

from udpcopy.hooks import NetworkHooks
from udpcopy.networks import Connection
from udpcopy.server_window import ServerWindow
from udpcopy.srej import CrcError, Flag, recv_buf, send_buf


def _udp():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(2)
    return sock


@pytest.fixture
def pair():
    hooks = NetworkHooks(environ={})
    a, b = _udp(), _udp()
    yield (
        Connection(sock=a, remote=b.getsockname(), hooks=hooks),
        Connection(sock=b, remote=a.getsockname(), hooks=hooks),
    )
    a.close()
    b.close()


def _at_client(client):
    return recv_buf(client.sock, 2000, client)


def test_rejects_empty_window():
    with pytest.raises(ValueError):
        ServerWindow(0, 100, 1)


def test_send_data_sends_and_advances(pair):
    server, client = pair
    window = ServerWindow(3, 100, 1)
    assert window.send_data(b"x", server, Flag.DATA, 1) == 2
    assert _at_client(client) == (Flag.DATA, 1, b"x")
    assert window.current == 2


def test_window_fills_and_refuses(pair):
    server, client = pair
    window = ServerWindow(2, 100, 1)
    seq = 1
    for chunk in (b"a", b"b"):
        seq = window.send_data(chunk, server, Flag.DATA, seq)
    assert not window.is_open()
    with pytest.raises(RuntimeError):
        window.send_data(b"c", server, Flag.DATA, seq)


def test_send_data_too_large(pair):
    server, _ = pair
    window = ServerWindow(2, 4, 1)
    with pytest.raises(ValueError):
        window.send_data(b"12345", server, Flag.DATA, 1)


def test_ack_slides_window(pair):
    server, _ = pair
    window = ServerWindow(2, 100, 1)
    seq = window.send_data(b"a", server, Flag.DATA, 1)
    window.send_data(b"b", server, Flag.DATA, seq)
    assert not window.is_open()
    assert window.receive_ack(struct.pack("!I", 2)) is False
    assert window.is_open()
    assert (window.lower, window.upper) == (2, 4)


def test_ack_errors(pair):
    server, _ = pair
    window = ServerWindow(3, 100, 1)
    window.send_data(b"a", server, Flag.DATA, 1)
    window.receive_ack(struct.pack("!I", 2))
    with pytest.raises(CrcError):
        window.receive_ack(struct.pack("!I", 1))
    with pytest.raises(CrcError):
        window.receive_ack(b"ab")
    with pytest.raises(RuntimeError):
        window.receive_ack(struct.pack("!I", 3))


def test_ack_of_everything_after_eof(pair):
    server, _ = pair
    window = ServerWindow(3, 100, 1)
    seq = window.send_data(b"a", server, Flag.DATA, 1)
    window.send_data(b"", server, Flag.END_OF_FILE, seq, True)
    assert window.file_done
    assert window.receive_ack(struct.pack("!I", 3)) is True


def test_send_lowest_resends_oldest(pair):
    server, client = pair
    window = ServerWindow(3, 100, 1)
    seq = window.send_data(b"first", server, Flag.DATA, 1)
    window.send_data(b"second", server, Flag.DATA, seq)
    _at_client(client)
    _at_client(client)
    window.send_lowest(server)
    assert _at_client(client) == (Flag.RESENT_TIMEOUT, 1, b"first")


def test_send_lowest_marks_last_packet_eof(pair):
    server, client = pair
    window = ServerWindow(3, 100, 1)
    window.send_data(b"", server, Flag.END_OF_FILE, 1, True)
    _at_client(client)
    window.send_lowest(server)
    assert _at_client(client) == (Flag.END_OF_FILE, 1, b"")


def test_srej_resends_packet(pair):
    server, client = pair
    window = ServerWindow(3, 100, 1)
    seq = window.send_data(b"one", server, Flag.DATA, 1)
    window.send_data(b"two", server, Flag.DATA, seq)
    _at_client(client)
    _at_client(client)
    window.receive_srej(struct.pack("!I", 2), server)
    assert _at_client(client) == (Flag.RESENT_SREJ, 2, b"two")


def test_srej_outside_window(pair):
    server, _ = pair
    window = ServerWindow(3, 100, 1)
    window.send_data(b"one", server, Flag.DATA, 1)
    with pytest.raises(CrcError):
        window.receive_srej(struct.pack("!I", 5), server)
    with pytest.raises(CrcError):
        window.receive_srej(struct.pack("!I", 0), server)


def test_receive_rr_from_network(pair):
    server, client = pair
    window = ServerWindow(3, 100, 1)
    window.send_data(b"one", server, Flag.DATA, 1)
    _at_client(client)
    send_buf(struct.pack("!I", 2), client, Flag.ACK, 7)
    assert window.receive(server) == (Flag.ACK, 7, False)
    assert window.lower == 2


def test_receive_srej_from_network(pair):
    server, client = pair
    window = ServerWindow(3, 100, 1)
    window.send_data(b"one", server, Flag.DATA, 1)
    _at_client(client)
    send_buf(struct.pack("!I", 1), client, Flag.SREJ, 7)
    flag, seq, done = window.receive(server)
    assert (flag, seq, done) == (Flag.SREJ, 8, False)
    assert _at_client(client) == (Flag.RESENT_SREJ, 1, b"one")


def test_receive_other_flag_raises(pair):
    server, client = pair
    window = ServerWindow(3, 100, 1)
    send_buf(b"x", client, Flag.DATA, 1)
    with pytest.raises(CrcError):
        window.receive(server)
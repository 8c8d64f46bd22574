# udpcopy

udpcopy copies a file from a server to a client over UDP. It uses a sliding window with
selective reject (SREJ). The receiver sends an RR that names the next sequence number it
expects. It sends an SREJ for each gap it sees. It holds packets that arrive out of order until
the gap is filled. The sender keeps every unacknowledged packet so it can send it again. It
resends the oldest one when a wait times out.

Each packet starts with a 7-byte header:

- a 4-byte sequence number, in network order;
- a 2-byte Internet checksum of the whole packet, little-endian;
- a 1-byte flag.

The receiver ignores any packet whose checksum fails.

To test the protocol, every packet sent goes through a set of error events. These can drop the
packet or invert one random byte. Each event fires with a chance set by the error rate.

## Installation

```
pip install .
```

## Copying a file

```
rcopy from_file to_file window_size buffer_size error_rate host port
```

| Argument | Limits |
|---|---|
| `from_file` | at most 1000 bytes; the name of the file on the server |
| `to_file` | at most 1000 bytes; the local file to write |
| `window_size` | from 1 to 2^30 packets |
| `buffer_size` | from 400 to 1400 bytes of data per packet |
| `error_rate` | from 0 up to, but not including, 1 |

If an argument is out of range, `rcopy` prints what is wrong and exits with status 1.

### How a copy runs

1. `rcopy` sends a request packet. It holds the buffer size and the window size, 4 bytes each in
   network order, followed by the file name.
2. If no answer comes within one second, `rcopy` sends the request again. It gives up after 10
   unanswered tries.
3. If the server reports that the file is missing, `rcopy` prints
   `Server reported File ... not found` and stops.
4. Otherwise `rcopy` creates `to_file` with mode 0600, emptying any existing file, and writes
   the data in sequence order.
5. The copy ends at the end-of-file packet. It also ends after 10 seconds with no data.

`rcopy` turns on both random drops and random bit flips at the given error rate, with a
time-based seed. It logs every packet it sends and receives on standard error.

## Serving files

The package has the server side of the protocol, but it has no working server command.
`udpcopy.server.process_server` receives requests, but it does not serve them: no child process
is started, so no file is sent. To serve requests, call `udpcopy.server.serve_client` yourself:

```python
from udpcopy.hooks import get_hooks
from udpcopy.networks import Connection, udp_server_setup
from udpcopy.server import serve_client
from udpcopy.srej import MAX_LEN, CrcError, recv_buf

hooks = get_hooks()
hooks.init(0.1, True, True, True, True)   # error_rate, drop, flip, debug, random_seed
sock = udp_server_setup(0, hooks)          # 0: any free port; prints the port in use
while True:
    client = Connection(hooks=hooks)
    try:
        _, _, request = recv_buf(sock, MAX_LEN, client)
    except CrcError:
        continue
    serve_client(client, request, hooks)
```

`serve_client` works as follows:

- It opens a new socket for the transfer.
- It answers the request with whether the file could be opened. The file name is taken relative
  to the server's working directory.
- It sends the file in packets of the requested buffer size, keeping at most the requested
  window of packets unacknowledged.
- When a wait for an RR times out, it resends the oldest unacknowledged packet.
- It gives up after 10 waits in a row with no reply.

## Environment overrides

These variables take precedence over the values the program passes in:

| Variable | Effect |
|---|---|
| `CPE464_OVERRIDE_PORT` | port used by the first `NetworkHooks.bind` |
| `CPE464_OVERRIDE_DEBUG` | debug level, from -1 (errors only) to 3 (very verbose) |
| `CPE464_OVERRIDE_SEEDRAND` | seed for the random error generator |
| `CPE464_OVERRIDE_ERR_RATE` | chance that a random error event runs on a packet |
| `CPE464_OVERRIDE_ERR_DROP` | comma-separated message numbers to drop on every run; with no number of 0 or more (for example `-1`) packets are dropped at random instead |
| `CPE464_OVERRIDE_ERR_FLIP` | with no number of 0 or more (for example `-1`) bits are flipped at random; listing message numbers turns flipping off |
| `CPE464_AUTOGRADER` | only noted in the log |

## Library use

| Name | What it does |
|---|---|
| `udpcopy.checksum.in_cksum` | Returns the 16-bit Internet checksum of a byte string. |
| `udpcopy.srej.build_packet`, `parse_packet` | Build packets and split them back into flag, sequence number and payload. `parse_packet` raises `CrcError` for a damaged packet. |
| `udpcopy.srej.send_buf`, `recv_buf` | Send and receive packets over a `Connection`. |
| `udpcopy.srej.Flag` | The packet types. |
| `udpcopy.client_window.ClientWindow` | The receiving side. `recv_data` returns a `MsgStatus` and the next in-order data, or `None` when a packet gave nothing to deliver. |
| `udpcopy.server_window.ServerWindow` | The sending side: `send_data`, `receive` (for RR and SREJ), `send_lowest` and `is_open`. |
| `udpcopy.packet_manager.PacketManager` | Runs events from `udpcopy.msgevents` on outgoing packets and logs traffic. The events are `ErrorDrop`, `ErrorFlipBits` and `InfoSeqNo`. |
| `udpcopy.settings.SettingsManager` | Applies the environment overrides. |
| `udpcopy.hooks.NetworkHooks`, `get_hooks` | Socket calls routed through the packet manager. |
| `udpcopy.networks` | UDP set-up helpers over IPv6 sockets: `udp_server_setup`, `udp_client_setup` and `Connection`. |
| `udpcopy.addresses` | Host name lookups: `gethostbyname4`, `gethostbyname6` and `describe_lookup`. |
| `udpcopy.poll.PollSet` | Waits on several sockets for incoming data. |
| `udpcopy.debug` | Levelled log output. |
# sockrelay

`sockrelay` holds the pieces of a local SOCKS5 relay client: the SOCKS5
wire format, a per-client handshake state machine, socket address helpers,
a ping-pong Bloom filter for spotting reused nonces, and a launcher for an
external transport plugin. It uses only the Python standard library.

## Modules

- `sockrelay.socks5`: the SOCKS5 wire format.
  `parse_method_request` reads a method-selection greeting and returns the
  offered methods and the bytes consumed (or `None` when more data is
  needed); `select_method` picks no-authentication or the "unacceptable"
  marker. `parse_request` reads a CONNECT or UDP ASSOCIATE request into a
  `Socks5Request`, whose `address_header()` gives the address as sent on the
  wire and `display()` gives `host:port` (IPv6 in brackets). `build_reply`
  builds a reply carrying an IPv4 or IPv6 bound address. Unsupported
  commands and address types raise `Socks5Error`, whose `reply` attribute
  holds the `Reply` code to send. `Command`, `AddressType` and `Reply` are
  the protocol's enumerations.
- `sockrelay.session`: `Socks5Handshake` takes client bytes through
  `feed()` and returns a `HandshakeResult` saying what to send back
  (`reply`), which request was accepted (`request`, `connect_ready`), what
  client data followed it (`payload`) and whether to drop the connection
  (`close`). Its `stage` is a `Stage`. `Cipher` is the abstract interface for
  wrapping relayed data; `IdentityCipher` passes data through unchanged.
- `sockrelay.netutils`: `get_sockaddr` turns a host and port into a socket
  address tuple, resolving names with an optional IPv6 preference;
  `sockaddr_cmp` and `sockaddr_cmp_addr` order addresses (with and without
  the port); `validate_hostname` checks DNS name syntax; `is_ipv6only` tells
  whether every `ServerAddress` resolves to IPv6; `parse_local_addr`,
  `set_reuseport` and `bind_to_addr` help set up outbound sockets.
- `sockrelay.ppbloom`: `BloomFilter`, and `PingPongBloom`, two filters used
  in turn so that old entries age out while memory stays fixed.
- `sockrelay.plugin`: `start_plugin` starts an external plugin process and
  returns a `PluginProcess` (with `stop()`, `is_finished()`, `wait()`, and use
  as a context manager), or `None` when the plugin name is empty; a `None`
  name raises `ValueError`. The current directory is put in front of
  `PATH`. Plugins receive their endpoints through `SS_REMOTE_HOST`,
  `SS_REMOTE_PORT`, `SS_LOCAL_HOST`, `SS_LOCAL_PORT` and, if given,
  `SS_PLUGIN_OPTIONS` (see `plugin_environment`); names starting with
  `obfsproxy` instead get a standalone obfsproxy command line built by
  `plugin_command`, shaped by `PluginMode`. `get_local_port` finds a free
  local TCP port.

## Examples

Validating hostnames and ordering addresses:

```python
from sockrelay.netutils import validate_hostname, get_sockaddr, sockaddr_cmp

validate_hostname("www.example.com")   # True
validate_hostname("-bad.example.com")  # False

a = get_sockaddr("127.0.0.1", "1080", False)  # ("127.0.0.1", 1080)
b = get_sockaddr("127.0.0.1", "1081", False)
sockaddr_cmp(a, b)                            # -1: same family, lower port
```

Detecting repeated nonces:

```python
from sockrelay.ppbloom import PingPongBloom

seen = PingPongBloom(1000, 1e-6)
nonce = b"\x00" * 12
seen.check(nonce)  # False
seen.add(nonce)
seen.check(nonce)  # True
```

Reading a SOCKS5 request:

```python
from sockrelay.socks5 import parse_request

request = parse_request(b"\x05\x01\x00\x03\x0bexample.com\x00\x50")
request.display()  # "example.com:80"
```

Driving a client handshake:

```python
from sockrelay.session import Socks5Handshake

hs = Socks5Handshake()
hs.feed(b"\x05\x01\x00").reply        # b"\x05\x00"
result = hs.feed(b"\x05\x01\x00\x03\x0bexample.com\x00\x50GET /")
result.connect_ready                  # True
result.payload                        # b"GET /"
```

## What the package does not do

There is no listening proxy server and no command-line program here: the
package does not accept connections, open connections to a remote server
or relay traffic itself. `IdentityCipher` is the only `Cipher` provided, so
no encryption is done. Access control lists and UDP relaying are not
included.

## Testing

The test suite uses `pytest` and `pytest-asyncio`, which come with the
`test` extra.
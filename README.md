# fortanode

Tooling for setting up and looking after a scan node:

- a `forta` command that creates the node directory, the default
  `config.yml` and the scanner key, and shows or imports the scanner account;
- a keystore that writes and reads passphrase-encrypted key files
  (scrypt + AES-128-CTR) and gives checksummed addresses;
- rendering of node health reports as pretty text, one line per report,
  JSON or CSV;
- building blocks for node services: a per-key cooldown, a per-client
  token-bucket rate limiter, an alert API client, message subjects and
  payload encoding, and a container client that drives a Docker engine.

## Installation

```
pip install fortanode
```

For the test suite:

```
pip install "fortanode[test]"
pytest
```

## Command line

```
forta [--dir DIR] [--passphrase PASSPHRASE] [--light-kdf] COMMAND
```

- `--dir` is the node directory; it defaults to `$FORTA_DIR`, or
  `~/.forta`. The config file is `config.yml` and the keys live in `.keys`
  inside it.
- `--passphrase` defaults to `$FORTA_PASSPHRASE`.
- `--light-kdf` uses lighter scrypt parameters for new key files.

Commands:

```
forta init
forta account address
forta account import --file KEYFILE
```

`forta init` creates whatever is missing of the node directory, a commented
`config.yml` template, the key directory and a new scanner key, and prints
the scanner address. The passphrase must contain alphanumeric characters and
be at least 12 characters long; without a passphrase the help text is shown.
If everything is already in place it only says so.

`forta account address` prints the address of the single key in the key
directory; it fails when there are none or more than one.

`forta account import --file KEYFILE` reads a hex private key from the file,
replaces the key directory with a new one holding only that key, encrypted
with the passphrase, and prints its address.

Errors are printed to stderr and the command exits with status 1.

## Library use

### Keys

```python
from fortanode.accounts import KeyStore, checksum_address

store = KeyStore("/tmp/keys")
address = store.new_account("placeholder")
store.accounts()            # checksummed addresses, ordered by file name
```

`KeyStore.import_private_key(hex_key, passphrase)` stores an existing key and
raises `AccountError` for malformed keys or an account that already exists.
`account_address(key_dir)` and `import_account(key_dir, key_file, passphrase)`
are what the command line uses.

### Initialisation

```python
from fortanode.initialize import NodePaths, initialize

initialize(NodePaths("/tmp/node"), passphrase)
```

returns the new scanner address, or `None` when no key had to be created,
and raises `InitError` for a missing or invalid passphrase.

### Throttling

```python
from fortanode.cooldown import Cooldown
from fortanode.ratelimiter import RateLimiter

limiter = RateLimiter(rate=0.5, burst=1)   # one event every two seconds
if limiter.exceeds_limit("client-1"):
    ...
```

`RateLimiter` raises `ValueError` for a non-positive rate and drops clients
idle for more than ten minutes on `cleanup()`. `Cooldown(threshold,
cooldown_duration).should_cool_down(key)` counts operations per key and
answers `True` once the threshold is passed, until the cooldown has elapsed;
its `cleanup()` drops counters whose cooldown ended over an hour ago or never
started. Both accept a `clock` callable and report tracked keys with `len()`.

### Agent errors

```python
from fortanode.agentgrpc import response_error, evaluate_health_check_result

str(response_error(["operation failed", "deadline exceeded"]))
# 'operation failed, deadline exceeded'
```

`evaluate_health_check_result(invoke_error, messages)` folds an invocation
error (ignoring `NotImplementedError`) and response messages into a
`MultiError`, or returns `None`. `Method` lists the agent method names.

### Alert API, messages

`AlertAPIClient(api_url).post_batch(batch, token)` posts to
`/batch/<ref>` with a bearer token and raises `AlertAPIError` on a non-2xx
answer. `fortanode.messaging` holds the `Subject` names, `ScannerPayload`,
`decode_scanner_payload` and `encode_payload`.

### Containers

`fortanode.containers` has `ContainerConfig`, `ContainerList`, labels,
label filters, port bindings, registry credentials and log clean-up.
`fortanode.docker_client.DockerClient(engine, name)` starts, stops, waits
for, prunes and nukes labelled containers and manages networks and images,
raising `DockerError` or `ContainerNotFoundError`.

### Health reports and versions

`fortanode.status.render_reports(reports, output_format, show, no_color)`
takes `Report` objects; formats are `pretty`, `oneline`, `json` and `csv`,
filters are `summary`, `important` and `all`; an unknown format raises
`ValueError`. `fortanode.version.make_version_output(docker_client)` gives
indented JSON with the CLI release summary and, when the scanner container
carries release info, the containers' summary.

## What it does not do

- It does not run a node: there is no command that starts the scanner,
  supervisor, updater or other services.
- `DockerClient` needs an engine object with the methods of its `Engine`
  protocol; no transport to the Docker daemon is included.
- Status and version output are library functions only; the command line has
  no `status` or `version` command and nothing fetches reports from a running
  node.
- Messaging covers subjects and payload encoding; there is no message-bus
  connection, and there is no gRPC client for agents.
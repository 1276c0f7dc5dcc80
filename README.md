# knevent

Build CloudEvents from the command line. You can print them in a
human-readable, JSON or YAML form, or send them over HTTP to an endpoint.

## Installation

```
pip install .
```

## Commands

The package installs two commands.

### `kn-event`

```
kn-event build [flags]          # build an event and print it to stdout
kn-event send --to URL [flags]  # build an event and send it
kn-event version                # print the version
```

If you run `kn-event` with no subcommand, it prints its help.

Global flags work before or after the subcommand:

* `-v`, `--verbose`: log debug messages on stderr.
* `-o`, `--output`: the output format. It is one of `human`, `json` or
  `yaml`, in any letter case. The default is `human`.

Flags for `build` and `send`:

* `-t`, `--type`: the event type. The default is
  `dev.knative.cli.plugin.event.generic`.
* `-i`, `--id`: the event ID. The default is a fresh UUID.
* `-s`, `--source`: the event source. The default is `kn-event/0.1.0`.
* `-f`, `--field`: a data field written as `path=value`.
  * The path is dotted, for example `person.name`, and builds nested objects.
  * The value becomes `true` or `false` when it is exactly that word.
  * It becomes a number when it is exactly an integer or a decimal.
  * Otherwise it stays a string.
  * The flag may be repeated.
* `--raw-field`: a data field written as `path=value`. The value always stays
  a string. The flag may be repeated.

Flags for `send`:

* `-r`, `--to`: the recipient. This flag is required. It takes one of these
  forms:
  * an absolute URL such as `https://example.com/events`;
  * a bare name, read as a `ksvc` reference;
  * a prefixed name: `broker:NAME`, `channel:NAME`, `service:NAME` or
    `ksvc:NAME`;
  * `kind:apiVersion:name`.
* `--addressable-uri`: a URI that is resolved against the target URL.
* `--kubeconfig`: the kubeconfig file. The namespace of a reference is read
  from its current context. Without this flag the command uses `KUBECONFIG`,
  then `~/.kube/config`.

`send` delivers the event with an HTTP `POST` in binary content mode:

* each context attribute goes in a `ce-` header;
* the data is the request body;
* `Content-Type` carries the data content type.

Any response status other than 2xx is an error.

Example:

```
kn-event build -o json \
  --type org.example.ping \
  --field person.name=Chris \
  --field person.email=chris@example.com \
  --field ping=123 \
  --field active=true \
  --raw-field ref=321

kn-event send --to https://example.com/events --field ping=1
```

On failure, the command prints the error and its chain of causes to stderr
and exits with code 1. For example:

```
🔥 Error: send target validation failed
  └─ caused by: use --to flag is required
```

`kn-event version` prints the name and version:

* with `-o json`, as a JSON object with the keys `name`, `version` and
  `image`;
* with `-o yaml`, as YAML with the same keys.

### `kn-event-sender`

This command sends one event. It is configured through the environment:

* `K_SINK`: the URL the event is delivered to. The default is `localhost`.
* `K_EVENT`: the event, as URL-safe base64 without padding of the
  zlib-compressed JSON form of the event. `knevent.codec.encode` produces
  this form.

```
K_SINK=https://example.com/events K_EVENT=... kn-event-sender
```

It logs JSON lines on stderr. It exits with 0 when the event was sent and 1
otherwise.

## Library use

```python
from knevent.event import Spec, create_from_spec
from knevent.codec import encode, decode

spec = Spec(type="org.example.ping", id="42", source="/events/ping")
spec.add_field("person.name", "Chris")
spec.add_field("ping", 123)

event = create_from_spec(spec)
print(event.to_json(indent=2))

wire = encode(event)
assert decode(wire).to_dict() == event.to_dict()
```

`knevent.app.App` provides these methods:

* `create_with_args`: builds an event from `EventArgs`. The field strings
  are parsed as described for the command line.
* `present_with`: renders an event for an `OutputMode`.
* `send`: delivers an event to the target in a `knevent.target.TargetArgs`.

`knevent.target.validate_target` checks the `--to` and `--addressable-uri`
values.

`knevent.sender.Binding` lets you supply your own sender factory in place of
the default HTTP sender.

Every failure is raised as a subclass of `knevent.errors.KnEventError`. The
module `knevent.errors` has helpers to walk the chain of causes:

* `wrap`
* `unwrap_all`
* `cause`

## What it does not do

* Events can be sent only to URL targets. The other forms are accepted:
  * they pass validation;
  * their namespace is read from the kubeconfig.

  Sending to them then fails, because the package does not resolve
  cluster resources to addresses.
* Nothing runs inside a cluster on the user's behalf.
* No log file is written. Logs go to stderr only.
* `K_CEOVERRIDES` is read by `kn-event-sender` but not applied to the event.

## Development

```
pip install -e ".[test]"
pytest
```
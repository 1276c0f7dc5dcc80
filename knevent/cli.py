"""The ``kn-event`` command line: build, send and version subcommands."""

from __future__ import annotations

import argparse
import json
import logging
import os
import re
import sys
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Sequence, TextIO

import yaml

from knevent.app import (
    App,
    CantBuildEventError,
    EventArgs,
    OutputMode,
    Params,
    PluginVersionOutput,
    UnsupportedOutputModeError,
)
from knevent.errors import KnEventError, cause, wrap
from knevent.event import DEFAULT_TYPE, default_source, new_id
from knevent.output import default_logging_setup, initial_context, setup_output
from knevent.sender import Binding, CantSendEventError
from knevent.target import TargetArgs, validate_target

PLUGIN_USE = "event"
PLUGIN_DESCRIPTION = "Manage CloudEvents from command line"

_RED = "\x1b[31m"
_GREEN = "\x1b[32m"
_YELLOW = "\x1b[33m"
_CYAN = "\x1b[36m"
_RESET = "\x1b[0m"

_NUMBERS_RE = re.compile(r"\s+\d+\s+")
_STRING_RE = re.compile(r'\s+"[^"]+"\s+')

_log = logging.getLogger("knevent.cli")


class CantBePresentedError(KnEventError):
    message = "can't be presented"


class SendTargetValidationFailedError(KnEventError):
    message = "send target validation failed"


class _UsageError(KnEventError):
    message = "invalid usage"


class _Parser(argparse.ArgumentParser):
    """Argument parser that raises instead of exiting on bad input."""

    def error(self, message: str) -> None:  # type: ignore[override]
        raise _UsageError(message)


def _paint(text: str, color: str) -> str:
    return f"{color}{text}{_RESET}"


def _is_fancy(stream: TextIO) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def _output_mode(value: str) -> OutputMode:
    try:
        return OutputMode(value.lower())
    except ValueError:
        raise argparse.ArgumentTypeError(
            f'invalid argument "{value}" for "-o, --output" flag: '
            "must be 'human', 'json', 'yaml'"
        ) from None


def present_version(version: PluginVersionOutput, mode: OutputMode) -> str:
    """Render the version information in the given output mode."""
    if mode is OutputMode.JSON:
        try:
            return json.dumps(asdict(version), separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            raise wrap(exc, CantBePresentedError)
    if mode is OutputMode.YAML:
        try:
            return yaml.safe_dump(asdict(version), sort_keys=False)
        except yaml.YAMLError as exc:
            raise wrap(exc, CantBePresentedError)
    if mode is OutputMode.HUMAN_READABLE:
        return (
            f"{version.name} version: {version.version}\n"
            f"sender image: {version.image}"
        )
    raise UnsupportedOutputModeError(f"{UnsupportedOutputModeError.message}: {mode}")


def colorize_message(message: str, fancy: bool) -> str:
    """Highlight numbers and quoted strings when the output is fancy."""
    if not fancy:
        return message
    message = _NUMBERS_RE.sub(lambda m: _paint(m.group(0), _YELLOW), message)
    return _STRING_RE.sub(lambda m: _paint(m.group(0), _GREEN), message)


def pretty_print_error(
    err: BaseException, stream: TextIO, log_path: str | Path | None = None
) -> None:
    """Print the error and its chain of causes, plus a hint about the log file."""
    fancy = _is_fancy(stream)
    messages = [str(err)]
    current: BaseException | None = err
    while (current := cause(current)) is not None:
        messages.append(str(current))

    prefix = "🔥 Error:"
    if fancy:
        prefix = _paint(prefix, _RED)
    for depth, message in enumerate(messages):
        if depth + 1 < len(messages):
            message = message.replace(": " + messages[depth + 1], "", 1)
        if depth == 0:
            lead = prefix
        else:
            lead = "  " * depth + "└─ caused by:"
            if fancy:
                lead = _paint(lead, _RED)
        stream.write(f"{lead} {colorize_message(message, fancy)}\n")

    if log_path is not None:
        path_text = str(log_path)
        hint = "🌟 Hint:"
        if fancy:
            path_text = _paint(path_text, _CYAN)
            hint = _paint(hint, _YELLOW)
        stream.write("\n")
        stream.write(f"{hint} The execution logs could help debug the failure.\n")
        stream.write(
            f"         Consider, taking a look at the log file: {path_text}\n"
        )


def _add_builder_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-t", "--type", default=DEFAULT_TYPE, help="Specify a type of a CloudEvent"
    )
    parser.add_argument(
        "-i", "--id", default=new_id(), help="Specify a CloudEvent ID"
    )
    parser.add_argument(
        "-s",
        "--source",
        default=default_source(),
        help="Specify a source of an CloudEvent",
    )
    parser.add_argument(
        "-f",
        "--field",
        dest="fields",
        action="append",
        default=[],
        help=(
            "Specify a field for data of an CloudEvent as a dotted path, an "
            "equal sign and a value resolved to its exact type, "
            'e.g. "person.age=18".'
        ),
    )
    parser.add_argument(
        "--raw-field",
        dest="raw_fields",
        action="append",
        default=[],
        help=(
            "Specify a raw field for data of an CloudEvent as a dotted path, an "
            'equal sign and a string value, e.g. "person.name=John".'
        ),
    )


@dataclass
class CommandLine:
    """The ``kn event`` command with its output streams and dependencies."""

    stdout: TextIO | None = None
    stderr: TextIO | None = None
    binding: Binding | None = None

    def build_parser(self) -> argparse.ArgumentParser:
        """Create the argument parser with all subcommands."""
        global_flags = _Parser(add_help=False)
        global_flags.add_argument(
            "-v",
            "--verbose",
            action="store_true",
            default=argparse.SUPPRESS,
            help="verbose output",
        )
        global_flags.add_argument(
            "-o",
            "--output",
            type=_output_mode,
            default=argparse.SUPPRESS,
            help="OutputMode format. One of: human|json|yaml.",
        )
        global_flags.add_argument(
            "--config", default=argparse.SUPPRESS, help=argparse.SUPPRESS
        )

        parser = _Parser(
            prog=f"kn-{PLUGIN_USE}",
            description=PLUGIN_DESCRIPTION,
            parents=[global_flags],
        )
        commands = parser.add_subparsers(dest="command", metavar="command")

        build = commands.add_parser(
            "build",
            parents=[global_flags],
            help="Builds a CloudEvent and print it to stdout",
        )
        _add_builder_flags(build)

        send = commands.add_parser(
            "send",
            parents=[global_flags],
            help="Builds and sends a CloudEvent to recipient",
        )
        _add_builder_flags(send)
        send.add_argument(
            "-r",
            "--to",
            default="",
            help=(
                "Addressable sink for events: a URL, a prefixed name such as "
                "broker:name, or kind:apiVersion:name."
            ),
        )
        send.add_argument(
            "--addressable-uri",
            default="",
            help=(
                "Specify a relative URI of a target addressable resource. If "
                "this option isn't specified target URL will not be changed."
            ),
        )
        send.add_argument(
            "--kubeconfig", default=None, help="kubectl configuration file"
        )

        commands.add_parser(
            "version",
            parents=[global_flags],
            help="Prints the kn event plugin version",
        )
        return parser

    def execute(self, argv: Sequence[str] | None = None) -> None:
        """Run the command line; raise a KnEventError on failure."""
        args = list(sys.argv[1:] if argv is None else argv)
        parser = self.build_parser()
        stdout = self.stdout or sys.stdout
        if not any(args):
            stdout.write(parser.format_help())
            return
        ns = parser.parse_args(args)
        if ns.command is None:
            stdout.write(parser.format_help())
            return
        params = Params(
            output_mode=getattr(ns, "output", OutputMode.HUMAN_READABLE),
            verbose=getattr(ns, "verbose", False),
            kubeconfig=getattr(ns, "kubeconfig", None),
        )
        level = logging.DEBUG if params.verbose else logging.INFO
        ctx = setup_output(
            replace(initial_context(), stdout=self.stdout, stderr=self.stderr),
            default_logging_setup(level),
        )
        out = ctx.stdout or sys.stdout
        if ns.command == "build":
            self._build(ns, params, out)
        elif ns.command == "send":
            self._send(ns, params)
        else:
            out.write(present_version(PluginVersionOutput(), params.output_mode) + "\n")

    def _app(self) -> App:
        return App() if self.binding is None else App(binding=self.binding)

    @staticmethod
    def _event_args(ns: argparse.Namespace) -> EventArgs:
        return EventArgs(
            type=ns.type,
            id=ns.id,
            source=ns.source,
            fields=list(ns.fields),
            raw_fields=list(ns.raw_fields),
        )

    def _build(self, ns: argparse.Namespace, params: Params, out: TextIO) -> None:
        app = self._app()
        try:
            event = app.create_with_args(self._event_args(ns))
        except KnEventError as exc:
            raise wrap(exc, CantBuildEventError)
        _log.debug("Event: %r", event)
        try:
            text = app.present_with(event, params.output_mode)
        except KnEventError as exc:
            raise wrap(exc, CantBePresentedError)
        out.write(text + "\n")

    def _send(self, ns: argparse.Namespace, params: Params) -> None:
        target_args = TargetArgs(sink=ns.to, addressable_uri=ns.addressable_uri)
        try:
            validate_target(target_args)
        except KnEventError as exc:
            raise wrap(exc, SendTargetValidationFailedError)
        app = self._app()
        try:
            event = app.create_with_args(self._event_args(ns))
        except KnEventError as exc:
            raise wrap(exc, CantBuildEventError)
        try:
            app.send(event, target_args, params)
        except KnEventError as exc:
            raise wrap(exc, CantSendEventError)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point of ``kn-event``; returns the exit code."""
    command_line = CommandLine()
    try:
        command_line.execute(argv)
    except KnEventError as exc:
        pretty_print_error(exc, command_line.stderr or sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
"""Command encoder for the in-sandbox listener protocol.

The listener tails a control file inside the sandbox. Each line is one record:

    upsert <filename> <content>   create/replace <filename> in the workspace
    run                           start the profile's entry file
    input <text>                  feed <text> as one line of program stdin

``content`` is passed through exactly as the client sent it (the reference
client base64-encodes file bodies); the listener owns decoding. Records are
always appended, never overwritten, so a later verb can't erase an earlier
one. Payloads travel on the exec's stdin and never pass through a shell.
"""

from __future__ import annotations

import shlex
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import PurePosixPath

from execution.errors import InvalidCommand

VERB_UPSERT = "upsert"
VERB_RUN = "run"
VERB_INPUT = "input"


@dataclass(frozen=True)
class ControlWrite:
    """Records produced by one client command, delivered as one append."""
    records: tuple[str, ...]

    @property
    def payload(self) -> bytes:
        return "".join(f"{record}\n" for record in self.records).encode("utf-8")


@dataclass(frozen=True)
class CommandRecord:
    verb: str
    filename: str | None = None
    payload: str | None = None


def append_command(control_file: str) -> list[str]:
    """Shell invocation that appends its stdin to ``control_file``."""
    return ["sh", "-c", f"cat >> {shlex.quote(control_file)}"]


def _has_line_break(value: str) -> bool:
    return "\n" in value or "\r" in value


def validate_filename(filename: str) -> str:
    if not isinstance(filename, str) or not filename:
        raise InvalidCommand("Filename must be a non-empty string")
    if any(ch.isspace() or ord(ch) < 32 or ord(ch) == 127 for ch in filename):
        raise InvalidCommand(f"Filename contains whitespace or control characters: {filename!r}")
    if filename.startswith(("/", "~")):
        raise InvalidCommand(f"Filename must be relative: {filename!r}")
    parts = PurePosixPath(filename).parts
    if not parts or ".." in parts:
        raise InvalidCommand(f"Filename escapes the workspace: {filename!r}")
    return filename


def upsert(files: Mapping[str, str]) -> ControlWrite:
    if not files:
        raise InvalidCommand("No files to upsert")
    records = []
    for filename, content in files.items():
        validate_filename(filename)
        if not isinstance(content, str):
            raise InvalidCommand(f"Content for {filename!r} must be text")
        if _has_line_break(content):
            raise InvalidCommand(f"Content for {filename!r} must be transport-encoded (no line breaks)")
        records.append(f"{VERB_UPSERT} {filename} {content}")
    return ControlWrite(records=tuple(records))


def run() -> ControlWrite:
    return ControlWrite(records=(VERB_RUN,))


def send_input(text: str) -> ControlWrite:
    if not isinstance(text, str):
        raise InvalidCommand("Input must be text")
    # One trailing newline is what a terminal sends on enter; it is implied by the record.
    if text.endswith("\r\n"):
        text = text[:-2]
    elif text.endswith("\n"):
        text = text[:-1]
    if _has_line_break(text):
        raise InvalidCommand("Input must be a single line")
    return ControlWrite(records=(f"{VERB_INPUT} {text}",))


def decode_record(line: str) -> CommandRecord:
    """Parse one control-file line the way the listener does."""
    line = line.rstrip("\n")
    if line == VERB_RUN:
        return CommandRecord(verb=VERB_RUN)
    if line == VERB_INPUT or line.startswith(f"{VERB_INPUT} "):
        return CommandRecord(verb=VERB_INPUT, payload=line[len(VERB_INPUT) + 1:])
    if line.startswith(f"{VERB_UPSERT} "):
        parts = line.split(" ", 2)
        if len(parts) == 3 and parts[1]:
            return CommandRecord(verb=VERB_UPSERT, filename=parts[1], payload=parts[2])
    raise InvalidCommand(f"Malformed control record: {line!r}")

"""Domain models for captured mail.

A Mail is the one persisted unit of the store: the envelope, the verbatim
message bytes, the normalized invocation that produced it and the identity of
the capturing process. Models are immutable Pydantic models; unknown fields
are ignored on decode so older and newer writers can share a store.
"""

import base64
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Discriminator, Field, Tag, model_validator

from .errors import RecordCorrupt

# Bumped only for incompatible layout changes; readers ignore unknown fields.
MAIL_FORMAT_VERSION = 1


class FrozenModel(BaseModel):
    """Immutable model that tolerates unknown fields on input."""

    class Config:
        frozen = True
        extra = "ignore"


# ---------------------------------------------------------------------------
# Invocation flags
# ---------------------------------------------------------------------------

class IgnoreDots(FrozenModel):
    """`-i` / `-oi`: a lone dot does not terminate the message."""
    kind: Literal["ignore_dots"] = "ignore_dots"
    token: str = "-i"


class InlineRecipients(FrozenModel):
    """`-t`: recipients are read from the message headers."""
    kind: Literal["inline_recipients"] = "inline_recipients"
    token: str = "-t"


class Sender(FrozenModel):
    """`-f ADDR` / `-r ADDR`: envelope sender."""
    kind: Literal["sender"] = "sender"
    token: str = "-f"
    address: str


class FullName(FrozenModel):
    """`-F NAME`: full name of the sender."""
    kind: Literal["full_name"] = "full_name"
    token: str = "-F"
    name: str


class Verbose(FrozenModel):
    kind: Literal["verbose"] = "verbose"
    token: str = "-v"


class Debug(FrozenModel):
    """`--debug`: trapmail-specific diagnostics on stderr."""
    kind: Literal["debug"] = "debug"
    token: str = "--debug"


class IgnoredFlag(FrozenModel):
    """Any flag outside the recognized set, kept verbatim for audit.

    Stored flags of a kind this version does not know also decode as an
    IgnoredFlag, so a record from a newer writer stays readable.
    """
    kind: Literal["ignored"] = "ignored"
    token: str

    @model_validator(mode="before")
    @classmethod
    def absorb_unknown_kind(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("kind", "ignored") != "ignored":
            data = dict(data)
            data["token"] = data.get("token") or str(data["kind"])
            data["kind"] = "ignored"
        return data


RECOGNIZED_FLAG_KINDS = frozenset({
    "ignore_dots", "inline_recipients", "sender", "full_name", "verbose", "debug",
})


def flag_kind(value: Any) -> str:
    """Discriminator tag for a flag; unknown kinds map to 'ignored'."""
    if isinstance(value, dict):
        kind = value.get("kind")
    else:
        kind = getattr(value, "kind", None)
    if isinstance(kind, str) and kind in RECOGNIZED_FLAG_KINDS:
        return kind
    return "ignored"


InvocationFlag = Annotated[
    Union[
        Annotated[IgnoreDots, Tag("ignore_dots")],
        Annotated[InlineRecipients, Tag("inline_recipients")],
        Annotated[Sender, Tag("sender")],
        Annotated[FullName, Tag("full_name")],
        Annotated[Verbose, Tag("verbose")],
        Annotated[Debug, Tag("debug")],
        Annotated[IgnoredFlag, Tag("ignored")],
    ],
    Discriminator(flag_kind),
]


class Invocation(FrozenModel):
    """Normalized command-line context of one capture.

    Attributes:
        source: Which ingress produced the capture ('sendmail' or 'smtp')
        argv: Literal command-line tokens, in order
        flags: Recognized flags plus IgnoredFlag entries for everything else
        addresses: Recipient addresses given on the command line
        working_directory: Working directory of the capturing process
        environment: Environment values of interest (at least TRAPMAIL_STORE
            as actually resolved)
    """
    source: Literal["sendmail", "smtp"] = "sendmail"
    argv: List[str] = Field(default_factory=list)
    flags: List[InvocationFlag] = Field(default_factory=list)
    addresses: List[str] = Field(default_factory=list)
    working_directory: str = ""
    environment: Dict[str, str] = Field(default_factory=dict)

    @property
    def recognized_flags(self) -> List[BaseModel]:
        return [f for f in self.flags if not isinstance(f, IgnoredFlag)]

    @property
    def ignored_flags(self) -> List[IgnoredFlag]:
        return [f for f in self.flags if isinstance(f, IgnoredFlag)]

    def has_flag(self, kind: str) -> bool:
        return any(f.kind == kind for f in self.flags)


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------

class Envelope(FrozenModel):
    """Envelope sender and recipients, in the order received (duplicates kept)."""
    sender: Optional[str] = None
    recipients: List[str] = Field(default_factory=list)


class MailBody(FrozenModel):
    """Verbatim message bytes.

    Valid UTF-8 is stored as text so a stored record stays readable in an
    editor; anything else is stored base64-encoded.
    """
    encoding: Literal["utf8", "base64"]
    data: str

    @classmethod
    def from_raw(cls, raw: bytes) -> "MailBody":
        try:
            return cls(encoding="utf8", data=raw.decode("utf-8"))
        except UnicodeDecodeError:
            return cls(encoding="base64", data=base64.b64encode(raw).decode("ascii"))

    def to_bytes(self) -> bytes:
        if self.encoding == "utf8":
            return self.data.encode("utf-8")
        return base64.b64decode(self.data)

    @property
    def is_utf8(self) -> bool:
        return self.encoding == "utf8"

    @property
    def text(self) -> str:
        """Message as text, lossily decoded if it is not valid UTF-8."""
        if self.is_utf8:
            return self.data
        return self.to_bytes().decode("utf-8", errors="replace")


class ProcessInfo(FrozenModel):
    """Identity of the capturing process at the moment of capture.

    (ppid, pid, timestamp_us) is the natural key of a record.
    """
    pid: int
    ppid: int
    timestamp_us: int

    @property
    def captured_at(self) -> datetime:
        seconds, micros = divmod(self.timestamp_us, 1_000_000)
        return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(microsecond=micros)


class Mail(FrozenModel):
    """A captured ("sent") mail."""
    version: int = MAIL_FORMAT_VERSION
    envelope: Envelope
    raw_message: MailBody
    invocation: Invocation = Field(default_factory=Invocation)
    process_info: ProcessInfo

    @property
    def pid(self) -> int:
        return self.process_info.pid

    @property
    def ppid(self) -> int:
        return self.process_info.ppid

    @property
    def timestamp_us(self) -> int:
        return self.process_info.timestamp_us

    @property
    def sender(self) -> Optional[str]:
        return self.envelope.sender

    @property
    def recipients(self) -> List[str]:
        return self.envelope.recipients

    @property
    def message(self) -> bytes:
        return self.raw_message.to_bytes()

    def encode(self) -> bytes:
        return encode_mail(self)

    @classmethod
    def decode(cls, data: Union[bytes, str]) -> "Mail":
        return decode_mail(data)

    @classmethod
    def load(cls, source: Union[str, Path]) -> "Mail":
        """Load a Mail from a file.

        Raises:
            RecordCorrupt: If the file content does not decode to a Mail
            OSError: If the file cannot be read
        """
        path = Path(source)
        data = path.read_bytes()
        try:
            return decode_mail(data)
        except ValueError as e:
            raise RecordCorrupt(path, str(e)) from e

    def render(self) -> str:
        """Human-readable dump of the record."""
        captured = self.process_info.captured_at.strftime("%Y-%m-%d %H:%M:%S.%f")
        recognized = " ".join(f.token for f in self.invocation.recognized_flags) or "-"
        ignored = " ".join(f.token for f in self.invocation.ignored_flags) or "-"
        body = self.raw_message.text
        if not self.raw_message.is_utf8:
            body = "[invalid UTF-8]" + body

        lines = [
            f"Mail sent on {captured} UTC from PID {self.pid} (PPID {self.ppid}).",
            f"Sender: {self.sender or '-'}",
            f"Recipients: {', '.join(self.recipients) or '-'}",
            f"Flags: {recognized}",
            f"Ignored flags: {ignored}",
            f"Working directory: {self.invocation.working_directory or '-'}",
            "",
            body,
        ]
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.render()


def encode_mail(mail: Mail) -> bytes:
    """Serialize a Mail to JSON bytes.

    Keys are sorted so equal records always encode to identical bytes.
    """
    return json.dumps(
        mail.model_dump(mode="json"),
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")


def decode_mail(data: Union[bytes, str]) -> Mail:
    """Rehydrate a Mail from stored JSON.

    Raises:
        ValueError: If data is not valid JSON or does not describe a Mail
            (pydantic.ValidationError and json.JSONDecodeError are both
            ValueError subclasses)
    """
    payload = json.loads(data)
    if not isinstance(payload, dict):
        raise ValueError(f"Expected a JSON object, got {type(payload).__name__}")
    return Mail.model_validate(payload)

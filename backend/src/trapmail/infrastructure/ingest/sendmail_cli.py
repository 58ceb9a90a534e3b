"""sendmail-compatible command line for trapmail.

Reads a message from stdin and stores it, with its envelope and invocation
metadata, in the mail store instead of delivering it.

Usage:
    trapmail [-i] [-t] [-f sender] [-F name] [--debug] [recipient ...] < message
    trapmail --dump /tmp/trapmail_5913_6299_1575911147313470.json

Only a small set of flags is recognized. Every other flag is accepted,
recorded verbatim in the stored record and logged as ignored, so the
application under test never fails because of an unexpected option.
sendmail options that take a separate value are registered so that their
value is not mistaken for a recipient.

Environment Variables:
    TRAPMAIL_STORE: Store directory (default: platform temp directory)
    TRAPMAIL_LOG_LEVEL: Log level (default: WARNING)
    TRAPMAIL_LOG_JSON: Emit JSON log lines on stderr (default: false)
"""

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, List, Optional, Sequence, TextIO

from ...capture import capture_mail
from ...config import get_settings
from ...domain.mail.errors import (
    ProcessInfoUnavailable,
    RecordCollision,
    RecordCorrupt,
    StoreDirectoryMissing,
)
from ...domain.mail.models import (
    Debug,
    FullName,
    IgnoreDots,
    IgnoredFlag,
    InlineRecipients,
    Invocation,
    Mail,
    Sender,
    Verbose,
)
from ...observability.logging_config import configure_logging

logger = logging.getLogger(__name__)

# sysexits.h
EX_OK = 0
EX_NOINPUT = 66
EX_OSERR = 71
EX_CANTCREAT = 73
EX_TEMPFAIL = 75

# sendmail options taking a separate value that trapmail does not interpret.
IGNORED_OPTIONS_WITH_VALUE = ("-B", "-C", "-h", "-L", "-N", "-O", "-p", "-R", "-V", "-X")


class FlagAction(argparse.Action):
    """Append a flag model to namespace.flags, keeping command-line order."""

    def __init__(self, option_strings, dest, factory: Callable, nargs=0, **kwargs):
        self.factory = factory
        super().__init__(option_strings, dest, nargs=nargs, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None):
        flags = list(getattr(namespace, self.dest, None) or [])
        flags.append(self.factory(option_string, values))
        setattr(namespace, self.dest, flags)


def build_parser() -> argparse.ArgumentParser:
    # sendmail uses -h for the hop count, so no automatic help option.
    parser = argparse.ArgumentParser(
        prog="trapmail",
        description="sendmail replacement that stores mail instead of sending it.",
        add_help=False,
        allow_abbrev=False,
    )
    flag = dict(action=FlagAction, dest="flags", default=None)

    parser.add_argument("-i", "-oi", factory=lambda opt, _: IgnoreDots(token=opt),
                        help="Ignore dots alone on lines by themselves", **flag)
    parser.add_argument("-t", factory=lambda opt, _: InlineRecipients(token=opt),
                        help="Read message for recipient list", **flag)
    parser.add_argument("-f", "-r", nargs=None, metavar="ADDR",
                        factory=lambda opt, value: Sender(token=opt, address=value),
                        help="Envelope sender address", **flag)
    parser.add_argument("-F", nargs=None, metavar="NAME",
                        factory=lambda opt, value: FullName(token=opt, name=value),
                        help="Full name of the sender", **flag)
    parser.add_argument("-v", factory=lambda opt, _: Verbose(token=opt),
                        help="Verbose mode", **flag)
    parser.add_argument("--debug", factory=lambda opt, _: Debug(token=opt),
                        help="Print trapmail diagnostics to stderr", **flag)
    parser.add_argument(*IGNORED_OPTIONS_WITH_VALUE, nargs=None, metavar="VALUE",
                        factory=lambda opt, value: IgnoredFlag(token=f"{opt} {value}"),
                        help="Accepted for compatibility and ignored", **flag)

    parser.add_argument("--dump", type=Path, metavar="PATH",
                        help="Print a stored mail instead of reading one from stdin")
    parser.add_argument("addresses", nargs="*", help="Recipient addresses")
    return parser


@dataclass(frozen=True)
class CommandLine:
    """A parsed trapmail command line.

    Attributes:
        invocation: Normalized invocation to store with the mail
        sender: Envelope sender from -f/-r (last one wins), if given
        dump: Record to print instead of capturing, if given
    """
    invocation: Invocation
    sender: Optional[str]
    dump: Optional[Path]

    @property
    def debug(self) -> bool:
        return self.invocation.has_flag("debug")


def parse_command_line(argv: Sequence[str], working_directory: Optional[str] = None) -> CommandLine:
    """Classify sendmail-style argv tokens.

    Unknown flags never cause an error; they are kept as IgnoredFlag.
    Non-flag tokens are recipient addresses, in command-line order.
    """
    tokens = list(argv)
    namespace, extras = build_parser().parse_known_args(tokens)

    flags = list(namespace.flags or [])
    addresses = list(namespace.addresses or [])
    for token in extras:
        if token.startswith("-"):
            flags.append(IgnoredFlag(token=token))
        else:
            # Recipients after an unknown flag end up in extras.
            addresses.append(token)

    sender = None
    for f in flags:
        if isinstance(f, Sender):
            sender = f.address

    invocation = Invocation(
        source="sendmail",
        argv=tokens,
        flags=flags,
        addresses=addresses,
        working_directory=working_directory if working_directory is not None else os.getcwd(),
    )
    return CommandLine(invocation=invocation, sender=sender, dump=namespace.dump)


def dump_mail(path: Path, stdout: TextIO) -> int:
    try:
        mail = Mail.load(path)
    except RecordCorrupt as e:
        logger.error(str(e))
        return EX_NOINPUT
    except OSError as e:
        logger.error(f"Could not read {path}: {e}")
        return EX_NOINPUT

    print(mail.render(), file=stdout)
    return EX_OK


def main(
    argv: Optional[List[str]] = None,
    stdin: Optional[BinaryIO] = None,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
) -> int:
    """Run trapmail; returns a sysexits-style exit code."""
    argv = sys.argv[1:] if argv is None else argv
    stdin = stdin if stdin is not None else sys.stdin.buffer
    stdout = stdout if stdout is not None else sys.stdout
    stderr = stderr if stderr is not None else sys.stderr

    command_line = parse_command_line(argv)

    settings = get_settings()
    configure_logging(
        level="DEBUG" if command_line.debug else settings.log_level,
        json_format=settings.log_json,
        stream=stderr,
    )

    for ignored in command_line.invocation.ignored_flags:
        logger.warning(f"Ignoring unsupported option: {ignored.token}")

    if command_line.dump is not None:
        return dump_mail(command_line.dump, stdout)

    raw_message = stdin.read()

    try:
        result = capture_mail(
            sender=command_line.sender,
            recipients=command_line.invocation.addresses,
            raw_message=raw_message,
            invocation=command_line.invocation,
        )
    except RecordCollision as e:
        logger.error(f"{e}. Retry the delivery.")
        return EX_TEMPFAIL
    except StoreDirectoryMissing as e:
        logger.error(str(e))
        return EX_CANTCREAT
    except ProcessInfoUnavailable as e:
        logger.error(str(e))
        return EX_OSERR
    except OSError as e:
        logger.error(f"Could not store mail: {e}", exc_info=True)
        return EX_OSERR

    if command_line.debug:
        print(f'Mail written to "{result.path}"', file=stderr)

    return EX_OK


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()

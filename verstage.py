#!/usr/bin/env python3
# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Paul Tiffany
# Project: verstage - Review staged documentation updates

"""
verstage - Review, accept, or reject staged updates to documentation files.

A staged update is a file named ``V<digits>_<name>`` sitting next to the file
``<name>`` it proposes to replace. verstage lists them, shows what would change,
and promotes or discards them. A single-file, zero-dependency tool.
"""

import argparse
import difflib
import fnmatch
import os
import re
import sys
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

# Project metadata
__version__ = "1.0.0"
__license__ = "MIT"
__source__ = "https://github.com/PaulTiffany/verstage"

# --- Configuration ---
PREVIEW_LINES = 20
VERSTAGEIGNORE = ".verstageignore"

# The whole naming convention lives here.
STAGED_NAME_RE = re.compile(r"V(?P<tag>[0-9]+)_(?P<rest>.+)", re.DOTALL)

DEFAULT_SKIP = [r"(^|/)\.(git|hg|svn)($|/)"]

NO_NEWLINE_MARKER = "\\ No newline at end of file"

COMMANDS = {
    "list": 0,
    "compare": 1,
    "accept": 1,
    "reject": 1,
    "clean": 0,
    "help": 0,
}

USAGE = """\
Usage: verstage [OPTIONS] COMMAND [FILE]

Commands:
  list          List all staged files (V<n>_*)
  compare FILE  Compare a staged file with its current version
  accept FILE   Accept a staged file (replaces the current version)
  reject FILE   Reject a staged file (deletes it)
  clean         Remove all staged files
  help          Show this help message

Options:
  -C, --root DIR           Directory scanned by list and clean (default: .)
  -n, --preview-lines N    Lines shown when previewing a new file (default: 20)
  --no-color               Disable colored output
  --version                Show version and exit
  --about                  Show project info and exit

Examples:
  verstage list
  verstage compare V2_quick-reference.md
  verstage accept V2_quick-reference.md
  verstage reject V2_quick-reference.md
  verstage clean
"""

# --- Errors ---


class VerstageError(Exception):
    """Base exception for verstage operations."""


class UsageError(VerstageError):
    """Wrong arguments or unknown command."""


class NotFoundError(VerstageError):
    """A staged file that an operation needs does not exist."""


class InvalidFormatError(VerstageError):
    """A path does not follow the V<digits>_<name> convention."""


# --- Naming convention ---


def is_staged(basename: str) -> bool:
    """Check if a basename carries a version prefix."""
    return STAGED_NAME_RE.fullmatch(basename) is not None


def _match(basename: str) -> "re.Match[str]":
    match = STAGED_NAME_RE.fullmatch(basename)
    if match is None:
        raise InvalidFormatError(
            f"'{display(basename)}' is not a staged file (expected V<number>_<name>)"
        )
    return match


def canonical_name_of(basename: str) -> str:
    """Strip the version prefix, leaving the rest of the name untouched."""
    return _match(basename).group("rest")


def version_tag_of(basename: str) -> str:
    """Return the digits of the version prefix."""
    return _match(basename).group("tag")


@dataclass(frozen=True)
class StagedFile:
    """A file awaiting a decision, and the file it would replace."""

    path: Path
    directory: Path
    version_tag: str
    canonical_name: str
    canonical_path: Path

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "StagedFile":
        """Build from a path string alone; the filesystem is not consulted."""
        path = Path(path)
        match = _match(path.name)
        directory = path.parent
        rest = match.group("rest")
        return cls(
            path=path,
            directory=directory,
            version_tag=match.group("tag"),
            canonical_name=rest,
            canonical_path=directory / rest,
        )


def display(path: Union[str, Path]) -> str:
    """Printable form of a path; undecodable filename bytes become U+FFFD."""
    return os.fsencode(path).decode("utf-8", errors="replace")


def _existing_staged(path: Union[str, Path]) -> StagedFile:
    staged = StagedFile.from_path(path)
    if not staged.path.is_file():
        raise NotFoundError(f"File '{display(staged.path)}' not found")
    return staged


# --- Scanning ---


def read_verstageignore(root: Path) -> list[str]:
    """Return the glob lines of .verstageignore, without blanks and comments."""
    path = root / VERSTAGEIGNORE
    if not path.is_file():
        return []
    try:
        lines = path.read_text(encoding="utf-8", errors="ignore").splitlines()
    except OSError:
        print(f"Warning: Could not read {VERSTAGEIGNORE}", file=sys.stderr)
        return []
    return [line.strip() for line in lines if line.strip() and not line.strip().startswith("#")]


def skip_pattern(root: Path, exclude: Optional[list[str]] = None) -> re.Pattern[str]:
    """Build one regex matching every relative path a scan of root skips."""
    # "drafts/" means everything below drafts
    globs = [glob + "*" if glob.endswith("/") else glob for glob in read_verstageignore(root)]
    regexes = DEFAULT_SKIP + (exclude or []) + [fnmatch.translate(glob) for glob in globs]
    try:
        return re.compile("|".join(f"(?:{regex})" for regex in regexes))
    except re.error as e:
        raise VerstageError(f"Invalid skip pattern: {e}") from e


def find_staged(root: Union[str, Path], exclude: Optional[list[str]] = None) -> Iterator[StagedFile]:
    """Yield every staged file below root, in traversal order."""
    root = Path(root)
    if not root.is_dir():
        raise VerstageError(f"Directory not found: {display(root)}")

    skip = skip_pattern(root, exclude)
    try:
        for path in root.rglob("V*_*"):
            if not is_staged(path.name) or not path.is_file():
                continue
            if skip.search(path.relative_to(root).as_posix()):
                continue
            yield StagedFile.from_path(path)
    except OSError as e:
        raise VerstageError(f"Error traversing {display(root)}: {e}") from e


# --- Comparison ---


@dataclass(frozen=True)
class NewFile:
    """The staged file has no current version yet."""

    preview: list[str]
    truncated: bool = False


@dataclass(frozen=True)
class Identical:
    """Staged and current versions are byte-for-byte equal."""


@dataclass(frozen=True)
class Differs:
    """Unified diff from the current version (old) to the staged one (new)."""

    unified_diff: str


ComparisonResult = Union[NewFile, Identical, Differs]


def _split_lines(text: str) -> list[str]:
    """Split on newlines only, keeping them; a last unterminated line stays bare."""
    parts = text.split("\n")
    tail = parts.pop()
    lines = [part + "\n" for part in parts]
    if tail:
        lines.append(tail)
    return lines


def unified_diff(old: bytes, new: bytes, old_name: str, new_name: str) -> str:
    """Render a diff -u style comparison of two byte strings."""
    if b"\x00" in old or b"\x00" in new:
        return f"Binary files {old_name} and {new_name} differ\n"

    out: list[str] = []
    for line in difflib.unified_diff(
        _split_lines(old.decode("utf-8", errors="replace")),
        _split_lines(new.decode("utf-8", errors="replace")),
        fromfile=old_name,
        tofile=new_name,
    ):
        if line.endswith("\n"):
            out.append(line)
        else:
            out.append(f"{line}\n{NO_NEWLINE_MARKER}\n")

    # Undecodable bytes can collapse to the same replacement text
    if not out and old != new:
        return f"Binary files {old_name} and {new_name} differ\n"
    return "".join(out)


def _preview(path: Path, limit: int) -> NewFile:
    # Lines end at "\n" only, as with head -n
    lines = path.read_bytes().split(b"\n")
    if lines[-1] == b"":
        lines.pop()
    preview = [line.rstrip(b"\r").decode("utf-8", errors="replace") for line in lines[:limit]]
    return NewFile(preview=preview, truncated=len(lines) > limit)


def compare(staged_path: Union[str, Path], preview_lines: int = PREVIEW_LINES) -> ComparisonResult:
    """Compare a staged file with its canonical counterpart."""
    staged = _existing_staged(staged_path)
    try:
        if not staged.canonical_path.is_file():
            return _preview(staged.path, preview_lines)

        old = staged.canonical_path.read_bytes()
        new = staged.path.read_bytes()
    except OSError as e:
        raise VerstageError(f"Error reading {display(staged.path)}: {e}") from e

    if old == new:
        return Identical()
    return Differs(unified_diff(old, new, display(staged.canonical_path), display(staged.path)))


# --- Actions ---


@dataclass(frozen=True)
class AcceptResult:
    staged: StagedFile
    replaced: bool


def accept(staged_path: Union[str, Path]) -> AcceptResult:
    """Move a staged file over its canonical path."""
    staged = _existing_staged(staged_path)
    replaced = staged.canonical_path.exists()
    try:
        os.replace(staged.path, staged.canonical_path)
    except OSError as e:
        raise VerstageError(f"Error accepting {display(staged.path)}: {e}") from e
    return AcceptResult(staged=staged, replaced=replaced)


def reject(staged_path: Union[str, Path]) -> StagedFile:
    """Delete a staged file, leaving the canonical file alone."""
    staged = _existing_staged(staged_path)
    try:
        staged.path.unlink()
    except OSError as e:
        raise VerstageError(f"Error removing {display(staged.path)}: {e}") from e
    return staged


def clean(root: Union[str, Path], exclude: Optional[list[str]] = None) -> list[StagedFile]:
    """Reject every staged file below root. Stops at the first failure."""
    found = list(find_staged(root, exclude))
    return [reject(staged.path) for staged in found]


# --- Presentation ---


@dataclass(frozen=True)
class Palette:
    """ANSI colors, or plain text when disabled."""

    enabled: bool = False

    RED = "\033[0;31m"
    GREEN = "\033[0;32m"
    YELLOW = "\033[1;33m"
    BLUE = "\033[0;34m"
    RESET = "\033[0m"

    @classmethod
    def detect(cls, no_color: bool = False) -> "Palette":
        if no_color or "NO_COLOR" in os.environ:
            return cls(enabled=False)
        return cls(enabled=sys.stdout.isatty())

    def paint(self, text: str, color: str) -> str:
        return f"{color}{text}{self.RESET}" if self.enabled else text

    def red(self, text: str) -> str:
        return self.paint(text, self.RED)

    def green(self, text: str) -> str:
        return self.paint(text, self.GREEN)

    def yellow(self, text: str) -> str:
        return self.paint(text, self.YELLOW)

    def blue(self, text: str) -> str:
        return self.paint(text, self.BLUE)

    def diff_line(self, line: str) -> str:
        if line.startswith(("+++", "---", "@@")):
            return self.blue(line)
        if line.startswith("+"):
            return self.green(line)
        if line.startswith("-"):
            return self.red(line)
        return line


def print_list(staged_files: list[StagedFile]) -> None:
    for staged in staged_files:
        print(display(staged.path))
    if not staged_files:
        print("No staged files found", file=sys.stderr)


def print_comparison(staged_path: str, result: ComparisonResult, palette: Palette) -> None:
    staged = StagedFile.from_path(staged_path)
    if isinstance(result, NewFile):
        print(palette.yellow(f"Note: Original file '{display(staged.canonical_path)}' doesn't exist"))
        print(palette.green("This is a NEW file. Use 'accept' to add it."))
        print()
        print("Preview of new file:")
        print("-------------------")
        for line in result.preview:
            print(line)
        if result.truncated:
            print("...")
        return

    print(palette.blue("Comparing:"))
    print(f"  Current:  {display(staged.canonical_path)}")
    print(f"  Updated:  {display(staged.path)}")
    print()
    if isinstance(result, Identical):
        print(palette.green("✓ Files are identical - no changes"))
    else:
        print(palette.yellow("Differences found:"))
        print("-------------------")
        for line in result.unified_diff.splitlines():
            print(palette.diff_line(line))


def print_accept(result: AcceptResult, palette: Palette) -> None:
    canonical = display(result.staged.canonical_path)
    if result.replaced:
        print(f"{palette.yellow('Replacing existing file:')} {canonical}")
    else:
        print(f"{palette.green('Creating new file:')} {canonical}")
    print(palette.green(f"✓ Accepted: {canonical}"))


def print_clean(removed: list[StagedFile], palette: Palette) -> None:
    if not removed:
        print(palette.green("✓ No staged files to clean"))
        return
    for staged in removed:
        print(f"  Removing: {display(staged.path)}")
    print(palette.green(f"✓ Cleanup complete ({len(removed)} removed)"))


# --- CLI and Main Execution ---


class _Parser(argparse.ArgumentParser):
    """ArgumentParser that reports problems as UsageError instead of exiting 2."""

    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: '{value}'") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = _Parser(prog="verstage", usage=USAGE, add_help=False)
    parser.add_argument("command", nargs="?", default="help", help="Command to run")
    parser.add_argument("files", nargs="*", help="Staged file for compare/accept/reject")
    parser.add_argument("-h", "--help", action="store_true", help="Show usage and exit")
    parser.add_argument("-C", "--root", default=".", help="Directory scanned by list and clean")
    parser.add_argument(
        "-n",
        "--preview-lines",
        type=_positive_int,
        default=PREVIEW_LINES,
        help="Lines shown when previewing a new file",
    )
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--version", action="version", version=f"verstage {__version__}")
    parser.add_argument("--about", action="store_true", help="Show project info and exit")
    return parser


def _validate(command: str, files: list[str]) -> None:
    """Check the command exists and has the right number of arguments."""
    if command not in COMMANDS:
        raise UsageError(f"Unknown command '{command}'")
    expected = COMMANDS[command]
    if len(files) < expected:
        raise UsageError(f"Please specify a file to {command}")
    if len(files) > expected:
        extra = " ".join(files[expected:])
        raise UsageError(f"Unexpected argument(s) for '{command}': {extra}")


def _run(args: argparse.Namespace, palette: Palette) -> int:
    command = args.command
    if command == "list":
        print_list(list(find_staged(args.root)))
    elif command == "compare":
        result = compare(args.files[0], preview_lines=args.preview_lines)
        print_comparison(args.files[0], result, palette)
    elif command == "accept":
        print_accept(accept(args.files[0]), palette)
    elif command == "reject":
        staged = reject(args.files[0])
        print(palette.red(f"✗ Rejected and deleted: {display(staged.path)}"))
    elif command == "clean":
        print_clean(clean(args.root), palette)
    else:
        print(USAGE, end="")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Run the main entry point."""
    parser = create_parser()
    try:
        args = parser.parse_intermixed_args(argv)
        if args.help:
            print(USAGE, end="")
            return 0
        if args.about:
            print(f"verstage {__version__} ({__license__})\nSource:  {__source__}")
            return 0
        _validate(args.command, args.files)
        return _run(args, Palette.detect(args.no_color))

    except UsageError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(file=sys.stderr)
        print(USAGE, end="", file=sys.stderr)
        return 1
    except VerstageError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nCancelled by user", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 1


def cli_entrypoint() -> None:
    """Console entry point (kept tiny so tests can patch sys.exit)."""
    sys.exit(main())


if __name__ == "__main__":
    cli_entrypoint()

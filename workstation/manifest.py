"""Declarative package manifest fed to ``brew bundle``."""
import re
from dataclasses import dataclass
from typing import Iterable, List, Tuple

KINDS = ('tap', 'brew', 'cask')

_LINE = re.compile(r'^(\w+)\s+"([^"]+)"')


@dataclass(frozen=True)
class Entry:
    kind: str
    name: str

    def __post_init__(self):
        if self.kind not in KINDS:
            raise ValueError(f"Unknown manifest entry kind: {self.kind}")

    def render(self) -> str:
        return f'{self.kind} "{self.name}"'


def tap(name: str) -> Entry:
    return Entry('tap', name)


def brew(name: str) -> Entry:
    return Entry('brew', name)


def cask(name: str) -> Entry:
    return Entry('cask', name)


DEFAULT_MANIFEST: Tuple[Entry, ...] = (
    tap("homebrew/services"),
    brew("git"),
    brew("rbenv"),
    brew("ruby-build"),
    brew("nginx"),
    brew("jq"),
    brew("gnupg"),
    brew("openssl@3"),
    brew("readline"),
    brew("libyaml"),
    cask("iterm2"),
)

# Formulae that conflict with what the manifest or Docker Desktop provides.
UNINSTALL: Tuple[str, ...] = (
    "boot2docker",
    "docker-machine",
    "docker-compose",
)


def render_brewfile(entries: Iterable[Entry]) -> str:
    """Render entries in Brewfile syntax, taps first."""
    entries = list(entries)
    ordered = [e for e in entries if e.kind == 'tap'] + [e for e in entries if e.kind != 'tap']
    return "".join(entry.render() + "\n" for entry in ordered)


def parse_brewfile(text: str) -> List[Entry]:
    """Parse the subset of Brewfile syntax that ``render_brewfile`` produces.

    Blank lines and ``#`` comments are ignored. Options after the name
    (``brew "x", args: [...]``) are dropped.
    """
    entries = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.split('#', 1)[0].strip()
        if not line:
            continue
        match = _LINE.match(line)
        if not match:
            raise ValueError(f"Line {lineno}: cannot parse {raw.strip()!r}")
        kind, name = match.groups()
        if kind not in KINDS:
            raise ValueError(f"Line {lineno}: unknown entry kind {kind!r}")
        entries.append(Entry(kind, name))
    return entries

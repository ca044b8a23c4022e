import logging
import os
from dataclasses import dataclass
from typing_extensions import *

from automaton import LAMBDA, AutomatonDescriptor, RelationBuilder

logger = logging.getLogger("afdn.io_utils")

DEFAULT_LAMBDA_MARKER = "/"


class ParseError(ValueError):
    def __init__(self, message: str, line: Optional[int] = None):
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


@dataclass(frozen=True)
class ParsedFile:
    descriptor: AutomatonDescriptor
    word: Tuple[str, ...]

    @property
    def word_text(self) -> str:
        return "".join(self.word)


def split_word(text: str) -> Tuple[str, ...]:
    """One symbol per character, whitespace dropped."""
    return tuple(c for c in text if not c.isspace())


def parse_automaton(
    content: str, lambda_marker: str = DEFAULT_LAMBDA_MARKER
) -> ParsedFile:
    """
    Parse the transition-table format:

        s0 ; s2
        s0 a > s0
        s0 / s1
        wrd : aabb

    The first line holds the initial state and the final states, the last
    line the word to test, and every line in between one transition
    (source, label, ..., destination). `lambda_marker` labels lambda
    transitions.
    """
    lines = [
        (number, line.strip())
        for number, line in enumerate(content.split("\n"), start=1)
        if line.strip() and not line.strip().startswith("#")
    ]

    if len(lines) < 2:
        raise ParseError("expected a header line and a word line")

    header_number, header = lines[0]
    if ";" not in header:
        raise ParseError("header must be '<initial> ; <finals>'", header_number)

    initial_part, finals_part = header.split(";", 1)
    initials = initial_part.split()
    finals = finals_part.split()
    if len(initials) != 1:
        raise ParseError(
            f"expected exactly one initial state, got {len(initials)}", header_number
        )
    logger.debug("Initial state %s, final states %s", initials[0], finals)

    word_number, word_line = lines[-1]
    if ":" not in word_line:
        raise ParseError("last line must be 'wrd : <word>'", word_number)
    word = split_word(word_line.rsplit(":", 1)[1])

    builder = RelationBuilder()
    for number, line in lines[1:-1]:
        parts = line.split()
        if len(parts) < 3:
            raise ParseError(
                f"transition needs a source, a label and a destination: {line!r}",
                number,
            )

        src, symbol, tgt = parts[0], parts[1], parts[-1]
        if symbol == lambda_marker:
            symbol = LAMBDA
        builder.insert(src, symbol, tgt)

    relation = builder.build()
    logger.debug("Relation parsed as %s", relation.classify().value)

    descriptor = AutomatonDescriptor(
        initial=initials[0], finals=frozenset(finals), relation=relation
    )
    return ParsedFile(descriptor=descriptor, word=word)


def load_from_file(
    filename: str, lambda_marker: str = DEFAULT_LAMBDA_MARKER
) -> ParsedFile:
    logger.debug("Parsing %s", filename)
    with open(filename, "r", encoding="utf-8") as f:
        content = f.read()

    return parse_automaton(content, lambda_marker)


def name_from_path(filename: str) -> str:
    return os.path.basename(filename).rsplit(".", 1)[0]

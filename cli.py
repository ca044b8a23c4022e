import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing_extensions import *

import graphviz

from automaton import (
    AutomatonDescriptor,
    Classification,
    MalformedAutomatonError,
    RunResult,
    SearchTooDeepError,
    StepEvent,
    run,
)
from config import DIAGRAM_MODES, Config, DiagramConfig, load_config
from io_utils import ParsedFile, ParseError, load_from_file, name_from_path, split_word
from logging_setup import configure_logging

logger = logging.getLogger("afdn.cli")

EXIT_ACCEPTED = 0
EXIT_REJECTED = 1
EXIT_ERROR = 2

# Failures while running a word: diagram export or a search too deep to finish.
RUN_ERRORS = (
    OSError,
    SearchTooDeepError,
    graphviz.ExecutableNotFound,
    graphviz.CalledProcessError,
)


class DiagramExporter:
    """
    Step callback that writes a Graphviz diagram for the steps the user picks.

    In "ask" mode the user is prompted once per step; "always" exports every
    step and "never" none.
    """

    def __init__(
        self,
        descriptor: AutomatonDescriptor,
        word: Sequence[str],
        config: DiagramConfig,
        input_fn: Callable[[str], str] = input,
    ):
        self.descriptor = descriptor
        self.word = word
        self.config = config
        self.input_fn = input_fn
        self.steps = 0
        self.written: List[str] = []

    def __call__(self, event: StepEvent) -> None:
        self.steps += 1
        consumed = event.position + (0 if event.transition.is_lambda else 1)
        prefix = "".join(self.word[:consumed])

        if self._wants_diagram(prefix):
            self.written.append(self.export(event))

    def _wants_diagram(self, prefix: str) -> bool:
        if self.config.mode == "always":
            return True
        if self.config.mode == "never":
            return False

        while True:
            try:
                answer = self.input_fn(
                    f"Export step {self.steps} ({prefix or 'ε'}) as a diagram? [y/n] "
                )
            except EOFError:
                return False

            answer = answer.strip().lower()
            if answer in ("y", "yes", "1"):
                return True
            if answer in ("n", "no", "0"):
                return False
            print("Please answer 'y' or 'n'")

    def export(self, event: StepEvent) -> str:
        dot = self.descriptor.to_graphviz(
            current=event.source, transition=event.transition
        )
        filename = f"step_{self.steps:02d}.dot"
        directory = str(self.config.output_dir)

        if self.config.render_format:
            dot.format = self.config.render_format
            path = dot.render(filename=filename, directory=directory)
        else:
            path = dot.save(filename=filename, directory=directory)

        logger.debug("Saved step %d to %s", self.steps, path)
        return path


def describe_result(result: RunResult, word: Sequence[str]) -> List[str]:
    """Human readable summary of a run."""
    text = "".join(word)
    lines = [f"{result.classification.value}: {'Accepted' if result.accepted else 'Rejected'}"]

    if result.classification is Classification.DFA:
        outcome = result.outcome
        if not result.accepted:
            prefix = outcome.accepted_prefix(word)
            if outcome.offending_symbol is None:
                lines.append(
                    f"Word {text!r} was read completely but ended in non-final state {outcome.state}"
                )
            else:
                lines.append(
                    f"Word {text!r} is invalid. Valid until {prefix!r}, "
                    f"conflicting symbol {outcome.offending_symbol!r} at state {outcome.state}"
                )
    elif result.accepted:
        lines.append("Path: " + ", ".join(str(t) for t in result.path))
    else:
        lines.append(f"No accepting path for {text!r}")

    return lines


def run_parsed(
    parsed: ParsedFile,
    config: Config,
    word: Optional[Sequence[str]] = None,
    input_fn: Callable[[str], str] = input,
) -> RunResult:
    word = parsed.word if word is None else tuple(word)
    exporter = DiagramExporter(parsed.descriptor, word, config.diagrams, input_fn)
    result = run(parsed.descriptor, word, on_step=exporter)

    for line in describe_result(result, word):
        print(line)
    if exporter.written:
        print(f"Diagrams: {', '.join(exporter.written)}")
    return result


def run_file(
    filename: str,
    config: Config,
    word: Optional[str] = None,
    input_fn: Callable[[str], str] = input,
) -> int:
    try:
        parsed = load_from_file(filename, config.lambda_marker)
    except (OSError, ParseError, MalformedAutomatonError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    symbols = split_word(word) if word is not None else None
    try:
        result = run_parsed(parsed, config, symbols, input_fn)
    except RUN_ERRORS as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    return EXIT_ACCEPTED if result.accepted else EXIT_REJECTED


def terminal(config: Config, input_fn: Callable[[str], str] = input) -> None:
    """Simple interactive terminal for loading and running automata."""
    automata: Dict[str, ParsedFile] = {}

    print("Automaton Animator Terminal - Type 'help' for commands\n")

    while True:
        try:
            command = input_fn("> ").strip()
            if not command:
                continue

            parts = command.split()
            cmd = parts[0].lower()

            # Exit
            if cmd in ["exit", "quit"]:
                break

            # Help
            elif cmd == "help":
                print(
                    """
Commands:
  load <file> [name]           - Load an automaton and its word from file
  list                         - List all loaded automata
  show <name>                  - Show automaton info
  graph <name>                 - Write a diagram of the automaton
  run <name>                   - Run the word stored in the file
  test <name> <word>           - Test if word is accepted
  delete <name>                - Delete automaton
  clear                        - Clear all
  exit                         - Exit
"""
                )

            # Load
            elif cmd == "load":
                if len(parts) < 2:
                    print("Usage: load <file> [name]")
                    continue
                name = parts[2] if len(parts) > 2 else name_from_path(parts[1])
                automata[name] = load_from_file(parts[1], config.lambda_marker)
                print(
                    f"Loaded {name}: {automata[name].descriptor.classification.value}"
                )

            # List
            elif cmd == "list":
                if automata:
                    print("Automata:")
                    for name, parsed in sorted(automata.items()):
                        print(
                            f"  {name}: {parsed.descriptor.classification.value}, "
                            f"{len(parsed.descriptor.states)} states, word {parsed.word_text!r}"
                        )
                else:
                    print("Nothing loaded")

            # Show automaton info
            elif cmd == "show":
                if len(parts) < 2:
                    print("Usage: show <name>")
                elif parts[1] not in automata:
                    print(f"Automaton not found: {parts[1]}")
                else:
                    parsed = automata[parts[1]]
                    aut = parsed.descriptor
                    print(f"\n{parts[1]}: {aut.classification.value}")
                    print(f"  States: {', '.join(sorted(aut.states))}")
                    print(f"  Start: {aut.initial}")
                    print(f"  Accepting: {', '.join(sorted(aut.finals))}")
                    for source in aut.relation:
                        for t in aut.relation.transitions_from(source):
                            print(f"    {source} --{t.display_label}--> {t.target}")
                    print(f"  Word: {parsed.word_text!r}\n")

            # Graph automaton
            elif cmd == "graph":
                if len(parts) < 2:
                    print("Usage: graph <name>")
                elif parts[1] not in automata:
                    print(f"Automaton not found: {parts[1]}")
                else:
                    dot = automata[parts[1]].descriptor.to_graphviz(name=parts[1])
                    path = dot.save(
                        filename=f"{parts[1]}.dot",
                        directory=str(config.diagrams.output_dir),
                    )
                    print(f"Created: {path}")

            # Run stored word
            elif cmd == "run":
                if len(parts) < 2:
                    print("Usage: run <name>")
                elif parts[1] not in automata:
                    print(f"Automaton not found: {parts[1]}")
                else:
                    run_parsed(automata[parts[1]], config, input_fn=input_fn)

            # Test word on automaton
            elif cmd == "test":
                if len(parts) < 3:
                    print("Usage: test <name> <word>")
                elif parts[1] not in automata:
                    print(f"Automaton not found: {parts[1]}")
                else:
                    run_parsed(
                        automata[parts[1]],
                        config,
                        split_word("".join(parts[2:])),
                        input_fn=input_fn,
                    )

            # Delete item
            elif cmd == "delete":
                if len(parts) < 2:
                    print("Usage: delete <name>")
                elif parts[1] in automata:
                    del automata[parts[1]]
                    print(f"Deleted: {parts[1]}")
                else:
                    print(f"Not found: {parts[1]}")

            # Clear all
            elif cmd == "clear":
                automata.clear()
                print("Cleared all")

            else:
                print(f"Unknown command: {cmd}")

        except KeyboardInterrupt:
            print("\nUse 'exit' to quit")
        except EOFError:
            break
        except (ValueError,) + RUN_ERRORS as e:
            print(f"Error: {e}")

    print("Goodbye!")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run a finite automaton over a word and export each step as a diagram."
    )
    parser.add_argument(
        "file",
        nargs="?",
        help="Transition table file. Without it an interactive terminal is opened.",
    )
    parser.add_argument("--config", type=Path, help="JSON configuration file.")
    parser.add_argument(
        "--diagrams",
        choices=DIAGRAM_MODES,
        help="Export a diagram per step: ask, always or never.",
    )
    parser.add_argument("--output-dir", type=Path, help="Directory for diagram files.")
    parser.add_argument(
        "--render", metavar="FORMAT", help="Also render diagrams (e.g. png). Needs Graphviz."
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level.",
    )
    parser.add_argument("--word", help="Test this word instead of the one in the file.")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> Config:
    config = load_config(args.config) if args.config else Config()

    diagram_overrides: Dict[str, Any] = {}
    if args.diagrams:
        diagram_overrides["mode"] = args.diagrams
    if args.output_dir:
        diagram_overrides["output_dir"] = args.output_dir
    if args.render:
        diagram_overrides["render_format"] = args.render

    logging_config = config.logging
    if args.log_level:
        logging_config = dataclasses.replace(logging_config, level=args.log_level)

    return dataclasses.replace(
        config,
        logging=logging_config,
        diagrams=dataclasses.replace(config.diagrams, **diagram_overrides),
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = build_config(args)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    configure_logging(config.logging)
    logger.debug("Configuration: %s", config)

    if args.file is None:
        terminal(config)
        return EXIT_ACCEPTED

    return run_file(args.file, config, args.word)


if __name__ == "__main__":
    sys.exit(main())

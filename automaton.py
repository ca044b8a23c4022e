import logging
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing_extensions import *

from graphviz import Digraph

logger = logging.getLogger("afdn.automaton")

# Label used for transitions that consume no input symbol.
LAMBDA = None
LAMBDA_DISPLAY = "λ"


class MalformedAutomatonError(ValueError):
    """Raised when an automaton cannot be run as described."""


class SearchTooDeepError(RuntimeError):
    """Raised when a search needs more nested calls than the interpreter allows."""


class Classification(Enum):
    DFA = "DFA"
    NFA = "NFA"


@dataclass(frozen=True)
class Transition:
    label: Optional[str]
    target: str

    @property
    def is_lambda(self) -> bool:
        return self.label is LAMBDA

    def __str__(self):
        return f"{self.display_label} -> {self.target}"

    @property
    def display_label(self) -> str:
        return LAMBDA_DISPLAY if self.is_lambda else str(self.label)


@dataclass(frozen=True)
class StepEvent:
    """One transition the engine committed to, with the word position before it."""

    source: str
    label: Optional[str]
    target: str
    position: int

    @property
    def transition(self) -> Transition:
        return Transition(self.label, self.target)


StepCallback = Callable[[StepEvent], None]


# -------------------------------------------------------------------------
# Transition relation
# -------------------------------------------------------------------------


class TransitionRelation:
    """
    Read-only mapping from a state to its ordered outgoing transitions.

    Within a state, consuming transitions come first and lambda transitions
    last, each group in insertion order. The classification is fixed when
    the relation is built.
    """

    def __init__(
        self,
        transitions: Mapping[str, Tuple[Transition, ...]],
        classification: Classification,
    ):
        self._transitions: Dict[str, Tuple[Transition, ...]] = dict(transitions)
        self._classification = classification

    @classmethod
    def from_records(
        cls, records: Iterable[Tuple[str, Optional[str], str]]
    ) -> "TransitionRelation":
        builder = RelationBuilder()
        for source, label, target in records:
            builder.insert(source, label, target)
        return builder.build()

    def transitions_from(self, state: str) -> Tuple[Transition, ...]:
        return self._transitions.get(state, ())

    def classify(self) -> Classification:
        return self._classification

    @property
    def is_deterministic(self) -> bool:
        return self._classification is Classification.DFA

    def sources(self) -> FrozenSet[str]:
        return frozenset(self._transitions)

    def records(self) -> Iterator[Tuple[str, Optional[str], str]]:
        for source, transitions in self._transitions.items():
            for t in transitions:
                yield source, t.label, t.target

    def __getitem__(self, state: str) -> Tuple[Transition, ...]:
        return self._transitions[state]

    def __contains__(self, state: object) -> bool:
        return state in self._transitions

    def __iter__(self) -> Iterator[str]:
        return iter(self._transitions)

    def __len__(self) -> int:
        return len(self._transitions)

    def __repr__(self):
        return f"TransitionRelation({self._transitions!r}, {self._classification})"


class RelationBuilder:
    """Accumulates transitions and tracks the DFA/NFA verdict as they arrive."""

    def __init__(self):
        self._consuming: Dict[str, List[Transition]] = {}
        self._lambdas: Dict[str, List[Transition]] = {}
        self._seen_labels: Dict[str, Set[str]] = {}
        self._deterministic = True

    def insert(self, state: str, label: Optional[str], target: str) -> None:
        if label is not LAMBDA and not label:
            raise MalformedAutomatonError(
                f"Transition {state} -> {target} has no label"
            )

        self._consuming.setdefault(state, [])
        self._lambdas.setdefault(state, [])
        transition = Transition(label, target)

        if transition.is_lambda:
            self._lambdas[state].append(transition)
            if self._deterministic:
                logger.debug("Lambda transition from %s: relation is an NFA", state)
            self._deterministic = False
            return

        seen = self._seen_labels.setdefault(state, set())
        if label in seen and self._deterministic:
            logger.debug(
                "State %s has two transitions on %r: relation is an NFA", state, label
            )
            self._deterministic = False
        seen.add(label)
        self._consuming[state].append(transition)

    def classify(self) -> Classification:
        return Classification.DFA if self._deterministic else Classification.NFA

    def build(self) -> TransitionRelation:
        transitions = {
            state: tuple(self._consuming[state]) + tuple(self._lambdas[state])
            for state in self._consuming
        }
        return TransitionRelation(transitions, self.classify())


# -------------------------------------------------------------------------
# Automaton descriptor
# -------------------------------------------------------------------------


@dataclass(frozen=True)
class AutomatonDescriptor:
    initial: str
    finals: FrozenSet[str]
    relation: TransitionRelation = field(
        default_factory=lambda: RelationBuilder().build()
    )

    def __post_init__(self):
        """Validate the descriptor before any run can start."""
        object.__setattr__(self, "finals", frozenset(self.finals))

        if not self.initial:
            raise MalformedAutomatonError("An automaton needs an initial state")

        if not self.finals:
            raise MalformedAutomatonError("An automaton needs at least one final state")

        if len(self.relation) and self.initial not in self.relation:
            raise MalformedAutomatonError(
                f"Initial state {self.initial!r} has no outgoing transitions"
            )

    @property
    def classification(self) -> Classification:
        return self.relation.classify()

    @property
    def states(self) -> FrozenSet[str]:
        states = {self.initial} | set(self.finals)
        for source, _, target in self.relation.records():
            states.add(source)
            states.add(target)
        return frozenset(states)

    # -------------------------------------------------------------------------
    # Visualization
    # -------------------------------------------------------------------------

    def to_graphviz(
        self,
        current: Optional[str] = None,
        transition: Optional[Transition] = None,
        name: str = "G",
    ) -> Digraph:
        """
        Build a diagram of the whole automaton.

        `current` is filled in, and the edge for `transition` leaving `current`
        is drawn in red. Every other edge is gray.
        """
        dot = Digraph(
            name=name,
            graph_attr={
                "rankdir": "LR",
                "overlap": "scale",
                "sep": "0.1",
                "pad": "1",
                "nodesep": "0.5",
                "ranksep": "1",
                "label": self.classification.value,
                "labelloc": "t",
            },
            node_attr={"style": "rounded,filled"},
            edge_attr={"color": "gray"},
        )

        for state in sorted(self.finals):
            dot.node(state, peripheries="2")

        dot.node("__start__", label="", shape="none", height="0", width="0")
        dot.edge("__start__", self.initial)

        if current is not None:
            dot.node(current, color="#467050", fontcolor="white")

        highlighted = False
        for source, label, target in self.relation.records():
            edge = Transition(label, target)
            attrs = {"label": edge.display_label}
            if (
                not highlighted
                and source == current
                and transition is not None
                and edge == transition
            ):
                attrs["color"] = "#ad2a2a"
                highlighted = True
            dot.edge(source, target, **attrs)

        return dot


# -------------------------------------------------------------------------
# Outcomes
# -------------------------------------------------------------------------


@dataclass(frozen=True)
class Accepted:
    final_state: str
    steps: int

    accepted: ClassVar[bool] = True

    def __bool__(self):
        return True


@dataclass(frozen=True)
class Rejected:
    """
    The word was not accepted.

    consumed: number of symbols read before stopping.
    offending_symbol: the symbol with no matching transition, or None when
        the whole word was read and the walk ended outside the final states.
    state: where the walk stopped.
    """

    consumed: int
    offending_symbol: Optional[str]
    state: str

    accepted: ClassVar[bool] = False

    def __bool__(self):
        return False

    def accepted_prefix(self, word: Sequence[str]) -> str:
        return "".join(word[: self.consumed])


Outcome = Union[Accepted, Rejected]


@dataclass(frozen=True)
class RunResult:
    accepted: bool
    classification: Classification
    path: Tuple[Transition, ...] = ()
    outcome: Optional[Outcome] = None


# -------------------------------------------------------------------------
# Deterministic walk
# -------------------------------------------------------------------------


def walk(
    descriptor: AutomatonDescriptor,
    word: Sequence[str],
    on_step: Optional[StepCallback] = None,
) -> Outcome:
    """Run a DFA over the word, following the single matching transition per symbol."""
    if descriptor.classification is not Classification.DFA:
        raise ValueError("walk is only defined for deterministic automata")

    state = descriptor.initial
    logger.debug("Walking %r from %s", "".join(word), state)

    for position, symbol in enumerate(word):
        match = next(
            (t for t in descriptor.relation.transitions_from(state) if t.label == symbol),
            None,
        )
        if match is None:
            logger.debug(
                "No transition from %s on %r after %d symbols", state, symbol, position
            )
            return Rejected(consumed=position, offending_symbol=symbol, state=state)

        logger.debug("%s --%s--> %s", state, symbol, match.target)
        if on_step is not None:
            on_step(StepEvent(state, match.label, match.target, position))
        state = match.target

    if state in descriptor.finals:
        return Accepted(final_state=state, steps=len(word))

    return Rejected(consumed=len(word), offending_symbol=None, state=state)


# -------------------------------------------------------------------------
# Non-deterministic search
# -------------------------------------------------------------------------


def _find_path(
    descriptor: AutomatonDescriptor, word: Sequence[str]
) -> Optional[List[Tuple[str, Transition]]]:
    """Return the first accepting path as (source, transition) pairs."""
    path: List[Tuple[str, Transition]] = []
    found: List[Tuple[str, Transition]] = []

    def explore(position: int, state: str, lambda_seen: FrozenSet[str]) -> bool:
        depth = "  " * len(path)

        if position == len(word) and state in descriptor.finals:
            found.extend(path)
            return True

        for transition in descriptor.relation.transitions_from(state):
            if transition.is_lambda:
                # Re-entering a state without reading a symbol can only loop.
                if transition.target in lambda_seen:
                    logger.debug(
                        "%sLambda cycle at %s -> %s, position %d",
                        depth,
                        state,
                        transition.target,
                        position,
                    )
                    continue
                next_position = position
                next_seen = lambda_seen | {transition.target}
            elif position < len(word) and transition.label == word[position]:
                next_position = position + 1
                next_seen = frozenset({transition.target})
            else:
                continue

            logger.debug(
                "%s%s --%s--> %s", depth, state, transition.display_label, transition.target
            )
            path.append((state, transition))
            try:
                accepted = explore(next_position, transition.target, next_seen)
            finally:
                path.pop()

            if accepted:
                return True
            logger.debug("%sBacktracking to %s", depth, state)

        return False

    if explore(0, descriptor.initial, frozenset({descriptor.initial})):
        return found
    return None


def search(
    descriptor: AutomatonDescriptor,
    word: Sequence[str],
    on_step: Optional[StepCallback] = None,
) -> Optional[Tuple[Transition, ...]]:
    """
    Find one accepting path for the word by depth-first backtracking.

    Transitions are tried in the relation's stored order, so the same input
    always yields the same path. Returns None when the word is rejected;
    otherwise `on_step` is called once for every transition of the path.

    Every step of a path is one nested call, so words longer than the
    interpreter's recursion limit raise SearchTooDeepError.
    """
    logger.debug("Searching a path for %r from %s", "".join(word), descriptor.initial)

    try:
        found = _find_path(descriptor, word)
    except RecursionError as exc:
        raise SearchTooDeepError(
            f"Word of {len(word)} symbols is too long to search "
            f"(recursion limit {sys.getrecursionlimit()})"
        ) from exc

    if found is None:
        logger.debug("No accepting path for %r", "".join(word))
        return None

    if on_step is not None:
        position = 0
        for source, transition in found:
            on_step(StepEvent(source, transition.label, transition.target, position))
            if not transition.is_lambda:
                position += 1

    return tuple(transition for _, transition in found)


def replay(
    descriptor: AutomatonDescriptor,
    path: Sequence[Transition],
    word: Sequence[str],
) -> bool:
    """Check that a path reads the word exactly and stops in a final state."""
    state = descriptor.initial
    position = 0

    for transition in path:
        if transition not in descriptor.relation.transitions_from(state):
            return False
        if not transition.is_lambda:
            if position >= len(word) or word[position] != transition.label:
                return False
            position += 1
        state = transition.target

    return position == len(word) and state in descriptor.finals


def run(
    descriptor: AutomatonDescriptor,
    word: Sequence[str],
    on_step: Optional[StepCallback] = None,
) -> RunResult:
    """Walk a DFA or search an NFA, depending on how the relation was classified."""
    classification = descriptor.classification
    logger.debug("Running %s on %r", classification.value, "".join(word))

    if classification is Classification.DFA:
        outcome = walk(descriptor, word, on_step)
        return RunResult(
            accepted=outcome.accepted, classification=classification, outcome=outcome
        )

    path = search(descriptor, word, on_step)
    return RunResult(
        accepted=path is not None,
        classification=classification,
        path=path or (),
    )

# prediction/ppm.py
# Adaptive PPM (Prediction by Partial Matching) character predictor.
# Suffix trie with backoff ("vine") links, Kneser-Ney style blending
# across orders and a final uniform blend over the whole vocabulary.
#
# The blending follows the Dasher variant of PPM:
#   P(w | x_h) = max(n(w, x_h) - beta, 0) / (T(x_h) + alpha)
#                + (alpha + beta * q(x_h)) / (T(x_h) + alpha) * P(w | x_{h-1})
# where n is the count of w in context x_h, T the total count in x_h and
# q the number of distinct symbols seen in x_h.

import numbers
from typing import Dict, Iterable, List, Optional, Tuple

from prediction.vocabulary import ROOT_SYMBOL, Vocabulary

# Kneser-Ney "-like" smoothing parameters (values used by Dasher).
KN_ALPHA = 0.49
KN_BETA = 0.77

# Tolerance for the final normalization check.
EPSILON = 1e-10

ROOT_NODE = 0   # arena index of the trie root


class TrieInvariantError(RuntimeError):
    """Backoff structure of the trie is corrupted."""


class ProbabilityMassError(ArithmeticError):
    """Probability estimation produced a distribution that does not sum to one."""


# -------------------------------
# Trie nodes
# -------------------------------

class TrieNode:
    __slots__ = ("symbol", "count", "children", "backoff")

    def __init__(self, symbol: int = ROOT_SYMBOL, backoff: Optional[int] = None):
        self.symbol = symbol
        # Times this symbol was observed in this exact context.
        self.count = 1
        # symbol -> arena index, insertion ordered
        self.children: Dict[int, int] = {}
        # Arena index of the same symbol under the next-shorter context.
        # Only the root has none.
        self.backoff = backoff

    def total_children_counts(self, nodes: List["TrieNode"], exclusion_mask: Optional[List[bool]] = None) -> int:
        """Total number of observations in this context.

        Children whose symbol is set in `exclusion_mask` are skipped.
        """
        count = 0
        for sym, idx in self.children.items():
            if exclusion_mask is None or not exclusion_mask[sym]:
                count += nodes[idx].count
        return count

    def __repr__(self):
        return f"TrieNode(symbol={self.symbol}, count={self.count}, children={len(self.children)})"


# -------------------------------
# Context cursor
# -------------------------------

class Context:
    """Cursor into the trie: current node and the order it represents."""

    __slots__ = ("node", "order")

    def __init__(self, node: int = ROOT_NODE, order: int = 0):
        self.node = node
        self.order = order

    def __eq__(self, other):
        if not isinstance(other, Context):
            return NotImplemented
        return self.node == other.node and self.order == other.order

    def __hash__(self):
        return hash((self.node, self.order))

    def __repr__(self):
        return f"Context(node={self.node}, order={self.order})"


# -------------------------------
# PPM model
# -------------------------------

class PPMLanguageModel:
    def __init__(self, vocab: Vocabulary, max_order: int, use_exclusion: bool = False):
        if vocab.size() < 2:
            raise ValueError("Expecting at least two symbols in the vocabulary")
        if int(max_order) < 1:
            raise ValueError(f"max_order must be >= 1, got {max_order}")
        self.vocab = vocab
        self.max_order = int(max_order)
        self.nodes: List[TrieNode] = [TrieNode()]
        # Off by default; can be switched on once the trie holds reliable counts.
        self.use_exclusion = bool(use_exclusion)

    @property
    def num_nodes(self) -> int:
        return len(self.nodes)

    def vocabulary_size(self) -> int:
        return self.vocab.size()

    def symbol_index(self, char: str) -> Optional[int]:
        return self.vocab.index_of(char)

    # ---------- Trie growth ----------
    def _find_child(self, node: int, symbol: int) -> Optional[int]:
        return self.nodes[node].children.get(symbol)

    def _new_child(self, node: int, symbol: int) -> int:
        idx = len(self.nodes)
        self.nodes.append(TrieNode(symbol=symbol))
        self.nodes[node].children[symbol] = idx
        return idx

    def _grow_node(self, node: int, symbol: int) -> int:
        """Return the child of `node` for `symbol`, creating it if needed.

        An existing child only has its count bumped; shorter contexts are not
        recounted (update exclusion). A new child needs a backoff, so the walk
        continues down the backoff chain, creating nodes until it reaches a
        context that already knows the symbol or the root.
        """
        created = []
        current = node
        while True:
            child = self._find_child(current, symbol)
            if child is not None:
                self.nodes[child].count += 1
                target = child
                break
            created.append(self._new_child(current, symbol))
            if current == ROOT_NODE:
                target = ROOT_NODE
                break
            backoff = self.nodes[current].backoff
            if backoff is None:
                raise TrieInvariantError(f"Node {current} has no backoff node")
            current = backoff

        if not created:
            return target
        # each new node backs off to the one created one order below it
        for i, idx in enumerate(created):
            self.nodes[idx].backoff = created[i + 1] if i + 1 < len(created) else target
        return created[0]

    # ---------- Contexts ----------
    def create_context(self) -> Context:
        return Context(ROOT_NODE, 0)

    def clone_context(self, context: Context) -> Context:
        return Context(context.node, context.order)

    def _check_symbol(self, symbol: int) -> bool:
        if isinstance(symbol, bool) or not isinstance(symbol, numbers.Integral):
            raise ValueError(f"Symbol must be an integer index, got {symbol!r}")
        if symbol <= ROOT_SYMBOL:
            return False
        if symbol >= self.vocab.size():
            raise ValueError(f"Invalid symbol: {symbol}")
        return True

    def advance(self, context: Context, symbol: int) -> Context:
        """Move the context to `symbol` without updating the model."""
        if not self._check_symbol(symbol):
            return context
        symbol = int(symbol)
        node = context.node
        while node is not None:
            if context.order < self.max_order:
                child = self._find_child(node, symbol)
                if child is not None:
                    context.node = child
                    context.order += 1
                    return context
            # try the shorter context
            context.order -= 1
            node = self.nodes[node].backoff
        context.node = ROOT_NODE
        context.order = 0
        return context

    def observe(self, context: Context, symbol: int) -> Context:
        """Move the context to `symbol` and update the model."""
        if not self._check_symbol(symbol):
            return context
        symbol = int(symbol)
        node = self._grow_node(context.node, symbol)
        context.node = node
        context.order += 1
        while context.order > self.max_order:
            context.node = self.nodes[context.node].backoff
            context.order -= 1
        return context

    def advance_symbols(self, context: Context, symbols: Iterable[int]) -> Context:
        for s in symbols:
            self.advance(context, s)
        return context

    def observe_symbols(self, context: Context, symbols: Iterable[int]) -> Context:
        for s in symbols:
            self.observe(context, s)
        return context

    # ---------- Inference ----------
    def get_probs(self, context: Context) -> List[float]:
        """Probabilities for every vocabulary symbol given the context.

        Element 0 stands for the root and is always 0. Higher orders are
        visited first; each discounts its counts by KN_BETA and passes the
        unassigned mass (gamma) down the backoff chain. Whatever is left at
        the end is blended with a uniform distribution in two passes.
        """
        num_symbols = self.vocab.size()
        probs = [0.0] * num_symbols

        exclusion_mask = [False] * num_symbols if self.use_exclusion else None

        total_mass = 1.0
        gamma = total_mass
        node: Optional[int] = context.node
        while node is not None:
            trie_node = self.nodes[node]
            count = trie_node.total_children_counts(self.nodes, exclusion_mask)
            if count > 0:
                # newest child first
                for sym in reversed(trie_node.children):
                    if exclusion_mask is not None and exclusion_mask[sym]:
                        continue
                    child = self.nodes[trie_node.children[sym]]
                    p = gamma * max(child.count - KN_BETA, 0.0) / (count + KN_ALPHA)
                    probs[sym] += p
                    total_mass -= p
                    if exclusion_mask is not None:
                        exclusion_mask[sym] = True
            # gamma after this order equals the mass still unassigned
            node = trie_node.backoff
            gamma = total_mass
        if total_mass < 0.0:
            raise ProbabilityMassError(f"Invalid remaining probability mass: {total_mass}")

        # With exclusion this counts symbols never seen in any order,
        # otherwise every real symbol.
        num_unseen = 0
        for i in range(1, num_symbols):
            if exclusion_mask is None or not exclusion_mask[i]:
                num_unseen += 1

        remaining_mass = total_mass
        for i in range(1, num_symbols):
            if exclusion_mask is None or not exclusion_mask[i]:
                p = remaining_mass / num_unseen
                probs[i] += p
                total_mass -= p
        left_symbols = num_symbols - 1
        new_prob_mass = 0.0
        for i in range(1, num_symbols):
            p = total_mass / left_symbols
            probs[i] += p
            total_mass -= p
            new_prob_mass += probs[i]
            left_symbols -= 1

        if total_mass != 0.0:
            raise ProbabilityMassError(f"Expected remaining probability mass to be zero, got {total_mass}")
        if abs(1.0 - new_prob_mass) >= EPSILON:
            raise ProbabilityMassError(f"Probabilities sum to {new_prob_mass}, expected 1.0")
        return probs

    # ---------- Diagnostics ----------
    def node_count(self, context: Context) -> int:
        return self.nodes[context.node].count

    def snapshot(self) -> Tuple[Tuple[int, int, Tuple[Tuple[int, int], ...], Optional[int]], ...]:
        """Immutable view of every node: (symbol, count, children, backoff)."""
        return tuple(
            (n.symbol, n.count, tuple(n.children.items()), n.backoff)
            for n in self.nodes
        )

    def dump_trie(self) -> str:
        lines = []
        stack: List[Tuple[int, str]] = [(ROOT_NODE, "")]
        while stack:
            idx, indent = stack.pop()
            n = self.nodes[idx]
            lines.append(f"{indent}  {self.vocab.symbol_at(n.symbol)}({n.symbol}) [{n.count}]")
            # push oldest first so the newest child is printed first
            for child in n.children.values():
                stack.append((child, indent + "  "))
        return "\n".join(lines)

    def print_trie(self):
        print(self.dump_trie())

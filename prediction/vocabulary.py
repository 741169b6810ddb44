# prediction/vocabulary.py
# Symbol table for the PPM predictor: characters <-> dense integer indices.
# Index 0 is the root sentinel and never maps to a real character.

from typing import Dict, Iterable, List, Optional, Tuple

ROOT_SYMBOL = 0
ROOT_LABEL = "<root>"


class Vocabulary:
    """Bidirectional mapping between characters and symbol indices.

    Indices are assigned in encounter order starting at 1 and are never
    reused or removed.
    """

    def __init__(self, chars: Iterable[str] = ()):
        self._symbols: List[str] = [ROOT_LABEL]
        self._index: Dict[str, int] = {}
        for ch in chars:
            self.add_symbol(ch)

    @classmethod
    def from_text(cls, text: str) -> "Vocabulary":
        vocab = cls()
        vocab.add_text(text)
        return vocab

    def size(self) -> int:
        return len(self._symbols)

    def __len__(self) -> int:
        return len(self._symbols)

    def __contains__(self, char) -> bool:
        return char in self._index

    def __repr__(self) -> str:
        return f"Vocabulary(size={self.size()})"

    @property
    def symbols(self) -> Tuple[str, ...]:
        # real characters only, index 1 onward
        return tuple(self._symbols[1:])

    def add_symbol(self, char: str) -> int:
        if not isinstance(char, str) or not char:
            raise ValueError(f"Symbol must be a non-empty string, got {char!r}")
        idx = self._index.get(char)
        if idx is None:
            idx = len(self._symbols)
            self._symbols.append(char)
            self._index[char] = idx
        return idx

    def add_text(self, text: str):
        for ch in text:
            self.add_symbol(ch)

    def index_of(self, char: str) -> Optional[int]:
        return self._index.get(char)

    def symbol_at(self, index: int) -> str:
        if index < 0 or index >= len(self._symbols):
            raise IndexError(f"Symbol index out of range: {index}")
        return self._symbols[index]

    def encode(self, text: str) -> List[int]:
        """Map text to symbol indices.

        Unknown characters map to ROOT_SYMBOL, which the model ignores.
        """
        return [self._index.get(ch, ROOT_SYMBOL) for ch in text]

    def decode(self, symbols: Iterable[int]) -> str:
        return "".join(self._symbols[s] for s in symbols if s > ROOT_SYMBOL)

from typing import Dict, Iterable, Iterator, List, Union

from .models import Word


class WordBank:
    """
    Deduplicated vocabulary collected across the session.

    Entries are keyed by their Kannada text and kept most-recent-first.
    Nothing is ever removed.
    """

    def __init__(self) -> None:
        self._words: List[Word] = []
        self._keys: set = set()

    def add(self, candidates: Iterable[Word]) -> List[Word]:
        """
        Add new words and return the ones that were accepted.

        A candidate is rejected when the bank (or an earlier candidate in
        the same call) already holds its Kannada text. Accepted words go to
        the front of the bank in the order they were given.
        """
        accepted: List[Word] = []
        for word in candidates:
            if word.kannada in self._keys:
                continue
            self._keys.add(word.kannada)
            accepted.append(word)

        if accepted:
            self._words = accepted + self._words
        return accepted

    def by_category(self) -> Dict[str, List[Word]]:
        """Group words by category ("General" when unset), preserving bank order."""
        grouped: Dict[str, List[Word]] = {}
        for word in self._words:
            grouped.setdefault(word.display_category, []).append(word)
        return grouped

    @property
    def words(self) -> List[Word]:
        return list(self._words)

    def __len__(self) -> int:
        return len(self._words)

    def __iter__(self) -> Iterator[Word]:
        return iter(list(self._words))

    def __contains__(self, item: Union[Word, str]) -> bool:
        key = item.kannada if isinstance(item, Word) else item
        return key in self._keys

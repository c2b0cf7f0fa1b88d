# ABOUTME: ChoiceSet normalizes a translator's selectable items into a key -> label mapping.
# ABOUTME: Also validates a client's selection against what was offered.

from collections.abc import Iterator, Mapping
from typing import Any

from bibgate.errors import BadRequestError, SelectionMismatchError


class ChoiceSet(Mapping[str, str]):
    """Items offered for selection, keyed by string id, in offer order."""

    def __init__(self, choices: Mapping[str, str]) -> None:
        self._choices = dict(choices)

    @classmethod
    def from_translator(cls, raw: Mapping[Any, Any] | list[Any] | tuple[Any, ...]) -> "ChoiceSet":
        """Normalize what a translator offers.

        A list becomes ``{"0": ..., "1": ...}``. Entries that are records with
        a ``title`` are reduced to that title; everything else is stringified.
        """
        if isinstance(raw, (list, tuple)):
            pairs = [(str(i), value) for i, value in enumerate(raw)]
        elif isinstance(raw, Mapping):
            pairs = [(str(key), value) for key, value in raw.items()]
        else:
            raise TypeError(f"Cannot offer {type(raw).__name__} as a choice set")
        return cls({key: _label(value) for key, value in pairs})

    def select(self, selection: Any) -> dict[str, str]:
        """Validate a selection and return the chosen subset.

        Every selected key must have been offered with exactly the same label.

        Raises:
            BadRequestError: No selection, or an empty one.
            SelectionMismatchError: A key or label that was not offered.
        """
        if selection is None:
            raise BadRequestError("'items' not provided")
        if not isinstance(selection, Mapping):
            raise SelectionMismatchError("Items specified do not match items available")

        selected: dict[str, str] = {}
        for key, value in selection.items():
            key = str(key)
            if key not in self._choices or self._choices[key] != value:
                raise SelectionMismatchError("Items specified do not match items available")
            selected[key] = value
        if not selected:
            raise BadRequestError("No items specified")
        return selected

    def to_dict(self) -> dict[str, str]:
        return dict(self._choices)

    def __getitem__(self, key: str) -> str:
        return self._choices[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._choices)

    def __len__(self) -> int:
        return len(self._choices)

    def __repr__(self) -> str:
        return f"ChoiceSet({self._choices!r})"


def _label(value: Any) -> str:
    if isinstance(value, Mapping) and value.get("title"):
        return str(value["title"])
    return value if isinstance(value, str) else str(value)

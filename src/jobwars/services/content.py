from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, TypeVar

from jsonschema import Draft202012Validator

from jobwars.engine.types import CardDatabase, CardDefinition

T = TypeVar("T")

_REQUIRED = object()


class ContentError(RuntimeError):
    pass


def _read_json(path: Path) -> object:
    try:
        with path.open(encoding="utf-8") as fh:
            return json.load(fh)
    except FileNotFoundError as e:
        raise ContentError(f"Missing content file: {path}") from e
    except json.JSONDecodeError as e:
        raise ContentError(f"{path.name} is not valid JSON (line {e.lineno}): {e.msg}") from e


def validate_json(instance: object, schema: object, *, context: str, limit: int = 10) -> None:
    """Raise ContentError listing the first schema violations, in document order."""
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(instance), key=lambda e: [str(p) for p in e.absolute_path])
    if not errors:
        return
    shown = [f"  {'/'.join(str(p) for p in err.absolute_path) or '<root>'}: {err.message}" for err in errors[:limit]]
    if len(errors) > limit:
        shown.append(f"  ... and {len(errors) - limit} more")
    raise ContentError(f"{context} does not match its schema:\n" + "\n".join(shown))


def _get(obj: Mapping[str, object], key: str, kind: type[T], default: object = _REQUIRED) -> T:
    value = obj.get(key, default)
    if value is _REQUIRED:
        raise ContentError(f"Missing field {key!r}")
    if not isinstance(value, kind):
        raise ContentError(f"Field {key!r} should be {kind.__name__}, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class StarterDeck:
    id: str
    name: str
    description: str
    card_ids: tuple[str, ...]


class ContentService:
    def __init__(self, data_dir: Path, schema_dir: Path) -> None:
        self._data_dir = data_dir
        self._schema_dir = schema_dir

    def _load(self, name: str, list_key: str) -> list[Mapping[str, object]]:
        """Read data/<name>.json, check it against its schema and return its entries."""
        path = self._data_dir / f"{name}.json"
        raw = _read_json(path)
        validate_json(raw, _read_json(self._schema_dir / f"{name}.schema.json"), context=path.name)
        if not isinstance(raw, dict) or not isinstance(raw.get(list_key), list):
            raise ContentError(f"{path.name}: expected an object with a {list_key!r} list")
        return [item for item in raw[list_key] if isinstance(item, dict)]

    def load_cards_db(self) -> CardDatabase:
        cards: dict[str, CardDefinition] = {}
        for item in self._load("cards", "cards"):
            card = CardDefinition(
                id=_get(item, "id", str),
                name=_get(item, "name", str),
                domain=_get(item, "domain", str),
                type=_get(item, "type", str),  # type: ignore[arg-type]
                rarity=_get(item, "rarity", str),  # type: ignore[arg-type]
                cost=_get(item, "cost", int),
                productivity=_get(item, "productivity", int, 0),
                resilience=_get(item, "resilience", int, 0),
                ability=_get(item, "ability", str, ""),
                effect=_get(item, "effect", str, ""),
                flavor_text=_get(item, "flavor_text", str, ""),
            )
            if card.id in cards:
                raise ContentError(f"Duplicate card id: {card.id}")
            cards[card.id] = card
        return CardDatabase(cards=cards)

    def load_decks(self, cards: CardDatabase | None = None) -> dict[str, StarterDeck]:
        """Starter decks, expanded to ordered card id lists."""
        cards = cards or self.load_cards_db()
        decks: dict[str, StarterDeck] = {}
        for d in self._load("decks", "decks"):
            deck_id = _get(d, "id", str)
            card_ids: list[str] = []
            for entry in _get(d, "entries", list):
                if not isinstance(entry, dict):
                    continue
                card_id = _get(entry, "card_id", str)
                if card_id not in cards:
                    raise ContentError(f"deck {deck_id}: unknown card {card_id}")
                card_ids.extend([card_id] * _get(entry, "quantity", int))
            decks[deck_id] = StarterDeck(
                id=deck_id,
                name=_get(d, "name", str),
                description=_get(d, "description", str, ""),
                card_ids=tuple(card_ids),
            )
        return decks

    def validate_all(self) -> None:
        # Load is validation (schema + parse)
        cards = self.load_cards_db()
        _ = self.load_decks(cards)

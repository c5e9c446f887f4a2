"""Turns printed ability/effect text into structured steps.

Card text is French with English aliases, e.g.::

    "Célérité. Quand embauché : Infligez 2 dégâts à un Métier ciblé."

Sentences are read one at a time. A sentence is either a keyword list, a
triggered ability ("Quand embauché :", "Quand détruit :"), a static aura,
an Event counter, or, on Events, a bare effect that happens when the event
is played.
Anything else is flavour and is ignored.
"""

from __future__ import annotations

import re
from functools import lru_cache

from .types import Aura, CardDefinition, Effect, Keyword, ParsedAbility

_KEYWORDS: dict[str, Keyword] = {
    "célérité": "Haste",
    "haste": "Haste",
    "première frappe": "FirstStrike",
    "first strike": "FirstStrike",
    "portée": "Reach",
    "reach": "Reach",
    "construction": "Construction",
    "aérien": "Aerial",
    "aerial": "Aerial",
}

_ON_HIRE = re.compile(r"^(?:quand embauch[ée]e?|when hired)\s*:\s*(.+)$")
_ON_DESTROYED = re.compile(r"^(?:quand d[ée]truit|when destroyed)\s*:\s*(.+)$")
_STEP_SPLIT = re.compile(r"\s*(?:;|\bpuis\b|\bthen\b)\s*")

_JOB = r"(?:un m[ée]tier|target job)"

# (pattern, effect type, target type); the first group, when present, is the amount.
_STEPS: tuple[tuple[re.Pattern[str], str, str], ...] = (
    (re.compile(r"(?:pioche[zr]?|draw)\s+(\d+)\s+(?:cartes?|cards?)"), "draw", "none"),
    (re.compile(r"(?:r[ée]pare[zr]?|repair)\s+(\d+)"), "repair", "ally_field"),
    (re.compile(r"(?:inflige[zr]?|deal)\s+(\d+)\s+(?:d[ée]g[aâ]ts?|damage)"), "damage", "enemy_field"),
    (re.compile(r"(?:d[ée]truise[zr]?|destroy)\s+" + _JOB), "destroy", "enemy_field"),
    (re.compile(r"(?:engage[zr]?|tap)\s+" + _JOB), "tap", "enemy_field"),
    (re.compile(r"(?:renvoye[zr]?|return)\s+" + _JOB), "bounce", "enemy_field"),
    (re.compile(r"(?:subit|gets)\s+-(\d+)/-\d+"), "debuff", "enemy_field"),
    (re.compile(r"(?:gagne|gets)\s+\+(\d+)/\+\d+"), "buff", "ally_field"),
)

_AURA_STAT = re.compile(
    r"^(?:vos autres m[ée]tiers du m[êe]me domaine gagnent|your other same-domain jobs get)"
    r"\s+\+(\d+)\s+(r[ée]silience|resilience|productivit[ée]|productivity)$"
)
_AURA_COST = re.compile(
    r"^(?:vos m[ée]tiers du m[êe]me domaine co[ûu]tent (\d+) de moins"
    r"|your same-domain jobs cost (\d+) less)$"
)
_COUNTER_EVENT = re.compile(
    r"^(?:annulez? le prochain [ée]v[ée]nement adverse"
    r"|counter the (?:opponent's next|next opposing) event)$"
)


def _sentences(text: str) -> list[str]:
    # Split on full stops but not inside "+1/+1" style numbers.
    parts = re.split(r"\.(?=\s|$)", text.lower())
    return [p.strip() for p in parts if p.strip()]


def parse_steps(body: str) -> tuple[Effect, ...]:
    steps: list[Effect] = []
    for chunk in _STEP_SPLIT.split(body):
        for pattern, etype, target in _STEPS:
            m = pattern.search(chunk)
            if m is None:
                continue
            amount = int(m.group(1)) if m.groups() else 0
            steps.append(Effect(type=etype, target_type=target, amount=amount))  # type: ignore[arg-type]
            break
    return tuple(steps)


def _parse_keywords(sentence: str) -> frozenset[Keyword] | None:
    words = [w.strip() for w in sentence.split(",")]
    found: set[Keyword] = set()
    for w in words:
        kw = _KEYWORDS.get(w)
        if kw is None:
            return None
        found.add(kw)
    return frozenset(found)


def _parse_aura(sentence: str) -> Aura | None:
    m = _AURA_STAT.match(sentence)
    if m:
        amount = int(m.group(1))
        if m.group(2).startswith("r"):
            return Aura(resilience_delta=amount)
        return Aura(productivity_delta=amount)
    m = _AURA_COST.match(sentence)
    if m:
        return Aura(cost_reduction=int(m.group(1) or m.group(2)))
    return None


@lru_cache(maxsize=None)
def parse_text(text: str, played_effect: bool = False) -> ParsedAbility:
    """Parse ability text.

    played_effect: the text belongs to an Event, so untriggered steps happen
    on play.
    """
    keywords: set[Keyword] = set()
    on_hire: list[Effect] = []
    on_destroyed: list[Effect] = []
    aura: Aura | None = None
    counters_event = False

    for sentence in _sentences(text):
        kws = _parse_keywords(sentence)
        if kws:
            keywords |= kws
            continue
        m = _ON_HIRE.match(sentence)
        if m:
            on_hire.extend(parse_steps(m.group(1)))
            continue
        m = _ON_DESTROYED.match(sentence)
        if m:
            # Nobody is around to pick a target when a card dies.
            on_destroyed.extend(s for s in parse_steps(m.group(1)) if not s.needs_target)
            continue
        parsed_aura = _parse_aura(sentence)
        if parsed_aura is not None:
            aura = parsed_aura
            continue
        if _COUNTER_EVENT.match(sentence):
            counters_event = True
            continue
        if played_effect:
            on_hire.extend(parse_steps(sentence))

    return ParsedAbility(
        keywords=frozenset(keywords),
        on_hire=tuple(on_hire),
        on_destroyed=tuple(on_destroyed),
        aura=aura,
        counters_event=counters_event,
    )


def parse_card(card: CardDefinition) -> ParsedAbility:
    return parse_text(card.text, played_effect=card.type == "event")

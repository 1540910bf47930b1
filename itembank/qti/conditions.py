"""Scoring conditions of QTI 1.2 ``resprocessing`` as an explicit tree.

A ``<conditionvar>`` is modelled as a tagged tree over four node kinds:

- :class:`Equality`    ``<varequal respident="..">value</varequal>``
- :class:`Negation`    ``<not>child</not>``
- :class:`Conjunction` ``<and>children</and>`` (also several conditionvar children)
- :class:`Otherwise`   ``<other/>``

The encoder builds trees and serializes them, the decoder parses them back
and walks them structurally, and :func:`score_response` evaluates them
against a learner response. Keeping all three on one structure makes the
decoder an auditable inverse of the encoder.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from collections.abc import Collection, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Union

from itembank.utils.text_cleanup import strip_invalid_xml_chars

# respident -> selected identifiers (choice) or typed strings (fill in)
Response = Mapping[str, Collection[str]]


@dataclass(frozen=True)
class Equality:
    respident: str
    value: str
    case_sensitive: bool = True

    def matches(self, response: Response) -> bool:
        selected = response.get(self.respident, ())
        if isinstance(selected, str):
            selected = (selected,)
        if self.case_sensitive:
            return self.value in selected
        target = self.value.casefold()
        return any(item.casefold() == target for item in selected)


@dataclass(frozen=True)
class Negation:
    child: Condition

    def matches(self, response: Response) -> bool:
        return not self.child.matches(response)


@dataclass(frozen=True)
class Conjunction:
    children: tuple[Condition, ...]

    def matches(self, response: Response) -> bool:
        return all(child.matches(response) for child in self.children)


@dataclass(frozen=True)
class Otherwise:
    def matches(self, response: Response) -> bool:
        return True


Condition = Union[Equality, Negation, Conjunction, Otherwise]


@dataclass(frozen=True)
class ResponseCondition:
    """One ``<respcondition>``: a condition plus the score it sets, if any."""

    condition: Condition
    score: float | None = None
    continue_processing: bool = False

    @property
    def awards_points(self) -> bool:
        return self.score is not None and self.score > 0


# -----------------------------------------------------------------------------
# Serialization
# -----------------------------------------------------------------------------


def condition_element(condition: Condition) -> ET.Element:
    """Serialize a condition node (not the surrounding conditionvar)."""
    if isinstance(condition, Equality):
        element = ET.Element("varequal", {"respident": condition.respident})
        if not condition.case_sensitive:
            element.set("case", "No")
        element.text = strip_invalid_xml_chars(condition.value)
        return element
    if isinstance(condition, Negation):
        element = ET.Element("not")
        element.append(condition_element(condition.child))
        return element
    if isinstance(condition, Conjunction):
        element = ET.Element("and")
        for child in condition.children:
            element.append(condition_element(child))
        return element
    if isinstance(condition, Otherwise):
        return ET.Element("other")
    raise TypeError(f"Unknown condition node: {condition!r}")


def respcondition_element(rc: ResponseCondition, varname: str = "SCORE") -> ET.Element:
    """Serialize a full ``<respcondition>`` element."""
    element = ET.Element("respcondition", {"continue": "Yes" if rc.continue_processing else "No"})
    conditionvar = ET.SubElement(element, "conditionvar")
    conditionvar.append(condition_element(rc.condition))
    if rc.score is not None:
        setvar = ET.SubElement(element, "setvar", {"action": "Set", "varname": varname})
        setvar.text = _format_score(rc.score)
    return element


def _format_score(score: float) -> str:
    return str(int(score)) if float(score).is_integer() else str(score)


# -----------------------------------------------------------------------------
# Parsing
# -----------------------------------------------------------------------------


def local_name(tag: str) -> str:
    """Strip any ``{namespace}`` prefix and lower-case the tag."""
    return tag.rsplit("}", 1)[-1].lower()


def parse_condition(element: ET.Element) -> Condition:
    """Parse one condition node. Raises ValueError on unknown elements."""
    tag = local_name(element.tag)
    if tag == "varequal":
        case = (element.get("case") or "Yes").strip().lower()
        return Equality(
            respident=element.get("respident", ""),
            value=(element.text or "").strip(),
            case_sensitive=case not in ("no", "false"),
        )
    if tag == "not":
        children = list(element)
        if len(children) != 1:
            raise ValueError(f"<not> must wrap exactly one condition, found {len(children)}")
        return Negation(parse_condition(children[0]))
    if tag == "and":
        return Conjunction(tuple(parse_condition(child) for child in element))
    if tag == "other":
        return Otherwise()
    raise ValueError(f"Unsupported condition element <{tag}>")


def parse_conditionvar(element: ET.Element) -> Condition:
    """Parse a ``<conditionvar>``; several children form an implicit AND."""
    children = list(element)
    if not children:
        return Otherwise()
    if len(children) == 1:
        return parse_condition(children[0])
    return Conjunction(tuple(parse_condition(child) for child in children))


def parse_respcondition(element: ET.Element, varname: str = "SCORE") -> ResponseCondition:
    """Parse a ``<respcondition>`` element."""
    conditionvar = next((c for c in element if local_name(c.tag) == "conditionvar"), None)
    condition = parse_conditionvar(conditionvar) if conditionvar is not None else Otherwise()

    score = None
    for setvar in element:
        if local_name(setvar.tag) != "setvar":
            continue
        if setvar.get("varname", varname) != varname:
            continue
        if (setvar.get("action") or "Set").lower() != "set":
            continue
        try:
            score = float((setvar.text or "").strip())
        except ValueError:
            score = None

    return ResponseCondition(
        condition=condition,
        score=score,
        continue_processing=(element.get("continue") or "No").lower() == "yes",
    )


# -----------------------------------------------------------------------------
# Structural walks
# -----------------------------------------------------------------------------


def iter_equalities(condition: Condition) -> Iterator[Equality]:
    """Yield every Equality in the tree, in document order."""
    if isinstance(condition, Equality):
        yield condition
    elif isinstance(condition, Negation):
        yield from iter_equalities(condition.child)
    elif isinstance(condition, Conjunction):
        for child in condition.children:
            yield from iter_equalities(child)


def find_conjunction(condition: Condition) -> Conjunction | None:
    """Return the first Conjunction in the tree (depth first), if any."""
    if isinstance(condition, Conjunction):
        return condition
    if isinstance(condition, Negation):
        return find_conjunction(condition.child)
    return None


def direct_equalities(conjunction: Conjunction) -> list[Equality]:
    """Equality nodes that are immediate children of the conjunction."""
    return [child for child in conjunction.children if isinstance(child, Equality)]


def negated_equalities(conjunction: Conjunction) -> list[Equality]:
    """Equality nodes found under any Negation child of the conjunction."""
    found: list[Equality] = []
    for child in conjunction.children:
        if isinstance(child, Negation):
            found.extend(iter_equalities(child))
    return found


# -----------------------------------------------------------------------------
# Evaluation
# -----------------------------------------------------------------------------


def score_response(conditions: Sequence[ResponseCondition], response: Response) -> float:
    """Evaluate response conditions in order, as an LMS would.

    The first matching condition that does not continue ends processing.
    Conditions without a score leave the running score unchanged.
    """
    score = 0.0
    for rc in conditions:
        if not rc.condition.matches(response):
            continue
        if rc.score is not None:
            score = rc.score
        if not rc.continue_processing:
            break
    return score

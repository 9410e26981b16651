"""
labels.py
─────────
Turns a per-token tag stream into labelled text spans.

The pipeline tags every token individually.  A Label is a maximal run of
consecutive tokens sharing the same non-empty tag; its text is sliced from
the source using the first token's begin offset and the last token's end
offset, so whitespace and punctuation between the tokens are kept exactly as
they appear in the source.
"""

from dataclasses import dataclass
from typing import Iterable, List, Mapping, NamedTuple, Optional


# Tags meaning "no entity"
NO_ENTITY_TAGS = frozenset({"", "O"})

# spaCy's OntoNotes labels reduced to the four classic CoNLL classes.
# Labels not listed here (DATE, MONEY, ...) are kept as-is.
COARSE_TAGS = {
    "PERSON": "PER",
    "PER": "PER",
    "ORG": "ORG",
    "GPE": "LOC",
    "LOC": "LOC",
    "FAC": "LOC",
    "NORP": "MISC",
    "EVENT": "MISC",
    "PRODUCT": "MISC",
    "WORK_OF_ART": "MISC",
    "LAW": "MISC",
    "LANGUAGE": "MISC",
    "MISC": "MISC",
}


class Token(NamedTuple):
    """One annotated token: its text, tag and character offsets."""
    text: str
    tag: str
    begin: int
    end: int


@dataclass(frozen=True)
class NerLabel:
    """A tagged span of the source text."""
    text: str
    tag: str
    begin: int
    end: int

    @property
    def length(self) -> int:
        """Return the character length of the span."""
        return self.end - self.begin

    def to_dict(self) -> dict:
        """Convert label to dictionary representation."""
        return {
            "text": self.text,
            "tag": self.tag,
            "begin": self.begin,
            "end": self.end,
        }


def collapse_tokens(
    tokens: Iterable[Token],
    text: str,
    tag_map: Optional[Mapping[str, str]] = None,
) -> List[NerLabel]:
    """
    Collapse runs of same-tagged tokens into labels.

    Args:
        tokens: Tokens in source order.
        text: The source text the token offsets refer to.
        tag_map: Optional mapping applied to each tag before comparing.
                 Tags missing from the map are kept unchanged.

    Returns:
        Non-overlapping labels ordered by position.
    """
    labels: List[NerLabel] = []
    run_tag: Optional[str] = None
    run_begin = run_end = 0

    def flush():
        if run_tag is not None:
            labels.append(NerLabel(
                text=text[run_begin:run_end],
                tag=run_tag,
                begin=run_begin,
                end=run_end,
            ))

    for token in tokens:
        tag = token.tag
        if tag_map is not None:
            tag = tag_map.get(tag, tag)
        if tag in NO_ENTITY_TAGS:
            tag = None

        if tag is not None and tag == run_tag:
            run_end = token.end
            continue

        flush()
        run_tag = tag
        run_begin, run_end = token.begin, token.end

    flush()
    return labels

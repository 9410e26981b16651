"""Named entity recognition on top of a cached spaCy pipeline."""

from typing import Hashable, List, Mapping, Optional

from spacy.language import Language

from .cache import PipelineCache
from .errors import InvalidInput
from .labels import NerLabel, Token, collapse_tokens
from .settings import NerSettings


def annotate(pipeline: Language, text: str) -> List[Token]:
    """Run the pipeline over text and return one Token per spaCy token.

    Tokens outside any entity get the empty tag.
    """
    doc = pipeline(text)
    return [
        Token(token.text, token.ent_type_, token.idx, token.idx + len(token))
        for token in doc
    ]


def classify(
    pipeline: Language,
    text: str,
    tag_map: Optional[Mapping[str, str]] = None,
) -> List[NerLabel]:
    """
    Find the entities in text.

    Safe to call from many threads on the same pipeline.

    Args:
        pipeline: A built pipeline (see ner.builder.build_pipeline).
        text: The text to annotate.
        tag_map: Optional tag renaming applied before adjacent tokens are
                 merged, e.g. ner.labels.COARSE_TAGS.

    Returns:
        Labels ordered by position.

    Raises:
        InvalidInput: If text is not a string.
    """
    if not isinstance(text, str):
        raise InvalidInput(f"Text must be a string, got {type(text).__name__}")
    if not text:
        return []
    return collapse_tokens(annotate(pipeline, text), text, tag_map=tag_map)


def ner_annotate(
    cache: PipelineCache,
    slot_key: Hashable,
    settings: NerSettings,
    text: str,
    tag_map: Optional[Mapping[str, str]] = None,
) -> List[NerLabel]:
    """
    Run named entity recognition on text with the pipeline cached for slot_key.

    Building a pipeline means loading model files, so pipelines are kept in
    the cache.  If the settings for slot_key changed since the last call, a
    new pipeline is built and replaces the previous one.

    Raises:
        InvalidInput: If text is not a string.
        BuildFailure: If the pipeline had to be built and building failed.
    """
    if not isinstance(text, str):
        raise InvalidInput(f"Text must be a string, got {type(text).__name__}")
    return cache.obtain(slot_key, settings).use(
        lambda pipeline: classify(pipeline, text, tag_map=tag_map)
    )

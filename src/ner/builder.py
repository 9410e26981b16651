"""
builder.py
──────────
Builds spaCy NER pipelines from NerSettings.

Loading a full spaCy model takes seconds, which is why the result is held
in a PipelineCache rather than built per request.  A built Language object
is only read from afterwards, so one instance can serve many threads.
"""

import logging

import spacy
from spacy.language import Language

from .settings import NerSettings

logger = logging.getLogger(__name__)


def build_pipeline(settings: NerSettings) -> Language:
    """Build the pipeline described by settings.

    Args:
        settings: Model, language and pattern configuration.

    Returns:
        A ready-to-use spaCy Language object.

    Raises:
        OSError: If settings.model is not installed.
    """
    if settings.model:
        try:
            nlp = spacy.load(settings.model, disable=list(settings.disable))
        except OSError as exc:
            raise OSError(
                f"spaCy model '{settings.model}' not found. "
                f"Install it with: python -m spacy download {settings.model}"
            ) from exc
        if nlp.lang != settings.lang:
            logger.warning(
                f"Model '{settings.model}' is for language '{nlp.lang}', "
                f"settings ask for '{settings.lang}'"
            )
    else:
        nlp = spacy.blank(settings.lang)

    if settings.patterns:
        before = "ner" if "ner" in nlp.pipe_names else None
        ruler = nlp.add_pipe(
            "entity_ruler",
            before=before,
            config={"overwrite_ents": settings.overwrite_ents},
        )
        ruler.add_patterns([p.to_dict() for p in settings.patterns])

    logger.debug(
        f"Built pipeline lang={nlp.lang} pipes={nlp.pipe_names} "
        f"patterns={len(settings.patterns)}"
    )
    return nlp

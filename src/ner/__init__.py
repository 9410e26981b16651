"""Cached spaCy pipelines for named entity recognition.

A PipelineCache keeps one pipeline per slot and rebuilds it when the
requested NerSettings change; classify() turns a pipeline's token tags into
labelled text spans.
"""

from .errors import NerError, BuildFailure, InvalidInput
from .settings import EntityPattern, NerSettings, load_patterns, merge_patterns
from .labels import COARSE_TAGS, NerLabel, Token, collapse_tokens
from .cache import PipelineCache, ScopedHandle
from .builder import build_pipeline
from .classifier import annotate, classify, ner_annotate

__all__ = [
    "NerError",
    "BuildFailure",
    "InvalidInput",
    "EntityPattern",
    "NerSettings",
    "load_patterns",
    "merge_patterns",
    "COARSE_TAGS",
    "NerLabel",
    "Token",
    "collapse_tokens",
    "PipelineCache",
    "ScopedHandle",
    "build_pipeline",
    "annotate",
    "classify",
    "ner_annotate",
]

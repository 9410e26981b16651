"""
test_classifier.py
──────────────────
Pytest tests for the spaCy builder and classification.

Pipelines are blank spaCy models with an entity ruler, so these tests do
not need a downloaded model.

Run:  pytest tests/test_classifier.py -v
"""

import threading

import pytest

from ner import (
    COARSE_TAGS,
    BuildFailure,
    EntityPattern,
    InvalidInput,
    NerLabel,
    NerSettings,
    PipelineCache,
    annotate,
    build_pipeline,
    classify,
    ner_annotate,
)


# ─── Test data ───────────────────────────────────────────────────────────────
PARIS_TEXT = "Paris is the capital of France"

GEO_SETTINGS = NerSettings(
    lang="en",
    patterns=(
        EntityPattern("LOC", "Paris"),
        EntityPattern("LOC", "France"),
    ),
)

COMPANY_SETTINGS = NerSettings(
    lang="en",
    patterns=(
        EntityPattern("ORG", "Globex Corporation"),
        EntityPattern("PERSON", "Hank Scorpio"),
        EntityPattern("GPE", "Cypress Creek"),
    ),
)


# ─── Fixtures ────────────────────────────────────────────────────────────────
#
# Building is cheap for blank pipelines, but a module-scoped pipeline also
# checks that one instance can be reused across tests.

@pytest.fixture(scope="module")
def geo_pipeline():
    return build_pipeline(GEO_SETTINGS)


@pytest.fixture(scope="module")
def company_pipeline():
    return build_pipeline(COMPANY_SETTINGS)


# ─── Builder ─────────────────────────────────────────────────────────────────

class TestBuildPipeline:

    def test_blank_pipeline_without_patterns(self):
        nlp = build_pipeline(NerSettings(lang="en"))
        assert nlp.lang == "en"
        assert "entity_ruler" not in nlp.pipe_names

    def test_patterns_add_entity_ruler(self, geo_pipeline):
        assert "entity_ruler" in geo_pipeline.pipe_names

    def test_other_language(self):
        nlp = build_pipeline(NerSettings(lang="de", patterns=[EntityPattern("LOC", "Berlin")]))
        assert nlp.lang == "de"

    def test_missing_model_raises_oserror(self):
        with pytest.raises(OSError, match="python -m spacy download"):
            build_pipeline(NerSettings(model="xx_model_that_does_not_exist"))


# ─── annotate / classify ─────────────────────────────────────────────────────

class TestClassify:

    def test_annotate_yields_offsets_and_tags(self, geo_pipeline):
        tokens = annotate(geo_pipeline, PARIS_TEXT)
        assert tokens[0] == ("Paris", "LOC", 0, 5)
        assert tokens[1] == ("is", "", 6, 8)
        assert tokens[-1] == ("France", "LOC", 24, 30)

    def test_paris_example(self, geo_pipeline):
        assert classify(geo_pipeline, PARIS_TEXT) == [
            NerLabel(text="Paris", tag="LOC", begin=0, end=5),
            NerLabel(text="France", tag="LOC", begin=24, end=30),
        ]

    def test_no_entities(self, geo_pipeline):
        assert classify(geo_pipeline, "Nothing to see here.") == []

    def test_empty_text(self, geo_pipeline):
        assert classify(geo_pipeline, "") == []

    @pytest.mark.parametrize("text", [None, 42, b"Paris"])
    def test_non_string_text_raises(self, geo_pipeline, text):
        with pytest.raises(InvalidInput):
            classify(geo_pipeline, text)

    def test_multi_token_entity_is_one_label(self, company_pipeline):
        text = "Hank Scorpio founded Globex Corporation in Cypress Creek."
        labels = classify(company_pipeline, text)
        assert [(l.text, l.tag) for l in labels] == [
            ("Hank Scorpio", "PERSON"),
            ("Globex Corporation", "ORG"),
            ("Cypress Creek", "GPE"),
        ]
        for label in labels:
            assert text[label.begin:label.end] == label.text

    def test_coarse_tags(self, company_pipeline):
        labels = classify(company_pipeline, "Hank Scorpio moved to Cypress Creek", tag_map=COARSE_TAGS)
        assert [l.tag for l in labels] == ["PER", "LOC"]

    def test_concurrent_classify_on_shared_pipeline(self, geo_pipeline):
        expected = classify(geo_pipeline, PARIS_TEXT)
        results = []
        lock = threading.Lock()

        def worker():
            for _ in range(20):
                labels = classify(geo_pipeline, PARIS_TEXT)
                with lock:
                    results.append(labels)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert len(results) == 80
        assert all(r == expected for r in results)


# ─── ner_annotate through the cache ──────────────────────────────────────────

class TestNerAnnotate:

    def test_reuses_cached_pipeline(self):
        builds = []

        def builder(settings):
            builds.append(settings)
            return build_pipeline(settings)

        with PipelineCache(builder) as cache:
            first = ner_annotate(cache, "tenant-a", GEO_SETTINGS, PARIS_TEXT)
            second = ner_annotate(cache, "tenant-a", GEO_SETTINGS, "France")
        assert [l.text for l in first] == ["Paris", "France"]
        assert [l.text for l in second] == ["France"]
        assert len(builds) == 1

    def test_changed_patterns_take_effect(self):
        with PipelineCache(build_pipeline) as cache:
            before = ner_annotate(cache, "tenant-a", GEO_SETTINGS, "Paris and Lyon")
            more = NerSettings(
                lang="en",
                patterns=GEO_SETTINGS.patterns + (EntityPattern("LOC", "Lyon"),),
            )
            after = ner_annotate(cache, "tenant-a", more, "Paris and Lyon")
            assert cache.build_count == 2
        assert [l.text for l in before] == ["Paris"]
        assert [l.text for l in after] == ["Paris", "Lyon"]

    def test_missing_model_surfaces_build_failure(self):
        settings = NerSettings(model="xx_model_that_does_not_exist")
        with PipelineCache(build_pipeline) as cache:
            with pytest.raises(BuildFailure) as info:
                ner_annotate(cache, "tenant-a", settings, "text")
            assert "tenant-a" not in cache
        assert info.value.slot_key == "tenant-a"
        assert isinstance(info.value.cause, OSError)

    def test_invalid_text_does_not_touch_cache(self):
        with PipelineCache(build_pipeline) as cache:
            with pytest.raises(InvalidInput):
                ner_annotate(cache, "tenant-a", GEO_SETTINGS, None)
            assert len(cache) == 0

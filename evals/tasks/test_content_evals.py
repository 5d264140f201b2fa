"""
Content Evals -- element extraction, the matching cascade, utilization reports.

CODE-BASED graders: the analyzer is a pure function of payload and artifact.
"""

from pagesmith.content import (
    ContentUtilizationAnalyzer,
    ElementKind,
    MatchStrategy,
    analyze,
    content_mapping,
    extract_elements,
    is_valid_statistic,
)
from pagesmith.content.elements import ContentElement, Priority
from pagesmith.content.matching import ContentMatcher

from evals.graders import CodeGrader


def _strategies(report):
    return {usage.element.type: usage.strategy for usage in report.details}


class TestElementExtraction:
    """Eval: Are payload sections flattened into the right typed elements?"""

    def test_sample_payload_yields_fourteen_elements(self, sample_content):
        """Hero 4, features 4, testimonials 2, stats 4."""
        elements = extract_elements(sample_content)
        assert len(elements) == 14
        assert [e.type for e in elements[:4]] == [
            "hero_title", "hero_subtitle", "hero_cta_0", "hero_cta_1",
        ]
        assert elements[3].content == "Call the clinic"

    def test_priorities(self, sample_content):
        """Title and CTAs are critical, subtitle is high, descriptions are medium."""
        by_type = {e.type: e for e in extract_elements(sample_content)}
        assert by_type["hero_title"].priority is Priority.CRITICAL
        assert by_type["hero_cta_0"].priority is Priority.CRITICAL
        assert by_type["hero_subtitle"].priority is Priority.HIGH
        assert by_type["feature_description_1"].priority is Priority.MEDIUM

    def test_snake_case_cta_key(self):
        """cta_buttons is accepted as well as ctaButtons."""
        elements = extract_elements({"hero": {"title": "Welcome home", "cta_buttons": ["Start now"]}})
        assert [e.type for e in elements] == ["hero_title", "hero_cta_0"]

    def test_malformed_sections_are_skipped(self):
        """A hero string and a non-mapping feature item are skipped, the rest survives."""
        payload = {
            "hero": "Just a headline",
            "features": ["not a mapping", {"title": "Real feature", "description": "Still extracted"}],
        }
        elements = extract_elements(payload)
        assert [e.type for e in elements] == ["feature_title_1", "feature_description_1"]

    def test_non_mapping_payload_is_empty(self):
        """A list or None payload yields no elements."""
        assert extract_elements(["hero"]) == []
        assert extract_elements(None) == []

    def test_content_mapping_groups_by_section(self, sample_content):
        """content_mapping groups extracted elements per section for prompts."""
        mapping = content_mapping(sample_content)
        assert set(mapping) == {"hero", "features", "testimonials", "stats"}
        assert len(mapping["stats"]) == 4


class TestStatistics:
    """Eval: Are statistic-shaped values recognised?"""

    def test_valid_statistics(self):
        """Common stat formats are valid."""
        for value in ("95%", "95.5%", "20+", "50k+", "4.8/5", "50,000+", "$5m", "10x", "#1", "24:7", "Top 10"):
            assert is_valid_statistic(value), value

    def test_invalid_statistics(self):
        """Words and bracketed placeholders are not statistics."""
        for value in ("many", "[value]", "", "about ninety"):
            assert not is_valid_statistic(value), value

    def test_short_stat_value_is_not_placeholder(self):
        """A two-character stat like '#1' survives the minimum-length check."""
        element = ContentElement(ElementKind.STAT_VALUE, 0, "#1", Priority.HIGH, "stats")
        outcome = ContentMatcher("<dl><dt>#1</dt></dl>").match(element)
        assert outcome.used
        assert outcome.strategy is MatchStrategy.EXACT


class TestMatchingCascade:
    """Eval: Does each strategy decide the cases it is meant for?"""

    def test_full_artifact_uses_everything(self, sample_content, sample_artifact):
        """Every element of the sample content is present in the sample artifact."""
        report = analyze(sample_content, sample_artifact)

        grader = CodeGrader("full_utilization")
        grader.add_check("all_used", lambda r: r.used_elements == r.total_elements == 14)
        grader.add_check("rate_is_one", lambda r: r.utilization_rate == 1.0)
        grader.add_check("passed", lambda r: r.passed)
        grader.add_check("no_critical_missing", lambda r: r.critical_missing == [])
        grader.add_check("no_recommendations", lambda r: r.recommendations == [])
        result = grader.grade(report)
        assert result.passed, result.summary()

    def test_placeholder_is_never_used(self):
        """Placeholder text counts as unused even when it appears verbatim."""
        report = analyze({"hero": {"title": "[PLACEHOLDER]"}}, "<h1>[PLACEHOLDER]</h1>")
        assert report.used_elements == 0
        assert report.utilization_rate == 0.0
        assert _strategies(report)["hero_title"] is MatchStrategy.PLACEHOLDER

    def test_lorem_ipsum_is_placeholder(self):
        """Lorem ipsum content is a placeholder."""
        report = analyze(
            {"features": [{"title": "Lorem ipsum dolor", "description": "Real description of a feature"}]},
            "<p>Lorem ipsum dolor</p><p>Real description of a feature</p>",
        )
        strategies = _strategies(report)
        assert strategies["feature_title_0"] is MatchStrategy.PLACEHOLDER
        assert strategies["feature_description_0"] is MatchStrategy.EXACT

    def test_exact_match_ignores_case_and_whitespace(self):
        """Exact matching is case-insensitive and tolerant of whitespace runs."""
        report = analyze(
            {"hero": {"title": "Care that fits your schedule"}},
            "<h1>care   that fits\n your SCHEDULE</h1>",
        )
        assert _strategies(report)["hero_title"] is MatchStrategy.EXACT

    def test_stat_value_in_attribute_and_linked_label(self):
        """A stat value only in an attribute matches as a statistic; its label links to it."""
        report = analyze(
            {"stats": [{"value": "95%", "label": "Uptime guarantee"}]},
            '<Stat value="95%" />',
        )
        strategies = _strategies(report)
        assert strategies["stat_value_0"] is MatchStrategy.STATISTIC
        assert strategies["stat_label_0"] is MatchStrategy.LINKED
        assert report.utilization_rate == 1.0

    def test_stat_value_not_matched_inside_class_names(self):
        """'10x' inside a class token is not text content and is not a quoted literal."""
        report = analyze(
            {"stats": [{"value": "10x", "label": "Faster deploys"}]},
            '<div className="scale-10x">Faster deploys</div>',
        )
        strategies = _strategies(report)
        assert strategies["stat_value_0"] is MatchStrategy.NONE
        assert strategies["stat_label_0"] is MatchStrategy.EXACT

    def test_label_linked_through_value_reference(self):
        """A label is used when the artifact references stats[i].value."""
        report = analyze(
            {"stats": [{"value": "50k+", "label": "Active users"}]},
            "<span>{stats[0].value}</span>",
        )
        assert _strategies(report)["stat_label_0"] is MatchStrategy.LINKED

    def test_partial_match_for_long_content(self):
        """Long content with most significant words present matches partially."""
        report = analyze(
            {"features": [{
                "title": "Gentle cleanings",
                "description": "Hygienists trained in anxiety-free techniques for every age",
            }]},
            "<p>Our hygienists are trained in anxiety-free techniques</p>",
        )
        strategies = _strategies(report)
        assert strategies["feature_description_0"] is MatchStrategy.PARTIAL
        assert strategies["feature_title_0"] is MatchStrategy.NONE

    def test_short_content_never_matches_partially(self):
        """Content of 20 characters or fewer must match exactly."""
        report = analyze({"hero": {"title": "Fast, simple hosting"}}, "<h1>simple fast hosting</h1>")
        assert _strategies(report)["hero_title"] is MatchStrategy.NONE


class TestUtilizationReport:
    """Eval: Are rates, thresholds and recommendations reported correctly?"""

    def test_empty_payload(self):
        """No elements: total 0, not passed, one explanatory recommendation."""
        report = analyze({}, "<main>anything</main>")
        assert report.total_elements == 0
        assert report.passed is False
        assert report.recommendations == ["No content elements found in the content payload"]

    def test_nothing_used(self, sample_content):
        """An empty artifact gets the critical recommendation and per-section counts."""
        report = analyze(sample_content, "<main></main>")
        assert report.percentage == 0
        assert report.passed is False
        assert report.recommendations[0].startswith(
            "CRITICAL: Content utilization 0% is below the required 80%."
        )
        assert 'Missing critical hero_title: "Care that fits your schedule..."' in report.recommendations
        assert "hero section is missing 4 content elements" in report.recommendations
        critical = {e.type for e in report.critical_missing}
        assert {"hero_title", "hero_subtitle", "hero_cta_0", "stat_value_0", "testimonial_quote_0"} <= critical
        assert "feature_description_0" not in critical

    def test_threshold_is_configurable(self, sample_content):
        """Ten of fourteen elements passes at 0.7 and fails at 0.8."""
        artifact = (
            "<h1>Care that fits your schedule</h1>"
            "<p>Same-day dental visits across Portland</p>"
            "<button>Book a visit</button><button>Call the clinic</button>"
            "<h3>Gentle cleanings</h3><h3>Emergency care</h3>"
            "<dt>98%</dt><dt>24/7</dt>"
        )
        lenient = ContentUtilizationAnalyzer(threshold=0.7).analyze(sample_content, artifact)
        strict = ContentUtilizationAnalyzer(threshold=0.8).analyze(sample_content, artifact)
        assert lenient.used_elements == strict.used_elements == 10
        assert lenient.passed
        assert not strict.passed

    def test_to_dict_lists_missing_types(self, sample_content):
        """to_dict carries element type names, not element objects."""
        data = analyze(sample_content, "<main></main>").to_dict()
        assert data["used_elements"] == 0
        assert "hero_title" in data["missing_elements"]
        assert "hero_title" in data["critical_missing"]

    def test_analysis_is_deterministic(self, sample_content, sample_artifact):
        """Same inputs, same report."""
        assert analyze(sample_content, sample_artifact).to_dict() == analyze(
            sample_content, sample_artifact
        ).to_dict()

"""
Tests for the per-rule matchers and severity evaluation.
"""
import pytest

from core.matchers import (
    ScanState,
    detect,
    evaluate_threshold,
    grade_keyword_context,
    match_cooccurrence,
    match_keywords,
    match_thresholds,
)
from core.rules import MatcherKind, OperatorKind, Severity


@pytest.fixture
def keyword_rule(rule_table):
    return rule_table.get("clause_11_1")


@pytest.fixture
def threshold_rule(rule_table):
    return rule_table.get("clause_12_1")


@pytest.fixture
def regional_rule(rule_table):
    return rule_table.get("clause_15_3")


@pytest.fixture
def subsidy_rule(rule_table):
    return rule_table.get("clause_19_1")


@pytest.fixture
def vague_criteria_rule(rule_table):
    return rule_table.get("clause_46")


class TestRuleTable:
    """Tests for the default rule table."""

    def test_rules_in_table_order(self, rule_table):
        ids = [rule.rule_id for rule in rule_table]
        assert ids == ["clause_11_1", "clause_12_1", "clause_15_3", "clause_19_1", "clause_46"]

    def test_matcher_kinds(self, rule_table):
        kinds = {rule.rule_id: rule.matcher.kind for rule in rule_table}
        assert kinds["clause_11_1"] == MatcherKind.KEYWORD
        assert kinds["clause_12_1"] == MatcherKind.NUMERIC
        assert kinds["clause_15_3"] == MatcherKind.COOCCURRENCE
        assert kinds["clause_19_1"] == MatcherKind.COOCCURRENCE
        assert kinds["clause_46"] == MatcherKind.KEYWORD

    def test_citation_names_regulation_and_article(self, keyword_rule):
        assert keyword_rule.citation.startswith("《公平竞争审查条例实施办法》第十一条第（一）项：")

    def test_thresholds_are_read_only(self, threshold_rule):
        with pytest.raises(TypeError):
            threshold_rule.matcher.thresholds["注册资本"] = None

    def test_operator_kind_labels_round_trip(self):
        for kind in OperatorKind:
            assert OperatorKind.from_label(kind.label) is kind
        assert OperatorKind.from_label("未知类型") is OperatorKind.OTHER
        assert OperatorKind.from_label(None) is OperatorKind.OTHER


class TestKeywordMatcher:
    """Tests for keyword-set detection."""

    def test_support_and_subsidy_is_high(self, keyword_rule):
        findings = match_keywords(
            keyword_rule, keyword_rule.matcher, "支持龙头企业发展，给予专项资金扶持。", ScanState()
        )

        assert len(findings) == 1
        finding = findings[0]
        assert finding.severity == Severity.HIGH
        assert finding.operator_kind == OperatorKind.INDIRECT_DESIGNATION
        assert finding.is_specific_operator
        assert "财政支持" in finding.problem_description
        assert "龙头企业" in finding.suggestion

    def test_one_finding_per_keyword(self, keyword_rule):
        document = "积极支持龙头企业加快发展壮大。龙头企业应当依法合规经营并接受监管。"

        findings = match_keywords(keyword_rule, keyword_rule.matcher, document, ScanState())

        assert len(findings) == 1
        assert findings[0].original_text == "积极支持龙头企业加快发展壮大。"

    def test_short_first_occurrence_falls_through_to_next(self, keyword_rule):
        document = "支持龙头企业。区域内的龙头企业名单由协会公布。"

        findings = match_keywords(keyword_rule, keyword_rule.matcher, document, ScanState())

        assert len(findings) == 1
        assert findings[0].original_text == "区域内的龙头企业名单由协会公布。"

    def test_distinct_keywords_each_reported(self, keyword_rule):
        document = "区域内的知名企业名单由协会公布。各地骨干企业须按期报送统计数据。"

        findings = match_keywords(keyword_rule, keyword_rule.matcher, document, ScanState())

        assert [f.original_text for f in findings] == [
            "区域内的知名企业名单由协会公布。",
            "各地骨干企业须按期报送统计数据。",
        ]

    def test_no_support_context_is_medium(self, keyword_rule):
        findings = match_keywords(
            keyword_rule, keyword_rule.matcher, "区域内的知名企业名单由协会公布。", ScanState()
        )

        assert findings[0].severity == Severity.MEDIUM

    def test_failure_marker_context_rejected(self, keyword_rule):
        document = "该文件无法提取的龙头企业名单需补充。"

        assert match_keywords(keyword_rule, keyword_rule.matcher, document, ScanState()) == []

    def test_ungraded_rule_keeps_base_severity(self, vague_criteria_rule):
        document = "入选企业由主管部门择优确定，纳入项目库管理。"

        findings = match_keywords(
            vague_criteria_rule, vague_criteria_rule.matcher, document, ScanState()
        )

        assert len(findings) == 1
        assert findings[0].severity == Severity.MEDIUM
        assert "择优" in findings[0].suggestion


class TestKeywordGrading:
    """Tests for the support/subsidy grading table."""

    @pytest.mark.parametrize("context,expected_severity,expected_case", [
        ("鼓励龙头企业申请补贴", Severity.HIGH, "support_and_subsidy"),
        ("鼓励龙头企业参与", Severity.HIGH, "support_only"),
        ("龙头企业可申请补贴", Severity.MEDIUM, "default"),
        ("龙头企业名单公布", Severity.MEDIUM, "default"),
    ])
    def test_grading(self, keyword_rule, context, expected_severity, expected_case):
        severity, case = grade_keyword_context(keyword_rule, keyword_rule.matcher, context)
        assert severity == expected_severity
        assert case == expected_case


class TestThresholdMatcher:
    """Tests for numeric-threshold detection."""

    def test_registered_capital_above_high_bar(self, threshold_rule):
        findings = match_thresholds(
            threshold_rule,
            threshold_rule.matcher,
            "注册资本不少于1200万元以上的企业方可投标。",
            ScanState()
        )

        assert len(findings) == 1
        assert findings[0].severity == Severity.HIGH
        assert "注册资本" in findings[0].problem_description
        assert findings[0].operator_kind == OperatorKind.CONDITIONAL_EXCLUSION

    def test_every_match_is_reported(self, threshold_rule):
        document = "注册资本不少于1200万元以上。员工人数不少于60人以上。"

        findings = match_thresholds(threshold_rule, threshold_rule.matcher, document, ScanState())

        assert [f.original_text for f in findings] == [
            "注册资本不少于1200万元以上。",
            "员工人数不少于60人以上。",
        ]
        assert [f.severity for f in findings] == [Severity.HIGH, Severity.MEDIUM]

    @pytest.mark.parametrize("category,value,expected", [
        ("注册资本", 1000, Severity.HIGH),
        ("注册资本", 500, Severity.MEDIUM),
        ("注册资本", 499, Severity.LOW),
        ("营业收入", 5000, Severity.HIGH),
        ("营业收入", 1000, Severity.MEDIUM),
        ("经营年限", 5, Severity.HIGH),
        ("经营年限", 3, Severity.MEDIUM),
        ("经营年限", 2, Severity.LOW),
        ("员工数量", 100, Severity.HIGH),
        ("员工数量", 50, Severity.MEDIUM),
        ("其他", 99999, Severity.LOW),
    ])
    def test_bars(self, threshold_rule, category, value, expected):
        severity, _ = evaluate_threshold(threshold_rule.matcher, category, value)
        assert severity == expected

    def test_classify_by_first_marker(self, threshold_rule):
        pattern = threshold_rule.matcher
        assert pattern.classify("注册资本不少于1200万元以上") == "注册资本"
        assert pattern.classify("成立满3年以上") == "经营年限"
        assert pattern.classify("员工不少于80人以上") == "员工数量"


class TestCooccurrenceMatcher:
    """Tests for sentence-level co-occurrence detection."""

    def test_regional_restriction(self, regional_rule):
        findings = match_cooccurrence(
            regional_rule,
            regional_rule.matcher,
            "本地注册并在本地缴纳税收的企业优先中标。",
            ScanState()
        )

        assert len(findings) == 1
        assert findings[0].severity == Severity.HIGH
        assert findings[0].original_text == "本地注册并在本地缴纳税收的企业优先中标。"

    def test_order_within_sentence_does_not_matter(self, regional_rule):
        findings = match_cooccurrence(
            regional_rule, regional_rule.matcher, "注册地须在本市的企业方可申报。", ScanState()
        )

        assert len(findings) == 1

    def test_terms_in_different_sentences_do_not_match(self, regional_rule):
        findings = match_cooccurrence(
            regional_rule, regional_rule.matcher, "企业须在本市。注册资料另行提交。", ScanState()
        )

        assert findings == []

    def test_terms_across_line_break_do_not_match(self, regional_rule):
        findings = match_cooccurrence(
            regional_rule, regional_rule.matcher, "企业须在本市\n注册资料另行提交。", ScanState()
        )

        assert findings == []

    def test_line_break_bounds_the_reported_sentence(self, regional_rule):
        findings = match_cooccurrence(
            regional_rule, regional_rule.matcher, "第一行内容说明\n本地注册企业优先参与投标。", ScanState()
        )

        assert [f.original_text for f in findings] == ["本地注册企业优先参与投标。"]

    def test_each_anchor_reports_once(self, regional_rule):
        document = "本地注册的企业优先参与评审工作。本地经营的企业优先纳入采购名单。本市设立的机构优先参与。"

        findings = match_cooccurrence(regional_rule, regional_rule.matcher, document, ScanState())

        assert [f.original_text for f in findings] == [
            "本地注册的企业优先参与评审工作。",
            "本市设立的机构优先参与。",
        ]

    def test_targeted_subsidy(self, subsidy_rule):
        findings = match_cooccurrence(
            subsidy_rule, subsidy_rule.matcher, "对行业龙头给予资金补助，具体办法另行制定。", ScanState()
        )

        assert len(findings) == 1
        assert findings[0].operator_kind == OperatorKind.TAILOR_MADE
        assert findings[0].severity == Severity.HIGH


class TestScanState:
    """Tests for the per-scan acceptance filter."""

    def test_context_admitted_once(self):
        state = ScanState()
        assert state.admit("支持龙头企业发展壮大。")
        assert not state.admit("支持龙头企业发展壮大。")

    @pytest.mark.parametrize("context", [
        "太短的句子。",
        "一" * 10,
        "长" * 201,
        "部分内容无法提取请核对原件。",
        "第三页解析失败请重新上传文件。",
    ])
    def test_rejected_contexts(self, context):
        assert not ScanState().admit(context)

    def test_shared_state_suppresses_second_rule(self, rule_table):
        document = "支持龙头企业发展，给予专项资金扶持。"
        state = ScanState()

        first = detect(rule_table.get("clause_11_1"), document, state)
        second = detect(rule_table.get("clause_19_1"), document, state)

        assert len(first) == 1
        assert second == []

    def test_fresh_state_lets_second_rule_match(self, rule_table):
        document = "支持龙头企业发展，给予专项资金扶持。"

        assert len(detect(rule_table.get("clause_19_1"), document, ScanState())) == 1

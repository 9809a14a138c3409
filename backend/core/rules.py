"""
FairReview Rules Module
=======================
Static rule table for fair-competition review.

Each rule encodes one clause of the Implementing Measures for Fair
Competition Review: its citation text, how it is detected, and how
severity and remediation text are chosen.

Detection patterns form a tagged union dispatched on ``kind``:
- KeywordPattern: fixed keyword set, first accepted occurrence per keyword
- NumericPattern: "qualifier + number + unit" thresholds graded by bars
- CooccurrencePattern: two term sets that must share one sentence
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from core.config import REGULATION_TITLE


class Severity(str, Enum):
    """Finding severity tiers."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class OperatorKind(str, Enum):
    """How a policy text singles out particular market participants."""
    DIRECT_NAMING = "direct-naming"
    INDIRECT_DESIGNATION = "indirect-designation"
    TAILOR_MADE = "tailor-made"
    CONDITIONAL_EXCLUSION = "conditional-exclusion"
    OTHER = "other"

    @property
    def label(self) -> str:
        """Chinese label used in review reports and LLM payloads."""
        return _OPERATOR_KIND_LABELS[self]

    @classmethod
    def from_label(cls, label: str | None) -> "OperatorKind":
        """Map a Chinese label (or an enum value) back to a kind."""
        if not label:
            return cls.OTHER
        for kind, kind_label in _OPERATOR_KIND_LABELS.items():
            if label in (kind_label, kind.value):
                return kind
        return cls.OTHER


_OPERATOR_KIND_LABELS = {
    OperatorKind.DIRECT_NAMING: "直接指名",
    OperatorKind.INDIRECT_DESIGNATION: "变相确定",
    OperatorKind.TAILOR_MADE: "量身定制",
    OperatorKind.CONDITIONAL_EXCLUSION: "条件排除",
    OperatorKind.OTHER: "其他",
}


class MatcherKind(str, Enum):
    """Detection pattern tags."""
    KEYWORD = "keyword"
    NUMERIC = "numeric"
    COOCCURRENCE = "cooccurrence"


@dataclass(frozen=True)
class ThresholdBar:
    """Severity bars for one threshold category, in the pattern's own unit."""
    high: int
    medium: int


@dataclass(frozen=True)
class KeywordPattern:
    """
    Keyword-set detection.

    When both ``support_keywords`` and ``subsidy_terms`` are given, the
    snippet around a hit is graded by whether it also mentions support
    measures and subsidy terms. Otherwise the rule's base severity applies.
    """
    keywords: tuple[str, ...]
    support_keywords: tuple[str, ...] = ()
    subsidy_terms: tuple[str, ...] = ()
    kind: MatcherKind = field(default=MatcherKind.KEYWORD, init=False)

    @property
    def graded(self) -> bool:
        return bool(self.support_keywords) and bool(self.subsidy_terms)


@dataclass(frozen=True)
class NumericPattern:
    """Numeric-threshold detection with per-category severity bars."""
    patterns: tuple[str, ...]
    category_markers: tuple[tuple[tuple[str, ...], str], ...]
    thresholds: Mapping[str, ThresholdBar]
    default_category: str = "其他"
    kind: MatcherKind = field(default=MatcherKind.NUMERIC, init=False)

    def compiled(self) -> list[re.Pattern[str]]:
        return [re.compile(p) for p in self.patterns]

    def classify(self, match_text: str) -> str:
        """Category of a matched threshold: first marker found wins."""
        for markers, category in self.category_markers:
            if any(marker in match_text for marker in markers):
                return category
        return self.default_category


@dataclass(frozen=True)
class CooccurrencePattern:
    """
    Sentence-level co-occurrence of an anchor term and a companion term.

    ``per_anchor`` checks each anchor term on its own so that each anchor
    yields at most one finding; otherwise all anchors form one group that
    yields at most one finding for the whole rule.
    """
    anchor_terms: tuple[str, ...]
    companion_terms: tuple[str, ...]
    per_anchor: bool = False
    kind: MatcherKind = field(default=MatcherKind.COOCCURRENCE, init=False)

    def anchor_groups(self) -> list[tuple[str, tuple[str, ...]]]:
        """Return ``(label, anchors)`` pairs in reporting order."""
        if self.per_anchor:
            return [(anchor, (anchor,)) for anchor in self.anchor_terms]
        return [("|".join(self.anchor_terms), self.anchor_terms)]

    def matches(self, sentence: str, anchors: tuple[str, ...]) -> bool:
        """True when the sentence holds one of ``anchors`` and a companion term."""
        return (
            any(anchor in sentence for anchor in anchors)
            and any(term in sentence for term in self.companion_terms)
        )


DetectionPattern = KeywordPattern | NumericPattern | CooccurrencePattern


@dataclass(frozen=True)
class Rule:
    """A single regulation clause and its detection policy."""
    rule_id: str
    article: str
    clause_text: str
    matcher: DetectionPattern
    severity: Severity
    operator_kind: OperatorKind
    suggestion: str
    descriptions: Mapping[str, str]
    is_specific_operator: bool = True

    @property
    def citation(self) -> str:
        """Full citation: regulation title, article and clause text."""
        return f"{REGULATION_TITLE}{self.article}：{self.clause_text}"

    def describe(self, case: str, **values: Any) -> str:
        """Render the problem description for a matched sub-case."""
        template = self.descriptions.get(case) or self.descriptions["default"]
        return template.format(**values)

    def render_suggestion(self, **values: Any) -> str:
        return self.suggestion.format(**values)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "rule_id": self.rule_id,
            "article": self.article,
            "citation": self.citation,
            "matcher_kind": self.matcher.kind.value,
            "severity": self.severity.value,
            "operator_kind": self.operator_kind.value,
        }


@dataclass(frozen=True)
class RuleTable:
    """Ordered, read-only collection of rules shared across scans."""
    rules: tuple[Rule, ...]

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def get(self, rule_id: str) -> Rule | None:
        for rule in self.rules:
            if rule.rule_id == rule_id:
                return rule
        return None

    def to_dict(self) -> dict[str, Any]:
        return {"rules": [r.to_dict() for r in self.rules]}


# Clause data of the Implementing Measures.
# Keyword lists and severity bars are the review policy, not conclusions.
FAIR_COMPETITION_CLAUSES: dict[str, dict[str, Any]] = {
    "clause_11_1": {
        "article": "第十一条第（一）项",
        "clause_text": "以明确要求、暗示等方式，限定或者变相限定经营、购买、使用特定经营者提供的商品",
        "keywords": [
            "龙头企业", "头部企业", "重点企业", "知名企业", "领军企业", "骨干企业",
            "标杆企业", "示范企业", "著名企业", "优秀企业", "先进企业", "百强企业",
        ],
        "support_keywords": ["支持", "扶持", "培育", "发展", "建设", "促进", "鼓励"],
        "subsidy_terms": ["补贴", "补助", "奖励", "扶持"],
        "severity": "high",
        "operator_kind": "indirect-designation",
        "suggestion": (
            "将\"{keyword}\"修改为具体的量化标准，如：技术水平达到XX标准、年产值不低于XX万元、"
            "获得XX认证等客观明确的条件，确保所有符合条件的经营者均可参与"
        ),
        "descriptions": {
            "support_and_subsidy": (
                "通过\"{keyword}\"概念结合财政支持措施，构成变相确定特定经营者并给予优惠待遇，"
                "严重违反公平竞争原则，可能形成对其他经营者的不公平排斥"
            ),
            "support_only": (
                "使用\"{keyword}\"概念变相确定特定经营者范围，可能排除其他符合条件的企业参与，"
                "影响市场公平竞争环境"
            ),
            "default": (
                "使用\"{keyword}\"等模糊概念可能构成变相确定特定经营者，建议采用客观明确的量化标准替代"
            ),
        },
    },
    "clause_12_1": {
        "article": "第十二条第（一）项",
        "clause_text": "设置明显不必要或者超出实际需要的准入条件",
        "patterns": [
            r"注册资本[不少于]{0,3}.*?(\d+)[万亿]元以上",
            r"年营业收入[不少于]{0,3}.*?(\d+)[万亿]元以上",
            r"成立[满]{0,1}.*?(\d+)年以上",
            r"经营[满]{0,1}.*?(\d+)年以上",
            r"员工[人数]{0,2}[不少于]{0,3}.*?(\d+)人以上",
        ],
        "category_markers": [
            (["注册资本"], "注册资本"),
            (["营业收入"], "营业收入"),
            (["经营", "成立"], "经营年限"),
            (["员工"], "员工数量"),
        ],
        # 万元 / 万元 / 年 / 人
        "thresholds": {
            "注册资本": {"high": 1000, "medium": 500},
            "营业收入": {"high": 5000, "medium": 1000},
            "经营年限": {"high": 5, "medium": 3},
            "员工数量": {"high": 100, "medium": 50},
        },
        "severity": "medium",
        "operator_kind": "conditional-exclusion",
        "suggestion": (
            "降低门槛要求或提供充分的必要性论证，确保条件设置与政策目标直接相关且为实现目标所必需，"
            "避免设置过高门槛形成准入壁垒"
        ),
        "descriptions": {
            "high": "设置过高的{category}门槛，可能构成为特定规模企业量身定制，形成准入壁垒，限制中小企业参与市场竞争",
            "medium": "设置的{category}要求可能对部分经营者构成不合理限制，建议降低门槛或提供充分的必要性论证",
            "low": "{category}门槛设置相对合理，但仍需确保其与政策目标的关联性和必要性",
            "default": "设置的门槛条件需要论证其必要性和合理性，确保不会对竞争造成不必要的限制",
        },
    },
    "clause_15_3": {
        "article": "第十五条第（三）项",
        "clause_text": (
            "将经营者取得业绩和奖项荣誉的区域、缴纳税收社保的区域、投标（响应）产品的产地、注册地址、"
            "与本地经营者组成联合体等作为投标（响应）条件、加分条件、中标（成交、入围）条件或者评标条款"
        ),
        "anchor_terms": ["本地", "本区", "本市", "本县", "当地", "区内", "市内", "县内"],
        "companion_terms": ["注册", "纳税", "缴费", "经营", "设立", "投标", "参与"],
        "per_anchor": True,
        "severity": "high",
        "operator_kind": "conditional-exclusion",
        "suggestion": (
            "删除地域限制表述，或修改为\"在本行政区域内依法注册的企业\"等符合法律规定的表述，"
            "确保外地企业享有同等参与机会"
        ),
        "descriptions": {
            "default": (
                "设置地域限制条件排斥外地经营者参与，违反统一市场和公平竞争原则，"
                "可能构成地方保护主义，影响要素自由流动"
            ),
        },
    },
    "clause_19_1": {
        "article": "第十九条第（一）项",
        "clause_text": "以直接确定受益经营者或者设置不明确、不合理入选条件的名录库、企业库等方式，实施财政奖励或者补贴",
        "anchor_terms": ["龙头", "头部", "重点", "知名", "领军", "骨干"],
        "companion_terms": ["补贴", "补助", "奖励", "扶持资金", "专项资金", "资助"],
        "per_anchor": False,
        "severity": "high",
        "operator_kind": "tailor-made",
        "suggestion": (
            "取消对特定类型企业的专门财政支持，或修改为基于客观量化标准的普惠性政策，"
            "如按技术创新水平、环保达标情况等客观条件给予支持"
        ),
        "descriptions": {
            "default": (
                "通过财政奖励补贴措施变相确定特定经营者，构成量身定制政策，严重违反公平竞争原则，"
                "可能造成市场竞争扭曲"
            ),
        },
    },
    "clause_46": {
        "article": "第四十六条",
        "clause_text": (
            "特定经营者是指在政策措施中直接或者变相确定的某个或者某部分经营者，"
            "但通过公平合理、客观明确且非排他性条件确定的除外"
        ),
        "keywords": ["择优", "综合评定", "符合条件", "经评定", "项目库", "名录库", "企业库", "推荐目录"],
        "severity": "medium",
        "operator_kind": "indirect-designation",
        "suggestion": (
            "将\"{keyword}\"等模糊表述修改为具体的量化标准和客观条件，如设定明确的技术指标、资质要求、"
            "业绩标准等，确保条件公平合理、客观明确且具有可操作性"
        ),
        "descriptions": {
            "default": (
                "使用模糊不明确的评定标准可能为变相确定特定经营者提供操作空间，违反公平竞争审查要求，"
                "容易产生自由裁量权滥用，影响政策执行的公正性和透明度"
            ),
        },
    },
}


def _build_matcher(data: Mapping[str, Any]) -> DetectionPattern:
    """Pick the detection pattern kind from the clause data."""
    if "patterns" in data:
        return NumericPattern(
            patterns=tuple(data["patterns"]),
            category_markers=tuple(
                (tuple(markers), category) for markers, category in data["category_markers"]
            ),
            thresholds=MappingProxyType({
                category: ThresholdBar(**bars) for category, bars in data["thresholds"].items()
            }),
        )
    if "anchor_terms" in data:
        return CooccurrencePattern(
            anchor_terms=tuple(data["anchor_terms"]),
            companion_terms=tuple(data["companion_terms"]),
            per_anchor=data.get("per_anchor", False),
        )
    return KeywordPattern(
        keywords=tuple(data["keywords"]),
        support_keywords=tuple(data.get("support_keywords", ())),
        subsidy_terms=tuple(data.get("subsidy_terms", ())),
    )


def build_rule_table(clauses: Mapping[str, Mapping[str, Any]]) -> RuleTable:
    """Build an immutable rule table from clause data, preserving order."""
    rules = []
    for rule_id, data in clauses.items():
        rules.append(Rule(
            rule_id=rule_id,
            article=data["article"],
            clause_text=data["clause_text"],
            matcher=_build_matcher(data),
            severity=Severity(data["severity"]),
            operator_kind=OperatorKind(data["operator_kind"]),
            suggestion=data["suggestion"],
            descriptions=MappingProxyType(dict(data["descriptions"])),
        ))
    return RuleTable(rules=tuple(rules))


def build_default_rule_table() -> RuleTable:
    """Rule table for the five clauses covered by the local engine."""
    return build_rule_table(FAIR_COMPETITION_CLAUSES)

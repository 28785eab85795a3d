"""Weighted quality score for normalized (markdown-like) article text.

Each dimension is scored 0-100 from surface features of the text; the
overall score is the weighted sum, clamped to 0-100. Scoring never raises:
unexpected failures yield a neutral score flagged with the error.
"""

import re
import time
from collections import Counter

from src.cleaning.domain.rules import hostname_of
from src.config.logger_config import logger
from src.metrics.aggregator import MetricsAggregator
from src.scoring.models import QualityBreakdown, QualityScore, QualityWeights

NEUTRAL_SCORE = 50
LOW_SCORE_THRESHOLD = 50

RECOMMENDATIONS: dict[str, str] = {
    "length": "Content may be too short or poorly extracted",
    "structure": "Improve heading structure and paragraph organization",
    "readability": "Content may contain navigation elements or poor sentence structure",
    "uniqueness": "Detected repeated content - cleaning rules may need improvement",
    "formatting": "Formatting could be improved or contains residual HTML",
}
LOOKS_GOOD = "Content quality looks good!"

HEADING = re.compile(r"^#+\s+.+$", re.M)
H1 = re.compile(r"^#\s+", re.M)
H2 = re.compile(r"^##\s+", re.M)
H3 = re.compile(r"^###\s+", re.M)
BULLET_ITEM = re.compile(r"^[-*+]\s+", re.M)
NUMBERED_ITEM = re.compile(r"^\d+\.\s+", re.M)
BOLD = re.compile(r"\*\*[^*]+\*\*")
ITALIC = re.compile(r"\*[^*]+\*")
LINK = re.compile(r"\[[^\]]+\]\([^)]+\)")
TABLE_ROW = re.compile(r"\|.*\|")
MARKUP_CHARS = re.compile(r"[*#`\[\]]")
SENTENCE_SPLIT = re.compile(r"[.!?]+")
PUNCTUATION = re.compile(r"[.!?;:,]")


def _paragraphs(text: str, min_length: int) -> list[str]:
    return [block for block in text.split("\n\n") if len(block.strip()) > min_length]


def score_length(text: str) -> float:
    words = len(text.split())
    if words < 50:
        return 10
    if words < 100:
        return 30
    if words < 200:
        return 50
    if words < 500:
        return 75
    if words <= 2000:
        return 100
    if words <= 5000:
        return 90
    if words <= 10000:
        return 80
    return 60


def score_structure(text: str) -> float:
    score = 0.0
    if HEADING.search(text):
        score += 30
        h1_count = len(H1.findall(text))
        h2_count = len(H2.findall(text))
        h3_count = len(H3.findall(text))
        if h1_count == 1 and h2_count > 0:
            score += 20
        if h3_count > 0 and h2_count > 0:
            score += 10

    paragraphs = _paragraphs(text, 20)
    if len(paragraphs) >= 3:
        score += 25
        lengths = [len(paragraph) for paragraph in paragraphs]
        mean = sum(lengths) / len(lengths)
        variance = sum((length - mean) ** 2 for length in lengths) / len(lengths)
        if variance > 1000:
            score += 15

    if BULLET_ITEM.search(text) or NUMBERED_ITEM.search(text):
        score += 10
    return min(score, 100)


def score_readability(text: str) -> float:
    plain = re.sub(r"\n+", " ", re.sub(r"[#*\[\]`]", "", text)).strip()
    if not plain:
        return 0

    score = 0.0
    sentences = [sentence.strip() for sentence in SENTENCE_SPLIT.split(plain) if len(sentence.strip()) > 10]
    if len(sentences) >= 5:
        score += 30
        mean_length = sum(len(sentence.split()) for sentence in sentences) / len(sentences)
        if 10 <= mean_length <= 30:
            score += 20
        if 15 <= mean_length <= 25:
            score += 10

    words = plain.split()
    punctuation_ratio = len(PUNCTUATION.findall(plain)) / len(words) if words else 0.0
    if 0.05 <= punctuation_ratio <= 0.2:
        score += 20

    if sentences:
        starters = {sentence.split()[0].lower() for sentence in sentences}
        variety = len(starters) / len(sentences)
        if variety > 0.7:
            score += 15
        if variety > 0.8:
            score += 10

    frequencies = Counter(word for word in (w.lower() for w in words) if len(word) > 3)
    if any(count > 5 for count in frequencies.values()):
        score -= 10
    return max(0, min(score, 100))


def count_duplicate_paragraphs(text: str) -> tuple[int, int]:
    """Return ``(duplicates, chunks)`` over paragraphs normalized by case and whitespace."""
    chunks = _paragraphs(text, 30)
    seen: set[str] = set()
    duplicates = 0
    for chunk in chunks:
        normalized = re.sub(r"\s+", " ", chunk.lower()).strip()
        if normalized in seen:
            duplicates += 1
        else:
            seen.add(normalized)
    return duplicates, len(chunks)


def score_uniqueness(text: str) -> float:
    score = 100.0
    duplicates, chunks = count_duplicate_paragraphs(text)
    if chunks >= 2 and duplicates:
        score -= duplicates / chunks * 50
        score -= 30 * min(duplicates, 2)

    seen: set[str] = set()
    short_duplicates = 0
    for sentence in SENTENCE_SPLIT.split(text):
        normalized = re.sub(r"\s+", " ", sentence.lower()).strip()
        if not 5 < len(normalized) < 50:
            continue
        if normalized in seen:
            short_duplicates += 1
        else:
            seen.add(normalized)
    if short_duplicates > 2:
        score -= 20
    return max(0, score)


def score_formatting(text: str) -> float:
    if not text:
        return 0
    score = 0.0
    if HEADING.search(text):
        score += 25
    if BOLD.search(text):
        score += 15
    if ITALIC.search(text):
        score += 10
    if LINK.search(text):
        score += 20
    if BULLET_ITEM.search(text) or NUMBERED_ITEM.search(text):
        score += 15
    if TABLE_ROW.search(text):
        score += 15
    if len(text.split("\n\n")) > 1:
        score += 10
    if len(MARKUP_CHARS.findall(text)) / len(text) > 0.1:
        score -= 20
    return max(0, min(score, 100))


def quality_indicators(text: str) -> dict[str, float]:
    words = len(text.split())
    paragraphs = len(_paragraphs(text, 20))
    markup = len(MARKUP_CHARS.findall(text))
    return {
        "word_count": words,
        "paragraph_count": paragraphs,
        "heading_count": len(HEADING.findall(text)),
        "link_count": len(LINK.findall(text)),
        "list_item_count": len(BULLET_ITEM.findall(text)) + len(NUMBERED_ITEM.findall(text)),
        "average_paragraph_length": round(words / paragraphs) if paragraphs else 0,
        "formatting_ratio": round(markup / len(text) * 100, 1) if text else 0.0,
    }


class QualityScorer:
    def __init__(
        self,
        weights: QualityWeights | None = None,
        metrics: MetricsAggregator | None = None,
    ) -> None:
        self.weights = weights or QualityWeights()
        self.metrics = metrics

    def score(self, text: str, url: str = "") -> QualityScore:
        started = time.perf_counter()
        try:
            result = self._score(text or "")
        except Exception as exc:
            logger.exception("Quality scoring failed for {}: {}", url or "<unknown>", exc)
            result = QualityScore(overall=NEUTRAL_SCORE, error=str(exc))

        if self.metrics is not None:
            self.metrics.record_scoring(
                hostname_of(url),
                result.overall,
                (time.perf_counter() - started) * 1000,
                error=result.failed,
            )
        return result

    def _score(self, text: str) -> QualityScore:
        breakdown = QualityBreakdown(
            length=score_length(text),
            structure=score_structure(text),
            readability=score_readability(text),
            uniqueness=score_uniqueness(text),
            formatting=score_formatting(text),
        )
        weights = self.weights.as_dict()
        scores = breakdown.as_dict()
        overall = round(sum(weights[name] * scores[name] for name in weights))
        overall = max(0, min(100, overall))

        recommendations = [RECOMMENDATIONS[name] for name, value in scores.items() if value < LOW_SCORE_THRESHOLD]
        duplicates, _ = count_duplicate_paragraphs(text)
        if duplicates and RECOMMENDATIONS["uniqueness"] not in recommendations:
            recommendations.append(RECOMMENDATIONS["uniqueness"])
        if not recommendations:
            recommendations.append(LOOKS_GOOD)

        return QualityScore(
            overall=overall,
            breakdown=breakdown,
            indicators=quality_indicators(text),
            recommendations=tuple(recommendations),
        )

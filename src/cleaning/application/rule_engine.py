import time
from typing import Iterable

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from src.cleaning.domain.models import CleaningReport, CleaningResult
from src.cleaning.domain.preservation import STRUCTURAL_TAGS, NodeFacts, decide_removal, word_stats
from src.cleaning.domain.rules import CleaningAction, RuleCapability, RuleSet, default_rule_sets, hostname_of
from src.config.logger_config import logger
from src.metrics.aggregator import MetricsAggregator

MEDIA_TAGS: tuple[str, ...] = ("img", "video", "iframe", "svg", "picture", "audio")
SCRIPT_TAGS: tuple[str, ...] = ("script", "style", "noscript")
TRACKING_ATTRIBUTES: tuple[str, ...] = (
    "data-gtm",
    "data-ga",
    "data-analytics",
    "data-track",
    "data-event",
    "data-pixel",
    "data-fb",
    "data-facebook",
)
CLEANUP_RULE = "content-cleanup"
ROOT_TAGS = frozenset({"html", "body", "[document]"})


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "lxml")


def count_elements(root: Tag) -> int:
    return len(root.find_all(True))


def _is_attached(element: Tag | NavigableString, root: BeautifulSoup) -> bool:
    if element is root:
        return True
    return any(parent is root for parent in element.parents)


def light_clean(html: str) -> str:
    """Drop scripts, styles and comments; used where the page is stored as-is."""
    soup = parse_html(html)
    for element in soup.find_all(SCRIPT_TAGS):
        element.extract()
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()
    return str(soup)


class _CleaningRun:
    """Mutable state of one ``RuleEngine.clean`` call."""

    def __init__(self, soup: BeautifulSoup, report: CleaningReport) -> None:
        self.soup = soup
        self.report = report
        self.preserved: list[Tag] = []

    def attached(self, element: Tag | NavigableString) -> bool:
        return _is_attached(element, self.soup)

    def is_preserved(self, element: Tag) -> bool:
        return any(kept is element for kept in self.preserved)

    def guards_preserved(self, element: Tag) -> bool:
        for kept in self.preserved:
            if any(parent is element for parent in kept.parents):
                return True
        return False

    def is_protected(self, element: Tag) -> bool:
        return self.is_preserved(element) or self.guards_preserved(element)

    def facts(self, element: Tag) -> NodeFacts:
        text = element.get_text().strip()
        word_count, unique_ratio = word_stats(text)
        table = element.find("table")
        role = element.get("role")
        element_id = element.get("id")
        return NodeFacts(
            tag_name=element.name or "",
            element_id=element_id if isinstance(element_id, str) else None,
            classes=tuple(element.get("class") or ()),
            role=role if isinstance(role, str) else None,
            text_length=len(text),
            word_count=word_count,
            unique_word_ratio=unique_ratio,
            structural_descendants=len(element.find_all(STRUCTURAL_TAGS)),
            first_table_text_length=len(table.get_text().strip()) if table is not None else None,
            is_preserved=self.is_preserved(element),
            guards_preserved=self.guards_preserved(element),
        )

    def remove(self, element: Tag, rule: str) -> int:
        removed = 1 + count_elements(element)
        element.extract()
        self.report.count_removed(rule, removed)
        return removed


class RuleEngine:
    def __init__(
        self,
        rule_sets: Iterable[RuleSet] | None = None,
        metrics: MetricsAggregator | None = None,
    ) -> None:
        source = default_rule_sets() if rule_sets is None else tuple(rule_sets)
        self._rule_sets: list[RuleSet] = sorted(source, key=lambda rule: rule.sort_key)
        self.metrics = metrics

    @property
    def rule_sets(self) -> tuple[RuleSet, ...]:
        return tuple(self._rule_sets)

    def add_rule_set(self, rule_set: RuleSet) -> None:
        if any(existing.name == rule_set.name for existing in self._rule_sets):
            raise ValueError(f"Rule set {rule_set.name!r} is already registered")
        self._rule_sets.append(rule_set)
        self._rule_sets.sort(key=lambda rule: rule.sort_key)

    def clean(self, html: str, url: str) -> CleaningResult:
        hostname = hostname_of(url)
        started = time.perf_counter()
        html = html or ""
        try:
            soup = parse_html(html)
            report = CleaningReport(
                original_element_count=count_elements(soup),
                original_size=len(html),
            )
            run = _CleaningRun(soup, report)

            for rule_set in self._rule_sets:
                if not rule_set.should_apply(url):
                    continue
                try:
                    self._apply_rule_set(run, rule_set, hostname)
                    report.applied_rules.append(rule_set.name)
                except Exception as exc:
                    logger.exception("Rule set {} failed on {}: {}", rule_set.name, url, exc)
                    report.errors.append(f"{rule_set.name}: {exc}")

            self._content_cleanup(run)

            cleaned = str(soup)
            report.final_element_count = count_elements(soup)
            report.cleaned_size = len(cleaned)
            report.duration_ms = (time.perf_counter() - started) * 1000
        except Exception as exc:
            duration_ms = (time.perf_counter() - started) * 1000
            logger.exception("Cleaning failed for {}: {}", url, exc)
            if self.metrics is not None:
                self.metrics.record_error(hostname, str(exc), duration_ms)
            return CleaningResult(
                html=html,
                report=CleaningReport(original_size=len(html), cleaned_size=len(html), errors=[str(exc)]),
                success=False,
                error=str(exc),
            )

        logger.debug(
            "Cleaned {}: {} -> {} elements ({}%), {} removed, {} preserved, rules={}",
            hostname or url,
            report.original_element_count,
            report.final_element_count,
            report.reduction_percent,
            report.removed_count,
            report.preserved_count,
            report.applied_rules,
        )
        if self.metrics is not None:
            self.metrics.record_cleaning(
                hostname,
                reduction_percent=report.reduction_percent,
                duration_ms=report.duration_ms,
                rule_reductions={name: report.rule_reduction_percent(name) for name in report.applied_rules},
                removed_elements={name: report.removed_by_rule.get(name, 0) for name in report.applied_rules},
            )
        return CleaningResult(html=cleaned, report=report)

    def _apply_rule_set(self, run: _CleaningRun, rule_set: RuleSet, hostname: str) -> None:
        for selector in rule_set.removal_selectors:
            self._remove_matches(run, selector, rule_set.name, rule_set.name)

        profile = None
        if RuleCapability.HOSTNAME_PROFILES in rule_set.capabilities:
            profile = rule_set.profile_for(hostname)
        if profile is not None:
            for selector in profile.selectors:
                self._remove_matches(run, selector, rule_set.name, f"{rule_set.name}-specific")

        for action in rule_set.cleaning_actions:
            self._apply_cleaning_action(run, rule_set.name, action)

        patterns = rule_set.text_patterns + (profile.text_patterns if profile is not None else ())
        if patterns:
            self._scrub_text_patterns(run, rule_set.name, patterns)

    def _remove_matches(self, run: _CleaningRun, selector: str, rule: str, label: str) -> None:
        for element in run.soup.select(selector):
            if not run.attached(element):
                continue
            decision = decide_removal(run.facts(element))
            if not decision.remove:
                if decision.reason not in ("already_preserved", "contains_preserved"):
                    run.preserved.append(element)
                run.report.record(selector, label, "preserved", decision.reason)
                continue
            run.remove(element, rule)
            run.report.record(selector, label, "removed")

    def _apply_cleaning_action(self, run: _CleaningRun, rule: str, action: CleaningAction) -> None:
        selector = action.selector
        for element in run.soup.select(selector):
            if not run.attached(element):
                continue
            if action.action == "remove_attribute":
                if element.has_attr(action.attribute):
                    del element[action.attribute]
            elif action.action == "remove_class":
                classes = element.get("class") or []
                if action.class_name in classes:
                    element["class"] = [name for name in classes if name != action.class_name]
            elif action.action in ("remove_if_empty", "remove_if_whitespace_only"):
                if element.get_text().strip() or element.find(MEDIA_TAGS) is not None:
                    continue
                if run.is_protected(element):
                    continue
                run.remove(element, rule)
                outcome = "empty" if action.action == "remove_if_empty" else "whitespace only"
                run.report.record(f"{selector} ({outcome})", rule, "removed")
            else:
                raise ValueError(f"Unknown cleaning action: {action.action}")

    def _scrub_text_patterns(self, run: _CleaningRun, rule: str, patterns: tuple) -> None:
        root = run.soup.body or run.soup
        for node in list(root.find_all(string=True)):
            # Comments, doctypes and script bodies are NavigableString subclasses.
            if type(node) is not NavigableString or not run.attached(node):
                continue
            text = str(node)
            content = text.strip()
            if not content:
                continue
            # Anchors match the trimmed text; surrounding whitespace is restored on replace.
            leading = text[: len(text) - len(text.lstrip())]
            trailing = text[len(text.rstrip()) :]
            modified = False
            for pattern in patterns:
                if pattern.search(content):
                    content = pattern.sub("", content, count=1)
                    modified = True
            if not modified:
                continue

            parent = node.parent
            if content.strip():
                node.replace_with(leading + content + trailing)
                continue
            node.extract()
            target = self._highest_empty_ancestor(run, parent)
            if target is not None:
                run.remove(target, rule)
                run.report.record("text pattern cleanup", rule, "removed")

    def _highest_empty_ancestor(self, run: _CleaningRun, start: Tag | None) -> Tag | None:
        target = None
        current = start
        while current is not None and current.name not in ROOT_TAGS:
            if current.get_text().strip() or current.find(MEDIA_TAGS) is not None:
                break
            if run.is_protected(current):
                break
            target = current
            current = current.parent
        return target

    def _content_cleanup(self, run: _CleaningRun) -> None:
        for element in run.soup.find_all(["p", "div", "span"]):
            if not run.attached(element):
                continue
            # str.strip() also drops non-breaking spaces.
            if element.get_text().strip():
                continue
            if element.find(MEDIA_TAGS) is not None or run.is_protected(element):
                continue
            run.remove(element, CLEANUP_RULE)
            run.report.record(f"empty {element.name}", CLEANUP_RULE, "removed")

        for element in run.soup.find_all(SCRIPT_TAGS):
            if not run.attached(element):
                continue
            run.remove(element, CLEANUP_RULE)
            run.report.record(f"{element.name} tag", CLEANUP_RULE, "removed")

        for element in run.soup.find_all(True):
            for attribute in TRACKING_ATTRIBUTES:
                if element.has_attr(attribute):
                    del element[attribute]

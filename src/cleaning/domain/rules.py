import re
from dataclasses import dataclass
from enum import Flag, auto
from typing import Callable, Literal, Pattern
from urllib.parse import urlparse

ActionKind = Literal["remove_attribute", "remove_if_empty", "remove_if_whitespace_only", "remove_class"]


class RuleCapability(Flag):
    NONE = 0
    HOSTNAME_PROFILES = auto()


@dataclass(frozen=True)
class CleaningAction:
    selector: str
    action: ActionKind
    attribute: str | None = None
    class_name: str | None = None

    def __post_init__(self) -> None:
        if self.action == "remove_attribute" and not self.attribute:
            raise ValueError(f"remove_attribute action on {self.selector!r} needs an attribute")
        if self.action == "remove_class" and not self.class_name:
            raise ValueError(f"remove_class action on {self.selector!r} needs a class_name")


@dataclass(frozen=True)
class HostnameProfile:
    key: str
    selectors: tuple[str, ...]
    text_patterns: tuple[Pattern[str], ...] = ()

    def matches(self, hostname: str) -> bool:
        return self.key in hostname


@dataclass(frozen=True)
class RuleSet:
    name: str
    priority: int
    description: str
    applies_to: Callable[[str], bool]
    removal_selectors: tuple[str, ...] = ()
    cleaning_actions: tuple[CleaningAction, ...] = ()
    text_patterns: tuple[Pattern[str], ...] = ()
    hostname_profiles: tuple[HostnameProfile, ...] = ()
    capabilities: RuleCapability = RuleCapability.NONE

    def __post_init__(self) -> None:
        if self.hostname_profiles and RuleCapability.HOSTNAME_PROFILES not in self.capabilities:
            raise ValueError(f"Rule set {self.name!r} declares hostname profiles without the capability flag")

    @property
    def sort_key(self) -> tuple[int, str]:
        return self.priority, self.name

    def should_apply(self, url: str) -> bool:
        return bool(self.applies_to(url))

    def profile_for(self, hostname: str) -> HostnameProfile | None:
        """Exact key match first, then the first profile whose key occurs in the hostname."""
        if RuleCapability.HOSTNAME_PROFILES not in self.capabilities:
            return None
        hostname = hostname.lower()
        for profile in self.hostname_profiles:
            if profile.key == hostname:
                return profile
        for profile in self.hostname_profiles:
            if profile.matches(hostname):
                return profile
        return None


def hostname_of(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def _patterns(*sources: str, flags: int = re.I) -> tuple[Pattern[str], ...]:
    return tuple(re.compile(source, flags) for source in sources)


BASE_REMOVAL_SELECTORS: tuple[str, ...] = (
    # navigation
    "nav", '[role="navigation"]', ".navigation", ".nav", ".navbar",
    ".menu", ".main-menu", ".site-menu", ".primary-menu",
    # header and footer
    "header", '[role="banner"]', ".header", ".site-header", ".page-header",
    "footer", '[role="contentinfo"]', ".footer", ".site-footer", ".page-footer",
    # sidebars
    "aside", '[role="complementary"]', ".sidebar", ".side-bar", ".aside",
    ".secondary", ".widget", ".widgets", ".widget-area",
    # forms
    ".search", ".search-form", ".search-box", ".searchbox",
    ".newsletter", ".newsletter-signup", ".email-signup", ".subscribe",
    ".login", ".login-form", ".signin", ".sign-in",
    # social
    ".social", ".social-media", ".social-links", ".share", ".sharing",
    ".follow", ".follow-us", ".social-follow",
    # ads
    ".ad", ".ads", ".advertisement", ".banner-ad", ".google-ad", ".adsense",
    ".ad-container", ".ad-wrapper", ".sponsored", ".ad-banner", ".ad-slot",
    ".ad-unit", ".ads-container",
    # comments
    ".comments", ".comment-section", ".comment-list", "#comments", ".disqus",
    ".fb-comments", ".social-comments",
    # related content
    ".related-posts", ".related-articles", ".related-sidebar",
    ".recommended-posts", ".suggestions-sidebar", ".more-stories",
    # popups
    ".popup", ".pop-up", ".overlay", ".modal", ".lightbox",
    ".newsletter-popup", ".email-popup", ".subscribe-popup",
    # cookie and legal notices
    ".cookie", ".cookie-notice", ".cookie-banner", ".gdpr",
    ".privacy-notice", ".legal-notice",
    # breadcrumbs
    ".breadcrumb", ".breadcrumbs", ".breadcrumb-nav",
    # accessibility helpers
    ".skip-link", ".skip-to-content", ".screen-reader-only", ".sr-only",
    # print helpers
    ".print-only", ".no-print",
)

BASE_CLEANING_ACTIONS: tuple[CleaningAction, ...] = (
    CleaningAction("[data-track]", "remove_attribute", attribute="data-track"),
    CleaningAction("[data-analytics]", "remove_attribute", attribute="data-analytics"),
    CleaningAction("[data-gtm]", "remove_attribute", attribute="data-gtm"),
    CleaningAction("p", "remove_if_empty"),
    CleaningAction("div", "remove_if_whitespace_only"),
)

BASE_TEXT_PATTERNS: tuple[Pattern[str], ...] = _patterns(
    r"^Subscribe to our newsletter",
    r"^Sign up for updates",
    r"^Follow us on",
    r"^Share this article",
    r"^Advertisement$",
    r"^Sponsored content",
    r"^This website uses cookies",
    r"^By continuing to use this site",
    r"^All rights reserved",
    r"^Home\s*>\s*",
    r"^\s*>\s*$",
    r"^\s*\|\s*$",
    r"^\s*\.\.\.\s*$",
    r"^\s*Loading\.\.\.\s*$",
)

BASE_RULES = RuleSet(
    name="base-rules",
    priority=1,
    description="Universal boilerplate: navigation, chrome, ads, social and notices",
    applies_to=lambda url: True,
    removal_selectors=BASE_REMOVAL_SELECTORS,
    cleaning_actions=BASE_CLEANING_ACTIONS,
    text_patterns=BASE_TEXT_PATTERNS,
)


ECOMMERCE_KEYWORDS: tuple[str, ...] = (
    "shopify",
    "bigcommerce",
    "woocommerce",
    "magento",
    "shop",
    "store",
    "boutique",
    "clothing",
    "fashion",
    "retail",
)


def looks_like_ecommerce(url: str) -> bool:
    hostname = hostname_of(url)
    lowered = url.lower()
    return any(keyword in hostname or keyword in lowered for keyword in ECOMMERCE_KEYWORDS)


ECOMMERCE_REMOVAL_SELECTORS: tuple[str, ...] = (
    # cart and checkout
    ".cart", ".shopping-cart", ".shopping-bag", ".mini-cart", ".cart-drawer",
    ".cart-popup", ".cart-sidebar", ".checkout", ".checkout-button",
    ".add-to-cart", ".buy-now", ".purchase", ".order-now",
    # accounts
    ".account", ".account-menu", ".user-menu", ".my-account", ".login-popup",
    ".register-popup", ".account-popup", ".user-nav", ".account-nav",
    # popup containers
    "[data-popup-content]", "[data-js-popup-name]", "[data-popup-mobile-left]",
    "[data-popup-desktop-top]", "[data-popup-right]", "[data-popup-center]",
    "[data-popup-confirmation-success]",
    # recommendations
    ".recommended-products", ".related-products", ".upsell", ".cross-sell",
    ".product-recommendations", ".also-bought", ".recently-viewed",
    ".trending-products",
    # review and trust widgets
    ".reviews-widget", ".rating-widget", ".testimonials-widget",
    ".trust-badges", ".security-badges",
    # promotions
    ".promo", ".promotion", ".promotional", ".banner-promo", ".sale-banner",
    ".discount-banner", ".offer-banner", ".newsletter-promo", ".email-capture",
    # size guides
    "[data-popup-size-guide-content]", ".size-guide-popup", ".sizing-popup",
    ".fit-guide", ".size-chart-popup",
    # delivery
    ".shipping-popup", ".delivery-popup", ".return-popup",
    # support widgets
    ".live-chat", ".chat-widget", ".customer-service", ".help-widget",
    ".support-widget",
    # locale pickers
    ".currency-selector", ".language-selector", ".country-selector",
    ".locale-selector",
    # wishlists
    ".wishlist", ".save-for-later", ".favorites", ".bookmark-product",
    # stock alerts
    ".stock-notification", ".inventory-alert", ".low-stock", ".back-in-stock",
    ".notify-when-available",
    # comparison
    ".compare", ".comparison", ".compare-products", ".product-compare",
    # filters
    ".search-sidebar", ".filter-sidebar", ".facets", ".product-filters",
    ".search-filters",
    # platform chrome
    ".shopify-section", ".announcement-bar", "announcement-bar", "ticker-bar",
    ".ticker", ".sliding-text", ".woocommerce-sidebar", ".product-sidebar",
    ".magento-sidebar", ".bigcommerce-sidebar",
)

ECOMMERCE_CLEANING_ACTIONS: tuple[CleaningAction, ...] = (
    CleaningAction("[data-product-id]", "remove_attribute", attribute="data-product-id"),
    CleaningAction("[data-variant-id]", "remove_attribute", attribute="data-variant-id"),
    CleaningAction("[data-shopify]", "remove_attribute", attribute="data-shopify"),
    CleaningAction("[data-cart]", "remove_attribute", attribute="data-cart"),
    CleaningAction(".price", "remove_if_empty"),
    CleaningAction(".sale-price", "remove_if_empty"),
)

ECOMMERCE_TEXT_PATTERNS: tuple[Pattern[str], ...] = _patterns(
    r"^Shopping Bag\s*\(\d+\)$",
    r"^Your cart is empty!$",
    r"^Add to cart$",
    r"^Buy now$",
    r"^Add to wishlist$",
    r"^Sign up$",
    r"^Log in$",
    r"^My Account$",
    r"^Create account$",
    r"^Free shipping",
    r"^Limited time offer",
    r"^Sale ends",
    r"^\d+% off",
    r"^Added to cart$",
    r"^Continue shopping$",
    r"^Proceed to checkout$",
    r"^Thanks for subscribing!$",
    r"^Size guide$",
    r"^Fit guide$",
    r"^Not sure about your size\?$",
    r"^Need help\?$",
    r"^Contact us$",
    r"^Live chat$",
    r"^Customer service$",
)

ECOMMERCE_PROFILES: tuple[HostnameProfile, ...] = (
    HostnameProfile(
        "shopify",
        (".shopify-section", '[id^="shopify-section-"]', "ticker-bar", "announcement-bar"),
    ),
    HostnameProfile("bigcommerce", (".bigcommerce-sidebar", ".bc-product-meta", ".product-options")),
    HostnameProfile("woocommerce", (".woocommerce-info", ".woocommerce-message", ".wc-tabs-wrapper")),
)

ECOMMERCE_RULES = RuleSet(
    name="ecommerce-rules",
    priority=2,
    description="Storefront chrome: carts, accounts, promotions and widgets",
    applies_to=looks_like_ecommerce,
    removal_selectors=ECOMMERCE_REMOVAL_SELECTORS,
    cleaning_actions=ECOMMERCE_CLEANING_ACTIONS,
    text_patterns=ECOMMERCE_TEXT_PATTERNS,
    hostname_profiles=ECOMMERCE_PROFILES,
    capabilities=RuleCapability.HOSTNAME_PROFILES,
)


SITE_PROFILES: tuple[HostnameProfile, ...] = (
    HostnameProfile(
        "wikipedia.org",
        (
            ".infobox", ".navbox", ".mbox-small", ".hatnote", ".dablink",
            ".sidebar", ".vertical-navbox", ".nowrap", "#toc", ".toc",
            ".reflist", ".reference", ".references", ".mbox", ".ambox",
            ".metadata", ".navframe", ".mediaContainer", ".audio-container",
            ".succession-box", ".collapsible", ".mw-collapsible", ".catlinks",
            ".interlanguage-link", ".IPA",
        ),
        _patterns(
            r"^Listen to this article\s*",
            r"^From Wikipedia, the free encyclopedia\s*",
            r"^Page semi-protected\s*",
        ),
    ),
    HostnameProfile(
        "reddit.com",
        (
            ".sidebar", ".promoted", ".premium-banner", ".subreddit-rules",
            ".moderators", ".recently-viewed", ".trending-subreddits",
            ".gold-accent", ".ad-container",
        ),
    ),
    HostnameProfile(
        "medium.com",
        (
            ".sidebar", ".related-articles", ".recommended-articles",
            ".footer-collection", ".post-actions", ".clap-button",
            ".subscribe-prompt", ".member-preview-upgrade",
        ),
    ),
    HostnameProfile(
        "youtube.com",
        (
            ".sidebar", ".related-videos", ".comments-section", ".video-ads",
            ".masthead", ".guide-section", ".subscription-shelf",
        ),
    ),
    HostnameProfile(
        "amazon.com",
        (
            ".nav-main", ".nav-subnav", ".nav-footer", ".recommendations",
            ".frequently-bought-together", ".sponsored-products",
            ".customers-who-viewed", ".product-ads", ".deal-badge",
        ),
    ),
    HostnameProfile(
        "cnn.com",
        (
            ".related-content", ".most-popular", ".trending",
            ".newsletter-signup", ".social-follow", ".video-playlist",
        ),
    ),
    HostnameProfile(
        "bbc.com",
        (
            ".related-topics", ".most-popular", ".features", ".promotions",
            ".newsletter", ".social-links",
        ),
    ),
    HostnameProfile(
        "github.com",
        (
            ".header", ".footer", ".sidebar", ".explore-pjax-container",
            ".marketplace-banner", ".profile-rollup-wrapper",
        ),
    ),
    HostnameProfile(
        "stackoverflow.com",
        (
            ".left-sidebar", ".right-sidebar", ".top-bar", ".post-menu",
            ".vote-accepted-off", ".js-post-menu", ".tagged-interesting",
            ".module", ".sidebar-widget",
        ),
    ),
    HostnameProfile(
        "linkedin.com",
        (
            ".global-nav", ".sidebar", ".right-rail", ".premium-upsell",
            ".ad-banner", ".sponsored-update",
        ),
    ),
    HostnameProfile(
        "twitter.com",
        (
            ".sidebar", ".trends", ".who-to-follow", ".promoted-tweet",
            ".timeline-footer", ".stream-footer",
        ),
    ),
)


def _has_site_profile(url: str) -> bool:
    return SITE_SPECIFIC_RULES.profile_for(hostname_of(url)) is not None


SITE_SPECIFIC_RULES = RuleSet(
    name="site-specific-rules",
    priority=3,
    description="Per-hostname selectors for well-known sites",
    applies_to=_has_site_profile,
    hostname_profiles=SITE_PROFILES,
    capabilities=RuleCapability.HOSTNAME_PROFILES,
)


def default_rule_sets() -> tuple[RuleSet, ...]:
    return tuple(sorted((BASE_RULES, ECOMMERCE_RULES, SITE_SPECIFIC_RULES), key=lambda rule: rule.sort_key))


def custom_rule_set(
    name: str,
    priority: int,
    *,
    removal_selectors: tuple[str, ...] = (),
    hostnames: tuple[str, ...] = (),
    description: str = "",
    cleaning_actions: tuple[CleaningAction, ...] = (),
    text_patterns: tuple[str, ...] = (),
) -> RuleSet:
    """Build a rule set that applies everywhere, or only on the given hostname fragments."""
    keys = tuple(key.lower() for key in hostnames)

    def _applies(url: str) -> bool:
        if not keys:
            return True
        hostname = hostname_of(url)
        return any(key in hostname for key in keys)

    return RuleSet(
        name=name,
        priority=priority,
        description=description or name,
        applies_to=_applies,
        removal_selectors=removal_selectors,
        cleaning_actions=cleaning_actions,
        text_patterns=_patterns(*text_patterns),
    )



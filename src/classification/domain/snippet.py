import re

HEAD_SECTION = re.compile(r"<head[^>]*>[\s\S]*?</head>", re.I)
HEAD_PREFIX_CHARS = 2000
FALLBACK_CHARS = 5000


def extract_snippet(html: str) -> str:
    """Head section plus the opening of the document, or a plain prefix when there is no head."""
    html = html or ""
    match = HEAD_SECTION.search(html)
    if match:
        return match.group(0) + html[:HEAD_PREFIX_CHARS]
    return html[:FALLBACK_CHARS]


def build_prompt(url: str, snippet: str) -> str:
    return (
        "Classify this webpage into ONE category:\n\n"
        "Categories:\n"
        "- article: news articles, blog posts, documentation, tutorials, essays\n"
        "- product: e-commerce product pages, shopping items, things for sale\n"
        "- social: social media posts, tweets, reddit threads, forum discussions\n"
        "- video: video content pages, streaming platforms\n"
        "- other: anything that doesn't fit above categories\n\n"
        f"URL: {url}\n\n"
        f"HTML snippet:\n{snippet}\n\n"
        "Respond with ONLY the category word."
    )

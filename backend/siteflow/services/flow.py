"""Flow synthesis: classify visited pages and build the diagram and summary.

Everything here is pure and deterministic: the same pages, counts and
timestamp always produce the same artifacts, and an empty page list still
produces a well-formed (if sparse) result.
"""

import logging

from siteflow.schemas.common import iso_now
from siteflow.schemas.flow import Category, FlowArtifacts, FlowEdge, FlowMetadata, FlowNode
from siteflow.schemas.page import PageContext, UxCounts

logger = logging.getLogger(__name__)

MAX_EDGES = 120
MAX_NAV_SEEDS = 6

LOGIN_KEYWORDS = ("login", "signin", "sign-in")
CHECKOUT_KEYWORDS = ("cart", "checkout", "payment", "order", "basket")
ACCOUNT_KEYWORDS = ("account", "profile", "settings", "dashboard")
SEARCH_KEYWORDS = ("search",)

# Diagram groups in render order; Public holds pages with none of the tags below
DIAGRAM_GROUPS = (
    ("Auth", Category.LOGIN),
    ("Checkout", Category.CHECKOUT),
    ("Account", Category.ACCOUNT),
)
_GROUPED = frozenset(category for _, category in DIAGRAM_GROUPS)

REPORT_FILES = (
    ("Flow diagram", "flow.html"),
    ("Mermaid source", "flow.mmd"),
    ("URLs", "urls.json"),
    ("Page context", "pages.json"),
    ("Screenshots", "screenshots/"),
)


def _has_keyword(value: str, keywords: tuple[str, ...]) -> bool:
    value = value.lower()
    return any(keyword in value for keyword in keywords)


def classify(page: PageContext) -> frozenset[Category]:
    """Return every category tag the page matches. Tags are independent."""
    text = f"{page.url} {page.title or ''}"
    tags = set()
    if page.has_password_input or page.login_detected or _has_keyword(page.url, LOGIN_KEYWORDS):
        tags.add(Category.LOGIN)
    if _has_keyword(text, CHECKOUT_KEYWORDS):
        tags.add(Category.CHECKOUT)
    if _has_keyword(text, ACCOUNT_KEYWORDS):
        tags.add(Category.ACCOUNT)
    if page.has_search_input or _has_keyword(text, SEARCH_KEYWORDS):
        tags.add(Category.SEARCH)
    return frozenset(tags)


def nav_seeds(pages: list[PageContext], limit: int = MAX_NAV_SEEDS) -> list[str]:
    """Distinct non-empty nav item texts in encounter order, capped at ``limit``."""
    seen: dict[str, None] = {}
    for page in pages:
        for item in page.nav_items:
            if item.text and item.text not in seen:
                seen[item.text] = None
    return list(seen)[:limit]


def build_nodes(pages: list[PageContext]) -> list[FlowNode]:
    nodes = []
    for index, page in enumerate(pages):
        label = (page.title or "").strip() or page.url
        nodes.append(FlowNode(id=f"p{index + 1}", url=page.url, label=label.replace('"', "'")))
    return nodes


def build_edges(pages: list[PageContext], nodes: list[FlowNode], limit: int = MAX_EDGES) -> list[FlowEdge]:
    """Directed edges for links that exactly match another page's URL.

    Duplicates collapse to the first occurrence and only the first ``limit``
    distinct edges are kept. When two pages share a URL the last one's id
    is used, for both the edge source and the edge target.
    """
    url_to_id = {node.url: node.id for node in nodes}

    edges: dict[FlowEdge, None] = {}
    for page in pages:
        source = url_to_id[page.url]
        for link in page.links:
            target = url_to_id.get(link)
            if target:
                edges.setdefault(FlowEdge(source=source, target=target), None)
        if len(edges) >= limit:
            break

    return list(edges)[:limit]


def build_diagram(nodes: list[FlowNode], tags: list[frozenset[Category]], edges: list[FlowEdge]) -> str:
    lines = ["flowchart LR", "  subgraph Public"]
    for node, node_tags in zip(nodes, tags):
        if not node_tags & _GROUPED:
            lines.append(f'    {node.id}["{node.label}"]')
    lines.append("  end")

    for group, category in DIAGRAM_GROUPS:
        members = [node for node, node_tags in zip(nodes, tags) if category in node_tags]
        if not members:
            continue
        lines.append(f"  subgraph {group}")
        for node in members:
            lines.append(f'    {node.id}["{node.label}"]')
        lines.append("  end")

    for edge in edges:
        lines.append(f"  {edge}")

    return "\n".join(lines)


def build_summary(
    target_url: str,
    generated_at: str,
    pages: list[PageContext],
    tags: list[frozenset[Category]],
    ux_counts: UxCounts,
) -> str:
    def count(category: Category) -> int:
        return sum(1 for page_tags in tags if category in page_tags)

    seeds = nav_seeds(pages)
    login, checkout, account, search = (
        count(Category.LOGIN),
        count(Category.CHECKOUT),
        count(Category.ACCOUNT),
        count(Category.SEARCH),
    )

    lines = [
        "# Process Flow Summary",
        "",
        f"Target: {target_url or 'Unknown'}",
        f"Generated: {generated_at}",
        "",
        "## Main Flows",
        f"- Public navigation: Home -> {' -> '.join(seeds) if seeds else 'Primary pages'}",
    ]
    if login:
        lines.append("- Login flow: Home -> Login -> Post-login landing")
    if checkout:
        lines.append("- Checkout flow: Browse -> Product -> Cart -> Checkout")
    if search:
        lines.append("- Search flow: Search -> Results -> Detail")
    if account:
        lines.append("- Account flow: Account -> Settings")

    lines += [
        "",
        "## Site Map",
        f"- Pages discovered: {len(pages)}",
        f"- Login-related pages: {login}",
        f"- Checkout-related pages: {checkout}",
        f"- Account-related pages: {account}",
        "",
        "## UX Checks",
        f"- Missing title pages: {ux_counts.missing_title_pages}",
        f"- Multiple H1 pages: {ux_counts.multiple_h1_pages}",
        f"- Images missing alt: {ux_counts.images_missing_alt}",
        f"- Buttons missing label: {ux_counts.buttons_missing_label}",
        f"- Broken links (sample): {ux_counts.broken_links}",
        "",
        "## Report Files",
    ]
    lines += [f"- {name}: {path}" for name, path in REPORT_FILES]

    return "\n".join(lines)


def synthesize(
    target_url: str,
    pages: list[PageContext],
    ux_counts: UxCounts | dict | None = None,
    generated_at: str | None = None,
) -> FlowArtifacts:
    """Build the flow diagram source, narrative summary and metadata."""
    if not isinstance(ux_counts, UxCounts):
        ux_counts = UxCounts.model_validate(ux_counts or {})
    generated_at = generated_at or iso_now()

    tags = [classify(page) for page in pages]
    nodes = build_nodes(pages)
    edges = build_edges(pages, nodes)

    logger.debug(f"Synthesized flow for {target_url}: {len(nodes)} nodes, {len(edges)} edges")
    return FlowArtifacts(
        summary=build_summary(target_url, generated_at, pages, tags, ux_counts),
        diagram_source=build_diagram(nodes, tags, edges),
        metadata=FlowMetadata(
            target_url=target_url,
            generated_at=generated_at,
            node_count=len(nodes),
            edge_count=len(edges),
        ),
        nodes=tuple(nodes),
        edges=tuple(edges),
    )

"""Unit tests for flow synthesis (classification, graph, diagram and summary)."""

import pytest

from siteflow.schemas.flow import Category
from siteflow.schemas.page import NavItem, PageContext, UxCounts
from siteflow.services.flow import (
    MAX_EDGES,
    build_edges,
    build_nodes,
    classify,
    nav_seeds,
    synthesize,
)

GENERATED_AT = "2024-05-01T12:00:00.000Z"


def _diagram_groups(diagram: str) -> dict[str, list[str]]:
    """Map each subgraph name to the node ids rendered inside it."""
    groups: dict[str, list[str]] = {}
    current = None
    for line in diagram.splitlines():
        stripped = line.strip()
        if stripped.startswith("subgraph "):
            current = stripped[len("subgraph "):]
            groups[current] = []
        elif stripped == "end":
            current = None
        elif current and "[" in stripped:
            groups[current].append(stripped.split("[", 1)[0])
    return groups


# ---------------------------------------------------------------------------
# classify
# ---------------------------------------------------------------------------


class TestClassify:

    def test_plain_page_has_no_tags(self, make_page):
        """A page with no signals is untagged (Public)."""
        assert classify(make_page("https://x.com/about", title="About us")) == frozenset()

    def test_password_input_is_login_regardless_of_url(self, make_page):
        """hasPasswordInput alone makes a page Login-tagged."""
        page = make_page("https://x.com/welcome", title="Welcome", has_password_input=True)
        assert Category.LOGIN in classify(page)

    def test_login_detected_flag(self, make_page):
        page = make_page("https://x.com/portal", login_detected=True)
        assert Category.LOGIN in classify(page)

    @pytest.mark.parametrize("path", ["/login", "/SignIn", "/account/sign-in"])
    def test_login_url_keywords(self, make_page, path):
        """Login keywords match case-insensitively in the URL."""
        assert Category.LOGIN in classify(make_page(f"https://x.com{path}"))

    def test_login_keyword_in_title_only_is_not_login(self, make_page):
        """Login matches the URL, not the title."""
        page = make_page("https://x.com/help", title="How to login")
        assert Category.LOGIN not in classify(page)

    def test_checkout_matches_title(self, make_page):
        """Checkout keywords match url + title."""
        page = make_page("https://x.com/step-2", title="Your Basket")
        assert classify(page) == frozenset({Category.CHECKOUT})

    def test_account_matches_url(self, make_page):
        page = make_page("https://x.com/user/PROFILE")
        assert classify(page) == frozenset({Category.ACCOUNT})

    def test_search_from_input_flag(self, make_page):
        page = make_page("https://x.com/", has_search_input=True)
        assert classify(page) == frozenset({Category.SEARCH})

    def test_tags_are_independent(self, make_page):
        """A page can carry several tags at once."""
        page = make_page(
            "https://x.com/login?next=/checkout",
            title="Account settings",
            has_search_input=True,
        )
        assert classify(page) == frozenset(
            {Category.LOGIN, Category.CHECKOUT, Category.ACCOUNT, Category.SEARCH}
        )


# ---------------------------------------------------------------------------
# nav seeds
# ---------------------------------------------------------------------------


class TestNavSeeds:

    def test_encounter_order_dedup_and_cap(self, make_page):
        pages = [
            make_page("https://x.com/", nav_items=[
                {"text": "Home"}, {"text": ""}, {"text": "Shop"}, {"text": "Blog"},
            ]),
            make_page("https://x.com/a", nav_items=[
                {"text": "Shop"}, {"text": "About"}, {"text": "Help"}, {"text": "Jobs"}, {"text": "Press"},
            ]),
        ]
        assert nav_seeds(pages) == ["Home", "Shop", "Blog", "About", "Help", "Jobs"]

    def test_whitespace_only_text_is_dropped(self):
        page = PageContext(url="https://x.com/", nav_items=[NavItem(text="   ")])
        assert nav_seeds([page]) == []


# ---------------------------------------------------------------------------
# nodes and edges
# ---------------------------------------------------------------------------


class TestNodesAndEdges:

    def test_node_ids_positional_and_unique(self, make_page):
        pages = [make_page(f"https://x.com/{i}") for i in range(5)]
        nodes = build_nodes(pages)
        assert [n.id for n in nodes] == ["p1", "p2", "p3", "p4", "p5"]
        assert len({n.id for n in nodes}) == len(pages)

    def test_label_uses_trimmed_title_or_url(self, make_page):
        nodes = build_nodes([
            make_page("https://x.com/a", title="  About  "),
            make_page("https://x.com/b", title="   "),
            make_page("https://x.com/c"),
        ])
        assert [n.label for n in nodes] == ["About", "https://x.com/b", "https://x.com/c"]

    def test_double_quotes_replaced_in_label(self, make_page):
        [node] = build_nodes([make_page("https://x.com/", title='The "best" shop')])
        assert '"' not in node.label
        assert node.label == "The 'best' shop"

    def test_duplicate_links_produce_one_edge(self, make_page):
        pages = [
            make_page("https://x.com/", links=["https://x.com/b", "https://x.com/b"]),
            make_page("https://x.com/b", links=["https://x.com/"]),
        ]
        edges = build_edges(pages, build_nodes(pages))
        assert [str(e) for e in edges] == ["p1 --> p2", "p2 --> p1"]

    def test_shared_url_resolves_to_last_node(self, make_page):
        """Two pages at one URL keep their own nodes; edges use the later id."""
        pages = [
            make_page("https://x.com/", links=["https://x.com/b"]),
            make_page("https://x.com/b", links=["https://x.com/"]),
            make_page("https://x.com/b", links=["https://x.com/"]),
        ]
        nodes = build_nodes(pages)
        edges = build_edges(pages, nodes)

        assert [n.id for n in nodes] == ["p1", "p2", "p3"]
        assert [str(e) for e in edges] == ["p1 --> p3", "p3 --> p1"]

    def test_links_match_exactly(self, make_page):
        """No normalization: a trailing slash difference is a different URL."""
        pages = [
            make_page("https://x.com/", links=["https://x.com/b/", "https://elsewhere.com/"]),
            make_page("https://x.com/b"),
        ]
        assert build_edges(pages, build_nodes(pages)) == []

    def test_edges_reference_existing_nodes(self, make_page):
        pages = [
            make_page(f"https://x.com/{i}", links=[f"https://x.com/{j}" for j in range(6)])
            for i in range(4)
        ]
        nodes = build_nodes(pages)
        ids = {n.id for n in nodes}
        for edge in build_edges(pages, nodes):
            assert edge.source in ids
            assert edge.target in ids

    def test_edge_cap(self, make_page):
        """Edge list length is min(120, distinct edges)."""
        urls = [f"https://x.com/{i}" for i in range(15)]
        pages = [make_page(url, links=urls) for url in urls]  # 225 distinct edges
        edges = build_edges(pages, build_nodes(pages))
        assert len(edges) == MAX_EDGES
        assert str(edges[0]) == "p1 --> p1"

    def test_edge_count_below_cap(self, make_page):
        urls = [f"https://x.com/{i}" for i in range(5)]
        pages = [make_page(url, links=urls) for url in urls]
        assert len(build_edges(pages, build_nodes(pages))) == 25


# ---------------------------------------------------------------------------
# synthesize
# ---------------------------------------------------------------------------


class TestSynthesize:

    def test_home_and_login_scenario(self, make_page):
        pages = [
            make_page("https://x/", title="Home", links=["https://x/login"]),
            make_page("https://x/login", title="Login", has_password_input=True),
        ]
        result = synthesize("https://x/", pages, generated_at=GENERATED_AT)

        assert [(n.id, n.url) for n in result.nodes] == [("p1", "https://x/"), ("p2", "https://x/login")]
        assert [str(e) for e in result.edges] == ["p1 --> p2"]

        groups = _diagram_groups(result.diagram_source)
        assert groups["Public"] == ["p1"]
        assert groups["Auth"] == ["p2"]
        assert "Checkout" not in groups
        assert "Account" not in groups

        assert result.diagram_source.splitlines()[0] == "flowchart LR"
        assert result.diagram_source.splitlines()[-1] == "  p1 --> p2"
        assert result.metadata.node_count == 2
        assert result.metadata.edge_count == 1

    def test_empty_pages(self):
        result = synthesize("https://x.com/", [], generated_at=GENERATED_AT)
        assert result.metadata.node_count == 0
        assert result.metadata.edge_count == 0
        assert "Pages discovered: 0" in result.summary
        assert _diagram_groups(result.diagram_source) == {"Public": []}

    def test_multi_tag_page_rendered_in_each_group(self, make_page):
        """A Login + Checkout page appears in both Auth and Checkout, not in Public."""
        pages = [make_page("https://x.com/checkout/login", has_password_input=True)]
        groups = _diagram_groups(synthesize("https://x.com/", pages).diagram_source)
        assert groups == {"Public": [], "Auth": ["p1"], "Checkout": ["p1"]}

    def test_search_only_page_stays_public(self, make_page):
        pages = [make_page("https://x.com/search")]
        groups = _diagram_groups(synthesize("https://x.com/", pages).diagram_source)
        assert groups == {"Public": ["p1"]}

    def test_group_order(self, make_page):
        pages = [
            make_page("https://x.com/account"),
            make_page("https://x.com/cart"),
            make_page("https://x.com/login"),
            make_page("https://x.com/"),
        ]
        diagram = synthesize("https://x.com/", pages).diagram_source
        order = [line.strip() for line in diagram.splitlines() if line.strip().startswith("subgraph")]
        assert order == ["subgraph Public", "subgraph Auth", "subgraph Checkout", "subgraph Account"]

    def test_node_count_matches_pages(self, make_page):
        pages = [make_page("https://x.com/same") for _ in range(3)]
        result = synthesize("https://x.com/", pages)
        assert result.metadata.node_count == 3
        assert len({n.id for n in result.nodes}) == 3

    def test_deterministic(self, make_page):
        pages = [
            make_page("https://x.com/", title="Home", links=["https://x.com/cart"]),
            make_page("https://x.com/cart", title="Cart"),
        ]
        first = synthesize("https://x.com/", pages, {"brokenLinks": 2}, GENERATED_AT)
        second = synthesize("https://x.com/", pages, {"brokenLinks": 2}, GENERATED_AT)
        assert first == second


class TestSummary:

    def test_section_order(self, make_page):
        summary = synthesize("https://x.com/", [make_page("https://x.com/")], generated_at=GENERATED_AT).summary
        positions = [summary.index(s) for s in ("## Main Flows", "## Site Map", "## UX Checks", "## Report Files")]
        assert positions == sorted(positions)
        assert summary.startswith("# Process Flow Summary\n\nTarget: https://x.com/\nGenerated: " + GENERATED_AT)

    def test_public_navigation_from_nav_seeds(self, make_page):
        pages = [make_page("https://x.com/", nav_items=[{"text": "Shop"}, {"text": "Blog"}])]
        summary = synthesize("https://x.com/", pages).summary
        assert "- Public navigation: Home -> Shop -> Blog" in summary

    def test_public_navigation_without_seeds(self):
        summary = synthesize("https://x.com/", []).summary
        assert "- Public navigation: Home -> Primary pages" in summary

    def test_flow_lines_only_for_present_categories(self, make_page):
        pages = [make_page("https://x.com/login"), make_page("https://x.com/search")]
        summary = synthesize("https://x.com/", pages).summary
        assert "- Login flow: Home -> Login -> Post-login landing" in summary
        assert "- Search flow: Search -> Results -> Detail" in summary
        assert "Checkout flow" not in summary
        assert "Account flow" not in summary

    def test_site_map_counts_recomputed_from_pages(self, make_page):
        pages = [
            make_page("https://x.com/login/cart"),
            make_page("https://x.com/cart"),
            make_page("https://x.com/settings"),
        ]
        summary = synthesize("https://x.com/", pages).summary
        assert "- Pages discovered: 3" in summary
        assert "- Login-related pages: 1" in summary
        assert "- Checkout-related pages: 2" in summary
        assert "- Account-related pages: 1" in summary

    def test_ux_counts_default_to_zero(self):
        summary = synthesize("https://x.com/", [], {"imagesMissingAlt": 4, "brokenLinks": "n/a"}).summary
        assert "- Missing title pages: 0" in summary
        assert "- Images missing alt: 4" in summary
        assert "- Broken links (sample): 0" in summary

    def test_ux_counts_model_accepted(self):
        counts = UxCounts(multiple_h1_pages=2, buttons_missing_label=5)
        summary = synthesize("https://x.com/", [], counts).summary
        assert "- Multiple H1 pages: 2" in summary
        assert "- Buttons missing label: 5" in summary

    def test_report_files_listed(self):
        summary = synthesize("https://x.com/", []).summary
        assert summary.endswith(
            "## Report Files\n"
            "- Flow diagram: flow.html\n"
            "- Mermaid source: flow.mmd\n"
            "- URLs: urls.json\n"
            "- Page context: pages.json\n"
            "- Screenshots: screenshots/"
        )

    def test_missing_target(self):
        assert "Target: Unknown" in synthesize("", []).summary


class TestPageContextTolerance:

    def test_malformed_optional_fields_read_as_absent(self):
        page = PageContext.model_validate({
            "url": "https://x.com/",
            "title": 42,
            "navItems": "nope",
            "links": ["https://x.com/a", None, 3],
            "hasPasswordInput": "yes",
            "h1Count": "2",
        })
        assert page.title is None
        assert page.nav_items == []
        assert page.links == ["https://x.com/a"]
        assert page.has_password_input is False
        assert page.h1_count == 0
        assert classify(page) == frozenset()

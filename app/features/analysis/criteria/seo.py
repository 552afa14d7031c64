from urllib.parse import urlparse

from app.features.analysis.criteria.base import Criterion, outcome, when
from app.features.analysis.schemas.analysis import Category, CheckStatus, Impact

OPEN_GRAPH_PROPERTIES = ("og:title", "og:description", "og:image", "og:url")


async def check_title_tag(page):
    title = (await page.title() or "").strip()
    length = len(title)

    return outcome(
        CheckStatus.passed if 30 <= length <= 60 else CheckStatus.fail,
        f'Title: "{title}" ({length} characters)' if title else "Page has no title",
        when(length == 0, "Add a descriptive title tag")
        + when(0 < length < 30, "Make title more descriptive (30-60 characters)")
        + when(length > 60, "Shorten title to under 60 characters"),
    )


async def check_meta_description(page):
    description = await page.evaluate(
        "const m = document.querySelector('meta[name=\"description\"]'); return m ? m.getAttribute('content') : null;"
    )
    length = len((description or "").strip())

    return outcome(
        CheckStatus.passed if 120 <= length <= 160 else CheckStatus.fail,
        f"Meta description: {length} characters" if length else "No meta description found",
        when(length == 0, "Add a meta description")
        + when(0 < length < 120, "Make meta description more descriptive (120-160 characters)")
        + when(length > 160, "Shorten meta description to under 160 characters"),
    )


async def check_canonical_url(page):
    canonical = await page.evaluate(
        "const l = document.querySelector('link[rel=\"canonical\"]'); return l ? l.href : null;"
    )

    return outcome(
        CheckStatus.passed if canonical else CheckStatus.warning,
        f"Canonical URL: {canonical}" if canonical else "No canonical URL specified",
        when(not canonical, "Add canonical URL to prevent duplicate content issues"),
    )


async def check_open_graph(page):
    present = await page.evaluate("""
        return arguments[0].filter(p => {
          const m = document.querySelector('meta[property="' + p + '"]');
          return m && (m.getAttribute('content') || '').trim();
        });
    """, list(OPEN_GRAPH_PROPERTIES))
    missing = [p for p in OPEN_GRAPH_PROPERTIES if p not in present]

    return outcome(
        CheckStatus.passed if len(present) >= 3 else CheckStatus.warning,
        f"{len(present)}/{len(OPEN_GRAPH_PROPERTIES)} Open Graph tags present",
        when(len(present) < 3, "Add Open Graph tags for better social media sharing")
        + [f"Add {p} tag" for p in missing],
    )


async def check_single_h1(page):
    headings = await page.evaluate(
        "return Array.from(document.querySelectorAll('h1')).map(h => (h.textContent || '').trim());"
    )
    count = len(headings)

    if count == 1:
        status = CheckStatus.passed
    elif count == 0:
        status = CheckStatus.fail
    else:
        status = CheckStatus.warning
    return outcome(
        status,
        f"{count} H1 headings found",
        when(count == 0, "Add a single H1 heading describing the page")
        + when(count > 1, "Use only one H1 heading per page"),
    )


async def check_robots_meta(page):
    content = await page.evaluate(
        "const m = document.querySelector('meta[name=\"robots\"]'); return m ? m.getAttribute('content') : null;"
    )
    directives = {d.strip().lower() for d in (content or "").split(",") if d.strip()}
    blocked = bool(directives & {"noindex", "none"})

    if content is None:
        return outcome(CheckStatus.info, "No robots meta tag, page is indexable by default")
    return outcome(
        CheckStatus.warning if blocked else CheckStatus.passed,
        f"Robots meta: {content}",
        when(blocked, "Remove noindex if this page should appear in search results"),
    )


async def check_structured_data(page):
    result = await page.evaluate("""
        return {
          jsonLd: document.querySelectorAll('script[type="application/ld+json"]').length,
          microdata: document.querySelectorAll('[itemscope]').length
        };
    """)
    json_ld, microdata = result["jsonLd"], result["microdata"]
    found = json_ld + microdata > 0

    return outcome(
        CheckStatus.passed if found else CheckStatus.info,
        f"{json_ld} JSON-LD blocks, {microdata} microdata items",
        when(not found, "Add structured data (JSON-LD) to enable rich search results"),
    )


async def check_twitter_card(page):
    card = await page.evaluate(
        "const m = document.querySelector('meta[name=\"twitter:card\"]'); return m ? m.getAttribute('content') : null;"
    )

    return outcome(
        CheckStatus.passed if card else CheckStatus.info,
        f"Twitter card: {card}" if card else "No Twitter card metadata",
        when(not card, "Add twitter:card meta tags for better link previews"),
    )


async def check_internal_links(page):
    result = await page.evaluate("""
        const links = Array.from(document.querySelectorAll('a[href]'));
        let internal = 0;
        links.forEach(a => {
          try { if (new URL(a.href, location.href).hostname === location.hostname) internal++; } catch (e) {}
        });
        return {total: links.length, internal: internal};
    """)
    total, internal = result["total"], result["internal"]

    return outcome(
        CheckStatus.passed if internal > 0 else CheckStatus.warning,
        f"{internal} internal links out of {total}",
        when(internal == 0, "Link to related pages on your site to help crawlers discover content"),
    )


async def check_url_structure(page):
    url = await page.current_url()
    parsed = urlparse(url)
    problems = []
    if len(url) > 100:
        problems.append("URL is longer than 100 characters")
    if "_" in parsed.path:
        problems.append("URL path uses underscores")
    if parsed.path != parsed.path.lower():
        problems.append("URL path contains uppercase characters")
    if parsed.query.count("&") >= 2:
        problems.append("URL has many query parameters")

    return outcome(
        CheckStatus.passed if not problems else CheckStatus.warning,
        "; ".join(problems) if problems else f"URL is clean: {url}",
        when(bool(problems), "Use short, lowercase, hyphen-separated URLs"),
    )


async def check_favicon(page):
    icon = await page.evaluate(
        "const l = document.querySelector('link[rel~=\"icon\"], link[rel=\"apple-touch-icon\"]'); return l ? l.href : null;"
    )

    return outcome(
        CheckStatus.passed if icon else CheckStatus.warning,
        f"Favicon: {icon}" if icon else "No favicon link found",
        when(not icon, "Add a favicon link to the document head"),
    )


async def check_content_length(page):
    words = await page.evaluate(
        "return (document.body ? document.body.innerText : '').split(/\\s+/).filter(Boolean).length;"
    )

    if words >= 300:
        status = CheckStatus.passed
    elif words >= 100:
        status = CheckStatus.warning
    else:
        status = CheckStatus.fail
    return outcome(
        status,
        f"{words} words of visible text",
        when(words < 300, "Add more meaningful text content (300+ words)"),
    )


def _criterion(id, name, description, impact, check):
    return Criterion(id=id, name=name, description=description, category=Category.seo, impact=impact, check=check)


SEO_CRITERIA = (
    _criterion("seo-001", "Title Tag", "Page has unique and descriptive title",
               Impact.critical, check_title_tag),
    _criterion("seo-002", "Meta Description", "Page has compelling meta description",
               Impact.major, check_meta_description),
    _criterion("seo-003", "Canonical URL", "Page has canonical URL specified",
               Impact.major, check_canonical_url),
    _criterion("seo-004", "Open Graph Tags", "Open Graph meta tags for social sharing",
               Impact.minor, check_open_graph),
    _criterion("seo-005", "Single H1", "Page has exactly one H1 heading",
               Impact.major, check_single_h1),
    _criterion("seo-006", "Robots Meta", "Page is not blocked from indexing",
               Impact.major, check_robots_meta),
    _criterion("seo-007", "Structured Data", "Page provides structured data",
               Impact.minor, check_structured_data),
    _criterion("seo-008", "Twitter Card", "Page has Twitter card metadata",
               Impact.minor, check_twitter_card),
    _criterion("seo-009", "Internal Links", "Page links to other pages on the site",
               Impact.minor, check_internal_links),
    _criterion("seo-010", "URL Structure", "URL is short and readable",
               Impact.minor, check_url_structure),
    _criterion("seo-011", "Favicon", "Page declares a favicon",
               Impact.minor, check_favicon),
    _criterion("seo-012", "Content Length", "Page has sufficient text content",
               Impact.major, check_content_length),
)

import re
import time

from app.features.analysis.criteria.base import Criterion, fetch_headers, headers_unavailable, outcome, when
from app.features.analysis.schemas.analysis import Category, CheckStatus, Impact

KB = 1024
MB = 1024 * 1024

MODERN_IMAGE_FORMAT = re.compile(r"\.(webp|avif)(\?.*)?$", re.IGNORECASE)
CACHEABLE_RESOURCE = re.compile(r"\.(css|js|png|jpe?g|gif|svg|webp|avif|woff2?)(\?.*)?$", re.IGNORECASE)
CDN_MARKERS = ("cdn", "cloudfront", "cloudflare", "akamai", "fastly", "jsdelivr", "unpkg")

NAVIGATION_TIMING_SCRIPT = """
const nav = performance.getEntriesByType('navigation')[0];
if (!nav) return null;
return {
  responseStart: Math.round(nav.responseStart),
  domContentLoaded: Math.round(nav.domContentLoadedEventEnd),
  transferSize: nav.transferSize || 0
};
"""

RESOURCES_SCRIPT = """
return performance.getEntriesByType('resource').map(r => ({
  name: r.name,
  initiatorType: r.initiatorType,
  transferSize: r.transferSize || 0,
  encodedBodySize: r.encodedBodySize || 0
}));
"""


def _rate(value, good, poor):
    """pass below ``good``, warning below ``poor``, fail otherwise."""
    if value < good:
        return CheckStatus.passed
    if value < poor:
        return CheckStatus.warning
    return CheckStatus.fail


def _kb(size):
    return f"{round(size / KB)}KB"


async def check_page_load_time(page, navigation_start):
    load_time = round((time.monotonic() - navigation_start) * 1000)

    return outcome(
        _rate(load_time, 3000, 5000),
        f"Page loaded in {load_time}ms",
        when(
            load_time >= 3000,
            "Optimize images and compress assets",
            "Minimize HTTP requests",
            "Use CDN for static assets",
            "Enable browser caching",
        ),
    )


async def check_image_optimization(page):
    images = await page.evaluate("""
        return Array.from(document.images).map(img => ({
          src: img.currentSrc || img.src,
          naturalWidth: img.naturalWidth,
          naturalHeight: img.naturalHeight,
          displayWidth: img.offsetWidth,
          displayHeight: img.offsetHeight
        }));
    """)
    oversized = sum(
        1 for img in images
        if img["displayWidth"] > 0 and img["displayHeight"] > 0
        and (img["naturalWidth"] > img["displayWidth"] * 2 or img["naturalHeight"] > img["displayHeight"] * 2)
    )
    modern = sum(1 for img in images if MODERN_IMAGE_FORMAT.search(img["src"] or ""))

    return outcome(
        CheckStatus.passed if oversized == 0 else CheckStatus.warning,
        f"{len(images)} images found. {oversized} oversized, {modern} use modern formats",
        when(oversized > 0, "Resize images to appropriate dimensions")
        + when(modern < len(images) * 0.5, "Use modern image formats (WebP, AVIF)"),
    )


async def check_css_optimization(page):
    result = await page.evaluate("""
        return {
          stylesheets: document.querySelectorAll('link[rel="stylesheet"]').length,
          inlineSize: Array.from(document.querySelectorAll('style'))
            .reduce((sum, s) => sum + (s.textContent || '').length, 0)
        };
    """)
    stylesheets, inline_size = result["stylesheets"], result["inlineSize"]

    return outcome(
        CheckStatus.passed if stylesheets < 5 and inline_size < 10000 else CheckStatus.warning,
        f"{stylesheets} external stylesheets, {inline_size} bytes of inline CSS",
        when(stylesheets >= 5, "Combine CSS files to reduce HTTP requests")
        + when(inline_size >= 10000, "Move large inline styles to external files"),
    )


async def check_http_requests(page):
    requests = await page.evaluate("return performance.getEntriesByType('resource').length;")

    return outcome(
        _rate(requests, 50, 100),
        f"{requests} HTTP requests",
        when(requests >= 50, "Combine CSS/JS files", "Use CSS sprites for images", "Minimize third-party scripts"),
    )


async def check_compression(page):
    headers, reason = await fetch_headers(page)
    if headers is None:
        return headers_unavailable(reason)

    encoding = headers.get("content-encoding", "")
    compressed = any(token in encoding for token in ("gzip", "br", "zstd", "deflate"))

    return outcome(
        CheckStatus.passed if compressed else CheckStatus.warning,
        f"Content encoding: {encoding or 'None'}",
        when(not compressed, "Enable gzip or brotli compression on server"),
    )


async def check_browser_caching(page):
    headers, reason = await fetch_headers(page)
    if headers is None:
        return headers_unavailable(reason)

    resources = await page.evaluate("return performance.getEntriesByType('resource').map(r => r.name);")
    cacheable = sum(1 for name in resources if CACHEABLE_RESOURCE.search(name))
    cache_headers = [h for h in ("cache-control", "expires", "etag", "last-modified") if h in headers]

    if cache_headers:
        status = CheckStatus.passed
    elif cacheable > 0:
        status = CheckStatus.warning
    else:
        status = CheckStatus.info
    return outcome(
        status,
        f"{cacheable} cacheable resources found. Caching headers on document: {', '.join(cache_headers) or 'None'}",
        when(not cache_headers, "Set appropriate cache headers for static resources"),
    )


async def check_render_blocking(page):
    result = await page.evaluate("""
        return {
          css: Array.from(document.querySelectorAll('link[rel="stylesheet"]'))
            .filter(link => !link.media || link.media === 'all').length,
          js: document.querySelectorAll('script[src]:not([async]):not([defer]):not([type="module"])').length
        };
    """)
    css, js = result["css"], result["js"]

    return outcome(
        CheckStatus.passed if css + js < 3 else CheckStatus.warning,
        f"{css} blocking CSS, {js} blocking JS",
        when(css > 2, "Consider inlining critical CSS") + when(js > 0, "Add async or defer to JavaScript"),
    )


async def check_cdn_usage(page):
    result = await page.evaluate("""
        const origin = window.location.origin;
        return {
          names: performance.getEntriesByType('resource').map(r => r.name),
          origin: origin
        };
    """)
    names, origin = result["names"], result["origin"]
    external = sum(1 for name in names if not name.startswith(origin))
    cdn = sum(1 for name in names if any(marker in name.lower() for marker in CDN_MARKERS))

    return outcome(
        CheckStatus.passed if cdn > 0 else CheckStatus.info,
        f"{external} external resources, {cdn} from CDN",
        when(cdn == 0, "Consider using CDN for static assets"),
    )


async def check_dom_size(page):
    elements = await page.evaluate("return document.querySelectorAll('*').length;")

    return outcome(
        _rate(elements, 1500, 3000),
        f"{elements} DOM elements",
        when(elements >= 1500, "Reduce DOM size by simplifying markup", "Lazy-render offscreen content"),
    )


async def check_document_size(page):
    size = await page.evaluate("return document.documentElement.outerHTML.length;")

    return outcome(
        _rate(size, 100 * KB, 500 * KB),
        f"Document size: {_kb(size)}",
        when(size >= 100 * KB, "Reduce inline scripts, styles and markup in the HTML document"),
    )


async def check_time_to_first_byte(page):
    timing = await page.evaluate(NAVIGATION_TIMING_SCRIPT)
    if not timing:
        return outcome(CheckStatus.info, "Navigation timing not available")

    ttfb = timing["responseStart"]
    return outcome(
        _rate(ttfb, 800, 1800),
        f"Time to first byte: {ttfb}ms",
        when(ttfb >= 800, "Improve server response time", "Use server-side caching or a CDN"),
    )


async def check_first_contentful_paint(page):
    fcp = await page.evaluate("""
        const entry = performance.getEntriesByType('paint').find(p => p.name === 'first-contentful-paint');
        return entry ? Math.round(entry.startTime) : null;
    """)
    if fcp is None:
        return outcome(CheckStatus.info, "First contentful paint not recorded")

    return outcome(
        _rate(fcp, 1800, 3000),
        f"First contentful paint: {fcp}ms",
        when(fcp >= 1800, "Eliminate render-blocking resources", "Reduce server response time"),
    )


async def check_dom_content_loaded(page):
    timing = await page.evaluate(NAVIGATION_TIMING_SCRIPT)
    if not timing:
        return outcome(CheckStatus.info, "Navigation timing not available")

    dcl = timing["domContentLoaded"]
    return outcome(
        _rate(dcl, 2000, 4000),
        f"DOMContentLoaded after {dcl}ms",
        when(dcl >= 2000, "Defer non-critical JavaScript", "Reduce the amount of synchronous work during parsing"),
    )


async def check_lazy_loading(page):
    result = await page.evaluate("""
        const offscreen = Array.from(document.images)
          .filter(img => img.getBoundingClientRect().top > window.innerHeight);
        return {
          offscreen: offscreen.length,
          lazy: offscreen.filter(img => img.loading === 'lazy').length
        };
    """)
    offscreen, lazy = result["offscreen"], result["lazy"]

    return outcome(
        CheckStatus.passed if lazy >= offscreen else CheckStatus.warning,
        f"{offscreen} offscreen images, {lazy} lazy-loaded",
        when(lazy < offscreen, 'Add loading="lazy" to images below the fold'),
    )


async def check_third_party_scripts(page):
    count = await page.evaluate("""
        return Array.from(document.querySelectorAll('script[src]'))
          .filter(s => { try { return new URL(s.src).hostname !== location.hostname; } catch (e) { return false; } })
          .length;
    """)

    return outcome(
        _rate(count, 10, 20),
        f"{count} third-party scripts",
        when(count >= 10, "Audit and remove unnecessary third-party scripts", "Load third-party scripts asynchronously"),
    )


async def check_total_transfer_size(page):
    resources = await page.evaluate(RESOURCES_SCRIPT)
    timing = await page.evaluate(NAVIGATION_TIMING_SCRIPT) or {}
    total = sum(r["transferSize"] for r in resources) + timing.get("transferSize", 0)

    return outcome(
        _rate(total, 2 * MB, 5 * MB),
        f"Total transfer size: {_kb(total)} across {len(resources) + 1} requests",
        when(total >= 2 * MB, "Compress and resize large assets", "Remove unused CSS and JavaScript"),
    )


async def check_javascript_payload(page):
    resources = await page.evaluate(RESOURCES_SCRIPT)
    scripts = [r for r in resources if r["initiatorType"] == "script"]
    size = sum(r["encodedBodySize"] or r["transferSize"] for r in scripts)

    return outcome(
        _rate(size, 500 * KB, MB),
        f"{len(scripts)} scripts, {_kb(size)} of JavaScript",
        when(size >= 500 * KB, "Split JavaScript bundles and load code on demand", "Remove unused JavaScript"),
    )


async def check_web_fonts(page):
    fonts = await page.evaluate("""
        return performance.getEntriesByType('resource')
          .filter(r => /\\.(woff2?|ttf|otf|eot)(\\?|$)/i.test(r.name)).length;
    """)

    return outcome(
        CheckStatus.passed if fonts <= 4 else CheckStatus.warning,
        f"{fonts} web font files loaded",
        when(fonts > 4, "Limit the number of web font families and weights", "Use font-display: swap"),
    )


def _criterion(id, name, description, impact, check, uses_navigation_timing=False):
    return Criterion(id=id, name=name, description=description, category=Category.performance,
                     impact=impact, check=check, uses_navigation_timing=uses_navigation_timing)


PERFORMANCE_CRITERIA = (
    _criterion("perf-001", "Page Load Time", "Page loads within 3 seconds",
               Impact.critical, check_page_load_time, uses_navigation_timing=True),
    _criterion("perf-002", "Image Optimization", "Images are properly optimized",
               Impact.major, check_image_optimization),
    _criterion("perf-003", "CSS Optimization", "CSS is optimized and minified",
               Impact.minor, check_css_optimization),
    _criterion("perf-004", "HTTP Requests", "Minimize number of HTTP requests",
               Impact.major, check_http_requests),
    _criterion("perf-005", "Gzip Compression", "Text resources are compressed",
               Impact.major, check_compression),
    _criterion("perf-006", "Browser Caching", "Static resources have cache headers",
               Impact.major, check_browser_caching),
    _criterion("perf-007", "Render Blocking Resources", "Minimize render-blocking CSS and JavaScript",
               Impact.major, check_render_blocking),
    _criterion("perf-008", "CDN Usage", "Static assets served from CDN",
               Impact.minor, check_cdn_usage),
    _criterion("perf-009", "DOM Size", "Document has a manageable number of elements",
               Impact.major, check_dom_size),
    _criterion("perf-010", "Document Size", "HTML document is reasonably small",
               Impact.minor, check_document_size),
    _criterion("perf-011", "Time to First Byte", "Server responds quickly",
               Impact.critical, check_time_to_first_byte),
    _criterion("perf-012", "First Contentful Paint", "First content is painted quickly",
               Impact.critical, check_first_contentful_paint),
    _criterion("perf-013", "DOM Content Loaded", "Document is parsed quickly",
               Impact.major, check_dom_content_loaded),
    _criterion("perf-014", "Lazy Loading Images", "Offscreen images are lazy-loaded",
               Impact.minor, check_lazy_loading),
    _criterion("perf-015", "Third-Party Scripts", "Limited number of third-party scripts",
               Impact.major, check_third_party_scripts),
    _criterion("perf-016", "Total Transfer Size", "Total page weight is reasonable",
               Impact.major, check_total_transfer_size),
    _criterion("perf-017", "JavaScript Payload", "JavaScript payload is reasonable",
               Impact.major, check_javascript_payload),
    _criterion("perf-018", "Web Font Usage", "Web fonts are used sparingly",
               Impact.minor, check_web_fonts),
)

import re
from urllib.parse import urlparse

from app.features.analysis.criteria.base import Criterion, fetch_headers, headers_unavailable, outcome, when
from app.features.analysis.schemas.analysis import Category, CheckStatus, Impact

SECURITY_HEADERS = (
    "x-frame-options",
    "x-content-type-options",
    "strict-transport-security",
    "x-xss-protection",
)

SAFE_REFERRER_POLICIES = {
    "no-referrer",
    "same-origin",
    "strict-origin",
    "strict-origin-when-cross-origin",
    "origin",
    "origin-when-cross-origin",
}

VERSION_PATTERN = re.compile(r"\d+(\.\d+)+")

MIXED_CONTENT_SCRIPT = """
return Array.from(document.querySelectorAll('img[src], script[src], link[href], iframe[src], audio[src], video[src], source[src]'))
  .map(el => el.src || el.href)
  .filter(src => src && src.indexOf('http://') === 0);
"""


async def check_https(page):
    url = await page.current_url()
    secure = urlparse(url).scheme == "https"

    return outcome(
        CheckStatus.passed if secure else CheckStatus.fail,
        "Site uses HTTPS" if secure else "Site does not use HTTPS",
        when(not secure, "Implement SSL/TLS certificate", "Redirect HTTP traffic to HTTPS"),
    )


async def check_security_headers(page):
    headers, reason = await fetch_headers(page)
    if headers is None:
        return headers_unavailable(reason)

    present = [h for h in SECURITY_HEADERS if h in headers]
    missing = [h for h in SECURITY_HEADERS if h not in headers]

    return outcome(
        CheckStatus.passed if len(present) >= 3 else CheckStatus.warning,
        f"{len(present)}/{len(SECURITY_HEADERS)} security headers present",
        [f"Add {h} header" for h in missing],
    )


async def check_mixed_content(page):
    url = await page.current_url()
    if urlparse(url).scheme != "https":
        return outcome(CheckStatus.info, "Page is not served over HTTPS, mixed content does not apply")

    insecure = await page.evaluate(MIXED_CONTENT_SCRIPT)
    return outcome(
        CheckStatus.passed if not insecure else CheckStatus.fail,
        f"{len(insecure)} insecure resources found",
        when(bool(insecure), "Update all resources to use HTTPS", "Remove or replace insecure content"),
    )


async def check_content_security_policy(page):
    headers, reason = await fetch_headers(page)
    if headers is None:
        return headers_unavailable(reason)

    policy = headers.get("content-security-policy")
    if policy is None:
        policy = await page.evaluate(
            "const m = document.querySelector('meta[http-equiv=\"Content-Security-Policy\" i]');"
            " return m ? m.getAttribute('content') : null;"
        )
    unsafe = bool(policy) and "'unsafe-inline'" in policy and "script-src" in policy

    return outcome(
        CheckStatus.passed if policy and not unsafe else CheckStatus.warning,
        "Content Security Policy defined" if policy else "No Content Security Policy",
        when(not policy, "Define a Content-Security-Policy header to restrict resource origins")
        + when(unsafe, "Avoid 'unsafe-inline' in script-src"),
    )


async def check_cookie_security(page):
    cookies = await page.cookies()
    if not cookies:
        return outcome(CheckStatus.info, "No cookies set")

    insecure = [c["name"] for c in cookies if not c.get("secure")]
    no_http_only = [c["name"] for c in cookies if not c.get("httpOnly")]
    no_same_site = [c["name"] for c in cookies if not c.get("sameSite")]

    return outcome(
        CheckStatus.passed if not insecure and not no_same_site else CheckStatus.warning,
        f"{len(cookies)} cookies: {len(insecure)} without Secure, "
        f"{len(no_http_only)} without HttpOnly, {len(no_same_site)} without SameSite",
        when(bool(insecure), "Set the Secure flag on all cookies")
        + when(bool(no_http_only), "Set HttpOnly on cookies not needed by scripts")
        + when(bool(no_same_site), "Set a SameSite attribute on cookies"),
    )


async def check_external_link_safety(page):
    result = await page.evaluate("""
        const links = Array.from(document.querySelectorAll('a[target="_blank"][href]'))
          .filter(a => { try { return new URL(a.href).hostname !== location.hostname; } catch (e) { return false; } });
        const unsafe = links.filter(a => !/noopener|noreferrer/i.test(a.rel || ''));
        return {total: links.length, unsafe: unsafe.length};
    """)
    total, unsafe = result["total"], result["unsafe"]

    if total == 0:
        return outcome(CheckStatus.info, "No external links open in a new tab")
    return outcome(
        CheckStatus.passed if unsafe == 0 else CheckStatus.warning,
        f"{total - unsafe}/{total} external new-tab links use rel=noopener",
        when(unsafe > 0, 'Add rel="noopener noreferrer" to links with target="_blank"'),
    )


async def check_form_action_security(page):
    actions = await page.evaluate(
        "return Array.from(document.forms).map(f => f.getAttribute('action') ? f.action : location.href);"
    )
    if not actions:
        return outcome(CheckStatus.info, "No forms found")

    insecure = [a for a in actions if a.startswith("http://")]
    return outcome(
        CheckStatus.passed if not insecure else CheckStatus.fail,
        f"{len(insecure)} of {len(actions)} forms submit over plain HTTP",
        when(bool(insecure), "Submit forms to HTTPS endpoints only"),
    )


async def check_referrer_policy(page):
    headers, reason = await fetch_headers(page)
    if headers is None:
        return headers_unavailable(reason)

    policy = headers.get("referrer-policy")
    if policy is None:
        policy = await page.evaluate(
            "const m = document.querySelector('meta[name=\"referrer\"]'); return m ? m.getAttribute('content') : null;"
        )
    # browsers apply the last listed token
    tokens = [p.strip().lower() for p in (policy or "").split(",") if p.strip()]
    effective = tokens[-1] if tokens else None
    safe = effective in SAFE_REFERRER_POLICIES

    return outcome(
        CheckStatus.passed if safe else CheckStatus.warning,
        f"Referrer policy: {effective}" if effective else "No referrer policy set",
        when(not safe, "Set Referrer-Policy to strict-origin-when-cross-origin or stricter"),
    )


async def check_server_disclosure(page):
    headers, reason = await fetch_headers(page)
    if headers is None:
        return headers_unavailable(reason)

    leaks = []
    server = headers.get("server", "")
    if VERSION_PATTERN.search(server):
        leaks.append(f"server: {server}")
    for name in ("x-powered-by", "x-aspnet-version", "x-aspnetmvc-version"):
        if name in headers:
            leaks.append(f"{name}: {headers[name]}")

    return outcome(
        CheckStatus.passed if not leaks else CheckStatus.warning,
        "; ".join(leaks) if leaks else "No server version information disclosed",
        when(bool(leaks), "Remove version details from Server and X-Powered-By headers"),
    )


async def check_subresource_integrity(page):
    result = await page.evaluate("""
        const external = Array.from(document.querySelectorAll('script[src], link[rel="stylesheet"][href]'))
          .filter(el => { try { return new URL(el.src || el.href).hostname !== location.hostname; } catch (e) { return false; } });
        return {total: external.length, withIntegrity: external.filter(el => el.integrity).length};
    """)
    total, with_integrity = result["total"], result["withIntegrity"]

    if total == 0:
        return outcome(CheckStatus.info, "No third-party scripts or stylesheets")
    return outcome(
        CheckStatus.passed if with_integrity == total else CheckStatus.warning,
        f"{with_integrity}/{total} third-party resources use integrity attributes",
        when(with_integrity < total, "Add integrity attributes to third-party scripts and stylesheets"),
    )


def _criterion(id, name, description, impact, check):
    return Criterion(id=id, name=name, description=description, category=Category.security, impact=impact, check=check)


SECURITY_CRITERIA = (
    _criterion("sec-001", "HTTPS Usage", "Site uses HTTPS protocol",
               Impact.critical, check_https),
    _criterion("sec-002", "Security Headers", "Essential security headers are present",
               Impact.major, check_security_headers),
    _criterion("sec-003", "Mixed Content", "No mixed content (HTTP resources on HTTPS page)",
               Impact.major, check_mixed_content),
    _criterion("sec-004", "Content Security Policy", "Page defines a Content Security Policy",
               Impact.major, check_content_security_policy),
    _criterion("sec-005", "Cookie Security", "Cookies use Secure and SameSite attributes",
               Impact.major, check_cookie_security),
    _criterion("sec-006", "External Link Safety", "New-tab links use rel=noopener",
               Impact.minor, check_external_link_safety),
    _criterion("sec-007", "Form Action Security", "Forms submit over HTTPS",
               Impact.critical, check_form_action_security),
    _criterion("sec-008", "Referrer Policy", "Referrer policy limits leaked URLs",
               Impact.minor, check_referrer_policy),
    _criterion("sec-009", "Server Information Disclosure", "Response headers hide server versions",
               Impact.minor, check_server_disclosure),
    _criterion("sec-010", "Subresource Integrity", "Third-party resources are integrity-checked",
               Impact.minor, check_subresource_integrity),
)

"""
Referrer classification and UTM extraction.

The referrer hostname is matched against ordered host rules (first match
wins, ``referral`` otherwise). UTM parameters found on the referrer URL are
copied verbatim and, when ``utm_medium``/``utm_source`` name a paid or
email channel, override the host heuristic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlsplit

import tldextract

from errors import ClassificationError
from schemas.models.click import ReferrerInfo, ReferrerSource, UtmParams

# Bundled public-suffix snapshot only: no disk cache, no network fetch
_tld_extract = tldextract.TLDExtract(cache_dir=None, suffix_list_urls=())

UTM_FIELDS = ("source", "medium", "campaign", "term", "content")


@dataclass(frozen=True)
class HostRule:
    source: ReferrerSource
    # registrable-domain labels, e.g. "google" matches google.com and google.co.uk
    labels: frozenset = frozenset()
    # exact registrable domains, e.g. "t.co"
    domains: frozenset = frozenset()
    # leftmost subdomain label prefixes, e.g. "mail" matches mail.yahoo.com
    subdomain_prefixes: tuple = ()

    def matches(self, parts: tldextract.tldextract.ExtractResult) -> bool:
        registered = f"{parts.domain}.{parts.suffix}" if parts.suffix else parts.domain
        if parts.domain in self.labels or registered in self.domains:
            return True
        leftmost = parts.subdomain.split(".")[0] if parts.subdomain else ""
        return any(leftmost.startswith(prefix) for prefix in self.subdomain_prefixes)


# First match wins; mail hosts of search providers stay "search"
HOST_RULES: tuple[HostRule, ...] = (
    HostRule(
        "search",
        labels=frozenset(
            {"google", "bing", "yahoo", "duckduckgo", "baidu", "yandex", "ecosia"}
        ),
    ),
    HostRule(
        "social",
        labels=frozenset(
            {
                "facebook",
                "twitter",
                "instagram",
                "linkedin",
                "youtube",
                "tiktok",
                "reddit",
                "pinterest",
            }
        ),
        domains=frozenset({"t.co", "x.com", "fb.com", "lnkd.in", "youtu.be"}),
    ),
    HostRule(
        "email",
        labels=frozenset({"gmail", "outlook", "hotmail", "live", "protonmail", "zoho"}),
        subdomain_prefixes=("mail", "webmail"),
    ),
)

EMAIL_MEDIUMS = frozenset({"email", "e-mail", "newsletter"})
PAID_MEDIUMS = frozenset({"cpc", "ppc"})


def extract_utm(query: str) -> Optional[UtmParams]:
    """Copy ``utm_*`` query parameters verbatim; ``None`` when there are none."""
    params = parse_qs(query, keep_blank_values=False)
    values = {
        name: params[f"utm_{name}"][0] for name in UTM_FIELDS if f"utm_{name}" in params
    }
    if not values:
        return None
    return UtmParams(**values)


def source_from_utm(utm: Optional[UtmParams]) -> Optional[ReferrerSource]:
    if utm is None:
        return None
    medium = (utm.medium or "").lower()
    if medium in EMAIL_MEDIUMS:
        return "email"
    if medium in PAID_MEDIUMS or "ads" in (utm.source or "").lower():
        return "ads"
    return None


def source_from_host(host: str) -> ReferrerSource:
    try:
        parts = _tld_extract(host)
    except Exception as e:
        raise ClassificationError(
            "referrer host could not be split", field="referrer", details=str(e)
        ) from e
    for rule in HOST_RULES:
        if rule.matches(parts):
            return rule.source
    return "referral"


def classify_referrer(referrer: Optional[str]) -> ReferrerInfo:
    """Classify a ``Referer`` header value.

    - missing/blank → ``direct``
    - not an absolute URL with a host → ``unknown`` (url kept, no domain)
    - otherwise host rules, then UTM override

    Raises:
        ClassificationError: the host could not be split into domain parts.
    """
    if referrer is None or not referrer.strip():
        return ReferrerInfo(source="direct")

    url = referrer.strip()
    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError:
        return ReferrerInfo(url=url, source="unknown")

    if not parts.scheme or not host:
        return ReferrerInfo(url=url, source="unknown")

    utm = extract_utm(parts.query)
    source = source_from_utm(utm) or source_from_host(host)
    return ReferrerInfo(url=url, domain=host, source=source, utm=utm)

from __future__ import annotations

"""Product image extraction.

Images show up in many places on a rendered product page: lazy-loading
attributes, inline script JSON (often with escaped slashes), markdown image
syntax, the provider's link list and page metadata. Each pass below reads one
surface and returns its raw candidates; `extract_images` validates, rewrites
and merges them into one ordered, de-duplicated list.

Over-inclusion is preferred to missing a real product photo.
"""
import json
import re
from typing import Any, Iterable, List, Mapping

from parsel import Selector

from .logger import get_logger

LOGGER = get_logger(__name__)

MIN_URL_LENGTH = 20

CDN_URL_RE = re.compile(r"(?:https?:)?//[a-z0-9.-]*alicdn\.com/[^\s\"'<>\\)]+", re.I)
MARKDOWN_IMAGE_RE = re.compile(r"!\[[^\]]*\]\(([^)\s]+)")
JSON_IMAGE_RES = [
    re.compile(r"\"imageUrl\"\s*:\s*\"([^\"]+)\"", re.I),
    re.compile(r"\"image\"\s*:\s*\"([^\"]+)\"", re.I),
    re.compile(r"\"imagePathList\"\s*:\s*\[([^\]]+)\]", re.I),
    re.compile(r"\"images\"\s*:\s*\[([^\]]+)\]", re.I),
    re.compile(r"imageUrl['\"]\s*:\s*['\"]([^'\"]+)['\"]", re.I),
]
_URL_IN_LITERAL_RE = re.compile(r"(?:https?:)?//[^\s\"',\\]+", re.I)
_TRAILING_JUNK_RE = re.compile(r"[,;}\]\"]+$")
_IMAGE_EXT_RE = re.compile(r"\.(jpg|jpeg|png|webp)(\?|$|_|\.)", re.I)

IMG_ATTRIBUTES = ["src", "data-src", "data-lazy-src", "data-magnifier-src", "data-zoom-src", "data-zoom-image"]

EXCLUDE_PATTERNS = [
    re.compile(p, re.I)
    for p in [
        r"avatar", r"icon", r"logo(?!.*product)", r"sprite", r"placeholder",
        r"loading", r"blank", r"transparent", r"pixel", r"spacer",
        r"flag", r"badge", r"button", r"banner(?!.*product)",
        r"bg[-_]", r"background",
        r"assets/img", r"static/images",
        r"//s\.alicdn\.com", r"//g\.alicdn\.com", r"//gw\.alicdn\.com",
        r"laz-img-cdn",
        r"facebook", r"twitter", r"google", r"pinterest",
        r"_16x16", r"_20x20", r"_24x24", r"_32x32", r"_40x40",
        r"_48x48", r"_50x50", r"_60x60", r"_64x64",
    ]
]

_RESOLUTION_REWRITES = [
    (re.compile(r"_\d+x\d+(\.(?:jpg|jpeg|png|webp))", re.I), r"\1"),
    (re.compile(r"_Q\d+", re.I), ""),
    (re.compile(r"\.(jpg|jpeg|png|webp)_[^\s\"'<>]*", re.I), r".\1"),
    (re.compile(r"\.(jpg|jpeg|png)\.webp", re.I), r".\1"),
    (re.compile(r"_\d+x\d+", re.I), ""),
    (re.compile(r"\.(jpg|jpeg|png|webp)\.(?:jpg|jpeg|png|webp)", re.I), r".\1"),
]


def unescape_slashes(text: str) -> str:
    """Undo the escaping found in inline <script> JSON blobs."""
    return (
        re.sub(r"\\u002f", "/", re.sub(r"\\u003a", ":", text, flags=re.I), flags=re.I)
        .replace("\\/", "/")
    )


def normalize_cdn_url(url: str) -> str:
    if not url:
        return url
    out = unescape_slashes(url.strip())
    if out.startswith("//"):
        out = "https:" + out
    if out.startswith("http://"):
        out = "https://" + out[len("http://"):]
    return out


def upgrade_to_max_resolution(url: str) -> str:
    """Strip resize/quality/format suffixes so the native asset is requested."""
    # every rewrite only removes text, so this reaches a fixed point
    current = url
    while True:
        upgraded = current
        for rx, repl in _RESOLUTION_REWRITES:
            upgraded = rx.sub(repl, upgraded)
        if upgraded == current:
            return current
        current = upgraded


def _looks_like_image(url: str) -> bool:
    return bool(_IMAGE_EXT_RE.search(url)) or "/kf/" in url or "/imgextra/" in url


def is_valid_product_image(url: str) -> bool:
    if not url or not isinstance(url, str):
        return False
    if len(url) < MIN_URL_LENGTH:
        return False
    if not _looks_like_image(url):
        return False
    return not any(rx.search(url) for rx in EXCLUDE_PATTERNS)


def _cdn_urls(text: str) -> List[str]:
    return [_TRAILING_JUNK_RE.sub("", m.group(0)) for m in CDN_URL_RE.finditer(text)]


def attribute_candidates(html: str) -> List[str]:
    """<img> src and lazy-loading attributes pointing at the vendor CDN."""
    if not html:
        return []
    sel = Selector(text=html)
    out: List[str] = []
    for attr in IMG_ATTRIBUTES:
        for value in sel.xpath(f"//img/@{attr}").getall():
            if "alicdn.com" in value:
                out.append(value.strip())
    return out


def cdn_regex_candidates(text: str) -> List[str]:
    """Bare CDN URLs anywhere in markup or markdown (image-like paths only)."""
    return [u for u in _cdn_urls(text) if _looks_like_image(u)]


def escaped_script_candidates(text: str) -> List[str]:
    """CDN URLs hidden behind \\u002F / \\/ escaping in inline JSON."""
    if "\\" not in text:
        return []
    return cdn_regex_candidates(unescape_slashes(text))


def json_literal_candidates(text: str) -> List[str]:
    out: List[str] = []
    for rx in JSON_IMAGE_RES:
        for m in rx.finditer(text):
            for raw in _URL_IN_LITERAL_RE.findall(unescape_slashes(m.group(1))):
                if "alicdn.com" in raw:
                    out.append(raw)
    return out


def markdown_candidates(markdown: str) -> List[str]:
    return [m.group(1) for m in MARKDOWN_IMAGE_RE.finditer(markdown or "") if "alicdn.com" in m.group(1)]


def link_candidates(links: Iterable[str]) -> List[str]:
    return [link for link in links if isinstance(link, str) and "alicdn.com" in link]


def metadata_candidates(metadata: Mapping[str, Any]) -> List[str]:
    out: List[str] = []
    og_image = metadata.get("ogImage")
    if isinstance(og_image, str) and og_image:
        out.append(og_image)
    try:
        dumped = json.dumps(metadata, default=str)
    except (TypeError, ValueError):
        return out
    out.extend(_cdn_urls(unescape_slashes(dumped)))
    return out


def extract_images(
    html: str,
    markdown: str,
    links: Iterable[str],
    metadata: Mapping[str, Any],
) -> List[str]:
    """Collect every qualifying product image at native resolution, once each."""
    content = f"{html or ''} {markdown or ''}"
    passes = [
        ("cdn", cdn_regex_candidates(content)),
        ("attributes", attribute_candidates(html)),
        ("escaped", escaped_script_candidates(content)),
        ("links", link_candidates(links)),
        ("metadata", metadata_candidates(metadata)),
        ("json", json_literal_candidates(content)),
        ("markdown", markdown_candidates(markdown)),
    ]

    pool: dict = {}
    for name, candidates in passes:
        kept = 0
        for raw in candidates:
            url = normalize_cdn_url(raw)
            if not is_valid_product_image(url):
                continue
            url = upgrade_to_max_resolution(url)
            if url not in pool:
                pool[url] = name
                kept += 1
        if kept:
            LOGGER.debug("Image pass %s added %d candidates", name, kept)
    return list(pool)

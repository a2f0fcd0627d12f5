"""
Editorial checks for a built article.

* front-matter fields are present and well formed
* every local image reference resolves to an existing file
* the markdown source and the rendered HTML carry the same metadata,
  the same images and the same headings
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from bs4 import BeautifulSoup

from .article import REQUIRED_FIELDS, SLUG_RE, parse_date, parse_front_matter
from .exceptions import ContentError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

IMAGE_RE = re.compile(r'!\[[^\]]*\]\(\s*<?([^)\s>]+)>?(?:\s+"[^"]*")?\s*\)')
HEADING_RE = re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$")
FENCE_RE = re.compile(r"^\s*(```|~~~)")


@dataclass(frozen=True)
class Issue:
    path: str
    message: str

    def __str__(self):
        return f"{self.path}: {self.message}"


def _is_remote(ref: str) -> bool:
    return ref.startswith(("http://", "https://", "//", "data:"))


def _markdown_lines(body: str) -> List[str]:
    """Body lines outside fenced code blocks."""
    out, fenced = [], False
    for line in body.splitlines():
        if FENCE_RE.match(line):
            fenced = not fenced
            continue
        if not fenced:
            out.append(line)
    return out


def markdown_images(body: str) -> List[str]:
    return [m.group(1) for line in _markdown_lines(body) for m in IMAGE_RE.finditer(line)]


def markdown_headings(body: str) -> List[str]:
    out = []
    for line in _markdown_lines(body):
        m = HEADING_RE.match(line)
        if m:
            out.append(re.sub(r"[`*_]", "", m.group(2)))
    return out


def html_metadata(soup: BeautifulSoup) -> Dict[str, str]:
    meta = {}
    if soup.title is not None and soup.title.string is not None:
        meta["title"] = soup.title.string.strip()
    for tag in soup.find_all("meta"):
        name = tag.get("name")
        if name:
            meta[name.lower()] = (tag.get("content") or "").strip()
    return meta


def check_metadata(meta: Dict[str, str], path: str) -> List[Issue]:
    issues = []
    for key in REQUIRED_FIELDS:
        if not meta.get(key, "").strip():
            issues.append(Issue(path, f"missing metadata field '{key}'"))
    if meta.get("date", "").strip():
        try:
            parse_date(meta["date"])
        except ContentError as e:
            issues.append(Issue(path, str(e)))
    slug = meta.get("slug", "").strip()
    if slug and not SLUG_RE.match(slug):
        issues.append(Issue(path, f"slug {slug!r} must be lower-case words joined by hyphens"))
    if "tags" in meta and meta["tags"].strip() and not [t for t in meta["tags"].split(",") if t.strip()]:
        issues.append(Issue(path, "tags field has no tags"))
    return issues


def check_images(refs: List[str], base: Path, path: str) -> List[Issue]:
    issues = []
    for ref in refs:
        if _is_remote(ref):
            continue
        if not (base / ref).is_file():
            issues.append(Issue(path, f"image not found: {ref}"))
    return issues


def lint_markdown(path: PathLike) -> List[Issue]:
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    meta, body = parse_front_matter(text)
    issues = []
    if not meta:
        issues.append(Issue(str(path), "no front matter"))
    else:
        issues.extend(check_metadata(meta, str(path)))
    issues.extend(check_images(markdown_images(body), path.parent, str(path)))
    return issues


def lint_html(path: PathLike) -> List[Issue]:
    path = Path(path)
    soup = BeautifulSoup(path.read_text(encoding="utf-8"), "html.parser")
    issues = check_metadata(html_metadata(soup), str(path))
    refs = [img.get("src", "") for img in soup.find_all("img")]
    missing_src = [r for r in refs if not r]
    if missing_src:
        issues.append(Issue(str(path), f"{len(missing_src)} <img> tag(s) without src"))
    issues.extend(check_images([r for r in refs if r], path.parent, str(path)))
    return issues


def check_consistency(md_path: PathLike, html_path: PathLike) -> List[Issue]:
    """Compare metadata, image references and headings of the two renditions."""
    md_path, html_path = Path(md_path), Path(html_path)
    meta, body = parse_front_matter(md_path.read_text(encoding="utf-8"))
    soup = BeautifulSoup(html_path.read_text(encoding="utf-8"), "html.parser")
    hmeta = html_metadata(soup)
    where = f"{md_path.name} <-> {html_path.name}"
    issues = []

    for key in sorted(set(meta) | set(hmeta)):
        if key not in meta and key not in REQUIRED_FIELDS:
            continue
        a, b = meta.get(key, "").strip(), hmeta.get(key, "").strip()
        if a != b:
            issues.append(Issue(where, f"metadata '{key}' differs: {a!r} vs {b!r}"))

    md_images = sorted(markdown_images(body))
    html_images = sorted(img.get("src", "") for img in soup.find_all("img"))
    if md_images != html_images:
        only_md = sorted(set(md_images) - set(html_images))
        only_html = sorted(set(html_images) - set(md_images))
        issues.append(Issue(where, f"image references differ: only in markdown {only_md}, only in HTML {only_html}"))

    md_headings = markdown_headings(body)
    html_headings = [h.get_text(" ", strip=True) for h in soup.find_all(re.compile(r"^h[1-6]$"))]
    if md_headings != html_headings:
        issues.append(Issue(where, f"headings differ: {md_headings} vs {html_headings}"))
    return issues


def lint_article(md_path: PathLike, html_path: Optional[PathLike] = None) -> List[Issue]:
    """All checks; the HTML defaults to the sibling ``.html`` file when present."""
    md_path = Path(md_path)
    if html_path is None:
        sibling = md_path.with_suffix(".html")
        html_path = sibling if sibling.exists() else None
    issues = lint_markdown(md_path)
    if html_path is not None:
        issues.extend(lint_html(html_path))
        issues.extend(check_consistency(md_path, html_path))
    for issue in issues:
        logger.warning(str(issue))
    return issues

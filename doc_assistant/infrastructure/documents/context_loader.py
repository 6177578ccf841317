"""文档上下文提取。

从磁盘上的 Markdown 文件生成 DocumentContext：
1. 读取原文；读取失败或为空时 error=missing。
2. 解析 YAML front matter 中的 title，提取 `#` 标题列表。
3. 转为纯文本、合并空白后按字符上限判断：超出时 error=too_long 且 text 为空。
"""

import re
from pathlib import Path
from typing import List, Optional

import yaml

from doc_assistant.config.settings import settings
from doc_assistant.domain.models import ContextError, DocumentContext, DocumentMeta
from doc_assistant.infrastructure.logging.logger import logger


DOC_CONTEXT_CHAR_LIMIT = 6000

_FRONT_MATTER = re.compile(r"^---\s*\n(.*?)\n---\s*", re.DOTALL)
_HEADING = re.compile(r"^#{1,6}\s+(.+?)\s*#*\s*$", re.MULTILINE)

# 顺序有意义：图片要在链接之前去掉
_MARKDOWN_RULES = (
    (re.compile(r"^---[\s\S]*?---\s*"), ""),
    (re.compile(r"```[\s\S]*?```"), " "),
    (re.compile(r"`([^`]+)`"), r"\1"),
    (re.compile(r"!\[[^\]]*\]\([^)]+\)"), ""),
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),
    (re.compile(r"^#+\s*", re.MULTILINE), ""),
    (re.compile(r"^>\s?", re.MULTILINE), ""),
    (re.compile(r"[*_]{1,3}([^*_]+)[*_]{1,3}"), r"\1"),
    (re.compile(r"<[^>]+>"), " "),
    (re.compile(r"\|"), " "),
)
_WHITESPACE = re.compile(r"\s+")


def markdown_to_plain(markdown: str) -> str:
    text = markdown
    for pattern, replacement in _MARKDOWN_RULES:
        text = pattern.sub(replacement, text)
    return text


def normalise(markdown: str) -> str:
    return _WHITESPACE.sub(" ", markdown_to_plain(markdown)).strip()


def load_document_context(
    path: str | Path,
    slug: Optional[str] = None,
    title: Optional[str] = None,
    headings: Optional[List[str]] = None,
    limit: Optional[int] = None,
) -> DocumentContext:
    """读取 Markdown 文档并生成 DocumentContext。

    Args:
        path: 文档路径。
        slug: 文档标识，默认取相对 docs_root 的路径（去掉扩展名）。
        title: 标题，默认取 front matter 中的 title。
        headings: 标题列表，默认从正文的 `#` 标题提取。
        limit: 字符上限，默认取配置 context_char_limit。
    """

    doc_path = Path(path)
    char_limit = limit or getattr(settings, "context_char_limit", DOC_CONTEXT_CHAR_LIMIT)
    doc_slug = slug or _default_slug(doc_path)

    try:
        raw = doc_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Document source unavailable", extra={"extra": {"slug": doc_slug, "error": str(e)}})
        raw = ""

    meta = DocumentMeta(
        slug=doc_slug,
        title=title if title is not None else _front_matter_title(raw),
        headings=list(headings) if headings is not None else _extract_headings(raw),
    )
    if not raw:
        return DocumentContext(
            text=None,
            original_length=0,
            trimmed_length=0,
            limit=char_limit,
            meta=meta,
            error=ContextError.MISSING,
        )

    normalised = normalise(raw)
    truncated = normalised[:char_limit]
    if len(normalised) > char_limit:
        return DocumentContext(
            text=None,
            original_length=len(normalised),
            trimmed_length=len(truncated),
            limit=char_limit,
            meta=meta,
            error=ContextError.TOO_LONG,
        )
    return DocumentContext(
        text=truncated,
        original_length=len(normalised),
        trimmed_length=len(truncated),
        limit=char_limit,
        meta=meta,
    )


def _default_slug(doc_path: Path) -> str:
    root = Path(settings.docs_root).resolve()
    resolved = doc_path.resolve()
    try:
        relative = resolved.relative_to(root)
    except ValueError:
        relative = Path(resolved.name)
    return relative.with_suffix("").as_posix()


def _front_matter_title(raw: str) -> Optional[str]:
    match = _FRONT_MATTER.match(raw)
    if not match:
        return None
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError:
        return None
    if isinstance(data, dict) and data.get("title"):
        return str(data["title"])
    return None


def _extract_headings(raw: str) -> List[str]:
    # 代码块里的 `#` 注释不算标题
    body = re.sub(r"```[\s\S]*?```", "", _FRONT_MATTER.sub("", raw, count=1))
    return [h.strip() for h in _HEADING.findall(body) if h.strip()]

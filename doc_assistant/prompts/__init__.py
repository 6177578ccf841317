"""系统提示词加载与组装。

按语言(locale) 从 prompts/<locale> 目录读取文档助手的引导语，
并在允许发送上下文时拼接当前文档的元信息与正文。
"""

from functools import lru_cache
from pathlib import Path

from doc_assistant.domain.models import DocumentContext


PROMPTS_DIR = Path(__file__).resolve().parent


@lru_cache(maxsize=None)
def load_system_prompt(locale: str = "en") -> str:
    """加载文档助手的引导语（primer）。"""

    fname = PROMPTS_DIR / locale / "doc_assistant_system.md"
    return fname.read_text(encoding="utf-8").strip()


def build_system_prompt(context: DocumentContext, include_context: bool) -> str:
    """组装系统提示词。

    include_context 为真且文档正文存在时，在引导语后追加：
    slug、可选的标题与标题列表，以及文档正文。
    """

    sections = [load_system_prompt()]

    if include_context and context.text:
        meta_lines = [f"Document slug: {context.meta.slug}"]
        if context.meta.title:
            meta_lines.append(f"Title: {context.meta.title}")
        if context.meta.headings:
            meta_lines.append("Headings: " + " | ".join(context.meta.headings))
        meta_lines.append("Document content:\n" + context.text)
        sections.append("\n".join(meta_lines))

    return "\n\n".join(sections)

import re

# Characters that break YAML frontmatter values or Obsidian links
FRONTMATTER_REPLACEMENTS = {
    ':': ' -',
    '[': '(',
    ']': ')',
    '{': '(',
    '}': ')',
    '#': '',
    '|': '-',
    '>': '-',
    '\\': '/',
    '\n': ' ',
    '\r': ' ',
}


def sanitize_frontmatter(text: str) -> str:
    """Makes a string safe to use as an unquoted YAML frontmatter value."""
    if not text:
        return ''
    for char, replacement in FRONTMATTER_REPLACEMENTS.items():
        text = text.replace(char, replacement)
    return re.sub(r'\s+', ' ', text).strip()


def sanitize_filename(name: str) -> str:
    """Replaces characters that are invalid in file names with '-'."""
    safe_name = re.sub(r'[<>:"/\\|?*]', '-', name)
    return re.sub(r'\s+', ' ', safe_name).strip()

"""
Utility helper functions
"""
import hashlib
import html
import logging
import re
from datetime import datetime
from urllib.parse import quote, unquote


def case_file_stem(case_id: str, max_length: int = 200) -> str:
    """
    Turn a case id into a file or directory name.

    Ids are percent-encoded, so distinct ids never share a name. Names longer
    than max_length are cut and end in a hash of the full id.

    Args:
        case_id: Test case identifier
        max_length: Maximum length of the result

    Returns:
        File name stem
    """
    if not case_id:
        raise ValueError("Case id is empty")
    stem = quote(case_id, safe="")
    # "." and ".." are not usable as names
    if stem.startswith("."):
        stem = "%2E" + stem[1:]
    if len(stem) > max_length:
        digest = hashlib.sha256(case_id.encode("utf-8")).hexdigest()[:16]
        stem = f"{stem[:max_length - len(digest) - 1]}~{digest}"
    return stem


def case_id_from_stem(stem: str) -> str:
    """Reverse case_file_stem for names that were not shortened."""
    return unquote(stem)


def slugify(text: str, max_length: int = 40) -> str:
    """
    Turn free text into a logical element name, e.g. "Log in!" -> "log_in".

    Args:
        text: Source text
        max_length: Maximum length of the result

    Returns:
        Lowercase name made of letters, digits and underscores
    """
    slug = re.sub(r'[^a-z0-9]+', '_', text.lower()).strip('_')
    return slug[:max_length].rstrip('_')


def strip_markup(text: str) -> str:
    """
    Remove HTML tags and entities and collapse whitespace.

    TestLink exports wrap step text in CDATA blocks holding HTML paragraphs.
    """
    if not text:
        return ""
    text = re.sub(r'<br\s*/?>|</p>|</li>', ' ', text, flags=re.IGNORECASE)
    text = re.sub(r'<[^>]+>', '', text)
    text = html.unescape(text)
    return re.sub(r'\s+', ' ', text).strip()


def format_duration(ms: int) -> str:
    """
    Format duration in milliseconds to human-readable string.

    Args:
        ms: Duration in milliseconds

    Returns:
        Formatted duration string
    """
    if ms < 1000:
        return f"{ms}ms"
    elif ms < 60000:
        return f"{ms / 1000:.1f}s"
    else:
        minutes = ms // 60000
        seconds = (ms % 60000) / 1000
        return f"{minutes}m {seconds:.0f}s"


def truncate_text(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """
    Truncate text to a maximum length.

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add when truncated

    Returns:
        Truncated text
    """
    if not text:
        return ""
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix


def timestamp_now() -> str:
    """Get current timestamp as ISO format string."""
    return datetime.now().isoformat(timespec="seconds")


def configure_logging(level: str = "INFO"):
    """Configure root logging for the service."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

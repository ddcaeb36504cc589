"""Static catalog of the tools bundled with DevToolHub."""

from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Tool:
    slug: str
    name: str
    description: str
    icon: str
    category: str
    tags: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        data['tags'] = list(self.tags)
        return data


TOOLS: Tuple[Tool, ...] = (
    Tool('json-formatter', 'JSON Formatter', 'Format, minify and validate JSON documents',
         'Braces', 'Formatting', ('json', 'format', 'validate')),
    Tool('password-generator', 'Password Generator', 'Generate strong random passwords',
         'Key', 'Security', ('password', 'generate', 'security')),
    Tool('timestamp-converter', 'Timestamp Converter', 'Convert UNIX timestamps to readable dates and back',
         'Clock', 'Time', ('timestamp', 'time', 'convert')),
    Tool('regex-tester', 'Regex Tester', 'Test and debug regular expressions',
         'Code', 'Developer', ('regex', 'pattern', 'test')),
    Tool('mock-data-generator', 'Mock Data Generator', 'Generate structured random test data',
         'Database', 'Developer', ('mock', 'data', 'test')),
    Tool('uuid-generator', 'UUID Generator', 'Generate random UUIDs in bulk',
         'Hash', 'Developer', ('uuid', 'generate', 'identifier')),
    Tool('jwt-decoder', 'JWT Decoder', 'Decode JWT tokens and verify HS256 signatures',
         'Lock', 'Security', ('jwt', 'token', 'decode')),
    Tool('encryption-tool', 'Encryption Playground', 'Base64, hashing, AES/3DES and RSA in one place',
         'Shield', 'Security', ('encrypt', 'decrypt', 'base64', 'hash')),
    Tool('cron-generator', 'Cron Expression Tool', 'Build cron expressions and preview upcoming runs',
         'CalendarClock', 'Developer', ('cron', 'schedule', 'job')),
    Tool('url-parser', 'URL Query Editor', 'Parse, edit and rebuild URLs and their query parameters',
         'Link2', 'Network', ('url', 'query', 'params')),
)

_BY_SLUG: Dict[str, Tool] = {tool.slug: tool for tool in TOOLS}


def get_tool_by_slug(slug: str) -> Optional[Tool]:
    return _BY_SLUG.get(slug)


def is_known_slug(slug: str) -> bool:
    return slug in _BY_SLUG


def get_tools_by_category(category: str) -> List[Tool]:
    return [tool for tool in TOOLS if tool.category == category]


def categories() -> List[str]:
    seen: List[str] = []
    for tool in TOOLS:
        if tool.category not in seen:
            seen.append(tool.category)
    return seen


def search_tools(query: str) -> List[Tool]:
    """Case-insensitive match against name, description and tags."""
    needle = query.strip().lower()
    if not needle:
        return list(TOOLS)
    return [
        tool for tool in TOOLS
        if needle in tool.name.lower()
        or needle in tool.description.lower()
        or any(needle in tag.lower() for tag in tool.tags)
    ]

"""
textexchange.py
Plain-text exchange format for translators
One `<context>: <text>` line per string, grouped under bilingual section headers.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from stringextractor import BRIEFING, TRIGGER, RADIO, BRIEFING_FIELDS, ExtractionResult

SECTION_HEADERS = {
    BRIEFING: 'БРИФИНГ: / BRIEFING:',
    TRIGGER: 'ТРИГГЕРЫ: / TRIGGERS:',
    RADIO: 'РАДИОСООБЩЕНИЯ: / RADIO MESSAGES:',
}

# Bilingual headers plus their single-language halves
HEADER_LINES = {}
for _category, _header in SECTION_HEADERS.items():
    HEADER_LINES[_header] = _category
    for _part in _header.split(' / '):
        HEADER_LINES[_part] = _category

BRIEFING_LABELS = [label for _, label in BRIEFING_FIELDS]

KEY_LINE_RE = re.compile(
    r'^(Briefing_[A-Za-z]+|DictKey_[^\s:]+|mission(?:\.\w+|\[[^\]\s]+\])+(?:#\d+)?):[ ]?(.*)$'
)
CONTINUATION_MARK = '\\'


@dataclass
class ImportedText:
    briefings: Dict[str, str] = field(default_factory=dict)
    triggers: List[str] = field(default_factory=list)
    radio: List[str] = field(default_factory=list)
    key_mappings: Dict[str, str] = field(default_factory=dict)


def _needs_mark(line: str) -> bool:
    return (not line.strip() or line.startswith(CONTINUATION_MARK)
            or line.strip() in HEADER_LINES or bool(KEY_LINE_RE.match(line)))


def format_item(context: str, text: str) -> List[str]:
    """Lines for one item: the key line followed by its continuation lines."""
    first, *rest = text.split('\n')
    lines = [f"{context}: {first}"]
    for line in rest:
        lines.append(CONTINUATION_MARK + line if _needs_mark(line) else line)
    return lines


def format_as_text(result: ExtractionResult) -> str:
    """Render an extraction result in the exchange format."""
    lines: List[str] = []
    for category in (BRIEFING, TRIGGER, RADIO):
        if lines:
            lines.append('')
        lines.append(SECTION_HEADERS[category])
        lines.append('')
        items = result.extracted.get(category, [])
        if category == BRIEFING:
            by_label = {item.context: item for item in items}
            items = [by_label[label] for label in BRIEFING_LABELS if label in by_label]
        for item in items:
            lines.extend(format_item(item.context, item.text))
    return '\n'.join(lines) + '\n'


def split_lines(text: str) -> List[str]:
    """
    Split on LF, dropping the CR of CRLF line endings.

    CR is only treated as part of the line ending when every terminated
    line has one; otherwise it belongs to the text and is kept.
    """
    lines = text.split('\n')
    terminated = lines[:-1]
    if terminated and all(line.endswith('\r') for line in terminated):
        lines = [line[:-1] for line in terminated] + lines[-1:]
    return lines


def parse_imported_text(text: str) -> ImportedText:
    """
    Parse exchange text back into keyed translations.

    Key lines start a new entry. Unkeyed lines continue the previous entry;
    blank lines between entries are ignored, while blank lines followed by
    more continuation text stay part of it.
    """
    imported = ImportedText()
    section: Optional[str] = None
    current_key: Optional[str] = None
    current_lines: List[str] = []
    pending_blank = 0

    def commit():
        if current_key is None:
            return
        value = '\n'.join(current_lines)
        imported.key_mappings[current_key] = value
        if current_key in BRIEFING_LABELS:
            imported.briefings[current_key] = value
        elif section == TRIGGER:
            imported.triggers.append(value)
        elif section == RADIO:
            imported.radio.append(value)

    for line in split_lines(text):
        if line.strip() in HEADER_LINES:
            commit()
            current_key = None
            section = HEADER_LINES[line.strip()]
            pending_blank = 0
            continue

        if not line.strip():
            pending_blank += 1
            continue

        match = KEY_LINE_RE.match(line)
        if match:
            commit()
            current_key = match.group(1)
            current_lines = [match.group(2)]
            pending_blank = 0
            continue

        if current_key is None:
            continue
        if line.startswith(CONTINUATION_MARK):
            line = line[1:]
        current_lines.extend([''] * pending_blank)
        pending_blank = 0
        current_lines.append(line)

    commit()
    return imported

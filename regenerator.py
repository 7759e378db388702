"""
regenerator.py
Format-preserving writer for DCS dictionary and mission text
Replaces only the value spans of mapped keys; every other character of the
source text is copied through unchanged.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Union

from luaparser import escape_lua_string, unescape_lua_string
from stringextractor import BRIEFING_FIELDS, LABEL_TO_FIELD

# One pass over the raw text. Comments and strings are consumed whole so that
# braces or `["key"] =` sequences inside them are never mistaken for structure.
SCAN_RE = re.compile(r"""
    (?P<comment>--(?:\[(?P<ceq>=*)\[.*?\](?P=ceq)\]|[^\n]*))
  | (?P<longstr>\[(?P<leq>=*)\[.*?\](?P=leq)\])
  | (?P<entry>
        \[[ \t\r\n]*(?P<kq>["'])(?P<key>(?:\\.|(?!(?P=kq))[^\\\n])*)(?P=kq)[ \t\r\n]*\]
        [ \t\r\n]*=[ \t\r\n]*
        (?P<vq>["'])(?P<value>(?:\\.|(?!(?P=vq))[^\\\n])*)(?P=vq)
    )
  | (?P<field>
        (?<![\w.])(?P<name>[A-Za-z_]\w*)[ \t\r\n]*=(?!=)[ \t\r\n]*
        (?P<fq>["'])(?P<fvalue>(?:\\.|(?!(?P=fq))[^\\\n])*)(?P=fq)
    )
  | (?P<string>"(?:\\.|[^"\\\n])*"|'(?:\\.|[^'\\\n])*')
  | (?P<open>\{)
  | (?P<close>\})
""", re.VERBOSE | re.DOTALL)

BRIEFING_FIELD_NAMES = [name for name, _ in BRIEFING_FIELDS]


@dataclass
class StringEntry:
    key: str
    value: str
    depth: int
    value_start: int
    value_end: int
    quote: str


@dataclass
class RegenerationReport:
    text: str
    applied: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)


def iter_string_entries(raw: str):
    """Yield every `["key"] = "value"` (or `key = "value"`) entry with its table depth."""
    depth = 0
    for m in SCAN_RE.finditer(raw):
        kind = m.lastgroup
        if kind == 'open':
            depth += 1
        elif kind == 'close':
            depth -= 1
        elif kind == 'entry':
            yield StringEntry(unescape_lua_string(m.group('key')),
                              unescape_lua_string(m.group('value')),
                              depth, m.start('value'), m.end('value'), m.group('vq'))
        elif kind == 'field':
            yield StringEntry(m.group('name'),
                              unescape_lua_string(m.group('fvalue')),
                              depth, m.start('fvalue'), m.end('fvalue'), m.group('fq'))


def substitute_string_entries(raw: str, replacements: Mapping[str, str],
                              top_level_only: bool = False) -> RegenerationReport:
    """
    Replace the values of the given keys in raw literal text.

    Args:
        raw: Original dictionary or mission text
        replacements: Key -> new (unescaped) value
        top_level_only: Only touch entries of the outermost table

    Returns:
        RegenerationReport with the new text, the keys written and the keys
        that were not found in raw
    """
    if not replacements:
        return RegenerationReport(raw)

    pieces = []
    cursor = 0
    applied = []
    for entry in iter_string_entries(raw):
        if entry.key not in replacements:
            continue
        if top_level_only and entry.depth != 1:
            continue
        pieces.append(raw[cursor:entry.value_start])
        pieces.append(escape_lua_string(replacements[entry.key], entry.quote, key=entry.key))
        cursor = entry.value_end
        if entry.key not in applied:
            applied.append(entry.key)
    pieces.append(raw[cursor:])

    missing = [key for key in replacements if key not in applied]
    return RegenerationReport(''.join(pieces), applied, missing)


def _mapping_from(mappings) -> Dict[str, str]:
    # Accepts a plain dict or anything carrying key_mappings (ImportedText)
    key_mappings = getattr(mappings, 'key_mappings', mappings)
    return dict(key_mappings or {})


def regenerate_dictionary(default_dict_raw: str,
                          mappings: Union[Mapping[str, str], object]) -> RegenerationReport:
    """Like generate_dictionary_preserving_format, returning the full report."""
    # Briefing labels and mission paths are not dictionary keys
    replacements = {key: value for key, value in _mapping_from(mappings).items()
                    if key not in LABEL_TO_FIELD and not key.startswith('mission.')}
    return substitute_string_entries(default_dict_raw, replacements)


def generate_dictionary_preserving_format(default_dict_raw: str,
                                          mappings: Union[Mapping[str, str], object],
                                          target_locale: str,
                                          verbose: bool = False) -> str:
    """
    Build a target-locale dictionary from the DEFAULT dictionary text.

    Keys present in mappings get the translated value; every other key,
    comment and whitespace run is emitted exactly as in the DEFAULT text.
    """
    report = regenerate_dictionary(default_dict_raw, mappings)

    if verbose:
        print(f" ✓ {target_locale} dictionary: {len(report.applied)} keys translated")
        for key in report.missing:
            print(f" ⚠️ Key not found in DEFAULT dictionary: {key}")
    return report.text


def regenerate_mission_briefings(mission_raw: str, briefings: Mapping[str, str]) -> RegenerationReport:
    """Rewrite the top-level briefing fields; non-briefing names are left out of the report."""
    replacements = {name: value for name, value in briefings.items()
                    if name in BRIEFING_FIELD_NAMES and value is not None}
    return substitute_string_entries(mission_raw, replacements, top_level_only=True)


def update_mission_briefings(mission_raw: str, briefings: Mapping[str, str],
                             verbose: bool = False) -> str:
    """Rewrite the top-level briefing fields of the mission text."""
    report = regenerate_mission_briefings(mission_raw, briefings)

    if verbose:
        for name in briefings:
            if name not in BRIEFING_FIELD_NAMES:
                print(f" ⚠️ Not a briefing field, ignored: {name}")
        for name in report.applied:
            print(f" ✓ Briefing updated: {name}")
        for name in report.missing:
            print(f" ⚠️ Briefing field not found in mission: {name}")
    return report.text

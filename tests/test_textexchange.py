"""Tests for the translator text exchange format."""

from stringextractor import BRIEFING, RADIO, TRIGGER, ExtractedItem, ExtractionResult
from textexchange import SECTION_HEADERS, format_as_text, parse_imported_text, split_lines


def make_result(briefings=(), triggers=(), radio=()):
    extracted = {
        BRIEFING: [ExtractedItem(BRIEFING, ctx, text) for ctx, text in briefings],
        TRIGGER: [ExtractedItem(TRIGGER, ctx, text) for ctx, text in triggers],
        RADIO: [ExtractedItem(RADIO, ctx, text) for ctx, text in radio],
    }
    return ExtractionResult(locale='DEFAULT', extracted=extracted)


def test_format_layout():
    """Should write the three headers in order with one line per item."""
    result = make_result(
        briefings=[('Briefing_Description', 'Strike the bridge.'), ('Briefing_Mission', 'Sandstorm')],
        triggers=[('DictKey_ActionText_1', 'Check in.')],
        radio=[('DictKey_subtitle_1', 'PLAYER: Copy.')],
    )
    assert format_as_text(result) == (
        'БРИФИНГ: / BRIEFING:\n'
        '\n'
        'Briefing_Mission: Sandstorm\n'
        'Briefing_Description: Strike the bridge.\n'
        '\n'
        'ТРИГГЕРЫ: / TRIGGERS:\n'
        '\n'
        'DictKey_ActionText_1: Check in.\n'
        '\n'
        'РАДИОСООБЩЕНИЯ: / RADIO MESSAGES:\n'
        '\n'
        'DictKey_subtitle_1: PLAYER: Copy.\n'
    )


def test_round_trip_preserves_every_text():
    """Should parse formatted text back to the same key mappings."""
    items = {
        'Briefing_Mission': 'Sandstorm',
        'Briefing_Description': 'Line one\n\nLine three after a blank\n',
        'DictKey_ActionText_1': 'Text with DictKey_ActionText_2: inside',
        'DictKey_ActionText_2': 'First\nDictKey_ActionText_9: looks like a key\nТРИГГЕРЫ: / TRIGGERS:',
        'DictKey_ActionText_3': '',
        'DictKey_ActionText_4': '  leading spaces\n\\starts with backslash\n   ',
        'mission.trig.actions[3]#2': 'Literal from a script',
        'DictKey_subtitle_1': 'POPEYE: Sword 1-1, cleared.\nPLAYER: Copy.',
    }
    result = make_result(
        briefings=[(k, v) for k, v in items.items() if k.startswith('Briefing_')],
        triggers=[(k, v) for k, v in items.items() if k.startswith(('DictKey_Action', 'mission'))],
        radio=[(k, v) for k, v in items.items() if k.startswith('DictKey_subtitle')],
    )
    imported = parse_imported_text(format_as_text(result))
    assert imported.key_mappings == items


def test_parse_user_edited_text():
    """Should ignore separator blank lines and join continuation lines."""
    text = (
        'БРИФИНГ: / BRIEFING:\r\n'
        '\r\n'
        'Briefing_Mission: Песчаная буря\r\n'
        '\r\n'
        'ТРИГГЕРЫ: / TRIGGERS:\r\n'
        'DictKey_ActionText_1: Первая строка\r\n'
        'вторая строка\r\n'
        '\r\n'
        '\r\n'
        'РАДИОСООБЩЕНИЯ: / RADIO MESSAGES:\r\n'
        'DictKey_subtitle_1: POPEYE: Приём.\r\n'
    )
    imported = parse_imported_text(text)
    assert imported.briefings == {'Briefing_Mission': 'Песчаная буря'}
    assert imported.key_mappings['DictKey_ActionText_1'] == 'Первая строка\nвторая строка'
    assert imported.triggers == ['Первая строка\nвторая строка']
    assert imported.radio == ['POPEYE: Приём.']


def test_lines_before_first_key_are_ignored():
    """Should drop stray text that has no key to attach to."""
    imported = parse_imported_text('notes from the translator\nDictKey_A: value\n')
    assert imported.key_mappings == {'DictKey_A': 'value'}


def test_english_only_headers_are_recognized():
    """Should accept either half of a bilingual header."""
    imported = parse_imported_text('RADIO MESSAGES:\nDictKey_subtitle_2: Roger.\n')
    assert imported.radio == ['Roger.']
    assert SECTION_HEADERS[RADIO].endswith('RADIO MESSAGES:')


def test_key_without_space_after_colon():
    """Should accept `key:text` as well as `key: text`."""
    imported = parse_imported_text('DictKey_A:value')
    assert imported.key_mappings == {'DictKey_A': 'value'}


def test_carriage_returns_in_values_survive():
    """Should keep CR characters that belong to the text."""
    items = {
        'DictKey_ActionText_1': '\t\r\r',
        'DictKey_ActionText_2': 'a\r\nb\r',
        'DictKey_ActionText_3': 'plain',
    }
    result = make_result(triggers=list(items.items()))
    imported = parse_imported_text(format_as_text(result))
    assert imported.key_mappings == items


def test_split_lines_only_strips_crlf_endings():
    """Should drop CR from line endings only when the whole text uses CRLF."""
    assert split_lines('a\r\nb\r\n') == ['a', 'b', '']
    assert split_lines('a\r\nb') == ['a', 'b']
    assert split_lines('a\r\r\nb\n') == ['a\r\r', 'b', '']

"""Tests for format-preserving dictionary and mission regeneration."""

from luaparser import parse
from regenerator import (
    generate_dictionary_preserving_format, iter_string_entries, substitute_string_entries,
    regenerate_dictionary, regenerate_mission_briefings, update_mission_briefings,
)
from textexchange import ImportedText
from samples import DEFAULT_DICTIONARY, DICTIONARY_ONLY_MISSION


def test_exact_targeting():
    """Should change only the mapped key."""
    raw = 'dictionary = {\n    ["A"] = "x",\n    ["B"] = "y",\n} -- end of dictionary\n'
    out = generate_dictionary_preserving_format(raw, {'B': 'z'}, 'RU')
    assert out == 'dictionary = {\n    ["A"] = "x",\n    ["B"] = "z",\n} -- end of dictionary\n'


def test_empty_mapping_is_identity():
    """Should return the DEFAULT text unchanged when nothing is translated."""
    assert generate_dictionary_preserving_format(DEFAULT_DICTIONARY, {}, 'RU') == DEFAULT_DICTIONARY


def test_untouched_keys_and_order_are_preserved():
    """Should keep key count, key order and untouched lines identical."""
    out = generate_dictionary_preserving_format(
        DEFAULT_DICTIONARY, {'DictKey_ActionText_001': 'Миссия началась.'}, 'RU')

    before = [entry.key for entry in iter_string_entries(DEFAULT_DICTIONARY)]
    after = [entry.key for entry in iter_string_entries(out)]
    assert before == after

    changed = [(a, b) for a, b in zip(DEFAULT_DICTIONARY.split('\n'), out.split('\n')) if a != b]
    assert changed == [(
        '    ["DictKey_ActionText_001"] = "Mission started. All pilots check in.",',
        '    ["DictKey_ActionText_001"] = "Миссия началась.",',
    )]


def test_translations_are_escaped():
    """Should escape newlines, quotes and backslashes so the result still parses."""
    text = 'Line "one"\nC:\\path'
    out = generate_dictionary_preserving_format(DEFAULT_DICTIONARY, {'DictKey_ActionText_002': text}, 'RU')
    assert '["DictKey_ActionText_002"] = "Line \\"one\\"\\nC:\\\\path",' in out
    assert parse(out)['DictKey_ActionText_002'] == text


def test_empty_translation_writes_empty_value():
    """Should write an empty string for an empty translation."""
    out = generate_dictionary_preserving_format(DEFAULT_DICTIONARY, {'DictKey_ActionText_001': ''}, 'RU')
    assert parse(out)['DictKey_ActionText_001'] == ''


def test_multiline_value_is_replaced_whole():
    """Should replace a backslash-newline value as one span."""
    out = generate_dictionary_preserving_format(
        DEFAULT_DICTIONARY, {'DictKey_descriptionText_2': 'Ударьте по мосту.'}, 'RU')
    table = parse(out)
    assert table['DictKey_descriptionText_2'] == 'Ударьте по мосту.'
    assert 'Then RTB.' not in out


def test_missing_keys_are_reported_not_fatal():
    """Should list keys that are not in the source text."""
    report = substitute_string_entries(DEFAULT_DICTIONARY, {'DictKey_Nope': 'x', 'DictKey_ActionText_001': 'y'})
    assert report.applied == ['DictKey_ActionText_001']
    assert report.missing == ['DictKey_Nope']


def test_missing_keys_are_printed_when_verbose(capsys):
    """Should warn about keys that were not found."""
    generate_dictionary_preserving_format(DEFAULT_DICTIONARY, {'DictKey_Nope': 'x'}, 'RU', verbose=True)
    assert 'DictKey_Nope' in capsys.readouterr().out


def test_single_quoted_entries_keep_their_quote():
    """Should escape for the quote character the entry uses."""
    raw = "dictionary = {\n    ['DictKey_A'] = 'it is',\n}\n"
    out = generate_dictionary_preserving_format(raw, {'DictKey_A': "it's"}, 'RU')
    assert out == "dictionary = {\n    ['DictKey_A'] = 'it\\'s',\n}\n"


def test_comments_and_strings_are_not_scanned_as_entries():
    """Should leave entry-like text inside comments and strings alone."""
    raw = (
        'dictionary = {\n'
        '    -- ["DictKey_A"] = "in a comment",\n'
        '    --[[ ["DictKey_A"] = "in a block comment" ]]\n'
        '    ["DictKey_B"] = "[\\"DictKey_A\\"] = \\"in a string\\"",\n'
        '    ["DictKey_A"] = "real",\n'
        '}\n'
    )
    out = generate_dictionary_preserving_format(raw, {'DictKey_A': 'new'}, 'RU')
    assert out == raw.replace('"real"', '"new"')


def test_accepts_imported_text():
    """Should take the key mappings out of an ImportedText."""
    imported = ImportedText(key_mappings={'DictKey_ActionText_001': 'Готово', 'Briefing_Mission': 'X'})
    out = generate_dictionary_preserving_format(DEFAULT_DICTIONARY, imported, 'RU')
    assert parse(out)['DictKey_ActionText_001'] == 'Готово'


def test_update_mission_briefings_top_level_only():
    """Should rewrite the top-level sortie and leave nested fields of the same name."""
    out = update_mission_briefings(DICTIONARY_ONLY_MISSION, {'sortie': 'Буря', 'descriptionRedTask': 'Защищайте'})
    mission = parse(out)
    assert mission['sortie'] == 'Буря'
    assert mission['descriptionRedTask'] == 'Защищайте'
    assert mission['coalition']['blue']['sortie'] == 'nested, not a briefing'
    assert out.count('\n') == DICTIONARY_ONLY_MISSION.count('\n')


def test_update_mission_briefings_ignores_other_fields():
    """Should never touch non-briefing fields."""
    out = update_mission_briefings(DICTIONARY_ONLY_MISSION, {'name': 'red'})
    assert out == DICTIONARY_ONLY_MISSION


def test_iter_string_entries_depth():
    """Should report the table depth of each entry."""
    entries = {(e.key, e.depth) for e in iter_string_entries(DICTIONARY_ONLY_MISSION)}
    assert ('sortie', 1) in entries
    assert ('sortie', 3) in entries
    assert ('name', 3) in entries


def test_regenerate_dictionary_reports_missing_keys():
    """Should report written and unknown keys, leaving briefing labels and script paths out."""
    report = regenerate_dictionary(DEFAULT_DICTIONARY, {
        'DictKey_ActionText_003': '200',
        'DictKey_NOPE_1': 'x',
        'Briefing_Mission': 'X',
        'mission.triggers.triggers[1].actions[1]': 'y',
    })
    assert report.applied == ['DictKey_ActionText_003']
    assert report.missing == ['DictKey_NOPE_1']
    assert parse(report.text)['DictKey_ActionText_003'] == '200'


def test_regenerate_mission_briefings_reports_absent_fields():
    """Should report a briefing field the mission does not have at the top level."""
    mission = 'mission = {\n    ["sortie"] = "Storm",\n    ["coalition"] = { ["descriptionText"] = "nested" },\n}\n'
    report = regenerate_mission_briefings(mission, {'sortie': 'Буря', 'descriptionText': 'Текст', 'name': 'red'})
    assert report.applied == ['sortie']
    assert report.missing == ['descriptionText']
    assert parse(report.text)['coalition']['descriptionText'] == 'nested'

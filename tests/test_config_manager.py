"""Tests for settings and external filter rules."""

import json

from config_manager import ConfigManager


def write_rules(tmp_path, rules):
    data_dir = tmp_path / 'data'
    data_dir.mkdir()
    (data_dir / 'filter_rules.json').write_text(json.dumps(rules), encoding='utf-8')
    return str(data_dir)


def test_defaults_without_files(tmp_path):
    """Should fall back to built-in settings when config.ini is missing."""
    config = ConfigManager(str(tmp_path / 'data'), str(tmp_path / 'config.ini'))
    assert config.get_setting('General', 'target_locale') == 'RU'
    assert config.get_setting('General', 'mode') == 'auto'
    assert config.get_setting('LLM', 'api_key') is None
    assert config.get_filter_rules() == []


def test_config_ini_overrides_defaults(tmp_path):
    """Should read values from config.ini on top of the defaults."""
    ini = tmp_path / 'config.ini'
    ini.write_text('[General]\ntarget_locale = DE\n\n[LLM]\nmodel = local-model \n', encoding='utf-8')
    config = ConfigManager(str(tmp_path / 'data'), str(ini))

    assert config.get_setting('General', 'target_locale') == 'DE'
    assert config.get_setting('General', 'preferred_locale') == 'DEFAULT'
    assert config.get_setting('LLM', 'model') == 'local-model'


def test_blacklist_and_patterns_extend_the_filter(tmp_path):
    """Should mark blacklisted and pattern-matched text as system messages."""
    data_dir = write_rules(tmp_path, {
        'blacklisted_strings': ['Flag set'],
        'system_patterns': [r'^SKIP\b'],
        'keep_patterns': [r'^BANDIT$'],
    })
    message_filter = ConfigManager(data_dir, str(tmp_path / 'config.ini')).create_filter()

    assert message_filter.is_system_message('Flag set')
    assert message_filter.is_system_message('SKIP this line please')
    assert not message_filter.is_system_message('Flag set for the second wave.')
    # Keep rules run before the built-in bare-acronym rule
    assert message_filter.is_system_message('BOGEY')
    assert not message_filter.is_system_message('BANDIT')


def test_invalid_pattern_is_skipped(tmp_path, capsys):
    """Should warn about a bad regex and keep the other rules."""
    data_dir = write_rules(tmp_path, {'system_patterns': ['(unclosed', r'^SKIP\b']})
    rules = ConfigManager(data_dir, str(tmp_path / 'config.ini')).get_filter_rules()

    assert [rule.name for rule in rules] == ['config-system_patterns-2']
    assert 'Invalid pattern' in capsys.readouterr().out


def test_broken_rule_file_is_reported(tmp_path, capsys):
    """Should print an error and use no extra rules for unreadable JSON."""
    data_dir = tmp_path / 'data'
    data_dir.mkdir()
    (data_dir / 'filter_rules.json').write_text('{not json', encoding='utf-8')

    assert ConfigManager(str(data_dir), str(tmp_path / 'config.ini')).get_filter_rules() == []
    assert 'Error loading filter rules' in capsys.readouterr().out

"""
Configuration Manager for DCS Mission Translator
Handles loading of config.ini settings and external filter rule files.
"""

import configparser
import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from messagefilter import FilterRule, SystemMessageFilter

DEFAULT_SETTINGS = {
    'General': {
        'preferred_locale': 'DEFAULT',
        'target_locale': 'RU',
        'mode': 'auto',
    },
    'LLM': {
        'model': 'gpt-3.5-turbo',
    },
}


class ConfigManager:
    def __init__(self, data_dir: str = "data", config_file: str = "config.ini"):
        self.data_dir = Path(data_dir)
        self.config_file = Path(config_file)
        self.filter_rules: Dict[str, Any] = {}
        self.settings: Optional[configparser.ConfigParser] = None

    def load_settings(self) -> configparser.ConfigParser:
        """Load config.ini on top of the built-in defaults."""
        config = configparser.ConfigParser()
        config.read_dict(DEFAULT_SETTINGS)
        if self.config_file.exists():
            try:
                config.read(self.config_file, encoding='utf-8')
            except configparser.Error as e:
                print(f"⚠️ Error reading {self.config_file}: {e}")
        self.settings = config
        return config

    def get_setting(self, section: str, option: str, fallback: Optional[str] = None) -> Optional[str]:
        if self.settings is None:
            self.load_settings()
        value = self.settings.get(section, option, fallback=fallback)
        return value.strip() if isinstance(value, str) else value

    def load_filter_rules(self) -> Dict[str, Any]:
        """Load extra system-message rules from JSON."""
        file_path = self.data_dir / "filter_rules.json"
        if file_path.exists():
            try:
                with open(file_path, 'r', encoding='utf-8') as f:
                    self.filter_rules = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                print(f"⚠️ Error loading filter rules: {e}")
        return self.filter_rules

    def get_blacklisted_strings(self) -> set:
        """Get blacklisted strings."""
        if not self.filter_rules:
            self.load_filter_rules()
        return set(self.filter_rules.get("blacklisted_strings", []))

    def get_filter_rules(self) -> List[FilterRule]:
        """Build FilterRule rows from the JSON rule file."""
        if not self.filter_rules:
            self.load_filter_rules()

        rules = []
        blacklist = self.get_blacklisted_strings()
        if blacklist:
            rules.append(FilterRule('config-blacklist', True,
                                    check=lambda s, blacklist=blacklist: s in blacklist))

        for verdict, section in ((False, "keep_patterns"), (True, "system_patterns")):
            for index, pattern in enumerate(self.filter_rules.get(section, [])):
                try:
                    compiled = re.compile(pattern)
                except re.error as e:
                    print(f"⚠️ Invalid pattern in {section}: {pattern!r} ({e})")
                    continue
                rules.append(FilterRule(f"config-{section}-{index + 1}", verdict, pattern=compiled))
        return rules

    def create_filter(self) -> SystemMessageFilter:
        """Built-in filter table extended with the configured rules."""
        return SystemMessageFilter(extra_rules=self.get_filter_rules())

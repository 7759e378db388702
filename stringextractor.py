"""
stringextractor.py
DCS Mission Text Extraction Engine
Classifies mission strings into Briefing / Trigger / Radio items keyed by their
exact dictionary key, briefing label, or mission path.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from luaparser import LuaTokenizer, ParseError, NAME, STRING, SYMBOL, EOF
from messagefilter import SystemMessageFilter

BRIEFING = 'Briefing'
TRIGGER = 'Trigger'
RADIO = 'Radio'
CATEGORIES = (BRIEFING, TRIGGER, RADIO)

# Mission field -> exchange label
BRIEFING_FIELDS = [
    ('sortie', 'Briefing_Mission'),
    ('descriptionText', 'Briefing_Description'),
    ('descriptionBlueTask', 'Briefing_Blue'),
    ('descriptionRedTask', 'Briefing_Red'),
    ('descriptionNeutralsTask', 'Briefing_Neutral'),
]
LABEL_TO_FIELD = {label: name for name, label in BRIEFING_FIELDS}

DICTKEY_RE = re.compile(r'^DictKey_\w+$')
RADIO_KEY_RE = re.compile(r'ActionRadioText|subtitle', re.IGNORECASE)

# Dictionary key families used when the mission tree has no usable triggers
DICTIONARY_CATEGORIES = [
    (re.compile(r'^DictKey_ActionText_'), TRIGGER),
    (re.compile(r'^DictKey_ActionRadioText_'), RADIO),
    (re.compile(r'^DictKey_subtitle_'), RADIO),
]

# Script calls that carry player-visible text
SCRIPT_CALL_RE = re.compile(
    r'\b(outText\w*|a_out_text\w*|radioTransmission|a_radio_transmission\w*|a_out_sound\w*)\s*\('
)
RADIO_CALLS = ('radioTransmission', 'a_radio_transmission', 'a_out_sound')
DICT_LOOKUP_FUNC = 'getValueDictByKey'
RADIO_PREDICATE_RE = re.compile(r'radio|sound', re.IGNORECASE)

MODES = ('auto', 'mission-only', 'dictionary-only')


@dataclass
class ExtractedItem:
    category: str
    context: str
    text: str


@dataclass
class ExtractionStats:
    total_strings: int = 0
    unique_strings: int = 0
    by_category: Dict[str, int] = field(default_factory=dict)


@dataclass
class ValidationReport:
    is_complete: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class ExtractionResult:
    locale: str
    extracted: Dict[str, List[ExtractedItem]]
    stats: ExtractionStats = field(default_factory=ExtractionStats)
    source: str = 'none'
    validation: ValidationReport = field(default_factory=ValidationReport)

    def items(self) -> List[ExtractedItem]:
        """All items in exchange order: briefings, triggers, radio."""
        return [item for category in CATEGORIES for item in self.extracted.get(category, [])]


@dataclass
class ExtractionOptions:
    mode: str = 'auto'
    preferred_locale: str = 'DEFAULT'


@dataclass
class ScriptString:
    """A message found inside an action script."""
    category: str
    text: Optional[str] = None
    dict_key: Optional[str] = None


def is_dict_reference(value) -> bool:
    return isinstance(value, str) and bool(DICTKEY_RE.match(value))


def iter_sequence(table) -> List[Tuple[object, object]]:
    """Items of a Lua table; a plain string is treated as a one-element list."""
    if isinstance(table, dict):
        return list(table.items())
    if isinstance(table, str):
        return [(1, table)]
    return []


def scan_action_script(script: str) -> List[ScriptString]:
    """
    Find the messages passed to text and radio calls in an action script.

    The first string argument of a text call is its message. A radio call's
    dictionary-keyed subtitle counts as radio text, and so does the next text
    call that follows it in the same script. Raises ParseError when the
    script can't be tokenized.
    """
    found: List[ScriptString] = []
    radio_pending = False
    for match in SCRIPT_CALL_RE.finditer(script):
        arguments = _string_arguments(script, match.end() - 1)

        if match.group(1).startswith(RADIO_CALLS):
            # Literal radio arguments are sound files and resource keys
            radio_pending = True
            found.extend(ScriptString(RADIO, dict_key=key) for _, key in arguments if key)
            continue

        category = RADIO if radio_pending else TRIGGER
        radio_pending = False
        if arguments:
            literal, dict_key = arguments[0]
            found.append(ScriptString(category, text=literal, dict_key=dict_key))
    return found


def _string_arguments(script: str, open_paren: int) -> List[Tuple[Optional[str], Optional[str]]]:
    """(literal, dict_key) for each string argument of the call opening at open_paren."""
    tokens = iter(LuaTokenizer(script, open_paren))
    next(tokens)  # the opening parenthesis
    arguments = []
    depth = 1
    recent: List = [None, None]
    for token in tokens:
        if token.type == EOF:
            break
        if token.type == SYMBOL and token.value == '(':
            depth += 1
        elif token.type == SYMBOL and token.value == ')':
            depth -= 1
            if depth == 0:
                break
        elif token.type == STRING:
            before_paren, paren = recent
            looked_up = (depth == 2 and paren is not None and paren.type == SYMBOL and paren.value == '('
                         and before_paren is not None and before_paren.type == NAME
                         and before_paren.value == DICT_LOOKUP_FUNC)
            if looked_up or (depth == 1 and is_dict_reference(token.value)):
                arguments.append((None, token.value))
            elif depth == 1:
                arguments.append((token.value, None))
        recent = [recent[1], token]
    return arguments


# --- Trigger shape detectors ---
# Each returns None when its shape is absent or empty, else [(path, action)].
ActionList = List[Tuple[str, object]]


def detect_modern_triggers(mission: Dict) -> Optional[ActionList]:
    """mission.triggers.triggers[n].actions"""
    triggers = mission.get('triggers')
    if not isinstance(triggers, dict) or not isinstance(triggers.get('triggers'), dict):
        return None
    actions = []
    for t_index, trigger in triggers['triggers'].items():
        if not isinstance(trigger, dict):
            continue
        for a_index, action in iter_sequence(trigger.get('actions')):
            actions.append((f"mission.triggers.triggers[{t_index}].actions[{a_index}]", action))
    return actions or None


def detect_trig_actions(mission: Dict) -> Optional[ActionList]:
    """mission.trig.actions"""
    trig = mission.get('trig')
    if not isinstance(trig, dict):
        return None
    actions = [(f"mission.trig.actions[{index}]", action)
               for index, action in iter_sequence(trig.get('actions'))]
    return actions or None


def detect_trigrules(mission: Dict) -> Optional[ActionList]:
    """mission.trigrules[n].actions"""
    rules = mission.get('trigrules')
    if not isinstance(rules, dict):
        return None
    actions = []
    for r_index, rule in rules.items():
        if not isinstance(rule, dict):
            continue
        for a_index, action in iter_sequence(rule.get('actions')):
            actions.append((f"mission.trigrules[{r_index}].actions[{a_index}]", action))
    return actions or None


SHAPE_DETECTORS: List[Callable[[Dict], Optional[ActionList]]] = [
    detect_modern_triggers,
    detect_trig_actions,
    detect_trigrules,
]


class StringExtractor:
    """Extraction engine for mission trees and locale dictionaries."""

    def __init__(self, message_filter: Optional[SystemMessageFilter] = None, verbose: bool = False):
        self.message_filter = message_filter or SystemMessageFilter()
        self.verbose = verbose

    # --- Dictionary helpers ---
    @staticmethod
    def select_dictionary(dictionaries: Dict[str, Dict], locale: str) -> Tuple[str, Dict]:
        """Preferred locale dictionary, falling back to DEFAULT."""
        if locale in dictionaries:
            return locale, dictionaries[locale]
        return 'DEFAULT', dictionaries.get('DEFAULT', {})

    @staticmethod
    def lookup(dictionaries: Dict[str, Dict], locale: str, key: str) -> Optional[str]:
        """Resolve a DictKey through the preferred locale, then DEFAULT."""
        for name in (locale, 'DEFAULT'):
            table = dictionaries.get(name)
            if isinstance(table, dict) and isinstance(table.get(key), str):
                return table[key]
        return None

    # --- Steps ---
    def extract_briefings(self, mission: Dict, dictionaries: Dict[str, Dict],
                          locale: str) -> List[ExtractedItem]:
        items = []
        for field_name, label in BRIEFING_FIELDS:
            value = mission.get(field_name)
            if not isinstance(value, str):
                continue
            if is_dict_reference(value):
                value = self.lookup(dictionaries, locale, value)
            if value and value.strip():
                items.append(ExtractedItem(BRIEFING, label, value))
        return items

    def extract_from_mission(self, mission: Dict, dictionaries: Dict[str, Dict],
                             locale: str) -> List[ExtractedItem]:
        actions = None
        for detector in SHAPE_DETECTORS:
            actions = detector(mission)
            if actions is not None:
                if self.verbose:
                    print(f" ✓ Trigger shape: {detector.__doc__} ({len(actions)} actions)")
                break
        if not actions:
            return []

        items = []
        for path, action in actions:
            if isinstance(action, str):
                items.extend(self._items_from_script(path, action, dictionaries, locale))
            elif isinstance(action, dict):
                items.extend(self._items_from_action_table(path, action, dictionaries, locale))
        return items

    def _items_from_script(self, path: str, script: str, dictionaries: Dict[str, Dict],
                           locale: str) -> List[ExtractedItem]:
        try:
            found = scan_action_script(script)
        except ParseError as e:
            if self.verbose:
                print(f" ⚠️ Skipping unreadable action script at {path}: {e}")
            return []

        items = []
        ordinal = 0
        for entry in found:
            if entry.dict_key:
                text = self.lookup(dictionaries, locale, entry.dict_key)
                if text is None:
                    continue
                category = RADIO if RADIO_KEY_RE.search(entry.dict_key) else entry.category
                items.append(ExtractedItem(category, entry.dict_key, text))
            else:
                ordinal += 1
                context = path if ordinal == 1 else f"{path}#{ordinal}"
                items.append(ExtractedItem(entry.category, context, entry.text))
        return items

    def _items_from_action_table(self, path: str, action: Dict, dictionaries: Dict[str, Dict],
                                 locale: str) -> List[ExtractedItem]:
        predicate = str(action.get('predicate', ''))
        fields = [
            ('text', RADIO if RADIO_PREDICATE_RE.search(predicate) else TRIGGER),
            ('subtitle', RADIO),
            ('radioText', RADIO),
        ]
        items = []
        for field_name, category in fields:
            value = action.get(field_name)
            if not isinstance(value, str):
                continue
            if is_dict_reference(value):
                text = self.lookup(dictionaries, locale, value)
                if text is not None:
                    items.append(ExtractedItem(category, value, text))
            else:
                items.append(ExtractedItem(category, f"{path}.{field_name}", value))
        return items

    def extract_from_dictionary(self, dictionaries: Dict[str, Dict], locale: str) -> List[ExtractedItem]:
        used_locale, table = self.select_dictionary(dictionaries, locale)
        if self.verbose and used_locale != locale:
            print(f" ⚠️ No dictionary for locale {locale}, using {used_locale}")
        items = []
        for key, value in table.items():
            if not isinstance(key, str) or not isinstance(value, str):
                continue
            for pattern, category in DICTIONARY_CATEGORIES:
                if pattern.match(key):
                    items.append(ExtractedItem(category, key, value))
                    break
        return items

    def keep(self, item: ExtractedItem) -> bool:
        if not item.text.strip():
            return False
        if item.category == BRIEFING:
            return True
        return not self.message_filter.is_system_message(item.text, item.context)

    # --- Entry point ---
    def extract(self, mission: Dict, dictionaries: Dict[str, Dict],
                options: Optional[ExtractionOptions] = None) -> ExtractionResult:
        """
        Extract translatable text from a parsed mission and its dictionaries.

        Args:
            mission: Parsed `mission` table
            dictionaries: Parsed dictionaries by locale name
            options: Mode and preferred locale

        Returns:
            ExtractionResult with items in exchange order, stats and validation
        """
        options = options or ExtractionOptions()
        if options.mode not in MODES:
            raise ValueError(f"Unknown extraction mode: {options.mode}")
        locale = options.preferred_locale
        mission = mission if isinstance(mission, dict) else {}

        candidates = self.extract_briefings(mission, dictionaries, locale)
        source = 'none'

        action_items: List[ExtractedItem] = []
        if options.mode != 'dictionary-only':
            action_items = [i for i in self.extract_from_mission(mission, dictionaries, locale)
                            if i.text.strip()]
            if action_items:
                source = 'mission'
        if not action_items and options.mode != 'mission-only':
            action_items = self.extract_from_dictionary(dictionaries, locale)
            if action_items:
                source = 'dictionary'
                if self.verbose:
                    print(f" ✓ Using dictionary fallback ({len(action_items)} candidates)")
        candidates.extend(action_items)

        extracted: Dict[str, List[ExtractedItem]] = {category: [] for category in CATEGORIES}
        seen = set()
        filtered = 0
        for item in candidates:
            if item.context in seen:
                continue
            seen.add(item.context)
            if not self.keep(item):
                filtered += 1
                continue
            extracted[item.category].append(item)

        if self.verbose and filtered:
            print(f" ✓ Filtered {filtered} system messages")

        result = ExtractionResult(locale=locale, extracted=extracted, source=source)
        result.stats = compute_stats(extracted)
        result.validation = validate_extraction(result)
        return result


def compute_stats(extracted: Dict[str, List[ExtractedItem]]) -> ExtractionStats:
    by_category = {category: len(extracted.get(category, [])) for category in CATEGORIES}
    texts = {item.text for items in extracted.values() for item in items}
    return ExtractionStats(total_strings=sum(by_category.values()),
                           unique_strings=len(texts),
                           by_category=by_category)


def validate_extraction(result: ExtractionResult) -> ValidationReport:
    """Check an extraction for completeness before it is handed to a translator."""
    report = ValidationReport()
    counts = compute_stats(result.extracted).by_category
    if not any(counts.values()):
        report.errors.append("No translatable text found in mission or dictionaries")
    elif not counts[TRIGGER] and not counts[RADIO]:
        report.warnings.append("No trigger or radio messages found")
    labels = {item.context for item in result.extracted.get(BRIEFING, [])}
    if 'Briefing_Mission' not in labels:
        report.warnings.append("Mission has no briefing title (sortie)")
    report.is_complete = not report.errors
    return report


def extract_text(mission: Dict, dictionaries: Dict[str, Dict],
                 options: Optional[ExtractionOptions] = None,
                 message_filter: Optional[SystemMessageFilter] = None) -> ExtractionResult:
    """Module-level shortcut for StringExtractor.extract."""
    return StringExtractor(message_filter).extract(mission, dictionaries, options)

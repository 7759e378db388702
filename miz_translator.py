"""
Mission Translator Module
DCS World mission (.miz) extraction and import pipeline
Reads the mission and locale dictionaries, exports the exchange text and
writes translated text back as a new l10n locale.
"""

import codecs
import copy
import io
import os
import re
import shutil
import zipfile
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

import chardet
import ftfy
from tqdm import tqdm

from config_manager import ConfigManager
from llm_translator import LLMTranslator
from luaparser import ParseError, parse_assignment
from messagefilter import SystemMessageFilter
from regenerator import regenerate_dictionary, regenerate_mission_briefings
from stringextractor import (
    LABEL_TO_FIELD, ExtractionOptions, ExtractionResult, StringExtractor, compute_stats,
    is_dict_reference,
)
from textexchange import ImportedText, format_as_text, parse_imported_text

MISSION_ENTRY = 'mission'
DEFAULT_LOCALE = 'DEFAULT'
DICTIONARY_RE = re.compile(r'^l10n/([^/]+)/dictionary$')
LOCALE_NAME_RE = re.compile(r'^[A-Za-z0-9_]+$')

ProgressCallback = Callable[[int, str], None]


class MizFormatError(Exception):
    """The archive can't be used: not a zip, no mission, or no DEFAULT dictionary."""


@dataclass
class MizData:
    mission: Dict
    mission_raw: str
    dictionaries: Dict[str, Dict] = field(default_factory=dict)
    dictionary_raw: Dict[str, str] = field(default_factory=dict)
    encodings: Dict[str, str] = field(default_factory=dict)
    available_locales: List[str] = field(default_factory=list)
    unavailable_locales: Dict[str, str] = field(default_factory=dict)


@dataclass
class ImportReport:
    """
    Outcome of writing exchange text into an archive.

    applied and missing hold dictionary keys, briefings and
    missing_briefings hold mission field names. skipped lists contexts
    that have no dictionary entry to carry a translation (mission script
    literals), so their text never reaches the archive.
    """
    output: bytes
    target_locale: str
    applied: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    briefings: List[str] = field(default_factory=list)
    missing_briefings: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def warnings(self) -> List[str]:
        warnings = [f"{key}: not found in the DEFAULT dictionary, not written" for key in self.missing]
        warnings += [f"{name}: briefing field not found in the mission, not written"
                     for name in self.missing_briefings]
        warnings += [f"{context}: literal in a mission script, not written back" for context in self.skipped]
        return warnings


# --- Encoding helpers ---
def decode_entry(data: bytes) -> Tuple[str, str]:
    """Decode archive text: UTF-8 first, then chardet's guess, then latin-1."""
    try:
        return data.decode('utf-8'), 'utf-8'
    except UnicodeDecodeError:
        pass

    detection = chardet.detect(data)
    encoding = detection.get('encoding')
    if encoding and (detection.get('confidence') or 0) > 0.5:
        try:
            return data.decode(encoding), encoding
        except (UnicodeDecodeError, LookupError):
            pass
    # latin-1 maps every byte, so untouched text re-encodes to the same bytes
    return data.decode('latin-1'), 'latin-1'


def validate_encoding_compatibility(text: str, encoding: str) -> Tuple[bool, List[str]]:
    """Check if text can be encoded without loss."""
    try:
        text.encode(encoding, errors='strict')
        return True, []
    except (UnicodeEncodeError, LookupError):
        problematic = []
        for char in text:
            try:
                char.encode(encoding, errors='strict')
            except (UnicodeEncodeError, LookupError):
                if char not in problematic:
                    problematic.append(char)
        return False, problematic


def encode_entry(text: str, encoding: str, name: str = "", verbose: bool = False) -> bytes:
    """Encode with the entry's original encoding, switching to UTF-8 when it can't hold the text."""
    ok, problematic = validate_encoding_compatibility(text, encoding)
    if ok:
        return text.encode(encoding)
    if verbose:
        sample = ''.join(problematic[:10])
        print(f" ⚠️ {name}: {encoding} cannot encode {sample!r}, writing UTF-8")
    return text.encode('utf-8')


def decode_exchange_text(data: bytes) -> str:
    """Decode a translator-edited text file and repair mojibake."""
    if data.startswith(codecs.BOM_UTF8):
        text = data[len(codecs.BOM_UTF8):].decode('utf-8', errors='replace')
    elif data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        text = data.decode('utf-16', errors='replace')
    else:
        text, _ = decode_entry(data)
    # Translations are free text: keep quotes, ligatures and full-width forms as typed
    return ftfy.fix_text(text, unescape_html=False, uncurl_quotes=False,
                         fix_latin_ligatures=False, fix_character_width=False,
                         fix_line_breaks=False, normalization=None)


def read_exchange_file(path: str) -> str:
    with open(path, 'rb') as f:
        return decode_exchange_text(f.read())


def write_exchange_file(path: str, text: str):
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8', newline='\n') as f:
        f.write(text)


def create_backup(file_path: str, backup_dir: str = "backups") -> Optional[str]:
    """Create a timestamped backup of a file."""
    if not os.path.exists(file_path):
        return None
    try:
        os.makedirs(backup_dir, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_name = f"{Path(file_path).stem}_{timestamp}{Path(file_path).suffix}"
        backup_path = os.path.join(backup_dir, backup_name)
        shutil.copy2(file_path, backup_path)
        print(f" ✓ Backup created: {backup_path}")
        return backup_path
    except OSError as e:
        print(f" ⚠️ Warning: Could not create backup: {e}")
        return None


def normalize_locale(locale: str) -> str:
    name = (locale or "").strip().upper()
    if not LOCALE_NAME_RE.match(name):
        raise MizFormatError(f"Invalid locale name: {locale!r}")
    if name == DEFAULT_LOCALE:
        raise MizFormatError("DEFAULT is the source locale and can't be an import target")
    return name


class MizArchive:
    """Read access to a .miz zip plus re-packing that keeps entry order and settings."""

    def __init__(self, data: bytes):
        try:
            self.zip = zipfile.ZipFile(io.BytesIO(data))
        except zipfile.BadZipFile as e:
            raise MizFormatError(f"Not a mission archive: {e}") from e
        self.infos: Dict[str, zipfile.ZipInfo] = {}
        for info in self.zip.infolist():
            self.infos.setdefault(info.filename, info)

    def list_entries(self) -> List[str]:
        return list(self.infos)

    def has_entry(self, path: str) -> bool:
        return path in self.infos

    def read_entry(self, path: str) -> bytes:
        if path not in self.infos:
            raise MizFormatError(f"Archive entry not found: {path}")
        return self.zip.read(self.infos[path])

    def write_archive(self, entries: List[Tuple[str, bytes]]) -> bytes:
        """Pack entries into a new archive, reusing each known entry's ZipInfo."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as out:
            for name, data in entries:
                if name in self.infos:
                    info = copy.copy(self.infos[name])
                else:
                    info = zipfile.ZipInfo(name, date_time=datetime.now().timetuple()[:6])
                    info.compress_type = zipfile.ZIP_DEFLATED
                out.writestr(info, data)
        return buffer.getvalue()


class MizTranslator:
    """Handles extraction and re-import of DCS mission text."""

    def __init__(self, config: Optional[ConfigManager] = None, verbose: bool = False,
                 message_filter: Optional[SystemMessageFilter] = None, llm_translator=None):
        """
        Args:
            config: Settings and filter rules; None uses the built-in defaults
            verbose: Print progress and warnings
            message_filter: Overrides the filter built from config
            llm_translator: Used by auto_translate; created on first use when None
        """
        self.config = config
        self.verbose = verbose
        if message_filter is None:
            message_filter = config.create_filter() if config else SystemMessageFilter()
        self.message_filter = message_filter
        self.extractor = StringExtractor(message_filter, verbose=verbose)
        self.llm_translator = llm_translator

    # --- Reading ---
    def _read_mission(self, archive: MizArchive) -> Tuple[Dict, str, str]:
        if not archive.has_entry(MISSION_ENTRY):
            raise MizFormatError("Archive has no mission file")
        raw, encoding = decode_entry(archive.read_entry(MISSION_ENTRY))
        try:
            _, mission = parse_assignment(raw)
        except ParseError as e:
            raise MizFormatError(f"mission: {e}") from e
        if not isinstance(mission, dict):
            raise MizFormatError("mission file does not contain a table")
        return mission, raw, encoding

    def _read_dictionaries(self, archive: MizArchive, data: MizData):
        for name in archive.list_entries():
            match = DICTIONARY_RE.match(name)
            if not match:
                continue
            locale = match.group(1)
            raw, encoding = decode_entry(archive.read_entry(name))
            data.dictionary_raw[locale] = raw
            data.encodings[name] = encoding
            try:
                _, table = parse_assignment(raw)
            except ParseError as e:
                data.unavailable_locales[locale] = str(e)
                if self.verbose:
                    print(f" ⚠️ Locale {locale} unavailable: {e}")
                continue
            if not isinstance(table, dict):
                data.unavailable_locales[locale] = "dictionary is not a table"
                continue
            data.dictionaries[locale] = table
            data.available_locales.append(locale)

    def parse(self, archive_bytes: bytes, archive: Optional[MizArchive] = None) -> MizData:
        """Parse the mission and every locale dictionary of an archive."""
        archive = archive or MizArchive(archive_bytes)
        mission, raw, encoding = self._read_mission(archive)
        data = MizData(mission=mission, mission_raw=raw)
        data.encodings[MISSION_ENTRY] = encoding
        self._read_dictionaries(archive, data)
        if self.verbose:
            print(f" ✓ Locales: {', '.join(data.available_locales) or 'none'}")
        return data

    # --- Extraction ---
    def extract(self, archive_bytes: bytes, mode: str = 'auto',
                preferred_locale: str = DEFAULT_LOCALE) -> ExtractionResult:
        data = self.parse(archive_bytes)
        options = ExtractionOptions(mode=mode, preferred_locale=preferred_locale.strip().upper())
        return self.extractor.extract(data.mission, data.dictionaries, options)

    def export_text(self, archive_bytes: bytes, mode: str = 'auto',
                    preferred_locale: str = DEFAULT_LOCALE) -> str:
        return format_as_text(self.extract(archive_bytes, mode, preferred_locale))

    # --- Import ---
    def route_briefings(self, mission: Dict, briefings: Dict[str, str]) -> Tuple[Dict[str, str], Dict[str, str]]:
        """
        Split briefing translations by where their text lives.

        Returns (mission field -> text, dictionary key -> text). A field that
        holds a DictKey reference is translated through that key.
        """
        fields: Dict[str, str] = {}
        references: Dict[str, str] = {}
        for label, text in briefings.items():
            field_name = LABEL_TO_FIELD.get(label)
            if field_name is None:
                if self.verbose:
                    print(f" ⚠️ Unknown briefing label: {label}")
                continue
            current = mission.get(field_name)
            if is_dict_reference(current):
                references[current] = text
            else:
                fields[field_name] = text
        return fields, references

    def import_to_miz(self, archive_bytes: bytes, exchange_text: str, target_locale: str,
                      on_progress: Optional[ProgressCallback] = None,
                      return_report: bool = False) -> Union[bytes, ImportReport]:
        """
        Write translated exchange text into a copy of the archive.

        Args:
            archive_bytes: Original .miz content
            exchange_text: Edited exchange text
            target_locale: Locale folder to create or replace (not DEFAULT)
            on_progress: Optional callback(percent, label)
            return_report: Return an ImportReport instead of the bare bytes

        Returns:
            New archive bytes. Entries other than the mission and the
            target dictionary are copied unchanged.
        """
        def report(percent: int, label: str):
            if on_progress:
                on_progress(percent, label)

        target = normalize_locale(target_locale)

        report(0, "Reading archive")
        archive = MizArchive(archive_bytes)

        report(10, "Parsing mission")
        mission, mission_raw, mission_encoding = self._read_mission(archive)
        data = MizData(mission=mission, mission_raw=mission_raw)
        data.encodings[MISSION_ENTRY] = mission_encoding

        report(25, "Parsing dictionaries")
        self._read_dictionaries(archive, data)
        default_raw = data.dictionary_raw.get(DEFAULT_LOCALE)
        if default_raw is None:
            raise MizFormatError("Archive has no l10n/DEFAULT/dictionary")

        report(40, "Parsing translated text")
        imported = parse_imported_text(exchange_text)

        report(50, "Updating mission briefings")
        mission_fields, references = self.route_briefings(mission, imported.briefings)
        mission_report = regenerate_mission_briefings(mission_raw, mission_fields)

        report(65, f"Generating {target} dictionary")
        key_mappings, skipped = self.dictionary_mappings(imported)
        key_mappings.update(references)
        dictionary_report = regenerate_dictionary(default_raw, key_mappings)

        report(80, "Writing archive")
        output = archive.write_archive(self._build_entries(
            archive, data, target, mission_report.text, dictionary_report.text))

        report(100, "Done")
        result = ImportReport(
            output=output,
            target_locale=target,
            applied=dictionary_report.applied,
            missing=dictionary_report.missing,
            briefings=mission_report.applied,
            missing_briefings=mission_report.missing,
            skipped=skipped,
        )
        if self.verbose:
            print(f" ✓ {target} dictionary: {len(result.applied)} keys translated, "
                  f"{len(result.briefings)} briefing fields updated")
            for warning in result.warnings:
                print(f" ⚠️ {warning}")
        return result if return_report else output

    def dictionary_mappings(self, imported: ImportedText) -> Tuple[Dict[str, str], List[str]]:
        """
        Split keyed translations into DictKey mappings and skipped contexts.

        Mission-path contexts name literals inside mission scripts; they
        have no dictionary entry and come back in the skipped list.
        """
        mappings: Dict[str, str] = {}
        skipped: List[str] = []
        for key, value in imported.key_mappings.items():
            if key in imported.briefings:
                continue
            if key.startswith('DictKey_'):
                mappings[key] = value
            else:
                skipped.append(key)
        return mappings, skipped

    def _build_entries(self, archive: MizArchive, data: MizData, target: str,
                       new_mission_raw: str, new_dictionary_raw: str) -> List[Tuple[str, bytes]]:
        names = archive.list_entries()
        target_prefix = f"l10n/{target}/"
        target_dictionary = f"{target_prefix}dictionary"
        default_dictionary = f"l10n/{DEFAULT_LOCALE}/dictionary"
        dictionary_bytes = encode_entry(new_dictionary_raw,
                                        data.encodings.get(default_dictionary, 'utf-8'),
                                        target_dictionary, self.verbose)

        entries = []
        for name in names:
            if name == MISSION_ENTRY and new_mission_raw != data.mission_raw:
                entries.append((name, encode_entry(new_mission_raw, data.encodings[MISSION_ENTRY],
                                                   name, self.verbose)))
            elif name == target_dictionary:
                entries.append((name, dictionary_bytes))
            else:
                entries.append((name, archive.read_entry(name)))

        if target_dictionary not in names:
            entries.append((target_dictionary, dictionary_bytes))

        # A new locale gets the DEFAULT resources (briefing images, sounds, mapResource)
        if not any(name.startswith(target_prefix) for name in names):
            default_prefix = f"l10n/{DEFAULT_LOCALE}/"
            for name in names:
                if not name.startswith(default_prefix) or name == default_dictionary or name.endswith('/'):
                    continue
                entries.append((target_prefix + name[len(default_prefix):], archive.read_entry(name)))
                if self.verbose:
                    print(f" ✓ Copied {name} to {target} locale")
        return entries

    # --- Machine translation ---
    def auto_translate(self, result: ExtractionResult, src_lang: str, dest_lang: str) -> ExtractionResult:
        """Replace every item's text with a machine translation, keyed by context."""
        if self.llm_translator is None:
            self.llm_translator = LLMTranslator(config=self.config)

        mapping = {item.context: item.text for item in result.items()}
        translated = self.llm_translator.translate_mapping(
            mapping, src_lang, dest_lang, context="DCS World mission briefing, trigger and radio text",
            show_progress=self.verbose)

        extracted = {
            category: [replace(item, text=translated.get(item.context, item.text)) for item in items]
            for category, items in result.extracted.items()
        }
        return replace(result, extracted=extracted, stats=compute_stats(extracted))

    # --- Files ---
    def extract_to_file(self, miz_path: str, output_path: Optional[str] = None, mode: str = 'auto',
                        preferred_locale: str = DEFAULT_LOCALE,
                        translate_to: Optional[Tuple[str, str]] = None) -> str:
        """
        Export the exchange text of a mission file.

        translate_to=(src_lang, dest_lang) pre-translates the text with the LLM.
        """
        miz_file = Path(miz_path)
        output_path = output_path or str(Path("extracted") / f"{miz_file.stem}_{preferred_locale.upper()}.txt")

        with open(miz_file, 'rb') as f:
            archive_bytes = f.read()
        result = self.extract(archive_bytes, mode, preferred_locale)

        stats = result.stats
        print(f" ✓ Extracted {stats.total_strings} strings ({stats.unique_strings} unique) "
              f"from {result.source if result.source != 'none' else 'briefing only'}")
        for category, count in stats.by_category.items():
            print(f"   {category}: {count}")
        for warning in result.validation.warnings:
            print(f" ⚠️ {warning}")
        for error in result.validation.errors:
            print(f" ✗ {error}")

        if translate_to:
            result = self.auto_translate(result, *translate_to)

        write_exchange_file(output_path, format_as_text(result))
        print(f" ✓ Text written to: {output_path}")
        return output_path

    def import_from_file(self, miz_path: str, text_path: str, target_locale: str,
                         output_path: Optional[str] = None) -> str:
        """Import an edited exchange file and write the translated mission."""
        miz_file = Path(miz_path)
        target = normalize_locale(target_locale)
        output_path = output_path or str(Path("translated") / f"{miz_file.stem}_{target}{miz_file.suffix}")

        with open(miz_file, 'rb') as f:
            archive_bytes = f.read()
        exchange_text = read_exchange_file(text_path)

        with tqdm(total=100, desc="Importing", unit="%") as bar:
            def on_progress(percent: int, label: str):
                bar.set_postfix_str(label)
                bar.update(percent - bar.n)

            result = self.import_to_miz(archive_bytes, exchange_text, target, on_progress,
                                        return_report=True)

        print(f" ✓ {len(result.applied)} dictionary keys and "
              f"{len(result.briefings)} briefing fields translated")
        # Verbose runs already listed them
        if not self.verbose:
            for warning in result.warnings:
                print(f" ⚠️ {warning}")

        if os.path.exists(output_path):
            create_backup(output_path)
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'wb') as f:
            f.write(result.output)
        print(f" ✓ Translated mission written to: {output_path}")
        return output_path


def import_to_miz(archive_bytes: bytes, exchange_text: str, target_locale: str,
                  on_progress: Optional[ProgressCallback] = None,
                  return_report: bool = False) -> Union[bytes, ImportReport]:
    """Shortcut for MizTranslator().import_to_miz with default settings."""
    return MizTranslator().import_to_miz(archive_bytes, exchange_text, target_locale, on_progress,
                                         return_report)

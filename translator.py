"""
translator.py
DCS World Mission Translation Tool
Extracts briefing, trigger and radio text from .miz files and imports
translations back as a new l10n locale.
"""

import subprocess
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from config_manager import ConfigManager
from miz_translator import MizFormatError, MizTranslator, read_exchange_file
from luaparser import EscapeError, ParseError
from stringextractor import MODES
from textexchange import parse_imported_text

# Languages offered for machine pre-translation
LANGUAGES = [
    'english', 'russian', 'german', 'french', 'spanish',
    'chinese', 'japanese', 'korean', 'czech',
]


def open_with_notepad(file_path: str):
    """Open file with notepad."""
    try:
        subprocess.Popen(['notepad.exe', file_path])
        print(f" ✓ Opened {file_path} in Notepad")
    except OSError as e:
        print(f" ⚠️ Could not open Notepad: {e}")


def ask_yes_no(prompt: str, default: bool = True) -> bool:
    suffix = "[y]" if default else "[n]"
    answer = input(f"{prompt} (y/n) {suffix}: ").strip().lower()
    if not answer:
        return default
    return answer in ('y', 'yes')


def list_missions(mission_dir: Path) -> List[Path]:
    """Return available .miz missions inside mission_dir."""
    if not mission_dir.exists():
        mission_dir.mkdir(parents=True, exist_ok=True)
    return sorted([p for p in mission_dir.glob("*.miz") if p.is_file()])


def choose_mission(mission_dir: Path = Path("missions")) -> Optional[str]:
    """Pick a mission from the missions/ folder or take a custom path."""
    available = list_missions(mission_dir)
    path = None
    if available:
        print(f"\nAvailable missions in '{mission_dir}/' folder:")
        for idx, mission_path in enumerate(available, start=1):
            print(f"  {idx}) {mission_path.name}")
        print("  0) Provide custom path")

        while True:
            selection = input("Select mission (number) or enter custom path: ").strip()
            if not selection:
                path = str(available[0])
                break
            if selection.isdigit():
                index = int(selection)
                if index == 0:
                    break
                if 1 <= index <= len(available):
                    path = str(available[index - 1])
                    break
            else:
                path = selection
                break
            print("Invalid selection. Try again.")

    if path is None:
        path = input("\nEnter path to .miz mission file: ").strip()

    path = path.strip().strip('"') if path else ""
    if not path:
        return None
    if not Path(path).exists():
        print(f" ✗ Error: {path} not found!")
        return None
    return path


def show_language_menu() -> Tuple[str, str]:
    """Display language selection menu."""
    print("\n" + "=" * 70)
    print("LANGUAGE SELECTION")
    print("=" * 70)
    langs = LANGUAGES
    for i, lang in enumerate(langs, 1):
        print(f"  {i}) {lang.title()}")

    def get_choice(prompt):
        while True:
            try:
                choice = int(input(prompt))
                if 1 <= choice <= len(langs):
                    return langs[choice - 1]
            except ValueError:
                pass
            print("Invalid selection.")

    src = get_choice(f"Select SOURCE language (1-{len(langs)}): ")
    dest = get_choice(f"Select DESTINATION language (1-{len(langs)}): ")
    return src, dest


def extraction_mode(translator: MizTranslator, config: ConfigManager, auto: bool = False):
    print("--- AUTO-TRANSLATE MODE ---" if auto else "--- EXTRACTION MODE ---")
    miz_path = choose_mission()
    if not miz_path:
        return

    default_locale = config.get_setting('General', 'preferred_locale', 'DEFAULT')
    locale = input(f"Source locale [{default_locale}]: ").strip().upper() or default_locale
    default_mode = config.get_setting('General', 'mode', 'auto')
    mode = input(f"Mode ({'/'.join(MODES)}) [{default_mode}]: ").strip().lower() or default_mode
    if mode not in MODES:
        print(f" ✗ Unknown mode: {mode}")
        return

    translate_to = None
    if auto:
        src, dest = show_language_menu()
        translate_to = (src, dest)

    output_path = translator.extract_to_file(miz_path, mode=mode, preferred_locale=locale,
                                             translate_to=translate_to)

    print("=" * 70)
    print(" EXTRACTION COMPLETE")
    print("=" * 70)
    print(" Next steps:")
    print(" 1. Translate the text after each key, keep the keys unchanged")
    print(" 2. Run import mode with the edited file")
    print()
    if ask_yes_no("Open in Notepad?", default=False):
        open_with_notepad(output_path)


def import_mode(translator: MizTranslator, config: ConfigManager):
    print("--- IMPORT MODE ---")
    miz_path = choose_mission()
    if not miz_path:
        return

    default_text = str(Path("extracted") / f"{Path(miz_path).stem}_DEFAULT.txt")
    text_path = input(f"Translated text file [{default_text}]: ").strip().strip('"') or default_text
    if not Path(text_path).exists():
        print(f" ✗ Error: {text_path} not found!")
        return

    imported = parse_imported_text(read_exchange_file(text_path))
    print(f" ✓ {len(imported.key_mappings)} keyed lines "
          f"({len(imported.briefings)} briefing, {len(imported.triggers)} trigger, "
          f"{len(imported.radio)} radio)")

    default_target = config.get_setting('General', 'target_locale', 'RU')
    target = input(f"Target locale [{default_target}]: ").strip() or default_target
    translator.import_from_file(miz_path, text_path, target)
    print(f"\n✅ Import complete! Select the {target.upper()} language in DCS to see it.")


def info_mode(translator: MizTranslator):
    print("--- MISSION INFO ---")
    miz_path = choose_mission()
    if not miz_path:
        return
    with open(miz_path, 'rb') as f:
        data = translator.parse(f.read())
    print(f" ✓ Available locales: {', '.join(data.available_locales) or 'none'}")
    for locale, error in data.unavailable_locales.items():
        print(f" ⚠️ {locale}: {error}")
    for name, encoding in data.encodings.items():
        print(f"   {name}: {encoding}")


def main():
    """Interactive console interface."""
    config = ConfigManager()
    config.load_settings()
    translator = MizTranslator(config=config, verbose=True)

    print("=" * 70)
    print(" DCS World Mission Translation Tool")
    print("=" * 70)
    print()

    while True:
        print("Available modes:")
        print(" 1) extract   - Extract briefing, trigger and radio text")
        print(" 2) import    - Import translated text as a new locale")
        print(" 3) auto      - Extract and pre-translate with an LLM")
        print(" 4) info      - Show mission locales")
        print(" 5) quit      - Exit")
        print()

        mode = input("Select mode (1-5): ").strip().lower()

        if mode in ('5', 'quit', 'exit', 'q'):
            print("👋 Goodbye!")
            break

        try:
            if mode in ('1', 'extract'):
                extraction_mode(translator, config)
            elif mode in ('2', 'import'):
                import_mode(translator, config)
            elif mode in ('3', 'auto'):
                extraction_mode(translator, config, auto=True)
            elif mode in ('4', 'info'):
                info_mode(translator)
            else:
                print("❌ Invalid mode.")
        except (MizFormatError, ParseError, EscapeError, OSError) as e:
            print(f"❌ {e}")


if __name__ == "__main__":
    sys.exit(main())

"""
LLM Translator Module
Pre-translates mission text through OpenAI-compatible APIs (OpenAI, OpenRouter, etc.)
"""

import os
import json
from typing import Dict, List, Optional

from openai import OpenAI
from tqdm import tqdm

from config_manager import ConfigManager

SYSTEM_PROMPT = """You are a professional translator for DCS World flight simulator missions.
Translate the values of the JSON object from {src_lang} to {dest_lang}.
Keep the keys exactly as given. Keep radio callsigns, waypoint and grid references,
frequencies, aircraft designations and line breaks unchanged.
Return ONLY a JSON object with the same keys."""


class LLMTranslator:
    def __init__(self, api_key: str = None, base_url: str = None, model: str = None,
                 config: Optional[ConfigManager] = None, client=None, batch_size: int = 40):
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.config = config
        self.batch_size = batch_size
        self.client = client

        if self.client is not None:
            self.model = self.model or "gpt-3.5-turbo"
            return

        # Try to load from environment or config if not provided
        if not self.api_key or not self.model:
            self._load_config()
        self.model = self.model or "gpt-3.5-turbo"

        if self.api_key:
            self.client = OpenAI(api_key=self.api_key, base_url=self.base_url or None)
            print(f"✓ LLM Translator initialized (Model: {self.model})")
        else:
            print("⚠️ No API key found for LLM Translator.")

    def _load_config(self):
        """Load configuration from environment variables, then config.ini."""
        self.api_key = self.api_key or os.getenv("OPENAI_API_KEY") or os.getenv("OPENROUTER_API_KEY")
        self.base_url = self.base_url or os.getenv("OPENAI_BASE_URL") or os.getenv("OPENROUTER_BASE_URL")

        config = self.config or ConfigManager()
        if not self.api_key:
            self.api_key = config.get_setting('LLM', 'api_key') or None
        if not self.base_url:
            self.base_url = config.get_setting('LLM', 'base_url') or None
        if not self.model:
            self.model = config.get_setting('LLM', 'model') or None

    @staticmethod
    def _parse_response(content: str) -> Optional[Dict]:
        # Sometimes models wrap JSON in markdown code blocks
        if "```json" in content:
            content = content.split("```json")[1].split("```")[0].strip()
        elif "```" in content:
            content = content.split("```")[1].split("```")[0].strip()
        try:
            result = json.loads(content)
        except json.JSONDecodeError:
            print(f"⚠️ Failed to parse LLM response as JSON: {content[:100]}...")
            return None
        if not isinstance(result, dict):
            print("⚠️ Unexpected JSON structure from LLM")
            return None
        return result

    def translate_batch(self, batch: Dict[str, str], src_lang: str, dest_lang: str,
                        context: str = "") -> Dict[str, str]:
        """
        Translate one batch of keyed texts.

        Args:
            batch: Context key -> source text
            src_lang: Source language
            dest_lang: Destination language
            context: Optional notes about the mission

        Returns:
            Context key -> translated text. Keys missing from the reply, or
            whose value is not a string, keep their source text.
        """
        if not self.client or not batch:
            return dict(batch)

        system_prompt = SYSTEM_PROMPT.format(src_lang=src_lang, dest_lang=dest_lang)
        if context:
            system_prompt += f"\nContext: {context}"

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": json.dumps(batch, ensure_ascii=False)}
                ],
                temperature=0.3,
                response_format={"type": "json_object"}
            )
            content = response.choices[0].message.content or ""
        except Exception as e:
            # Network and API errors: leave this batch untranslated
            print(f"❌ LLM Translation Error: {e}")
            return dict(batch)

        result = self._parse_response(content)
        if result is None:
            return dict(batch)

        translated = {}
        for key, source in batch.items():
            value = result.get(key)
            translated[key] = value if isinstance(value, str) else source
        unknown = [key for key in result if key not in batch]
        if unknown:
            print(f"⚠️ Ignoring {len(unknown)} unexpected keys in LLM response")
        return translated

    def translate_mapping(self, mapping: Dict[str, str], src_lang: str, dest_lang: str,
                          context: str = "", show_progress: bool = True) -> Dict[str, str]:
        """Translate a whole context -> text mapping in batches."""
        keys = list(mapping)
        batches: List[Dict[str, str]] = [
            {key: mapping[key] for key in keys[i:i + self.batch_size]}
            for i in range(0, len(keys), self.batch_size)
        ]
        translated: Dict[str, str] = {}
        for batch in tqdm(batches, desc="Translating", unit="batch", disable=not show_progress):
            translated.update(self.translate_batch(batch, src_lang, dest_lang, context))
        return translated

    def translate_text(self, text: str, src_lang: str, dest_lang: str) -> str:
        """Translate a single string."""
        return self.translate_batch({"text": text}, src_lang, dest_lang).get("text", text)

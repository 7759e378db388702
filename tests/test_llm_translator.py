"""Tests for LLM pre-translation with a stub client."""

import json
from types import SimpleNamespace

from llm_translator import LLMTranslator


class StubCompletions:
    def __init__(self, replies):
        self.replies = list(replies)
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            reply = reply(json.loads(kwargs['messages'][1]['content']))
        message = SimpleNamespace(content=reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_translator(*replies, batch_size=40):
    completions = StubCompletions(replies)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return LLMTranslator(model='test-model', client=client, batch_size=batch_size), completions


def upper_values(batch):
    return json.dumps({key: text.upper() for key, text in batch.items()}, ensure_ascii=False)


def test_keys_are_kept_exactly():
    """Should return one translation per sent key."""
    translator, completions = make_translator(upper_values)
    batch = {'DictKey_ActionText_1': 'Check in.', 'mission.trig.actions[2]#2': 'Go.'}
    assert translator.translate_batch(batch, 'english', 'russian') == {
        'DictKey_ActionText_1': 'CHECK IN.', 'mission.trig.actions[2]#2': 'GO.',
    }
    request = completions.requests[0]
    assert request['model'] == 'test-model'
    assert 'english' in request['messages'][0]['content']


def test_missing_and_non_string_values_keep_source():
    """Should fall back to the source text for keys the reply lacks."""
    translator, _ = make_translator(json.dumps({'a': 'A', 'b': 5}))
    assert translator.translate_batch({'a': 'x', 'b': 'y', 'c': 'z'}, 'en', 'ru') == {
        'a': 'A', 'b': 'y', 'c': 'z',
    }


def test_unexpected_keys_are_ignored(capsys):
    """Should drop keys that were never sent."""
    translator, _ = make_translator(json.dumps({'a': 'A', 'extra': 'E'}))
    assert translator.translate_batch({'a': 'x'}, 'en', 'ru') == {'a': 'A'}
    assert 'unexpected keys' in capsys.readouterr().out


def test_code_fences_are_stripped():
    """Should read JSON wrapped in a markdown code block."""
    translator, _ = make_translator('```json\n{"a": "A"}\n```')
    assert translator.translate_batch({'a': 'x'}, 'en', 'ru') == {'a': 'A'}


def test_api_error_returns_source(capsys):
    """Should leave the batch untranslated when the request fails."""
    translator, _ = make_translator(RuntimeError('rate limited'))
    assert translator.translate_batch({'a': 'x'}, 'en', 'ru') == {'a': 'x'}
    assert 'rate limited' in capsys.readouterr().out


def test_unparseable_reply_returns_source():
    """Should leave the batch untranslated when the reply is not a JSON object."""
    translator, _ = make_translator('["A"]')
    assert translator.translate_batch({'a': 'x'}, 'en', 'ru') == {'a': 'x'}


def test_mapping_is_sent_in_batches():
    """Should split large mappings and merge the replies."""
    translator, completions = make_translator(upper_values, upper_values, upper_values, batch_size=2)
    mapping = {f'DictKey_ActionText_{i}': f'text {i}' for i in range(5)}

    translated = translator.translate_mapping(mapping, 'en', 'ru', show_progress=False)

    assert translated == {key: text.upper() for key, text in mapping.items()}
    assert list(translated) == list(mapping)
    assert len(completions.requests) == 3


def test_translate_text():
    """Should translate a single string."""
    translator, _ = make_translator(upper_values)
    assert translator.translate_text('roger', 'en', 'ru') == 'ROGER'


def test_no_client_returns_source(monkeypatch, tmp_path):
    """Should pass text through unchanged when no API key is configured."""
    monkeypatch.chdir(tmp_path)
    for name in ('OPENAI_API_KEY', 'OPENROUTER_API_KEY', 'OPENAI_BASE_URL', 'OPENROUTER_BASE_URL'):
        monkeypatch.delenv(name, raising=False)
    translator = LLMTranslator()
    assert translator.client is None
    assert translator.translate_mapping({'a': 'x'}, 'en', 'ru', show_progress=False) == {'a': 'x'}

"""
Insight and chat requests forwarded to the hosted Gemini model.

Both calls are single request/response round trips: no retries, no backoff.
Any failure on the way comes back as an ``AssistantError``.
"""
import json
import logging

import requests
from flask import current_app

from errors import AssistantError, ValidationError

log = logging.getLogger(__name__)

GEMINI_URL = 'https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent'

ANALYZE_PROMPT = """
You are a business advisor for a small Indian shopkeeper.
Analyze the following transactions and provide insights.

Transactions:
{transactions}

Return a JSON object with exactly these two keys:
- "english_insight": A simple, actionable business insight in English (max 2 sentences).
- "telugu_insight": The same insight translated into simple Telugu.

Do not include markdown code blocks. Just the JSON string.
"""

CHAT_PROMPT = """
You are 'Lekka', a smart AI business assistant for a small Indian shopkeeper.

Here is the shop's recent transaction data:
{transactions}

Instructions:
1. Answer questions about sales, expenses, and profits based on this data.
2. If the user asks something not in the data, explain politely.
3. Keep answers concise, simple, and friendly (like a manager talking to the owner).
4. If helpful, mention specific numbers or dates.
5. Support Hinglish/Telugu if the user asks, but default to English.
"""

CHAT_ACK = 'Understood. I am Lekka, ready to help with the business data.'


def _generate(contents):
    api_key = current_app.config.get('GEMINI_API_KEY')
    if not api_key:
        raise AssistantError('Gemini API Key not configured', status=500)
    url = GEMINI_URL.format(model=current_app.config.get('GEMINI_MODEL', 'gemini-1.5-flash'))
    try:
        resp = requests.post(
            url,
            params={'key': api_key},
            json={'contents': contents},
            headers={'Content-Type': 'application/json'},
            timeout=current_app.config.get('GEMINI_TIMEOUT', 30),
        )
        resp.raise_for_status()
        body = resp.json()
        return body['candidates'][0]['content']['parts'][0]['text']
    except requests.exceptions.RequestException as e:
        log.error('Gemini request failed: %s', e)
        raise AssistantError('The AI service is unavailable right now.') from e
    except (ValueError, KeyError, IndexError, TypeError) as e:
        log.error('Unexpected Gemini response: %s', e)
        raise AssistantError('The AI service returned an unexpected response.') from e


def strip_code_fences(text):
    # Gemini sometimes wraps JSON in markdown fences despite being asked not to
    return text.replace('```json', '').replace('```', '').strip()


def analyze(transactions):
    """Return an English insight and its Telugu translation."""
    if not transactions:
        raise ValidationError('transactions', 'No transactions provided')
    prompt = ANALYZE_PROMPT.format(transactions=json.dumps(transactions))
    text = _generate([{'role': 'user', 'parts': [{'text': prompt}]}])
    try:
        insights = json.loads(strip_code_fences(text))
    except ValueError as e:
        log.error('Gemini insight was not JSON: %r', text[:200])
        raise AssistantError('Failed to analyze data') from e
    if not isinstance(insights, dict):
        raise AssistantError('Failed to analyze data')
    return {
        'english_insight': insights.get('english_insight', ''),
        'telugu_insight': insights.get('telugu_insight', ''),
    }


def chat(messages, transactions=None):
    """Answer the last message in ``messages`` with the shop data as context."""
    if not messages:
        raise ValidationError('messages', 'No messages provided')
    if not isinstance(messages, list) or not all(isinstance(m, dict) for m in messages):
        raise ValidationError('messages', 'Messages must be a list of {role, content} objects')
    context = json.dumps(transactions) if transactions else 'No transaction data available yet.'
    history = [{
        'role': 'user' if m.get('role') == 'user' else 'model',
        'parts': [{'text': str(m.get('content', ''))}],
    } for m in messages]
    contents = [
        {'role': 'user', 'parts': [{'text': f'System Context: {CHAT_PROMPT.format(transactions=context)}'}]},
        {'role': 'model', 'parts': [{'text': CHAT_ACK}]},
        *history,
    ]
    return {'role': 'assistant', 'content': _generate(contents)}

"""Free-text check-in reply parsing through OpenAI chat completions.

We call the HTTP API directly with `requests` rather than the `openai` SDK
so the request shape, timeouts and retry policy stay under our control.
"""

import json
import random
import time

import requests
from flask import current_app

from ..errors import ClassificationError
from .evidence import ParsedResponse, SOURCE_FREE_TEXT, CONFIDENCE_LEVELS
from .risk import RiskLevel

CHAT_URL = 'https://api.openai.com/v1/chat/completions'

SYSTEM_PROMPT = """You are analyzing email responses from job candidates to determine their current employment status. Your task is to extract structured information from their reply.

You MUST return ONLY valid JSON with this exact structure (no markdown, no other text):
{{
  "status": "hired_there" | "hired_elsewhere" | "interviewing" | "offer" | "rejected" | "withdrew" | "still_looking" | "no_response" | "unclear",
  "companyMentioned": "company name or null",
  "isIntroducedCompany": true | false | null,
  "employmentType": "full_time" | "contractor" | "part_time" | "unknown" | null,
  "startDateMentioned": "extracted date string or relative time like 'last month' or null",
  "salaryMentioned": "extracted salary info or null",
  "roleTitleMentioned": "job title they got or null",
  "confidence": "high" | "medium" | "low",
  "riskLevel": "HIGH" | "MEDIUM" | "LOW" | "CLEAR",
  "riskReason": "explanation of risk assessment, or null if CLEAR/LOW",
  "suggestedAction": "what the admin should do next",
  "summary": "1-2 sentence summary of the candidate's situation"
}}

STATUS DEFINITIONS:
- "hired_there": Candidate says they were hired at the introduced company ({company})
- "hired_elsewhere": Candidate got a job at a DIFFERENT company
- "interviewing": Still in interview process (at any company)
- "offer": Received an offer but hasn't accepted yet
- "rejected": Company declined to move forward with them
- "withdrew": Candidate withdrew their application
- "still_looking": Still job searching, no significant updates
- "no_response": Candidate mentions never hearing back
- "unclear": Cannot determine status from the message

RISK LEVEL RULES:
- "HIGH": Candidate explicitly mentions working at/starting at {company}. This is potential fee circumvention.
- "MEDIUM": Ambiguous response that could indicate employment at introduced company, OR mentions offer/hiring without clear company name
- "LOW": Candidate is still looking, interviewing, or clearly not hired at introduced company
- "CLEAR": Candidate clearly rejected, withdrew, or was hired elsewhere

The candidate was introduced to: {company}
If they mention being hired at this specific company (or similar names/variations), this is HIGH risk and potential fee circumvention."""

USER_PROMPT = 'Candidate email reply:\n"""\n{reply}\n"""\n\nAnalyze this response and extract employment status. Remember to return ONLY valid JSON.'

_RETRYABLE = {429, 500, 502, 503, 504}


def _retry_wait(resp, backoff):
    ra = resp.headers.get('Retry-After') if resp is not None else None
    if ra:
        try:
            return float(ra)
        except ValueError:
            # HTTP-date form; fall back to our own backoff
            pass
    return backoff


def _chat(body):
    """POST to chat completions with bounded retries; returns the JSON body."""
    cfg = current_app.config
    headers = {'Authorization': f"Bearer {cfg['OPENAI_API_KEY']}", 'Content-Type': 'application/json'}
    max_attempts = cfg.get('OPENAI_MAX_ATTEMPTS', 4)
    backoff = 1.0
    last_error = None
    for attempt in range(1, max_attempts + 1):
        try:
            r = requests.post(CHAT_URL, headers=headers, json=body, timeout=cfg.get('OPENAI_TIMEOUT', 30))
        except requests.exceptions.RequestException as e:
            last_error = f'network error: {e}'
            wait = backoff
        else:
            if r.status_code < 400:
                return r.json()
            body_text = r.text or ''
            if r.status_code == 429 and 'insufficient_quota' in body_text:
                current_app.logger.error('OpenAI quota exhausted; body=%s', body_text[:1000])
                raise ClassificationError('AI parsing unavailable: quota exhausted')
            if r.status_code not in _RETRYABLE:
                current_app.logger.error('OpenAI HTTP error %s: %s', r.status_code, body_text[:1000])
                raise ClassificationError(f'AI parsing failed with HTTP {r.status_code}')
            last_error = f'HTTP {r.status_code}'
            wait = _retry_wait(r, backoff)
        if attempt == max_attempts:
            break
        current_app.logger.warning('OpenAI request failed (%s), attempt %d/%d, retrying in %.1fs',
                                   last_error, attempt, max_attempts, wait)
        time.sleep(wait + random.uniform(0, 0.5))
        backoff *= 2
    raise ClassificationError(f'AI parsing failed after {max_attempts} attempts: {last_error}')


def _to_parsed(data, raw_text, now=None):
    level = data.get('riskLevel')
    try:
        risk = RiskLevel(level)
    except ValueError:
        risk = RiskLevel.MEDIUM
    confidence = data.get('confidence')
    if confidence not in CONFIDENCE_LEVELS:
        confidence = 'low'
    return ParsedResponse(
        status=data.get('status') or 'unclear',
        risk_level=risk,
        risk_reason=data.get('riskReason') or '',
        source=SOURCE_FREE_TEXT,
        summary=data.get('summary') or 'Response parsed',
        suggested_action=data.get('suggestedAction') or 'Review response manually',
        confidence=confidence,
        message=raw_text,
        submitted_at=now.isoformat() if now else None,
        start_date_mentioned=data.get('startDateMentioned'),
        role_title_mentioned=data.get('roleTitleMentioned'),
        salary_mentioned=data.get('salaryMentioned'),
        company_mentioned=data.get('companyMentioned'),
        is_introduced_company=data.get('isIntroducedCompany'),
        employment_type=data.get('employmentType'),
    )


def parse_check_in_response(text: str, employer_name: str, now=None) -> ParsedResponse:
    """Turn a candidate's free-text reply into a ``ParsedResponse``.

    Raises ``ClassificationError`` when the AI is not configured, unreachable,
    or returns something that is not a JSON object. There is no fallback
    classification.
    """
    cfg = current_app.config
    if not cfg.get('OPENAI_API_KEY'):
        raise ClassificationError('AI parsing unavailable: OPENAI_API_KEY is not configured')

    company = employer_name or 'the introduced company'
    body = {
        'model': cfg.get('OPENAI_MODEL', 'gpt-4o-mini'),
        'messages': [
            {'role': 'system', 'content': SYSTEM_PROMPT.format(company=company)},
            {'role': 'user', 'content': USER_PROMPT.format(reply=text)},
        ],
        'response_format': {'type': 'json_object'},
        'temperature': 0.1,
        'max_tokens': 500,
    }
    jr = _chat(body)
    try:
        content = jr['choices'][0]['message']['content']
        data = json.loads(content)
    except (KeyError, IndexError, TypeError, ValueError) as e:
        current_app.logger.error('OpenAI returned an unusable completion: %s', str(jr)[:1000])
        raise ClassificationError('AI parsing returned an unreadable result') from e
    if not isinstance(data, dict):
        raise ClassificationError('AI parsing returned an unreadable result')
    return _to_parsed(data, text, now)

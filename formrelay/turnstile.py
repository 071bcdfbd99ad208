# formrelay/turnstile.py

import logging

import requests

VERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"

ERROR_MESSAGES = {
    'missing-input-secret': 'Secret key missing',
    'invalid-input-secret': 'Secret key invalid',
    'missing-input-response': 'Token missing',
    'invalid-input-response': 'Token invalid or expired',
    'timeout-or-duplicate': 'Token already used or expired',
    'internal-error': 'Cloudflare internal error',
}


class TurnstileError(Exception):
    """Raised when the verification request itself could not be completed."""


class TurnstileVerifier:
    def __init__(self, verify_url=VERIFY_URL, timeout=10, session=None):
        """Initializes the verifier."""
        self.verify_url = verify_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def verify(self, secret, token, remote_ip=None):
        """
        Checks a Turnstile token against Cloudflare's siteverify endpoint.

        Returns a dict with 'success' and 'error_codes'. Network failures and
        unusable responses raise TurnstileError.
        """
        payload = {'secret': secret, 'response': token}
        if remote_ip:
            payload['remoteip'] = remote_ip

        try:
            response = self.session.post(self.verify_url, data=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TurnstileError(f"Turnstile request failed: {e}") from e

        if response.status_code != 200:
            raise TurnstileError(f"Turnstile API returned status {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise TurnstileError(f"Turnstile API returned invalid JSON: {e}") from e

        result = {
            'success': bool(data.get('success')),
            'error_codes': list(data.get('error-codes') or []),
        }
        if not result['success']:
            logging.warning(f"Turnstile verification failed: {describe_errors(result['error_codes'])}")
        return result


def describe_errors(error_codes):
    """Converts Turnstile error codes to readable text."""
    if not error_codes:
        return 'no error codes returned'
    return '; '.join(ERROR_MESSAGES.get(code, f"Unknown error: {code}") for code in error_codes)

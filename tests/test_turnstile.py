import unittest
from unittest.mock import MagicMock

import requests

from formrelay.turnstile import TurnstileVerifier, TurnstileError, VERIFY_URL, describe_errors

class TestTurnstileVerifier(unittest.TestCase):
    def setUp(self):
        self.session = MagicMock()
        self.verifier = TurnstileVerifier(session=self.session)

    def respond(self, status_code=200, payload=None):
        response = MagicMock()
        response.status_code = status_code
        response.json.return_value = payload if payload is not None else {}
        self.session.post.return_value = response

    def test_success(self):
        self.respond(payload={'success': True})
        result = self.verifier.verify('secret', 'token', '203.0.113.7')
        self.assertEqual(result, {'success': True, 'error_codes': []})
        self.session.post.assert_called_once_with(
            VERIFY_URL,
            data={'secret': 'secret', 'response': 'token', 'remoteip': '203.0.113.7'},
            timeout=10
        )

    def test_failure_reports_error_codes(self):
        self.respond(payload={'success': False, 'error-codes': ['invalid-input-response']})
        result = self.verifier.verify('secret', 'token')
        self.assertFalse(result['success'])
        self.assertEqual(result['error_codes'], ['invalid-input-response'])
        sent = self.session.post.call_args.kwargs['data']
        self.assertNotIn('remoteip', sent)

    def test_network_error_raises(self):
        self.session.post.side_effect = requests.exceptions.Timeout("timed out")
        with self.assertRaises(TurnstileError):
            self.verifier.verify('secret', 'token')

    def test_bad_status_raises(self):
        self.respond(status_code=502)
        with self.assertRaises(TurnstileError):
            self.verifier.verify('secret', 'token')

    def test_invalid_json_raises(self):
        self.respond()
        self.session.post.return_value.json.side_effect = ValueError("no json")
        with self.assertRaises(TurnstileError):
            self.verifier.verify('secret', 'token')

    def test_describe_errors(self):
        self.assertEqual(describe_errors(['timeout-or-duplicate']), 'Token already used or expired')
        self.assertEqual(describe_errors(['bogus']), 'Unknown error: bogus')
        self.assertEqual(describe_errors([]), 'no error codes returned')

if __name__ == '__main__':
    unittest.main()

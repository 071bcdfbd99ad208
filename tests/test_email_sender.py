import smtplib
import unittest
from unittest.mock import patch

from formrelay.email_sender import build_message, send_submission_email

SMTP_CONFIG = {
    'host': 'smtp.example.test',
    'port': 587,
    'auth': {'user': 'relay@example.test', 'pass': 'pw'},
    'from': 'relay@example.test'
}
RECIPIENT = {'to': 'sales@acme.test', 'subjectPrefix': '[ACME]'}
SUBMISSION = {'name': 'Jo', 'email': 'jo@x.com', 'message': 'hi'}

class TestBuildMessage(unittest.TestCase):
    def test_headers(self):
        msg = build_message(SMTP_CONFIG, RECIPIENT, SUBMISSION, "<p>Jo</p>")
        self.assertEqual(msg['From'], 'Jo <relay@example.test>')
        self.assertEqual(msg['To'], 'sales@acme.test')
        self.assertEqual(msg['Subject'], '[ACME] New Lead from Jo')
        self.assertEqual(msg['Reply-To'], 'jo@x.com')
        self.assertIn("<p>Jo</p>", msg.get_body(preferencelist=('html',)).get_content())

    def test_reply_to_keeps_unusual_valid_addresses(self):
        for address in ("o'neil@example.com", "jo@localhost", "jo@x.museum"):
            msg = build_message(SMTP_CONFIG, RECIPIENT, {'name': 'Jo', 'email': address}, "<p></p>")
            self.assertEqual(msg['Reply-To'], address)

    def test_header_injection_skips_reply_to(self):
        submission = {'name': 'Jo', 'email': 'jo@x.com\r\nBcc: victim@x.com'}
        msg = build_message(SMTP_CONFIG, RECIPIENT, submission, "<p></p>")
        self.assertIsNone(msg['Reply-To'])
        self.assertIsNone(msg['Bcc'])

    def test_no_email_skips_reply_to(self):
        msg = build_message(SMTP_CONFIG, RECIPIENT, {'name': 'Jo', 'email': '  '}, "<p></p>")
        self.assertIsNone(msg['Reply-To'])

    def test_missing_name_uses_default(self):
        msg = build_message(SMTP_CONFIG, {'to': 'sales@acme.test'}, {}, "<p></p>")
        self.assertEqual(msg['Subject'], 'New Lead from Anonymous')


class TestSendSubmissionEmail(unittest.TestCase):
    @patch('formrelay.email_sender.smtplib.SMTP')
    def test_success(self, mock_smtp):
        server = mock_smtp.return_value
        result = send_submission_email(SMTP_CONFIG, RECIPIENT, SUBMISSION, "<p>Jo</p>")

        self.assertEqual(result['status'], 'Success')
        self.assertTrue(result['timestamp'])
        mock_smtp.assert_called_once_with('smtp.example.test', 587, timeout=30)
        server.starttls.assert_called_once()
        connection = server.__enter__.return_value
        connection.login.assert_called_once_with('relay@example.test', 'pw')
        connection.send_message.assert_called_once()
        sent = connection.send_message.call_args.args[0]
        self.assertEqual(sent['Reply-To'], 'jo@x.com')

    @patch('formrelay.email_sender.smtplib.SMTP_SSL')
    def test_secure_connection(self, mock_smtp_ssl):
        config = dict(SMTP_CONFIG, port=465, secure=True)
        result = send_submission_email(config, RECIPIENT, SUBMISSION, "<p></p>")
        self.assertEqual(result['status'], 'Success')
        self.assertEqual(mock_smtp_ssl.call_args.args, ('smtp.example.test', 465))

    @patch('formrelay.email_sender.smtplib.SMTP')
    def test_authentication_error(self, mock_smtp):
        connection = mock_smtp.return_value.__enter__.return_value
        connection.login.side_effect = smtplib.SMTPAuthenticationError(535, b'bad credentials')
        result = send_submission_email(SMTP_CONFIG, RECIPIENT, SUBMISSION, "<p></p>")
        self.assertEqual(result['status'], 'Failed')
        self.assertIn('Authentication error', result['reason'])

    @patch('formrelay.email_sender.smtplib.SMTP')
    def test_connection_error(self, mock_smtp):
        mock_smtp.side_effect = ConnectionRefusedError("refused")
        result = send_submission_email(SMTP_CONFIG, RECIPIENT, SUBMISSION, "<p></p>")
        self.assertEqual(result['status'], 'Failed')
        self.assertEqual(result['reason'], 'refused')

if __name__ == '__main__':
    unittest.main()

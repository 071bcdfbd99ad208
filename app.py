# app.py
import os
import sys
import time
import logging
import resource
from flask import Flask, request, jsonify, redirect
from flask_cors import CORS
from formrelay.config_store import ConfigStore
from formrelay.turnstile import TurnstileVerifier, TurnstileError
from formrelay.email_sender import send_submission_email
from formrelay.statistics import record_submission
from formrelay.admin import create_admin_blueprint
from formrelay.utils import load_template, render_template, is_truthy, utc_now_iso

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

START_TIME = time.time()

SUBMISSION_FIELDS = ('website_id', 'name', 'email', 'phone', 'rooms', 'service', 'message')


def _client_ip():
    # Behind a reverse proxy the first X-Forwarded-For entry is the visitor
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        return forwarded.split(',', 1)[0].strip()
    return request.remote_addr


def _memory_usage():
    usage = resource.getrusage(resource.RUSAGE_SELF)
    # ru_maxrss is bytes on macOS, kilobytes elsewhere
    divisor = 1024 * 1024 if sys.platform == 'darwin' else 1024
    return {'maxRss': round(usage.ru_maxrss / divisor, 2)}


def create_app(store=None, verifier=None, debug=None, template_root=None, admin_static_dir=None):
    """Builds the relay application. Arguments default to the environment-driven setup."""
    if store is None:
        store = ConfigStore(
            os.environ.get('CONFIG_PATH', os.path.join(BASE_DIR, 'config.json')),
            admin_username=os.environ.get('ADMIN_USERNAME'),
            admin_password=os.environ.get('ADMIN_PASSWORD'),
        )
    if verifier is None:
        verifier = TurnstileVerifier()
    if debug is None:
        debug = is_truthy(os.environ.get('DEBUG'))
    template_root = template_root or os.environ.get('TEMPLATE_ROOT', BASE_DIR)
    admin_static_dir = admin_static_dir or os.environ.get('ADMIN_STATIC_DIR', os.path.join(BASE_DIR, 'admin'))

    app = Flask(__name__)
    app.config['FORM_STORE'] = store

    CORS(app, resources={r"/submit": {"origins": store.allowed_origins, "methods": ["POST", "OPTIONS"]}})

    if debug:
        logging.warning("DEBUG is enabled: Turnstile verification is bypassed for all submissions.")

    @app.after_request
    def log_response(response):
        logging.info(f"{request.method} {request.path} -> {response.status_code} for {_client_ip()}")
        return response

    @app.route('/submit', methods=['POST'])
    def submit():
        """
        Relays one form submission: Turnstile check, template rendering, email,
        statistics, then a redirect back to the website.
        """
        form = request.form
        submission = {key: form.get(key) for key in SUBMISSION_FIELDS}
        website_id = submission['website_id']

        # 1. Routing check
        recipient_config = store.recipients.get(website_id) if website_id else None
        if not recipient_config:
            logging.error(f"Unknown website_id: {website_id}")
            return 'Invalid form submission ID.', 400

        # 2. Turnstile verification
        if not debug:
            token = form.get('cf-turnstile-response')
            if not token:
                logging.error(f"No Turnstile token provided for {website_id}")
                return 'Please complete the security verification.', 400

            secret = store.turnstile_secret(website_id)
            if not secret:
                logging.error(f"No Turnstile config found for website: {website_id}")
                return 'Invalid form submission.', 400

            try:
                verification = verifier.verify(secret, token, _client_ip())
            except TurnstileError as e:
                logging.error(f"Error verifying Turnstile token for {website_id}: {e}")
                return 'Security verification error. Please try again later.', 500

            if not verification['success']:
                return 'Security verification failed. Please try again.', 400

        # 3. Template
        template_path = os.path.join(template_root, recipient_config.get('templatePath') or '')
        try:
            mail_body = render_template(load_template(template_path), submission)
        except OSError:
            return 'Template error on the server.', 500

        # 4. Email
        result = send_submission_email(store.smtp, recipient_config, submission, mail_body)
        if result['status'] != 'Success':
            return 'Something went wrong on the server.', 500
        logging.info(f"Email successfully sent to {recipient_config.get('to')} for {website_id}")

        # 5. Statistics never block the redirect
        try:
            record_submission(store, website_id)
        except Exception:
            logging.exception(f"Failed to update statistics for {website_id}")

        return redirect(recipient_config.get('redirectUrl') or '/', code=302)

    @app.route('/health', methods=['GET'])
    def health():
        try:
            return jsonify({
                'status': 'ok',
                'timestamp': utc_now_iso(),
                'uptime': round(time.time() - START_TIME, 3),
                'memory': _memory_usage(),
                'config': {
                    'websites': list(store.recipients),
                    'smtp': 'configured' if store.smtp.get('host') else 'missing',
                    'turnstile': list(store.turnstile),
                },
            }), 200
        except Exception:
            logging.exception("Health check failed")
            return jsonify({
                'status': 'error',
                'timestamp': utc_now_iso(),
                'error': 'Health check failed',
            }), 503

    app.register_blueprint(create_admin_blueprint(store, admin_static_dir))
    return app


app = create_app()


def main():
    port = int(os.environ.get('PORT', 3000))
    logging.info(f"Form processing server running on port {port}")
    logging.info(f"Health check available at: http://localhost:{port}/health")
    app.run(host='0.0.0.0', port=port)


if __name__ == '__main__':
    main()

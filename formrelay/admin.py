# formrelay/admin.py
"""
Admin API for the relay: website routing, SMTP settings, statistics and the
admin password. Every route is protected by HTTP Basic Auth and every write
persists the whole config document.
"""

import logging
import os

from flask import Blueprint, abort, jsonify, request, send_from_directory

from formrelay.auth import requires_auth, secrets_match
from formrelay.statistics import get_statistics, reset_statistics

WEBSITE_FIELDS = ('name', 'to', 'subjectPrefix', 'templatePath', 'redirectUrl')


def _error(message, status_code):
    return jsonify({'error': message}), status_code


def _json_object():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None
    return data


def _website_view(store, website_id):
    entry = dict(store.recipients[website_id])
    entry['id'] = website_id
    entry['turnstileConfigured'] = bool(store.turnstile_secret(website_id))
    return entry


def create_admin_blueprint(store, static_dir):
    admin_bp = Blueprint('admin', __name__, url_prefix='/admin')
    protected = requires_auth(store)

    # --- Websites ---

    @admin_bp.route('/api/websites', methods=['GET'])
    @protected
    def list_websites():
        with store.lock:
            return jsonify([_website_view(store, key) for key in store.recipients])

    @admin_bp.route('/api/websites', methods=['POST'])
    @protected
    def create_website():
        data = _json_object()
        if data is None:
            return _error('Request body must be a JSON object', 400)
        website_id = str(data.get('id') or '').strip()
        if not website_id or not data.get('to'):
            return _error("Fields 'id' and 'to' are required", 400)

        with store.lock:
            if website_id in store.recipients:
                return _error(f"Website '{website_id}' already exists", 409)
            with store.transaction():
                store.recipients[website_id] = {key: data[key] for key in WEBSITE_FIELDS if key in data}
                if data.get('turnstileSecretKey'):
                    store.turnstile[website_id] = {'secretKey': data['turnstileSecretKey']}
            logging.info(f"Website '{website_id}' created")
            return jsonify(_website_view(store, website_id)), 201

    @admin_bp.route('/api/websites/<website_id>', methods=['GET'])
    @protected
    def get_website(website_id):
        with store.lock:
            if website_id not in store.recipients:
                return _error(f"Website '{website_id}' not found", 404)
            return jsonify(_website_view(store, website_id))

    @admin_bp.route('/api/websites/<website_id>', methods=['PUT'])
    @protected
    def update_website(website_id):
        data = _json_object()
        if data is None:
            return _error('Request body must be a JSON object', 400)
        secret = data.pop('turnstileSecretKey', None)
        data.pop('id', None)
        data.pop('turnstileConfigured', None)

        with store.lock:
            if website_id not in store.recipients:
                return _error(f"Website '{website_id}' not found", 404)
            with store.transaction():
                store.recipients[website_id].update(data)
                if secret:
                    store.turnstile[website_id] = {'secretKey': secret}
            logging.info(f"Website '{website_id}' updated")
            return jsonify(_website_view(store, website_id))

    @admin_bp.route('/api/websites/<website_id>', methods=['DELETE'])
    @protected
    def delete_website(website_id):
        with store.lock:
            if website_id not in store.recipients:
                return _error(f"Website '{website_id}' not found", 404)
            with store.transaction():
                del store.recipients[website_id]
                store.turnstile.pop(website_id, None)
                store.statistics.pop(website_id, None)
        logging.info(f"Website '{website_id}' deleted")
        return jsonify({'success': True, 'id': website_id})

    # --- SMTP ---

    @admin_bp.route('/api/smtp', methods=['GET'])
    @protected
    def get_smtp():
        return jsonify(store.smtp)

    @admin_bp.route('/api/smtp', methods=['PUT'])
    @protected
    def update_smtp():
        data = _json_object()
        if data is None:
            return _error('Request body must be a JSON object', 400)
        with store.transaction():
            store.smtp.update(data)
        logging.info("SMTP configuration updated")
        return jsonify(store.smtp)

    # --- Statistics ---

    @admin_bp.route('/api/statistics', methods=['GET'])
    @protected
    def list_statistics():
        return jsonify(get_statistics(store))

    @admin_bp.route('/api/statistics/<website_id>', methods=['GET'])
    @protected
    def website_statistics(website_id):
        if website_id not in store.recipients:
            return _error(f"Website '{website_id}' not found", 404)
        return jsonify(get_statistics(store, website_id))

    @admin_bp.route('/api/statistics/<website_id>/reset', methods=['PUT'])
    @protected
    def reset_website_statistics(website_id):
        if website_id not in store.recipients:
            return _error(f"Website '{website_id}' not found", 404)
        return jsonify(reset_statistics(store, website_id))

    # --- Admin account ---

    @admin_bp.route('/api/admin/reset-password', methods=['PUT'])
    @protected
    def reset_password():
        data = _json_object()
        if data is None:
            return _error('Request body must be a JSON object', 400)
        current = data.get('currentPassword')
        new = data.get('newPassword')
        if not current or not new:
            return _error("Fields 'currentPassword' and 'newPassword' are required", 400)

        with store.lock:
            _, stored = store.admin_credentials()
            if not secrets_match(current, stored):
                return _error('Current password is incorrect', 403)
            with store.transaction():
                store.section('admin')['password'] = new
        logging.info("Admin password changed")
        return jsonify({'success': True})

    # --- Static admin UI ---

    def _serve(filename):
        if not os.path.isdir(static_dir):
            abort(404)
        return send_from_directory(static_dir, filename)

    @admin_bp.route('/', methods=['GET'])
    @protected
    def admin_index():
        return _serve('index.html')

    @admin_bp.route('/<path:filename>', methods=['GET'])
    @protected
    def serve_admin_file(filename):
        return _serve(filename)

    return admin_bp

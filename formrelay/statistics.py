# formrelay/statistics.py

import logging

from formrelay.utils import utc_now_iso


def _empty_entry():
    return {'count': 0, 'lastSubmission': None}


def record_submission(store, website_id):
    """Counts one successfully sent email for a website and persists the document."""
    with store.transaction():
        entry = store.statistics.setdefault(website_id, _empty_entry())
        entry['count'] = int(entry.get('count') or 0) + 1
        entry['lastSubmission'] = utc_now_iso()
        result = dict(entry)
    logging.info(f"Statistics updated for {website_id}: {result['count']} submissions")
    return result


def _describe(store, website_id):
    recipient = store.recipients.get(website_id) or {}
    entry = store.statistics.get(website_id) or _empty_entry()
    return {
        'website_id': website_id,
        'name': recipient.get('name') or website_id,
        'to': recipient.get('to'),
        'count': int(entry.get('count') or 0),
        'lastSubmission': entry.get('lastSubmission'),
    }


def get_statistics(store, website_id=None):
    """
    Returns one website's statistics, or all of them (configured websites
    first, then any entries left over for websites that no longer exist).
    """
    with store.lock:
        if website_id is not None:
            return _describe(store, website_id)
        ids = list(store.recipients)
        ids += [key for key in store.statistics if key not in store.recipients]
        return [_describe(store, key) for key in ids]


def reset_statistics(store, website_id):
    with store.transaction():
        store.statistics[website_id] = _empty_entry()
    logging.info(f"Statistics reset for {website_id}")
    return _describe(store, website_id)

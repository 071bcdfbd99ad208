# formrelay/config_store.py

import copy
import json
import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path

SECTIONS = ("smtp", "recipients", "turnstile", "cors", "admin", "statistics")


class ConfigError(Exception):
    """Raised when the config document cannot be read or parsed."""


class ConfigStore:
    """
    Holds the relay's JSON config document in memory and writes it back to disk.

    All read-modify-write sequences should run inside ``store.transaction()``
    so concurrent requests in the same process never lose updates and a failed
    save never leaves unsaved changes behind in memory.
    """

    def __init__(self, path, admin_username=None, admin_password=None):
        self.path = Path(path)
        self.lock = threading.RLock()
        self.data = {}
        self.load()
        # Environment overrides win over whatever is stored on disk
        admin = self.section("admin")
        if admin_username:
            admin["username"] = admin_username
        if admin_password:
            admin["password"] = admin_password

    def load(self):
        if not self.path.exists():
            logging.warning(f"Config file {self.path} not found, starting with an empty configuration.")
            data = {}
        else:
            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise ConfigError(f"Could not read config file {self.path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"Config file {self.path} must contain a JSON object")

        for name in SECTIONS:
            if not isinstance(data.get(name), dict):
                data[name] = {}
        with self.lock:
            self.data = data
        return data

    def save(self):
        """Persist the whole document (write to a temp file, then rename over the original)."""
        with self.lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp, 'w', encoding='utf-8') as f:
                json.dump(self.data, f, indent=2)
            os.replace(tmp, self.path)
        logging.info(f"Configuration saved to {self.path}")

    @contextmanager
    def transaction(self):
        """
        Runs a change to the document under the lock and saves it on exit.

        If the block or the save raises, the in-memory document is restored to
        the state it had on entry and the exception propagates.
        """
        with self.lock:
            snapshot = copy.deepcopy(self.data)
            try:
                yield self
                self.save()
            except BaseException:
                self.data = snapshot
                raise

    def section(self, name):
        value = self.data.get(name)
        if not isinstance(value, dict):
            value = {}
            self.data[name] = value
        return value

    @property
    def recipients(self):
        return self.section("recipients")

    @property
    def turnstile(self):
        return self.section("turnstile")

    @property
    def smtp(self):
        return self.section("smtp")

    @property
    def statistics(self):
        return self.section("statistics")

    @property
    def allowed_origins(self):
        return list(self.section("cors").get("allowedOrigins") or [])

    def admin_credentials(self):
        admin = self.section("admin")
        return admin.get("username"), admin.get("password")

    def turnstile_secret(self, website_id):
        entry = self.turnstile.get(website_id)
        if isinstance(entry, dict):
            return entry.get("secretKey")
        return entry or None

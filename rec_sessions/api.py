"""HTTP client used by the source adapters."""

from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Any

import requests

from .cache import RunCache

USER_AGENT = "Mozilla/5.0 rec-sessions schedule aggregator"
KINDS = ("json", "text", "pdf")


class SourceClient:
    def __init__(
        self,
        *,
        offline: bool = False,
        dump_json: bool = False,
        fixtures_dir: Path | str = Path("out/json"),
        delay: float = 0.0,
        cache: RunCache | None = None,
    ) -> None:
        self.offline = offline
        self.dump_json = dump_json
        self.delay = delay
        self.cache = cache or RunCache()
        self.session = requests.Session()
        self.session.headers["User-Agent"] = USER_AGENT
        self.json_dir = Path(fixtures_dir)
        if dump_json:
            self.json_dir.mkdir(parents=True, exist_ok=True)
        self._last_request = 0.0
        self._lock = threading.Lock()

    def _fixture_path(self, name: str, kind: str) -> Path:
        if kind == "json":
            return self.json_dir / (name + ".json")
        if kind == "pdf":
            pdf = self.json_dir / (name + ".pdf")
            if pdf.exists():
                return pdf
        return self.json_dir / (name + ".txt")

    def get(self, url: str | None, *, name: str, kind: str = "json") -> Any:
        """Fetch ``url`` as parsed JSON, text, or raw PDF bytes.

        Offline, the payload comes from ``<fixtures_dir>/<name>.json``,
        ``<name>.pdf``, or ``<name>.txt`` for text and already-extracted
        PDF text.
        """

        if kind not in KINDS:
            raise ValueError(f"Unknown payload kind: {kind}")
        if self.offline:
            return self.cache.get_or_set(lambda: self._read_fixture(name, kind), name, kind)
        if not url:
            raise RuntimeError(f"No URL configured for {name}")
        data = self.cache.get_or_set(lambda: self._fetch(url, kind), url, kind)
        if self.dump_json:
            self._write_fixture(name, kind, data)
        return data

    def _read_fixture(self, name: str, kind: str) -> Any:
        path = self._fixture_path(name, kind)
        if path.suffix == ".pdf":
            return path.read_bytes()
        with path.open("r", encoding="utf-8") as f:
            return json.load(f) if kind == "json" else f.read()

    def _write_fixture(self, name: str, kind: str, data: Any) -> None:
        if kind == "pdf":
            (self.json_dir / (name + ".pdf")).write_bytes(data)
            return
        with self._fixture_path(name, kind).open("w", encoding="utf-8") as f:
            if kind == "json":
                json.dump(data, f)
            else:
                f.write(data)

    def _wait_turn(self) -> None:
        # Polite spacing between requests to the municipal sites
        with self._lock:
            wait = self._last_request + self.delay - time.monotonic()
            if wait > 0:
                time.sleep(wait)
            self._last_request = time.monotonic()

    def _fetch(self, url: str, kind: str) -> Any:
        for attempt in range(4):
            self._wait_turn()
            try:
                resp = self.session.get(url, timeout=60)
                if resp.status_code >= 500:
                    logging.info("Server error %s from %s", resp.status_code, url)
                    time.sleep(2**attempt)
                    continue
                resp.raise_for_status()
                if kind == "json":
                    return resp.json()
                if kind == "pdf":
                    return resp.content
                return resp.text
            except requests.RequestException as exc:
                logging.warning("Request error: %s", exc)
                time.sleep(2**attempt)
        raise RuntimeError(f"Failed to fetch {url}")

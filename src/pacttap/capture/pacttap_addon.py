"""
PactTap Mitmproxy Addon

Records the traffic of a reverse proxy into the capture directory and
implements the "proxyOnce" policy: the first occurrence of a request goes
upstream and is recorded, identical requests afterwards are answered from
the recording.

Loaded by mitmdump as a script (-s), so configuration arrives through
environment variables set by pacttap.capture.engine.
"""

import os
import sys
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from mitmproxy import http

from pacttap.capture.recorder import StubRecorder
from pacttap.capture.utils import body_text, format_exchange, headers_to_dict
from pacttap.proxy.config import PROXY_MODE_ONCE, load_proxy_config


ENV_CONFIG_PATH = 'PACTTAP_CONFIG_PATH'
ENV_DATA_DIR = 'PACTTAP_DATA_DIR'
ENV_QUIET = 'PACTTAP_QUIET'

REPLAYED_FLAG = 'pacttap_replayed'

# Headers that describe the recorded encoding, not the replayed body
REPLAY_DROPPED_HEADERS = ('content-length', 'transfer-encoding', 'content-encoding')


class PactTapAddon:
    """
    Mitmproxy addon that records proxied exchanges.

    This class is instantiated by mitmproxy and receives callbacks for
    the HTTP flow lifecycle. We use 'request' to replay known requests,
    'response' to record new ones and 'done' to report.
    """

    def __init__(self):
        self.recorder: Optional[StubRecorder] = None
        self.replay_enabled = True
        self.quiet = False
        self.replayed = 0
        self.initialized = False

    def _lazy_init(self):
        """
        Lazy initialization - reads config from environment on first use.

        mitmproxy may re-import the addon module, so configuration is passed
        via environment variables, which survive the re-import.
        """
        if self.initialized:
            return

        self.initialized = True

        config = load_proxy_config(os.environ[ENV_CONFIG_PATH])
        data_dir = Path(os.environ[ENV_DATA_DIR])
        self.quiet = os.environ.get(ENV_QUIET, 'false') == 'true'
        self.replay_enabled = config.target.mode == PROXY_MODE_ONCE

        self.recorder = StubRecorder(str(data_dir / str(config.port) / "stubs"))
        self.recorder.start()

    def running(self):
        """Called once mitmproxy is up."""
        self._lazy_init()

    @staticmethod
    def _split(req: http.Request):
        parts = urlsplit(req.path)
        return parts.path or "/", parts.query

    def request(self, flow: http.HTTPFlow) -> None:
        """Answer a request from the recording if an identical one was recorded."""
        self._lazy_init()
        if not self.replay_enabled:
            return

        req = flow.request
        path, query = self._split(req)
        reply = self.recorder.lookup(req.method, path, query, req.get_content(strict=False))
        if reply is None:
            return

        # content is stored decoded, so the recorded encoding headers no longer apply
        headers = {
            k: v for k, v in reply["headers"].items()
            if k.lower() not in REPLAY_DROPPED_HEADERS
        }
        flow.response = http.Response.make(reply["status"], reply["content"], headers)
        flow.metadata[REPLAYED_FLAG] = True

    def response(self, flow: http.HTTPFlow) -> None:
        """
        Called when a complete HTTP response is received.

        New exchanges are written to the capture directory. Failures are
        reported and swallowed so one odd flow never takes the proxy down.
        """
        self._lazy_init()

        req = flow.request
        resp = flow.response
        if resp is None:
            return

        if flow.metadata.get(REPLAYED_FLAG):
            self.replayed += 1
            if not self.quiet:
                print(format_exchange(req.method, req.path, resp.status_code, "replayed"), flush=True)
            return

        try:
            path, query = self._split(req)
            request_body, request_truncated = body_text(req)
            response_body, response_truncated = body_text(resp)
            self.recorder.record(
                method=req.method,
                path=path,
                query=query,
                request_headers=headers_to_dict(req.headers),
                request_body=request_body,
                status=resp.status_code,
                response_headers=headers_to_dict(resp.headers),
                response_body=response_body,
                request_body_truncated=request_truncated,
                response_body_truncated=response_truncated,
                request_content=req.get_content(strict=False),
                response_content=resp.get_content(strict=False),
            )
        except Exception as e:
            print(f"Error recording request: {e}", file=sys.stderr, flush=True)
            return

        if not self.quiet:
            print(format_exchange(req.method, req.path, resp.status_code, "recorded"), flush=True)

    def done(self):
        """Called when mitmproxy is shutting down."""
        recorded = self.recorder.count if self.recorder else 0
        print(f"\n📊 Recorded {recorded} exchanges, replayed {self.replayed}", flush=True)


# Module-level addon list - mitmproxy looks for this
addons = [PactTapAddon()]

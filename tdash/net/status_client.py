"""Network round-trips to the timer server.

Everything goes through one QNetworkAccessManager on the GUI thread, so
replies arrive as ordinary event-loop callbacks. Every request ends in exactly
one call of the caller's callback with a plain dict; transport failures and
unreadable bodies all collapse into ``network_error()``. There is no
cancellation: a reply that outlives its view still calls back, and the caller
decides whether anything is left to update.
"""

import json
from PySide6.QtCore import QByteArray, QUrl
from PySide6.QtNetwork import QNetworkAccessManager, QNetworkReply, QNetworkRequest
from tdash.common.logger import log
from tdash.core.config import DashboardConfig
from tdash.core.engine import Command

NETWORK_ERROR_MESSAGE = "Network error"


def network_error():
    return {"success": False, "message": NETWORK_ERROR_MESSAGE}


def _reject_constant(name):
    raise ValueError(f"non-finite number {name} is not JSON")


def decode_body(data):
    """Decode a reply body into a dict, or the uniform failure shape.

    ``NaN`` and ``Infinity`` are refused outright; Python's json module would
    otherwise accept them and hand back floats no timer field can hold.
    """
    try:
        payload = json.loads(bytes(data).decode("utf-8"), parse_constant=_reject_constant)
    except ValueError as e:
        log.warning(f"Server reply was not JSON: {e}")
        return network_error()
    if not isinstance(payload, dict):
        log.warning(f"Server reply was JSON but not an object: {type(payload).__name__}")
        return network_error()
    return payload


class StatusClient:

    def __init__(self, config: DashboardConfig, manager=None, parent=None):
        self.config = config
        self._manager = manager or QNetworkAccessManager(parent)
        self._endpoints = {
            Command.START: config.start_endpoint,
            Command.PAUSE: config.pause_endpoint,
            Command.STOP: config.stop_endpoint,
        }

    def url_for(self, path):
        return self.config.base_url.rstrip("/") + "/" + path.lstrip("/")

    # ------------------------------------------------------------------ #
    #  Public calls                                                        #
    # ------------------------------------------------------------------ #

    def fetch_status(self, callback):
        """GET the status endpoint; ``callback`` gets ``{"timers": [...]}`` or the failure shape."""
        self._request("GET", self.config.status_endpoint, None, callback)

    def send_command(self, command: Command, timer_id, callback):
        """POST a start/pause/stop for one timer.

        Pause is a toggle on the server, so the reply's ``paused`` flag, not
        the command, says which way it went.
        """
        self._request("POST", self._endpoints[command], {"timer_id": timer_id}, callback)

    def grant_bonus(self, timer_id, minutes, callback):
        self._request("POST", self.config.bonus_endpoint,
                      {"timer_id": timer_id, "bonus_minutes": int(minutes)}, callback)

    # ------------------------------------------------------------------ #
    #  Plumbing                                                            #
    # ------------------------------------------------------------------ #

    def _request(self, method, path, payload, callback):
        url = self.url_for(path)
        request = QNetworkRequest(QUrl(url))
        request.setHeader(QNetworkRequest.KnownHeaders.ContentTypeHeader, "application/json")
        request.setTransferTimeout(self.config.request_timeout_ms)

        if method == "GET":
            reply = self._manager.get(request)
        else:
            body = QByteArray(json.dumps(payload or {}).encode("utf-8"))
            reply = self._manager.post(request, body)
        log.debug(f"{method} {url} {payload or ''}")
        reply.finished.connect(lambda r=reply: self._on_finished(r, method, url, callback))
        return reply

    def _on_finished(self, reply, method, url, callback):
        try:
            data = bytes(reply.readAll())
            error = reply.error()
            # HTTP error statuses can still carry a JSON body worth reading; only an empty failed reply is a pure
            # transport failure.
            if error != QNetworkReply.NetworkError.NoError and not data:
                log.warning(f"{method} {url} failed: {reply.errorString()}")
                result = network_error()
            else:
                result = decode_body(data)
        finally:
            reply.deleteLater()
        callback(result)

"""
Authenticated requests against the management endpoints.
"""

from contextlib import contextmanager
import json
import logging
from typing import Any, Callable, Dict, Generator, List, Optional, Tuple, Union
from urllib.parse import quote, urlencode
from xml.etree import ElementTree

from requests import RequestException, Response, Session as RequestsSession
from requests.structures import CaseInsensitiveDict

from ..account import Account, load_account
from ..errors import ApplicationError, MobileError, ParseError, TransportError
from .common import Reactor


LOG = logging.getLogger(__name__)

Body = Union[None, str, bytes, Dict[str, Any], List[Any]]

ChannelCallback = Callable[[Optional[MobileError], Any, Optional[Response]], None]
"""
Completion callback of a request: error, parsed body, and the raw response if one was received.
"""


class Context:
    """
    Resources shared by every request of a single command: the account, an HTTP session, and the
    reactor running callbacks.
    """

    def __init__(self, account: Account, http: Optional[RequestsSession] = None,
                 reactor: Optional[Reactor] = None):
        self.account = account
        self.http = http or RequestsSession()
        self.reactor = reactor or Reactor()

    def channel(self, url: Optional[str] = None) -> "Channel":
        """
        Start a new request against the given endpoint, or the account's management endpoint.
        """
        return Channel(self, url)

    def run(self) -> None:
        """
        Process callbacks until no work remains.
        """
        self.reactor.run()

    def close(self) -> None:
        self.http.close()


@contextmanager
def context(account: Optional[Account] = None,
            subscription: Optional[str] = None) -> Generator[Context, None, None]:
    """
    Run multiple requests using one account and HTTP session:

        with context() as ctx:
            get_service(ctx, "name", callback)

    Callbacks scheduled by the block are run to completion as the block exits.
    """
    ctx = Context(account or load_account(subscription=subscription))
    try:
        yield ctx
        ctx.run()
    finally:
        ctx.close()


def _strip_ns(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _xml_value(elem: ElementTree.Element) -> Any:
    # Leaf elements become text, others become dicts; repeated child tags are collected as lists.
    children = list(elem)
    if not children:
        text = (elem.text or "").strip()
        return text or None
    value: Dict[str, Any] = {}
    for child in children:
        tag = _strip_ns(child.tag)
        item = _xml_value(child)
        if tag not in value:
            value[tag] = item
        elif isinstance(value[tag], list):
            value[tag].append(item)
        else:
            value[tag] = [value[tag], item]
    return value


def parse_xml(data: Union[str, bytes]) -> Any:
    """
    Convert an XML document into nested dicts, omitting the root element and any namespaces.
    """
    try:
        root = ElementTree.fromstring(data)
    except ElementTree.ParseError as ex:
        raise ParseError("Malformed XML response: {}".format(ex))
    return _xml_value(root)


def _content_kind(resp: Response, accept: Optional[str]) -> str:
    ctype = (resp.headers.get("Content-Type") or accept or "").lower()
    if "json" in ctype:
        return "json"
    elif "xml" in ctype:
        return "xml"
    else:
        return "text"


def parse_body(resp: Response, accept: Optional[str] = None) -> Any:
    """
    Decode a response body by its content type, falling back to the requested type.
    """
    if not resp.content:
        return None
    kind = _content_kind(resp, accept)
    if kind == "json":
        try:
            return resp.json()
        except ValueError as ex:
            raise ParseError("Malformed JSON response: {}".format(ex))
    elif kind == "xml":
        return parse_xml(resp.content)
    else:
        return resp.text


def application_error(resp: Response, accept: Optional[str] = None) -> ApplicationError:
    """
    Build an error from a rejected response, extracting the provider's code and message if given.
    """
    try:
        body = parse_body(resp, accept)
    except ParseError:
        body = resp.text
    code = message = None
    if isinstance(body, dict):
        code = body.get("code", body.get("Code"))
        message = body.get("error") or body.get("message") or body.get("Message")
    elif isinstance(body, str) and body.strip():
        message = body.strip()
    return ApplicationError(resp.status_code, message or resp.reason,
                            str(code) if code is not None else None)


def _ignore(error: Optional[MobileError], body: Any, resp: Optional[Response]) -> None:
    if error:
        LOG.warning("Unhandled request error: %r", error)


class Channel:
    """
    Builder for a single request, composed by chaining:

        ctx.channel().with_path(subscription).with_path("services").with_query("$top", 10)

    Path segments are appended in order (empty ones are skipped), while repeated headers and query
    parameters replace earlier values.  Nothing is sent until one of the dispatch methods is called,
    which schedules the request on the context's reactor and passes the outcome to the callback.

    A channel is intended for one request: build a new one for each call.
    """

    def __init__(self, ctx: Context, url: Optional[str] = None):
        self._ctx = ctx
        self._host, self._port = Account.authority(url or ctx.account.management_url)
        self._segments: List[str] = []
        self._headers: CaseInsensitiveDict = CaseInsensitiveDict()
        self._query: Dict[str, str] = {}
        self.with_header("x-ms-version", ctx.account.api_version)

    def with_header(self, name: str, value: str) -> "Channel":
        self._headers[name] = value
        return self

    def with_path(self, segment: Any) -> "Channel":
        segment = str(segment).strip("/") if segment is not None else ""
        if segment:
            self._segments.append(segment)
        return self

    def with_query(self, name: str, value: Any) -> "Channel":
        self._query[name] = str(value)
        return self

    @property
    def authority(self) -> Tuple[str, Optional[int]]:
        return (self._host, self._port)

    @property
    def headers(self) -> Dict[str, str]:
        return dict(self._headers)

    @property
    def url(self) -> str:
        netloc = self._host if self._port is None else "{}:{}".format(self._host, self._port)
        url = "https://{}/{}".format(netloc, "/".join(quote(seg, safe="") for seg in self._segments))
        if self._query:
            url = "{}?{}".format(url, urlencode(self._query, safe="$", quote_via=quote))
        return url

    def get(self, callback: Optional[ChannelCallback] = None) -> None:
        self.send("GET", None, callback)

    def post(self, body: Body, callback: Optional[ChannelCallback] = None) -> None:
        self.send("POST", body, callback)

    def put(self, body: Body, callback: Optional[ChannelCallback] = None) -> None:
        self.send("PUT", body, callback)

    def patch(self, body: Body, callback: Optional[ChannelCallback] = None) -> None:
        self.send("PATCH", body, callback)

    def delete(self, callback: Optional[ChannelCallback] = None) -> None:
        self.send("DELETE", None, callback)

    def send(self, method: str, body: Body = None,
             callback: Optional[ChannelCallback] = None) -> None:
        """
        Issue the request, with an optional body (pre-serialised, or a value to encode as JSON).
        """
        method = method.upper()
        headers = CaseInsensitiveDict(self._headers)
        if body is not None and not isinstance(body, (str, bytes)):
            body = json.dumps(body)
            headers.setdefault("Content-Type", "application/json")
        if isinstance(body, str):
            body = body.encode("utf-8")
        url = self.url
        LOG.debug("Request: %s %s", method, url)
        if body:
            LOG.debug("Request body: %r", body)
        self._ctx.reactor.call_soon(self._dispatch, method, url, headers, body,
                                    callback or _ignore)

    def _dispatch(self, method: str, url: str, headers: CaseInsensitiveDict,
                  body: Optional[bytes], callback: ChannelCallback) -> None:
        account = self._ctx.account
        try:
            resp = self._ctx.http.request(method, url, headers=dict(headers), data=body,
                                          cert=account.cert, timeout=account.timeout)
        except (RequestException, OSError) as ex:
            # Includes local TLS failures, e.g. a missing client certificate.
            LOG.debug("Transport failure: %s %s: %r", method, url, ex)
            callback(TransportError("{} {} failed: {}".format(method, url, ex)), None, None)
            return
        LOG.debug("Response: %s %s -> %s", method, url, resp.status_code)
        accept = headers.get("Accept")
        error: Optional[MobileError] = None
        parsed = None
        if not 200 <= resp.status_code < 300:
            error = application_error(resp, accept)
        else:
            try:
                parsed = parse_body(resp, accept)
            except ParseError as ex:
                error = ex
        callback(error, parsed, resp)

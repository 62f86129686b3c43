# -------------------------------------------------------------------------
# Copyright (c) Microsoft.  All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#   http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# --------------------------------------------------------------------------
import base64
import hashlib
import threading
import time
from email.utils import formatdate
from io import BytesIO
from urllib.parse import (
    parse_qsl,
    unquote,
    urlsplit,
)
from xml.etree import ElementTree as ETree

import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

_PAGE_SIZE = 512
_MAX_PAGE_UPDATE_SIZE = 4 * 1024 * 1024

_REASONS = {
    200: 'OK',
    201: 'Created',
    400: 'Bad Request',
    404: 'The specified blob does not exist.',
    409: 'Conflict',
    412: 'Precondition Failed',
    413: 'Request Entity Too Large',
    416: 'Requested Range Not Satisfiable',
    500: 'Internal Server Error',
    503: 'Server Busy',
}


class RecordedRequest(object):
    '''
    A request as the fake endpoint received it. body holds the bytes read,
    which for a request failed by an injected exception is only a prefix.
    '''

    def __init__(self, method, host, path, query, headers):
        self.method = method
        self.host = host
        self.path = path
        self.query = query
        self.headers = headers
        self.body = None
        self.failed = False

    @property
    def comp(self):
        return self.query.get('comp')

    @property
    def block_id(self):
        block_id = self.query.get('blockid')
        return base64.b64decode(block_id).decode('utf-8') if block_id else None


class Fault(object):
    '''
    A failure injected into the next times requests match accepts.

    With a status the endpoint answers with that error without touching any
    blob. With an exception it first reads read_bytes of the request body and
    then raises, as a connection dropped in the middle of an upload would.
    '''

    def __init__(self, match=None, status=None, error_code=None, exception=None, read_bytes=0, times=1):
        self.match = match
        self.status = status
        self.error_code = error_code
        self.exception = exception
        self.read_bytes = read_bytes
        self.times = times
        self.hits = 0


class _FakeBlob(object):
    def __init__(self, blob_type):
        self.blob_type = blob_type
        self.exists = False
        self.content = bytearray()
        self.committed_blocks = []
        self.uncommitted_blocks = {}
        self.pages = set()
        self.metadata = {}
        self.properties = {}
        self.sequence_number = 0
        self.etag = None
        self.last_modified = None


class FakeBlobEndpoint(BaseAdapter):
    '''
    An in-memory blob endpoint, mounted on a requests.Session in place of
    the HTTP adapter. It understands the block blob and page blob operations
    the services send, keeps every blob of every container of every account
    in one dict and records every request.

    delay is slept before every request is answered, and in_flight and
    max_in_flight count the requests being answered at once.
    '''

    def __init__(self):
        super(FakeBlobEndpoint, self).__init__()
        self.blobs = {}
        self.requests = []
        self.faults = []
        self.delay = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self._etag_counter = 0
        self._lock = threading.Lock()

    def inject(self, **kwargs):
        fault = Fault(**kwargs)
        with self._lock:
            self.faults.append(fault)
        return fault

    def requests_for(self, comp=None, method=None, failed=None):
        return [r for r in self.requests
                if (comp is None or r.comp == comp)
                and (method is None or r.method == method)
                and (failed is None or r.failed == failed)]

    def get_blob(self, container_name, blob_name):
        blob = self.blobs.get((container_name, blob_name))
        return blob if blob is not None and blob.exists else None

    def get_content(self, container_name, blob_name):
        return bytes(self.get_blob(container_name, blob_name).content)

    def close(self):
        pass

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        url = urlsplit(request.url)
        recorded = RecordedRequest(
            request.method,
            url.hostname,
            unquote(url.path),
            dict(parse_qsl(url.query, keep_blank_values=True)),
            CaseInsensitiveDict(request.headers))

        with self._lock:
            fault = self._take_fault(recorded)
            self.requests.append(recorded)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)

        try:
            if self.delay:
                time.sleep(self.delay)

            if fault is not None and fault.exception is not None:
                recorded.failed = True
                recorded.body = _read_body(request.body, fault.read_bytes)
                raise fault.exception

            recorded.body = _read_body(request.body)
            if fault is not None:
                recorded.failed = True
                status, headers, body = _error(fault.status, fault.error_code or 'InjectedFault')
            else:
                with self._lock:
                    status, headers, body = self._handle(recorded)
        finally:
            with self._lock:
                self.in_flight -= 1

        headers['x-ms-request-id'] = 'fake-{0}'.format(len(self.requests))
        headers['Date'] = formatdate(time.time(), usegmt=True)
        return _build_response(request, status, headers, body)

    def _take_fault(self, recorded):
        for fault in self.faults:
            if fault.times > 0 and (fault.match is None or fault.match(recorded)):
                fault.times -= 1
                fault.hits += 1
                return fault
        return None

    def _touch(self, blob):
        self._etag_counter += 1
        blob.etag = '"0x8D{0:013X}"'.format(self._etag_counter)
        blob.last_modified = formatdate(time.time(), usegmt=True)

    def _handle(self, req):
        parts = req.path.lstrip('/').split('/', 1)
        if len(parts) != 2 or not parts[1]:
            return _error(400, 'InvalidUri')
        key = (parts[0], parts[1])
        blob = self.blobs.get(key)
        comp = req.comp

        if req.method == 'PUT':
            content_md5 = req.headers.get('Content-MD5')
            if content_md5 is not None and content_md5 != _md5(req.body):
                return _error(400, 'Md5Mismatch')

        if req.method == 'HEAD':
            return self._get_properties(req, blob)
        if req.method == 'GET' and comp == 'blocklist':
            return self._get_block_list(req, blob)
        if req.method == 'GET' and comp == 'pagelist':
            return self._get_page_ranges(req, blob)
        if req.method == 'PUT' and comp is None:
            return self._put_blob(req, key, blob)
        if req.method == 'PUT' and comp == 'block':
            return self._put_block(req, key, blob)
        if req.method == 'PUT' and comp == 'blocklist':
            return self._put_block_list(req, key, blob)
        if req.method == 'PUT' and comp == 'page':
            return self._put_page(req, blob)
        if req.method == 'PUT' and comp == 'properties':
            return self._set_properties(req, blob)
        return _error(400, 'UnsupportedHttpVerb')

    def _check_conditions(self, req, blob):
        exists = blob is not None and blob.exists
        if_match = req.headers.get('If-Match')
        if if_match is not None and if_match != '*':
            if not exists or blob.etag != if_match:
                return _error(412, 'ConditionNotMet')
        if_none_match = req.headers.get('If-None-Match')
        if if_none_match is not None and exists and if_none_match in ('*', blob.etag):
            return _error(412, 'ConditionNotMet')

        if exists:
            sequence_number_checks = (
                ('x-ms-if-sequence-number-le', lambda current, value: current <= value),
                ('x-ms-if-sequence-number-lt', lambda current, value: current < value),
                ('x-ms-if-sequence-number-eq', lambda current, value: current == value),
            )
            for header, check in sequence_number_checks:
                value = req.headers.get(header)
                if value is not None and not check(blob.sequence_number, int(value)):
                    return _error(412, 'SequenceNumberConditionNotMet')
        return None

    def _resource_headers(self, blob):
        headers = {
            'ETag': blob.etag,
            'Last-Modified': blob.last_modified,
            'x-ms-request-server-encrypted': 'true',
        }
        if blob.blob_type == 'PageBlob':
            headers['x-ms-blob-sequence-number'] = str(blob.sequence_number)
        return headers

    def _get_properties(self, req, blob):
        if blob is None or not blob.exists:
            return 404, {'x-ms-error-code': 'BlobNotFound'}, b''
        failed = self._check_conditions(req, blob)
        if failed:
            return failed

        headers = self._resource_headers(blob)
        headers['x-ms-blob-type'] = blob.blob_type
        headers['Content-Length'] = str(len(blob.content))
        headers['x-ms-server-encrypted'] = 'true'
        for name, value in blob.properties.items():
            headers[name] = value
        for name, value in blob.metadata.items():
            headers['x-ms-meta-' + name] = value
        return 200, headers, b''

    def _put_blob(self, req, key, blob):
        failed = self._check_conditions(req, blob)
        if failed:
            return failed

        blob_type = req.headers.get('x-ms-blob-type')
        new_blob = _FakeBlob(blob_type)
        if blob_type == 'BlockBlob':
            new_blob.content = bytearray(req.body)
            new_blob.committed_blocks = []
            if 'x-ms-blob-content-md5' not in req.headers:
                new_blob.properties['Content-MD5'] = _md5(req.body)
        elif blob_type == 'PageBlob':
            length = int(req.headers.get('x-ms-blob-content-length'))
            if length % _PAGE_SIZE != 0:
                return _error(400, 'InvalidHeaderValue')
            new_blob.content = bytearray(length)
            new_blob.sequence_number = int(req.headers.get('x-ms-blob-sequence-number', 0))
        else:
            return _error(400, 'InvalidHeaderValue')

        _apply_blob_headers(new_blob, req.headers)
        new_blob.exists = True
        self._touch(new_blob)
        self.blobs[key] = new_blob
        return 201, self._resource_headers(new_blob), b''

    def _put_block(self, req, key, blob):
        if blob is None:
            blob = _FakeBlob('BlockBlob')
            self.blobs[key] = blob
        elif blob.blob_type != 'BlockBlob':
            return _error(409, 'InvalidBlobType')

        block_id = req.block_id
        for existing_id in blob.uncommitted_blocks:
            if len(existing_id) != len(block_id):
                return _error(400, 'InvalidBlobOrBlock')
        blob.uncommitted_blocks[block_id] = bytes(req.body)
        return 201, {'x-ms-request-server-encrypted': 'true'}, b''

    def _put_block_list(self, req, key, blob):
        failed = self._check_conditions(req, blob)
        if failed:
            return failed
        if blob is None:
            blob = _FakeBlob('BlockBlob')
        elif blob.blob_type != 'BlockBlob':
            return _error(409, 'InvalidBlobType')

        committed = dict(blob.committed_blocks)
        blocks = []
        for element in ETree.fromstring(req.body):
            block_id = base64.b64decode(element.text).decode('utf-8')
            if element.tag == 'Committed':
                data = committed.get(block_id)
            elif element.tag == 'Uncommitted':
                data = blob.uncommitted_blocks.get(block_id)
            else:
                data = blob.uncommitted_blocks.get(block_id, committed.get(block_id))
            if data is None:
                return _error(400, 'InvalidBlockList')
            blocks.append((block_id, data))

        blob.committed_blocks = blocks
        blob.uncommitted_blocks = {}
        blob.content = bytearray(b''.join(data for _, data in blocks))
        blob.metadata = {}
        blob.properties = {}
        _apply_blob_headers(blob, req.headers)
        blob.exists = True
        self._touch(blob)
        self.blobs[key] = blob
        return 201, self._resource_headers(blob), b''

    def _get_block_list(self, req, blob):
        if blob is None or blob.blob_type != 'BlockBlob':
            return _error(404, 'BlobNotFound')

        list_type = req.query.get('blocklisttype', 'committed')
        root = ETree.Element('BlockList')
        if list_type in ('committed', 'all'):
            committed_element = ETree.SubElement(root, 'CommittedBlocks')
            for block_id, data in blob.committed_blocks:
                _add_block_element(committed_element, block_id, data)
        if list_type in ('uncommitted', 'all'):
            uncommitted_element = ETree.SubElement(root, 'UncommittedBlocks')
            for block_id, data in blob.uncommitted_blocks.items():
                _add_block_element(uncommitted_element, block_id, data)
        return 200, {'Content-Type': 'application/xml'}, _to_xml(root)

    def _page_blob_or_error(self, req, blob):
        if blob is None or not blob.exists:
            return _error(404, 'BlobNotFound')
        if blob.blob_type != 'PageBlob':
            return _error(409, 'InvalidBlobType')
        return self._check_conditions(req, blob)

    def _put_page(self, req, blob):
        failed = self._page_blob_or_error(req, blob)
        if failed:
            return failed

        start, end = _parse_range(req.headers.get('x-ms-range'))
        if start % _PAGE_SIZE != 0 or (end + 1) % _PAGE_SIZE != 0 or end < start or end >= len(blob.content):
            return _error(416, 'InvalidPageRange')

        length = end - start + 1
        page_write = req.headers.get('x-ms-page-write')
        first_page = start // _PAGE_SIZE
        last_page = (end + 1) // _PAGE_SIZE
        if page_write == 'update':
            if length > _MAX_PAGE_UPDATE_SIZE:
                return _error(413, 'RequestBodyTooLarge')
            if len(req.body) != length:
                return _error(400, 'InvalidHeaderValue')
            blob.content[start:end + 1] = req.body
            blob.pages.update(range(first_page, last_page))
        elif page_write == 'clear':
            blob.content[start:end + 1] = bytes(length)
            blob.pages.difference_update(range(first_page, last_page))
        else:
            return _error(400, 'InvalidHeaderValue')

        self._touch(blob)
        return 201, self._resource_headers(blob), b''

    def _get_page_ranges(self, req, blob):
        failed = self._page_blob_or_error(req, blob)
        if failed:
            return failed

        pages = sorted(blob.pages)
        page_range = req.headers.get('x-ms-range')
        if page_range is not None:
            start, end = _parse_range(page_range)
            pages = [p for p in pages if p * _PAGE_SIZE >= start and (end is None or p * _PAGE_SIZE <= end)]

        root = ETree.Element('PageList')
        range_start = None
        previous = None
        for page in pages + [None]:
            if range_start is not None and (page is None or page != previous + 1):
                element = ETree.SubElement(root, 'PageRange')
                ETree.SubElement(element, 'Start').text = str(range_start * _PAGE_SIZE)
                ETree.SubElement(element, 'End').text = str((previous + 1) * _PAGE_SIZE - 1)
                range_start = None
            if page is not None and range_start is None:
                range_start = page
            previous = page
        return 200, {'Content-Type': 'application/xml'}, _to_xml(root)

    def _set_properties(self, req, blob):
        failed = self._page_blob_or_error(req, blob)
        if failed:
            return failed

        content_length = req.headers.get('x-ms-blob-content-length')
        if content_length is not None:
            length = int(content_length)
            if length % _PAGE_SIZE != 0:
                return _error(400, 'InvalidHeaderValue')
            if length < len(blob.content):
                del blob.content[length:]
            else:
                blob.content.extend(bytes(length - len(blob.content)))
            blob.pages = set(p for p in blob.pages if p < length // _PAGE_SIZE)

        action = req.headers.get('x-ms-sequence-number-action')
        value = req.headers.get('x-ms-blob-sequence-number')
        if action == 'increment':
            if value is not None:
                return _error(400, 'InvalidHeaderValue')
            blob.sequence_number += 1
        elif action == 'max':
            blob.sequence_number = max(blob.sequence_number, int(value))
        elif action == 'update':
            blob.sequence_number = int(value)
        elif action is not None:
            return _error(400, 'InvalidHeaderValue')

        self._touch(blob)
        return 200, self._resource_headers(blob), b''


def _read_body(body, limit=None):
    if body is None:
        return b''
    if isinstance(body, str):
        body = body.encode('utf-8')
    if isinstance(body, (bytes, bytearray)):
        return bytes(body if limit is None else body[:limit])
    if hasattr(body, 'read'):
        # streams may return fewer bytes than asked for, like sockets do
        chunks = []
        remaining = limit
        while remaining is None or remaining > 0:
            chunk = body.read(64 * 1024 if remaining is None else min(remaining, 64 * 1024))
            if not chunk:
                break
            chunks.append(chunk)
            if remaining is not None:
                remaining -= len(chunk)
        return b''.join(chunks)
    return b''.join(body)


def _md5(data):
    return base64.b64encode(hashlib.md5(data).digest()).decode('utf-8')


def _parse_range(value):
    start, _, end = value[len('bytes='):].partition('-')
    return int(start), int(end) if end else None


def _apply_blob_headers(blob, headers):
    for name, value in headers.items():
        lower = name.lower()
        if lower.startswith('x-ms-meta-'):
            blob.metadata[name[len('x-ms-meta-'):]] = value
        elif lower.startswith('x-ms-blob-content-') and lower != 'x-ms-blob-content-length':
            blob.properties['Content-' + lower[len('x-ms-blob-content-'):]] = value
        elif lower == 'x-ms-blob-cache-control':
            blob.properties['Cache-Control'] = value


def _add_block_element(parent, block_id, data):
    element = ETree.SubElement(parent, 'Block')
    ETree.SubElement(element, 'Name').text = base64.b64encode(block_id.encode('utf-8')).decode('utf-8')
    ETree.SubElement(element, 'Size').text = str(len(data))


def _to_xml(root):
    stream = BytesIO()
    ETree.ElementTree(root).write(stream, xml_declaration=True, encoding='utf-8', method='xml')
    return stream.getvalue()


def _error(status, error_code):
    body = '<?xml version="1.0" encoding="utf-8"?><Error><Code>{0}</Code><Message>{1}</Message></Error>'.format(
        error_code, _REASONS.get(status, 'Error'))
    return status, {'x-ms-error-code': error_code, 'Content-Type': 'application/xml'}, body.encode('utf-8')


def _build_response(request, status, headers, body):
    response = requests.Response()
    response.status_code = status
    response.reason = _REASONS.get(status, 'Unknown')
    response.headers = CaseInsensitiveDict(headers)
    response.raw = BytesIO(body)
    response.url = request.url
    response.request = request
    response.encoding = 'utf-8'
    return response

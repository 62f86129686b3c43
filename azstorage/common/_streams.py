#-------------------------------------------------------------------------
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
#--------------------------------------------------------------------------
import base64
import hashlib
import logging
from io import (
    BytesIO,
    SEEK_SET,
    UnsupportedOperation,
)

from ._error import (
    StreamRecoveryError,
    _ERROR_STREAM_NOT_REWINDABLE,
    _ERROR_STREAM_SHORTER_THAN_EXPECTED,
    _ERROR_VALUE_SHOULD_BE_BYTES_OR_STREAM,
    _ERROR_VALUE_SHOULD_BE_SEEKABLE_STREAM,
    _validate_not_negative,
)

logger = logging.getLogger(__name__)

_READ_CHUNK_SIZE = 64 * 1024


class StreamDescriptor(object):
    '''
    The result of analyzing a source stream.

    :ivar int length:
        The number of bytes in the stream, or None if the stream holds more
        bytes than were allowed to be read.
    :ivar str md5:
        The base64 encoded MD5 of the bytes read, or None if it was not
        requested or the stream was not read completely.
    '''

    def __init__(self, length=None, md5=None):
        self.length = length
        self.md5 = md5


def _checkpoint(stream):
    '''
    Returns the current position of the stream, or None if the stream cannot
    be rewound to it later.
    '''
    try:
        if hasattr(stream, 'seekable') and not stream.seekable():
            return None
        return stream.tell()
    except (AttributeError, UnsupportedOperation, OSError):
        return None


def _rewind(stream, position):
    try:
        stream.seek(position, SEEK_SET)
    except (AttributeError, UnsupportedOperation, OSError, ValueError) as ex:
        logger.error('Unable to rewind stream to position %s: %s', position, ex)
        raise StreamRecoveryError(_ERROR_STREAM_NOT_REWINDABLE.format(position)) from ex


def _analyze_stream(stream, length=None, max_length=None, rewind_source_stream=True, calculate_md5=False):
    '''
    Reads the stream to find its length and, optionally, its MD5.

    At most max_length + 1 bytes are consumed, and never more than length
    when it is known. If more than max_length bytes are available the
    returned descriptor has neither a length nor an MD5.

    :param stream: The stream to analyze.
    :param int length: The expected number of bytes, if known.
    :param int max_length: The most bytes the caller is interested in.
    :param bool rewind_source_stream:
        Whether to seek the stream back to where it started. The stream must
        be seekable when this is set.
    :param bool calculate_md5: Whether to compute the MD5 of the bytes read.
    :rtype: StreamDescriptor
    '''
    _validate_not_negative('length', length)

    position = None
    if rewind_source_stream:
        position = _checkpoint(stream)
        if position is None:
            raise ValueError(_ERROR_VALUE_SHOULD_BE_SEEKABLE_STREAM.format('stream'))

    limit = length
    if max_length is not None:
        limit = max_length + 1 if limit is None else min(limit, max_length + 1)

    md5 = hashlib.md5() if calculate_md5 else None
    total = 0
    while limit is None or total < limit:
        read_size = _READ_CHUNK_SIZE if limit is None else min(_READ_CHUNK_SIZE, limit - total)
        data = stream.read(read_size)
        if not data:
            break
        total += len(data)
        if md5 is not None:
            md5.update(data)

    if rewind_source_stream:
        _rewind(stream, position)

    if max_length is not None and total > max_length:
        return StreamDescriptor()

    if length is not None and total < length:
        raise ValueError(_ERROR_STREAM_SHORTER_THAN_EXPECTED.format(total, length))

    descriptor = StreamDescriptor(length=total)
    if md5 is not None:
        descriptor.md5 = base64.b64encode(md5.digest()).decode('utf-8')
    return descriptor


class _ChainedStream(object):
    '''
    A forward only stream which returns already buffered bytes before reading
    on from the source stream.
    '''

    def __init__(self, prefix, stream):
        self._prefix = BytesIO(prefix)
        self._stream = stream

    def read(self, size=-1):
        if size is None or size < 0:
            return self._prefix.read() + self._stream.read()

        data = self._prefix.read(size)
        if len(data) < size:
            data += self._stream.read(size - len(data))
        return data

    def seekable(self):
        return False


def _buffer_stream(stream, length=None, max_length=None):
    '''
    Buffers a stream which cannot be rewound.

    Reads up to max_length + 1 bytes. If the whole stream fits, a seekable
    in-memory copy is returned. Otherwise the bytes read are chained in front
    of the rest of the stream, which can then only be read forward.

    :return: A (stream, buffered) tuple. buffered is True if the returned
        stream holds all the content and can be rewound.
    '''
    limit = length
    if max_length is not None:
        limit = max_length + 1 if limit is None else min(limit, max_length + 1)

    chunks = []
    total = 0
    while limit is None or total < limit:
        read_size = _READ_CHUNK_SIZE if limit is None else min(_READ_CHUNK_SIZE, limit - total)
        data = stream.read(read_size)
        if not data:
            break
        chunks.append(data)
        total += len(data)
    data = b''.join(chunks)

    if max_length is not None and total > max_length:
        logger.debug('Stream holds more than %s bytes, not buffering it fully.', max_length)
        return _ChainedStream(data, stream), False

    if length is not None and total < length:
        raise ValueError(_ERROR_STREAM_SHORTER_THAN_EXPECTED.format(total, length))

    return BytesIO(data), True


def _get_content_md5(data):
    md5 = hashlib.md5()
    if isinstance(data, bytes):
        md5.update(data)
    elif hasattr(data, 'read'):
        pos = _checkpoint(data)
        if pos is None:
            raise ValueError(_ERROR_VALUE_SHOULD_BE_SEEKABLE_STREAM.format('data'))
        for chunk in iter(lambda: data.read(4096), b""):
            md5.update(chunk)
        _rewind(data, pos)
    else:
        raise ValueError(_ERROR_VALUE_SHOULD_BE_BYTES_OR_STREAM.format('data'))

    return base64.b64encode(md5.digest()).decode('utf-8')

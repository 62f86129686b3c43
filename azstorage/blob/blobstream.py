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
import threading

from ..common._error import (
    _ERROR_STREAM_SHORTER_THAN_EXPECTED,
    _ERROR_VALUE_SHOULD_BE_STREAM,
    _validate_not_negative,
)
from ._error import (
    _ERROR_BLOB_STREAM_CLOSED,
    _ERROR_PAGE_WRITE_NOT_ALIGNED,
)
from ._upload_chunking import _ParallelUploadPool

logger = logging.getLogger(__name__)


class BlobOutputStream(object):
    '''
    A writable stream which uploads a blob in chunks.

    Written bytes are buffered until write_size bytes are pending, then sent as
    one block (block blobs) or one page range (page blobs) on up to
    max_connections worker threads. close uploads what is left, waits for all
    uploads and, for block blobs, commits the blocks in the order they were
    written. Nothing is committed if any upload fails.

    Used as a context manager the stream is closed on success. If the block
    raises, the stream is aborted instead: pending uploads are cancelled and
    nothing is committed. Blocks which were already uploaded are left for the
    service to garbage collect.

    Obtain instances through BlockBlobService.open_write or
    PageBlobService.open_write_new/open_write_existing.

    :ivar result:
        After close, the properties returned by the commit (block blobs) or by
        the last page write (page blobs).
    '''

    def __init__(self, uploader, write_size, max_connections=1, encryptor=None, padder=None,
                 calculate_md5=False, alignment=None):
        '''
        :param uploader:
            Sends a chunk to the service and commits the uploaded chunks.
        :param int write_size:
            The number of bytes to buffer before sending a chunk.
        :param int max_connections:
            The most chunks to upload at once.
        :param encryptor:
            If set, chunks are encrypted with it before they are sent.
        :param padder:
            If set, chunks are padded with it before they are encrypted.
        :param bool calculate_md5:
            Whether to compute the MD5 of everything sent, to store as the
            blob's content MD5 on commit.
        :param int alignment:
            If set, every chunk must be a multiple of this many bytes.
        '''
        self._uploader = uploader
        self._write_size = write_size
        self._pool = _ParallelUploadPool(max_connections)
        self._encryptor = encryptor
        self._padder = padder
        self._md5 = hashlib.md5() if calculate_md5 else None
        self._alignment = alignment

        self._buffer = bytearray()
        self._chunk_index = 0
        self._chunk_offset = 0
        self._chunk_results = {}
        self._results_lock = threading.Lock()
        self._closed = False
        self.result = None

    @property
    def closed(self):
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if exc_type is None:
            self.close()
        else:
            self.abort()
        return False

    def write(self, data):
        '''
        Buffers data, sending every full chunk.

        :param bytes data: The bytes to write.
        :return: The number of bytes written.
        :rtype: int
        '''
        self._check_not_closed()

        self._buffer += data
        while len(self._buffer) >= self._write_size:
            chunk = bytes(self._buffer[:self._write_size])
            del self._buffer[:self._write_size]
            self._dispatch(chunk)

        return len(data)

    def write_stream(self, stream, count=None):
        '''
        Writes the content of a stream, up to count bytes if given.

        :param stream: The stream to read from.
        :param int count: The number of bytes to read. Reads to the end if None.
        :return: The number of bytes written.
        :rtype: int
        '''
        self._check_not_closed()
        _validate_not_negative('count', count)
        if not hasattr(stream, 'read'):
            raise TypeError(_ERROR_VALUE_SHOULD_BE_STREAM.format('stream'))

        written = 0
        while count is None or written < count:
            read_size = self._write_size - len(self._buffer)
            if count is not None:
                read_size = min(read_size, count - written)
            data = stream.read(read_size)
            if not data:
                break
            written += self.write(data)

        if count is not None and written < count:
            raise ValueError(_ERROR_STREAM_SHORTER_THAN_EXPECTED.format(written, count))

        return written

    def flush(self):
        '''
        Sends any buffered bytes as a chunk and waits until every chunk sent
        so far has been uploaded.
        '''
        self._check_not_closed()

        if self._buffer:
            chunk = bytes(self._buffer)
            del self._buffer[:]
            self._dispatch(chunk)
        self._pool.wait_all()

    def close(self):
        '''
        Uploads the remaining bytes and commits the blob. Closing a closed
        stream does nothing.
        '''
        if self._closed:
            return
        self._closed = True

        try:
            chunk = bytes(self._buffer)
            del self._buffer[:]
            self._dispatch(chunk, final=True)
            self._pool.wait_all()
        except BaseException:
            self._pool.shutdown(abort=True)
            raise
        self._pool.shutdown()

        chunk_results = [self._chunk_results[index] for index in range(self._chunk_index)]
        content_md5 = None
        if self._md5 is not None:
            content_md5 = base64.b64encode(self._md5.digest()).decode('utf-8')

        self.result = self._uploader.finalize(chunk_results, content_md5)

    def abort(self):
        '''
        Stops the upload without committing. Queued chunks are dropped and
        running uploads are waited for.
        '''
        if self._closed:
            return
        self._closed = True
        del self._buffer[:]

        logger.info('Aborting blob upload after %s chunks.', self._chunk_index)
        self._pool.shutdown(abort=True)

    def _check_not_closed(self):
        if self._closed:
            raise ValueError(_ERROR_BLOB_STREAM_CLOSED)

    def _dispatch(self, chunk, final=False):
        if self._alignment and len(chunk) % self._alignment != 0:
            raise ValueError(_ERROR_PAGE_WRITE_NOT_ALIGNED.format(len(chunk)))

        if self._padder:
            chunk = self._padder.update(chunk)
            if final:
                chunk += self._padder.finalize()
        if self._encryptor:
            chunk = self._encryptor.update(chunk)
            if final:
                chunk += self._encryptor.finalize()

        if not chunk:
            return

        if self._md5 is not None:
            self._md5.update(chunk)

        index = self._chunk_index
        offset = self._chunk_offset
        self._chunk_index += 1
        self._chunk_offset += len(chunk)

        logger.debug('Sending chunk %s: %s bytes at offset %s.', index, len(chunk), offset)
        self._pool.submit(self._upload_chunk, index, offset, chunk)

    def _upload_chunk(self, index, offset, chunk):
        result = self._uploader.upload_chunk_with_progress(index, offset, chunk)
        with self._results_lock:
            self._chunk_results[index] = result

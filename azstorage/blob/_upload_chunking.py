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
import copy
import logging
import threading
import uuid
from concurrent.futures import (
    FIRST_COMPLETED,
    FIRST_EXCEPTION,
    ThreadPoolExecutor,
    wait,
)
from io import (
    BytesIO,
    IOBase,
    SEEK_CUR,
    SEEK_END,
    SEEK_SET,
    UnsupportedOperation,
)

from ._constants import _LARGE_BLOB_UPLOAD_MAX_READ_BUFFER_SIZE
from .models import (
    AccessCondition,
    BlobBlock,
    ContentSettings,
)

logger = logging.getLogger(__name__)

_UPLOAD_THREAD_NAME_PREFIX = 'azstorage-upload'


class _ParallelUploadPool(object):
    '''
    Runs uploads on at most max_connections worker threads.

    submit blocks while max_connections uploads are in flight. The first
    failed upload fails every later submit and wait_all, and the pool does not
    start any upload queued after it. With a single connection uploads run
    inline on the calling thread.
    '''

    def __init__(self, max_connections):
        self.max_connections = max_connections
        self._executor = None
        if max_connections > 1:
            self._executor = ThreadPoolExecutor(max_connections, thread_name_prefix=_UPLOAD_THREAD_NAME_PREFIX)
        self._pending = set()
        self._error = None

    def submit(self, fn, *args):
        self._raise_if_failed()

        if self._executor is None:
            try:
                fn(*args)
            except Exception as ex:
                self._error = ex
                raise
            return

        # Bound the memory held by queued chunks
        while len(self._pending) >= self.max_connections:
            self._wait(FIRST_COMPLETED)

        self._pending.add(self._executor.submit(fn, *args))

    def wait_all(self):
        '''
        Waits for every submitted upload and raises the first failure.
        '''
        while self._pending:
            self._wait(FIRST_EXCEPTION)
        self._raise_if_failed()

    def shutdown(self, abort=False):
        '''
        Stops the worker threads, after cancelling queued uploads if abort is
        set. Always waits for running uploads, so no thread outlives the call.
        '''
        if abort:
            for future in self._pending:
                future.cancel()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
        self._pending = set()

    def _wait(self, return_when):
        done, self._pending = wait(self._pending, return_when=return_when)
        for future in done:
            if future.cancelled():
                continue
            ex = future.exception()
            if ex is not None and self._error is None:
                logger.error('Chunk upload failed, aborting the upload: %s', ex)
                self._error = ex
        self._raise_if_failed()

    def _raise_if_failed(self):
        if self._error is not None:
            raise self._error


class _BlobChunkUploader(object):
    def __init__(self, blob_service, container_name, blob_name, blob_size, parallel,
                 progress_callback, validate_content, access_condition, timeout, operation_context):
        self.blob_service = blob_service
        self.container_name = container_name
        self.blob_name = blob_name
        self.blob_size = blob_size
        self.parallel = parallel
        self.progress_callback = progress_callback
        self.progress_total = 0
        self.progress_lock = threading.Lock() if parallel else None
        self.validate_content = validate_content
        self.access_condition = access_condition
        self.timeout = timeout
        self.operation_context = operation_context

    def _update_progress(self, length):
        if self.progress_callback is not None:
            if self.progress_lock is not None:
                with self.progress_lock:
                    self.progress_total += length
                    total = self.progress_total
            else:
                self.progress_total += length
                total = self.progress_total
            self.progress_callback(total, self.blob_size)

    def upload_chunk_with_progress(self, index, chunk_offset, chunk_data):
        result = self._upload_chunk(index, chunk_offset, chunk_data)
        self._update_progress(len(chunk_data))
        return result

    def _upload_chunk(self, index, chunk_offset, chunk_data):
        raise NotImplementedError()

    def finalize(self, chunk_results, content_md5):
        raise NotImplementedError()


class _BlockBlobChunkUploader(_BlobChunkUploader):
    '''
    Uploads each chunk as an uncommitted block and commits them all in
    finalize.

    Block ids are the upload's random prefix followed by the zero padded chunk
    index, so all ids of an upload have the same length and never collide with
    blocks left over from an earlier attempt at the same blob.
    '''

    def __init__(self, blob_service, container_name, blob_name, blob_size, parallel,
                 progress_callback, validate_content, access_condition, timeout, operation_context,
                 content_settings=None, metadata=None):
        super(_BlockBlobChunkUploader, self).__init__(
            blob_service, container_name, blob_name, blob_size, parallel, progress_callback,
            validate_content, access_condition, timeout, operation_context)
        self.content_settings = content_settings
        self.metadata = metadata
        self.block_id_prefix = uuid.uuid4().hex

    def _get_block_id(self, index):
        return '{0}-{1:06d}'.format(self.block_id_prefix, index)

    def _upload_chunk(self, index, chunk_offset, chunk_data):
        block_id = self._get_block_id(index)
        self.blob_service._put_block(
            self.container_name,
            self.blob_name,
            chunk_data,
            block_id,
            validate_content=self.validate_content,
            lease_id=self.access_condition.lease_id if self.access_condition else None,
            timeout=self.timeout,
            operation_context=self.operation_context,
        )
        return BlobBlock(block_id)

    def finalize(self, chunk_results, content_md5):
        content_settings = self.content_settings
        if content_md5 is not None:
            content_settings = copy.copy(content_settings) if content_settings else ContentSettings()
            content_settings.content_md5 = content_md5

        logger.info('Committing %s blocks to %s/%s.', len(chunk_results), self.container_name, self.blob_name)
        return self.blob_service._put_block_list(
            self.container_name,
            self.blob_name,
            chunk_results,
            content_settings=content_settings,
            metadata=self.metadata,
            validate_content=self.validate_content,
            access_condition=self.access_condition,
            timeout=self.timeout,
            operation_context=self.operation_context,
        )


class _PageBlobChunkUploader(_BlobChunkUploader):
    '''
    Writes each chunk as one page range at its offset.

    Sequential uploads make every write conditional on the ETag returned by
    the previous one. ETag matching does not work with parallelism as a ranged
    upload may start before the previous finishes and provides an etag.
    '''

    def __init__(self, blob_service, container_name, blob_name, blob_size, parallel,
                 progress_callback, validate_content, access_condition, timeout, operation_context,
                 start_offset=0):
        super(_PageBlobChunkUploader, self).__init__(
            blob_service, container_name, blob_name, blob_size, parallel, progress_callback,
            validate_content, access_condition, timeout, operation_context)
        self.start_offset = start_offset
        self.if_match = access_condition.if_match if access_condition and not parallel else None
        self.last_properties = None

    def _upload_chunk(self, index, chunk_offset, chunk_data):
        chunk_start = self.start_offset + chunk_offset
        access_condition = copy.copy(self.access_condition) if self.access_condition else AccessCondition()
        access_condition.if_match = self.if_match

        resp = self.blob_service._update_page(
            self.container_name,
            self.blob_name,
            chunk_data,
            chunk_start,
            len(chunk_data),
            validate_content=self.validate_content,
            access_condition=access_condition,
            timeout=self.timeout,
            operation_context=self.operation_context,
        )

        if not self.parallel:
            self.if_match = resp.etag
        return resp

    def finalize(self, chunk_results, content_md5):
        # Page writes need no commit, report what the final write returned
        return chunk_results[-1] if chunk_results else None


class _SubStream(IOBase):
    '''
    A seekable, read only view of length bytes of a wrapped stream starting at
    stream_begin_index.
    '''

    def __init__(self, wrapped_stream, stream_begin_index, length):
        # file-like objects created with open() are derived from io.IOBase.
        try:
            wrapped_stream.seek(0, SEEK_CUR)
        except (AttributeError, UnsupportedOperation, OSError) as ex:
            raise ValueError("Wrapped stream must support seek().") from ex

        self._wrapped_stream = wrapped_stream
        self._position = 0
        self._stream_begin_index = stream_begin_index
        self._length = length
        self._buffer = BytesIO()

        # we must avoid buffering more than necessary, and also not use up too much memory
        # so the max buffer size is capped at 4MB
        self._max_buffer_size = length if length < _LARGE_BLOB_UPLOAD_MAX_READ_BUFFER_SIZE \
            else _LARGE_BLOB_UPLOAD_MAX_READ_BUFFER_SIZE
        self._current_buffer_start = 0
        self._current_buffer_size = 0

    def __len__(self):
        return self._length

    def close(self):
        if self._buffer:
            self._buffer.close()
        self._wrapped_stream = None
        IOBase.close(self)

    def fileno(self):
        raise UnsupportedOperation('fileno')

    def flush(self):
        pass

    def read(self, n=-1):
        if self.closed:
            raise ValueError("Stream is closed.")

        # adjust if out of bounds
        if n is None or n < 0 or n + self._position >= self._length:
            n = self._length - self._position

        # return fast
        if n == 0:
            return b''

        # attempt first read from the read buffer and update position
        read_buffer = self._buffer.read(n)
        bytes_read = len(read_buffer)
        bytes_remaining = n - bytes_read
        self._position += bytes_read

        # repopulate the read buffer from the underlying stream to fulfill the request
        if bytes_remaining > 0:
            # either read in the max buffer size specified on the class
            # or read in just enough data for the current block/sub stream
            current_max_buffer_size = min(self._max_buffer_size, self._length - self._position)

            buffer_from_stream = self._read_from_wrapped_stream(current_max_buffer_size)

            self._buffer.close()
            if buffer_from_stream:
                # update the buffer with new data from the wrapped stream
                # we need to note down the start position and size of the buffer, in case seek is performed later
                self._buffer = BytesIO(buffer_from_stream)
                self._current_buffer_start = self._position
                self._current_buffer_size = len(buffer_from_stream)

                # read the remaining bytes from the new buffer and update position
                second_read_buffer = self._buffer.read(bytes_remaining)
                read_buffer += second_read_buffer
                self._position += len(second_read_buffer)
            else:
                self._buffer = BytesIO()

        return read_buffer

    def _read_from_wrapped_stream(self, size):
        # reposition the underlying stream to match the start of the data to read
        absolute_position = self._stream_begin_index + self._position
        self._wrapped_stream.seek(absolute_position, SEEK_SET)
        # If we can't seek to the right location, our read will be corrupted so fail fast.
        if self._wrapped_stream.tell() != absolute_position:
            raise IOError("Stream failed to seek to the desired location.")
        return self._wrapped_stream.read(size)

    def readable(self):
        return True

    def readinto(self, b):
        raise UnsupportedOperation

    def seek(self, offset, whence=0):
        if whence == SEEK_SET:
            start_index = 0
        elif whence == SEEK_CUR:
            start_index = self._position
        elif whence == SEEK_END:
            start_index = self._length
        else:
            raise ValueError("Invalid argument for the 'whence' parameter.")

        pos = start_index + offset

        if pos > self._length:
            pos = self._length
        elif pos < 0:
            pos = 0

        # check if buffer is still valid
        # if not, drop buffer
        if pos < self._current_buffer_start or pos >= self._current_buffer_start + self._current_buffer_size:
            self._buffer.close()
            self._buffer = BytesIO()
            self._current_buffer_start = 0
            self._current_buffer_size = 0
        else:  # if yes seek to correct position
            delta = pos - self._current_buffer_start
            self._buffer.seek(delta, SEEK_SET)

        self._position = pos
        return pos

    def seekable(self):
        return True

    def tell(self):
        return self._position

    def write(self, b):
        raise UnsupportedOperation

    def writelines(self, lines):
        raise UnsupportedOperation

    def writable(self):
        return False

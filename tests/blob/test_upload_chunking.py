# coding: utf-8

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
import os
import threading
import time
import unittest
from io import (
    BytesIO,
    SEEK_CUR,
    SEEK_END,
    SEEK_SET,
)

from azstorage.blob._upload_chunking import (
    _ParallelUploadPool,
    _SubStream,
)
from tests.testcase import StorageTestCase

# ------------------------------------------------------------------------------


class StorageBlobUploadChunkingTest(StorageTestCase):

    # this is a white box test that's designed to make sure _Substream behaves properly
    # when the buffer needs to be swapped out at least once
    def test_sub_stream_with_length_larger_than_buffer(self):
        data = os.urandom(12 * 1024 * 1024)

        # assuming the max size of the buffer is 4MB, this test needs to be updated if that has changed
        # the block size is 6MB for this test
        expected_data = data[0: 6 * 1024 * 1024]
        wrapped_stream = BytesIO(data)  # simulate stream given by user
        substream = _SubStream(wrapped_stream, stream_begin_index=0, length=6 * 1024 * 1024)

        try:
            # substream should start with position at 0
            self.assertEqual(substream.tell(), 0)

            # reading a chunk that is smaller than the buffer
            data_chunk_1 = substream.read(2 * 1024 * 1024)
            self.assertEqual(len(data_chunk_1), 2 * 1024 * 1024)

            # reading a chunk that is bigger than the data remaining in buffer, force a buffer swap
            data_chunk_2 = substream.read(4 * 1024 * 1024)
            self.assertEqual(len(data_chunk_2), 4 * 1024 * 1024)

            # assert data is consistent
            self.assertEqual(data_chunk_1 + data_chunk_2, expected_data)
            self.assertEqual(6 * 1024 * 1024, substream.tell())

            # attempt to read more than what the sub stream contains should return nothing
            empty_data = substream.read(1 * 1024 * 1024)
            self.assertEqual(0, len(empty_data))
            self.assertEqual(6 * 1024 * 1024, substream.tell())

            # test seek outside of current buffer, which is at the moment the last 2MB of data
            substream.seek(0, SEEK_SET)
            data_chunk_1 = substream.read(4 * 1024 * 1024)
            data_chunk_2 = substream.read(2 * 1024 * 1024)

            # assert data is consistent
            self.assertEqual(data_chunk_1 + data_chunk_2, expected_data)

            # test seek inside of buffer, which is at the moment the last 2MB of data
            substream.seek(4 * 1024 * 1024, SEEK_SET)
            data_chunk_2 = substream.read(2 * 1024 * 1024)

            # assert data is consistent
            self.assertEqual(data_chunk_1 + data_chunk_2, expected_data)

        finally:
            wrapped_stream.close()
            substream.close()

    # this is a white box test that's designed to make sure _Substream behaves properly
    # when block size is smaller than 4MB, thus there's no need for buffer swap
    def test_sub_stream_with_length_equal_to_buffer(self):
        data = os.urandom(6 * 1024 * 1024)

        # the block size is 2MB for this test
        expected_data = data[0: 2 * 1024 * 1024]
        wrapped_stream = BytesIO(expected_data)  # simulate stream given by user
        substream = _SubStream(wrapped_stream, stream_begin_index=0, length=2 * 1024 * 1024)

        try:
            # substream should start with position at 0
            self.assertEqual(substream.tell(), 0)

            # reading a chunk that is smaller than the buffer
            data_chunk_1 = substream.read(1 * 1024 * 1024)
            self.assertEqual(len(data_chunk_1), 1 * 1024 * 1024)

            # reading a chunk that is bigger than the buffer, should not read anything beyond
            data_chunk_2 = substream.read(4 * 1024 * 1024)
            self.assertEqual(len(data_chunk_2), 1 * 1024 * 1024)

            # assert data is consistent
            self.assertEqual(data_chunk_1 + data_chunk_2, expected_data)

            # test seek
            substream.seek(1 * 1024 * 1024, SEEK_SET)
            data_chunk_2 = substream.read(1 * 1024 * 1024)

            # assert data is consistent
            self.assertEqual(data_chunk_1 + data_chunk_2, expected_data)

        finally:
            wrapped_stream.close()
            substream.close()

    def test_sub_stream_with_offset(self):
        data = b'0123456789abcdefghij'
        wrapped_stream = BytesIO(data)
        substream = _SubStream(wrapped_stream, stream_begin_index=5, length=10)

        self.assertEqual(len(substream), 10)
        self.assertEqual(substream.read(), b'56789abcde')
        self.assertEqual(substream.read(), b'')

        # seeks are relative to the sub stream and clamped to it
        self.assertEqual(substream.seek(-3, SEEK_END), 7)
        self.assertEqual(substream.read(), b'cde')
        self.assertEqual(substream.seek(-100, SEEK_CUR), 0)
        self.assertEqual(substream.seek(100, SEEK_SET), 10)
        substream.seek(2)
        self.assertEqual(substream.read(3), b'789')

        substream.close()
        with self.assertRaises(ValueError):
            substream.read()

    def test_sub_stream_is_read_only(self):
        substream = _SubStream(BytesIO(b'data'), 0, 4)

        self.assertTrue(substream.readable())
        self.assertTrue(substream.seekable())
        self.assertFalse(substream.writable())

    def test_sub_stream_needs_seekable_stream(self):
        class ForwardOnlyStream(object):
            def read(self, size=-1):
                return b''

        with self.assertRaises(ValueError):
            _SubStream(ForwardOnlyStream(), 0, 10)


class ParallelUploadPoolTest(unittest.TestCase):

    def tearDown(self):
        leftover = [t.name for t in threading.enumerate() if t.name.startswith('azstorage-upload')]
        self.assertEqual(leftover, [])

    def test_single_connection_runs_inline(self):
        # Arrange
        pool = _ParallelUploadPool(1)
        threads = []

        # Act
        for i in range(3):
            pool.submit(lambda: threads.append(threading.current_thread()))
        pool.wait_all()
        pool.shutdown()

        # Assert
        self.assertEqual(threads, [threading.current_thread()] * 3)

    def test_single_connection_failure(self):
        # Arrange
        pool = _ParallelUploadPool(1)
        calls = []

        def fail():
            raise KeyError('failed upload')

        # Act
        with self.assertRaises(KeyError):
            pool.submit(fail)
        with self.assertRaises(KeyError):
            pool.submit(calls.append, 1)
        pool.shutdown(abort=True)

        # Assert
        self.assertEqual(calls, [])

    def test_uploads_bounded_by_max_connections(self):
        # Arrange
        pool = _ParallelUploadPool(3)
        lock = threading.Lock()
        state = {'running': 0, 'max_running': 0, 'done': 0}

        def upload():
            with lock:
                state['running'] += 1
                state['max_running'] = max(state['max_running'], state['running'])
            time.sleep(0.01)
            with lock:
                state['running'] -= 1
                state['done'] += 1

        # Act
        for i in range(12):
            pool.submit(upload)
            # the caller never gets ahead of the pool by more than max_connections uploads
            self.assertLessEqual(i + 1 - state['done'], 3)
        pool.wait_all()
        pool.shutdown()

        # Assert
        self.assertEqual(state['done'], 12)
        self.assertLessEqual(state['max_running'], 3)

    def test_first_failure_fails_the_pool(self):
        # Arrange
        pool = _ParallelUploadPool(2)
        error = ValueError('failed upload')

        def fail():
            raise error

        # Act
        pool.submit(fail)
        with self.assertRaises(ValueError) as e:
            pool.wait_all()
        with self.assertRaises(ValueError):
            pool.submit(lambda: None)
        pool.shutdown(abort=True)

        # Assert
        self.assertIs(e.exception, error)

    def test_abort_cancels_queued_uploads(self):
        # Arrange
        pool = _ParallelUploadPool(2)
        started = []
        release = threading.Event()

        def upload(index):
            started.append(index)
            release.wait(5)

        # Act
        pool.submit(upload, 0)
        pool.submit(upload, 1)
        release.set()
        pool.shutdown(abort=True)

        # Assert
        self.assertLessEqual(len(started), 2)


# ------------------------------------------------------------------------------
if __name__ == '__main__':
    unittest.main()

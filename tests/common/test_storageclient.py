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
import unittest
from io import BytesIO
from unittest import mock

import requests
from azure.common import AzureHttpError

from azstorage.blob import BlockBlobService
from azstorage.common import (
    AzureOperationTimeoutError,
    AzureSigningError,
    LocationMode,
    OperationContext,
    StorageClient,
    StreamRecoveryError,
)
from azstorage.common._http import (
    HTTPRequest,
    _StorageRequest,
)
from azstorage.common.retry import (
    ExponentialRetry,
    LinearRetry,
)
from tests.testcase import StorageTestCase


class _FailingAuthentication(object):
    def sign_request(self, request):
        raise ValueError('malformed token')


class _ForwardOnlyStream(object):
    def __init__(self, data):
        self._data = data
        self._position = 0

    def __len__(self):
        return len(self._data) - self._position

    def read(self, size=-1):
        if size is None or size < 0:
            size = len(self._data) - self._position
        chunk = self._data[self._position:self._position + size]
        self._position += len(chunk)
        return chunk

    def seekable(self):
        return False


# --Test Class -----------------------------------------------------------------
class StorageClientTest(StorageTestCase):
    def setUp(self):
        super(StorageClientTest, self).setUp()

        self.bs = self._create_storage_service(BlockBlobService)
        self.container_name = self.get_resource_name('utcontainer')

    def _put_request(self, blob_name, body):
        request = HTTPRequest()
        request.method = 'PUT'
        request.host_locations = self.bs._get_host_locations()
        request.path = '/{0}/{1}'.format(self.container_name, blob_name)
        request.headers = {'x-ms-blob-type': 'BlockBlob'}
        request.body = body
        return request

    # --Test Cases --------------------------------------------
    def test_default_endpoints(self):
        service = BlockBlobService(account_name='myaccount')

        self.assertEqual(service.primary_endpoint, 'myaccount.blob.core.windows.net')
        self.assertEqual(service.secondary_endpoint, 'myaccount-secondary.blob.core.windows.net')
        self.assertEqual(service.protocol, 'https')
        self.assertEqual(service.location_mode, LocationMode.PRIMARY)
        self.assertIsNone(service.maximum_execution_time)

    def test_custom_endpoints(self):
        service = BlockBlobService(primary_endpoint='127.0.0.1:10000/devstoreaccount1', protocol='http',
                                   endpoint_suffix='core.chinacloudapi.cn')

        self.assertEqual(service.primary_endpoint, '127.0.0.1:10000/devstoreaccount1')
        self.assertIsNone(service.secondary_endpoint)
        self.assertEqual(service._get_host_locations(secondary=True),
                         {LocationMode.PRIMARY: '127.0.0.1:10000/devstoreaccount1'})
        self.assertEqual(service.make_blob_url('c', 'b'), 'http://127.0.0.1:10000/devstoreaccount1/c/b')

    def test_endpoint_suffix(self):
        service = BlockBlobService(account_name='myaccount', endpoint_suffix='core.chinacloudapi.cn')

        self.assertEqual(service.primary_endpoint, 'myaccount.blob.core.chinacloudapi.cn')

    def test_missing_account(self):
        with self.assertRaises(ValueError):
            BlockBlobService()

    def test_socket_timeout(self):
        self.bs.socket_timeout = 5

        self.assertEqual(self.bs.socket_timeout, 5)
        self.assertEqual(self.bs._httpclient.timeout, 5)

    def test_common_headers(self):
        # Arrange
        blob_name = self.get_resource_name('blob')

        # Act
        self.bs.create_blob_from_bytes(self.container_name, blob_name, b'hello world')

        # Assert
        request = self.endpoint.requests[0]
        self.assertEqual(request.headers['x-ms-version'], '2018-03-28')
        self.assertTrue(request.headers['User-Agent'].startswith('Azure-Storage/'))
        self.assertIsNotNone(request.headers['x-ms-client-request-id'])
        self.assertIsNotNone(request.headers['x-ms-date'])
        self.assertEqual(request.headers['Content-Length'], '11')
        self.assertEqual(request.headers['x-ms-blob-type'], 'BlockBlob')

    def test_sas_token_appended(self):
        # Arrange
        blob_name = self.get_resource_name('blob')
        self.endpoint.inject(status=500)

        # Act
        self.bs.create_blob_from_bytes(self.container_name, blob_name, b'hello world')

        # Assert
        for request in self.endpoint.requests:
            self.assertEqual(request.query['sig'], 'ZmFrZXNpZ25hdHVyZQ==')
            self.assertEqual(request.query['sv'], '2018-03-28')

    def test_sas_token_question_mark_ignored(self):
        service = BlockBlobService(account_name='myaccount', sas_token='?sv=1&sig=abc',
                                   request_session=self.session)
        service.create_blob_from_bytes(self.container_name, 'blob', b'x')

        self.assertEqual(self.endpoint.requests[0].query['sig'], 'abc')

    def test_scrub_query_and_headers(self):
        query = {'sig': 'secret', 'comp': 'block'}
        headers = {'Authorization': 'SharedKey secret', 'x-ms-version': '2018-03-28'}

        clean_query = StorageClient._scrub_query_parameters(query)
        clean_headers = StorageClient._scrub_headers(headers)

        self.assertEqual(clean_query, {'sig': '*****', 'comp': 'block'})
        self.assertEqual(clean_headers['Authorization'], '*****')
        self.assertEqual(clean_headers['x-ms-version'], '2018-03-28')
        self.assertEqual(query['sig'], 'secret')
        self.assertEqual(headers['Authorization'], 'SharedKey secret')

    def test_request_and_response_callbacks(self):
        # Arrange
        blob_name = self.get_resource_name('blob')
        responses = []

        def add_header(request):
            request.headers['x-ms-meta-callback'] = 'set'

        self.bs.request_callback = add_header
        self.bs.response_callback = lambda response: responses.append(response.status)

        # Act
        self.bs.create_blob_from_bytes(self.container_name, blob_name, b'hello world')

        # Assert
        self.assertEqual(responses, [201])
        blob = self.bs.get_blob_properties(self.container_name, blob_name)
        self.assertEqual(blob.metadata, {'callback': 'set'})

    def test_operation_context_hooks_and_request_id(self):
        # Arrange
        blob_name = self.get_resource_name('blob')
        context = OperationContext(client_request_id='my-request-id')
        sent = []
        received = []
        context.send_request_hooks.append(lambda request: sent.append(request.method))
        context.response_received_hooks.append(lambda response: received.append(response.status))
        self.endpoint.inject(status=500)

        # Act
        self.bs.create_blob_from_bytes(self.container_name, blob_name, b'hello world', operation_context=context)

        # Assert
        self.assertEqual(sent, ['PUT', 'PUT'])
        self.assertEqual(received, [500, 201])
        self.assertEqual([r.headers['x-ms-client-request-id'] for r in self.endpoint.requests],
                         ['my-request-id', 'my-request-id'])
        self.assertIsNotNone(context.start_time)
        self.assertEqual(context.last_result.status, 201)
        self.assertEqual(context.last_result.service_request_id, 'fake-2')
        self.assertIsNotNone(context.last_result.elapsed_time)

    def test_location_lock(self):
        # Arrange
        blob_name = self.get_resource_name('blob')
        self.bs.create_blob_from_bytes(self.container_name, blob_name, b'hello world')
        context = OperationContext(location_lock=True)

        # Act
        self.bs.location_mode = LocationMode.SECONDARY
        self.bs.get_blob_properties(self.container_name, blob_name, operation_context=context)
        self.bs.location_mode = LocationMode.PRIMARY
        self.bs.get_blob_properties(self.container_name, blob_name, operation_context=context)

        # Assert
        hosts = [r.host for r in self.endpoint.requests[1:]]
        self.assertEqual(hosts, ['storagename-secondary.blob.core.windows.net'] * 2)

    def test_signing_error_not_retried(self):
        # Arrange
        blob_name = self.get_resource_name('blob')
        self.bs.authentication = _FailingAuthentication()

        # Act
        with self.assertRaises(AzureSigningError) as e:
            self.bs.create_blob_from_bytes(self.container_name, blob_name, b'hello world')

        # Assert
        self.assertIn('malformed token', str(e.exception))
        self.assertEqual(e.exception.attempts, 1)
        self.assertEqual(len(self.endpoint.requests), 0)

    def test_expected_error_not_retried(self):
        # Arrange
        blob_name = self.get_resource_name('blob')
        self.endpoint.inject(status=500, error_code='OperationTimedOut', times=5)

        # Act
        with self.assertRaises(AzureHttpError) as e:
            self.bs._perform_request(self._put_request(blob_name, b'hello'),
                                     expected_errors=['OperationTimedOut'])

        # Assert
        self.assertEqual(e.exception.error_code, 'OperationTimedOut')
        self.assertEqual(len(self.endpoint.requests), 1)

    def test_storage_request_callbacks(self):
        # Arrange
        blob_name = self.get_resource_name('blob')
        calls = []

        def build_request():
            calls.append('build')
            return self._put_request(blob_name, b'hello')

        def set_headers(request):
            calls.append('set_headers')
            request.headers['x-ms-meta-step'] = 'headers'

        def pre_process_response(response):
            calls.append('pre_process')

        def post_process_response(response):
            calls.append('post_process')
            return response.headers['etag']

        def recovery_action(request):
            calls.append('recover')

        self.endpoint.inject(status=503)
        storage_request = _StorageRequest(build_request, set_headers=set_headers,
                                          pre_process_response=pre_process_response,
                                          post_process_response=post_process_response,
                                          recovery_action=recovery_action,
                                          expected_status=(201,))

        # Act
        etag = self.bs._execute_request(storage_request)

        # Assert
        self.assertEqual(etag, self.endpoint.get_blob(self.container_name, blob_name).etag)
        self.assertEqual(calls, ['build', 'set_headers', 'recover',
                                 'build', 'set_headers', 'pre_process', 'post_process'])

    def test_pre_process_failure_is_retried(self):
        # Arrange
        blob_name = self.get_resource_name('blob')
        failures = [ValueError('truncated response')]

        def pre_process_response(response):
            if failures:
                raise failures.pop()

        storage_request = _StorageRequest(lambda: self._put_request(blob_name, b'hello'),
                                          pre_process_response=pre_process_response)

        # Act
        self.bs._execute_request(storage_request)

        # Assert
        self.assertEqual(len(self.endpoint.requests), 2)

    def test_stream_body_rewound_before_retry(self):
        # Arrange
        blob_name = self.get_resource_name('blob')
        stream = BytesIO(b'***hello world')
        stream.seek(3)
        self.endpoint.inject(exception=requests.exceptions.ConnectionError('connection reset'), read_bytes=2)
        storage_request = _StorageRequest(lambda: self._put_request(blob_name, stream))

        # Act
        self.bs._execute_request(storage_request)

        # Assert
        first, second = self.endpoint.requests
        self.assertTrue(first.failed)
        self.assertEqual(second.body, b'hello world')
        self.assertEqual(self.endpoint.get_content(self.container_name, blob_name), b'hello world')

    def test_unrewindable_body_fails_retry(self):
        # Arrange
        blob_name = self.get_resource_name('blob')
        self.endpoint.inject(exception=requests.exceptions.ConnectionError('connection reset'), read_bytes=2)

        # Act
        with self.assertRaises(StreamRecoveryError):
            self.bs._perform_request(self._put_request(blob_name, _ForwardOnlyStream(b'hello world')))

        # Assert
        self.assertEqual(len(self.endpoint.requests), 1)

    def test_budget_exceeded_before_backoff(self):
        # Arrange
        blob_name = self.get_resource_name('blob')
        self.bs.retry = LinearRetry(backoff=10).retry
        self.bs.maximum_execution_time = 5
        self.endpoint.inject(status=500, times=5)

        # Act
        with mock.patch('azstorage.common.storageclient.sleep') as sleep:
            with self.assertRaises(AzureOperationTimeoutError) as e:
                self.bs.create_blob_from_bytes(self.container_name, blob_name, b'hello world')

        # Assert
        sleep.assert_not_called()
        self.assertEqual(len(self.endpoint.requests), 1)
        self.assertIsInstance(e.exception.__cause__, AzureHttpError)
        self.assertEqual(e.exception.attempts, 1)

    def test_budget_exceeded_by_slow_attempt(self):
        # Arrange
        blob_name = self.get_resource_name('blob')
        self.bs.retry = ExponentialRetry(initial_backoff=0, max_backoff=0).retry
        self.bs.maximum_execution_time = 0.1
        self.endpoint.delay = 0.2
        self.endpoint.inject(status=500, times=5)

        # Act
        with self.assertRaises(AzureOperationTimeoutError):
            self.bs.create_blob_from_bytes(self.container_name, blob_name, b'hello world')

        # Assert
        self.assertEqual(len(self.endpoint.requests), 1)

    def test_budget_allows_retries_within_it(self):
        # Arrange
        blob_name = self.get_resource_name('blob')
        self.bs.retry = LinearRetry(backoff=1).retry
        self.bs.maximum_execution_time = 60
        self.endpoint.inject(status=500, times=2)

        # Act
        with mock.patch('azstorage.common.storageclient.sleep') as sleep:
            self.bs.create_blob_from_bytes(self.container_name, blob_name, b'hello world')

        # Assert
        self.assertEqual(sleep.call_count, 2)
        self.assertEqual(len(self.endpoint.requests), 3)


# ------------------------------------------------------------------------------
if __name__ == '__main__':
    unittest.main()

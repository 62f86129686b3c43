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
from time import (
    sleep,
    time,
)

import requests
from azure.common import (
    AzureException,
    AzureHttpError,
)

from ._auth import (
    _StorageNoAuthentication,
    _StorageSASAuthentication,
)
from ._constants import (
    DEFAULT_PROTOCOL,
    DEFAULT_SOCKET_TIMEOUT,
    DEFAULT_X_MS_VERSION,
    SERVICE_HOST_BASE,
    USER_AGENT_STRING,
    _AUTHORIZATION_HEADER_NAME,
)
from ._deserialization import _get_request_id
from ._error import (
    AzureOperationTimeoutError,
    AzureSigningError,
    StreamRecoveryError,
    _ERROR_OPERATION_TIMED_OUT,
    _ERROR_STORAGE_MISSING_INFO,
    _ERROR_STREAM_NOT_SEEKABLE,
    _ERROR_UNEXPECTED_STATUS,
    _http_error_handler,
    _wrap_exception,
)
from ._http import (
    HTTPError,
    _StorageRequest,
)
from ._http.httpclient import _HTTPClient
from ._serialization import (
    _add_date_header,
    _update_request,
)
from ._streams import (
    _checkpoint,
    _rewind,
)
from .models import (
    LocationMode,
    OperationContext,
    RequestResult,
    RetryContext,
)
from .retry import ExponentialRetry

logger = logging.getLogger(__name__)


class StorageClient(object):
    '''
    This is the base class for service objects. Service objects are used to do
    all requests to Storage. This class cannot be instantiated directly.

    :ivar str account_name:
        The storage account name. This is used to construct the storage
        endpoints. It is required unless explicit endpoints are given.
    :ivar str sas_token:
        A shared access signature token to use to authenticate requests. If
        not specified, anonymous access will be used.
    :ivar str primary_endpoint:
        The endpoint to send storage requests to.
    :ivar str secondary_endpoint:
        The secondary endpoint to read storage data from. This will only be a
        valid endpoint if the storage account used is RA-GRS and thus allows
        reading from secondary.
    :ivar function(context) retry:
        A function which determines whether to retry. Takes as a parameter a
        :class:`~azstorage.common.models.RetryContext` object. Returns the number
        of seconds to wait before retrying the request, or None to indicate not
        to retry.
    :ivar ~azstorage.common.models.LocationMode location_mode:
        The host location to use to make requests. Defaults to LocationMode.PRIMARY.
        Note that this setting only applies to RA-GRS accounts as other account
        types do not allow reading from secondary. If the location_mode is set to
        LocationMode.SECONDARY, read requests will be sent to the secondary endpoint.
        Write requests will continue to be sent to primary.
    :ivar int maximum_execution_time:
        The most seconds an operation may take across all of its attempts and
        the waits between them. None means no limit.
    :ivar function(request) request_callback:
        A function called immediately before each request is sent. This function
        takes as a parameter the request object and returns nothing. It may be
        used to added custom headers or log request data.
    :ivar function() response_callback:
        A function called immediately after each response is received. This
        function takes as a parameter the response object and returns nothing.
        It may be used to log response data.
    :ivar function() retry_callback:
        A function called immediately after retry evaluation is performed. This
        function takes as a parameter the retry context object and returns nothing.
        It may be used to detect retries and log context information.
    '''

    def __init__(self, service, account_name=None, sas_token=None, protocol=DEFAULT_PROTOCOL,
                 endpoint_suffix=SERVICE_HOST_BASE, primary_endpoint=None, secondary_endpoint=None,
                 request_session=None):
        '''
        :param str service:
            The service name used to build the default endpoints, ex 'blob'.
        :param str account_name:
            The storage account name.
        :param str sas_token:
            A shared access signature token to append to every request.
        :param str protocol:
            The protocol to use for requests. Defaults to https.
        :param str endpoint_suffix:
            The host base component of the url, minus the account name. Defaults
            to Azure (core.windows.net).
        :param str primary_endpoint:
            Overrides the primary endpoint derived from the account name.
        :param str secondary_endpoint:
            Overrides the secondary endpoint derived from the account name.
        :param requests.Session request_session:
            The session object to use for http requests.
        '''
        if not primary_endpoint:
            if not account_name:
                raise ValueError(_ERROR_STORAGE_MISSING_INFO)
            primary_endpoint = '{}.{}.{}'.format(account_name, service, endpoint_suffix)
            if not secondary_endpoint:
                secondary_endpoint = '{}-secondary.{}.{}'.format(account_name, service, endpoint_suffix)

        self.account_name = account_name
        self.sas_token = sas_token
        self.primary_endpoint = primary_endpoint
        self.secondary_endpoint = secondary_endpoint

        self._httpclient = _HTTPClient(
            protocol=protocol,
            session=request_session or requests.Session(),
            timeout=DEFAULT_SOCKET_TIMEOUT,
        )

        if self.sas_token:
            self.authentication = _StorageSASAuthentication(self.sas_token)
        else:
            self.authentication = _StorageNoAuthentication()

        self.retry = ExponentialRetry().retry
        self.location_mode = LocationMode.PRIMARY
        self.maximum_execution_time = None

        self.request_callback = None
        self.response_callback = None
        self.retry_callback = None
        self._X_MS_VERSION = DEFAULT_X_MS_VERSION
        self._USER_AGENT_STRING = USER_AGENT_STRING

    @property
    def socket_timeout(self):
        return self._httpclient.timeout

    @socket_timeout.setter
    def socket_timeout(self, value):
        self._httpclient.timeout = value

    @property
    def protocol(self):
        return self._httpclient.protocol

    @protocol.setter
    def protocol(self, value):
        self._httpclient.protocol = value

    @property
    def request_session(self):
        return self._httpclient.session

    @request_session.setter
    def request_session(self, value):
        self._httpclient.session = value

    def set_proxy(self, host, port, user=None, password=None):
        '''
        Sets the proxy server host and port for the HTTP CONNECT Tunnelling.

        :param str host: Address of the proxy. Ex: '192.168.0.100'
        :param int port: Port of the proxy. Ex: 6000
        :param str user: User for proxy authorization.
        :param str password: Password for proxy authorization.
        '''
        self._httpclient.set_proxy(host, port, user, password)

    def _get_host_locations(self, primary=True, secondary=False):
        locations = {}
        if primary:
            locations[LocationMode.PRIMARY] = self.primary_endpoint
        if secondary and self.secondary_endpoint:
            locations[LocationMode.SECONDARY] = self.secondary_endpoint
        return locations

    def _apply_host(self, request, operation_context, retry_context):
        if operation_context.location_lock and operation_context.host_location:
            # If this is a location locked operation and the location is set,
            # override the request location and host_location.
            request.host_locations = operation_context.host_location
            request.host = list(operation_context.host_location.values())[0]
            retry_context.location_mode = list(operation_context.host_location.keys())[0]
        elif len(request.host_locations) == 1:
            # If only one location is allowed, use that location.
            request.host = list(request.host_locations.values())[0]
            retry_context.location_mode = list(request.host_locations.keys())[0]
        else:
            request.host = request.host_locations.get(retry_context.location_mode)

    def _check_budget(self, start_time, retry_context, pending_wait, cause=None):
        '''
        Raises AzureOperationTimeoutError if waiting pending_wait more seconds
        would take the operation past maximum_execution_time.
        '''
        if self.maximum_execution_time is None:
            return

        # only called once the retry policy has counted the failed attempt
        elapsed = time() - start_time
        if elapsed + pending_wait >= self.maximum_execution_time:
            ex = AzureOperationTimeoutError(
                _ERROR_OPERATION_TIMED_OUT.format(self.maximum_execution_time, retry_context.count))
            ex.attempts = retry_context.count
            ex.elapsed_time = elapsed
            raise ex from cause

    def _execute_request(self, storage_request, operation_context=None):
        '''
        Runs every attempt of one operation until it succeeds, fails with an
        error the retry policy gives up on, or runs out of time.

        :param ~azstorage.common._http._StorageRequest storage_request:
            The callbacks describing the operation.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts. A new context is created if none is given.
        :return: The value returned by post_process_response, if any.
        '''
        operation_context = operation_context or OperationContext()
        operation_context._start()
        client_request_id_prefix = 'Client-Request-ID={}'.format(operation_context.client_request_id)

        retry_context = RetryContext()
        retry_context.location_mode = self.location_mode
        start_time = time()

        while True:
            if retry_context.count:
                self._check_budget(start_time, retry_context, 0, retry_context.exception)

            request = storage_request.build_request()
            body_position = _checkpoint(request.body) if hasattr(request.body, 'read') else None
            retry_context.request = request
            retry_context.response = None
            retry_context.exception = None
            self._apply_host(request, operation_context, retry_context)

            result = RequestResult(retry_context.location_mode, retry_context.count + 1, time())
            operation_context.request_results.append(result)

            try:
                try:
                    _update_request(request, self._X_MS_VERSION, self._USER_AGENT_STRING,
                                    operation_context.client_request_id)

                    if storage_request.set_headers:
                        storage_request.set_headers(request)

                    # Execute the request callback
                    if self.request_callback:
                        self.request_callback(request)
                    operation_context._fire_send_request(request)

                    # Log the request before it is signed
                    logger.info("%s Outgoing request: Method=%s, Path=%s, Query=%s, Headers=%s.",
                                client_request_id_prefix,
                                request.method,
                                request.path,
                                self._scrub_query_parameters(request.query),
                                str(self._scrub_headers(request.headers)).replace('\n', ''))

                    # Add date and auth after the callback so date doesn't get too old and
                    # authentication is still correct if signed headers are added in the request
                    # callback. This also ensures retry policies with long back offs
                    # will work as it resets the time sensitive headers.
                    _add_date_header(request)
                    try:
                        self.authentication.sign_request(request)
                    except Exception as ex:
                        raise AzureSigningError(str(ex)) from ex

                    # Perform the request
                    response = self._httpclient.perform_request(request)
                    result.status = response.status
                    result.service_request_id = _get_request_id(response)

                    # Execute the response callback
                    if self.response_callback:
                        self.response_callback(response)
                    operation_context._fire_response_received(response)

                    # Set the response context
                    retry_context.response = response

                    # Log the response when it comes back
                    logger.info("%s Receiving Response: "
                                "%s, HTTP Status Code=%s, Message=%s, Headers=%s.",
                                client_request_id_prefix,
                                self.extract_date_and_request_id(retry_context),
                                response.status,
                                response.message,
                                str(response.headers).replace('\n', ''))

                    # Parse and wrap HTTP errors in AzureHttpError which inherits from AzureException
                    if response.status >= 300:
                        # This exception will be caught by the general error handler
                        # and raised as an azure http exception
                        _http_error_handler(
                            HTTPError(response.status, response.message, response.headers, response.body))

                    # A success code the operation does not expect is a failure the
                    # retry policy may still allow another attempt for
                    if storage_request.expected_status and response.status not in storage_request.expected_status:
                        ex = AzureHttpError(
                            _ERROR_UNEXPECTED_STATUS.format(response.status, storage_request.expected_status),
                            response.status)
                        ex.error_code = None
                        raise ex

                    if storage_request.pre_process_response:
                        storage_request.pre_process_response(response)

                    value = None
                    if storage_request.post_process_response:
                        value = storage_request.post_process_response(response)

                    return value
                except AzureException as ex:
                    retry_context.exception = ex
                    raise ex
                except Exception as ex:
                    retry_context.exception = ex
                    raise _wrap_exception(ex, AzureException) from ex

            except AzureException as ex:
                result.exception = ex
                retry_context.elapsed_time = time() - start_time

                # only parse the strings used for logging if logging is at least enabled for CRITICAL
                exception_str_in_one_line = ''
                status_code = ''
                timestamp_and_request_id = ''
                if logger.isEnabledFor(logging.CRITICAL):
                    exception_str_in_one_line = str(ex).replace('\n', '')
                    status_code = retry_context.response.status if retry_context.response is not None else 'Unknown'
                    timestamp_and_request_id = self.extract_date_and_request_id(retry_context)

                # if the http error was expected, we should short-circuit
                if isinstance(ex, AzureHttpError) and storage_request.expected_errors is not None \
                        and getattr(ex, 'error_code', None) in storage_request.expected_errors:
                    logger.info("%s Received expected http error: "
                                "%s, HTTP status code=%s, Exception=%s.",
                                client_request_id_prefix,
                                timestamp_and_request_id,
                                status_code,
                                exception_str_in_one_line)
                    self._raise_final(ex, retry_context)
                elif isinstance(ex, AzureSigningError):
                    logger.info("%s Unable to sign the request: Exception=%s.",
                                client_request_id_prefix,
                                exception_str_in_one_line)
                    self._raise_final(ex, retry_context)

                logger.info("%s Operation failed: checking if the operation should be retried. "
                            "Current retry count=%s, %s, HTTP status code=%s, Exception=%s.",
                            client_request_id_prefix,
                            retry_context.count,
                            timestamp_and_request_id,
                            status_code,
                            exception_str_in_one_line)

                # Determine whether a retry should be performed and if so, how
                # long to wait before performing retry.
                retry_interval = self.retry(retry_context)
                if retry_interval is None:
                    logger.error("%s Retry policy did not allow for a retry: "
                                 "%s, HTTP status code=%s, Exception=%s.",
                                 client_request_id_prefix,
                                 timestamp_and_request_id,
                                 status_code,
                                 exception_str_in_one_line)
                    self._raise_final(ex, retry_context)

                result.retryable = True

                # Execute the callback
                if self.retry_callback:
                    self.retry_callback(retry_context)

                logger.info("%s Retry policy is allowing a retry: Retry count=%s, Interval=%s.",
                            client_request_id_prefix,
                            retry_context.count,
                            retry_interval)

                # Never start a wait the operation cannot finish within its budget
                self._check_budget(start_time, retry_context, retry_interval, ex)

                # Sleep for the desired retry interval
                sleep(retry_interval)

                # Put the request body back where the failed attempt found it
                if storage_request.recovery_action:
                    storage_request.recovery_action(request)
                elif hasattr(request.body, 'read'):
                    if body_position is None:
                        logger.error('%s Unable to retry a request whose body stream cannot be rewound.',
                                     client_request_id_prefix)
                        raise StreamRecoveryError(_ERROR_STREAM_NOT_SEEKABLE)
                    _rewind(request.body, body_position)
            finally:
                result.elapsed_time = time() - result.start_time

                # If this is a location locked operation and the location is not set,
                # this is the first request of that operation. Set the location to
                # be used for subsequent requests in the operation.
                if operation_context.location_lock and not operation_context.host_location:
                    operation_context.host_location = {
                        result.location_mode: request.host_locations[result.location_mode]}

    @staticmethod
    def _raise_final(ex, retry_context):
        ex.attempts = retry_context.count + 1
        ex.elapsed_time = retry_context.elapsed_time
        raise ex

    def _perform_request(self, request, parser=None, parser_args=None, operation_context=None,
                         expected_errors=None, expected_status=None):
        '''
        Sends a prebuilt request through the retry loop.

        Every attempt sends a copy of the request. A stream body is shared by
        the copies and rewound by the engine before each retry, so each
        attempt sends the same bytes.
        '''
        def build_request():
            attempt = copy.copy(request)
            attempt.host_locations = dict(request.host_locations)
            attempt.query = dict(request.query)
            attempt.headers = dict(request.headers)
            return attempt

        def post_process_response(response):
            if parser is None:
                return None
            args = [response]
            if parser_args:
                args.extend(parser_args)
            return parser(*args)

        storage_request = _StorageRequest(build_request,
                                          post_process_response=post_process_response,
                                          expected_status=expected_status,
                                          expected_errors=expected_errors)
        return self._execute_request(storage_request, operation_context)

    @staticmethod
    def extract_date_and_request_id(retry_context):
        if getattr(retry_context, 'response', None) is None:
            return ""
        resp = retry_context.response

        if 'date' in resp.headers and 'x-ms-request-id' in resp.headers:
            return str.format("Server-Timestamp={0}, Server-Request-ID={1}",
                              resp.headers['date'], resp.headers['x-ms-request-id'])
        elif 'date' in resp.headers:
            return str.format("Server-Timestamp={0}", resp.headers['date'])
        elif 'x-ms-request-id' in resp.headers:
            return str.format("Server-Request-ID={0}", resp.headers['x-ms-request-id'])
        else:
            return ""

    @staticmethod
    def _scrub_query_parameters(query):
        # make a copy to avoid contaminating the request
        clean_queries = query.copy()

        if 'sig' in clean_queries:
            clean_queries['sig'] = '*****'

        return clean_queries

    @staticmethod
    def _scrub_headers(headers):
        # make a copy to avoid contaminating the request
        clean_headers = headers.copy()

        if _AUTHORIZATION_HEADER_NAME in clean_headers:
            clean_headers[_AUTHORIZATION_HEADER_NAME] = '*****'

        return clean_headers

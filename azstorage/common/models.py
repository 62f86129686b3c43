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
from time import time

from ._serialization import _new_client_request_id


class LocationMode(object):
    '''
    Specifies the location the request should be sent to. This mode only applies
    for RA-GRS accounts which allow secondary read access. All other account types
    must use PRIMARY.
    '''

    PRIMARY = 'primary'
    ''' Requests should be sent to the primary location. '''

    SECONDARY = 'secondary'
    ''' Requests should be sent to the secondary location, if possible. '''


class RetryContext(object):
    '''
    Retry context. This contains the request, response, and other data which
    can be used to determine whether or not to retry.

    :ivar HTTPRequest request:
        The request sent to the storage service.
    :ivar HTTPResponse response:
        The response returned by the storage service, or None if the attempt
        failed before a response was received.
    :ivar Exception exception:
        The exception that failed the attempt.
    :ivar LocationMode location_mode:
        The location the request was sent to.
    :ivar int count:
        The number of retries performed so far. The attempt about to be made
        is attempt number count + 1.
    :ivar float elapsed_time:
        Seconds spent on the operation, including previous attempts and
        backoffs.
    '''

    def __init__(self):
        self.request = None
        self.response = None
        self.exception = None
        self.location_mode = None
        self.count = 0
        self.elapsed_time = 0


class RequestResult(object):
    '''
    Describes a single attempt of an operation.

    :ivar LocationMode location_mode:
        The location the attempt was sent to.
    :ivar int attempt:
        The attempt number, starting at 1.
    :ivar int status:
        The returned status code, or None if no response was received.
    :ivar str service_request_id:
        The request id returned by the service.
    :ivar float start_time:
        When the attempt started, in seconds since the epoch.
    :ivar float elapsed_time:
        How long the attempt took, in seconds.
    :ivar bool retryable:
        Whether the retry policy allowed another attempt after this one.
    :ivar Exception exception:
        The exception which failed the attempt, if any.
    '''

    def __init__(self, location_mode, attempt, start_time):
        self.location_mode = location_mode
        self.attempt = attempt
        self.start_time = start_time
        self.elapsed_time = None
        self.status = None
        self.service_request_id = None
        self.retryable = False
        self.exception = None


class OperationContext(object):
    '''
    Tracks a single logical operation across all of its attempts. A new
    context is created for every service call unless one is passed in; the
    same context may be reused to lock subsequent operations to the location
    used by the first.

    :ivar str client_request_id:
        Sent as x-ms-client-request-id with every attempt of the operation.
    :ivar float start_time:
        When the operation started, in seconds since the epoch.
    :ivar list request_results:
        One :class:`RequestResult` per attempt, in order.
    :ivar bool location_lock:
        Whether later operations using this context should stick to the
        location chosen by the first.
    :ivar dict host_location:
        The locked location, as a {location_mode: host} dict.
    :ivar list send_request_hooks:
        Functions called with each request immediately before it is sent.
    :ivar list response_received_hooks:
        Functions called with each response as soon as it is received.
    '''

    def __init__(self, location_lock=False, client_request_id=None):
        self.location_lock = location_lock
        self.host_location = None
        self.client_request_id = client_request_id or _new_client_request_id()
        self.start_time = None
        self.request_results = []
        self.send_request_hooks = []
        self.response_received_hooks = []

    def _start(self):
        if self.start_time is None:
            self.start_time = time()

    @property
    def last_result(self):
        return self.request_results[-1] if self.request_results else None

    def _fire_send_request(self, request):
        for hook in self.send_request_hooks:
            hook(request)

    def _fire_response_received(self, response):
        for hook in self.response_received_hooks:
            hook(response)

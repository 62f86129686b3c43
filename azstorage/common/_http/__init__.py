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


class HTTPError(Exception):
    '''
    Represents an HTTP Exception when response status code >= 300.

    :ivar int status:
        the status code of the response
    :ivar str message:
        the message
    :ivar dict respheader:
        the returned headers
    :ivar bytes respbody:
        the body of the response
    '''

    def __init__(self, status, message, respheader, respbody):
        self.status = status
        self.respheader = respheader
        self.respbody = respbody
        Exception.__init__(self, message)


class HTTPResponse(object):
    '''
    Represents a response from an HTTP request.

    :ivar int status:
        the status code of the response
    :ivar str message:
        the message
    :ivar dict headers:
        the returned headers
    :ivar bytes body:
        the body of the response
    '''

    def __init__(self, status, message, headers, body):
        self.status = status
        self.message = message
        self.headers = headers
        self.body = body


class HTTPRequest(object):
    '''
    Represents an HTTP Request.

    :ivar str host:
        the host name to connect to
    :ivar dict host_locations:
        the hosts the request may be sent to, keyed by location mode
    :ivar str method:
        the method to use to connect (string such as GET, POST, PUT, etc.)
    :ivar str path:
        the uri fragment
    :ivar dict query:
        query parameters
    :ivar dict headers:
        header values
    :ivar body:
        the body of the request, as bytes or a seekable stream.
    '''

    def __init__(self):
        self.host = ''
        self.host_locations = {}
        self.method = ''
        self.path = ''
        self.query = {}
        self.headers = {}
        self.body = ''


class _StorageRequest(object):
    '''
    The callbacks the execution engine invokes for every attempt of one
    logical operation.

    :ivar build_request:
        Called with no arguments at the start of every attempt. Returns a new
        :class:`HTTPRequest` whose host_locations, method, path, query, headers
        and body are set. Common headers, the host and the signature are
        applied by the engine afterwards.
    :ivar set_headers:
        Optional. Called with the built request to apply resource specific
        headers such as metadata or access conditions.
    :ivar pre_process_response:
        Optional. Called with every response whose status is below 300, before
        post processing. May raise to fail the attempt.
    :ivar post_process_response:
        Optional. Called with the successful response; its return value is
        the result of the operation.
    :ivar recovery_action:
        Optional. Called with the failed request before a retry. Without one,
        a stream body is rewound to where it was before the failed attempt.
    :ivar tuple expected_status:
        The status codes below 300 which count as success. Any other status
        below 300 is a non-exceptioned failure and is retried.
    :ivar list expected_errors:
        Service error codes which are raised without consulting the retry
        policy.
    '''

    def __init__(self, build_request, set_headers=None, pre_process_response=None,
                 post_process_response=None, recovery_action=None, expected_status=None,
                 expected_errors=None):
        self.build_request = build_request
        self.set_headers = set_headers
        self.pre_process_response = pre_process_response
        self.post_process_response = post_process_response
        self.recovery_action = recovery_action
        self.expected_status = expected_status
        self.expected_errors = expected_errors

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
from dateutil import parser

from ._constants import (
    _HEADER_REQUEST_ID,
)


def _to_int(value):
    return value if value is None else int(value)


def _to_datetime(value):
    return value if value is None else parser.parse(value)


def _get_etag(response):
    return response.headers.get('etag')


def _get_last_modified(response):
    return _to_datetime(response.headers.get('last-modified'))


def _get_request_id(response):
    if response is None:
        return None
    return response.headers.get(_HEADER_REQUEST_ID)


def _get_request_server_encrypted(response):
    value = response.headers.get('x-ms-request-server-encrypted')
    return value == 'true' if value is not None else None

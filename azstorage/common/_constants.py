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
import platform

__author__ = 'Microsoft Corp. <ptvshelp@microsoft.com>'
__version__ = '0.1.0'

# UserAgent string sample: 'Azure-Storage/0.1.0 (Python CPython 3.8.10; Linux 5.4)'
# The user agent is the same for every request of a client
USER_AGENT_STRING = 'Azure-Storage/{} (Python {} {}; {} {})'.format(__version__, platform.python_implementation(),
                                                                    platform.python_version(), platform.system(),
                                                                    platform.release())

# default values for common package, in case it is used directly
DEFAULT_X_MS_VERSION = '2018-03-28'

# Live ServiceClient URLs
SERVICE_HOST_BASE = 'core.windows.net'
DEFAULT_PROTOCOL = 'https'

# Per attempt socket timeout, in seconds
DEFAULT_SOCKET_TIMEOUT = 60

# Encryption constants
_ENCRYPTION_PROTOCOL_V1 = '1.0'

# Sizes
KB = 1024
MB = 1024 * KB

# Header names
_HEADER_CLIENT_REQUEST_ID = 'x-ms-client-request-id'
_HEADER_REQUEST_ID = 'x-ms-request-id'
_HEADER_ERROR_CODE = 'x-ms-error-code'
_HEADER_CONTENT_MD5 = 'Content-MD5'
_HEADER_CONTENT_LENGTH = 'Content-Length'

_AUTHORIZATION_HEADER_NAME = 'Authorization'
